from abc import abstractmethod
from typing import Any

import httpx

from shared.clients.ClientInterface import ClientInterface
from shared.helper.HelperConfig import HelperConfig


class ModelRequestError(Exception):
    """An embedding or chat model call failed or returned an unusable payload."""


class LLMClientInterface(ClientInterface):
    """Embedding and chat model backend.

    Config keys: LLM_MODEL (embedding model), LLM_CHAT_MODEL (falls back to the
    embedding model) and LLM_CHAT_TEMPERATURE.
    """

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        prefix = self.get_client_type().upper()
        self.embed_model = helper_config.get_string_val(f"{prefix}_MODEL", default="all-minilm")
        self.chat_model = helper_config.get_string_val(f"{prefix}_CHAT_MODEL", default="") or self.embed_model
        self.chat_temperature = float(helper_config.get_number_val(f"{prefix}_CHAT_TEMPERATURE", default=0.2))

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        return "llm"

    ################ ENDPOINTS ##################
    @abstractmethod
    def _get_endpoint_embedding(self) -> str:
        pass

    @abstractmethod
    def _get_endpoint_model_details(self) -> str:
        pass

    @abstractmethod
    def _get_endpoint_chat(self) -> str:
        pass

    ##########################################
    ########### PAYLOAD BUILDER ##############
    ##########################################

    @abstractmethod
    def get_embed_payload(self, texts: list[str]) -> dict:
        """Request body embedding all `texts` in one call."""
        pass

    @abstractmethod
    def get_chat_payload(self, messages: list[dict]) -> dict:
        """
        Request body for one non-streaming chat completion.

        Args:
            messages (list[dict]): OpenAI-format messages, system prompt first.
        """
        pass

    @abstractmethod
    def get_model_details_payload(self) -> dict:
        """Request body asking for the embedding model's metadata."""
        pass

    ##########################################
    ########### RESPONSE PARSER ##############
    ##########################################

    @abstractmethod
    def extract_embeddings(self, raw_response: dict) -> list[list[float]]:
        """
        Extracts the vectors from an embedding response, in input order.

        Raises:
            ValueError: If the response carries no vectors.
        """
        pass

    @abstractmethod
    def extract_chat_reply(self, raw_response: dict) -> str:
        """
        Extracts the assistant's reply text from a chat response.

        Raises:
            ValueError: If the response carries no reply.
        """
        pass

    @abstractmethod
    def extract_vector_size(self, raw_response: dict) -> int:
        """
        Extracts the embedding width from a model details response.

        Raises:
            ValueError: If the width is not part of the response.
        """
        pass

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def _post_model(self, endpoint: str, body: dict, purpose: str) -> Any:
        """POST to the model backend and return the decoded JSON body.

        Raises:
            ModelRequestError: On a transport error, a non-2xx status or a non-JSON body.
        """
        try:
            resp = await self.do_request(method="POST", endpoint=endpoint, json=body)
        except httpx.HTTPError as exc:
            raise ModelRequestError(f"{purpose} request to '{self.get_engine_name()}' failed: {exc}") from exc
        if not resp.is_success:
            self.logging.error("%s request failed: status %d, body: %s", purpose, resp.status_code, resp.text[:200])
            raise ModelRequestError(f"{purpose} request failed with status {resp.status_code}.")
        try:
            return resp.json()
        except ValueError as exc:
            raise ModelRequestError(f"{purpose} response is not JSON: {exc}") from exc

    async def do_embed(self, texts: list[str] | str) -> list[list[float]]:
        """Embed one or more texts in a single backend call.

        Args:
            texts (list[str] | str): The texts to embed.

        Returns:
            list[list[float]]: One vector per input, in input order.

        Raises:
            ModelRequestError: If the call fails or the vector count differs from the input count.
        """
        texts = [texts] if isinstance(texts, str) else list(texts)
        raw = await self._post_model(self._get_endpoint_embedding(), self.get_embed_payload(texts), "Embedding")
        try:
            vectors = self.extract_embeddings(raw)
        except ValueError as exc:
            raise ModelRequestError(str(exc)) from exc
        if len(vectors) != len(texts):
            raise ModelRequestError(f"Expected {len(texts)} embeddings, got {len(vectors)}.")
        return vectors

    async def do_chat(self, messages: list[dict]) -> str:
        """Run one chat completion and return the reply text.

        Raises:
            ModelRequestError: If the call fails or the response holds no reply.
        """
        raw = await self._post_model(self._get_endpoint_chat(), self.get_chat_payload(messages), "Chat")
        try:
            return self.extract_chat_reply(raw)
        except ValueError as exc:
            raise ModelRequestError(str(exc)) from exc

    async def do_fetch_embedding_vector_size(self) -> int:
        """Ask the backend for the embedding model's output width.

        Raises:
            ModelRequestError: If the width cannot be determined.
        """
        raw = await self._post_model(self._get_endpoint_model_details(), self.get_model_details_payload(), "Model details")
        try:
            return self.extract_vector_size(raw)
        except ValueError as exc:
            raise ModelRequestError(str(exc)) from exc
