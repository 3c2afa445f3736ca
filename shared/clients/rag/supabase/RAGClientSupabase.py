import httpx

from shared.helper.HelperConfig import HelperConfig
from shared.clients.rag.RAGClientInterface import RAGClientInterface, RetrievalStoreError
from shared.clients.rag.models.ChunkMatch import ChunkMatch
from shared.clients.rag.models.ChunkRecord import ChunkRecord, DocumentRecord
from shared.models.config import EnvConfig

INSERT_BATCH_SIZE = 100  # max chunk rows per insert call


class RAGClientSupabase(RAGClientInterface):
    """Supabase (PostgREST + pgvector) retrieval store.

    Requests carrying the caller's access token run under that user's
    row-level security. Requests without one (development header identity)
    use the service key when configured, otherwise the anon key.
    """

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._base_url = self.get_config_val("URL", default=None, val_type="string")
        self._anon_key = self.get_config_val("ANON_KEY", default=None, val_type="string")
        self._service_key = self.get_config_val("SERVICE_KEY", default="", val_type="string")
        self._match_function = self.get_config_val("MATCH_FUNCTION", default="match_documents", val_type="string")
        self._documents_table = self.get_config_val("DOCUMENTS_TABLE", default="documents", val_type="string")
        self._chunks_table = self.get_config_val("CHUNKS_TABLE", default="document_chunks", val_type="string")

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Supabase"

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="URL", val_type="string", default=None),
            EnvConfig(env_key="ANON_KEY", val_type="string", default=None),
            EnvConfig(env_key="SERVICE_KEY", val_type="string", default=""),
        ]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        return {"apikey": self._anon_key}

    def _get_caller_headers(self, access_token: str | None) -> dict:
        """
        Returns the headers that identify the caller to PostgREST.

        Args:
            access_token (str | None): The caller's verified JWT.

        Returns:
            dict: apikey / Authorization headers.
        """
        if access_token:
            return {"Authorization": f"Bearer {access_token}"}
        if self._service_key:
            return {"apikey": self._service_key, "Authorization": f"Bearer {self._service_key}"}
        return {"Authorization": f"Bearer {self._anon_key}"}

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self._base_url

    def _get_endpoint_healthcheck(self) -> str:
        return "/rest/v1/"

    def _get_endpoint_match(self) -> str:
        return f"/rest/v1/rpc/{self._match_function}"

    def _get_endpoint_table(self, table: str) -> str:
        return f"/rest/v1/{table}"

    ##########################################
    ########### PAYLOAD BUILDER ##############
    ##########################################

    def get_match_payload(self, embedding: list[float], threshold: float, limit: int, owner_id: str | None) -> dict:
        return {
            "query_embedding": embedding,
            "match_threshold": threshold,
            "match_count": limit,
            "p_user_id": owner_id,
        }

    ##########################################
    ########### RESPONSE PARSER ##############
    ##########################################

    def extract_matches(self, raw_response: list) -> list[ChunkMatch]:
        if not isinstance(raw_response, list):
            raise RetrievalStoreError("Unexpected match response shape from Supabase.")
        return [
            ChunkMatch(
                id=str(row.get("id")),
                content=row.get("content") or "",
                metadata=row.get("metadata") or {},
                similarity=float(row.get("similarity", 0.0)),
            )
            for row in raw_response
        ]

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def _send(self, method: str, endpoint: str, access_token: str | None, **kwargs) -> httpx.Response:
        """Send one request and translate transport errors and non-2xx statuses into RetrievalStoreError."""
        headers = self._get_caller_headers(access_token)
        headers.update(kwargs.pop("additional_headers", {}))
        try:
            resp = await self.do_request(method=method, endpoint=endpoint, additional_headers=headers, **kwargs)
        except httpx.HTTPError as exc:
            raise RetrievalStoreError(f"Supabase request {method} {endpoint} failed: {exc}") from exc
        if resp.status_code >= 300:
            self.logging.error(
                "Supabase request %s %s failed with status %d: %s",
                method, endpoint, resp.status_code, resp.text[:200],
            )
            raise RetrievalStoreError(f"Supabase request {method} {endpoint} failed with status {resp.status_code}.")
        return resp

    async def _match_chunks(
        self,
        embedding: list[float],
        threshold: float,
        limit: int,
        owner_id: str | None,
        access_token: str | None,
    ) -> list[ChunkMatch]:
        resp = await self._send(
            "POST",
            self._get_endpoint_match(),
            access_token,
            json=self.get_match_payload(embedding, threshold, limit, owner_id),
        )
        try:
            raw = resp.json()
        except ValueError as exc:
            raise RetrievalStoreError(f"Supabase returned invalid JSON for match: {exc}") from exc
        return self.extract_matches(raw)

    async def _insert_document(self, document: DocumentRecord, chunks: list[ChunkRecord], access_token: str | None) -> None:
        prefer = {"Prefer": "return=minimal"}
        await self._send(
            "POST",
            self._get_endpoint_table(self._documents_table),
            access_token,
            json=document.model_dump(),
            additional_headers=prefer,
        )
        rows = [chunk.model_dump() for chunk in chunks]
        for batch_start in range(0, len(rows), INSERT_BATCH_SIZE):
            await self._send(
                "POST",
                self._get_endpoint_table(self._chunks_table),
                access_token,
                json=rows[batch_start: batch_start + INSERT_BATCH_SIZE],
                additional_headers=prefer,
            )

    async def _delete_document(self, document_id: str, owner_id: str, access_token: str | None) -> None:
        await self._send(
            "DELETE",
            self._get_endpoint_table(self._chunks_table),
            access_token,
            params={"document_id": f"eq.{document_id}", "user_id": f"eq.{owner_id}"},
        )
        await self._send(
            "DELETE",
            self._get_endpoint_table(self._documents_table),
            access_token,
            params={"id": f"eq.{document_id}", "user_id": f"eq.{owner_id}"},
        )
