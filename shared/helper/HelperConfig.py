"""Environment-backed configuration for the RAG gateway."""

import logging
import os
from typing import Any

PRODUCTION_ENV = "production"

_UNSET = object()


class HelperConfig:
    """Reads all settings from environment variables.

    Keys are case-insensitive. An empty variable counts as unset. A getter
    called without a default treats the key as required.
    """

    def __init__(self, logger: logging.Logger) -> None:
        self._logger = logger

    def _read_raw(self, key: str, default: Any) -> Any:
        """Return the stripped raw value, or _UNSET if the variable is unset and a default exists.

        Raises:
            ValueError: If the variable is unset and no default is provided.
        """
        key = key.upper()
        raw = (os.getenv(key) or "").strip()
        if raw:
            return raw
        if default is None:
            raise ValueError(f"Environment variable '{key}' is not set.")
        return _UNSET

    def get_string_val(self, key: str, default: str | None = None) -> str:
        raw = self._read_raw(key, default)
        return default if raw is _UNSET else raw

    def get_number_val(self, key: str, default: float | int | None = None) -> float | int:
        """Read an int, or a float when the value contains a dot.

        Raises:
            ValueError: If the variable is required but unset, or not a number.
        """
        raw = self._read_raw(key, default)
        if raw is _UNSET:
            return default
        try:
            return float(raw) if "." in raw else int(raw)
        except ValueError:
            raise ValueError(f"Environment variable '{key.upper()}' is not a valid number: '{raw}'.")

    def get_bool_val(self, key: str, default: bool | None = None) -> bool:
        """Read a flag. "true", "1" and "yes" are true, anything else is false."""
        raw = self._read_raw(key, default)
        return default if raw is _UNSET else raw.lower() in ("true", "1", "yes")

    def get_list_val(self, key: str, default: list[str] | None = None, separator: str = ",") -> list[str]:
        """Read a list written as "a,b,c" or "[a,b,c]". Empty elements are dropped.

        Returns:
            list[str]: The elements, or a copy of the default.
        """
        raw = self._read_raw(key, default)
        if raw is _UNSET:
            return list(default)
        if raw.startswith("[") and raw.endswith("]"):
            raw = raw[1:-1]
        return [item.strip() for item in raw.split(separator) if item.strip()]

    def get_app_env(self) -> str:
        """Deployment mode from APP_ENV, lowercased. Defaults to "production"."""
        return self.get_string_val("APP_ENV", default=PRODUCTION_ENV).lower()

    def is_production(self) -> bool:
        """True unless APP_ENV explicitly names another mode, e.g. "development"."""
        return self.get_app_env() == PRODUCTION_ENV

    def get_logger(self) -> logging.Logger:
        return self._logger
