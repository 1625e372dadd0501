"""
Configuration for the luminarias tooling.

Environment variables (prefix `LUMINARIAS_`) and an optional `.env` file are
read through pydantic-settings. The API key entered by the operator is kept
separately by CredentialStore so it survives between sessions.
"""

from __future__ import annotations

from functools import lru_cache
import json
import logging
import os
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

BATCH_SIZE = 50
DEFAULT_MODEL = "gemini-2.5-flash"

# Checked in order when no key has been saved.
CREDENTIAL_ENV_VARS = ("GEMINI_API_KEY", "API_KEY")


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="LUMINARIAS_",
        env_file=".env",
        extra="ignore",
    )

    home: Path = Field(default=Path("~/.luminarias"))
    model: str = DEFAULT_MODEL
    batch_size: int = BATCH_SIZE
    request_timeout_seconds: float = 60.0
    log_level: str = "INFO"

    @field_validator("batch_size")
    @classmethod
    def validate_batch_size(cls, v: int) -> int:
        if v < 1:
            raise ValueError("LUMINARIAS_BATCH_SIZE must be at least 1")
        return v

    @property
    def store_dir(self) -> Path:
        return self.home.expanduser() / "store"

    @property
    def credential_path(self) -> Path:
        return self.home.expanduser() / "settings.json"


@lru_cache()
def get_settings() -> Settings:
    """Return cached settings to avoid reparsing env on every call."""
    return Settings()


class CredentialStore:
    """
    Persisted API key with an environment fallback.

    The saved key wins over the environment so an operator can override a
    deployment-wide key from the CLI.
    """

    def __init__(self, path: Path, env: dict[str, str] | None = None) -> None:
        self.path = path
        self._env = os.environ if env is None else env

    def load(self) -> str:
        """Return the saved key, else the first non-empty env fallback, else ''."""
        saved = self._read_saved()
        if saved:
            return saved
        for name in CREDENTIAL_ENV_VARS:
            value = self._env.get(name, "").strip()
            if value:
                return value
        return ""

    def save(self, key: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = {"api_key": key.strip()}
        self.path.write_text(json.dumps(payload), encoding="utf-8")
        logger.info("credential_saved", extra={"path": str(self.path)})

    def _read_saved(self) -> str:
        if not self.path.exists():
            return ""
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            logger.warning("credential_unreadable", extra={"path": str(self.path)})
            return ""
        value = payload.get("api_key") if isinstance(payload, dict) else None
        return value.strip() if isinstance(value, str) else ""
