"""Configuration helpers for the quote wizard."""

from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum
from importlib import import_module
from typing import Optional

DEFAULT_API_URL = "https://api.openai.com/v1"
DEFAULT_MODEL_ID = "gpt-3.5-turbo"
DEFAULT_HTTP_TIMEOUT = 60.0
DEFAULT_MAX_QUESTIONS = 5
DEFAULT_SESSION_TTL = 1800.0


class QuoteLanguage(str, Enum):
    """Languages with a bundled prompt pack."""

    ZH = "zh"
    EN = "en"

    @classmethod
    def from_string(
        cls,
        language: str | None,
        default: Optional["QuoteLanguage"] = None,
    ) -> "QuoteLanguage":
        """Normalize arbitrary user input into a supported language."""
        if not language:
            if default is None:
                raise ValueError("Quote language is required.")
            return default
        normalized = language.strip().lower().replace("_", "-").split("-")[0]
        for candidate in cls:
            if candidate.value == normalized:
                return candidate
        if default is not None:
            return default
        raise ValueError(f"Unsupported quote language: {language}")


@dataclass(slots=True)
class ModelSettings:
    """Connection settings for the chat completion service."""

    api_key: Optional[str]
    endpoint: str
    model: str
    timeout: float


@dataclass(slots=True)
class RecordStoreSettings:
    """Connection settings for the NocoDB record store."""

    base_url: Optional[str]
    table_id: Optional[str]
    api_token: Optional[str]

    @property
    def is_complete(self) -> bool:
        return bool(self.base_url and self.table_id and self.api_token)


@dataclass(slots=True)
class AppSettings:
    """Top-level application settings loaded from environment variables."""

    model: ModelSettings
    record_store: RecordStoreSettings
    language: QuoteLanguage
    max_questions: int
    session_ttl: float = DEFAULT_SESSION_TTL

    @classmethod
    def load(cls) -> "AppSettings":
        """Load settings from the environment or .env file.

        Credentials are optional here: the gateway and the record store
        check for them right before they would be used.
        """
        _ensure_dotenv()
        endpoint = _optional_env("OPENAI_API_URL") or DEFAULT_API_URL
        model = _optional_env("OPENAI_MODEL_ID") or DEFAULT_MODEL_ID

        timeout_raw = os.getenv("QUOTE_HTTP_TIMEOUT", str(DEFAULT_HTTP_TIMEOUT))
        try:
            timeout = float(timeout_raw)
        except ValueError as exc:
            raise RuntimeError("QUOTE_HTTP_TIMEOUT must be a number") from exc
        if timeout <= 0:
            raise RuntimeError("QUOTE_HTTP_TIMEOUT must be positive")

        max_questions_raw = os.getenv(
            "QUOTE_MAX_QUESTIONS", str(DEFAULT_MAX_QUESTIONS)
        )
        try:
            max_questions = int(max_questions_raw)
        except ValueError as exc:
            raise RuntimeError(
                "QUOTE_MAX_QUESTIONS must be an integer"
            ) from exc
        if max_questions < 1:
            raise RuntimeError("QUOTE_MAX_QUESTIONS must be at least 1")

        ttl_raw = os.getenv("QUOTE_SESSION_TTL", str(DEFAULT_SESSION_TTL))
        try:
            session_ttl = float(ttl_raw)
        except ValueError as exc:
            raise RuntimeError("QUOTE_SESSION_TTL must be a number") from exc
        if session_ttl <= 0:
            raise RuntimeError("QUOTE_SESSION_TTL must be positive")

        language = QuoteLanguage.from_string(
            os.getenv("QUOTE_LANGUAGE"),
            default=QuoteLanguage.ZH,
        )
        return cls(
            model=ModelSettings(
                api_key=_optional_env("OPENAI_API_KEY"),
                endpoint=endpoint.rstrip("/"),
                model=model,
                timeout=timeout,
            ),
            record_store=RecordStoreSettings(
                base_url=_strip_slash(_optional_env("NOCODB_BASE_URL")),
                table_id=_optional_env("NOCODB_TABLE_ID"),
                api_token=_optional_env("NOCODB_API_TOKEN"),
            ),
            language=language,
            max_questions=max_questions,
            session_ttl=session_ttl,
        )


def _optional_env(name: str) -> Optional[str]:
    value = os.getenv(name)
    if value is None or not value.strip():
        return None
    return value.strip()


def _strip_slash(value: Optional[str]) -> Optional[str]:
    return value.rstrip("/") if value else value


def _ensure_dotenv() -> None:
    """Load dotenv variables and provide a helpful error if missing."""

    try:
        dotenv_module = import_module("dotenv")
    except ModuleNotFoundError as exc:  # pragma: no cover - optional dep
        raise RuntimeError(
            "python-dotenv is required. Install with `pip install "
            "python-dotenv`."
        ) from exc

    load_dotenv = getattr(dotenv_module, "load_dotenv")
    load_dotenv()
