"""Thin async client for OpenAI-compatible chat completion endpoints.

The gateway performs exactly one request per call and turns every failure
into a :class:`GatewayError` subclass so callers can treat them uniformly.
It knows nothing about questions or quotes; it only returns the JSON object
the model produced.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional

import httpx

from .config import ModelSettings
from .extraction import ExtractionError, extract_json_object

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ChatMessage:
    """Simple representation of a chat message sent to the service."""

    role: str
    content: str


class GatewayError(RuntimeError):
    """Base class for every failure raised by the completion gateway."""


class ConfigError(GatewayError):
    """Raised before any network call when credentials are missing."""


class HttpError(GatewayError):
    """Raised when the service answers with a non-success status."""

    def __init__(self, status: int, message: str) -> None:
        super().__init__(message)
        self.status = status
        self.message = message


class EmptyResponseError(GatewayError):
    """Raised when a successful response carries no completion text."""


class MalformedResponseError(GatewayError):
    """Raised when the completion text holds no decodable JSON object."""

    def __init__(self, error: ExtractionError) -> None:
        super().__init__(f"Invalid JSON from model: {error.reason}")
        self.extraction = error


class TransportError(GatewayError):
    """Raised when the request never produced an HTTP response."""


class ChatCompletionGateway:
    """Send a system/user prompt pair and return the decoded JSON object."""

    def __init__(
        self,
        settings: ModelSettings,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._settings = settings
        self._transport = transport

    @property
    def settings(self) -> ModelSettings:
        return self._settings

    def build_payload(
        self, user_prompt: str, system_instruction: str
    ) -> Dict[str, Any]:
        messages: List[ChatMessage] = [
            ChatMessage(role="system", content=system_instruction),
            ChatMessage(role="user", content=user_prompt),
        ]
        return {
            "model": self._settings.model,
            "messages": [asdict(message) for message in messages],
            "response_format": {"type": "json_object"},
        }

    async def complete(
        self, user_prompt: str, system_instruction: str
    ) -> Dict[str, Any]:
        """Execute one chat completion call and decode its JSON payload."""

        api_key = self._settings.api_key
        if not api_key:
            raise ConfigError(
                "OpenAI API key is not configured; set OPENAI_API_KEY"
            )
        if not self._settings.endpoint:
            raise ConfigError(
                "OpenAI API URL is not configured; set OPENAI_API_URL"
            )

        url = f"{self._settings.endpoint}/chat/completions"
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {api_key}",
        }
        payload = self.build_payload(user_prompt, system_instruction)
        try:
            async with httpx.AsyncClient(
                timeout=self._settings.timeout,
                transport=self._transport,
            ) as client:
                response = await client.post(url, headers=headers, json=payload)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            logger.error("Chat completion request failed: %s", exc)
            raise TransportError(f"Request failed: {exc}") from exc

        if not response.is_success:
            message = self._error_message(response)
            logger.error(
                "Chat completion returned %s: %s", response.status_code, message
            )
            raise HttpError(response.status_code, message)

        content = self._completion_text(response)
        if not content:
            raise EmptyResponseError("Empty response from model")

        try:
            return extract_json_object(content)
        except ExtractionError as exc:
            logger.error(
                "JSON parse error (%s). Raw content: %s", exc.reason, exc.excerpt
            )
            raise MalformedResponseError(exc) from exc

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        fallback = f"API Error: {response.status_code}"
        try:
            body = response.json()
        except ValueError:
            return fallback
        if not isinstance(body, dict):
            return fallback
        error = body.get("error")
        if isinstance(error, dict):
            message = error.get("message")
            if isinstance(message, str) and message.strip():
                return message
        return fallback

    @staticmethod
    def _completion_text(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return ""
        if not isinstance(body, dict):
            return ""
        choices = body.get("choices")
        if not isinstance(choices, list) or not choices:
            return ""
        first = choices[0]
        if not isinstance(first, dict):
            return ""
        message = first.get("message")
        if not isinstance(message, dict):
            return ""
        content = message.get("content")
        return content if isinstance(content, str) else ""
