from __future__ import annotations

import os
from typing import TYPE_CHECKING, Any

from ..errors import ConfigError, PermanentRemoteError
from ..http_client import HttpClient
from .base import Reasoner
from .registry import register

if TYPE_CHECKING:
    from ..config import Settings

GEMINI_ENDPOINT = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"
DEFAULT_MODEL = "gemini-2.0-flash"


@register
class GeminiReasoner(Reasoner):
    """
    Google Generative Language REST client (generateContent).

    The API key is sent as the `key` query parameter; HttpClient keeps the
    query string out of error messages.
    """

    kind = "gemini"

    def __init__(
        self,
        *,
        api_key: str,
        model: str = DEFAULT_MODEL,
        temperature: float | None = None,
        client: HttpClient | None = None,
    ) -> None:
        if not api_key:
            raise ConfigError("Gemini API key is empty.")
        self.api_key = api_key
        self.model = model or DEFAULT_MODEL
        self.temperature = temperature
        self._client = client or HttpClient()

    @classmethod
    def from_settings(cls, settings: Settings) -> GeminiReasoner:
        api_key = os.getenv(settings.api_key_env) or ""
        if not api_key:
            raise ConfigError(f"{settings.api_key_env} not set")
        return cls(api_key=api_key, model=settings.model or DEFAULT_MODEL, temperature=settings.temperature)

    def complete(self, prompt: str) -> str:
        body: dict[str, Any] = {"contents": [{"parts": [{"text": prompt}]}]}
        if self.temperature is not None:
            body["generationConfig"] = {"temperature": self.temperature}
        data = self._client.post_json(
            GEMINI_ENDPOINT.format(model=self.model),
            body,
            params={"key": self.api_key},
        )
        return _first_candidate_text(data)

    def close(self) -> None:
        self._client.close()


def _first_candidate_text(data: Any) -> str:
    """candidates[0].content.parts[0].text, or PermanentRemoteError."""
    try:
        return str(data["candidates"][0]["content"]["parts"][0]["text"])
    except (KeyError, IndexError, TypeError) as e:
        raise PermanentRemoteError("Unexpected generateContent response shape", payload=data) from e
