from __future__ import annotations

import logging
import os
from typing import TYPE_CHECKING, Any

from ..errors import ConfigError, PermanentRemoteError, RemoteCallError, TransientRemoteError
from .base import Reasoner
from .registry import register

if TYPE_CHECKING:
    from ..config import Settings

log = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-4.1-mini"
SYSTEM_PROMPT = "You screen professional profiles for referral outreach. Reply with the requested JSON object only."


@register
class OpenAIReasoner(Reasoner):
    """
    Thin facade over openai.chat.completions.

    SDK errors are translated into the pipeline's RemoteCallError family so
    the backoff controller sees the HTTP status and error body.
    """

    kind = "openai"

    def __init__(
        self,
        *,
        api_key: str,
        model: str = DEFAULT_MODEL,
        temperature: float | None = None,
        client: Any = None,
    ) -> None:
        if not api_key and client is None:
            raise ConfigError("OpenAI API key is empty.")
        self.api_key = api_key
        self.model = model or DEFAULT_MODEL
        self.temperature = temperature
        self._client = client

    @classmethod
    def from_settings(cls, settings: Settings) -> OpenAIReasoner:
        api_key = os.getenv(settings.api_key_env) or ""
        if not api_key:
            raise ConfigError(f"{settings.api_key_env} not set")
        return cls(api_key=api_key, model=settings.model or DEFAULT_MODEL, temperature=settings.temperature)

    def _get_client(self) -> Any:
        if self._client is None:
            from openai import OpenAI  # local import to keep tests light

            self._client = OpenAI(api_key=self.api_key)
        return self._client

    def complete(self, prompt: str) -> str:
        import openai

        kwargs: dict[str, Any] = {
            "model": self.model,
            "messages": [{"role": "system", "content": SYSTEM_PROMPT}, {"role": "user", "content": prompt}],
        }
        if self.temperature is not None:
            kwargs["temperature"] = self.temperature

        log.debug("OpenAIReasoner.complete(model=%r)", self.model)
        try:
            resp = self._get_client().chat.completions.create(**kwargs)
        except openai.APIStatusError as e:
            raise RemoteCallError(str(e), status=e.status_code, payload=e.body) from e
        except (openai.APIConnectionError, openai.APITimeoutError) as e:
            raise TransientRemoteError(str(e)) from e

        try:
            content = resp.choices[0].message.content or ""
        except (AttributeError, IndexError) as e:
            raise PermanentRemoteError("Unexpected chat completion shape") from e
        log.debug("OpenAIReasoner.complete() received %d chars", len(content))
        return content.strip()
