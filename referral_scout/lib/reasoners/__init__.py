from __future__ import annotations

from typing import TYPE_CHECKING

from ..errors import ConfigError
from . import registry
from .base import Reasoner
from .gemini import GeminiReasoner
from .openai_chat import OpenAIReasoner
from .stub import StubReasoner

if TYPE_CHECKING:
    from ..config import Settings


def make_reasoner(settings: Settings) -> Reasoner:
    """Build the reasoner named by settings.reasoner."""
    try:
        cls = registry.get(settings.reasoner)
    except KeyError as e:
        known = ", ".join(sorted(registry.all_kinds()))
        raise ConfigError(f"Unknown reasoner {settings.reasoner!r} (known: {known})") from e
    return cls.from_settings(settings)  # type: ignore[attr-defined]


__all__ = ["GeminiReasoner", "OpenAIReasoner", "Reasoner", "StubReasoner", "make_reasoner", "registry"]
