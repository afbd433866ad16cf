from __future__ import annotations

import json
from collections.abc import Iterable
from typing import TYPE_CHECKING

from .base import Reasoner
from .registry import register

if TYPE_CHECKING:
    from ..config import Settings

_DEFAULT_RESPONSE = json.dumps({"eligible": False, "message": ""})


@register
class StubReasoner(Reasoner):
    """
    A zero-network reasoner for dry runs and tests.

    Plays back `responses` in order; items that are exceptions are raised
    instead of returned. Once exhausted it keeps returning the last item (or
    a not-eligible verdict when none were given). `prompts` records every call.
    """

    kind = "stub"

    def __init__(self, responses: Iterable[str | BaseException] | None = None) -> None:
        self._responses = list(responses or [])
        self.prompts: list[str] = []

    @classmethod
    def from_settings(cls, settings: Settings) -> StubReasoner:
        return cls()

    @property
    def calls(self) -> int:
        return len(self.prompts)

    def complete(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if not self._responses:
            return _DEFAULT_RESPONSE
        item = self._responses.pop(0) if len(self._responses) > 1 else self._responses[0]
        if isinstance(item, BaseException):
            raise item
        return item
