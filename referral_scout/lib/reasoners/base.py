from __future__ import annotations

from abc import ABC, abstractmethod


class Reasoner(ABC):
    """
    Abstract reasoning-service client.

    Contract:
      - complete(prompt) returns the model's free-form text.
      - Failures raise RemoteCallError (or a subclass) with status/payload set
        where the transport provides them; retry decisions are made upstream.
      - No retries, sleeps or persistence in here.
    """

    # Concrete subclasses MUST set this to a stable string, e.g. "gemini", "openai", "stub"
    kind: str = ""

    @abstractmethod
    def complete(self, prompt: str) -> str:
        raise NotImplementedError

    def close(self) -> None:  # noqa: B027
        """Release transport resources. Default: nothing to release."""
