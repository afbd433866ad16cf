"""
Exception taxonomy for referral_scout.

Remote failures carry the HTTP-like ``status`` and the decoded ``payload`` so
the backoff controller can classify them without talking to the remote side.
"""

from __future__ import annotations

from typing import Any


class ScoutError(Exception):
    """Base class for all pipeline errors."""


class ConfigError(ScoutError, ValueError):
    """Raised when provided kwargs/env/config file cannot form valid Settings."""


# -----------------------------
# Remote (reasoning service)
# -----------------------------
class RemoteCallError(ScoutError):
    """A remote collaborator call failed; classification happens in backoff.classify_error."""

    def __init__(self, message: str, *, status: int | None = None, payload: Any = None) -> None:
        super().__init__(message)
        self.status = status
        self.payload = payload

    def __repr__(self) -> str:
        return f"{type(self).__name__}({str(self)!r}, status={self.status!r})"


class TransientRemoteError(RemoteCallError):
    """Rate limited, overloaded or unreachable; worth retrying."""


class QuotaExceeded(RemoteCallError):
    """Quota marker found in the error payload; retried like a transient error."""


class PermanentRemoteError(RemoteCallError):
    """Malformed response or unexpected shape; never retried."""


# -----------------------------
# Source session (browser agent)
# -----------------------------
class NavigationTimeout(ScoutError):
    """Page did not load or the expected marker never appeared."""

    def __init__(self, message: str, *, url: str | None = None) -> None:
        super().__init__(message)
        self.url = url


class AuthenticationFailure(ScoutError):
    """Login to the remote source failed. Fatal for the run."""


# -----------------------------
# Persistence
# -----------------------------
class MalformedPersistedState(ScoutError):
    """A store file exists but does not hold a JSON array."""

    def __init__(self, message: str, *, path: str) -> None:
        super().__init__(message)
        self.path = path


class RecordNotFound(ScoutError):
    """A single-identifier run named something that is not in the store."""

    def __init__(self, message: str, *, identifier: str) -> None:
        super().__init__(message)
        self.identifier = identifier
