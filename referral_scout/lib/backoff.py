"""
Retry/backoff around remote calls.

Which failures are retried is decided by a plain table keyed on ErrorClass,
so the policy can be tested without any remote collaborator. The loop is
explicit: at most ``max_retries + 1`` attempts, doubling the delay after each
failed attempt.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, TypeVar

from . import logging_bridge
from .errors import PermanentRemoteError, QuotaExceeded, RemoteCallError, TransientRemoteError

LOG = logging.getLogger(__name__)

T = TypeVar("T")

TRANSIENT_STATUSES: frozenset[int] = frozenset({429, 503})
QUOTA_MARKER = "quota"


class ErrorClass(str, Enum):
    TRANSIENT = "transient"
    QUOTA = "quota"
    PERMANENT = "permanent"


# error class -> retryable
RETRY_POLICY: dict[ErrorClass, bool] = {
    ErrorClass.TRANSIENT: True,
    ErrorClass.QUOTA: True,
    ErrorClass.PERMANENT: False,
}


@dataclass(frozen=True)
class Success(Generic[T]):
    value: T
    attempts: int = 1

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Failure:
    error: BaseException
    error_class: ErrorClass
    attempts: int = 1

    @property
    def ok(self) -> bool:
        return False


# -----------------------------------------------------------------------------
# Classification
# -----------------------------------------------------------------------------
def payload_has_quota_marker(payload: Any) -> bool:
    """
    True if the error payload mentions quota. Gemini-style payloads nest it
    under {"error": {"message": ...}}; any other shape is searched as text.
    """
    if payload is None:
        return False
    if isinstance(payload, dict):
        err = payload.get("error")
        if isinstance(err, dict):
            text = " ".join(str(err.get(k) or "") for k in ("message", "status"))
        else:
            text = str(payload)
    else:
        text = str(payload)
    return QUOTA_MARKER in text.lower()


def classify_error(exc: BaseException) -> ErrorClass:
    """Map an exception raised by a remote call onto an ErrorClass."""
    if isinstance(exc, QuotaExceeded):
        return ErrorClass.QUOTA
    if isinstance(exc, TransientRemoteError):
        return ErrorClass.TRANSIENT
    if isinstance(exc, PermanentRemoteError):
        return ErrorClass.PERMANENT
    if isinstance(exc, RemoteCallError):
        if payload_has_quota_marker(exc.payload):
            return ErrorClass.QUOTA
        if exc.status in TRANSIENT_STATUSES:
            return ErrorClass.TRANSIENT
    return ErrorClass.PERMANENT


def is_retryable(error_class: ErrorClass) -> bool:
    return RETRY_POLICY.get(error_class, False)


# -----------------------------------------------------------------------------
# Controller
# -----------------------------------------------------------------------------
def call_with_backoff(
    operation: Callable[[], T],
    max_retries: int = 3,
    initial_delay: float = 2.0,
    *,
    sleep: Callable[[float], None] = time.sleep,
    label: str = "",
) -> Success[T] | Failure:
    """
    Run `operation` until it succeeds, fails with a non-retryable error, or
    `max_retries` retries are used up. Never raises for ``Exception``
    subclasses; the caller decides what a Failure degrades to.
    """
    delay = float(initial_delay)
    attempt = 0
    while True:
        attempt += 1
        try:
            return Success(operation(), attempts=attempt)
        except Exception as e:
            error_class = classify_error(e)
            retries_left = max_retries - (attempt - 1)
            if not is_retryable(error_class) or retries_left <= 0:
                logging_bridge.error({
                    "component": "referral_scout.backoff",
                    "op": "give_up",
                    "label": label,
                    "error_class": error_class.value,
                    "attempts": attempt,
                    "error": repr(e),
                })
                return Failure(error=e, error_class=error_class, attempts=attempt)

            LOG.warning(
                "%s: %s error (%s), retrying in %.1fs (%d retries left)",
                label or "remote call",
                error_class.value,
                getattr(e, "status", None) or type(e).__name__,
                delay,
                retries_left,
            )
            logging_bridge.activity({
                "component": "referral_scout.backoff",
                "op": "retry",
                "label": label,
                "error_class": error_class.value,
                "attempt": attempt,
                "delay_s": delay,
            })
            sleep(delay)
            delay *= 2
