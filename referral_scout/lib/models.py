from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from urllib.parse import urlparse, urlunparse


class Reason(str, Enum):
    """Why a DecisionRecord came out the way it did (persisted as its value)."""

    ELIGIBLE = "eligible"
    NOT_SUITABLE = "not_suitable"
    BLACKLISTED = "blacklisted"
    NO_EXPERIENCE = "no_experience"

    @property
    def category(self) -> str:
        """Coarse bucket used in summaries; no_experience counts as 'no_signal'."""
        return "no_signal" if self is Reason.NO_EXPERIENCE else self.value


@dataclass(frozen=True)
class RawRecord:
    """
    Output of the extraction stage for one profile.

    Optional fields are always present: "" for strings, [] for experience.
    On disk: {"url", "name", "headline", "experience"}.
    """

    url: str
    name: str = ""
    headline: str = ""
    experience: list[str] = field(default_factory=list)

    @property
    def identifier(self) -> str:
        return self.url

    def to_dict(self) -> dict[str, Any]:
        return {
            "url": self.url,
            "name": self.name,
            "headline": self.headline,
            "experience": list(self.experience),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> RawRecord:
        experience = data.get("experience") or []
        if isinstance(experience, str):
            experience = [experience] if experience.strip() else []
        return cls(
            url=str(data.get("url") or ""),
            name=str(data.get("name") or ""),
            headline=str(data.get("headline") or ""),
            experience=[str(x) for x in experience],
        )


@dataclass(frozen=True)
class DecisionRecord:
    """
    Output of the classification stage for one profile.
    On disk: {"url", "name", "eligible", "message", "processedAt", "reason"}.
    """

    url: str
    name: str
    eligible: bool
    message: str
    decided_at: str
    reason: Reason

    @property
    def identifier(self) -> str:
        return self.url

    def to_dict(self) -> dict[str, Any]:
        return {
            "url": self.url,
            "name": self.name,
            "eligible": self.eligible,
            "message": self.message,
            "processedAt": self.decided_at,
            "reason": self.reason.value,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> DecisionRecord:
        raw_reason = str(data.get("reason") or Reason.NOT_SUITABLE.value)
        try:
            reason = Reason(raw_reason)
        except ValueError:
            reason = Reason.NOT_SUITABLE
        return cls(
            url=str(data.get("url") or ""),
            name=str(data.get("name") or ""),
            eligible=bool(data.get("eligible")),
            message=str(data.get("message") or ""),
            decided_at=str(data.get("processedAt") or data.get("decided_at") or ""),
            reason=reason,
        )


@dataclass(frozen=True)
class Decision:
    """Parsed payload returned by the reasoning service."""

    eligible: bool
    message: str = ""


SAFE_DEFAULT = Decision(eligible=False, message="")


@dataclass
class RunCounters:
    """Per-run totals reported in the final summary."""

    processed: int = 0
    eligible: int = 0
    skipped: int = 0
    failed: int = 0
    by_reason: dict[str, int] = field(default_factory=dict)

    def count_reason(self, reason: Reason) -> None:
        self.by_reason[reason.value] = self.by_reason.get(reason.value, 0) + 1

    def as_dict(self) -> dict[str, Any]:
        return {
            "processed": self.processed,
            "eligible": self.eligible,
            "skipped": self.skipped,
            "failed": self.failed,
            "by_reason": dict(self.by_reason),
        }


def canonicalize_identifier(url: str) -> str:
    """
    Canonical form of a profile locator.

    - Lowercase scheme + hostname
    - Drop query string and fragment (tracking params, tab state)
    - Drop a trailing slash on the path

    Idempotent: canonicalize(canonicalize(u)) == canonicalize(u).
    """
    raw = (url or "").strip()
    if not raw:
        return ""
    p = urlparse(raw)
    if not p.netloc:
        # Relative or schemeless input; only strip volatile parts.
        return raw.split("#", 1)[0].split("?", 1)[0].rstrip("/")
    scheme = (p.scheme or "https").lower()
    path = p.path.rstrip("/")
    return urlunparse((scheme, p.netloc.lower(), path, "", "", ""))


def record_identifier(record: Any) -> str:
    """
    Canonical identifier of a persisted record, whether a dict from disk, a
    model or a bare locator string. Every identity comparison goes through
    here, so `.../in/jane/` and `.../in/jane` are the same record.
    """
    if isinstance(record, str):
        return canonicalize_identifier(record)
    if isinstance(record, Mapping):
        return canonicalize_identifier(str(record.get("url") or record.get("identifier") or ""))
    return canonicalize_identifier(str(getattr(record, "identifier", "") or ""))
