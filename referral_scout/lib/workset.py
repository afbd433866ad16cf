"""Identifier canonicalization and pending work-set computation."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Any

from .models import canonicalize_identifier, record_identifier

__all__ = ["canonicalize_identifier", "dedupe_identifiers", "merge_universe", "pending"]


def dedupe_identifiers(urls: Iterable[str]) -> list[str]:
    """Canonicalize and de-duplicate, keeping first-seen order; blanks dropped."""
    seen: set[str] = set()
    out: list[str] = []
    for u in urls:
        c = canonicalize_identifier(u)
        if c and c not in seen:
            seen.add(c)
            out.append(c)
    return out


def merge_universe(existing: Sequence[str], discovered: Iterable[str]) -> tuple[list[str], int]:
    """
    Append newly discovered identifiers after the existing universe.
    Returns (merged, added_count).
    """
    merged = dedupe_identifiers(existing)
    known = set(merged)
    added = 0
    for c in dedupe_identifiers(discovered):
        if c not in known:
            known.add(c)
            merged.append(c)
            added += 1
    return merged, added


def pending(universe: Sequence[str], done: Iterable[Any], cap: int | None = None) -> list[str]:
    """
    Identifiers in `universe` with no record in `done`, in universe order.
    Both sides are compared canonically; entries come back as given.

    `done` may hold dicts loaded from the store or record models; only their
    identifiers matter, so the result does not depend on `done`'s order.
    A `cap` keeps the first N pending identifiers; None or a negative cap
    means no limit.
    """
    done_ids = {record_identifier(d) for d in done}
    out = [u for u in universe if record_identifier(u) not in done_ids]
    if cap is not None and cap >= 0:
        return out[:cap]
    return out
