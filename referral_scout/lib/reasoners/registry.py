from __future__ import annotations

from .base import Reasoner

# kind -> reasoner class
_REGISTRY: dict[str, type[Reasoner]] = {}


def register(cls: type[Reasoner]) -> type[Reasoner]:
    """
    Class decorator registering a reasoner under its `kind`.
    Re-registering the same class is allowed; a different class under a taken kind is not.
    """
    kind = getattr(cls, "kind", "") or ""
    if not isinstance(kind, str) or not kind.strip():
        raise ValueError(f"Cannot register reasoner {cls!r}: missing/empty 'kind'.")
    key = kind.strip().lower()
    if key in _REGISTRY and _REGISTRY[key] is not cls:
        raise ValueError(f"Reasoner kind {key!r} already registered to {_REGISTRY[key]!r}.")
    _REGISTRY[key] = cls
    return cls


def get(kind: str) -> type[Reasoner]:
    """Look up a reasoner class by kind (case-insensitive). Raises KeyError if unknown."""
    key = (kind or "").strip().lower()
    if key not in _REGISTRY:
        raise KeyError(f"No reasoner registered for kind {kind!r}.")
    return _REGISTRY[key]


def all_kinds() -> dict[str, type[Reasoner]]:
    return dict(_REGISTRY)
