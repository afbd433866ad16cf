from __future__ import annotations

import random
from datetime import datetime, timezone
from typing import Any


def truthy(v: Any) -> bool:
    """
    Normalize common truthy inputs from env/kwargs.
    Accepts bools or strings like: '1', 'true', 'yes', 'on'.
    """
    if isinstance(v, bool):
        return v
    if v is None:
        return False
    if isinstance(v, (int, float)):
        return v != 0
    return str(v).strip().lower() in {"1", "true", "yes", "on", "y", "t"}


def now_iso() -> str:
    """
    UTC ISO-8601 timestamp with 'Z' suffix and millisecond precision.
    """
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def random_delay(min_seconds: float, max_seconds: float, rng: random.Random | None = None) -> float:
    """Uniform delay in [min_seconds, max_seconds]; bounds are swapped if reversed."""
    lo, hi = sorted((float(min_seconds), float(max_seconds)))
    r = rng or random
    return r.uniform(lo, hi)
