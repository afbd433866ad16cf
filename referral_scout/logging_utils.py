# referral_scout/logging_utils.py
"""
JSON-lines sinks for structured activity and error records.

Files land in $LOG_DIR as ``<prefix>-YYYY-MM-DD.jsonl``. Every record is
redacted (secret-looking keys, bearer tokens) and stamped with host/pid.
Settings are read from the environment on every call so tests can point
LOG_DIR at a temp dir with monkeypatch.
"""

from __future__ import annotations

import contextlib
import datetime as _dt
import json
import os
import socket
from collections.abc import Iterable
from typing import Any

REDACTED = "***REDACTED***"

# Case-insensitive substring match against record keys
_DEFAULT_REDACT_KEYS = {
    "password",
    "token",
    "apikey",
    "api_key",
    "secret",
    "authorization",
    "cookie",
    "li_at",
}

_HOSTNAME = socket.gethostname()


# ---- Public API --------------------------------------------------------------


def write_activity_log(record: dict[str, Any]) -> None:
    """Append one structured activity record. Never mutates `record`."""
    _write_jsonl(_log_path_for_today(os.getenv("ACTIVITY_LOG_PREFIX", "activity")), record)


def write_error_log(record: dict[str, Any]) -> None:
    """Append one structured error record, parallel to the activity log."""
    _write_jsonl(_log_path_for_today(os.getenv("ERROR_LOG_PREFIX", "error")), record)


def get_activity_log_path() -> str:
    return _log_path_for_today(os.getenv("ACTIVITY_LOG_PREFIX", "activity"))


def redact(record: dict[str, Any], keys: Iterable[str] | None = None) -> dict[str, Any]:
    """Deep-copy `record`, scrubbing values whose keys contain any of `keys`."""
    return _redact_deep(record, set(keys) if keys else _DEFAULT_REDACT_KEYS)


# ---- Internal helpers --------------------------------------------------------


def _log_path_for_today(prefix: str) -> str:
    log_dir = os.getenv("LOG_DIR", "./logs")
    return os.path.join(log_dir, f"{prefix}-{_dt.date.today().isoformat()}.jsonl")


def _rotate_if_oversized(path: str) -> None:
    max_bytes = int(os.getenv("ACTIVITY_LOG_MAX_BYTES", "0") or 0)
    if max_bytes <= 0:
        return
    try:
        size = os.path.getsize(path)
    except FileNotFoundError:
        return
    if size < max_bytes:
        return
    stamp = _dt.datetime.now().strftime("%Y%m%d-%H%M%S")
    with contextlib.suppress(FileNotFoundError):
        os.replace(path, f"{path}.{stamp}")


def _redact_deep(value: Any, patterns: set[str]) -> Any:
    if isinstance(value, dict):
        out: dict[str, Any] = {}
        for k, v in value.items():
            if isinstance(k, str) and any(p in k.lower() for p in patterns):
                out[k] = REDACTED
            else:
                out[k] = _redact_deep(v, patterns)
        return out
    if isinstance(value, (list, tuple)):
        return [_redact_deep(v, patterns) for v in value]
    if isinstance(value, str) and value.lower().startswith("bearer "):
        return "Bearer " + REDACTED
    return value


def _write_jsonl(path: str, record: dict[str, Any]) -> None:
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    _rotate_if_oversized(path)

    payload = _redact_deep(record, _DEFAULT_REDACT_KEYS)
    payload["_meta"] = {"host": _HOSTNAME, "pid": os.getpid()}

    # Serialize before touching the file; default=str covers enums/paths
    data = (json.dumps(payload, ensure_ascii=False, separators=(",", ":"), default=str) + "\n").encode("utf-8")

    # O_APPEND keeps single-line writes atomic on POSIX
    fd = os.open(path, os.O_CREAT | os.O_APPEND | os.O_WRONLY, 0o644)
    try:
        os.write(fd, data)
    finally:
        os.close(fd)
