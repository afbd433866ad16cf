"""
JSON-file record store: one JSON array per collection kind.

Every mutation is a full load-modify-rewrite of the file. That is cheap at
the sizes this tool deals with, but it also means two processes writing the
same data directory will lose each other's updates. Run one worker at a time.
"""

from __future__ import annotations

import contextlib
import json
import os
import tempfile
from collections.abc import Iterable, Mapping
from typing import Any

from .errors import MalformedPersistedState
from .logging_bridge import error as log_error
from .models import record_identifier

UNIVERSE = "universe"
RAW = "raw"
DECISIONS = "decisions"

DEFAULT_FILENAMES: dict[str, str] = {
    UNIVERSE: "connections.json",
    RAW: "scraped_profiles.json",
    DECISIONS: "profiles_inf.json",
}


class JsonStore:
    """
    Handle on a data directory holding the three pipeline collections.

    Pass the instance into each stage call; it holds no cached records, so
    every load() reflects what is on disk right now.
    """

    def __init__(self, data_dir: str, filenames: Mapping[str, str] | None = None) -> None:
        self.data_dir = data_dir
        self.filenames = {**DEFAULT_FILENAMES, **dict(filenames or {})}

    def path_for(self, kind: str) -> str:
        try:
            name = self.filenames[kind]
        except KeyError:
            raise KeyError(f"Unknown store kind {kind!r}.") from None
        return os.path.join(self.data_dir, name)

    # ---- Public API ---------------------------------------------------------

    def load(self, kind: str) -> list[Any]:
        """
        Return the collection for `kind`, or [] if the file is absent or
        unparseable. An absent file is created holding []; a malformed file
        is left as-is on disk and reported to the error log.
        """
        path = self.path_for(kind)
        if not os.path.exists(path):
            self.save(kind, [])
            return []
        try:
            return _read_array(path)
        except MalformedPersistedState as e:
            log_error({
                "component": "referral_scout.store",
                "op": "load",
                "kind": kind,
                "path": e.path,
                "error": str(e),
            })
            return []

    def save(self, kind: str, records: Iterable[Any]) -> None:
        """Rewrite the whole collection (temp file + rename)."""
        path = self.path_for(kind)
        rows = [_to_jsonable(r) for r in records]
        _write_array(path, rows)

    def insert(self, kind: str, record: Any, *, replace: bool = False) -> bool:
        """
        Keyed insert in one load-modify-save cycle. An existing record with
        the same identifier is kept (returns False) unless `replace` is set,
        in which case it is removed before the new one is appended.
        """
        ident = record_identifier(record)
        rows = self.load(kind)
        exists = any(record_identifier(r) == ident for r in rows)
        if exists and not replace:
            return False
        if exists:
            rows = [r for r in rows if record_identifier(r) != ident]
        rows.append(_to_jsonable(record))
        self.save(kind, rows)
        return True

    def find(self, kind: str, identifier: str) -> Any | None:
        ident = record_identifier(identifier)
        for r in self.load(kind):
            if record_identifier(r) == ident:
                return r
        return None

    def identifiers(self, kind: str) -> set[str]:
        """Canonical identifiers of every record in `kind`."""
        return {record_identifier(r) for r in self.load(kind)}

    def count(self, kind: str) -> int:
        return len(self.load(kind))


# ---- Internal utilities -----------------------------------------------------


def _to_jsonable(record: Any) -> Any:
    to_dict = getattr(record, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    return record


def _read_array(path: str) -> list[Any]:
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise MalformedPersistedState(f"Store file is not valid JSON: {e}", path=path) from e
    except OSError as e:
        raise MalformedPersistedState(f"Store file unreadable: {e}", path=path) from e
    if not isinstance(data, list):
        raise MalformedPersistedState(f"Store file holds {type(data).__name__}, expected a list", path=path)
    return data


def _write_array(path: str, rows: list[Any]) -> None:
    d = os.path.dirname(os.path.abspath(path)) or "."
    os.makedirs(d, exist_ok=True)
    fd, tmp = tempfile.mkstemp(prefix=".tmp-", suffix=".json", dir=d)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(rows, f, ensure_ascii=False, indent=2)
            f.write("\n")
        os.replace(tmp, path)
    except BaseException:
        with contextlib.suppress(FileNotFoundError):
            os.remove(tmp)
        raise
