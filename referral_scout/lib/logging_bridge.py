from __future__ import annotations

import logging
from typing import Any

from referral_scout import logging_utils

_LOG = logging.getLogger("referral_scout.activity")
_ERR = logging.getLogger("referral_scout.error")


def activity(record: dict[str, Any]) -> None:
    """
    Write a structured activity record to the JSONL sink.
    A failing sink degrades to stdlib logging; it must never break a run.
    """
    payload = logging_utils.redact(dict(record))
    try:
        logging_utils.write_activity_log(payload)
    except OSError:
        _LOG.info(payload)
        return
    _LOG.debug(payload)


def error(record: dict[str, Any]) -> None:
    """Write a structured error record; same fallback rules as activity()."""
    payload = logging_utils.redact(dict(record))
    try:
        logging_utils.write_error_log(payload)
    except OSError:
        _ERR.error(payload)
        return
    _ERR.debug(payload)
