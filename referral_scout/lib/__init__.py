# referral_scout/lib/__init__.py
from __future__ import annotations

# Re-export commonly-used types for convenience
from .config import Settings
from .engine import RunSummary, run_classification, run_extraction, run_harvest
from .errors import (
    AuthenticationFailure,
    ConfigError,
    MalformedPersistedState,
    NavigationTimeout,
    PermanentRemoteError,
    QuotaExceeded,
    RecordNotFound,
    RemoteCallError,
    ScoutError,
    TransientRemoteError,
)
from .models import Decision, DecisionRecord, RawRecord, Reason, RunCounters
from .store import JsonStore

__all__ = [
    "AuthenticationFailure",
    "ConfigError",
    "Decision",
    "DecisionRecord",
    "JsonStore",
    "MalformedPersistedState",
    "NavigationTimeout",
    "PermanentRemoteError",
    "QuotaExceeded",
    "RawRecord",
    "Reason",
    "RecordNotFound",
    "RemoteCallError",
    "RunCounters",
    "RunSummary",
    "ScoutError",
    "Settings",
    "TransientRemoteError",
    "run_classification",
    "run_extraction",
    "run_harvest",
]
