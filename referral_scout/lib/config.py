from __future__ import annotations

import json
import os
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, fields
from typing import Any

import yaml

from .decision import Applicant
from .errors import ConfigError
from .store import DECISIONS, RAW, UNIVERSE, JsonStore
from .utils import truthy

_API_KEY_ENV_BY_REASONER = {
    "gemini": "GEMINI_API_KEY",
    "openai": "OPENAI_API_KEY",
}


@dataclass
class Settings:
    """
    Canonical configuration for a referral_scout run.

    Resolution order (later wins):
        dataclass defaults < config file (SCOUT_CONFIG / config_path)
        < SCOUT_* environment variables < explicit kwargs

    Secrets are never stored here; *_env fields name the environment
    variables that hold them.
    """

    # Storage
    data_dir: str = "./data"
    universe_file: str = "connections.json"
    raw_file: str = "scraped_profiles.json"
    decisions_file: str = "profiles_inf.json"

    # Session / pacing
    profiles_per_session: int = 30
    settle_seconds: float = 30.0
    min_delay: float = 5.0
    max_delay: float = 10.0
    classify_delay: float = 1.5
    nav_timeout: float = 15.0
    page_load_timeout: float = 60.0
    headless: bool = False
    browser_profile_dir: str | None = None

    # Harvest
    connections_url: str = "https://www.linkedin.com/mynetwork/invite-connect/connections/"
    stagnation_limit: int = 5
    harvest_max_loops: int = 500

    # Reasoning service
    reasoner: str = "gemini"
    model: str = ""
    temperature: float | None = None
    max_retries: int = 3
    initial_backoff: float = 2.0

    # Credentials (env var NAMES)
    email_env: str = "LINKEDIN_EMAIL"
    password_env: str = "LINKEDIN_PASSWORD"
    api_key_env: str = ""

    # Classification rules
    blacklist: tuple[str, ...] = ()
    applicant: Applicant = field(default_factory=Applicant)

    config_path: str | None = None

    # ------------- convenience -------------
    def store(self) -> JsonStore:
        return JsonStore(
            self.data_dir,
            {UNIVERSE: self.universe_file, RAW: self.raw_file, DECISIONS: self.decisions_file},
        )

    def credentials(self) -> tuple[str, str]:
        """Resolve (email, password) from the environment at call time."""
        return os.getenv(self.email_env, ""), os.getenv(self.password_env, "")

    # ------------- constructors -------------
    @classmethod
    def from_env_and_kwargs(cls, kwargs: Mapping[str, Any] | None = None) -> Settings:
        """
        Build Settings with validation.

        Recognised kwargs are the dataclass field names, plus the applicant
        shorthands `applicant_name`, `applicant_pitch`, `resume_link`.
        Unknown keys raise ConfigError so typos in --set do not pass silently.
        """
        kw = {k: v for k, v in dict(kwargs or {}).items() if v is not None}

        config_path = kw.get("config_path") or os.getenv("SCOUT_CONFIG") or None
        values: dict[str, Any] = {}
        if config_path:
            values.update(_load_config_file(str(config_path)))
            values["config_path"] = str(config_path)

        for name, (env_var, _cast) in _ENV_FIELDS.items():
            raw = os.getenv(env_var)
            if raw is not None and raw != "":
                values[name] = raw

        values.update(kw)
        return _build(cls, values)


# -----------------------------
# Helpers
# -----------------------------
def _as_float_or_none(v: Any) -> float | None:
    if v is None or (isinstance(v, str) and not v.strip()):
        return None
    return float(v)


def _as_terms(v: Any) -> tuple[str, ...]:
    if v is None:
        return ()
    if isinstance(v, str):
        items = v.split(",")
    elif isinstance(v, (list, tuple, set)):
        items = list(v)
    else:
        raise ConfigError("'blacklist' must be a list or a comma-separated string.")
    return tuple(s for s in (str(x).strip().lower() for x in items) if s)


def _as_optional_str(v: Any) -> str | None:
    s = str(v).strip() if v is not None else ""
    return s or None


# field -> (env var, caster)
_ENV_FIELDS: dict[str, tuple[str, Callable[[Any], Any]]] = {
    "data_dir": ("SCOUT_DATA_DIR", str),
    "profiles_per_session": ("SCOUT_PROFILES_PER_SESSION", int),
    "settle_seconds": ("SCOUT_SETTLE_SECONDS", float),
    "min_delay": ("SCOUT_MIN_DELAY", float),
    "max_delay": ("SCOUT_MAX_DELAY", float),
    "classify_delay": ("SCOUT_CLASSIFY_DELAY", float),
    "nav_timeout": ("SCOUT_NAV_TIMEOUT", float),
    "page_load_timeout": ("SCOUT_PAGE_LOAD_TIMEOUT", float),
    "headless": ("SCOUT_HEADLESS", truthy),
    "browser_profile_dir": ("SCOUT_BROWSER_PROFILE_DIR", _as_optional_str),
    "stagnation_limit": ("SCOUT_STAGNATION_LIMIT", int),
    "harvest_max_loops": ("SCOUT_HARVEST_MAX_LOOPS", int),
    "reasoner": ("SCOUT_REASONER", str),
    "model": ("SCOUT_MODEL", str),
    "temperature": ("SCOUT_TEMPERATURE", _as_float_or_none),
    "max_retries": ("SCOUT_MAX_RETRIES", int),
    "initial_backoff": ("SCOUT_INITIAL_BACKOFF", float),
    "blacklist": ("SCOUT_BLACKLIST", _as_terms),
}

# Fields without an env var but still castable from config files / --set
_OTHER_CASTS: dict[str, Callable[[Any], Any]] = {
    "universe_file": str,
    "raw_file": str,
    "decisions_file": str,
    "connections_url": str,
    "email_env": str,
    "password_env": str,
    "api_key_env": str,
    "config_path": _as_optional_str,
}

_APPLICANT_KEYS = {"applicant_name": "name", "applicant_pitch": "pitch", "resume_link": "resume_link"}


def _load_config_file(path: str) -> dict[str, Any]:
    """Read a JSON or YAML mapping (chosen by extension)."""
    try:
        with open(path, encoding="utf-8") as f:
            text = f.read()
    except FileNotFoundError as e:
        raise ConfigError(f"Config file not found: {path}") from e

    try:
        if path.lower().endswith((".yaml", ".yml")):
            data = yaml.safe_load(text)
        else:
            data = json.loads(text)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise ConfigError(f"Config file is not valid JSON/YAML: {path}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file must hold a mapping at top level: {path}")
    return data


def _build_applicant(values: dict[str, Any]) -> Applicant:
    raw = values.pop("applicant", None) or {}
    if isinstance(raw, Applicant):
        base = {"name": raw.name, "pitch": raw.pitch, "resume_link": raw.resume_link}
    elif isinstance(raw, Mapping):
        base = {k: str(v) for k, v in raw.items() if k in {"name", "pitch", "resume_link"}}
    else:
        raise ConfigError("'applicant' must be a mapping with name/pitch/resume_link.")
    for short, attr in _APPLICANT_KEYS.items():
        if short in values:
            base[attr] = str(values.pop(short))
    return Applicant(**base)


def _build(cls: type[Settings], values: dict[str, Any]) -> Settings:
    values = dict(values)
    applicant = _build_applicant(values)

    known = {f.name for f in fields(cls)}
    unknown = sorted(set(values) - known)
    if unknown:
        raise ConfigError(f"Unknown setting(s): {', '.join(unknown)}")

    casts = {**{k: c for k, (_e, c) in _ENV_FIELDS.items()}, **_OTHER_CASTS}
    out: dict[str, Any] = {}
    for name, val in values.items():
        cast = casts.get(name)
        try:
            out[name] = cast(val) if cast else val
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid value for {name!r}: {val!r}") from e

    settings = cls(applicant=applicant, **out)
    if not settings.api_key_env:
        settings.api_key_env = _API_KEY_ENV_BY_REASONER.get(settings.reasoner.strip().lower(), "GEMINI_API_KEY")
    _validate_settings(settings)
    return settings


def _validate_settings(s: Settings) -> None:
    if not s.data_dir.strip():
        raise ConfigError("'data_dir' cannot be empty.")
    if s.profiles_per_session < 0:
        raise ConfigError("'profiles_per_session' must be >= 0.")
    for name in ("settle_seconds", "min_delay", "max_delay", "classify_delay", "initial_backoff"):
        if getattr(s, name) < 0:
            raise ConfigError(f"'{name}' must be >= 0.")
    if s.min_delay > s.max_delay:
        raise ConfigError("'min_delay' must not exceed 'max_delay'.")
    if s.nav_timeout <= 0 or s.page_load_timeout <= 0:
        raise ConfigError("Timeouts must be > 0.")
    if s.max_retries < 0:
        raise ConfigError("'max_retries' must be >= 0.")
    if s.stagnation_limit < 1 or s.harvest_max_loops < 1:
        raise ConfigError("'stagnation_limit' and 'harvest_max_loops' must be >= 1.")
    if not s.reasoner.strip():
        raise ConfigError("'reasoner' cannot be empty.")
