# referral_scout/cli.py
"""
Command-line entrypoint.

Subcommands
-----------
harvest
    - Logs in, reveals the connections list until it stops growing and merges
      the discovered profile URLs into the universe file

extract [--limit N] [--test URL]
    - Default: extract the next batch of pending profiles (per-session cap)
    - --test: extract a single profile interactively, confirm before saving

classify [--limit N] [--test URL]
    - Default: classify every extracted profile without a decision
    - --test: classify a single profile interactively, confirm before saving

status
    - Prints collection sizes, pending counts and today's activity log (no network)

Global options: --config PATH, --data-dir DIR, --set key=value (repeatable)
Exit codes: 0 ok, 1 run failure, 2 usage/configuration error, 130 interrupted.
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from collections.abc import Callable, Iterable
from typing import Any

from dotenv import load_dotenv

from referral_scout import logging_utils
from referral_scout.lib import engine
from referral_scout.lib import logging_bridge as L
from referral_scout.lib.config import Settings
from referral_scout.lib.errors import AuthenticationFailure, ConfigError, RecordNotFound, ScoutError

LOG = logging.getLogger("referral_scout.cli")


# ----------------------------- Logging setup ---------------------------------
def _ensure_logging() -> None:
    """Initialize a reasonable logging setup if none exists yet."""
    root = logging.getLogger()
    if not root.handlers:
        level = os.getenv("LOG_LEVEL", "INFO").upper()
        logging.basicConfig(
            level=getattr(logging, level, logging.INFO),
            format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        )


# -------------------------- Utility / glue code ------------------------------
def _parse_kv_pairs(pairs: Iterable[str]) -> dict[str, Any]:
    """
    Parse key=value strings into a dict.
    Values that look like JSON (true/false/null/number/object/array) are parsed;
    anything else stays a raw string.
    """
    out: dict[str, Any] = {}
    for raw in pairs:
        if "=" not in raw:
            raise ConfigError(f"--set item must be key=value (got {raw!r})")
        k, v = raw.split("=", 1)
        k = k.strip()
        v = v.strip()
        if not k:
            raise ConfigError(f"Invalid key in --set item {raw!r}")
        try:
            out[k] = json.loads(v)
        except json.JSONDecodeError:
            out[k] = v
    return out


def ask_yes_no(question: str) -> bool:
    """Blocking operator prompt; only 'y'/'yes' count as consent."""
    try:
        answer = input(question)
    except EOFError:
        return False
    return answer.strip().lower() in {"y", "yes"}


def _print_table(rows: Iterable[tuple[str, str]], headers: tuple[str, str] = ("COLLECTION", "COUNT")) -> None:
    """Very simple two-column table printer."""
    rows = list(rows)
    w0 = max(len(headers[0]), *(len(r[0]) for r in rows)) if rows else len(headers[0])
    w1 = max(len(headers[1]), *(len(r[1]) for r in rows)) if rows else len(headers[1])
    sep = f"+-{'-' * w0}-+-{'-' * w1}-+"
    print(sep)
    print(f"| {headers[0].ljust(w0)} | {headers[1].ljust(w1)} |")
    print(sep)
    for c0, c1 in rows:
        print(f"| {c0.ljust(w0)} | {c1.rjust(w1)} |")
    print(sep)


def _settings_from_args(args: argparse.Namespace) -> Settings:
    kwargs = _parse_kv_pairs(args.set or [])
    if args.config:
        kwargs["config_path"] = args.config
    if args.data_dir:
        kwargs["data_dir"] = args.data_dir
    return Settings.from_env_and_kwargs(kwargs)


def _print_summary(summary: engine.RunSummary) -> None:
    c = summary.counters
    print(f"\n{summary.stage.capitalize()} complete!")
    print("Summary:")
    print(f"   - Processed: {c.processed}")
    if summary.stage == "classify":
        print(f"   - Eligible for referral: {c.eligible}")
        print(f"   - Already processed (skipped): {c.skipped}")
    print(f"   - Failed: {c.failed}")
    if summary.stage != "harvest":
        print(f"   - Still pending: {summary.remaining}")
    print(f"   - Total: {summary.total}")


def _guarded(fn: Callable[[argparse.Namespace], int]) -> Callable[[argparse.Namespace], int]:
    """Map pipeline exceptions onto exit codes with a one-line message."""

    def wrapper(args: argparse.Namespace) -> int:
        try:
            return fn(args)
        except KeyboardInterrupt:
            print("Interrupted.", file=sys.stderr)
            return 130
        except ConfigError as e:
            print(f"ERROR: configuration invalid: {e}", file=sys.stderr)
            return 2
        except AuthenticationFailure as e:
            print(f"ERROR: authentication failed: {e}", file=sys.stderr)
            return 1
        except RecordNotFound as e:
            print(f"ERROR: {e}", file=sys.stderr)
            return 1
        except ScoutError as e:
            LOG.exception("Run aborted: %s", e)
            L.error({"component": "referral_scout.cli", "op": args.cmd, "error": repr(e)})
            print(f"FAILURE: {e}", file=sys.stderr)
            return 1
        except Exception as e:
            # e.g. the browser binary could not start
            LOG.exception("Unexpected error in %s", args.cmd)
            L.error({"component": "referral_scout.cli", "op": args.cmd, "error": repr(e), "unexpected": True})
            print(f"ERROR: {e}", file=sys.stderr)
            return 1

    return wrapper


# ------------------------------ Subcommands ----------------------------------
@_guarded
def cmd_harvest(args: argparse.Namespace) -> int:
    settings = _settings_from_args(args)
    _print_summary(engine.run_harvest(settings))
    return 0


@_guarded
def cmd_extract(args: argparse.Namespace) -> int:
    settings = _settings_from_args(args)
    if args.test:
        engine.probe_extraction(settings, args.test, confirm=ask_yes_no)
        return 0
    _print_summary(engine.run_extraction(settings, limit=args.limit))
    return 0


@_guarded
def cmd_classify(args: argparse.Namespace) -> int:
    settings = _settings_from_args(args)
    if args.test:
        engine.probe_classification(settings, args.test, confirm=ask_yes_no)
        return 0
    _print_summary(engine.run_classification(settings, limit=args.limit))
    return 0


@_guarded
def cmd_status(args: argparse.Namespace) -> int:
    settings = _settings_from_args(args)
    counts = engine.status(settings)
    _print_table((k, str(v)) for k, v in counts.items())
    print(f"Activity log: {logging_utils.get_activity_log_path()}")
    return 0


# ------------------------------- Argparse ------------------------------------
def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="referral-scout",
        description="Harvest connections, extract profiles and classify them for referral outreach.",
        epilog='Example: referral-scout classify --test "https://www.linkedin.com/in/johndoe"',
    )
    p.add_argument("--config", help="JSON/YAML settings file (falls back to SCOUT_CONFIG).")
    p.add_argument("--data-dir", help="Directory holding the JSON collections (falls back to SCOUT_DATA_DIR).")
    p.add_argument(
        "--set",
        metavar="k=v",
        action="append",
        default=[],
        help="Override a setting (JSON values supported); repeatable, e.g. --set settle_seconds=10",
    )
    sub = p.add_subparsers(dest="cmd", required=True)

    sp = sub.add_parser("harvest", help="Collect connection profile URLs into the universe file.")
    sp.set_defaults(func=cmd_harvest)

    sp = sub.add_parser("extract", help="Extract pending profiles (or one with --test).")
    sp.add_argument("--limit", type=int, help="Override the per-session cap for this run.")
    sp.add_argument("--test", metavar="URL", help="Extract a single profile interactively.")
    sp.set_defaults(func=cmd_extract)

    sp = sub.add_parser("classify", help="Classify extracted profiles (or one with --test).")
    sp.add_argument("--limit", type=int, help="Classify at most N profiles this run.")
    sp.add_argument("--test", metavar="URL", help="Classify a single profile interactively.")
    sp.set_defaults(func=cmd_classify)

    sp = sub.add_parser("status", help="Show collection sizes and pending counts.")
    sp.set_defaults(func=cmd_status)

    return p


# --------------------------------- Main --------------------------------------
def main(argv: Iterable[str] | None = None) -> int:
    load_dotenv()  # LOG_LEVEL may come from .env
    _ensure_logging()
    parser = _build_parser()
    args = parser.parse_args(args=list(argv) if argv is not None else None)
    return args.func(args)


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
