"""
Run drivers for the three pipeline stages plus the single-identifier probes.

Features:
  - Resumable batches: the work-set is recomputed from the store every run
  - Per-session cap on extraction, randomized pacing, guaranteed teardown
  - Dependency injection for testability (`agent_factory`, `reasoner`, `sleep`)
  - Summary record via `logging_bridge` at the end of every run
"""

from __future__ import annotations

import logging
import random
import time
from collections.abc import Callable
from dataclasses import dataclass, field

from . import logging_bridge
from .agents import make_agent
from .agents.base import SourceAgent
from .config import Settings
from .decision import short_circuit
from .errors import RecordNotFound
from .extract import CONNECTIONS_LIST_SELECTOR
from .models import DecisionRecord, RawRecord, Reason, RunCounters, record_identifier
from .reasoners import make_reasoner
from .reasoners.base import Reasoner
from .session import SessionDriver, StagnationResult, run_until_stagnant
from .stages import classify_one, decide, extract_one, extract_record
from .store import DECISIONS, RAW, UNIVERSE, JsonStore
from .workset import canonicalize_identifier, merge_universe, pending

LOG = logging.getLogger(__name__)

Confirm = Callable[[str], bool]
Echo = Callable[[str], None]


@dataclass
class RunSummary:
    stage: str
    counters: RunCounters = field(default_factory=RunCounters)
    planned: int = 0
    remaining: int = 0
    total: int = 0
    duration_s: float = 0.0
    extra: dict = field(default_factory=dict)

    def as_dict(self) -> dict:
        return {
            "stage": self.stage,
            **self.counters.as_dict(),
            "planned": self.planned,
            "remaining": self.remaining,
            "total": self.total,
            "duration_s": round(self.duration_s, 3),
            **self.extra,
        }


def _session(
    settings: Settings,
    agent_factory: Callable[[], SourceAgent] | None,
    sleep: Callable[[float], None],
    rng: random.Random | None,
) -> SessionDriver:
    return SessionDriver(
        agent_factory or (lambda: make_agent(settings)),
        settings.credentials(),
        settle_seconds=settings.settle_seconds,
        min_delay=settings.min_delay,
        max_delay=settings.max_delay,
        sleep=sleep,
        rng=rng,
    )


def _finish(summary: RunSummary, started: float) -> RunSummary:
    summary.duration_s = time.perf_counter() - started
    logging_bridge.activity({"component": "referral_scout.engine", "op": "summary", **summary.as_dict()})
    return summary


# =============================================================================
# HARVEST
# =============================================================================
def run_harvest(
    settings: Settings,
    *,
    store: JsonStore | None = None,
    agent_factory: Callable[[], SourceAgent] | None = None,
    sleep: Callable[[float], None] = time.sleep,
    rng: random.Random | None = None,
) -> RunSummary:
    """
    Open the connections page, reveal entries until the count stops growing,
    and merge the discovered identifiers into the universe.
    """
    started = time.perf_counter()
    store = store or settings.store()
    summary = RunSummary(stage="harvest")

    def _harvest(agent: SourceAgent) -> tuple[StagnationResult, list[str]]:
        agent.navigate(settings.connections_url)
        agent.wait_for(CONNECTIONS_LIST_SELECTOR, settings.nav_timeout)

        def _step() -> int:
            agent.reveal_more(CONNECTIONS_LIST_SELECTOR)
            return len(agent.profile_links())

        def _progress(iteration: int, count: int, stagnant: int) -> None:
            if stagnant:
                LOG.info("No growth (stagnant #%d)", stagnant)
            else:
                LOG.info("Loaded %d connections...", count)

        result = run_until_stagnant(
            _step,
            stagnation_limit=settings.stagnation_limit,
            max_iterations=settings.harvest_max_loops,
            on_progress=_progress,
        )
        return result, agent.profile_links()

    with _session(settings, agent_factory, sleep, rng) as driver:
        result, links = driver.use(_harvest)

    existing = [record_identifier(u) for u in store.load(UNIVERSE)]
    merged, added = merge_universe(existing, links)
    store.save(UNIVERSE, merged)

    summary.counters.processed = added
    summary.total = len(merged)
    summary.extra = {"iterations": result.iterations, "stopped_by": result.stopped_by, "seen": len(links)}
    LOG.info("Saved %d URLs (%d new) to %s", len(merged), added, store.path_for(UNIVERSE))
    return _finish(summary, started)


# =============================================================================
# EXTRACTION
# =============================================================================
def run_extraction(
    settings: Settings,
    *,
    store: JsonStore | None = None,
    agent_factory: Callable[[], SourceAgent] | None = None,
    limit: int | None = None,
    sleep: Callable[[float], None] = time.sleep,
    rng: random.Random | None = None,
) -> RunSummary:
    """Extract the next batch (capped at profiles_per_session) of pending identifiers."""
    started = time.perf_counter()
    store = store or settings.store()
    summary = RunSummary(stage="extract")

    universe = [record_identifier(u) for u in store.load(UNIVERSE)]
    cap = settings.profiles_per_session if limit is None else limit
    todo = pending(universe, store.identifiers(RAW), cap)
    summary.planned = len(todo)
    summary.total = len(universe)

    if not todo:
        if not universe:
            LOG.info("Universe is empty; run 'harvest' first.")
        else:
            LOG.info("All profiles scraped!")
        return _finish(summary, started)

    counters = summary.counters
    with _session(settings, agent_factory, sleep, rng) as driver:
        for idx, (ident, _record) in enumerate(
            driver.iterate(
                todo,
                lambda agent, ident: extract_one(agent, ident, store, timeout=settings.nav_timeout, counters=counters),
            ),
            start=1,
        ):
            LOG.info("[%d/%d] done: %s", idx, len(todo), ident)

    summary.remaining = len(pending(universe, store.identifiers(RAW)))
    LOG.info("Session done. Scraped %d new profiles (%d failed).", counters.processed, counters.failed)
    return _finish(summary, started)


# =============================================================================
# CLASSIFICATION
# =============================================================================
def run_classification(
    settings: Settings,
    *,
    store: JsonStore | None = None,
    reasoner: Reasoner | None = None,
    limit: int | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> RunSummary:
    """Classify every extracted profile that has no decision yet."""
    started = time.perf_counter()
    store = store or settings.store()
    summary = RunSummary(stage="classify")
    counters = summary.counters

    raws = [RawRecord.from_dict(r) for r in store.load(RAW)]
    by_id = {r.url: r for r in raws}
    decided = store.identifiers(DECISIONS)
    todo = pending([r.url for r in raws], decided, limit)
    counters.skipped = len(raws) - len(pending([r.url for r in raws], decided))
    summary.planned = len(todo)
    summary.total = len(raws)

    own_reasoner = reasoner is None
    reasoner = reasoner or make_reasoner(settings)
    try:
        for idx, ident in enumerate(todo):
            raw = by_id[ident]
            LOG.info("Processing: %s (%s)", raw.name, raw.url)
            outcome = classify_one(
                raw,
                store,
                reasoner,
                blacklist=settings.blacklist,
                applicant=settings.applicant,
                max_retries=settings.max_retries,
                initial_delay=settings.initial_backoff,
                counters=counters,
                sleep=sleep,
            )
            LOG.info(
                "Progress: %d processed, %d eligible, %d already done",
                counters.processed,
                counters.eligible,
                counters.skipped,
            )
            if outcome.remote_called and idx < len(todo) - 1 and settings.classify_delay > 0:
                sleep(settings.classify_delay)
    finally:
        if own_reasoner:
            reasoner.close()

    summary.remaining = len(pending([r.url for r in raws], store.identifiers(DECISIONS)))
    return _finish(summary, started)


# =============================================================================
# SINGLE-IDENTIFIER PROBES (interactive test mode)
# =============================================================================
def _echo_raw(echo: Echo, record: RawRecord) -> None:
    echo(f"Name: {record.name}")
    echo(f"Headline: {record.headline}")
    echo(f"Experience entries: {len(record.experience)}")
    for i, exp in enumerate(record.experience, start=1):
        echo(f"   {i}. {exp}")


def probe_extraction(
    settings: Settings,
    url: str,
    *,
    confirm: Confirm,
    echo: Echo = print,
    store: JsonStore | None = None,
    agent_factory: Callable[[], SourceAgent] | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> RawRecord | None:
    """
    Extract one identifier, show the result, and save it (replacing any
    previous record) only if the operator confirms.
    """
    store = store or settings.store()
    ident = canonicalize_identifier(url)
    echo(f"Testing single profile scraping: {ident}")

    existing = store.find(RAW, ident)
    if existing is not None:
        echo("This profile was already scraped:")
        _echo_raw(echo, RawRecord.from_dict(existing))
        if not confirm("Do you want to re-scrape this profile? (y/N): "):
            echo("Skipping re-scraping")
            return None

    with _session(settings, agent_factory, sleep, None) as driver:
        record = driver.use(lambda agent: extract_record(agent, ident, timeout=settings.nav_timeout))

    if record is None:
        echo("SCRAPING FAILED. Check that the URL is accessible, the login went through, and the profile is not restricted.")
        return None

    echo("SCRAPING SUCCESSFUL!")
    _echo_raw(echo, record)
    if confirm("Do you want to save this scraped profile? (y/N): "):
        store.insert(RAW, record, replace=True)
        echo(f"Profile saved to {store.path_for(RAW)} ({store.count(RAW)} total)")
    else:
        echo("Profile not saved")
    return record


def probe_classification(
    settings: Settings,
    url: str,
    *,
    confirm: Confirm,
    echo: Echo = print,
    store: JsonStore | None = None,
    reasoner: Reasoner | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> DecisionRecord | None:
    """
    Classify one extracted profile and save the decision (replacing any
    previous one) only if the operator confirms. Short-circuit outcomes are
    reported but not saved.
    """
    store = store or settings.store()
    ident = canonicalize_identifier(url)
    found = store.find(RAW, ident)
    if found is None:
        raise RecordNotFound(
            f"Profile not found in {store.path_for(RAW)}: {ident} ({store.count(RAW)} available)",
            identifier=ident,
        )
    raw = RawRecord.from_dict(found)
    echo(f"Testing single profile: {ident}")
    _echo_raw(echo, raw)

    prior = store.find(DECISIONS, ident)
    if prior is not None:
        prev = DecisionRecord.from_dict(prior)
        verdict = "ELIGIBLE" if prev.eligible else "NOT ELIGIBLE"
        echo(f"This profile was already processed on {prev.decided_at}")
        echo(f"Previous result: {verdict} ({prev.reason.value})")
        if prev.message:
            echo(f"Previous message:\n{prev.message}")
        if not confirm("Do you want to reprocess this profile? (y/N): "):
            echo("Skipping reprocessing")
            return None

    local = short_circuit(raw, settings.blacklist)
    if local is Reason.BLACKLISTED:
        echo("Profile contains a blacklisted term. Result: NOT ELIGIBLE (blacklisted)")
        return None
    if local is Reason.NO_EXPERIENCE:
        echo("Profile has no experience listed. Result: NOT ELIGIBLE (no_experience)")
        return None

    own_reasoner = reasoner is None
    reasoner = reasoner or make_reasoner(settings)
    try:
        echo("Analyzing profile...")
        outcome = decide(
            raw,
            reasoner,
            blacklist=settings.blacklist,
            applicant=settings.applicant,
            max_retries=settings.max_retries,
            initial_delay=settings.initial_backoff,
            sleep=sleep,
        )
    finally:
        if own_reasoner:
            reasoner.close()

    decision = outcome.record
    if decision.eligible:
        echo("RESULT: ELIGIBLE FOR REFERRAL")
        echo(f'Generated message:\n"{decision.message}"')
    else:
        echo("RESULT: NOT SUITABLE FOR REFERRAL")

    if confirm("Do you want to save this result? (y/N): "):
        store.insert(DECISIONS, decision, replace=True)
        echo(f"Result saved to {store.path_for(DECISIONS)}")
    else:
        echo("Result not saved")
    return decision


# =============================================================================
# STATUS
# =============================================================================
def status(settings: Settings, *, store: JsonStore | None = None) -> dict[str, int]:
    """Collection sizes and pending counts; no network."""
    store = store or settings.store()
    universe = [record_identifier(u) for u in store.load(UNIVERSE)]
    raws = store.load(RAW)
    decisions = store.load(DECISIONS)
    return {
        "universe": len(universe),
        "extracted": len(raws),
        "decided": len(decisions),
        "eligible": sum(1 for d in decisions if isinstance(d, dict) and d.get("eligible") is True),
        "pending_extraction": len(pending(universe, raws)),
        "pending_classification": len(pending([record_identifier(r) for r in raws], decisions)),
    }
