"""
Stage executor: one identifier through extraction or classification.

Both stages have the same shape: short-circuit rules, remote call, map the
result to a record, persist it, bump the run counters. Failures local to one
identifier are logged and counted here; they never propagate to the batch.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass

from . import logging_bridge
from .agents.base import SourceAgent
from .backoff import Failure, call_with_backoff
from .decision import Applicant, build_prompt, parse_decision, short_circuit
from .errors import NavigationTimeout
from .extract import ProfilePage, normalize_groups
from .models import SAFE_DEFAULT, Decision, DecisionRecord, RawRecord, Reason, RunCounters
from .reasoners.base import Reasoner
from .store import DECISIONS, RAW, JsonStore
from .utils import now_iso

LOG = logging.getLogger(__name__)


# =============================================================================
# EXTRACTION
# =============================================================================
def build_raw_record(identifier: str, page: ProfilePage) -> RawRecord:
    return RawRecord(
        url=identifier,
        name=(page.name or "").strip(),
        headline=(page.headline or "").strip(),
        experience=normalize_groups(page.attribute_groups),
    )


def extract_record(agent: SourceAgent, identifier: str, *, timeout: float) -> RawRecord | None:
    """
    Fetch and map one profile without persisting it.
    Returns None on navigation failure/timeout (identifier stays pending).
    """
    try:
        page = agent.fetch_profile(identifier, timeout)
    except NavigationTimeout as e:
        LOG.warning("Skipping %s: %s", identifier, e)
        logging_bridge.error({
            "component": "referral_scout.stages",
            "op": "extract",
            "url": identifier,
            "error": str(e),
        })
        return None
    return build_raw_record(identifier, page)


def extract_one(
    agent: SourceAgent,
    identifier: str,
    store: JsonStore,
    *,
    timeout: float,
    counters: RunCounters | None = None,
    replace: bool = False,
) -> RawRecord | None:
    """Extract one identifier and persist the RawRecord (load-append-save)."""
    counters = counters if counters is not None else RunCounters()
    record = extract_record(agent, identifier, timeout=timeout)
    if record is None:
        counters.failed += 1
        return None

    written = store.insert(RAW, record, replace=replace)
    if not written:
        counters.skipped += 1
        LOG.info("Already extracted, kept existing record: %s", identifier)
        return record

    counters.processed += 1
    LOG.info("Scraped: %s (%d experience entries)", record.name or identifier, len(record.experience))
    logging_bridge.activity({
        "component": "referral_scout.stages",
        "op": "extracted",
        "url": identifier,
        "experience_entries": len(record.experience),
    })
    return record


# =============================================================================
# CLASSIFICATION
# =============================================================================
@dataclass(frozen=True)
class ClassifyOutcome:
    """What classify_one did for one record."""

    record: DecisionRecord
    skipped: bool = False
    remote_called: bool = False
    failure: Failure | None = None


def make_decision_record(raw: RawRecord, decision: Decision, reason: Reason) -> DecisionRecord:
    return DecisionRecord(
        url=raw.url,
        name=raw.name,
        eligible=decision.eligible,
        message=decision.message,
        decided_at=now_iso(),
        reason=reason,
    )


def decide(
    raw: RawRecord,
    reasoner: Reasoner,
    *,
    blacklist: Iterable[str],
    applicant: Applicant,
    max_retries: int = 3,
    initial_delay: float = 2.0,
    sleep: Callable[[float], None] = time.sleep,
) -> ClassifyOutcome:
    """
    Produce a DecisionRecord without persisting it.

    Short-circuit rules decide locally; otherwise the reasoner is called
    through the backoff controller and any Failure degrades to the safe
    default (not eligible, empty message).
    """
    local = short_circuit(raw, blacklist)
    if local is not None:
        return ClassifyOutcome(record=make_decision_record(raw, SAFE_DEFAULT, local))

    prompt = build_prompt(raw, applicant)
    result = call_with_backoff(
        lambda: parse_decision(reasoner.complete(prompt)),
        max_retries=max_retries,
        initial_delay=initial_delay,
        sleep=sleep,
        label=raw.name or raw.url,
    )
    if isinstance(result, Failure):
        LOG.error("Reasoning failed for %s after %d attempt(s): %r", raw.name or raw.url, result.attempts, result.error)
        decision, failure = SAFE_DEFAULT, result
    else:
        decision, failure = result.value, None

    reason = Reason.ELIGIBLE if decision.eligible else Reason.NOT_SUITABLE
    return ClassifyOutcome(
        record=make_decision_record(raw, decision, reason),
        remote_called=True,
        failure=failure,
    )


def classify_one(
    raw: RawRecord,
    store: JsonStore,
    reasoner: Reasoner,
    *,
    blacklist: Iterable[str],
    applicant: Applicant,
    max_retries: int = 3,
    initial_delay: float = 2.0,
    replace: bool = False,
    counters: RunCounters | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> ClassifyOutcome:
    """
    Classify one RawRecord and persist the DecisionRecord.

    Already-decided identifiers are a no-op returning the stored decision,
    unless `replace` is set, in which case the previous decision is removed
    before the new one is appended.
    """
    counters = counters if counters is not None else RunCounters()

    prior = None if replace else store.find(DECISIONS, raw.url)
    if prior is not None:
        counters.skipped += 1
        LOG.info("%s (%s) - Already processed", raw.name, raw.url)
        return ClassifyOutcome(record=DecisionRecord.from_dict(prior), skipped=True)

    outcome = decide(
        raw,
        reasoner,
        blacklist=blacklist,
        applicant=applicant,
        max_retries=max_retries,
        initial_delay=initial_delay,
        sleep=sleep,
    )
    decision = outcome.record
    store.insert(DECISIONS, decision, replace=True)

    counters.processed += 1
    counters.count_reason(decision.reason)
    if decision.eligible:
        counters.eligible += 1
    if outcome.failure is not None:
        counters.failed += 1

    _log_decision(decision, outcome)
    return outcome


def _log_decision(decision: DecisionRecord, outcome: ClassifyOutcome) -> None:
    if decision.reason is Reason.BLACKLISTED:
        LOG.info("Skipping %s - blacklisted term found", decision.name)
    elif decision.reason is Reason.NO_EXPERIENCE:
        LOG.info("Skipping %s - no experience listed", decision.name)
    elif decision.eligible:
        LOG.info("Referral approved: %s\nMessage:\n%s", decision.name, decision.message)
    else:
        LOG.info("Not suitable for referral: %s", decision.name)

    logging_bridge.activity({
        "component": "referral_scout.stages",
        "op": "classified",
        "url": decision.url,
        "reason": decision.reason.value,
        "category": decision.reason.category,
        "eligible": decision.eligible,
        "remote_called": outcome.remote_called,
        "attempts": outcome.failure.attempts if outcome.failure else None,
        "degraded": outcome.failure is not None,
    })
