# tests/test_session.py
import random

import pytest

from referral_scout.lib.errors import AuthenticationFailure
from referral_scout.lib.session import SessionDriver, SessionState, run_until_stagnant


def _driver(agent, sleeps, **kw):
    kw.setdefault("settle_seconds", 30)
    kw.setdefault("min_delay", 5)
    kw.setdefault("max_delay", 10)
    return SessionDriver(lambda: agent, ("scout@example.com", "pw"), sleep=sleeps, rng=random.Random(7), **kw)


def test_happy_path_state_history(fake_agent_cls, sleeps):
    agent = fake_agent_cls()
    seen = []

    with _driver(agent, sleeps) as driver:
        for ident, result in driver.iterate(["a", "b", "c"], lambda ag, i: i.upper()):
            seen.append((ident, result))

    assert seen == [("a", "A"), ("b", "B"), ("c", "C")]
    assert driver.history == [
        SessionState.IDLE,
        SessionState.AUTHENTICATING,
        SessionState.SETTLING,
        SessionState.ITERATING,
        SessionState.CLOSED,
    ]
    assert agent.logins == ["scout@example.com"]
    assert agent.closed == 1


def test_settle_then_pause_between_items_only(fake_agent_cls, sleeps):
    with _driver(fake_agent_cls(), sleeps) as driver:
        list(driver.iterate(["a", "b", "c"], lambda ag, i: None))

    settle, *pauses = sleeps.calls
    assert settle == 30
    assert len(pauses) == 2
    assert all(5 <= p <= 10 for p in pauses)


def test_single_item_has_no_pause(fake_agent_cls, sleeps):
    with _driver(fake_agent_cls(), sleeps, settle_seconds=0) as driver:
        list(driver.iterate(["a"], lambda ag, i: None))
    assert sleeps.calls == []


def test_login_failure_closes_agent_and_skips_settling(fake_agent_cls, sleeps, read_log):
    agent = fake_agent_cls(fail_login=True)
    driver = _driver(agent, sleeps)

    with pytest.raises(AuthenticationFailure):
        driver.open()

    assert agent.closed == 1
    assert driver.state is SessionState.CLOSED
    assert SessionState.SETTLING not in driver.history
    assert sleeps.calls == []
    assert read_log("error-test")[-1]["op"] == "login"


def test_interrupt_during_settling_closes_agent(fake_agent_cls):
    agent = fake_agent_cls()

    def interrupted(seconds):
        raise KeyboardInterrupt

    driver = _driver(agent, interrupted)
    with pytest.raises(KeyboardInterrupt), driver:
        pass

    assert agent.closed == 1
    assert driver.state is SessionState.CLOSED
    assert driver.history[-2:] == [SessionState.SETTLING, SessionState.CLOSED]


def test_handler_error_still_closes(fake_agent_cls, sleeps):
    agent = fake_agent_cls()

    def boom(ag, ident):
        raise RuntimeError("unexpected")

    with pytest.raises(RuntimeError), _driver(agent, sleeps, settle_seconds=0) as driver:
        list(driver.iterate(["a"], boom))

    assert agent.closed == 1
    assert driver.state is SessionState.CLOSED


def test_close_is_idempotent(fake_agent_cls, sleeps):
    agent = fake_agent_cls()
    driver = _driver(agent, sleeps, settle_seconds=0)
    driver.open()
    driver.close()
    driver.close()
    assert agent.closed == 1


def test_iterate_requires_open_session(fake_agent_cls, sleeps):
    driver = _driver(fake_agent_cls(), sleeps)
    with pytest.raises(RuntimeError):
        list(driver.iterate(["a"], lambda ag, i: None))


# ----------------------------------------------------------------------
# Stagnation loop
# ----------------------------------------------------------------------
def _steps(counts):
    it = iter(counts)
    last = {"v": 0}

    def step():
        last["v"] = next(it, last["v"])
        return last["v"]

    return step


def test_stops_after_consecutive_non_growth():
    progress = []
    result = run_until_stagnant(
        _steps([3, 5, 5, 5, 7, 7, 7, 7]),
        stagnation_limit=3,
        on_progress=lambda i, c, s: progress.append((i, c, s)),
    )

    assert result.count == 7
    assert result.iterations == 8
    assert result.stopped_by == "stagnation"
    # growth resets the stagnation counter
    assert progress[4] == (5, 7, 0)


def test_stops_at_max_iterations_when_always_growing():
    result = run_until_stagnant(_steps(range(1, 1000)), stagnation_limit=5, max_iterations=20)
    assert result.iterations == 20
    assert result.count == 20
    assert result.stopped_by == "max_iterations"


def test_empty_list_stagnates_immediately():
    result = run_until_stagnant(lambda: 0, stagnation_limit=2)
    assert (result.count, result.iterations, result.stopped_by) == (0, 2, "stagnation")
