# tests/conftest.py
import glob
import json
import os
import tempfile

import pytest
from bs4 import BeautifulSoup
from freezegun import freeze_time

from referral_scout.lib.agents.base import SourceAgent
from referral_scout.lib.config import _ENV_FIELDS, Settings
from referral_scout.lib.errors import AuthenticationFailure, NavigationTimeout


# ---------------------------------------------------------------------
# Live tests are opt-in: use --live or RUN_LIVE_TESTS=1
# ---------------------------------------------------------------------
def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addoption(
        "--live",
        action="store_true",
        default=False,
        help="Run tests marked as 'live' (real browser or reasoning service).",
    )


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line(
        "markers",
        "live: marks tests that drive a real browser or call a real reasoning service (skipped by default).",
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    run_live = config.getoption("--live") or os.getenv("RUN_LIVE_TESTS") == "1"
    if run_live:
        return
    skip_live = pytest.mark.skip(reason="live tests disabled (use --live or RUN_LIVE_TESTS=1)")
    for item in items:
        if "live" in item.keywords:
            item.add_marker(skip_live)


# ---------------------------------------------------------------------
# Test-wide env defaults (autouse, function-scoped)
# ---------------------------------------------------------------------
@pytest.fixture(autouse=True)
def _env_defaults(monkeypatch):
    # Write logs to a throwaway dir so real logs stay clean (per test)
    tmp_logs = tempfile.mkdtemp(prefix="rs-pytest-logs-")
    monkeypatch.setenv("LOG_DIR", tmp_logs)
    monkeypatch.setenv("ACTIVITY_LOG_PREFIX", "activity-test")
    monkeypatch.setenv("ERROR_LOG_PREFIX", "error-test")
    monkeypatch.delenv("ACTIVITY_LOG_MAX_BYTES", raising=False)

    # A developer's shell must not leak into Settings
    monkeypatch.delenv("SCOUT_CONFIG", raising=False)
    for env_var, _cast in _ENV_FIELDS.values():
        monkeypatch.delenv(env_var, raising=False)

    # Placeholder credentials; live runs keep the real ones from the shell
    if not os.getenv("LINKEDIN_EMAIL"):
        monkeypatch.setenv("LINKEDIN_EMAIL", "scout@example.com")
    if not os.getenv("LINKEDIN_PASSWORD"):
        monkeypatch.setenv("LINKEDIN_PASSWORD", "hunter2")
    yield


@pytest.fixture
def frozen_utc():
    with freeze_time("2025-01-01T00:00:00Z"):
        yield


@pytest.fixture
def read_log():
    """Return the JSONL records written under LOG_DIR for a prefix ('activity-test' / 'error-test')."""

    def _read(prefix: str) -> list[dict]:
        rows: list[dict] = []
        for path in sorted(glob.glob(os.path.join(os.environ["LOG_DIR"], f"{prefix}-*.jsonl"))):
            with open(path, encoding="utf-8") as f:
                rows.extend(json.loads(line) for line in f if line.strip())
        return rows

    return _read


@pytest.fixture
def sleeps():
    """A recording stand-in for time.sleep: call it, then inspect `.calls`."""

    class Recorder:
        def __init__(self):
            self.calls: list[float] = []

        def __call__(self, seconds: float) -> None:
            self.calls.append(seconds)

    return Recorder()


@pytest.fixture
def settings(tmp_path):
    """Fresh Settings per test: temp data dir, no pauses, stub reasoner."""
    return Settings.from_env_and_kwargs({
        "data_dir": str(tmp_path / "data"),
        "settle_seconds": 0,
        "min_delay": 0,
        "max_delay": 0,
        "classify_delay": 0,
        "initial_backoff": 0,
        "reasoner": "stub",
        "blacklist": ["crypto"],
    })


@pytest.fixture
def store(settings):
    return settings.store()


# ---------------------------------------------------------------------
# HTML fixtures
# ---------------------------------------------------------------------
@pytest.fixture
def profile_html():
    """
    Build a profile page the way the site renders it:
    heading, headline div, and one logo anchor per experience entry with
    aria-hidden spans holding the visible text.
    """

    def _build(name: str, headline: str = "", experience: list[tuple[str, ...]] | None = None) -> str:
        parts = ["<html><body><main>", f"<h1>  {name}  </h1>"]
        if headline:
            parts.append(f'<div class="text-body-medium break-words">\n  {headline}\n</div>')
        for entry in experience or []:
            spans = "".join(f'<span aria-hidden="true">{p}</span><span class="visually-hidden">{p}</span>' for p in entry)
            parts.append(f'<a data-field="experience_company_logo" href="#">{spans}</a>')
        parts.append("</main></body></html>")
        return "".join(parts)

    return _build


@pytest.fixture
def connections_html():
    """Connections list page holding the given hrefs (relative or absolute)."""

    def _build(hrefs: list[str]) -> str:
        cards = "".join(f'<li><a href="{h}">Person</a></li>' for h in hrefs)
        return (
            '<html><body><a href="/in/me/">Me</a>'
            f'<div componentkey="ConnectionsPage_ConnectionsList"><ul>{cards}</ul></div>'
            "</body></html>"
        )

    return _build


# ---------------------------------------------------------------------
# Fake browser agent
# ---------------------------------------------------------------------
class FakeAgent(SourceAgent):
    """
    In-memory SourceAgent.

    `pages` maps URL -> html, a list of html snapshots (each reveal_more()
    moves to the next one, sticking on the last), or an exception to raise
    on navigate(). Unknown URLs time out.
    """

    kind = "fake"

    def __init__(self, pages=None, *, fail_login: bool = False):
        self.pages = dict(pages or {})
        self.fail_login = fail_login
        self.visited: list[str] = []
        self.logins: list[str] = []
        self.reveals = 0
        self.closed = 0
        self._url: str | None = None
        self._html = ""
        self._step = 0

    def login(self, email: str, password: str) -> None:
        self.logins.append(email)
        if self.fail_login:
            raise AuthenticationFailure("bad credentials")

    def navigate(self, url: str) -> None:
        self.visited.append(url)
        page = self.pages.get(url)
        if isinstance(page, BaseException):
            raise page
        if page is None:
            raise NavigationTimeout(f"no page for {url}", url=url)
        self._url = url
        self._step = 0
        self._html = page[0] if isinstance(page, list) else page

    def wait_for(self, css_selector: str, timeout: float) -> None:
        if BeautifulSoup(self._html, "html.parser").select_one(css_selector) is None:
            raise NavigationTimeout(f"{css_selector!r} never appeared", url=self._url)

    def page_html(self) -> str:
        return self._html

    def reveal_more(self, list_selector: str) -> None:
        self.reveals += 1
        page = self.pages.get(self._url)
        if isinstance(page, list):
            self._step = min(self._step + 1, len(page) - 1)
            self._html = page[self._step]

    def close(self) -> None:
        self.closed += 1


@pytest.fixture
def fake_agent_cls():
    return FakeAgent
