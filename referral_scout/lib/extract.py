"""
HTML -> structured fields for profile and connections pages.

Pure functions over page source so they can be tested against saved HTML
without a browser.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from urllib.parse import urljoin

from bs4 import BeautifulSoup

PROFILE_MARKER = "h1"
HEADLINE_SELECTOR = ".text-body-medium.break-words"
EXPERIENCE_ANCHOR_SELECTOR = 'a[data-field="experience_company_logo"]'
EXPERIENCE_SPAN_SELECTOR = 'span[aria-hidden="true"]'

CONNECTIONS_LIST_SELECTOR = 'div[componentkey="ConnectionsPage_ConnectionsList"]'
PROFILE_LINK_SELECTOR = 'a[href*="/in/"]'

DEFAULT_BASE_URL = "https://www.linkedin.com"


@dataclass(frozen=True)
class ProfilePage:
    """What the extraction collaborator hands back for one profile."""

    name: str = ""
    headline: str = ""
    attribute_groups: list[str] = field(default_factory=list)


def _clean(text: str | None) -> str:
    # Collapse internal whitespace runs (innerText-like)
    return " ".join((text or "").split())


def normalize_groups(groups: Iterable[str | None]) -> list[str]:
    """Trim each group and drop the empty ones."""
    out: list[str] = []
    for g in groups:
        t = _clean(g)
        if t:
            out.append(t)
    return out


def parse_profile_html(html: str) -> ProfilePage:
    soup = BeautifulSoup(html or "", "html.parser")

    h1 = soup.select_one(PROFILE_MARKER)
    hd = soup.select_one(HEADLINE_SELECTOR)

    groups: list[str] = []
    for anchor in soup.select(EXPERIENCE_ANCHOR_SELECTOR):
        parts = [_clean(span.get_text()) for span in anchor.select(EXPERIENCE_SPAN_SELECTOR)]
        groups.append(", ".join(p for p in parts if p))

    return ProfilePage(
        name=_clean(h1.get_text()) if h1 else "",
        headline=_clean(hd.get_text()) if hd else "",
        attribute_groups=normalize_groups(groups),
    )


def parse_connection_links(html: str, base_url: str = DEFAULT_BASE_URL) -> list[str]:
    """
    Absolute profile hrefs inside the connections list, in page order.
    Duplicates are kept; canonicalization and dedupe happen in workset.
    """
    soup = BeautifulSoup(html or "", "html.parser")
    container = soup.select_one(CONNECTIONS_LIST_SELECTOR)
    if container is None:
        return []
    out: list[str] = []
    for a in container.select(PROFILE_LINK_SELECTOR):
        href = (a.get("href") or "").strip()
        if href:
            out.append(urljoin(base_url, href))
    return out
