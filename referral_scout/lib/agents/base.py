from __future__ import annotations

from abc import ABC, abstractmethod

from ..extract import PROFILE_MARKER, ProfilePage, parse_connection_links, parse_profile_html


class SourceAgent(ABC):
    """
    Abstract browser-automation agent for the remote source.

    Contract:
      - One instance == one authenticated session; callers use it SEQUENTIALLY.
      - navigate()/wait_for() raise NavigationTimeout on load failure or when
        the marker never appears; login() raises AuthenticationFailure.
      - close() must be safe to call more than once.
      - Do NOT touch the record store; persistence happens in the stage executor.
    """

    # Concrete subclasses MUST set this to a stable string, e.g. "selenium", "fake"
    kind: str = ""

    @abstractmethod
    def login(self, email: str, password: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def navigate(self, url: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def wait_for(self, css_selector: str, timeout: float) -> None:
        raise NotImplementedError

    @abstractmethod
    def page_html(self) -> str:
        raise NotImplementedError

    @abstractmethod
    def reveal_more(self, list_selector: str) -> None:
        """Trigger the page's incremental loading once (scroll, 'Load more' click)."""
        raise NotImplementedError

    @abstractmethod
    def close(self) -> None:
        raise NotImplementedError

    # ---- shared behaviour built on the primitives ----
    def fetch_profile(self, url: str, timeout: float) -> ProfilePage:
        """Open a profile, wait for its heading and extract the structured text."""
        self.navigate(url)
        self.wait_for(PROFILE_MARKER, timeout)
        return parse_profile_html(self.page_html())

    def profile_links(self) -> list[str]:
        return parse_connection_links(self.page_html())
