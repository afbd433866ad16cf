from __future__ import annotations

from typing import TYPE_CHECKING

from .base import SourceAgent

if TYPE_CHECKING:
    from ..config import Settings


def make_agent(settings: Settings) -> SourceAgent:
    """Default agent factory: a Chrome session configured from Settings."""
    # Imported here so browserless commands (classify, status) never load selenium.
    from .selenium_agent import SeleniumAgent

    return SeleniumAgent(
        headless=settings.headless,
        page_load_timeout=settings.page_load_timeout,
        user_data_dir=settings.browser_profile_dir,
    )


__all__ = ["SourceAgent", "make_agent"]
