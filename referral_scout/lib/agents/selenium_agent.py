# referral_scout/lib/agents/selenium_agent.py
from __future__ import annotations

import logging
import random
import time
from collections.abc import Callable

from selenium import webdriver
from selenium.common.exceptions import NoSuchElementException, TimeoutException, WebDriverException
from selenium.webdriver.chrome.options import Options
from selenium.webdriver.common.by import By
from selenium.webdriver.support import expected_conditions as EC
from selenium.webdriver.support.ui import WebDriverWait

from ..errors import AuthenticationFailure, NavigationTimeout
from .base import SourceAgent

LOG = logging.getLogger(__name__)

LOGIN_URL = "https://www.linkedin.com/login"
USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/115.0.0.0 Safari/537.36"
)


class SeleniumAgent(SourceAgent):
    """
    Chrome-backed agent.

    Runs headed by default: the settling window after login exists so a
    human can clear a CAPTCHA or second-factor prompt in the visible window.
    """

    kind = "selenium"

    def __init__(
        self,
        *,
        headless: bool = False,
        page_load_timeout: float = 60.0,
        login_timeout: float = 30.0,
        reveal_pause: tuple[float, float] = (2.0, 4.0),
        user_data_dir: str | None = None,
        sleep: Callable[[float], None] = time.sleep,
        rng: random.Random | None = None,
        driver: webdriver.Remote | None = None,
    ) -> None:
        self.login_timeout = float(login_timeout)
        self.reveal_pause = reveal_pause
        self._sleep = sleep
        self._rng = rng or random.Random()
        self._driver = driver or self._build_driver(headless=headless, user_data_dir=user_data_dir)
        self._driver.set_page_load_timeout(page_load_timeout)

    @staticmethod
    def _build_driver(*, headless: bool, user_data_dir: str | None) -> webdriver.Chrome:
        options = Options()
        if user_data_dir:
            options.add_argument(f"--user-data-dir={user_data_dir}")
        if headless:
            options.add_argument("--headless=new")
        options.add_argument("--no-sandbox")
        options.add_argument("--disable-setuid-sandbox")
        options.add_argument("--disable-dev-shm-usage")
        options.add_argument("--window-size=1280,800")
        options.add_argument(f"--user-agent={USER_AGENT}")
        return webdriver.Chrome(options=options)

    # ---- SourceAgent primitives ----
    def login(self, email: str, password: str) -> None:
        if not email or not password:
            raise AuthenticationFailure("Missing login credentials")
        try:
            self.navigate(LOGIN_URL)
            self.wait_for("#username", self.login_timeout)
            d = self._driver
            d.find_element(By.CSS_SELECTOR, "#username").send_keys(email)
            d.find_element(By.CSS_SELECTOR, "#password").send_keys(password)
            d.find_element(By.CSS_SELECTOR, 'button[type="submit"]').click()
            # Any page other than the login form counts; checkpoint pages are
            # left for the operator during the settling window.
            WebDriverWait(d, self.login_timeout).until(lambda drv: "/login" not in drv.current_url)
        except (NavigationTimeout, TimeoutException, NoSuchElementException) as e:
            raise AuthenticationFailure(f"Login did not complete: {e}") from e
        except WebDriverException as e:
            raise AuthenticationFailure(f"Browser error during login: {e.msg or e}") from e
        LOG.info("Logged in")

    def navigate(self, url: str) -> None:
        try:
            self._driver.get(url)
        except TimeoutException as e:
            raise NavigationTimeout(f"Timed out loading {url}", url=url) from e
        except WebDriverException as e:
            raise NavigationTimeout(f"Navigation to {url} failed: {e.msg or e}", url=url) from e

    def wait_for(self, css_selector: str, timeout: float) -> None:
        try:
            WebDriverWait(self._driver, timeout).until(
                EC.presence_of_element_located((By.CSS_SELECTOR, css_selector))
            )
        except TimeoutException as e:
            url = self._current_url()
            raise NavigationTimeout(f"{css_selector!r} did not appear within {timeout:.0f}s", url=url) from e
        except WebDriverException as e:
            url = self._current_url()
            raise NavigationTimeout(f"Browser error waiting for {css_selector!r}: {e.msg or e}", url=url) from e

    def page_html(self) -> str:
        try:
            return self._driver.page_source or ""
        except WebDriverException as e:
            raise NavigationTimeout(f"Could not read page source: {e.msg or e}", url=self._current_url()) from e

    def reveal_more(self, list_selector: str) -> None:
        self._driver.execute_script(
            """
            const c = document.querySelector(arguments[0]);
            if (!c) return;
            const cards = c.querySelectorAll('a[href*="/in/"]');
            if (cards.length) cards[cards.length - 1].scrollIntoView({block: 'end'});
            """,
            list_selector,
        )
        self._pause()

        buttons = self._driver.find_elements(
            By.CSS_SELECTOR,
            f'{list_selector} button[aria-label*="Load more"], {list_selector} button[aria-label*="See more"]',
        )
        if buttons:
            try:
                buttons[0].click()
            except WebDriverException:
                LOG.debug("load-more click failed", exc_info=True)
            self._pause()

    def close(self) -> None:
        if self._driver is None:
            return
        try:
            self._driver.quit()
        except WebDriverException:
            LOG.debug("SeleniumAgent.close() swallow", exc_info=True)
        finally:
            self._driver = None

    # ---- helpers ----
    def _pause(self) -> None:
        lo, hi = self.reveal_pause
        self._sleep(self._rng.uniform(lo, hi))

    def _current_url(self) -> str | None:
        try:
            return self._driver.current_url
        except WebDriverException:
            return None
