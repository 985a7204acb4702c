from __future__ import annotations

import asyncio
import logging
import random
import time
from typing import Optional

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeout
from playwright.async_api import async_playwright

from fntracker.models import Observation, RosterEntry
from .parser import MATCH_LINK_SELECTOR, TIME_SELECTOR, parse_latest_match

logger = logging.getLogger(__name__)


class ScraperBlockedError(Exception):
    """Raised when the stats site serves a bot challenge instead of the page."""


class PlayerNotFoundError(Exception):
    """Raised when the profile page does not exist."""


class MatchScraper:
    """Playwright-backed observation feed.

    One browser and context live for the scraper's lifetime; each fetch opens
    and closes its own page. ``fetch_latest_observation`` never raises for
    network or page problems, it returns None after its retries run out.
    """

    USER_AGENT = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/120.0.0.0 Safari/537.36"
    )
    VIEWPORT = {"width": 1280, "height": 900}
    BLOCKED_RESOURCES = ("image", "media", "font")
    EMPTY_PAGE_DELAY = (1.5, 2.5)

    def __init__(
        self,
        headless: bool = True,
        nav_timeout_ms: int = 45000,
        selector_timeout_ms: int = 20000,
        max_attempts: int = 3,
        retry_delay_seconds: float = 1.0,
    ):
        self.headless = headless
        self.nav_timeout_ms = nav_timeout_ms
        self.selector_timeout_ms = selector_timeout_ms
        self.max_attempts = max_attempts
        self.retry_delay_seconds = retry_delay_seconds
        self._playwright = None
        self.browser = None
        self.context = None

    @property
    def running(self) -> bool:
        return self.context is not None

    async def __aenter__(self) -> "MatchScraper":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # --- Browser lifecycle ---

    async def start(self) -> None:
        """Launch Chromium with heavy resources blocked."""
        if self.context:
            return

        self._playwright = await async_playwright().start()
        try:
            self.browser = await self._playwright.chromium.launch(headless=self.headless)
            self.context = await self.browser.new_context(
                user_agent=self.USER_AGENT,
                viewport=self.VIEWPORT,
                locale="en-US",
            )
            await self.context.route("**/*", self._route_request)
        except Exception:
            await self.close()
            raise

    async def close(self) -> None:
        """Clean up browser resources."""
        if self.context:
            try:
                await self.context.close()
            except PlaywrightError:
                pass
        if self.browser:
            try:
                await self.browser.close()
            except PlaywrightError:
                pass
        if self._playwright:
            try:
                await self._playwright.stop()
            except PlaywrightError:
                pass

        self._playwright = None
        self.browser = None
        self.context = None

    async def _route_request(self, route) -> None:
        if route.request.resource_type in self.BLOCKED_RESOURCES:
            await route.abort()
        else:
            await route.continue_()

    # --- Observation feed ---

    async def fetch_latest_observation(self, player: RosterEntry) -> Optional[Observation]:
        """Return the player's newest match, or None when it cannot be read."""
        if not self.context:
            raise RuntimeError("MatchScraper.start() must be called before fetching")

        url = self.cache_busted_url(player.url)
        page = await self.context.new_page()
        page.set_default_timeout(self.nav_timeout_ms)
        try:
            for attempt in range(1, self.max_attempts + 1):
                try:
                    html = await self._load_page_html(page, url)
                except PlayerNotFoundError as exc:
                    logger.warning("Profile for %s not found: %s", player.name, exc)
                    return None
                except (ScraperBlockedError, PlaywrightError) as exc:
                    logger.warning(
                        "Attempt %s/%s for %s failed: %s", attempt, self.max_attempts, player.name, exc
                    )
                    await self._sleep(self.retry_delay_seconds * attempt)
                    continue

                found = parse_latest_match(html)
                if found:
                    match_id, observed_at = found
                    return Observation(player=player.name, match_id=match_id, observed_at=observed_at)

                logger.debug("No match rows for %s on attempt %s", player.name, attempt)
                await self._sleep(random.uniform(*self.EMPTY_PAGE_DELAY))
        finally:
            try:
                await page.close()
            except PlaywrightError:
                pass

        logger.warning("Could not read latest match for %s", player.name)
        return None

    def worst_case_seconds(self) -> float:
        """Upper bound of one fetch: every attempt times out, then waits its longest delay."""
        total = 0.0
        for attempt in range(1, self.max_attempts + 1):
            total += (self.nav_timeout_ms + self.selector_timeout_ms) / 1000
            total += max(self.retry_delay_seconds * attempt, self.EMPTY_PAGE_DELAY[1])
        return total

    @staticmethod
    def cache_busted_url(url: str, now: Optional[float] = None) -> str:
        stamp = int((now if now is not None else time.time()) * 1000)
        sep = "&" if "?" in url else "?"
        return f"{url}{sep}_={stamp}"

    async def _sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)

    async def _load_page_html(self, page, url: str) -> str:
        """Navigate, wait for match markup and return the rendered HTML."""
        await page.goto(url, wait_until="domcontentloaded", timeout=self.nav_timeout_ms)
        try:
            await page.wait_for_selector(
                f"{TIME_SELECTOR}, {MATCH_LINK_SELECTOR}",
                state="attached",
                timeout=self.selector_timeout_ms,
            )
        except PlaywrightTimeout:
            # Parse whatever rendered; an empty page triggers a retry.
            pass

        title = (await page.title()).lower()
        if "just a moment" in title or "attention" in title:
            raise ScraperBlockedError("Bot challenge page served")
        if "not found" in title or "404" in title:
            raise PlayerNotFoundError(f"Profile page not found at {url}")

        return await page.content()
