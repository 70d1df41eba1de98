"""
Browser lifecycle management.

Lazily starts Playwright, launches the configured browser with the harness
launch arguments and hands out a single ``PlaywrightSession``.
"""

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Tuple

from playwright.async_api import async_playwright

from ..core.config import Config
from ..core.exceptions import BrowserSessionError
from .session import PlaywrightSession


BASE_CHROMIUM_ARGS = [
    "--no-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
    "--autoplay-policy=no-user-gesture-required",
]


class BrowserManager:
    """
    Owns one browser, one context and one page at a time.

    The session it returns is shared: callers must serialize their use of it.
    """

    def __init__(self, config: Config, logger: Optional[logging.Logger] = None):
        self.config = config
        self.logger = logger or logging.getLogger(__name__)

        self._headless = config.get_effective_headless_mode()
        self._window_size = (config.window_width, config.window_height)

        self._playwright = None
        self._browser = None
        self._context = None
        self._session: Optional[PlaywrightSession] = None

    @property
    def headless(self) -> bool:
        return self._headless

    @property
    def window_size(self) -> Tuple[int, int]:
        return self._window_size

    @property
    def screenshot_dir(self) -> Path:
        return self.config.screenshots_dir

    def launch_args(self) -> List[str]:
        """Browser command line switches for the current settings."""
        if self.config.browser_name != "chromium":
            return []
        width, height = self._window_size
        return [*BASE_CHROMIUM_ARGS, f"--window-size={width},{height}"]

    async def get_session(self) -> PlaywrightSession:
        """Return the active session, launching a browser on first use."""
        if self._session is None:
            await self._launch()
        return self._session

    async def _launch(self) -> None:
        browser_name = self.config.browser_name
        self.logger.info(
            f"Launching {browser_name} ({'headless' if self._headless else 'headed'})"
        )

        try:
            if self._playwright is None:
                self._playwright = await async_playwright().start()

            launcher = getattr(self._playwright, browser_name, None)
            if launcher is None:
                raise BrowserSessionError(
                    f"Unknown browser type: {browser_name}",
                    browser_name=browser_name,
                    headless=self._headless,
                )

            self._browser = await launcher.launch(
                headless=self._headless, args=self.launch_args()
            )
            width, height = self._window_size
            self._context = await self._browser.new_context(
                viewport={"width": width, "height": height}
            )
            page = await self._context.new_page()
        except BrowserSessionError:
            await self.close()
            raise
        except Exception as e:
            await self.close()
            raise BrowserSessionError(
                f"Failed to launch browser: {e}",
                browser_name=browser_name,
                headless=self._headless,
            )

        self._session = PlaywrightSession(page)

    async def close(self) -> None:
        """Close page, context, browser and Playwright, ignoring teardown errors."""
        for resource, closer in (
            (self._context, "close"),
            (self._browser, "close"),
            (self._playwright, "stop"),
        ):
            if resource is None:
                continue
            try:
                await getattr(resource, closer)()
            except Exception as e:
                self.logger.warning(f"Error during browser teardown: {e}")

        self._session = None
        self._context = None
        self._browser = None
        self._playwright = None

    async def restart(self) -> PlaywrightSession:
        await self.close()
        return await self.get_session()

    def is_active(self) -> bool:
        return self._session is not None

    async def set_headless(self, headless: bool) -> None:
        """Change headless mode; an active browser is relaunched."""
        self._headless = headless
        if self.is_active():
            await self.restart()

    async def set_window_size(self, width: int, height: int) -> None:
        """Change the window size; an active page is resized in place."""
        self._window_size = (width, height)
        if self._session is not None:
            await self._session.set_viewport(width, height)

    def get_screenshot_path(self, filename: Optional[str] = None) -> Path:
        if not filename:
            timestamp = datetime.now(timezone.utc).isoformat().replace(":", "-").replace(".", "-")
            filename = f"screenshot-{timestamp}.png"
        return self.screenshot_dir / filename

    async def take_screenshot(
        self, filename: Optional[str] = None, full_page: bool = False
    ) -> Tuple[Path, bytes]:
        """Save a screenshot of the current page and return its path and PNG bytes."""
        session = await self.get_session()
        path = self.get_screenshot_path(filename)
        path.parent.mkdir(parents=True, exist_ok=True)
        data = await session.screenshot(path, full_page=full_page)
        self.logger.debug(f"Screenshot saved: {path}")
        return path, data
