"""
Browser session capability.

``BrowserSession`` is the small set of round-trips the video probe needs from
any automation library. ``PlaywrightSession`` implements it, plus the extra
primitives the tool server forwards to, on top of a Playwright async ``Page``.
"""

import asyncio
import logging
import time
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional, Union


logger = logging.getLogger(__name__)

Predicate = Callable[[], Awaitable[Any]]


class BrowserSession:
    """
    Capability consumed by the video probe.

    Subclasses implement the round-trips; ``wait_until`` is shared and only
    relies on ``clock`` and ``pause``.
    """

    async def navigate(self, url: str) -> None:
        raise NotImplementedError

    async def get_current_url(self) -> str:
        raise NotImplementedError

    async def execute_script(self, script: str, *args: Any) -> Any:
        raise NotImplementedError

    async def find_element(self, selector: str) -> Optional[Any]:
        raise NotImplementedError

    async def click(self, element: Any) -> None:
        raise NotImplementedError

    async def pause(self, ms: float) -> None:
        raise NotImplementedError

    def clock(self) -> float:
        """Monotonic seconds used for every deadline computed against this session."""
        return time.monotonic()

    async def wait_until(
        self, predicate: Predicate, timeout_ms: float, interval_ms: float = 300
    ) -> bool:
        """
        Poll ``predicate`` until it returns a truthy value or the timeout elapses.

        Args:
            predicate: Coroutine function evaluated once per poll
            timeout_ms: Hard deadline in milliseconds
            interval_ms: Pause between polls

        Returns:
            True if the predicate succeeded before the deadline, False otherwise
        """
        deadline = self.clock() + max(0.0, timeout_ms) / 1000.0

        while True:
            try:
                if await predicate():
                    return True
            except Exception as e:
                # A failing poll counts as "not yet"
                logger.debug(f"wait_until predicate raised: {e}")

            remaining_ms = (deadline - self.clock()) * 1000.0
            if remaining_ms <= 0:
                return False
            await self.pause(min(interval_ms, remaining_ms))


class PlaywrightSession(BrowserSession):
    """Session backed by a Playwright async ``Page``."""

    def __init__(
        self,
        page,
        navigation_timeout: int = 30000,
        action_timeout: int = 30000,
        wait_until: str = "load",
    ):
        self.page = page
        self.navigation_timeout = navigation_timeout
        self.action_timeout = action_timeout
        self.wait_until_state = wait_until

    async def navigate(self, url: str) -> None:
        logger.info(f"Navigating to: {url}")
        await self.page.goto(
            url, wait_until=self.wait_until_state, timeout=self.navigation_timeout
        )

    async def get_current_url(self) -> str:
        return self.page.url

    async def execute_script(self, script: str, *args: Any) -> Any:
        # Playwright passes a single argument; scripts destructure the list
        if args:
            return await self.page.evaluate(script, list(args))
        return await self.page.evaluate(script)

    async def find_element(self, selector: str) -> Optional[Any]:
        return await self.page.query_selector(selector)

    async def click(self, element: Any) -> None:
        await element.click(timeout=self.action_timeout)

    async def pause(self, ms: float) -> None:
        await asyncio.sleep(max(0.0, ms) / 1000.0)

    # Primitives forwarded by the tool server

    async def click_selector(self, selector: str) -> None:
        await self.page.click(selector, timeout=self.action_timeout)

    async def type_text(self, selector: str, text: str) -> None:
        await self.page.fill(selector, text, timeout=self.action_timeout)

    async def get_text(self, selector: str) -> str:
        return await self.page.inner_text(selector, timeout=self.action_timeout)

    async def wait_for_element(self, selector: str, timeout: int = 30000) -> None:
        await self.page.wait_for_selector(selector, state="visible", timeout=timeout)

    async def select_option(self, selector: str, value: str) -> None:
        await self.page.select_option(
            selector, label=value, timeout=self.action_timeout
        )

    async def hover(self, selector: str) -> None:
        await self.page.hover(selector, timeout=self.action_timeout)

    async def scroll_to(
        self,
        selector: Optional[str] = None,
        x: Optional[float] = None,
        y: Optional[float] = None,
    ) -> None:
        if selector:
            await self.page.locator(selector).scroll_into_view_if_needed(
                timeout=self.action_timeout
            )
        elif x is not None and y is not None:
            await self.page.evaluate("([x, y]) => window.scrollTo(x, y)", [x, y])
        else:
            raise ValueError("Either selector or both x and y coordinates must be provided")

    async def title(self) -> str:
        return await self.page.title()

    async def reload(self) -> None:
        await self.page.reload(
            wait_until=self.wait_until_state, timeout=self.navigation_timeout
        )

    async def go_back(self) -> None:
        await self.page.go_back(
            wait_until=self.wait_until_state, timeout=self.navigation_timeout
        )

    async def go_forward(self) -> None:
        await self.page.go_forward(
            wait_until=self.wait_until_state, timeout=self.navigation_timeout
        )

    async def screenshot(self, path: Union[str, Path], full_page: bool = False) -> bytes:
        return await self.page.screenshot(path=str(path), full_page=full_page)

    async def set_viewport(self, width: int, height: int) -> None:
        await self.page.set_viewport_size({"width": width, "height": height})
