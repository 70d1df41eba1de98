"""
Player adapters for the video probe.

An adapter knows how to recognise one kind of player on a page and how to
drive it. The probe asks each adapter in priority order whether it sees its
player and then drives whichever matched first; the playback algorithm itself
is shared and lives in ``probe.py``.
"""

from typing import Any, Dict, List, Optional

from ..browser.session import BrowserSession
from . import scripts
from .models import PlayerKind, ProbeTimings


Detection = Dict[str, Any]


async def click_first(session: BrowserSession, selector: str) -> bool:
    """Click the first element matching ``selector``; False if there is none."""
    element = await session.find_element(selector)
    if element is None:
        return False
    await session.click(element)
    return True


class PlayerAdapter:
    """
    Base adapter. Subclasses override detection and preparation; the playback
    surface calls are shared because every adapter binds either a native
    ``<video>`` element or a vendor player handle into the probe record.
    """

    name = "base"
    kind = PlayerKind.NONE
    supports_api_retry = False

    def progress_threshold(self, timings: ProbeTimings) -> float:
        """Minimum playback advance, in seconds, that counts as playing."""
        return 0.1

    async def detect(self, session: BrowserSession) -> Optional[Detection]:
        raise NotImplementedError

    async def prepare(
        self, session: BrowserSession, probe_id: str, detection: Detection
    ) -> bool:
        """Install adapter hooks after the probe record exists."""
        return True

    async def is_ready(self, session: BrowserSession, probe_id: str) -> bool:
        raise NotImplementedError

    async def bind_fallback(self, session: BrowserSession, probe_id: str) -> bool:
        """Bind a secondary playback surface when readiness never arrives."""
        return False

    async def activate(self, session: BrowserSession) -> bool:
        """Simulate a user gesture on a play control, if the page has one."""
        return await click_first(session, scripts.PLAY_CONTROL_SELECTOR)

    async def retry_via_api(self, session: BrowserSession, probe_id: str) -> bool:
        """Rebind the player through its vendor API. False when unsupported."""
        return False

    async def current_time(self, session: BrowserSession, probe_id: str) -> Optional[float]:
        value = await session.execute_script(scripts.READ_TIME, probe_id)
        if value is None:
            return None
        return float(value)

    async def play(self, session: BrowserSession, probe_id: str) -> None:
        await session.execute_script(scripts.PLAY, probe_id)

    async def pause(self, session: BrowserSession, probe_id: str) -> None:
        await session.execute_script(scripts.PAUSE, probe_id)

    async def is_paused(self, session: BrowserSession, probe_id: str) -> Optional[bool]:
        value = await session.execute_script(scripts.IS_PAUSED, probe_id)
        if value is None:
            return None
        return bool(value)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"


class NativeVideoAdapter(PlayerAdapter):
    """A plain HTML ``<video>`` element."""

    name = "native-video"
    kind = PlayerKind.NATIVE

    async def detect(self, session: BrowserSession) -> Optional[Detection]:
        if await session.execute_script(scripts.DETECT_NATIVE):
            return {"marker": "video"}
        return None

    async def is_ready(self, session: BrowserSession, probe_id: str) -> bool:
        return bool(await session.execute_script(scripts.BIND_NATIVE, probe_id))


class WistiaAdapter(PlayerAdapter):
    """
    Wistia embeds.

    Readiness comes from the ``_wq`` onReady queue. If the callback does not
    fire within the ready window, a ``<video>`` element the embed rendered is
    used instead, and a direct ``Wistia.api`` rebind is available as a last
    retry.
    """

    name = "wistia"
    kind = PlayerKind.EMBEDDED
    supports_api_retry = True

    async def detect(self, session: BrowserSession) -> Optional[Detection]:
        media_id = await session.execute_script(scripts.DETECT_WISTIA)
        if media_id:
            return {"marker": "wistia", "media_id": str(media_id)}
        return None

    async def prepare(
        self, session: BrowserSession, probe_id: str, detection: Detection
    ) -> bool:
        return bool(
            await session.execute_script(
                scripts.INSTALL_WISTIA_HOOK, probe_id, detection.get("media_id")
            )
        )

    async def is_ready(self, session: BrowserSession, probe_id: str) -> bool:
        return bool(await session.execute_script(scripts.WISTIA_READY, probe_id))

    async def bind_fallback(self, session: BrowserSession, probe_id: str) -> bool:
        return bool(await session.execute_script(scripts.BIND_NATIVE, probe_id))

    async def activate(self, session: BrowserSession) -> bool:
        if await click_first(session, scripts.PLAY_CONTROL_SELECTOR):
            return True
        return await click_first(session, scripts.WISTIA_CONTAINER_SELECTOR)

    async def retry_via_api(self, session: BrowserSession, probe_id: str) -> bool:
        return bool(await session.execute_script(scripts.WISTIA_API_BIND, probe_id))


class GenericContainerAdapter(PlayerAdapter):
    """
    A container that looks like a video player but exposes no known API.

    Clicking its play control (or the container itself) usually makes the
    player render a ``<video>`` element, which is then driven natively. The
    threshold is a share of the play window because these players tend to
    buffer before they start.
    """

    name = "generic-container"
    kind = PlayerKind.EMBEDDED

    threshold_ratio = 0.9

    def __init__(self, selector: str = scripts.GENERIC_CONTAINER_SELECTOR):
        self.selector = selector

    def progress_threshold(self, timings: ProbeTimings) -> float:
        return self.threshold_ratio * timings.play_window_ms / 1000.0

    async def detect(self, session: BrowserSession) -> Optional[Detection]:
        if await session.execute_script(scripts.DETECT_SELECTOR, self.selector):
            return {"marker": "container"}
        return None

    async def prepare(
        self, session: BrowserSession, probe_id: str, detection: Detection
    ) -> bool:
        if await click_first(session, scripts.PLAY_CONTROL_SELECTOR):
            return True
        return await click_first(session, self.selector)

    async def is_ready(self, session: BrowserSession, probe_id: str) -> bool:
        return bool(await session.execute_script(scripts.BIND_NATIVE, probe_id))

    async def activate(self, session: BrowserSession) -> bool:
        # The container was already clicked while preparing
        return False


def default_adapters() -> List[PlayerAdapter]:
    """Adapters in detection priority order."""
    return [NativeVideoAdapter(), WistiaAdapter(), GenericContainerAdapter()]
