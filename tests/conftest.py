"""
Pytest configuration and shared fixtures for webprobe tests.

Provides a temporary configuration and a scripted fake browser session. The
fake interprets the probe's page scripts against an in-memory page model and
keeps a virtual clock, so probe timing can be asserted without a browser.
"""

import asyncio
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

from webprobe.browser.session import BrowserSession
from webprobe.core.config import Config
from webprobe.probe import scripts


class FakeVideo:
    """A playback surface whose position advances with the virtual clock."""

    def __init__(
        self,
        current_time: float = 0.0,
        blocked: bool = False,
        rate: float = 1.0,
        reset_on_pause: bool = False,
    ):
        self.current_time = current_time
        self.paused = True
        self.blocked = blocked
        self.rate = rate
        self.reset_on_pause = reset_on_pause
        self.muted = False
        self.play_calls = 0

    def play(self) -> None:
        self.play_calls += 1
        # Autoplay policy rejects the play() promise; the element stays paused
        if not self.blocked:
            self.paused = False

    def pause(self) -> None:
        self.paused = True
        if self.reset_on_pause:
            self.current_time = 0.0

    def advance(self, seconds: float) -> None:
        if not self.paused:
            self.current_time += seconds * self.rate


class FakeWistiaHandle:
    """The object Wistia hands to ``_wq`` onReady callbacks."""

    def __init__(self, video: FakeVideo):
        self.video = video

    def time(self) -> float:
        return self.video.current_time

    def play(self) -> None:
        self.video.play()

    def pause(self) -> None:
        self.video.pause()

    def is_paused(self) -> bool:
        return self.video.paused


class FakeElement:
    def __init__(self, name: str):
        self.name = name

    def __repr__(self) -> str:
        return f"FakeElement({self.name})"


class FakePage:
    """
    In-memory page.

    ``video`` is the native ``<video>`` element, visible from
    ``video_appears_at`` (virtual seconds). ``wistia_video`` backs a Wistia
    embed whose onReady callback fires at ``wistia_ready_at``.
    """

    def __init__(
        self,
        url: str = "https://example.com/",
        video: Optional[FakeVideo] = None,
        video_appears_at: float = 0.0,
        wistia_media_id: Optional[str] = None,
        wistia_video: Optional[FakeVideo] = None,
        wistia_ready_at: Optional[float] = None,
        wistia_api: bool = False,
        generic_container: bool = False,
        play_control: bool = False,
        reveal_video_on_click: bool = False,
        drop_records_on_play: bool = False,
        navigate_error: Optional[Exception] = None,
        title: str = "Fake page",
    ):
        self.url = url
        self.video = video
        self.video_appears_at = video_appears_at
        self.wistia_media_id = wistia_media_id
        self.wistia_video = wistia_video
        self.wistia_ready_at = wistia_ready_at
        self.wistia_api = wistia_api
        self.generic_container = generic_container
        self.play_control = play_control
        self.reveal_video_on_click = reveal_video_on_click
        self.drop_records_on_play = drop_records_on_play
        self.navigate_error = navigate_error
        self.title = title

    def surfaces(self) -> List[FakeVideo]:
        found = []
        for video in (self.video, self.wistia_video):
            if video is not None and video not in found:
                found.append(video)
        return found


class FakeSession(BrowserSession):
    """Browser session that evaluates probe scripts against a ``FakePage``."""

    def __init__(self, page: FakePage):
        self.page = page
        self.now = 0.0
        self.records: Dict[str, Dict[str, Any]] = {}
        self.calls: List[str] = []
        self.clicks: List[str] = []
        self.navigations: List[str] = []
        self.mutations = 0

        self._handlers = {
            scripts.INSPECT_PAGE: self._inspect_page,
            scripts.DETECT_NATIVE: self._detect_native,
            scripts.DETECT_WISTIA: self._detect_wistia,
            scripts.DETECT_SELECTOR: self._detect_selector,
            scripts.INSTALL_RECORD: self._install_record,
            scripts.RELEASE_RECORD: self._release_record,
            scripts.BIND_NATIVE: self._bind_native,
            scripts.INSTALL_WISTIA_HOOK: self._install_wistia_hook,
            scripts.WISTIA_READY: self._wistia_ready,
            scripts.WISTIA_API_BIND: self._wistia_api_bind,
            scripts.READ_TIME: self._read_time,
            scripts.PLAY: self._play,
            scripts.PAUSE: self._pause,
            scripts.IS_PAUSED: self._is_paused,
        }
        self._names = {
            script: name for name, script in vars(scripts).items() if isinstance(script, str)
        }

    @property
    def elapsed_ms(self) -> float:
        return self.now * 1000.0

    def clock(self) -> float:
        return self.now

    async def pause(self, ms: float) -> None:
        seconds = max(0.0, ms) / 1000.0
        for video in self.page.surfaces():
            video.advance(seconds)
        # Rounded so polling loops land exactly on their deadlines
        self.now = round(self.now + seconds, 9)
        await asyncio.sleep(0)

    async def navigate(self, url: str) -> None:
        self.navigations.append(url)
        if self.page.navigate_error is not None:
            raise self.page.navigate_error
        self.page.url = url

    async def get_current_url(self) -> str:
        return self.page.url

    async def execute_script(self, script: str, *args: Any) -> Any:
        handler = self._handlers.get(script)
        if handler is None:
            raise AssertionError(f"Unexpected script: {script[:60]}")
        self.calls.append(self._names.get(script, "?"))
        return handler(*args)

    async def find_element(self, selector: str) -> Optional[FakeElement]:
        page = self.page
        if selector == scripts.PLAY_CONTROL_SELECTOR and page.play_control:
            return FakeElement("play-control")
        if selector == scripts.WISTIA_CONTAINER_SELECTOR and page.wistia_media_id:
            return FakeElement("wistia-container")
        if selector == scripts.GENERIC_CONTAINER_SELECTOR and page.generic_container:
            return FakeElement("container")
        return None

    async def click(self, element: FakeElement) -> None:
        self.mutations += 1
        self.clicks.append(element.name)
        if self.page.reveal_video_on_click and self.page.video is not None:
            self.page.video_appears_at = min(self.page.video_appears_at, self.now)
        if element.name == "play-control" and self._native_visible():
            self.page.video.play()

    # Page model

    def _native_visible(self) -> bool:
        return self.page.video is not None and self.now >= self.page.video_appears_at

    def _record(self, probe_id: str) -> Optional[Dict[str, Any]]:
        return self.records.get(probe_id)

    def _surface(self, probe_id: str):
        rec = self._record(probe_id)
        if rec is None:
            raise RuntimeError("probe record missing")
        target = rec.get("video") or rec.get("el")
        if target is None:
            raise RuntimeError("no playback surface bound")
        return target

    # Script handlers

    def _inspect_page(self):
        return {
            "videos": 1 if self._native_visible() else 0,
            "iframes": 0,
            "wistiaPlayers": 1 if self.page.wistia_media_id else 0,
            "wistiaApi": self.page.wistia_api,
            "title": self.page.title,
        }

    def _detect_native(self):
        return self._native_visible()

    def _detect_wistia(self):
        return self.page.wistia_media_id

    def _detect_selector(self, selector):
        return self.page.generic_container

    def _install_record(self, probe_id, kind):
        self.mutations += 1
        if probe_id in self.records:
            return False
        self.records[probe_id] = {"kind": kind}
        return True

    def _release_record(self, probe_id):
        return self.records.pop(probe_id, None) is not None

    def _bind_native(self, probe_id):
        rec = self._record(probe_id)
        if rec is None:
            return False
        if "el" not in rec:
            if not self._native_visible():
                return False
            self.mutations += 1
            rec["el"] = self.page.video
            self.page.video.muted = True
        return True

    def _install_wistia_hook(self, probe_id, media_id):
        rec = self._record(probe_id)
        if rec is None:
            return False
        self.mutations += 1
        rec["media_id"] = media_id
        rec["hooked"] = True
        return True

    def _wistia_ready(self, probe_id):
        rec = self._record(probe_id)
        if rec is None:
            return False
        if rec.get("video") is None and rec.get("hooked"):
            ready_at = self.page.wistia_ready_at
            if ready_at is not None and self.now >= ready_at:
                rec["video"] = FakeWistiaHandle(self.page.wistia_video)
        return rec.get("video") is not None

    def _wistia_api_bind(self, probe_id):
        rec = self._record(probe_id)
        if rec is None or not rec.get("media_id") or not self.page.wistia_api:
            return False
        self.mutations += 1
        rec["video"] = FakeWistiaHandle(self.page.wistia_video)
        return True

    def _read_time(self, probe_id):
        rec = self._record(probe_id)
        if rec is None:
            return None
        if rec.get("video") is not None:
            return rec["video"].time()
        if rec.get("el") is not None:
            return rec["el"].current_time
        return None

    def _play(self, probe_id):
        self.mutations += 1
        self._surface(probe_id).play()
        if self.page.drop_records_on_play:
            self.records.clear()
        return True

    def _pause(self, probe_id):
        self.mutations += 1
        self._surface(probe_id).pause()
        return True

    def _is_paused(self, probe_id):
        rec = self._record(probe_id)
        if rec is None:
            return None
        if rec.get("video") is not None:
            return rec["video"].is_paused()
        if rec.get("el") is not None:
            return rec["el"].paused
        return None


@pytest.fixture
def temp_config(tmp_path: Path) -> Config:
    """Create a configuration rooted in a temporary directory."""
    config = Config()
    config.ci_mode = False
    config.headless_mode = True
    config.log_level = "DEBUG"
    config.project_root = tmp_path
    config.reports_dir = tmp_path / "reports"
    config.logs_dir = tmp_path / "logs"
    return config


@pytest.fixture
def native_page() -> FakePage:
    return FakePage(url="https://example.com/product", video=FakeVideo())


@pytest.fixture
def blank_page() -> FakePage:
    return FakePage(url="https://example.com/about")


@pytest.fixture
def wistia_page() -> FakePage:
    return FakePage(
        url="https://example.com/tour",
        wistia_media_id="abc123xyz",
        wistia_video=FakeVideo(),
        wistia_ready_at=0.5,
    )


@pytest.fixture
def blocked_page() -> FakePage:
    return FakePage(url="https://example.com/blocked", video=FakeVideo(blocked=True))


@pytest.fixture
def generic_page() -> FakePage:
    return FakePage(
        url="https://example.com/embed",
        video=FakeVideo(),
        video_appears_at=float("inf"),
        generic_container=True,
        reveal_video_on_click=True,
    )
