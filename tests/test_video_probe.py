"""
Unit tests for the video probe.

Runs the full probe against the fake session from conftest: native, Wistia,
generic and blocked players, plus the timeout and input validation paths.
"""

import asyncio
import logging

import pytest

from webprobe.browser.session import BrowserSession
from webprobe.core.exceptions import ProbeInputError
from webprobe.probe import scripts
from webprobe.probe import (
    FailureReason,
    PlayerKind,
    ProbeOptions,
    ProbeTimings,
    VideoProbe,
    probe_video,
)

from conftest import FakePage, FakeSession, FakeVideo


def _max_runtime_ms(detection_timeout_ms: int) -> float:
    return ProbeTimings().total_budget_ms(detection_timeout_ms)


class TestNativeVideo:
    """Pages with a plain <video> element."""

    @pytest.mark.asyncio
    async def test_playing_video_is_reported_as_played(self, native_page):
        session = FakeSession(native_page)

        result = await probe_video(session, target_url="https://example.com/product")

        assert result.played is True
        assert result.player_kind is PlayerKind.NATIVE
        assert result.failure_reason is None
        assert result.skipped is False
        assert result.delta >= 0.1
        assert result.delta == pytest.approx(2.7)
        assert result.paused_after is True
        assert result.url == "https://example.com/product"
        assert session.navigations == ["https://example.com/product"]

    @pytest.mark.asyncio
    async def test_video_is_muted_and_paused_afterwards(self, native_page):
        session = FakeSession(native_page)

        await probe_video(session)

        assert native_page.video.muted is True
        assert native_page.video.paused is True

    @pytest.mark.asyncio
    async def test_current_page_is_probed_without_target_url(self, native_page):
        session = FakeSession(native_page)

        result = await probe_video(session)

        assert session.navigations == []
        assert result.url == "https://example.com/product"
        assert result.played is True

    @pytest.mark.asyncio
    async def test_play_control_is_clicked_before_play(self):
        page = FakePage(video=FakeVideo(), play_control=True)
        session = FakeSession(page)

        result = await probe_video(session)

        assert "play-control" in session.clicks
        assert result.played is True
        assert result.diagnostics["activated"] is True

    @pytest.mark.asyncio
    async def test_blocked_autoplay_reports_no_progress(self, blocked_page):
        session = FakeSession(blocked_page)

        result = await probe_video(session)

        assert result.played is False
        assert result.player_kind is PlayerKind.NATIVE
        assert result.failure_reason is FailureReason.NO_PROGRESS
        assert result.delta == 0
        assert result.skipped is True
        assert result.diagnostics["grace_resample"] is True

    @pytest.mark.asyncio
    async def test_blocked_autoplay_in_strict_mode_fails(self, blocked_page):
        session = FakeSession(blocked_page)

        result = await probe_video(session, strict_mode=True)

        assert result.played is False
        assert result.skipped is False
        assert result.failure_reason is FailureReason.NO_PROGRESS
        assert result.status == "failed"

    @pytest.mark.asyncio
    async def test_backwards_position_is_no_progress(self, caplog):
        page = FakePage(video=FakeVideo(current_time=5.0, reset_on_pause=True))
        session = FakeSession(page)

        with caplog.at_level(logging.WARNING, logger="webprobe.probe.probe"):
            result = await probe_video(session)

        assert result.played is False
        assert result.delta < 0
        assert result.delta == result.time_after - result.time_before
        assert result.failure_reason is FailureReason.NO_PROGRESS
        assert any(record.levelno == logging.WARNING for record in caplog.records)

    @pytest.mark.asyncio
    async def test_vanished_record_reports_probe_missing(self):
        page = FakePage(video=FakeVideo(), drop_records_on_play=True)
        session = FakeSession(page)

        result = await probe_video(session)

        assert result.played is False
        assert result.failure_reason is FailureReason.PROBE_MISSING
        assert any(error["step"] == "pause" for error in result.diagnostics["step_errors"])

    @pytest.mark.asyncio
    async def test_tiny_progress_below_threshold_is_no_progress(self):
        page = FakePage(video=FakeVideo(rate=0.01))
        session = FakeSession(page)

        result = await probe_video(session)

        assert 0 < result.delta < 0.1
        assert result.played is False
        assert result.failure_reason is FailureReason.NO_PROGRESS


class TestNoPlayer:
    """Pages without any recognisable player."""

    @pytest.mark.asyncio
    async def test_blank_page_is_skipped_when_not_strict(self, blank_page):
        session = FakeSession(blank_page)

        result = await probe_video(session, player_detection_timeout_ms=2000)

        assert result.player_kind is PlayerKind.NONE
        assert result.played is False
        assert result.failure_reason is FailureReason.PLAYER_NOT_FOUND
        assert result.skipped is True
        assert result.delta == 0

    @pytest.mark.asyncio
    async def test_blank_page_returns_within_detection_timeout(self, blank_page):
        session = FakeSession(blank_page)

        await probe_video(session, player_detection_timeout_ms=2000)

        assert session.elapsed_ms <= 2000 + 1e-6

    @pytest.mark.asyncio
    async def test_blank_page_is_not_mutated(self, blank_page):
        session = FakeSession(blank_page)

        await probe_video(session, player_detection_timeout_ms=1000)

        assert session.mutations == 0
        assert session.records == {}
        assert session.clicks == []

    @pytest.mark.asyncio
    async def test_zero_timeout_checks_once(self, blank_page):
        session = FakeSession(blank_page)

        result = await probe_video(session, player_detection_timeout_ms=0)

        assert result.diagnostics["detection_polls"] == 1
        assert session.elapsed_ms == 0

    @pytest.mark.asyncio
    async def test_player_appearing_late_is_found(self):
        page = FakePage(video=FakeVideo(), video_appears_at=1.0)
        session = FakeSession(page)

        result = await probe_video(session, player_detection_timeout_ms=5000)

        assert result.played is True
        assert result.diagnostics["detection_polls"] > 1

    @pytest.mark.asyncio
    async def test_navigation_failure_is_interaction_error(self):
        page = FakePage(navigate_error=RuntimeError("net::ERR_NAME_NOT_RESOLVED"))
        session = FakeSession(page)

        result = await probe_video(session, target_url="https://missing.invalid/")

        assert result.player_kind is PlayerKind.NONE
        assert result.failure_reason is FailureReason.INTERACTION_ERROR
        assert result.diagnostics["step_errors"][0]["step"] == "navigate"


class TestWistia:
    """Wistia embeds: readiness queue, native fallback and API retry."""

    @pytest.mark.asyncio
    async def test_ready_embed_is_played(self, wistia_page):
        session = FakeSession(wistia_page)

        result = await probe_video(session)

        assert result.played is True
        assert result.player_kind is PlayerKind.EMBEDDED
        assert result.diagnostics["adapter"] == "wistia"
        assert result.diagnostics["detection"]["media_id"] == "abc123xyz"
        assert result.diagnostics["surface"] == "wistia"
        assert result.paused_after is True

    @pytest.mark.asyncio
    async def test_native_fallback_when_never_ready(self):
        page = FakePage(
            wistia_media_id="abc123xyz",
            video=FakeVideo(),
            video_appears_at=1.0,
            wistia_ready_at=None,
        )
        session = FakeSession(page)

        result = await probe_video(session)

        assert result.played is True
        assert result.player_kind is PlayerKind.EMBEDDED
        assert result.diagnostics["surface"] == "native-fallback"

    @pytest.mark.asyncio
    async def test_api_retry_rescues_unready_embed(self):
        page = FakePage(
            wistia_media_id="abc123xyz",
            wistia_video=FakeVideo(),
            wistia_ready_at=None,
            wistia_api=True,
        )
        session = FakeSession(page)

        result = await probe_video(session)

        assert result.played is True
        assert result.delta == pytest.approx(1.6)
        assert result.diagnostics["api_retry"] == "completed"
        assert "retrying-via-api" in result.diagnostics["states"]

    @pytest.mark.asyncio
    async def test_unready_embed_without_api_times_out(self):
        page = FakePage(
            wistia_media_id="abc123xyz",
            wistia_video=FakeVideo(),
            wistia_ready_at=None,
        )
        session = FakeSession(page)

        result = await probe_video(session, strict_mode=True)

        assert result.played is False
        assert result.player_kind is PlayerKind.EMBEDDED
        assert result.failure_reason is FailureReason.PROBE_TIMEOUT
        assert result.diagnostics["api_retry"] == "unavailable"
        assert result.skipped is False

    @pytest.mark.asyncio
    async def test_blocked_embed_retries_via_api(self):
        page = FakePage(
            wistia_media_id="abc123xyz",
            wistia_video=FakeVideo(blocked=True),
            wistia_ready_at=0.0,
            wistia_api=True,
        )
        session = FakeSession(page)

        result = await probe_video(session)

        assert result.played is False
        assert result.failure_reason is FailureReason.NO_PROGRESS
        assert result.diagnostics["api_retry"] == "completed"


class TestGenericContainer:
    """Containers that render a <video> once clicked."""

    @pytest.mark.asyncio
    async def test_container_click_reveals_playing_video(self, generic_page):
        session = FakeSession(generic_page)

        result = await probe_video(session)

        assert "container" in session.clicks
        assert result.played is True
        assert result.player_kind is PlayerKind.EMBEDDED
        assert result.diagnostics["adapter"] == "generic-container"

    @pytest.mark.asyncio
    async def test_slow_container_playback_is_below_threshold(self):
        page = FakePage(
            video=FakeVideo(rate=0.3),
            video_appears_at=float("inf"),
            generic_container=True,
            reveal_video_on_click=True,
        )
        session = FakeSession(page)

        result = await probe_video(session)

        # 0.81s of playback clears the native threshold but not 90% of the window
        assert result.delta == pytest.approx(0.81)
        assert result.played is False
        assert result.failure_reason is FailureReason.NO_PROGRESS

    @pytest.mark.asyncio
    async def test_container_without_video_times_out(self):
        page = FakePage(generic_container=True)
        session = FakeSession(page)

        result = await probe_video(session)

        assert result.failure_reason is FailureReason.PROBE_TIMEOUT
        assert result.player_kind is PlayerKind.EMBEDDED


class TestProbeGuarantees:
    """Properties that hold for every invocation."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "page_fixture",
        ["native_page", "blank_page", "wistia_page", "blocked_page", "generic_page"],
    )
    async def test_runtime_is_bounded(self, page_fixture, request):
        session = FakeSession(request.getfixturevalue(page_fixture))

        await probe_video(session, player_detection_timeout_ms=3000)

        assert session.elapsed_ms <= _max_runtime_ms(3000)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "page_fixture",
        ["native_page", "blank_page", "wistia_page", "blocked_page", "generic_page"],
    )
    async def test_result_is_consistent(self, page_fixture, request):
        session = FakeSession(request.getfixturevalue(page_fixture))

        result = await probe_video(session, player_detection_timeout_ms=1000)

        assert result.delta == result.time_after - result.time_before
        assert result.played != (result.failure_reason is not None)
        assert result.skipped == (not result.played)
        if result.player_kind is PlayerKind.NONE:
            assert result.played is False

    @pytest.mark.asyncio
    async def test_repeated_probes_use_separate_records(self, native_page):
        session = FakeSession(native_page)
        probe = VideoProbe(session)

        first = await probe.run()
        second = await probe.run()

        assert first.diagnostics["probe_id"] != second.diagnostics["probe_id"]
        assert first.played and second.played
        assert session.records == {}

    @pytest.mark.asyncio
    async def test_states_are_traversed_in_order(self, native_page):
        session = FakeSession(native_page)

        result = await probe_video(session, target_url="https://example.com/product")

        assert result.diagnostics["states"] == [
            "idle",
            "navigating",
            "detecting",
            "instrumenting",
            "observing",
            "resolved",
        ]

    @pytest.mark.asyncio
    async def test_hung_browser_resolves_as_timeout(self):
        class HangingSession(BrowserSession):
            async def navigate(self, url):
                return None

            async def get_current_url(self):
                return "https://example.com/hang"

            async def execute_script(self, script, *args):
                await asyncio.Event().wait()

            async def pause(self, ms):
                await asyncio.sleep(ms / 1000.0)

        timings = ProbeTimings(
            ready_timeout_ms=0,
            play_window_ms=0,
            settle_window_ms=0,
            result_poll_timeout_ms=0,
            grace_pause_ms=0,
            api_retry_window_ms=0,
            api_retry_slack_ms=0,
            overhead_ms=100,
            round_trip_timeout_ms=60000,
        )

        result = await VideoProbe(HangingSession(), timings=timings).run(
            player_detection_timeout_ms=0
        )

        assert result.played is False
        assert result.failure_reason is FailureReason.PROBE_TIMEOUT
        assert result.diagnostics["timed_out"] is True
        assert result.url == "https://example.com/hang"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("stalled_pauses, paused", [(1, True), (2, False)])
    async def test_timed_out_run_releases_its_record(self, native_page, stalled_pauses, paused):
        class StallingSession(FakeSession):
            """Pause requests hang until ``stalled_pauses`` of them were sent."""

            def __init__(self, page):
                super().__init__(page)
                self.pause_requests = 0

            async def execute_script(self, script, *args):
                if script == scripts.PAUSE:
                    self.pause_requests += 1
                    if self.pause_requests <= stalled_pauses:
                        await asyncio.Event().wait()
                return await super().execute_script(script, *args)

        timings = ProbeTimings(
            ready_timeout_ms=0,
            play_window_ms=0,
            settle_window_ms=0,
            result_poll_timeout_ms=0,
            grace_pause_ms=0,
            api_retry_window_ms=0,
            api_retry_slack_ms=0,
            overhead_ms=200,
            round_trip_timeout_ms=60000,
            cleanup_timeout_ms=50,
        )
        session = StallingSession(native_page)

        result = await VideoProbe(session, timings=timings).run(player_detection_timeout_ms=0)

        assert result.failure_reason is FailureReason.PROBE_TIMEOUT
        assert session.pause_requests == 2
        assert session.records == {}
        assert native_page.video.paused is paused


class TestProbeInput:
    """Caller input errors are raised before the probe starts."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "url", ["ftp://example.com/video", "not a url", "/relative/path", "https://"]
    )
    async def test_invalid_url_raises(self, url, native_page):
        session = FakeSession(native_page)

        with pytest.raises(ProbeInputError) as exc_info:
            await probe_video(session, target_url=url)

        assert exc_info.value.field_name == "target_url"
        assert session.calls == []

    @pytest.mark.asyncio
    async def test_negative_timeout_raises(self, native_page):
        with pytest.raises(ProbeInputError):
            await probe_video(FakeSession(native_page), player_detection_timeout_ms=-1)

    @pytest.mark.asyncio
    async def test_unknown_option_raises(self, native_page):
        with pytest.raises(ProbeInputError):
            await probe_video(FakeSession(native_page), {"wait_ms": 100})

    @pytest.mark.asyncio
    async def test_options_model_is_accepted(self, native_page):
        options = ProbeOptions(player_detection_timeout_ms=500, strict_mode=True)

        result = await VideoProbe(FakeSession(native_page)).run(options)

        assert result.strict_mode is True
        assert result.played is True
