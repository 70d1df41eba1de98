"""
Video playback probe.

Decides whether a video on the current page actually plays: find a player,
start it, measure how far its playback position advances over a fixed
window, pause it, and report a ``ProbeResult``. Every wait is bounded, every
browser round-trip is wrapped into a ``StepResult``, and the whole invocation
runs under one outer deadline, so the probe always returns a result once
input validation has passed.
"""

import asyncio
import logging
import uuid
from typing import Any, Awaitable, Dict, Iterable, List, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from ..browser.session import BrowserSession
from ..core.exceptions import ProbeInputError
from . import scripts
from .adapters import PlayerAdapter, default_adapters
from .models import (
    FailureReason,
    PlayerKind,
    ProbeOptions,
    ProbeResult,
    ProbeState,
    ProbeTimings,
    StepError,
    StepResult,
)


OptionsInput = Union[ProbeOptions, Dict[str, Any], None]


def coerce_options(options: OptionsInput = None, **overrides) -> ProbeOptions:
    """
    Turn caller input into ``ProbeOptions``.

    Raises:
        ProbeInputError: If the input cannot describe a probe
    """
    if isinstance(options, ProbeOptions) and not overrides:
        return options

    if isinstance(options, ProbeOptions):
        data = options.model_dump()
    elif isinstance(options, dict):
        data = dict(options)
    elif options is None:
        data = {}
    else:
        raise ProbeInputError(
            f"Unsupported probe options type: {type(options).__name__}",
            field_name="options",
            value=repr(options),
        )

    data.update(overrides)

    try:
        return ProbeOptions(**data)
    except PydanticValidationError as e:
        first = e.errors()[0]
        field_name = ".".join(str(part) for part in first.get("loc", ())) or None
        raise ProbeInputError(
            f"Invalid probe options: {first.get('msg')}",
            field_name=field_name,
            value=data.get(field_name) if field_name else None,
        )


class ProbeRun:
    """Bookkeeping for one probe invocation."""

    def __init__(self, probe_id: str, options: ProbeOptions, started_at: float):
        self.probe_id = probe_id
        self.options = options
        self.started_at = started_at
        self.url = options.target_url or ""
        self.state = ProbeState.IDLE
        self.states: List[str] = [ProbeState.IDLE.value]

        self.adapter: Optional[PlayerAdapter] = None
        self.detection: Optional[Dict[str, Any]] = None
        self.record_installed = False

        self.time_before: Optional[float] = None
        self.time_after: Optional[float] = None
        self.samples: List[float] = []
        self.paused_after = False
        self.failure_hint: Optional[FailureReason] = None

        self.step_errors: List[StepError] = []
        self.last_poll_error: Optional[StepError] = None
        self.details: Dict[str, Any] = {}

    def transition(self, state: ProbeState) -> None:
        self.state = state
        self.states.append(state.value)

    @property
    def measured(self) -> bool:
        return self.time_before is not None and self.time_after is not None

    def advanced(self) -> bool:
        """Whether any sample taken after play is ahead of the first one."""
        if self.time_before is None:
            return False
        later = [*self.samples]
        if self.time_after is not None:
            later.append(self.time_after)
        return any(sample > self.time_before for sample in later)

    def record_measurement(self, before: float, after: float, samples: Iterable[float] = ()) -> None:
        self.time_before = before
        self.time_after = after
        self.samples = list(samples)
        self.failure_hint = None


class VideoProbe:
    """
    Probe a page for a playable video.

    The session is used exclusively for the duration of ``run``; callers that
    share a session must serialize probe invocations.
    """

    def __init__(
        self,
        session: BrowserSession,
        adapters: Optional[Iterable[PlayerAdapter]] = None,
        timings: Optional[ProbeTimings] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.session = session
        self.adapters = list(adapters) if adapters is not None else default_adapters()
        self.timings = timings or ProbeTimings()
        self.logger = logger or logging.getLogger(__name__)

    async def run(self, options: OptionsInput = None, **overrides) -> ProbeResult:
        """
        Run one probe.

        Args:
            options: ``ProbeOptions`` or a dict of its fields
            **overrides: Individual option fields

        Returns:
            The probe result; failures are reported in it rather than raised

        Raises:
            ProbeInputError: If the options are invalid
        """
        options = coerce_options(options, **overrides)
        run = ProbeRun(uuid.uuid4().hex, options, self.session.clock())
        budget_ms = self.timings.total_budget_ms(options.player_detection_timeout_ms)

        self.logger.info(
            f"Video probe started: {run.url or 'current page'}",
            extra={
                "probe_id": run.probe_id,
                "metadata": {
                    "strict_mode": options.strict_mode,
                    "detection_timeout_ms": options.player_detection_timeout_ms,
                    "budget_ms": budget_ms,
                },
            },
        )

        interrupted = True
        try:
            await asyncio.wait_for(self._execute(run), timeout=budget_ms / 1000.0)
            interrupted = False
        except asyncio.TimeoutError:
            self.logger.warning(
                f"Video probe exceeded its {budget_ms}ms budget in state {run.state.value}",
                extra={"probe_id": run.probe_id, "url": run.url},
            )
            run.details["timed_out"] = True
            run.failure_hint = FailureReason.PROBE_TIMEOUT
        except Exception as e:
            self.logger.error(
                f"Video probe aborted in state {run.state.value}: {e}",
                exc_info=True,
                extra={"probe_id": run.probe_id, "url": run.url},
            )
            run.step_errors.append(StepResult.failure(run.state.value, e).error)
            run.failure_hint = FailureReason.INTERACTION_ERROR

        await self._release(run, interrupted)
        return self._resolve(run)

    async def _execute(self, run: ProbeRun) -> None:
        if run.options.target_url:
            run.transition(ProbeState.NAVIGATING)
            nav = await self._step(run, "navigate", self.session.navigate(run.options.target_url))
            if not nav.ok:
                self.logger.warning(
                    f"Navigation failed: {nav.error.message}",
                    extra={"probe_id": run.probe_id, "url": run.url},
                )
                run.failure_hint = FailureReason.INTERACTION_ERROR
                return

        current = await self._step(run, "current_url", self.session.get_current_url())
        if current.ok and current.value:
            run.url = current.value

        run.transition(ProbeState.DETECTING)
        if not await self._detect(run):
            self.logger.info(
                f"No video player found within {run.options.player_detection_timeout_ms}ms",
                extra={"probe_id": run.probe_id, "url": run.url},
            )
            run.failure_hint = FailureReason.PLAYER_NOT_FOUND
            return

        run.transition(ProbeState.INSTRUMENTING)
        if await self._instrument(run):
            run.transition(ProbeState.OBSERVING)
            await self._observe(run)

        if (
            run.record_installed
            and run.adapter.supports_api_retry
            and not self._progressed(run)
        ):
            run.transition(ProbeState.RETRYING_VIA_API)
            await self._retry_via_api(run)

    async def _release(self, run: ProbeRun, interrupted: bool) -> None:
        """Drop the page record; an interrupted run also gets a last pause."""
        if not run.record_installed:
            return
        timeout_ms = self.timings.cleanup_timeout_ms

        if interrupted:
            await self._step(
                run,
                "cleanup_pause",
                run.adapter.pause(self.session, run.probe_id),
                timeout_ms=timeout_ms,
            )

        released = await self._step(
            run,
            "release",
            self.session.execute_script(scripts.RELEASE_RECORD, run.probe_id),
            timeout_ms=timeout_ms,
        )
        if released.ok:
            run.record_installed = False

    async def _detect(self, run: ProbeRun) -> bool:
        polls = 0

        async def found() -> bool:
            nonlocal polls
            polls += 1
            for adapter in self.adapters:
                step = await self._step(
                    run, f"detect:{adapter.name}", adapter.detect(self.session), record=False
                )
                if step.ok and step.value:
                    run.adapter = adapter
                    run.detection = step.value
                    return True
            return False

        detected = await self.session.wait_until(
            found,
            timeout_ms=run.options.player_detection_timeout_ms,
            interval_ms=self.timings.poll_interval_ms,
        )
        run.details["detection_polls"] = polls

        page = await self._step(run, "inspect_page", self.session.execute_script(scripts.INSPECT_PAGE))
        if page.ok and page.value:
            run.details["page"] = page.value

        if detected:
            self.logger.debug(
                f"Detected {run.adapter.name} player after {polls} poll(s)",
                extra={"probe_id": run.probe_id, "metadata": run.detection},
            )
        return detected

    async def _instrument(self, run: ProbeRun) -> bool:
        adapter = run.adapter
        installed = await self._step(
            run,
            "install_record",
            self.session.execute_script(scripts.INSTALL_RECORD, run.probe_id, adapter.kind.value),
        )
        if not (installed.ok and installed.value):
            run.failure_hint = FailureReason.INTERACTION_ERROR
            return False
        run.record_installed = True

        prepared = await self._step(
            run, "prepare", adapter.prepare(self.session, run.probe_id, run.detection)
        )
        run.details["prepared"] = bool(prepared.unwrap_or(False))

        async def ready() -> bool:
            step = await self._step(
                run, "ready", adapter.is_ready(self.session, run.probe_id), record=False
            )
            return bool(step.unwrap_or(False))

        if await self.session.wait_until(
            ready,
            timeout_ms=self.timings.ready_timeout_ms,
            interval_ms=self.timings.poll_interval_ms,
        ):
            run.details["surface"] = adapter.name
            return True

        fallback = await self._step(
            run, "bind_fallback", adapter.bind_fallback(self.session, run.probe_id)
        )
        if fallback.ok and fallback.value:
            self.logger.info(
                f"{adapter.name} player never reported ready; using its <video> element",
                extra={"probe_id": run.probe_id, "url": run.url},
            )
            run.details["surface"] = "native-fallback"
            return True

        self.logger.warning(
            f"{adapter.name} player not ready after {self.timings.ready_timeout_ms}ms",
            extra={"probe_id": run.probe_id, "url": run.url},
        )
        run.failure_hint = FailureReason.PROBE_TIMEOUT
        return False

    async def _observe(self, run: ProbeRun) -> None:
        adapter = run.adapter
        session = self.session
        probe_id = run.probe_id
        timings = self.timings

        before = await self._step(run, "time_before", adapter.current_time(session, probe_id))
        if not before.ok or before.value is None:
            run.failure_hint = FailureReason.PROBE_MISSING
            return

        activated = await self._step(run, "activate", adapter.activate(session))
        run.details["activated"] = bool(activated.unwrap_or(False))
        await self._step(run, "play", adapter.play(session, probe_id))

        samples = []
        await session.pause(timings.play_window_ms)
        sample = await self._step(run, "time_sample", adapter.current_time(session, probe_id))
        if sample.ok and sample.value is not None:
            samples.append(sample.value)

        await session.pause(timings.settle_window_ms)
        await self._step(run, "pause", adapter.pause(session, probe_id))

        after = await self._poll_time(run)
        if after is None:
            run.time_before = before.value
            run.failure_hint = FailureReason.PROBE_MISSING
            return
        run.record_measurement(before.value, after, samples)

        if not self._progressed(run):
            # Slow players may start late; give them one more window
            await session.pause(timings.grace_pause_ms)
            late = await self._step(run, "time_resample", adapter.current_time(session, probe_id))
            if late.ok and late.value is not None and late.value > run.time_after:
                run.time_after = late.value
            await self._step(run, "pause_resample", adapter.pause(session, probe_id))
            run.details["grace_resample"] = True

        paused = await self._step(run, "is_paused", adapter.is_paused(session, probe_id))
        run.paused_after = bool(paused.unwrap_or(False))

    async def _poll_time(self, run: ProbeRun) -> Optional[float]:
        sample: Dict[str, float] = {}

        async def available() -> bool:
            step = await self._step(
                run,
                "time_after",
                run.adapter.current_time(self.session, run.probe_id),
                record=False,
            )
            if step.ok and step.value is not None:
                sample["value"] = step.value
                return True
            return False

        await self.session.wait_until(
            available,
            timeout_ms=self.timings.result_poll_timeout_ms,
            interval_ms=self.timings.result_poll_interval_ms,
        )
        return sample.get("value")

    async def _retry_via_api(self, run: ProbeRun) -> None:
        adapter = run.adapter
        session = self.session
        probe_id = run.probe_id
        run.details["api_retry"] = "attempted"

        bound = await self._step(run, "api_bind", adapter.retry_via_api(session, probe_id))
        if not (bound.ok and bound.value):
            run.details["api_retry"] = "unavailable"
            self.logger.info(
                f"{adapter.name} API not available for retry",
                extra={"probe_id": probe_id, "url": run.url},
            )
            return

        before = await self._step(run, "api_time_before", adapter.current_time(session, probe_id))
        await self._step(run, "api_play", adapter.play(session, probe_id))
        await session.pause(self.timings.api_retry_window_ms)
        after = await self._step(run, "api_time_after", adapter.current_time(session, probe_id))
        await self._step(run, "api_pause", adapter.pause(session, probe_id))
        await session.pause(self.timings.api_retry_slack_ms)

        if before.value is None or after.value is None:
            run.details["api_retry"] = "no-sample"
            return

        run.record_measurement(before.value, after.value)
        paused = await self._step(run, "api_is_paused", adapter.is_paused(session, probe_id))
        run.paused_after = bool(paused.unwrap_or(False))
        run.details["api_retry"] = "completed"

    def _progressed(self, run: ProbeRun) -> bool:
        if run.adapter is None or not run.measured:
            return False
        threshold = run.adapter.progress_threshold(self.timings)
        return run.advanced() and (run.time_after - run.time_before) > threshold

    async def _step(
        self,
        run: ProbeRun,
        name: str,
        awaitable: Awaitable[Any],
        record: bool = True,
        timeout_ms: Optional[int] = None,
    ) -> StepResult:
        """Await one round-trip, converting any failure into a ``StepResult``."""
        timeout_ms = timeout_ms or self.timings.round_trip_timeout_ms
        try:
            value = await asyncio.wait_for(awaitable, timeout=timeout_ms / 1000.0)
        except Exception as e:
            result = StepResult.failure(name, e)
            if record:
                run.step_errors.append(result.error)
                self.logger.debug(
                    f"Probe step {name} failed: {result.error.message}",
                    extra={"probe_id": run.probe_id},
                )
            else:
                run.last_poll_error = result.error
            return result
        return StepResult.success(value)

    def _resolve(self, run: ProbeRun) -> ProbeResult:
        run.transition(ProbeState.RESOLVED)
        adapter = run.adapter
        kind = adapter.kind if adapter is not None else PlayerKind.NONE

        before = run.time_before if run.time_before is not None else 0.0
        after = run.time_after if run.time_after is not None else before
        delta = after - before
        if delta < 0:
            self.logger.warning(
                f"Playback position went backwards ({before:.3f}s -> {after:.3f}s)",
                extra={"probe_id": run.probe_id, "url": run.url},
            )

        reason = run.failure_hint
        played = reason is None and self._progressed(run)
        if not played and reason is None:
            reason = (
                FailureReason.NO_PROGRESS if adapter is not None else FailureReason.PLAYER_NOT_FOUND
            )

        duration_ms = (self.session.clock() - run.started_at) * 1000.0
        result = ProbeResult.build(
            url=run.url,
            player_kind=kind,
            played=played,
            strict_mode=run.options.strict_mode,
            time_before=before,
            time_after=after,
            paused_after=run.paused_after,
            failure_reason=reason,
            diagnostics=self._diagnostics(run, duration_ms),
        )

        log = self.logger.info if played or result.skipped else self.logger.warning
        log(
            f"Video probe {result.status}: {result.url or 'current page'}"
            f" kind={kind.value} delta={delta:.3f}s"
            + (f" reason={reason.value}" if reason else ""),
            extra={
                "probe_id": run.probe_id,
                "url": result.url,
                "status": result.status,
                "duration": duration_ms / 1000.0,
            },
        )
        return result

    def _diagnostics(self, run: ProbeRun, duration_ms: float) -> Dict[str, Any]:
        diagnostics: Dict[str, Any] = {
            "probe_id": run.probe_id,
            "states": list(run.states),
            "duration_ms": round(duration_ms, 1),
        }
        if run.adapter is not None:
            diagnostics["adapter"] = run.adapter.name
            diagnostics["threshold"] = run.adapter.progress_threshold(self.timings)
        if run.detection:
            diagnostics["detection"] = dict(run.detection)
        if run.samples:
            diagnostics["samples"] = list(run.samples)
        if run.step_errors:
            diagnostics["step_errors"] = [error.to_dict() for error in run.step_errors]
        if run.last_poll_error is not None:
            diagnostics["last_poll_error"] = run.last_poll_error.to_dict()
        diagnostics.update(run.details)
        return diagnostics


async def probe_video(
    session: BrowserSession,
    options: OptionsInput = None,
    adapters: Optional[Iterable[PlayerAdapter]] = None,
    timings: Optional[ProbeTimings] = None,
    **overrides,
) -> ProbeResult:
    """Run a single probe against ``session``. See ``VideoProbe.run``."""
    return await VideoProbe(session, adapters=adapters, timings=timings).run(
        options, **overrides
    )
