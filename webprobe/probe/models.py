"""
Data models for the video playback probe.

Defines the probe's inputs, its per-step outcomes, the timing table that
bounds every phase, and the immutable ``ProbeResult`` returned to callers.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Generic, Optional, TypeVar
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, model_validator, validator


T = TypeVar("T")


class PlayerKind(Enum):
    """Kind of player the probe found on the page."""

    NONE = "none"
    NATIVE = "native"
    EMBEDDED = "embedded-third-party"


class FailureReason(Enum):
    """Why a probe did not observe playback."""

    PLAYER_NOT_FOUND = "player-not-found"
    PROBE_TIMEOUT = "probe-timeout"
    PROBE_MISSING = "probe-missing"
    NO_PROGRESS = "no-progress"
    INTERACTION_ERROR = "interaction-error"


class ProbeState(Enum):
    """Phases of a single probe invocation."""

    IDLE = "idle"
    NAVIGATING = "navigating"
    DETECTING = "detecting"
    INSTRUMENTING = "instrumenting"
    OBSERVING = "observing"
    RETRYING_VIA_API = "retrying-via-api"
    RESOLVED = "resolved"


DEFAULT_DETECTION_TIMEOUT_MS = 12000


class ProbeOptions(BaseModel):
    """Inputs for one probe invocation."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    target_url: Optional[str] = Field(
        None, description="Page to load first; the current page is probed when omitted"
    )
    player_detection_timeout_ms: int = Field(
        DEFAULT_DETECTION_TIMEOUT_MS,
        ge=0,
        description="How long to poll for a player before giving up",
    )
    strict_mode: bool = Field(
        False, description="When false, a failed probe is reported as skipped"
    )

    @validator("target_url")
    def validate_target_url(cls, v):
        """Only absolute http(s) URLs can be navigated to."""
        if v is None:
            return v
        parsed = urlparse(v)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError(f"target_url must be an absolute http(s) URL: {v}")
        return v


class ProbeTimings(BaseModel):
    """
    Fixed pacing of the probe, in milliseconds.

    Every phase after detection is bounded by one of these values, so a probe
    can never take longer than ``player_detection_timeout_ms`` plus
    ``observation_budget_ms``, followed by at most two cleanup round-trips of
    ``cleanup_timeout_ms`` each.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    poll_interval_ms: int = Field(300, gt=0, description="Detection poll interval")
    ready_timeout_ms: int = Field(
        4000, ge=0, description="Grace window for a player to report readiness"
    )
    play_window_ms: int = Field(1200, ge=0, description="Playback time before sampling")
    settle_window_ms: int = Field(1500, ge=0, description="Extra time before pausing")
    result_poll_timeout_ms: int = Field(
        10000, ge=0, description="How long to wait for the final time sample"
    )
    result_poll_interval_ms: int = Field(400, gt=0, description="Result poll interval")
    grace_pause_ms: int = Field(
        1800, ge=0, description="One extra wait for slow players before re-sampling"
    )
    api_retry_window_ms: int = Field(
        1600, ge=0, description="Playback time of the direct API retry"
    )
    api_retry_slack_ms: int = Field(400, ge=0, description="Settle time after the retry")
    round_trip_timeout_ms: int = Field(
        5000, gt=0, description="Upper bound for a single browser round-trip"
    )
    overhead_ms: int = Field(
        5000, ge=0, description="Allowance for round-trips between fixed waits"
    )
    cleanup_timeout_ms: int = Field(
        1000, gt=0, description="Bound for each round-trip that releases the page record"
    )

    @property
    def observation_budget_ms(self) -> int:
        """Worst-case duration of everything after detection."""
        return (
            self.ready_timeout_ms
            + self.play_window_ms
            + self.settle_window_ms
            + self.result_poll_timeout_ms
            + self.grace_pause_ms
            + self.api_retry_window_ms
            + self.api_retry_slack_ms
            + self.overhead_ms
        )

    def total_budget_ms(self, detection_timeout_ms: int) -> int:
        return detection_timeout_ms + self.observation_budget_ms


class ProbeResult(BaseModel):
    """Outcome of one probe invocation. Immutable once built."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    url: str = Field(..., description="Page the probe ran against")
    player_kind: PlayerKind = Field(..., description="Kind of player detected")
    played: bool = Field(..., description="Whether playback progress was observed")
    time_before: float = Field(0.0, description="Playback position before play")
    time_after: float = Field(0.0, description="Playback position after pause")
    delta: float = Field(0.0, description="time_after - time_before")
    paused_after: bool = Field(False, description="Whether the player ended paused")
    strict_mode: bool = Field(False, description="Strict mode the probe ran with")
    skipped: bool = Field(False, description="Non-strict failure, reported as skipped")
    failure_reason: Optional[FailureReason] = Field(
        None, description="Why playback was not observed"
    )
    diagnostics: Dict[str, Any] = Field(
        default_factory=dict, description="Free-form detail for troubleshooting"
    )

    @model_validator(mode="after")
    def check_consistency(self):
        if self.delta != self.time_after - self.time_before:
            raise ValueError("delta must equal time_after - time_before")
        if self.played == (self.failure_reason is not None):
            raise ValueError("exactly one of played or failure_reason must be set")
        if self.skipped != (not self.strict_mode and not self.played):
            raise ValueError("skipped must be set exactly for non-strict failures")
        if self.player_kind is PlayerKind.NONE and self.played:
            raise ValueError("a probe without a player cannot report playback")
        return self

    @classmethod
    def build(
        cls,
        url: str,
        player_kind: PlayerKind,
        played: bool,
        strict_mode: bool,
        time_before: float = 0.0,
        time_after: float = 0.0,
        paused_after: bool = False,
        failure_reason: Optional[FailureReason] = None,
        diagnostics: Optional[Dict[str, Any]] = None,
    ) -> "ProbeResult":
        """Build a result, deriving ``delta`` and ``skipped``."""
        return cls(
            url=url,
            player_kind=player_kind,
            played=played,
            time_before=time_before,
            time_after=time_after,
            delta=time_after - time_before,
            paused_after=paused_after,
            strict_mode=strict_mode,
            skipped=not strict_mode and not played,
            failure_reason=None if played else failure_reason,
            diagnostics=diagnostics or {},
        )

    @property
    def status(self) -> str:
        if self.played:
            return "passed"
        return "skipped" if self.skipped else "failed"

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")


@dataclass(frozen=True)
class StepError:
    """A browser round-trip that failed inside the probe."""

    step: str
    message: str
    error_type: str = "Exception"

    def to_dict(self) -> Dict[str, str]:
        return {"step": self.step, "message": self.message, "error_type": self.error_type}


@dataclass(frozen=True)
class StepResult(Generic[T]):
    """Value of a probe step, or the error that replaced it."""

    value: Optional[T] = None
    error: Optional[StepError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: Optional[T] = None) -> "StepResult[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, step: str, exc: BaseException) -> "StepResult[T]":
        return cls(
            error=StepError(
                step=step,
                message=str(exc) or exc.__class__.__name__,
                error_type=exc.__class__.__name__,
            )
        )

    def unwrap_or(self, default: T) -> T:
        if self.ok and self.value is not None:
            return self.value
        return default
