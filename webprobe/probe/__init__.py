"""Video playback probe."""

from .models import (
    PlayerKind,
    FailureReason,
    ProbeState,
    ProbeOptions,
    ProbeTimings,
    ProbeResult,
    StepError,
    StepResult,
)
from .adapters import (
    PlayerAdapter,
    NativeVideoAdapter,
    WistiaAdapter,
    GenericContainerAdapter,
    default_adapters,
)
from .probe import VideoProbe, probe_video, coerce_options
from .suite import ProbeSuite, SuitePage, load_suite, run_suite

__all__ = [
    "PlayerKind",
    "FailureReason",
    "ProbeState",
    "ProbeOptions",
    "ProbeTimings",
    "ProbeResult",
    "StepError",
    "StepResult",
    "PlayerAdapter",
    "NativeVideoAdapter",
    "WistiaAdapter",
    "GenericContainerAdapter",
    "default_adapters",
    "VideoProbe",
    "probe_video",
    "coerce_options",
    "ProbeSuite",
    "SuitePage",
    "load_suite",
    "run_suite",
]
