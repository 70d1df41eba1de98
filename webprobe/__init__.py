"""
webprobe - video playback checks for browser test harnesses.

Drives a real browser page, finds a video player and reports whether it
actually plays.
"""

__version__ = "0.1.0"
__author__ = "webprobe Team"
__description__ = "Video playback probe and MCP browser tool server"

from .core.config import Config
from .core.exceptions import WebProbeError
from .core.logging_config import setup_logging
from .probe import ProbeOptions, ProbeResult, VideoProbe, probe_video

__all__ = [
    "Config",
    "WebProbeError",
    "setup_logging",
    "ProbeOptions",
    "ProbeResult",
    "VideoProbe",
    "probe_video",
]
