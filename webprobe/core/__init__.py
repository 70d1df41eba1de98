"""Core components for webprobe."""

from .config import Config
from .exceptions import (
    WebProbeError,
    BrowserSessionError,
    ToolExecutionError,
    ProbeInputError,
    ValidationError,
    ReportOperationError,
)
from .logging_config import setup_logging, get_logger
from .run import RunContext, generate_run_id

__all__ = [
    "Config",
    "WebProbeError",
    "BrowserSessionError",
    "ToolExecutionError",
    "ProbeInputError",
    "ValidationError",
    "ReportOperationError",
    "setup_logging",
    "get_logger",
    "RunContext",
    "generate_run_id",
]
