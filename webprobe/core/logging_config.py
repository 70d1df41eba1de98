"""
Logging setup shared by the CLI and the tool server.

Console output always goes to stderr; outside CI a rotating file under
``logs_dir`` receives the same records. Records carry the run id plus any
probe context passed through ``extra``.
"""

import json
import logging
import logging.handlers
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Union

from .config import Config


# Record attributes copied into formatted output when present
CONTEXT_FIELDS = ("probe_id", "tool_name", "url", "duration", "status")

LOG_FILE_MAX_BYTES = 10 * 1024 * 1024
LOG_FILE_BACKUPS = 5


class RunFormatter(logging.Formatter):
    """Base formatter that stamps records with the run id."""

    def __init__(self, run_id: str):
        super().__init__()
        self.run_id = run_id

    @staticmethod
    def context(record: logging.LogRecord) -> Dict[str, Any]:
        return {attr: getattr(record, attr) for attr in CONTEXT_FIELDS if hasattr(record, attr)}


class StructuredFormatter(RunFormatter):
    """One JSON object per line, for CI log collection."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "component": record.name,
            "run_id": self.run_id,
            "message": record.getMessage(),
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        metadata = getattr(record, "metadata", None)
        if metadata is not None:
            entry["metadata"] = metadata
        entry.update(self.context(record))
        return json.dumps(entry, ensure_ascii=False, default=str)


class TextFormatter(RunFormatter):
    """Single-line text for terminals and the local log file."""

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")
        parts = [
            f"[{timestamp}] {record.levelname:8} {record.name:20} | {record.getMessage()}"
            f" (run: {self.run_id[:8]})"
        ]
        fields = {**self.context(record), **(getattr(record, "metadata", None) or {})}
        parts.extend(f"{key}={value}" for key, value in fields.items())

        line = " | ".join(parts)
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def _level(name: str) -> int:
    # WARN is accepted in config but logging spells it WARNING
    return logging.getLevelName("WARNING" if name == "WARN" else name)


def setup_logging(config: Config, run_id: str) -> logging.Logger:
    """
    Configure the root logger for one run.

    Args:
        config: Configuration with the log level, format and CI flag
        run_id: Run identifier stamped on every record

    Returns:
        The root logger
    """
    level = _level(config.log_level)
    formatter_cls = StructuredFormatter if config.log_format == "json" else TextFormatter
    formatter = formatter_cls(run_id)

    # stderr keeps stdout free for the stdio tool server
    handlers = [logging.StreamHandler(sys.stderr)]
    if not config.is_ci_mode:
        config.logs_dir.mkdir(parents=True, exist_ok=True)
        handlers.append(
            logging.handlers.RotatingFileHandler(
                config.get_log_file_path(),
                maxBytes=LOG_FILE_MAX_BYTES,
                backupCount=LOG_FILE_BACKUPS,
                encoding="utf-8",
            )
        )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(level)
    for handler in handlers:
        handler.setFormatter(formatter)
        handler.setLevel(level)
        root_logger.addHandler(handler)

    logging.getLogger(__name__).debug(
        "Logging configured",
        extra={
            "metadata": {
                "log_level": config.log_level,
                "log_format": config.log_format,
                "ci_mode": config.is_ci_mode,
                "handlers": len(handlers),
            }
        },
    )
    return root_logger


class ContextAdapter(logging.LoggerAdapter):
    """Merges adapter context into every record's extra fields."""

    def process(self, msg, kwargs):
        kwargs["extra"] = {**kwargs.get("extra", {}), **self.extra}
        return msg, kwargs


def get_logger(name: str, **context) -> Union[logging.Logger, logging.LoggerAdapter]:
    """Return the named logger, wrapped in a ``ContextAdapter`` when context is given."""
    logger = logging.getLogger(name)
    return ContextAdapter(logger, context) if context else logger


def log_performance(logger, operation: str, duration: float, **metadata):
    """Log how long ``operation`` took, in seconds."""
    logger.info(
        f"Performance: {operation} completed in {duration:.2f}s",
        extra={"metadata": {"operation": operation, "duration": duration, **metadata}},
    )


def log_tool_call(logger, tool: str, duration: float, success: bool, **metadata):
    """
    Log one tool server call.

    Successful calls are logged at DEBUG, failed ones at WARNING so they show
    up at the default level.
    """
    logger.log(
        logging.DEBUG if success else logging.WARNING,
        f"Tool call: {tool} {'success' if success else 'failed'} in {duration:.3f}s",
        extra={
            "metadata": {"tool_name": tool, "duration": duration, "success": success, **metadata}
        },
    )
