"""
Run correlation for webprobe.

Every CLI invocation gets a run id that ties together its log lines and the
report files it writes.
"""

import uuid
import time
from datetime import datetime, timezone
from typing import Dict, Any, Optional
from dataclasses import dataclass, field

from .logging_config import get_logger


def generate_run_id() -> str:
    """
    Generate a unique run ID.

    Returns:
        ``YYYYMMDD-<16 hex chars>``; the date prefix keeps ids sortable
    """
    suffix = uuid.uuid4().hex[:16]
    timestamp = datetime.now(timezone.utc).strftime("%Y%m%d")
    return f"{timestamp}-{suffix}"


@dataclass
class RunContext:
    """Context information for one run."""

    run_id: str = field(default_factory=generate_run_id)
    start_time: float = field(default_factory=time.time)
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def duration(self) -> float:
        """Get current run duration in seconds."""
        return time.time() - self.start_time

    @property
    def start_timestamp(self) -> str:
        """Get formatted start timestamp."""
        return datetime.fromtimestamp(self.start_time).isoformat()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "start_time": self.start_timestamp,
            "duration": self.duration,
            "metadata": self.metadata,
        }

    def finish(self, success: bool = True, error: Optional[Exception] = None) -> None:
        """Log the end of the run."""
        logger = get_logger("webprobe.run")
        log_data = {
            "metadata": {
                "run_id": self.run_id,
                "duration": self.duration,
                "success": success,
                **self.metadata,
            }
        }

        if error:
            log_data["metadata"]["error"] = str(error)
            log_data["metadata"]["error_type"] = error.__class__.__name__

        if success:
            logger.info(
                f"Run completed: {self.run_id} ({self.duration:.2f}s)", extra=log_data
            )
        else:
            logger.error(
                f"Run failed: {self.run_id} ({self.duration:.2f}s)", extra=log_data
            )
