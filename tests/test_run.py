"""
Unit tests for run correlation.
"""

import re
from unittest.mock import patch

from webprobe.core.run import RunContext, generate_run_id


def test_generate_run_id_format():
    run_id = generate_run_id()

    assert re.fullmatch(r"\d{8}-[0-9a-f]{16}", run_id)
    assert generate_run_id() != run_id


class TestRunContext:
    """Test cases for RunContext."""

    def test_to_dict(self):
        run = RunContext(run_id="20240601-0000000000000000", metadata={"suite": "smoke"})

        data = run.to_dict()

        assert data["run_id"] == "20240601-0000000000000000"
        assert data["metadata"] == {"suite": "smoke"}
        assert data["duration"] >= 0

    def test_finish_logs_outcome(self):
        run = RunContext(metadata={"url": "https://example.com"})

        with patch("webprobe.core.run.get_logger") as mock_get_logger:
            run.finish(success=False, error=RuntimeError("boom"))

        logger = mock_get_logger.return_value
        logger.error.assert_called_once()
        metadata = logger.error.call_args[1]["extra"]["metadata"]
        assert metadata["error"] == "boom"
        assert metadata["error_type"] == "RuntimeError"
        assert metadata["url"] == "https://example.com"
