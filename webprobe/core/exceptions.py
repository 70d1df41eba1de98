"""
Base exception classes for webprobe.

Provides a hierarchy of exceptions for the error types that can surface
from browser sessions, tool calls, probe input and report housekeeping.
"""

from typing import Optional, Dict, Any


class WebProbeError(Exception):
    """Base exception class for all webprobe errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.context = context or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for structured logging."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "context": self.context,
        }


class BrowserSessionError(WebProbeError):
    """Raised when a browser cannot be launched or a session cannot be attached."""

    def __init__(
        self,
        message: str,
        browser_name: Optional[str] = None,
        headless: Optional[bool] = None,
    ):
        super().__init__(message, "BROWSER_SESSION_FAILED")
        self.browser_name = browser_name
        self.headless = headless
        self.context.update(
            {
                "browser_name": browser_name,
                "headless": headless,
            }
        )


class ToolExecutionError(WebProbeError):
    """Raised when an MCP browser tool call fails."""

    def __init__(
        self,
        message: str,
        tool_name: Optional[str] = None,
        arguments: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, "TOOL_EXECUTION_FAILED")
        self.tool_name = tool_name
        self.arguments = arguments or {}
        self.context.update(
            {
                "tool_name": tool_name,
                "arguments": arguments,
            }
        )


class ProbeInputError(WebProbeError):
    """Raised for caller input errors before a probe starts."""

    def __init__(
        self,
        message: str,
        field_name: Optional[str] = None,
        value: Optional[Any] = None,
    ):
        super().__init__(message, "PROBE_INPUT_INVALID")
        self.field_name = field_name
        self.value = value
        self.context.update(
            {
                "field_name": field_name,
                "value": value,
            }
        )


class ValidationError(WebProbeError):
    """Raised when configuration or suite validation fails."""

    def __init__(
        self,
        message: str,
        validation_type: Optional[str] = None,
        violations: Optional[list] = None,
    ):
        super().__init__(message, "VALIDATION_FAILED")
        self.validation_type = validation_type
        self.violations = violations or []
        self.context.update(
            {
                "validation_type": validation_type,
                "violations": violations,
            }
        )


class ReportOperationError(WebProbeError):
    """Raised when report or artifact housekeeping fails."""

    def __init__(
        self,
        message: str,
        file_path: Optional[str] = None,
        operation: Optional[str] = None,
    ):
        super().__init__(message, "REPORT_OPERATION_FAILED")
        self.file_path = file_path
        self.operation = operation
        self.context.update(
            {
                "file_path": file_path,
                "operation": operation,
            }
        )
