"""Probe reports and report housekeeping."""

from .models import ProbeRunSummary, ProbeReport, CleanupResult, ReportTreeSummary
from .report_manager import ReportManager

__all__ = [
    "ProbeRunSummary",
    "ProbeReport",
    "CleanupResult",
    "ReportTreeSummary",
    "ReportManager",
]
