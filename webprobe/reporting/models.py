"""
Data models for probe reports and report housekeeping.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..probe.models import ProbeResult


class ProbeRunSummary(BaseModel):
    """Aggregate counts over a set of probe results."""

    model_config = ConfigDict(extra="forbid")

    total: int = Field(0, ge=0, description="Number of probes")
    played: int = Field(0, ge=0, description="Probes that observed playback")
    skipped: int = Field(0, ge=0, description="Non-strict failures")
    failed: int = Field(0, ge=0, description="Strict failures")
    by_reason: Dict[str, int] = Field(
        default_factory=dict, description="Failure counts keyed by reason"
    )
    by_kind: Dict[str, int] = Field(
        default_factory=dict, description="Probe counts keyed by player kind"
    )

    @classmethod
    def from_results(cls, results: List[ProbeResult]) -> "ProbeRunSummary":
        summary = cls(total=len(results))
        for result in results:
            kind = result.player_kind.value
            summary.by_kind[kind] = summary.by_kind.get(kind, 0) + 1
            if result.played:
                summary.played += 1
                continue
            if result.skipped:
                summary.skipped += 1
            else:
                summary.failed += 1
            reason = result.failure_reason.value
            summary.by_reason[reason] = summary.by_reason.get(reason, 0) + 1
        return summary

    @property
    def success_rate(self) -> float:
        if self.total == 0:
            return 0.0
        return self.played / self.total * 100

    @property
    def has_failures(self) -> bool:
        """Strict failures only; skipped probes do not fail a run."""
        return self.failed > 0


class ProbeReport(BaseModel):
    """A probe run as written to disk."""

    model_config = ConfigDict(extra="forbid")

    run_id: str = Field(..., description="Run correlation id")
    suite: str = Field(..., description="Suite or ad-hoc run name")
    generated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Report creation time",
    )
    summary: ProbeRunSummary = Field(..., description="Aggregate counts")
    results: List[ProbeResult] = Field(default_factory=list)


class CleanupResult(BaseModel):
    """Outcome of emptying one report directory."""

    model_config = ConfigDict(extra="forbid")

    directory: str = Field(..., description="Directory that was targeted")
    removed: int = Field(0, ge=0, description="Entries removed")
    skipped: bool = Field(False, description="Directory did not exist")


class ReportTreeSummary(BaseModel):
    """Inventory of the report tree, written to ``summary.json``."""

    model_config = ConfigDict(extra="forbid")

    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    reports: Dict[str, int] = Field(default_factory=dict)
    artifacts: Dict[str, int] = Field(default_factory=dict)
    total_size: int = Field(0, ge=0, description="Bytes under the reports root")
    latest_probe_summary: Optional[Dict[str, Any]] = Field(
        None, description="Summary block of the newest probe report"
    )
