"""
Report management.

Lays out the report tree, writes probe reports (JSON and HTML), applies the
retention policy and produces an inventory of everything under the reports
root.
"""

import json
import logging
import re
import shutil
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple, Union

from jinja2 import Environment, FileSystemLoader, TemplateNotFound

from ..core.config import Config
from ..core.exceptions import ReportOperationError
from ..probe.models import ProbeResult
from .models import CleanupResult, ProbeReport, ProbeRunSummary, ReportTreeSummary


REPORT_DIRECTORIES = [
    "e2e/smoke",
    "e2e/functional",
    "video",
    "accessibility",
    "performance",
    "artifacts/screenshots",
    "artifacts/videos",
    "artifacts/traces",
    "archives",
]

REPORT_KINDS = ["e2e", "video", "accessibility", "performance"]
ARTIFACT_TYPES = ["screenshots", "videos", "traces"]
REPORT_SUFFIXES = (".html", ".json", ".txt")
KEEP_FILE = ".gitkeep"


def _safe_name(name: str) -> str:
    """Reduce a user supplied name to one path component."""
    safe = re.sub(r"[^a-zA-Z0-9_-]+", "_", name.lower()).strip("_")
    return safe or "adhoc"

DEFAULT_HTML_TEMPLATE = """<!DOCTYPE html>
<html>
<head>
    <title>Video Probe Report - {{ report.suite }}</title>
    <style>
        body { font-family: Arial, sans-serif; margin: 20px; }
        .header { background: #f5f5f5; padding: 20px; border-radius: 5px; }
        .passed { color: green; }
        .failed { color: red; }
        .skipped { color: orange; }
        table { border-collapse: collapse; width: 100%; }
        th, td { border: 1px solid #ddd; padding: 8px; text-align: left; }
        th { background-color: #f2f2f2; }
    </style>
</head>
<body>
    <div class="header">
        <h1>Video Probe Report</h1>
        <p><strong>Suite:</strong> {{ report.suite }}</p>
        <p><strong>Run ID:</strong> {{ report.run_id }}</p>
        <p><strong>Generated:</strong> {{ report.generated_at }}</p>
    </div>

    <h2>Summary</h2>
    <p><strong>Total:</strong> {{ report.summary.total }}</p>
    <p><strong>Played:</strong> <span class="passed">{{ report.summary.played }}</span></p>
    <p><strong>Failed:</strong> <span class="failed">{{ report.summary.failed }}</span></p>
    <p><strong>Skipped:</strong> <span class="skipped">{{ report.summary.skipped }}</span></p>
    <p><strong>Success Rate:</strong> {{ "%.1f"|format(report.summary.success_rate) }}%</p>

    <h2>Results</h2>
    <table>
        <tr>
            <th>URL</th>
            <th>Status</th>
            <th>Player</th>
            <th>Delta</th>
            <th>Reason</th>
        </tr>
        {% for result in report.results %}
        <tr>
            <td>{{ result.url }}</td>
            <td class="{{ result.status }}">{{ result.status.upper() }}</td>
            <td>{{ result.player_kind.value }}</td>
            <td>{{ "%.2f"|format(result.delta) }}s</td>
            <td>{{ result.failure_reason.value if result.failure_reason else "" }}</td>
        </tr>
        {% endfor %}
    </table>
</body>
</html>
"""


def _timestamp(moment: Optional[datetime] = None) -> str:
    moment = moment or datetime.now(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H-%M-%S")


def _files_under(directory: Path) -> List[Path]:
    if not directory.exists():
        return []
    return [path for path in directory.rglob("*") if path.is_file()]


class ReportManager:
    """
    Owns the layout of ``config.reports_dir``.

    File names carry a timestamp fixed when the manager is created, so all
    files written during one run share it.
    """

    def __init__(
        self,
        config: Config,
        run_id: str,
        template_dir: Optional[Path] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.config = config
        self.run_id = run_id
        self.reports_root = Path(config.reports_dir)
        self.timestamp = _timestamp()
        self.template_dir = template_dir
        self.logger = logger or logging.getLogger(__name__)

        loader = FileSystemLoader(str(template_dir)) if template_dir else None
        self.jinja_env = Environment(loader=loader, autoescape=True)

    def initialize_directories(self) -> List[Path]:
        """Create the report tree; returns the directories that were created."""
        created = []
        for directory in REPORT_DIRECTORIES:
            full_path = self.reports_root / directory
            if not full_path.exists():
                full_path.mkdir(parents=True, exist_ok=True)
                created.append(full_path)
                self.logger.debug(f"Created report directory: {directory}")
        return created

    def get_report_path(self, kind: str, suite: str, fmt: str = "html") -> Path:
        return self.reports_root / kind / f"{kind}-{_safe_name(suite)}-{self.timestamp}.{fmt}"

    def get_artifact_path(self, kind: str, name: str, fmt: str = "png") -> Path:
        filename = f"{_safe_name(name)}-{self.timestamp}.{fmt}"
        return self.reports_root / "artifacts" / kind / filename

    def default_retention_policies(self) -> Dict[str, int]:
        """Retention in days keyed by directory relative to the reports root."""
        policies = {kind: self.config.report_retention_days for kind in REPORT_KINDS}
        policies.update(
            {
                "artifacts/screenshots": 14,
                "artifacts/videos": 7,
                "artifacts/traces": 7,
            }
        )
        return policies

    def write_probe_report(
        self, results: List[ProbeResult], suite: str = "adhoc"
    ) -> Tuple[Path, Path]:
        """
        Write a probe run as JSON and HTML under ``video/``.

        Args:
            results: Probe results in run order
            suite: Suite name used in the file names

        Returns:
            Paths of the JSON and HTML reports

        Raises:
            ReportOperationError: If either file cannot be written
        """
        report = ProbeReport(
            run_id=self.run_id,
            suite=suite,
            summary=ProbeRunSummary.from_results(results),
            results=results,
        )
        json_path = self.get_report_path("video", suite, "json")
        html_path = self.get_report_path("video", suite, "html")

        try:
            json_path.parent.mkdir(parents=True, exist_ok=True)
            with open(json_path, "w", encoding="utf-8") as f:
                json.dump(report.model_dump(mode="json"), f, indent=2)

            html_content = self._get_html_template().render(report=report)
            with open(html_path, "w", encoding="utf-8") as f:
                f.write(html_content)
        except OSError as e:
            raise ReportOperationError(
                f"Failed to write probe report: {e}",
                file_path=str(json_path.parent),
                operation="write",
            )

        self.logger.info(
            f"Probe report written: {json_path.name} "
            f"({report.summary.played}/{report.summary.total} played)",
            extra={"metadata": {"json": str(json_path), "html": str(html_path)}},
        )
        return json_path, html_path

    def _get_html_template(self):
        if self.template_dir is not None:
            try:
                return self.jinja_env.get_template("probe_report.html")
            except TemplateNotFound:
                self.logger.debug("No probe_report.html in template dir, using default")
        return self.jinja_env.from_string(DEFAULT_HTML_TEMPLATE)

    def clean_old_reports(
        self,
        policies: Optional[Dict[str, int]] = None,
        now: Optional[datetime] = None,
    ) -> List[Path]:
        """
        Delete report files older than their directory's retention.

        Args:
            policies: Days to keep, keyed by directory relative to the root
            now: Reference time, defaults to the current time

        Returns:
            Deleted file paths
        """
        policies = policies if policies is not None else self.default_retention_policies()
        now = now or datetime.now(timezone.utc)
        deleted = []

        for directory, days in policies.items():
            cutoff = (now - timedelta(days=days)).timestamp()
            for path in _files_under(self.reports_root / directory):
                if path.name == KEEP_FILE:
                    continue
                if path.stat().st_mtime < cutoff:
                    try:
                        path.unlink()
                    except OSError as e:
                        raise ReportOperationError(
                            f"Failed to delete old report: {e}",
                            file_path=str(path),
                            operation="delete",
                        )
                    deleted.append(path)
                    self.logger.debug(f"Cleaned old report: {path.name}")

        self.logger.info(f"Retention cleanup removed {len(deleted)} file(s)")
        return deleted

    def clean_reports(
        self, targets: Optional[Iterable[Union[str, Path]]] = None
    ) -> List[CleanupResult]:
        """
        Empty report directories, keeping ``.gitkeep`` placeholders.

        Missing directories are reported as skipped rather than failing.
        """
        if targets is None:
            targets = [self.reports_root, Path(self.config.project_root) / "test-results"]

        results = []
        for target in targets:
            directory = Path(target)
            if not directory.is_dir():
                results.append(CleanupResult(directory=str(directory), skipped=True))
                continue

            removed = 0
            for entry in directory.iterdir():
                if entry.name == KEEP_FILE:
                    continue
                try:
                    if entry.is_dir() and not entry.is_symlink():
                        shutil.rmtree(entry)
                    else:
                        entry.unlink()
                except OSError as e:
                    raise ReportOperationError(
                        f"Failed to clean report directory: {e}",
                        file_path=str(entry),
                        operation="clean",
                    )
                removed += 1
            results.append(CleanupResult(directory=str(directory), removed=removed))

        total = sum(result.removed for result in results)
        self.logger.info(f"Cleaned {total} report entries from {len(results)} target(s)")
        return results

    def generate_summary(self) -> ReportTreeSummary:
        """Count report files and artifacts and write ``summary.json``."""
        summary = ReportTreeSummary()

        for kind in REPORT_KINDS:
            summary.reports[kind] = sum(
                1
                for path in _files_under(self.reports_root / kind)
                if path.suffix in REPORT_SUFFIXES
            )

        for artifact_type in ARTIFACT_TYPES:
            summary.artifacts[artifact_type] = sum(
                1
                for path in _files_under(self.reports_root / "artifacts" / artifact_type)
                if not path.name.startswith(".")
            )

        summary.latest_probe_summary = self._latest_probe_summary()
        summary.total_size = sum(path.stat().st_size for path in _files_under(self.reports_root))

        summary_path = self.reports_root / "summary.json"
        try:
            self.reports_root.mkdir(parents=True, exist_ok=True)
            with open(summary_path, "w", encoding="utf-8") as f:
                json.dump(summary.model_dump(mode="json"), f, indent=2)
        except OSError as e:
            raise ReportOperationError(
                f"Failed to write report summary: {e}",
                file_path=str(summary_path),
                operation="write",
            )
        return summary

    def _latest_probe_summary(self) -> Optional[Dict]:
        reports = sorted(
            (self.reports_root / "video").glob("video-*.json"),
            key=lambda path: path.stat().st_mtime,
        )
        if not reports:
            return None
        try:
            with open(reports[-1], "r", encoding="utf-8") as f:
                return json.load(f).get("summary")
        except (OSError, json.JSONDecodeError) as e:
            self.logger.warning(f"Could not read probe report {reports[-1]}: {e}")
            return None

