"""
Configuration management for webprobe.

Handles environment variables, defaults, and configuration validation
for the browser manager, video probe, tool server and report housekeeping.
"""

import os
from typing import Optional, Dict, Any
from dataclasses import dataclass, field
from pathlib import Path


VALID_LOG_LEVELS = ["DEBUG", "INFO", "WARN", "ERROR"]
VALID_BROWSERS = ["chromium", "firefox", "webkit"]


def _env_flag(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Config:
    """Configuration class for webprobe with environment variable support."""

    # Environment detection
    ci_mode: bool = field(default=False)

    # Browser settings
    headless_mode: Optional[bool] = field(default=None)
    browser_name: str = field(default="chromium")
    window_width: int = field(default=1920)
    window_height: int = field(default=1080)

    # Logging configuration
    log_level: str = field(default="INFO")
    log_format: str = field(default="text")

    # Video probe defaults
    player_detection_timeout_ms: int = field(default=12000)
    strict_video: bool = field(default=False)

    # Report housekeeping
    report_retention_days: int = field(default=30)

    # Directory paths
    project_root: Path = field(default_factory=lambda: Path.cwd())
    reports_dir: Path = field(default_factory=lambda: Path.cwd() / "reports")
    logs_dir: Path = field(default_factory=lambda: Path.cwd() / "logs")

    def __post_init__(self):
        """Apply environment overrides while respecting explicit constructor args."""
        if os.getenv("CI", "").lower() == "true" and self.ci_mode is False:
            self.ci_mode = True

        headless_env = os.getenv("WEBPROBE_HEADLESS")
        if headless_env is not None:
            self.headless_mode = _env_flag(headless_env)

        log_env = os.getenv("WEBPROBE_LOG_LEVEL")
        if log_env:
            self.log_level = log_env
        if self.log_level.upper() not in VALID_LOG_LEVELS:
            self.log_level = "INFO"
        else:
            self.log_level = self.log_level.upper()

        # CI logs are machine-read
        if self.ci_mode and self.log_format == "text":
            self.log_format = "json"

        browser_env = os.getenv("WEBPROBE_BROWSER")
        if browser_env:
            self.browser_name = browser_env.strip().lower()

        reports_env = os.getenv("WEBPROBE_REPORTS_DIR")
        if reports_env:
            self.reports_dir = Path(reports_env)

        timeout_env = os.getenv("WEBPROBE_PLAYER_TIMEOUT_MS")
        if timeout_env is not None:
            try:
                self.player_detection_timeout_ms = max(0, int(timeout_env))
            except ValueError:
                pass

        strict_env = os.getenv("STRICT_VIDEO")
        if strict_env is not None:
            self.strict_video = _env_flag(strict_env)

        retention_env = os.getenv("WEBPROBE_REPORT_RETENTION_DAYS")
        if retention_env is not None:
            try:
                self.report_retention_days = max(1, int(retention_env))
            except ValueError:
                pass

    @property
    def is_ci_mode(self) -> bool:
        """Check if running in CI environment."""
        return self.ci_mode

    @property
    def screenshots_dir(self) -> Path:
        """Directory that receives ad-hoc screenshots."""
        return self.reports_dir / "artifacts" / "screenshots"

    def get_effective_headless_mode(self) -> bool:
        """Explicit overrides win; browsers launch headless otherwise."""
        if self.headless_mode is not None:
            return self.headless_mode
        return True

    def get_log_file_path(self) -> Path:
        """Get the main log file path."""
        return self.logs_dir / "webprobe.log"

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary for logging."""
        return {
            "ci_mode": self.ci_mode,
            "headless_mode": self.headless_mode,
            "browser_name": self.browser_name,
            "window_size": f"{self.window_width}x{self.window_height}",
            "log_level": self.log_level,
            "log_format": self.log_format,
            "player_detection_timeout_ms": self.player_detection_timeout_ms,
            "strict_video": self.strict_video,
            "report_retention_days": self.report_retention_days,
            "project_root": str(self.project_root),
            "reports_dir": str(self.reports_dir),
            "logs_dir": str(self.logs_dir),
        }

    @classmethod
    def from_env(cls) -> "Config":
        """Create configuration from environment variables."""
        ci = os.getenv("CI", "").lower() == "true"
        return cls(
            ci_mode=ci,
            log_format="json" if ci else "text",
        )

    def validate(self) -> None:
        """Validate configuration and raise ValidationError if invalid."""
        from .exceptions import ValidationError

        errors = []

        if self.log_level not in VALID_LOG_LEVELS:
            errors.append(
                f"Invalid log level: {self.log_level}. Must be one of {VALID_LOG_LEVELS}"
            )

        if self.browser_name not in VALID_BROWSERS:
            errors.append(
                f"Invalid browser: {self.browser_name}. Must be one of {VALID_BROWSERS}"
            )

        if self.window_width <= 0 or self.window_height <= 0:
            errors.append(
                f"Invalid window size: {self.window_width}x{self.window_height}"
            )

        if self.player_detection_timeout_ms < 0:
            errors.append("Player detection timeout must be >= 0")

        if self.report_retention_days < 1:
            errors.append("Report retention must be at least 1 day")

        if errors:
            message = "Configuration validation failed: " + "; ".join(errors)
            raise ValidationError(
                message,
                validation_type="config",
                violations=errors,
            )
