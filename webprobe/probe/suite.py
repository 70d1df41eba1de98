"""
Probe suites.

A suite is a YAML file listing pages to probe one after another:

    name: marketing-pages
    strict: false
    player_detection_timeout_ms: 12000
    pages:
      - https://example.com/
      - url: https://example.com/tour
        strict: true

Pages may be plain URLs or mappings with a per-page ``strict`` override.
"""

import logging
import time
from pathlib import Path
from typing import List, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from ..browser.session import BrowserSession
from ..core.exceptions import ValidationError
from ..core.logging_config import get_logger, log_performance
from .models import DEFAULT_DETECTION_TIMEOUT_MS, ProbeOptions, ProbeResult
from .probe import VideoProbe


logger = logging.getLogger(__name__)


class SuitePage(BaseModel):
    """One page entry of a suite."""

    model_config = ConfigDict(extra="forbid")

    url: str = Field(..., description="Page to probe")
    strict: Optional[bool] = Field(None, description="Overrides the suite strict flag")


class ProbeSuite(BaseModel):
    """A named list of pages probed sequentially."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field("default", description="Suite name used in reports")
    strict: Optional[bool] = Field(
        None, description="Strict mode for every page; falls back to STRICT_VIDEO"
    )
    player_detection_timeout_ms: Optional[int] = Field(
        None, ge=0, description="Detection timeout for every page; falls back to the configured one"
    )
    pages: List[SuitePage] = Field(..., min_length=1)

    def options_for(
        self,
        page: SuitePage,
        default_strict: bool = False,
        default_timeout_ms: int = DEFAULT_DETECTION_TIMEOUT_MS,
    ) -> ProbeOptions:
        """Build probe options for ``page``; raises pydantic's error on a bad URL."""
        if page.strict is not None:
            strict = page.strict
        elif self.strict is not None:
            strict = self.strict
        else:
            strict = default_strict
        timeout_ms = self.player_detection_timeout_ms
        return ProbeOptions(
            target_url=page.url,
            player_detection_timeout_ms=default_timeout_ms if timeout_ms is None else timeout_ms,
            strict_mode=strict,
        )


def load_suite(path: Union[str, Path]) -> ProbeSuite:
    """
    Load and validate a suite file.

    Args:
        path: YAML suite file

    Returns:
        The parsed suite

    Raises:
        ValidationError: If the file is missing, is not valid YAML, or does
            not describe a suite with valid page URLs
    """
    path = Path(path)
    if not path.exists():
        raise ValidationError(
            f"Suite file not found: {path}",
            validation_type="suite",
            violations=[f"missing file: {path}"],
        )

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ValidationError(
            f"Suite file is not valid YAML: {path}",
            validation_type="suite",
            violations=[str(e)],
        )

    if not isinstance(data, dict):
        raise ValidationError(
            f"Suite file must contain a mapping: {path}",
            validation_type="suite",
            violations=["top-level value is not a mapping"],
        )

    pages = data.get("pages")
    if isinstance(pages, list):
        data["pages"] = [{"url": page} if isinstance(page, str) else page for page in pages]

    try:
        suite = ProbeSuite(**data)
        # Surface bad URLs at load time rather than mid-run
        for page in suite.pages:
            suite.options_for(page)
    except PydanticValidationError as e:
        violations = [
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
            for error in e.errors()
        ]
        raise ValidationError(
            f"Invalid suite {path}: {len(violations)} error(s)",
            validation_type="suite",
            violations=violations,
        )

    logger.debug(f"Loaded suite {suite.name} with {len(suite.pages)} page(s) from {path}")
    return suite


async def run_suite(
    session: BrowserSession,
    suite: ProbeSuite,
    default_strict: bool = False,
    default_timeout_ms: int = DEFAULT_DETECTION_TIMEOUT_MS,
    probe: Optional[VideoProbe] = None,
) -> List[ProbeResult]:
    """
    Probe every page of ``suite`` in order on one session.

    ``default_strict`` and ``default_timeout_ms`` apply where neither the page
    nor the suite sets a value.
    """
    probe = probe or VideoProbe(session)
    suite_logger = get_logger(__name__, metadata={"suite": suite.name})
    start_time = time.time()
    results = []

    for index, page in enumerate(suite.pages, 1):
        suite_logger.info(f"Probing page {index}/{len(suite.pages)}: {page.url}")
        options = suite.options_for(page, default_strict, default_timeout_ms)
        results.append(await probe.run(options))

    played = sum(1 for result in results if result.played)
    log_performance(
        logger,
        f"suite {suite.name}",
        time.time() - start_time,
        pages=len(results),
        played=played,
    )
    return results
