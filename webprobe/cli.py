"""
Main CLI interface for webprobe.

Provides commands to probe a single page, run a suite of pages, serve the
browser tools over MCP and manage the report tree.
"""

import argparse
import asyncio
import json
import sys
import traceback
from importlib.metadata import PackageNotFoundError, version as package_version
from typing import List, Optional, Tuple

from . import __version__
from .browser.manager import BrowserManager
from .core.config import Config
from .core.exceptions import ProbeInputError, WebProbeError
from .core.logging_config import setup_logging
from .core.run import RunContext
from .probe.models import ProbeOptions, ProbeResult
from .probe.probe import VideoProbe, coerce_options
from .probe.suite import ProbeSuite, load_suite, run_suite
from .reporting.models import ProbeRunSummary
from .reporting.report_manager import ReportManager
from .server.server import run_stdio


STATUS_ICONS = {"passed": "✅", "skipped": "⏭️ ", "failed": "❌"}


def _bootstrap(args: argparse.Namespace) -> Tuple[Config, RunContext]:
    """Load and validate configuration, then start logging for a new run."""
    config = Config.from_env()
    if getattr(args, "headed", False):
        config.headless_mode = False
    config.validate()

    run = RunContext()
    setup_logging(config, run.run_id)
    return config, run


def _print_result(result: ProbeResult) -> None:
    icon = STATUS_ICONS[result.status]
    print(f"{icon} {result.status.upper()}: {result.url or 'current page'}")
    print(f"   Player: {result.player_kind.value}")
    print(
        f"   Playback: {result.time_before:.2f}s -> {result.time_after:.2f}s "
        f"(delta {result.delta:.2f}s, paused after: {result.paused_after})"
    )
    if result.failure_reason:
        print(f"   Reason: {result.failure_reason.value}")


def _print_summary(summary: ProbeRunSummary) -> None:
    print("📊 Summary:")
    print(f"   Total: {summary.total}")
    print(f"   Played: {summary.played}")
    print(f"   Skipped: {summary.skipped}")
    print(f"   Failed: {summary.failed}")
    for reason, count in sorted(summary.by_reason.items()):
        print(f"   {reason}: {count}")


async def _probe_once(config: Config, options: ProbeOptions) -> ProbeResult:
    manager = BrowserManager(config)
    try:
        session = await manager.get_session()
        return await VideoProbe(session).run(options)
    finally:
        await manager.close()


async def _probe_suite(config: Config, suite: ProbeSuite) -> List[ProbeResult]:
    manager = BrowserManager(config)
    try:
        session = await manager.get_session()
        return await run_suite(
            session,
            suite,
            default_strict=config.strict_video,
            default_timeout_ms=config.player_detection_timeout_ms,
        )
    finally:
        await manager.close()


def cmd_probe(args: argparse.Namespace) -> int:
    """Probe a single page for a playing video."""
    try:
        config, run = _bootstrap(args)
        options = coerce_options(
            target_url=args.url,
            player_detection_timeout_ms=(
                args.timeout if args.timeout is not None else config.player_detection_timeout_ms
            ),
            strict_mode=args.strict or config.strict_video,
        )
    except ProbeInputError as e:
        print(f"❌ Invalid input: {e.message}")
        return 2
    except WebProbeError as e:
        print(f"❌ {e.message}")
        return 1

    try:
        result = asyncio.run(_probe_once(config, options))
    except WebProbeError as e:
        print(f"❌ {e.message}")
        if args.verbose:
            traceback.print_exc()
        run.finish(success=False, error=e)
        return 1

    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
    else:
        _print_result(result)

    failed = result.status == "failed"
    run.metadata.update({"url": result.url, "status": result.status})
    run.finish(success=not failed)
    return 1 if failed else 0


def cmd_suite(args: argparse.Namespace) -> int:
    """Run every page of a YAML suite and write reports."""
    try:
        config, run = _bootstrap(args)
        suite = load_suite(args.file)
    except WebProbeError as e:
        print(f"❌ {e.message}")
        for violation in e.context.get("violations") or []:
            print(f"   - {violation}")
        return 1

    print(f"🚀 Running suite {suite.name} ({len(suite.pages)} page(s))")
    try:
        results = asyncio.run(_probe_suite(config, suite))
        reports = ReportManager(config, run.run_id)
        json_path, html_path = reports.write_probe_report(results, suite=suite.name)
    except WebProbeError as e:
        print(f"❌ {e.message}")
        if args.verbose:
            traceback.print_exc()
        run.finish(success=False, error=e)
        return 1

    for result in results:
        _print_result(result)
    summary = ProbeRunSummary.from_results(results)
    _print_summary(summary)
    print(f"📄 Reports: {json_path} | {html_path}")

    run.metadata.update({"suite": suite.name, "played": summary.played, "total": summary.total})
    run.finish(success=not summary.has_failures)
    return 1 if summary.has_failures else 0


def cmd_serve(args: argparse.Namespace) -> int:
    """Serve the browser tools over MCP stdio."""
    try:
        config, run = _bootstrap(args)
        asyncio.run(run_stdio(config))
    except WebProbeError as e:
        print(f"❌ {e.message}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        pass
    run.finish(success=True)
    return 0


def cmd_reports(args: argparse.Namespace) -> int:
    """Report tree housekeeping."""
    try:
        config, run = _bootstrap(args)
        manager = ReportManager(config, run.run_id)

        if args.action == "init":
            created = manager.initialize_directories()
            print(f"✅ Report tree ready at {manager.reports_root} ({len(created)} created)")
        elif args.action == "clean":
            for result in manager.clean_reports():
                if result.skipped:
                    print(f" - {result.directory}: (missing, skipped)")
                else:
                    print(f" - {result.directory}: removed {result.removed} entries")
        elif args.action == "prune":
            deleted = manager.clean_old_reports()
            print(f"🗑️  Removed {len(deleted)} expired file(s)")
        else:
            summary = manager.generate_summary()
            print(json.dumps(summary.model_dump(mode="json"), indent=2))
    except WebProbeError as e:
        print(f"❌ {e.message}")
        return 1

    return 0


def cmd_version(args: argparse.Namespace) -> int:
    """Show version information."""
    try:
        current = package_version("webprobe")
    except PackageNotFoundError:
        current = __version__

    print(f"webprobe {current}")
    if args.verbose:
        print(f"  Python: {sys.version.split()[0]}")
        print(f"  Platform: {sys.platform}")
    return 0


def create_main_parser() -> argparse.ArgumentParser:
    """Create main CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="webprobe",
        description="webprobe - video playback checks for web pages",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  webprobe probe https://example.com/product --strict
  webprobe suite suites/marketing.yaml
  webprobe serve
  webprobe reports prune
        """,
    )

    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose output",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Probe command
    probe_parser = subparsers.add_parser("probe", help="Probe one page for a playing video")
    probe_parser.add_argument("url", help="Page URL (http or https)")
    probe_parser.add_argument(
        "--strict",
        action="store_true",
        help="Fail instead of skipping when playback is not observed",
    )
    probe_parser.add_argument(
        "--timeout",
        type=int,
        metavar="MS",
        help="Player detection timeout in milliseconds",
    )
    probe_parser.add_argument("--json", action="store_true", help="Print the result as JSON")
    probe_parser.add_argument("--headed", action="store_true", help="Show the browser window")
    probe_parser.set_defaults(func=cmd_probe)

    # Suite command
    suite_parser = subparsers.add_parser("suite", help="Probe every page of a YAML suite")
    suite_parser.add_argument("file", help="Suite file")
    suite_parser.add_argument("--headed", action="store_true", help="Show the browser window")
    suite_parser.set_defaults(func=cmd_suite)

    # Serve command
    serve_parser = subparsers.add_parser("serve", help="Serve browser tools over MCP stdio")
    serve_parser.set_defaults(func=cmd_serve)

    # Reports command
    reports_parser = subparsers.add_parser("reports", help="Report housekeeping")
    reports_parser.add_argument(
        "action",
        choices=["init", "clean", "prune", "summary"],
        help="init: create tree, clean: empty it, prune: apply retention, summary: inventory",
    )
    reports_parser.set_defaults(func=cmd_reports)

    # Version command
    version_parser = subparsers.add_parser("version", help="Show version information")
    version_parser.set_defaults(func=cmd_version)

    return parser


def main(args: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = create_main_parser()
    parsed_args = parser.parse_args(sys.argv[1:] if args is None else args)

    if not hasattr(parsed_args, "func"):
        parser.print_help()
        return 1

    return parsed_args.func(parsed_args)


if __name__ == "__main__":
    sys.exit(main())
