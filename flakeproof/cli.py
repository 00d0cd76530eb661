"""
Main CLI interface for flakeproof.

Provides commands to run suites, validate configuration, clean up old
artifacts and show version information.
"""

import argparse
import asyncio
import json
import os
import sys
from importlib.metadata import PackageNotFoundError, version as package_version
from pathlib import Path
from typing import Any, Dict, List, Optional

from . import __version__
from .core.config import Config, SinkConfig, load_config
from .core.exceptions import ConfigFault
from .core.logging_config import get_logger, setup_logging
from .core.run_context import RunContext, generate_run_id
from .core.types import CaptureMode, SinkType, TestMode
from .execution.artifacts import ArtifactCapturer
from .execution.orchestrator import RunOrchestrator
from .execution.suite import load_suites
from .reporting.aggregator import ReporterAggregator
from .reporting.sinks import build_sinks


def _print_config_fault(error: ConfigFault) -> None:
    print(f"❌ Configuration error: {error.message}")
    for violation in error.violations:
        print(f"   - {violation}")


def _run_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    attempts = {}
    if args.max_attempts_run is not None:
        attempts[TestMode.RUN.value] = args.max_attempts_run
    if args.max_attempts_interactive is not None:
        attempts[TestMode.INTERACTIVE.value] = args.max_attempts_interactive

    return {
        "base_url": args.base_url,
        "workers": args.workers,
        "default_timeout_ms": args.timeout_ms,
        "capture_mode": args.capture_mode,
        "capture_video": True if args.video else None,
        "headless": True if args.headless else None,
        "max_attempts_by_mode": attempts or None,
    }


def _load_run_config(args: argparse.Namespace) -> Config:
    config = load_config(args.config, overrides=_run_overrides(args))

    extra_sinks = []
    if args.json:
        extra_sinks.append(SinkConfig(type=SinkType.JSON, output_path=Path(args.json)))
    if args.junit:
        extra_sinks.append(SinkConfig(type=SinkType.JUNIT, output_path=Path(args.junit)))
    if extra_sinks:
        config = config.with_overrides(sinks=list(config.sinks) + extra_sinks)
    return config


def cmd_run(args: argparse.Namespace) -> int:
    """Run one or more suites and exit with the suite verdict."""
    try:
        config = _load_run_config(args)
        test_cases = load_suites(args.suites)
    except ConfigFault as e:
        _print_config_fault(e)
        return 1

    if args.list:
        for test_case in test_cases:
            print(f"{test_case.id} [{test_case.mode.value}]")
        return 0

    run = RunContext(metadata={"suites": args.suites})
    setup_logging(config, run.run_id)
    logger = get_logger(__name__, run_id=run.run_id)
    logger.info(
        f"Starting run {run.run_id}",
        extra={"metadata": {"config": config.to_dict(), **run.to_dict()}},
    )

    aggregator = ReporterAggregator(run_id=run.run_id)
    try:
        for sink in build_sinks(config, run_id=run.run_id):
            aggregator.attach(sink)
        orchestrator = RunOrchestrator(config, aggregator=aggregator, run_id=run.run_id)
        asyncio.run(orchestrator.run_suite(test_cases))
    except ConfigFault as e:
        _print_config_fault(e)
        return 1

    summary = aggregator.complete(duration=run.duration)
    return summary.exit_code


def cmd_validate(args: argparse.Namespace) -> int:
    """Validate configuration and, optionally, suite references."""
    try:
        config = load_config(args.config)
        test_cases = load_suites(args.suites) if args.suites else []
    except ConfigFault as e:
        _print_config_fault(e)
        return 1

    print("✅ Configuration is valid")
    if args.suites:
        print(f"✅ {len(test_cases)} tests loaded from {len(args.suites)} suites")
    if args.verbose:
        print(json.dumps(config.to_dict(), indent=2))
    return 0


def cmd_cleanup(args: argparse.Namespace) -> int:
    """Delete artifact runs older than the retention period."""
    try:
        config = load_config(args.config)
    except ConfigFault as e:
        _print_config_fault(e)
        return 1

    capturer = ArtifactCapturer(config, run_id=generate_run_id())
    summary = capturer.cleanup_expired_runs(retention_days=args.days, dry_run=args.dry_run)

    verb = "Would delete" if args.dry_run else "Deleted"
    print(f"🧹 {verb} {summary['deleted_count']} runs ({summary['freed_space']} bytes)")
    for run_name in summary["deleted_runs"]:
        print(f"   - {run_name}")
    for error in summary["errors"]:
        print(f"❌ {error}")
    return 1 if summary["errors"] else 0


def cmd_version(args: argparse.Namespace) -> int:
    """Show version information."""
    try:
        version = package_version("flakeproof")
    except PackageNotFoundError:
        version = __version__

    print(f"flakeproof {version}")
    if args.verbose:
        print()
        print("System Information:")
        print(f"  Python: {sys.version}")
        print(f"  Platform: {sys.platform}")
        print(f"  Working Directory: {os.getcwd()}")
    return 0


def _positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be >= 1, got {value}")
    return number


def create_main_parser() -> argparse.ArgumentParser:
    """Create main CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="flakeproof",
        description="flakeproof - retry-aware end-to-end test runner",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  flakeproof run examples.jsonplaceholder:suite
  flakeproof run examples/academybugs.py --headless --junit reports/junit.xml
  flakeproof validate --config flakeproof.yaml
  flakeproof cleanup --days 3 --dry-run
  flakeproof version --verbose
        """,
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Run command
    run_parser = subparsers.add_parser("run", help="Run test suites")
    run_parser.add_argument(
        "suites",
        nargs="+",
        help="Suite references as module:attribute or path/to/file.py[:attribute]",
    )
    run_parser.add_argument("--config", "-c", type=Path, help="Path to a JSON or YAML config file")
    run_parser.add_argument("--base-url", help="Base URL for relative requests and visits")
    run_parser.add_argument("--workers", type=_positive_int, help="Number of tests run concurrently")
    run_parser.add_argument("--timeout-ms", type=_positive_int, help="Default per-attempt timeout")
    run_parser.add_argument("--max-attempts-run", type=_positive_int, help="Max attempts for run-mode tests")
    run_parser.add_argument(
        "--max-attempts-interactive", type=_positive_int, help="Max attempts for interactive tests"
    )
    run_parser.add_argument(
        "--capture-mode",
        choices=[mode.value for mode in CaptureMode],
        help="When to capture screenshots",
    )
    run_parser.add_argument("--video", action="store_true", help="Record video of interactive tests")
    run_parser.add_argument("--headless", action="store_true", help="Force headless browser")
    run_parser.add_argument("--junit", help="Write a JUnit XML report to this path")
    run_parser.add_argument("--json", help="Write a JSON Lines report to this path")
    run_parser.add_argument("--list", action="store_true", help="List test ids without running them")
    run_parser.set_defaults(func=cmd_run)

    # Validate command
    validate_parser = subparsers.add_parser("validate", help="Validate configuration")
    validate_parser.add_argument("suites", nargs="*", help="Suite references to load")
    validate_parser.add_argument("--config", "-c", type=Path, help="Path to a JSON or YAML config file")
    validate_parser.add_argument("--verbose", "-v", action="store_true", help="Print the resolved configuration")
    validate_parser.set_defaults(func=cmd_validate)

    # Cleanup command
    cleanup_parser = subparsers.add_parser("cleanup", help="Delete expired artifact runs")
    cleanup_parser.add_argument("--config", "-c", type=Path, help="Path to a JSON or YAML config file")
    cleanup_parser.add_argument("--days", type=int, help="Retention period in days")
    cleanup_parser.add_argument("--dry-run", action="store_true", help="Only report what would be deleted")
    cleanup_parser.set_defaults(func=cmd_cleanup)

    # Version command
    version_parser = subparsers.add_parser("version", help="Show version information")
    version_parser.add_argument(
        "--verbose", "-v", action="store_true", help="Show detailed version information"
    )
    version_parser.set_defaults(func=cmd_version)

    return parser


def main(args: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = create_main_parser()

    if args is None:
        args = sys.argv[1:]

    parsed_args = parser.parse_args(args)

    if not hasattr(parsed_args, "func"):
        parser.print_help()
        return 1

    return parsed_args.func(parsed_args)


if __name__ == "__main__":
    sys.exit(main())
