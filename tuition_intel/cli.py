#!/usr/bin/env python3
"""
extract-tuition: resolve competitor program tuition from the command line.

Usage:
    extract-tuition --school "Acme University" --program "Part-Time MBA"
    extract-tuition --targets targets.csv --output records.jsonl
    extract-tuition --targets targets.csv --workers 3 --delay 2.5
    extract-tuition --school "Acme University" --program "MBA" --ai-review always -v
"""

import argparse
import dataclasses
import logging
import sys
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .batch import BatchExtractionRunner, BatchResult, ExtractionTarget, load_targets
from .config import AI_REVIEW_MODES, EngineConfig
from .exceptions import ConfigurationError
from .models.extraction import ExtractionStatus
from .services.extraction_service import TuitionExtractionService
from .services.usage_logger import JsonlUsageLogger, LoggingUsageLogger
from .storage import JsonlRecordStore
from .utils.logger import PipelineLogger
from .utils.rate_limiter import RequestPacer

load_dotenv()
console = Console()
logger = logging.getLogger(__name__)

STATUS_STYLES = {
    ExtractionStatus.SUCCESS.value: "green",
    ExtractionStatus.NOT_FOUND.value: "yellow",
    ExtractionStatus.FAILED.value: "red",
}
CONFIDENCE_STYLES = {"High": "green", "Medium": "yellow", "Low": "red"}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="extract-tuition",
        description="Extract verified tuition figures with Gemini Search Grounding",
    )
    parser.add_argument("--school", type=str, help="Institution name for a single target")
    parser.add_argument("--program", type=str, help="Program label for a single target")
    parser.add_argument("--targets", type=Path, help="CSV file with a 'school,program' header")
    parser.add_argument("--output", type=Path, help="Append records to this JSONL file")
    parser.add_argument(
        "--delay",
        type=float,
        default=None,
        help="Seconds between upstream calls (default: TUITION_BATCH_DELAY_S or 2.0)",
    )
    parser.add_argument("--workers", type=int, default=1, help="Parallel workers (default: 1)")
    parser.add_argument("--no-verify", action="store_true", help="Skip the verification agent")
    parser.add_argument(
        "--ai-review",
        choices=AI_REVIEW_MODES,
        default=None,
        help="When to ask the LLM to review a record (default: TUITION_AI_REVIEW or borderline)",
    )
    parser.add_argument("--usage-log", type=Path, help="Append AI usage events to this JSONL file")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Console log level (default: INFO)",
    )
    parser.add_argument("--log-file", type=str, help="Also write logs to this file")
    parser.add_argument("--verbose", "-v", action="store_true", help="Show verification issues per target")
    return parser


def resolve_targets(args: argparse.Namespace, parser: argparse.ArgumentParser) -> list[ExtractionTarget]:
    if args.targets and (args.school or args.program):
        parser.error("use either --targets or --school/--program, not both")
    if args.targets:
        if not args.targets.exists():
            parser.error(f"targets file not found: {args.targets}")
        try:
            return load_targets(args.targets)
        except ValueError as e:
            parser.error(str(e))
    if not args.school or not args.program:
        parser.error("--school and --program are required unless --targets is given")
    return [ExtractionTarget(school=args.school, program=args.program)]


def build_config(args: argparse.Namespace) -> EngineConfig:
    config = EngineConfig.from_env()
    overrides = {}
    if args.no_verify:
        overrides["verification_enabled"] = False
    if args.ai_review:
        overrides["ai_review_mode"] = args.ai_review
    if args.delay is not None:
        overrides["batch_delay_s"] = args.delay
    return dataclasses.replace(config, **overrides) if overrides else config


def display_results(result: BatchResult, verbose: bool = False) -> None:
    """Render the results table and summary panel."""
    console.print()

    table = Table(title="Tuition Extraction Results")
    table.add_column("School", style="cyan")
    table.add_column("Program")
    table.add_column("Status", justify="center")
    table.add_column("Tuition", justify="right")
    table.add_column("Confidence", justify="center")
    table.add_column("Verification", justify="center")
    table.add_column("Sources", justify="right")

    for item in result.items:
        record = item.record
        status_style = STATUS_STYLES.get(item.status, "white")
        if record is None:
            table.add_row(
                item.target.school,
                item.target.program,
                f"[{status_style}]{item.status}[/{status_style}]",
                "-",
                "-",
                "-",
                "0",
            )
            continue

        confidence = record.confidence_score.value
        confidence_style = CONFIDENCE_STYLES.get(confidence, "white")
        tuition = record.tuition_amount or "-"
        if record.tuition_amount and record.tuition_period:
            tuition = f"{record.tuition_amount} ({record.tuition_period})"
        table.add_row(
            record.school,
            record.program + (f" → {record.program_variation_used}" if record.program_variation_used else ""),
            f"[{status_style}]{item.status}[/{status_style}]",
            tuition,
            f"[{confidence_style}]{confidence}[/{confidence_style}]",
            record.verification.status.value if record.verification else "-",
            str(len(record.validated_sources)),
        )

    console.print(table)

    if verbose:
        for item in result.items:
            record = item.record
            if record is None:
                console.print(f"\n[bold]{item.target}[/bold]\n  [red]ERROR[/red] {item.error}")
                continue
            if record.error:
                console.print(f"\n[bold]{item.target}[/bold]\n  [red]ERROR[/red] {record.error}")
            elif record.verification and record.verification.issues:
                console.print(f"\n[bold]{item.target}[/bold]")
                for issue in record.verification.issues:
                    console.print(f"  [yellow]ISSUE[/yellow] {issue}")
            if record.source_url:
                console.print(f"  source: {record.source_url}")

    summary = (
        f"Targets: {len(result.items)}\n"
        f"Success: {result.succeeded}\n"
        f"Not Found: {result.not_found}\n"
        f"Failed: {result.failed}\n"
        f"Duration: {result.duration_seconds:.1f}s"
    )
    border = "red" if result.all_failed else "blue"
    console.print(Panel(summary, title="Extraction Summary", border_style=border))


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.workers < 1:
        parser.error("--workers must be >= 1")

    targets = resolve_targets(args, parser)
    if not targets:
        console.print("[yellow]No targets to process.[/yellow]")
        return 0

    run_logger = PipelineLogger(log_level=args.log_level, log_file=args.log_file, phase="Extract")

    try:
        config = build_config(args)
        usage_logger = JsonlUsageLogger(args.usage_log) if args.usage_log else LoggingUsageLogger()
        service = TuitionExtractionService.from_config(config, usage_logger=usage_logger)
    except ConfigurationError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        return 1

    runner = BatchExtractionRunner(
        service,
        pacer=RequestPacer(delay=config.batch_delay_s),
        workers=args.workers,
        store=JsonlRecordStore(args.output) if args.output else None,
        run_logger=run_logger,
    )

    try:
        result = runner.run(targets)
    except ConfigurationError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        return 1
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted.[/yellow]")
        return 130

    display_results(result, verbose=args.verbose)
    if args.output:
        console.print(f"Records written to {args.output}")

    summary = run_logger.get_error_summary()
    if summary["total_errors"]:
        console.print(f"[red]{summary['total_errors']} error(s) logged during the run[/red]")

    return 1 if result.all_failed else 0


if __name__ == "__main__":
    sys.exit(main())
