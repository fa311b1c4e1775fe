"""CLI entry point for inspecting screenshot reports."""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

from screenshot_reporter import serialization
from screenshot_reporter.models.metadata import AggregateReport, MetadataRecord
from screenshot_reporter.store import COMBINED_JSON_NAME

STATUS_SYMBOLS = {
    "passed": "✅",
    "failed": "❌",
    "pending": "⏸️",
}


def record_status(record: MetadataRecord) -> str:
    """Return the display status of a record."""
    if record.pending:
        return "pending"
    return "passed" if record.passed else "failed"


def log_report_summary(log: logging.Logger, report: AggregateReport) -> None:
    """Log a formatted summary of the specs in a report."""
    log.info("=" * 80)
    log.info("%s:", report.title)
    log.info("=" * 80)

    for record in report.entries.values():
        status = record_status(record)
        log.info(
            "%s %s: %s (%s)",
            STATUS_SYMBOLS.get(status, "?"),
            record.description,
            status,
            "n/a" if record.duration is None else f"{record.duration:.0f}ms",
        )
        if status == "failed" and record.message:
            log.info("  Message: %s", record.message)
        if record.screen_shot_file:
            log.info("  Screenshot: %s", record.screen_shot_file)


def format_output(report: AggregateReport) -> dict[str, Any]:
    """Format report totals for JSON output."""
    statuses = [record_status(record) for record in report.entries.values()]
    return {
        "total": len(statuses),
        "passed": statuses.count("passed"),
        "failed": statuses.count("failed"),
        "pending": statuses.count("pending"),
        "results": [
            {
                "description": record.description,
                "status": status,
                "message": record.message,
                "screenshot": record.screen_shot_file,
            }
            for record, status in zip(report.entries.values(), statuses, strict=True)
        ],
    }


async def run(report_dir: Path, fail_on_failures: bool = False) -> int:
    """Summarize the report in ``report_dir`` and return an exit code."""
    log = logging.getLogger("screenshot_reporter")

    text = await serialization.read_text(report_dir / COMBINED_JSON_NAME)
    if text is None:
        log.error("No %s found in %s", COMBINED_JSON_NAME, report_dir)
        return 2

    try:
        report = AggregateReport.from_payload(serialization.loads(text))
    except (ValueError, KeyError, TypeError) as e:
        log.error("Could not read %s in %s: %s", COMBINED_JSON_NAME, report_dir, e)
        return 2

    log_report_summary(log, report)

    output = format_output(report)
    print(json.dumps(output, indent=2))

    if fail_on_failures and output["failed"]:
        return 1
    return 0


def main() -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(description="Inspect screenshot reports")
    subparsers = parser.add_subparsers(dest="command", required=True)

    summary = subparsers.add_parser(
        "summary", help="Summarize the aggregate report in a directory"
    )
    summary.add_argument(
        "report_dir",
        type=Path,
        help="Directory containing combined.json",
    )
    summary.add_argument(
        "--fail-on-failures",
        action="store_true",
        help="Exit with status 1 when the report contains failed specs",
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )

    exit_code = asyncio.run(
        run(report_dir=args.report_dir, fail_on_failures=args.fail_on_failures)
    )
    sys.exit(exit_code)


if __name__ == "__main__":  # pragma: no cover
    main()
