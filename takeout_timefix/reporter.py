"""Run log and summary reporting."""

import logging
from collections import Counter
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Iterable, List, Optional

from .errors import ProcessingError
from .models import AccuracyRank, OrganizedFile, describe_accuracy

if TYPE_CHECKING:
    from .pipeline import ProcessingResult

logger = logging.getLogger(__name__)

RUN_LOG_NAME = 'timefix_log.txt'


class RunLogWriter:
    """Writes the plain-text error log of a run into the output directory."""

    def __init__(self, output_directory: Path, filename: str = RUN_LOG_NAME):
        self.log_path = Path(output_directory) / filename

    @staticmethod
    def render(entries: List[ProcessingError], generated: Optional[datetime] = None) -> str:
        generated = generated or datetime.now()
        lines = [
            "Takeout TimeFix Error Log",
            f"Generated: {generated.isoformat()}",
            f"Total Errors: {len(entries)}",
            "",
        ]

        for entry in entries:
            lines.append(f"=== {entry.severity.value.upper()} ===")
            lines.append(f"Time: {entry.timestamp.isoformat()}")
            lines.append(f"File: {entry.file_path}")
            lines.append(f"Category: {entry.category.value}")
            lines.append(f"Message: {entry.message}")
            if entry.exception:
                lines.append(f"Exception: {entry.exception}")
            if entry.context:
                lines.append(f"Context: {entry.context}")
            lines.append("")

        return "\n".join(lines)

    def write(self, entries: List[ProcessingError]) -> Path:
        self.log_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.log_path, 'w', encoding='utf-8') as f:
            f.write(self.render(entries))
        logger.info(f"Run log written to {self.log_path} ({len(entries)} entries)")
        return self.log_path


def accuracy_distribution(organized: Iterable[OrganizedFile]) -> Counter:
    """Count organized files per timestamp source, most trusted first."""
    counts = Counter(f.date_source for f in organized)
    order = [rank.description for rank in AccuracyRank] + [describe_accuracy(None)]
    return Counter({label: counts[label] for label in order if counts[label]})


def generate_summary_report(result: 'ProcessingResult') -> str:
    """
    Generate human-readable summary report.

    Args:
        result: Result of a pipeline run

    Returns:
        Formatted summary report
    """
    report = []
    report.append("=" * 50)
    report.append("TAKEOUT TIMEFIX SUMMARY REPORT")
    report.append("=" * 50)
    report.append(f"Completed: {datetime.now().isoformat(timespec='seconds')}")
    if result.elapsed_seconds:
        report.append(f"Elapsed: {result.elapsed_seconds:.1f}s")
    report.append("")

    report.append("=== FILE STATISTICS ===")
    report.append(f"• Media files found: {result.total_files:,}")
    report.append(f"• Files processed: {result.processed_files:,}")
    report.append(f"• Unique files after deduplication: {result.unique_files:,}")
    report.append(f"• Duplicates merged: {result.duplicates_removed:,}")
    report.append(f"• Files organized: {result.organized_files:,}")
    if result.failed_files:
        report.append(f"• Files failed: {result.failed_files:,}")
    report.append("")

    distribution = accuracy_distribution(result.organized)
    if distribution:
        report.append("=== TIMESTAMP SOURCES ===")
        total = sum(distribution.values())
        for label, count in distribution.items():
            report.append(f"• {label}: {count:,} ({count / total * 100:.1f}%)")
        report.append("")

    if result.errors:
        report.append("=== ERRORS ENCOUNTERED ===")
        for error in result.errors[:20]:
            report.append(f"❌ {error}")
        if len(result.errors) > 20:
            report.append(f"... and {len(result.errors) - 20} more")
        report.append("")

    if result.warnings:
        report.append(f"⚠️ {len(result.warnings)} warnings recorded")
    if result.run_log_path:
        report.append(f"📋 Run log: {result.run_log_path}")
    report.append("")

    if not result.success:
        status = f"❌ FAILED: {result.error_message}"
    elif result.errors:
        status = "⚠️ COMPLETED WITH ISSUES"
    else:
        status = "✅ COMPLETE SUCCESS"
    report.append(f"STATUS: {status}")

    return "\n".join(report)
