"""Export run reports to JSON or CSV."""

import csv
import json
from dataclasses import asdict

from .models import Category, RunReport


def report_to_dict(report: RunReport) -> dict:
    """Summarize a run report as plain data."""
    result = report.result
    return {
        "query": report.query,
        "confirmed": report.confirmed,
        "has_more": report.has_more,
        "total": result.total,
        "categories": result.counts(),
        "senders": {
            category.value: dict(result.sender_frequency(category).most_common())
            for category in Category
            if result.count(category)
        },
        "phases": [
            {
                "phase": phase.phase,
                "attempted": phase.attempted,
                "succeeded": phase.succeeded,
                "skipped": phase.skipped,
                "failures": [asdict(f) for f in phase.failures],
            }
            for phase in report.phases()
        ],
        "checkpoint": asdict(report.checkpoint) if report.checkpoint else None,
    }


def export_report(report: RunReport, output_path: str, format: str = "json") -> None:
    """Write a run report to a file.

    Args:
        report: The run report to export.
        output_path: Path to write the output file.
        format: ``json`` for the full summary, ``csv`` for one row per message.
    """
    if format == "json":
        with open(output_path, "w") as f:
            json.dump(report_to_dict(report), f, indent=2)
    elif format == "csv":
        with open(output_path, "w", newline="") as f:
            writer = csv.DictWriter(
                f,
                fieldnames=["message_id", "category", "sender_email", "subject", "date"],
            )
            writer.writeheader()
            for category, messages in report.result.groups.items():
                for message in messages:
                    writer.writerow(
                        {
                            "message_id": message.message_id,
                            "category": category.value,
                            "sender_email": message.sender_email,
                            "subject": message.subject,
                            "date": message.date,
                        }
                    )
    else:
        raise ValueError(f"Unknown export format: {format}")
