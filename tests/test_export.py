"""Tests for run report export."""

import csv
import json

import pytest
from conftest import make_message

from gmail_inbox_filter.export import export_report
from gmail_inbox_filter.models import Category, Checkpoint, ClassificationResult, PhaseReport, RunReport


@pytest.fixture
def report():
    result = ClassificationResult()
    result.add(make_message("m1", "news@paper.io", subject="Daily digest"), Category.NEWSLETTER)
    result.add(make_message("m2", "news@paper.io"), Category.NEWSLETTER)
    result.add(make_message("m3", "alice@gmail.com", subject="Lunch?"), Category.UNKNOWN)
    mutation = PhaseReport(phase="mutation", attempted=2, succeeded=0)
    mutation.record_failure("newsletter chunk 1/1 (2 messages)", "backend error")
    return RunReport(
        result=result,
        classification=PhaseReport(phase="classification", attempted=3, succeeded=3),
        mutation=mutation,
        checkpoint=Checkpoint(last_processed_date="2024-03-01", total_processed=3),
        confirmed=True,
    )


def test_export_json(tmp_path, report):
    path = tmp_path / "report.json"
    export_report(report, str(path), format="json")
    data = json.loads(path.read_text())

    assert data["total"] == 3
    assert data["categories"]["newsletter"] == 2
    assert data["senders"]["newsletter"] == {"news@paper.io": 2}
    assert "vip" not in data["senders"]
    assert [p["phase"] for p in data["phases"]] == ["classification", "mutation"]
    assert data["phases"][1]["failures"][0]["reason"] == "backend error"
    assert data["checkpoint"]["last_processed_date"] == "2024-03-01"


def test_export_csv(tmp_path, report):
    path = tmp_path / "report.csv"
    export_report(report, str(path), format="csv")
    with open(path) as f:
        rows = list(csv.DictReader(f))

    assert len(rows) == 3
    assert {r["category"] for r in rows} == {"newsletter", "unknown"}
    assert rows[0]["sender_email"] == "news@paper.io"


def test_export_unknown_format(tmp_path, report):
    with pytest.raises(ValueError):
        export_report(report, str(tmp_path / "out.xml"), format="xml")
