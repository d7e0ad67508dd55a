import csv
import io
from datetime import datetime, timezone

import pytest

from conftest import make_detection
from mazingira.incidents.export import CSV_HEADERS, export_csv, export_filename
from mazingira.incidents.store import AgentLog, IncidentStore, InvalidTransition
from mazingira.shared.models import FieldFeedback

TS = datetime(2024, 5, 1, 6, 30, tzinfo=timezone.utc)


def _feedback(rating="Correct") -> FieldFeedback:
    return FieldFeedback(confirmed=rating != "Incorrect", accuracy_rating=rating, reviewer="Ranger-KWS-HQ")


def test_csv_has_header_plus_one_line_per_record() -> None:
    records = [
        make_detection(id="a1", ts=TS, narrative='Smoke, "thick" plumes near the kilns'),
        make_detection(id="b2", ts=TS, category="Charcoal Burning", severity="Medium", confidence=0.5),
    ]

    content = export_csv(records)

    lines = content.split("\n")
    assert len(lines) == 3
    assert lines[0] == ",".join(CSV_HEADERS)
    assert lines[1] == (
        'a1,2024-05-01T06:30:00Z,Illegal Logging,High,Mau Forest,Detected,0.85,'
        '"Smoke, ""thick"" plumes near the kilns"'
    )
    assert lines[2].endswith(',Medium,Mau Forest,Detected,0.5,"Fresh clear-cut patches along the eastern ridge."')
    rows = list(csv.reader(io.StringIO(content)))
    assert rows[1][-1] == 'Smoke, "thick" plumes near the kilns'
    assert rows[2][2:4] == ["Charcoal Burning", "Medium"]


def test_export_filename_uses_prefix_and_iso_timestamp() -> None:
    assert export_filename("mazingira_reports", now=TS) == "mazingira_reports_2024-05-01T06:30:00Z.csv"


def test_agent_log_keeps_twenty_newest_first() -> None:
    log = AgentLog(clock=lambda: datetime(2024, 1, 1, 9, 5, 7))
    for i in range(25):
        log.add(f"event {i}")

    entries = log.entries()

    assert len(entries) == 20
    assert entries[0] == "[09:05:07] event 24"
    assert entries[-1] == "[09:05:07] event 5"


def test_store_lists_newest_first_and_filters() -> None:
    store = IncidentStore()
    older = store.add(make_detection())
    newer = store.add(make_detection(category="River Pollution"))

    assert [r.id for r in store.list()] == [newer.id, older.id]
    assert [r.id for r in store.list("River Pollution")] == [newer.id]
    assert store.list("Poaching Camp") == []
    with pytest.raises(KeyError):
        store.get("missing")


def test_feedback_needs_reviewable_status() -> None:
    store = IncidentStore()
    record = store.add(make_detection())

    with pytest.raises(InvalidTransition):
        store.submit_feedback(record.id, _feedback())

    assert store.get(record.id).feedback is None


@pytest.mark.parametrize(
    "rating,expected",
    [("Correct", "Threat Confirmed"), ("Partial", "Threat Confirmed"), ("Incorrect", "False Positive")],
)
def test_feedback_resolves_status(rating, expected) -> None:
    store = IncidentStore()
    record = store.add(make_detection())
    store.update_status(record.id, "Alerted")

    updated = store.submit_feedback(record.id, _feedback(rating))

    assert updated.status == expected
    assert updated.feedback.accuracy_rating == rating
    assert store.get(record.id) == updated


def test_feedback_is_accepted_once() -> None:
    store = IncidentStore()
    record = store.add(make_detection(status="Investigation Pending"))
    store.submit_feedback(record.id, _feedback())
    store.update_status(record.id, "Alerted")

    with pytest.raises(InvalidTransition):
        store.submit_feedback(record.id, _feedback("Incorrect"))

    assert store.get(record.id).feedback.accuracy_rating == "Correct"


def test_stats() -> None:
    store = IncidentStore()
    store.add(make_detection(status="Threat Confirmed"))
    store.add(make_detection(status="False Positive", severity="Low"))
    store.add(make_detection(category="Poaching Camp"))

    stats = store.stats()

    assert stats["active_reports"] == 3
    assert stats["verified_alerts"] == 1
    assert stats["false_positives"] == 1
    assert stats["by_category"] == {"Illegal Logging": 2, "Poaching Camp": 1}
    assert stats["by_severity"] == {"High": 2, "Low": 1}
