from __future__ import annotations

from collections import Counter, deque
from datetime import datetime
from typing import Callable, Dict, Iterable, List

from ..shared.models import DetectionResult, FieldFeedback, FieldStatus

ALL_CATEGORIES = "All"
REVIEWABLE_STATUSES = ("Alerted", "Investigation Pending")
INITIAL_LOG = ("System initialized.", "Waiting for satellite uplink...")


class InvalidTransition(ValueError):
    pass


class AgentLog:
    """Newest-first activity log; only the most recent ``limit`` entries are kept."""

    def __init__(
        self,
        limit: int = 20,
        initial: Iterable[str] = INITIAL_LOG,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self._entries: deque[str] = deque(initial, maxlen=limit)
        self._clock = clock

    def add(self, message: str) -> str:
        entry = f"[{self._clock().strftime('%H:%M:%S')}] {message}"
        self._entries.appendleft(entry)
        return entry

    def entries(self) -> List[str]:
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)


class IncidentStore:
    def __init__(self):
        self._records: List[DetectionResult] = []

    def __len__(self) -> int:
        return len(self._records)

    def add(self, record: DetectionResult) -> DetectionResult:
        self._records.insert(0, record)
        return record

    def get(self, incident_id: str) -> DetectionResult:
        for r in self._records:
            if r.id == incident_id:
                return r
        raise KeyError(f"Incident not found: {incident_id}")

    def _replace(self, updated: DetectionResult) -> DetectionResult:
        for i, r in enumerate(self._records):
            if r.id == updated.id:
                self._records[i] = updated
                return updated
        raise KeyError(f"Incident not found: {updated.id}")

    def list(self, category: str = ALL_CATEGORIES) -> List[DetectionResult]:
        if not category or category == ALL_CATEGORIES:
            return list(self._records)
        return [r for r in self._records if r.category == category]

    def history_for(self, region: str) -> List[DetectionResult]:
        return [r for r in self._records if r.location.region == region]

    def update_status(self, incident_id: str, status: FieldStatus) -> DetectionResult:
        record = self.get(incident_id)
        return self._replace(record.model_copy(update={"status": status}))

    def submit_feedback(self, incident_id: str, feedback: FieldFeedback) -> DetectionResult:
        record = self.get(incident_id)
        if record.feedback is not None:
            raise InvalidTransition(f"Incident {incident_id} already has field feedback")
        if record.status not in REVIEWABLE_STATUSES:
            raise InvalidTransition(f"Incident {incident_id} is {record.status!r}; feedback needs Alerted or Investigation Pending")
        status: FieldStatus = "False Positive" if feedback.accuracy_rating == "Incorrect" else "Threat Confirmed"
        return self._replace(record.model_copy(update={"feedback": feedback, "status": status}))

    def stats(self) -> Dict[str, object]:
        return {
            "active_reports": len(self._records),
            "verified_alerts": sum(1 for r in self._records if r.status == "Threat Confirmed"),
            "false_positives": sum(1 for r in self._records if r.status == "False Positive"),
            "by_category": dict(Counter(r.category for r in self._records)),
            "by_severity": dict(Counter(r.severity for r in self._records)),
        }

