from __future__ import annotations

from typing import Optional, Tuple

from ..agents.agent import MazingiraAgent
from ..shared.errors import BusyError, MazingiraError
from ..shared.logging import get_logger
from ..shared.models import AccuracyRating, DetectionResult, FieldFeedback, FieldStatus
from .export import export_csv, export_filename
from .store import ALL_CATEGORIES, AgentLog, IncidentStore

LOGGER = get_logger(__name__)

DEFAULT_REVIEWER = "Ranger-KWS-HQ"


class IncidentDesk:
    """Ranger-facing workflow over the incident store and the agent log."""

    def __init__(
        self,
        agent: MazingiraAgent,
        store: Optional[IncidentStore] = None,
        log: Optional[AgentLog] = None,
        export_prefix: str = "mazingira_reports",
    ):
        self.agent = agent
        self.store = store or IncidentStore()
        self.log = log or AgentLog()
        self.export_prefix = export_prefix
        self.analyzing = False

    async def analyze_upload(self, image_bytes: bytes, region: str, mime_type: str = "image/jpeg") -> Optional[DetectionResult]:
        if self.analyzing:
            raise BusyError("an imagery analysis is already running")
        self.analyzing = True
        self.log.add(f"Ingesting satellite sector imagery for {region}...")
        try:
            self.log.add("Analyzing change signatures & grounding facts...")
            history = self.store.history_for(region)
            result = await self.agent.analyze_image(image_bytes, region, history, mime_type=mime_type)
        except MazingiraError as e:
            LOGGER.warning("[desk] analysis failed for region=%s: %s", region, e)
            self.log.add("ERROR: Satellite uplink interrupted. Check vision module.")
            return None
        finally:
            self.analyzing = False
        if result is None:
            self.log.add("Sector scan complete. No critical threats identified.")
            return None
        self.store.add(result)
        self.log.add(f"ALERT: {result.category} detected. Priority: {result.severity}.")
        return result

    def update_status(self, incident_id: str, status: FieldStatus) -> DetectionResult:
        record = self.store.update_status(incident_id, status)
        self.log.add(f"Incident {incident_id[:5]} status changed to {status}.")
        return record

    def submit_feedback(
        self,
        incident_id: str,
        accuracy_rating: AccuracyRating,
        notes: str = "",
        confirmed: Optional[bool] = True,
        reviewer: str = DEFAULT_REVIEWER,
    ) -> DetectionResult:
        feedback = FieldFeedback(confirmed=confirmed, accuracy_rating=accuracy_rating, notes=notes, reviewer=reviewer)
        record = self.store.submit_feedback(incident_id, feedback)
        self.log.add(f"Feedback received for {incident_id[:5]}. Agent thought signatures updating.")
        return record

    def export(self, category: str = ALL_CATEGORIES) -> Optional[Tuple[str, str]]:
        records = self.store.list(category)
        if not records:
            return None
        content = export_csv(records)
        self.log.add("Active reports exported to CSV.")
        return export_filename(self.export_prefix), content
