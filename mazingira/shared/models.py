from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Annotated, List, Literal, Optional, Union, get_args

from pydantic import BaseModel, ConfigDict, Field


def new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


CrimeType = Literal[
    "Illegal Logging",
    "Poaching Camp",
    "Charcoal Burning",
    "River Pollution",
    "Unauthorized Encroachment",
    "Suspicious Vehicle",
]
Severity = Literal["Low", "Medium", "High", "Critical"]
FieldStatus = Literal[
    "Detected",
    "Alerted",
    "Investigation Pending",
    "Threat Confirmed",
    "Area Secured",
    "False Positive",
]
AccuracyRating = Literal["Correct", "Partial", "Incorrect"]
ChatRole = Literal["user", "agent"]

CRIME_TYPES: tuple[str, ...] = get_args(CrimeType)
SEVERITIES: tuple[str, ...] = get_args(Severity)
FIELD_STATUSES: tuple[str, ...] = get_args(FieldStatus)


class GroundingReference(BaseModel):
    model_config = ConfigDict(frozen=True)

    title: str = "Source Verified"
    url: str


class PlainReasoning(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["plain"] = "plain"
    text: str


class StructuredReasoning(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    kind: Literal["structured"] = "structured"
    hypothesis: str
    evidence_points: List[str] = Field(alias="evidencePoints")
    alternatives: List[str]
    change_narrative: str = Field(alias="changeDetection")


Reasoning = Annotated[Union[PlainReasoning, StructuredReasoning], Field(discriminator="kind")]


class Location(BaseModel):
    model_config = ConfigDict(frozen=True)

    lat: float
    lng: float
    region: str


class FieldFeedback(BaseModel):
    model_config = ConfigDict(frozen=True)

    confirmed: Optional[bool] = None
    accuracy_rating: AccuracyRating
    notes: str = ""
    reviewer: str
    reviewed_at: datetime = Field(default_factory=utcnow)


class DetectionResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_id)
    ts: datetime = Field(default_factory=utcnow)
    category: CrimeType
    severity: Severity
    location: Location
    narrative: str
    confidence: float = Field(ge=0.0, le=1.0)
    image_data_url: Optional[str] = None
    status: FieldStatus = "Detected"
    reasoning: Reasoning
    grounding_references: List[GroundingReference] = Field(default_factory=list)
    feedback: Optional[FieldFeedback] = None


class AnalysisPayload(BaseModel):
    """Structured JSON returned by the analysis model, in wire field names."""

    model_config = ConfigDict(populate_by_name=True)

    category: Union[CrimeType, Literal[""]] = Field(alias="type")
    severity: Severity
    narrative: str = Field(alias="description")
    confidence: float = Field(ge=0.0, le=1.0)
    reasoning: Reasoning = Field(alias="reasoningChain")


class ChatTurn(BaseModel):
    role: ChatRole
    text: str = ""
    media_url: Optional[str] = None
