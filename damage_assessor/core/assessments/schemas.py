from __future__ import annotations

from datetime import datetime, timezone

from pydantic import Field

from damage_assessor.common.enums import ApprovalStatus, Confidence, Priority, Severity
from damage_assessor.common.schemas import CamelModel


def utc_now_iso() -> str:
    """ISO-8601 UTC timestamp with fixed width, so string order is time order."""
    return datetime.now(timezone.utc).isoformat(timespec="microseconds").replace("+00:00", "Z")


def parse_iso(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


class _ApprovalFields(CamelModel):
    status: ApprovalStatus = ApprovalStatus.PENDING
    comments: str = ""
    severity: Severity | None = None
    priority: Priority | None = None
    confidence: Confidence | None = None
    follow_up: str | None = None
    notes: str | None = None
    estimate_days: int | None = None
    cost_range_aud: str | None = None


class SerializedApproval(_ApprovalFields):
    """Approval as sent over HTTP and stored: the timestamp stays a string."""

    timestamp: str

    def to_approval(self) -> PhotoSetApproval:
        data = self.model_dump(exclude={"timestamp"})
        return PhotoSetApproval(**data, timestamp=parse_iso(self.timestamp))


class PhotoSetApproval(_ApprovalFields):
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def to_serialized(self) -> SerializedApproval:
        data = self.model_dump(exclude={"timestamp"})
        ts = self.timestamp
        if ts.tzinfo is None:
            ts = ts.replace(tzinfo=timezone.utc)
        iso = ts.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")
        return SerializedApproval(**data, timestamp=iso)


class AssessmentMetrics(CamelModel):
    distance_meters: float | None = None
    cost_aud: float | None = Field(default=None, alias="costAUD")


class AssessmentPayload(CamelModel):
    """Request body for POST/PUT; ``damageId`` is checked by the route."""

    id: str | None = None
    damage_id: str | None = None
    approval: SerializedApproval | None = None
    metrics: AssessmentMetrics | None = None


class AssessmentUpsert(CamelModel):
    id: str | None = None
    damage_id: str
    approval: SerializedApproval | None = None
    metrics: AssessmentMetrics | None = None

    @property
    def resolved_id(self) -> str:
        return self.id or self.damage_id


class AssessmentRecord(CamelModel):
    id: str
    damage_id: str
    approval: SerializedApproval | None = None
    metrics: AssessmentMetrics | None = None
    created_at: str
    updated_at: str


class StoredObjectRef(CamelModel):
    key: str
    url: str | None = None
