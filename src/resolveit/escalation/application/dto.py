"""
Escalation Application DTOs
============================

Data Transfer Objects for the escalation API layer.

These Pydantic models handle serialization/deserialization and validation
for API requests and responses.
"""

from datetime import datetime
from typing import List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from resolveit.escalation.domain import EscalationOutcome, StatusHistoryEntry, SweepSummary

# ========== Type Aliases for Literals ==========
PriorityStr = Literal["LOW", "MEDIUM", "HIGH", "CRITICAL"]
ManualPriorityStr = Literal["HIGH", "CRITICAL"]
StatusStr = Literal[
    "SUBMITTED", "IN_PROGRESS", "UNDER_REVIEW", "RESOLVED",
    "CLOSED", "ESCALATED", "PENDING_INFO", "REOPENED",
]


# ========== Request DTOs ==========

class ManualEscalationRequest(BaseModel):
    """Request model for a staff-initiated escalation."""
    reason: str = Field(..., min_length=1, max_length=2000, description="Why the complaint is escalated")
    escalate_to: Optional[UUID] = Field(None, description="User ID of the new assignee")
    new_priority: Optional[ManualPriorityStr] = Field(None, description="Priority after escalation")
    actor_id: Optional[str] = Field(None, description="User ID of the escalating staff member")
    actor_name: Optional[str] = Field(None, description="Display name of the escalating staff member")

    @field_validator("reason")
    @classmethod
    def strip_reason(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("reason must not be blank")
        return v


# ========== Response DTOs ==========

class EscalationResponse(BaseModel):
    """Response model for an applied escalation."""
    complaint_id: str
    previous_status: StatusStr
    previous_priority: PriorityStr
    new_priority: PriorityStr
    assigned_to: Optional[str] = None
    escalated_at: datetime
    escalation_reason: str
    manual: bool

    @classmethod
    def from_domain(cls, outcome: EscalationOutcome) -> "EscalationResponse":
        return cls(
            complaint_id=outcome.complaint_id,
            previous_status=outcome.previous_status.value,
            previous_priority=outcome.previous_priority.value,
            new_priority=outcome.new_priority.value,
            assigned_to=outcome.assigned_to,
            escalated_at=outcome.escalated_at,
            escalation_reason=outcome.escalation_reason,
            manual=outcome.manual,
        )


class EvaluationResponse(BaseModel):
    """Response model for a dry-run evaluation."""
    complaint_id: str
    current_priority: PriorityStr
    status: StatusStr
    eligible: bool = Field(..., description="Open and outside the escalation cool-down")
    escalate: bool
    reason: str
    new_priority: PriorityStr
    triggered_rules: List[str] = Field(default_factory=list)
    history_count: int
    evaluated_at: datetime


class StatusHistoryResponse(BaseModel):
    """Response model for one status history entry."""
    id: Optional[str] = None
    status: StatusStr
    previous_status: Optional[StatusStr] = None
    timestamp: datetime
    changed_by: Optional[str] = None
    changed_by_name: str
    notes: Optional[str] = None
    is_system_generated: bool = False

    @classmethod
    def from_domain(cls, entry: StatusHistoryEntry) -> "StatusHistoryResponse":
        return cls(
            id=entry.id,
            status=entry.status.value,
            previous_status=entry.previous_status.value if entry.previous_status else None,
            timestamp=entry.timestamp,
            changed_by=entry.changed_by,
            changed_by_name=entry.changed_by_name,
            notes=entry.notes,
            is_system_generated=entry.is_system_generated,
        )


class SweepSummaryResponse(BaseModel):
    """Response model for a sweep run."""
    processed: int = Field(..., description="Complaints considered")
    escalated: int = Field(..., description="Complaints escalated")
    timestamp: datetime = Field(..., description="Instant the sweep evaluated against")

    @classmethod
    def from_domain(cls, summary: SweepSummary) -> "SweepSummaryResponse":
        return cls(processed=summary.processed, escalated=summary.escalated, timestamp=summary.timestamp)
