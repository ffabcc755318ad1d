"""
Escalation Domain Entities
===========================

Pure Python domain entities for complaint escalation.

Following Domain-Driven Design principles, these entities contain
business logic and are free of infrastructure concerns.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Tuple

from resolveit.config import (
    CLOSED_STATUSES,
    ComplaintCategory,
    ComplaintStatus,
    NotificationType,
    NoteType,
    Priority,
    StaffRole,
)

_SECONDS_PER_HOUR = 3600


@dataclass
class Complaint:
    """
    Complaint entity as seen by the escalation engine.

    Owned by the complaint store; the engine reads it and applies the
    escalation patch.
    """

    id: str
    title: str
    category: ComplaintCategory
    priority: Priority
    status: ComplaintStatus
    created_at: datetime

    due_date: Optional[datetime] = None
    escalated_at: Optional[datetime] = None
    escalation_reason: Optional[str] = None
    assigned_to: Optional[str] = None
    urgency_level: Optional[int] = None
    resolved_at: Optional[datetime] = None

    # Ownership
    user_id: Optional[str] = None
    is_anonymous: bool = False
    anonymous_email: Optional[str] = None

    def __post_init__(self):
        """Validate complaint invariants."""
        if self.urgency_level is not None and not 1 <= self.urgency_level <= 10:
            raise ValueError("urgency_level must be between 1 and 10")

        if self.status in CLOSED_STATUSES and self.resolved_at is None:
            raise ValueError(f"{self.status.value} complaint must have resolved_at")

    @property
    def is_open(self) -> bool:
        """Check if complaint is still open."""
        return self.status not in CLOSED_STATUSES

    @property
    def has_notifiable_owner(self) -> bool:
        """Anonymous complaints never get in-app owner notifications."""
        return bool(self.user_id) and not self.is_anonymous

    def age_in_hours(self, now: datetime) -> int:
        """Whole hours since creation, floored."""
        return int((now - self.created_at).total_seconds() // _SECONDS_PER_HOUR)

    def hours_overdue(self, now: datetime) -> Optional[int]:
        """Whole hours past the due date, or None when not overdue."""
        if self.due_date is None or now <= self.due_date:
            return None
        return int((now - self.due_date).total_seconds() // _SECONDS_PER_HOUR)

    def is_cooled_down(self, now: datetime, cooldown_hours: int) -> bool:
        """True when the last escalation (if any) is older than the cool-down."""
        if self.escalated_at is None:
            return True
        return (now - self.escalated_at).total_seconds() > cooldown_hours * _SECONDS_PER_HOUR


@dataclass
class StatusHistoryEntry:
    """
    Append-only record of one status transition.

    Created once per transition; never mutated or deleted.
    """

    complaint_id: str
    status: ComplaintStatus
    timestamp: datetime
    changed_by_name: str
    previous_status: Optional[ComplaintStatus] = None
    notes: Optional[str] = None
    is_system_generated: bool = False
    changed_by: Optional[str] = None
    id: Optional[str] = None


@dataclass
class EscalationRule:
    """Configured escalation target for a (category, priority) pair."""

    category: ComplaintCategory
    priority: Priority
    escalate_to: str
    is_active: bool = True
    auto_escalate_after_hours: Optional[int] = None
    conditions: List[str] = field(default_factory=list)
    id: Optional[str] = None


@dataclass
class StaffMember:
    """A user profile from the staff directory."""

    user_id: str
    role: StaffRole
    is_active: bool = True
    email: Optional[str] = None
    display_name: Optional[str] = None


@dataclass(frozen=True)
class StaffWorkload:
    """A staff member's open-complaint count at the moment of a decision."""

    user_id: str
    role: StaffRole
    workload: int


@dataclass
class Notification:
    """In-app notification queued for a user."""

    user_id: str
    complaint_id: str
    title: str
    message: str
    type: NotificationType = NotificationType.AUTO_ESCALATED
    is_read: bool = False
    id: Optional[str] = None


@dataclass
class InternalNote:
    """Staff-facing note attached to a complaint."""

    complaint_id: str
    note: str
    created_by: Optional[str]
    is_public: bool = False
    note_type: NoteType = NoteType.GENERAL
    id: Optional[str] = None


@dataclass(frozen=True)
class EscalationDecision:
    """Outcome of evaluating one complaint against the rule cascade."""

    escalate: bool
    reason: str
    new_priority: Priority
    triggered_rules: Tuple[str, ...] = ()

    @classmethod
    def no_escalation(cls, priority: Priority) -> "EscalationDecision":
        return cls(escalate=False, reason="", new_priority=priority)


@dataclass(frozen=True)
class EscalationOutcome:
    """What the committer applied to a complaint."""

    complaint_id: str
    previous_status: ComplaintStatus
    previous_priority: Priority
    new_priority: Priority
    assigned_to: Optional[str]
    escalated_at: datetime
    escalation_reason: str
    manual: bool = False


@dataclass(frozen=True)
class SweepSummary:
    """Result of one auto-escalation sweep."""

    processed: int
    escalated: int
    timestamp: datetime

    def to_dict(self) -> dict:
        return {
            "processed": self.processed,
            "escalated": self.escalated,
            "timestamp": self.timestamp.isoformat(),
        }
