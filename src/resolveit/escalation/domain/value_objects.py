"""
Escalation Value Objects
=========================

Immutable value objects for the escalation domain.

Value objects are defined by their attributes rather than an identity.
They are immutable and can be freely shared.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from resolveit.config import Priority
from resolveit.escalation.domain.entities import Complaint

DEFAULT_PRIORITY_SLA_HOURS = {
    Priority.CRITICAL: 2,
    Priority.HIGH: 8,
    Priority.MEDIUM: 24,
    Priority.LOW: 72,
}


class EscalationPolicy(BaseModel):
    """
    Escalation rule constants, loaded from YAML.

    Every field defaults to the production SLA table so an absent or
    partial file still yields a complete policy.
    """

    model_config = ConfigDict(frozen=True)

    cooldown_hours: int = Field(
        default=4, ge=0,
        description="Hours after an escalation before a complaint is re-evaluated"
    )
    overdue_threshold_hours: int = Field(
        default=12, ge=0,
        description="Hours past the due date before escalating"
    )
    priority_sla_hours: Dict[Priority, int] = Field(
        default_factory=lambda: dict(DEFAULT_PRIORITY_SLA_HOURS),
        description="Maximum unresolved age per priority"
    )
    sensitive_sla_hours: int = Field(
        default=4, ge=0,
        description="SLA for harassment, discrimination and safety complaints"
    )
    urgency_threshold: int = Field(default=8, ge=1, le=10)
    urgency_min_age_hours: int = Field(default=6, ge=0)
    complexity_history_threshold: int = Field(
        default=5, ge=1,
        description="Status changes that mark a complaint as complex"
    )
    complexity_min_age_hours: int = Field(default=48, ge=0)

    @field_validator("priority_sla_hours")
    @classmethod
    def fill_missing_priorities(cls, v: Dict[Priority, int]) -> Dict[Priority, int]:
        """Fill priorities the file leaves out with the default SLA."""
        for priority, hours in DEFAULT_PRIORITY_SLA_HOURS.items():
            v.setdefault(priority, hours)
        for priority, hours in v.items():
            if hours < 0:
                raise ValueError(f"SLA hours for {priority.value} must be >= 0")
        return v

    def sla_hours_for(self, priority: Priority) -> int:
        return self.priority_sla_hours[priority]


@dataclass(frozen=True)
class EvaluationContext:
    """
    Everything a rule may look at for one complaint.

    ``now`` is the sweep's captured instant, shared by every complaint in
    the batch.
    """

    complaint: Complaint
    now: datetime
    history_count: int
    policy: EscalationPolicy

    @property
    def age_in_hours(self) -> int:
        return self.complaint.age_in_hours(self.now)


@dataclass(frozen=True)
class RuleVerdict:
    """
    A single rule's finding.

    ``new_priority`` of None leaves the accumulated priority untouched.
    """

    rule: str
    reason: str
    new_priority: Optional[Priority] = None
