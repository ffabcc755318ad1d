"""
Escalation Domain Layer
=======================

Domain layer for the escalation module.

Contains:
- Entities: Complaint, StatusHistoryEntry, EscalationRule, StaffMember, ...
- Value Objects: EscalationPolicy, EvaluationContext, RuleVerdict
- Domain Services: the SLA rule cascade and EscalationEvaluator

This layer has no dependencies on infrastructure - pure Python business logic.
"""

from resolveit.escalation.domain.entities import (
    Complaint,
    StatusHistoryEntry,
    EscalationRule,
    StaffMember,
    StaffWorkload,
    Notification,
    InternalNote,
    EscalationDecision,
    EscalationOutcome,
    SweepSummary,
)
from resolveit.escalation.domain.value_objects import (
    EscalationPolicy,
    EvaluationContext,
    RuleVerdict,
)
from resolveit.escalation.domain.rules import (
    SLARule,
    DueDateBreachRule,
    PrioritySLARule,
    SensitiveCategoryRule,
    HighUrgencyRule,
    ComplexityRule,
    EscalationEvaluator,
    DEFAULT_RULES,
    OVERDUE_PRIORITY_BUMP,
    COMPLEXITY_PRIORITY_BUMP,
)

__all__ = [
    # Entities
    "Complaint",
    "StatusHistoryEntry",
    "EscalationRule",
    "StaffMember",
    "StaffWorkload",
    "Notification",
    "InternalNote",
    "EscalationDecision",
    "EscalationOutcome",
    "SweepSummary",
    # Value Objects
    "EscalationPolicy",
    "EvaluationContext",
    "RuleVerdict",
    # Rules
    "SLARule",
    "DueDateBreachRule",
    "PrioritySLARule",
    "SensitiveCategoryRule",
    "HighUrgencyRule",
    "ComplexityRule",
    "EscalationEvaluator",
    "DEFAULT_RULES",
    "OVERDUE_PRIORITY_BUMP",
    "COMPLEXITY_PRIORITY_BUMP",
]
