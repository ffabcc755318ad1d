"""
Escalation Rule Cascade
=======================

Each rule inspects one complaint and either stays silent or returns a
verdict. The evaluator folds the rules in order: the escalate flag is the
OR of all verdicts, while reason and priority come from the last rule
that fired.

Every rule reads the complaint's *stored* priority, never a priority
proposed by an earlier rule.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, Optional, Sequence, Tuple

from resolveit.config import Priority, SENSITIVE_CATEGORIES
from resolveit.escalation.domain.entities import Complaint, EscalationDecision
from resolveit.escalation.domain.value_objects import (
    EscalationPolicy,
    EvaluationContext,
    RuleVerdict,
)

# Overdue and complexity rules bump LOW and MEDIUM differently
OVERDUE_PRIORITY_BUMP: Dict[Priority, Priority] = {
    Priority.LOW: Priority.MEDIUM,
    Priority.MEDIUM: Priority.HIGH,
    Priority.HIGH: Priority.CRITICAL,
    Priority.CRITICAL: Priority.CRITICAL,
}

COMPLEXITY_PRIORITY_BUMP: Dict[Priority, Priority] = {
    Priority.LOW: Priority.HIGH,
    Priority.MEDIUM: Priority.CRITICAL,
    Priority.HIGH: Priority.CRITICAL,
    Priority.CRITICAL: Priority.CRITICAL,
}


class SLARule(ABC):
    """One step of the escalation cascade."""

    name: str = "rule"

    @abstractmethod
    def evaluate(self, ctx: EvaluationContext) -> Optional[RuleVerdict]:
        """Return a verdict when the rule fires, else None."""


class DueDateBreachRule(SLARule):
    """Escalate complaints that are well past their due date."""

    name = "due_date_breach"

    def evaluate(self, ctx: EvaluationContext) -> Optional[RuleVerdict]:
        hours_overdue = ctx.complaint.hours_overdue(ctx.now)
        if hours_overdue is None or hours_overdue < ctx.policy.overdue_threshold_hours:
            return None
        return RuleVerdict(
            rule=self.name,
            reason=f"Complaint is {hours_overdue} hours overdue",
            new_priority=OVERDUE_PRIORITY_BUMP[ctx.complaint.priority],
        )


class PrioritySLARule(SLARule):
    """Age-based SLA per priority tier."""

    name = "priority_sla"

    # label, priority after escalation (None keeps it)
    _TIERS: Dict[Priority, Tuple[str, Optional[Priority]]] = {
        Priority.CRITICAL: ("Critical complaint", None),
        Priority.HIGH: ("High priority complaint", Priority.CRITICAL),
        Priority.MEDIUM: ("Medium priority complaint", Priority.HIGH),
        Priority.LOW: ("Low priority complaint", Priority.MEDIUM),
    }

    def evaluate(self, ctx: EvaluationContext) -> Optional[RuleVerdict]:
        priority = ctx.complaint.priority
        sla_hours = ctx.policy.sla_hours_for(priority)
        age = ctx.age_in_hours
        if age < sla_hours:
            return None

        label, new_priority = self._TIERS[priority]
        return RuleVerdict(
            rule=self.name,
            reason=f"{label} unresolved for {age} hours (SLA: {sla_hours} hours)",
            new_priority=new_priority,
        )


class SensitiveCategoryRule(SLARule):
    """Harassment, discrimination and safety complaints get a short SLA."""

    name = "sensitive_category"

    def evaluate(self, ctx: EvaluationContext) -> Optional[RuleVerdict]:
        category = ctx.complaint.category
        if category not in SENSITIVE_CATEGORIES:
            return None
        age = ctx.age_in_hours
        sla_hours = ctx.policy.sensitive_sla_hours
        if age < sla_hours:
            return None
        return RuleVerdict(
            rule=self.name,
            reason=(
                f"Sensitive complaint ({category.value}) unresolved for {age} hours "
                f"(SLA: {sla_hours} hours)"
            ),
            new_priority=Priority.CRITICAL,
        )


class HighUrgencyRule(SLARule):
    """Escalate complaints the reporter marked as highly urgent."""

    name = "high_urgency"

    def evaluate(self, ctx: EvaluationContext) -> Optional[RuleVerdict]:
        urgency = ctx.complaint.urgency_level
        if not urgency or urgency < ctx.policy.urgency_threshold:
            return None
        age = ctx.age_in_hours
        if age < ctx.policy.urgency_min_age_hours:
            return None
        return RuleVerdict(
            rule=self.name,
            reason=f"High urgency complaint (level {urgency}) unresolved for {age} hours",
            new_priority=Priority.CRITICAL,
        )


class ComplexityRule(SLARule):
    """Long-running complaints that keep changing status."""

    name = "complexity"

    def evaluate(self, ctx: EvaluationContext) -> Optional[RuleVerdict]:
        age = ctx.age_in_hours
        if ctx.history_count < ctx.policy.complexity_history_threshold:
            return None
        if age < ctx.policy.complexity_min_age_hours:
            return None
        return RuleVerdict(
            rule=self.name,
            reason=f"Complex complaint with {ctx.history_count} status changes over {age} hours",
            new_priority=COMPLEXITY_PRIORITY_BUMP[ctx.complaint.priority],
        )


DEFAULT_RULES: Tuple[SLARule, ...] = (
    DueDateBreachRule(),
    PrioritySLARule(),
    SensitiveCategoryRule(),
    HighUrgencyRule(),
    ComplexityRule(),
)


class EscalationEvaluator:
    """
    Decides whether a complaint should be escalated.

    Pure: the decision depends only on the complaint, its history count,
    the policy and the supplied instant.
    """

    def __init__(
        self,
        policy: Optional[EscalationPolicy] = None,
        rules: Sequence[SLARule] = DEFAULT_RULES,
    ):
        self.policy = policy or EscalationPolicy()
        self._rules = tuple(rules)

    def evaluate(
        self,
        complaint: Complaint,
        now: datetime,
        history_count: int = 0,
    ) -> EscalationDecision:
        """
        Fold the rule cascade over one complaint.

        Args:
            complaint: Complaint to evaluate
            now: The sweep's captured instant
            history_count: Number of status history entries for the complaint

        Returns:
            EscalationDecision; ``new_priority`` equals the current priority
            when nothing fired.
        """
        ctx = EvaluationContext(
            complaint=complaint,
            now=now,
            history_count=history_count,
            policy=self.policy,
        )

        escalate = False
        reason = ""
        new_priority = complaint.priority
        fired = []

        for rule in self._rules:
            verdict = rule.evaluate(ctx)
            if verdict is None:
                continue
            escalate = True
            reason = verdict.reason
            if verdict.new_priority is not None:
                new_priority = verdict.new_priority
            fired.append(verdict.rule)

        if not escalate:
            return EscalationDecision.no_escalation(complaint.priority)

        return EscalationDecision(
            escalate=True,
            reason=reason,
            new_priority=new_priority,
            triggered_rules=tuple(fired),
        )

    def is_eligible(self, complaint: Complaint, now: datetime) -> bool:
        """Open and outside the post-escalation cool-down."""
        return complaint.is_open and complaint.is_cooled_down(now, self.policy.cooldown_hours)
