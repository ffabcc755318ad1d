"""
Escalation Application Services
================================

Application services orchestrate business logic and coordinate between
domain objects and repositories.

EscalationService owns the recurring sweep
(Idle -> Fetching -> Evaluating -> Committing -> Idle) and the manual
escalation entry point. No state survives between sweeps except what is
stored on complaints: ``escalated_at`` is the de-duplication watermark.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Callable, List, Optional
from uuid import uuid4

from resolveit.config import MANUAL_ESCALATION_PRIORITIES, Priority
from resolveit.core import ResourceNotFoundException, ValidationException
from resolveit.escalation.application.committer import EscalationCommand, EscalationCommitter
from resolveit.escalation.application.interfaces import IPolicyProvider, UnitOfWorkFactory
from resolveit.escalation.domain import (
    Complaint,
    EscalationDecision,
    EscalationEvaluator,
    EscalationOutcome,
    StatusHistoryEntry,
    SweepSummary,
)
from resolveit.shared.infrastructure.logging import get_context_logger, get_logger

logger = get_logger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SweepState(str, Enum):
    """Phases of one sweep."""
    IDLE = "idle"
    FETCHING = "fetching"
    EVALUATING = "evaluating"
    COMMITTING = "committing"


@dataclass(frozen=True)
class EvaluationPreview:
    """Dry-run result for a single complaint."""

    complaint: Complaint
    decision: EscalationDecision
    eligible: bool
    history_count: int
    evaluated_at: datetime


class EscalationService:
    """
    Service for automatic and manual complaint escalation.

    The current time is captured once per sweep and threaded through every
    evaluation and commit of that sweep.
    """

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        committer: EscalationCommitter,
        policy_provider: IPolicyProvider,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._uow_factory = uow_factory
        self._committer = committer
        self._policy_provider = policy_provider
        self._clock = clock
        self._state = SweepState.IDLE

    @property
    def state(self) -> SweepState:
        return self._state

    async def check_auto_escalation(self, now: Optional[datetime] = None) -> SweepSummary:
        """
        Run one sweep over every eligible complaint.

        Each escalation is committed independently; if the sweep dies
        midway, committed escalations stay and the rest are re-evaluated
        next time. Storage errors propagate to the caller.

        Returns:
            SweepSummary with processed/escalated counts and the sweep instant
        """
        now = now or self._clock()
        policy = self._policy_provider.get_policy()
        evaluator = EscalationEvaluator(policy)
        sweep_log = get_context_logger(__name__, sweep_id=uuid4().hex[:12])

        sweep_log.info("Auto-escalation sweep started", extra={"timestamp": now.isoformat()})

        escalated = 0
        try:
            self._state = SweepState.FETCHING
            cutoff = now - timedelta(hours=policy.cooldown_hours)
            async with self._uow_factory() as uow:
                candidates = await uow.complaints.list_escalation_candidates(cutoff)
                history_counts = {
                    complaint.id: await uow.history.count_by_complaint(complaint.id)
                    for complaint in candidates
                }

            self._state = SweepState.EVALUATING
            due = []
            for complaint in candidates:
                decision = evaluator.evaluate(complaint, now, history_counts[complaint.id])
                if decision.escalate:
                    due.append((complaint, decision))

            self._state = SweepState.COMMITTING
            for complaint, decision in due:
                outcome = await self._committer.commit(EscalationCommand(
                    complaint_id=complaint.id,
                    reason=decision.reason,
                    now=now,
                    new_priority=decision.new_priority,
                ))
                if outcome is not None:
                    escalated += 1
        finally:
            self._state = SweepState.IDLE

        summary = SweepSummary(processed=len(candidates), escalated=escalated, timestamp=now)
        sweep_log.info("Auto-escalation sweep finished", extra=summary.to_dict())
        return summary

    async def manual_escalation(
        self,
        complaint_id: str,
        reason: str,
        escalate_to: Optional[str] = None,
        new_priority: Optional[Priority] = None,
        actor_id: Optional[str] = None,
        actor_name: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> EscalationOutcome:
        """
        Escalate a complaint on behalf of a staff member.

        Skips rule evaluation and assignment resolution. The caller must
        already be authorized.

        Raises:
            ValidationException: Empty reason or priority outside HIGH/CRITICAL
            ResourceNotFoundException: Complaint does not exist
        """
        if not reason or not reason.strip():
            raise ValidationException("Escalation reason is required")

        if new_priority is not None and new_priority not in MANUAL_ESCALATION_PRIORITIES:
            raise ValidationException(
                "Manual escalation priority must be HIGH or CRITICAL",
                {"new_priority": new_priority.value}
            )

        outcome = await self._committer.commit(EscalationCommand(
            complaint_id=complaint_id,
            reason=reason.strip(),
            now=now or self._clock(),
            new_priority=new_priority,
            manual=True,
            escalate_to=escalate_to,
            actor_id=actor_id,
            actor_name=actor_name,
        ))
        if outcome is None:
            raise ResourceNotFoundException("Complaint", complaint_id)

        return outcome

    async def preview(self, complaint_id: str, now: Optional[datetime] = None) -> EvaluationPreview:
        """Evaluate one complaint without committing anything."""
        now = now or self._clock()
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        policy = self._policy_provider.get_policy()
        evaluator = EscalationEvaluator(policy)

        async with self._uow_factory() as uow:
            complaint = await uow.complaints.get(complaint_id)
            if complaint is None:
                raise ResourceNotFoundException("Complaint", complaint_id)
            history_count = await uow.history.count_by_complaint(complaint_id)

        return EvaluationPreview(
            complaint=complaint,
            decision=evaluator.evaluate(complaint, now, history_count),
            eligible=evaluator.is_eligible(complaint, now),
            history_count=history_count,
            evaluated_at=now,
        )

    async def get_history(self, complaint_id: str) -> List[StatusHistoryEntry]:
        """Status history for a complaint, oldest first."""
        async with self._uow_factory() as uow:
            if await uow.complaints.get(complaint_id) is None:
                raise ResourceNotFoundException("Complaint", complaint_id)
            return await uow.history.list_by_complaint(complaint_id)
