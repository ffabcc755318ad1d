"""
Escalation Committer
====================

Applies an escalation to a complaint.

The complaint patch, the history entry, the in-app notifications and (for
manual escalations) the internal note are written in one unit of work.
Emails are handed to the dispatch queue only after that unit commits, so
a slow or failing email provider can never undo or delay an escalation.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from resolveit.config import (
    AUTO_ESCALATION_PREFIX,
    MANUAL_ESCALATION_PREFIX,
    SYSTEM_ACTOR_NAME,
    ComplaintStatus,
    NoteType,
    NotificationType,
    Priority,
)
from resolveit.escalation.application.assignment import AssignmentResolver
from resolveit.escalation.application.interfaces import (
    EmailDispatchRequest,
    IEmailQueue,
    UnitOfWorkFactory,
)
from resolveit.escalation.domain import (
    Complaint,
    EscalationOutcome,
    InternalNote,
    Notification,
    StatusHistoryEntry,
)
from resolveit.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class EscalationCommand:
    """
    A request to escalate one complaint.

    Automatic commands let the AssignmentResolver pick the assignee.
    Manual commands bypass it: ``escalate_to`` (or the current assignee)
    is used as given.
    """

    complaint_id: str
    reason: str
    now: datetime
    new_priority: Optional[Priority] = None
    manual: bool = False
    escalate_to: Optional[str] = None
    actor_id: Optional[str] = None
    actor_name: Optional[str] = None

    @property
    def display_reason(self) -> str:
        """Reason as shown to people (notifications, emails)."""
        if self.manual:
            return f"{MANUAL_ESCALATION_PREFIX}{self.reason}"
        return self.reason

    @property
    def stored_reason(self) -> str:
        """Reason persisted on the complaint and in history."""
        if self.manual:
            return self.display_reason
        return f"{AUTO_ESCALATION_PREFIX}{self.reason}"


class EscalationCommitter:
    """Writes escalations; one call is one independent, final commit."""

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        resolver: Optional[AssignmentResolver] = None,
        email_queue: Optional[IEmailQueue] = None,
    ):
        self._uow_factory = uow_factory
        self._resolver = resolver or AssignmentResolver()
        self._email_queue = email_queue

    async def commit(self, command: EscalationCommand) -> Optional[EscalationOutcome]:
        """
        Escalate a complaint.

        Returns:
            EscalationOutcome, or None when the complaint no longer exists
        """
        async with self._uow_factory() as uow:
            complaint = await uow.complaints.get(command.complaint_id)
            if complaint is None:
                logger.info(
                    "Complaint not found at commit time, skipping escalation",
                    extra={"complaint_id": command.complaint_id}
                )
                return None

            new_priority = command.new_priority or complaint.priority

            if command.manual:
                assignee = command.escalate_to or complaint.assigned_to
            else:
                assignee = await self._resolver.resolve(uow, complaint.category, new_priority)

            await uow.complaints.apply_escalation(
                complaint.id,
                escalated_at=command.now,
                escalation_reason=command.stored_reason,
                priority=new_priority,
                assigned_to=assignee,
            )

            await uow.history.append(StatusHistoryEntry(
                complaint_id=complaint.id,
                status=ComplaintStatus.ESCALATED,
                timestamp=command.now,
                changed_by_name=command.actor_name if command.manual and command.actor_name else SYSTEM_ACTOR_NAME,
                changed_by=command.actor_id if command.manual else None,
                previous_status=complaint.status,
                notes=(
                    f"{command.stored_reason}. Priority changed from "
                    f"{complaint.priority.value} to {new_priority.value}."
                ),
                is_system_generated=True,
            ))

            if complaint.has_notifiable_owner:
                await uow.notifications.enqueue(
                    self._owner_notification(complaint, command)
                )

            if assignee:
                await uow.notifications.enqueue(
                    self._assignee_notification(complaint, command, assignee, new_priority)
                )

            if command.manual:
                actor = command.actor_name or "staff"
                await uow.notes.add(InternalNote(
                    complaint_id=complaint.id,
                    note=f"Complaint escalated by {actor}. Reason: {command.reason}",
                    created_by=command.actor_id,
                    is_public=False,
                    note_type=NoteType.ESCALATION,
                ))

            await uow.commit()

        logger.info(
            "Complaint escalated",
            extra={
                "complaint_id": complaint.id,
                "reason": command.stored_reason,
                "previous_priority": complaint.priority.value,
                "new_priority": new_priority.value,
                "assigned_to": assignee,
                "manual": command.manual,
            }
        )

        self._schedule_emails(command, new_priority)

        return EscalationOutcome(
            complaint_id=complaint.id,
            previous_status=complaint.status,
            previous_priority=complaint.priority,
            new_priority=new_priority,
            assigned_to=assignee,
            escalated_at=command.now,
            escalation_reason=command.stored_reason,
            manual=command.manual,
        )

    def _schedule_emails(self, command: EscalationCommand, new_priority: Priority) -> None:
        if self._email_queue is None:
            return
        self._email_queue.submit(EmailDispatchRequest(
            complaint_id=command.complaint_id,
            reason=command.display_reason,
            new_priority=new_priority,
        ))

    @staticmethod
    def _owner_notification(complaint: Complaint, command: EscalationCommand) -> Notification:
        return Notification(
            user_id=complaint.user_id,
            complaint_id=complaint.id,
            title="Complaint Auto-Escalated",
            message=(
                f'Your complaint "{complaint.title}" has been automatically escalated '
                f"for faster resolution. Reason: {command.display_reason}"
            ),
            type=NotificationType.AUTO_ESCALATED,
        )

    @staticmethod
    def _assignee_notification(
        complaint: Complaint,
        command: EscalationCommand,
        assignee: str,
        new_priority: Priority,
    ) -> Notification:
        return Notification(
            user_id=assignee,
            complaint_id=complaint.id,
            title="Urgent: Complaint Auto-Escalated",
            message=(
                f'Complaint "{complaint.title}" has been auto-escalated and assigned to you. '
                f"Priority: {new_priority.value}. Reason: {command.display_reason}"
            ),
            type=NotificationType.AUTO_ESCALATED,
        )
