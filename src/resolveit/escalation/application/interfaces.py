"""
Escalation Application Interfaces
==================================

Abstractions the application services depend on (Dependency Inversion).

The complaint store, status history ledger, rule repository and staff
directory are external systems of record; these interfaces are the only
way the escalation engine touches them.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Optional, Sequence

from resolveit.config import ComplaintCategory, Priority, StaffRole
from resolveit.escalation.domain import (
    Complaint,
    EscalationPolicy,
    EscalationRule,
    InternalNote,
    Notification,
    StaffMember,
    StatusHistoryEntry,
)


# ========== Repository Interfaces ==========

class IComplaintRepository(ABC):
    """Interface for complaint store access."""

    @abstractmethod
    async def get(self, complaint_id: str) -> Optional[Complaint]:
        """Get complaint by ID."""

    @abstractmethod
    async def list_escalation_candidates(self, cooldown_cutoff: datetime) -> List[Complaint]:
        """
        Open complaints never escalated, or last escalated before the cutoff.

        Open means status not in RESOLVED/CLOSED.
        """

    @abstractmethod
    async def apply_escalation(
        self,
        complaint_id: str,
        *,
        escalated_at: datetime,
        escalation_reason: str,
        priority: Priority,
        assigned_to: Optional[str],
    ) -> None:
        """Patch a complaint into the ESCALATED state."""

    @abstractmethod
    async def count_open_by_assignee(self, user_id: str) -> int:
        """Count open complaints currently assigned to a user."""


class IStatusHistoryRepository(ABC):
    """Interface for the append-only status history ledger."""

    @abstractmethod
    async def append(self, entry: StatusHistoryEntry) -> StatusHistoryEntry:
        """Append a history entry."""

    @abstractmethod
    async def count_by_complaint(self, complaint_id: str) -> int:
        """Number of history entries for a complaint."""

    @abstractmethod
    async def list_by_complaint(self, complaint_id: str) -> List[StatusHistoryEntry]:
        """History entries for a complaint, oldest first."""


class IEscalationRuleRepository(ABC):
    """Interface for configured escalation rules."""

    @abstractmethod
    async def find_active(
        self,
        category: ComplaintCategory,
        priority: Priority,
    ) -> Optional[EscalationRule]:
        """First active rule for (category, priority), if any."""


class IStaffDirectory(ABC):
    """Interface for the staff directory."""

    @abstractmethod
    async def list_active(self, roles: Sequence[StaffRole]) -> List[StaffMember]:
        """Active staff holding one of the roles, in directory order."""

    @abstractmethod
    async def get_email(self, user_id: str) -> Optional[str]:
        """Contact address for a user, if known."""


class INotificationRepository(ABC):
    """Interface for the in-app notification collaborator."""

    @abstractmethod
    async def enqueue(self, notification: Notification) -> Notification:
        """Queue a notification for a user."""


class IInternalNoteRepository(ABC):
    """Interface for staff-facing complaint notes."""

    @abstractmethod
    async def add(self, note: InternalNote) -> InternalNote:
        """Attach a note to a complaint."""


# ========== Unit of Work ==========

class IEscalationUnitOfWork(ABC):
    """
    One transaction spanning the complaint store and history ledger.

    Usage:
        async with uow_factory() as uow:
            await uow.complaints.apply_escalation(...)
            await uow.history.append(...)
            await uow.commit()

    Leaving the block with an exception rolls back; leaving it without
    calling commit() discards all writes.
    """

    complaints: IComplaintRepository
    history: IStatusHistoryRepository
    rules: IEscalationRuleRepository
    staff: IStaffDirectory
    notifications: INotificationRepository
    notes: IInternalNoteRepository

    async def __aenter__(self) -> "IEscalationUnitOfWork":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if exc_type is not None:
            await self.rollback()

    @abstractmethod
    async def commit(self) -> None:
        """Make every write in this unit visible atomically."""

    @abstractmethod
    async def rollback(self) -> None:
        """Discard every write in this unit."""


UnitOfWorkFactory = Callable[[], IEscalationUnitOfWork]


# ========== Configuration & Side-effect Ports ==========

class IPolicyProvider(ABC):
    """Interface for escalation policy access."""

    @abstractmethod
    def get_policy(self) -> EscalationPolicy:
        """Get current escalation policy."""


@dataclass(frozen=True)
class EmailDispatchRequest:
    """Context for the escalation emails sent after a commit."""

    complaint_id: str
    reason: str
    new_priority: Priority


class IEmailQueue(ABC):
    """Fire-and-forget hand-off to the email worker."""

    @abstractmethod
    def submit(self, request: EmailDispatchRequest) -> bool:
        """Queue a request without blocking; False when it was dropped."""
