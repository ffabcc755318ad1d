"""
Escalation Infrastructure Repositories
======================================

Concrete implementations of the escalation repository interfaces using
async SQLAlchemy, plus the unit of work that binds them to one session.
"""

from datetime import datetime
from typing import List, Optional, Sequence
from uuid import UUID

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from resolveit.config import (
    CLOSED_STATUSES,
    ComplaintCategory,
    ComplaintStatus,
    Priority,
    StaffRole,
)
from resolveit.core import RepositoryException
from resolveit.escalation.application.interfaces import (
    IComplaintRepository,
    IEscalationRuleRepository,
    IEscalationUnitOfWork,
    IInternalNoteRepository,
    INotificationRepository,
    IStaffDirectory,
    IStatusHistoryRepository,
)
from resolveit.escalation.domain import (
    Complaint,
    EscalationRule,
    InternalNote,
    Notification,
    StaffMember,
    StatusHistoryEntry,
)
from resolveit.escalation.infrastructure.models import (
    ComplaintModel,
    EscalationRuleModel,
    InternalNoteModel,
    NotificationModel,
    StatusHistoryModel,
    UserProfileModel,
)
from resolveit.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

_CLOSED = [status.value for status in CLOSED_STATUSES]


def _parse_uuid(value: Optional[str]) -> Optional[UUID]:
    """Parse an id, returning None for missing or malformed values."""
    if value is None:
        return None
    try:
        return UUID(str(value))
    except ValueError:
        return None


def _require_uuid(value: str, field: str) -> UUID:
    parsed = _parse_uuid(value)
    if parsed is None:
        raise RepositoryException(f"Invalid {field}: {value}", {field: value})
    return parsed


def _str_or_none(value: Optional[UUID]) -> Optional[str]:
    return str(value) if value is not None else None


def _to_complaint(model: ComplaintModel) -> Complaint:
    return Complaint(
        id=str(model.id),
        title=model.title,
        category=ComplaintCategory(model.category),
        priority=Priority(model.priority),
        status=ComplaintStatus(model.status),
        created_at=model.created_at,
        due_date=model.due_date,
        escalated_at=model.escalated_at,
        escalation_reason=model.escalation_reason,
        assigned_to=_str_or_none(model.assigned_to),
        urgency_level=model.urgency_level,
        resolved_at=model.resolved_at,
        user_id=_str_or_none(model.user_id),
        is_anonymous=model.is_anonymous,
        anonymous_email=model.anonymous_email,
    )


def _to_candidates(models: Sequence[ComplaintModel]) -> List[Complaint]:
    """Convert candidate rows, skipping rows that violate complaint invariants."""
    complaints = []
    for model in models:
        try:
            complaints.append(_to_complaint(model))
        except ValueError as e:
            logger.warning(
                "Skipping malformed complaint row",
                extra={"complaint_id": str(model.id), "error": str(e)}
            )
    return complaints


def _to_history_entry(model: StatusHistoryModel) -> StatusHistoryEntry:
    return StatusHistoryEntry(
        id=str(model.id),
        complaint_id=str(model.complaint_id),
        status=ComplaintStatus(model.status),
        previous_status=ComplaintStatus(model.previous_status) if model.previous_status else None,
        timestamp=model.timestamp,
        changed_by=_str_or_none(model.changed_by),
        changed_by_name=model.changed_by_name,
        notes=model.notes,
        is_system_generated=model.is_system_generated,
    )


class SQLAlchemyComplaintRepository(IComplaintRepository):
    """Complaint store backed by the 'complaints' table."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def get(self, complaint_id: str) -> Optional[Complaint]:
        complaint_uuid = _parse_uuid(complaint_id)
        if complaint_uuid is None:
            return None

        model = await self._session.get(ComplaintModel, complaint_uuid)
        return _to_complaint(model) if model else None

    async def list_escalation_candidates(self, cooldown_cutoff: datetime) -> List[Complaint]:
        stmt = (
            select(ComplaintModel)
            .where(ComplaintModel.status.not_in(_CLOSED))
            .where(or_(
                ComplaintModel.escalated_at.is_(None),
                ComplaintModel.escalated_at < cooldown_cutoff,
            ))
            .order_by(ComplaintModel.created_at.asc(), ComplaintModel.id.asc())
        )
        result = await self._session.execute(stmt)
        return _to_candidates(result.scalars().all())

    async def apply_escalation(
        self,
        complaint_id: str,
        *,
        escalated_at: datetime,
        escalation_reason: str,
        priority: Priority,
        assigned_to: Optional[str],
    ) -> None:
        stmt = (
            update(ComplaintModel)
            .where(ComplaintModel.id == _require_uuid(complaint_id, "complaint_id"))
            .values(
                status=ComplaintStatus.ESCALATED.value,
                escalated_at=escalated_at,
                escalation_reason=escalation_reason,
                priority=priority.value,
                assigned_to=_require_uuid(assigned_to, "assigned_to") if assigned_to else None,
                updated_at=escalated_at,
            )
        )
        result = await self._session.execute(stmt)
        if result.rowcount == 0:
            raise RepositoryException(f"Complaint {complaint_id} not found")

    async def count_open_by_assignee(self, user_id: str) -> int:
        user_uuid = _parse_uuid(user_id)
        if user_uuid is None:
            return 0

        stmt = (
            select(func.count())
            .select_from(ComplaintModel)
            .where(ComplaintModel.assigned_to == user_uuid)
            .where(ComplaintModel.status.not_in(_CLOSED))
        )
        result = await self._session.execute(stmt)
        return result.scalar_one()


class SQLAlchemyStatusHistoryRepository(IStatusHistoryRepository):
    """Append-only ledger backed by the 'status_history' table."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def append(self, entry: StatusHistoryEntry) -> StatusHistoryEntry:
        model = StatusHistoryModel(
            complaint_id=_require_uuid(entry.complaint_id, "complaint_id"),
            status=entry.status.value,
            previous_status=entry.previous_status.value if entry.previous_status else None,
            changed_by=_parse_uuid(entry.changed_by),
            changed_by_name=entry.changed_by_name,
            notes=entry.notes,
            is_system_generated=entry.is_system_generated,
            timestamp=entry.timestamp,
        )
        self._session.add(model)
        await self._session.flush()

        entry.id = str(model.id)
        return entry

    async def count_by_complaint(self, complaint_id: str) -> int:
        complaint_uuid = _parse_uuid(complaint_id)
        if complaint_uuid is None:
            return 0

        stmt = (
            select(func.count())
            .select_from(StatusHistoryModel)
            .where(StatusHistoryModel.complaint_id == complaint_uuid)
        )
        result = await self._session.execute(stmt)
        return result.scalar_one()

    async def list_by_complaint(self, complaint_id: str) -> List[StatusHistoryEntry]:
        complaint_uuid = _parse_uuid(complaint_id)
        if complaint_uuid is None:
            return []

        stmt = (
            select(StatusHistoryModel)
            .where(StatusHistoryModel.complaint_id == complaint_uuid)
            .order_by(StatusHistoryModel.timestamp.asc())
        )
        result = await self._session.execute(stmt)
        return [_to_history_entry(model) for model in result.scalars().all()]


class SQLAlchemyEscalationRuleRepository(IEscalationRuleRepository):
    """Escalation rules backed by the 'escalation_rules' table."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def find_active(
        self,
        category: ComplaintCategory,
        priority: Priority,
    ) -> Optional[EscalationRule]:
        stmt = (
            select(EscalationRuleModel)
            .where(EscalationRuleModel.category == category.value)
            .where(EscalationRuleModel.priority == priority.value)
            .where(EscalationRuleModel.is_active.is_(True))
            .order_by(EscalationRuleModel.created_at.asc())
            .limit(1)
        )
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        if model is None:
            return None

        return EscalationRule(
            id=str(model.id),
            category=ComplaintCategory(model.category),
            priority=Priority(model.priority),
            escalate_to=str(model.escalate_to),
            is_active=model.is_active,
            auto_escalate_after_hours=model.auto_escalate_after_hours,
            conditions=list(model.conditions or []),
        )


class SQLAlchemyStaffDirectory(IStaffDirectory):
    """Staff directory backed by the 'user_profiles' table."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def list_active(self, roles: Sequence[StaffRole]) -> List[StaffMember]:
        stmt = (
            select(UserProfileModel)
            .where(UserProfileModel.is_active.is_(True))
            .where(UserProfileModel.role.in_([role.value for role in roles]))
            .order_by(UserProfileModel.created_at.asc(), UserProfileModel.id.asc())
        )
        result = await self._session.execute(stmt)
        return [
            StaffMember(
                user_id=str(model.user_id),
                role=StaffRole(model.role),
                is_active=model.is_active,
                email=model.email,
                display_name=f"{model.first_name} {model.last_name}",
            )
            for model in result.scalars().all()
        ]

    async def get_email(self, user_id: str) -> Optional[str]:
        user_uuid = _parse_uuid(user_id)
        if user_uuid is None:
            return None

        stmt = select(UserProfileModel.email).where(UserProfileModel.user_id == user_uuid)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()


class SQLAlchemyNotificationRepository(INotificationRepository):
    """In-app notifications backed by the 'notifications' table."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def enqueue(self, notification: Notification) -> Notification:
        model = NotificationModel(
            user_id=_require_uuid(notification.user_id, "user_id"),
            complaint_id=_parse_uuid(notification.complaint_id),
            title=notification.title,
            message=notification.message,
            type=notification.type.value,
            is_read=notification.is_read,
        )
        self._session.add(model)
        await self._session.flush()

        notification.id = str(model.id)
        return notification


class SQLAlchemyInternalNoteRepository(IInternalNoteRepository):
    """Internal notes backed by the 'internal_notes' table."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def add(self, note: InternalNote) -> InternalNote:
        model = InternalNoteModel(
            complaint_id=_require_uuid(note.complaint_id, "complaint_id"),
            note=note.note,
            created_by=_parse_uuid(note.created_by),
            is_public=note.is_public,
            note_type=note.note_type.value,
        )
        self._session.add(model)
        await self._session.flush()

        note.id = str(model.id)
        return note


class SQLAlchemyUnitOfWork(IEscalationUnitOfWork):
    """
    Unit of work over one AsyncSession.

    Every repository shares the session, so commit() persists the complaint
    patch and its history entry together or not at all.
    """

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self._session_maker = session_maker
        self._session: Optional[AsyncSession] = None

    async def __aenter__(self) -> "SQLAlchemyUnitOfWork":
        self._session = self._session_maker()
        self.complaints = SQLAlchemyComplaintRepository(self._session)
        self.history = SQLAlchemyStatusHistoryRepository(self._session)
        self.rules = SQLAlchemyEscalationRuleRepository(self._session)
        self.staff = SQLAlchemyStaffDirectory(self._session)
        self.notifications = SQLAlchemyNotificationRepository(self._session)
        self.notes = SQLAlchemyInternalNoteRepository(self._session)
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        try:
            await super().__aexit__(exc_type, exc, tb)
        finally:
            # Closing without commit discards pending writes
            await self._session.close()
            self._session = None

    async def commit(self) -> None:
        await self._session.commit()

    async def rollback(self) -> None:
        await self._session.rollback()
