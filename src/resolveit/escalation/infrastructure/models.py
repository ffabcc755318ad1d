"""
Escalation Infrastructure Models
================================

SQLAlchemy ORM models for the complaint store, status history ledger,
escalation rules, staff directory and notification tables.

These are the database representations of our domain entities.
They belong in the infrastructure layer, not the domain layer.
"""

from datetime import datetime, timezone
from typing import List, Optional
from uuid import UUID, uuid4

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Index, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from resolveit.config import ComplaintStatus, NoteType, NotificationType, StaffRole
from resolveit.infrastructure.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ComplaintModel(Base):
    """
    Database model for Complaint entity.

    Maps to the 'complaints' table.
    """
    __tablename__ = "complaints"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    category: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    priority: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, index=True, default=ComplaintStatus.SUBMITTED.value
    )
    urgency_level: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    # Ownership
    user_id: Mapped[Optional[UUID]] = mapped_column(Uuid, nullable=True, index=True)
    is_anonymous: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    anonymous_email: Mapped[Optional[str]] = mapped_column(String(320), nullable=True)

    assigned_to: Mapped[Optional[UUID]] = mapped_column(Uuid, nullable=True, index=True)

    # Escalation tracking
    escalated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True, index=True)
    escalation_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    due_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True, index=True)
    resolved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)


class StatusHistoryModel(Base):
    """
    Append-only status transition ledger.

    Maps to the 'status_history' table.
    """
    __tablename__ = "status_history"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    complaint_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("complaints.id", ondelete="CASCADE"), nullable=False, index=True
    )
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    previous_status: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    changed_by: Mapped[Optional[UUID]] = mapped_column(Uuid, nullable=True)
    changed_by_name: Mapped[str] = mapped_column(String(255), nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_system_generated: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)


class EscalationRuleModel(Base):
    """
    Configured escalation target per (category, priority).

    Maps to the 'escalation_rules' table.
    """
    __tablename__ = "escalation_rules"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    category: Mapped[str] = mapped_column(String(50), nullable=False)
    priority: Mapped[str] = mapped_column(String(20), nullable=False)
    auto_escalate_after_hours: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    escalate_to: Mapped[UUID] = mapped_column(Uuid, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    conditions: Mapped[Optional[List[str]]] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (
        Index("ix_escalation_rules_category_priority", "category", "priority"),
    )


class UserProfileModel(Base):
    """
    Staff directory / user profile.

    Maps to the 'user_profiles' table.
    """
    __tablename__ = "user_profiles"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    user_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, unique=True, index=True)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(320), nullable=True)
    role: Mapped[str] = mapped_column(String(20), nullable=False, default=StaffRole.USER.value, index=True)
    department: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)


class NotificationModel(Base):
    """
    In-app notification.

    Maps to the 'notifications' table.
    """
    __tablename__ = "notifications"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    user_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, index=True)
    complaint_id: Mapped[Optional[UUID]] = mapped_column(Uuid, nullable=True, index=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[str] = mapped_column(String(50), nullable=False, default=NotificationType.AUTO_ESCALATED.value)
    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    read_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)


class InternalNoteModel(Base):
    """
    Staff-facing complaint note.

    Maps to the 'internal_notes' table.
    """
    __tablename__ = "internal_notes"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    complaint_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("complaints.id", ondelete="CASCADE"), nullable=False, index=True
    )
    note: Mapped[str] = mapped_column(Text, nullable=False)
    created_by: Mapped[Optional[UUID]] = mapped_column(Uuid, nullable=True)
    is_public: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    note_type: Mapped[str] = mapped_column(String(20), nullable=False, default=NoteType.GENERAL.value)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
