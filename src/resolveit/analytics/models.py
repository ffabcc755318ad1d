"""
Analytics Models
================

SQLAlchemy ORM model for the per-day complaint aggregates.
"""

from datetime import date, datetime, timezone
from typing import Dict, Optional
from uuid import UUID, uuid4

from sqlalchemy import JSON, Date, DateTime, Float, Integer, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from resolveit.infrastructure.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DailyAnalyticsModel(Base):
    """
    One row per UTC day.

    Maps to the 'daily_analytics' table.
    """
    __tablename__ = "daily_analytics"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    date: Mapped[date] = mapped_column(Date, nullable=False, unique=True, index=True)

    total_complaints: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    resolved_complaints: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    avg_resolution_time_hours: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    # Every enum member present, zero-filled
    category_breakdown: Mapped[Dict[str, int]] = mapped_column(JSON, nullable=False, default=dict)
    priority_breakdown: Mapped[Dict[str, int]] = mapped_column(JSON, nullable=False, default=dict)
    status_breakdown: Mapped[Dict[str, int]] = mapped_column(JSON, nullable=False, default=dict)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )
