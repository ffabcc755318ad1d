"""
Daily Analytics Service
=======================

Aggregates the complaints created on one UTC day into a single
DailyAnalytics record. Runs on its own cron schedule and shares only the
complaint store with the escalation sweep.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from typing import Dict, Iterable, List, Optional

from resolveit.config import (
    CLOSED_STATUSES,
    ComplaintCategory,
    ComplaintStatus,
    Priority,
)
from resolveit.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class ComplaintSnapshot:
    """The complaint fields the aggregation reads."""

    category: ComplaintCategory
    priority: Priority
    status: ComplaintStatus
    created_at: datetime
    resolved_at: Optional[datetime] = None


@dataclass
class DailyAnalytics:
    """Aggregates for one UTC day."""

    date: date
    total_complaints: int = 0
    resolved_complaints: int = 0
    avg_resolution_time_hours: Optional[float] = None
    category_breakdown: Dict[str, int] = field(default_factory=dict)
    priority_breakdown: Dict[str, int] = field(default_factory=dict)
    status_breakdown: Dict[str, int] = field(default_factory=dict)


class IAnalyticsRepository(ABC):
    """Interface for the analytics data access."""

    @abstractmethod
    async def list_created_between(self, start: datetime, end: datetime) -> List[ComplaintSnapshot]:
        """Complaints with start <= created_at < end."""

    @abstractmethod
    async def upsert(self, analytics: DailyAnalytics) -> DailyAnalytics:
        """Insert or replace the row for analytics.date."""


def utc_day_bounds(day: date) -> tuple[datetime, datetime]:
    start = datetime.combine(day, time.min, tzinfo=timezone.utc)
    return start, start + timedelta(days=1)


def _zero_filled(members) -> Dict[str, int]:
    return {member.value: 0 for member in members}


def aggregate(day: date, complaints: Iterable[ComplaintSnapshot]) -> DailyAnalytics:
    """Build the DailyAnalytics for ``day`` from that day's complaints."""
    result = DailyAnalytics(
        date=day,
        category_breakdown=_zero_filled(ComplaintCategory),
        priority_breakdown=_zero_filled(Priority),
        status_breakdown=_zero_filled(ComplaintStatus),
    )
    resolution_hours = []

    for complaint in complaints:
        result.total_complaints += 1
        result.category_breakdown[complaint.category.value] += 1
        result.priority_breakdown[complaint.priority.value] += 1
        result.status_breakdown[complaint.status.value] += 1

        if complaint.status in CLOSED_STATUSES:
            result.resolved_complaints += 1
            if complaint.resolved_at is not None:
                elapsed = complaint.resolved_at - complaint.created_at
                resolution_hours.append(elapsed.total_seconds() / 3600)

    if resolution_hours:
        result.avg_resolution_time_hours = round(sum(resolution_hours) / len(resolution_hours), 2)

    return result


class DailyAnalyticsService:
    """Computes and stores the aggregates for one day."""

    def __init__(self, repository: IAnalyticsRepository):
        self._repository = repository

    async def update_daily_analytics(self, now: Optional[datetime] = None) -> DailyAnalytics:
        """
        Aggregate the UTC day containing ``now`` (default: current time).

        Returns:
            The stored DailyAnalytics
        """
        now = now or datetime.now(timezone.utc)
        day = now.astimezone(timezone.utc).date()
        start, end = utc_day_bounds(day)

        complaints = await self._repository.list_created_between(start, end)
        analytics = await self._repository.upsert(aggregate(day, complaints))

        logger.info(
            "Daily analytics updated",
            extra={
                "date": day.isoformat(),
                "total_complaints": analytics.total_complaints,
                "resolved_complaints": analytics.resolved_complaints,
            }
        )
        return analytics
