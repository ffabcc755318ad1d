"""
Analytics Repositories
======================

SQLAlchemy implementation of the analytics repository.
"""

from datetime import datetime
from typing import List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from resolveit.analytics.models import DailyAnalyticsModel
from resolveit.analytics.services import ComplaintSnapshot, DailyAnalytics, IAnalyticsRepository
from resolveit.config import ComplaintCategory, ComplaintStatus, Priority
from resolveit.escalation.infrastructure.models import ComplaintModel


class SQLAlchemyAnalyticsRepository(IAnalyticsRepository):
    """Reads the complaint store and writes 'daily_analytics'."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def list_created_between(self, start: datetime, end: datetime) -> List[ComplaintSnapshot]:
        stmt = (
            select(
                ComplaintModel.category,
                ComplaintModel.priority,
                ComplaintModel.status,
                ComplaintModel.created_at,
                ComplaintModel.resolved_at,
            )
            .where(ComplaintModel.created_at >= start)
            .where(ComplaintModel.created_at < end)
        )
        result = await self._session.execute(stmt)
        return [
            ComplaintSnapshot(
                category=ComplaintCategory(row.category),
                priority=Priority(row.priority),
                status=ComplaintStatus(row.status),
                created_at=row.created_at,
                resolved_at=row.resolved_at,
            )
            for row in result.all()
        ]

    async def upsert(self, analytics: DailyAnalytics) -> DailyAnalytics:
        stmt = select(DailyAnalyticsModel).where(DailyAnalyticsModel.date == analytics.date)
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()

        if model is None:
            model = DailyAnalyticsModel(date=analytics.date)
            self._session.add(model)

        model.total_complaints = analytics.total_complaints
        model.resolved_complaints = analytics.resolved_complaints
        model.avg_resolution_time_hours = analytics.avg_resolution_time_hours
        model.category_breakdown = dict(analytics.category_breakdown)
        model.priority_breakdown = dict(analytics.priority_breakdown)
        model.status_breakdown = dict(analytics.status_breakdown)

        await self._session.flush()
        return analytics
