"""
Analytics Module
================

Daily complaint aggregates, refreshed by a cron job.
"""

from resolveit.analytics.services import (
    ComplaintSnapshot,
    DailyAnalytics,
    DailyAnalyticsService,
    IAnalyticsRepository,
    aggregate,
    utc_day_bounds,
)

__all__ = [
    "ComplaintSnapshot",
    "DailyAnalytics",
    "DailyAnalyticsService",
    "IAnalyticsRepository",
    "aggregate",
    "utc_day_bounds",
]
