"""
Escalation Infrastructure Layer
================================

Infrastructure implementations for complaint escalation:
- Models: SQLAlchemy ORM models
- Repositories: Data access layer and the unit of work
- External: policy file watcher, email client/dispatcher, scheduler
"""

from resolveit.escalation.infrastructure.models import (
    ComplaintModel,
    StatusHistoryModel,
    EscalationRuleModel,
    UserProfileModel,
    NotificationModel,
    InternalNoteModel,
)
from resolveit.escalation.infrastructure.repositories import (
    SQLAlchemyComplaintRepository,
    SQLAlchemyStatusHistoryRepository,
    SQLAlchemyEscalationRuleRepository,
    SQLAlchemyStaffDirectory,
    SQLAlchemyNotificationRepository,
    SQLAlchemyInternalNoteRepository,
    SQLAlchemyUnitOfWork,
)
from resolveit.escalation.infrastructure.external import (
    PolicyConfigManager,
    CircuitBreaker,
    EmailClient,
    EmailDispatcher,
    EscalationScheduler,
)

__all__ = [
    "ComplaintModel",
    "StatusHistoryModel",
    "EscalationRuleModel",
    "UserProfileModel",
    "NotificationModel",
    "InternalNoteModel",
    "SQLAlchemyComplaintRepository",
    "SQLAlchemyStatusHistoryRepository",
    "SQLAlchemyEscalationRuleRepository",
    "SQLAlchemyStaffDirectory",
    "SQLAlchemyNotificationRepository",
    "SQLAlchemyInternalNoteRepository",
    "SQLAlchemyUnitOfWork",
    "PolicyConfigManager",
    "CircuitBreaker",
    "EmailClient",
    "EmailDispatcher",
    "EscalationScheduler",
]
