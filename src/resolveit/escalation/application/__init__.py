"""
Escalation Application Layer
============================

Application layer for the escalation module.

Contains:
- Services: sweep orchestration, manual escalation, dry runs
- Committer and AssignmentResolver: the write path of an escalation
- Interfaces: repository, unit-of-work and side-effect ports
- DTOs: data transfer objects for API serialization

This layer depends on the domain layer and repository interfaces,
but not on concrete infrastructure implementations.
"""

from resolveit.escalation.application.interfaces import (
    IComplaintRepository,
    IStatusHistoryRepository,
    IEscalationRuleRepository,
    IStaffDirectory,
    INotificationRepository,
    IInternalNoteRepository,
    IEscalationUnitOfWork,
    UnitOfWorkFactory,
    IPolicyProvider,
    IEmailQueue,
    EmailDispatchRequest,
)
from resolveit.escalation.application.assignment import AssignmentResolver, rank_by_workload
from resolveit.escalation.application.committer import EscalationCommand, EscalationCommitter
from resolveit.escalation.application.services import (
    EscalationService,
    EvaluationPreview,
    SweepState,
    utc_now,
)
from resolveit.escalation.application.dto import (
    ManualEscalationRequest,
    EscalationResponse,
    EvaluationResponse,
    StatusHistoryResponse,
    SweepSummaryResponse,
)

__all__ = [
    # Interfaces
    "IComplaintRepository",
    "IStatusHistoryRepository",
    "IEscalationRuleRepository",
    "IStaffDirectory",
    "INotificationRepository",
    "IInternalNoteRepository",
    "IEscalationUnitOfWork",
    "UnitOfWorkFactory",
    "IPolicyProvider",
    "IEmailQueue",
    "EmailDispatchRequest",
    # Services
    "AssignmentResolver",
    "rank_by_workload",
    "EscalationCommand",
    "EscalationCommitter",
    "EscalationService",
    "EvaluationPreview",
    "SweepState",
    "utc_now",
    # DTOs
    "ManualEscalationRequest",
    "EscalationResponse",
    "EvaluationResponse",
    "StatusHistoryResponse",
    "SweepSummaryResponse",
]
