"""
Escalation Controllers (API Routes)
====================================

FastAPI routes for complaint escalation.

Controllers are thin - they delegate to EscalationService. Callers are
expected to be authenticated staff; authorization happens upstream.
"""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from resolveit.config import Priority
from resolveit.core import ResourceNotFoundException, ValidationException
from resolveit.escalation.application import (
    EscalationResponse,
    EscalationService,
    EvaluationResponse,
    ManualEscalationRequest,
    StatusHistoryResponse,
    SweepSummaryResponse,
)
from resolveit.shared.infrastructure.logging import get_logger, log_latency

logger = get_logger(__name__)
router = APIRouter(prefix="/escalations", tags=["Escalation"])


# ========== Example payloads for Swagger ==========

ESCALATION_RESPONSE_EXAMPLE = {
    "complaint_id": "123e4567-e89b-12d3-a456-426614174000",
    "previous_status": "IN_PROGRESS",
    "previous_priority": "MEDIUM",
    "new_priority": "HIGH",
    "assigned_to": "9b2f7c1e-2f55-4d0e-8b39-7d1c0a6f3e21",
    "escalated_at": "2024-01-15T10:00:00Z",
    "escalation_reason": "MANUAL ESCALATION: Customer threatened legal action",
    "manual": True
}

SWEEP_RESPONSE_EXAMPLE = {
    "processed": 42,
    "escalated": 3,
    "timestamp": "2024-01-15T10:00:00Z"
}


# ========== Dependencies ==========

def get_escalation_service(request: Request) -> EscalationService:
    """EscalationService wired at startup."""
    service = getattr(request.app.state, "escalation_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Escalation service not initialized"
        )
    return service


def _not_found(exc: ResourceNotFoundException) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=exc.message)


# ========== Route Handlers ==========

@router.post(
    "/complaints/{complaint_id}/escalate",
    response_model=EscalationResponse,
    summary="Escalate a complaint manually",
    description="""
    Escalate a complaint on behalf of a staff member.

    Skips rule evaluation. The complaint keeps its assignee unless
    `escalate_to` is given, and its priority unless `new_priority`
    (`HIGH` or `CRITICAL`) is given.

    Writes the complaint update, a status history entry, in-app
    notifications and an internal note in one transaction; emails are
    sent afterwards.
    """,
    responses={
        200: {
            "description": "Complaint escalated",
            "content": {"application/json": {"example": ESCALATION_RESPONSE_EXAMPLE}}
        },
        404: {"description": "Complaint not found"},
        422: {"description": "Invalid reason or priority"}
    }
)
async def escalate_complaint(
    complaint_id: str,
    request: ManualEscalationRequest,
    service: EscalationService = Depends(get_escalation_service),
):
    try:
        outcome = await service.manual_escalation(
            complaint_id,
            request.reason,
            escalate_to=str(request.escalate_to) if request.escalate_to else None,
            new_priority=Priority(request.new_priority) if request.new_priority else None,
            actor_id=request.actor_id,
            actor_name=request.actor_name,
        )
    except ResourceNotFoundException as e:
        raise _not_found(e)
    except ValidationException as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=e.message)

    return EscalationResponse.from_domain(outcome)


@router.get(
    "/complaints/{complaint_id}/evaluation",
    response_model=EvaluationResponse,
    summary="Dry-run the escalation rules",
    description="""
    Evaluate a complaint against the current escalation policy without
    changing anything.

    `eligible` is false for closed complaints and complaints inside the
    post-escalation cool-down; the sweep would skip those even when
    `escalate` is true.
    """,
    responses={404: {"description": "Complaint not found"}}
)
async def evaluate_complaint(
    complaint_id: str,
    at: Optional[datetime] = Query(None, description="Evaluate as of this instant, UTC when no offset is given (default: now)"),
    service: EscalationService = Depends(get_escalation_service),
):
    try:
        preview = await service.preview(complaint_id, now=at)
    except ResourceNotFoundException as e:
        raise _not_found(e)

    return EvaluationResponse(
        complaint_id=preview.complaint.id,
        current_priority=preview.complaint.priority.value,
        status=preview.complaint.status.value,
        eligible=preview.eligible,
        escalate=preview.decision.escalate,
        reason=preview.decision.reason,
        new_priority=preview.decision.new_priority.value,
        triggered_rules=list(preview.decision.triggered_rules),
        history_count=preview.history_count,
        evaluated_at=preview.evaluated_at,
    )


@router.get(
    "/complaints/{complaint_id}/history",
    response_model=List[StatusHistoryResponse],
    summary="Get complaint status history",
    responses={404: {"description": "Complaint not found"}}
)
async def get_complaint_history(
    complaint_id: str,
    service: EscalationService = Depends(get_escalation_service),
):
    try:
        entries = await service.get_history(complaint_id)
    except ResourceNotFoundException as e:
        raise _not_found(e)

    return [StatusHistoryResponse.from_domain(entry) for entry in entries]


@router.post(
    "/sweeps",
    response_model=SweepSummaryResponse,
    summary="Run an auto-escalation sweep now",
    description="""
    Run one sweep immediately, outside the scheduler interval.

    Complaints escalated by a scheduled sweep within the cool-down are
    skipped, so triggering a sweep right after another is harmless.
    """,
    responses={
        200: {
            "description": "Sweep finished",
            "content": {"application/json": {"example": SWEEP_RESPONSE_EXAMPLE}}
        }
    }
)
async def run_sweep(service: EscalationService = Depends(get_escalation_service)):
    with log_latency(logger, "manual_sweep"):
        summary = await service.check_auto_escalation()
    return SweepSummaryResponse.from_domain(summary)
