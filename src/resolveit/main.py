"""
ResolveIt Escalation Service - Main Application
================================================

SLA-driven complaint auto-escalation engine.

Modules:
- Escalation: rule cascade, assignment, atomic commit, sweep scheduler
- Analytics: daily complaint aggregates

Clean Architecture Layers:
- Interfaces: FastAPI controllers
- Application: Services and DTOs
- Domain: Entities, value objects and the SLA rules
- Infrastructure: Database, policy file, email, scheduler
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from resolveit.config import settings
from resolveit.core import ApplicationException

from resolveit.infrastructure.database import (
    close_database,
    create_tables,
    get_session_maker,
    init_database,
    session_scope,
)

from resolveit.analytics import DailyAnalyticsService
from resolveit.analytics.repositories import SQLAlchemyAnalyticsRepository
from resolveit.escalation.application import (
    AssignmentResolver,
    EscalationCommitter,
    EscalationService,
)
from resolveit.escalation.infrastructure import (
    EmailClient,
    EmailDispatcher,
    EscalationScheduler,
    PolicyConfigManager,
    SQLAlchemyUnitOfWork,
)
from resolveit.escalation.interfaces import escalation_router

from resolveit.shared.api.middleware import (
    CorrelationIDMiddleware,
    LoggingMiddleware,
    application_exception_handler,
    global_exception_handler,
)
from resolveit.shared.infrastructure.logging import get_context_logger, get_logger, log_latency, setup_logging

logger = get_logger(__name__)

# Global service instances
policy_manager: Optional[PolicyConfigManager] = None
escalation_service: Optional[EscalationService] = None
escalation_scheduler: Optional[EscalationScheduler] = None
email_dispatcher: Optional[EmailDispatcher] = None


async def auto_escalation_job() -> None:
    """Scheduled sweep; failures are logged and the next interval retries."""
    if escalation_service is None:
        return
    try:
        with log_latency(logger, "auto_escalation_sweep"):
            await escalation_service.check_auto_escalation()
    except Exception:
        logger.exception("Auto-escalation sweep failed")


async def daily_analytics_job() -> None:
    """Scheduled daily aggregation."""
    job_log = get_context_logger(__name__, job_id=EscalationScheduler.ANALYTICS_JOB_ID)
    try:
        async with session_scope() as session:
            await DailyAnalyticsService(SQLAlchemyAnalyticsRepository(session)).update_daily_analytics()
    except Exception:
        job_log.exception("Daily analytics update failed")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan manager.

    STARTUP:
    1. Setup structured logging
    2. Initialize database and create tables
    3. Load escalation policy and watch the file
    4. Start the email dispatcher
    5. Wire the escalation service
    6. Start the scheduler

    SHUTDOWN:
    1. Stop the scheduler
    2. Stop the email dispatcher and client
    3. Stop the policy watcher
    4. Close database connections
    """
    global policy_manager, escalation_service, escalation_scheduler, email_dispatcher

    # === STARTUP ===
    setup_logging(settings.log_level, settings.environment)
    logger.info("Starting Escalation Service", extra={
        "version": settings.app_version,
        "environment": settings.environment
    })

    init_database()

    # Use migrations in production
    try:
        await create_tables()
    except Exception as e:
        logger.warning("Database not available - running in degraded mode", extra={"error": str(e)})

    policy_manager = PolicyConfigManager()
    policy_manager.load(settings.escalation_policy_path)
    policy_manager.start_watching()

    session_maker = get_session_maker()

    def uow_factory() -> SQLAlchemyUnitOfWork:
        return SQLAlchemyUnitOfWork(session_maker)

    email_client = EmailClient()
    if not email_client.is_configured:
        logger.info("Resend API key not configured - escalation emails disabled")
    email_dispatcher = EmailDispatcher(uow_factory, email_client)
    email_dispatcher.start()

    committer = EscalationCommitter(uow_factory, AssignmentResolver(), email_dispatcher)
    escalation_service = EscalationService(uow_factory, committer, policy_manager)

    if settings.scheduler_enabled:
        escalation_scheduler = EscalationScheduler()
        escalation_scheduler.start(auto_escalation_job, daily_analytics_job)
    else:
        logger.info("Scheduler disabled")

    app.state.settings = settings
    app.state.escalation_service = escalation_service

    logger.info("Escalation Service started successfully")

    yield

    # === SHUTDOWN ===
    logger.info("Shutting down Escalation Service")

    if escalation_scheduler:
        escalation_scheduler.stop()

    await email_dispatcher.stop()
    await email_client.close()

    policy_manager.stop_watching()

    await close_database()

    logger.info("Escalation Service shutdown complete")


app = FastAPI(
    title="ResolveIt Escalation API",
    description="""
    ## SLA-Driven Complaint Auto-Escalation

    A background sweep evaluates open complaints against SLA rules, bumps
    their priority, reassigns them to the least-loaded staff member and
    notifies the owner and assignee.

    **Endpoints:**
    - `POST /escalations/complaints/{id}/escalate` - Manual escalation
    - `GET /escalations/complaints/{id}/evaluation` - Dry-run the rules
    - `GET /escalations/complaints/{id}/history` - Status history
    - `POST /escalations/sweeps` - Run a sweep now

    **SLA rules (first to last, the last matching rule sets the reason):**

    | Rule | Trigger | New priority |
    |------|---------|--------------|
    | Overdue | > 12h past due date | one level up |
    | Priority SLA | CRITICAL 2h / HIGH 8h / MEDIUM 24h / LOW 72h | one level up |
    | Sensitive | harassment, discrimination, safety > 4h | CRITICAL |
    | Urgency | urgency >= 8 and > 6h | CRITICAL |
    | Complexity | > 5 status changes and > 48h | LOW -> HIGH, else CRITICAL |
    """,
    version=settings.app_version,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# === CORS Middleware ===
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(LoggingMiddleware)
app.add_middleware(CorrelationIDMiddleware)
app.add_exception_handler(ApplicationException, application_exception_handler)
app.add_exception_handler(Exception, global_exception_handler)

app.include_router(escalation_router)


@app.get("/health", tags=["Health"], responses={
    200: {
        "description": "Service is healthy",
        "content": {
            "application/json": {
                "example": {
                    "status": "healthy",
                    "version": "1.0.0",
                    "environment": "development",
                    "checks": {
                        "escalation_policy": "loaded (watching)",
                        "scheduler": "running",
                        "email_dispatcher": "running (0 pending)",
                        "sweep_state": "idle"
                    }
                }
            }
        }
    }
})
async def health_check():
    """Health check endpoint for load balancers and orchestrators."""
    if policy_manager is None:
        policy_state = "not_loaded"
    else:
        policy_state = "loaded (watching)" if policy_manager.is_watching else "loaded"

    if email_dispatcher is None:
        email_state = "not_configured"
    else:
        email_state = f"{'running' if email_dispatcher.is_running else 'stopped'} ({email_dispatcher.pending} pending)"

    checks = {
        "escalation_policy": policy_state,
        "scheduler": "running" if escalation_scheduler and escalation_scheduler.is_running else "stopped",
        "email_dispatcher": email_state,
        "sweep_state": escalation_service.state.value if escalation_service else "not_initialized",
    }

    return {
        "status": "healthy",
        "version": settings.app_version,
        "environment": settings.environment,
        "checks": checks
    }


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint with API information."""
    return {
        "service": "ResolveIt Escalation Service",
        "version": settings.app_version,
        "architecture": "Clean Architecture / Modular Monolith",
        "docs": "/docs",
        "health": "/health",
        "modules": {
            "escalation": {
                "prefix": "/escalations",
                "endpoints": [
                    "POST /escalations/complaints/{id}/escalate - Manual escalation",
                    "GET /escalations/complaints/{id}/evaluation - Dry-run evaluation",
                    "GET /escalations/complaints/{id}/history - Status history",
                    "POST /escalations/sweeps - Run a sweep now"
                ]
            },
            "analytics": {
                "schedule": f"daily at {settings.daily_analytics_hour:02d}:{settings.daily_analytics_minute:02d} UTC"
            }
        }
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "resolveit.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.environment == "development",
        log_level="info"
    )
