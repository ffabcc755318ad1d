"""
Escalation External Service Integrations
=========================================

External services for complaint escalation:
- YAML policy file watcher
- Resend email client and the post-commit dispatch worker
- APScheduler for the sweep and daily analytics jobs
"""

import asyncio
import html
import threading
import time
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx
import yaml
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from pydantic import ValidationError
from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from resolveit.config import settings
from resolveit.core import EmailDeliveryException
from resolveit.escalation.application.interfaces import (
    EmailDispatchRequest,
    IEmailQueue,
    IPolicyProvider,
    UnitOfWorkFactory,
)
from resolveit.escalation.domain import EscalationPolicy
from resolveit.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


# ========== Policy Configuration ==========

class PolicyFileHandler(FileSystemEventHandler):
    """Watchdog event handler for escalation policy file changes."""

    def __init__(self, config_manager: "PolicyConfigManager", config_path: Path):
        self.config_manager = config_manager
        self.config_path = config_path
        super().__init__()

    def on_modified(self, event):
        if event.is_directory:
            return
        if Path(event.src_path).resolve() == self.config_path.resolve():
            logger.info("Escalation policy file changed", extra={"path": event.src_path})
            self.config_manager.reload()


class PolicyConfigManager(IPolicyProvider):
    """
    Thread-safe escalation policy holder with hot-reload support.

    Watchdog calls reload() from its own thread; the sweep reads the policy
    once at its start, so a reload takes effect from the next sweep.
    """

    def __init__(self):
        self._policy: Optional[EscalationPolicy] = None
        self._lock = threading.Lock()
        self._path: Optional[Path] = None
        self._observer = None

    def load(self, path: Path) -> EscalationPolicy:
        """Initial policy load; a missing file yields the defaults."""
        self._path = path
        policy = self._load_from_file(path)
        with self._lock:
            self._policy = policy
        return policy

    def _load_from_file(self, path: Path) -> EscalationPolicy:
        if not path.exists():
            logger.warning("Escalation policy file not found, using defaults", extra={"path": str(path)})
            return EscalationPolicy()

        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}

        return EscalationPolicy(**data)

    def reload(self) -> bool:
        """Reload the policy; a malformed file keeps the previous one."""
        if self._path is None:
            return False

        try:
            new_policy = self._load_from_file(self._path)
        except (OSError, yaml.YAMLError, ValidationError, TypeError) as e:
            logger.error(
                "Failed to reload escalation policy, keeping previous",
                extra={"path": str(self._path), "error": str(e)}
            )
            return False

        with self._lock:
            self._policy = new_policy
        logger.info("Escalation policy reloaded")
        return True

    def start_watching(self) -> None:
        """
        Watch the policy file for changes.

        Skipped when the file does not exist or inotify is unavailable
        (some container runtimes).
        """
        if self._path is None:
            raise RuntimeError("Policy not loaded. Call load() first.")

        if not self._path.exists():
            logger.info(
                "Policy file doesn't exist, skipping file watch",
                extra={"path": str(self._path)}
            )
            return

        try:
            self._observer = Observer()
            handler = PolicyFileHandler(self, self._path)
            self._observer.schedule(handler, str(self._path.parent), recursive=False)
            self._observer.start()
            logger.info("Started watching escalation policy", extra={"path": str(self._path)})
        except OSError as e:
            logger.warning("File watching not available, using static policy", extra={"error": str(e)})
            self._observer = None

    def stop_watching(self) -> None:
        """Stop watching (safe to call even if not watching)."""
        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=5)
            self._observer = None

    @property
    def is_watching(self) -> bool:
        return self._observer is not None

    def get_policy(self) -> EscalationPolicy:
        with self._lock:
            if self._policy is None:
                raise RuntimeError("Escalation policy not loaded")
            return self._policy


# ========== Email ==========

class CircuitState:
    """Circuit breaker states."""
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    """
    Circuit breaker for the email provider.

    States:
    - CLOSED: Normal operation, requests pass through
    - OPEN: After N failures, reject all requests for M seconds
    - HALF_OPEN: After timeout, allow one test request
    """

    def __init__(self, failure_threshold: int = 5, recovery_timeout: float = 60.0):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._last_failure_time: Optional[float] = None

    @property
    def state(self) -> str:
        if self._state == CircuitState.OPEN and self._last_failure_time:
            if time.monotonic() - self._last_failure_time >= self.recovery_timeout:
                self._state = CircuitState.HALF_OPEN
        return self._state

    def allow_request(self) -> bool:
        return self.state in (CircuitState.CLOSED, CircuitState.HALF_OPEN)

    def record_success(self) -> None:
        self._failure_count = 0
        self._state = CircuitState.CLOSED

    def record_failure(self) -> None:
        self._failure_count += 1
        self._last_failure_time = time.monotonic()

        if self._failure_count >= self.failure_threshold:
            self._state = CircuitState.OPEN
            logger.warning(
                "Circuit breaker opened",
                extra={
                    "failure_count": self._failure_count,
                    "recovery_timeout": self.recovery_timeout
                }
            )


class EmailClient:
    """
    Resend API client with circuit breaker and retry logic.

    Retries with exponential backoff; once attempts run out, or the circuit
    is open, raises EmailDeliveryException.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_url: Optional[str] = None,
        sender: Optional[str] = None,
        max_retries: Optional[int] = None,
        backoff_base: float = 1.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._api_key = api_key if api_key is not None else settings.resend_api_key
        self._api_url = api_url or settings.email_api_url
        self._sender = sender or settings.email_from
        self._max_retries = max_retries or settings.email_max_retries
        self._backoff_base = backoff_base
        self._transport = transport
        self._circuit_breaker = CircuitBreaker(failure_threshold=5, recovery_timeout=60)
        self._http_client: Optional[httpx.AsyncClient] = None

    @property
    def is_configured(self) -> bool:
        return bool(self._api_key)

    async def _get_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=settings.email_timeout_seconds,
                transport=self._transport,
            )
        return self._http_client

    async def send(self, to: str, subject: str, html_body: str) -> bool:
        """
        Send one email.

        Returns:
            True if sent, False if skipped because no API key is configured

        Raises:
            EmailDeliveryException: Provider unreachable or rejecting requests
        """
        if not self.is_configured:
            logger.debug("Resend API key not configured, skipping email")
            return False

        if not self._circuit_breaker.allow_request():
            raise EmailDeliveryException("Circuit breaker open", {"to": to})

        payload = {"from": self._sender, "to": [to], "subject": subject, "html": html_body}
        headers = {"Authorization": f"Bearer {self._api_key}"}
        last_error = ""

        for attempt in range(self._max_retries):
            try:
                client = await self._get_client()
                response = await client.post(self._api_url, json=payload, headers=headers)

                if response.is_success:
                    self._circuit_breaker.record_success()
                    logger.info("Email sent", extra={"subject": subject})
                    return True

                last_error = f"HTTP {response.status_code}"
                logger.warning(
                    "Email API returned non-2xx",
                    extra={"status_code": response.status_code, "attempt": attempt + 1}
                )

            except httpx.HTTPError as e:
                last_error = str(e)
                logger.warning(
                    "Email request failed",
                    extra={"error": str(e), "attempt": attempt + 1}
                )

            if attempt < self._max_retries - 1:
                await asyncio.sleep(self._backoff_base * 2 ** attempt)

        self._circuit_breaker.record_failure()
        raise EmailDeliveryException(
            f"Email not delivered after {self._max_retries} attempts: {last_error}",
            {"to": to}
        )

    async def close(self) -> None:
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None


def build_escalation_email(title: str, reason: str, priority: str, for_assignee: bool) -> Dict[str, str]:
    """Subject and HTML body of an escalation email."""
    if for_assignee:
        subject = f"Urgent: Complaint escalated to you ({priority})"
        lead = "A complaint has been escalated and assigned to you."
    else:
        subject = "Your complaint has been escalated"
        lead = "Your complaint has been escalated for faster resolution."

    body = (
        f"<p>{lead}</p>"
        f"<p><strong>{html.escape(title)}</strong></p>"
        f"<p>Priority: {priority}<br>Reason: {html.escape(reason)}</p>"
    )
    return {"subject": subject, "html": body}


class EmailDispatcher(IEmailQueue):
    """
    Bounded queue plus one worker task that sends escalation emails.

    Recipients are resolved by the worker after the escalation committed;
    failures are logged and never reach the sweep.
    """

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        client: EmailClient,
        maxsize: Optional[int] = None,
    ):
        self._uow_factory = uow_factory
        self._client = client
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize or settings.email_queue_size)
        self._worker: Optional[asyncio.Task] = None

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    @property
    def is_running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    def submit(self, request: EmailDispatchRequest) -> bool:
        try:
            self._queue.put_nowait(request)
        except asyncio.QueueFull:
            logger.warning(
                "Email queue full, dropping escalation email",
                extra={"complaint_id": request.complaint_id}
            )
            return False
        return True

    def start(self) -> None:
        if self.is_running:
            return
        self._worker = asyncio.create_task(self._run(), name="escalation-email-worker")
        logger.info("Email dispatcher started")

    async def join(self) -> None:
        """Wait until every queued request has been processed."""
        await self._queue.join()

    async def stop(self) -> None:
        """Stop the worker; queued requests that were not sent are dropped."""
        if self._worker is None:
            return
        self._worker.cancel()
        try:
            await self._worker
        except asyncio.CancelledError:
            pass
        self._worker = None
        logger.info("Email dispatcher stopped", extra={"dropped": self._queue.qsize()})

    async def _run(self) -> None:
        while True:
            request = await self._queue.get()
            try:
                await self.dispatch(request)
            except Exception:
                logger.exception(
                    "Escalation email dispatch crashed",
                    extra={"complaint_id": request.complaint_id}
                )
            finally:
                self._queue.task_done()

    async def resolve_recipients(self, request: EmailDispatchRequest) -> List[Dict[str, Any]]:
        """Owner and assignee addresses for a committed escalation."""
        async with self._uow_factory() as uow:
            complaint = await uow.complaints.get(request.complaint_id)
            if complaint is None:
                return []

            recipients = []

            if complaint.is_anonymous:
                owner_email = complaint.anonymous_email
            elif complaint.user_id:
                owner_email = await uow.staff.get_email(complaint.user_id)
            else:
                owner_email = None
            if owner_email:
                recipients.append({"to": owner_email, "for_assignee": False, "title": complaint.title})

            if complaint.assigned_to:
                assignee_email = await uow.staff.get_email(complaint.assigned_to)
                if assignee_email:
                    recipients.append({"to": assignee_email, "for_assignee": True, "title": complaint.title})

        return recipients

    async def dispatch(self, request: EmailDispatchRequest) -> int:
        """Send every email for one escalation; returns how many were sent."""
        sent = 0
        for recipient in await self.resolve_recipients(request):
            message = build_escalation_email(
                recipient["title"],
                request.reason,
                request.new_priority.value,
                recipient["for_assignee"],
            )
            try:
                if await self._client.send(recipient["to"], message["subject"], message["html"]):
                    sent += 1
            except EmailDeliveryException as e:
                logger.error(
                    "Failed to send escalation email",
                    extra={"complaint_id": request.complaint_id, "error": e.message}
                )
        return sent


# ========== Scheduler ==========

JobFunc = Callable[[], Awaitable[Any]]


class EscalationScheduler:
    """
    Wrapper for APScheduler running the background jobs.

    Jobs:
    - auto-escalation-check: sweep every N minutes
    - daily-analytics-update: daily aggregation at a fixed UTC time
    """

    SWEEP_JOB_ID = "auto-escalation-check"
    ANALYTICS_JOB_ID = "daily-analytics-update"

    def __init__(
        self,
        interval_minutes: Optional[int] = None,
        analytics_hour: Optional[int] = None,
        analytics_minute: Optional[int] = None,
    ):
        self.interval_minutes = interval_minutes or settings.escalation_check_interval_minutes
        self.analytics_hour = settings.daily_analytics_hour if analytics_hour is None else analytics_hour
        self.analytics_minute = settings.daily_analytics_minute if analytics_minute is None else analytics_minute
        self._scheduler: Optional[AsyncIOScheduler] = None
        self._running = False

    def start(self, sweep_job: JobFunc, analytics_job: Optional[JobFunc] = None) -> None:
        """Start the scheduler; calling it while running is a no-op."""
        if self._running:
            logger.warning("Escalation scheduler already running")
            return

        self._scheduler = AsyncIOScheduler(timezone="UTC")

        self._scheduler.add_job(
            sweep_job,
            "interval",
            minutes=self.interval_minutes,
            id=self.SWEEP_JOB_ID,
            name="Auto-Escalation Check",
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )

        if analytics_job is not None:
            self._scheduler.add_job(
                analytics_job,
                "cron",
                hour=self.analytics_hour,
                minute=self.analytics_minute,
                id=self.ANALYTICS_JOB_ID,
                name="Daily Analytics Update",
                max_instances=1,
                coalesce=True,
                replace_existing=True,
            )

        self._scheduler.start()
        self._running = True

        logger.info(
            "Escalation scheduler started",
            extra={
                "interval_minutes": self.interval_minutes,
                "analytics_time": f"{self.analytics_hour:02d}:{self.analytics_minute:02d}",
            }
        )

    def stop(self) -> None:
        """Stop the scheduler (safe to call when not running)."""
        if not self._running:
            return

        if self._scheduler:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None

        self._running = False
        logger.info("Escalation scheduler stopped")

    @property
    def is_running(self) -> bool:
        return self._running

    def job_ids(self) -> List[str]:
        if self._scheduler is None:
            return []
        return [job.id for job in self._scheduler.get_jobs()]
