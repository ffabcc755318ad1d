from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional

import pytest

from resolveit.config import ComplaintCategory, ComplaintStatus, Priority
from resolveit.escalation.application import (
    EmailDispatchRequest,
    EscalationCommitter,
    EscalationService,
    IComplaintRepository,
    IEmailQueue,
    IEscalationRuleRepository,
    IEscalationUnitOfWork,
    IInternalNoteRepository,
    INotificationRepository,
    IPolicyProvider,
    IStaffDirectory,
    IStatusHistoryRepository,
)
from resolveit.escalation.domain import (
    Complaint,
    EscalationPolicy,
    EscalationRule,
    InternalNote,
    Notification,
    StaffMember,
    StatusHistoryEntry,
)

NOW = datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)


class SimulatedFailure(RuntimeError):
    pass


@dataclass
class InMemoryStore:
    """Committed state shared by every fake unit of work."""

    complaints: Dict[str, Complaint] = field(default_factory=dict)
    history: List[StatusHistoryEntry] = field(default_factory=list)
    rules: List[EscalationRule] = field(default_factory=list)
    staff: List[StaffMember] = field(default_factory=list)
    emails: Dict[str, str] = field(default_factory=dict)
    notifications: List[Notification] = field(default_factory=list)
    notes: List[InternalNote] = field(default_factory=list)
    fail_on: Optional[str] = None
    commits: int = 0
    rollbacks: int = 0

    def add(self, complaint: Complaint) -> Complaint:
        self.complaints[complaint.id] = complaint
        return complaint

    def maybe_fail(self, operation: str) -> None:
        if self.fail_on == operation:
            raise SimulatedFailure(f"simulated failure in {operation}")


class FakeComplaintRepository(IComplaintRepository):
    def __init__(self, uow: "FakeUnitOfWork"):
        self._uow = uow
        self._store = uow.store

    async def get(self, complaint_id):
        return self._store.complaints.get(complaint_id)

    async def list_escalation_candidates(self, cooldown_cutoff):
        return sorted(
            (
                c for c in self._store.complaints.values()
                if c.is_open and (c.escalated_at is None or c.escalated_at < cooldown_cutoff)
            ),
            key=lambda c: c.created_at,
        )

    async def apply_escalation(self, complaint_id, *, escalated_at, escalation_reason, priority, assigned_to):
        self._store.maybe_fail("patch")
        current = self._store.complaints[complaint_id]

        def write():
            self._store.complaints[complaint_id] = replace(
                current,
                status=ComplaintStatus.ESCALATED,
                escalated_at=escalated_at,
                escalation_reason=escalation_reason,
                priority=priority,
                assigned_to=assigned_to,
            )

        self._uow.stage(write)

    async def count_open_by_assignee(self, user_id):
        return sum(
            1 for c in self._store.complaints.values()
            if c.assigned_to == user_id and c.is_open
        )


class FakeStatusHistoryRepository(IStatusHistoryRepository):
    def __init__(self, uow: "FakeUnitOfWork"):
        self._uow = uow
        self._store = uow.store

    async def append(self, entry):
        self._store.maybe_fail("history")
        self._uow.stage(lambda: self._store.history.append(entry))
        return entry

    async def count_by_complaint(self, complaint_id):
        return sum(1 for e in self._store.history if e.complaint_id == complaint_id)

    async def list_by_complaint(self, complaint_id):
        return sorted(
            (e for e in self._store.history if e.complaint_id == complaint_id),
            key=lambda e: e.timestamp,
        )


class FakeEscalationRuleRepository(IEscalationRuleRepository):
    def __init__(self, uow: "FakeUnitOfWork"):
        self._store = uow.store

    async def find_active(self, category, priority):
        for rule in self._store.rules:
            if rule.is_active and rule.category == category and rule.priority == priority:
                return rule
        return None


class FakeStaffDirectory(IStaffDirectory):
    def __init__(self, uow: "FakeUnitOfWork"):
        self._store = uow.store

    async def list_active(self, roles):
        return [m for m in self._store.staff if m.is_active and m.role in roles]

    async def get_email(self, user_id):
        if user_id in self._store.emails:
            return self._store.emails[user_id]
        for member in self._store.staff:
            if member.user_id == user_id:
                return member.email
        return None


class FakeNotificationRepository(INotificationRepository):
    def __init__(self, uow: "FakeUnitOfWork"):
        self._uow = uow
        self._store = uow.store

    async def enqueue(self, notification):
        self._store.maybe_fail("notification")
        self._uow.stage(lambda: self._store.notifications.append(notification))
        return notification


class FakeInternalNoteRepository(IInternalNoteRepository):
    def __init__(self, uow: "FakeUnitOfWork"):
        self._uow = uow
        self._store = uow.store

    async def add(self, note):
        self._store.maybe_fail("note")
        self._uow.stage(lambda: self._store.notes.append(note))
        return note


class FakeUnitOfWork(IEscalationUnitOfWork):
    """Stages writes and applies them to the store only on commit."""

    def __init__(self, store: InMemoryStore):
        self.store = store
        self._pending: List[Callable[[], None]] = []
        self.complaints = FakeComplaintRepository(self)
        self.history = FakeStatusHistoryRepository(self)
        self.rules = FakeEscalationRuleRepository(self)
        self.staff = FakeStaffDirectory(self)
        self.notifications = FakeNotificationRepository(self)
        self.notes = FakeInternalNoteRepository(self)

    def stage(self, write: Callable[[], None]) -> None:
        self._pending.append(write)

    async def commit(self):
        for write in self._pending:
            write()
        self._pending.clear()
        self.store.commits += 1

    async def rollback(self):
        self._pending.clear()
        self.store.rollbacks += 1


class RecordingEmailQueue(IEmailQueue):
    def __init__(self, accept: bool = True):
        self.accept = accept
        self.requests: List[EmailDispatchRequest] = []

    def submit(self, request):
        if self.accept:
            self.requests.append(request)
        return self.accept


class StaticPolicyProvider(IPolicyProvider):
    def __init__(self, policy: Optional[EscalationPolicy] = None):
        self.policy = policy or EscalationPolicy()
        self.calls = 0

    def get_policy(self):
        self.calls += 1
        return self.policy


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def uow_factory(store):
    return lambda: FakeUnitOfWork(store)


@pytest.fixture
def email_queue():
    return RecordingEmailQueue()


@pytest.fixture
def policy_provider():
    return StaticPolicyProvider()


@pytest.fixture
def committer(uow_factory, email_queue):
    return EscalationCommitter(uow_factory, email_queue=email_queue)


@pytest.fixture
def service(uow_factory, committer, policy_provider):
    return EscalationService(uow_factory, committer, policy_provider, clock=lambda: NOW)


@pytest.fixture
def make_complaint():
    counter = {"n": 0}

    def factory(**overrides) -> Complaint:
        counter["n"] += 1
        fields = {
            "id": f"complaint-{counter['n']}",
            "title": f"Complaint {counter['n']}",
            "category": ComplaintCategory.GENERAL,
            "priority": Priority.MEDIUM,
            "status": ComplaintStatus.IN_PROGRESS,
            "created_at": NOW - timedelta(hours=1),
            "user_id": f"owner-{counter['n']}",
        }
        fields.update(overrides)
        return Complaint(**fields)

    return factory
