from datetime import timedelta

import pytest

from resolveit.config import (
    SYSTEM_ACTOR_NAME,
    ComplaintStatus,
    NoteType,
    NotificationType,
    Priority,
    StaffRole,
)
from resolveit.escalation.application import EscalationCommand
from resolveit.escalation.domain import StaffMember


def _command(complaint_id, now, **overrides):
    fields = {
        "complaint_id": complaint_id,
        "reason": "Medium priority complaint unresolved for 30 hours (SLA: 24 hours)",
        "now": now,
        "new_priority": Priority.HIGH,
    }
    fields.update(overrides)
    return EscalationCommand(**fields)


@pytest.mark.asyncio
async def test_auto_escalation_writes_everything(store, committer, email_queue, make_complaint, now):
    store.staff.append(StaffMember("admin", StaffRole.ADMIN))
    complaint = store.add(make_complaint(created_at=now - timedelta(hours=30)))

    outcome = await committer.commit(_command(complaint.id, now))

    reason = "Medium priority complaint unresolved for 30 hours (SLA: 24 hours)"
    stored = store.complaints[complaint.id]
    assert stored.status == ComplaintStatus.ESCALATED
    assert stored.escalated_at == now
    assert stored.escalation_reason == f"AUTO-ESCALATED: {reason}"
    assert stored.priority == Priority.HIGH
    assert stored.assigned_to == "admin"

    [entry] = store.history
    assert entry.status == ComplaintStatus.ESCALATED
    assert entry.previous_status == ComplaintStatus.IN_PROGRESS
    assert entry.changed_by_name == SYSTEM_ACTOR_NAME
    assert entry.is_system_generated is True
    assert entry.notes == f"AUTO-ESCALATED: {reason}. Priority changed from MEDIUM to HIGH."

    owner, assignee = store.notifications
    assert owner.user_id == complaint.user_id
    assert owner.title == "Complaint Auto-Escalated"
    assert assignee.user_id == "admin"
    assert assignee.title == "Urgent: Complaint Auto-Escalated"
    assert "Priority: HIGH" in assignee.message
    assert all(n.type == NotificationType.AUTO_ESCALATED and not n.is_read for n in store.notifications)

    assert store.notes == []

    [request] = email_queue.requests
    assert request.complaint_id == complaint.id
    assert request.reason == reason
    assert request.new_priority == Priority.HIGH

    assert outcome.previous_priority == Priority.MEDIUM
    assert outcome.assigned_to == "admin"
    assert outcome.manual is False


@pytest.mark.asyncio
async def test_missing_complaint_is_a_no_op(store, committer, email_queue, now):
    outcome = await committer.commit(_command("deleted", now))

    assert outcome is None
    assert store.commits == 0
    assert store.history == []
    assert email_queue.requests == []


@pytest.mark.asyncio
async def test_anonymous_owner_gets_no_notification(store, committer, make_complaint, now):
    store.staff.append(StaffMember("admin", StaffRole.ADMIN))
    complaint = store.add(make_complaint(is_anonymous=True, anonymous_email="anon@example.com"))

    await committer.commit(_command(complaint.id, now))

    assert [n.user_id for n in store.notifications] == ["admin"]


@pytest.mark.asyncio
async def test_no_staff_escalates_unassigned(store, committer, make_complaint, now):
    complaint = store.add(make_complaint(assigned_to="previous"))

    outcome = await committer.commit(_command(complaint.id, now))

    assert outcome.assigned_to is None
    assert store.complaints[complaint.id].assigned_to is None
    assert [n.user_id for n in store.notifications] == [complaint.user_id]


@pytest.mark.asyncio
async def test_missing_priority_keeps_current(store, committer, make_complaint, now):
    complaint = store.add(make_complaint(priority=Priority.CRITICAL))

    outcome = await committer.commit(_command(complaint.id, now, new_priority=None))

    assert outcome.new_priority == Priority.CRITICAL
    assert store.history[0].notes.endswith("Priority changed from CRITICAL to CRITICAL.")


@pytest.mark.parametrize("operation", ["history", "notification"])
@pytest.mark.asyncio
async def test_failure_mid_commit_writes_nothing(store, committer, email_queue, make_complaint, now, operation):
    store.staff.append(StaffMember("admin", StaffRole.ADMIN))
    complaint = store.add(make_complaint())
    store.fail_on = operation

    with pytest.raises(RuntimeError):
        await committer.commit(_command(complaint.id, now))

    assert store.complaints[complaint.id] == complaint
    assert store.history == []
    assert store.notifications == []
    assert store.rollbacks == 1
    assert store.commits == 0
    assert email_queue.requests == []


@pytest.mark.asyncio
async def test_every_commit_appends_history(store, committer, make_complaint, now):
    complaint = store.add(make_complaint())

    await committer.commit(_command(complaint.id, now))
    await committer.commit(_command(complaint.id, now + timedelta(minutes=1)))

    assert len(store.history) == 2
    assert store.history[1].previous_status == ComplaintStatus.ESCALATED


@pytest.mark.asyncio
async def test_manual_escalation_uses_given_target(store, committer, email_queue, make_complaint, now):
    store.staff.append(StaffMember("admin", StaffRole.ADMIN))
    complaint = store.add(make_complaint(priority=Priority.LOW, assigned_to="agent"))

    outcome = await committer.commit(_command(
        complaint.id,
        now,
        reason="Customer threatened legal action",
        manual=True,
        escalate_to="legal-lead",
        actor_id="moderator-7",
        actor_name="Dana Reyes",
    ))

    stored = store.complaints[complaint.id]
    assert stored.assigned_to == "legal-lead"
    assert stored.priority == Priority.HIGH
    assert stored.escalation_reason == "MANUAL ESCALATION: Customer threatened legal action"
    assert outcome.manual is True

    [entry] = store.history
    assert entry.changed_by == "moderator-7"
    assert entry.changed_by_name == "Dana Reyes"
    assert entry.is_system_generated is True

    [note] = store.notes
    assert note.note_type == NoteType.ESCALATION
    assert note.is_public is False
    assert note.note == "Complaint escalated by Dana Reyes. Reason: Customer threatened legal action"

    assert email_queue.requests[0].reason == "MANUAL ESCALATION: Customer threatened legal action"


@pytest.mark.asyncio
async def test_manual_escalation_keeps_assignee_by_default(store, committer, make_complaint, now):
    store.staff.append(StaffMember("admin", StaffRole.ADMIN))
    complaint = store.add(make_complaint(assigned_to="agent"))

    outcome = await committer.commit(_command(complaint.id, now, manual=True, new_priority=None))

    assert outcome.assigned_to == "agent"
    assert outcome.new_priority == complaint.priority
