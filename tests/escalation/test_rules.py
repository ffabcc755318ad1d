from datetime import timedelta

import pytest

from resolveit.config import ComplaintCategory, ComplaintStatus, Priority
from resolveit.escalation.domain import (
    COMPLEXITY_PRIORITY_BUMP,
    OVERDUE_PRIORITY_BUMP,
    EscalationEvaluator,
    EscalationPolicy,
)


@pytest.fixture
def evaluator():
    return EscalationEvaluator()


def test_critical_complaint_past_two_hours(evaluator, make_complaint, now):
    complaint = make_complaint(
        priority=Priority.CRITICAL,
        created_at=now - timedelta(hours=2, minutes=1),
    )

    decision = evaluator.evaluate(complaint, now)

    assert decision.escalate is True
    assert decision.reason == "Critical complaint unresolved for 2 hours (SLA: 2 hours)"
    assert decision.new_priority == Priority.CRITICAL


def test_overdue_complaint_bumps_one_level(evaluator, make_complaint, now):
    complaint = make_complaint(
        priority=Priority.LOW,
        created_at=now - timedelta(hours=20),
        due_date=now - timedelta(hours=13),
    )

    decision = evaluator.evaluate(complaint, now)

    assert decision.escalate is True
    assert decision.reason == "Complaint is 13 hours overdue"
    assert decision.new_priority == Priority.MEDIUM
    assert decision.triggered_rules == ("due_date_breach",)


def test_overdue_by_less_than_threshold_does_not_fire(evaluator, make_complaint, now):
    complaint = make_complaint(
        priority=Priority.LOW,
        created_at=now - timedelta(hours=20),
        due_date=now - timedelta(hours=11, minutes=59),
    )

    assert evaluator.evaluate(complaint, now).escalate is False


def test_old_overdue_low_complaint_takes_age_rule_reason(evaluator, make_complaint, now):
    due_date = now - timedelta(hours=13)
    complaint = make_complaint(
        priority=Priority.LOW,
        created_at=due_date - timedelta(days=14),
        due_date=due_date,
    )

    decision = evaluator.evaluate(complaint, now)

    # Both rules fire; the later one sets the reason
    assert decision.triggered_rules == ("due_date_breach", "priority_sla")
    assert decision.reason == "Low priority complaint unresolved for 349 hours (SLA: 72 hours)"
    assert decision.new_priority == Priority.MEDIUM


def test_sensitive_category_fires_before_priority_sla(evaluator, make_complaint, now):
    complaint = make_complaint(
        category=ComplaintCategory.SAFETY,
        priority=Priority.MEDIUM,
        created_at=now - timedelta(hours=5),
    )

    decision = evaluator.evaluate(complaint, now)

    assert decision.escalate is True
    assert decision.reason == "Sensitive complaint (SAFETY) unresolved for 5 hours (SLA: 4 hours)"
    assert decision.new_priority == Priority.CRITICAL


@pytest.mark.parametrize(
    "priority, age_hours, expected",
    [
        (Priority.HIGH, 8, Priority.CRITICAL),
        (Priority.MEDIUM, 24, Priority.HIGH),
        (Priority.LOW, 72, Priority.MEDIUM),
    ],
)
def test_priority_sla_thresholds(evaluator, make_complaint, now, priority, age_hours, expected):
    just_under = make_complaint(priority=priority, created_at=now - timedelta(hours=age_hours) + timedelta(minutes=1))
    at_threshold = make_complaint(priority=priority, created_at=now - timedelta(hours=age_hours))

    assert evaluator.evaluate(just_under, now).escalate is False

    decision = evaluator.evaluate(at_threshold, now)
    assert decision.escalate is True
    assert decision.new_priority == expected
    assert f"(SLA: {age_hours} hours)" in decision.reason


def test_high_urgency_rule(evaluator, make_complaint, now):
    complaint = make_complaint(
        priority=Priority.LOW,
        urgency_level=9,
        created_at=now - timedelta(hours=6),
    )

    decision = evaluator.evaluate(complaint, now)

    assert decision.reason == "High urgency complaint (level 9) unresolved for 6 hours"
    assert decision.new_priority == Priority.CRITICAL


def test_urgency_below_threshold_is_ignored(evaluator, make_complaint, now):
    complaint = make_complaint(
        priority=Priority.LOW,
        urgency_level=7,
        created_at=now - timedelta(hours=10),
    )

    assert evaluator.evaluate(complaint, now).escalate is False


def test_complexity_rule_uses_its_own_bump_table(evaluator, make_complaint, now):
    complaint = make_complaint(
        priority=Priority.LOW,
        created_at=now - timedelta(hours=50),
    )

    decision = evaluator.evaluate(complaint, now, history_count=5)

    assert decision.reason == "Complex complaint with 5 status changes over 50 hours"
    assert decision.new_priority == Priority.HIGH


def test_complexity_needs_enough_history(evaluator, make_complaint, now):
    complaint = make_complaint(priority=Priority.LOW, created_at=now - timedelta(hours=50))

    assert evaluator.evaluate(complaint, now, history_count=4).escalate is False


def test_last_rule_wins_reason_and_priority(evaluator, make_complaint, now):
    complaint = make_complaint(
        category=ComplaintCategory.HARASSMENT,
        priority=Priority.HIGH,
        urgency_level=10,
        created_at=now - timedelta(hours=60),
        due_date=now - timedelta(hours=24),
    )

    decision = evaluator.evaluate(complaint, now, history_count=7)

    assert decision.triggered_rules == (
        "due_date_breach", "priority_sla", "sensitive_category", "high_urgency", "complexity",
    )
    assert decision.reason == "Complex complaint with 7 status changes over 60 hours"
    assert decision.new_priority == Priority.CRITICAL


def test_no_rule_keeps_priority(evaluator, make_complaint, now):
    complaint = make_complaint(priority=Priority.MEDIUM, created_at=now - timedelta(hours=3))

    decision = evaluator.evaluate(complaint, now)

    assert decision.escalate is False
    assert decision.reason == ""
    assert decision.new_priority == Priority.MEDIUM


def test_bump_tables_differ():
    assert OVERDUE_PRIORITY_BUMP[Priority.LOW] == Priority.MEDIUM
    assert OVERDUE_PRIORITY_BUMP[Priority.MEDIUM] == Priority.HIGH
    assert COMPLEXITY_PRIORITY_BUMP[Priority.LOW] == Priority.HIGH
    assert COMPLEXITY_PRIORITY_BUMP[Priority.MEDIUM] == Priority.CRITICAL


def test_escalation_never_lowers_priority(evaluator, make_complaint, now):
    order = list(Priority)
    for priority in Priority:
        complaint = make_complaint(
            priority=priority,
            urgency_level=8,
            created_at=now - timedelta(hours=100),
            due_date=now - timedelta(hours=30),
        )
        for history_count in (0, 6):
            decision = evaluator.evaluate(complaint, now, history_count)
            assert order.index(decision.new_priority) >= order.index(priority)


def test_policy_overrides_thresholds(make_complaint, now):
    policy = EscalationPolicy(priority_sla_hours={Priority.CRITICAL: 1})
    evaluator = EscalationEvaluator(policy)
    complaint = make_complaint(priority=Priority.CRITICAL, created_at=now - timedelta(hours=1))

    decision = evaluator.evaluate(complaint, now)

    assert decision.reason == "Critical complaint unresolved for 1 hours (SLA: 1 hours)"
    assert policy.sla_hours_for(Priority.LOW) == 72


def test_eligibility_respects_cooldown_and_status(evaluator, make_complaint, now):
    recent = make_complaint(escalated_at=now - timedelta(hours=3, minutes=59))
    old = make_complaint(escalated_at=now - timedelta(hours=4, minutes=1))
    resolved = make_complaint(status=ComplaintStatus.RESOLVED, resolved_at=now)

    assert evaluator.is_eligible(recent, now) is False
    assert evaluator.is_eligible(old, now) is True
    assert evaluator.is_eligible(resolved, now) is False


def test_closed_complaint_requires_resolved_at(make_complaint):
    with pytest.raises(ValueError):
        make_complaint(status=ComplaintStatus.CLOSED)
