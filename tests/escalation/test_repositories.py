from datetime import timedelta
from uuid import uuid4

import pytest

from resolveit.escalation.domain import EscalationEvaluator, EscalationPolicy
from resolveit.escalation.infrastructure import ComplaintModel, SQLAlchemyComplaintRepository


class _Rows:
    def __init__(self, rows):
        self._rows = rows

    def scalars(self):
        return self

    def all(self):
        return self._rows


class RowSession:
    """Stands in for AsyncSession.execute, returning fixed complaint rows."""

    def __init__(self, rows):
        self.rows = rows
        self.statements = []

    async def execute(self, stmt):
        self.statements.append(stmt)
        return _Rows(self.rows)


def _row(now, **overrides):
    fields = {
        "id": uuid4(),
        "title": "Water leak in hallway",
        "category": "GENERAL",
        "priority": "CRITICAL",
        "status": "IN_PROGRESS",
        "is_anonymous": False,
        "created_at": now - timedelta(hours=3),
    }
    fields.update(overrides)
    return ComplaintModel(**fields)


@pytest.mark.asyncio
async def test_malformed_row_does_not_block_candidates(now, caplog):
    bad = _row(now, urgency_level=11)
    unknown = _row(now, category="PARKING")
    good = _row(now)
    repository = SQLAlchemyComplaintRepository(RowSession([bad, unknown, good]))

    candidates = await repository.list_escalation_candidates(now - timedelta(hours=4))

    assert [c.id for c in candidates] == [str(good.id)]
    assert EscalationEvaluator(EscalationPolicy()).evaluate(candidates[0], now, 0).escalate is True
    assert caplog.text.count("Skipping malformed complaint row") == 2
