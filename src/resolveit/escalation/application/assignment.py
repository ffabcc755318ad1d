"""
Assignment Resolver
===================

Picks who receives an escalated complaint.

A matching active escalation rule wins outright. Otherwise the least
loaded active staff member is chosen, with senior roles winning ties.
Workloads are read fresh for every decision so that complaints escalated
earlier in the same sweep count against their new assignee.
"""

from typing import List, Optional, Sequence

from resolveit.config import ESCALATION_ROLES, ROLE_PRECEDENCE, ComplaintCategory, Priority, StaffRole
from resolveit.escalation.application.interfaces import IEscalationUnitOfWork
from resolveit.escalation.domain import StaffWorkload
from resolveit.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


def rank_by_workload(workloads: Sequence[StaffWorkload]) -> List[StaffWorkload]:
    """
    Order candidates by (workload, role precedence).

    sorted() is stable, so equal candidates keep directory order.
    """
    return sorted(workloads, key=lambda w: (w.workload, ROLE_PRECEDENCE[w.role]))


class AssignmentResolver:
    """Resolves the escalation target for a complaint."""

    def __init__(self, roles: Sequence[StaffRole] = ESCALATION_ROLES):
        self._roles = tuple(roles)

    async def resolve(
        self,
        uow: IEscalationUnitOfWork,
        category: ComplaintCategory,
        priority: Priority,
    ) -> Optional[str]:
        """
        Return the user id to assign, or None when nobody is available.

        Args:
            uow: Open unit of work; reads happen inside its transaction
            category: Complaint category
            priority: Priority the complaint is escalated to
        """
        rule = await uow.rules.find_active(category, priority)
        if rule is not None:
            logger.debug(
                "Escalation rule matched",
                extra={"category": category.value, "priority": priority.value, "escalate_to": rule.escalate_to}
            )
            return rule.escalate_to

        ranked = rank_by_workload(await self.staff_workloads(uow))
        if not ranked:
            logger.warning(
                "No active staff available for escalation",
                extra={"category": category.value, "priority": priority.value}
            )
            return None

        return ranked[0].user_id

    async def staff_workloads(self, uow: IEscalationUnitOfWork) -> List[StaffWorkload]:
        """Current open workload for every eligible staff member."""
        staff = await uow.staff.list_active(self._roles)
        return [
            StaffWorkload(
                user_id=member.user_id,
                role=member.role,
                workload=await uow.complaints.count_open_by_assignee(member.user_id),
            )
            for member in staff
            if member.is_active and member.role in self._roles
        ]
