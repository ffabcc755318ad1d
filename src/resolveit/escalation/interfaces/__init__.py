"""
Escalation Interfaces Layer
============================

API controllers for complaint escalation.
"""

from resolveit.escalation.interfaces.controllers import router as escalation_router

__all__ = ["escalation_router"]
