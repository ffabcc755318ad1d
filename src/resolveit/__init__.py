"""
ResolveIt Escalation Service
============================

SLA-driven auto-escalation for grievance tracking.
"""

__version__ = "1.0.0"
