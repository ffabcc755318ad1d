"""
Shared Kernel Module
====================

Generic infrastructure used by every bounded context (escalation,
analytics): structured logging and HTTP middleware.

DO NOT add escalation or analytics business logic here.
"""
