"""
Escalation Module
=================

Bounded Context for SLA-driven complaint escalation.

Responsibilities:
- Evaluate open complaints against the SLA rule cascade
- Pick an escalation target (configured rule or least-loaded staff)
- Commit escalations atomically with an audit trail
- Queue owner/assignee notifications and emails
- Run the recurring sweep and expose manual escalation
"""
