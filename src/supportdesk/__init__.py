"""
Support Desk SLA
================

Service-level tracking and escalation for support tickets.

Modules:
- sla: Deadlines, SLA status, escalation ladder and compliance reporting
- config: Settings and support-desk vocabulary
- core: Exception hierarchy
- shared: Structured logging
"""

__version__ = "1.0.0"
