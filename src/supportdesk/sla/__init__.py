"""
SLA Monitoring Module
=====================

Bounded Context for Service Level Agreement monitoring and escalation.

Responsibilities:
- Select the SLA policy for a ticket's priority and business impact
- Calculate response and resolution deadlines
- Classify tickets as on track, at risk or breached
- Escalate tickets up the policy's escalation ladder
- Notify escalations and breaches via Slack
- Aggregate compliance reports
- Hot-reload policies from YAML via watchdog
"""
