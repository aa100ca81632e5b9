"""
SLA Domain Layer
================

Domain layer for SLA monitoring module.

Contains:
- Entities: Ticket snapshot and derived results (SLAMetrics, EscalationDecision, SLAReport)
- Value Objects: Policies, escalation rules and organization overrides
- Domain Services: Stateless business logic (SLACalculator, generate_sla_report)

This layer has no dependencies on infrastructure - pure Python business logic.
"""

from supportdesk.sla.domain.entities import (
    Ticket,
    SLAMetrics,
    EscalationDecision,
    ActualTimes,
    TicketSLAFields,
    SLAReport,
)
from supportdesk.sla.domain.value_objects import (
    EscalationRule,
    EscalationRuleCodec,
    SLAPolicy,
    SlaConfiguration,
    PolicyTable,
    DEFAULT_SLA_POLICIES,
    DEFAULT_POLICY_TABLE,
    FALLBACK_POLICY_KEY,
    policy_key,
)
from supportdesk.sla.domain.calculator import (
    SLACalculator,
    AT_RISK_THRESHOLD_PERCENT,
    calculate_sla_metrics,
    check_escalation_needed,
    calculate_actual_times,
    calculate_business_impact,
    initialize_ticket_sla,
    format_time_remaining,
    get_sla_status_color,
)
from supportdesk.sla.domain.reporting import generate_sla_report

__all__ = [
    # Entities
    "Ticket",
    "SLAMetrics",
    "EscalationDecision",
    "ActualTimes",
    "TicketSLAFields",
    "SLAReport",
    # Value Objects
    "EscalationRule",
    "EscalationRuleCodec",
    "SLAPolicy",
    "SlaConfiguration",
    "PolicyTable",
    "DEFAULT_SLA_POLICIES",
    "DEFAULT_POLICY_TABLE",
    "FALLBACK_POLICY_KEY",
    "policy_key",
    # Domain Services
    "SLACalculator",
    "AT_RISK_THRESHOLD_PERCENT",
    "calculate_sla_metrics",
    "check_escalation_needed",
    "calculate_actual_times",
    "calculate_business_impact",
    "initialize_ticket_sla",
    "format_time_remaining",
    "get_sla_status_color",
    "generate_sla_report",
]
