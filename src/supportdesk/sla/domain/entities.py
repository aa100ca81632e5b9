"""
SLA Domain Entities
====================

The ticket snapshot the engine evaluates and the results it derives.

All of them are immutable. Results are recomputed on every evaluation
and never written back by the domain itself.
"""

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Optional

from supportdesk.config import (
    Priority, TicketStatus, ACTIVE_TICKET_STATUSES
)
from supportdesk.sla.domain.value_objects import EscalationRule


@dataclass(frozen=True)
class Ticket:
    """
    Snapshot of a support ticket as seen by the SLA engine.

    The ticket is owned by the surrounding ticket-management system; the
    engine only reads it. ``priority`` and ``business_impact`` are free
    strings because upstream data may carry legacy values.
    """

    id: str
    created_at: datetime

    priority: Optional[str] = Priority.MEDIUM
    business_impact: Optional[str] = None
    status: str = TicketStatus.OPEN
    category: Optional[str] = None
    ticket_number: Optional[str] = None

    # SLA tracking timestamps
    first_response_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None

    # Per-ticket overrides of the policy hours
    response_time_hours: Optional[float] = None
    resolution_time_hours: Optional[float] = None

    # Escalation
    escalation_level: int = 0
    escalated_at: Optional[datetime] = None

    # Values previously stored by the ticket system
    sla_status: Optional[str] = None
    actual_response_minutes: Optional[int] = None
    actual_resolution_minutes: Optional[int] = None

    def __post_init__(self):
        """Validate ticket on initialization."""
        if self.first_response_at and self.first_response_at < self.created_at:
            raise ValueError("first_response_at cannot be before created_at")

        if self.resolved_at and self.resolved_at < self.created_at:
            raise ValueError("resolved_at cannot be before created_at")

        if self.escalation_level < 0:
            raise ValueError("escalation_level cannot be negative")

    @property
    def is_active(self) -> bool:
        """Check if ticket is still being worked on."""
        return self.status in ACTIVE_TICKET_STATUSES

    def with_escalation(self, level: int, escalated_at: datetime) -> "Ticket":
        """Return a copy raised to ``level``; escalation never goes down."""
        if level < self.escalation_level:
            raise ValueError(
                f"escalation level cannot decrease from {self.escalation_level} to {level}"
            )
        return replace(self, escalation_level=level, escalated_at=escalated_at)

    def with_sla_status(self, sla_status: str) -> "Ticket":
        return replace(self, sla_status=sla_status)


@dataclass(frozen=True)
class SLAMetrics:
    """
    SLA metrics for a ticket at one evaluation instant.

    Built fresh on every evaluation and never stored by the engine.
    """

    response_time_hours: float
    resolution_time_hours: float
    sla_breach_at: datetime
    sla_status: str
    time_remaining: int  # minutes
    percent_time_elapsed: float

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "response_time_hours": self.response_time_hours,
            "resolution_time_hours": self.resolution_time_hours,
            "sla_breach_at": self.sla_breach_at.isoformat(),
            "sla_status": self.sla_status,
            "time_remaining": self.time_remaining,
            "percent_time_elapsed": self.percent_time_elapsed,
        }


@dataclass(frozen=True)
class EscalationDecision:
    """Signal that a ticket should move to ``escalation_level`` now."""

    escalation_level: int
    reason: str
    rule: Optional[EscalationRule] = None
    needs_escalation: bool = True

    @property
    def assign_to_role(self) -> Optional[str]:
        return self.rule.assign_to_role if self.rule else None

    def to_dict(self) -> dict:
        return {
            "needs_escalation": self.needs_escalation,
            "escalation_level": self.escalation_level,
            "reason": self.reason,
            "assign_to_role": self.assign_to_role,
        }


@dataclass(frozen=True)
class ActualTimes:
    """Minutes from creation to first response and to resolution."""

    actual_response_minutes: Optional[int] = None
    actual_resolution_minutes: Optional[int] = None

    def to_dict(self) -> dict:
        """Only the values that have been recorded."""
        result = {}
        if self.actual_response_minutes is not None:
            result["actual_response_minutes"] = self.actual_response_minutes
        if self.actual_resolution_minutes is not None:
            result["actual_resolution_minutes"] = self.actual_resolution_minutes
        return result


@dataclass(frozen=True)
class TicketSLAFields:
    """SLA fields assigned to a ticket when it is created."""

    business_impact: str
    response_time_hours: float
    resolution_time_hours: float
    sla_breach_at: datetime
    sla_status: str


@dataclass(frozen=True)
class SLAReport:
    """
    Compliance statistics over a set of tickets.

    Rates and averages are pre-formatted to one decimal place for display.
    """

    total: int
    on_track: int
    at_risk: int
    breached: int
    sla_compliance_rate: str
    avg_response_time_hours: str
    avg_resolution_time_hours: str
    unclassified: int = 0

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            "on_track": self.on_track,
            "at_risk": self.at_risk,
            "breached": self.breached,
            "sla_compliance_rate": self.sla_compliance_rate,
            "avg_response_time_hours": self.avg_response_time_hours,
            "avg_resolution_time_hours": self.avg_resolution_time_hours,
            "unclassified": self.unclassified,
        }
