"""
SLA Calculator
===============

Pure functions for SLA deadlines, status, escalation and display.

Every entry point that depends on the current time takes ``now`` as an
explicit keyword argument, so one evaluation pass can share a single
instant across all of its calculations.
"""

import math
from datetime import datetime, timedelta
from typing import List, Optional

from supportdesk.config import (
    Priority, BusinessImpact, SLAStatus, ClientTier, TicketCategory,
    CRITICAL_CATEGORIES
)
from supportdesk.sla.domain.entities import (
    Ticket, SLAMetrics, EscalationDecision, ActualTimes, TicketSLAFields
)
from supportdesk.sla.domain.value_objects import (
    EscalationRule, PolicyTable, SlaConfiguration, DEFAULT_POLICY_TABLE
)


AT_RISK_THRESHOLD_PERCENT = 80.0

_PRIORITY_IMPACT = {
    Priority.URGENT: BusinessImpact.HIGH,
    Priority.HIGH: BusinessImpact.MEDIUM,
    Priority.MEDIUM: BusinessImpact.MEDIUM,
    Priority.LOW: BusinessImpact.LOW,
}

_ENTERPRISE_IMPACT = {
    Priority.URGENT: BusinessImpact.CRITICAL,
    Priority.HIGH: BusinessImpact.HIGH,
}

_STATUS_COLORS = {
    SLAStatus.ON_TRACK: "green",
    SLAStatus.AT_RISK: "orange",
    SLAStatus.BREACHED: "red",
}


class SLACalculator:
    """
    Pure functions for SLA calculations.

    Stateless utility class: all SLA calculation logic in one place.
    """

    @staticmethod
    def resolve_hours(*candidates: Optional[float]) -> float:
        """
        First usable hour value in precedence order.

        Missing, zero and negative values count as absent. The last
        candidate is expected to come from the policy table.
        """
        for hours in candidates:
            if hours is not None and hours > 0:
                return float(hours)
        raise ValueError("no positive SLA hours among candidates")

    @staticmethod
    def effective_hours(
        ticket: Ticket,
        config: Optional[SlaConfiguration] = None,
        policies: Optional[PolicyTable] = None
    ) -> tuple[float, float]:
        """
        Response and resolution hours for a ticket.

        Precedence: ticket override, then explicit configuration, then
        the policy for the ticket's priority and business impact.
        """
        policy = (policies or DEFAULT_POLICY_TABLE).lookup(
            ticket.priority, ticket.business_impact
        )
        response_hours = SLACalculator.resolve_hours(
            ticket.response_time_hours,
            config.response_time_hours if config else None,
            policy.response_time_hours
        )
        resolution_hours = SLACalculator.resolve_hours(
            ticket.resolution_time_hours,
            config.resolution_time_hours if config else None,
            policy.resolution_time_hours
        )
        return response_hours, resolution_hours

    @staticmethod
    def calculate_deadline(created_at: datetime, hours: float) -> datetime:
        """Deadline ``hours`` after creation."""
        return created_at + timedelta(hours=hours)

    @staticmethod
    def calculate_sla_metrics(
        ticket: Ticket,
        config: Optional[SlaConfiguration] = None,
        *,
        now: datetime,
        policies: Optional[PolicyTable] = None,
        at_risk_threshold: float = AT_RISK_THRESHOLD_PERCENT
    ) -> SLAMetrics:
        """
        Classify a ticket's SLA health at ``now``.

        The breach check runs before the at-risk threshold: once the
        deadline has passed the ticket is breached whatever the
        elapsed percentage reads.

        Args:
            ticket: Ticket snapshot
            config: Optional organization override
            now: Evaluation instant
            policies: Policy table (defaults to the canonical table)
            at_risk_threshold: Elapsed percentage that marks "at_risk"

        Returns:
            SLAMetrics for this instant
        """
        response_hours, resolution_hours = SLACalculator.effective_hours(
            ticket, config, policies
        )
        breach_at = SLACalculator.calculate_deadline(ticket.created_at, resolution_hours)

        remaining_seconds = (breach_at - now).total_seconds()
        time_remaining = max(0, math.floor(remaining_seconds / 60))

        total_seconds = resolution_hours * 3600
        elapsed_seconds = (now - ticket.created_at).total_seconds()
        percent_elapsed = min(100.0, max(0.0, elapsed_seconds * 100 / total_seconds))

        if remaining_seconds <= 0:
            status = SLAStatus.BREACHED
        elif percent_elapsed >= at_risk_threshold:
            status = SLAStatus.AT_RISK
        else:
            status = SLAStatus.ON_TRACK

        return SLAMetrics(
            response_time_hours=response_hours,
            resolution_time_hours=resolution_hours,
            sla_breach_at=breach_at,
            sla_status=status,
            time_remaining=time_remaining,
            percent_time_elapsed=percent_elapsed
        )

    @staticmethod
    def escalation_rules_for(
        ticket: Ticket,
        config: Optional[SlaConfiguration] = None,
        policies: Optional[PolicyTable] = None
    ) -> List[EscalationRule]:
        """Ladder for a ticket, sorted by level."""
        if config is not None and config.escalation_rules is not None:
            rules = config.escalation_rules
        else:
            rules = (policies or DEFAULT_POLICY_TABLE).lookup(
                ticket.priority, ticket.business_impact
            ).escalation_rules
        return sorted(rules, key=lambda rule: rule.level)

    @staticmethod
    def check_escalation_needed(
        ticket: Ticket,
        config: Optional[SlaConfiguration] = None,
        *,
        now: datetime,
        policies: Optional[PolicyTable] = None
    ) -> Optional[EscalationDecision]:
        """
        Decide whether a ticket should escalate at ``now``.

        Returns the first rule above the ticket's current level whose
        trigger has passed, so a ticket climbs one level per check even
        when several thresholds were crossed since the last one.

        Returns:
            EscalationDecision, or None when no escalation is due
        """
        hours_elapsed = (now - ticket.created_at).total_seconds() / 3600
        current_level = ticket.escalation_level or 0

        for rule in SLACalculator.escalation_rules_for(ticket, config, policies):
            if rule.level > current_level and hours_elapsed >= rule.trigger_after_hours:
                return EscalationDecision(
                    escalation_level=rule.level,
                    reason=(
                        f"Ticket has been open for {math.floor(hours_elapsed)} "
                        "hours without resolution"
                    ),
                    rule=rule
                )

        return None

    @staticmethod
    def calculate_actual_times(ticket: Ticket) -> ActualTimes:
        """Elapsed minutes to first response and to resolution, when recorded."""

        def minutes_since_created(moment: Optional[datetime]) -> Optional[int]:
            if moment is None:
                return None
            return math.floor((moment - ticket.created_at).total_seconds() / 60)

        return ActualTimes(
            actual_response_minutes=minutes_since_created(ticket.first_response_at),
            actual_resolution_minutes=minutes_since_created(ticket.resolved_at)
        )

    @staticmethod
    def calculate_business_impact(
        category: Optional[str],
        priority: Optional[str],
        client_tier: Optional[str] = None
    ) -> str:
        """
        Derive business impact from category, priority and client tier.

        Checked in order: critical categories, enterprise clients, then
        the plain priority mapping (unknown priorities map to medium).
        Values are matched exactly, so "Security" is not a critical category.
        """
        if category in CRITICAL_CATEGORIES:
            return BusinessImpact.CRITICAL

        if client_tier == ClientTier.ENTERPRISE and priority in _ENTERPRISE_IMPACT:
            return _ENTERPRISE_IMPACT[priority]

        return _PRIORITY_IMPACT.get(priority, BusinessImpact.MEDIUM)

    @staticmethod
    def initialize_ticket_sla(
        ticket: Ticket,
        *,
        now: datetime,
        policies: Optional[PolicyTable] = None
    ) -> TicketSLAFields:
        """
        SLA fields for a newly created ticket.

        Business impact is derived from the category and priority when
        the ticket does not carry one; the breach deadline counts from
        ``now``, the moment the ticket is accepted.
        """
        business_impact = ticket.business_impact or SLACalculator.calculate_business_impact(
            ticket.category or TicketCategory.GENERAL,
            ticket.priority or Priority.MEDIUM
        )
        policy = (policies or DEFAULT_POLICY_TABLE).lookup(ticket.priority, business_impact)
        response_hours = SLACalculator.resolve_hours(
            ticket.response_time_hours, policy.response_time_hours
        )
        resolution_hours = SLACalculator.resolve_hours(
            ticket.resolution_time_hours, policy.resolution_time_hours
        )

        return TicketSLAFields(
            business_impact=business_impact,
            response_time_hours=response_hours,
            resolution_time_hours=resolution_hours,
            sla_breach_at=SLACalculator.calculate_deadline(now, resolution_hours),
            sla_status=SLAStatus.ON_TRACK
        )

    @staticmethod
    def format_time_remaining(minutes: float) -> str:
        """
        Human-readable remaining time: "Overdue", "Xd Yh", "Xh Ym" or "Xm".

        Fractional minutes are floored, so 0.5 reads "0m". Metrics always
        report whole minutes.
        """
        if minutes <= 0:
            return "Overdue"

        total = math.floor(minutes)
        hours, remaining_minutes = divmod(total, 60)

        if hours >= 24:
            days, remaining_hours = divmod(hours, 24)
            return f"{days}d {remaining_hours}h"
        if hours > 0:
            return f"{hours}h {remaining_minutes}m"
        return f"{remaining_minutes}m"

    @staticmethod
    def get_sla_status_color(sla_status: Optional[str]) -> str:
        """Display color for an SLA status."""
        return _STATUS_COLORS.get(sla_status, "gray")


# Functional API
calculate_sla_metrics = SLACalculator.calculate_sla_metrics
check_escalation_needed = SLACalculator.check_escalation_needed
calculate_actual_times = SLACalculator.calculate_actual_times
calculate_business_impact = SLACalculator.calculate_business_impact
initialize_ticket_sla = SLACalculator.initialize_ticket_sla
format_time_remaining = SLACalculator.format_time_remaining
get_sla_status_color = SLACalculator.get_sla_status_color
