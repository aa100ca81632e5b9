"""
SLA Reporting
=============

Aggregate compliance statistics over a collection of tickets.
"""

from datetime import datetime
from typing import Iterable, List, Optional

from supportdesk.config import SLAStatus
from supportdesk.sla.domain.calculator import SLACalculator
from supportdesk.sla.domain.entities import Ticket, SLAReport
from supportdesk.sla.domain.value_objects import PolicyTable


def _average_hours(minutes: List[int]) -> str:
    if not minutes:
        return "0.0"
    return f"{sum(minutes) / len(minutes) / 60:.1f}"


def generate_sla_report(
    tickets: Iterable[Ticket],
    *,
    now: Optional[datetime] = None,
    policies: Optional[PolicyTable] = None
) -> SLAReport:
    """
    Reduce tickets into compliance statistics.

    A ticket's stored ``sla_status`` is used when present; otherwise it is
    classified at ``now``. Without ``now`` such a ticket only counts toward
    the total. Averages cover only tickets with a recorded actual time.

    Args:
        tickets: Ticket snapshots
        now: Evaluation instant for tickets without a stored status
        policies: Policy table used for that classification

    Returns:
        SLAReport
    """
    tickets = list(tickets)
    counts = {SLAStatus.ON_TRACK: 0, SLAStatus.AT_RISK: 0, SLAStatus.BREACHED: 0}
    unclassified = 0
    response_minutes: List[int] = []
    resolution_minutes: List[int] = []

    for ticket in tickets:
        status = ticket.sla_status
        if status is None and now is not None:
            status = SLACalculator.calculate_sla_metrics(
                ticket, now=now, policies=policies
            ).sla_status

        if status in counts:
            counts[status] += 1
        else:
            unclassified += 1

        actual = SLACalculator.calculate_actual_times(ticket)
        response = ticket.actual_response_minutes
        if response is None:
            response = actual.actual_response_minutes
        resolution = ticket.actual_resolution_minutes
        if resolution is None:
            resolution = actual.actual_resolution_minutes

        if response is not None:
            response_minutes.append(response)
        if resolution is not None:
            resolution_minutes.append(resolution)

    total = len(tickets)
    on_track = counts[SLAStatus.ON_TRACK]
    compliance_rate = f"{on_track / total * 100:.1f}" if total > 0 else "0"

    return SLAReport(
        total=total,
        on_track=on_track,
        at_risk=counts[SLAStatus.AT_RISK],
        breached=counts[SLAStatus.BREACHED],
        sla_compliance_rate=compliance_rate,
        avg_response_time_hours=_average_hours(response_minutes),
        avg_resolution_time_hours=_average_hours(resolution_minutes),
        unclassified=unclassified
    )
