"""
SLA Application Services
=========================

Use cases on top of the SLA calculator:
- SLAService answers questions about single tickets and ticket sets
- EscalationService runs the periodic sweep that escalates and alerts,
  manual escalations and the escalation status counters

Both talk to storage, policies and notification channels only through
the interfaces declared here.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Awaitable, Callable, Iterable, List, Optional
from uuid import uuid4

from supportdesk.config import SLAStatus
from supportdesk.core import ApplicationException, ResourceNotFoundException
from supportdesk.sla.domain import (
    Ticket, SLAMetrics, EscalationDecision, TicketSLAFields, SLAReport,
    SLACalculator, SlaConfiguration, PolicyTable, AT_RISK_THRESHOLD_PERCENT,
    generate_sla_report
)
from supportdesk.shared.infrastructure.logging import (
    get_logger, get_context_logger, log_latency
)

logger = get_logger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# ========== Interfaces (Dependency Inversion) ==========

class ITicketRepository(ABC):
    """Access to the tickets the sweep works on."""

    @abstractmethod
    async def list_all(self) -> List[Ticket]:
        """Every stored ticket, whatever its status."""

    @abstractmethod
    async def list_active(self) -> List[Ticket]:
        """Tickets that are open or in progress."""

    @abstractmethod
    async def get_by_id(self, ticket_id: str) -> Optional[Ticket]:
        """Get ticket by ID."""

    @abstractmethod
    async def apply_escalation(
        self,
        ticket_id: str,
        level: int,
        escalated_at: datetime
    ) -> Ticket:
        """Record a new escalation level and return the updated ticket."""

    @abstractmethod
    async def update_sla_status(self, ticket_id: str, sla_status: str) -> Ticket:
        """Store a recomputed SLA status and return the updated ticket."""


class ISLAPolicyProvider(ABC):
    """Interface for SLA policy access."""

    @abstractmethod
    def get_policies(self) -> PolicyTable:
        """Get the current policy table."""


class IEscalationNotifier(ABC):
    """Interface for escalation and breach notifications."""

    @abstractmethod
    async def notify_escalation(self, ticket: Ticket, decision: EscalationDecision) -> bool:
        """Announce an escalation. Returns True if delivered."""

    @abstractmethod
    async def notify_sla_breach(self, ticket: Ticket, metrics: SLAMetrics) -> bool:
        """Announce a resolution SLA breach. Returns True if delivered."""


# ========== Results ==========

@dataclass
class EscalationResult:
    """Outcome of escalating one ticket, by a sweep or by hand."""
    ticket_id: str
    escalation_level: int
    reason: str
    assign_to_role: Optional[str] = None
    notified: bool = False


@dataclass
class SweepResult:
    """Summary of one escalation sweep."""
    tickets_evaluated: int = 0
    escalations: List[EscalationResult] = field(default_factory=list)
    status_changes: int = 0
    notifications_sent: int = 0
    failed: int = 0

    def to_dict(self) -> dict:
        return {
            "tickets_evaluated": self.tickets_evaluated,
            "tickets_escalated": len(self.escalations),
            "status_changes": self.status_changes,
            "notifications_sent": self.notifications_sent,
            "failed": self.failed,
        }


@dataclass
class EscalationStatus:
    """Escalation counters over the whole ticket store."""
    total_active_tickets: int = 0
    escalated_tickets: int = 0
    overdue_tickets: int = 0
    sla_breaches: int = 0

    def to_dict(self) -> dict:
        return {
            "total_active_tickets": self.total_active_tickets,
            "escalated_tickets": self.escalated_tickets,
            "overdue_tickets": self.overdue_tickets,
            "sla_breaches": self.sla_breaches,
        }


# ========== Application Services ==========

class SLAService:
    """
    Service for SLA calculations on ticket snapshots.

    Reads the current policy table from the provider and fixes ``now``
    once per call when the caller does not supply it.
    """

    def __init__(
        self,
        policy_provider: ISLAPolicyProvider,
        at_risk_threshold: float = AT_RISK_THRESHOLD_PERCENT,
        clock: Clock = utc_now
    ):
        self._policy_provider = policy_provider
        self._at_risk_threshold = at_risk_threshold
        self._clock = clock

    @property
    def policies(self) -> PolicyTable:
        return self._policy_provider.get_policies()

    @property
    def at_risk_threshold(self) -> float:
        return self._at_risk_threshold

    def metrics_for(
        self,
        ticket: Ticket,
        config: Optional[SlaConfiguration] = None,
        now: Optional[datetime] = None
    ) -> SLAMetrics:
        """Current SLA metrics for a ticket."""
        return SLACalculator.calculate_sla_metrics(
            ticket,
            config,
            now=now or self._clock(),
            policies=self.policies,
            at_risk_threshold=self._at_risk_threshold
        )

    def escalation_for(
        self,
        ticket: Ticket,
        config: Optional[SlaConfiguration] = None,
        now: Optional[datetime] = None
    ) -> Optional[EscalationDecision]:
        """Escalation due for a ticket, if any."""
        return SLACalculator.check_escalation_needed(
            ticket,
            config,
            now=now or self._clock(),
            policies=self.policies
        )

    def report_for(
        self,
        tickets: Iterable[Ticket],
        now: Optional[datetime] = None
    ) -> SLAReport:
        """Compliance report; unclassified tickets are evaluated at ``now``."""
        return generate_sla_report(
            tickets,
            now=now or self._clock(),
            policies=self.policies
        )

    def initialize_ticket(
        self,
        ticket: Ticket,
        now: Optional[datetime] = None
    ) -> TicketSLAFields:
        """SLA fields for a ticket being created."""
        return SLACalculator.initialize_ticket_sla(
            ticket,
            now=now or self._clock(),
            policies=self.policies
        )


class EscalationService:
    """
    Escalation of tickets, periodic and manual.

    The sweep, for each active ticket:
    1. Applies the next due escalation level and notifies
    2. Recomputes the SLA status, stores changes and alerts on breach

    Policies and ``now`` are captured once per sweep.
    """

    def __init__(
        self,
        ticket_repository: ITicketRepository,
        policy_provider: ISLAPolicyProvider,
        notifier: Optional[IEscalationNotifier] = None,
        at_risk_threshold: float = AT_RISK_THRESHOLD_PERCENT,
        clock: Clock = utc_now
    ):
        self._ticket_repo = ticket_repository
        self._policy_provider = policy_provider
        self._notifier = notifier
        self._at_risk_threshold = at_risk_threshold
        self._clock = clock

    async def process_escalations(self, now: Optional[datetime] = None) -> SweepResult:
        """
        Evaluate all active tickets.

        A ticket that fails is logged and counted; the sweep continues
        with the next one.

        Returns:
            SweepResult summary
        """
        now = now or self._clock()
        policies = self._policy_provider.get_policies()
        sweep_logger = get_context_logger(__name__, str(uuid4()))

        tickets = await self._ticket_repo.list_active()
        result = SweepResult(tickets_evaluated=len(tickets))

        with log_latency(sweep_logger, "escalation_sweep", tickets=len(tickets)):
            for ticket in tickets:
                try:
                    await self._process_ticket(ticket, now, policies, result)
                except (ApplicationException, ValueError) as e:
                    result.failed += 1
                    sweep_logger.error(
                        "Ticket evaluation failed",
                        extra={"ticket_id": ticket.id, "error": str(e)}
                    )

        if result.escalations:
            sweep_logger.info(
                "Escalated tickets",
                extra={"tickets_escalated": len(result.escalations)}
            )

        return result

    async def process_ticket(
        self,
        ticket: Ticket,
        now: Optional[datetime] = None
    ) -> SweepResult:
        """Evaluate a single ticket."""
        result = SweepResult(tickets_evaluated=1)
        await self._process_ticket(
            ticket,
            now or self._clock(),
            self._policy_provider.get_policies(),
            result
        )
        return result

    async def escalate_ticket(
        self,
        ticket_id: str,
        reason: str,
        level: Optional[int] = None,
        now: Optional[datetime] = None
    ) -> EscalationResult:
        """
        Escalate a ticket by hand, outside the sweep.

        Without ``level`` (or with 0) the ticket moves one level above its
        current one. The change is stored before anyone is notified.

        Raises:
            ResourceNotFoundException: If no ticket has ``ticket_id``
            RepositoryException: If ``level`` is below the current level
        """
        ticket = await self._ticket_repo.get_by_id(ticket_id)
        if ticket is None:
            raise ResourceNotFoundException("Ticket", ticket_id)

        target_level = level or ticket.escalation_level + 1
        ticket = await self._ticket_repo.apply_escalation(
            ticket_id, target_level, now or self._clock()
        )
        decision = EscalationDecision(escalation_level=target_level, reason=reason)
        notified = await self._send(
            ticket, lambda notifier: notifier.notify_escalation(ticket, decision)
        )

        logger.info(
            "Ticket escalated manually",
            extra={"ticket_id": ticket_id, "escalation_level": target_level}
        )
        return EscalationResult(
            ticket_id=ticket_id,
            escalation_level=target_level,
            reason=reason,
            notified=notified
        )

    async def get_escalation_status(self, now: Optional[datetime] = None) -> EscalationStatus:
        """
        Count active, escalated, overdue and breached tickets.

        Overdue means active with the resolution deadline already passed
        at ``now``; breaches are the statuses stored by earlier sweeps.
        """
        now = now or self._clock()
        policies = self._policy_provider.get_policies()
        status = EscalationStatus()

        for ticket in await self._ticket_repo.list_all():
            if ticket.escalation_level > 0:
                status.escalated_tickets += 1
            if ticket.sla_status == SLAStatus.BREACHED:
                status.sla_breaches += 1
            if not ticket.is_active:
                continue
            status.total_active_tickets += 1
            _, resolution_hours = SLACalculator.effective_hours(ticket, policies=policies)
            if SLACalculator.calculate_deadline(ticket.created_at, resolution_hours) < now:
                status.overdue_tickets += 1

        return status

    async def _process_ticket(
        self,
        ticket: Ticket,
        now: datetime,
        policies: PolicyTable,
        result: SweepResult
    ) -> None:
        decision = SLACalculator.check_escalation_needed(
            ticket, now=now, policies=policies
        )
        if decision is not None:
            ticket = await self._ticket_repo.apply_escalation(
                ticket.id, decision.escalation_level, now
            )
            notified = await self._send(
                ticket, lambda notifier: notifier.notify_escalation(ticket, decision)
            )
            if notified:
                result.notifications_sent += 1
            result.escalations.append(EscalationResult(
                ticket_id=ticket.id,
                escalation_level=decision.escalation_level,
                reason=decision.reason,
                assign_to_role=decision.assign_to_role,
                notified=notified
            ))
            logger.info(
                "Ticket escalated",
                extra={
                    "ticket_id": ticket.id,
                    "escalation_level": decision.escalation_level,
                    "assign_to_role": decision.assign_to_role
                }
            )

        metrics = SLACalculator.calculate_sla_metrics(
            ticket,
            now=now,
            policies=policies,
            at_risk_threshold=self._at_risk_threshold
        )
        if metrics.sla_status == ticket.sla_status:
            return

        ticket = await self._ticket_repo.update_sla_status(ticket.id, metrics.sla_status)
        result.status_changes += 1

        if metrics.sla_status == SLAStatus.BREACHED:
            logger.warning(
                "SLA breached",
                extra={
                    "ticket_id": ticket.id,
                    "sla_breach_at": metrics.sla_breach_at.isoformat()
                }
            )
            if await self._send(
                ticket, lambda notifier: notifier.notify_sla_breach(ticket, metrics)
            ):
                result.notifications_sent += 1

    async def _send(
        self,
        ticket: Ticket,
        send: Callable[[IEscalationNotifier], Awaitable[bool]]
    ) -> bool:
        """Deliver a notification; failures never undo the stored change."""
        if self._notifier is None:
            return False
        try:
            return await send(self._notifier)
        except ApplicationException as e:
            logger.warning(
                "Notification failed",
                extra={"ticket_id": ticket.id, "error": e.message}
            )
            return False
