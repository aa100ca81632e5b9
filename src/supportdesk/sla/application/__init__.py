"""
SLA Application Layer
======================

Application layer for SLA monitoring module.

Contains:
- Services: SLA evaluation on demand and the periodic escalation sweep
- DTOs: Ticket snapshots entering from the ticket-management system

This layer depends on the domain layer and repository interfaces,
but not on concrete infrastructure implementations.
"""

from supportdesk.sla.application.dto import (
    TicketSnapshotDTO,
    TicketFeedDTO,
)
from supportdesk.sla.application.services import (
    SLAService,
    EscalationService,
    EscalationResult,
    EscalationStatus,
    SweepResult,
    ITicketRepository,
    ISLAPolicyProvider,
    IEscalationNotifier,
    utc_now,
)

__all__ = [
    # DTOs
    "TicketSnapshotDTO",
    "TicketFeedDTO",
    # Services
    "SLAService",
    "EscalationService",
    "EscalationResult",
    "EscalationStatus",
    "SweepResult",
    "utc_now",
    # Interfaces
    "ITicketRepository",
    "ISLAPolicyProvider",
    "IEscalationNotifier",
]
