"""
SLA Infrastructure Repositories
=================================

Concrete implementations of the repository and policy provider interfaces.

Persistence belongs to the ticket-management system. The worker keeps the
snapshots it evaluates in memory, loaded from a JSON feed exported by that
system.
"""

import asyncio
import json
from datetime import datetime
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union

from pydantic import ValidationError

from supportdesk.core import (
    RepositoryException, ResourceNotFoundException, ValidationException
)
from supportdesk.shared.infrastructure.logging import get_logger
from supportdesk.sla.application import (
    ITicketRepository, ISLAPolicyProvider, TicketFeedDTO
)
from supportdesk.sla.domain import Ticket, PolicyTable

logger = get_logger(__name__)


class InMemoryTicketRepository(ITicketRepository):
    """
    Ticket store backed by a dict keyed by ticket id.

    Tickets are immutable snapshots; updates replace the stored snapshot.
    """

    def __init__(self, tickets: Optional[Iterable[Ticket]] = None):
        self._tickets: Dict[str, Ticket] = {}
        self._lock = asyncio.Lock()
        for ticket in tickets or ():
            self._tickets[ticket.id] = ticket

    def __len__(self) -> int:
        return len(self._tickets)

    async def add(self, ticket: Ticket) -> Ticket:
        """Insert or replace a ticket snapshot."""
        async with self._lock:
            self._tickets[ticket.id] = ticket
        return ticket

    async def list_all(self) -> List[Ticket]:
        return list(self._tickets.values())

    async def list_active(self) -> List[Ticket]:
        return [ticket for ticket in self._tickets.values() if ticket.is_active]

    async def get_by_id(self, ticket_id: str) -> Optional[Ticket]:
        return self._tickets.get(ticket_id)

    async def _replace(self, ticket_id: str, update) -> Ticket:
        async with self._lock:
            ticket = self._tickets.get(ticket_id)
            if ticket is None:
                raise ResourceNotFoundException("Ticket", ticket_id)
            try:
                updated = update(ticket)
            except ValueError as e:
                raise RepositoryException(
                    f"Failed to update ticket: {e}",
                    {"ticket_id": ticket_id}
                ) from e
            self._tickets[ticket_id] = updated
            return updated

    async def apply_escalation(
        self,
        ticket_id: str,
        level: int,
        escalated_at: datetime
    ) -> Ticket:
        """Record a new escalation level; levels never decrease."""
        return await self._replace(
            ticket_id, lambda ticket: ticket.with_escalation(level, escalated_at)
        )

    async def update_sla_status(self, ticket_id: str, sla_status: str) -> Ticket:
        return await self._replace(
            ticket_id, lambda ticket: ticket.with_sla_status(sla_status)
        )


class StaticPolicyProvider(ISLAPolicyProvider):
    """Policy provider holding a fixed table."""

    def __init__(self, policies: Optional[PolicyTable] = None):
        self._policies = policies or PolicyTable()

    def get_policies(self) -> PolicyTable:
        return self._policies


def load_ticket_feed(path: Union[str, Path]) -> List[Ticket]:
    """
    Load ticket snapshots from a JSON feed.

    The feed is either a list of ticket records or an object with a
    ``tickets`` list. Records use camelCase or snake_case keys.

    Raises:
        RepositoryException: If the file cannot be read
        ValidationException: If the content is not a valid ticket feed
    """
    path = Path(path)
    try:
        with open(path, "r") as f:
            payload = json.load(f)
    except OSError as e:
        raise RepositoryException(
            f"Failed to read ticket feed: {path}",
            {"error": str(e)}
        ) from e
    except json.JSONDecodeError as e:
        raise ValidationException(
            f"Ticket feed is not valid JSON: {path}",
            {"error": str(e)}
        ) from e

    if isinstance(payload, list):
        payload = {"tickets": payload}

    try:
        feed = TicketFeedDTO.model_validate(payload)
    except ValidationError as e:
        raise ValidationException(
            f"Invalid ticket feed: {path}",
            {"errors": e.errors(include_url=False)}
        ) from e

    tickets = feed.to_domain()
    logger.info(
        "Ticket feed loaded",
        extra={"path": str(path), "tickets": len(tickets)}
    )
    return tickets
