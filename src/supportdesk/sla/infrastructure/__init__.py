"""
SLA Infrastructure Layer
=========================

Infrastructure implementations for SLA monitoring:
- Repositories: In-memory ticket store and JSON feed loading
- External: External service integrations (policy file watcher, Slack, scheduler)
"""

from supportdesk.sla.infrastructure.repositories import (
    InMemoryTicketRepository,
    StaticPolicyProvider,
    load_ticket_feed,
)
from supportdesk.sla.infrastructure.external import (
    SLAPolicyManager,
    PolicyFileHandler,
    CircuitBreaker,
    CircuitState,
    SlackClient,
    SLAScheduler,
)

__all__ = [
    "InMemoryTicketRepository",
    "StaticPolicyProvider",
    "load_ticket_feed",
    "SLAPolicyManager",
    "PolicyFileHandler",
    "CircuitBreaker",
    "CircuitState",
    "SlackClient",
    "SLAScheduler",
]
