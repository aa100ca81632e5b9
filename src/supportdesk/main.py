"""
Support Desk SLA Worker - Main Application
============================================

Background worker that keeps support tickets inside their service levels.

Clean Architecture Layers:
- Application: SLA and escalation services
- Domain: Ticket snapshots, policies and the SLA calculator
- Infrastructure: Policy file watcher, ticket store, Slack, scheduler
"""

import asyncio
import signal
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncGenerator, Optional

from supportdesk.config import Settings, get_settings
from supportdesk.sla.application import SLAService, EscalationService
from supportdesk.sla.infrastructure import (
    SLAPolicyManager, SlackClient, SLAScheduler,
    InMemoryTicketRepository, load_ticket_feed
)
from supportdesk.shared.infrastructure.logging import setup_logging, get_logger

logger = get_logger(__name__)


@dataclass
class Worker:
    """Services wired together for one worker run."""
    settings: Settings
    policy_manager: SLAPolicyManager
    repository: InMemoryTicketRepository
    notifier: SlackClient
    sla_service: SLAService
    escalation_service: EscalationService
    scheduler: SLAScheduler

    async def sweep(self) -> None:
        """Scheduled job: escalate due tickets, then log compliance."""
        result = await self.escalation_service.process_escalations()
        logger.info("Escalation sweep finished", extra=result.to_dict())

        report = self.sla_service.report_for(await self.repository.list_all())
        logger.info("SLA compliance", extra=report.to_dict())


@asynccontextmanager
async def lifespan(settings: Optional[Settings] = None) -> AsyncGenerator[Worker, None]:
    """
    Worker lifespan manager.

    STARTUP:
    1. Setup structured logging
    2. Load SLA policies and watch the policy file
    3. Load the ticket feed
    4. Start the escalation scheduler

    SHUTDOWN:
    1. Stop the escalation scheduler
    2. Stop the policy file watcher
    3. Close the Slack client
    """
    settings = settings or get_settings()

    # === STARTUP ===
    setup_logging(settings.log_level, settings.environment)
    logger.info("Starting SLA worker", extra={
        "version": settings.app_version,
        "environment": settings.environment
    })

    logger.info("Loading SLA policies")
    policy_manager = SLAPolicyManager()
    policy_manager.load(settings.sla_policy_path)

    tickets = []
    if settings.ticket_feed_path is not None:
        tickets = load_ticket_feed(settings.ticket_feed_path)
    repository = InMemoryTicketRepository(tickets)

    slack_client = SlackClient(settings)
    if not settings.slack_webhook_url:
        logger.warning("Slack webhook not configured - notifications disabled")

    threshold = settings.sla_at_risk_threshold_percent
    worker = Worker(
        settings=settings,
        policy_manager=policy_manager,
        repository=repository,
        notifier=slack_client,
        sla_service=SLAService(policy_manager, at_risk_threshold=threshold),
        escalation_service=EscalationService(
            repository,
            policy_manager,
            slack_client,
            at_risk_threshold=threshold
        ),
        scheduler=SLAScheduler(interval_minutes=settings.escalation_interval_minutes)
    )

    try:
        policy_manager.start_watching()
        await worker.scheduler.start(worker.sweep)
        logger.info("SLA worker started successfully", extra={"tickets": len(repository)})

        yield worker  # Worker runs here

    finally:
        # === SHUTDOWN ===
        logger.info("Shutting down SLA worker")
        await worker.scheduler.stop()
        policy_manager.stop_watching()
        await slack_client.close()
        logger.info("SLA worker shutdown complete")


async def run(
    settings: Optional[Settings] = None,
    stop_event: Optional[asyncio.Event] = None
) -> None:
    """Run the worker until SIGINT/SIGTERM or until ``stop_event`` is set."""
    stop_event = stop_event or asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            # Windows event loops have no signal handlers
            pass

    async with lifespan(settings):
        await stop_event.wait()


def main() -> None:
    asyncio.run(run())


if __name__ == "__main__":
    main()
