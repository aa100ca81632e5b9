"""
SLA External Integrations
==========================

Adapters between the SLA engine and the outside world:
- SLAPolicyManager: policy table read from YAML, reloaded by watchdog
- SlackClient: escalation and breach alerts over an incoming webhook
- SLAScheduler: APScheduler job that drives the escalation sweep
"""

import asyncio
import threading
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

import httpx
import yaml
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from pydantic import ValidationError
from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from supportdesk.config import Settings, get_settings
from supportdesk.core import ConfigurationException
from supportdesk.shared.infrastructure.logging import get_logger
from supportdesk.sla.application import IEscalationNotifier, ISLAPolicyProvider
from supportdesk.sla.domain import (
    Ticket, SLAMetrics, EscalationDecision, SLAPolicy, PolicyTable,
    format_time_remaining, get_sla_status_color
)

logger = get_logger(__name__)

SWEEP_JOB_ID = "escalation_sweep"


# ========== Policy file ==========

class PolicyFileHandler(FileSystemEventHandler):
    """Triggers a policy reload when the watched YAML file is written or replaced."""

    def __init__(self, policy_manager: "SLAPolicyManager", policy_path: Path):
        super().__init__()
        self._manager = policy_manager
        self._target = Path(policy_path).resolve()

    def _reload_if_target(self, path: Union[str, bytes]) -> None:
        if isinstance(path, bytes):
            path = path.decode()
        if Path(path).resolve() == self._target:
            logger.info("SLA policy file changed", extra={"path": str(self._target)})
            self._manager.reload()

    def on_modified(self, event):
        if not event.is_directory:
            self._reload_if_target(event.src_path)

    def on_created(self, event):
        if not event.is_directory:
            self._reload_if_target(event.src_path)

    def on_moved(self, event):
        # Editors that save through a temp file end with a rename onto the target
        if not event.is_directory:
            self._reload_if_target(event.dest_path)


class SLAPolicyManager(ISLAPolicyProvider):
    """
    Policy provider backed by a YAML file.

    Entries under ``policies:`` replace the built-in policy with the same
    key; built-in keys that are not listed stay in effect. The table is
    swapped atomically under a lock, so the sweep always sees either the
    old or the new table. A reload that fails validation leaves the
    current table in place.

    File format::

        policies:
          urgent-critical:
            name: Urgent Critical Issues
            response_time_hours: 1
            resolution_time_hours: 4
            escalation_rules:
              - {level: 1, trigger_after_hours: 0.5, assign_to_role: senior_agent}
    """

    def __init__(self):
        self._table: Optional[PolicyTable] = None
        self._path: Optional[Path] = None
        self._observer = None
        self._swap_lock = threading.Lock()

    def load(self, path: Union[str, Path]) -> PolicyTable:
        """Read the policy file and make it current; raises ConfigurationException."""
        self._path = Path(path)
        return self._install(self.read_policies(self._path))

    def reload(self) -> bool:
        """Re-read the policy file. Returns False, keeping the old table, on failure."""
        if self._path is None:
            return False

        try:
            table = self.read_policies(self._path)
        except (ConfigurationException, OSError) as e:
            logger.error(
                "SLA policy reload failed, keeping current policies",
                extra={"path": str(self._path), "error": str(e)}
            )
            return False

        self._install(table)
        logger.info("SLA policies reloaded", extra={"path": str(self._path)})
        return True

    def get_policies(self) -> PolicyTable:
        with self._swap_lock:
            table = self._table
        if table is None:
            raise RuntimeError("SLA policies not loaded. Call load() first.")
        return table

    def _install(self, table: PolicyTable) -> PolicyTable:
        with self._swap_lock:
            self._table = table
        return table

    @classmethod
    def read_policies(cls, path: Path) -> PolicyTable:
        """Build a policy table from ``path``; a missing file yields the built-ins."""
        if not path.exists():
            logger.warning(
                "SLA policy file missing, using built-in policies",
                extra={"path": str(path)}
            )
            return PolicyTable()

        document = cls._read_yaml(path)
        entries = document.get("policies", {}) if isinstance(document, dict) else None
        if not isinstance(entries, dict):
            raise ConfigurationException(
                "SLA policy file must contain a 'policies' mapping",
                {"path": str(path)}
            )

        policies = {str(key): cls._parse_entry(str(key), entry) for key, entry in entries.items()}
        logger.info(
            "SLA policy file read",
            extra={"path": str(path), "policies_from_file": len(policies)}
        )
        return PolicyTable(policies)

    @staticmethod
    def _read_yaml(path: Path) -> Any:
        try:
            with open(path, "r") as f:
                return yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationException(
                f"SLA policy file is not valid YAML: {path}",
                {"error": str(e)}
            ) from e

    @staticmethod
    def _parse_entry(key: str, entry: Any) -> SLAPolicy:
        try:
            policy = SLAPolicy.model_validate(entry or {})
        except ValidationError as e:
            raise ConfigurationException(
                f"Invalid SLA policy '{key}'",
                {"policy": key, "errors": e.errors(include_url=False)}
            ) from e

        # Rules fire by level, so a later level should not need less time
        ladder = sorted(policy.escalation_rules, key=lambda rule: rule.level)
        for lower, higher in zip(ladder, ladder[1:]):
            if higher.trigger_after_hours < lower.trigger_after_hours:
                logger.warning(
                    "Escalation trigger decreases with level",
                    extra={
                        "policy": key,
                        "level": higher.level,
                        "trigger_after_hours": higher.trigger_after_hours,
                        "previous_trigger_after_hours": lower.trigger_after_hours
                    }
                )
        return policy

    def start_watching(self) -> None:
        """
        Reload policies whenever the file changes.

        Does nothing when the file does not exist or the platform has no
        file-system notifications.
        """
        if self._path is None:
            raise RuntimeError("SLA policies not loaded. Call load() first.")
        if self._observer is not None:
            return
        if not self._path.exists():
            logger.info(
                "No SLA policy file to watch, built-in policies stay in effect",
                extra={"path": str(self._path)}
            )
            return

        observer = Observer()
        observer.schedule(
            PolicyFileHandler(self, self._path),
            str(self._path.resolve().parent),
            recursive=False
        )
        try:
            observer.start()
        except OSError as e:
            logger.warning(
                "Policy file watching unavailable, policies are static",
                extra={"error": str(e)}
            )
            return

        self._observer = observer
        logger.info("Watching SLA policy file", extra={"path": str(self._path)})

    def stop_watching(self) -> None:
        """Stop the file watcher; safe to call when not watching."""
        observer, self._observer = self._observer, None
        if observer is not None:
            observer.stop()
            observer.join(timeout=5)


# ========== Slack ==========

class CircuitState:
    """Circuit breaker states."""
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    """
    Stops calling a failing webhook for a cool-down period.

    After ``failure_threshold`` consecutive failed deliveries the circuit
    opens and deliveries are skipped. Once ``recovery_timeout`` seconds
    have passed a trial delivery is let through; success closes the
    circuit, another failure opens it again.
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        recovery_timeout: float = 60.0,
        clock: Callable[[], float] = time.monotonic
    ):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self._clock = clock
        self._consecutive_failures = 0
        self._opened_at: Optional[float] = None

    @property
    def state(self) -> str:
        if self._opened_at is None:
            return CircuitState.CLOSED
        if self._clock() - self._opened_at >= self.recovery_timeout:
            return CircuitState.HALF_OPEN
        return CircuitState.OPEN

    def allow_request(self) -> bool:
        return self.state != CircuitState.OPEN

    def record_success(self) -> None:
        self._consecutive_failures = 0
        self._opened_at = None

    def record_failure(self) -> None:
        self._consecutive_failures += 1
        if self._consecutive_failures >= self.failure_threshold:
            self._opened_at = self._clock()
            logger.warning(
                "Slack circuit opened",
                extra={
                    "consecutive_failures": self._consecutive_failures,
                    "retry_after_seconds": self.recovery_timeout
                }
            )


def _header(text: str) -> Dict[str, Any]:
    return {"type": "header", "text": {"type": "plain_text", "text": text, "emoji": True}}


def _field(label: str, value: Any) -> Dict[str, str]:
    return {"type": "mrkdwn", "text": f"*{label}:*\n{value}"}


def _context(text: str) -> Dict[str, Any]:
    return {"type": "context", "elements": [{"type": "mrkdwn", "text": text}]}


def _humanize(value: Optional[str], default: str = "medium") -> str:
    return (value or default).replace("_", " ").title()


class SlackClient(IEscalationNotifier):
    """
    Posts escalation and breach alerts to a Slack incoming webhook.

    Delivery is best effort. Each alert gets up to ``max_retries``
    attempts with exponential backoff, and repeated failures trip a
    circuit breaker so a dead webhook does not slow down every sweep.
    Transport errors are logged and reported as ``False``, never raised.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        retry_base_delay: float = 1.0,
        circuit_breaker: Optional[CircuitBreaker] = None
    ):
        self._settings = settings or get_settings()
        self._http_client = http_client
        self._retry_base_delay = retry_base_delay
        self._circuit = circuit_breaker or CircuitBreaker()

    @property
    def http_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=self._settings.slack_timeout_seconds
            )
        return self._http_client

    def _ticket_fields(self, ticket: Ticket) -> List[Dict[str, str]]:
        url = f"{self._settings.support_base_url}?ticket={ticket.id}"
        return [
            _field("Ticket", f"<{url}|{ticket.ticket_number or ticket.id}>"),
            _field("Priority", _humanize(ticket.priority)),
            _field("Business Impact", _humanize(ticket.business_impact)),
            _field("Escalation Level", ticket.escalation_level),
        ]

    def build_escalation_message(
        self,
        ticket: Ticket,
        decision: EscalationDecision
    ) -> Dict[str, Any]:
        fields = self._ticket_fields(ticket)
        if decision.assign_to_role:
            fields.append(_field("Assigned To", _humanize(decision.assign_to_role)))

        return {
            "channel": self._settings.slack_channel,
            "blocks": [
                _header(f"⚠️ Ticket Escalated to Level {decision.escalation_level}"),
                {"type": "section", "fields": fields},
                _context(decision.reason),
            ]
        }

    def build_breach_message(self, ticket: Ticket, metrics: SLAMetrics) -> Dict[str, Any]:
        timeline = (
            f"Created: {ticket.created_at.isoformat()} | "
            f"Deadline: {metrics.sla_breach_at.isoformat()} | "
            f"Remaining: {format_time_remaining(metrics.time_remaining)}"
        )
        return {
            "channel": self._settings.slack_channel,
            "blocks": [
                _header("🚨 SLA Breach Alert"),
                {"type": "section", "fields": self._ticket_fields(ticket) + [
                    _field(
                        "SLA Status",
                        f":{get_sla_status_color(metrics.sla_status)}_circle: "
                        f"{_humanize(metrics.sla_status)}"
                    ),
                ]},
                _context(timeline),
            ]
        }

    async def notify_escalation(self, ticket: Ticket, decision: EscalationDecision) -> bool:
        return await self.send(
            self.build_escalation_message(ticket, decision),
            ticket_id=ticket.id,
            alert_type="escalation"
        )

    async def notify_sla_breach(self, ticket: Ticket, metrics: SLAMetrics) -> bool:
        return await self.send(
            self.build_breach_message(ticket, metrics),
            ticket_id=ticket.id,
            alert_type="breach"
        )

    async def send(
        self,
        message: Dict[str, Any],
        ticket_id: str,
        alert_type: str,
        max_retries: int = 3
    ) -> bool:
        """Deliver ``message``; returns whether Slack accepted it."""
        context = {"ticket_id": ticket_id, "alert_type": alert_type}
        url = self._settings.slack_webhook_url
        if not url:
            logger.debug("Slack webhook not configured, alert dropped", extra=context)
            return False
        if not self._circuit.allow_request():
            logger.warning("Slack circuit open, alert dropped", extra=context)
            return False

        for attempt in range(1, max_retries + 1):
            if await self._post(url, message, attempt, context):
                self._circuit.record_success()
                logger.info("Slack alert delivered", extra=context)
                return True
            if attempt < max_retries:
                await asyncio.sleep(self._retry_base_delay * 2 ** (attempt - 1))

        self._circuit.record_failure()
        return False

    async def _post(
        self,
        url: str,
        message: Dict[str, Any],
        attempt: int,
        context: Dict[str, Any]
    ) -> bool:
        try:
            response = await self.http_client.post(url, json=message)
        except httpx.HTTPError as e:
            logger.error(
                "Slack delivery attempt failed",
                extra={**context, "attempt": attempt, "error": str(e)}
            )
            return False

        if response.is_success:
            return True
        logger.warning(
            "Slack delivery attempt rejected",
            extra={**context, "attempt": attempt, "status_code": response.status_code}
        )
        return False

    async def close(self) -> None:
        client, self._http_client = self._http_client, None
        if client is not None:
            await client.aclose()


# ========== Scheduler ==========

class SLAScheduler:
    """
    Runs the escalation sweep on a fixed interval with APScheduler.

    At most one sweep runs at a time; when a sweep is still running at the
    next tick, that tick is skipped.
    """

    def __init__(self, interval_minutes: int = 30):
        self.interval_minutes = interval_minutes
        self._scheduler: Optional[AsyncIOScheduler] = None

    @property
    def is_running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    async def start(self, job_func, run_immediately: bool = True) -> None:
        """Schedule ``job_func`` (a coroutine function) and start ticking."""
        if self.is_running:
            logger.warning("Escalation scheduler already running")
            return

        first_run = {"next_run_time": datetime.now(timezone.utc)} if run_immediately else {}
        scheduler = AsyncIOScheduler()
        scheduler.add_job(
            job_func,
            trigger=IntervalTrigger(minutes=self.interval_minutes),
            id=SWEEP_JOB_ID,
            name="Escalation sweep",
            max_instances=1,
            coalesce=True,
            misfire_grace_time=60,
            replace_existing=True,
            **first_run
        )
        scheduler.start()
        self._scheduler = scheduler

        logger.info(
            "Escalation scheduler started",
            extra={"interval_minutes": self.interval_minutes}
        )

    async def stop(self) -> None:
        scheduler, self._scheduler = self._scheduler, None
        if scheduler is not None and scheduler.running:
            scheduler.shutdown(wait=False)
            logger.info("Escalation scheduler stopped")
