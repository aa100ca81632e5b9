"""Pytest configuration and fixtures."""

from datetime import datetime, timedelta, timezone

import pytest

from supportdesk.config import Settings
from supportdesk.sla.domain import Ticket, PolicyTable


BASE_TIME = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def base_time() -> datetime:
    """Creation instant shared by test tickets."""
    return BASE_TIME


@pytest.fixture
def hours_after(base_time):
    """Instant ``hours`` after ``base_time``."""

    def at(hours: float) -> datetime:
        return base_time + timedelta(hours=hours)

    return at


# Sample ticket factory
@pytest.fixture
def ticket_factory(base_time):
    """Factory for creating test tickets."""
    counter = {"n": 0}

    def create_ticket(**kwargs) -> Ticket:
        counter["n"] += 1
        defaults = {
            "id": f"ticket-{counter['n']}",
            "ticket_number": f"TKT-{1000 + counter['n']}",
            "created_at": base_time,
            "priority": "medium",
            "business_impact": "medium",
        }
        return Ticket(**{**defaults, **kwargs})

    return create_ticket


@pytest.fixture
def policy_table() -> PolicyTable:
    return PolicyTable()


# Test settings
@pytest.fixture
def test_settings() -> Settings:
    """Settings isolated from the host's .env file."""
    return Settings(
        _env_file=None,
        environment="development",
        log_level="DEBUG",
        slack_webhook_url="https://hooks.slack.test/services/T000/B000/XXXX",
        slack_channel="#sla-tests",
        support_base_url="https://support.test/tickets",
    )
