"""Tests for the worker lifespan."""

import json

import pytest

from supportdesk import main
from supportdesk.config import Settings
from supportdesk.core import ValidationException


@pytest.fixture
def worker_settings(tmp_path):
    feed = tmp_path / "tickets.json"
    feed.write_text(json.dumps([
        {"id": "1", "createdAt": "2024-03-01T09:00:00Z", "priority": "urgent",
         "businessImpact": "critical"},
        {"id": "2", "createdAt": "2024-03-01T09:00:00Z", "status": "closed"},
    ]))
    return Settings(
        _env_file=None,
        sla_policy_path=tmp_path / "absent.yaml",
        ticket_feed_path=feed,
        slack_webhook_url=None,
    )


@pytest.fixture(autouse=True)
def keep_test_logging(monkeypatch):
    # setup_logging replaces root handlers, which would detach caplog
    monkeypatch.setattr(main, "setup_logging", lambda *args, **kwargs: None)


class TestLifespan:

    @pytest.mark.asyncio
    async def test_starts_and_stops_worker(self, worker_settings):
        async with main.lifespan(worker_settings) as worker:
            assert len(worker.repository) == 2
            assert worker.scheduler.is_running
            assert worker.scheduler.interval_minutes == 30
            assert worker.policy_manager.get_policies().fallback.resolution_time_hours == 48

        assert not worker.scheduler.is_running

    @pytest.mark.asyncio
    async def test_sweep_escalates_feed_tickets(self, worker_settings):
        async with main.lifespan(worker_settings) as worker:
            await worker.sweep()

            ticket = await worker.repository.get_by_id("1")
            closed = await worker.repository.get_by_id("2")

        assert ticket.escalation_level >= 1
        assert ticket.sla_status == "breached"
        assert closed.escalation_level == 0

    @pytest.mark.asyncio
    async def test_bad_feed_starts_no_watcher(self, worker_settings, monkeypatch):
        worker_settings.ticket_feed_path.write_text("not json")
        started = []
        monkeypatch.setattr(
            main.SLAPolicyManager, "start_watching", lambda self: started.append(self)
        )

        with pytest.raises(ValidationException):
            async with main.lifespan(worker_settings):
                pass

        assert started == []

    @pytest.mark.asyncio
    async def test_failed_start_stops_watcher(self, worker_settings, monkeypatch):
        stopped = []
        monkeypatch.setattr(
            main.SLAPolicyManager, "stop_watching", lambda self: stopped.append(self)
        )
        monkeypatch.setattr(main.SLAPolicyManager, "start_watching", lambda self: None)

        async def broken_start(self, job_func, run_immediately=True):
            raise RuntimeError("scheduler unavailable")

        monkeypatch.setattr(main.SLAScheduler, "start", broken_start)

        with pytest.raises(RuntimeError):
            async with main.lifespan(worker_settings):
                pass

        assert len(stopped) == 1
