"""Tests for deadlines, SLA status, escalation and the display helpers."""

from datetime import timedelta

import pytest

from supportdesk.config import SLAStatus
from supportdesk.sla.domain import (
    EscalationRule,
    PolicyTable,
    SLACalculator,
    SLAPolicy,
    SlaConfiguration,
    Ticket,
    calculate_actual_times,
    calculate_business_impact,
    calculate_sla_metrics,
    check_escalation_needed,
    format_time_remaining,
    get_sla_status_color,
    initialize_ticket_sla,
)


class TestSLAMetrics:
    """Deadline and status evaluation."""

    def test_fallback_policy_hours(self, ticket_factory, base_time):
        ticket = ticket_factory(priority="nonsense", business_impact="whatever")

        metrics = calculate_sla_metrics(ticket, now=base_time)

        assert metrics.response_time_hours == 8
        assert metrics.resolution_time_hours == 48
        assert metrics.sla_breach_at == base_time + timedelta(hours=48)
        assert metrics.sla_status == SLAStatus.ON_TRACK
        assert metrics.time_remaining == 48 * 60
        assert metrics.percent_time_elapsed == 0

    def test_case_variant_uses_fallback_policy(self, ticket_factory, base_time):
        ticket = ticket_factory(priority="URGENT", business_impact="Critical")

        metrics = calculate_sla_metrics(ticket, now=base_time)

        assert (metrics.response_time_hours, metrics.resolution_time_hours) == (8, 48)

    def test_at_risk_before_deadline(self, ticket_factory, hours_after):
        metrics = calculate_sla_metrics(ticket_factory(), now=hours_after(47))

        assert metrics.sla_status == SLAStatus.AT_RISK
        assert metrics.time_remaining == 60

    def test_breached_after_deadline(self, ticket_factory, hours_after):
        metrics = calculate_sla_metrics(ticket_factory(), now=hours_after(49))

        assert metrics.sla_status == SLAStatus.BREACHED
        assert metrics.time_remaining == 0
        assert metrics.percent_time_elapsed == 100

    def test_breached_exactly_at_deadline(self, ticket_factory, hours_after):
        metrics = calculate_sla_metrics(ticket_factory(), now=hours_after(48))
        assert metrics.sla_status == SLAStatus.BREACHED

    def test_at_risk_threshold_boundary(self, ticket_factory, hours_after):
        ticket = ticket_factory(resolution_time_hours=10)

        assert calculate_sla_metrics(ticket, now=hours_after(8)).sla_status == SLAStatus.AT_RISK
        assert calculate_sla_metrics(ticket, now=hours_after(7.9)).sla_status == SLAStatus.ON_TRACK

    def test_custom_at_risk_threshold(self, ticket_factory, hours_after):
        ticket = ticket_factory(resolution_time_hours=10)
        metrics = calculate_sla_metrics(ticket, now=hours_after(6), at_risk_threshold=50)
        assert metrics.sla_status == SLAStatus.AT_RISK

    def test_time_remaining_is_floored(self, ticket_factory, base_time):
        ticket = ticket_factory(resolution_time_hours=1)
        metrics = calculate_sla_metrics(ticket, now=base_time + timedelta(seconds=30))
        assert metrics.time_remaining == 59

    def test_evaluation_before_creation_clamps_percent(self, ticket_factory, hours_after):
        metrics = calculate_sla_metrics(ticket_factory(), now=hours_after(-1))
        assert metrics.percent_time_elapsed == 0
        assert metrics.sla_status == SLAStatus.ON_TRACK

    def test_ticket_override_wins(self, ticket_factory, base_time):
        ticket = ticket_factory(response_time_hours=3, resolution_time_hours=5)
        config = SlaConfiguration(response_time_hours=6, resolution_time_hours=20)

        metrics = calculate_sla_metrics(ticket, config, now=base_time)

        assert metrics.response_time_hours == 3
        assert metrics.resolution_time_hours == 5

    def test_config_beats_policy(self, ticket_factory, base_time):
        config = SlaConfiguration(resolution_time_hours=20)

        metrics = calculate_sla_metrics(ticket_factory(), config, now=base_time)

        assert metrics.response_time_hours == 8
        assert metrics.resolution_time_hours == 20

    @pytest.mark.parametrize("override", [0, -4])
    def test_non_positive_overrides_count_as_absent(self, ticket_factory, base_time, override):
        ticket = ticket_factory(resolution_time_hours=override)
        assert calculate_sla_metrics(ticket, now=base_time).resolution_time_hours == 48

    def test_custom_policy_table(self, ticket_factory, base_time):
        policies = PolicyTable({
            "low-low": SLAPolicy(response_time_hours=1, resolution_time_hours=2)
        })
        ticket = ticket_factory(priority="low", business_impact="low")

        metrics = calculate_sla_metrics(ticket, now=base_time, policies=policies)

        assert metrics.resolution_time_hours == 2

    def test_to_dict(self, ticket_factory, base_time):
        data = calculate_sla_metrics(ticket_factory(), now=base_time).to_dict()
        assert data["sla_status"] == "on_track"
        assert data["sla_breach_at"] == (base_time + timedelta(hours=48)).isoformat()


class TestEscalation:
    """Escalation ladder evaluation."""

    def test_first_qualifying_level(self, ticket_factory, hours_after):
        ticket = ticket_factory(priority="urgent", business_impact="critical")

        decision = check_escalation_needed(ticket, now=hours_after(2.5))

        assert decision.escalation_level == 1
        assert decision.assign_to_role == "senior_agent"
        assert decision.reason == "Ticket has been open for 2 hours without resolution"

    def test_no_re_escalation(self, ticket_factory, hours_after):
        ticket = ticket_factory(
            priority="urgent", business_impact="critical", escalation_level=1
        )

        decision = check_escalation_needed(ticket, now=hours_after(2.5))

        assert decision.escalation_level == 2
        assert decision.assign_to_role == "manager"

    def test_top_of_ladder(self, ticket_factory, hours_after):
        ticket = ticket_factory(
            priority="urgent", business_impact="critical", escalation_level=3
        )
        assert check_escalation_needed(ticket, now=hours_after(100)) is None

    def test_before_first_trigger(self, ticket_factory, hours_after):
        ticket = ticket_factory(priority="urgent", business_impact="critical")
        assert check_escalation_needed(ticket, now=hours_after(0.25)) is None

    def test_policy_without_ladder(self, ticket_factory, hours_after):
        ticket = ticket_factory(priority="low", business_impact="low")
        assert check_escalation_needed(ticket, now=hours_after(500)) is None

    def test_explicit_empty_ladder_disables_escalation(self, ticket_factory, hours_after):
        config = SlaConfiguration(escalationLevels="[]")
        ticket = ticket_factory(priority="urgent", business_impact="critical")
        assert check_escalation_needed(ticket, config, now=hours_after(10)) is None

    def test_config_ladder_is_sorted_by_level(self, ticket_factory, hours_after):
        config = SlaConfiguration(escalation_rules=[
            EscalationRule(level=2, trigger_after_hours=1, assign_to_role="director"),
            EscalationRule(level=1, trigger_after_hours=1, assign_to_role="manager"),
        ])

        decision = check_escalation_needed(ticket_factory(), config, now=hours_after(1))

        assert decision.escalation_level == 1
        assert decision.assign_to_role == "manager"

    def test_decision_to_dict(self, ticket_factory, hours_after):
        decision = check_escalation_needed(ticket_factory(), now=hours_after(30))
        assert decision.to_dict() == {
            "needs_escalation": True,
            "escalation_level": 1,
            "reason": "Ticket has been open for 30 hours without resolution",
            "assign_to_role": "manager",
        }


class TestActualTimes:

    def test_recorded_times(self, ticket_factory, base_time):
        ticket = ticket_factory(
            first_response_at=base_time + timedelta(minutes=45, seconds=59),
            resolved_at=base_time + timedelta(hours=5),
        )

        times = calculate_actual_times(ticket)

        assert times.actual_response_minutes == 45
        assert times.actual_resolution_minutes == 300

    def test_unrecorded_times_are_omitted(self, ticket_factory):
        times = calculate_actual_times(ticket_factory())
        assert times.to_dict() == {}

    def test_zero_minutes_are_kept(self, ticket_factory, base_time):
        times = calculate_actual_times(ticket_factory(first_response_at=base_time))
        assert times.to_dict() == {"actual_response_minutes": 0}


class TestBusinessImpact:

    @pytest.mark.parametrize("category", ["security", "data_loss", "system_down"])
    def test_critical_categories(self, category):
        assert calculate_business_impact(category, "low") == "critical"

    @pytest.mark.parametrize("category,priority,tier,expected", [
        ("Security", "low", None, "low"),
        ("general", "Urgent", None, "medium"),
        ("general", "urgent", "Enterprise", "high"),
    ])
    def test_values_match_exactly(self, category, priority, tier, expected):
        assert calculate_business_impact(category, priority, tier) == expected

    @pytest.mark.parametrize("priority,expected", [
        ("urgent", "critical"),
        ("high", "high"),
        ("medium", "medium"),
        ("low", "low"),
    ])
    def test_enterprise_clients(self, priority, expected):
        assert calculate_business_impact("general", priority, "enterprise") == expected

    @pytest.mark.parametrize("priority,expected", [
        ("urgent", "high"),
        ("high", "medium"),
        ("medium", "medium"),
        ("low", "low"),
        ("bogus", "medium"),
        (None, "medium"),
    ])
    def test_priority_mapping(self, priority, expected):
        assert calculate_business_impact("general", priority) == expected


class TestInitializeTicketSLA:

    def test_deadline_counts_from_now(self, ticket_factory, base_time, hours_after):
        ticket = ticket_factory(priority="urgent", business_impact=None, category="security")
        now = hours_after(1)

        fields = initialize_ticket_sla(ticket, now=now)

        assert fields.business_impact == "critical"
        assert fields.response_time_hours == 1
        assert fields.resolution_time_hours == 4
        assert fields.sla_breach_at == now + timedelta(hours=4)
        assert fields.sla_status == SLAStatus.ON_TRACK

    def test_impact_derived_when_not_given(self, base_time):
        ticket = Ticket(id="t-new", created_at=base_time, priority="low", category="security")

        fields = initialize_ticket_sla(ticket, now=base_time)

        assert fields.business_impact == "critical"
        assert fields.resolution_time_hours == 48

    def test_supplied_impact_is_kept(self, ticket_factory, base_time):
        ticket = ticket_factory(priority="high", business_impact="high", category="security")
        assert initialize_ticket_sla(ticket, now=base_time).business_impact == "high"

    def test_ticket_override_hours(self, ticket_factory, base_time):
        ticket = ticket_factory(resolution_time_hours=3)
        assert initialize_ticket_sla(ticket, now=base_time).resolution_time_hours == 3


class TestFormatting:

    @pytest.mark.parametrize("minutes,expected", [
        (0, "Overdue"),
        (-15, "Overdue"),
        (45, "45m"),
        (60, "1h 0m"),
        (90, "1h 30m"),
        (1439, "23h 59m"),
        (1440, "1d 0h"),
        (1500, "1d 1h"),
        (0.5, "0m"),
        (90.9, "1h 30m"),
    ])
    def test_format_time_remaining(self, minutes, expected):
        assert format_time_remaining(minutes) == expected

    @pytest.mark.parametrize("status,color", [
        ("on_track", "green"),
        ("at_risk", "orange"),
        ("breached", "red"),
        ("unknown", "gray"),
        (None, "gray"),
    ])
    def test_status_color(self, status, color):
        assert get_sla_status_color(status) == color


class TestResolveHours:

    def test_first_positive_candidate(self):
        assert SLACalculator.resolve_hours(None, 0, 6, 8) == 6

    def test_no_candidates(self):
        with pytest.raises(ValueError):
            SLACalculator.resolve_hours(None, -1)
