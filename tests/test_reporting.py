"""Tests for SLA compliance reporting."""

from datetime import timedelta

from supportdesk.sla.domain import generate_sla_report


class TestGenerateSLAReport:

    def test_empty_report(self):
        report = generate_sla_report([])

        assert report.total == 0
        assert report.on_track == report.at_risk == report.breached == 0
        assert report.sla_compliance_rate == "0"
        assert report.avg_response_time_hours == "0.0"
        assert report.avg_resolution_time_hours == "0.0"

    def test_counts_stored_statuses(self, ticket_factory):
        tickets = [
            ticket_factory(sla_status="on_track"),
            ticket_factory(sla_status="on_track"),
            ticket_factory(sla_status="at_risk"),
            ticket_factory(sla_status="breached"),
        ]

        report = generate_sla_report(tickets)

        assert report.total == 4
        assert report.on_track == 2
        assert report.at_risk == 1
        assert report.breached == 1
        assert report.sla_compliance_rate == "50.0"

    def test_compliance_rate_rounding(self, ticket_factory):
        tickets = [
            ticket_factory(sla_status="on_track"),
            ticket_factory(sla_status="breached"),
            ticket_factory(sla_status="breached"),
        ]
        assert generate_sla_report(tickets).sla_compliance_rate == "33.3"

    def test_averages_use_recorded_times(self, ticket_factory):
        tickets = [
            ticket_factory(sla_status="on_track", actual_response_minutes=30,
                           actual_resolution_minutes=240),
            ticket_factory(sla_status="on_track", actual_response_minutes=90),
            ticket_factory(sla_status="on_track"),
        ]

        report = generate_sla_report(tickets)

        assert report.avg_response_time_hours == "1.0"
        assert report.avg_resolution_time_hours == "4.0"

    def test_zero_minutes_count_toward_average(self, ticket_factory):
        tickets = [
            ticket_factory(sla_status="on_track", actual_response_minutes=0),
            ticket_factory(sla_status="on_track", actual_response_minutes=120),
        ]
        assert generate_sla_report(tickets).avg_response_time_hours == "1.0"

    def test_averages_fall_back_to_timestamps(self, ticket_factory, base_time):
        ticket = ticket_factory(
            sla_status="on_track",
            first_response_at=base_time + timedelta(minutes=30),
            resolved_at=base_time + timedelta(hours=3),
        )

        report = generate_sla_report([ticket])

        assert report.avg_response_time_hours == "0.5"
        assert report.avg_resolution_time_hours == "3.0"

    def test_unclassified_without_now(self, ticket_factory):
        report = generate_sla_report([ticket_factory(), ticket_factory(sla_status="on_track")])

        assert report.total == 2
        assert report.on_track == 1
        assert report.unclassified == 1
        assert report.sla_compliance_rate == "50.0"

    def test_classifies_at_now(self, ticket_factory, hours_after):
        tickets = [
            ticket_factory(),
            ticket_factory(priority="urgent", business_impact="critical"),
        ]

        report = generate_sla_report(tickets, now=hours_after(5))

        assert report.on_track == 1
        assert report.breached == 1
        assert report.unclassified == 0

    def test_to_dict(self, ticket_factory):
        data = generate_sla_report([ticket_factory(sla_status="at_risk")]).to_dict()
        assert data == {
            "total": 1,
            "on_track": 0,
            "at_risk": 1,
            "breached": 0,
            "sla_compliance_rate": "0.0",
            "avg_response_time_hours": "0.0",
            "avg_resolution_time_hours": "0.0",
            "unclassified": 0,
        }
