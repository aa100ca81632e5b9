"""
SLA Application DTOs
=====================

Data Transfer Objects at the boundary with the ticket-management system.

Ticket records arrive with camelCase keys from the platform's API and with
snake_case keys from internal feeds; both are accepted. Timestamps without
an offset are taken as UTC.
"""

from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

from supportdesk.sla.domain import Ticket


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class TicketSnapshotDTO(BaseModel):
    """DTO for one ticket snapshot entering the SLA engine."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = Field(..., min_length=1, description="Ticket ID")
    ticket_number: Optional[str] = Field(None, alias="ticketNumber")
    priority: Optional[str] = Field("medium", description="Ticket priority")
    business_impact: Optional[str] = Field(None, alias="businessImpact")
    status: str = Field(default="open", description="Ticket status")
    category: Optional[str] = None

    created_at: datetime = Field(..., alias="createdAt")
    first_response_at: Optional[datetime] = Field(None, alias="firstResponseAt")
    resolved_at: Optional[datetime] = Field(None, alias="resolvedAt")

    response_time_hours: Optional[float] = Field(None, alias="responseTimeHours")
    resolution_time_hours: Optional[float] = Field(None, alias="resolutionTimeHours")

    escalation_level: int = Field(0, ge=0, alias="escalationLevel")
    escalated_at: Optional[datetime] = Field(None, alias="escalatedAt")

    sla_status: Optional[str] = Field(None, alias="slaStatus")
    actual_response_minutes: Optional[int] = Field(None, alias="actualResponseMinutes")
    actual_resolution_minutes: Optional[int] = Field(None, alias="actualResolutionMinutes")

    @field_validator("escalation_level", mode="before")
    @classmethod
    def default_escalation_level(cls, v):
        return 0 if v is None else v

    @field_validator("created_at", "escalated_at")
    @classmethod
    def normalize_timezone(cls, v: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(v)

    @field_validator("first_response_at", "resolved_at")
    @classmethod
    def validate_after_created(
        cls, v: Optional[datetime], info: ValidationInfo
    ) -> Optional[datetime]:
        """Ensure SLA timestamps are not before created_at."""
        v = _as_utc(v)
        created_at = info.data.get("created_at")
        if v is not None and created_at is not None and v < created_at:
            raise ValueError(f"{info.field_name} cannot be before created_at")
        return v

    def to_domain(self) -> Ticket:
        """Convert to domain entity."""
        return Ticket(
            id=self.id,
            ticket_number=self.ticket_number,
            priority=self.priority,
            business_impact=self.business_impact,
            status=self.status,
            category=self.category,
            created_at=self.created_at,
            first_response_at=self.first_response_at,
            resolved_at=self.resolved_at,
            response_time_hours=self.response_time_hours,
            resolution_time_hours=self.resolution_time_hours,
            escalation_level=self.escalation_level,
            escalated_at=self.escalated_at,
            sla_status=self.sla_status,
            actual_response_minutes=self.actual_response_minutes,
            actual_resolution_minutes=self.actual_resolution_minutes
        )

    @classmethod
    def from_domain(cls, ticket: Ticket) -> "TicketSnapshotDTO":
        """Create from domain entity."""
        return cls(
            id=ticket.id,
            ticket_number=ticket.ticket_number,
            priority=ticket.priority,
            business_impact=ticket.business_impact,
            status=ticket.status,
            category=ticket.category,
            created_at=ticket.created_at,
            first_response_at=ticket.first_response_at,
            resolved_at=ticket.resolved_at,
            response_time_hours=ticket.response_time_hours,
            resolution_time_hours=ticket.resolution_time_hours,
            escalation_level=ticket.escalation_level,
            escalated_at=ticket.escalated_at,
            sla_status=ticket.sla_status,
            actual_response_minutes=ticket.actual_response_minutes,
            actual_resolution_minutes=ticket.actual_resolution_minutes
        )


class TicketFeedDTO(BaseModel):
    """A batch of ticket snapshots."""
    tickets: List[TicketSnapshotDTO] = Field(
        default_factory=list,
        description="Ticket snapshots"
    )

    def to_domain(self) -> List[Ticket]:
        return [ticket.to_domain() for ticket in self.tickets]
