"""
Worker settings and the support-desk vocabulary.

Settings come from environment variables (case-insensitive) and an optional
``.env`` file in the working directory, e.g. ``SLACK_WEBHOOK_URL`` or
``ESCALATION_INTERVAL_MINUTES``.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


ENVIRONMENTS = ("development", "staging", "production")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class Settings(BaseSettings):
    """Runtime configuration of the SLA worker."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # ========== Runtime ==========
    app_name: str = "supportdesk-sla"
    app_version: str = "1.0.0"
    environment: str = Field(default="development", description="Deployment stage, added to every log line")
    log_level: str = Field(default="INFO", description="Root log level")

    # ========== SLA evaluation ==========
    sla_policy_path: Path = Field(
        default=Path("sla_policies.yaml"),
        description="YAML file whose policies override the built-in table"
    )
    sla_at_risk_threshold_percent: float = Field(
        default=80.0,
        ge=0,
        le=100,
        description="Share of the resolution window after which a ticket counts as at risk"
    )
    escalation_interval_minutes: int = Field(
        default=30,
        ge=1,
        description="Minutes between escalation sweeps"
    )
    ticket_feed_path: Optional[Path] = Field(
        default=None,
        description="JSON export of tickets loaded into the worker's store at startup"
    )

    # ========== Notifications ==========
    slack_webhook_url: Optional[str] = Field(
        default=None,
        description="Incoming webhook for alerts; alerts are skipped when unset"
    )
    slack_channel: str = "#support-escalations"
    slack_timeout_seconds: float = Field(default=5.0, ge=0.1, le=30)
    support_base_url: str = Field(
        default="https://app.example.com/support",
        description="Ticket links in alerts point here"
    )

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        if v not in ENVIRONMENTS:
            raise ValueError(f"environment must be one of {', '.join(ENVIRONMENTS)}")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(LOG_LEVELS)}")
        return level


@lru_cache()
def get_settings() -> Settings:
    return Settings()


# ========== Vocabulary ==========

class Priority(str):
    """Priority chosen by the reporter."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class BusinessImpact(str):
    """Severity for the business, independent of the reporter's priority."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class SLAStatus(str):
    ON_TRACK = "on_track"
    AT_RISK = "at_risk"
    BREACHED = "breached"


class TicketStatus(str):
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"
    CLOSED = "closed"


class ClientTier(str):
    """Tiers that raise business impact; all others pass through."""
    ENTERPRISE = "enterprise"


class TicketCategory(str):
    SECURITY = "security"
    DATA_LOSS = "data_loss"
    SYSTEM_DOWN = "system_down"
    GENERAL = "general"


# Tickets in these statuses are still being worked and keep their SLA clock
ACTIVE_TICKET_STATUSES = (TicketStatus.OPEN, TicketStatus.IN_PROGRESS)

# Categories that are always critical whatever the priority
CRITICAL_CATEGORIES = (
    TicketCategory.SECURITY, TicketCategory.DATA_LOSS, TicketCategory.SYSTEM_DOWN
)
