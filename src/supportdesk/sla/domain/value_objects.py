"""
SLA Value Objects
==================

Immutable value objects for SLA domain.

Value objects are defined by their attributes rather than an identity.
They are immutable and can be freely shared.
"""

import json
from types import MappingProxyType
from typing import Any, Dict, Iterator, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from supportdesk.config import Priority, BusinessImpact
from supportdesk.core import ConfigurationException


class EscalationRule(BaseModel):
    """
    One step of an escalation ladder.

    Stored rule lists use camelCase keys (``triggerAfterHours``); both
    spellings are accepted.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    level: int = Field(ge=1, description="Escalation level (1-based)")
    trigger_after_hours: float = Field(
        ge=0,
        alias="triggerAfterHours",
        description="Hours since creation before this level fires"
    )
    assign_to_role: str = Field(
        default="manager",
        alias="assignToRole",
        description="Role that takes ownership at this level"
    )
    name: Optional[str] = Field(default=None, description="Display name")
    notify_users: List[str] = Field(default_factory=list, alias="notifyUsers")
    actions: List[str] = Field(default_factory=list)


class EscalationRuleCodec:
    """
    Codec between stored escalation rule lists and ``EscalationRule`` objects.

    Configuration records keep the ladder as a JSON string. Decoding happens
    once, when a configuration or policy is loaded, so malformed ladders are
    reported there rather than during ticket evaluation.
    """

    @staticmethod
    def decode(raw: Any) -> List[EscalationRule]:
        """
        Decode a JSON string or a list of mappings into rules.

        Raises:
            ConfigurationException: on invalid JSON, a non-list payload,
                invalid rule fields or duplicate levels
        """
        if raw is None or raw == "":
            return []

        data = raw
        if isinstance(raw, (str, bytes)):
            try:
                data = json.loads(raw)
            except json.JSONDecodeError as e:
                raise ConfigurationException(
                    "Escalation rules are not valid JSON",
                    {"error": str(e)}
                ) from e

        if not isinstance(data, list):
            raise ConfigurationException(
                "Escalation rules must be a list",
                {"type": type(data).__name__}
            )

        try:
            rules = [
                item if isinstance(item, EscalationRule) else EscalationRule.model_validate(item)
                for item in data
            ]
        except ValidationError as e:
            raise ConfigurationException(
                "Invalid escalation rule",
                {"errors": e.errors(include_url=False)}
            ) from e

        seen = set()
        for rule in rules:
            if rule.level in seen:
                raise ConfigurationException(
                    f"Duplicate escalation level {rule.level}",
                    {"level": rule.level}
                )
            seen.add(rule.level)

        return rules

    @staticmethod
    def encode(rules: List[EscalationRule]) -> str:
        """Encode rules to the stored JSON form (camelCase keys)."""
        return json.dumps([
            rule.model_dump(by_alias=True, exclude_none=True)
            for rule in rules
        ])


class SLAPolicy(BaseModel):
    """Response/resolution hours and escalation ladder for one policy key."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    name: str = Field(default="", description="Policy display name")
    response_time_hours: float = Field(gt=0, alias="responseTimeHours")
    resolution_time_hours: float = Field(gt=0, alias="resolutionTimeHours")
    escalation_rules: List[EscalationRule] = Field(
        default_factory=list,
        alias="escalationLevels"
    )

    @field_validator("escalation_rules", mode="before")
    @classmethod
    def decode_rules(cls, v: Any) -> List[EscalationRule]:
        return EscalationRuleCodec.decode(v)


class SlaConfiguration(BaseModel):
    """
    Organization-level SLA override.

    Any field left unset falls through to the policy table. An empty
    ``escalationLevels`` string counts as unset; ``"[]"`` is an explicit
    empty ladder that disables escalation.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    name: Optional[str] = None
    priority: Optional[str] = None
    business_impact: Optional[str] = Field(default=None, alias="businessImpact")
    response_time_hours: Optional[float] = Field(default=None, alias="responseTimeHours")
    resolution_time_hours: Optional[float] = Field(default=None, alias="resolutionTimeHours")
    escalation_rules: Optional[List[EscalationRule]] = Field(
        default=None,
        alias="escalationLevels"
    )

    @field_validator("escalation_rules", mode="before")
    @classmethod
    def decode_rules(cls, v: Any) -> Optional[List[EscalationRule]]:
        if v is None or v == "":
            return None
        return EscalationRuleCodec.decode(v)

    def escalation_levels_json(self) -> Optional[str]:
        """Stored JSON form of the ladder, or None when unset."""
        if self.escalation_rules is None:
            return None
        return EscalationRuleCodec.encode(self.escalation_rules)


FALLBACK_POLICY_KEY = f"{Priority.MEDIUM}-{BusinessImpact.MEDIUM}"


def _rules(*steps: tuple) -> List[EscalationRule]:
    return [
        EscalationRule(level=level, trigger_after_hours=hours, assign_to_role=role)
        for level, hours, role in steps
    ]


DEFAULT_SLA_POLICIES: Mapping[str, SLAPolicy] = MappingProxyType({
    "urgent-critical": SLAPolicy(
        name="Urgent Critical Issues",
        response_time_hours=1,
        resolution_time_hours=4,
        escalation_rules=_rules(
            (1, 0.5, "senior_agent"),
            (2, 2, "manager"),
            (3, 4, "director"),
        ),
    ),
    "urgent-high": SLAPolicy(
        name="Urgent High Impact",
        response_time_hours=2,
        resolution_time_hours=8,
        escalation_rules=_rules(
            (1, 1, "senior_agent"),
            (2, 4, "manager"),
        ),
    ),
    "high-critical": SLAPolicy(
        name="High Priority Critical",
        response_time_hours=2,
        resolution_time_hours=12,
        escalation_rules=_rules(
            (1, 1, "senior_agent"),
            (2, 6, "manager"),
        ),
    ),
    "high-high": SLAPolicy(
        name="High Priority High Impact",
        response_time_hours=4,
        resolution_time_hours=24,
        escalation_rules=_rules((1, 2, "senior_agent")),
    ),
    FALLBACK_POLICY_KEY: SLAPolicy(
        name="Medium Priority Medium Impact",
        response_time_hours=8,
        resolution_time_hours=48,
        escalation_rules=_rules((1, 24, "manager")),
    ),
    "low-low": SLAPolicy(
        name="Low Priority Low Impact",
        response_time_hours=24,
        resolution_time_hours=168,
    ),
})


def _or_default(value: Any, default: str) -> str:
    return str(value) if value else default


def policy_key(priority: Any, business_impact: Any) -> str:
    """
    Build the ``"{priority}-{impact}"`` key.

    Missing or empty values default to medium. Anything else is used as
    given, so "URGENT" is not "urgent" and falls back like any unknown pair.
    """
    return (
        f"{_or_default(priority, Priority.MEDIUM)}-"
        f"{_or_default(business_impact, BusinessImpact.MEDIUM)}"
    )


class PolicyTable:
    """
    Total mapping from (priority, business impact) to an ``SLAPolicy``.

    Lookups never fail: unknown or missing combinations resolve to the
    medium-medium policy, which is always present.
    """

    def __init__(self, policies: Optional[Mapping[str, SLAPolicy]] = None):
        merged: Dict[str, SLAPolicy] = dict(DEFAULT_SLA_POLICIES)
        for key, policy in (policies or {}).items():
            merged[key] = policy
        self._policies = MappingProxyType(merged)

    def lookup(self, priority: Any, business_impact: Any) -> SLAPolicy:
        """Get the policy for a ticket's priority and business impact."""
        return self._policies.get(
            policy_key(priority, business_impact),
            self._policies[FALLBACK_POLICY_KEY]
        )

    @property
    def fallback(self) -> SLAPolicy:
        return self._policies[FALLBACK_POLICY_KEY]

    def __contains__(self, key: object) -> bool:
        return key in self._policies

    def __iter__(self) -> Iterator[str]:
        return iter(self._policies)

    def __len__(self) -> int:
        return len(self._policies)

    def items(self):
        return self._policies.items()


DEFAULT_POLICY_TABLE = PolicyTable()
