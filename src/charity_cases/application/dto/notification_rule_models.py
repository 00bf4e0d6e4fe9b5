"""Pydantic models for stored notification rule configuration."""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class NotificationEvent(StrEnum):
    """Events a notification rule can be triggered by."""

    FIELD_CHANGED = "field_changed"
    CASE_CREATED = "case_created"
    CASE_UPDATED = "case_updated"
    ACTIVITY_CREATED = "activity_created"
    CUSTOM = "custom"


class ConditionOperator(StrEnum):
    """Comparison operators available to rule conditions."""

    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    IN = "in"
    NOT_IN = "not_in"
    CHANGED = "changed"
    CHANGED_FROM = "changed_from"
    CHANGED_TO = "changed_to"


class RuleModel(BaseModel):
    """Base model accepting both camelCase (stored JSON) and snake_case keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class FieldCondition(RuleModel):
    """One condition evaluated against the event's old/new values."""

    field: str
    operator: ConditionOperator
    value: str | list[str] | None = None
    from_value: str | list[str] | None = None
    to_value: str | list[str] | None = None


class RuleTrigger(RuleModel):
    """Event and conditions (AND-combined) that fire a rule."""

    event: NotificationEvent
    field: str | None = None
    conditions: tuple[FieldCondition, ...] = ()


class RuleTargets(RuleModel):
    """Audience descriptor resolved into recipients by the dispatcher."""

    notify_all_users: bool = False
    notify_creator: bool = False
    notify_contributors: bool = False
    notify_change_initiator: bool = False
    notify_assigned_to: bool = False
    notify_specific_roles: tuple[str, ...] = ()
    notify_specific_users: tuple[str, ...] = ()


class RuleNotificationTemplate(RuleModel):
    """Optional title/body overrides for delivered notifications."""

    title: str | None = None
    body: str | None = None
    icon: str | None = None
    tag: str | None = None


class NotificationRule(RuleModel):
    """Admin-managed rule mapping an event to a target audience."""

    id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    description: str | None = None
    enabled: bool = True
    trigger: RuleTrigger
    targets: RuleTargets = Field(default_factory=RuleTargets)
    notification: RuleNotificationTemplate | None = None

    @field_validator("id", "name")
    @classmethod
    def _strip_identity(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("must not be blank")
        return stripped
