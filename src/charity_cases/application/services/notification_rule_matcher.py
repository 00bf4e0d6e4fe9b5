"""Match admin-configured notification rules against case events."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from dataclasses import field as dataclass_field
from typing import Any
from uuid import UUID

from charity_cases.application.dto.notification_rule_models import (
    ConditionOperator,
    FieldCondition,
    NotificationEvent,
    NotificationRule,
)
from charity_cases.application.ports.notification_rule_repository_port import (
    NotificationRuleRepositoryPort,
)
from charity_cases.domain.roles import Role

MonotonicCallable = Callable[[], float]
logger = logging.getLogger(__name__)

DEFAULT_RULES_CACHE_TTL_SECONDS = 60.0


@dataclass(frozen=True)
class RuleMatchContext:
    """Event details rule conditions are evaluated against."""

    field: str | None = None
    from_value: str | None = None
    to_value: str | None = None
    case_data: Mapping[str, Any] = dataclass_field(default_factory=dict)
    actor_role: Role | None = None
    actor_id: UUID | None = None


class NotificationRuleMatcher:
    """Return enabled rules whose trigger and conditions match an event."""

    def __init__(
        self,
        *,
        rule_repository: NotificationRuleRepositoryPort,
        cache_ttl_seconds: float = DEFAULT_RULES_CACHE_TTL_SECONDS,
        monotonic: MonotonicCallable = time.monotonic,
    ) -> None:
        self._rule_repository = rule_repository
        self._cache_ttl_seconds = cache_ttl_seconds
        self._monotonic = monotonic
        self._cached_rules: list[NotificationRule] | None = None
        self._cached_at = 0.0

    async def get_matching_rules(
        self,
        event: NotificationEvent,
        context: RuleMatchContext,
    ) -> list[NotificationRule]:
        """Return matching rules in storage order; an empty list is a valid outcome."""

        matching: list[NotificationRule] = []
        for rule in await self._load_rules():
            if not rule.enabled or rule.trigger.event is not event:
                continue
            if (
                event is NotificationEvent.FIELD_CHANGED
                and rule.trigger.field is not None
                and rule.trigger.field != context.field
            ):
                continue
            if not all(
                evaluate_condition(condition, context) for condition in rule.trigger.conditions
            ):
                continue
            matching.append(rule)
        return matching

    def invalidate_cache(self) -> None:
        """Drop cached rules so the next lookup reloads from storage."""

        self._cached_rules = None
        self._cached_at = 0.0

    async def _load_rules(self) -> list[NotificationRule]:
        now = self._monotonic()
        if self._cached_rules is not None and now - self._cached_at < self._cache_ttl_seconds:
            return self._cached_rules

        rules = await self._rule_repository.list_rules()
        self._cached_rules = rules
        self._cached_at = now
        logger.debug("notification_rules_loaded count=%s", len(rules))
        return rules


def evaluate_condition(condition: FieldCondition, context: RuleMatchContext) -> bool:
    """Evaluate one rule condition against the event's old/new values."""

    operator = condition.operator
    if operator is ConditionOperator.EQUALS:
        if condition.value is None:
            return False
        return context.to_value == condition.value

    if operator is ConditionOperator.NOT_EQUALS:
        if condition.value is None:
            return False
        return context.to_value != condition.value

    if operator is ConditionOperator.IN:
        if not isinstance(condition.value, list) or not condition.value:
            return False
        return (context.to_value or "") in condition.value

    if operator is ConditionOperator.NOT_IN:
        if not isinstance(condition.value, list) or not condition.value:
            return True
        return (context.to_value or "") not in condition.value

    if operator is ConditionOperator.CHANGED:
        return context.from_value != context.to_value

    if operator is ConditionOperator.CHANGED_FROM:
        return _matches_value(condition.from_value, context.from_value)

    if operator is ConditionOperator.CHANGED_TO:
        return _matches_value(condition.to_value, context.to_value)

    return False


def _matches_value(expected: str | list[str] | None, actual: str | None) -> bool:
    if isinstance(expected, list):
        return (actual or "") in expected
    return actual == expected
