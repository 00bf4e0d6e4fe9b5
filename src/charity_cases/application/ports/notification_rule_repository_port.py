"""Port for loading admin-managed notification rules."""

from __future__ import annotations

from typing import Protocol

from charity_cases.application.dto.notification_rule_models import NotificationRule


class NotificationRuleRepositoryPort(Protocol):
    """Read-only notification rule storage."""

    async def list_rules(self) -> list[NotificationRule]:
        """Return every parseable stored rule, ordered by rule id."""
