"""SQLAlchemy adapter for admin-managed notification rules."""

from __future__ import annotations

import logging
from typing import Any, cast

import sqlalchemy as sa
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from charity_cases.application.dto.notification_rule_models import NotificationRule
from charity_cases.application.ports.notification_rule_repository_port import (
    NotificationRuleRepositoryPort,
)
from charity_cases.infrastructure.db.metadata import notification_rules

logger = logging.getLogger(__name__)


class SqlAlchemyNotificationRuleRepository(NotificationRuleRepositoryPort):
    """Notification rule storage backed by a JSON column."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def list_rules(self) -> list[NotificationRule]:
        """Return parseable stored rules ordered by rule id; malformed rows are skipped."""

        statement = sa.select(
            notification_rules.c.rule_id,
            notification_rules.c.definition,
        ).order_by(notification_rules.c.rule_id.asc())

        async with self._session_factory() as session:
            result = await session.execute(statement)

        rules: list[NotificationRule] = []
        for row in result.mappings().all():
            rule_id = cast(str, row["rule_id"])
            definition = cast(dict[str, Any], row["definition"])
            try:
                rules.append(NotificationRule.model_validate({"id": rule_id, **definition}))
            except (ValidationError, TypeError) as error:
                logger.warning("notification_rule_invalid rule_id=%s error=%s", rule_id, error)
        return rules

    async def upsert_rule(self, rule: NotificationRule) -> None:
        """Store a rule definition keyed by its id."""

        definition = rule.model_dump(mode="json", by_alias=True, exclude={"id"})
        async with self._session_factory() as session:
            existing = await session.execute(
                sa.select(notification_rules.c.rule_id).where(
                    notification_rules.c.rule_id == rule.id
                )
            )
            if existing.first() is None:
                statement: sa.Executable = sa.insert(notification_rules).values(
                    rule_id=rule.id,
                    definition=definition,
                )
            else:
                statement = (
                    sa.update(notification_rules)
                    .where(notification_rules.c.rule_id == rule.id)
                    .values(definition=definition, updated_at=sa.func.current_timestamp())
                )
            await session.execute(statement)
            await session.commit()
