"""Resolve matched notification rules into recipients and hand off delivery."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from enum import StrEnum
from uuid import UUID

from charity_cases.application.dto.notification_rule_models import (
    NotificationEvent,
    NotificationRule,
)
from charity_cases.application.ports.case_repository_port import CaseRecord
from charity_cases.application.ports.contribution_repository_port import (
    ContributionRepositoryPort,
)
from charity_cases.application.ports.notification_channel_port import NotificationChannelPort
from charity_cases.application.ports.user_repository_port import UserRepositoryPort
from charity_cases.application.services.notification_rule_matcher import (
    NotificationRuleMatcher,
    RuleMatchContext,
)
from charity_cases.domain.case_status import CaseStatus
from charity_cases.domain.roles import Role

logger = logging.getLogger(__name__)


class RuleDispatchOutcome(StrEnum):
    """Per-rule delivery outcomes."""

    BROADCAST = "broadcast"
    TARGETED = "targeted"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class StatusChangeNotification:
    """Applied transition details handed to the notification pipeline."""

    case: CaseRecord
    previous_status: CaseStatus
    new_status: CaseStatus
    changed_by: UUID | None
    actor_role: Role | None
    system_triggered: bool
    change_reason: str | None = None


@dataclass(frozen=True)
class NotificationDispatchSummary:
    """Counts reported after processing every matched rule for one transition."""

    matched_rules: int
    broadcasts: int
    targeted_deliveries: int
    skipped_rules: int
    failed_rules: int


class NotificationDispatcher:
    """Fan out one status transition to every audience its matching rules describe."""

    def __init__(
        self,
        *,
        rule_matcher: NotificationRuleMatcher,
        contribution_repository: ContributionRepositoryPort,
        user_repository: UserRepositoryPort,
        channel: NotificationChannelPort,
    ) -> None:
        self._rule_matcher = rule_matcher
        self._contribution_repository = contribution_repository
        self._user_repository = user_repository
        self._channel = channel

    async def notify_status_change(
        self,
        notification: StatusChangeNotification,
    ) -> NotificationDispatchSummary:
        """Match rules for a status transition and deliver each independently."""

        rules = await self._rule_matcher.get_matching_rules(
            NotificationEvent.FIELD_CHANGED,
            RuleMatchContext(
                field="status",
                from_value=notification.previous_status.value,
                to_value=notification.new_status.value,
                case_data=_case_data(notification.case),
                actor_role=notification.actor_role,
                actor_id=notification.changed_by,
            ),
        )
        if notification.new_status is CaseStatus.PUBLISHED:
            # Going live is announced with the same rules as a brand-new case.
            rules.extend(
                await self._rule_matcher.get_matching_rules(
                    NotificationEvent.CASE_CREATED,
                    RuleMatchContext(
                        case_data=_case_data(notification.case),
                        actor_role=notification.actor_role,
                        actor_id=notification.changed_by,
                    ),
                )
            )

        if not rules:
            logger.info(
                "status_notification_no_rules case_id=%s from=%s to=%s",
                notification.case.case_id,
                notification.previous_status.value,
                notification.new_status.value,
            )
            return NotificationDispatchSummary(
                matched_rules=0,
                broadcasts=0,
                targeted_deliveries=0,
                skipped_rules=0,
                failed_rules=0,
            )

        broadcasts = 0
        targeted = 0
        skipped = 0
        failed = 0
        for rule in rules:
            try:
                outcome = await self.dispatch_rule(rule, notification)
            except Exception:  # noqa: BLE001
                failed += 1
                logger.exception(
                    "status_notification_rule_failed case_id=%s rule_id=%s",
                    notification.case.case_id,
                    rule.id,
                )
                continue
            if outcome is RuleDispatchOutcome.BROADCAST:
                broadcasts += 1
            elif outcome is RuleDispatchOutcome.TARGETED:
                targeted += 1
            else:
                skipped += 1

        logger.info(
            (
                "status_notification_dispatched case_id=%s matched_rules=%s "
                "broadcasts=%s targeted=%s skipped=%s failed=%s"
            ),
            notification.case.case_id,
            len(rules),
            broadcasts,
            targeted,
            skipped,
            failed,
        )
        return NotificationDispatchSummary(
            matched_rules=len(rules),
            broadcasts=broadcasts,
            targeted_deliveries=targeted,
            skipped_rules=skipped,
            failed_rules=failed,
        )

    async def dispatch_rule(
        self,
        rule: NotificationRule,
        notification: StatusChangeNotification,
    ) -> RuleDispatchOutcome:
        """Deliver one rule to its broadcast or resolved audience."""

        case = notification.case
        if rule.targets.notify_all_users:
            await self._broadcast(notification)
            return RuleDispatchOutcome.BROADCAST

        recipient_ids = await self.resolve_recipients(rule, notification)
        if not recipient_ids:
            logger.debug(
                "status_notification_rule_skipped_no_recipients case_id=%s rule_id=%s",
                case.case_id,
                rule.id,
            )
            return RuleDispatchOutcome.SKIPPED

        await self._channel.notify_case_status_changed(
            case_id=case.case_id,
            title=case.title,
            title_ar=case.title_ar,
            from_status=notification.previous_status,
            to_status=notification.new_status,
            creator_id=case.created_by,
            recipient_ids=recipient_ids,
        )
        return RuleDispatchOutcome.TARGETED

    async def resolve_recipients(
        self,
        rule: NotificationRule,
        notification: StatusChangeNotification,
    ) -> list[UUID]:
        """Union every audience the rule targets, deduplicated in first-seen order."""

        targets = rule.targets
        case = notification.case
        candidates: list[UUID | None] = []

        if targets.notify_creator:
            candidates.append(case.created_by)
        if targets.notify_contributors:
            candidates.extend(
                await self._contribution_repository.list_contributor_ids(case_id=case.case_id)
            )
        if targets.notify_change_initiator and notification.changed_by is not None:
            candidates.append(notification.changed_by)
        if targets.notify_assigned_to:
            candidates.append(case.assigned_to)
        candidates.extend(_parse_user_ids(targets.notify_specific_users, rule_id=rule.id))

        roles = _parse_roles(targets.notify_specific_roles, rule_id=rule.id)
        if roles:
            candidates.extend(
                await self._user_repository.list_active_user_ids_by_roles(roles=roles)
            )

        return list(dict.fromkeys(user_id for user_id in candidates if user_id is not None))

    async def _broadcast(self, notification: StatusChangeNotification) -> None:
        case = notification.case
        if notification.new_status is CaseStatus.PUBLISHED:
            await self._channel.notify_case_created(
                case_id=case.case_id,
                title=case.title,
                title_ar=case.title_ar,
            )
        elif notification.new_status is CaseStatus.CLOSED:
            await self._channel.notify_case_completed(
                case_id=case.case_id,
                title=case.title,
                title_ar=case.title_ar,
            )
        else:
            await self._channel.broadcast_case_status_changed(
                case_id=case.case_id,
                title=case.title,
                title_ar=case.title_ar,
                from_status=notification.previous_status,
                to_status=notification.new_status,
            )


def _case_data(case: CaseRecord) -> dict[str, object]:
    return {
        "case_id": str(case.case_id),
        "title": case.title,
        "case_type": case.case_type.value,
        "status": case.status.value,
        "created_by": str(case.created_by),
        "assigned_to": str(case.assigned_to) if case.assigned_to is not None else None,
    }


def _parse_user_ids(values: Iterable[str], *, rule_id: str) -> list[UUID]:
    user_ids: list[UUID] = []
    for value in values:
        try:
            user_ids.append(UUID(value))
        except ValueError:
            logger.warning(
                "notification_rule_invalid_user_id rule_id=%s value=%s",
                rule_id,
                value,
            )
    return user_ids


def _parse_roles(values: Iterable[str], *, rule_id: str) -> list[Role]:
    roles: list[Role] = []
    for value in values:
        try:
            roles.append(Role(value))
        except ValueError:
            logger.warning("notification_rule_unknown_role rule_id=%s value=%s", rule_id, value)
    return roles
