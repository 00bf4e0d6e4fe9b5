from __future__ import annotations

from collections.abc import Collection, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

import pytest

from charity_cases.application.dto.notification_rule_models import NotificationRule
from charity_cases.application.ports.case_repository_port import CaseRecord
from charity_cases.application.services.notification_dispatcher import (
    NotificationDispatcher,
    RuleDispatchOutcome,
    StatusChangeNotification,
)
from charity_cases.application.services.notification_rule_matcher import NotificationRuleMatcher
from charity_cases.domain.case_status import CaseStatus, CaseType
from charity_cases.domain.roles import Role


def _make_case(*, created_by: UUID, assigned_to: UUID | None = None) -> CaseRecord:
    now = datetime.now(tz=UTC)
    return CaseRecord(
        case_id=uuid4(),
        title="Winter blankets",
        title_ar="بطانيات الشتاء",
        case_type=CaseType.ONE_TIME,
        status=CaseStatus.PUBLISHED,
        stored_status="published",
        target_amount=Decimal("500.00"),
        current_amount=Decimal("0.00"),
        created_by=created_by,
        assigned_to=assigned_to,
        sponsored_by=None,
        beneficiary_name=None,
        end_date=None,
        created_at=now,
        updated_at=now,
    )


def _rule(rule_id: str, *, event: str = "field_changed", **targets: Any) -> NotificationRule:
    return NotificationRule.model_validate(
        {
            "id": rule_id,
            "name": rule_id,
            "trigger": {"event": event, "field": "status"} if event == "field_changed" else {
                "event": event
            },
            "targets": targets,
        }
    )


@dataclass
class FakeRuleRepository:
    rules: list[NotificationRule] = field(default_factory=list)

    async def list_rules(self) -> list[NotificationRule]:
        return list(self.rules)


@dataclass
class FakeContributionRepository:
    contributors: list[UUID] = field(default_factory=list)

    async def sum_approved_amount(self, *, case_id: UUID) -> Decimal:
        return Decimal("0")

    async def list_contributor_ids(self, *, case_id: UUID) -> list[UUID]:
        return list(self.contributors)


@dataclass
class FakeUserRepository:
    ids_by_role: dict[Role, list[UUID]] = field(default_factory=dict)

    async def list_active_user_ids_by_roles(self, *, roles: Collection[Role]) -> list[UUID]:
        return [user_id for role in roles for user_id in self.ids_by_role.get(role, [])]


@dataclass
class RecordingChannel:
    calls: list[tuple[str, dict[str, Any]]] = field(default_factory=list)
    fail_targeted: bool = False

    async def notify_case_created(self, **kwargs: Any) -> None:
        self.calls.append(("created", kwargs))

    async def notify_case_completed(self, **kwargs: Any) -> None:
        self.calls.append(("completed", kwargs))

    async def broadcast_case_status_changed(self, **kwargs: Any) -> None:
        self.calls.append(("broadcast", kwargs))

    async def notify_case_status_changed(
        self,
        *,
        recipient_ids: Sequence[UUID],
        **kwargs: Any,
    ) -> None:
        if self.fail_targeted:
            raise RuntimeError("delivery failed")
        self.calls.append(("targeted", {"recipient_ids": list(recipient_ids), **kwargs}))


def _build(
    *,
    rules: list[NotificationRule],
    contributors: list[UUID] | None = None,
    ids_by_role: dict[Role, list[UUID]] | None = None,
    channel: RecordingChannel | None = None,
) -> tuple[NotificationDispatcher, RecordingChannel]:
    recording = channel or RecordingChannel()
    dispatcher = NotificationDispatcher(
        rule_matcher=NotificationRuleMatcher(rule_repository=FakeRuleRepository(rules)),
        contribution_repository=FakeContributionRepository(contributors or []),
        user_repository=FakeUserRepository(ids_by_role or {}),  # type: ignore[arg-type]
        channel=recording,
    )
    return dispatcher, recording


def _notification(
    case: CaseRecord,
    *,
    previous: CaseStatus = CaseStatus.SUBMITTED,
    new: CaseStatus = CaseStatus.PUBLISHED,
    changed_by: UUID | None = None,
) -> StatusChangeNotification:
    return StatusChangeNotification(
        case=case,
        previous_status=previous,
        new_status=new,
        changed_by=changed_by,
        actor_role=Role.ADMIN if changed_by is not None else None,
        system_triggered=changed_by is None,
    )


@pytest.mark.asyncio
async def test_recipients_are_deduplicated_in_first_seen_order() -> None:
    creator = uuid4()
    contributor = uuid4()
    admin = uuid4()
    case = _make_case(created_by=creator, assigned_to=admin)
    rule = _rule(
        "everyone",
        notifyCreator=True,
        notifyContributors=True,
        notifyChangeInitiator=True,
        notifyAssignedTo=True,
        notifySpecificUsers=[str(creator), "not-a-uuid"],
        notifySpecificRoles=["admin", "superuser"],
    )
    dispatcher, _ = _build(
        rules=[rule],
        contributors=[contributor, creator],
        ids_by_role={Role.ADMIN: [admin]},
    )

    recipients = await dispatcher.resolve_recipients(rule, _notification(case, changed_by=admin))

    assert recipients == [creator, contributor, admin]


@pytest.mark.asyncio
async def test_missing_assignee_and_system_initiator_are_dropped() -> None:
    creator = uuid4()
    case = _make_case(created_by=creator)
    rule = _rule("r", notifyChangeInitiator=True, notifyAssignedTo=True)
    dispatcher, channel = _build(rules=[rule])

    outcome = await dispatcher.dispatch_rule(rule, _notification(case))

    assert outcome is RuleDispatchOutcome.SKIPPED
    assert channel.calls == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("new_status", "expected_call"),
    [
        (CaseStatus.PUBLISHED, "created"),
        (CaseStatus.CLOSED, "completed"),
        (CaseStatus.UNDER_REVIEW, "broadcast"),
    ],
)
async def test_broadcast_uses_status_specific_channel_call(
    new_status: CaseStatus,
    expected_call: str,
) -> None:
    case = _make_case(created_by=uuid4())
    rule = _rule("all", notifyAllUsers=True, notifyCreator=True)
    dispatcher, channel = _build(rules=[rule])

    outcome = await dispatcher.dispatch_rule(
        rule,
        _notification(case, previous=CaseStatus.SUBMITTED, new=new_status),
    )

    assert outcome is RuleDispatchOutcome.BROADCAST
    assert [name for name, _ in channel.calls] == [expected_call]


@pytest.mark.asyncio
async def test_targeted_delivery_passes_transition_details() -> None:
    creator = uuid4()
    case = _make_case(created_by=creator)
    rule = _rule("creator", notifyCreator=True)
    dispatcher, channel = _build(rules=[rule])

    summary = await dispatcher.notify_status_change(
        _notification(case, previous=CaseStatus.PUBLISHED, new=CaseStatus.UNDER_REVIEW)
    )

    assert summary.targeted_deliveries == 1
    name, kwargs = channel.calls[0]
    assert name == "targeted"
    assert kwargs["recipient_ids"] == [creator]
    assert kwargs["from_status"] is CaseStatus.PUBLISHED
    assert kwargs["to_status"] is CaseStatus.UNDER_REVIEW
    assert kwargs["creator_id"] == creator
    assert kwargs["title_ar"] == "بطانيات الشتاء"


@pytest.mark.asyncio
async def test_publishing_also_runs_case_created_rules() -> None:
    case = _make_case(created_by=uuid4())
    dispatcher, channel = _build(
        rules=[
            _rule("status", notifyCreator=True),
            _rule("new-case", event="case_created", notifyAllUsers=True),
        ]
    )

    summary = await dispatcher.notify_status_change(_notification(case))

    assert summary.matched_rules == 2
    assert summary.broadcasts == 1
    assert summary.targeted_deliveries == 1
    assert sorted(name for name, _ in channel.calls) == ["created", "targeted"]


@pytest.mark.asyncio
async def test_case_created_rules_are_ignored_for_other_statuses() -> None:
    case = _make_case(created_by=uuid4())
    dispatcher, channel = _build(
        rules=[_rule("new-case", event="case_created", notifyAllUsers=True)]
    )

    summary = await dispatcher.notify_status_change(
        _notification(case, previous=CaseStatus.PUBLISHED, new=CaseStatus.CLOSED)
    )

    assert summary.matched_rules == 0
    assert channel.calls == []


@pytest.mark.asyncio
async def test_one_failing_rule_does_not_stop_the_others() -> None:
    case = _make_case(created_by=uuid4())
    channel = RecordingChannel(fail_targeted=True)
    dispatcher, _ = _build(
        rules=[
            _rule("targeted", notifyCreator=True),
            _rule("broadcast", notifyAllUsers=True),
        ],
        channel=channel,
    )

    summary = await dispatcher.notify_status_change(
        _notification(case, previous=CaseStatus.PUBLISHED, new=CaseStatus.CLOSED)
    )

    assert summary.failed_rules == 1
    assert summary.broadcasts == 1
    assert [name for name, _ in channel.calls] == ["completed"]
