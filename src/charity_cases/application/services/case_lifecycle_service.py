"""Case status lifecycle engine: validated transitions, audit trail, and side effects."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from enum import StrEnum
from uuid import UUID

from charity_cases.application.ports.case_repository_port import (
    CaseRecord,
    CaseRepositoryPort,
    CaseStatusChangeInput,
    StatusHistoryRecord,
)
from charity_cases.application.ports.case_update_repository_port import (
    CaseUpdateCreateInput,
    CaseUpdateRepositoryPort,
)
from charity_cases.application.ports.user_repository_port import UserRepositoryPort
from charity_cases.application.services.background_tasks import BackgroundTaskRunnerPort
from charity_cases.application.services.notification_dispatcher import (
    NotificationDispatcher,
    StatusChangeNotification,
)
from charity_cases.domain.case_status import (
    CaseStatus,
    UnknownCaseStatusError,
    normalize_case_status,
)
from charity_cases.domain.roles import Role
from charity_cases.domain.status_updates import build_status_update
from charity_cases.domain.transitions import DEFAULT_TRANSITION_TABLE, TransitionTable

logger = logging.getLogger(__name__)

CASE_NOT_FOUND_MESSAGE = "Case not found"
INVALID_TRANSITION_MESSAGE = "Invalid status transition"
REASON_REQUIRED_MESSAGE = "Reason is required for this status change"
STATUS_CONFLICT_MESSAGE = "Case status was changed concurrently; reload and retry"
PERSISTENCE_FAILURE_MESSAGE = "Failed to change case status"


class CaseStatusChangeOutcome(StrEnum):
    """Outcomes returned by status change requests."""

    APPLIED = "applied"
    CASE_NOT_FOUND = "case_not_found"
    INVALID_TRANSITION = "invalid_transition"
    REASON_REQUIRED = "reason_required"
    STATUS_CONFLICT = "status_conflict"
    PERSISTENCE_FAILURE = "persistence_failure"


@dataclass(frozen=True)
class CaseStatusChangeRequest:
    """Caller request for one status transition."""

    case_id: UUID
    new_status: CaseStatus | str
    changed_by: UUID | None = None
    system_triggered: bool = False
    change_reason: str | None = None


@dataclass(frozen=True)
class AppliedStatusChange:
    """Transactional core result for a committed transition."""

    case: CaseRecord
    previous_status: CaseStatus
    new_status: CaseStatus
    actor_role: Role | None


@dataclass(frozen=True)
class CaseStatusChangeResult:
    """Discriminated result for HTTP and job callers."""

    outcome: CaseStatusChangeOutcome
    case: CaseRecord | None = None
    error: str | None = None
    applied: AppliedStatusChange | None = None

    @property
    def success(self) -> bool:
        return self.outcome is CaseStatusChangeOutcome.APPLIED


class CaseLifecycleService:
    """Validate and execute case status transitions.

    `apply_status_change` is the transactional core (load, normalize, authorize,
    compare-and-set status plus history row). `change_case_status` wraps it with
    the advisory tail: an activity-feed entry written best-effort and notification
    dispatch handed to a background runner so delivery never blocks the caller.
    """

    def __init__(
        self,
        *,
        case_repository: CaseRepositoryPort,
        user_repository: UserRepositoryPort,
        case_update_repository: CaseUpdateRepositoryPort | None = None,
        notification_dispatcher: NotificationDispatcher | None = None,
        task_runner: BackgroundTaskRunnerPort | None = None,
        transition_table: TransitionTable = DEFAULT_TRANSITION_TABLE,
    ) -> None:
        self._case_repository = case_repository
        self._user_repository = user_repository
        self._case_update_repository = case_update_repository
        self._notification_dispatcher = notification_dispatcher
        self._task_runner = task_runner
        self._transition_table = transition_table

    @property
    def transition_table(self) -> TransitionTable:
        return self._transition_table

    async def change_case_status(
        self,
        request: CaseStatusChangeRequest,
    ) -> CaseStatusChangeResult:
        """Apply a transition, then run best-effort update and notification side effects."""

        try:
            result = await self.apply_status_change(request)
        except Exception:  # noqa: BLE001
            logger.exception(
                "case_status_change_failed case_id=%s new_status=%s",
                request.case_id,
                request.new_status,
            )
            return CaseStatusChangeResult(
                outcome=CaseStatusChangeOutcome.PERSISTENCE_FAILURE,
                error=PERSISTENCE_FAILURE_MESSAGE,
            )

        applied = result.applied
        if applied is None:
            return result

        await self._record_status_update(request, applied)
        self._schedule_notifications(request, applied)

        try:
            reloaded = await self._case_repository.get_case(case_id=request.case_id)
        except Exception:  # noqa: BLE001
            logger.exception("case_status_reload_failed case_id=%s", request.case_id)
            reloaded = None

        return replace(result, case=reloaded or applied.case)

    async def apply_status_change(
        self,
        request: CaseStatusChangeRequest,
    ) -> CaseStatusChangeResult:
        """Validate against persisted state and commit status plus history atomically.

        Storage errors propagate; `change_case_status` converts them to a generic
        failure outcome.
        """

        current = await self._case_repository.get_case(case_id=request.case_id)
        if current is None:
            logger.info("case_status_change_rejected_not_found case_id=%s", request.case_id)
            return CaseStatusChangeResult(
                outcome=CaseStatusChangeOutcome.CASE_NOT_FOUND,
                error=CASE_NOT_FOUND_MESSAGE,
            )

        # The repository already normalized the persisted status.
        current_status = current.status
        try:
            new_status = normalize_case_status(request.new_status)
        except UnknownCaseStatusError:
            logger.info(
                "case_status_change_rejected_unknown_status case_id=%s new_status=%s",
                request.case_id,
                request.new_status,
            )
            return CaseStatusChangeResult(
                outcome=CaseStatusChangeOutcome.INVALID_TRANSITION,
                error=INVALID_TRANSITION_MESSAGE,
            )

        actor_role = await self._resolve_actor_role(request.changed_by)

        if not self._transition_table.is_transition_allowed(
            current_status,
            new_status,
            actor_role,
            request.system_triggered,
        ):
            logger.info(
                (
                    "case_status_change_rejected_invalid_transition case_id=%s "
                    "from=%s to=%s actor_role=%s system_triggered=%s"
                ),
                request.case_id,
                current_status.value,
                new_status.value,
                actor_role.value if actor_role is not None else None,
                request.system_triggered,
            )
            return CaseStatusChangeResult(
                outcome=CaseStatusChangeOutcome.INVALID_TRANSITION,
                error=INVALID_TRANSITION_MESSAGE,
            )

        change_reason = _clean_reason(request.change_reason)
        if self._transition_table.requires_reason(current_status, new_status) and (
            change_reason is None
        ):
            logger.info(
                "case_status_change_rejected_reason_required case_id=%s from=%s to=%s",
                request.case_id,
                current_status.value,
                new_status.value,
            )
            return CaseStatusChangeResult(
                outcome=CaseStatusChangeOutcome.REASON_REQUIRED,
                error=REASON_REQUIRED_MESSAGE,
            )

        written = await self._case_repository.apply_status_change(
            CaseStatusChangeInput(
                case_id=current.case_id,
                expected_stored_status=current.stored_status,
                previous_status=current_status,
                new_status=new_status,
                changed_by=request.changed_by,
                system_triggered=request.system_triggered,
                change_reason=change_reason,
            )
        )
        if not written:
            logger.warning(
                "case_status_change_conflict case_id=%s expected_status=%s",
                request.case_id,
                current.stored_status,
            )
            return CaseStatusChangeResult(
                outcome=CaseStatusChangeOutcome.STATUS_CONFLICT,
                error=STATUS_CONFLICT_MESSAGE,
            )

        logger.info(
            (
                "case_status_changed case_id=%s from=%s to=%s changed_by=%s "
                "system_triggered=%s"
            ),
            request.case_id,
            current_status.value,
            new_status.value,
            request.changed_by,
            request.system_triggered,
        )
        updated_case = replace(current, status=new_status, stored_status=new_status.value)
        return CaseStatusChangeResult(
            outcome=CaseStatusChangeOutcome.APPLIED,
            case=updated_case,
            applied=AppliedStatusChange(
                case=updated_case,
                previous_status=current_status,
                new_status=new_status,
                actor_role=actor_role,
            ),
        )

    async def get_status_history(self, *, case_id: UUID) -> list[StatusHistoryRecord] | None:
        """Return history newest first, or None when the case does not exist."""

        case = await self._case_repository.get_case(case_id=case_id)
        if case is None:
            return None
        return await self._case_repository.list_status_history(case_id=case_id)

    async def get_available_transitions(
        self,
        *,
        case_id: UUID,
        actor_user_id: UUID | None,
    ) -> tuple[CaseRecord, frozenset[CaseStatus]] | None:
        """Return the case and statuses the actor may move it to; informational only."""

        case = await self._case_repository.get_case(case_id=case_id)
        if case is None:
            return None
        actor_role = await self._resolve_actor_role(actor_user_id)
        return case, self._transition_table.available_transitions(case.status, actor_role)

    async def _resolve_actor_role(self, user_id: UUID | None) -> Role | None:
        if user_id is None:
            return None
        user = await self._user_repository.get_by_id(user_id=user_id)
        if user is None or not user.is_active:
            return None
        return user.role

    async def _record_status_update(
        self,
        request: CaseStatusChangeRequest,
        applied: AppliedStatusChange,
    ) -> None:
        if self._case_update_repository is None:
            return

        draft = build_status_update(
            new_status=applied.new_status,
            system_triggered=request.system_triggered,
            change_reason=_clean_reason(request.change_reason),
        )
        if draft is None:
            return

        try:
            await self._case_update_repository.append_update(
                CaseUpdateCreateInput(
                    case_id=request.case_id,
                    title=draft.title,
                    content=draft.content,
                    update_type=draft.update_type,
                    is_public=draft.is_public,
                    created_by=request.changed_by,
                )
            )
        except Exception:  # noqa: BLE001
            logger.exception(
                "case_status_update_entry_failed case_id=%s new_status=%s",
                request.case_id,
                applied.new_status.value,
            )

    def _schedule_notifications(
        self,
        request: CaseStatusChangeRequest,
        applied: AppliedStatusChange,
    ) -> None:
        if self._notification_dispatcher is None or self._task_runner is None:
            return

        notification = StatusChangeNotification(
            case=applied.case,
            previous_status=applied.previous_status,
            new_status=applied.new_status,
            changed_by=request.changed_by,
            actor_role=applied.actor_role,
            system_triggered=request.system_triggered,
            change_reason=_clean_reason(request.change_reason),
        )
        try:
            self._task_runner.spawn(
                self._notification_dispatcher.notify_status_change(notification),
                name=f"status-notification-{request.case_id}",
            )
        except Exception:  # noqa: BLE001
            logger.exception("case_status_notification_schedule_failed case_id=%s", request.case_id)


def _clean_reason(reason: str | None) -> str | None:
    if reason is None:
        return None
    stripped = reason.strip()
    return stripped or None
