"""Automatic closure of fully funded one-time cases."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from enum import StrEnum
from uuid import UUID

from charity_cases.application.ports.case_repository_port import CaseRecord, CaseRepositoryPort
from charity_cases.application.ports.contribution_repository_port import (
    ContributionRepositoryPort,
)
from charity_cases.application.services.case_lifecycle_service import (
    CaseLifecycleService,
    CaseStatusChangeRequest,
)
from charity_cases.domain.case_status import CaseStatus, CaseType

NowCallable = Callable[[], datetime]
logger = logging.getLogger(__name__)

DEFAULT_GRACE_PERIOD = timedelta(hours=24)


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


def automatic_closure_reason(*, funded: Decimal, target: Decimal) -> str:
    return f"Case automatically closed - funding goal reached ({funded}/{target})"


class ClosureCheckOutcome(StrEnum):
    """Outcomes for evaluating one case against the closure policy."""

    CLOSED = "closed"
    CASE_NOT_FOUND = "case_not_found"
    NOT_ELIGIBLE = "not_eligible"
    NOT_FULLY_FUNDED = "not_fully_funded"
    IN_GRACE_PERIOD = "in_grace_period"
    CLOSE_FAILED = "close_failed"


@dataclass(frozen=True)
class ClosureCheckResult:
    """Single-case closure evaluation result."""

    outcome: ClosureCheckOutcome
    case_id: UUID
    funded_amount: Decimal | None = None
    target_amount: Decimal | None = None
    grace_period_ends_at: datetime | None = None
    error: str | None = None

    @property
    def remaining_amount(self) -> Decimal | None:
        if self.funded_amount is None or self.target_amount is None:
            return None
        return max(self.target_amount - self.funded_amount, Decimal("0"))


@dataclass(frozen=True)
class AutomaticClosureResult:
    """Counters reported by one closure sweep."""

    scanned: int
    closed_count: int
    in_grace_count: int
    error_count: int


class AutomaticClosureService:
    """Close published one-time cases whose approved funding meets the target."""

    def __init__(
        self,
        *,
        case_repository: CaseRepositoryPort,
        contribution_repository: ContributionRepositoryPort,
        lifecycle_service: CaseLifecycleService,
        grace_period: timedelta = DEFAULT_GRACE_PERIOD,
        now: NowCallable = _utc_now,
    ) -> None:
        self._case_repository = case_repository
        self._contribution_repository = contribution_repository
        self._lifecycle_service = lifecycle_service
        self._grace_period = grace_period
        self._now = now

    async def run_once(self) -> AutomaticClosureResult:
        """Sweep candidate cases once; a failing case never stops the sweep."""

        cases = await self._case_repository.list_cases_by_type_and_status(
            case_type=CaseType.ONE_TIME,
            status=CaseStatus.PUBLISHED,
        )
        logger.info("automatic_closure_started candidates=%s", len(cases))

        closed = 0
        in_grace = 0
        errors = 0
        for case in cases:
            try:
                result = await self._evaluate(case)
            except Exception:  # noqa: BLE001
                errors += 1
                logger.exception("automatic_closure_case_failed case_id=%s", case.case_id)
                continue

            if result.outcome is ClosureCheckOutcome.CLOSED:
                closed += 1
            elif result.outcome is ClosureCheckOutcome.IN_GRACE_PERIOD:
                in_grace += 1
            elif result.outcome is ClosureCheckOutcome.CLOSE_FAILED:
                errors += 1

        logger.info(
            "automatic_closure_finished scanned=%s closed=%s in_grace=%s errors=%s",
            len(cases),
            closed,
            in_grace,
            errors,
        )
        return AutomaticClosureResult(
            scanned=len(cases),
            closed_count=closed,
            in_grace_count=in_grace,
            error_count=errors,
        )

    async def check_case(self, *, case_id: UUID) -> ClosureCheckResult:
        """Evaluate one case on demand using the same policy as the sweep."""

        case = await self._case_repository.get_case(case_id=case_id)
        if case is None:
            return ClosureCheckResult(
                outcome=ClosureCheckOutcome.CASE_NOT_FOUND,
                case_id=case_id,
                error="Case not found",
            )
        if case.case_type is not CaseType.ONE_TIME or case.status is not CaseStatus.PUBLISHED:
            return ClosureCheckResult(
                outcome=ClosureCheckOutcome.NOT_ELIGIBLE,
                case_id=case_id,
                error="Case is not eligible for automatic closure",
            )
        return await self._evaluate(case)

    async def _evaluate(self, case: CaseRecord) -> ClosureCheckResult:
        funded = await self._contribution_repository.sum_approved_amount(case_id=case.case_id)
        target = case.target_amount
        if funded < target:
            return ClosureCheckResult(
                outcome=ClosureCheckOutcome.NOT_FULLY_FUNDED,
                case_id=case.case_id,
                funded_amount=funded,
                target_amount=target,
            )

        grace_ends_at = _as_aware(case.created_at) + self._grace_period
        if self._now() < grace_ends_at:
            logger.info(
                "automatic_closure_in_grace_period case_id=%s grace_ends_at=%s",
                case.case_id,
                grace_ends_at.isoformat(),
            )
            return ClosureCheckResult(
                outcome=ClosureCheckOutcome.IN_GRACE_PERIOD,
                case_id=case.case_id,
                funded_amount=funded,
                target_amount=target,
                grace_period_ends_at=grace_ends_at,
            )

        result = await self._lifecycle_service.change_case_status(
            CaseStatusChangeRequest(
                case_id=case.case_id,
                new_status=CaseStatus.CLOSED,
                system_triggered=True,
                change_reason=automatic_closure_reason(funded=funded, target=target),
            )
        )
        if not result.success:
            logger.warning(
                "automatic_closure_rejected case_id=%s outcome=%s error=%s",
                case.case_id,
                result.outcome.value,
                result.error,
            )
            return ClosureCheckResult(
                outcome=ClosureCheckOutcome.CLOSE_FAILED,
                case_id=case.case_id,
                funded_amount=funded,
                target_amount=target,
                error=result.error,
            )

        logger.info(
            "automatic_closure_closed case_id=%s funded=%s target=%s",
            case.case_id,
            funded,
            target,
        )
        return ClosureCheckResult(
            outcome=ClosureCheckOutcome.CLOSED,
            case_id=case.case_id,
            funded_amount=funded,
            target_amount=target,
        )


def _as_aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value
