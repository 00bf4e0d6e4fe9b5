from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from uuid import UUID, uuid4

import pytest

from charity_cases.application.ports.case_repository_port import CaseRecord
from charity_cases.application.services.automatic_closure_service import (
    AutomaticClosureService,
    ClosureCheckOutcome,
)
from charity_cases.application.services.case_lifecycle_service import (
    CaseStatusChangeOutcome,
    CaseStatusChangeRequest,
    CaseStatusChangeResult,
)
from charity_cases.domain.case_status import CaseStatus, CaseType

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


def _make_case(
    *,
    age: timedelta,
    target: str = "1000.00",
    case_type: CaseType = CaseType.ONE_TIME,
    status: CaseStatus = CaseStatus.PUBLISHED,
) -> CaseRecord:
    created_at = NOW - age
    return CaseRecord(
        case_id=uuid4(),
        title="Clean water well",
        title_ar=None,
        case_type=case_type,
        status=status,
        stored_status=status.value,
        target_amount=Decimal(target),
        current_amount=Decimal("0.00"),
        created_by=uuid4(),
        assigned_to=None,
        sponsored_by=None,
        beneficiary_name=None,
        end_date=None,
        created_at=created_at,
        updated_at=created_at,
    )


@dataclass
class FakeCaseRepository:
    cases: dict[UUID, CaseRecord] = field(default_factory=dict)

    def add(self, case: CaseRecord) -> CaseRecord:
        self.cases[case.case_id] = case
        return case

    async def get_case(self, *, case_id: UUID) -> CaseRecord | None:
        return self.cases.get(case_id)

    async def list_cases_by_type_and_status(
        self,
        *,
        case_type: CaseType,
        status: CaseStatus,
    ) -> list[CaseRecord]:
        return [
            case
            for case in self.cases.values()
            if case.case_type is case_type and case.status is status
        ]


@dataclass
class FakeContributionRepository:
    totals: dict[UUID, Decimal] = field(default_factory=dict)
    failing_case_ids: set[UUID] = field(default_factory=set)

    async def sum_approved_amount(self, *, case_id: UUID) -> Decimal:
        if case_id in self.failing_case_ids:
            raise RuntimeError("aggregate query failed")
        return self.totals.get(case_id, Decimal("0"))


@dataclass
class FakeLifecycleService:
    cases: FakeCaseRepository
    requests: list[CaseStatusChangeRequest] = field(default_factory=list)
    reject: bool = False

    async def change_case_status(
        self,
        request: CaseStatusChangeRequest,
    ) -> CaseStatusChangeResult:
        self.requests.append(request)
        if self.reject:
            return CaseStatusChangeResult(
                outcome=CaseStatusChangeOutcome.STATUS_CONFLICT,
                error="conflict",
            )
        case = self.cases.cases[request.case_id]
        closed = replace(case, status=CaseStatus.CLOSED, stored_status="closed")
        self.cases.cases[request.case_id] = closed
        return CaseStatusChangeResult(outcome=CaseStatusChangeOutcome.APPLIED, case=closed)


ClosureHarness = tuple[
    AutomaticClosureService,
    FakeCaseRepository,
    FakeContributionRepository,
    FakeLifecycleService,
]


def _build(*, grace_period: timedelta = timedelta(hours=24)) -> ClosureHarness:
    cases = FakeCaseRepository()
    contributions = FakeContributionRepository()
    lifecycle = FakeLifecycleService(cases)
    service = AutomaticClosureService(
        case_repository=cases,  # type: ignore[arg-type]
        contribution_repository=contributions,  # type: ignore[arg-type]
        lifecycle_service=lifecycle,  # type: ignore[arg-type]
        grace_period=grace_period,
        now=lambda: NOW,
    )
    return service, cases, contributions, lifecycle


@pytest.mark.asyncio
async def test_funded_case_inside_grace_period_stays_open() -> None:
    service, cases, contributions, lifecycle = _build()
    case = cases.add(_make_case(age=timedelta(hours=1)))
    contributions.totals[case.case_id] = Decimal("1000.00")

    result = await service.run_once()

    assert result.scanned == 1
    assert result.closed_count == 0
    assert result.in_grace_count == 1
    assert lifecycle.requests == []
    assert cases.cases[case.case_id].status is CaseStatus.PUBLISHED


@pytest.mark.asyncio
async def test_funded_case_after_grace_period_is_closed_by_system() -> None:
    service, cases, contributions, lifecycle = _build()
    case = cases.add(_make_case(age=timedelta(hours=25)))
    contributions.totals[case.case_id] = Decimal("1200.00")

    result = await service.run_once()

    assert result.closed_count == 1
    request = lifecycle.requests[0]
    assert request.case_id == case.case_id
    assert request.new_status is CaseStatus.CLOSED
    assert request.system_triggered is True
    assert request.changed_by is None
    assert request.change_reason == (
        "Case automatically closed - funding goal reached (1200.00/1000.00)"
    )


@pytest.mark.asyncio
async def test_underfunded_and_ineligible_cases_are_left_alone() -> None:
    service, cases, contributions, lifecycle = _build()
    underfunded = cases.add(_make_case(age=timedelta(days=3)))
    contributions.totals[underfunded.case_id] = Decimal("999.99")
    recurring = cases.add(_make_case(age=timedelta(days=3), case_type=CaseType.RECURRING))
    contributions.totals[recurring.case_id] = Decimal("5000.00")

    result = await service.run_once()

    assert result.scanned == 1
    assert result.closed_count == 0
    assert lifecycle.requests == []


@pytest.mark.asyncio
async def test_one_failing_case_does_not_stop_the_sweep() -> None:
    service, cases, contributions, lifecycle = _build()
    broken = cases.add(_make_case(age=timedelta(days=2)))
    healthy = cases.add(_make_case(age=timedelta(days=2)))
    contributions.failing_case_ids.add(broken.case_id)
    contributions.totals[healthy.case_id] = Decimal("1000.00")

    result = await service.run_once()

    assert result.scanned == 2
    assert result.error_count == 1
    assert result.closed_count == 1
    assert [request.case_id for request in lifecycle.requests] == [healthy.case_id]


@pytest.mark.asyncio
async def test_rejected_closure_counts_as_error() -> None:
    service, cases, contributions, lifecycle = _build()
    lifecycle.reject = True
    case = cases.add(_make_case(age=timedelta(days=2)))
    contributions.totals[case.case_id] = Decimal("1000.00")

    result = await service.run_once()

    assert result.closed_count == 0
    assert result.error_count == 1


@pytest.mark.asyncio
async def test_check_case_reports_each_outcome() -> None:
    service, cases, contributions, _ = _build()
    draft = cases.add(_make_case(age=timedelta(days=2), status=CaseStatus.DRAFT))
    partial = cases.add(_make_case(age=timedelta(days=2)))
    contributions.totals[partial.case_id] = Decimal("400.00")
    fresh = cases.add(_make_case(age=timedelta(hours=2)))
    contributions.totals[fresh.case_id] = Decimal("1000.00")
    ready = cases.add(_make_case(age=timedelta(days=2)))
    contributions.totals[ready.case_id] = Decimal("1000.00")

    missing_result = await service.check_case(case_id=uuid4())
    draft_result = await service.check_case(case_id=draft.case_id)
    partial_result = await service.check_case(case_id=partial.case_id)
    fresh_result = await service.check_case(case_id=fresh.case_id)
    ready_result = await service.check_case(case_id=ready.case_id)

    assert missing_result.outcome is ClosureCheckOutcome.CASE_NOT_FOUND
    assert draft_result.outcome is ClosureCheckOutcome.NOT_ELIGIBLE
    assert partial_result.outcome is ClosureCheckOutcome.NOT_FULLY_FUNDED
    assert partial_result.remaining_amount == Decimal("600.00")
    assert fresh_result.outcome is ClosureCheckOutcome.IN_GRACE_PERIOD
    assert fresh_result.grace_period_ends_at == fresh.created_at + timedelta(hours=24)
    assert ready_result.outcome is ClosureCheckOutcome.CLOSED


@pytest.mark.asyncio
async def test_grace_period_is_configurable() -> None:
    service, cases, contributions, lifecycle = _build(grace_period=timedelta(0))
    case = cases.add(_make_case(age=timedelta(minutes=1)))
    contributions.totals[case.case_id] = Decimal("1000.00")

    result = await service.run_once()

    assert result.closed_count == 1
    assert len(lifecycle.requests) == 1
