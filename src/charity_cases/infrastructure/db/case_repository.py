"""SQLAlchemy adapter for case repository operations."""

from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal
from typing import Any, cast
from uuid import UUID

import sqlalchemy as sa
from sqlalchemy.engine import CursorResult, RowMapping
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from charity_cases.application.ports.case_repository_port import (
    CaseCreateInput,
    CaseRecord,
    CaseRepositoryPort,
    CaseStatusChangeInput,
    StatusHistoryRecord,
)
from charity_cases.domain.case_status import (
    CaseStatus,
    CaseType,
    normalize_case_status,
    stored_status_values,
)
from charity_cases.infrastructure.db.metadata import case_status_history, cases

_CASE_COLUMNS = (
    cases.c.case_id,
    cases.c.title,
    cases.c.title_ar,
    cases.c.case_type,
    cases.c.status,
    cases.c.target_amount,
    cases.c.current_amount,
    cases.c.created_by,
    cases.c.assigned_to,
    cases.c.sponsored_by,
    cases.c.beneficiary_name,
    cases.c.end_date,
    cases.c.created_at,
    cases.c.updated_at,
)


def _as_utc(value: datetime) -> datetime:
    # SQLite returns naive timestamps; they are written as UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def _as_utc_or_none(value: datetime | None) -> datetime | None:
    return _as_utc(value) if value is not None else None


def _to_decimal(value: object) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value if value is not None else 0))


def _to_case_record(row: RowMapping) -> CaseRecord:
    stored_status = cast(str, row["status"])
    return CaseRecord(
        case_id=cast("Any", row["case_id"]),
        title=cast(str, row["title"]),
        title_ar=cast(str | None, row["title_ar"]),
        case_type=CaseType(cast(str, row["case_type"])),
        status=normalize_case_status(stored_status),
        stored_status=stored_status,
        target_amount=_to_decimal(row["target_amount"]),
        current_amount=_to_decimal(row["current_amount"]),
        created_by=cast("Any", row["created_by"]),
        assigned_to=cast("Any", row["assigned_to"]),
        sponsored_by=cast("Any", row["sponsored_by"]),
        beneficiary_name=cast(str | None, row["beneficiary_name"]),
        end_date=_as_utc_or_none(cast(datetime | None, row["end_date"])),
        created_at=_as_utc(cast(datetime, row["created_at"])),
        updated_at=_as_utc(cast(datetime, row["updated_at"])),
    )


def _to_history_record(row: RowMapping) -> StatusHistoryRecord:
    previous = cast(str | None, row["previous_status"])
    return StatusHistoryRecord(
        history_id=int(row["id"]),
        case_id=cast("Any", row["case_id"]),
        previous_status=normalize_case_status(previous) if previous is not None else None,
        new_status=normalize_case_status(cast(str, row["new_status"])),
        changed_by=cast("Any", row["changed_by"]),
        system_triggered=bool(row["system_triggered"]),
        change_reason=cast(str | None, row["change_reason"]),
        changed_at=_as_utc(cast(datetime, row["changed_at"])),
    )


class SqlAlchemyCaseRepository(CaseRepositoryPort):
    """Case repository backed by SQLAlchemy async sessions."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def create_case(self, payload: CaseCreateInput) -> CaseRecord:
        """Insert a new case row and return the created case record."""

        statement = (
            sa.insert(cases)
            .values(
                case_id=payload.case_id,
                title=payload.title,
                title_ar=payload.title_ar,
                case_type=payload.case_type.value,
                status=payload.status.value,
                target_amount=payload.target_amount,
                created_by=payload.created_by,
                assigned_to=payload.assigned_to,
                sponsored_by=payload.sponsored_by,
                beneficiary_name=payload.beneficiary_name,
                end_date=payload.end_date,
            )
            .returning(*_CASE_COLUMNS)
        )

        async with self._session_factory() as session:
            result = await session.execute(statement)
            row = result.mappings().one()
            await session.commit()

        return _to_case_record(row)

    async def get_case(self, *, case_id: UUID) -> CaseRecord | None:
        """Return case by id, or None when it does not exist."""

        statement = sa.select(*_CASE_COLUMNS).where(cases.c.case_id == case_id).limit(1)

        async with self._session_factory() as session:
            result = await session.execute(statement)

        row = result.mappings().first()
        if row is None:
            return None
        return _to_case_record(row)

    async def apply_status_change(self, payload: CaseStatusChangeInput) -> bool:
        """Compare-and-set the status and append history in one transaction."""

        update_statement = (
            sa.update(cases)
            .where(
                cases.c.case_id == payload.case_id,
                cases.c.status == payload.expected_stored_status,
            )
            .values(
                status=payload.new_status.value,
                updated_at=sa.func.current_timestamp(),
            )
        )
        history_statement = sa.insert(case_status_history).values(
            case_id=payload.case_id,
            previous_status=payload.previous_status.value,
            new_status=payload.new_status.value,
            changed_by=payload.changed_by,
            system_triggered=payload.system_triggered,
            change_reason=payload.change_reason,
        )

        async with self._session_factory() as session:
            async with session.begin():
                result = cast(CursorResult[Any], await session.execute(update_statement))
                if int(result.rowcount or 0) != 1:
                    return False
                await session.execute(history_statement)

        return True

    async def list_cases_by_type_and_status(
        self,
        *,
        case_type: CaseType,
        status: CaseStatus,
    ) -> list[CaseRecord]:
        """List cases of one type whose stored status normalizes to `status`."""

        statement = (
            sa.select(*_CASE_COLUMNS)
            .where(
                cases.c.case_type == case_type.value,
                cases.c.status.in_(stored_status_values(status)),
            )
            .order_by(cases.c.created_at.asc(), cases.c.case_id.asc())
        )

        async with self._session_factory() as session:
            result = await session.execute(statement)

        return [_to_case_record(row) for row in result.mappings().all()]

    async def list_case_ids(self) -> list[UUID]:
        """List every case id, oldest first."""

        statement = sa.select(cases.c.case_id).order_by(
            cases.c.created_at.asc(),
            cases.c.case_id.asc(),
        )

        async with self._session_factory() as session:
            result = await session.execute(statement)

        return [cast(UUID, case_id) for case_id in result.scalars().all()]

    async def list_status_history(self, *, case_id: UUID) -> list[StatusHistoryRecord]:
        """Return status history for a case, newest first."""

        statement = (
            sa.select(
                case_status_history.c.id,
                case_status_history.c.case_id,
                case_status_history.c.previous_status,
                case_status_history.c.new_status,
                case_status_history.c.changed_by,
                case_status_history.c.system_triggered,
                case_status_history.c.change_reason,
                case_status_history.c.changed_at,
            )
            .where(case_status_history.c.case_id == case_id)
            .order_by(case_status_history.c.changed_at.desc(), case_status_history.c.id.desc())
        )

        async with self._session_factory() as session:
            result = await session.execute(statement)

        return [_to_history_record(row) for row in result.mappings().all()]

    async def update_current_amount(self, *, case_id: UUID, current_amount: Decimal) -> None:
        """Set the derived current amount and touch updated_at."""

        statement = (
            sa.update(cases)
            .where(cases.c.case_id == case_id)
            .values(current_amount=current_amount, updated_at=sa.func.current_timestamp())
        )

        async with self._session_factory() as session:
            await session.execute(statement)
            await session.commit()
