from __future__ import annotations

from datetime import UTC, datetime, timedelta
from decimal import Decimal
from pathlib import Path
from uuid import UUID, uuid4

import pytest
import sqlalchemy as sa
from alembic.config import Config

from alembic import command
from charity_cases.application.ports.case_repository_port import (
    CaseCreateInput,
    CaseStatusChangeInput,
)
from charity_cases.domain.case_status import CaseStatus, CaseType
from charity_cases.infrastructure.db.case_repository import SqlAlchemyCaseRepository
from charity_cases.infrastructure.db.metadata import case_status_history, cases, users
from charity_cases.infrastructure.db.session import create_session_factory


def _upgrade_head(tmp_path: Path, filename: str) -> tuple[str, str]:
    db_path = tmp_path / filename
    sync_url = f"sqlite+pysqlite:///{db_path}"
    async_url = f"sqlite+aiosqlite:///{db_path}"

    alembic_config = Config("alembic.ini")
    alembic_config.set_main_option("sqlalchemy.url", sync_url)
    command.upgrade(alembic_config, "head")

    return sync_url, async_url


def _insert_user(connection: sa.Connection, *, role: str = "admin") -> UUID:
    user_id = uuid4()
    connection.execute(
        sa.insert(users).values(id=user_id, email=f"{user_id.hex}@example.org", role=role)
    )
    return user_id


def _insert_case(
    connection: sa.Connection,
    *,
    created_by: UUID,
    status: str,
    case_type: str = "one-time",
    created_at: datetime | None = None,
) -> UUID:
    case_id = uuid4()
    values: dict[str, object] = {
        "case_id": case_id,
        "title": "School supplies",
        "case_type": case_type,
        "status": status,
        "target_amount": Decimal("250.00"),
        "created_by": created_by,
    }
    if created_at is not None:
        values["created_at"] = created_at
        values["updated_at"] = created_at
    connection.execute(sa.insert(cases).values(**values))
    return case_id


def _status_change(
    case_id: UUID,
    *,
    expected: str,
    previous: CaseStatus,
    new: CaseStatus,
    changed_by: UUID | None,
    reason: str | None = None,
) -> CaseStatusChangeInput:
    return CaseStatusChangeInput(
        case_id=case_id,
        expected_stored_status=expected,
        previous_status=previous,
        new_status=new,
        changed_by=changed_by,
        system_triggered=changed_by is None,
        change_reason=reason,
    )


@pytest.mark.asyncio
async def test_case_insert_and_lookup(tmp_path: Path) -> None:
    sync_url, async_url = _upgrade_head(tmp_path, "case_insert.db")
    engine = sa.create_engine(sync_url)
    with engine.begin() as connection:
        creator = _insert_user(connection, role="donor")

    repo = SqlAlchemyCaseRepository(create_session_factory(async_url))
    case_id = uuid4()
    created = await repo.create_case(
        CaseCreateInput(
            case_id=case_id,
            title="Orphan sponsorship",
            title_ar="كفالة يتيم",
            case_type=CaseType.RECURRING,
            target_amount=Decimal("1200.50"),
            created_by=creator,
        )
    )
    loaded = await repo.get_case(case_id=case_id)

    assert created.case_id == case_id
    assert created.status is CaseStatus.DRAFT
    assert loaded is not None
    assert loaded.case_type is CaseType.RECURRING
    assert loaded.target_amount == Decimal("1200.50")
    assert loaded.current_amount == Decimal("0")
    assert loaded.title_ar == "كفالة يتيم"
    assert loaded.created_at.tzinfo is not None
    assert await repo.get_case(case_id=uuid4()) is None


@pytest.mark.asyncio
async def test_status_change_updates_case_and_appends_history(tmp_path: Path) -> None:
    sync_url, async_url = _upgrade_head(tmp_path, "case_status_change.db")
    engine = sa.create_engine(sync_url)
    with engine.begin() as connection:
        admin = _insert_user(connection)
        case_id = _insert_case(connection, created_by=admin, status="submitted")

    repo = SqlAlchemyCaseRepository(create_session_factory(async_url))
    applied = await repo.apply_status_change(
        _status_change(
            case_id,
            expected="submitted",
            previous=CaseStatus.SUBMITTED,
            new=CaseStatus.PUBLISHED,
            changed_by=admin,
        )
    )

    loaded = await repo.get_case(case_id=case_id)
    history = await repo.list_status_history(case_id=case_id)

    assert applied is True
    assert loaded is not None
    assert loaded.status is CaseStatus.PUBLISHED
    assert loaded.stored_status == "published"
    assert len(history) == 1
    assert history[0].previous_status is CaseStatus.SUBMITTED
    assert history[0].new_status is CaseStatus.PUBLISHED
    assert history[0].changed_by == admin
    assert history[0].system_triggered is False


@pytest.mark.asyncio
async def test_stale_expected_status_is_rejected_without_history(tmp_path: Path) -> None:
    sync_url, async_url = _upgrade_head(tmp_path, "case_status_conflict.db")
    engine = sa.create_engine(sync_url)
    with engine.begin() as connection:
        admin = _insert_user(connection)
        case_id = _insert_case(connection, created_by=admin, status="under_review")

    repo = SqlAlchemyCaseRepository(create_session_factory(async_url))
    applied = await repo.apply_status_change(
        _status_change(
            case_id,
            expected="submitted",
            previous=CaseStatus.SUBMITTED,
            new=CaseStatus.PUBLISHED,
            changed_by=admin,
        )
    )

    with engine.begin() as connection:
        stored_status = connection.execute(
            sa.select(cases.c.status).where(cases.c.case_id == case_id)
        ).scalar_one()
        history_count = connection.execute(
            sa.select(sa.func.count()).select_from(case_status_history)
        ).scalar_one()

    assert applied is False
    assert stored_status == "under_review"
    assert history_count == 0


@pytest.mark.asyncio
async def test_legacy_alias_rows_are_normalized_and_listed(tmp_path: Path) -> None:
    sync_url, async_url = _upgrade_head(tmp_path, "case_legacy_alias.db")
    engine = sa.create_engine(sync_url)
    now = datetime.now(tz=UTC)
    with engine.begin() as connection:
        admin = _insert_user(connection)
        legacy_id = _insert_case(
            connection,
            created_by=admin,
            status="active",
            created_at=now - timedelta(days=2),
        )
        canonical_id = _insert_case(
            connection,
            created_by=admin,
            status="published",
            created_at=now - timedelta(days=1),
        )
        _insert_case(connection, created_by=admin, status="published", case_type="recurring")
        _insert_case(connection, created_by=admin, status="completed")

    repo = SqlAlchemyCaseRepository(create_session_factory(async_url))
    published = await repo.list_cases_by_type_and_status(
        case_type=CaseType.ONE_TIME,
        status=CaseStatus.PUBLISHED,
    )

    assert [case.case_id for case in published] == [legacy_id, canonical_id]
    assert published[0].status is CaseStatus.PUBLISHED
    assert published[0].stored_status == "active"

    applied = await repo.apply_status_change(
        _status_change(
            legacy_id,
            expected="active",
            previous=CaseStatus.PUBLISHED,
            new=CaseStatus.CLOSED,
            changed_by=None,
            reason="Case automatically closed - funding goal reached (250.00/250.00)",
        )
    )
    closed = await repo.get_case(case_id=legacy_id)

    assert applied is True
    assert closed is not None
    assert closed.stored_status == "closed"


@pytest.mark.asyncio
async def test_history_is_listed_newest_first(tmp_path: Path) -> None:
    sync_url, async_url = _upgrade_head(tmp_path, "case_history_order.db")
    engine = sa.create_engine(sync_url)
    with engine.begin() as connection:
        admin = _insert_user(connection)
        case_id = _insert_case(connection, created_by=admin, status="submitted")

    repo = SqlAlchemyCaseRepository(create_session_factory(async_url))
    await repo.apply_status_change(
        _status_change(
            case_id,
            expected="submitted",
            previous=CaseStatus.SUBMITTED,
            new=CaseStatus.UNDER_REVIEW,
            changed_by=admin,
            reason="Missing documents",
        )
    )
    await repo.apply_status_change(
        _status_change(
            case_id,
            expected="under_review",
            previous=CaseStatus.UNDER_REVIEW,
            new=CaseStatus.PUBLISHED,
            changed_by=admin,
        )
    )

    history = await repo.list_status_history(case_id=case_id)

    assert [entry.new_status for entry in history] == [
        CaseStatus.PUBLISHED,
        CaseStatus.UNDER_REVIEW,
    ]
    assert history[1].change_reason == "Missing documents"


@pytest.mark.asyncio
async def test_current_amount_update_and_case_id_listing(tmp_path: Path) -> None:
    sync_url, async_url = _upgrade_head(tmp_path, "case_amount.db")
    engine = sa.create_engine(sync_url)
    now = datetime.now(tz=UTC)
    with engine.begin() as connection:
        admin = _insert_user(connection)
        older = _insert_case(
            connection,
            created_by=admin,
            status="draft",
            created_at=now - timedelta(hours=3),
        )
        newer = _insert_case(
            connection,
            created_by=admin,
            status="published",
            created_at=now - timedelta(hours=1),
        )

    repo = SqlAlchemyCaseRepository(create_session_factory(async_url))
    await repo.update_current_amount(case_id=newer, current_amount=Decimal("99.95"))

    loaded = await repo.get_case(case_id=newer)

    assert await repo.list_case_ids() == [older, newer]
    assert loaded is not None
    assert loaded.current_amount == Decimal("99.95")
