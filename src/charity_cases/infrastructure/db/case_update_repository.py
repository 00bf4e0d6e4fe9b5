"""SQLAlchemy adapter for the case activity feed."""

from __future__ import annotations

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from charity_cases.application.ports.case_update_repository_port import (
    CaseUpdateCreateInput,
    CaseUpdateRepositoryPort,
)
from charity_cases.infrastructure.db.metadata import case_updates


class SqlAlchemyCaseUpdateRepository(CaseUpdateRepositoryPort):
    """Case update writes backed by SQLAlchemy async sessions."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def append_update(self, payload: CaseUpdateCreateInput) -> int:
        statement = (
            sa.insert(case_updates)
            .values(
                case_id=payload.case_id,
                title=payload.title,
                content=payload.content,
                update_type=payload.update_type.value,
                is_public=payload.is_public,
                created_by=payload.created_by,
            )
            .returning(case_updates.c.id)
        )

        async with self._session_factory() as session:
            result = await session.execute(statement)
            update_id = int(result.scalar_one())
            await session.commit()

        return update_id
