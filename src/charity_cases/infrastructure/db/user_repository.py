"""SQLAlchemy adapter for user lookup queries."""

from __future__ import annotations

from collections.abc import Collection
from datetime import datetime
from typing import cast
from uuid import UUID

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from charity_cases.application.ports.user_repository_port import UserRecord, UserRepositoryPort
from charity_cases.domain.roles import Role
from charity_cases.infrastructure.db.metadata import users


class SqlAlchemyUserRepository(UserRepositoryPort):
    """User repository backed by SQLAlchemy async sessions."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get_by_id(self, *, user_id: UUID) -> UserRecord | None:
        """Return user by id, including inactive users."""

        statement = sa.select(
            users.c.id,
            users.c.email,
            users.c.display_name,
            users.c.role,
            users.c.is_active,
            users.c.created_at,
            users.c.updated_at,
        ).where(users.c.id == user_id).limit(1)

        async with self._session_factory() as session:
            result = await session.execute(statement)

        row = result.mappings().first()
        if row is None:
            return None
        return _to_user_record(row)

    async def list_active_user_ids(self) -> list[UUID]:
        """Return ids of every active user, oldest account first."""

        statement = (
            sa.select(users.c.id)
            .where(users.c.is_active.is_(True))
            .order_by(users.c.created_at.asc(), users.c.id.asc())
        )

        async with self._session_factory() as session:
            result = await session.execute(statement)

        return [_as_uuid(user_id) for user_id in result.scalars().all()]

    async def list_active_user_ids_by_roles(self, *, roles: Collection[Role]) -> list[UUID]:
        """Return ids of active users holding any of the given roles."""

        if not roles:
            return []

        statement = (
            sa.select(users.c.id)
            .where(
                users.c.is_active.is_(True),
                users.c.role.in_([role.value for role in roles]),
            )
            .order_by(users.c.created_at.asc(), users.c.id.asc())
        )

        async with self._session_factory() as session:
            result = await session.execute(statement)

        return [_as_uuid(user_id) for user_id in result.scalars().all()]


def _as_uuid(value: object) -> UUID:
    return value if isinstance(value, UUID) else UUID(str(value))


def _to_user_record(row: sa.RowMapping) -> UserRecord:
    return UserRecord(
        user_id=_as_uuid(row["id"]),
        email=cast(str, row["email"]),
        display_name=cast(str | None, row["display_name"]),
        role=Role(cast(str, row["role"])),
        is_active=bool(row["is_active"]),
        created_at=cast(datetime, row["created_at"]),
        updated_at=cast(datetime, row["updated_at"]),
    )
