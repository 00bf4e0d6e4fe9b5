"""SQLAlchemy adapter for contribution aggregate queries."""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from charity_cases.application.ports.contribution_repository_port import (
    ContributionRepositoryPort,
)
from charity_cases.infrastructure.db.metadata import contributions

APPROVED_STATUS = "approved"


class SqlAlchemyContributionRepository(ContributionRepositoryPort):
    """Contribution queries backed by SQLAlchemy async sessions."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def sum_approved_amount(self, *, case_id: UUID) -> Decimal:
        """Return the approved contribution total for a case."""

        statement = sa.select(
            sa.func.coalesce(sa.func.sum(contributions.c.amount), 0)
        ).where(
            contributions.c.case_id == case_id,
            contributions.c.status == APPROVED_STATUS,
        )

        async with self._session_factory() as session:
            result = await session.execute(statement)

        total = result.scalar_one()
        if isinstance(total, Decimal):
            return total
        return Decimal(str(total))

    async def list_contributor_ids(self, *, case_id: UUID) -> list[UUID]:
        """Return distinct donors with an approved contribution, first contribution first."""

        statement = (
            sa.select(
                contributions.c.donor_id,
                sa.func.min(contributions.c.created_at).label("first_contributed_at"),
            )
            .where(
                contributions.c.case_id == case_id,
                contributions.c.status == APPROVED_STATUS,
            )
            .group_by(contributions.c.donor_id)
            .order_by(sa.text("first_contributed_at"), contributions.c.donor_id)
        )

        async with self._session_factory() as session:
            result = await session.execute(statement)

        return [
            donor_id if isinstance(donor_id, UUID) else UUID(str(donor_id))
            for donor_id in result.scalars().all()
        ]
