"""Port for contribution aggregates consumed by the lifecycle engine."""

from __future__ import annotations

from decimal import Decimal
from typing import Protocol
from uuid import UUID


class ContributionRepositoryPort(Protocol):
    """Read-only contribution queries."""

    async def sum_approved_amount(self, *, case_id: UUID) -> Decimal:
        """Return the sum of approved contribution amounts (0 when none)."""

    async def list_contributor_ids(self, *, case_id: UUID) -> list[UUID]:
        """Return distinct donor ids with an approved contribution to the case."""
