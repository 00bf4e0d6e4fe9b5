"""Port for user lookups used by authorization and notification fan-out."""

from __future__ import annotations

from collections.abc import Collection
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol
from uuid import UUID

from charity_cases.domain.roles import Role


@dataclass(frozen=True)
class UserRecord:
    """User persistence model."""

    user_id: UUID
    email: str
    display_name: str | None
    role: Role
    is_active: bool
    created_at: datetime
    updated_at: datetime


class UserRepositoryPort(Protocol):
    """User repository contract."""

    async def get_by_id(self, *, user_id: UUID) -> UserRecord | None:
        """Return user by id, including inactive users."""

    async def list_active_user_ids(self) -> list[UUID]:
        """Return ids of every active user."""

    async def list_active_user_ids_by_roles(self, *, roles: Collection[Role]) -> list[UUID]:
        """Return ids of active users holding any of the given roles."""
