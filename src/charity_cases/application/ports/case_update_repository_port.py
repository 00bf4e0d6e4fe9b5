"""Port for the case activity feed."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol
from uuid import UUID

from charity_cases.domain.status_updates import CaseUpdateType


@dataclass(frozen=True)
class CaseUpdateCreateInput:
    """Input payload for appending a case update."""

    case_id: UUID
    title: str
    content: str
    update_type: CaseUpdateType
    is_public: bool
    created_by: UUID | None = None


class CaseUpdateRepositoryPort(Protocol):
    """Async case-update repository contract."""

    async def append_update(self, payload: CaseUpdateCreateInput) -> int:
        """Insert a case update and return its numeric id."""
