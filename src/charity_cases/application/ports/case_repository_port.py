"""Port for case persistence and status-history operations."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Protocol
from uuid import UUID

from charity_cases.domain.case_status import CaseStatus, CaseType


@dataclass(frozen=True)
class CaseCreateInput:
    """Input payload for creating a case row."""

    case_id: UUID
    title: str
    case_type: CaseType
    target_amount: Decimal
    created_by: UUID
    status: CaseStatus = CaseStatus.DRAFT
    title_ar: str | None = None
    assigned_to: UUID | None = None
    sponsored_by: UUID | None = None
    beneficiary_name: str | None = None
    end_date: datetime | None = None


@dataclass(frozen=True)
class CaseRecord:
    """Case persistence model used across repository boundaries.

    `status` is always canonical; `stored_status` keeps the raw persisted value
    (possibly a legacy alias) for compare-and-set writes.
    """

    case_id: UUID
    title: str
    title_ar: str | None
    case_type: CaseType
    status: CaseStatus
    stored_status: str
    target_amount: Decimal
    current_amount: Decimal
    created_by: UUID
    assigned_to: UUID | None
    sponsored_by: UUID | None
    beneficiary_name: str | None
    end_date: datetime | None
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class CaseStatusChangeInput:
    """Compare-and-set status write plus the audit row recorded with it."""

    case_id: UUID
    expected_stored_status: str
    previous_status: CaseStatus
    new_status: CaseStatus
    changed_by: UUID | None
    system_triggered: bool
    change_reason: str | None


@dataclass(frozen=True)
class StatusHistoryRecord:
    """Append-only audit record for one applied status change."""

    history_id: int
    case_id: UUID
    previous_status: CaseStatus | None
    new_status: CaseStatus
    changed_by: UUID | None
    system_triggered: bool
    change_reason: str | None
    changed_at: datetime


class CaseRepositoryPort(Protocol):
    """Async case repository contract."""

    async def create_case(self, payload: CaseCreateInput) -> CaseRecord:
        """Insert a case row and return the created record."""

    async def get_case(self, *, case_id: UUID) -> CaseRecord | None:
        """Return case by id, or None when it does not exist."""

    async def apply_status_change(self, payload: CaseStatusChangeInput) -> bool:
        """Atomically CAS the status and append history; return whether applied."""

    async def list_cases_by_type_and_status(
        self,
        *,
        case_type: CaseType,
        status: CaseStatus,
    ) -> list[CaseRecord]:
        """List cases of one type whose status normalizes to `status`."""

    async def list_case_ids(self) -> list[UUID]:
        """List every case id, oldest first."""

    async def list_status_history(self, *, case_id: UUID) -> list[StatusHistoryRecord]:
        """Return status history for a case, newest first."""

    async def update_current_amount(self, *, case_id: UUID, current_amount: Decimal) -> None:
        """Set the derived current amount and touch updated_at."""
