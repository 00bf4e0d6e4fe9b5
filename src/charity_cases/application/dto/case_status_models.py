"""Pydantic models for case status HTTP endpoints."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from charity_cases.domain.case_status import CaseStatus, CaseType


class StrictModel(BaseModel):
    """Base model with strict unknown-field rejection."""

    model_config = ConfigDict(extra="forbid")


class CaseStatusChangeRequestBody(StrictModel):
    """Status change payload; aliases such as `active` are normalized by the engine."""

    new_status: str = Field(min_length=1)
    change_reason: str | None = None


class CaseResponse(StrictModel):
    """Case fields returned after a status change."""

    case_id: UUID
    title: str
    title_ar: str | None
    case_type: CaseType
    status: CaseStatus
    target_amount: Decimal
    current_amount: Decimal
    created_by: UUID
    assigned_to: UUID | None
    created_at: datetime
    updated_at: datetime


class CaseStatusChangeResponse(StrictModel):
    """Successful status change response."""

    case: CaseResponse


class StatusHistoryItem(StrictModel):
    """One audit-trail row."""

    id: int
    previous_status: CaseStatus | None
    new_status: CaseStatus
    changed_by: UUID | None
    system_triggered: bool
    change_reason: str | None
    changed_at: datetime


class StatusHistoryResponse(StrictModel):
    """Status history, newest first."""

    case_id: UUID
    items: list[StatusHistoryItem]


class AvailableTransitionsResponse(StrictModel):
    """Statuses the caller may currently move the case to."""

    case_id: UUID
    current_status: CaseStatus
    available_statuses: list[CaseStatus]


class ClosureCheckResponse(StrictModel):
    """Single-case automatic closure check result."""

    case_id: UUID
    outcome: str
    closed: bool
    funded_amount: Decimal | None = None
    target_amount: Decimal | None = None
    remaining_amount: Decimal | None = None
    grace_period_ends_at: datetime | None = None
    error: str | None = None
