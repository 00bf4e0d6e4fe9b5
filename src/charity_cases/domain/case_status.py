"""Case status enum and legacy alias normalization for the lifecycle state machine."""

from __future__ import annotations

from enum import StrEnum
from typing import Final


class CaseStatus(StrEnum):
    """Canonical statuses a fundraising case moves through."""

    DRAFT = "draft"
    SUBMITTED = "submitted"
    PUBLISHED = "published"
    UNDER_REVIEW = "under_review"
    CLOSED = "closed"


class CaseType(StrEnum):
    """Fundraising case kinds."""

    ONE_TIME = "one-time"
    RECURRING = "recurring"


class UnknownCaseStatusError(ValueError):
    """Raised when a status string is neither canonical nor a known legacy alias."""

    def __init__(self, value: str) -> None:
        super().__init__(f"Unknown case status: {value!r}")
        self.value = value


LEGACY_STATUS_ALIASES: Final[dict[str, CaseStatus]] = {
    "active": CaseStatus.PUBLISHED,
    "completed": CaseStatus.CLOSED,
    "cancelled": CaseStatus.CLOSED,
}

STATUS_LABELS: Final[dict[CaseStatus, str]] = {
    CaseStatus.DRAFT: "Draft",
    CaseStatus.SUBMITTED: "Submitted",
    CaseStatus.PUBLISHED: "Published",
    CaseStatus.UNDER_REVIEW: "Under Review",
    CaseStatus.CLOSED: "Closed",
}


def normalize_case_status(value: CaseStatus | str) -> CaseStatus:
    """Map a canonical status or legacy alias onto the canonical five-value set."""

    if isinstance(value, CaseStatus):
        return value

    candidate = value.strip().lower()
    alias = LEGACY_STATUS_ALIASES.get(candidate)
    if alias is not None:
        return alias
    try:
        return CaseStatus(candidate)
    except ValueError as error:
        raise UnknownCaseStatusError(value) from error


def status_label(status: CaseStatus) -> str:
    """Return the human-readable label for a canonical status."""

    return STATUS_LABELS[status]


def stored_status_values(status: CaseStatus) -> tuple[str, ...]:
    """Return every persisted value that normalizes to `status`, canonical first."""

    aliases = sorted(alias for alias, target in LEGACY_STATUS_ALIASES.items() if target is status)
    return (status.value, *aliases)
