"""Activity-feed entries generated for case status changes."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from charity_cases.domain.case_status import CaseStatus


class CaseUpdateType(StrEnum):
    """Kinds of case activity-feed updates."""

    PROGRESS = "progress"
    MILESTONE = "milestone"
    GENERAL = "general"
    EMERGENCY = "emergency"


@dataclass(frozen=True)
class StatusUpdateDraft:
    """Case update content derived from a status transition."""

    title: str
    content: str
    update_type: CaseUpdateType
    is_public: bool


def build_status_update(
    *,
    new_status: CaseStatus,
    system_triggered: bool,
    change_reason: str | None = None,
) -> StatusUpdateDraft | None:
    """Return the activity-feed entry for a resulting status, or None when none applies."""

    reason_text = f" Reason: {change_reason}" if change_reason else ""

    if new_status is CaseStatus.PUBLISHED:
        return StatusUpdateDraft(
            title="Case Published!",
            content=(
                "This case has been published and is now accepting donations!"
                f"{reason_text} Thank you for your patience during the review process."
            ),
            update_type=CaseUpdateType.MILESTONE,
            is_public=True,
        )

    if new_status is CaseStatus.UNDER_REVIEW:
        return StatusUpdateDraft(
            title="Case Under Review",
            content=(
                f"This case is currently under review by our team.{reason_text} "
                "We'll provide updates as soon as possible."
            ),
            update_type=CaseUpdateType.GENERAL,
            is_public=True,
        )

    if new_status is CaseStatus.CLOSED and system_triggered:
        return StatusUpdateDraft(
            title="Case Successfully Completed!",
            content=(
                "This case has been automatically closed as the funding goal has been "
                "reached! Thank you to everyone who contributed to making this possible."
            ),
            update_type=CaseUpdateType.MILESTONE,
            is_public=True,
        )

    if new_status is CaseStatus.CLOSED:
        return StatusUpdateDraft(
            title="Case Closed",
            content=(
                f"This case has been closed.{reason_text} "
                "Thank you to everyone who supported this cause."
            ),
            update_type=CaseUpdateType.GENERAL,
            is_public=True,
        )

    if new_status is CaseStatus.SUBMITTED:
        # Internal-only entry; donors never see submissions.
        return StatusUpdateDraft(
            title="Case Submitted for Review",
            content=(
                "This case has been submitted for review by our team. "
                "We'll review it and provide updates soon."
            ),
            update_type=CaseUpdateType.PROGRESS,
            is_public=False,
        )

    return None
