"""Port for the external notification delivery channel."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol
from uuid import UUID

from charity_cases.domain.case_status import CaseStatus


class NotificationChannelPort(Protocol):
    """Delivery boundary for email/push/in-app transports."""

    async def notify_case_created(
        self,
        *,
        case_id: UUID,
        title: str,
        title_ar: str | None,
    ) -> None:
        """Broadcast to all users that a case is live."""

    async def notify_case_completed(
        self,
        *,
        case_id: UUID,
        title: str,
        title_ar: str | None,
    ) -> None:
        """Broadcast to all users that a case was closed."""

    async def broadcast_case_status_changed(
        self,
        *,
        case_id: UUID,
        title: str,
        title_ar: str | None,
        from_status: CaseStatus,
        to_status: CaseStatus,
    ) -> None:
        """Broadcast a generic status change to all users."""

    async def notify_case_status_changed(
        self,
        *,
        case_id: UUID,
        title: str,
        title_ar: str | None,
        from_status: CaseStatus,
        to_status: CaseStatus,
        creator_id: UUID,
        recipient_ids: Sequence[UUID],
    ) -> None:
        """Deliver a status change notification to explicit recipients."""
