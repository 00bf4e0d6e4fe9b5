"""In-app notification channel persisting one notification row per recipient."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any
from uuid import UUID

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from charity_cases.application.ports.notification_channel_port import NotificationChannelPort
from charity_cases.application.ports.user_repository_port import UserRepositoryPort
from charity_cases.domain.case_status import CaseStatus, status_label
from charity_cases.infrastructure.db.metadata import notifications

logger = logging.getLogger(__name__)


def _display_title(title: str, title_ar: str | None, fallback: str) -> str:
    return title or title_ar or fallback


class InAppNotificationChannel(NotificationChannelPort):
    """Write notifications to the in-app inbox table."""

    def __init__(
        self,
        *,
        session_factory: async_sessionmaker[AsyncSession],
        user_repository: UserRepositoryPort,
    ) -> None:
        self._session_factory = session_factory
        self._user_repository = user_repository

    async def notify_case_created(
        self,
        *,
        case_id: UUID,
        title: str,
        title_ar: str | None,
    ) -> None:
        recipients = await self._user_repository.list_active_user_ids()
        await self._insert(
            recipient_ids=recipients,
            notification_type="case_created",
            title="New Case Available",
            message=_display_title(title, title_ar, "A new case has been created"),
            data={"case_id": str(case_id)},
        )

    async def notify_case_completed(
        self,
        *,
        case_id: UUID,
        title: str,
        title_ar: str | None,
    ) -> None:
        recipients = await self._user_repository.list_active_user_ids()
        await self._insert(
            recipient_ids=recipients,
            notification_type="case_completed",
            title="Case Completed!",
            message=(
                f"{_display_title(title, title_ar, 'A case')} has been completed. "
                "Thank you to everyone who contributed!"
            ),
            data={"case_id": str(case_id)},
        )

    async def broadcast_case_status_changed(
        self,
        *,
        case_id: UUID,
        title: str,
        title_ar: str | None,
        from_status: CaseStatus,
        to_status: CaseStatus,
    ) -> None:
        recipients = await self._user_repository.list_active_user_ids()
        await self._insert_status_change(
            recipient_ids=recipients,
            case_id=case_id,
            title=title,
            title_ar=title_ar,
            from_status=from_status,
            to_status=to_status,
            creator_id=None,
        )

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
        await self._insert_status_change(
            recipient_ids=recipient_ids,
            case_id=case_id,
            title=title,
            title_ar=title_ar,
            from_status=from_status,
            to_status=to_status,
            creator_id=creator_id,
        )

    async def _insert_status_change(
        self,
        *,
        recipient_ids: Sequence[UUID],
        case_id: UUID,
        title: str,
        title_ar: str | None,
        from_status: CaseStatus,
        to_status: CaseStatus,
        creator_id: UUID | None,
    ) -> None:
        await self._insert(
            recipient_ids=recipient_ids,
            notification_type="case_status_changed",
            title=f"Case Status Changed: {_display_title(title, title_ar, 'Case')}",
            message=(
                f"Status changed from {status_label(from_status)} to {status_label(to_status)}"
            ),
            data={
                "case_id": str(case_id),
                "old_status": from_status.value,
                "new_status": to_status.value,
                "creator_id": str(creator_id) if creator_id is not None else None,
            },
        )

    async def _insert(
        self,
        *,
        recipient_ids: Sequence[UUID],
        notification_type: str,
        title: str,
        message: str,
        data: dict[str, Any],
    ) -> None:
        if not recipient_ids:
            logger.info("in_app_notification_no_recipients type=%s", notification_type)
            return

        rows = [
            {
                "recipient_id": recipient_id,
                "notification_type": notification_type,
                "title": title,
                "message": message,
                "data": data,
            }
            for recipient_id in recipient_ids
        ]
        async with self._session_factory() as session:
            await session.execute(sa.insert(notifications), rows)
            await session.commit()

        logger.info(
            "in_app_notification_sent type=%s case_id=%s recipients=%s",
            notification_type,
            data.get("case_id"),
            len(rows),
        )
