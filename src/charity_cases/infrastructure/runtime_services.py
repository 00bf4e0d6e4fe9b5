"""Composition of repositories and lifecycle services shared by the API and scheduler."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from charity_cases.application.ports.notification_channel_port import NotificationChannelPort
from charity_cases.application.services.amount_reconciliation_service import (
    CaseAmountReconciliationService,
)
from charity_cases.application.services.automatic_closure_service import (
    DEFAULT_GRACE_PERIOD,
    AutomaticClosureService,
)
from charity_cases.application.services.background_tasks import DetachedTaskRunner
from charity_cases.application.services.case_lifecycle_service import CaseLifecycleService
from charity_cases.application.services.notification_dispatcher import NotificationDispatcher
from charity_cases.application.services.notification_rule_matcher import (
    DEFAULT_RULES_CACHE_TTL_SECONDS,
    NotificationRuleMatcher,
)
from charity_cases.infrastructure.db.case_repository import SqlAlchemyCaseRepository
from charity_cases.infrastructure.db.case_update_repository import (
    SqlAlchemyCaseUpdateRepository,
)
from charity_cases.infrastructure.db.contribution_repository import (
    SqlAlchemyContributionRepository,
)
from charity_cases.infrastructure.db.notification_rule_repository import (
    SqlAlchemyNotificationRuleRepository,
)
from charity_cases.infrastructure.db.user_repository import SqlAlchemyUserRepository
from charity_cases.infrastructure.notifications.in_app_channel import InAppNotificationChannel


@dataclass(frozen=True)
class LifecycleRuntimeServices:
    """Composed lifecycle services and the repositories behind them."""

    case_repository: SqlAlchemyCaseRepository
    user_repository: SqlAlchemyUserRepository
    contribution_repository: SqlAlchemyContributionRepository
    task_runner: DetachedTaskRunner
    rule_matcher: NotificationRuleMatcher
    lifecycle_service: CaseLifecycleService
    closure_service: AutomaticClosureService
    reconciliation_service: CaseAmountReconciliationService


def build_lifecycle_runtime_services(
    *,
    session_factory: async_sessionmaker[AsyncSession],
    grace_period: timedelta = DEFAULT_GRACE_PERIOD,
    rules_cache_ttl_seconds: float = DEFAULT_RULES_CACHE_TTL_SECONDS,
    channel: NotificationChannelPort | None = None,
) -> LifecycleRuntimeServices:
    """Wire SQLAlchemy adapters into the lifecycle engine and its jobs."""

    case_repository = SqlAlchemyCaseRepository(session_factory)
    user_repository = SqlAlchemyUserRepository(session_factory)
    contribution_repository = SqlAlchemyContributionRepository(session_factory)
    task_runner = DetachedTaskRunner()
    rule_matcher = NotificationRuleMatcher(
        rule_repository=SqlAlchemyNotificationRuleRepository(session_factory),
        cache_ttl_seconds=rules_cache_ttl_seconds,
    )
    dispatcher = NotificationDispatcher(
        rule_matcher=rule_matcher,
        contribution_repository=contribution_repository,
        user_repository=user_repository,
        channel=channel
        or InAppNotificationChannel(
            session_factory=session_factory,
            user_repository=user_repository,
        ),
    )
    lifecycle_service = CaseLifecycleService(
        case_repository=case_repository,
        user_repository=user_repository,
        case_update_repository=SqlAlchemyCaseUpdateRepository(session_factory),
        notification_dispatcher=dispatcher,
        task_runner=task_runner,
    )
    return LifecycleRuntimeServices(
        case_repository=case_repository,
        user_repository=user_repository,
        contribution_repository=contribution_repository,
        task_runner=task_runner,
        rule_matcher=rule_matcher,
        lifecycle_service=lifecycle_service,
        closure_service=AutomaticClosureService(
            case_repository=case_repository,
            contribution_repository=contribution_repository,
            lifecycle_service=lifecycle_service,
            grace_period=grace_period,
        ),
        reconciliation_service=CaseAmountReconciliationService(
            case_repository=case_repository,
            contribution_repository=contribution_repository,
        ),
    )
