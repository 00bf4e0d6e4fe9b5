"""Keep each case's derived current amount in line with approved contributions."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal

from charity_cases.application.ports.case_repository_port import CaseRepositoryPort
from charity_cases.application.ports.contribution_repository_port import (
    ContributionRepositoryPort,
)

logger = logging.getLogger(__name__)

AMOUNT_TOLERANCE = Decimal("0.01")


@dataclass(frozen=True)
class AmountReconciliationResult:
    """Counters reported by one reconciliation sweep."""

    scanned: int
    updated_count: int
    error_count: int


class CaseAmountReconciliationService:
    """Recompute current amounts that drifted from the approved contribution sum."""

    def __init__(
        self,
        *,
        case_repository: CaseRepositoryPort,
        contribution_repository: ContributionRepositoryPort,
        tolerance: Decimal = AMOUNT_TOLERANCE,
    ) -> None:
        self._case_repository = case_repository
        self._contribution_repository = contribution_repository
        self._tolerance = tolerance

    async def run_once(self) -> AmountReconciliationResult:
        case_ids = await self._case_repository.list_case_ids()
        updated = 0
        errors = 0
        for case_id in case_ids:
            try:
                case = await self._case_repository.get_case(case_id=case_id)
                if case is None:
                    continue
                total = await self._contribution_repository.sum_approved_amount(case_id=case_id)
                if abs(total - case.current_amount) <= self._tolerance:
                    continue
                await self._case_repository.update_current_amount(
                    case_id=case_id,
                    current_amount=total,
                )
            except Exception:  # noqa: BLE001
                errors += 1
                logger.exception("amount_reconciliation_case_failed case_id=%s", case_id)
                continue

            updated += 1
            logger.info(
                "amount_reconciled case_id=%s previous=%s current=%s",
                case_id,
                case.current_amount,
                total,
            )

        logger.info(
            "amount_reconciliation_finished scanned=%s updated=%s errors=%s",
            len(case_ids),
            updated,
            errors,
        )
        return AmountReconciliationResult(
            scanned=len(case_ids),
            updated_count=updated,
            error_count=errors,
        )
