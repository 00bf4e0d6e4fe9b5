"""FastAPI router for case status lifecycle endpoints."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, HTTPException, Request

from charity_cases.application.dto.case_status_models import (
    AvailableTransitionsResponse,
    CaseResponse,
    CaseStatusChangeRequestBody,
    CaseStatusChangeResponse,
    ClosureCheckResponse,
    StatusHistoryItem,
    StatusHistoryResponse,
)
from charity_cases.application.ports.case_repository_port import CaseRecord
from charity_cases.application.services.automatic_closure_service import (
    AutomaticClosureService,
    ClosureCheckOutcome,
)
from charity_cases.application.services.case_lifecycle_service import (
    CaseLifecycleService,
    CaseStatusChangeOutcome,
    CaseStatusChangeRequest,
)
from charity_cases.domain.case_status import CaseStatus
from charity_cases.infrastructure.http.actor_header import (
    ACTOR_HEADER,
    InvalidActorError,
    MissingActorError,
    extract_actor_user_id,
)

_OUTCOME_STATUS_CODES = {
    CaseStatusChangeOutcome.CASE_NOT_FOUND: 404,
    CaseStatusChangeOutcome.INVALID_TRANSITION: 400,
    CaseStatusChangeOutcome.REASON_REQUIRED: 400,
    CaseStatusChangeOutcome.STATUS_CONFLICT: 409,
    CaseStatusChangeOutcome.PERSISTENCE_FAILURE: 500,
}


def build_case_status_router(
    *,
    lifecycle_service: CaseLifecycleService,
    closure_service: AutomaticClosureService,
) -> APIRouter:
    """Build router exposing case status change, history, and closure-check endpoints."""

    router = APIRouter(tags=["case-status"])

    def _require_actor(request: Request) -> UUID:
        try:
            return extract_actor_user_id(request.headers.get(ACTOR_HEADER))
        except MissingActorError as exc:
            raise HTTPException(status_code=401, detail=str(exc)) from exc
        except InvalidActorError as exc:
            raise HTTPException(status_code=401, detail=str(exc)) from exc

    @router.patch("/cases/{case_id}/status", response_model=CaseStatusChangeResponse)
    async def change_status(
        request: Request,
        case_id: UUID,
        body: CaseStatusChangeRequestBody,
    ) -> CaseStatusChangeResponse:
        actor_user_id = _require_actor(request)

        # Only the closure job may act as the system.
        result = await lifecycle_service.change_case_status(
            CaseStatusChangeRequest(
                case_id=case_id,
                new_status=body.new_status,
                changed_by=actor_user_id,
                system_triggered=False,
                change_reason=body.change_reason,
            )
        )
        if not result.success or result.case is None:
            status_code = _OUTCOME_STATUS_CODES.get(result.outcome, 500)
            raise HTTPException(status_code=status_code, detail=result.error)

        return CaseStatusChangeResponse(case=_to_case_response(result.case))

    @router.get("/cases/{case_id}/status/history", response_model=StatusHistoryResponse)
    async def get_status_history(request: Request, case_id: UUID) -> StatusHistoryResponse:
        _require_actor(request)

        history = await lifecycle_service.get_status_history(case_id=case_id)
        if history is None:
            raise HTTPException(status_code=404, detail="Case not found")

        return StatusHistoryResponse(
            case_id=case_id,
            items=[
                StatusHistoryItem(
                    id=entry.history_id,
                    previous_status=entry.previous_status,
                    new_status=entry.new_status,
                    changed_by=entry.changed_by,
                    system_triggered=entry.system_triggered,
                    change_reason=entry.change_reason,
                    changed_at=entry.changed_at,
                )
                for entry in history
            ],
        )

    @router.get(
        "/cases/{case_id}/status/transitions",
        response_model=AvailableTransitionsResponse,
    )
    async def get_available_transitions(
        request: Request,
        case_id: UUID,
    ) -> AvailableTransitionsResponse:
        actor_user_id = _require_actor(request)

        available = await lifecycle_service.get_available_transitions(
            case_id=case_id,
            actor_user_id=actor_user_id,
        )
        if available is None:
            raise HTTPException(status_code=404, detail="Case not found")

        case, statuses = available
        return AvailableTransitionsResponse(
            case_id=case.case_id,
            current_status=case.status,
            available_statuses=[status for status in CaseStatus if status in statuses],
        )

    @router.post(
        "/cases/{case_id}/automatic-closure-check",
        response_model=ClosureCheckResponse,
    )
    async def check_automatic_closure(request: Request, case_id: UUID) -> ClosureCheckResponse:
        _require_actor(request)

        result = await closure_service.check_case(case_id=case_id)
        if result.outcome is ClosureCheckOutcome.CASE_NOT_FOUND:
            raise HTTPException(status_code=404, detail=result.error)

        return ClosureCheckResponse(
            case_id=result.case_id,
            outcome=result.outcome.value,
            closed=result.outcome is ClosureCheckOutcome.CLOSED,
            funded_amount=result.funded_amount,
            target_amount=result.target_amount,
            remaining_amount=result.remaining_amount,
            grace_period_ends_at=result.grace_period_ends_at,
            error=result.error,
        )

    return router


def _to_case_response(case: CaseRecord) -> CaseResponse:
    return CaseResponse(
        case_id=case.case_id,
        title=case.title,
        title_ar=case.title_ar,
        case_type=case.case_type,
        status=case.status,
        target_amount=case.target_amount,
        current_amount=case.current_amount,
        created_by=case.created_by,
        assigned_to=case.assigned_to,
        created_at=case.created_at,
        updated_at=case.updated_at,
    )
