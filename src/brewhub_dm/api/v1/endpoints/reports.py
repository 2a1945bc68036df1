"""Report submission endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Response, status

from brewhub_dm.api.v1.dependencies import ActiveUserDep, SessionDep
from brewhub_dm.schemas import ReportCreate, ReportResponse, ReportSubmitResponse
from brewhub_dm.services.moderation import ReportService

router = APIRouter(prefix="/messages", tags=["reports"])


@router.post("/reports", response_model=ReportSubmitResponse)
async def submit_report(
    payload: ReportCreate,
    current_user: ActiveUserDep,
    db: SessionDep,
    response: Response,
) -> ReportSubmitResponse:
    """Report a message; resubmitting returns the existing report."""
    report, created = ReportService(db).submit_report(
        current_user.id,
        payload.conversation_id,
        payload.message_id,
        payload.reason,
        payload.detail,
    )
    response.status_code = status.HTTP_201_CREATED if created else status.HTTP_200_OK
    return ReportSubmitResponse(report=ReportResponse.model_validate(report), created=created)
