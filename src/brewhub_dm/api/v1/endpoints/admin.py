"""Superuser review of message reports."""

from __future__ import annotations

from typing import Annotated, Literal

from fastapi import APIRouter, Query

from brewhub_dm.api.v1.dependencies import SessionDep, SuperuserDep
from brewhub_dm.schemas import (
    ReportContextResponse,
    ReportListResponse,
    ReportResponse,
    ReportUpdate,
)
from brewhub_dm.services.moderation import ReportService

router = APIRouter(prefix="/admin/messages/reports", tags=["moderation"])


@router.get("", response_model=ReportListResponse)
async def list_reports(
    reviewer: SuperuserDep,
    db: SessionDep,
    status: Literal["open", "resolved", "dismissed"] | None = None,
    limit: Annotated[int, Query(ge=1, le=200)] = 200,
) -> ReportListResponse:
    """Return the review queue, newest first."""
    return ReportListResponse(reports=ReportService(db).review_queue(reviewer, status=status, limit=limit))


@router.patch("/{report_id}", response_model=ReportResponse)
async def update_report(
    report_id: str,
    payload: ReportUpdate,
    reviewer: SuperuserDep,
    db: SessionDep,
) -> ReportResponse:
    """Resolve or dismiss an open report."""
    report = ReportService(db).update_status(reviewer, report_id, payload.status, payload.resolution_note)
    return ReportResponse.model_validate(report)


@router.get("/{report_id}/context", response_model=ReportContextResponse)
async def report_context(report_id: str, reviewer: SuperuserDep, db: SessionDep) -> ReportContextResponse:
    """Return the implicated conversation for manual review."""
    return ReportService(db).context_fetch(reviewer, report_id)
