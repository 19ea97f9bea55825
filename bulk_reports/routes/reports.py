"""Report routes."""

import logging
import uuid
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from bulk_reports.errors import (
    Aborted,
    InvalidRequest,
    InvalidState,
    MalformedContent,
    RemoteUnavailable,
    ReportError,
    ReportFailed,
    ReportTimeout,
    UnsupportedCompression,
)
from bulk_reports.schemas.report import (
    DecodedReport,
    ListFilters,
    ReportHandle,
    ReportPage,
    ReportRequest,
    ReportState,
)
from bulk_reports.schemas.run import CancelResponse, RunCreate, RunRecord, RunResponse
from bulk_reports.services.orchestrator import ReportOrchestrator
from bulk_reports.worker import ReportWorker

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reports", tags=["reports"])

_STATUS_BY_ERROR = [
    (InvalidRequest, 400),
    (InvalidState, 400),
    (ReportFailed, 409),
    (Aborted, 409),
    (UnsupportedCompression, 422),
    (MalformedContent, 422),
    (RemoteUnavailable, 502),
    (ReportTimeout, 504),
]


def get_orchestrator(request: Request) -> ReportOrchestrator:
    """Orchestrator created at application startup."""
    return request.app.state.orchestrator


def get_worker(request: Request) -> ReportWorker:
    """Background worker created at application startup."""
    return request.app.state.worker


def to_http_exception(error: ReportError) -> HTTPException:
    """Translate a report failure into an HTTP error response."""
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(error, error_type):
            return HTTPException(status_code=status_code, detail=str(error))
    return HTTPException(status_code=500, detail=str(error))


@router.post("", response_model=ReportHandle)
def submit_report(
    data: ReportRequest,
    orchestrator: ReportOrchestrator = Depends(get_orchestrator),
):
    """Submit a report request without waiting for it."""
    try:
        return orchestrator.submit(data)
    except ReportError as e:
        raise to_http_exception(e)


@router.get("", response_model=ReportPage)
def list_reports(
    kinds: Optional[List[str]] = Query(None),
    states: Optional[List[ReportState]] = Query(None),
    created_after: Optional[datetime] = None,
    created_before: Optional[datetime] = None,
    page_token: Optional[str] = None,
    page_size: Optional[int] = Query(None, ge=1, le=100),
    orchestrator: ReportOrchestrator = Depends(get_orchestrator),
):
    """List reports known to the marketplace."""
    filters = ListFilters(
        kinds=kinds,
        states=states,
        created_after=created_after,
        created_before=created_before,
        page_token=page_token,
        page_size=page_size,
    )
    try:
        return orchestrator.list_reports(filters)
    except ReportError as e:
        raise to_http_exception(e)


@router.get("/latest", response_model=DecodedReport)
def get_latest_report(
    kind: str,
    orchestrator: ReportOrchestrator = Depends(get_orchestrator),
):
    """Download and decode the newest finished report of a kind."""
    try:
        report = orchestrator.latest_completed_report(kind)
    except ReportError as e:
        raise to_http_exception(e)

    if report is None:
        raise HTTPException(status_code=404, detail=f"No completed {kind} report")
    return report


@router.post("/runs", response_model=RunResponse)
def start_run(
    data: RunCreate,
    worker: ReportWorker = Depends(get_worker),
):
    """Start a background run: submit, wait, download and decode."""
    try:
        run_id = worker.start_run(
            data.request,
            poll_interval=data.poll_interval,
            timeout=data.timeout,
        )
    except RuntimeError as e:
        logger.warning(f"Rejected run: {e}")
        raise HTTPException(status_code=503, detail="Service is shutting down")
    record = worker.get_run(run_id)
    return RunResponse(run_id=run_id, status=record.status)


@router.get("/runs", response_model=List[RunRecord])
def list_runs(worker: ReportWorker = Depends(get_worker)):
    """List background runs."""
    return worker.list_runs()


@router.get("/runs/{run_id}", response_model=RunRecord)
def get_run(
    run_id: uuid.UUID,
    worker: ReportWorker = Depends(get_worker),
):
    """Get a background run, including its result once done."""
    record = worker.get_run(run_id)
    if not record:
        raise HTTPException(status_code=404, detail="Run not found")
    return record


@router.delete("/runs/{run_id}")
def abort_run(
    run_id: uuid.UUID,
    worker: ReportWorker = Depends(get_worker),
):
    """Stop waiting for a run. The remote report keeps running."""
    if not worker.abort_run(run_id):
        raise HTTPException(status_code=404, detail="Run not found")
    return {"message": "Run abort requested"}


@router.get("/{report_id}", response_model=ReportHandle)
def get_report(
    report_id: str,
    orchestrator: ReportOrchestrator = Depends(get_orchestrator),
):
    """Get the current status of a report."""
    try:
        return orchestrator.refresh(report_id)
    except ReportError as e:
        raise to_http_exception(e)


@router.delete("/{report_id}", response_model=CancelResponse)
def cancel_report(
    report_id: str,
    orchestrator: ReportOrchestrator = Depends(get_orchestrator),
):
    """Ask the marketplace to cancel a report."""
    cancelled = orchestrator.cancel(report_id)
    return CancelResponse(report_id=report_id, cancelled=cancelled)
