"""Run-related Pydantic schemas."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel

from bulk_reports.schemas.report import DecodedReport, ReportRequest


class RunCreate(BaseModel):
    """Schema for starting a background report run."""

    request: ReportRequest
    poll_interval: Optional[float] = None
    timeout: Optional[float] = None


class RunResponse(BaseModel):
    """Response after starting a run."""

    run_id: UUID
    status: str


class RunRecord(BaseModel):
    """State of one background report run."""

    run_id: UUID
    kind: str
    status: str  # 'queued', 'running', 'done', 'failed', 'aborted'
    report_id: Optional[str] = None
    error: Optional[str] = None
    error_type: Optional[str] = None
    result: Optional[DecodedReport] = None
    created_at: datetime
    updated_at: datetime


class CancelResponse(BaseModel):
    """Outcome of a remote cancellation request."""

    report_id: str
    cancelled: bool
