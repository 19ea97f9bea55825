"""Typed calls to the reports API on top of a ReportsTransport."""

import logging
import urllib.parse
from typing import Any, Dict, Optional

from pydantic import ValidationError

from bulk_reports.errors import InvalidRequest, RemoteUnavailable
from bulk_reports.schemas.report import (
    DocumentDescriptor,
    ListFilters,
    ReportHandle,
    ReportPage,
    ReportState,
    kind_value,
)
from bulk_reports.services.request_builder import format_timestamp
from bulk_reports.services.transport import ReportsTransport, TransportError, TransportResponse

logger = logging.getLogger(__name__)

_STATE_BY_LITERAL = {state.value: state for state in ReportState}


def parse_report_state(value: Any) -> ReportState:
    """
    Map a remote processingStatus literal to a ReportState.

    Unknown literals map to FATAL so a poller can never spin on them.

    Args:
        value: Remote status literal

    Returns:
        Matching ReportState, or FATAL
    """
    return _STATE_BY_LITERAL.get(value, ReportState.FATAL)


def handle_from_payload(payload: Any, kind: Optional[str] = None) -> ReportHandle:
    """
    Build a ReportHandle from a report payload of the reports API.

    Keeps the handle invariant: document_id is set if and only if the
    status is DONE.

    Args:
        payload: Report object returned by the API
        kind: Report kind to use when the payload does not echo it

    Returns:
        ReportHandle

    Raises:
        RemoteUnavailable: If the payload is not a usable report object
    """
    if not isinstance(payload, dict) or not payload.get("reportId"):
        raise RemoteUnavailable(f"Malformed report payload: {payload!r}")

    raw_status = payload.get("processingStatus")
    status = parse_report_state(raw_status)
    document_id = payload.get("reportDocumentId") or None
    diagnostic = None

    if raw_status not in _STATE_BY_LITERAL:
        diagnostic = f"Unrecognized processing status {raw_status!r}"
        logger.warning(f"Report {payload['reportId']}: {diagnostic}, treating as FATAL")
    elif status == ReportState.DONE and document_id is None:
        status = ReportState.FATAL
        diagnostic = "Report is DONE but has no document"
        logger.warning(f"Report {payload['reportId']}: {diagnostic}, treating as FATAL")

    if status != ReportState.DONE:
        document_id = None

    try:
        return ReportHandle(
            report_id=payload["reportId"],
            kind=payload.get("reportType") or kind or "",
            status=status,
            created_at=payload.get("createdTime"),
            completed_at=payload.get("processingEndTime") or payload.get("completedTime"),
            document_id=document_id,
            diagnostic=diagnostic,
        )
    except ValidationError as e:
        raise RemoteUnavailable(f"Malformed report payload: {e}") from e


def _quote(value: str) -> str:
    return urllib.parse.quote(value, safe="")


class ReportsApi:
    """Reports API endpoints, with transport failures surfaced as RemoteUnavailable."""

    def __init__(self, transport: ReportsTransport, api_version: str = "2021-06-30"):
        self.transport = transport
        self.api_version = api_version
        self.base_path = f"/reports/{api_version}"

    def _send(self, method: str, path: str, **kwargs) -> TransportResponse:
        try:
            return self.transport.send(method, path, **kwargs)
        except TransportError as e:
            raise RemoteUnavailable(f"{method} {path} failed: {e}", e.status_code) from e

    def create(self, body: Dict[str, Any]) -> ReportHandle:
        """POST a createReport body and return the new handle."""
        response = self._send("POST", f"{self.base_path}/reports", json=body)
        return handle_from_payload(response.data, kind=body.get("reportType"))

    def get_status(self, report_id: str) -> ReportHandle:
        """Fetch the current state of a report."""
        if not report_id:
            raise InvalidRequest("Report ID is required")
        response = self._send("GET", f"{self.base_path}/reports/{_quote(report_id)}")
        return handle_from_payload(response.data)

    def get_document(self, document_id: str) -> DocumentDescriptor:
        """Resolve a report document ID into its download descriptor."""
        response = self._send("GET", f"{self.base_path}/documents/{_quote(document_id)}")
        data = response.data
        if not isinstance(data, dict) or not data.get("url"):
            raise RemoteUnavailable(f"Malformed document payload for {document_id}: {data!r}")

        return DocumentDescriptor(
            document_id=data.get("reportDocumentId") or document_id,
            download_url=data["url"],
            compression=data.get("compressionAlgorithm"),
            content_type=data.get("contentType") or "text/plain",
        )

    def fetch_raw(self, url: str) -> bytes:
        """Download a document URL."""
        try:
            return self.transport.fetch_raw(url)
        except TransportError as e:
            raise RemoteUnavailable(f"Report download failed: {e}", e.status_code) from e

    def list(self, filters: ListFilters, default_page_size: int = 10) -> ReportPage:
        """
        List reports using the remote filters.

        Args:
            filters: Listing filters
            default_page_size: Page size when the filters set none

        Returns:
            ReportPage with the handles and next page token
        """
        params: Dict[str, Any] = {"pageSize": filters.page_size or default_page_size}

        if filters.kinds:
            params["reportTypes"] = ",".join(kind_value(k) for k in filters.kinds)
        if filters.states:
            params["processingStatuses"] = ",".join(s.value for s in filters.states)
        if filters.created_after:
            params["createdSince"] = format_timestamp(filters.created_after)
        if filters.created_before:
            params["createdUntil"] = format_timestamp(filters.created_before)
        if filters.page_token:
            params["nextToken"] = filters.page_token

        response = self._send("GET", f"{self.base_path}/reports", params=params)
        data = response.data if isinstance(response.data, dict) else {}

        return ReportPage(
            handles=[handle_from_payload(item) for item in data.get("reports") or []],
            next_page_token=data.get("nextToken"),
        )

    def cancel(self, report_id: str) -> None:
        """DELETE a report. Raises RemoteUnavailable when the API refuses."""
        if not report_id:
            raise InvalidRequest("Report ID is required")
        self._send("DELETE", f"{self.base_path}/reports/{_quote(report_id)}")
