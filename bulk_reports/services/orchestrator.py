"""Report lifecycle workflows: submit, wait, download, decode, list, cancel."""

import logging
import threading
import time
from datetime import datetime, timezone
from typing import Callable, List, Optional, Sequence, Union

from bulk_reports.config import settings
from bulk_reports.errors import InvalidRequest, RemoteUnavailable, ReportFailed, ReportTimeout
from bulk_reports.schemas.report import (
    DecodedReport,
    ListFilters,
    ReportHandle,
    ReportKind,
    ReportPage,
    ReportRequest,
    ReportState,
)
from bulk_reports.services.decoder import decode
from bulk_reports.services.documents import DocumentResolver
from bulk_reports.services.poller import ReportPoller, Sleeper, cancellable_sleep
from bulk_reports.services.reports_api import ReportsApi
from bulk_reports.services.request_builder import build_request_body
from bulk_reports.services.transport import ReportsTransport

logger = logging.getLogger(__name__)

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _completion_key(handle: ReportHandle) -> datetime:
    completed = handle.completed_at
    if completed is None:
        return _EPOCH
    if completed.tzinfo is None:
        return completed.replace(tzinfo=timezone.utc)
    return completed


class ReportOrchestrator:
    """
    Entry point for report retrieval against one reports API transport.

    Each instance owns its transport; nothing is shared between instances.
    Several lifecycles may run on one instance concurrently as long as the
    transport tolerates concurrent use.
    """

    def __init__(
        self,
        transport: ReportsTransport,
        default_scope_ids: Optional[Sequence[str]] = None,
        api_version: Optional[str] = None,
        poll_interval: Optional[float] = None,
        timeout: Optional[float] = None,
        page_size: Optional[int] = None,
        cancel_on_timeout: Optional[bool] = None,
        clock: Callable[[], float] = time.monotonic,
        sleeper: Sleeper = cancellable_sleep,
    ):
        """
        Initialize the orchestrator.

        Args:
            transport: Authenticated reports API transport
            default_scope_ids: Marketplace IDs for requests that name none
            api_version: Reports API version segment
            poll_interval: Default seconds between status refreshes
            timeout: Default seconds to wait for completion
            page_size: Default listing page size
            cancel_on_timeout: Cancel the remote report when waiting times out
            clock: Monotonic clock used for deadlines
            sleeper: Sleep function used between polls
        """
        if default_scope_ids is None:
            default_scope_ids = [settings.DEFAULT_MARKETPLACE_ID]

        self.default_scope_ids = list(default_scope_ids)
        self.poll_interval = poll_interval if poll_interval is not None else settings.REPORT_POLL_INTERVAL
        self.timeout = timeout if timeout is not None else settings.REPORT_TIMEOUT
        self.page_size = page_size or settings.REPORT_PAGE_SIZE
        self.cancel_on_timeout = (
            cancel_on_timeout if cancel_on_timeout is not None else settings.REPORT_CANCEL_ON_TIMEOUT
        )

        self.api = ReportsApi(transport, api_version or settings.REPORTS_API_VERSION)
        self.poller = ReportPoller(self.api, clock=clock, sleeper=sleeper)
        self.documents = DocumentResolver(self.api)

    def submit(self, request: ReportRequest) -> ReportHandle:
        """
        Submit a report request.

        Args:
            request: Report request

        Returns:
            Handle in its initial state (normally QUEUED)

        Raises:
            InvalidRequest: If the request does not validate
            RemoteUnavailable: If the create call fails
        """
        body = build_request_body(request, self.default_scope_ids)
        handle = self.api.create(body)
        logger.info(f"Submitted report {handle.report_id} ({handle.kind}): {handle.status.value}")
        return handle

    def refresh(self, report_id: str) -> ReportHandle:
        """Fetch the current handle of a report."""
        return self.api.get_status(report_id)

    def await_completion(
        self,
        handle: ReportHandle,
        poll_interval: Optional[float] = None,
        timeout: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> ReportHandle:
        """Poll a report until terminal; see ReportPoller.await_completion."""
        return self.poller.await_completion(
            handle,
            poll_interval=self.poll_interval if poll_interval is None else poll_interval,
            timeout=self.timeout if timeout is None else timeout,
            cancel_event=cancel_event,
        )

    def fetch_document(self, document_id: str):
        """Download a document of a DONE report as (bytes, content type)."""
        return self.documents.fetch_document(document_id)

    def decode(self, raw, content_type: str) -> DecodedReport:
        """Decode downloaded report content."""
        return decode(raw, content_type)

    def run_to_completion(
        self,
        request: ReportRequest,
        poll_interval: Optional[float] = None,
        timeout: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
        on_submitted: Optional[Callable[[ReportHandle], None]] = None,
    ) -> DecodedReport:
        """
        Submit a report, wait for it, then download and decode its document.

        Args:
            request: Report request
            poll_interval: Seconds between status refreshes
            timeout: Seconds to wait for completion
            cancel_event: Set by the caller to stop waiting
            on_submitted: Called with the handle right after submission

        Returns:
            DecodedReport of the finished report

        Raises:
            ReportFailed: If the report ends CANCELLED or FATAL
            ReportTimeout: If the report is still running at the deadline
            Aborted: If cancel_event is set while waiting
            InvalidRequest, RemoteUnavailable, UnsupportedCompression,
            MalformedContent: From the individual steps
        """
        handle = self.submit(request)
        if on_submitted is not None:
            on_submitted(handle)

        try:
            handle = self.await_completion(
                handle,
                poll_interval=poll_interval,
                timeout=timeout,
                cancel_event=cancel_event,
            )
        except ReportTimeout:
            if self.cancel_on_timeout:
                logger.info(f"Cancelling report {handle.report_id} after timeout")
                self.cancel(handle.report_id)
            raise

        if handle.status != ReportState.DONE:
            raise ReportFailed(handle.status.value, handle.report_id, handle.diagnostic)

        content, content_type = self.documents.fetch_for_handle(handle)
        report = decode(content, content_type)
        logger.info(f"Report {handle.report_id} decoded as {report.format.value}")
        return report

    def list_reports(self, filters: Optional[ListFilters] = None) -> ReportPage:
        """
        List reports, filtered by the remote API.

        Args:
            filters: Listing filters; the configured page size is used when unset

        Returns:
            ReportPage
        """
        return self.api.list(filters or ListFilters(), default_page_size=self.page_size)

    def cancel(self, report_id: str) -> bool:
        """
        Ask the remote API to cancel a report.

        Args:
            report_id: Report to cancel

        Returns:
            True if the API accepted, False if it refused (e.g. already finished)

        Raises:
            InvalidRequest: If report_id is blank
        """
        if not report_id:
            raise InvalidRequest("Report ID is required")

        try:
            self.api.cancel(report_id)
        except RemoteUnavailable as e:
            logger.warning(f"Failed to cancel report {report_id}: {e}")
            return False

        logger.info(f"Cancelled report {report_id}")
        return True

    def recent_reports(
        self,
        kind: Union[ReportKind, str],
        page_size: Optional[int] = None,
    ) -> List[ReportHandle]:
        """Return the most recent reports of one kind (first page only)."""
        page = self.list_reports(ListFilters(kinds=[kind], page_size=page_size))
        return page.handles

    def latest_completed_report(
        self,
        kind: Union[ReportKind, str],
    ) -> Optional[DecodedReport]:
        """
        Download the newest DONE report of a kind.

        Args:
            kind: Report kind

        Returns:
            DecodedReport, or None when no finished report exists
        """
        page = self.list_reports(
            ListFilters(kinds=[kind], states=[ReportState.DONE], page_size=self.page_size)
        )
        finished = [h for h in page.handles if h.status == ReportState.DONE]
        if not finished:
            return None

        latest = max(finished, key=_completion_key)
        logger.info(f"Latest completed {latest.kind} report is {latest.report_id}")

        content, content_type = self.documents.fetch_for_handle(latest)
        return decode(content, content_type)
