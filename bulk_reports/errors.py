"""Typed failures raised by the report retrieval services.

Every failure path of a report lifecycle ends in one of these. None of them
is retried or swallowed inside the services; callers decide what to do.
"""

from typing import Optional


class ReportError(Exception):
    """Base exception for report retrieval errors."""


class InvalidRequest(ReportError):
    """Report request failed validation. Never worth retrying."""


class RemoteUnavailable(ReportError):
    """Reports API call failed in transport. The whole operation may be retried."""

    def __init__(self, message: str, status_code: int = 0):
        super().__init__(message)
        self.status_code = status_code


class ReportTimeout(ReportError):
    """Polling deadline passed before the report reached a terminal state.

    The remote job is not cancelled and may still complete.
    """

    def __init__(self, report_id: str, elapsed: float, last_status: str):
        super().__init__(
            f"Report {report_id} still {last_status} after {elapsed:.1f}s"
        )
        self.report_id = report_id
        self.elapsed = elapsed
        self.last_status = last_status


class ReportFailed(ReportError):
    """Report finished in CANCELLED or FATAL."""

    def __init__(self, state: str, report_id: str, diagnostic: Optional[str] = None):
        message = f"Report {report_id} ended with status {state}"
        if diagnostic:
            message += f": {diagnostic}"
        super().__init__(message)
        self.state = state
        self.report_id = report_id
        self.diagnostic = diagnostic


class UnsupportedCompression(ReportError):
    """Report document declares a compression algorithm we cannot undo."""

    def __init__(self, compression: str):
        super().__init__(f"Unsupported compression algorithm: {compression}")
        self.compression = compression


class MalformedContent(ReportError):
    """Report document could not be decompressed or parsed."""


class InvalidState(ReportError):
    """Caller broke a precondition, e.g. fetched the document of an unfinished report."""


class Aborted(ReportError):
    """Caller stopped waiting for the report. The remote job keeps running."""

    def __init__(self, report_id: str, last_status: str):
        super().__init__(f"Stopped waiting for report {report_id} (last status {last_status})")
        self.report_id = report_id
        self.last_status = last_status
