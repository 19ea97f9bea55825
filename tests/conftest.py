"""Pytest configuration and fixtures."""

import gzip
from typing import Any, Dict, List, Optional

import pytest

from bulk_reports.services.orchestrator import ReportOrchestrator
from bulk_reports.services.transport import TransportError, TransportResponse

BASE = "/reports/2021-06-30"
CREATED = "2024-05-01T10:00:00Z"


def report_payload(
    report_id: str = "rep-1",
    status: str = "IN_QUEUE",
    document_id: Optional[str] = None,
    kind: str = "GET_FLAT_FILE_OPEN_LISTINGS_DATA",
    completed: Optional[str] = None,
) -> Dict[str, Any]:
    """Report object as the reports API returns it."""
    payload = {
        "reportId": report_id,
        "reportType": kind,
        "processingStatus": status,
        "createdTime": CREATED,
    }
    if document_id:
        payload["reportDocumentId"] = document_id
    if completed:
        payload["processingEndTime"] = completed
    return payload


class FakeTransport:
    """Scripted ReportsTransport that records every call.

    Responses queued for a (method, path) are served in order; the last one
    keeps being served once the queue is down to it. Exceptions are raised.
    """

    def __init__(self):
        self.routes: Dict[tuple, List[Any]] = {}
        self.downloads: Dict[str, Any] = {}
        self.calls: List[Dict[str, Any]] = []
        self.download_calls: List[str] = []

    def add(self, method: str, path: str, *responses: Any) -> None:
        self.routes.setdefault((method, path), []).extend(responses)

    def add_download(self, url: str, content: Any) -> None:
        self.downloads[url] = content

    def send(self, method, path, params=None, json=None) -> TransportResponse:
        self.calls.append({"method": method, "path": path, "params": params, "json": json})
        queue = self.routes.get((method, path))
        if not queue:
            raise TransportError(f"No route for {method} {path}", 404)
        item = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(item, Exception):
            raise item
        return TransportResponse(data=item, status=200, headers={})

    def fetch_raw(self, url: str) -> bytes:
        self.download_calls.append(url)
        if url not in self.downloads:
            raise TransportError(f"No download for {url}", 403)
        content = self.downloads[url]
        if isinstance(content, Exception):
            raise content
        return content

    def count(self, method: str, path: Optional[str] = None) -> int:
        return sum(
            1 for call in self.calls
            if call["method"] == method and (path is None or call["path"] == path)
        )

    def status_calls(self, report_id: str = "rep-1") -> int:
        return self.count("GET", f"{BASE}/reports/{report_id}")


class FakeClock:
    """Monotonic clock that only moves when the poller sleeps."""

    def __init__(self):
        self.now = 0.0
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float, cancel_event=None) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def fake_transport():
    """Empty scripted transport."""
    return FakeTransport()


@pytest.fixture
def fake_clock():
    """Clock starting at zero."""
    return FakeClock()


@pytest.fixture
def orchestrator(fake_transport, fake_clock):
    """Orchestrator wired to the fake transport and clock."""
    return ReportOrchestrator(
        fake_transport,
        default_scope_ids=["MKT-1"],
        api_version="2021-06-30",
        poll_interval=5.0,
        timeout=300.0,
        page_size=10,
        cancel_on_timeout=False,
        clock=fake_clock,
        sleeper=fake_clock.sleep,
    )


def script_document(
    transport: FakeTransport,
    document_id: str,
    content: bytes,
    content_type: str = "text/csv",
    compression: Optional[str] = None,
) -> str:
    """Register a document descriptor and its download; returns the URL."""
    url = f"https://downloads.example.com/{document_id}?sig=abc"
    descriptor = {"reportDocumentId": document_id, "url": url, "contentType": content_type}
    if compression:
        descriptor["compressionAlgorithm"] = compression
    transport.add("GET", f"{BASE}/documents/{document_id}", descriptor)
    transport.add_download(url, content)
    return url


def gzipped(text: str) -> bytes:
    return gzip.compress(text.encode("utf-8"))
