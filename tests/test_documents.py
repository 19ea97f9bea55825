"""Tests for report document resolution and download."""

import pytest

from conftest import BASE, gzipped, script_document

from bulk_reports.errors import InvalidState, MalformedContent, RemoteUnavailable, UnsupportedCompression
from bulk_reports.schemas.report import ReportHandle, ReportState
from bulk_reports.services.documents import DocumentResolver, decompress
from bulk_reports.services.reports_api import ReportsApi
from bulk_reports.services.transport import TransportError


@pytest.fixture
def resolver(fake_transport):
    return DocumentResolver(ReportsApi(fake_transport))


def test_gzip_document_is_decompressed(resolver, fake_transport):
    """Test that GZIP documents come back uncompressed."""
    url = script_document(fake_transport, "doc-1", gzipped("id,qty\n1,5\n"), compression="GZIP")

    content, content_type = resolver.fetch_document("doc-1")

    assert content == b"id,qty\n1,5\n"
    assert content_type == "text/csv"
    assert fake_transport.download_calls == [url]


def test_plain_document_is_returned_as_is(resolver, fake_transport):
    """Test that uncompressed documents are passed through."""
    script_document(fake_transport, "doc-2", b'{"a": 1}', content_type="application/json")

    content, content_type = resolver.fetch_document("doc-2")

    assert content == b'{"a": 1}'
    assert content_type == "application/json"


def test_content_type_defaults_to_text_plain(resolver, fake_transport):
    """Test the content type used when the descriptor has none."""
    fake_transport.add(
        "GET",
        f"{BASE}/documents/doc-3",
        {"reportDocumentId": "doc-3", "url": "https://downloads.example.com/doc-3"},
    )
    fake_transport.add_download("https://downloads.example.com/doc-3", b"hello")

    assert resolver.fetch_document("doc-3") == (b"hello", "text/plain")


@pytest.mark.parametrize("compression", [None, "", "NONE", "gzip"])
def test_decompress_accepted_values(compression):
    """Test declared compression values we understand."""
    content = gzipped("x") if compression == "gzip" else b"x"

    assert decompress(content, compression) == b"x"


def test_unknown_compression_rejected(resolver, fake_transport):
    """Test that other algorithms fail instead of returning compressed bytes."""
    script_document(fake_transport, "doc-4", b"\x28\xb5\x2f\xfd", compression="ZSTD")

    with pytest.raises(UnsupportedCompression) as exc_info:
        resolver.fetch_document("doc-4")

    assert exc_info.value.compression == "ZSTD"


def test_corrupt_gzip_is_malformed(resolver, fake_transport):
    """Test that a broken GZIP stream is reported as malformed content."""
    script_document(fake_transport, "doc-5", b"definitely not gzip", compression="GZIP")

    with pytest.raises(MalformedContent):
        resolver.fetch_document("doc-5")


@pytest.mark.parametrize("document_id", ["", "   ", None])
def test_missing_document_id_is_invalid_state(resolver, fake_transport, document_id):
    """Test that a blank document ID is a contract violation."""
    with pytest.raises(InvalidState):
        resolver.fetch_document(document_id)

    assert fake_transport.calls == []


@pytest.mark.parametrize("status", [ReportState.QUEUED, ReportState.RUNNING, ReportState.CANCELLED, ReportState.FATAL])
def test_non_done_handle_is_invalid_state(resolver, fake_transport, status):
    """Test that only DONE handles can be fetched."""
    handle = ReportHandle(report_id="rep-1", kind="GET_X", status=status)

    with pytest.raises(InvalidState):
        resolver.fetch_for_handle(handle)

    assert fake_transport.calls == []


def test_download_failure_is_remote_unavailable(resolver, fake_transport):
    """Test that a failed download is not retried and surfaces as RemoteUnavailable."""
    url = script_document(fake_transport, "doc-6", b"")
    fake_transport.add_download(url, TransportError("expired signature", 403))

    with pytest.raises(RemoteUnavailable) as exc_info:
        resolver.fetch_document("doc-6")

    assert exc_info.value.status_code == 403
    assert len(fake_transport.download_calls) == 1
