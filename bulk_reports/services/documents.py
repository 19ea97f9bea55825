"""Resolution and download of finished report documents."""

import gzip
import logging
import zlib
from typing import Tuple

from bulk_reports.errors import InvalidState, MalformedContent, UnsupportedCompression
from bulk_reports.schemas.report import Compression, ReportHandle, ReportState
from bulk_reports.services.reports_api import ReportsApi

logger = logging.getLogger(__name__)


def decompress(content: bytes, compression) -> bytes:
    """
    Undo the compression a report document declares.

    Args:
        content: Downloaded bytes
        compression: Declared algorithm literal (None or empty for plain)

    Returns:
        Uncompressed bytes

    Raises:
        UnsupportedCompression: For any algorithm other than GZIP
        MalformedContent: If the GZIP stream is corrupt
    """
    if not compression or compression.upper() == Compression.NONE.value:
        return content

    if compression.upper() != Compression.GZIP.value:
        raise UnsupportedCompression(compression)

    try:
        return gzip.decompress(content)
    except (OSError, EOFError, zlib.error) as e:
        raise MalformedContent(f"Could not decompress GZIP document: {e}") from e


class DocumentResolver:
    """Turns document IDs of DONE reports into downloaded content."""

    def __init__(self, api: ReportsApi):
        self.api = api

    def fetch_document(self, document_id: str) -> Tuple[bytes, str]:
        """
        Download and decompress a report document.

        Args:
            document_id: Document ID taken from a DONE handle

        Returns:
            Tuple of (content bytes, content type)

        Raises:
            InvalidState: If no usable document ID is given
            RemoteUnavailable: If resolving or downloading fails
            UnsupportedCompression: If the document uses an unknown algorithm
        """
        if not isinstance(document_id, str) or not document_id.strip():
            raise InvalidState("A document ID from a DONE report is required")

        descriptor = self.api.get_document(document_id)
        logger.info(
            f"Downloading document {descriptor.document_id} "
            f"({descriptor.content_type}, compression={descriptor.compression or 'none'})"
        )

        content = self.api.fetch_raw(descriptor.download_url)
        content = decompress(content, descriptor.compression)

        logger.info(f"Downloaded document {descriptor.document_id}: {len(content)} bytes")
        return content, descriptor.content_type

    def fetch_for_handle(self, handle: ReportHandle) -> Tuple[bytes, str]:
        """Fetch the document of a handle, which must be DONE."""
        if handle.status != ReportState.DONE or not handle.document_id:
            raise InvalidState(
                f"Report {handle.report_id} is {handle.status.value}; only DONE reports have documents"
            )
        return self.fetch_document(handle.document_id)
