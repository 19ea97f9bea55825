"""Decoding of report documents into rows or structured values."""

import json
import logging
import re
from typing import Callable, Dict, List, Tuple, Union

from bulk_reports.errors import MalformedContent
from bulk_reports.schemas.report import DecodedReport, ReportFormat

logger = logging.getLogger(__name__)

_LINE_BREAK = re.compile(r"\r\n|\r|\n")


def split_media_type(content_type: str) -> Tuple[str, str]:
    """
    Split a Content-Type header into media type and charset.

    Args:
        content_type: Header value, e.g. "text/csv; charset=UTF-8"

    Returns:
        Tuple of (lowercased media type, charset or "utf-8")
    """
    parts = (content_type or "").split(";")
    media_type = parts[0].strip().lower()
    charset = "utf-8"
    for param in parts[1:]:
        name, _, value = param.partition("=")
        if name.strip().lower() == "charset" and value.strip():
            charset = value.strip().strip('"')
    return media_type, charset


def _to_text(raw: Union[bytes, str], charset: str) -> str:
    if isinstance(raw, str):
        return raw
    try:
        return raw.decode(charset, errors="replace")
    except LookupError:
        logger.warning(f"Unknown charset {charset!r}, decoding as UTF-8")
        return raw.decode("utf-8", errors="replace")


def parse_delimited(text: str, delimiter: str) -> List[Dict[str, str]]:
    """
    Parse delimited text whose first line is the header row.

    Blank lines are skipped. Values missing at the end of a short row become
    empty strings; values past the last header are dropped.

    Args:
        text: Document text
        delimiter: Field separator

    Returns:
        List of row dicts keyed by header name
    """
    lines = _LINE_BREAK.split(text)
    if not lines[0].strip():
        return []

    headers = [header.strip() for header in lines[0].lstrip("\ufeff").split(delimiter)]
    rows = []
    for line in lines[1:]:
        if not line.strip():
            continue
        values = line.split(delimiter)
        rows.append({
            header: values[index].strip() if index < len(values) else ""
            for index, header in enumerate(headers)
        })
    return rows


def _decode_json(text: str, content_type: str) -> DecodedReport:
    try:
        data = json.loads(text)
    except ValueError as e:
        raise MalformedContent(f"Report is not valid JSON: {e}") from e
    return DecodedReport(format=ReportFormat.JSON, content_type=content_type, data=data)


def _decode_csv(text: str, content_type: str) -> DecodedReport:
    return DecodedReport(
        format=ReportFormat.CSV,
        content_type=content_type,
        rows=parse_delimited(text, ","),
    )


def _decode_tsv(text: str, content_type: str) -> DecodedReport:
    return DecodedReport(
        format=ReportFormat.TSV,
        content_type=content_type,
        rows=parse_delimited(text, "\t"),
    )


# Media types we understand; everything else (XML included) passes through
DECODERS: Dict[str, Callable[[str, str], DecodedReport]] = {
    "application/json": _decode_json,
    "text/csv": _decode_csv,
    "text/tab-separated-values": _decode_tsv,
    "text/tsv": _decode_tsv,
}


def decode(raw: Union[bytes, str], content_type: str) -> DecodedReport:
    """
    Decode report content according to its content type.

    Args:
        raw: Document content as bytes or text
        content_type: Declared content type of the document

    Returns:
        DecodedReport; unknown content types come back as RAW text

    Raises:
        MalformedContent: If a JSON document does not parse
    """
    media_type, charset = split_media_type(content_type)
    text = _to_text(raw, charset)

    decoder = DECODERS.get(media_type)
    if decoder is None:
        logger.info(f"No decoder for {media_type or 'empty content type'}, returning raw text")
        return DecodedReport(format=ReportFormat.RAW, content_type=content_type, data=text)

    return decoder(text, content_type)
