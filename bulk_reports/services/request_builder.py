"""Serialization of report requests into the reports API body."""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from bulk_reports.errors import InvalidRequest
from bulk_reports.schemas.report import ReportRequest, kind_value

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


def format_timestamp(value: datetime) -> str:
    """
    Serialize a datetime as a canonical UTC timestamp.

    Naive datetimes are taken to be UTC already. The year is always four
    digits so that parse_timestamp accepts every value this returns.

    Args:
        value: Datetime to serialize

    Returns:
        ISO-8601 string with microseconds and a Z suffix

    Raises:
        OverflowError: If the UTC equivalent falls outside the datetime range
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return f"{value.year:04d}-{value:%m-%dT%H:%M:%S.%f}Z"


def parse_timestamp(value: str) -> datetime:
    """Inverse of format_timestamp; returns an aware UTC datetime."""
    return datetime.strptime(value, TIMESTAMP_FORMAT).replace(tzinfo=timezone.utc)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _unique(values: Sequence[str]) -> List[str]:
    seen = set()
    result = []
    for value in values:
        if value not in seen:
            seen.add(value)
            result.append(value)
    return result


def build_request_body(
    request: ReportRequest,
    default_scope_ids: Optional[Sequence[str]] = None,
) -> Dict[str, Any]:
    """
    Validate a report request and build the createReport body.

    Args:
        request: Report request
        default_scope_ids: Marketplace IDs used when the request names none

    Returns:
        Request body dict in the reports API shape

    Raises:
        InvalidRequest: If the kind is blank, the window is inverted, no
            marketplace can be resolved, or a window bound has no UTC
            equivalent in the datetime range
    """
    kind = kind_value(request.kind)
    if not kind or not kind.strip():
        raise InvalidRequest("Report kind is required")

    if request.scope_ids is not None:
        scope_ids = _unique(request.scope_ids)
        if not scope_ids:
            raise InvalidRequest("scope_ids must not be empty when given")
    else:
        scope_ids = _unique(default_scope_ids or [])
        if not scope_ids:
            raise InvalidRequest("No marketplace IDs given and no default configured")

    body: Dict[str, Any] = {
        "reportType": kind,
        "marketplaceIds": scope_ids,
    }

    window = request.data_window
    if window is not None:
        try:
            if window.start is not None and window.end is not None:
                if _as_utc(window.start) > _as_utc(window.end):
                    raise InvalidRequest(
                        f"Data window start {window.start.isoformat()} is after end {window.end.isoformat()}"
                    )
            if window.start is not None:
                body["dataStartTime"] = format_timestamp(window.start)
            if window.end is not None:
                body["dataEndTime"] = format_timestamp(window.end)
        except OverflowError as e:
            raise InvalidRequest(f"Data window is outside the representable UTC range: {e}") from e

    if request.extra_options:
        body["reportOptions"] = dict(request.extra_options)

    return body
