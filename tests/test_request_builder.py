"""Tests for report request serialization."""

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from bulk_reports.errors import InvalidRequest
from bulk_reports.schemas.report import DataWindow, ReportKind, ReportRequest
from bulk_reports.services.request_builder import (
    build_request_body,
    format_timestamp,
    parse_timestamp,
)


def test_build_defaults_marketplace():
    """Test that omitted scope IDs fall back to the default scope."""
    request = ReportRequest(kind=ReportKind.INVENTORY_REPORT)

    body = build_request_body(request, ["MKT-1"])

    assert body == {
        "reportType": "GET_FLAT_FILE_OPEN_LISTINGS_DATA",
        "marketplaceIds": ["MKT-1"],
    }


def test_build_explicit_scope_and_options():
    """Test explicit scope IDs (deduplicated) and report options."""
    request = ReportRequest(
        kind="GET_CUSTOM_DATA",
        scope_ids=["A", "B", "A"],
        extra_options={"reportPeriod": "WEEK"},
    )

    body = build_request_body(request, ["MKT-1"])

    assert body["reportType"] == "GET_CUSTOM_DATA"
    assert body["marketplaceIds"] == ["A", "B"]
    assert body["reportOptions"] == {"reportPeriod": "WEEK"}


def test_build_serializes_window_in_utc():
    """Test that window timestamps are canonical UTC strings."""
    plus_two = timezone(timedelta(hours=2))
    request = ReportRequest(
        kind=ReportKind.ORDER_REPORT,
        data_window=DataWindow(
            start=datetime(2024, 3, 1, 2, 0, tzinfo=plus_two),
            end=datetime(2024, 3, 2, 0, 0, 0, 250000, tzinfo=timezone.utc),
        ),
    )

    body = build_request_body(request, ["MKT-1"])

    assert body["dataStartTime"] == "2024-03-01T00:00:00.000000Z"
    assert body["dataEndTime"] == "2024-03-02T00:00:00.250000Z"


def test_build_treats_naive_as_utc():
    """Test that naive datetimes are taken as UTC."""
    request = ReportRequest(
        kind=ReportKind.ORDER_REPORT,
        data_window=DataWindow(start=datetime(2024, 1, 1, 12, 30)),
    )

    body = build_request_body(request, ["MKT-1"])

    assert body["dataStartTime"] == "2024-01-01T12:30:00.000000Z"
    assert "dataEndTime" not in body


@pytest.mark.parametrize(
    "value",
    [
        datetime(2024, 1, 2, 3, 4, 5, 123456, tzinfo=timezone.utc),
        datetime(1999, 12, 31, 23, 59, 59, 999999, tzinfo=timezone.utc),
        datetime(2030, 6, 15, 0, 0, 0, 1, tzinfo=timezone(timedelta(hours=-7))),
        datetime(999, 1, 2, 3, 4, 5, 6, tzinfo=timezone.utc),
        datetime(1, 1, 1, tzinfo=timezone.utc),
    ],
)
def test_timestamp_round_trip(value):
    """Test that serialized timestamps parse back without precision loss."""
    assert parse_timestamp(format_timestamp(value)) == value


def test_early_year_is_zero_padded():
    """Test that years before 1000 serialize with four digits."""
    assert format_timestamp(datetime(999, 1, 2, 3, 4, 5, 6, tzinfo=timezone.utc)) == "0999-01-02T03:04:05.000006Z"


@pytest.mark.parametrize(
    "window",
    [
        DataWindow(start=datetime(1, 1, 1, tzinfo=timezone(timedelta(hours=1)))),
        DataWindow(end=datetime(9999, 12, 31, 23, 0, tzinfo=timezone(timedelta(hours=-2)))),
    ],
)
def test_window_outside_utc_range_rejected(window):
    """Test that bounds with no UTC equivalent fail validation instead of overflowing."""
    with pytest.raises(InvalidRequest):
        build_request_body(ReportRequest(kind="GET_X", data_window=window), ["MKT-1"])


def test_window_start_after_end_rejected():
    """Test that an inverted window fails validation."""
    start = datetime(2024, 2, 1, tzinfo=timezone.utc)
    request = ReportRequest(
        kind=ReportKind.ORDER_REPORT,
        data_window=DataWindow(start=start, end=start - timedelta(microseconds=1)),
    )

    with pytest.raises(InvalidRequest):
        build_request_body(request, ["MKT-1"])


def test_window_start_equal_end_allowed():
    """Test that a zero-length window is valid."""
    instant = datetime(2024, 2, 1, tzinfo=timezone.utc)
    request = ReportRequest(
        kind=ReportKind.ORDER_REPORT,
        data_window=DataWindow(start=instant, end=instant),
    )

    body = build_request_body(request, ["MKT-1"])

    assert body["dataStartTime"] == body["dataEndTime"]


@pytest.mark.parametrize("kind", ["", "   "])
def test_blank_kind_rejected(kind):
    """Test that a blank report kind fails validation."""
    with pytest.raises(InvalidRequest):
        build_request_body(ReportRequest(kind=kind), ["MKT-1"])


def test_empty_scope_rejected():
    """Test that an explicitly empty scope list fails validation."""
    request = ReportRequest(kind=ReportKind.TAX_REPORT, scope_ids=[])

    with pytest.raises(InvalidRequest):
        build_request_body(request, ["MKT-1"])


def test_missing_default_scope_rejected():
    """Test that a request with no scope and no default fails validation."""
    with pytest.raises(InvalidRequest):
        build_request_body(ReportRequest(kind=ReportKind.TAX_REPORT), [])


def test_request_is_immutable():
    """Test that a report request cannot be modified once built."""
    request = ReportRequest(kind=ReportKind.TAX_REPORT)

    with pytest.raises(ValidationError):
        request.kind = "GET_OTHER"
