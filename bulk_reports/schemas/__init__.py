"""Pydantic schemas."""

from bulk_reports.schemas.report import (
    Compression,
    DataWindow,
    DecodedReport,
    DocumentDescriptor,
    ListFilters,
    ReportFormat,
    ReportHandle,
    ReportKind,
    ReportPage,
    ReportRequest,
    ReportState,
)

__all__ = [
    "Compression",
    "DataWindow",
    "DecodedReport",
    "DocumentDescriptor",
    "ListFilters",
    "ReportFormat",
    "ReportHandle",
    "ReportKind",
    "ReportPage",
    "ReportRequest",
    "ReportState",
]
