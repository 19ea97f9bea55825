"""Report-related Pydantic schemas."""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class ReportKind(str, Enum):
    """Report types commonly requested from the marketplace reports API."""

    # Inventory
    INVENTORY_REPORT = "GET_FLAT_FILE_OPEN_LISTINGS_DATA"
    INVENTORY_REPORT_XML = "GET_MERCHANT_LISTINGS_ALL_DATA"
    INVENTORY_REPORT_LITE = "GET_MERCHANT_LISTINGS_DATA_LITE"
    FBA_INVENTORY_REPORT = "GET_FBA_INVENTORY_AGED_DATA"
    FBA_MANAGED_INVENTORY_REPORT = "GET_FBA_MYI_UNSUPPRESSED_INVENTORY_DATA"
    STRANDED_INVENTORY_REPORT = "GET_STRANDED_INVENTORY_UI_DATA"
    EXCESS_INVENTORY_REPORT = "GET_EXCESS_INVENTORY_DATA"

    # Orders
    ORDER_REPORT = "GET_FLAT_FILE_ALL_ORDERS_DATA_BY_ORDER_DATE_GENERAL"
    ORDER_REPORT_XML = "GET_ORDERS_DATA_BY_ORDER_DATE"
    ORDER_ITEMS_REPORT = "GET_FLAT_FILE_ORDER_REPORT_DATA_SHIPPING"
    FBA_RETURNS_REPORT = "GET_FBA_FULFILLMENT_CUSTOMER_RETURNS_DATA"

    # Financials
    FINANCIAL_TRANSACTION_REPORT = "GET_V2_SETTLEMENT_REPORT_DATA_FLAT_FILE"
    DATE_RANGE_FINANCIAL_REPORT = "GET_DATE_RANGE_FINANCIAL_TRANSACTION_DATA"
    FBA_REIMBURSEMENTS_REPORT = "GET_FBA_REIMBURSEMENTS_DATA"

    # Performance
    PERFORMANCE_REPORT = "GET_V1_SELLER_PERFORMANCE_REPORT"
    FEEDBACK_REPORT = "GET_SELLER_FEEDBACK_DATA"

    # Advertising
    CAMPAIGN_PERFORMANCE_REPORT = "GET_CAMPAIGN_PERFORMANCE_REPORT"
    SEARCH_TERM_REPORT = "GET_SEARCH_TERM_REPORT"

    # Tax
    TAX_REPORT = "GET_TAX_REPORT"
    VAT_TRANSACTION_REPORT = "GET_VAT_TRANSACTION_DATA"

    BROWSE_TREE_REPORT = "GET_XML_BROWSE_TREE_DATA"


def kind_value(kind: Union[ReportKind, str]) -> str:
    """Return the wire literal for a report kind."""
    if isinstance(kind, ReportKind):
        return kind.value
    return kind


class ReportState(str, Enum):
    """Lifecycle state of a remote report."""

    QUEUED = "IN_QUEUE"
    RUNNING = "IN_PROGRESS"
    DONE = "DONE"
    CANCELLED = "CANCELLED"
    FATAL = "FATAL"

    @property
    def is_terminal(self) -> bool:
        return self in (ReportState.DONE, ReportState.CANCELLED, ReportState.FATAL)


class Compression(str, Enum):
    """Compression algorithms a report document may declare."""

    NONE = "NONE"
    GZIP = "GZIP"


class ReportFormat(str, Enum):
    """How a report document was decoded."""

    JSON = "json"
    CSV = "csv"
    TSV = "tsv"
    RAW = "raw"


class DataWindow(BaseModel):
    """Time range the report data should cover."""

    model_config = ConfigDict(frozen=True)

    start: Optional[datetime] = None
    end: Optional[datetime] = None


class ReportRequest(BaseModel):
    """Schema for requesting a new report."""

    model_config = ConfigDict(frozen=True)

    kind: Union[ReportKind, str]
    data_window: Optional[DataWindow] = None
    scope_ids: Optional[List[str]] = None  # Marketplace IDs
    extra_options: Dict[str, str] = Field(default_factory=dict)


class ReportHandle(BaseModel):
    """Last known state of a submitted report."""

    report_id: str
    kind: str
    status: ReportState
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    document_id: Optional[str] = None  # Set only when status is DONE
    diagnostic: Optional[str] = None  # Why the handle was failed closed


class DocumentDescriptor(BaseModel):
    """Where and how to download a finished report."""

    document_id: str
    download_url: str
    compression: Optional[str] = None
    content_type: str = "text/plain"


class DecodedReport(BaseModel):
    """Structured report content, tagged by the format it was decoded from."""

    format: ReportFormat
    content_type: str
    rows: Optional[List[Dict[str, str]]] = None  # CSV / TSV
    data: Any = None  # JSON value or raw text

    @property
    def payload(self) -> Any:
        if self.rows is not None:
            return self.rows
        return self.data


class ListFilters(BaseModel):
    """Filters passed through to the remote report listing."""

    kinds: Optional[List[Union[ReportKind, str]]] = None
    states: Optional[List[ReportState]] = None
    created_after: Optional[datetime] = None
    created_before: Optional[datetime] = None
    page_token: Optional[str] = None
    page_size: Optional[int] = None


class ReportPage(BaseModel):
    """One page of report handles."""

    handles: List[ReportHandle]
    next_page_token: Optional[str] = None
