"""
Single-File Analyzer

Normalizes the rows of one uploaded spreadsheet into ProcessedRow records
and aggregates them into a DashboardData snapshot:

1. Resolve which header holds date/vendor/item/amount/status/PO/GRN/
   invoice date/payment date (column mapper first, loose lookup second)
2. Normalize each raw row with documented defaults for bad cells
3. Accumulate spend, manual-process, delay and outlier counts
4. Bucket items by purchase velocity into the category x velocity matrix
5. Derive problems, financial impact, KPIs and the health score

The real analysis path is deterministic: consumption is penalized by a
fixed factor when a row has no goods receipt, never by random jitter.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Union

import pandas as pd

from procurement_ai.models.dashboard import (
    DashboardData,
    FinancialData,
    Outputs,
    ProblemData,
    ProcessedRow,
)
from .category_classifier import resolve_category
from .column_mapper import find_header, map_columns
from .config_manager import AnalysisSettings
from .constants import DEFAULT_STATUS, DEFAULT_VENDOR, UNKNOWN_FIELD
from .file_loader import RawRow, load_rows
from .logging_utils import get_logger, timed
from .metrics import (
    ItemRollup,
    build_matrix,
    format_lakhs,
    format_thousands,
    health_score,
    monthly_kpis,
    percent,
    quality_display,
    safe_ratio,
)
from .parse_utils import clean_text, parse_amount, parse_date, parse_date_or_today, round_half_up

logger = get_logger(__name__)

# Loose header indicators, used when the column mapper has no opinion
ITEM_INDICATORS = ("item", "product", "desc", "material")
AMOUNT_INDICATORS = ("amount", "cost", "price", "total", "value")
DATE_INDICATORS = ("date", "time")
VENDOR_INDICATORS = ("vendor", "supplier", "party")
CATEGORY_INDICATORS = ("cat", "group")
STATUS_INDICATORS = ("status", "state")
PO_INDICATORS = ("po_", "po ", "po#", "po.", "ponumber", "purchase order")
GRN_INDICATORS = ("grn", "receipt", "goods received")
INVOICE_INDICATORS = ("inv", "bill")
PAYMENT_INDICATORS = ("pay", "paid")
DATE_WORDS = ("date", "dt", "time")


@dataclass(frozen=True)
class FieldHeaders:
    """Which original header feeds each ProcessedRow field (None = absent)."""
    date: Optional[str] = None
    vendor: Optional[str] = None
    item: Optional[str] = None
    category: Optional[str] = None
    amount: Optional[str] = None
    status: Optional[str] = None
    po_number: Optional[str] = None
    grn_number: Optional[str] = None
    invoice_date: Optional[str] = None
    payment_date: Optional[str] = None


def resolve_field_headers(headers: Sequence[str]) -> FieldHeaders:
    """
    Pick the header for each normalized field.

    Catalog fields take the column mapper's best guess; GRN, invoice and
    payment dates are not in the catalog and use loose lookups only.
    """
    headers = list(headers)
    # Most confident header per standard field; earlier headers win ties
    mapped: Dict[str, str] = {}
    best: Dict[str, float] = {}
    for mapping in map_columns(headers):
        name = mapping.standard_name
        if name != UNKNOWN_FIELD and mapping.confidence > best.get(name, 0.0):
            mapped[name] = mapping.original_name
            best[name] = mapping.confidence

    grn = find_header(headers, GRN_INDICATORS)
    invoice_date = find_header(headers, INVOICE_INDICATORS, require=DATE_WORDS)
    payment_date = find_header(headers, PAYMENT_INDICATORS, require=DATE_WORDS, exclude=[invoice_date])
    special = [grn, invoice_date, payment_date]

    def pick(standard: str, indicators: Sequence[str]) -> Optional[str]:
        header = mapped.get(standard)
        if header is not None and header not in special:
            return header
        return find_header(headers, indicators, exclude=special)

    amount = mapped.get("Total_Amount")
    if amount is None or amount in special:
        amount = find_header(headers, AMOUNT_INDICATORS, exclude=special)

    return FieldHeaders(
        date=pick("Order_Date", DATE_INDICATORS),
        vendor=pick("Vendor_Name", VENDOR_INDICATORS),
        item=pick("Item_Description", ITEM_INDICATORS),
        category=pick("Category", CATEGORY_INDICATORS),
        amount=amount,
        status=pick("Status", STATUS_INDICATORS),
        po_number=pick("PO_Number", PO_INDICATORS),
        grn_number=grn,
        invoice_date=invoice_date,
        payment_date=payment_date,
    )


def normalize_row(
    raw: RawRow,
    index: int,
    fields: FieldHeaders,
    today: Optional[pd.Timestamp] = None,
) -> ProcessedRow:
    """
    Build one ProcessedRow; never raises on bad cells.

    Defaults: vendor "Unknown Vendor", status "Pending", amount 0,
    date = today, item "Item <n>".
    """
    def cell(header: Optional[str]) -> Any:
        return raw.get(header) if header else None

    item = clean_text(cell(fields.item)) or f"Item {index + 1}"

    return ProcessedRow(
        id=f"ROW-{index}",
        date=parse_date_or_today(cell(fields.date), today),
        vendor=clean_text(cell(fields.vendor)) or DEFAULT_VENDOR,
        item=item,
        category=resolve_category(clean_text(cell(fields.category)), item),
        amount=parse_amount(cell(fields.amount)),
        status=clean_text(cell(fields.status)) or DEFAULT_STATUS,
        po_number=clean_text(cell(fields.po_number)),
        grn_number=clean_text(cell(fields.grn_number)),
        invoice_date=parse_date(cell(fields.invoice_date)),
        payment_date=parse_date(cell(fields.payment_date)),
    )


def normalize_rows(raw_rows: Sequence[RawRow], today: Optional[pd.Timestamp] = None) -> List[ProcessedRow]:
    """Normalize every raw row of one file, resolving headers once."""
    if not raw_rows:
        return []

    headers: List[str] = []
    for raw in raw_rows:
        for key in raw.keys():
            if key not in headers:
                headers.append(key)

    fields = resolve_field_headers(headers)
    logger.debug(f"Resolved field headers: {fields}")
    return [normalize_row(raw, i, fields, today) for i, raw in enumerate(raw_rows)]


def _delay_days(row: ProcessedRow, today: pd.Timestamp) -> float:
    """Days from invoice (or row date) to payment, or to today when unpaid."""
    start = pd.Timestamp(row.invoice_date or row.date)
    end = pd.Timestamp(row.payment_date) if row.payment_date else today
    return (end - start).total_seconds() / 86400


def analyze_rows(
    rows: Sequence[ProcessedRow],
    settings: Optional[AnalysisSettings] = None,
    quality_score: Optional[int] = None,
    today: Optional[pd.Timestamp] = None,
) -> DashboardData:
    """
    Aggregate normalized rows into a dashboard snapshot.

    Args:
        rows: Normalized rows of one file
        settings: Business heuristics (defaults when omitted)
        quality_score: 0-100 data-quality score for the problems banner
        today: Reference date for unpaid-invoice delays

    Returns:
        DashboardData; zero rows give zero-filled aggregates
    """
    settings = settings or AnalysisSettings()
    today = today if today is not None else pd.Timestamp.now().normalize()
    total = len(rows)

    total_spend = 0.0
    unconfirmed_spend = 0.0
    manual_count = 0
    delayed_count = 0
    outlier_count = 0
    delay_days: List[float] = []
    lead_days: List[float] = []
    consumed_by_row: List[float] = []
    rollups: Dict[tuple, ItemRollup] = {}

    for row in rows:
        total_spend += row.amount

        if not row.po_number or not row.grn_number:
            manual_count += 1

        gap = _delay_days(row, today)
        if gap > settings.delay_threshold_days:
            delayed_count += 1
            delay_days.append(gap)

        if row.amount > settings.outlier_amount_threshold:
            outlier_count += 1

        if row.invoice_date is not None:
            lead = (pd.Timestamp(row.invoice_date) - pd.Timestamp(row.date)).total_seconds() / 86400
            if lead >= 0:
                lead_days.append(lead)

        if row.grn_number:
            consumed = row.amount
        else:
            consumed = row.amount * settings.unconfirmed_receipt_factor
            unconfirmed_spend += row.amount
        consumed_by_row.append(consumed)

        key = (row.category, row.item)
        if key not in rollups:
            rollups[key] = ItemRollup(category=row.category, name=row.item)
        rollups[key].add(row.amount, consumed)

    manual_ratio = safe_ratio(manual_count, total)
    delay_ratio = safe_ratio(delayed_count, total)
    outlier_ratio = safe_ratio(outlier_count, total)

    avg_delay = round_half_up(sum(delay_days) / len(delay_days), 1) if delay_days else 0.0
    processing_time = (
        round_half_up(sum(lead_days) / len(lead_days), 1) if lead_days else settings.default_processing_days
    )
    waste = total_spend * settings.waste_ratio
    revenue_loss = total_spend * settings.revenue_loss_ratio

    logger.info(
        f"Analysed {total} rows: spend={total_spend:,.2f}, manual={manual_count}, "
        f"delayed={delayed_count}, outliers={outlier_count}"
    )

    return DashboardData(
        matrix=build_matrix(list(rollups.values())),
        outputs=Outputs(
            outliers=outlier_count,
            normal=max(0, total - delayed_count - outlier_count),
            delayed=delayed_count,
            exceptions=manual_count,
        ),
        problems=ProblemData(
            payment_delay_percent=percent(delayed_count, total),
            avg_delay_days=avg_delay,
            over_consumption=percent(unconfirmed_spend, total_spend),
            waste_amount=format_thousands(waste, settings.currency_symbol),
            manual_work=percent(manual_count, total),
            processing_time=processing_time,
            vendor_churn=settings.default_vendor_churn,
            quality_score=quality_display(quality_score),
        ),
        financial=FinancialData(
            revenue_loss=format_lakhs(revenue_loss, settings.currency_symbol),
            cost_increase=settings.cost_increase,
            time_waste=f"{int(round_half_up(manual_count * settings.hours_per_manual_record))}hrs",
        ),
        health_score=health_score(manual_ratio, delay_ratio, outlier_ratio),
        kpis=monthly_kpis([r.date for r in rows], [r.amount for r in rows], consumed_by_row),
        total_records=total,
        revenue_impact=round(revenue_loss, 2),
        avg_delay_days=avg_delay,
        monthly_waste=round(waste, 2),
    )


@timed
def analyze_raw_rows(
    raw_rows: Sequence[RawRow],
    settings: Optional[AnalysisSettings] = None,
    quality_score: Optional[int] = None,
    today: Optional[pd.Timestamp] = None,
) -> DashboardData:
    """Normalize then aggregate one file's raw records."""
    return analyze_rows(normalize_rows(raw_rows, today), settings, quality_score, today)


def analyze_file(
    content: Union[str, bytes],
    filename: str,
    settings: Optional[AnalysisSettings] = None,
    quality_score: Optional[int] = None,
    today: Optional[pd.Timestamp] = None,
) -> DashboardData:
    """
    Parse and analyze one uploaded file.

    Raises:
        FileParseError: the file could not be read; no snapshot is produced
    """
    return analyze_raw_rows(load_rows(content, filename), settings, quality_score, today)
