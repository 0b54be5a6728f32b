"""
Multi-File Reconciler

Combines a set of ERP exports (PR/PO/invoice/GRN headers and lines,
three-way matching, GST validation, payments, vendor master) into one
DashboardData snapshot with critical-issue banners.

Each upload is assigned a role from its filename. Files are parsed
independently (optionally in a thread pool) and then reduced by role;
files of an unknown role are kept but never aggregated.

When a signal file is absent the corresponding count falls back to a
configurable fraction of the invoice count.
"""

import math
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple, Union

from procurement_ai.models.dashboard import (
    CriticalIssue,
    DashboardData,
    FinancialData,
    Kpis,
    Outputs,
    ProblemData,
)
from .category_classifier import resolve_category
from .config_manager import AnalysisSettings
from .file_loader import RawRow, load_rows
from .logging_utils import get_logger, log_performance, timed
from .metrics import (
    ItemRollup,
    build_matrix,
    format_lakhs,
    format_thousands,
    health_score,
    monthly_kpis,
    percent,
    projected_kpis,
    quality_display,
    safe_ratio,
)
from .parse_utils import clean_text, parse_amount, parse_date, parse_number, round_count, round_half_up

logger = get_logger(__name__)


# ==============================================================================
# FILE ROLES
# ==============================================================================

ROLE_VENDORS = "vendors"
ROLE_PR_LINES = "pr_lines"
ROLE_PR = "pr"
ROLE_PO_LINES = "po_lines"
ROLE_PO = "po"
ROLE_INVOICE_LINES = "invoice_lines"
ROLE_INVOICE = "invoice"
ROLE_GRN_LINES = "grn_lines"
ROLE_GRN = "grn"
ROLE_MATCHING = "matching"
ROLE_GST = "gst"
ROLE_PAYMENT = "payment"
ROLE_UNKNOWN = "unknown"

# (role, any-of substrings, none-of substrings); first match wins.
# Line-level variants are checked before their header files.
ROLE_PATTERNS: List[Tuple[str, Tuple[str, ...], Tuple[str, ...]]] = [
    (ROLE_VENDORS, ("vendor_master", "vendor"), ()),
    (ROLE_PR_LINES, ("pr_lines",), ()),
    (ROLE_PR, ("pr",), ("lines",)),
    (ROLE_PO_LINES, ("po_lines",), ()),
    (ROLE_PO, ("po",), ("lines",)),
    (ROLE_INVOICE_LINES, ("invoice_lines",), ()),
    (ROLE_INVOICE, ("invoice",), ("lines",)),
    (ROLE_GRN_LINES, ("grn_lines",), ()),
    (ROLE_GRN, ("grn",), ("lines",)),
    (ROLE_MATCHING, ("three_way", "matching"), ()),
    (ROLE_GST, ("gst",), ()),
    (ROLE_PAYMENT, ("payment",), ()),
]

MANUAL_MATCH_STATUSES = {"manual", "pending"}
FAILED_GST_STATUSES = {"failed", "manual"}
CHURNED_VENDOR_STATUSES = {"inactive", "blocked"}

# Issue thresholds (share of the relevant population)
MANUAL_INVOICE_ISSUE_RATIO = 0.5
MANUAL_MATCH_ISSUE_RATIO = 0.5
PROCESSING_DAYS_PER_MANUAL_RECORD = 0.1


def detect_file_role(filename: str) -> str:
    """Assign a role to an upload from its filename (case-insensitive)."""
    name = filename.lower()
    for role, includes, excludes in ROLE_PATTERNS:
        if any(s in name for s in includes) and not any(s in name for s in excludes):
            return role
    return ROLE_UNKNOWN


@dataclass(frozen=True)
class UploadedFile:
    """One uploaded file: its name and raw content."""
    filename: str
    content: Union[str, bytes]


@dataclass
class LineTotals:
    """Aggregates over the invoice lines of one reconciliation."""
    rollups: List[ItemRollup] = field(default_factory=list)
    spend: float = 0.0
    consumed: float = 0.0
    unconfirmed_spend: float = 0.0
    dates: List[Any] = field(default_factory=list)
    dated_allocated: List[float] = field(default_factory=list)
    dated_consumed: List[float] = field(default_factory=list)


# ==============================================================================
# ROW FIELD ACCESS
# ==============================================================================

def _value(row: RawRow, *names: str) -> Any:
    """First non-blank value among the named columns (header case ignored)."""
    lowered = {str(k).strip().lower(): v for k, v in row.items()}
    for name in names:
        v = lowered.get(name)
        if clean_text(v) is not None:
            return v
    return None


def _text(row: RawRow, *names: str) -> Optional[str]:
    return clean_text(_value(row, *names))


def _lower(row: RawRow, *names: str) -> str:
    return (_text(row, *names) or "").lower()


def _delay(row: RawRow) -> float:
    return parse_number(_value(row, "payment_delay"), 0.0) or 0.0


def _is_delayed_payment(row: RawRow) -> bool:
    return _lower(row, "status") == "delayed" or _delay(row) > 0


# ==============================================================================
# RECONCILIATION
# ==============================================================================

class _Reconciliation:
    """Working state for one reconcile() call."""

    def __init__(self, data: Dict[str, List[RawRow]], settings: AnalysisSettings):
        self.settings = settings
        self.data = data
        self.invoices = data.get(ROLE_INVOICE, [])
        self.invoice_lines = data.get(ROLE_INVOICE_LINES, [])
        self.matching = data.get(ROLE_MATCHING, [])
        self.payment = data.get(ROLE_PAYMENT, [])
        self.gst = data.get(ROLE_GST, [])
        self.vendors = data.get(ROLE_VENDORS, [])

        # Invoice header rows when present, otherwise the invoice lines
        self.invoice_count = len(self.invoices) if self.invoices else len(self.invoice_lines)

        records = sum(len(data.get(role, [])) for role in (ROLE_INVOICE, ROLE_PO, ROLE_PR, ROLE_GRN))
        self.total_records = records or self.invoice_count

    def fallback(self, ratio: float) -> int:
        return round_count(ratio * self.invoice_count)

    def manual_count(self) -> int:
        if not self.matching:
            return self.fallback(self.settings.manual_fallback_ratio)
        return sum(1 for m in self.matching if _lower(m, "match_status") in MANUAL_MATCH_STATUSES)

    def delayed_count(self) -> int:
        if not self.payment:
            return self.fallback(self.settings.delay_fallback_ratio)
        return sum(1 for p in self.payment if _is_delayed_payment(p))

    def outlier_count(self) -> int:
        if not self.gst:
            return self.fallback(self.settings.outlier_fallback_ratio)
        return sum(1 for g in self.gst if _lower(g, "validation_status") in FAILED_GST_STATUSES)

    def avg_delay_days(self, delayed: int) -> float:
        delays = [d for d in (_delay(p) for p in self.payment) if d > 0]
        if delays:
            return round_half_up(sum(delays) / len(delays), 1)
        return self.settings.default_avg_delay_days if delayed > 0 else 0.0

    def vendor_churn(self) -> int:
        statuses = [_lower(v, "status", "vendor_status") for v in self.vendors]
        if not any(statuses):
            return self.settings.default_vendor_churn
        churned = sum(1 for s in statuses if s in CHURNED_VENDOR_STATUSES)
        return percent(churned, len(statuses))

    def received_po_numbers(self) -> Set[str]:
        """PO numbers that have at least one goods receipt."""
        received = set()
        for role in (ROLE_GRN, ROLE_GRN_LINES):
            for row in self.data.get(role, []):
                po = _text(row, "po_number", "po_id", "po_no")
                if po:
                    received.add(po)
        return received

    def invoice_index(self) -> Dict[str, RawRow]:
        index = {}
        for invoice in self.invoices:
            key = _text(invoice, "invoice_id", "invoice_number", "invoice_no", "id")
            if key:
                index[key] = invoice
        return index

    def line_totals(self) -> LineTotals:
        """
        Per-item rollups from invoice lines.

        A line counts as received when it carries its own GRN reference or
        its PO (its own, else its parent invoice's) appears in a GRN file.
        """
        received = self.received_po_numbers()
        invoices = self.invoice_index()
        rollups: Dict[Tuple[str, str], ItemRollup] = {}
        totals = LineTotals()

        for i, line in enumerate(self.invoice_lines):
            amount = parse_amount(_value(line, "amount", "line_amount", "total"))
            totals.spend += amount

            item = _text(line, "item_name", "description") or f"Item {_text(line, 'id', 'line_id') or i + 1}"
            category = resolve_category(_text(line, "category"), item)

            parent = invoices.get(_text(line, "invoice_id", "invoice_number", "invoice_no") or "", {})
            po = _text(line, "po_number", "po_id", "po_no") or _text(parent, "po_number", "po_id", "po_no")
            has_receipt = bool(_text(line, "grn_number", "grn_id")) or (po is not None and po in received)

            if has_receipt:
                consumed = amount
            else:
                consumed = amount * self.settings.unconfirmed_receipt_factor
                totals.unconfirmed_spend += amount
            totals.consumed += consumed

            key = (category, item)
            if key not in rollups:
                rollups[key] = ItemRollup(category=category, name=item)
            rollups[key].add(amount, consumed)

            line_date = parse_date(_value(line, "invoice_date", "date", "line_date"))
            if line_date is None:
                line_date = parse_date(_value(parent, "invoice_date", "date"))
            if line_date is not None:
                totals.dates.append(line_date)
                totals.dated_allocated.append(amount)
                totals.dated_consumed.append(consumed)

        totals.rollups = list(rollups.values())
        return totals

    def critical_issues(self, manual: int) -> List[CriticalIssue]:
        issues = []

        if manual > self.invoice_count * MANUAL_INVOICE_ISSUE_RATIO:
            issues.append(CriticalIssue(
                type="Invoice Receipt",
                title=f"{percent(manual, self.total_records)}% Manual",
                description=f"Takes {math.ceil(manual * PROCESSING_DAYS_PER_MANUAL_RECORD)} days/invoice",
                impact="Target: 5% Manual",
                severity="critical",
                automation_level="15%",
                target="5% Manual",
            ))

        if self.matching:
            manual_matches = sum(
                1 for m in self.matching
                if _lower(m, "match_status") == "manual" or _lower(m, "match_type") == "manual"
            )
            if manual_matches > len(self.matching) * MANUAL_MATCH_ISSUE_RATIO:
                manual_pct = percent(manual_matches, len(self.matching))
                issues.append(CriticalIssue(
                    type="3-Way Matching",
                    title=f"{manual_pct}% Manual",
                    description="High error rate",
                    impact="Target: 5% Manual",
                    severity="warning",
                    automation_level=f"{100 - manual_pct}%",
                    target="5% Manual",
                ))

        if any(
            _lower(g, "validation_status") == "manual" or _lower(g, "validation_method") == "manual"
            for g in self.gst
        ):
            issues.append(CriticalIssue(
                type="GST Validation",
                title="Manual Checks",
                description="Compliance risk",
                impact="Target: AI Automated",
                severity="warning",
                automation_level="40%",
                target="AI Automated",
            ))

        if any(_is_delayed_payment(p) for p in self.payment):
            issues.append(CriticalIssue(
                type="Payment Auth",
                title="Delayed",
                description="Vendor trust erosion",
                impact="Target: On-Time",
                severity="critical",
                automation_level="20%",
                target="On-Time",
            ))

        return issues


@timed
def reconcile(
    data: Dict[str, List[RawRow]],
    settings: Optional[AnalysisSettings] = None,
    quality_score: Optional[int] = None,
) -> DashboardData:
    """
    Reduce role-keyed parsed files into one dashboard snapshot.

    Args:
        data: Role -> raw rows (see detect_file_role)
        settings: Business heuristics (defaults when omitted)
        quality_score: 0-100 data-quality score for the problems banner

    Returns:
        DashboardData including criticalIssues, totalRecords,
        revenueImpact, avgDelayDays and monthlyWaste
    """
    settings = settings or AnalysisSettings()
    run = _Reconciliation(data, settings)

    manual = run.manual_count()
    delayed = run.delayed_count()
    outliers = run.outlier_count()
    lines = run.line_totals()

    total = run.total_records
    avg_delay = run.avg_delay_days(delayed)
    monthly_waste = lines.spend * settings.monthly_waste_ratio
    revenue_impact = monthly_waste * settings.revenue_impact_ratio

    if lines.dates:
        kpis = monthly_kpis(lines.dates, lines.dated_allocated, lines.dated_consumed)
    elif lines.spend > 0:
        kpis = projected_kpis(lines.spend, safe_ratio(lines.consumed, lines.spend) * 100)
    else:
        kpis = Kpis()

    logger.info(
        f"Reconciled {sum(len(v) for v in data.values())} rows across {len(data)} roles: "
        f"records={total}, manual={manual}, delayed={delayed}, validation_failures={outliers}"
    )

    return DashboardData(
        matrix=build_matrix(lines.rollups),
        outputs=Outputs(
            outliers=outliers,
            normal=max(0, total - delayed - outliers),
            delayed=delayed,
            exceptions=manual,
        ),
        problems=ProblemData(
            payment_delay_percent=percent(delayed, total),
            avg_delay_days=avg_delay,
            over_consumption=percent(lines.unconfirmed_spend, lines.spend),
            waste_amount=format_thousands(monthly_waste, settings.currency_symbol),
            manual_work=percent(manual, total),
            processing_time=math.ceil(manual * PROCESSING_DAYS_PER_MANUAL_RECORD),
            vendor_churn=run.vendor_churn(),
            quality_score=quality_display(quality_score),
        ),
        financial=FinancialData(
            revenue_loss=format_lakhs(revenue_impact, settings.currency_symbol),
            cost_increase=settings.cost_increase,
            time_waste=f"{int(round_half_up(manual * settings.hours_per_manual_record))}hrs",
        ),
        health_score=health_score(
            safe_ratio(manual, total), safe_ratio(delayed, total), safe_ratio(outliers, total)
        ),
        kpis=kpis,
        critical_issues=run.critical_issues(manual),
        total_records=total,
        revenue_impact=round(revenue_impact, 2),
        avg_delay_days=avg_delay,
        monthly_waste=round(monthly_waste, 2),
    )


def load_uploads(files: Sequence[UploadedFile], max_workers: int = 4) -> List[List[RawRow]]:
    """
    Parse uploads concurrently; results follow upload order.

    Raises:
        FileParseError: any file is unreadable (no partial result)
    """
    start = time.perf_counter()
    parsed: List[List[RawRow]] = [[] for _ in files]
    workers = max(1, min(max_workers, len(files)))

    with ThreadPoolExecutor(max_workers=workers) as executor:
        future_to_idx = {
            executor.submit(load_rows, f.content, f.filename): idx
            for idx, f in enumerate(files)
        }
        for future in as_completed(future_to_idx):
            parsed[future_to_idx[future]] = future.result()
    log_performance(f"Parsed {len(files)} uploads", start, records=sum(len(rows) for rows in parsed))
    return parsed


def group_by_role(files: Sequence[UploadedFile], parsed: Sequence[List[RawRow]]) -> Dict[str, List[RawRow]]:
    """Group parsed uploads by role; files sharing a role are concatenated in upload order."""
    data: Dict[str, List[RawRow]] = {}
    for upload, rows in zip(files, parsed):
        role = detect_file_role(upload.filename)
        if role == ROLE_UNKNOWN:
            logger.warning(f"{upload.filename}: unrecognised file role, not aggregated")
        data.setdefault(role, []).extend(rows)
    return data


def parse_uploads(files: Sequence[UploadedFile], max_workers: int = 4) -> Dict[str, List[RawRow]]:
    """
    Parse uploads and group their rows by role.

    Raises:
        FileParseError: any file is unreadable (no partial result)
    """
    return group_by_role(files, load_uploads(files, max_workers))


def reconcile_uploads(
    files: Sequence[UploadedFile],
    settings: Optional[AnalysisSettings] = None,
    quality_score: Optional[int] = None,
    max_workers: int = 4,
) -> DashboardData:
    """Parse then reconcile a set of uploaded files."""
    return reconcile(parse_uploads(files, max_workers), settings, quality_score)
