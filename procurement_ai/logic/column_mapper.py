"""
Procurement AI - Column Mapping Module

Maps arbitrary spreadsheet header strings onto a fixed catalog of standard
procurement fields, reports which standard fields are missing, and makes
the data-sufficiency and UI-rendering decisions for an upload.

Scoring per (header, variation) pair:
- exact string equality            -> 1.0
- substring in either direction    -> 0.8
- otherwise word-overlap ratio     -> matched words / max(word counts)

The best score above MAPPING_ACCEPTANCE_THRESHOLD wins; the first
field/variation to reach it is kept, so results are stable for a given
header list.

Author: Procurement AI Team
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Set

from rapidfuzz import fuzz, process

from procurement_ai.models.analysis import ColumnMapping, MissingColumn
from .constants import (
    COMPLETE,
    CRITICAL,
    CRITICAL_FIELDS,
    EXACT_MATCH_CONFIDENCE,
    HIGH,
    INSUFFICIENT,
    LOW,
    MAPPING_ACCEPTANCE_THRESHOLD,
    MEDIUM_OPTIONAL_FIELDS,
    MEDIUM_SEVERITY,
    PARTIAL,
    PARTIAL_REQUIRED_RATIO,
    SEVERITY_ORDER,
    STANDARD_UI_COMPLETE_RATIO,
    STANDARD_UI_PARTIAL_RATIO,
    SUBSTRING_MATCH_CONFIDENCE,
    SUGGESTION_MIN_SCORE,
    UNKNOWN_FIELD,
    USE_CUSTOM_UI,
    USE_STANDARD_UI,
    WELL_MAPPED_CONFIDENCE,
)
from .logging_utils import get_logger

logger = get_logger(__name__)


# ====================================================================================
# STANDARD FIELD CATALOG
# ====================================================================================

@dataclass(frozen=True)
class StandardField:
    """One entry of the standard procurement field catalog."""
    name: str
    variations: tuple
    required: bool
    data_type: str
    description: str


# Iteration order is the tie-break order.
STANDARD_PROCUREMENT_FIELDS: List[StandardField] = [
    StandardField(
        "PO_Number",
        ("po number", "purchase order", "po#", "order number", "po id", "purchase order number"),
        True, "string", "Unique purchase order identifier",
    ),
    StandardField(
        "Vendor_Name",
        ("vendor", "supplier", "vendor name", "supplier name", "company", "vendor company"),
        True, "string", "Name of the vendor or supplier",
    ),
    StandardField(
        "Item_Description",
        ("item", "description", "product", "item description", "product description", "goods"),
        True, "string", "Description of the purchased item or service",
    ),
    StandardField(
        "Quantity",
        ("qty", "quantity", "amount", "units", "count", "number of items"),
        True, "number", "Quantity of items ordered",
    ),
    StandardField(
        "Unit_Price",
        ("unit price", "price", "cost", "unit cost", "rate", "price per unit"),
        True, "number", "Price per unit of the item",
    ),
    StandardField(
        "Total_Amount",
        ("total", "total amount", "total cost", "amount", "value", "total price"),
        True, "number", "Total cost for the line item",
    ),
    StandardField(
        "Order_Date",
        ("order date", "date", "purchase date", "po date", "created date", "order created"),
        True, "date", "Date when the purchase order was created",
    ),
    StandardField(
        "Delivery_Date",
        ("delivery date", "due date", "expected date", "ship date", "delivery", "expected delivery"),
        False, "date", "Expected or actual delivery date",
    ),
    StandardField(
        "Status",
        ("status", "state", "condition", "order status", "po status"),
        False, "string", "Current status of the purchase order",
    ),
    StandardField(
        "Category",
        ("category", "type", "classification", "group", "department", "item category"),
        False, "string", "Category or classification of the purchased item",
    ),
    StandardField(
        "Budget_Code",
        ("budget", "budget code", "cost center", "department code", "account code"),
        False, "string", "Budget or cost center code for accounting",
    ),
    StandardField(
        "Approval_Status",
        ("approval", "approved", "approval status", "authorized", "approved by"),
        False, "string", "Approval status of the purchase order",
    ),
]

FIELDS_BY_NAME: Dict[str, StandardField] = {f.name: f for f in STANDARD_PROCUREMENT_FIELDS}

REQUIRED_FIELDS: List[str] = [f.name for f in STANDARD_PROCUREMENT_FIELDS if f.required]

_WORD_SPLIT = re.compile(r"[\s_\-]+")


# ====================================================================================
# SCORING
# ====================================================================================

def normalize_header(header: str) -> str:
    """Lowercase/trimmed form used for all comparisons."""
    return str(header).lower().strip()


def _words(text: str) -> List[str]:
    return [w for w in _WORD_SPLIT.split(text) if w]


def word_overlap_score(header: str, variation: str) -> float:
    """
    Fraction of header words that fuzzily match a variation word.

    A word matches when either contains the other. Divided by the larger
    word count so one shared word in a long header scores low.
    """
    header_words = _words(header)
    variation_words = _words(variation)
    if not header_words or not variation_words:
        return 0.0

    matching = [
        w for w in header_words
        if any(w in v or v in w for v in variation_words)
    ]
    return len(matching) / max(len(header_words), len(variation_words))


def score_header(header: str, variation: str) -> tuple:
    """
    Score one header against one variation.

    Returns:
        (confidence, match_type) with confidence in [0, 1]
    """
    h = normalize_header(header)
    v = normalize_header(variation)
    if not h:
        return 0.0, "none"
    if h == v:
        return EXACT_MATCH_CONFIDENCE, "exact"
    if v in h or h in v:
        return SUBSTRING_MATCH_CONFIDENCE, "substring"
    return word_overlap_score(h, v), "word"


def suggest_field(header: str) -> Optional[str]:
    """
    Closest standard field for a header that did not map.

    Informational only: it never changes mappings or sufficiency.
    """
    h = normalize_header(header)
    if not h:
        return None

    choices = {
        f"{field.name}|{variation}": variation
        for field in STANDARD_PROCUREMENT_FIELDS
        for variation in (field.name.replace("_", " ").lower(),) + field.variations
    }
    best = process.extractOne(h, choices, scorer=fuzz.token_set_ratio, score_cutoff=SUGGESTION_MIN_SCORE)
    if best is None:
        return None
    _, _, key = best
    return key.split("|", 1)[0]


# ====================================================================================
# MAPPING
# ====================================================================================

def map_column(header: str) -> ColumnMapping:
    """Map a single header to its best standard field (or Unknown)."""
    best_field: Optional[StandardField] = None
    best_confidence = 0.0
    best_type = "none"

    for field in STANDARD_PROCUREMENT_FIELDS:
        for variation in field.variations:
            confidence, match_type = score_header(header, variation)
            # Strict comparison keeps the first field reaching the best score
            if confidence > MAPPING_ACCEPTANCE_THRESHOLD and confidence > best_confidence:
                best_field = field
                best_confidence = confidence
                best_type = match_type

    if best_field is None:
        return ColumnMapping(
            original_name=header,
            standard_name=UNKNOWN_FIELD,
            confidence=0.0,
            data_type="string",
            required=False,
            match_type="none",
            suggestion=suggest_field(header),
        )

    return ColumnMapping(
        original_name=header,
        standard_name=best_field.name,
        confidence=round(best_confidence, 4),
        data_type=best_field.data_type,
        required=best_field.required,
        match_type=best_type,
    )


def map_columns(headers: Iterable[str]) -> List[ColumnMapping]:
    """
    Map every header to the standard catalog.

    Never raises; headers without a plausible match map to Unknown with
    confidence 0.
    """
    mappings = [map_column(str(h)) for h in headers]
    unknown = [m.original_name for m in mappings if m.standard_name == UNKNOWN_FIELD]
    if unknown:
        logger.debug(f"Unmapped headers: {unknown}")
    return mappings


def mapped_standard_names(mappings: Sequence[ColumnMapping]) -> Set[str]:
    """Standard fields that at least one header maps to with confidence."""
    return {
        m.standard_name for m in mappings
        if m.confidence > MAPPING_ACCEPTANCE_THRESHOLD and m.standard_name != UNKNOWN_FIELD
    }


def field_importance(field: StandardField) -> str:
    if field.required:
        return CRITICAL if field.name in CRITICAL_FIELDS else HIGH
    return MEDIUM_SEVERITY if field.name in MEDIUM_OPTIONAL_FIELDS else LOW


def find_missing_columns(mappings: Sequence[ColumnMapping]) -> List[MissingColumn]:
    """Standard fields no header maps to, most important first."""
    mapped = mapped_standard_names(mappings)

    missing = [
        MissingColumn(
            standard_name=field.name,
            importance=field_importance(field),
            description=field.description,
            required=field.required,
        )
        for field in STANDARD_PROCUREMENT_FIELDS
        if field.name not in mapped
    ]
    # sorted() is stable, so catalog order is kept within an importance level
    return sorted(missing, key=lambda m: SEVERITY_ORDER[m.importance])


def calculate_data_sufficiency(mappings: Sequence[ColumnMapping]) -> str:
    """
    Ternary sufficiency decision.

    INSUFFICIENT if any critical field is unmapped; COMPLETE if every
    required field is mapped; PARTIAL if at least 60% of required fields
    are mapped; otherwise INSUFFICIENT.
    """
    mapped = mapped_standard_names(mappings)

    if not all(f in mapped for f in CRITICAL_FIELDS):
        return INSUFFICIENT

    mapped_required = [f for f in REQUIRED_FIELDS if f in mapped]
    if len(mapped_required) == len(REQUIRED_FIELDS):
        return COMPLETE

    if len(mapped_required) / len(REQUIRED_FIELDS) >= PARTIAL_REQUIRED_RATIO:
        return PARTIAL

    return INSUFFICIENT


def determine_ui_rendering(mappings: Sequence[ColumnMapping], data_sufficiency: str) -> str:
    """Pick the standard dashboard only when most columns mapped confidently."""
    if not mappings:
        return USE_CUSTOM_UI

    well_mapped = sum(1 for m in mappings if m.confidence > WELL_MAPPED_CONFIDENCE)
    ratio = well_mapped / len(mappings)

    if data_sufficiency == COMPLETE and ratio > STANDARD_UI_COMPLETE_RATIO:
        return USE_STANDARD_UI
    if data_sufficiency == PARTIAL and ratio > STANDARD_UI_PARTIAL_RATIO:
        return USE_STANDARD_UI
    return USE_CUSTOM_UI


def has_all_critical_fields(mappings: Sequence[ColumnMapping]) -> bool:
    mapped = mapped_standard_names(mappings)
    return all(f in mapped for f in CRITICAL_FIELDS)


# ====================================================================================
# LOOSE HEADER LOOKUP (row normalization)
# ====================================================================================

def find_header(
    headers: Sequence[str],
    indicators: Sequence[str],
    require: Sequence[str] = (),
    exclude: Iterable[Optional[str]] = (),
) -> Optional[str]:
    """
    First header whose lowercased name contains any indicator substring.

    Used by row normalization where a best-effort guess beats no value.

    Args:
        headers: Candidate headers in file order
        indicators: Substrings, any of which qualifies a header
        require: Substrings of which at least one must also be present
        exclude: Headers already claimed by another field
    """
    claimed = {h for h in exclude if h}
    for header in headers:
        if header in claimed:
            continue
        lower = normalize_header(header)
        if not any(indicator in lower for indicator in indicators):
            continue
        if require and not any(r in lower for r in require):
            continue
        return header
    return None
