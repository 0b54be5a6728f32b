# procurement_ai/logic/parse_utils.py
"""
Parsing Utilities Module

Safe parsing of numbers, dates, and text from loosely-typed spreadsheet
cells. Parsers never raise: they return a default and debug-log the
offending value, because uploaded spreadsheets are inherently messy.
"""

import math
import re
from datetime import datetime, date
from typing import Any, Optional

import numpy as np
import pandas as pd

from .logging_utils import get_logger
from .constants import EXCEL_SERIAL_DATE_BASE

logger = get_logger(__name__)

_CURRENCY_CHARS = re.compile(r"[$,€£¥₹\s]")


def is_blank(v: Any) -> bool:
    """True for None, NaN/NaT, empty and whitespace-only strings."""
    if v is None:
        return True
    if isinstance(v, str):
        return v.strip() == ""
    try:
        return bool(pd.isna(v))
    except (TypeError, ValueError):
        return False


def clean_text(v: Any) -> Optional[str]:
    """Stringify a cell, returning None for blanks."""
    if is_blank(v):
        return None
    if isinstance(v, float) and v.is_integer():
        # "1001.0" from pandas float columns reads back as "1001"
        return str(int(v))
    return str(v).strip()


# ==============================================================================
# NUMBER PARSING
# ==============================================================================

def parse_number(v: Any, default: Optional[float] = None) -> Optional[float]:
    """
    Parse a numeric value from various formats.

    Handles:
    - String numbers with commas: "1,234.56" -> 1234.56
    - String numbers with currency: "₹1,234.56" -> 1234.56
    - Accounting format negatives: "(1,234.56)" -> -1234.56
    - Already numeric values

    Args:
        v: Value to parse
        default: Default value if parsing fails

    Returns:
        Parsed float or default value
    """
    if is_blank(v) or isinstance(v, bool):
        return default

    if isinstance(v, (int, float, np.integer, np.floating)):
        number = float(v)
        # pandas reads "inf"/"-inf" cells as floats
        return number if np.isfinite(number) else default

    try:
        s = str(v).strip()

        is_negative = False
        if s.startswith("(") and s.endswith(")"):
            is_negative = True
            s = s[1:-1]

        s = _CURRENCY_CHARS.sub("", s)

        result = float(s)
        if np.isnan(result) or np.isinf(result):
            return default
        return -result if is_negative else result

    except (ValueError, TypeError, AttributeError) as e:
        logger.debug(f"Failed to parse number from '{v}': {e}")
        return default


def parse_amount(v: Any) -> float:
    """Parse a monetary amount; failures and negatives become 0."""
    value = parse_number(v, default=0.0)
    return max(0.0, value)


def is_numeric_value(v: Any) -> bool:
    """Whether a non-blank cell reads as a plain number (no currency cleanup)."""
    if isinstance(v, bool):
        return True
    if isinstance(v, (int, float, np.integer, np.floating)):
        return True
    try:
        float(str(v).strip())
        return True
    except ValueError:
        return False


# ==============================================================================
# DATE PARSING
# ==============================================================================

def excel_serial_to_timestamp(serial: float) -> pd.Timestamp:
    """Convert a spreadsheet serial day number (days since 1899-12-30)."""
    return pd.Timestamp(EXCEL_SERIAL_DATE_BASE) + pd.to_timedelta(float(serial), unit="D")


def parse_date(v: Any) -> Optional[pd.Timestamp]:
    """
    Parse a date value from various formats.

    Handles:
    - Spreadsheet serial dates (e.g., 45000 -> 2023-03-15)
    - datetime / date / Timestamp objects
    - ISO and common string formats ("2024-03-14", "03/14/2024")

    Returns:
        Naive pandas Timestamp or None if parsing fails
    """
    if is_blank(v) or isinstance(v, bool):
        return None

    if isinstance(v, (int, float, np.integer, np.floating)):
        try:
            return excel_serial_to_timestamp(v)
        except (ValueError, OverflowError) as e:
            logger.debug(f"Failed to parse serial date {v}: {e}")
            return None

    if isinstance(v, (datetime, date, pd.Timestamp)):
        ts = pd.Timestamp(v)
        return ts.tz_localize(None) if ts.tzinfo is not None else ts

    try:
        ts = pd.to_datetime(str(v).strip())
    except (ValueError, TypeError, OverflowError, pd.errors.OutOfBoundsDatetime):
        logger.debug(f"Failed to parse date from '{v}'")
        return None

    if pd.isna(ts):
        return None
    return ts.tz_localize(None) if ts.tzinfo is not None else ts


def parse_date_or_today(v: Any, today: Optional[pd.Timestamp] = None) -> pd.Timestamp:
    """Parse a date, substituting the current date when it is unusable."""
    parsed = parse_date(v)
    if parsed is not None:
        return parsed
    return today if today is not None else pd.Timestamp.now().normalize()


# ==============================================================================
# ROUNDING
# ==============================================================================

def round_half_up(value: float, ndigits: int = 0) -> float:
    """Schoolbook rounding (0.5 rounds away from zero for positives)."""
    factor = 10 ** ndigits
    return math.floor(value * factor + 0.5) / factor


def round_count(value: float) -> int:
    """Round a non-negative estimate to a whole record count."""
    return int(round_half_up(value))
