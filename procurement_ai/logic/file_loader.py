"""
Procurement AI - File Loading Module

Turns uploaded file content (CSV text/bytes or Excel workbooks) into the
ordered list of raw header -> value records the analyzers consume.

A file that cannot be decoded or parsed raises FileParseError; nothing is
partially returned. An empty file is not an error: it yields zero rows.
"""

from __future__ import annotations

import io
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import pandas as pd

from .logging_utils import get_logger

logger = get_logger(__name__)

RawRow = Dict[str, Any]

CSV_EXTENSIONS = {"csv", "txt", "tsv"}
EXCEL_EXTENSIONS = {"xlsx", "xlsm", "xls"}
TEXT_ENCODINGS = ("utf-8-sig", "cp1252")


class FileParseError(Exception):
    """Raised when an uploaded file cannot be read as a table."""

    def __init__(self, filename: str, reason: str):
        self.filename = filename
        self.reason = reason
        super().__init__(f"Could not parse '{filename}': {reason}")


def file_extension(filename: str) -> str:
    return Path(filename).suffix.lower().lstrip(".")


def _decode(content: Union[str, bytes], filename: str) -> str:
    if isinstance(content, str):
        return content
    for encoding in TEXT_ENCODINGS:
        try:
            return content.decode(encoding)
        except UnicodeDecodeError:
            continue
    raise FileParseError(filename, "unreadable text encoding")


def _read_csv(content: Union[str, bytes], filename: str) -> pd.DataFrame:
    text = _decode(content, filename)
    if not text.strip():
        return pd.DataFrame()

    sep = "\t" if file_extension(filename) == "tsv" else ","
    try:
        return pd.read_csv(io.StringIO(text), sep=sep, skip_blank_lines=True)
    except pd.errors.EmptyDataError:
        return pd.DataFrame()
    except (pd.errors.ParserError, ValueError) as e:
        raise FileParseError(filename, f"malformed CSV ({e})") from e


def read_excel_sheets(content: bytes, filename: str) -> Dict[str, pd.DataFrame]:
    """All non-empty sheets of a workbook, keyed by sheet name."""
    if isinstance(content, str):
        raise FileParseError(filename, "Excel content must be bytes")
    try:
        sheets = pd.read_excel(io.BytesIO(content), sheet_name=None)
    except Exception as e:
        # openpyxl/xlrd raise a zoo of exception types for corrupt workbooks
        raise FileParseError(filename, f"unreadable workbook ({type(e).__name__}: {e})") from e

    return {name: df for name, df in sheets.items() if not df.dropna(how="all").empty}


def load_dataframe(content: Union[str, bytes], filename: str) -> pd.DataFrame:
    """
    Parse an upload into a DataFrame.

    Workbooks with several sheets use the largest non-empty sheet.

    Raises:
        FileParseError: unsupported extension, bad encoding or malformed file
    """
    ext = file_extension(filename)

    if ext in CSV_EXTENSIONS or ext == "":
        df = _read_csv(content, filename)
    elif ext in EXCEL_EXTENSIONS:
        sheets = read_excel_sheets(content, filename)
        if not sheets:
            df = pd.DataFrame()
        else:
            name, df = max(sheets.items(), key=lambda kv: len(kv[1]))
            if len(sheets) > 1:
                logger.info(
                    f"{filename}: {len(sheets)} sheets "
                    f"({', '.join(f'{n}: {len(d)} rows' for n, d in sheets.items())}); analysing '{name}'"
                )
    else:
        raise FileParseError(filename, f"unsupported file type '.{ext}'")

    # Rows with no values at all are spreadsheet padding
    df = df.dropna(how="all")
    df.columns = [str(c).strip() for c in df.columns]
    return df.reset_index(drop=True)


def dataframe_to_rows(df: pd.DataFrame) -> List[RawRow]:
    """Row-major records with NaN/NaT turned into None and numpy scalars unboxed."""
    if df.empty:
        return []
    clean = df.astype(object).where(pd.notna(df), None)
    rows = clean.to_dict(orient="records")
    return [{str(k): _unbox(v) for k, v in row.items()} for row in rows]


def _unbox(v: Any) -> Any:
    item = getattr(v, "item", None)
    if callable(item) and not isinstance(v, (str, bytes, pd.Timestamp)):
        try:
            return item()
        except (ValueError, TypeError):
            return v
    return v


def load_rows(content: Union[str, bytes], filename: str) -> List[RawRow]:
    """Parse an upload straight into raw records."""
    rows = dataframe_to_rows(load_dataframe(content, filename))
    logger.debug(f"Loaded {len(rows)} rows from {filename}")
    return rows


def headers_of(rows: List[RawRow], df: Optional[pd.DataFrame] = None) -> List[str]:
    """Header list of a parsed table (from the frame when rows are empty)."""
    if df is not None:
        return [str(c) for c in df.columns]
    return list(rows[0].keys()) if rows else []
