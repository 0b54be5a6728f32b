# procurement_ai/logic/data_quality.py
"""
Data Quality Validation Module

Scores the quality of an uploaded table before it is analysed and
produces prioritized recommendations.

Checks:
- Missing values per column
- Exact duplicate rows
- Non-numeric values in numeric-looking columns
- Unparseable values in date-looking columns
- 3-sigma statistical outliers
- Inconsistent text casing in categorical columns

Each issue carries a severity penalty (Critical 25, High 15, Medium 8,
Low 3) scaled by the share of rows it affects.
"""

import json
import re
from typing import Dict, List, Optional, Sequence, Union

import numpy as np
import pandas as pd

from procurement_ai.models.analysis import QualityReport, Recommendation, ValidationIssue
from .constants import CRITICAL, HIGH, LOW, MAX_AFFECTED_ROWS, MEDIUM_SEVERITY, SEVERITY_PENALTIES
from .file_loader import RawRow, dataframe_to_rows
from .logging_utils import get_logger
from .parse_utils import clean_text, is_blank, is_numeric_value, parse_date, round_half_up

logger = get_logger(__name__)

NUMERIC_COLUMN_PATTERN = re.compile(r"price|cost|amount|total|quantity|qty|rate|value", re.IGNORECASE)
DATE_COLUMN_PATTERN = re.compile(r"date|time|created|updated|delivery|due", re.IGNORECASE)

MIN_OUTLIER_SAMPLE = 10
OUTLIER_SIGMA = 3
MIN_CASING_SAMPLE = 5


def _percentage_severity(pct: float, critical: float, high: float, medium: float) -> str:
    if pct > critical:
        return CRITICAL
    if pct > high:
        return HIGH
    if pct > medium:
        return MEDIUM_SEVERITY
    return LOW


class DataQualityValidator:
    """Runs every quality check over one table of raw rows."""

    def __init__(self, rows: Sequence[RawRow], columns: Sequence[str] = ()):
        self.rows = list(rows)
        self.columns = list(columns) or self._columns_of(self.rows)
        self.issues: List[ValidationIssue] = []

    @staticmethod
    def _columns_of(rows: Sequence[RawRow]) -> List[str]:
        columns: List[str] = []
        for row in rows:
            for key in row:
                if key not in columns:
                    columns.append(key)
        return columns

    def _column_values(self, column: str) -> List[tuple]:
        """(1-based row number, value) pairs for non-blank cells."""
        return [
            (i + 1, row.get(column))
            for i, row in enumerate(self.rows)
            if not is_blank(row.get(column))
        ]

    def _add(self, type_: str, description: str, rows: List[int], severity: str, column: Optional[str] = None):
        self.issues.append(ValidationIssue(
            type=type_,
            description=description,
            affected_rows=rows[:MAX_AFFECTED_ROWS],
            severity=severity,
            column=column,
        ))

    # ------------------------------------------------------------------
    # Checks
    # ------------------------------------------------------------------

    def check_missing_values(self):
        total = len(self.rows)
        for column in self.columns:
            missing = [i + 1 for i, row in enumerate(self.rows) if is_blank(row.get(column))]
            if not missing:
                continue
            pct = len(missing) / total * 100
            self._add(
                "Missing Values",
                f'Column "{column}" has {len(missing)} missing values ({pct:.1f}%)',
                missing,
                _percentage_severity(pct, 50, 25, 10),
                column,
            )

    def check_duplicates(self):
        seen: Dict[str, List[int]] = {}
        for i, row in enumerate(self.rows):
            key = json.dumps(row, default=str)
            seen.setdefault(key, []).append(i + 1)

        groups = [indices for indices in seen.values() if len(indices) > 1]
        if not groups:
            return

        extra_rows = sum(len(g) - 1 for g in groups)
        pct = extra_rows / len(self.rows) * 100
        self._add(
            "Duplicate Rows",
            f"Found {len(groups)} sets of duplicate rows affecting {extra_rows} rows ({pct:.1f}%)",
            [i for g in groups for i in g[1:]],
            _percentage_severity(pct, 20, 10, 5),
        )

    def check_formats(self):
        for column in self.columns:
            values = self._column_values(column)
            if not values:
                continue

            if NUMERIC_COLUMN_PATTERN.search(column):
                invalid = [n for n, v in values if not is_numeric_value(v)]
                if invalid:
                    pct = len(invalid) / len(values) * 100
                    self._add(
                        "Invalid Numeric Format",
                        f'Column "{column}" appears to be numeric but has {len(invalid)} '
                        f"non-numeric values ({pct:.1f}%)",
                        invalid,
                        _percentage_severity(pct, 100, 25, 10),
                        column,
                    )

            if DATE_COLUMN_PATTERN.search(column):
                invalid = [n for n, v in values if parse_date(v) is None]
                if invalid:
                    pct = len(invalid) / len(values) * 100
                    self._add(
                        "Invalid Date Format",
                        f'Column "{column}" appears to be a date but has {len(invalid)} '
                        f"invalid date values ({pct:.1f}%)",
                        invalid,
                        _percentage_severity(pct, 100, 25, 10),
                        column,
                    )

    def check_outliers(self):
        for column in self.columns:
            numeric = [
                (n, float(v)) for n, v in self._column_values(column)
                if not isinstance(v, bool) and is_numeric_value(v)
            ]
            numeric = [(n, v) for n, v in numeric if np.isfinite(v)]
            if len(numeric) < MIN_OUTLIER_SAMPLE:
                continue

            values = np.array([v for _, v in numeric])
            mean = values.mean()
            std = values.std()
            flagged = [n for n, v in numeric if abs(v - mean) > OUTLIER_SIGMA * std]
            if not flagged:
                continue

            pct = len(flagged) / len(numeric) * 100
            if pct > 1:
                self._add(
                    "Statistical Outliers",
                    f'Column "{column}" has {len(flagged)} statistical outliers '
                    f"({pct:.1f}% of numeric values)",
                    flagged,
                    MEDIUM_SEVERITY if pct > 10 else LOW,
                    column,
                )

    def check_casing(self):
        for column in self.columns:
            texts = [clean_text(v) for _, v in self._column_values(column)]
            if len(texts) < MIN_CASING_SAMPLE:
                continue

            variants: Dict[str, set] = {}
            counts: Dict[str, int] = {}
            for text in texts:
                lower = text.lower()
                variants.setdefault(lower, set()).add(text)
                counts[lower] = counts.get(lower, 0) + 1

            inconsistent = [k for k, forms in variants.items() if len(forms) > 1 and counts[k] > 1]
            if inconsistent:
                self._add(
                    "Inconsistent Text Casing",
                    f'Column "{column}" has inconsistent text casing for {len(inconsistent)} values',
                    [],
                    LOW,
                    column,
                )

    # ------------------------------------------------------------------
    # Scoring
    # ------------------------------------------------------------------

    def score(self) -> int:
        total = len(self.rows)
        score = 100.0
        for issue in self.issues:
            penalty = SEVERITY_PENALTIES[issue.severity]
            if issue.affected_rows:
                penalty *= min(len(issue.affected_rows) / total * 2, 1)
            score -= penalty
        return max(0, int(round_half_up(score)))

    def recommendations(self) -> List[Recommendation]:
        issues = self.issues
        recs = []

        critical = [i for i in issues if i.severity == CRITICAL]
        if critical:
            recs.append(Recommendation(
                action="Address Critical Issues",
                description=f"Fix {len(critical)} critical data quality issues before proceeding",
                priority=CRITICAL,
            ))

        missing = [i for i in issues if i.type == "Missing Values"]
        if missing:
            recs.append(Recommendation(
                action="Handle Missing Values",
                description="Fill in missing values or remove incomplete rows",
                priority=HIGH if any(i.severity == HIGH for i in missing) else MEDIUM_SEVERITY,
            ))

        if any(i.type == "Duplicate Rows" for i in issues):
            recs.append(Recommendation(
                action="Remove Duplicates",
                description="Remove or consolidate duplicate rows to improve data accuracy",
                priority=MEDIUM_SEVERITY,
            ))

        if any("Format" in i.type for i in issues):
            recs.append(Recommendation(
                action="Fix Data Formats",
                description="Correct data format issues for numeric and date columns",
                priority=MEDIUM_SEVERITY,
            ))

        if not recs:
            recs.append(Recommendation(
                action="Data Quality Good",
                description="Your data quality looks good! You can proceed with analysis",
                priority=LOW,
            ))
        return recs

    def validate(self) -> QualityReport:
        """Run all checks and build the report."""
        if not self.rows:
            return QualityReport(
                quality_score=0,
                issues=[ValidationIssue(
                    type="No Data",
                    description="No data found in the uploaded file",
                    severity=CRITICAL,
                )],
                recommendations=[Recommendation(
                    action="Upload valid file",
                    description="Please upload a file with data rows",
                    priority=CRITICAL,
                )],
            )

        self.issues = []
        self.check_missing_values()
        self.check_duplicates()
        self.check_formats()
        self.check_outliers()
        self.check_casing()

        report = QualityReport(
            quality_score=self.score(),
            issues=self.issues,
            recommendations=self.recommendations(),
        )
        logger.debug(f"Quality score {report.quality_score} with {len(self.issues)} issues")
        return report


def validate_data_quality(
    data: Union[Sequence[RawRow], pd.DataFrame],
    columns: Optional[Sequence[str]] = None,
) -> QualityReport:
    """
    Validate a table of raw rows (or a DataFrame).

    Args:
        data: Raw rows or a parsed DataFrame
        columns: Header order to check (defaults to the keys seen in the rows)

    Returns:
        QualityReport; an empty table scores 0 with a Critical "No Data" issue
    """
    if isinstance(data, pd.DataFrame):
        return DataQualityValidator(dataframe_to_rows(data), [str(c) for c in data.columns]).validate()
    return DataQualityValidator(data, columns or ()).validate()
