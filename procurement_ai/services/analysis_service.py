# procurement_ai/services/analysis_service.py
"""
Analysis Service

Facade over the analysis pipeline. Presentation layers hand it uploaded
files and get back immutable snapshots:

- assess_file: column mapping + data quality (FileAnalysis)
- analyze_file: one file -> DashboardData
- analyze_files: several ERP exports -> reconciled DashboardData
- demo: seeded synthetic DashboardData

Parse failures propagate as FileParseError; no partial snapshot is built.
"""

from statistics import mean
from typing import Any, Dict, Optional, Sequence, Union

import pandas as pd

from procurement_ai.logic.column_analyzer import ColumnAnalyzer, get_column_analyzer
from procurement_ai.logic.config_manager import get_analysis_settings, get_config
from procurement_ai.logic.data_quality import validate_data_quality
from procurement_ai.logic.demo_data import generate_synthetic_data
from procurement_ai.logic.file_loader import dataframe_to_rows, headers_of, load_dataframe
from procurement_ai.logic.logging_utils import get_logger
from procurement_ai.logic.multi_file_reconciler import UploadedFile, group_by_role, load_uploads, reconcile
from procurement_ai.logic.parse_utils import round_half_up
from procurement_ai.logic.single_file_analyzer import analyze_raw_rows
from procurement_ai.models import DashboardData, FileAnalysis

logger = get_logger(__name__)


class AnalysisService:
    """Orchestrates parsing, validation and aggregation for uploads."""

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        analyzer: Optional[ColumnAnalyzer] = None,
    ):
        self.config = config if config is not None else get_config()
        self.settings = get_analysis_settings(self.config)
        self.analyzer = analyzer or get_column_analyzer(self.config)

    def assess_file(self, content: Union[str, bytes], filename: str) -> FileAnalysis:
        """Column mapping, sufficiency and quality review of one upload."""
        df = load_dataframe(content, filename)
        rows = dataframe_to_rows(df)
        return self.analyzer.analyze(rows, filename, headers_of(rows, df))

    def analyze_file(
        self,
        content: Union[str, bytes],
        filename: str,
        today: Optional[pd.Timestamp] = None,
    ) -> DashboardData:
        """Dashboard snapshot for a single upload."""
        df = load_dataframe(content, filename)
        rows = dataframe_to_rows(df)
        quality = validate_data_quality(rows, headers_of(rows, df))
        logger.info(f"Analysing {filename}: {len(rows)} rows, quality {quality.quality_score}")
        return analyze_raw_rows(rows, self.settings, quality.quality_score, today)

    def analyze_files(
        self,
        files: Sequence[UploadedFile],
        today: Optional[pd.Timestamp] = None,
        max_workers: int = 4,
    ) -> DashboardData:
        """
        Dashboard snapshot for a set of uploads.

        A single file is analysed on its own; several files are reconciled
        by role. The quality banner shows the mean quality of the non-empty
        uploads, each validated before files sharing a role are merged.
        No files at all gives the zero-filled snapshot with an N/A banner.
        """
        if not files:
            logger.warning("No files uploaded; returning an empty dashboard")
            return reconcile({}, self.settings, None)
        if len(files) == 1:
            return self.analyze_file(files[0].content, files[0].filename, today)

        parsed = load_uploads(files, max_workers=max_workers)
        scores = [validate_data_quality(rows).quality_score for rows in parsed if rows]
        quality_score = int(round_half_up(mean(scores))) if scores else None

        data = group_by_role(files, parsed)
        logger.info(f"Reconciling {len(files)} files into roles {sorted(data)}")
        return reconcile(data, self.settings, quality_score)

    def demo(self, period: str = "monthly", seed: Optional[int] = None) -> DashboardData:
        return generate_synthetic_data(period, seed)
