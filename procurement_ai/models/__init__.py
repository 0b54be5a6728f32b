# procurement_ai/models/__init__.py
"""
Data Models for Procurement AI

Pydantic models for normalized rows, dashboard snapshots, column mappings
and data-quality reports. Field names serialize with the camelCase wire
names the presentation layer depends on (use ``model_dump(by_alias=True)``).
"""

from .dashboard import (
    ProcessedRow,
    Product,
    MatrixCell,
    Outputs,
    ProblemData,
    FinancialData,
    Kpis,
    CriticalIssue,
    DashboardData,
)
from .analysis import (
    ColumnMapping,
    MissingColumn,
    ValidationIssue,
    Recommendation,
    QualityReport,
    FileAnalysis,
)

__all__ = [
    "ProcessedRow",
    "Product",
    "MatrixCell",
    "Outputs",
    "ProblemData",
    "FinancialData",
    "Kpis",
    "CriticalIssue",
    "DashboardData",
    "ColumnMapping",
    "MissingColumn",
    "ValidationIssue",
    "Recommendation",
    "QualityReport",
    "FileAnalysis",
]
