"""Service layer consumed by presentation code (CLI, HTTP, UI)."""

from .analysis_service import AnalysisService

__all__ = ["AnalysisService"]
