from typing import Any, Dict, List, Literal, Optional

from pydantic import Field

from .dashboard import WireModel

Severity = Literal["Critical", "High", "Medium", "Low"]


class ColumnMapping(WireModel):
    """Mapping of one uploaded header onto the standard procurement catalog."""
    original_name: str = Field(..., alias="originalName")
    standard_name: str = Field(..., alias="standardName")
    confidence: float = Field(0.0, ge=0.0, le=1.0)
    data_type: str = Field("string", alias="dataType")
    required: bool = False
    match_type: str = Field("none", alias="matchType")  # "exact", "substring", "word", "remote", "none"
    suggestion: Optional[str] = None  # closest field for Unknown headers; never applied


class MissingColumn(WireModel):
    standard_name: str = Field(..., alias="standardName")
    importance: Severity
    description: str
    required: bool


class ValidationIssue(WireModel):
    type: str
    description: str
    affected_rows: List[int] = Field(default_factory=list, alias="affectedRows")
    severity: Severity
    column: Optional[str] = None


class Recommendation(WireModel):
    action: str
    description: str
    priority: Severity


class QualityReport(WireModel):
    quality_score: int = Field(..., ge=0, le=100, alias="qualityScore")
    issues: List[ValidationIssue] = Field(default_factory=list)
    recommendations: List[Recommendation] = Field(default_factory=list)


class FileAnalysis(WireModel):
    """Combined column-mapping and quality assessment of one upload."""
    data_sufficiency: Literal["COMPLETE", "PARTIAL", "INSUFFICIENT"] = Field(..., alias="dataSufficiency")
    quality_score: int = Field(..., ge=0, le=100, alias="qualityScore")
    ui_rendering_decision: Literal["USE_STANDARD_UI", "USE_CUSTOM_UI"] = Field(..., alias="uiRenderingDecision")
    missing_columns: List[MissingColumn] = Field(default_factory=list, alias="missingColumns")
    column_mappings: List[ColumnMapping] = Field(default_factory=list, alias="columnMappings")
    data_quality_issues: List[ValidationIssue] = Field(default_factory=list, alias="dataQualityIssues")
    data_preview: List[Dict[str, Any]] = Field(default_factory=list, alias="dataPreview")
    recommendations: List[Recommendation] = Field(default_factory=list)
    source: Literal["local", "remote"] = "local"
