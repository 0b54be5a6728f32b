# procurement_ai/logic/column_analyzer.py
"""
Column Analysis Strategies

A ColumnAnalyzer turns one parsed upload into a FileAnalysis: how its
headers map onto the standard catalog, which fields are missing, whether
the data is sufficient, which UI to render and what quality issues exist.

Two implementations:
- LocalColumnAnalyzer: the deterministic column mapper + quality validator
- OpenAIColumnAnalyzer: asks an LLM for the same analysis, then corrects
  its answer against the actual headers. Any failure (network, auth,
  malformed JSON, open circuit) falls back to the local analyzer.
"""

import json
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence

from openai import OpenAI
from pydantic import ValidationError

from procurement_ai.models.analysis import (
    ColumnMapping,
    FileAnalysis,
    MissingColumn,
    Recommendation,
    ValidationIssue,
)
from .api_utils import OPENAI_RETRY_CONFIG, retry_with_exponential_backoff
from .circuit_breaker import CircuitBreaker, llm_breaker
from .column_mapper import (
    FIELDS_BY_NAME,
    STANDARD_PROCUREMENT_FIELDS,
    calculate_data_sufficiency,
    determine_ui_rendering,
    field_importance,
    find_missing_columns,
    has_all_critical_fields,
    map_column,
    map_columns,
)
from .config_manager import get_config
from .constants import (
    COMPLETE,
    INSUFFICIENT,
    LOW,
    MAX_AFFECTED_ROWS,
    PARTIAL,
    PREVIEW_ROWS,
    SEVERITY_ORDER,
    UNKNOWN_FIELD,
    USE_CUSTOM_UI,
    USE_STANDARD_UI,
)
from .data_quality import validate_data_quality
from .file_loader import RawRow
from .logging_utils import get_logger
from .parse_utils import parse_number

logger = get_logger(__name__)

DEFAULT_REMOTE_QUALITY_SCORE = 50
SUFFICIENCY_VALUES = (COMPLETE, PARTIAL, INSUFFICIENT)
UI_VALUES = (USE_STANDARD_UI, USE_CUSTOM_UI)


class RemoteAnalysisError(Exception):
    """The LLM returned something that is not a usable analysis."""


def _headers(rows: Sequence[RawRow], headers: Optional[Sequence[str]]) -> List[str]:
    if headers:
        return [str(h) for h in headers]
    seen: List[str] = []
    for row in rows:
        for key in row:
            if key not in seen:
                seen.append(key)
    return seen


class ColumnAnalyzer(ABC):
    """Strategy interface for producing a FileAnalysis."""

    @abstractmethod
    def analyze(
        self,
        rows: Sequence[RawRow],
        file_name: str,
        headers: Optional[Sequence[str]] = None,
    ) -> FileAnalysis:
        raise NotImplementedError


# ==============================================================================
# LOCAL
# ==============================================================================

class LocalColumnAnalyzer(ColumnAnalyzer):
    """Deterministic analysis from the column mapper and quality validator."""

    def analyze(
        self,
        rows: Sequence[RawRow],
        file_name: str,
        headers: Optional[Sequence[str]] = None,
    ) -> FileAnalysis:
        headers = _headers(rows, headers)
        mappings = map_columns(headers)

        sufficiency = calculate_data_sufficiency(mappings)
        # A file carrying PO, vendor and amount is always analysable
        if sufficiency == INSUFFICIENT and has_all_critical_fields(mappings):
            sufficiency = PARTIAL

        report = validate_data_quality(rows, headers)
        logger.info(
            f"{file_name}: {len(headers)} columns, sufficiency={sufficiency}, "
            f"quality={report.quality_score}"
        )

        return FileAnalysis(
            data_sufficiency=sufficiency,
            quality_score=report.quality_score,
            ui_rendering_decision=determine_ui_rendering(mappings, sufficiency),
            missing_columns=find_missing_columns(mappings),
            column_mappings=mappings,
            data_quality_issues=report.issues,
            data_preview=[dict(r) for r in rows[:PREVIEW_ROWS]],
            recommendations=report.recommendations,
            source="local",
        )


# ==============================================================================
# OPENAI
# ==============================================================================

SYSTEM_PROMPT = (
    "You are a procurement data analyst. You review spreadsheet exports of purchase "
    "orders, invoices and payments and respond with strict JSON only."
)

ANALYSIS_PROMPT = """Analyze the uploaded file "{file_name}".

Only mark a column as missing if NO variation of it exists in the actual headers.
First check for exact (case-insensitive) matches between headers and the variations below.

Headers found: {headers}
Total rows: {total_rows}
Sample data (first {sample_size} rows):
{sample_json}

Standard procurement fields:
{catalog}

Respond with a JSON object:
{{
  "dataSufficiency": "COMPLETE|PARTIAL|INSUFFICIENT",
  "qualityScore": 0-100,
  "uiRenderingDecision": "USE_STANDARD_UI|USE_CUSTOM_UI",
  "missingColumns": [{{"column": "string", "importance": "Critical|High|Medium|Low", "description": "string"}}],
  "columnMappings": [{{"originalName": "string", "standardName": "string", "dataType": "string", "confidence": 0-1}}],
  "dataQualityIssues": [{{"type": "string", "description": "string", "affectedRows": [1, 2], "severity": "Critical|High|Medium|Low"}}],
  "dataPreview": [],
  "recommendations": [{{"action": "string", "description": "string", "priority": "Critical|High|Medium|Low"}}]
}}"""


def _field_aliases(name: str) -> List[str]:
    """Lowercased names that count as an exact match for a catalog field."""
    field = FIELDS_BY_NAME.get(name)
    if field is None:
        return []
    return [field.name.lower(), field.name.replace("_", "").lower()] + [v.lower() for v in field.variations]


def _exact_field_for(header: str) -> Optional[str]:
    h = header.strip().lower()
    for field in STANDARD_PROCUREMENT_FIELDS:
        if h in _field_aliases(field.name):
            return field.name
    return None


def build_analysis_prompt(rows: Sequence[RawRow], file_name: str, headers: Sequence[str]) -> str:
    sample = [dict(r) for r in rows[:PREVIEW_ROWS]]
    catalog = "\n".join(
        f"- {f.name}: {', '.join(f.variations)}" for f in STANDARD_PROCUREMENT_FIELDS
    )
    return ANALYSIS_PROMPT.format(
        file_name=file_name,
        headers=", ".join(headers),
        total_rows=len(rows),
        sample_size=len(sample),
        sample_json=json.dumps(sample, indent=2, default=str),
        catalog=catalog,
    )


def _items(data: Dict[str, Any], key: str) -> List[Dict[str, Any]]:
    value = data.get(key)
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


def _severity(value: Any) -> str:
    return value if value in SEVERITY_ORDER else LOW


def _clamp01(value: Any, default: float) -> float:
    number = parse_number(value, default)
    return max(0.0, min(1.0, number))


def sanitize_response(
    data: Dict[str, Any],
    rows: Sequence[RawRow],
    headers: Sequence[str],
) -> FileAnalysis:
    """
    Turn a raw LLM answer into a FileAnalysis.

    - Unknown enum values fall back to PARTIAL / USE_CUSTOM_UI
    - qualityScore is clamped to 0-100 (50 when absent)
    - Malformed list entries are dropped
    - Missing columns that actually exist in the headers are removed
    - Headers the LLM left Unknown are mapped by exact variation match
    - Headers the LLM skipped entirely fall back to the local mapper
    """
    sufficiency = data.get("dataSufficiency")
    if sufficiency not in SUFFICIENCY_VALUES:
        sufficiency = PARTIAL

    ui = data.get("uiRenderingDecision")
    if ui not in UI_VALUES:
        ui = USE_CUSTOM_UI

    score = parse_number(data.get("qualityScore"), DEFAULT_REMOTE_QUALITY_SCORE)
    score = int(round(max(0.0, min(100.0, score))))

    lowered_headers = {h.strip().lower() for h in headers}

    missing = []
    for item in _items(data, "missingColumns"):
        name = item.get("column") or item.get("standardName")
        if not name:
            continue
        # Drop false positives: a header exactly matches one of the field's names
        if lowered_headers & set(_field_aliases(str(name))):
            logger.debug(f"Discarding missing-column claim for present field {name}")
            continue
        field = FIELDS_BY_NAME.get(str(name))
        importance = item.get("importance")
        if importance not in SEVERITY_ORDER:
            importance = field_importance(field) if field else LOW
        try:
            missing.append(MissingColumn(
                standard_name=str(name),
                importance=importance,
                description=str(item.get("description") or (field.description if field else "")),
                required=bool(field and field.required),
            ))
        except ValidationError as e:
            logger.debug(f"Skipping malformed missing column {item}: {e}")

    by_header: Dict[str, ColumnMapping] = {}
    for item in _items(data, "columnMappings"):
        original = item.get("originalName")
        if original is None or str(original) not in headers:
            continue
        standard = str(item.get("standardName") or UNKNOWN_FIELD)
        field = FIELDS_BY_NAME.get(standard)
        if field is None:
            standard = UNKNOWN_FIELD
        try:
            by_header[str(original)] = ColumnMapping(
                original_name=str(original),
                standard_name=standard,
                confidence=_clamp01(item.get("confidence"), 1.0) if field else 0.0,
                data_type=field.data_type if field else str(item.get("dataType") or "string"),
                required=bool(field and field.required),
                match_type="remote" if field else "none",
            )
        except ValidationError as e:
            logger.debug(f"Skipping malformed column mapping {item}: {e}")

    mappings = []
    for header in headers:
        mapping = by_header.get(header)
        if mapping is None or mapping.standard_name == UNKNOWN_FIELD:
            exact = _exact_field_for(header)
            if exact is not None:
                field = FIELDS_BY_NAME[exact]
                mapping = ColumnMapping(
                    original_name=header,
                    standard_name=exact,
                    confidence=1.0,
                    data_type=field.data_type,
                    required=field.required,
                    match_type="exact",
                )
        if mapping is None:
            # Headers the answer skipped keep one mapping each, from the local mapper
            mapping = map_column(header)
        mappings.append(mapping)

    issues = []
    for item in _items(data, "dataQualityIssues"):
        rows_affected = item.get("affectedRows")
        if not isinstance(rows_affected, list):
            rows_affected = []
        try:
            issues.append(ValidationIssue(
                type=str(item.get("type") or "Data Quality"),
                description=str(item.get("description") or ""),
                affected_rows=[int(r) for r in rows_affected if isinstance(r, (int, float))][:MAX_AFFECTED_ROWS],
                severity=_severity(item.get("severity")),
                column=item.get("column"),
            ))
        except ValidationError as e:
            logger.debug(f"Skipping malformed quality issue {item}: {e}")

    recommendations = []
    for item in _items(data, "recommendations"):
        if not item.get("action"):
            continue
        recommendations.append(Recommendation(
            action=str(item["action"]),
            description=str(item.get("description") or ""),
            priority=_severity(item.get("priority")),
        ))

    preview = data.get("dataPreview")
    if isinstance(preview, list) and all(isinstance(r, dict) for r in preview):
        preview = preview[:PREVIEW_ROWS]
    else:
        preview = [dict(r) for r in rows[:PREVIEW_ROWS]]

    return FileAnalysis(
        data_sufficiency=sufficiency,
        quality_score=score,
        ui_rendering_decision=ui,
        missing_columns=missing,
        column_mappings=mappings,
        data_quality_issues=issues,
        data_preview=preview,
        recommendations=recommendations,
        source="remote",
    )


class OpenAIColumnAnalyzer(ColumnAnalyzer):
    """
    LLM-backed analysis with local fallback.

    The remote call is retried with exponential backoff and guarded by a
    circuit breaker; when the breaker is open the local analyzer answers
    without a network round trip.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "gpt-4o-mini",
        timeout: float = 30.0,
        client: Any = None,
        breaker: CircuitBreaker = llm_breaker,
        fallback: Optional[ColumnAnalyzer] = None,
        retry_config: Optional[Dict[str, Any]] = None,
    ):
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self._client = client
        self.breaker = breaker
        self.fallback = fallback or LocalColumnAnalyzer()
        self.retry_config = {**OPENAI_RETRY_CONFIG, **(retry_config or {})}

    def _get_client(self):
        if self._client is None:
            self._client = OpenAI(api_key=self.api_key or None, timeout=self.timeout)
        return self._client

    def _complete(self, prompt: str) -> str:
        cli = self._get_client()

        @retry_with_exponential_backoff(**self.retry_config)
        def _api_call():
            return cli.chat.completions.create(
                model=self.model,
                response_format={"type": "json_object"},
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                temperature=0.1,
            )

        resp = _api_call()
        if not resp or not getattr(resp, "choices", None):
            raise RemoteAnalysisError("response has no choices")
        content = resp.choices[0].message.content
        if not content or not content.strip():
            raise RemoteAnalysisError("response content is empty")
        return content

    def analyze_remote(
        self,
        rows: Sequence[RawRow],
        file_name: str,
        headers: Optional[Sequence[str]] = None,
    ) -> FileAnalysis:
        """
        Remote analysis without fallback.

        Raises:
            RemoteAnalysisError: the answer is not a JSON object
        """
        headers = _headers(rows, headers)
        content = self._complete(build_analysis_prompt(rows, file_name, headers))
        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            raise RemoteAnalysisError(f"invalid JSON: {e}. Content: {content[:200]}") from e
        if not isinstance(data, dict):
            raise RemoteAnalysisError(f"expected a JSON object, got {type(data).__name__}")

        analysis = sanitize_response(data, rows, headers)
        logger.info(f"{file_name}: remote analysis sufficiency={analysis.data_sufficiency}")
        return analysis

    def analyze(
        self,
        rows: Sequence[RawRow],
        file_name: str,
        headers: Optional[Sequence[str]] = None,
    ) -> FileAnalysis:
        return self.breaker.call(
            primary_func=lambda: self.analyze_remote(rows, file_name, headers),
            fallback_func=lambda: self.fallback.analyze(rows, file_name, headers),
        )


def get_column_analyzer(config: Optional[Dict[str, Any]] = None) -> ColumnAnalyzer:
    """Pick the analyzer the configuration asks for."""
    config = config if config is not None else get_config()
    if config.get("use_llm_analysis") and config.get("openai_api_key"):
        logger.info(f"Using OpenAI column analysis ({config.get('openai_model')})")
        return OpenAIColumnAnalyzer(
            api_key=config["openai_api_key"],
            model=config.get("openai_model") or "gpt-4o-mini",
            timeout=float(config.get("llm_timeout_seconds") or 30.0),
        )
    if config.get("use_llm_analysis"):
        logger.warning("LLM analysis enabled but no OpenAI API key configured; using local analysis")
    return LocalColumnAnalyzer()
