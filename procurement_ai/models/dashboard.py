from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

from procurement_ai.logic.constants import (
    CATEGORIES,
    EFFICIENCY_CRITICAL_ABOVE,
    EFFICIENCY_WARNING_BELOW,
    STATUS_CRITICAL,
    STATUS_NORMAL,
    STATUS_WARNING,
)


class WireModel(BaseModel):
    """Immutable model serialized with camelCase aliases."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    def to_dict(self) -> Dict:
        """Convert to a JSON-ready dictionary using the wire field names."""
        return self.model_dump(by_alias=True, mode="json")


class ProcessedRow(WireModel):
    """
    One normalized procurement transaction derived from a raw spreadsheet row.

    Built once per raw row; immutable afterwards.
    """
    id: str
    date: datetime
    vendor: str
    item: str
    category: str
    amount: float = Field(0.0, ge=0)
    status: str
    po_number: Optional[str] = Field(None, alias="poNumber")
    grn_number: Optional[str] = Field(None, alias="grnNumber")
    invoice_date: Optional[datetime] = Field(None, alias="invoiceDate")
    payment_date: Optional[datetime] = Field(None, alias="paymentDate")

    @field_validator("category")
    @classmethod
    def category_must_be_known(cls, v: str) -> str:
        if v not in CATEGORIES:
            raise ValueError(f"Unknown category: {v}")
        return v


class Product(WireModel):
    """Per-item rollup shown inside a matrix cell."""
    name: str
    purchase_cycle: str = Field(..., alias="purchaseCycle")
    quantity: int
    consumption: float
    cost: float
    wastage: float


class MatrixCell(WireModel):
    """
    Aggregate for one (category, velocity) pair.

    Efficiency and status are derived on every read so they can never drift
    from allocated/consumed.
    """
    allocated: float = 0.0
    consumed: float = 0.0
    products: List[Product] = Field(default_factory=list)

    @computed_field
    @property
    def efficiency(self) -> float:
        if self.allocated <= 0:
            return 0.0
        return round(self.consumed / self.allocated * 100, 1)

    @computed_field
    @property
    def status(self) -> str:
        efficiency = self.efficiency
        if efficiency > EFFICIENCY_CRITICAL_ABOVE:
            return STATUS_CRITICAL
        if efficiency < EFFICIENCY_WARNING_BELOW:
            return STATUS_WARNING
        return STATUS_NORMAL


class Outputs(WireModel):
    outliers: int = 0
    normal: int = 0
    delayed: int = 0
    exceptions: int = 0


class ProblemData(WireModel):
    payment_delay_percent: int = Field(0, alias="paymentDelayPercent")
    avg_delay_days: float = Field(0.0, alias="avgDelayDays")
    over_consumption: int = Field(0, alias="overConsumption")
    waste_amount: str = Field(..., alias="wasteAmount")
    manual_work: int = Field(0, alias="manualWork")
    processing_time: float = Field(0.0, alias="processingTime")
    vendor_churn: int = Field(0, alias="vendorChurn")
    quality_score: str = Field(..., alias="qualityScore")


class FinancialData(WireModel):
    revenue_loss: str = Field(..., alias="revenueLoss")
    cost_increase: str = Field(..., alias="costIncrease")
    time_waste: str = Field(..., alias="timeWaste")


class Kpis(WireModel):
    utilization: List[float] = Field(default_factory=list)
    cost: List[float] = Field(default_factory=list)
    wastage: List[float] = Field(default_factory=list)


class CriticalIssue(WireModel):
    """One bottleneck banner entry emitted by the multi-file reconciler."""
    type: str
    title: str
    description: str
    impact: str
    severity: Literal["critical", "warning", "info"]
    automation_level: Optional[str] = Field(None, alias="automationLevel")
    target: Optional[str] = None


class DashboardData(WireModel):
    """
    Top-level dashboard snapshot.

    Created fresh per analysis run and replaced wholesale; never patched
    field by field.
    """
    matrix: Dict[str, Dict[str, MatrixCell]] = Field(default_factory=dict)
    outputs: Outputs = Field(default_factory=Outputs)
    problems: ProblemData
    financial: FinancialData
    health_score: int = Field(..., ge=0, le=100, alias="healthScore")
    kpis: Kpis = Field(default_factory=Kpis)
    critical_issues: Optional[List[CriticalIssue]] = Field(None, alias="criticalIssues")
    total_records: Optional[int] = Field(None, alias="totalRecords")
    revenue_impact: Optional[float] = Field(None, alias="revenueImpact")
    avg_delay_days: Optional[float] = Field(None, alias="avgDelayDays")
    monthly_waste: Optional[float] = Field(None, alias="monthlyWaste")

    def to_dict(self) -> Dict:
        # Optional banner fields are omitted when not produced
        return self.model_dump(by_alias=True, mode="json", exclude_none=True)
