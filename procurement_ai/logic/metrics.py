# procurement_ai/logic/metrics.py
"""
Shared dashboard metrics.

Matrix construction, the health-score formula and display formatting
used by both the single-file analyzer and the multi-file reconciler.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional, Sequence

import pandas as pd

from procurement_ai.models.dashboard import Kpis, MatrixCell, Product
from .category_classifier import purchase_cycle_label, velocity_for_frequency
from .constants import VELOCITIES
from .parse_utils import round_half_up

KPI_POINTS = 7


@dataclass
class ItemRollup:
    """Running totals for one distinct item within a category."""
    category: str
    name: str
    frequency: int = 0
    allocated: float = 0.0
    consumed: float = 0.0

    def add(self, amount: float, consumed: float) -> None:
        self.frequency += 1
        self.allocated += amount
        self.consumed += consumed

    @property
    def efficiency_ratio(self) -> float:
        if self.allocated <= 0:
            return 1.0
        return self.consumed / self.allocated

    def to_product(self) -> Product:
        ratio = self.efficiency_ratio
        return Product(
            name=self.name,
            purchase_cycle=purchase_cycle_label(self.frequency),
            quantity=self.frequency,
            consumption=round(self.frequency * ratio, 2),
            cost=round(self.allocated, 2),
            wastage=round(max(0.0, (1.0 - ratio) * 100), 1),
        )


def build_matrix(rollups: List[ItemRollup]) -> Dict[str, Dict[str, MatrixCell]]:
    """
    Category x velocity matrix from per-item rollups.

    Categories keep first-seen order; velocities follow the canonical
    order and only non-empty cells are emitted.
    """
    grouped: Dict[str, Dict[str, List[ItemRollup]]] = {}
    for rollup in rollups:
        velocity = velocity_for_frequency(rollup.frequency)
        grouped.setdefault(rollup.category, {}).setdefault(velocity, []).append(rollup)

    matrix: Dict[str, Dict[str, MatrixCell]] = {}
    for category, by_velocity in grouped.items():
        matrix[category] = {}
        for velocity in VELOCITIES:
            items = by_velocity.get(velocity)
            if not items:
                continue
            matrix[category][velocity] = MatrixCell(
                allocated=round(sum(i.allocated for i in items), 2),
                consumed=round(sum(i.consumed for i in items), 2),
                products=[i.to_product() for i in items],
            )
    return matrix


def safe_ratio(numerator: float, denominator: float) -> float:
    return numerator / denominator if denominator else 0.0


def percent(numerator: float, denominator: float) -> int:
    return int(round_half_up(safe_ratio(numerator, denominator) * 100))


def health_score(manual_ratio: float, delay_ratio: float, outlier_ratio: float) -> int:
    """
    Composite 0-100 process health.

    100 - 40*manual - 30*delay - 20*outlier, clamped to [0, 100].
    """
    raw = 100 - manual_ratio * 40 - delay_ratio * 30 - outlier_ratio * 20
    return int(round_half_up(max(0.0, min(100.0, raw))))


def format_thousands(amount: float, symbol: str) -> str:
    """1234567 -> '₹1235k'"""
    return f"{symbol}{int(round_half_up(amount / 1000))}k"


def format_lakhs(amount: float, symbol: str) -> str:
    """1234567 -> '₹12.3L' (1 lakh = 100,000)"""
    return f"{symbol}{round_half_up(amount / 100000, 1):.1f}L"


def quality_display(quality_score: Optional[int]) -> str:
    """0-100 quality score as the '7.5/10' banner string."""
    if quality_score is None:
        return "N/A"
    return f"{quality_score / 10:.1f}/10"


def monthly_kpis(
    dates: Sequence[datetime],
    allocated: Sequence[float],
    consumed: Sequence[float],
    points: int = KPI_POINTS,
) -> Kpis:
    """
    Monthly spend and utilization series for the most recent months.

    cost is spend per month, utilization is consumed/allocated as a
    percentage and wastage is its complement.
    """
    if not dates:
        return Kpis()

    frame = pd.DataFrame({
        "period": [pd.Timestamp(d).to_period("M") for d in dates],
        "allocated": list(allocated),
        "consumed": list(consumed),
    })
    monthly = frame.groupby("period", sort=True)[["allocated", "consumed"]].sum().tail(points)

    utilization = [
        round(c / a * 100, 1) if a > 0 else 0.0
        for a, c in zip(monthly["allocated"], monthly["consumed"])
    ]
    return Kpis(
        utilization=utilization,
        cost=[round(float(v), 2) for v in monthly["allocated"]],
        wastage=[round(max(0.0, 100 - u), 1) if u else 0.0 for u in utilization],
    )


def projected_kpis(total_spend: float, utilization: float, points: int = KPI_POINTS) -> Kpis:
    """Cumulative spend projection used when no transaction dates exist."""
    utilization = round(utilization, 1)
    return Kpis(
        utilization=[utilization] * points,
        cost=[round(total_spend / 30 * (i + 1), 2) for i in range(points)],
        wastage=[round(max(0.0, 100 - utilization), 1)] * points,
    )
