"""
Demo Dashboard Generator

Produces a plausible, fully synthetic DashboardData for product demos and
UI development when no files have been uploaded.

This is the only randomized code path in the package. It is seeded
through a numpy Generator so a given (period, seed) always yields the
same snapshot; it is never used when real data is available.
"""

from typing import Dict, Optional

import numpy as np

from procurement_ai.models.dashboard import (
    DashboardData,
    FinancialData,
    Kpis,
    MatrixCell,
    Outputs,
    ProblemData,
    Product,
)
from .constants import CATEGORIES, FAST_MOVING, VELOCITIES
from .logging_utils import get_logger

logger = get_logger(__name__)

PERIODS = ("daily", "weekly", "monthly", "yearly")

PERIOD_MULTIPLIERS: Dict[str, int] = {"daily": 1, "weekly": 7, "monthly": 30, "yearly": 365}
KPI_POINTS_BY_PERIOD: Dict[str, int] = {"daily": 24, "weekly": 7, "monthly": 30, "yearly": 12}
DEMO_HEALTH_SCORES: Dict[str, int] = {"daily": 42, "weekly": 38, "monthly": 38, "yearly": 38}

# Representative banner figures per reporting period
DEMO_PROBLEMS: Dict[str, dict] = {
    "daily": dict(payment_delay_percent=45, avg_delay_days=8.2, over_consumption=28, waste_amount="₹1.8L",
                  manual_work=82, processing_time=5.8, vendor_churn=22, quality_score="7.1/10"),
    "weekly": dict(payment_delay_percent=67, avg_delay_days=12.3, over_consumption=34, waste_amount="₹2.8L",
                   manual_work=79, processing_time=7.2, vendor_churn=31, quality_score="6.2/10"),
    "monthly": dict(payment_delay_percent=72, avg_delay_days=15.8, over_consumption=41, waste_amount="₹4.2L",
                    manual_work=76, processing_time=8.5, vendor_churn=38, quality_score="5.8/10"),
    "yearly": dict(payment_delay_percent=58, avg_delay_days=9.7, over_consumption=29, waste_amount="₹3.2L",
                   manual_work=81, processing_time=6.8, vendor_churn=26, quality_score="6.8/10"),
}

DEMO_FINANCIAL: Dict[str, dict] = {
    "daily": dict(revenue_loss="₹8.2L", cost_increase="+22%", time_waste="280hrs"),
    "weekly": dict(revenue_loss="₹12.4L", cost_increase="+28%", time_waste="340hrs"),
    "monthly": dict(revenue_loss="₹18.6L", cost_increase="+35%", time_waste="420hrs"),
    "yearly": dict(revenue_loss="₹15.2L", cost_increase="+31%", time_waste="380hrs"),
}

DEMO_PRODUCTS: Dict[str, list] = {
    "Food & Beverages": ["Fresh Vegetables", "Dairy Products", "Beverages", "Meat & Poultry", "Bakery Items"],
    "Housekeeping": ["Cleaning Supplies", "Linens", "Toiletries", "Room Amenities", "Laundry Detergents"],
    "Maintenance": ["Tools", "Spare Parts", "Electrical Components", "Plumbing Supplies", "Safety Equipment"],
    "Guest Utilities": ["Towels", "Bathrobes", "Slippers", "Welcome Kits", "Room Service Items"],
    "Utilities & Supplies": ["Office Supplies", "Printing Materials", "IT Equipment", "Furniture", "Lighting"],
    "Marketing": ["Promotional Materials", "Signage", "Brochures", "Digital Assets", "Event Supplies"],
}


def _products(rng: np.random.Generator, category: str, velocity: str) -> list:
    names = DEMO_PRODUCTS.get(category, ["Generic Items"])[: int(rng.integers(1, 4))]
    cycle = "Daily" if velocity == FAST_MOVING else "Weekly"
    return [
        Product(
            name=name,
            purchase_cycle=cycle,
            quantity=int(rng.integers(100, 600)),
            consumption=float(rng.integers(80, 480)),
            cost=float(rng.integers(1000, 11000)),
            wastage=float(rng.integers(2, 17)),
        )
        for name in names
    ]


def generate_synthetic_data(period: str = "monthly", seed: Optional[int] = None) -> DashboardData:
    """
    Build a synthetic dashboard for a reporting period.

    Args:
        period: One of daily, weekly, monthly, yearly
        seed: Seed for the random generator (None = non-reproducible)

    Raises:
        ValueError: unknown period
    """
    if period not in PERIODS:
        raise ValueError(f"Unknown period '{period}', expected one of {', '.join(PERIODS)}")

    rng = np.random.default_rng(seed)
    scale = PERIOD_MULTIPLIERS[period]

    matrix = {}
    for category in CATEGORIES:
        matrix[category] = {}
        for velocity in VELOCITIES:
            allocated = int(rng.integers(0, 100 * scale)) + 20
            consumed = int(allocated * rng.uniform(0.7, 1.3))
            matrix[category][velocity] = MatrixCell(
                allocated=float(allocated),
                consumed=float(consumed),
                products=_products(rng, category, velocity),
            )

    outputs = Outputs(
        outliers=int(rng.integers(0, 15 * scale)) + 5,
        normal=int(rng.integers(0, 50 * scale)) + 100,
        delayed=int(rng.integers(0, 20 * scale)) + 10,
        exceptions=int(rng.integers(0, 8 * scale)) + 2,
    )

    points = KPI_POINTS_BY_PERIOD[period]
    kpis = Kpis(
        utilization=rng.integers(60, 100, size=points).astype(float).tolist(),
        cost=rng.integers(10000, 15000, size=points).astype(float).tolist(),
        wastage=rng.integers(5, 25, size=points).astype(float).tolist(),
    )

    logger.debug(f"Generated demo dashboard for period={period} seed={seed}")
    return DashboardData(
        matrix=matrix,
        outputs=outputs,
        problems=ProblemData(**DEMO_PROBLEMS[period]),
        financial=FinancialData(**DEMO_FINANCIAL[period]),
        health_score=DEMO_HEALTH_SCORES[period],
        kpis=kpis,
    )
