# procurement_ai/logic/category_classifier.py
"""
Category / Velocity Classifier

Assigns line items to one of six fixed business categories by ordered
keyword matching, and to a purchase-velocity bucket by how often the item
appears in the analysed data.

Velocity uses one canonical five-tier table for every analysis path:

    frequency > 20   fast-moving
    11 - 20          medium
    6 - 10           slow
    3 - 5            very-slow
    <= 2             once-in-a-while
"""

from collections import Counter
from typing import Any, Dict, Iterable, List, Optional

from .constants import (
    CATEGORIES,
    CATEGORY_KEYWORDS,
    DEFAULT_CATEGORY,
    ONCE_IN_A_WHILE,
    PURCHASE_CYCLE_HIGH,
    PURCHASE_CYCLE_MEDIUM,
    VELOCITIES,
    VELOCITY_THRESHOLDS,
)


def categorize_item(text: Any) -> str:
    """
    Category for an item name/description.

    First category (in table order) with a keyword contained in the
    lowercased text; Utilities & Supplies when nothing matches. Total over
    every input, including None and empty strings.
    """
    if text is None:
        return DEFAULT_CATEGORY

    lower = str(text).lower()
    for category, keywords in CATEGORY_KEYWORDS:
        if any(keyword in lower for keyword in keywords):
            return category
    return DEFAULT_CATEGORY


def resolve_category(explicit: Optional[str], item: str) -> str:
    """
    Honour an explicit category cell when it names a known category
    (case-insensitive), otherwise classify the item text.
    """
    if explicit:
        wanted = str(explicit).strip().lower()
        for category in CATEGORIES:
            if category.lower() == wanted:
                return category
    return categorize_item(item)


def velocity_for_frequency(frequency: int) -> str:
    """Velocity bucket for a purchase count (counts below 1 are treated as 1)."""
    for lower_bound, velocity in VELOCITY_THRESHOLDS:
        if frequency > lower_bound:
            return velocity
    return ONCE_IN_A_WHILE


def purchase_cycle_label(frequency: int) -> str:
    if frequency > PURCHASE_CYCLE_HIGH:
        return "High"
    if frequency > PURCHASE_CYCLE_MEDIUM:
        return "Medium"
    return "Low"


def count_frequencies(items: Iterable[str]) -> Dict[str, int]:
    """Occurrences of each item, in first-seen order."""
    return dict(Counter(items))


def bucket_by_velocity(frequencies: Dict[str, int]) -> Dict[str, List[str]]:
    """
    Partition distinct items into velocity buckets.

    Every velocity key is present (possibly empty) and each item lands in
    exactly one bucket.
    """
    buckets: Dict[str, List[str]] = {velocity: [] for velocity in VELOCITIES}
    for item, frequency in frequencies.items():
        buckets[velocity_for_frequency(frequency)].append(item)
    return buckets
