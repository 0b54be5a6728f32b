"""
Unit tests for category and velocity classification.
"""

import pytest

from procurement_ai.logic.category_classifier import (
    bucket_by_velocity,
    categorize_item,
    count_frequencies,
    purchase_cycle_label,
    resolve_category,
    velocity_for_frequency,
)
from procurement_ai.logic.constants import CATEGORIES, VELOCITIES


class TestCategorizeItem:
    """Test keyword-based item categorization."""

    @pytest.mark.parametrize("item,expected", [
        ("Fresh Tomatoes", "Food & Beverages"),
        ("Floor Cleaner", "Housekeeping"),
        ("LED Bulb", "Maintenance"),
        ("Welcome Kit", "Guest Utilities"),
        ("Promo Banner", "Marketing"),
        ("Office Desk", "Utilities & Supplies"),
    ])
    def test_keyword_categories(self, item, expected):
        assert categorize_item(item) == expected

    @pytest.mark.parametrize("text", [None, "", "   ", "Zzz widget", 12345])
    def test_total_over_inputs(self, text):
        """Every input yields a known category."""
        assert categorize_item(text) in CATEGORIES

    def test_fallback_category(self):
        assert categorize_item("Zzz widget") == "Utilities & Supplies"
        assert categorize_item(None) == "Utilities & Supplies"

    def test_case_insensitive(self):
        assert categorize_item("FRESH MILK") == "Food & Beverages"


class TestResolveCategory:
    """Test explicit category cells versus classification."""

    def test_known_explicit_category_wins(self):
        assert resolve_category("marketing", "Fresh Tomatoes") == "Marketing"

    def test_unknown_explicit_category_is_ignored(self):
        assert resolve_category("Groceries", "Fresh Tomatoes") == "Food & Beverages"

    def test_missing_explicit_category(self):
        assert resolve_category(None, "Floor Cleaner") == "Housekeeping"


class TestVelocity:
    """Test the five-tier velocity table."""

    @pytest.mark.parametrize("frequency,expected", [
        (25, "fast-moving"),
        (21, "fast-moving"),
        (20, "medium"),
        (11, "medium"),
        (10, "slow"),
        (6, "slow"),
        (5, "very-slow"),
        (3, "very-slow"),
        (2, "once-in-a-while"),
        (1, "once-in-a-while"),
        (0, "once-in-a-while"),
    ])
    def test_boundaries(self, frequency, expected):
        assert velocity_for_frequency(frequency) == expected

    def test_monotone_in_frequency(self):
        """Buying more often never moves an item to a slower bucket."""
        ranks = [VELOCITIES.index(velocity_for_frequency(f)) for f in range(0, 60)]
        assert ranks == sorted(ranks, reverse=True)

    def test_tomatoes_25_times_are_fast_moving(self):
        frequencies = count_frequencies(["Fresh Tomatoes"] * 25)

        assert frequencies == {"Fresh Tomatoes": 25}
        assert bucket_by_velocity(frequencies)["fast-moving"] == ["Fresh Tomatoes"]
        assert categorize_item("Fresh Tomatoes") == "Food & Beverages"


class TestBuckets:
    """Test velocity bucketing of item frequencies."""

    def test_every_key_present(self):
        assert list(bucket_by_velocity({}).keys()) == VELOCITIES

    def test_partition(self):
        """Each distinct item lands in exactly one bucket."""
        items = ["Rice"] * 22 + ["Milk"] * 12 + ["Soap"] * 7 + ["Paint"] * 3 + ["Robe"]
        buckets = bucket_by_velocity(count_frequencies(items))

        placed = [item for bucket in buckets.values() for item in bucket]
        assert sorted(placed) == sorted({"Rice", "Milk", "Soap", "Paint", "Robe"})
        assert buckets["fast-moving"] == ["Rice"]
        assert buckets["medium"] == ["Milk"]
        assert buckets["slow"] == ["Soap"]
        assert buckets["very-slow"] == ["Paint"]
        assert buckets["once-in-a-while"] == ["Robe"]


class TestPurchaseCycle:
    """Test purchase-cycle labels."""

    @pytest.mark.parametrize("frequency,expected", [(11, "High"), (10, "Medium"), (6, "Medium"), (5, "Low"), (1, "Low")])
    def test_labels(self, frequency, expected):
        assert purchase_cycle_label(frequency) == expected
