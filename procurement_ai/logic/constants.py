# procurement_ai/logic/constants.py
"""
Procurement AI - Shared Constants

Single source of truth for the closed enumerations, thresholds and
business-heuristic defaults used across the analysis pipeline.
"""

from typing import Dict, List, Tuple


# ==============================================================================
# CATEGORIES
# ==============================================================================

FOOD_AND_BEVERAGES = "Food & Beverages"
HOUSEKEEPING = "Housekeeping"
MAINTENANCE = "Maintenance"
GUEST_UTILITIES = "Guest Utilities"
UTILITIES_AND_SUPPLIES = "Utilities & Supplies"
MARKETING = "Marketing"

CATEGORIES: List[str] = [
    FOOD_AND_BEVERAGES,
    HOUSEKEEPING,
    MAINTENANCE,
    GUEST_UTILITIES,
    UTILITIES_AND_SUPPLIES,
    MARKETING,
]

DEFAULT_CATEGORY = UTILITIES_AND_SUPPLIES

# Ordered: first category with a matching keyword wins.
CATEGORY_KEYWORDS: List[Tuple[str, List[str]]] = [
    (FOOD_AND_BEVERAGES, [
        "veg", "fruit", "meat", "chicken", "milk", "dairy", "bread", "water",
        "rice", "oil", "sugar", "food", "beverage", "tomato", "potato",
        "onion", "egg", "flour", "coffee", "tea", "juice", "bakery", "poultry",
    ]),
    (HOUSEKEEPING, [
        "clean", "soap", "detergent", "towel", "linen", "room", "brush",
        "mop", "chemical", "housekeeping", "laundry", "toiletr", "tissue",
    ]),
    (MAINTENANCE, [
        "repair", "paint", "bulb", "electric", "plumb", "tool", "screw",
        "fix", "ac ", "service", "maintenance", "spare", "pipe", "wiring",
    ]),
    (GUEST_UTILITIES, [
        "kit", "slipper", "robe", "welcome", "gift", "amenity", "guest",
        "amenities",
    ]),
    (MARKETING, [
        "print", "promo", "sign", "banner", "social", "media", "event",
        "marketing", "brochure", "advert", "flyer",
    ]),
    (UTILITIES_AND_SUPPLIES, [
        "paper", "pen", "ink", "office", "desk", "chair", "internet", "bill",
        "power",
    ]),
]


# ==============================================================================
# VELOCITY
# ==============================================================================

FAST_MOVING = "fast-moving"
MEDIUM = "medium"
SLOW = "slow"
VERY_SLOW = "very-slow"
ONCE_IN_A_WHILE = "once-in-a-while"

VELOCITIES: List[str] = [FAST_MOVING, MEDIUM, SLOW, VERY_SLOW, ONCE_IN_A_WHILE]

# (exclusive lower bound, velocity) checked in order; anything else is
# once-in-a-while. Shared by the single-file and multi-file analyzers.
VELOCITY_THRESHOLDS: List[Tuple[int, str]] = [
    (20, FAST_MOVING),
    (10, MEDIUM),
    (5, SLOW),
    (2, VERY_SLOW),
]

PURCHASE_CYCLE_HIGH = 10
PURCHASE_CYCLE_MEDIUM = 5


# ==============================================================================
# MATRIX CELL STATUS
# ==============================================================================

STATUS_NORMAL = "normal"
STATUS_WARNING = "warning"
STATUS_CRITICAL = "critical"

EFFICIENCY_CRITICAL_ABOVE = 100.0
EFFICIENCY_WARNING_BELOW = 80.0


# ==============================================================================
# SEVERITY / IMPORTANCE
# ==============================================================================

CRITICAL = "Critical"
HIGH = "High"
MEDIUM_SEVERITY = "Medium"
LOW = "Low"

SEVERITY_ORDER: Dict[str, int] = {CRITICAL: 0, HIGH: 1, MEDIUM_SEVERITY: 2, LOW: 3}

SEVERITY_PENALTIES: Dict[str, float] = {
    CRITICAL: 25,
    HIGH: 15,
    MEDIUM_SEVERITY: 8,
    LOW: 3,
}

MAX_AFFECTED_ROWS = 50


# ==============================================================================
# COLUMN MAPPING
# ==============================================================================

UNKNOWN_FIELD = "Unknown"

MAPPING_ACCEPTANCE_THRESHOLD = 0.5
EXACT_MATCH_CONFIDENCE = 1.0
SUBSTRING_MATCH_CONFIDENCE = 0.8
WELL_MAPPED_CONFIDENCE = 0.7
SUGGESTION_MIN_SCORE = 60

CRITICAL_FIELDS: List[str] = ["PO_Number", "Vendor_Name", "Total_Amount"]
MEDIUM_OPTIONAL_FIELDS: List[str] = ["Status", "Category"]

PARTIAL_REQUIRED_RATIO = 0.6
STANDARD_UI_COMPLETE_RATIO = 0.8
STANDARD_UI_PARTIAL_RATIO = 0.6

COMPLETE = "COMPLETE"
PARTIAL = "PARTIAL"
INSUFFICIENT = "INSUFFICIENT"

USE_STANDARD_UI = "USE_STANDARD_UI"
USE_CUSTOM_UI = "USE_CUSTOM_UI"


# ==============================================================================
# PARSING
# ==============================================================================

# Spreadsheet serial dates count days since this epoch.
EXCEL_SERIAL_DATE_BASE = "1899-12-30"

DEFAULT_VENDOR = "Unknown Vendor"
DEFAULT_STATUS = "Pending"

PREVIEW_ROWS = 10
