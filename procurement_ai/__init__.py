# procurement_ai/__init__.py
"""
Procurement Bottleneck AI Backend Package

Procurement analytics from spreadsheet exports
- Fuzzy mapping of arbitrary column headers to standard procurement fields
- Category / purchase-velocity classification of line items
- Single-file and multi-file (PO, GRN, invoice, payment) bottleneck analysis
- Data-quality scoring with prioritized recommendations
"""

__version__ = "1.0.0"
__author__ = "Procurement AI Team"
