"""
Unit tests for multi-file reconciliation.
"""

import pytest

from procurement_ai.logic.config_manager import AnalysisSettings
from procurement_ai.logic.multi_file_reconciler import (
    UploadedFile,
    detect_file_role,
    group_by_role,
    load_uploads,
    parse_uploads,
    reconcile,
    reconcile_uploads,
)


def _invoice_lines(n):
    return [{"line_id": i, "item_name": "Fresh Vegetables", "amount": 1000} for i in range(n)]


class TestDetectFileRole:
    """Test filename-based role detection."""

    @pytest.mark.parametrize("filename,expected", [
        ("vendor_master.csv", "vendors"),
        ("pr_lines.csv", "pr_lines"),
        ("pr_header.csv", "pr"),
        ("po_lines.xlsx", "po_lines"),
        ("po.csv", "po"),
        ("invoice_lines.csv", "invoice_lines"),
        ("Invoice_Lines.CSV", "invoice_lines"),
        ("invoice.csv", "invoice"),
        ("grn_lines.csv", "grn_lines"),
        ("grn.csv", "grn"),
        ("three_way_match.csv", "matching"),
        ("gst_checks.csv", "gst"),
        ("payments.csv", "payment"),
        ("misc.csv", "unknown"),
    ])
    def test_roles(self, filename, expected):
        assert detect_file_role(filename) == expected


class TestFallbackCounts:
    """Test counts estimated from the invoice count when signal files are absent."""

    def test_invoice_lines_only(self):
        dashboard = reconcile({"invoice_lines": _invoice_lines(20)})

        assert dashboard.total_records == 20
        assert dashboard.outputs.exceptions == 15
        assert dashboard.outputs.delayed == 3
        assert dashboard.outputs.outliers == 1
        assert dashboard.outputs.normal == 16

    def test_fallback_rounds_half_up(self):
        """0.05 x 10 invoices rounds to 1, not down to 0."""
        dashboard = reconcile({"invoice_lines": _invoice_lines(10)})
        assert dashboard.outputs.outliers == 1

    def test_invoice_header_count_takes_precedence(self):
        data = {
            "invoice": [{"invoice_id": f"INV-{i}"} for i in range(4)],
            "invoice_lines": _invoice_lines(12),
        }
        dashboard = reconcile(data)

        assert dashboard.total_records == 4
        assert dashboard.outputs.exceptions == 3

    def test_configurable_ratios(self):
        settings = AnalysisSettings(manual_fallback_ratio=0.5)
        dashboard = reconcile({"invoice_lines": _invoice_lines(20)}, settings)
        assert dashboard.outputs.exceptions == 10

    def test_manual_heavy_set_flags_invoice_receipt(self):
        dashboard = reconcile({"invoice_lines": _invoice_lines(20)})
        issue = dashboard.critical_issues[0]

        assert issue.type == "Invoice Receipt"
        assert issue.title == "75% Manual"
        assert issue.description == "Takes 2 days/invoice"
        assert issue.severity == "critical"

    def test_no_files(self):
        dashboard = reconcile({})

        assert dashboard.total_records == 0
        assert dashboard.health_score == 100
        assert dashboard.critical_issues == []
        assert dashboard.kpis.cost == []
        assert dashboard.outputs.normal == 0


class TestSignalFiles:
    """Test reconciliation with matching, payment, GST, GRN and vendor files."""

    @pytest.fixture
    def data(self):
        return {
            "invoice": [
                {"invoice_id": "INV-1", "po_number": "PO-1", "invoice_date": "2024-03-01"},
                {"invoice_id": "INV-2", "po_number": "PO-2", "invoice_date": "2024-03-04"},
                {"invoice_id": "INV-3", "po_number": "PO-3", "invoice_date": "2024-03-06"},
                {"invoice_id": "INV-4", "po_number": "PO-4", "invoice_date": "2024-03-09"},
            ],
            "invoice_lines": [
                {"invoice_id": "INV-1", "item_name": "Fresh Vegetables", "amount": 1000},
                {"invoice_id": "INV-2", "description": "Floor Cleaner", "line_amount": 500},
            ],
            "grn": [{"grn_id": "GRN-1", "po_number": "PO-1"}],
            "matching": [
                {"match_status": "Manual"},
                {"match_status": "manual"},
                {"match_status": "auto", "match_type": "Manual"},
                {"match_status": "Matched"},
            ],
            "payment": [
                {"status": "Delayed", "payment_delay": 10},
                {"status": "paid", "payment_delay": 0},
                {"status": "paid", "payment_delay": 20},
                {"status": "paid"},
            ],
            "gst": [
                {"validation_status": "failed"},
                {"validation_status": "passed", "validation_method": "manual"},
                {"validation_status": "passed"},
            ],
            "vendors": [
                {"vendor_id": "V1", "status": "Active"},
                {"vendor_id": "V2", "status": "inactive"},
                {"vendor_id": "V3", "status": "Blocked"},
                {"vendor_id": "V4", "status": "active"},
            ],
        }

    @pytest.fixture
    def dashboard(self, data):
        return reconcile(data, AnalysisSettings(), quality_score=80)

    def test_counts(self, dashboard):
        assert dashboard.total_records == 5
        assert dashboard.outputs.exceptions == 2
        assert dashboard.outputs.delayed == 2
        assert dashboard.outputs.outliers == 1
        assert dashboard.outputs.normal == 2

    def test_delay_and_churn(self, dashboard):
        assert dashboard.avg_delay_days == 15.0
        assert dashboard.problems.avg_delay_days == 15.0
        assert dashboard.problems.vendor_churn == 50
        assert dashboard.problems.quality_score == "8.0/10"

    def test_critical_issues(self, dashboard):
        issues = {i.type: i for i in dashboard.critical_issues}

        assert set(issues) == {"3-Way Matching", "GST Validation", "Payment Auth"}
        assert issues["3-Way Matching"].title == "75% Manual"
        assert issues["3-Way Matching"].automation_level == "25%"
        assert issues["3-Way Matching"].severity == "warning"
        assert issues["Payment Auth"].severity == "critical"
        assert issues["GST Validation"].target == "AI Automated"

    def test_receipt_join_by_parent_po(self, dashboard):
        """Lines whose PO has no goods receipt are consumed at 80%."""
        food = dashboard.matrix["Food & Beverages"]["once-in-a-while"]
        housekeeping = dashboard.matrix["Housekeeping"]["once-in-a-while"]

        assert food.consumed == 1000
        assert housekeeping.allocated == 500
        assert housekeeping.consumed == 400
        assert dashboard.problems.over_consumption == 33

    def test_waste_and_impact(self, dashboard):
        assert dashboard.monthly_waste == 300.0
        assert dashboard.revenue_impact == 150.0

    def test_kpis_use_parent_invoice_dates(self, dashboard):
        assert dashboard.kpis.cost == [1500.0]
        assert dashboard.kpis.utilization == [93.3]

    def test_wire_format(self, dashboard):
        data = dashboard.to_dict()

        assert data["totalRecords"] == 5
        assert data["criticalIssues"][0]["automationLevel"]


class TestUploads:
    """Test parsing and reducing uploaded files."""

    def test_parse_uploads_groups_by_role(self):
        files = [
            UploadedFile("invoice_lines.csv", "item_name,amount\nRice,100\nRice,200\n"),
            UploadedFile("misc.csv", "a,b\n1,2\n"),
        ]
        data = parse_uploads(files, max_workers=2)

        assert len(data["invoice_lines"]) == 2
        assert len(data["unknown"]) == 1

    def test_same_role_files_are_concatenated(self):
        files = [
            UploadedFile("invoice_lines_jan.csv", "item_name,amount\nRice,100\n"),
            UploadedFile("invoice_lines_feb.csv", "item_name,amount\nRice,200\n"),
        ]
        assert len(parse_uploads(files)["invoice_lines"]) == 2

    def test_load_uploads_keeps_upload_order(self):
        files = [
            UploadedFile("grn.csv", "po_number\nPO-1\n"),
            UploadedFile("invoice_lines.csv", "item_name,amount\nRice,100\nSoap,50\n"),
        ]
        parsed = load_uploads(files, max_workers=2)

        assert [len(rows) for rows in parsed] == [1, 2]
        assert parsed[1][1]["item_name"] == "Soap"

    def test_group_by_role_concatenates_in_upload_order(self):
        files = [UploadedFile("invoice_lines_jan.csv", ""), UploadedFile("invoice_lines_feb.csv", "")]
        data = group_by_role(files, [[{"amount": 1}], [{"amount": 2}]])

        assert data == {"invoice_lines": [{"amount": 1}, {"amount": 2}]}

    def test_reconcile_uploads(self):
        files = [UploadedFile("invoice_lines.csv", "item_name,amount\nRice,100\nRice,200\n")]
        dashboard = reconcile_uploads(files)

        assert dashboard.total_records == 2
        assert dashboard.matrix["Food & Beverages"]["once-in-a-while"].allocated == 300

    def test_no_dates_use_projection(self):
        files = [UploadedFile("invoice_lines.csv", "item_name,amount\nRice,300\n")]
        dashboard = reconcile_uploads(files)

        assert dashboard.kpis.cost[0] == 10.0
        assert len(dashboard.kpis.cost) == 7
