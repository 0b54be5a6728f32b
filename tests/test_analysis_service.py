"""
Integration tests for the analysis facade.
"""

import pandas as pd
import pytest

from procurement_ai.logic.column_analyzer import ColumnAnalyzer, LocalColumnAnalyzer
from procurement_ai.logic.file_loader import FileParseError
from procurement_ai.logic.multi_file_reconciler import UploadedFile
from procurement_ai.services import AnalysisService

TODAY = pd.Timestamp("2024-03-10")

CLEAN_CSV = (
    "Order Date,Vendor,Item,Amount,PO Number,GRN Number\n"
    "2024-03-01,Agro Fresh,Rice,100,PO-1,GRN-1\n"
    "2024-03-02,Agro Fresh,Rice,200,PO-2,GRN-2\n"
)


@pytest.fixture
def service():
    return AnalysisService(config={"use_llm_analysis": False})


class RecordingAnalyzer(ColumnAnalyzer):
    def __init__(self):
        self.calls = []

    def analyze(self, rows, file_name, headers=None):
        self.calls.append((file_name, list(headers or [])))
        return LocalColumnAnalyzer().analyze(rows, file_name, headers)


class TestAssessFile:
    """Test column and quality assessment."""

    def test_local_analysis(self, service):
        analysis = service.assess_file("PO_Number,Vendor_Name,Total_Amount\nPO-1,Agro,100\n", "orders.csv")

        assert analysis.source == "local"
        assert analysis.data_sufficiency == "PARTIAL"

    def test_empty_file(self, service):
        analysis = service.assess_file("PO_Number,Vendor_Name,Total_Amount\n", "empty.csv")

        assert analysis.quality_score == 0
        assert analysis.data_quality_issues[0].type == "No Data"
        assert [m.original_name for m in analysis.column_mappings] == ["PO_Number", "Vendor_Name", "Total_Amount"]

    def test_injected_analyzer(self):
        analyzer = RecordingAnalyzer()
        service = AnalysisService(config={}, analyzer=analyzer)
        service.assess_file("A,B\n1,2\n", "misc.csv")

        assert analyzer.calls == [("misc.csv", ["A", "B"])]


class TestAnalyzeFile:
    """Test single-file dashboards."""

    def test_clean_file(self, service):
        dashboard = service.analyze_file(CLEAN_CSV, "orders.csv", today=TODAY)

        assert dashboard.total_records == 2
        assert dashboard.health_score == 100
        assert dashboard.outputs.normal == 2
        assert dashboard.problems.quality_score == "10.0/10"

    def test_empty_file(self, service):
        dashboard = service.analyze_file("PO_Number,Vendor_Name,Total_Amount\n", "empty.csv", today=TODAY)

        assert dashboard.health_score == 100
        assert dashboard.total_records == 0
        assert dashboard.problems.quality_score == "0.0/10"

    def test_parse_errors_propagate(self, service):
        with pytest.raises(FileParseError):
            service.analyze_file(b"%PDF-1.4", "invoice.pdf")

    def test_settings_come_from_config(self):
        service = AnalysisService(config={"use_llm_analysis": False, "outlier_amount_threshold": 150})
        dashboard = service.analyze_file(CLEAN_CSV, "orders.csv", today=TODAY)

        assert dashboard.outputs.outliers == 1


class TestAnalyzeFiles:
    """Test multi-file dispatch."""

    def test_single_file_is_analysed_directly(self, service):
        dashboard = service.analyze_files([UploadedFile("orders.csv", CLEAN_CSV)], today=TODAY)

        assert dashboard.total_records == 2
        assert dashboard.critical_issues is None

    def test_several_files_are_reconciled(self, service):
        files = [
            UploadedFile("invoice.csv", "invoice_id,po_number\nINV-1,PO-1\nINV-2,PO-2\nINV-3,PO-3\n"),
            UploadedFile("invoice_lines.csv", "invoice_id,item_name,amount\nINV-1,Rice,100\nINV-2,Soap,50\n"),
        ]
        dashboard = service.analyze_files(files)

        assert dashboard.total_records == 3
        assert dashboard.critical_issues is not None

    def test_no_files_gives_empty_dashboard(self, service):
        dashboard = service.analyze_files([])

        assert dashboard.total_records == 0
        assert dashboard.health_score == 100
        assert dashboard.outputs.model_dump() == {"outliers": 0, "normal": 0, "delayed": 0, "exceptions": 0}
        assert dashboard.problems.quality_score == "N/A"
        assert dashboard.matrix == {}
        assert dashboard.critical_issues == []

    def test_quality_is_scored_per_upload(self, service):
        """Identical rows in two monthly exports are not duplicates of each other."""
        lines = "item_name,amount\nRice,100\n"
        files = [UploadedFile("invoice_lines_jan.csv", lines), UploadedFile("invoice_lines_feb.csv", lines)]
        dashboard = service.analyze_files(files)

        assert dashboard.problems.quality_score == "10.0/10"
        assert dashboard.total_records == 2


class TestDemo:
    def test_demo_is_seeded(self, service):
        assert service.demo("yearly", seed=1).to_dict() == service.demo("yearly", seed=1).to_dict()
