"""
Tests for console rendering and JSON reports.
"""

import json

import pytest

from pelens.core.models import AnalysisResult
from pelens.output.console import PELensConsoleOutput
from pelens.output.report import REPORT_TYPE, PELensReportGenerator
from shared.console import PELensConsole


@pytest.fixture
def result(analyzer, pe32_path) -> AnalysisResult:
    return analyzer.analyze(pe32_path)


class TestConsoleOutput:

    def test_display(self, result):
        con = PELensConsole(record=True)
        PELensConsoleOutput(console=con).display(result)
        text = con.export_text()
        for expected in (
            "Binary Information",
            "PE32 (32-bit)",
            "x86 (0x014C)",
            ".text",
            "0x00001000",
            "Alpha",
            "(ordinal only)",
            "KERNEL32.dll (2)",
            "ExitProcess",
            "MessageBoxA",
            "✔",
        ):
            assert expected in text, expected

    def test_display_empty_tables(self, analyzer, minimal_path):
        con = PELensConsole(record=True)
        PELensConsoleOutput(console=con).display(analyzer.analyze(minimal_path))
        text = con.export_text()
        assert "No export table." in text
        assert "No import table." in text


class TestReport:

    def test_build(self, result):
        report = PELensReportGenerator(version="2.0.0").build(result)
        assert report["report_type"] == REPORT_TYPE
        assert report["version"] == "2.0.0"
        assert report["summary"] == {
            "bits": 32,
            "section_count": 3,
            "export_count": 3,
            "import_library_count": 2,
            "import_function_count": 3,
        }
        assert report["result"]["isX64"] is False

    def test_to_json_restores_result(self, result):
        text = PELensReportGenerator().to_json(result)
        restored = AnalysisResult.model_validate(json.loads(text)["result"])
        assert restored == result

    def test_generate_json(self, result, tmp_path):
        target = tmp_path / "out" / "report.json"
        written = PELensReportGenerator().generate_json(result, target)
        assert written == str(target.resolve())
        data = json.loads(target.read_text("utf-8"))
        assert data["result"]["imports"][1]["dllName"] == "USER32.dll"
