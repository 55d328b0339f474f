"""
PELens Report Generator
========================

Serialises an :class:`~pelens.core.models.AnalysisResult` to JSON for
machine consumption.  The ``result`` object uses the camelCase field names
of the data model (``isX64``, ``virtualAddress``, ``dllName``...), wrapped
in a small envelope identifying the report.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from pelens.core.models import AnalysisResult

REPORT_TYPE = "pelens_structure_analysis"


class PELensReportGenerator:
    """Builds JSON reports from analysis results.

    Usage::

        gen = PELensReportGenerator()
        text = gen.to_json(result)
        gen.generate_json(result, "out/report.json")
    """

    def __init__(self, version: str = "1.0.0") -> None:
        self._version = version

    def build(self, result: AnalysisResult) -> dict[str, Any]:
        """Return the report as a JSON-compatible dictionary."""
        return {
            "report_type": REPORT_TYPE,
            "version": self._version,
            "generated_at": datetime.now(timezone.utc).isoformat(),
            "summary": {
                "bits": result.bits,
                "section_count": len(result.sections),
                "export_count": result.export_count,
                "import_library_count": len(result.imports),
                "import_function_count": result.import_function_count,
            },
            "result": result.to_dict(),
        }

    def to_json(self, result: AnalysisResult, indent: int | None = 2) -> str:
        return json.dumps(self.build(result), indent=indent, ensure_ascii=False)

    def generate_json(self, result: AnalysisResult, output_path: str | Path) -> str:
        """Write the JSON report to *output_path*.

        Returns:
            The absolute path of the generated report.
        """
        path = Path(output_path)
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w", encoding="utf-8") as f:
            json.dump(self.build(result), f, indent=2, ensure_ascii=False)

        return str(path.resolve())
