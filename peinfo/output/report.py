"""
PEInfo Report Generator
========================

Generates JSON reports from PEInfo analysis results.  The report wraps
the serialised :class:`AnalysisResult` in a small envelope carrying the
report type, the tool version and the generation time, so it can be
consumed by downstream tooling without the ``peinfo`` models.

Raw section names are emitted base64-encoded; every other field is a
plain JSON number, string, list or object.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from peinfo import __version__
from peinfo.core.models import AnalysisResult


class PEInfoReportGenerator:
    """Serialise analysis results to JSON.

    Usage::

        gen = PEInfoReportGenerator()
        data = gen.to_dict(result)
        gen.generate_json(result, "output/kernel32.json")
    """

    REPORT_TYPE = "peinfo_pe_analysis"

    def to_dict(self, result: AnalysisResult) -> dict[str, Any]:
        """Build the report dictionary for *result*."""
        headers = result.headers
        summary: dict[str, Any] = {
            "format": headers.bitness.label if headers.bitness else None,
            "machine": headers.image_header.machine_name,
            "image_base": headers.image_base if headers.is_supported else None,
            "entry_point_va": headers.entry_point_va if headers.is_supported else None,
            "section_count": headers.image_header.number_of_sections,
            "import_count": result.import_count,
            "export_count": result.export_count,
            "diagnostic_count": len(result.diagnostics),
        }
        return {
            "report_type": self.REPORT_TYPE,
            "version": __version__,
            "generated_at": datetime.now(timezone.utc).isoformat(),
            "summary": summary,
            "analysis": result.model_dump(mode="json"),
        }

    def generate_json(
        self,
        result: AnalysisResult,
        output_path: str | Path,
        indent: int = 2,
    ) -> str:
        """Generate a structured JSON analysis report.

        Args:
            result: The AnalysisResult to report.
            output_path: Filesystem path for the output JSON file.
            indent: JSON indentation width.

        Returns:
            The absolute path of the generated report.
        """
        report_data = self.to_dict(result)

        out = Path(output_path)
        out.parent.mkdir(parents=True, exist_ok=True)
        with open(out, "w", encoding="utf-8") as fh:
            json.dump(report_data, fh, indent=indent, ensure_ascii=False, default=str)

        return str(out.resolve())
