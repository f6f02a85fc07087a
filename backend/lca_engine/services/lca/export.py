"""
Report Export

Renders stored reports for download: canonical JSON and a flattened
plain-text rendering. Both work on the serialized document so that stored
reports export exactly as they were saved.
"""

import json
import re
from typing import Any, Dict, List, Union
from urllib.parse import quote

from ...models.lca import ReportDocument


EXPORT_FORMATS = {
    "json": ("json", "application/json"),
    "text": ("txt", "text/plain"),
}

FINGERPRINT_DISPLAY_LENGTH = 16


def _as_dict(report: Union[ReportDocument, Dict[str, Any]]) -> Dict[str, Any]:
    if isinstance(report, ReportDocument):
        return report.to_dict()
    return report


def render_json(report: Union[ReportDocument, Dict[str, Any]]) -> str:
    """Canonical JSON serialization of the full document."""
    return json.dumps(_as_dict(report), sort_keys=True, indent=2)


def render_text(report: Union[ReportDocument, Dict[str, Any]]) -> str:
    """
    Render a report as plain text.

    Sections: header, executive summary, numbered recommendations,
    compliance checklist, fingerprint footer.
    """
    content = _as_dict(report)
    metadata = content.get("metadata", {})
    summary = content.get("executive_summary", {})
    detailed = content.get("detailed_analysis", {})
    fingerprint = metadata.get("fingerprint", "")

    lines: List[str] = [
        "LCA ASSESSMENT REPORT",
        metadata.get("title", ""),
        "",
        f"Project: {metadata.get('project_name', '')} ({metadata.get('metal_type', '')})",
        f"Report Type: {metadata.get('report_type', '')}",
        f"Generated: {metadata.get('generated_at', '')}",
        f"Generated By: {metadata.get('generated_by', '')}",
        f"Data Points: {metadata.get('data_points', 0)}",
        f"Fingerprint: {fingerprint[:FINGERPRINT_DISPLAY_LENGTH]}...",
        "",
        "EXECUTIVE SUMMARY",
        f"Total CO2 Emissions: {summary.get('total_emissions', 0)} kg CO2 eq",
        f"Total Energy: {summary.get('total_energy', 0)} MJ",
        f"Total Water: {summary.get('total_water', 0)} L",
        f"Total Waste: {summary.get('total_waste', 0)} kg",
        f"Average Recycled Content: {summary.get('avg_recycled_content', 0)}%",
        f"Average Recyclability: {summary.get('avg_recyclability', 0)}%",
        f"Sustainability Score: {summary.get('sustainability_score', 0)}%",
        "",
        "RECOMMENDATIONS",
    ]

    recommendations = detailed.get("recommendations", [])
    if recommendations:
        lines.extend(f"{i}. {rec}" for i, rec in enumerate(recommendations, start=1))
    else:
        lines.append("None")

    lines.append("")
    lines.append("COMPLIANCE")
    for check in detailed.get("compliance_status", []):
        lines.append(f"- {check.get('criterion')}: {check.get('status')} ({check.get('details')})")

    lines.extend([
        "",
        "This report carries a SHA-256 content fingerprint for tamper evidence.",
        f"Fingerprint: {fingerprint}",
    ])
    return "\n".join(lines) + "\n"


def export_filename(title: str, report_id: str, fmt: str) -> str:
    """
    Download filename: title with whitespace runs replaced by underscores,
    then the first 8 characters of the report id.

    Raises:
        ValueError: for unknown formats
    """
    if fmt not in EXPORT_FORMATS:
        raise ValueError(f"Unsupported export format: {fmt}")
    extension, _ = EXPORT_FORMATS[fmt]
    safe_title = re.sub(r"\s+", "_", title.strip())
    return f"{safe_title}_{report_id[:8]}.{extension}"


def content_disposition(filename: str) -> str:
    """
    Attachment header value for a download filename.

    HTTP headers are latin-1, so the plain filename parameter carries an
    ASCII rendering and filename* (RFC 5987) carries the exact UTF-8 name.
    """
    ascii_name = filename.encode("ascii", "ignore").decode("ascii")
    ascii_name = ascii_name.replace("\\", "").replace('"', "") or "report"
    return f"attachment; filename=\"{ascii_name}\"; filename*=UTF-8''{quote(filename, safe='')}"
