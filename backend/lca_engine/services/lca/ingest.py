"""
Measurement Ingest

Turns CSV or JSON text into Measurements.

Coercion rules:
- missing stage defaults to "processing"
- numeric fields that are missing or unparseable become 0.0
- created_at is optional, ISO 8601
- a leading UTF-8 byte order mark is ignored

Rows that violate the measurement invariants (negative totals, percentages
outside 0-100) are rejected individually; the rest of the import proceeds.
"""
from __future__ import annotations
import csv
import io
import json
import logging
import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

from dateutil import parser as date_parser

from ...models.lca import Measurement, ProcessStage

logger = logging.getLogger(__name__)


DEFAULT_STAGE = ProcessStage.PROCESSING.value

NUMERIC_FIELDS = (
    "energy_consumption",
    "emissions_co2",
    "water_usage",
    "waste_generated",
    "recycled_content",
    "recyclability",
)

SUPPORTED_FORMATS = ("csv", "json")

UTF8_BOM = "\ufeff"


class MeasurementIngestError(ValueError):
    """Raised when a whole document cannot be read."""


@dataclass
class RejectedRow:
    row_number: int  # 1-based, data rows only
    reason: str

    def to_dict(self) -> Dict[str, Any]:
        return {"row_number": self.row_number, "reason": self.reason}


@dataclass
class IngestResult:
    measurements: List[Measurement] = field(default_factory=list)
    rejected: List[RejectedRow] = field(default_factory=list)


def _to_float(value: Any) -> float:
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        number = float(value) if isinstance(value, (int, float)) else float(str(value).strip())
    except (ValueError, OverflowError):
        return 0.0
    # nan and inf are treated as unparseable
    return number if math.isfinite(number) else 0.0


def _to_datetime(value: Any) -> Optional[datetime]:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    if isinstance(value, datetime):
        return value
    return date_parser.isoparse(str(value).strip())


def measurement_from_record(record: Mapping[str, Any]) -> Measurement:
    """
    Coerce one loosely-typed record into a Measurement.

    Raises:
        ValueError: if the coerced values violate measurement invariants
            or created_at is not a valid timestamp
    """
    stage = record.get("process_stage") or record.get("stage") or DEFAULT_STAGE
    return Measurement(
        stage=str(stage).strip() or DEFAULT_STAGE,
        created_at=_to_datetime(record.get("created_at")),
        **{name: _to_float(record.get(name)) for name in NUMERIC_FIELDS},
    )


def _read_csv(content: str) -> List[Dict[str, Any]]:
    reader = csv.DictReader(io.StringIO(content.strip()))
    if reader.fieldnames is None:
        return []
    reader.fieldnames = [name.strip() for name in reader.fieldnames]
    return [dict(row) for row in reader]


def _read_json(content: str) -> List[Dict[str, Any]]:
    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        raise MeasurementIngestError(f"Invalid JSON: {e}") from e
    if isinstance(data, dict):
        data = [data]
    if not isinstance(data, list) or not all(isinstance(item, dict) for item in data):
        raise MeasurementIngestError("JSON content must be an object or a list of objects")
    return data


def parse_measurements(content: str, fmt: str) -> IngestResult:
    """
    Parse measurement rows from text.

    Args:
        content: File contents
        fmt: "csv" or "json"

    Returns:
        IngestResult with accepted measurements in file order and
        per-row rejections

    Raises:
        MeasurementIngestError: for unsupported formats or unreadable documents
    """
    fmt = (fmt or "").lower()
    if fmt not in SUPPORTED_FORMATS:
        raise MeasurementIngestError(f"Unsupported file type: {fmt}")

    # Spreadsheet exports often start with a UTF-8 byte order mark
    content = (content or "").lstrip(UTF8_BOM)
    records = _read_csv(content) if fmt == "csv" else _read_json(content)

    result = IngestResult()
    for row_number, record in enumerate(records, start=1):
        try:
            result.measurements.append(measurement_from_record(record))
        except ValueError as e:
            # dateutil raises ParserError, a ValueError subclass
            result.rejected.append(RejectedRow(row_number=row_number, reason=str(e)))

    logger.info(
        f"Parsed {fmt} measurements: {len(result.measurements)} accepted, "
        f"{len(result.rejected)} rejected"
    )
    return result
