"""
LCA Report Data Contracts

Canonical dataclasses for measurements, aggregates and report documents.
All report content is frozen once built. Fingerprints are computed from
canonical JSON with sort_keys=True.
Timestamps are injected, never generated in contracts.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Tuple


REPORT_SCHEMA_VERSION = 1

# Upper bound for any single measured total; keeps project sums finite
MAX_MEASUREMENT_VALUE = 1e12


# =============================================================================
# ENUMS
# =============================================================================

class ProcessStage(str, Enum):
    """Known lifecycle stages. Measurements may also carry any other stage string."""
    EXTRACTION = "extraction"
    PROCESSING = "processing"
    MANUFACTURING = "manufacturing"
    USE = "use"
    END_OF_LIFE = "end_of_life"


class ComplianceStatus(str, Enum):
    COMPLIANT = "compliant"
    WARNING = "warning"
    ATTENTION = "attention"


class ReportType(str, Enum):
    """Report types offered by the UI. The engine accepts any non-empty string."""
    SUMMARY = "summary"
    DETAILED = "detailed"
    COMPARATIVE = "comparative"


# =============================================================================
# MEASUREMENT
# =============================================================================

def _check_finite(name: str, value: float) -> None:
    if not math.isfinite(value):
        raise ValueError(f"{name} must be a finite number, got {value}")


def _check_non_negative(name: str, value: float) -> None:
    _check_finite(name, value)
    if value < 0:
        raise ValueError(f"{name} must be non-negative, got {value}")
    if value > MAX_MEASUREMENT_VALUE:
        raise ValueError(f"{name} must not exceed {MAX_MEASUREMENT_VALUE:g}, got {value}")


def _check_percentage(name: str, value: float) -> None:
    _check_finite(name, value)
    if value < 0 or value > 100:
        raise ValueError(f"{name} must be between 0 and 100, got {value}")


def check_timestamp_in_range(name: str, value: Optional[datetime]) -> None:
    """Offset timestamps must convert to UTC without leaving the datetime range."""
    if value is None or value.tzinfo is None:
        return
    try:
        value.astimezone(timezone.utc)
    except OverflowError:
        raise ValueError(f"{name} is out of range in UTC: {value.isoformat()}")


@dataclass(frozen=True)
class Measurement:
    """
    Single LCA observation for one process stage.

    Units: energy in MJ, emissions in kg CO2-eq, water in liters,
    waste in kg. Recycled content and recyclability are percentages.
    """
    stage: str
    energy_consumption: float = 0.0
    emissions_co2: float = 0.0
    water_usage: float = 0.0
    waste_generated: float = 0.0
    recycled_content: float = 0.0
    recyclability: float = 0.0
    created_at: Optional[datetime] = None
    measurement_id: Optional[str] = None

    def __post_init__(self):
        """Validate stage, numeric ranges and the timestamp."""
        if not self.stage or not str(self.stage).strip():
            raise ValueError("stage must be a non-empty string")
        _check_non_negative("energy_consumption", self.energy_consumption)
        _check_non_negative("emissions_co2", self.emissions_co2)
        _check_non_negative("water_usage", self.water_usage)
        _check_non_negative("waste_generated", self.waste_generated)
        _check_percentage("recycled_content", self.recycled_content)
        _check_percentage("recyclability", self.recyclability)
        check_timestamp_in_range("created_at", self.created_at)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "measurement_id": self.measurement_id,
            "stage": self.stage,
            "energy_consumption": self.energy_consumption,
            "emissions_co2": self.emissions_co2,
            "water_usage": self.water_usage,
            "waste_generated": self.waste_generated,
            "recycled_content": self.recycled_content,
            "recyclability": self.recyclability,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


# =============================================================================
# AGGREGATES
# =============================================================================

@dataclass(frozen=True)
class StageAggregate:
    """Totals and averages for all measurements sharing one stage."""
    stage: str
    total_energy: float = 0.0
    total_emissions: float = 0.0
    total_water: float = 0.0
    total_waste: float = 0.0
    avg_recycled_content: float = 0.0
    avg_recyclability: float = 0.0
    count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stage": self.stage,
            "total_energy": self.total_energy,
            "total_emissions": self.total_emissions,
            "total_water": self.total_water,
            "total_waste": self.total_waste,
            "avg_recycled_content": self.avg_recycled_content,
            "avg_recyclability": self.avg_recyclability,
            "count": self.count,
        }


@dataclass(frozen=True)
class SummaryMetrics:
    """Project-wide totals and averages regardless of stage."""
    total_energy: float = 0.0
    total_emissions: float = 0.0
    total_water: float = 0.0
    total_waste: float = 0.0
    avg_recycled_content: float = 0.0
    avg_recyclability: float = 0.0
    data_points: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_energy": self.total_energy,
            "total_emissions": self.total_emissions,
            "total_water": self.total_water,
            "total_waste": self.total_waste,
            "avg_recycled_content": self.avg_recycled_content,
            "avg_recyclability": self.avg_recyclability,
            "data_points": self.data_points,
        }


@dataclass(frozen=True)
class AggregationResult:
    """Output of the stage aggregator: per-stage aggregates in first-seen order plus a summary."""
    stages: Dict[str, StageAggregate]
    summary: SummaryMetrics


# =============================================================================
# REPORT SECTIONS
# =============================================================================

@dataclass(frozen=True)
class ComplianceCheck:
    criterion: str
    status: ComplianceStatus
    details: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "criterion": self.criterion,
            "status": self.status.value,
            "details": self.details,
        }


@dataclass(frozen=True)
class StageBreakdown:
    """One stage aggregate with its sustainability score."""
    aggregate: StageAggregate
    sustainability_score: int

    def to_dict(self) -> Dict[str, Any]:
        data = self.aggregate.to_dict()
        data["sustainability_score"] = self.sustainability_score
        return data


@dataclass(frozen=True)
class Actor:
    """Identity of the user requesting a report."""
    user_id: str
    email: str


@dataclass(frozen=True)
class ReportMetadata:
    """
    Report header.

    fingerprint is empty until the assembler has hashed the rest of the
    document; it is the only field the fingerprint does not cover.
    """
    title: str
    description: str
    project_id: str
    project_name: str
    metal_type: str
    report_type: str
    generated_at: datetime
    generated_by: str
    generated_by_id: str
    data_points: int
    schema_version: int = REPORT_SCHEMA_VERSION
    fingerprint: str = ""

    def __post_init__(self):
        """Validate timezone awareness."""
        if self.generated_at.tzinfo is None:
            raise ValueError("generated_at must be timezone-aware (UTC)")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "description": self.description,
            "project_id": self.project_id,
            "project_name": self.project_name,
            "metal_type": self.metal_type,
            "report_type": self.report_type,
            "generated_at": self.generated_at.isoformat(),
            "generated_by": self.generated_by,
            "generated_by_id": self.generated_by_id,
            "data_points": self.data_points,
            "schema_version": self.schema_version,
            "fingerprint": self.fingerprint,
        }


@dataclass(frozen=True)
class ExecutiveSummary:
    """Rounded summary metrics shown at the top of a report."""
    total_emissions: int
    total_energy: int
    total_water: int
    total_waste: int
    avg_recycled_content: int
    avg_recyclability: int
    sustainability_score: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_emissions": self.total_emissions,
            "total_energy": self.total_energy,
            "total_water": self.total_water,
            "total_waste": self.total_waste,
            "avg_recycled_content": self.avg_recycled_content,
            "avg_recyclability": self.avg_recyclability,
            "sustainability_score": self.sustainability_score,
        }


@dataclass(frozen=True)
class DetailedAnalysis:
    stage_breakdown: Tuple[StageBreakdown, ...] = ()
    recommendations: Tuple[str, ...] = ()
    compliance_status: Tuple[ComplianceCheck, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stage_breakdown": [s.to_dict() for s in self.stage_breakdown],
            "recommendations": list(self.recommendations),
            "compliance_status": [c.to_dict() for c in self.compliance_status],
        }


@dataclass(frozen=True)
class Appendix:
    raw_data: Tuple[Measurement, ...] = ()
    methodology: str = ""
    assumptions: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "raw_data": [m.to_dict() for m in self.raw_data],
            "methodology": self.methodology,
            "assumptions": list(self.assumptions),
        }


# =============================================================================
# REPORT DOCUMENT
# =============================================================================

@dataclass(frozen=True)
class ReportDocument:
    """
    Complete LCA report.

    Built once by the report assembler. The fingerprint in metadata covers
    every other field of the document.
    """
    metadata: ReportMetadata
    executive_summary: ExecutiveSummary
    detailed_analysis: DetailedAnalysis
    appendices: Appendix = field(default_factory=Appendix)

    @property
    def fingerprint(self) -> str:
        return self.metadata.fingerprint

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "metadata": self.metadata.to_dict(),
            "executive_summary": self.executive_summary.to_dict(),
            "detailed_analysis": self.detailed_analysis.to_dict(),
            "appendices": self.appendices.to_dict(),
        }
