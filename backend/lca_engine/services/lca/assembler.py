"""
Report Assembler

Orchestrates aggregation, scoring, recommendations and compliance into one
immutable ReportDocument, then fingerprints it.
No runtime randomness. Timestamp and actor are injected.
Same inputs -> same fingerprint.
"""
import logging
from dataclasses import replace
from datetime import datetime
from typing import Optional, Sequence

from ...models.lca import (
    Actor,
    Appendix,
    DetailedAnalysis,
    ExecutiveSummary,
    Measurement,
    ReportDocument,
    ReportMetadata,
    StageBreakdown,
    SummaryMetrics,
)
from .aggregator import aggregate_measurements
from .compliance import assess_compliance
from .fingerprint import compute_fingerprint, fingerprint_payload
from .recommendations import generate_recommendations
from .scoring import round_half_up, sustainability_score
from .store import MeasurementSource

logger = logging.getLogger(__name__)


# =============================================================================
# FIXED APPENDIX CONTENT
# =============================================================================

RAW_DATA_LIMIT = 100

METHODOLOGY = "ISO 14040/14044 compliant Life Cycle Assessment"

ASSUMPTIONS = (
    "System boundaries include cradle-to-grave analysis",
    "Functional unit: 1 kg of processed metal",
    "Impact categories: Climate change, Resource depletion, Water use",
)


def build_executive_summary(summary: SummaryMetrics) -> ExecutiveSummary:
    """Round summary metrics for presentation and attach the project score."""
    return ExecutiveSummary(
        total_emissions=round_half_up(summary.total_emissions),
        total_energy=round_half_up(summary.total_energy),
        total_water=round_half_up(summary.total_water),
        total_waste=round_half_up(summary.total_waste),
        avg_recycled_content=round_half_up(summary.avg_recycled_content),
        avg_recyclability=round_half_up(summary.avg_recyclability),
        sustainability_score=sustainability_score(summary),
    )


def assemble_report(
    *,
    project_id: str,
    project_name: str,
    metal_type: str,
    report_type: str,
    title: str,
    description: Optional[str],
    measurements: Sequence[Measurement],
    actor: Actor,
    generated_at: datetime,
) -> ReportDocument:
    """
    Build a fingerprinted ReportDocument from a project's measurements.

    Title and report type are not validated here; callers reject empty
    values before invoking the assembler.

    Args:
        project_id: Project identifier
        project_name: Display name of the project
        metal_type: Metal assessed by the project
        report_type: Requested report type (summary, detailed, ...)
        title: Report title
        description: Optional free text. None and "" are the same input: both
            are stored as "" and give the same fingerprint
        measurements: Full measurement set, in input order
        actor: Requesting user
        generated_at: Generation timestamp (MUST be injected, timezone-aware)

    Returns:
        Complete ReportDocument with fingerprint in metadata

    Raises:
        FingerprintUnavailableError: if the hash primitive is unavailable
    """
    measurements = list(measurements)
    aggregation = aggregate_measurements(measurements)
    summary = aggregation.summary

    stage_breakdown = tuple(
        StageBreakdown(aggregate=aggregate, sustainability_score=sustainability_score(aggregate))
        for aggregate in aggregation.stages.values()
    )

    detailed = DetailedAnalysis(
        stage_breakdown=stage_breakdown,
        recommendations=tuple(generate_recommendations(summary, aggregation.stages)),
        compliance_status=tuple(assess_compliance(summary)),
    )

    appendix = Appendix(
        raw_data=tuple(measurements[:RAW_DATA_LIMIT]),
        methodology=METHODOLOGY,
        assumptions=ASSUMPTIONS,
    )

    metadata = ReportMetadata(
        title=title,
        description=description or "",
        project_id=project_id,
        project_name=project_name,
        metal_type=metal_type,
        report_type=report_type,
        generated_at=generated_at,
        generated_by=actor.email,
        generated_by_id=actor.user_id,
        data_points=summary.data_points,
    )

    unsigned = ReportDocument(
        metadata=metadata,
        executive_summary=build_executive_summary(summary),
        detailed_analysis=detailed,
        appendices=appendix,
    )

    # Fingerprint is attached last so it covers everything except itself
    fingerprint = compute_fingerprint(fingerprint_payload(unsigned.to_dict()))

    return replace(unsigned, metadata=replace(metadata, fingerprint=fingerprint))


class ReportAssembler:
    """
    Generates reports for stored projects.

    The measurement source is injected; the assembler holds no other state.

    Usage:
        assembler = ReportAssembler(SqlAlchemyLcaRepository(db))
        document = assembler.generate(project_id, ...)
    """

    def __init__(self, source: MeasurementSource):
        self.source = source

    def generate(
        self,
        project_id: str,
        *,
        report_type: str,
        title: str,
        actor: Actor,
        generated_at: datetime,
        description: Optional[str] = None,
    ) -> ReportDocument:
        """
        Load a project's measurements and assemble its report.

        Raises:
            ProjectNotFoundError: if the project does not exist
            FingerprintUnavailableError: if the hash primitive is unavailable
        """
        project = self.source.get_project(project_id)
        measurements = self.source.list_measurements(project_id)

        document = assemble_report(
            project_id=project.project_id,
            project_name=project.name,
            metal_type=project.metal_type,
            report_type=report_type,
            title=title,
            description=description,
            measurements=measurements,
            actor=actor,
            generated_at=generated_at,
        )

        logger.info(
            f"Report assembled for project {project_id}: "
            f"{document.metadata.data_points} data points, fingerprint {document.fingerprint[:16]}"
        )
        return document
