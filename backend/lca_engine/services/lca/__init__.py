"""
LCA Report Engine

Aggregation, scoring, recommendations, compliance and fingerprinting of
life-cycle assessment measurements.
Deterministic. Pure functions over in-memory data. Hash everything.
"""

from .aggregator import (
    aggregate_measurements,
    filter_by_stage,
    ALL_STAGES,
)

from .scoring import (
    round_half_up,
    sustainability_score,
    score_band,
)

from .recommendations import (
    generate_recommendations,
    highest_emission_stage,
)

from .compliance import assess_compliance

from .fingerprint import (
    FingerprintUnavailableError,
    canonical_json,
    compute_fingerprint,
    fingerprint_payload,
    verify_fingerprint,
)

from .assembler import (
    ReportAssembler,
    assemble_report,
    RAW_DATA_LIMIT,
    METHODOLOGY,
    ASSUMPTIONS,
)

from .store import (
    MeasurementSource,
    ReportStore,
    ProjectRecord,
    StoredReport,
    SqlAlchemyLcaRepository,
    ProjectNotFoundError,
    ReportNotFoundError,
)

from .export import (
    render_json,
    render_text,
    export_filename,
    content_disposition,
    EXPORT_FORMATS,
)

from .ingest import (
    parse_measurements,
    measurement_from_record,
    IngestResult,
    MeasurementIngestError,
)

from .dashboard import (
    build_dashboard,
    filter_by_time_range,
    stage_label,
    TIME_RANGES,
)


__all__ = [
    # Aggregator
    "aggregate_measurements",
    "filter_by_stage",
    "ALL_STAGES",
    # Scoring
    "round_half_up",
    "sustainability_score",
    "score_band",
    # Recommendations
    "generate_recommendations",
    "highest_emission_stage",
    # Compliance
    "assess_compliance",
    # Fingerprint
    "FingerprintUnavailableError",
    "canonical_json",
    "compute_fingerprint",
    "fingerprint_payload",
    "verify_fingerprint",
    # Assembler
    "ReportAssembler",
    "assemble_report",
    "RAW_DATA_LIMIT",
    "METHODOLOGY",
    "ASSUMPTIONS",
    # Data access
    "MeasurementSource",
    "ReportStore",
    "ProjectRecord",
    "StoredReport",
    "SqlAlchemyLcaRepository",
    "ProjectNotFoundError",
    "ReportNotFoundError",
    # Export
    "render_json",
    "render_text",
    "export_filename",
    "content_disposition",
    "EXPORT_FORMATS",
    # Ingest
    "parse_measurements",
    "measurement_from_record",
    "IngestResult",
    "MeasurementIngestError",
    # Dashboard
    "build_dashboard",
    "filter_by_time_range",
    "stage_label",
    "TIME_RANGES",
]
