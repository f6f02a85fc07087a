"""LCA Report Engine - Data Models"""
from .lca import (
    # Enums
    ProcessStage, ComplianceStatus, ReportType,
    # Input
    Measurement,
    # Aggregates
    StageAggregate, SummaryMetrics, AggregationResult,
    # Report document
    Actor, ComplianceCheck, StageBreakdown, ReportMetadata, ExecutiveSummary,
    DetailedAnalysis, Appendix, ReportDocument,
    REPORT_SCHEMA_VERSION, MAX_MEASUREMENT_VALUE,
)

__all__ = [
    "ProcessStage", "ComplianceStatus", "ReportType",
    "Measurement",
    "StageAggregate", "SummaryMetrics", "AggregationResult",
    "Actor", "ComplianceCheck", "StageBreakdown", "ReportMetadata", "ExecutiveSummary",
    "DetailedAnalysis", "Appendix", "ReportDocument",
    "REPORT_SCHEMA_VERSION", "MAX_MEASUREMENT_VALUE",
]
