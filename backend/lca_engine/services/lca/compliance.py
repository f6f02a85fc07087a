"""
Compliance Assessor

Static three-entry checklist. Not a policy engine: the criteria and
thresholds below are the whole rule set.
"""
from typing import List

from ...models.lca import ComplianceCheck, ComplianceStatus, SummaryMetrics
from .scoring import round_half_up


CIRCULARITY_RECYCLABILITY_THRESHOLD = 50.0  # percent

ISO_METHODOLOGY_CRITERION = "ISO 14040 Methodology"
DATA_QUALITY_CRITERION = "Data Quality"
CIRCULAR_ECONOMY_CRITERION = "Circular Economy Indicators"


def assess_compliance(summary: SummaryMetrics) -> List[ComplianceCheck]:
    """Build the compliance checklist for a project summary."""
    has_emissions_data = summary.total_emissions > 0
    circular = summary.avg_recyclability > CIRCULARITY_RECYCLABILITY_THRESHOLD

    return [
        ComplianceCheck(
            criterion=ISO_METHODOLOGY_CRITERION,
            status=ComplianceStatus.COMPLIANT,
            details="Assessment follows ISO 14040/14044 standards",
        ),
        ComplianceCheck(
            criterion=DATA_QUALITY_CRITERION,
            status=ComplianceStatus.COMPLIANT if has_emissions_data else ComplianceStatus.WARNING,
            details="Sufficient data available" if has_emissions_data else "Limited data for assessment",
        ),
        ComplianceCheck(
            criterion=CIRCULAR_ECONOMY_CRITERION,
            status=ComplianceStatus.COMPLIANT if circular else ComplianceStatus.ATTENTION,
            details=f"Recyclability: {round_half_up(summary.avg_recyclability)}%",
        ),
    ]
