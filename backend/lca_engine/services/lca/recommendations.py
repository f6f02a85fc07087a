"""
Recommendation Generator

Fixed rule table evaluated in declaration order. Output order follows the
rules, never the data.
"""
from typing import List, Mapping, Optional

from ...models.lca import StageAggregate, SummaryMetrics


# =============================================================================
# POLICY CONSTANTS
# =============================================================================

LOW_RECYCLED_CONTENT_THRESHOLD = 30.0  # percent
HIGH_EMISSIONS_THRESHOLD = 1000.0  # kg CO2-eq
HIGH_WATER_THRESHOLD = 5000.0  # liters

RECYCLED_CONTENT_RECOMMENDATION = "Increase recycled content to improve circular economy performance"
CARBON_REDUCTION_RECOMMENDATION = "Implement carbon reduction strategies in high-emission process stages"
WATER_EFFICIENCY_RECOMMENDATION = "Optimize water usage through recycling and efficiency improvements"
STAGE_FOCUS_RECOMMENDATION = "Focus emission reduction efforts on {stage} stage"


def highest_emission_stage(stages: Mapping[str, StageAggregate]) -> Optional[StageAggregate]:
    """
    Return the stage with the largest total emissions.

    Ties go to the first stage reaching the maximum in iteration order.
    None when there are no stages.
    """
    highest: Optional[StageAggregate] = None
    for aggregate in stages.values():
        if highest is None or aggregate.total_emissions > highest.total_emissions:
            highest = aggregate
    return highest


def generate_recommendations(
    summary: SummaryMetrics,
    stages: Mapping[str, StageAggregate],
) -> List[str]:
    """Apply the recommendation rules to a summary and its stage aggregates."""
    recommendations: List[str] = []

    # An empty project has no recycled content to speak of
    if summary.data_points and summary.avg_recycled_content < LOW_RECYCLED_CONTENT_THRESHOLD:
        recommendations.append(RECYCLED_CONTENT_RECOMMENDATION)

    if summary.total_emissions > HIGH_EMISSIONS_THRESHOLD:
        recommendations.append(CARBON_REDUCTION_RECOMMENDATION)

    if summary.total_water > HIGH_WATER_THRESHOLD:
        recommendations.append(WATER_EFFICIENCY_RECOMMENDATION)

    highest = highest_emission_stage(stages)
    if highest is not None and highest.total_emissions > 0:
        recommendations.append(STAGE_FOCUS_RECOMMENDATION.format(stage=highest.stage))

    return recommendations
