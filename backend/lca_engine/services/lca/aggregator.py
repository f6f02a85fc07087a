"""
Stage Aggregator

Partitions measurements by process stage and computes per-stage and
project-wide totals and averages. Pure function of its inputs; recomputed
from scratch on every call.
"""
from typing import Dict, Iterable, List

from ...models.lca import (
    AggregationResult,
    Measurement,
    StageAggregate,
    SummaryMetrics,
)


ALL_STAGES = "all"


class _Accumulator:
    """Running sums for one group of measurements."""

    __slots__ = ("energy", "emissions", "water", "waste", "recycled", "recyclability", "count")

    def __init__(self):
        self.energy = 0.0
        self.emissions = 0.0
        self.water = 0.0
        self.waste = 0.0
        self.recycled = 0.0
        self.recyclability = 0.0
        self.count = 0

    def add(self, m: Measurement) -> None:
        self.energy += m.energy_consumption
        self.emissions += m.emissions_co2
        self.water += m.water_usage
        self.waste += m.waste_generated
        self.recycled += m.recycled_content
        self.recyclability += m.recyclability
        self.count += 1

    def mean(self, total: float) -> float:
        # Zero-count groups report 0 rather than dividing by zero
        return total / self.count if self.count else 0.0


def filter_by_stage(measurements: Iterable[Measurement], stage_filter: str = ALL_STAGES) -> List[Measurement]:
    """Keep measurements for one stage, or all of them when stage_filter is "all"."""
    if not stage_filter or stage_filter == ALL_STAGES:
        return list(measurements)
    return [m for m in measurements if m.stage == stage_filter]


def aggregate_measurements(
    measurements: Iterable[Measurement],
    stage_filter: str = ALL_STAGES,
) -> AggregationResult:
    """
    Aggregate measurements by stage.

    Args:
        measurements: Measurements in input order
        stage_filter: A single stage identifier, or "all"

    Returns:
        AggregationResult with stages in first-seen order and a summary over
        the filtered set. Empty input yields no stages and an all-zero summary.
    """
    rows = filter_by_stage(measurements, stage_filter)

    total = _Accumulator()
    groups: Dict[str, _Accumulator] = {}

    for m in rows:
        total.add(m)
        if m.stage not in groups:
            groups[m.stage] = _Accumulator()
        groups[m.stage].add(m)

    stages = {
        stage: StageAggregate(
            stage=stage,
            total_energy=acc.energy,
            total_emissions=acc.emissions,
            total_water=acc.water,
            total_waste=acc.waste,
            avg_recycled_content=acc.mean(acc.recycled),
            avg_recyclability=acc.mean(acc.recyclability),
            count=acc.count,
        )
        for stage, acc in groups.items()
    }

    summary = SummaryMetrics(
        total_energy=total.energy,
        total_emissions=total.emissions,
        total_water=total.water,
        total_waste=total.waste,
        avg_recycled_content=total.mean(total.recycled),
        avg_recyclability=total.mean(total.recyclability),
        data_points=total.count,
    )

    return AggregationResult(stages=stages, summary=summary)
