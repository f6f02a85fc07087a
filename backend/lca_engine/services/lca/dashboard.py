"""
Dashboard Analysis

Chart-ready per-stage rows and rounded headline metrics for the project
analysis view. The time range bounds the whole view; the stage filter only
narrows the chart rows.
"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional

from ...models.lca import Measurement, StageAggregate
from .aggregator import ALL_STAGES, aggregate_measurements
from .scoring import round_half_up, score_band, sustainability_score


TIME_RANGES: Dict[str, Optional[int]] = {
    "all": None,
    "7d": 7,
    "30d": 30,
    "90d": 90,
}


@dataclass(frozen=True)
class StageChartRow:
    stage: str
    label: str
    emissions: int
    energy: int
    water: int
    waste: int
    recycled_content: int
    recyclability: int
    sustainability_score: int
    score_band: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stage": self.stage,
            "label": self.label,
            "emissions": self.emissions,
            "energy": self.energy,
            "water": self.water,
            "waste": self.waste,
            "recycled_content": self.recycled_content,
            "recyclability": self.recyclability,
            "sustainability_score": self.sustainability_score,
            "score_band": self.score_band,
        }


@dataclass(frozen=True)
class DashboardView:
    stage_filter: str
    time_range: str
    summary: Dict[str, int]
    stages: List[StageChartRow] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stage_filter": self.stage_filter,
            "time_range": self.time_range,
            "summary": self.summary,
            "stages": [s.to_dict() for s in self.stages],
        }


def stage_label(stage: str) -> str:
    """Display label for a stage: end_of_life -> END OF LIFE."""
    return stage.replace("_", " ").upper()


def _as_utc(value: datetime) -> datetime:
    # Stored timestamps are naive UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def filter_by_time_range(
    measurements: Iterable[Measurement],
    time_range: str,
    now: datetime,
) -> List[Measurement]:
    """
    Keep measurements created within the time range ending at now.

    Measurements without a timestamp are only kept for "all".

    Raises:
        ValueError: for unknown time ranges or a naive now
    """
    if time_range not in TIME_RANGES:
        raise ValueError(f"Unknown time range: {time_range}. Must be one of: {', '.join(TIME_RANGES)}")
    if now.tzinfo is None:
        raise ValueError("now must be timezone-aware (UTC)")

    days = TIME_RANGES[time_range]
    if days is None:
        return list(measurements)

    cutoff = now - timedelta(days=days)
    return [
        m for m in measurements
        if m.created_at is not None and cutoff <= _as_utc(m.created_at) <= now
    ]


def chart_row(aggregate: StageAggregate) -> StageChartRow:
    score = sustainability_score(aggregate)
    return StageChartRow(
        stage=aggregate.stage,
        label=stage_label(aggregate.stage),
        emissions=round_half_up(aggregate.total_emissions),
        energy=round_half_up(aggregate.total_energy),
        water=round_half_up(aggregate.total_water),
        waste=round_half_up(aggregate.total_waste),
        recycled_content=round_half_up(aggregate.avg_recycled_content),
        recyclability=round_half_up(aggregate.avg_recyclability),
        sustainability_score=score,
        score_band=score_band(score),
    )


def build_dashboard(
    measurements: Iterable[Measurement],
    *,
    now: datetime,
    stage_filter: str = ALL_STAGES,
    time_range: str = "all",
) -> DashboardView:
    """
    Build the analysis view for a project.

    Args:
        measurements: All project measurements
        now: Reference time for the time range (timezone-aware)
        stage_filter: Stage identifier or "all"
        time_range: One of TIME_RANGES

    Returns:
        DashboardView with rounded summary (all stages within the time range)
        and chart rows (stage filter applied)
    """
    in_range = filter_by_time_range(measurements, time_range, now)

    summary = aggregate_measurements(in_range).summary
    rounded_summary = {
        "total_emissions": round_half_up(summary.total_emissions),
        "total_energy": round_half_up(summary.total_energy),
        "total_water": round_half_up(summary.total_water),
        "total_waste": round_half_up(summary.total_waste),
        "avg_recycled_content": round_half_up(summary.avg_recycled_content),
        "avg_recyclability": round_half_up(summary.avg_recyclability),
        "data_points": summary.data_points,
    }

    stages = aggregate_measurements(in_range, stage_filter).stages
    return DashboardView(
        stage_filter=stage_filter or ALL_STAGES,
        time_range=time_range,
        summary=rounded_summary,
        stages=[chart_row(aggregate) for aggregate in stages.values()],
    )
