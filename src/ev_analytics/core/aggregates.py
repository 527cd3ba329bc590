from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict


class _AsDict:
    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class CountyDistribution(_AsDict):
    county: str
    count: int
    percentage: float


@dataclass(frozen=True)
class YearlyTrend(_AsDict):
    year: int
    count: int
    bev_count: int
    phev_count: int
    other_count: int = 0


@dataclass(frozen=True)
class ManufacturerDistribution(_AsDict):
    make: str
    count: int
    percentage: float
    avg_range: int


@dataclass(frozen=True)
class ModelRanking(_AsDict):
    make: str
    model: str
    count: int
    avg_range: int
    avg_year: int


@dataclass(frozen=True)
class RangeBucket(_AsDict):
    range_group: str
    count: int
    percentage: float


@dataclass(frozen=True)
class UtilityDistribution(_AsDict):
    utility: str
    count: int
    percentage: float


@dataclass(frozen=True)
class DashboardSummary(_AsDict):
    """
    Headline numbers for the overview panel.

    bev_percentage / phev_percentage are whole numbers of the full dataset;
    avg_electric_range only covers vehicles with a known range.
    """
    total_vehicles: int
    avg_electric_range: int
    bev_percentage: int
    phev_percentage: int
    top_county: str
    top_make: str
    earliest_year: int
    latest_year: int


@dataclass(frozen=True)
class AdoptionPoint(_AsDict):
    """
    One year of the adoption timeline.

    year_over_year_growth is relative to the previous year present in the
    timeline (0 for the first one). new_manufacturers counts makes that were
    not registered in the previous timeline year; the first year reports 0.
    """
    year: int
    total_vehicles: int
    bev_count: int
    phev_count: int
    bev_percentage: float
    phev_percentage: float
    avg_range: int
    year_over_year_growth: float
    cumulative_total: int
    new_manufacturers: int
    manufacturer_count: int


@dataclass(frozen=True)
class YearlyRangeStats(_AsDict):
    year: int
    count: int
    avg_range: float
    min_range: int
    max_range: int


@dataclass(frozen=True)
class RangeStatistics(_AsDict):
    vehicle_count: int
    known_range_count: int
    avg_range: float
    min_range: int
    max_range: int
    median_range: int


@dataclass(frozen=True)
class MarketSegment(_AsDict):
    """
    One market segment. Segments overlap, so counts and percentages do not
    add up to the dataset total.
    """
    segment: str
    count: int
    percentage: float
    growth: float
    avg_range: int
    top_make: str


@dataclass(frozen=True)
class AdoptionForecast(_AsDict):
    year: int
    predicted: int
    confidence: int
    scenario: str
