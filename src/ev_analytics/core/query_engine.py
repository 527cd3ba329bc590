from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

import numpy as np
import pandas as pd

from ev_analytics.config import (
    CSV_DELIMITER,
    DEFAULT_MODEL_LIMIT,
    EV_DATA_SOURCE,
    FORECAST_HORIZON,
    FORECAST_WINDOW,
    TOP_UTILITY_LIMIT,
    TREND_START_YEAR,
    UTILITY_SEPARATOR,
)
from ev_analytics.core.aggregates import (
    AdoptionForecast,
    AdoptionPoint,
    CountyDistribution,
    DashboardSummary,
    ManufacturerDistribution,
    MarketSegment,
    ModelRanking,
    RangeBucket,
    RangeStatistics,
    UtilityDistribution,
    YearlyRangeStats,
    YearlyTrend,
)
from ev_analytics.core.data_loader import (
    ParseResult,
    Source,
    describe_source,
    load_records,
    parse_records,
)
from ev_analytics.core.records import PowertrainType, VehicleRecord
from ev_analytics.core.stats import (
    average,
    percentage,
    round_half_up,
    round_to_int,
    upper_median,
)

logger = logging.getLogger(__name__)

# Frame column names (subset of VehicleRecord used by the aggregations)
COUNTY_COL = "county"
YEAR_COL = "model_year"
MAKE_COL = "make"
MODEL_COL = "model"
POWERTRAIN_COL = "powertrain"
RANGE_COL = "electric_range"
UTILITY_COL = "electric_utility"

FRAME_COLUMNS = [COUNTY_COL, YEAR_COL, MAKE_COL, MODEL_COL, POWERTRAIN_COL, RANGE_COL, UTILITY_COL]

# (label, min miles, max miles or None for open-ended), ascending
RANGE_BUCKETS: List[Tuple[str, int, Optional[int]]] = [
    ("0-50 miles", 0, 50),
    ("51-100 miles", 51, 100),
    ("101-150 miles", 101, 150),
    ("151-200 miles", 151, 200),
    ("201-250 miles", 201, 250),
    ("251-300 miles", 251, 300),
    ("300+ miles", 301, None),
]

NOT_AVAILABLE = "N/A"

# (segment, min known range, makes matched as substrings of the upper-cased make).
# A vehicle belongs to every segment it qualifies for, so segments overlap.
MARKET_SEGMENTS: List[Tuple[str, int, Tuple[str, ...]]] = [
    ("Luxury", 250, ("TESLA", "LUCID", "BMW", "MERCEDES-BENZ", "AUDI", "PORSCHE")),
    ("Mass Market", 150, ("NISSAN", "CHEVROLET", "HYUNDAI", "KIA", "VOLKSWAGEN")),
    ("Budget", 0, ("MITSUBISHI", "SMART", "FIAT")),
    ("Premium", 200, ("VOLVO", "JAGUAR", "POLESTAR", "GENESIS")),
    ("Utility", 100, ("FORD", "RIVIAN", "GM", "TOYOTA")),
]

# (scenario, multiplier on the fitted value, confidence at year 0, confidence floor)
FORECAST_SCENARIOS: List[Tuple[str, float, int, int]] = [
    ("conservative", 0.8, 60, 20),
    ("realistic", 1.0, 80, 40),
    ("optimistic", 1.3, 70, 30),
]


@dataclass(frozen=True, eq=False)
class _Snapshot:
    """Everything a query reads. Replaced as a whole on reload, never mutated."""
    records: Tuple[VehicleRecord, ...]
    frame: pd.DataFrame
    skipped_rows: int = 0
    source: Optional[str] = None


def _build_frame(records: Iterable[VehicleRecord]) -> pd.DataFrame:
    rows = [
        (
            r.county,
            r.model_year,
            r.make,
            r.model,
            r.powertrain.value,
            r.electric_range,
            r.electric_utility,
        )
        for r in records
    ]
    frame = pd.DataFrame.from_records(rows, columns=FRAME_COLUMNS)
    if not frame.empty:
        frame = frame.astype({YEAR_COL: "int64", RANGE_COL: "int64"})
    return frame


def _build_snapshot(
    records: Iterable[VehicleRecord],
    skipped_rows: int = 0,
    source: Optional[str] = None,
) -> _Snapshot:
    frozen = tuple(records)
    return _Snapshot(
        records=frozen,
        frame=_build_frame(frozen),
        skipped_rows=skipped_rows,
        source=source,
    )


# ---------------------------------------------------------------------------
# Frame helpers
# ---------------------------------------------------------------------------

def _known_ranges(frame: pd.DataFrame) -> List[int]:
    return frame.loc[frame[RANGE_COL] > 0, RANGE_COL].tolist()


def _known_years(frame: pd.DataFrame) -> List[int]:
    return frame.loc[frame[YEAR_COL] > 0, YEAR_COL].tolist()


def _count_kind(frame: pd.DataFrame, kind: PowertrainType) -> int:
    return int((frame[POWERTRAIN_COL] == kind.value).sum())


def _non_empty(frame: pd.DataFrame, col: str) -> pd.DataFrame:
    return frame[frame[col] != ""]


def _by_count_desc(items: list) -> list:
    # list.sort is stable with reverse=True: ties keep first-appearance order
    items.sort(key=lambda item: item.count, reverse=True)
    return items


# ---------------------------------------------------------------------------
# Aggregations (pure functions of one frame)
# ---------------------------------------------------------------------------

def _county_distribution(frame: pd.DataFrame) -> List[CountyDistribution]:
    total = len(frame)
    if total == 0:
        return []

    counts = _non_empty(frame, COUNTY_COL).groupby(COUNTY_COL, sort=False).size()
    out = [
        CountyDistribution(county=str(county), count=int(n), percentage=percentage(int(n), total))
        for county, n in counts.items()
    ]
    return _by_count_desc(out)


def _yearly_trends(frame: pd.DataFrame) -> List[YearlyTrend]:
    if frame.empty:
        return []

    dated = frame[frame[YEAR_COL] > 0]
    out: List[YearlyTrend] = []
    for year, group in dated.groupby(YEAR_COL, sort=True):
        bev = _count_kind(group, PowertrainType.BEV)
        phev = _count_kind(group, PowertrainType.PHEV)
        out.append(
            YearlyTrend(
                year=int(year),
                count=len(group),
                bev_count=bev,
                phev_count=phev,
                other_count=len(group) - bev - phev,
            )
        )
    return out


def _make_distribution(frame: pd.DataFrame) -> List[ManufacturerDistribution]:
    total = len(frame)
    if total == 0:
        return []

    out: List[ManufacturerDistribution] = []
    for make, group in _non_empty(frame, MAKE_COL).groupby(MAKE_COL, sort=False):
        out.append(
            ManufacturerDistribution(
                make=str(make),
                count=len(group),
                percentage=percentage(len(group), total),
                avg_range=round_to_int(average(_known_ranges(group))),
            )
        )
    return _by_count_desc(out)


def _top_models(frame: pd.DataFrame, limit: int) -> List[ModelRanking]:
    if frame.empty or limit <= 0:
        return []

    named = frame[(frame[MAKE_COL] != "") & (frame[MODEL_COL] != "")]
    out: List[ModelRanking] = []
    for (make, model), group in named.groupby([MAKE_COL, MODEL_COL], sort=False):
        out.append(
            ModelRanking(
                make=str(make),
                model=str(model),
                count=len(group),
                avg_range=round_to_int(average(_known_ranges(group))),
                avg_year=round_to_int(average(_known_years(group))),
            )
        )
    return _by_count_desc(out)[:limit]


def _range_distribution(frame: pd.DataFrame) -> List[RangeBucket]:
    if frame.empty:
        return []

    known = frame.loc[frame[RANGE_COL] > 0, RANGE_COL]
    total = len(known)
    out: List[RangeBucket] = []
    for label, low, high in RANGE_BUCKETS:
        mask = known >= low
        if high is not None:
            mask &= known <= high
        count = int(mask.sum())
        if count == 0:
            continue
        out.append(RangeBucket(range_group=label, count=count, percentage=percentage(count, total)))
    return out


def _utility_distribution(frame: pd.DataFrame, limit: int) -> List[UtilityDistribution]:
    total = len(frame)
    if total == 0:
        return []

    utilities = (
        _non_empty(frame, UTILITY_COL)[UTILITY_COL]
        .str.split(UTILITY_SEPARATOR, regex=False)
        .explode()
        .str.strip()
        .reset_index(drop=True)
    )
    utilities = utilities[utilities != ""]
    if utilities.empty:
        return []

    counts = utilities.groupby(utilities.values, sort=False).size()
    out = [
        UtilityDistribution(utility=str(name), count=int(n), percentage=percentage(int(n), total))
        for name, n in counts.items()
    ]
    return _by_count_desc(out)[:limit]


def _dashboard_stats(frame: pd.DataFrame) -> DashboardSummary:
    total = len(frame)
    if total == 0:
        return DashboardSummary(
            total_vehicles=0,
            avg_electric_range=0,
            bev_percentage=0,
            phev_percentage=0,
            top_county=NOT_AVAILABLE,
            top_make=NOT_AVAILABLE,
            earliest_year=0,
            latest_year=0,
        )

    counties = _county_distribution(frame)
    makes = _make_distribution(frame)
    years = _known_years(frame)

    return DashboardSummary(
        total_vehicles=total,
        avg_electric_range=round_to_int(average(_known_ranges(frame))),
        bev_percentage=round_to_int(_count_kind(frame, PowertrainType.BEV) / total * 100),
        phev_percentage=round_to_int(_count_kind(frame, PowertrainType.PHEV) / total * 100),
        top_county=counties[0].county if counties else NOT_AVAILABLE,
        top_make=makes[0].make if makes else NOT_AVAILABLE,
        earliest_year=min(years) if years else 0,
        latest_year=max(years) if years else 0,
    )


def _adoption_timeline(
    frame: pd.DataFrame,
    county: Optional[str],
    make: Optional[str],
    start_year: int,
) -> List[AdoptionPoint]:
    if frame.empty:
        return []

    work = frame
    if county:
        work = work[work[COUNTY_COL] == county]
    if make:
        work = work[work[MAKE_COL] == make]
    work = work[work[YEAR_COL] >= max(int(start_year), 1)]

    points: List[AdoptionPoint] = []
    prev_makes: Optional[set] = None
    cumulative = 0
    prev_total: Optional[int] = None

    for year, group in work.groupby(YEAR_COL, sort=True):
        total = len(group)
        bev = _count_kind(group, PowertrainType.BEV)
        phev = _count_kind(group, PowertrainType.PHEV)

        growth = 0.0
        if prev_total:
            growth = percentage(total - prev_total, prev_total, ndigits=1)

        year_makes = {m for m in group[MAKE_COL].tolist() if m}
        # first year reports 0; later years compare with the previous timeline year only
        new_makes = 0 if prev_makes is None else len(year_makes - prev_makes)
        prev_makes = year_makes
        cumulative += total

        points.append(
            AdoptionPoint(
                year=int(year),
                total_vehicles=total,
                bev_count=bev,
                phev_count=phev,
                bev_percentage=percentage(bev, total, ndigits=1),
                phev_percentage=percentage(phev, total, ndigits=1),
                avg_range=round_to_int(average(_known_ranges(group))),
                year_over_year_growth=growth,
                cumulative_total=cumulative,
                new_manufacturers=new_makes,
                manufacturer_count=len(year_makes),
            )
        )
        prev_total = total

    return points


def _range_by_year(frame: pd.DataFrame, start_year: int) -> List[YearlyRangeStats]:
    if frame.empty:
        return []

    known = frame[(frame[RANGE_COL] > 0) & (frame[YEAR_COL] >= max(int(start_year), 1))]
    out: List[YearlyRangeStats] = []
    for year, group in known.groupby(YEAR_COL, sort=True):
        ranges = group[RANGE_COL].tolist()
        out.append(
            YearlyRangeStats(
                year=int(year),
                count=len(ranges),
                avg_range=round_half_up(average(ranges), 2),
                min_range=int(min(ranges)),
                max_range=int(max(ranges)),
            )
        )
    return out


def _range_statistics(frame: pd.DataFrame, make: Optional[str]) -> RangeStatistics:
    work = frame
    if make and not work.empty:
        work = work[work[MAKE_COL] == make]

    ranges = _known_ranges(work) if not work.empty else []
    if not ranges:
        return RangeStatistics(
            vehicle_count=len(work),
            known_range_count=0,
            avg_range=0.0,
            min_range=0,
            max_range=0,
            median_range=0,
        )

    return RangeStatistics(
        vehicle_count=len(work),
        known_range_count=len(ranges),
        avg_range=round_half_up(average(ranges), 2),
        min_range=int(min(ranges)),
        max_range=int(max(ranges)),
        median_range=int(upper_median(ranges)),
    )


def _market_segments(frame: pd.DataFrame) -> List[MarketSegment]:
    total = len(frame)
    if total == 0:
        return []

    upper_makes = frame[MAKE_COL].str.upper()
    current_year = int(frame[YEAR_COL].max())

    out: List[MarketSegment] = []
    for name, min_range, makes in MARKET_SEGMENTS:
        mask = frame[RANGE_COL] >= min_range
        for make in makes:
            mask |= upper_makes.str.contains(make, regex=False)
        members = frame[mask]

        current = int((members[YEAR_COL] == current_year).sum())
        previous = int((members[YEAR_COL] == current_year - 1).sum())
        growth = percentage(current - previous, previous, ndigits=1) if previous else 0.0

        make_counts = _non_empty(members, MAKE_COL).groupby(MAKE_COL, sort=False).size()
        # idxmax keeps the first make on ties
        top_make = str(make_counts.idxmax()) if not make_counts.empty else ""

        out.append(
            MarketSegment(
                segment=name,
                count=len(members),
                percentage=percentage(len(members), total),
                growth=growth,
                avg_range=round_to_int(average(_known_ranges(members))),
                top_make=top_make,
            )
        )
    return _by_count_desc(out)


def _adoption_forecast(
    frame: pd.DataFrame,
    start_year: int,
    window: int,
    horizon: int,
) -> List[AdoptionForecast]:
    """
    Straight-line projection of yearly registrations.

    Fits total_vehicles against year over the last `window` timeline points
    (least squares) and extends the line `horizon` years past the last one,
    in three scenarios per year. Fewer than three timeline points give no
    forecast.
    """
    timeline = _adoption_timeline(frame, None, None, start_year)
    if len(timeline) < 3 or window < 1:
        return []

    recent = timeline[-window:]
    years = np.array([p.year for p in recent], dtype=float)
    totals = np.array([p.total_vehicles for p in recent], dtype=float)
    if len(recent) < 2:
        slope, intercept = 0.0, float(totals[0])
    else:
        slope, intercept = np.polyfit(years, totals, 1)

    last_year = recent[-1].year
    out: List[AdoptionForecast] = []
    for step in range(1, horizon + 1):
        year = last_year + step
        fitted = float(slope) * year + float(intercept)
        for scenario, multiplier, confidence, floor in FORECAST_SCENARIOS:
            out.append(
                AdoptionForecast(
                    year=year,
                    predicted=round_to_int(fitted * multiplier),
                    confidence=max(confidence - 10 * step, floor),
                    scenario=scenario,
                )
            )
    logger.debug("Forecast fitted on %s year(s): slope=%.3f", len(recent), float(slope))
    return out


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------

class EVDataEngine:
    """
    Load-once, query-many view over a set of vehicle registrations.

    The loaded data lives in a single immutable snapshot. A reload builds a
    complete new snapshot and swaps it in with one assignment, so a query
    sees either the old set or the new one. Every query reads the snapshot
    once and recomputes its result; nothing is cached between calls.

    Before anything is loaded the engine holds an empty record set and all
    queries return zero-valued or empty results.
    """

    def __init__(self, records: Optional[Iterable[VehicleRecord]] = None) -> None:
        if records is None:
            self._snapshot = _build_snapshot(())
        else:
            self._snapshot = _build_snapshot(records, source="<records>")

    @classmethod
    def from_source(cls, source: Optional[Source] = None, delimiter: str = CSV_DELIMITER) -> "EVDataEngine":
        engine = cls()
        engine.load(source, delimiter=delimiter)
        return engine

    # -- loading ------------------------------------------------------------

    def load(self, source: Optional[Source] = None, delimiter: str = CSV_DELIMITER) -> int:
        """
        Replace the record set with the contents of `source` (path, URL or handle).

        Returns the number of parsed records. SourceUnreadableError propagates
        and leaves the current record set in place.
        """
        target = EV_DATA_SOURCE if source is None else source
        result = load_records(target, delimiter=delimiter)
        self._install(result, source=describe_source(target))
        return result.count

    def load_text(self, text: str, delimiter: str = CSV_DELIMITER) -> int:
        result = parse_records(text, delimiter=delimiter)
        self._install(result, source="<text>")
        return result.count

    def _install(self, result: ParseResult, source: Optional[str]) -> None:
        snapshot = _build_snapshot(result.records, skipped_rows=result.skipped_rows, source=source)
        self._snapshot = snapshot
        logger.info(
            "Installed %s record(s) from %s (%s skipped)",
            len(snapshot.records),
            source,
            snapshot.skipped_rows,
        )

    # -- raw access ---------------------------------------------------------

    @property
    def records(self) -> Tuple[VehicleRecord, ...]:
        return self._snapshot.records

    def get_raw_data(self) -> Tuple[VehicleRecord, ...]:
        """All loaded records, for ad-hoc filtering by consumers."""
        return self._snapshot.records

    @property
    def is_loaded(self) -> bool:
        return self._snapshot.source is not None

    @property
    def skipped_rows(self) -> int:
        return self._snapshot.skipped_rows

    @property
    def source(self) -> Optional[str]:
        return self._snapshot.source

    def __len__(self) -> int:
        return len(self._snapshot.records)

    # -- queries ------------------------------------------------------------

    def get_dashboard_stats(self) -> DashboardSummary:
        return _dashboard_stats(self._snapshot.frame)

    def get_county_distribution(self) -> List[CountyDistribution]:
        return _county_distribution(self._snapshot.frame)

    def get_yearly_trends(self) -> List[YearlyTrend]:
        return _yearly_trends(self._snapshot.frame)

    def get_make_distribution(self) -> List[ManufacturerDistribution]:
        return _make_distribution(self._snapshot.frame)

    def get_top_models(self, limit: int = DEFAULT_MODEL_LIMIT) -> List[ModelRanking]:
        return _top_models(self._snapshot.frame, int(limit))

    def get_range_distribution(self) -> List[RangeBucket]:
        return _range_distribution(self._snapshot.frame)

    def get_utility_distribution(self) -> List[UtilityDistribution]:
        return _utility_distribution(self._snapshot.frame, TOP_UTILITY_LIMIT)

    def get_adoption_timeline(
        self,
        county: Optional[str] = None,
        make: Optional[str] = None,
        start_year: int = TREND_START_YEAR,
    ) -> List[AdoptionPoint]:
        """
        Per-year adoption metrics, optionally for one county and/or make.

        Years before `start_year` are left out, including from the cumulative
        total and the new-manufacturer tracking.
        """
        return _adoption_timeline(self._snapshot.frame, county, make, start_year)

    def get_range_by_year(self, start_year: int = TREND_START_YEAR) -> List[YearlyRangeStats]:
        return _range_by_year(self._snapshot.frame, start_year)

    def get_range_statistics(self, make: Optional[str] = None) -> RangeStatistics:
        return _range_statistics(self._snapshot.frame, make)

    def get_market_segments(self) -> List[MarketSegment]:
        """
        Vehicle counts per market segment, largest first.

        A vehicle joins a segment when its make matches one of the segment's
        makes or its range reaches the segment minimum, so one vehicle can
        count in several segments. Growth compares the latest model year in
        the data with the year before it.
        """
        return _market_segments(self._snapshot.frame)

    def get_adoption_forecast(
        self,
        start_year: int = TREND_START_YEAR,
        window: int = FORECAST_WINDOW,
        horizon: int = FORECAST_HORIZON,
    ) -> List[AdoptionForecast]:
        return _adoption_forecast(self._snapshot.frame, start_year, int(window), int(horizon))
