from __future__ import annotations

from ev_analytics.core.aggregates import AdoptionPoint, RangeStatistics, YearlyRangeStats


def test_adoption_timeline_full_dataset(sample_engine):
    timeline = sample_engine.get_adoption_timeline()

    assert [p.year for p in timeline] == [2019, 2020, 2021, 2022, 2023]
    assert timeline[0] == AdoptionPoint(
        year=2019,
        total_vehicles=1,
        bev_count=0,
        phev_count=1,
        bev_percentage=0.0,
        phev_percentage=100.0,
        avg_range=53,
        year_over_year_growth=0.0,
        cumulative_total=1,
        new_manufacturers=0,
        manufacturer_count=1,
    )

    by_year = {p.year: p for p in timeline}
    assert by_year[2021].year_over_year_growth == 100.0
    assert by_year[2021].avg_range == 250
    assert by_year[2022].manufacturer_count == 2
    assert by_year[2022].new_manufacturers == 1
    assert by_year[2023].year_over_year_growth == -50.0
    assert by_year[2023].new_manufacturers == 0
    assert by_year[2023].cumulative_total == 7
    assert [p.new_manufacturers for p in timeline] == [0, 1, 1, 1, 0]


def test_new_manufacturers_compare_with_previous_year_only(make_row, build_csv):
    from ev_analytics.core.query_engine import EVDataEngine

    engine = EVDataEngine()
    engine.load_text(
        build_csv(
            [
                make_row(model_year="2019", make="TESLA"),
                make_row(model_year="2020", make="NISSAN"),
                make_row(model_year="2021", make="TESLA"),
                make_row(model_year="2021", make="NISSAN"),
            ]
        )
    )

    timeline = engine.get_adoption_timeline()

    assert [(p.year, p.new_manufacturers, p.manufacturer_count) for p in timeline] == [
        (2019, 0, 1),
        (2020, 1, 1),
        (2021, 1, 2),
    ]


def test_adoption_timeline_for_one_county(sample_engine):
    timeline = sample_engine.get_adoption_timeline(county="King")

    assert [(p.year, p.total_vehicles, p.cumulative_total) for p in timeline] == [
        (2021, 2, 2),
        (2022, 1, 3),
    ]
    assert timeline[1].year_over_year_growth == -50.0


def test_adoption_timeline_for_one_make(sample_engine):
    timeline = sample_engine.get_adoption_timeline(make="TESLA")

    assert [p.year for p in timeline] == [2021, 2022, 2023]
    assert all(p.bev_percentage == 100.0 for p in timeline)


def test_adoption_timeline_respects_start_year(sample_engine):
    timeline = sample_engine.get_adoption_timeline(start_year=2021)

    assert timeline[0].year == 2021
    assert timeline[0].cumulative_total == 2
    assert timeline[0].year_over_year_growth == 0.0


def test_range_by_year(sample_engine):
    result = sample_engine.get_range_by_year()

    assert [r.year for r in result] == [2019, 2020, 2021, 2022, 2023]
    assert result[2] == YearlyRangeStats(year=2021, count=1, avg_range=250.0, min_range=250, max_range=250)


def test_range_by_year_groups_multiple_vehicles(make_row, build_csv):
    from ev_analytics.core.query_engine import EVDataEngine

    engine = EVDataEngine()
    engine.load_text(
        build_csv(
            [
                make_row(model_year="2018", electric_range="100"),
                make_row(model_year="2018", electric_range="215"),
                make_row(model_year="2018", electric_range="0"),
                make_row(model_year="2005", electric_range="60"),
            ]
        )
    )

    assert engine.get_range_by_year() == [
        YearlyRangeStats(year=2018, count=2, avg_range=157.5, min_range=100, max_range=215),
    ]


def test_range_statistics(sample_engine):
    assert sample_engine.get_range_statistics() == RangeStatistics(
        vehicle_count=8,
        known_range_count=6,
        avg_range=170.83,
        min_range=25,
        max_range=308,
        median_range=239,
    )


def test_range_statistics_for_make(sample_engine):
    stats = sample_engine.get_range_statistics(make="TESLA")

    assert stats.vehicle_count == 4
    assert stats.known_range_count == 2
    assert stats.avg_range == 279.0
    assert stats.median_range == 308


def test_range_statistics_for_unknown_make(sample_engine):
    stats = sample_engine.get_range_statistics(make="DELOREAN")

    assert stats == RangeStatistics(
        vehicle_count=0,
        known_range_count=0,
        avg_range=0.0,
        min_range=0,
        max_range=0,
        median_range=0,
    )
