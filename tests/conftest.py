from __future__ import annotations

import csv
import io
from typing import Callable, List, Sequence

import pytest

from ev_analytics.core.query_engine import EVDataEngine

HEADER = [
    "VIN (1-10)",
    "County",
    "City",
    "State",
    "Postal Code",
    "Model Year",
    "Make",
    "Model",
    "Electric Vehicle Type",
    "Clean Alternative Fuel Vehicle (CAFV) Eligibility",
    "Electric Range",
    "Base MSRP",
    "Legislative District",
    "DOL Vehicle ID",
    "Vehicle Location",
    "Electric Utility",
    "2020 Census Tract",
]

BEV = "Battery Electric Vehicle (BEV)"
PHEV = "Plug-in Hybrid Electric Vehicle (PHEV)"


def _row(
    county: str = "King",
    model_year: str = "2021",
    make: str = "TESLA",
    model: str = "MODEL 3",
    ev_type: str = BEV,
    electric_range: str = "200",
    electric_utility: str = "CITY OF SEATTLE - (WA)",
    vin: str = "5YJ3E1EA0K",
    city: str = "Seattle",
    base_msrp: str = "0",
    legislative_district: str = "43",
) -> List[str]:
    return [
        vin,
        county,
        city,
        "WA",
        "98101",
        model_year,
        make,
        model,
        ev_type,
        "Clean Alternative Fuel Vehicle Eligible",
        electric_range,
        base_msrp,
        legislative_district,
        "478170536",
        "POINT (-122.3340 47.6084)",
        electric_utility,
        "53033008100",
    ]


def _csv(rows: Sequence[Sequence[str]], header: Sequence[str] = HEADER) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(header)
    writer.writerows(rows)
    return buf.getvalue()


@pytest.fixture
def make_row() -> Callable[..., List[str]]:
    return _row


@pytest.fixture
def build_csv() -> Callable[..., str]:
    return _csv


@pytest.fixture
def worked_example_csv() -> str:
    return _csv(
        [
            _row(county="King", model_year="2021", ev_type=BEV, electric_range="200"),
            _row(county="King", model_year="2021", ev_type=PHEV, electric_range="0"),
            _row(county="Pierce", model_year="2022", ev_type=BEV, electric_range="300"),
        ]
    )


@pytest.fixture
def sample_csv() -> str:
    pse = "PUGET SOUND ENERGY INC"
    return _csv(
        [
            _row(county="King", model_year="2021", make="TESLA", model="MODEL 3", electric_range="250"),
            _row(county="King", model_year="2021", make="TESLA", model="MODEL Y", electric_range="0"),
            _row(
                county="Pierce",
                model_year="2022",
                make="NISSAN",
                model="LEAF",
                electric_range="150",
                electric_utility=f"{pse}||CITY OF TACOMA - (WA)",
            ),
            _row(
                county="Snohomish",
                model_year="2019",
                make="CHEVROLET",
                model="VOLT",
                ev_type=PHEV,
                electric_range="53",
                electric_utility=pse,
            ),
            _row(county="King", model_year="2022", make="TESLA", model="MODEL 3", electric_range="0"),
            _row(
                county="Pierce",
                model_year="abc",
                make="TOYOTA",
                model="PRIUS PRIME",
                ev_type=PHEV,
                electric_range="25",
                electric_utility=pse,
            ),
            _row(
                county="",
                model_year="2020",
                make="KIA",
                model="NIRO",
                ev_type="Hydrogen Fuel Cell Vehicle",
                electric_range="239",
                electric_utility="",
            ),
            _row(
                county="Snohomish",
                model_year="2023",
                make="TESLA",
                model="MODEL 3",
                electric_range="308",
                electric_utility=pse,
            ),
        ]
    )


@pytest.fixture
def sample_engine(sample_csv: str) -> EVDataEngine:
    engine = EVDataEngine()
    engine.load_text(sample_csv)
    return engine


@pytest.fixture
def worked_example_engine(worked_example_csv: str) -> EVDataEngine:
    engine = EVDataEngine()
    engine.load_text(worked_example_csv)
    return engine
