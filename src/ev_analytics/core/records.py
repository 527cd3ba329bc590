from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import List

from ev_analytics.config import UTILITY_SEPARATOR

BEV_LABEL = "Battery Electric Vehicle (BEV)"
PHEV_LABEL = "Plug-in Hybrid Electric Vehicle (PHEV)"


class PowertrainType(str, Enum):
    BEV = "BEV"
    PHEV = "PHEV"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def from_label(cls, label: str) -> "PowertrainType":
        """
        Map the dataset's "Electric Vehicle Type" label to a powertrain.

        Only the two exact labels are recognized. Anything else is UNKNOWN;
        the caller keeps the verbatim label on the record.
        """
        if label == BEV_LABEL:
            return cls.BEV
        if label == PHEV_LABEL:
            return cls.PHEV
        return cls.UNKNOWN


# Positional column order of the registration export (17 columns)
COLUMN_NAMES: List[str] = [
    "vin",
    "county",
    "city",
    "state",
    "postal_code",
    "model_year",
    "make",
    "model",
    "powertrain_label",
    "cafv_eligibility",
    "electric_range",
    "base_msrp",
    "legislative_district",
    "dol_vehicle_id",
    "vehicle_location",
    "electric_utility",
    "census_tract",
]

INT_COLUMNS = frozenset({"model_year", "electric_range", "base_msrp", "legislative_district"})


@dataclass(frozen=True)
class VehicleRecord:
    """
    One registered vehicle.

    Numeric fields use 0 for "unknown": electric_range == 0 is not a
    zero-range vehicle and model_year == 0 is an unparseable year.
    """
    vin: str = ""
    county: str = ""
    city: str = ""
    state: str = ""
    postal_code: str = ""
    model_year: int = 0
    make: str = ""
    model: str = ""
    powertrain_label: str = ""
    cafv_eligibility: str = ""
    electric_range: int = 0
    base_msrp: int = 0
    legislative_district: int = 0
    dol_vehicle_id: str = ""
    vehicle_location: str = ""
    electric_utility: str = ""
    census_tract: str = ""

    @property
    def powertrain(self) -> PowertrainType:
        return PowertrainType.from_label(self.powertrain_label)

    @property
    def has_known_range(self) -> bool:
        return self.electric_range > 0

    @property
    def electric_utilities(self) -> List[str]:
        if not self.electric_utility:
            return []
        parts = (p.strip() for p in self.electric_utility.split(UTILITY_SEPARATOR))
        return [p for p in parts if p]
