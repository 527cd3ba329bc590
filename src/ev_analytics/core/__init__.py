"""
Core data and analytics layer.

This package contains:
- records: VehicleRecord, PowertrainType and the positional column order
- data_loader: read the registration CSV (file, URL or handle) and parse rows
- aggregates: immutable result types returned by queries
- stats: rounding, percentage and average helpers
- query_engine: EVDataEngine, the read-only query surface used by consumers
"""
from ev_analytics.core.data_loader import (
    DataLoaderError,
    RowMalformedError,
    SourceUnreadableError,
)
from ev_analytics.core.query_engine import EVDataEngine
from ev_analytics.core.records import PowertrainType, VehicleRecord

__all__ = [
    "DataLoaderError",
    "EVDataEngine",
    "PowertrainType",
    "RowMalformedError",
    "SourceUnreadableError",
    "VehicleRecord",
]
