from __future__ import annotations

import time
import traceback
from typing import Any, Iterable, List

import pandas as pd
import streamlit as st

from ev_analytics.config import APP_NAME, APP_VERSION, DEFAULT_MODEL_LIMIT, EV_DATA_SOURCE
from ev_analytics.core.data_loader import SourceUnreadableError
from ev_analytics.core.query_engine import EVDataEngine


@st.cache_resource(show_spinner=False)
def _load_engine(source: str) -> EVDataEngine:
    return EVDataEngine.from_source(source)


def _to_frame(results: Iterable[Any]) -> pd.DataFrame:
    rows: List[dict] = [r.to_dict() for r in results]
    return pd.DataFrame(rows)


def _render_load_panel() -> EVDataEngine | None:
    with st.expander("Data source (developer view)", expanded=True):
        source = st.text_input("CSV path or URL:", value=EV_DATA_SOURCE)

        if st.button("Reload data"):
            _load_engine.clear()  # type: ignore[attr-defined]

        t0 = time.perf_counter()
        try:
            with st.spinner("Loading vehicle registrations..."):
                engine = _load_engine(source.strip())
        except SourceUnreadableError as exc:
            st.error(f"Could not read the data source: {exc}")
            return None
        except Exception:
            st.error("Unexpected error while loading the data source.")
            st.text_area("Traceback", value=traceback.format_exc(), height=220)
            return None

        st.success(f"Loaded {len(engine):,} records ({engine.skipped_rows:,} skipped).")
        st.caption(f"Source: {engine.source} | ready in {time.perf_counter() - t0:0.2f}s")
        return engine


def _render_summary(engine: EVDataEngine) -> None:
    stats = engine.get_dashboard_stats()
    cols = st.columns(4)
    cols[0].metric("Vehicles", f"{stats.total_vehicles:,}")
    cols[1].metric("Avg electric range", f"{stats.avg_electric_range} mi")
    cols[2].metric("BEV / PHEV", f"{stats.bev_percentage}% / {stats.phev_percentage}%")
    cols[3].metric("Model years", f"{stats.earliest_year}-{stats.latest_year}")
    st.write(f"Top county: {stats.top_county} | Top manufacturer: {stats.top_make}")


def _render_query_tables(engine: EVDataEngine) -> None:
    limit = st.number_input("Top models limit", min_value=1, max_value=100, value=DEFAULT_MODEL_LIMIT)

    panels = [
        ("County distribution", lambda: engine.get_county_distribution()),
        ("Yearly trends", lambda: engine.get_yearly_trends()),
        ("Manufacturer distribution", lambda: engine.get_make_distribution()),
        ("Top models", lambda: engine.get_top_models(int(limit))),
        ("Electric range distribution", lambda: engine.get_range_distribution()),
        ("Electric utilities (top 10)", lambda: engine.get_utility_distribution()),
        ("Adoption timeline", lambda: engine.get_adoption_timeline()),
        ("Range by model year", lambda: engine.get_range_by_year()),
        ("Range statistics", lambda: [engine.get_range_statistics()]),
        ("Market segments", lambda: engine.get_market_segments()),
        ("Adoption forecast", lambda: engine.get_adoption_forecast()),
    ]

    for title, query in panels:
        with st.expander(title, expanded=False):
            st.dataframe(_to_frame(query()), use_container_width=True)


def run_app() -> None:
    st.set_page_config(page_title=APP_NAME, page_icon="🔌", layout="wide")
    st.title(APP_NAME)
    st.caption(f"Prototype version {APP_VERSION}")

    engine = _render_load_panel()
    if engine is None:
        return

    _render_summary(engine)
    _render_query_tables(engine)
