"""Developer inspector (Streamlit). Renders engine results as tables only."""
