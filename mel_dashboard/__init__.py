"""
Good Return MEL — Monitoring, Evaluation & Learning Dashboard

Analytics backend and mock service layer for reviewing indicator
submissions and turning approved data points into dashboard KPIs.

To swap the JSON fixtures for a real backend:
    Replace the services in mel_dashboard.services with API or database
    clients exposing the same async methods. Entity dict shapes and the
    workflow rules in mel_dashboard.workflow remain unchanged.

To connect to Streamlit:
    Load a DashboardData(services, selected_country) and read .metrics for
    cards and charts; dashboard.get_indicator_summary() gives the RAG table.

To add new indicators:
    Add the indicator to fixtures/indicators.json and an entry to
    config.INDICATOR_REGISTRY with its type, unit, direction and amber_band.
"""
