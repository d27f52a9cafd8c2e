"""
Good Return MEL — Interactive Dashboard

Run with:  streamlit run app.py
"""

import asyncio
import sys
from pathlib import Path

import streamlit as st
import plotly.graph_objects as go
import plotly.express as px
import pandas as pd

sys.path.insert(0, str(Path(__file__).resolve().parent))

from mel_dashboard.config import (
    DATE_RANGE_DAYS,
    HISTORICAL_PERIODS,
    PROGRAM_NAME,
    PROJECTED_PERIODS,
    REPORTING_PERIOD,
)
from mel_dashboard.dashboard import (
    DashboardData,
    get_country_summary,
    get_growth_series,
    get_indicator_summary,
    get_project_status_summary,
)
from mel_dashboard.handlers import (
    approve_item,
    bulk_approve_items,
    bulk_reject_items,
    dismiss_notification,
    load_approval_queue,
    load_notifications,
    mark_all_notifications_read,
    mark_notification_read,
    reject_item,
    request_item_changes,
    submit_data_point,
)
from mel_dashboard.approval_queue import QueueSelector
from mel_dashboard.errors import MelError
from mel_dashboard.reports import build_report, export_docx, export_excel
from mel_dashboard.services import MelServices
from mel_dashboard.state import MelStore, action
from mel_dashboard.transforms import build_fact_data_points

# ---------------------------------------------------------------------------
# Page config
# ---------------------------------------------------------------------------
st.set_page_config(
    page_title=f"{PROGRAM_NAME} Dashboard",
    page_icon="📊",
    layout="wide",
    initial_sidebar_state="expanded",
)

RAG_COLORS = {
    "green": "#2ecc71",
    "amber": "#f39c12",
    "red": "#e74c3c",
    "grey": "#95a5a6",
}

PRIORITY_COLORS = {"high": "#e74c3c", "medium": "#f39c12", "low": "#2ecc71"}


def run(coro):
    return asyncio.run(coro)


# ---------------------------------------------------------------------------
# Session objects (one store and service set per browser session)
# ---------------------------------------------------------------------------
if "services" not in st.session_state:
    st.session_state.services = MelServices()
    st.session_state.store = MelStore()
    st.session_state.selector = QueueSelector()

services: MelServices = st.session_state.services
store: MelStore = st.session_state.store
selector: QueueSelector = st.session_state.selector

# ---------------------------------------------------------------------------
# Sidebar
# ---------------------------------------------------------------------------
st.sidebar.title(PROGRAM_NAME)
st.sidebar.markdown("Monitoring, Evaluation & Learning")
st.sidebar.divider()

countries = run(services.countries.get_all())
country_options = ["All countries"] + [c["code"] for c in countries if c["status"] == "active"]
country_names = {c["code"]: c["name"] for c in countries}
current = store.state["selected_country"] or "All countries"
selected = st.sidebar.selectbox(
    "Country",
    country_options,
    index=country_options.index(current) if current in country_options else 0,
    format_func=lambda code: country_names.get(code, code),
)
selected_country = None if selected == "All countries" else selected
if selected_country != store.state["selected_country"]:
    store.dispatch(action("set_selected_country", selected_country))

if not store.state["notifications"]["items"]:
    run(load_notifications(services, store))
unread = store.unread_count

page = st.sidebar.radio(
    "Navigate",
    [
        "Dashboard",
        "Approval Queue",
        "Data Entry",
        "Bulk Import",
        "Reports",
        f"Notifications ({unread})" if unread else "Notifications",
    ],
)

st.sidebar.divider()
user = store.state["current_user"]
st.sidebar.caption(f"Signed in as {user['name']} ({user['role']})")

if store.state["error"]:
    st.error(store.state["error"])
    if st.button("Dismiss"):
        store.dispatch(action("clear_error"))
        st.rerun()


def load_dashboard() -> DashboardData:
    dash = st.session_state.get("dashboard")
    if dash is None or dash.selected_country != selected_country:
        dash = DashboardData(services, selected_country)
        st.session_state.dashboard = dash
    run(dash.sync(store.refresh_token))
    if not dash.error:
        store.dispatch(action("update_dashboard_metrics", dash.metrics))
    return dash


# ---------------------------------------------------------------------------
# Helper: metric card
# ---------------------------------------------------------------------------
def metric_card(label: str, value: str, caption: str = "", color: str = "#3498db"):
    st.markdown(
        f"""
        <div style="background: linear-gradient(135deg, {color}22, {color}11);
                    border-left: 4px solid {color};
                    border-radius: 8px; padding: 16px; margin-bottom: 8px;">
            <div style="font-size: 13px; color: #888; font-weight: 600; text-transform: uppercase;">{label}</div>
            <div style="font-size: 28px; font-weight: 700; color: #222; margin: 4px 0;">{value}</div>
            <div style="font-size: 13px; color: #666;">{caption}</div>
        </div>
        """,
        unsafe_allow_html=True,
    )


# ===========================================================================
# PAGE: Dashboard
# ===========================================================================
if page == "Dashboard":
    st.title("Program Dashboard")
    st.caption(f"Period: **{REPORTING_PERIOD}**  |  {country_names.get(selected_country, 'All countries')}")

    dash = load_dashboard()
    if dash.error:
        st.error(dash.error)
        if st.button("Try Again"):
            run(dash.refetch())
            st.rerun()
        st.stop()

    m = dash.metrics
    cols = st.columns(4)
    with cols[0]:
        metric_card("People Reached", f"{m['total_people_reached']:,.0f}",
                    f"Growth {m['growth_rate'] * 100:+.1f}% / quarter")
    with cols[1]:
        metric_card("Women Participants", f"{m['total_women_participants']:,.0f}",
                    f"{m['female_participation_rate']}% female participation", "#9b59b6")
    with cols[2]:
        metric_card("Loans Disbursed", f"${m['total_loans_value']:,.0f}",
                    f"{m['total_training_sessions']:,.0f} training sessions", "#2ecc71")
    with cols[3]:
        metric_card("Data Quality", f"{m['avg_quality_score']}",
                    f"{m['pending_approvals']} awaiting approval", "#f39c12")

    st.caption(f"{m['active_countries']} active countries  |  {m['active_projects']} active projects")
    st.divider()

    col1, col2 = st.columns([3, 2])
    with col1:
        st.subheader("People Reached — Trend & Projection")
        series = get_growth_series(m, HISTORICAL_PERIODS, PROJECTED_PERIODS)
        fig = px.line(series, x="period", y="value", color="series", markers=True,
                      color_discrete_map={"actual": "#3498db", "projected": "#95a5a6"})
        fig.update_layout(height=360, plot_bgcolor="rgba(0,0,0,0)", xaxis_title="", yaxis_title="People",
                          margin=dict(l=10, r=10, t=10, b=40))
        st.plotly_chart(fig, use_container_width=True)

    with col2:
        st.subheader("Country Performance")
        country_df = get_country_summary(m)
        if country_df.empty:
            st.info("No country data for this selection.")
        else:
            colors = ["#e74c3c" if a else "#3498db" for a in country_df["has_anomaly"]]
            fig = go.Figure()
            fig.add_trace(go.Bar(x=country_df["name"], y=country_df["reach"], name="Reach",
                                 marker_color=colors))
            fig.add_trace(go.Scatter(x=country_df["name"], y=country_df["target"], name="Target",
                                     mode="markers", marker=dict(symbol="line-ew-open", size=20)))
            fig.update_layout(height=360, plot_bgcolor="rgba(0,0,0,0)",
                              margin=dict(l=10, r=10, t=10, b=40))
            st.plotly_chart(fig, use_container_width=True)

    for a in m["anomalies"]:
        st.warning(f"Anomaly: {a['region']} reached {a['value']:,.0f} ({a['direction']} average, z={a['z_score']})")

    st.subheader("Indicator Performance")
    fact = build_fact_data_points(dash.data["data_points"], dash.data["projects"],
                                  dash.data["countries"], dash.data["indicators"])
    summary = get_indicator_summary(fact, dash.data["indicators"])
    if not summary.empty:
        def color_rag(val):
            return f"background-color: {RAG_COLORS.get(val, '#ffffff')}22; color: {RAG_COLORS.get(val, '#333')}"

        styled = summary.drop(columns=["indicator_id"]).style.map(color_rag, subset=["rag"])
        st.dataframe(styled, use_container_width=True, hide_index=True)

    st.subheader("Projects")
    projects = get_project_status_summary(dash.data["projects"], dash.data["countries"], fact)
    if not projects.empty:
        st.dataframe(
            projects[["project_name", "country_name", "status", "risk_level", "progress_pct",
                      "timeline_pct", "pending_review"]],
            use_container_width=True, hide_index=True,
        )


# ===========================================================================
# PAGE: Approval Queue
# ===========================================================================
elif page == "Approval Queue":
    st.title("Approval Queue")

    queue_state = store.state["approval_queue"]
    filters = dict(queue_state["filters"])

    fcols = st.columns(5)
    filters["status"] = fcols[0].selectbox("Status", ["all", "submitted", "in_review"],
                                           index=["all", "submitted", "in_review"].index(filters["status"]))
    filters["priority"] = fcols[1].selectbox("Priority", ["all", "high", "medium", "low"])
    filters["date_range"] = fcols[2].selectbox("Submitted", ["all"] + list(DATE_RANGE_DAYS))
    sort_by = fcols[3].selectbox("Sort by", ["submitted_at", "priority", "quality_score", "days_since_submission"])
    sort_order = fcols[4].selectbox("Order", ["desc", "asc"])
    store.dispatch(action("set_approval_queue_filters", filters))
    store.dispatch(action("set_approval_queue_sort", {"sort_by": sort_by, "sort_order": sort_order}))

    if not queue_state["items"] or st.button("Refresh"):
        run(load_approval_queue(services, store))

    stats = run(services.approval_queue.get_approval_statistics())
    scols = st.columns(4)
    scols[0].metric("Pending", stats["pending"])
    scols[1].metric("Overdue", stats["overdue_items"])
    scols[2].metric("Avg quality", stats["avg_quality_score"])
    scols[3].metric("Approval rate", f"{stats['approval_rate']}%")

    items = store.state["approval_queue"]["items"]
    visible = selector.select(items, store.state["approval_queue"]["filters"], sort_by, sort_order)
    if not visible:
        st.info("Nothing is waiting for review.")
        st.stop()

    table = pd.DataFrame(visible)[
        ["id", "indicator_name", "value", "period", "project_name", "country_name",
         "submitted_by", "status", "priority", "quality_score", "days_since_submission"]
    ]
    st.dataframe(table, use_container_width=True, hide_index=True)

    selected_ids = st.multiselect("Select items", [i["id"] for i in visible])
    comment = st.text_area("Feedback / reason")

    dash = st.session_state.get("dashboard")
    bcols = st.columns(4)
    if bcols[0].button("Approve", disabled=len(selected_ids) != 1):
        run(approve_item(services, store, selected_ids[0], comment, dash))
        st.rerun()
    if bcols[1].button("Reject", disabled=len(selected_ids) != 1):
        run(reject_item(services, store, selected_ids[0], comment, dash))
        st.rerun()
    if bcols[2].button("Request changes", disabled=len(selected_ids) != 1):
        run(request_item_changes(services, store, selected_ids[0], comment, dash))
        st.rerun()
    bulk_choice = bcols[3].selectbox("Bulk", ["—", "Approve all selected", "Reject all selected"])
    if bulk_choice != "—" and selected_ids and st.button("Run bulk action"):
        if bulk_choice.startswith("Approve"):
            summary = run(bulk_approve_items(services, store, selected_ids, comment, dash))
        else:
            summary = run(bulk_reject_items(services, store, selected_ids, comment, dash))
        st.success(f"{summary['success_count']} processed, {summary['failure_count']} failed")

    with st.expander("Approval history"):
        history_id = st.selectbox("Data point", [i["id"] for i in visible])
        history = run(services.approval_queue.get_approval_history(history_id))
        st.dataframe(pd.DataFrame(history["history"]), use_container_width=True, hide_index=True)

    with st.expander("Queue insights"):
        insights = run(services.approval_queue.get_queue_insights())
        st.json(insights)


# ===========================================================================
# PAGE: Data Entry
# ===========================================================================
elif page == "Data Entry":
    st.title("Submit Data")

    projects = run(services.projects.get_all())
    indicators = run(services.indicators.get_all())
    if selected_country:
        country = next(c for c in countries if c["code"] == selected_country)
        projects = [p for p in projects if p["country_id"] == country["id"]]

    with st.form("data_entry"):
        project = st.selectbox("Project", projects, format_func=lambda p: p["name"])
        indicator = st.selectbox("Indicator", indicators, format_func=lambda i: f"{i['name']} ({i['unit']})")
        value = st.number_input("Value", min_value=0.0, step=1.0)
        reporting_date = st.date_input("Reporting date")
        priority = st.selectbox("Priority", ["medium", "high", "low"])
        notes = st.text_area("Notes")
        submitted = st.form_submit_button("Submit for review")

    if submitted and project and indicator:
        check = run(services.validation_rules.validate_value(indicator["id"], value))
        for err in check["errors"]:
            st.warning(err)
        created = run(submit_data_point(services, store, {
            "project_id": project["id"],
            "indicator_id": indicator["id"],
            "value": value,
            "reporting_date": reporting_date.isoformat(),
            "priority": priority,
            "quality_score": check["quality_score"] or 85,
            "notes": notes or None,
        }))
        if created:
            st.success(f"Data point #{created['id']} submitted for review ({created['period']})")


# ===========================================================================
# PAGE: Bulk Import
# ===========================================================================
elif page == "Bulk Import":
    st.title("Bulk Import")

    st.download_button("Download CSV template", services.bulk_import.build_template(),
                       file_name="mel_import_template.csv", mime="text/csv")

    upload = st.file_uploader("Upload CSV or Excel", type=["csv", "xlsx"])
    if upload is not None:
        try:
            parsed = run(services.bulk_import.parse_file(upload.getvalue(), upload.name))
        except MelError as exc:
            st.error(str(exc))
            st.stop()

        st.caption(f"{len(parsed['data'])} rows, columns: {', '.join(parsed['headers'])}")
        st.dataframe(pd.DataFrame(parsed["data"]).head(20), use_container_width=True, hide_index=True)

        checked = run(services.bulk_import.validate_data(parsed["data"], parsed["mappings"]))
        for err in checked["errors"]:
            st.error(f"Row {err['row']}: {err['message']}")
        for warn in checked["warnings"]:
            st.warning(f"Row {warn['row']}: {warn['message']}")

        projects = run(services.projects.get_all())
        default_project = st.selectbox("Default project", projects, format_func=lambda p: p["name"])
        if checked["valid_rows"] and st.button(f"Import {len(checked['valid_rows'])} valid rows"):
            summary = run(services.bulk_import.import_rows(
                checked["valid_rows"], user["name"], {"project_id": default_project["id"]}
            ))
            st.success(f"Imported {summary['success_count']} rows, {summary['failure_count']} failed")
            store.dispatch(action("refresh_dashboard_data"))


# ===========================================================================
# PAGE: Reports
# ===========================================================================
elif page == "Reports":
    st.title("Indicator Reports")

    dash = load_dashboard()
    all_points = run(services.data_points.get_all())
    periods = sorted({dp["period"] for dp in all_points if dp.get("period")})
    period = st.selectbox("Period", periods, index=periods.index(REPORTING_PERIOD) if REPORTING_PERIOD in periods else 0)

    country_id = None
    if selected_country:
        country_id = next(c["id"] for c in countries if c["code"] == selected_country)

    report = build_report(all_points, run(services.projects.get_all()), countries,
                          dash.data["indicators"], period, country_id=country_id)
    st.dataframe(report.drop(columns=["indicator_id"]), use_container_width=True, hide_index=True)

    title = f"{PROGRAM_NAME} Indicator Report — {period}"
    c1, c2 = st.columns(2)
    c1.download_button("Download Excel", export_excel(report, title=title).getvalue(),
                       file_name=f"mel_report_{period}.xlsx")
    c2.download_button("Download Word", export_docx(report, title=title, metrics=dash.metrics).getvalue(),
                       file_name=f"mel_report_{period}.docx")


# ===========================================================================
# PAGE: Notifications
# ===========================================================================
else:
    st.title("Notifications")

    if st.button("Mark all as read"):
        run(mark_all_notifications_read(services, store))
        st.rerun()

    for n in store.state["notifications"]["items"]:
        color = PRIORITY_COLORS.get(n["priority"], "#95a5a6")
        with st.container(border=True):
            c1, c2, c3 = st.columns([6, 1, 1])
            c1.markdown(
                f"<span style='color:{color}; font-weight:600'>{n['priority'].upper()}</span> "
                f"{'' if n['is_read'] else '● '}**{n['title']}**<br>{n['message']}",
                unsafe_allow_html=True,
            )
            if not n["is_read"] and c2.button("Read", key=f"read_{n['id']}"):
                run(mark_notification_read(services, store, n["id"]))
                st.rerun()
            if c3.button("Dismiss", key=f"dismiss_{n['id']}"):
                run(dismiss_notification(services, store, n["id"]))
                st.rerun()
