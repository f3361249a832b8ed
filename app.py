"""
LevelUp — Level Design Analytics Dashboard

Run with:  streamlit run app.py
"""

import sys
from datetime import date
from pathlib import Path

import streamlit as st
import plotly.graph_objects as go
import plotly.express as px
import pandas as pd

sys.path.insert(0, str(Path(__file__).resolve().parent))

from levelup_dashboard.chat import format_level_context, level_context
from levelup_dashboard.dashboard import (
    available_reports,
    build_report_workbook,
    get_display_table,
    get_game_comparison,
    get_level_scores,
    get_table_report,
    get_weekly_check,
    latest_game_exports,
    parse_export,
    renew_level_clusters,
    report_file_name,
    save_weekly_check,
    store_level_scores,
    sync_view,
)
from levelup_dashboard.config import COMPARISON_METRICS
from levelup_dashboard.excel_report import WORKBOOK_BUILDERS
from levelup_dashboard.loaders import (
    ExportError,
    ObjectStore,
    StorageError,
    get_report_settings,
    get_weekly_report,
    list_weekly_reports,
    load_system_config,
)
from levelup_dashboard.loaders.saved_results import weekly_report_tables
from levelup_dashboard.reports import TABLE_REPORT_GENERATORS, ab_diff_report, comparison_tables, regional_report
from levelup_dashboard.simulator import generate_ab_export, generate_level_metrics, generate_long_export
from levelup_dashboard.transforms import to_wide

# ---------------------------------------------------------------------------
# Page config
# ---------------------------------------------------------------------------
st.set_page_config(
    page_title="LevelUp Dashboard",
    page_icon="🎮",
    layout="wide",
    initial_sidebar_state="expanded",
)

DIFF_COLORS = {
    "up": "#2ecc71",
    "down": "#e74c3c",
    "flat": "#95a5a6",
}

SIMULATED_SOURCES = {
    "Simulated: Level Revize (wide)": ("Level Revize", generate_level_metrics),
    "Simulated: Level Revize (long)": ("Level Revize", generate_long_export),
    "Simulated: Level Score AB": ("Level Score AB", generate_ab_export),
}


# ---------------------------------------------------------------------------
# Data loading (cached)
# ---------------------------------------------------------------------------
@st.cache_data
def load_simulated(source: str) -> pd.DataFrame:
    _, generate = SIMULATED_SOURCES[source]
    # Round-trip through CSV so cells look like a real export
    return parse_export(generate().to_csv(index=False))


@st.cache_data
def load_simulated_game(name: str) -> pd.DataFrame:
    return parse_export(generate_level_metrics(n_levels=150).to_csv(index=False))


@st.cache_data
def load_config(use_storage: bool) -> dict:
    store = ObjectStore() if use_storage else None
    return load_system_config(store)


# ---------------------------------------------------------------------------
# Sidebar
# ---------------------------------------------------------------------------
st.sidebar.title("LevelUp")
st.sidebar.markdown("Level Design Analytics Dashboard")
st.sidebar.divider()

use_storage = st.sidebar.checkbox("Use object storage", value=False)
try:
    system_config = load_config(use_storage)
except StorageError as exc:
    st.sidebar.error(f"Storage unavailable: {exc}")
    system_config = load_config(False)
report_settings = get_report_settings(system_config)

games = system_config.get("games") or []
game_names = [g.get("name", g.get("id", "")) for g in games] or ["Demo Game"]
selected_game = st.sidebar.selectbox("Game", game_names)
selected_game_id = next(
    (g.get("id", "") for g in games if g.get("name", g.get("id", "")) == selected_game),
    "demo-game",
)

source = st.sidebar.radio("Data source", [*SIMULATED_SOURCES, "Upload CSV", "Sync from BI server"])

df = pd.DataFrame()
variable = None
if source in SIMULATED_SOURCES:
    variable = SIMULATED_SOURCES[source][0]
    df = load_simulated(source)
elif source == "Upload CSV":
    variable = st.sidebar.selectbox("Export variable", ["Level Revize", "Level Score AB", "Bölgesel Rapor"])
    uploaded = st.sidebar.file_uploader("Export CSV", type=["csv"])
    if uploaded is not None:
        df = parse_export(uploaded.getvalue().decode("utf-8-sig"))
else:
    variable = st.sidebar.selectbox("Export variable", ["Level Revize", "Level Score AB", "Bölgesel Rapor"])
    view_id = st.sidebar.text_input("View id")
    start = st.sidebar.date_input("From", value=None)
    end = st.sidebar.date_input("To", value=None)
    if st.sidebar.button("Sync") and view_id:
        try:
            df = sync_view(
                view_id, selected_game, variable,
                store=ObjectStore() if use_storage else None,
                start_date=start.isoformat() if start else None,
                end_date=end.isoformat() if end else None,
            )
            st.session_state["synced"] = df
        except (ExportError, StorageError) as exc:
            st.sidebar.error(str(exc))
    df = st.session_state.get("synced", df)

page = st.sidebar.radio(
    "Navigate",
    [
        "Reports", "A/B Comparison", "Level Ranges", "Weekly Check", "Level Context",
        "Level Score", "Game Comparison", "Weekly Reports",
    ],
)

st.sidebar.divider()
st.sidebar.caption(f"{len(df)} rows loaded")

if df.empty and page not in ("Game Comparison", "Weekly Reports"):
    st.info("Load an export from the sidebar to get started.")
    st.stop()


# ===========================================================================
# PAGE: Reports
# ===========================================================================
if page == "Reports":
    st.title("Table Reports")

    names = available_reports(variable)
    selected_report = st.selectbox("Report", names)

    report = get_table_report(selected_report, df, report_settings)
    st.caption(f"{len(report)} rows")
    st.dataframe(get_display_table(report), use_container_width=True, hide_index=True)

    col1, col2 = st.columns(2)
    with col1:
        st.download_button(
            "Download CSV",
            report.to_csv(index=False).encode("utf-8"),
            file_name=f"export_{variable}_{selected_report}.csv",
            mime="text/csv",
        )
    with col2:
        if variable in WORKBOOK_BUILDERS:
            st.download_button(
                "Download Excel report",
                build_report_workbook(variable, df, report_settings),
                file_name=report_file_name(variable, selected_game),
                mime="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
            )

    with st.expander("Raw export"):
        st.dataframe(get_display_table(df), use_container_width=True, hide_index=True)


# ===========================================================================
# PAGE: A/B Comparison
# ===========================================================================
elif page == "A/B Comparison":
    st.title("A/B Comparison — Variant vs Baseline")

    ab_table = ab_diff_report(df, report_settings)
    diffs = ab_table.dropna(subset=["Level Score Diff"])

    if diffs.empty:
        st.warning("No levels with both a baseline and a variant row.")
    else:
        col1, col2, col3 = st.columns(3)
        with col1:
            st.metric("Levels compared", f"{len(diffs)}")
        with col2:
            st.metric("Mean Level Score Diff", f"{diffs['Level Score Diff'].mean():+.2f}")
        with col3:
            improved = (diffs["Level Score Diff"] > 0).sum()
            st.metric("Levels improved", f"{improved}", delta=f"{improved / len(diffs) * 100:.0f}%")

        colors = [
            DIFF_COLORS["up"] if d > 0 else DIFF_COLORS["down"] if d < 0 else DIFF_COLORS["flat"]
            for d in diffs["Level Score Diff"]
        ]
        fig = go.Figure(go.Bar(
            x=diffs["Level"],
            y=diffs["Level Score Diff"],
            marker_color=colors,
        ))
        fig.update_layout(
            height=400,
            xaxis_title="Level",
            yaxis_title="Level Score Diff",
            plot_bgcolor="rgba(0,0,0,0)",
            margin=dict(l=10, r=10, t=10, b=40),
        )
        fig.add_hline(y=0, line_dash="dash", line_color="#888")
        st.plotly_chart(fig, use_container_width=True)

    view = st.selectbox(
        "View",
        [name for name in TABLE_REPORT_GENERATORS if name in available_reports("Level Score AB")],
    )
    st.dataframe(
        get_display_table(get_table_report(view, df, report_settings)),
        use_container_width=True,
        hide_index=True,
    )


# ===========================================================================
# PAGE: Level Ranges
# ===========================================================================
elif page == "Level Ranges":
    st.title("Level Ranges")

    buckets = regional_report(df, report_settings)
    buckets = buckets[buckets["Row Count"] > 0]

    if buckets.empty:
        st.warning("No rows with a numeric level.")
    else:
        metric = st.selectbox(
            "Metric",
            [c for c in buckets.columns if c not in ("Range Start", "Range End", "Row Count", "Total Users")
             and pd.api.types.is_numeric_dtype(buckets[c])],
        )
        labels = [f"{s}-{e}" for s, e in zip(buckets["Range Start"], buckets["Range End"])]
        fig = px.bar(
            x=labels,
            y=buckets[metric],
            labels={"x": "Level range", "y": metric},
        )
        fig.update_layout(height=400, plot_bgcolor="rgba(0,0,0,0)")
        st.plotly_chart(fig, use_container_width=True)

        st.dataframe(get_display_table(buckets), use_container_width=True, hide_index=True)


# ===========================================================================
# PAGE: Weekly Check
# ===========================================================================
elif page == "Weekly Check":
    st.title("Weekly Check")
    today = st.date_input("As of", value=date.today())

    sections = get_weekly_check(df, system_config, today)
    for title, table in sections.items():
        st.subheader(title)
        if table.empty:
            st.caption("No levels pass the filters.")
        else:
            st.dataframe(table, use_container_width=True, hide_index=True)

    if use_storage and st.button("Save weekly report"):
        try:
            report_id = save_weekly_check(ObjectStore(), selected_game_id, selected_game, sections, today)
            st.success(f"Saved weekly report {report_id}.")
        except (StorageError, ValueError) as exc:
            st.error(str(exc))


# ===========================================================================
# PAGE: Level Context
# ===========================================================================
elif page == "Level Context":
    st.title("Level Context")

    wide = to_wide(df)
    center = st.number_input("Level", min_value=1, value=10, step=1)
    rows = level_context(wide, int(center))

    if not rows:
        st.warning(f"No data found for level {int(center)} (+/- 5).")
    else:
        st.markdown(format_level_context(rows, int(center), selected_game))


# ===========================================================================
# PAGE: Level Score
# ===========================================================================
elif page == "Level Score":
    st.title("Level Score")
    st.caption("Calculated score per level from the game's cluster weights")

    state_key = f"level_scores_{selected_game_id}_{source}"
    store = ObjectStore() if use_storage else None
    if state_key not in st.session_state:
        try:
            st.session_state[state_key] = get_level_scores(df, system_config, selected_game_id, store)
        except StorageError as exc:
            st.error(f"Saved scores unavailable: {exc}")
            st.session_state[state_key] = get_level_scores(df, system_config, selected_game_id)
    scores = st.session_state[state_key]

    if scores.empty:
        st.warning("No levels with a numeric level number.")
        st.stop()

    col1, col2, col3 = st.columns(3)
    with col1:
        min_level = st.number_input("Cluster from level", min_value=1, value=1, step=1)
    with col2:
        max_level = st.number_input("To level", min_value=1, value=int(scores["Level"].max()), step=1)
    with col3:
        if st.button("Renew clusters"):
            try:
                scores, updated = renew_level_clusters(
                    scores, system_config, selected_game_id, int(min_level), int(max_level),
                )
                st.session_state[state_key] = scores
                st.success(f"Updated {updated} levels in range {int(min_level)}-{int(max_level)}.")
            except ValueError as exc:
                st.error(str(exc))

    fig = px.scatter(
        scores, x="Level", y="Calculated Score", color="Cluster",
        hover_data=["Level Score", "FinalCluster", "Concept"],
    )
    fig.update_layout(height=400, plot_bgcolor="rgba(0,0,0,0)")
    st.plotly_chart(fig, use_container_width=True)

    st.dataframe(get_display_table(scores), use_container_width=True, hide_index=True)

    col1, col2 = st.columns(2)
    with col1:
        st.download_button(
            "Download CSV",
            scores.to_csv(index=False).encode("utf-8"),
            file_name=f"Level_Scores_{selected_game_id}.csv",
            mime="text/csv",
        )
    with col2:
        if store is not None and st.button("Save scores"):
            try:
                saved = store_level_scores(store, selected_game_id, scores)
                st.success(f"Saved {saved} level scores.")
            except StorageError as exc:
                st.error(str(exc))


# ===========================================================================
# PAGE: Game Comparison
# ===========================================================================
elif page == "Game Comparison":
    st.title("Game Comparison")

    chosen = st.multiselect("Games", game_names, default=game_names[:2])
    metrics = st.multiselect("Metrics", COMPARISON_METRICS, default=COMPARISON_METRICS[:1])
    col1, col2 = st.columns(2)
    with col1:
        min_level = st.number_input("Min level", min_value=1, value=1, step=1)
    with col2:
        max_level = st.number_input("Max level", min_value=1, value=100, step=1)

    if not chosen or not metrics:
        st.info("Pick at least one game and one metric.")
        st.stop()

    if use_storage:
        try:
            exports = latest_game_exports(ObjectStore(), chosen)
        except StorageError as exc:
            st.error(str(exc))
            st.stop()
    else:
        exports = {name: load_simulated_game(name) for name in chosen}

    missing = [name for name in chosen if name not in exports]
    if missing:
        st.warning(f"No stored export for: {', '.join(missing)}")

    tables = comparison_tables(exports, metrics, int(min_level), int(max_level))
    displays = get_game_comparison(exports, metrics, int(min_level), int(max_level))
    for metric, table in tables.items():
        st.subheader(metric)
        if table.empty:
            st.caption("No levels in this window.")
            continue
        fig = px.line(table, x="Level", y=list(exports), labels={"value": metric, "variable": "Game"})
        fig.update_layout(height=350, plot_bgcolor="rgba(0,0,0,0)")
        st.plotly_chart(fig, use_container_width=True)
        st.dataframe(displays[metric].head(50), use_container_width=True, hide_index=True)


# ===========================================================================
# PAGE: Weekly Reports
# ===========================================================================
elif page == "Weekly Reports":
    st.title("Saved Weekly Reports")

    if not use_storage:
        st.info("Enable object storage in the sidebar to browse saved weekly reports.")
        st.stop()

    store = ObjectStore()
    try:
        summaries = list_weekly_reports(store, selected_game_id)
    except StorageError as exc:
        st.error(str(exc))
        st.stop()

    if not summaries:
        st.caption(f"No saved weekly reports for {selected_game}.")
    else:
        labels = {f"{s['report_date']} ({s['id'][:8]})": s["id"] for s in summaries}
        choice = st.selectbox("Report", list(labels))
        try:
            document = get_weekly_report(store, labels[choice])
        except StorageError as exc:
            st.error(str(exc))
            st.stop()
        for title, table in weekly_report_tables(document).items():
            st.subheader(title)
            if table.empty:
                st.caption("No levels passed the filters.")
            else:
                st.dataframe(table, use_container_width=True, hide_index=True)
