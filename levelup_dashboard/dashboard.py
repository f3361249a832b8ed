"""
Dashboard-ready output functions.

These are the primary entry points for the Streamlit front end (app.py)
and the smoke run (main.py). Each function returns plain DataFrames,
bytes or strings suitable for rendering tables, download buttons and
stored files.
"""

import logging
from datetime import date, datetime
from typing import Any

import pandas as pd

from .excel_report import WORKBOOK_BUILDERS
from .formatting import apply_column_settings, format_frame, is_percent_column
from .loaders.saved_results import save_level_scores, save_weekly_report, saved_clusters
from .loaders.storage import ObjectStore
from .loaders.system_config import get_report_settings, get_score_multipliers, get_weekly_check_settings
from .loaders.tableau import authenticate, fetch_view_csv
from .loaders.utils import read_csv_text, slugify_filename, to_csv_text
from .reports import (
    TABLE_REPORT_GENERATORS,
    VARIABLE_TABLE_REPORTS,
    comparison_tables,
    generate_report,
    weekly_check_sections,
)
from .scoring import level_score_records, level_score_table, renew_clusters
from .settings import ReportSettings, ReportTypeSettings, WeeklyCheckSettings
from .transforms import pivot_measure_values, to_wide

logger = logging.getLogger(__name__)

XLSX_CONTENT_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def parse_export(text: str) -> pd.DataFrame:
    """Parse an exported CSV into a table of string cells."""
    df = read_csv_text(text)
    if df.empty:
        logger.warning("Export is empty")
    return df


def available_reports(variable: str | None = None) -> list[str]:
    """Report names offered for an export variable; every report when unknown."""
    if variable and variable in VARIABLE_TABLE_REPORTS:
        return list(VARIABLE_TABLE_REPORTS[variable])
    return list(TABLE_REPORT_GENERATORS)


def get_table_report(
    name: str,
    df: pd.DataFrame,
    settings: ReportSettings | None = None,
) -> pd.DataFrame:
    """Run a named report over an export in any layout.

    Raises
    ------
    KeyError
        When name is not a registered report.
    """
    return generate_report(name, to_wide(df), settings)


def get_display_table(
    df: pd.DataFrame,
    settings: ReportTypeSettings | WeeklyCheckSettings | None = None,
) -> pd.DataFrame:
    """Column settings applied, every cell formatted for display."""
    if settings is not None:
        df = apply_column_settings(
            df, settings.column_order, settings.column_renames, settings.hidden_columns,
        )
    return format_frame(df)


def get_weekly_check(
    df: pd.DataFrame,
    system_config: dict[str, Any],
    today: date | None = None,
) -> dict[str, pd.DataFrame]:
    """Weekly check sections as display tables, keyed by section title."""
    weekly = get_weekly_check_settings(system_config)
    sections = weekly_check_sections(to_wide(df), weekly, get_report_settings(system_config), today)
    return {title: get_display_table(table, weekly) for title, table in sections.items()}


def build_report_workbook(
    name: str,
    df: pd.DataFrame,
    settings: ReportSettings | None = None,
) -> bytes:
    """Spreadsheet bytes for a workbook report ('Level Score AB', 'Bölgesel Rapor', 'Level Revize')."""
    builder = WORKBOOK_BUILDERS[name]
    return builder(df, settings)


def report_file_name(name: str, game: str, now: datetime | None = None) -> str:
    """Accent-free, filesystem-safe workbook name.

    >>> report_file_name("Bölgesel Rapor", "Pop Blast", datetime(2025, 3, 24, 9, 5, 0))
    'Report_Bolgesel_Rapor_Pop_Blast_2025-03-24_09-05-00.xlsx'
    """
    now = now or datetime.now()
    raw = f"Report_{name}_{game}_{now:%Y-%m-%d_%H-%M-%S}"
    return f"{slugify_filename(raw)}.xlsx"


def export_file_name(game: str, variable: str, now: datetime | None = None) -> str:
    """Storage key for a synced export: '<game> - <variable> - <timestamp>.csv'."""
    now = now or datetime.now()
    return f"{game} - {variable} - {now:%Y-%m-%d %H-%M-%S}.csv"


def sync_view(
    view_id: str,
    game_name: str,
    variable: str,
    store: ObjectStore | None = None,
    start_date: str | None = None,
    end_date: str | None = None,
    now: datetime | None = None,
) -> pd.DataFrame:
    """Fetch a BI view, spread measure columns and keep a copy in storage.

    Returns
    -------
    The fetched export as a table. Nothing is stored when store is None.
    """
    session = authenticate()
    text = fetch_view_csv(view_id, session, start_date, end_date)
    df = pivot_measure_values(read_csv_text(text))

    if store is not None:
        key = export_file_name(game_name, variable, now)
        store.upload(key, to_csv_text(df))

    logger.info("Synced view %s for %s / %s: %d rows", view_id, game_name, variable, len(df))
    return df


def save_report(
    store: ObjectStore,
    name: str,
    game: str,
    df: pd.DataFrame,
    settings: ReportSettings | None = None,
    now: datetime | None = None,
) -> str:
    """Build a workbook report and upload it. Returns the storage key."""
    payload = build_report_workbook(name, df, settings)
    key = report_file_name(name, game, now)
    return store.upload(key, payload, content_type=XLSX_CONTENT_TYPE)


def save_weekly_check(
    store: ObjectStore,
    game_id: str,
    game_name: str,
    sections: dict[str, pd.DataFrame],
    report_date: date | None = None,
) -> str:
    """Keep a snapshot of weekly check sections. Returns the snapshot id."""
    return save_weekly_report(store, game_id, game_name, sections, report_date)


# ---------------------------------------------------------------------------
# Level score calculator
# ---------------------------------------------------------------------------

def get_level_scores(
    df: pd.DataFrame,
    system_config: dict[str, Any],
    game_id: str,
    store: ObjectStore | None = None,
) -> pd.DataFrame:
    """Level score table for a game, with clusters saved earlier applied when store is given."""
    clusters = saved_clusters(store, game_id) if store is not None else {}
    return level_score_table(to_wide(df), get_score_multipliers(system_config, game_id), clusters)


def renew_level_clusters(
    table: pd.DataFrame,
    system_config: dict[str, Any],
    game_id: str,
    min_level: int,
    max_level: int | None = None,
) -> tuple[pd.DataFrame, int]:
    """Re-cluster a level score table with the game's weights. Raises ValueError on a bad range."""
    return renew_clusters(table, min_level, max_level, get_score_multipliers(system_config, game_id))


def store_level_scores(store: ObjectStore, game_id: str, table: pd.DataFrame) -> int:
    """Save every level's calculated score and cluster. Returns the number saved."""
    return save_level_scores(store, game_id, level_score_records(table))


# ---------------------------------------------------------------------------
# Multi-game comparison
# ---------------------------------------------------------------------------

def latest_game_exports(
    store: ObjectStore,
    game_names: list[str],
    variable: str | None = None,
) -> dict[str, pd.DataFrame]:
    """Newest stored export per game (optionally of one variable); games without one are left out."""
    exports = {}
    for name in game_names:
        stored = store.find_latest(name, *([variable] if variable else []), ".csv")
        if stored is None:
            logger.warning("No stored export for %s", name)
            continue
        exports[name] = read_csv_text(store.download_text(stored.key))
    return exports


def get_game_comparison(
    exports: dict[str, pd.DataFrame],
    metrics: list[str] | None = None,
    min_level: int = 1,
    max_level: int = 100,
) -> dict[str, pd.DataFrame]:
    """Per-metric comparison tables across games, formatted for display.

    Game columns take the metric's format: percentages for churn and
    other ratio metrics, plain numbers otherwise.
    """
    tables = comparison_tables(exports, metrics, min_level, max_level)
    return {
        metric: format_frame(table, percent_columns=list(exports) if is_percent_column(metric) else ())
        for metric, table in tables.items()
    }
