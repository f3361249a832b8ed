"""
Report generators — pure functions from a table of level rows to a
derived report table.

Every generator has the signature ``(df, settings=None) -> DataFrame`` and
never raises on malformed data: unmatched or unparseable values come out
as NaN (or are filtered, where the report filters), empty input gives an
empty table. Rows whose sort value is missing are placed last, whatever
the sort direction.
"""

import logging
import operator
from collections.abc import Callable, Mapping
from datetime import date

import numpy as np
import pandas as pd

from .buckets import bucketize
from .columns import find_column, level_value, metric_text, metric_value, resolve
from .config import (
    AB_DIFF_METRICS,
    ANNOTATION_COLUMN,
    COMPARISON_LEVEL_WINDOW,
    COMPARISON_METRICS,
    LEVEL_COLUMNS,
    LEVEL_TABLE_COLUMNS,
    META_COLUMNS,
    REGIONAL_METRICS,
    VARIANT_B_SUCCESS_SCORE,
    VARIANT_B_TOP_N,
)
from .loaders.utils import is_blank, parse_level, safe_float
from .settings import (
    DEFAULT_REPORT_SETTINGS,
    ReportSettings,
    SheetSortConfig,
    WeeklyCheckSettings,
)
from .transforms import to_wide

logger = logging.getLogger(__name__)

ReportGenerator = Callable[..., pd.DataFrame]

_OPERATORS = {
    "gt": operator.gt,
    "lt": operator.lt,
    "gte": operator.ge,
    "lte": operator.le,
    "eq": operator.eq,
}

# Variant-only view: output column -> wide A/B column
VARIANT_B_COLUMNS = {
    "Level Score": "Level Score Variant A",
    "TotalUser": "TotalUser Variant A",
    "Instant Churn": "Instant Churn Variant A",
    "3 Days Churn": "3 Days Churn Variant A",
    "Avg. FirstTryWinPercent": "Avg. FirstTryWin Variant A",
    "Avg. Level Play Time": "Avg. Level Play Time Variant A",
}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _nan(value: float | None) -> float:
    return np.nan if value is None else value


def _sort_rows(df: pd.DataFrame, values: list[float | None], descending: bool) -> pd.DataFrame:
    """Stable sort of df by precomputed values; missing values go last."""
    present = [i for i, v in enumerate(values) if v is not None]
    missing = [i for i, v in enumerate(values) if v is None]
    present.sort(key=lambda i: values[i], reverse=descending)
    return df.iloc[present + missing].reset_index(drop=True)


def _column_values(df: pd.DataFrame, column: str) -> list[float | None]:
    """Numeric values of an exact-or-resolved column, None where missing."""
    return [
        safe_float(resolve(record, column, bidirectional=False))
        for record in df.to_dict("records")
    ]


def filter_min_users(df: pd.DataFrame, min_total_user: int) -> pd.DataFrame:
    """Drop rows whose TotalUser is below the cutoff or not a number."""
    if min_total_user <= 0 or df.empty:
        return df.copy()
    users = [metric_value(record, "TotalUser") for record in df.to_dict("records")]
    keep = [u is not None and u >= min_total_user for u in users]
    return df.loc[keep].reset_index(drop=True)


def level_table(
    df: pd.DataFrame,
    columns: list[str] | None = None,
    annotation: bool = False,
) -> pd.DataFrame:
    """Normalise an export into one row per level with fixed metric columns.

    Returns
    -------
    DataFrame with columns:
        Level, FinalCluster, RevisionNumber, [annotation,] <columns>...
        sorted by level. Rows without a numeric level are dropped.
    """
    columns = LEVEL_TABLE_COLUMNS if columns is None else columns
    header = ["Level", "FinalCluster", "RevisionNumber"]
    if annotation:
        header.append(ANNOTATION_COLUMN)
    header.extend(columns)

    rows = []
    for record in df.to_dict("records"):
        level = level_value(record)
        if level is None:
            continue
        row = {
            "Level": level,
            "FinalCluster": metric_text(record, *META_COLUMNS["FinalCluster"]),
            "RevisionNumber": metric_text(record, *META_COLUMNS["RevisionNumber"]),
        }
        if annotation:
            row[ANNOTATION_COLUMN] = ""
        for col in columns:
            row[col] = _nan(metric_value(record, col))
        rows.append(row)

    result = pd.DataFrame(rows, columns=header)
    result = result.sort_values("Level", kind="stable").reset_index(drop=True)
    logger.info("Built level table with %d rows", len(result))
    return result


# ---------------------------------------------------------------------------
# Top / bottom by Score and 3-day churn
# ---------------------------------------------------------------------------

def _sort_by_metric(df: pd.DataFrame, metric: str, descending: bool) -> pd.DataFrame:
    values = [metric_value(record, metric) for record in df.to_dict("records")]
    return _sort_rows(df, values, descending)


def level_score_top_unsuccessful(
    df: pd.DataFrame,
    settings: ReportSettings | None = None,
    sort_column: str | None = None,
) -> pd.DataFrame:
    """All rows sorted by Score, lowest first.

    sort_column replaces the sheet's configured column, e.g. "Level Score"
    for a table built by level_table().
    """
    settings = settings or DEFAULT_REPORT_SETTINGS
    sheet = settings.three_day_churn.sheet("levelScoreUnsuccess", "asc")
    return _sort_by_metric(df, sort_column or sheet.sort_column or "Score", sheet.descending)


def level_score_top_successful(
    df: pd.DataFrame,
    settings: ReportSettings | None = None,
    sort_column: str | None = None,
) -> pd.DataFrame:
    """All rows sorted by Score, highest first."""
    settings = settings or DEFAULT_REPORT_SETTINGS
    sheet = settings.three_day_churn.sheet("levelScoreSuccess", "desc")
    return _sort_by_metric(df, sort_column or sheet.sort_column or "Score", sheet.descending)


def _positive_churn(df: pd.DataFrame) -> tuple[pd.DataFrame, list[float]]:
    values = [metric_value(record, "3 Days Churn") for record in df.to_dict("records")]
    keep = [v is not None and v > 0 for v in values]
    return df.loc[keep].reset_index(drop=True), [v for v, k in zip(values, keep) if k]


def three_day_churn_top_unsuccessful(
    df: pd.DataFrame, settings: ReportSettings | None = None
) -> pd.DataFrame:
    """Rows with a positive 3-day churn, lowest churn first."""
    settings = settings or DEFAULT_REPORT_SETTINGS
    sheet = settings.three_day_churn.sheet("churnUnsuccess", "asc")
    filtered, values = _positive_churn(df)
    return _sort_rows(filtered, values, sheet.descending)


def three_day_churn_top_successful(
    df: pd.DataFrame, settings: ReportSettings | None = None
) -> pd.DataFrame:
    """Rows with a positive 3-day churn, highest churn first."""
    settings = settings or DEFAULT_REPORT_SETTINGS
    sheet = settings.three_day_churn.sheet("churnSuccess", "desc")
    filtered, values = _positive_churn(df)
    return _sort_rows(filtered, values, sheet.descending)


# ---------------------------------------------------------------------------
# Regional (level-range) report
# ---------------------------------------------------------------------------

def regional_report(df: pd.DataFrame, settings: ReportSettings | None = None) -> pd.DataFrame:
    """Pivot to wide format and average metrics per level range."""
    settings = settings or DEFAULT_REPORT_SETTINGS
    wide = filter_min_users(to_wide(df), settings.regional.min_total_user)
    return bucketize(wide, "Level", "TotalUser", REGIONAL_METRICS)


# ---------------------------------------------------------------------------
# A/B comparison
# ---------------------------------------------------------------------------

def _ab_users_ok(record: dict, min_total_user: int) -> bool:
    """True when any arm with a user count reaches the cutoff, or no arm has one."""
    arms = [
        safe_float(resolve(record, f"TotalUser {arm}", bidirectional=False))
        for arm in ("Baseline", "Variant A")
    ]
    present = [users for users in arms if users is not None]
    if not present:
        return True
    return any(users >= min_total_user for users in present)


def ab_diff_report(df: pd.DataFrame, settings: ReportSettings | None = None) -> pd.DataFrame:
    """Baseline, variant and variant-minus-baseline per level.

    Returns
    -------
    DataFrame with columns:
        Level, FinalCluster, RevisionNumber, annotation, and for each metric
        in AB_DIFF_METRICS: '<m> Baseline', '<m> Variant A', '<m> Diff'.
        Diff is NaN when either arm is missing; the level is still listed.

    The user cutoff (level_score_ab.min_total_user) is off by default. When
    set, a level stays if any arm with a user count reaches it; levels
    without any user count are kept.
    """
    settings = settings or DEFAULT_REPORT_SETTINGS
    min_users = settings.level_score_ab.min_total_user
    wide = to_wide(df)

    header = ["Level", "FinalCluster", "RevisionNumber", ANNOTATION_COLUMN]
    for metric in AB_DIFF_METRICS:
        header.extend([f"{metric} Baseline", f"{metric} Variant A", f"{metric} Diff"])

    rows = []
    for record in wide.to_dict("records"):
        if min_users > 0 and not _ab_users_ok(record, min_users):
            continue
        level = level_value(record)
        row = {
            "Level": level if level is not None else record.get("Level", ""),
            "FinalCluster": metric_text(record, *META_COLUMNS["FinalCluster"]),
            "RevisionNumber": metric_text(record, *META_COLUMNS["RevisionNumber"]),
            ANNOTATION_COLUMN: "",
        }
        for metric in AB_DIFF_METRICS:
            base = safe_float(resolve(record, f"{metric} Baseline", bidirectional=False))
            variant = safe_float(resolve(record, f"{metric} Variant A", bidirectional=False))
            row[f"{metric} Baseline"] = _nan(base)
            row[f"{metric} Variant A"] = _nan(variant)
            row[f"{metric} Diff"] = variant - base if base is not None and variant is not None else np.nan
        rows.append(row)

    result = pd.DataFrame(rows, columns=header)
    levels = [parse_level(v) for v in result["Level"]]
    result = _sort_rows(result, [None if v is None else float(v) for v in levels], False)
    logger.info("Built A/B diff table with %d rows", len(result))
    return result


def significant_diff_view(ab_table: pd.DataFrame, sheet: SheetSortConfig) -> pd.DataFrame:
    """Rows of an A/B table whose |diff| passes the sheet's threshold.

    Rows without a value in the sort column are dropped; the rest are sorted
    by the sort column in the sheet's direction.
    """
    table = ab_table
    if sheet.filter_column and sheet.filter_threshold is not None:
        compare = _OPERATORS.get(sheet.filter_operator, operator.gt)
        values = _column_values(table, sheet.filter_column)
        keep = [v is not None and compare(abs(v), sheet.filter_threshold) for v in values]
        table = table.loc[keep].reset_index(drop=True)

    values = _column_values(table, sheet.sort_column)
    keep = [v is not None for v in values]
    table = table.loc[keep].reset_index(drop=True)
    return _sort_rows(table, [v for v in values if v is not None], sheet.descending)


def _diff_view(sheet_name: str) -> ReportGenerator:
    def view(df: pd.DataFrame, settings: ReportSettings | None = None) -> pd.DataFrame:
        settings = settings or DEFAULT_REPORT_SETTINGS
        sheet = settings.level_score_ab.sheet(sheet_name, "desc")
        return significant_diff_view(ab_diff_report(df, settings), sheet)

    view.__name__ = f"{sheet_name}_diff_view"
    view.__doc__ = f"Significant A/B differences for the '{sheet_name}' sheet."
    return view


level_score_diff_view = _diff_view("levelScore")
instant_churn_diff_view = _diff_view("instantChurn")
three_day_churn_diff_view = _diff_view("threeDayChurn")
time_diff_view = _diff_view("time")


def variant_b_from_wide(wide: pd.DataFrame) -> pd.DataFrame:
    """Variant-arm columns of a wide A/B table under plain metric names."""
    header = ["Level", "FinalCluster", "RevisionNumber", ANNOTATION_COLUMN, *VARIANT_B_COLUMNS]
    rows = []
    for record in wide.to_dict("records"):
        level = level_value(record)
        row = {
            "Level": level if level is not None else record.get("Level", ""),
            "FinalCluster": metric_text(record, *META_COLUMNS["FinalCluster"]),
            "RevisionNumber": metric_text(record, *META_COLUMNS["RevisionNumber"]),
            ANNOTATION_COLUMN: "",
        }
        for out_col, wide_col in VARIANT_B_COLUMNS.items():
            row[out_col] = _nan(safe_float(resolve(record, wide_col, bidirectional=False)))
        rows.append(row)
    return pd.DataFrame(rows, columns=header)


def variant_b_table(df: pd.DataFrame, settings: ReportSettings | None = None) -> pd.DataFrame:
    """Variant-only view of an A/B export, sorted by level."""
    table = variant_b_from_wide(to_wide(df))
    levels = [parse_level(v) for v in table["Level"]]
    return _sort_rows(table, [None if v is None else float(v) for v in levels], False)


def rank_variant_b(
    table: pd.DataFrame,
    sheet: SheetSortConfig,
    min_score: float | None = None,
) -> pd.DataFrame:
    """Rank a variant-only table by its sort column, top VARIANT_B_TOP_N.

    Rows without a value, or below min_score when given, are dropped.
    """
    values = _column_values(table, sheet.sort_column or "Level Score")
    keep = [v is not None and (min_score is None or v >= min_score) for v in values]
    table = table.loc[keep].reset_index(drop=True)
    kept_values = [v for v, k in zip(values, keep) if k]
    return _sort_rows(table, kept_values, sheet.descending).head(VARIANT_B_TOP_N)


def variant_b_top_successful(
    df: pd.DataFrame, settings: ReportSettings | None = None
) -> pd.DataFrame:
    """Variant levels with Level Score >= 50, highest first, top 100."""
    settings = settings or DEFAULT_REPORT_SETTINGS
    sheet = settings.level_score_ab.sheet("topSuccessful", "desc")
    return rank_variant_b(variant_b_table(df, settings), sheet, VARIANT_B_SUCCESS_SCORE)


def variant_b_bottom_unsuccessful(
    df: pd.DataFrame, settings: ReportSettings | None = None
) -> pd.DataFrame:
    """Variant levels with a Level Score, lowest first, top 100."""
    settings = settings or DEFAULT_REPORT_SETTINGS
    sheet = settings.level_score_ab.sheet("bottomUnsuccess", "asc")
    return rank_variant_b(variant_b_table(df, settings), sheet)


# ---------------------------------------------------------------------------
# Weekly check
# ---------------------------------------------------------------------------

def _event_date_column(columns) -> str | None:
    for col in columns:
        lowered = str(col).lower()
        if "min" in lowered and "time" in lowered and "event" in lowered:
            return col
    return None


def filter_weekly_rows(
    df: pd.DataFrame,
    min_total_user: int,
    min_level: int = 0,
    min_days_since_event: int = 0,
    clusters: tuple[str, ...] | list[str] = (),
    today: date | None = None,
) -> pd.DataFrame:
    """Rows that pass the weekly check filters.

    - level >= min_level (non-numeric levels count as 0)
    - TotalUser >= min_total_user; rows without a user count are dropped
    - at least min_days_since_event days since the first event date,
      when the row has a parseable date
    - cluster in clusters, where "None" selects rows with no cluster
    """
    if df.empty:
        return df.copy()
    today = today or date.today()
    level_col = find_column(df.columns, *LEVEL_COLUMNS)
    date_col = _event_date_column(df.columns)

    keep = []
    for record in df.to_dict("records"):
        level = parse_level(record.get(level_col)) if level_col else None
        if (level or 0) < min_level:
            keep.append(False)
            continue

        users = safe_float(resolve(record, "TotalUser", "Total User", "TotalUsers",
                                   "total_user", bidirectional=False))
        if users is None or users < min_total_user:
            keep.append(False)
            continue

        if min_days_since_event > 0 and date_col and not is_blank(record.get(date_col)):
            event = pd.to_datetime(str(record[date_col]), dayfirst=True, errors="coerce")
            if not pd.isna(event) and (today - event.date()).days < min_days_since_event:
                keep.append(False)
                continue

        if clusters:
            cluster = metric_text(record, "New Cluster", *META_COLUMNS["FinalCluster"])
            if not cluster and "None" not in clusters:
                keep.append(False)
                continue
            if cluster and cluster not in clusters:
                keep.append(False)
                continue

        keep.append(True)

    return df.loc[keep].reset_index(drop=True)


def weekly_check_filter(
    df: pd.DataFrame,
    settings: WeeklyCheckSettings,
    today: date | None = None,
    successful: bool = False,
) -> pd.DataFrame:
    """Apply the weekly check filters, or the success-side filters."""
    if successful:
        return filter_weekly_rows(
            df, settings.success_min_total_user, settings.success_min_level,
            settings.success_min_days_since_event, settings.success_clusters, today,
        )
    return filter_weekly_rows(
        df, settings.min_total_user, settings.min_level,
        settings.min_days_since_event, settings.clusters, today,
    )


def latest_levels(df: pd.DataFrame, min_total_user: int, limit: int = 30) -> pd.DataFrame:
    """Highest levels with at least min_total_user users, newest first."""
    filtered = filter_min_users(df, max(min_total_user, 0))
    levels = [level_value(record) for record in filtered.to_dict("records")]
    ordered = _sort_rows(filtered, [None if v is None else float(v) for v in levels], True)
    return ordered.head(limit)


def weekly_check_sections(
    df: pd.DataFrame,
    weekly: WeeklyCheckSettings,
    settings: ReportSettings | None = None,
    today: date | None = None,
    limit: int = 50,
) -> dict[str, pd.DataFrame]:
    """Tables shown on the weekly check page, keyed by section title."""
    unsuccessful = weekly_check_filter(df, weekly, today)
    successful = weekly_check_filter(df, weekly, today, successful=True)
    sections = {
        "Level Score Top Unsuccessful": level_score_top_unsuccessful(unsuccessful, settings).head(limit),
        "3 Day Churn Top Unsuccessful": three_day_churn_top_unsuccessful(unsuccessful, settings).head(limit),
        "Level Score Top Successful": level_score_top_successful(successful, settings).head(limit),
        "3 Day Churn Top Successful": three_day_churn_top_successful(successful, settings).head(limit),
        "Last 30 Levels": latest_levels(df, weekly.min_total_user_last30),
    }
    logger.info(
        "Built weekly check: %d unsuccessful, %d successful candidates",
        len(unsuccessful), len(successful),
    )
    return sections


# ---------------------------------------------------------------------------
# Multi-game comparison
# ---------------------------------------------------------------------------

def _first_row_per_level(df: pd.DataFrame) -> dict[int, dict]:
    rows: dict[int, dict] = {}
    for record in to_wide(df).to_dict("records"):
        level = level_value(record)
        if level is not None and level not in rows:
            rows[level] = record
    return rows


def game_comparison(
    exports: Mapping[str, pd.DataFrame],
    metric: str,
    min_level: int = COMPARISON_LEVEL_WINDOW[0],
    max_level: int = COMPARISON_LEVEL_WINDOW[1],
) -> pd.DataFrame:
    """One metric side by side for several games.

    Returns
    -------
    DataFrame with columns:
        Level, then one column per game (in exports order). Rows are the
        levels any game has within [min_level, max_level], ascending; a game
        without the level or the metric gets NaN.
    """
    per_game = {game: _first_row_per_level(df) for game, df in exports.items()}
    levels = sorted({
        level for rows in per_game.values() for level in rows
        if min_level <= level <= max_level
    })

    records = []
    for level in levels:
        row = {"Level": level}
        for game, rows in per_game.items():
            record = rows.get(level)
            row[game] = _nan(metric_value(record, metric)) if record is not None else np.nan
        records.append(row)
    return pd.DataFrame(records, columns=["Level", *exports])


def comparison_tables(
    exports: Mapping[str, pd.DataFrame],
    metrics: list[str] | None = None,
    min_level: int = COMPARISON_LEVEL_WINDOW[0],
    max_level: int = COMPARISON_LEVEL_WINDOW[1],
) -> dict[str, pd.DataFrame]:
    """game_comparison() for each metric, keyed by metric name."""
    metrics = COMPARISON_METRICS if metrics is None else metrics
    tables = {metric: game_comparison(exports, metric, min_level, max_level) for metric in metrics}
    logger.info(
        "Compared %d games on %d metrics for levels %d-%d",
        len(exports), len(metrics), min_level, max_level,
    )
    return tables


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

TABLE_REPORT_GENERATORS: dict[str, ReportGenerator] = {
    "Level Score Top Unsuccessful": level_score_top_unsuccessful,
    "Level Score Top Successful": level_score_top_successful,
    "3 Day Churn Top Unsuccessful": three_day_churn_top_unsuccessful,
    "3 Day Churn Top Successful": three_day_churn_top_successful,
    "Bölgesel Rapor": regional_report,
    "Level Score AB": ab_diff_report,
    "Level Score Diff": level_score_diff_view,
    "Instant Churn Diff": instant_churn_diff_view,
    "3 Days Churn Diff": three_day_churn_diff_view,
    "Time Diff": time_diff_view,
    "Level Score B": variant_b_table,
    "B Level Score Top Successful": variant_b_top_successful,
    "B Churn Bottom Unsuccessful": variant_b_bottom_unsuccessful,
}

# Reports offered for each exported variable
VARIABLE_TABLE_REPORTS: dict[str, list[str]] = {
    "Level Revize": [
        "Level Score Top Unsuccessful",
        "Level Score Top Successful",
        "3 Day Churn Top Unsuccessful",
        "3 Day Churn Top Successful",
        "Bölgesel Rapor",
    ],
    "Level Score AB": [
        "Level Score AB",
        "Level Score Diff",
        "Instant Churn Diff",
        "3 Days Churn Diff",
        "Time Diff",
        "Level Score B",
        "B Level Score Top Successful",
        "B Churn Bottom Unsuccessful",
    ],
    "Bölgesel Rapor": [
        "Bölgesel Rapor",
        "Level Score Top Unsuccessful",
        "Level Score Top Successful",
        "3 Day Churn Top Unsuccessful",
    ],
}


def generate_report(
    name: str, df: pd.DataFrame, settings: ReportSettings | None = None
) -> pd.DataFrame:
    """Run the generator registered under name. Unknown names raise KeyError."""
    generator = TABLE_REPORT_GENERATORS[name]
    result = generator(df, settings)
    logger.info("Generated '%s' with %d rows", name, len(result))
    return result
