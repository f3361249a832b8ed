"""
Styled multi-sheet spreadsheet exports, one builder per report type.

Each builder takes the parsed export and the report settings and returns
the .xlsx file as bytes, ready for a download button or object storage.
"""

import logging
from collections.abc import Callable
from io import BytesIO

import pandas as pd
from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.worksheet import Worksheet

from .config import (
    ACTION_PLAN_COLUMNS,
    INTERVENTION_LIST_COLUMNS,
    LEVEL_TABLE_COLUMNS,
    VARIANT_B_SUCCESS_SCORE,
    WORKBOOK_CREATOR,
)
from .formatting import apply_column_settings, excel_value
from .reports import (
    ab_diff_report,
    filter_min_users,
    level_score_top_successful,
    level_score_top_unsuccessful,
    level_table,
    rank_variant_b,
    regional_report,
    significant_diff_view,
    three_day_churn_top_unsuccessful,
    variant_b_table,
)
from .settings import DEFAULT_REPORT_SETTINGS, ReportSettings, ReportTypeSettings
from .transforms import to_wide

logger = logging.getLogger(__name__)

WorkbookBuilder = Callable[[pd.DataFrame, ReportSettings | None], bytes]

HEADER_ROW_HEIGHT = 20
MIN_COLUMN_WIDTH = 10
MAX_COLUMN_WIDTH = 25

_THIN = Side(style="thin", color="000000")
_LIGHT = Side(style="thin", color="D3D3D3")
HEADER_BORDER = Border(left=_THIN, right=_THIN, top=_THIN, bottom=_THIN)
CELL_BORDER = Border(left=_LIGHT, right=_LIGHT, top=_LIGHT, bottom=_LIGHT)
CENTER = Alignment(horizontal="center", vertical="center")


# ---------------------------------------------------------------------------
# Sheet writing
# ---------------------------------------------------------------------------

def _header_fill(color: str) -> PatternFill:
    # openpyxl wants ARGB
    argb = "FF" + color.lstrip("#").upper()
    return PatternFill(start_color=argb, end_color=argb, fill_type="solid")


def column_width(header: str) -> int:
    return min(max(len(str(header)) + 2, MIN_COLUMN_WIDTH), MAX_COLUMN_WIDTH)


def write_sheet(
    wb: Workbook,
    title: str,
    df: pd.DataFrame,
    type_settings: ReportTypeSettings,
) -> Worksheet:
    """Append a styled sheet holding df, after the report's column settings."""
    table = apply_column_settings(
        df,
        type_settings.column_order,
        type_settings.column_renames,
        type_settings.hidden_columns,
    )
    ws = wb.create_sheet(title=title)

    fill = _header_fill(type_settings.header_color)
    bold = Font(bold=True)
    for col_idx, header in enumerate(table.columns, start=1):
        cell = ws.cell(row=1, column=col_idx, value=str(header))
        cell.fill = fill
        cell.font = bold
        cell.border = HEADER_BORDER
        cell.alignment = CENTER
        ws.column_dimensions[get_column_letter(col_idx)].width = column_width(header)
    ws.row_dimensions[1].height = HEADER_ROW_HEIGHT

    for row_idx, record in enumerate(table.itertuples(index=False), start=2):
        for col_idx, (header, value) in enumerate(zip(table.columns, record), start=1):
            cell = ws.cell(row=row_idx, column=col_idx, value=excel_value(value, str(header)))
            cell.border = CELL_BORDER
            cell.alignment = CENTER

    logger.info("Wrote sheet '%s' with %d rows", title, len(table))
    return ws


def _empty_sheet(wb: Workbook, title: str, columns: list[str], type_settings: ReportTypeSettings) -> None:
    write_sheet(wb, title, pd.DataFrame(columns=columns), type_settings)


def _new_workbook() -> Workbook:
    wb = Workbook()
    wb.remove(wb.active)
    wb.properties.creator = WORKBOOK_CREATOR
    return wb


def _to_bytes(wb: Workbook) -> bytes:
    buf = BytesIO()
    wb.save(buf)
    return buf.getvalue()


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------

def build_level_score_workbook(df: pd.DataFrame, settings: ReportSettings | None = None) -> bytes:
    """A/B comparison workbook.

    Sheets: RAW DATA, Level Score AB, the four significant-diff views,
    the variant-only views, and the two hand-filled planning sheets.
    """
    settings = settings or DEFAULT_REPORT_SETTINGS
    ab_settings = settings.level_score_ab
    wide = to_wide(df)
    ab_table = ab_diff_report(wide, settings)

    variant = variant_b_table(wide, settings)
    top = rank_variant_b(variant, ab_settings.sheet("topSuccessful", "desc"), VARIANT_B_SUCCESS_SCORE)
    bottom = rank_variant_b(variant, ab_settings.sheet("bottomUnsuccess", "asc"))

    wb = _new_workbook()
    write_sheet(wb, "RAW DATA", wide, ab_settings)
    write_sheet(wb, "Level Score AB", ab_table, ab_settings)
    write_sheet(wb, "Level Score", significant_diff_view(ab_table, ab_settings.sheet("levelScore", "desc")), ab_settings)
    write_sheet(wb, "Instant Churn", significant_diff_view(ab_table, ab_settings.sheet("instantChurn", "desc")), ab_settings)
    write_sheet(wb, "3 Day", significant_diff_view(ab_table, ab_settings.sheet("threeDayChurn", "desc")), ab_settings)
    write_sheet(wb, "Time", significant_diff_view(ab_table, ab_settings.sheet("time", "desc")), ab_settings)
    write_sheet(wb, "Level Score B", variant, ab_settings)
    write_sheet(wb, "B Level Score Top Successful", top, ab_settings)
    write_sheet(wb, "B Churn Bottom Unsuccessful", bottom, ab_settings)
    _empty_sheet(wb, "Müdahale Listesi", INTERVENTION_LIST_COLUMNS, ab_settings)
    _empty_sheet(wb, "Uygulama Planı", ACTION_PLAN_COLUMNS, ab_settings)

    logger.info("Built level score workbook with %d sheets", len(wb.sheetnames))
    return _to_bytes(wb)


def build_regional_workbook(df: pd.DataFrame, settings: ReportSettings | None = None) -> bytes:
    """Level-range workbook: raw per-level table plus non-empty buckets."""
    settings = settings or DEFAULT_REPORT_SETTINGS
    regional = settings.regional
    wide = filter_min_users(to_wide(df), regional.min_total_user)

    buckets = regional_report(df, settings)
    buckets = buckets[buckets["Row Count"] > 0].reset_index(drop=True)

    wb = _new_workbook()
    write_sheet(wb, "RAW DATA", level_table(wide, LEVEL_TABLE_COLUMNS, annotation=True), regional)
    write_sheet(wb, "Bölgesel Rapor", buckets, regional)
    _empty_sheet(wb, "Müdahale Listesi", INTERVENTION_LIST_COLUMNS, regional)
    _empty_sheet(wb, "Uygulama Planı", ACTION_PLAN_COLUMNS, regional)

    logger.info("Built regional workbook with %d buckets", len(buckets))
    return _to_bytes(wb)


def build_three_day_churn_workbook(df: pd.DataFrame, settings: ReportSettings | None = None) -> bytes:
    """Level revision workbook: Score and 3-day churn rankings."""
    settings = settings or DEFAULT_REPORT_SETTINGS
    churn = settings.three_day_churn
    wide = filter_min_users(to_wide(df), churn.min_total_user)
    table = level_table(wide, LEVEL_TABLE_COLUMNS, annotation=True)

    wb = _new_workbook()
    write_sheet(wb, "RAW DATA", table, churn)
    write_sheet(wb, "Level Score Top Unsuccessful",
                level_score_top_unsuccessful(table, settings, sort_column="Level Score"), churn)
    write_sheet(wb, "Level Score Top Successful",
                level_score_top_successful(table, settings, sort_column="Level Score"), churn)
    write_sheet(wb, "3 Day Churn Top Unsuccessful",
                three_day_churn_top_unsuccessful(table, settings), churn)
    _empty_sheet(wb, "Müdahale Listesi", INTERVENTION_LIST_COLUMNS, churn)
    _empty_sheet(wb, "Uygulama Planı", ACTION_PLAN_COLUMNS, churn)

    logger.info("Built level revision workbook with %d levels", len(table))
    return _to_bytes(wb)


# Export variable -> workbook builder
WORKBOOK_BUILDERS: dict[str, WorkbookBuilder] = {
    "Level Score AB": build_level_score_workbook,
    "Bölgesel Rapor": build_regional_workbook,
    "Level Revize": build_three_day_churn_workbook,
}
