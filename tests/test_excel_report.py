"""Spreadsheet export tests.

Core question: does each workbook open with the expected sheets, styled
headers and display-ready cells?
"""

from io import BytesIO

import pytest
from helpers import make_ab_export, make_wide_export
from openpyxl import Workbook, load_workbook

from levelup_dashboard.config import WORKBOOK_CREATOR
from levelup_dashboard.excel_report import (
    WORKBOOK_BUILDERS,
    build_level_score_workbook,
    build_regional_workbook,
    build_three_day_churn_workbook,
    column_width,
    write_sheet,
)
from levelup_dashboard.settings import DEFAULT_REPORT_SETTINGS, report_settings_from_dict


def _open(data):
    return load_workbook(BytesIO(data))


def _headers(ws):
    return [cell.value for cell in ws[1]]


# ─── Sheet styling ───────────────────────────────────────────────

class TestWriteSheet:

    @pytest.fixture
    def sheet(self):
        wb = Workbook()
        df = make_wide_export(3)[["Level", "Avg. Level Play Time", "3 Days Churn"]]
        return write_sheet(wb, "Data", df, DEFAULT_REPORT_SETTINGS.regional)

    def test_header_style(self, sheet):
        header = sheet["A1"]
        assert header.value == "Level"
        assert header.font.bold
        assert header.fill.start_color.rgb == "FFFFFF00"
        assert header.alignment.horizontal == "center"
        assert sheet.row_dimensions[1].height == 20

    def test_column_widths(self, sheet):
        assert sheet.column_dimensions["A"].width == 10
        assert sheet.column_dimensions["B"].width == len("Avg. Level Play Time") + 2

    def test_cells(self, sheet):
        assert sheet["A2"].value == 1
        assert sheet["B2"].value == 90
        assert sheet["C2"].value == "12.00%"
        assert sheet.max_row == 4


@pytest.mark.parametrize("header, width", [("Level", 10), ("Avg. Level Play Time", 22), ("x" * 40, 25)])
def test_column_width_bounds(header, width):
    assert column_width(header) == width


# ─── Workbooks ───────────────────────────────────────────────────

class TestLevelScoreWorkbook:

    def test_sheets(self):
        wb = _open(build_level_score_workbook(make_ab_export({1: 50, 2: 40}, {1: 55, 2: 38})))
        assert wb.sheetnames == [
            "RAW DATA",
            "Level Score AB",
            "Level Score",
            "Instant Churn",
            "3 Day",
            "Time",
            "Level Score B",
            "B Level Score Top Successful",
            "B Churn Bottom Unsuccessful",
            "Müdahale Listesi",
            "Uygulama Planı",
        ]
        assert wb.properties.creator == WORKBOOK_CREATOR

    def test_significant_rows_only(self):
        wb = _open(build_level_score_workbook(make_ab_export({1: 50, 2: 40}, {1: 55, 2: 41})))
        ws = wb["Level Score"]
        assert ws.max_row == 2
        assert ws["A2"].value == 1


class TestRegionalWorkbook:

    def test_sheets_and_buckets(self):
        wb = _open(build_regional_workbook(make_wide_export(20)))
        assert wb.sheetnames == ["RAW DATA", "Bölgesel Rapor", "Müdahale Listesi", "Uygulama Planı"]
        ws = wb["Bölgesel Rapor"]
        assert ws.max_row == 3
        assert _headers(ws)[:4] == ["Range Start", "Range End", "Row Count", "Total Users"]
        assert ws["E2"].value == "4.00%"

    def test_empty_buckets_dropped(self):
        df = make_wide_export(40)
        df = df[df["Level"].isin(["1", "40"])]
        ws = _open(build_regional_workbook(df))["Bölgesel Rapor"]
        assert [ws.cell(row=r, column=1).value for r in range(2, ws.max_row + 1)] == [1, 31]

    def test_settings_color_and_hidden(self):
        settings = report_settings_from_dict({
            "bolgeselRevize": {"headerColor": "#00ff00", "hiddenColumns": ["Range End"]},
        })
        ws = _open(build_regional_workbook(make_wide_export(5), settings))["Bölgesel Rapor"]
        assert ws["A1"].fill.start_color.rgb == "FF00FF00"
        assert "Range End" not in _headers(ws)


class TestThreeDayChurnWorkbook:

    def test_sheets(self):
        wb = _open(build_three_day_churn_workbook(make_wide_export(5)))
        assert wb.sheetnames == [
            "RAW DATA",
            "Level Score Top Unsuccessful",
            "Level Score Top Successful",
            "3 Day Churn Top Unsuccessful",
            "Müdahale Listesi",
            "Uygulama Planı",
        ]

    def test_ranked_by_level_score(self):
        df = make_wide_export(3)
        df["Level Score"] = ["70", "20", "45"]
        wb = _open(build_three_day_churn_workbook(df))
        for sheet, expected in [
            ("Level Score Top Unsuccessful", [2, 3, 1]),
            ("Level Score Top Successful", [1, 3, 2]),
        ]:
            ws = wb[sheet]
            assert [ws.cell(row=r, column=1).value for r in range(2, ws.max_row + 1)] == expected

    def test_planning_sheet_spelling_shared(self):
        workbooks = [
            build_level_score_workbook(make_ab_export({1: 50}, {1: 55})),
            build_regional_workbook(make_wide_export(5)),
            build_three_day_churn_workbook(make_wide_export(5)),
        ]
        for data in workbooks:
            assert _open(data).sheetnames[-1] == "Uygulama Planı"

    def test_planning_sheets_have_headers_only(self):
        wb = _open(build_three_day_churn_workbook(make_wide_export(5)))
        ws = wb["Müdahale Listesi"]
        assert ws.max_row == 1
        assert _headers(ws)[0] == "Level"


def test_builders_registered():
    assert set(WORKBOOK_BUILDERS) == {"Level Score AB", "Bölgesel Rapor", "Level Revize"}
