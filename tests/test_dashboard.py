"""Dashboard entry point tests: what the Streamlit pages and jobs call."""

from datetime import date, datetime

import pytest
from helpers import FakeS3Client, make_level_row, make_long_export, make_table, make_wide_export

from levelup_dashboard import config
from levelup_dashboard.dashboard import (
    XLSX_CONTENT_TYPE,
    available_reports,
    build_report_workbook,
    export_file_name,
    get_display_table,
    get_game_comparison,
    get_level_scores,
    get_table_report,
    get_weekly_check,
    latest_game_exports,
    parse_export,
    report_file_name,
    save_report,
    save_weekly_check,
    store_level_scores,
    sync_view,
)
from levelup_dashboard.loaders.saved_results import list_weekly_reports, load_level_scores
from levelup_dashboard.loaders.storage import ObjectStore
from levelup_dashboard.reports import TABLE_REPORT_GENERATORS
from levelup_dashboard.settings import ReportTypeSettings

NOW = datetime(2025, 3, 24, 9, 5, 0)


@pytest.fixture
def store():
    client = FakeS3Client()
    return ObjectStore(bucket="test-bucket", client=client)


# ─── Names ───────────────────────────────────────────────────────

def test_report_file_name():
    assert report_file_name("Bölgesel Rapor", "Pop Blast", NOW) == "Report_Bolgesel_Rapor_Pop_Blast_2025-03-24_09-05-00.xlsx"


def test_export_file_name():
    assert export_file_name("Pop Blast", "Level Revize", NOW) == "Pop Blast - Level Revize - 2025-03-24 09-05-00.csv"


# ─── Tables ──────────────────────────────────────────────────────

class TestTables:

    def test_available_reports(self):
        assert available_reports("Level Revize")[0] == "Level Score Top Unsuccessful"
        assert available_reports("Unknown") == list(TABLE_REPORT_GENERATORS)
        assert available_reports() == list(TABLE_REPORT_GENERATORS)

    def test_parse_export(self):
        df = parse_export("Level,Score\n1,50\n\n2,\n")
        assert df.to_dict("records") == [{"Level": "1", "Score": "50"}, {"Level": "2", "Score": ""}]

    def test_parse_empty_export(self):
        assert parse_export("").empty

    def test_report_from_long_export(self):
        df = make_long_export(range(1, 6), {"Score": "40", "Total User": "500", "3 Days Churn": "0.1"})
        result = get_table_report("Level Score Top Successful", df)
        assert len(result) == 5
        assert "TotalUser" in result.columns

    def test_unknown_report(self):
        with pytest.raises(KeyError):
            get_table_report("Nope", make_wide_export(2))

    def test_display_table(self):
        df = make_wide_export(1)[["Level", "3 Days Churn", "TotalUser"]]
        settings = ReportTypeSettings(hidden_columns=("TotalUser",))
        result = get_display_table(df, settings)
        assert list(result.columns) == ["Level", "3 Days Churn"]
        assert result.loc[0, "3 Days Churn"] == "12.00%"

    def test_weekly_check(self):
        sections = get_weekly_check(make_wide_export(40), {"weeklyCheck": {"minTotalUser": 100}}, date(2025, 3, 10))
        assert len(sections["Last 30 Levels"]) == 30
        assert sections["Level Score Top Successful"].loc[0, "3 Days Churn"] == "12.00%"


# ─── Workbooks and storage ───────────────────────────────────────

class TestStorageJobs:

    def test_build_unknown_workbook(self):
        with pytest.raises(KeyError):
            build_report_workbook("Nope", make_wide_export(2))

    def test_save_report(self, store):
        key = save_report(store, "Level Revize", "Pop Blast", make_wide_export(5), now=NOW)
        assert key == "Report_Level_Revize_Pop_Blast_2025-03-24_09-05-00.xlsx"
        assert store.client.put_calls[0]["ContentType"] == XLSX_CONTENT_TYPE
        assert store.download_bytes(key)[:2] == b"PK"

    def test_sync_view_mock(self, monkeypatch, store):
        monkeypatch.setattr(config, "MOCK_TABLEAU", True)
        df = sync_view("view-1", "Pop Blast", "Level Revize", store, now=NOW)
        assert list(df.columns) == ["LevelID", "Metrics", "Value"]
        stored = store.download_text("Pop Blast - Level Revize - 2025-03-24 09-05-00.csv")
        assert stored.splitlines()[0] == "LevelID,Metrics,Value"

    def test_sync_view_without_store(self, monkeypatch):
        monkeypatch.setattr(config, "MOCK_TABLEAU", True)
        assert not sync_view("view-1", "Pop Blast", "Level Revize").empty

    def test_save_weekly_check(self, store):
        sections = get_weekly_check(make_wide_export(5), {}, date(2025, 3, 10))
        report_id = save_weekly_check(store, "pop-blast", "Pop Blast", sections, date(2025, 3, 10))
        [summary] = list_weekly_reports(store, "pop-blast")
        assert summary["id"] == report_id
        assert summary["report_date"] == "2025-03-10"


# ─── Level scores ────────────────────────────────────────────────

SCORE_CONFIG = {
    "games": [
        {"id": "pop-blast", "name": "Pop Blast", "scoreMultipliers": {"default": {"satisfaction": 1.0}}},
    ],
}


def _scored_export():
    parts = {"Monetization Score": 40, "Engagement Score": 60, "Satisfaction Score": 80}
    return make_table([make_level_row(level, **parts) for level in (1, 2)])


class TestLevelScores:

    def test_game_multipliers_applied(self):
        table = get_level_scores(_scored_export(), SCORE_CONFIG, "pop-blast")
        assert table.loc[0, "Calculated Score"] == pytest.approx(0.3 * 40 + 0.3 * 60 + 80)

    def test_saved_clusters_applied(self, store):
        store.upload("level-scores/pop-blast.json", '[{"level": 2, "score": 1, "cluster": "1"}]')
        table = get_level_scores(_scored_export(), SCORE_CONFIG, "pop-blast", store)
        assert table["Cluster"].tolist() == ["Medium", "1"]
        assert table.loc[1, "Calculated Score"] == pytest.approx(68.0)

    def test_store_level_scores(self, store):
        table = get_level_scores(_scored_export(), {}, "pop-blast")
        assert store_level_scores(store, "pop-blast", table) == 2
        saved = load_level_scores(store, "pop-blast")
        assert saved[1]["cluster"] == "Medium"
        assert saved[2]["score"] == pytest.approx(62.0)


# ─── Game comparison ─────────────────────────────────────────────

class TestGameComparison:

    def test_latest_exports_skip_missing_games(self, store):
        store.upload("Pop Blast - Level Revize - 2025-03-01 10-00-00.csv", make_wide_export(3).to_csv(index=False))
        store.upload("level-scores/Pop Blast.json", "[]")
        exports = latest_game_exports(store, ["Pop Blast", "Gem Rush"], "Level Revize")
        assert list(exports) == ["Pop Blast"]
        assert len(exports["Pop Blast"]) == 3

    def test_display_formats(self):
        exports = {"Pop Blast": make_wide_export(2), "Gem Rush": make_wide_export(1)}
        tables = get_game_comparison(exports, ["3 Days Churn", "Avg. Level Play Time"])
        churn = tables["3 Days Churn"]
        assert churn["Pop Blast"].tolist() == ["12.00%", "12.00%"]
        assert churn["Gem Rush"].tolist() == ["12.00%", ""]
        assert churn["Level"].tolist() == ["1", "2"]
        assert tables["Avg. Level Play Time"].loc[0, "Pop Blast"] == "90"
