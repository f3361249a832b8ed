"""Report settings tests.

Core question: does a partial settings document always produce a complete,
read-only settings object?
"""

import dataclasses

import pytest

from levelup_dashboard.config import DEFAULT_HEADER_COLOR
from levelup_dashboard.settings import (
    DEFAULT_REPORT_SETTINGS,
    DEFAULT_SCORE_MULTIPLIERS,
    ScoreWeights,
    report_settings_from_dict,
    score_multipliers_from_dict,
    weekly_check_settings_from_dict,
)


# ─── Report settings ─────────────────────────────────────────────

class TestReportSettings:

    @pytest.mark.parametrize("data", [None, {}])
    def test_empty_document_gives_defaults(self, data):
        assert report_settings_from_dict(data) is DEFAULT_REPORT_SETTINGS

    def test_defaults(self):
        ab = DEFAULT_REPORT_SETTINGS.level_score_ab
        assert ab.min_total_user == 0
        assert ab.header_color == DEFAULT_HEADER_COLOR
        assert ab.sheet("levelScore").filter_threshold == 2.0
        assert DEFAULT_REPORT_SETTINGS.three_day_churn.sheet("churnSuccess").descending

    def test_merge_over_defaults(self):
        settings = report_settings_from_dict({
            "bolgeselRevize": {"headerColor": "#00ff00", "minTotalUser": 250},
        })
        assert settings.regional.header_color == "00FF00"
        assert settings.regional.min_total_user == 250
        assert settings.level_score_ab == DEFAULT_REPORT_SETTINGS.level_score_ab

    def test_sheet_fields_merged(self):
        settings = report_settings_from_dict({
            "levelScoreAB": {"sheets": {"levelScore": {"filterThreshold": "5", "filterOperator": "gte"}}},
        })
        sheet = settings.level_score_ab.sheet("levelScore")
        assert sheet.filter_threshold == 5.0
        assert sheet.filter_operator == "gte"
        assert sheet.sort_column == "Level Score Diff"

    def test_invalid_order_ignored(self):
        settings = report_settings_from_dict({
            "threeDayChurn": {"sheets": {"churnSuccess": {"sortOrder": "sideways"}}},
        })
        assert settings.three_day_churn.sheet("churnSuccess").sort_order == "desc"

    def test_new_sheet(self):
        settings = report_settings_from_dict({
            "threeDayChurn": {"sheets": {"extra": {"sortColumn": "RM Total", "sortOrder": "desc"}}},
        })
        sheet = settings.three_day_churn.sheet("extra")
        assert sheet.sort_column == "RM Total"
        assert sheet.descending

    def test_unknown_sheet_falls_back(self):
        sheet = DEFAULT_REPORT_SETTINGS.regional.sheet("missing", "desc")
        assert sheet.sort_column == ""
        assert sheet.descending

    def test_column_settings(self):
        settings = report_settings_from_dict({
            "levelScoreAB": {
                "columnOrder": ["Level"],
                "columnRenames": {"TotalUser": "Users"},
                "hiddenColumns": ["RevisionNumber"],
            },
        })
        ab = settings.level_score_ab
        assert ab.column_order == ("Level",)
        assert ab.column_renames == {"TotalUser": "Users"}
        assert ab.hidden_columns == ("RevisionNumber",)

    def test_read_only(self):
        with pytest.raises(dataclasses.FrozenInstanceError):
            DEFAULT_REPORT_SETTINGS.regional.min_total_user = 5


# ─── Weekly check settings ───────────────────────────────────────

class TestWeeklyCheckSettings:

    def test_defaults(self):
        weekly = weekly_check_settings_from_dict(None)
        assert weekly.min_total_user == 50
        assert weekly.clusters == ()

    def test_parse(self):
        weekly = weekly_check_settings_from_dict({
            "minTotalUser": "200",
            "minLevel": 20,
            "minDaysSinceEvent": 7,
            "finalClusters": ["Hard", "None"],
            "successFinalCluster": "Easy",
            "minTotalUserLast30": 80,
        })
        assert weekly.min_total_user == 200
        assert weekly.min_level == 20
        assert weekly.min_days_since_event == 7
        assert weekly.clusters == ("Hard", "None")
        assert weekly.success_clusters == ("Easy",)
        assert weekly.min_total_user_last30 == 80

    def test_success_users_default_to_main_cutoff(self):
        weekly = weekly_check_settings_from_dict({"minTotalUser": 300})
        assert weekly.success_min_total_user == 300


# ─── Score multipliers ───────────────────────────────────────────

class TestScoreMultipliers:

    def test_defaults(self):
        multipliers = score_multipliers_from_dict(None)
        assert multipliers == DEFAULT_SCORE_MULTIPLIERS
        assert multipliers["1"] == ScoreWeights(0.20, 0.20, 0.60)

    def test_partial_override(self):
        multipliers = score_multipliers_from_dict({
            "cluster2": {"satisfaction": "0.7"},
            "default": {"monetization": 0.1, "engagement": 0.1, "satisfaction": 0.8},
        })
        assert multipliers["2"] == ScoreWeights(0.25, 0.25, 0.7)
        assert multipliers["default"] == ScoreWeights(0.1, 0.1, 0.8)
        assert multipliers["3"] == DEFAULT_SCORE_MULTIPLIERS["3"]

    def test_unknown_keys_ignored(self):
        multipliers = score_multipliers_from_dict({"cluster9": {"monetization": 1}, "cluster1": "bad"})
        assert multipliers == DEFAULT_SCORE_MULTIPLIERS
        assert "9" not in multipliers

    def test_defaults_untouched(self):
        score_multipliers_from_dict({"cluster1": {"monetization": 0.9}})
        assert DEFAULT_SCORE_MULTIPLIERS["1"].monetization == 0.20
