"""Wide-format transformer tests.

Core question: does every export layout come out as one row per level?
"""

import math

import pandas as pd
import pytest
from helpers import make_ab_export, make_long_export, make_wide_export

from levelup_dashboard.transforms import (
    detect_variant_column,
    pivot_long_format,
    pivot_measure_values,
    pivot_variant_format,
    to_wide,
)


# ─── Long layout ─────────────────────────────────────────────────

class TestLongPivot:

    def test_one_row_per_level(self):
        df = make_long_export([1, 2, 3])
        wide = to_wide(df)
        assert len(wide) == 3
        assert wide["Level"].tolist() == ["1", "2", "3"]

    @pytest.mark.parametrize("n_levels", [1, 7, 40])
    def test_n_levels_give_n_rows(self, n_levels):
        df = make_long_export(range(1, n_levels + 1))
        assert len(to_wide(df)) == n_levels

    def test_first_seen_order(self):
        df = make_long_export([5, 2, 9])
        assert to_wide(df)["Level"].tolist() == ["5", "2", "9"]

    def test_total_user_renamed(self):
        wide = to_wide(make_long_export([1], {"Total User": "300"}))
        assert "TotalUser" in wide.columns
        assert wide.loc[0, "TotalUser"] == "300"

    def test_metrics_become_columns(self):
        wide = to_wide(make_long_export([1], {"Level Score": "61", "3 Days Churn": "0.1"}))
        assert wide.loc[0, "Level Score"] == "61"
        assert wide.loc[0, "3 Days Churn"] == "0.1"

    def test_level_column_spelling(self):
        df = make_long_export([1, 2], level_col="Level")
        assert len(to_wide(df)) == 2

    def test_missing_level_column_returns_input(self):
        df = pd.DataFrame([{"Metrics": "Level Score", "Value": "50"}])
        result = pivot_long_format(df, "Metrics", "Value")
        pd.testing.assert_frame_equal(result, df)

    def test_blank_level_rows_skipped(self):
        df = make_long_export([1, ""])
        assert len(to_wide(df)) == 1


# ─── A/B layout ──────────────────────────────────────────────────

class TestVariantPivot:

    def test_detects_variant_column(self):
        df = make_ab_export({1: 50}, {1: 55})
        assert detect_variant_column(df) == "Variant"

    def test_no_variant_column_in_wide_export(self):
        assert detect_variant_column(make_wide_export(3)) is None

    def test_one_row_per_level(self):
        df = make_ab_export({1: 50, 2: 40, 3: 70}, {1: 55, 2: 38})
        wide = to_wide(df)
        assert wide["Level"].tolist() == [1, 2, 3]

    def test_arm_columns(self):
        wide = to_wide(make_ab_export({1: 50}, {1: 55}))
        assert wide.loc[0, "Level Score Baseline"] == 50.0
        assert wide.loc[0, "Level Score Variant A"] == 55.0

    def test_missing_arm_is_nan(self):
        wide = to_wide(make_ab_export({1: 50, 2: 40}, {1: 55}))
        row = wide[wide["Level"] == 2].iloc[0]
        assert row["Level Score Baseline"] == 40.0
        assert math.isnan(row["Level Score Variant A"])

    def test_variant_only_level_kept(self):
        wide = to_wide(make_ab_export({1: 50}, {1: 55, 4: 60}))
        row = wide[wide["Level"] == 4].iloc[0]
        assert math.isnan(row["Level Score Baseline"])
        assert row["Level Score Variant A"] == 60.0

    def test_sorted_numerically(self):
        wide = to_wide(make_ab_export({10: 50, 2: 40}, {10: 51, 2: 41}))
        assert wide["Level"].tolist() == [2, 10]

    def test_first_row_per_arm_wins(self):
        df = make_ab_export({1: 50}, {1: 55})
        duplicate = df.iloc[[0]].assign(**{"Level Score": "99"})
        wide = to_wide(pd.concat([df, duplicate], ignore_index=True))
        assert wide.loc[0, "Level Score Baseline"] == 50.0

    def test_meta_columns_carried(self):
        wide = to_wide(make_ab_export({1: 50}, {1: 55}))
        assert wide.loc[0, "FinalCluster"] == "Medium"
        assert wide.loc[0, "RevisionNumber"] == "1"

    def test_direct_pivot_matches_to_wide(self):
        df = make_ab_export({1: 50, 2: 40}, {1: 55, 2: 45})
        pd.testing.assert_frame_equal(pivot_variant_format(df, "Variant"), to_wide(df))


# ─── Wide layout and edge cases ──────────────────────────────────

class TestPassThrough:

    def test_wide_unchanged(self):
        df = make_wide_export(5)
        pd.testing.assert_frame_equal(to_wide(df), df)

    def test_returns_copy(self):
        df = make_wide_export(2)
        assert to_wide(df) is not df

    def test_empty(self):
        assert to_wide(pd.DataFrame()).empty


class TestMeasureValues:

    def test_spreads_measures(self):
        df = pd.DataFrame([
            {"Level": "1", "Cluster": "Hard", "Measure Names": "Score", "Measure Values": "40"},
            {"Level": "1", "Cluster": "Hard", "Measure Names": "TotalUser", "Measure Values": "900"},
            {"Level": "2", "Cluster": "Easy", "Measure Names": "Score", "Measure Values": "70"},
        ])
        result = pivot_measure_values(df)
        assert len(result) == 2
        assert result.loc[0, "Score"] == "40"
        assert result.loc[0, "TotalUser"] == "900"
        assert result.loc[1, "Cluster"] == "Easy"

    def test_without_measure_columns_unchanged(self):
        df = make_wide_export(2)
        pd.testing.assert_frame_equal(pivot_measure_values(df), df)
