"""
LevelUp — End-to-end analytics pipeline.

Runs the report pipeline over simulated BI exports (or a CSV given on the
command line) and prints smoke-test summaries.

Usage:
    python main.py [export.csv]
"""

import logging
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).resolve().parent))

from levelup_dashboard.buckets import make_ranges
from levelup_dashboard.chat import format_level_context, level_context
from levelup_dashboard.dashboard import (
    available_reports,
    build_report_workbook,
    get_game_comparison,
    get_level_scores,
    get_table_report,
    get_weekly_check,
    parse_export,
    renew_level_clusters,
)
from levelup_dashboard.formatting import format_value
from levelup_dashboard.loaders import get_report_settings, load_system_config
from levelup_dashboard.simulator import generate_ab_export, generate_level_metrics, generate_long_export
from levelup_dashboard.transforms import to_wide

# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger(__name__)


def main() -> None:
    """Run the full analytics pipeline and print smoke-test outputs."""

    print("=" * 70)
    print("  LEVELUP — Level Design Analytics Dashboard")
    print("  Report Pipeline Smoke Test")
    print("=" * 70)
    print()

    system_config = load_system_config()
    settings = get_report_settings(system_config)

    # ------------------------------------------------------------------
    # 1. Load exports
    # ------------------------------------------------------------------
    print("[ 1 ] LOADING EXPORTS")
    print("-" * 40)

    if len(sys.argv) > 1:
        revize = parse_export(Path(sys.argv[1]).read_text(encoding="utf-8-sig"))
        print(f"\nExport {sys.argv[1]}: {len(revize)} rows loaded")
    else:
        revize = parse_export(generate_level_metrics().to_csv(index=False))
        print(f"\nLevel Revize (simulated, wide): {len(revize)} rows loaded")
    print(revize.head().to_string(index=False))

    long_export = parse_export(generate_long_export().to_csv(index=False))
    print(f"\nLevel Revize (simulated, long): {len(long_export)} rows loaded")

    ab_export = parse_export(generate_ab_export().to_csv(index=False))
    print(f"\nLevel Score AB (simulated): {len(ab_export)} rows loaded")

    # ------------------------------------------------------------------
    # 2. Wide format
    # ------------------------------------------------------------------
    print("\n")
    print("[ 2 ] PIVOTING TO WIDE FORMAT")
    print("-" * 40)

    long_wide = to_wide(long_export)
    print(f"\nLong -> wide: {len(long_wide)} rows, {len(long_wide.columns)} columns")

    ab_wide = to_wide(ab_export)
    print(f"A/B -> wide: {len(ab_wide)} rows, {len(ab_wide.columns)} columns")

    # ------------------------------------------------------------------
    # 3. Table reports
    # ------------------------------------------------------------------
    print("\n")
    print("[ 3 ] TABLE REPORTS")
    print("-" * 40)

    for name in available_reports("Level Revize"):
        report = get_table_report(name, revize, settings)
        print(f"\n{name}: {len(report)} rows")
        print(report.head(5).to_string(index=False))

    for name in available_reports("Level Score AB"):
        report = get_table_report(name, ab_export, settings)
        print(f"\n{name}: {len(report)} rows")

    sections = get_weekly_check(revize, system_config)
    print("\nWeekly check:")
    for title, table in sections.items():
        print(f"  {title:32s} | {len(table)} rows")

    # ------------------------------------------------------------------
    # 4. Workbooks and chat reply
    # ------------------------------------------------------------------
    print("\n")
    print("[ 4 ] WORKBOOKS & CHAT REPLY")
    print("-" * 40)

    workbooks = {
        "Level Revize": revize,
        "Bölgesel Rapor": revize,
        "Level Score AB": ab_export,
    }
    sizes = {}
    for name, df in workbooks.items():
        sizes[name] = len(build_report_workbook(name, df, settings))
        print(f"\n{name} workbook: {sizes[name]:,} bytes")

    rows = level_context(to_wide(revize), 10)
    print()
    print(format_level_context(rows, 10, "Simulated"))

    # ------------------------------------------------------------------
    # 5. Level scores and game comparison
    # ------------------------------------------------------------------
    print("\n")
    print("[ 5 ] LEVEL SCORES & GAME COMPARISON")
    print("-" * 40)

    scores = get_level_scores(revize, system_config, "pop-blast")
    scores, renewed = renew_level_clusters(scores, system_config, "pop-blast", 1)
    print(f"\nLevel scores: {len(scores)} levels, {renewed} clusters renewed")
    print(scores[["Level", "Concept", "Cluster", "Calculated Score"]].head(10).to_string(index=False))

    other_game = parse_export(generate_level_metrics(n_levels=80).to_csv(index=False))
    comparison = get_game_comparison({"Game A": revize, "Game B": other_game}, ["3 Days Churn"], 1, 20)
    print("\n3 Days Churn, levels 1-20:")
    print(comparison["3 Days Churn"].to_string(index=False))

    # ------------------------------------------------------------------
    # 6. Acceptance criteria verification
    # ------------------------------------------------------------------
    print("\n")
    print("[ 6 ] ACCEPTANCE CRITERIA CHECKS")
    print("-" * 40)

    check1 = len(long_wide) == long_export["LevelID"].nunique()
    print(f"\n  [{'PASS' if check1 else 'FAIL'}] Long pivot gives one row per level ({len(long_wide)})")

    check2 = make_ranges(95) == [(1, 10), (11, 30), (31, 50), (51, 70), (71, 90), (91, 95)]
    print(f"  [{'PASS' if check2 else 'FAIL'}] Level ranges for max level 95")

    check3 = format_value(0.455, "3 Days Churn") == format_value(45.5, "3 Days Churn") == "45.50%"
    print(f"  [{'PASS' if check3 else 'FAIL'}] Percent formatting of ratios and percents")

    check4 = all(size > 0 for size in sizes.values())
    print(f"  [{'PASS' if check4 else 'FAIL'}] All {len(sizes)} workbooks built")

    check5 = scores["Cluster"].isin(["1", "2", "3", "4"]).all()
    print(f"  [{'PASS' if check5 else 'FAIL'}] Every level clustered into ranks 1-4")

    print("\n" + "=" * 70)
    print("  Pipeline complete.")
    print("=" * 70)


if __name__ == "__main__":
    main()
