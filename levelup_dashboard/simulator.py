"""
Simulated BI exports for the LevelUp dashboard.

Produces level metric tables in the three layouts the BI server delivers
(wide, long, A/B). Used by mock mode, the demo app and the smoke run.
All values are synthetic.
"""

import numpy as np
import pandas as pd

# Seed for reproducibility
_RNG = np.random.default_rng(42)

_CLUSTERS = ["Easy", "Medium", "Hard", "Super Hard", "Breather"]

# Typical per-level ranges: metric -> (mean, std, low, high)
_LEVEL_PARAMS = {
    "Instant Churn": (0.04, 0.015, 0.0, 0.3),
    "3 Days Churn": (0.12, 0.04, 0.0, 0.6),
    "7 Days Churn": (0.18, 0.05, 0.0, 0.7),
    "Avg. FirstTryWinPercent": (0.55, 0.15, 0.02, 1.0),
    "Avg. Repeat Ratio": (1.8, 0.6, 1.0, 8.0),
    "Avg. Level Play Time": (95.0, 30.0, 20.0, 400.0),
    "Playon per User": (0.25, 0.12, 0.0, 2.0),
    "PlayOnWinRatio": (0.45, 0.15, 0.0, 1.0),
    "RM Total": (4.5, 2.0, 0.0, 20.0),
    "Avg. Total Moves": (22.0, 6.0, 5.0, 60.0),
    "Inapp Value": (0.02, 0.015, 0.0, 0.5),
}


def _draw(metric: str) -> float:
    mean, std, low, high = _LEVEL_PARAMS[metric]
    return float(np.clip(_RNG.normal(mean, std), low, high))


def _users_at(level: int, first_users: int) -> int:
    # Players drop off steadily with progression
    decay = np.exp(-level / 180)
    return max(int(first_users * decay * _RNG.uniform(0.9, 1.1)), 0)


def generate_level_metrics(
    n_levels: int = 120,
    first_users: int = 20_000,
    start_date: str = "2025-06-01",
) -> pd.DataFrame:
    """Generate a wide level export: one row per level, one column per metric."""
    dates = pd.date_range(start_date, periods=n_levels, freq="D")
    rows = []

    for level, first_seen in zip(range(1, n_levels + 1), dates):
        churn_3d = _draw("3 Days Churn")
        first_try = _draw("Avg. FirstTryWinPercent")
        # Harder levels: fewer first-try wins, more churn, lower score
        score = float(np.clip(100 * first_try - 150 * churn_3d + _RNG.normal(40, 8), 0, 100))

        row = {
            "Level": level,
            "FinalCluster": _RNG.choice(_CLUSTERS),
            "RevisionNumber": int(_RNG.integers(0, 4)),
            "Min. Time Event": first_seen.strftime("%d/%m/%Y"),
            "Level Score": round(score, 2),
            "Score": round(score, 2),
            "TotalUser": _users_at(level, first_users),
            "Monetization Score": round(float(np.clip(_RNG.normal(45, 15), 0, 100)), 2),
            "Engagement Score": round(float(np.clip(_RNG.normal(55, 15), 0, 100)), 2),
            # Satisfaction tracks the level score
            "Satisfaction Score": round(float(np.clip(score + _RNG.normal(0, 6), 0, 100)), 2),
        }
        for metric in _LEVEL_PARAMS:
            row[metric] = round(_draw(metric), 4)
        row["3 Days Churn"] = round(churn_3d, 4)
        row["Avg. FirstTryWinPercent"] = round(first_try, 4)
        rows.append(row)

    return pd.DataFrame(rows)


def generate_long_export(n_levels: int = 30) -> pd.DataFrame:
    """Same metrics in long layout: LevelID, Metrics, Value."""
    wide = generate_level_metrics(n_levels)
    metric_cols = ["Level Score", "TotalUser", *_LEVEL_PARAMS]
    long = wide.melt(
        id_vars=["Level"],
        value_vars=metric_cols,
        var_name="Metrics",
        value_name="Value",
    )
    long = long.rename(columns={"Level": "LevelID"})
    # BI server groups by level, metrics in a fixed order within each level
    return long.sort_values(["LevelID"], kind="stable").reset_index(drop=True)


def generate_ab_export(
    n_levels: int = 60,
    effect: float = 3.0,
    missing_variant: float = 0.05,
) -> pd.DataFrame:
    """A/B layout: one Baseline and one Variant row per level.

    Parameters
    ----------
    n_levels : Number of levels in the test.
    effect : Mean Level Score uplift of the variant.
    missing_variant : Share of levels exported without a variant row.
    """
    base = generate_level_metrics(n_levels, first_users=8_000)
    rows = []

    for record in base.to_dict("records"):
        baseline = {"Variant": "Baseline", **record}
        rows.append(baseline)

        if _RNG.random() < missing_variant:
            continue
        variant = dict(baseline, Variant="Variant A")
        variant["Level Score"] = round(float(np.clip(record["Level Score"] + _RNG.normal(effect, 2.5), 0, 100)), 2)
        variant["Score"] = variant["Level Score"]
        variant["TotalUser"] = int(record["TotalUser"] * _RNG.uniform(0.95, 1.05))
        variant["Instant Churn"] = round(max(record["Instant Churn"] + _RNG.normal(-0.003, 0.008), 0.0), 4)
        variant["3 Days Churn"] = round(max(record["3 Days Churn"] + _RNG.normal(-0.005, 0.012), 0.0), 4)
        variant["Avg. Level Play Time"] = round(record["Avg. Level Play Time"] + _RNG.normal(-4, 10), 2)
        rows.append(variant)

    return pd.DataFrame(rows)
