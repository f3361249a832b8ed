"""
Level score calculator and cluster renewal.

Each level gets a calculated score: its monetization, engagement and
satisfaction scores weighted by the multipliers of its cluster. Clusters
come from the export (FinalCluster), from scores saved earlier, or from
renew_clusters(), which re-clusters levels with k-means inside each
concept group.
"""

import logging
from bisect import bisect_left
from collections.abc import Mapping

import numpy as np
import pandas as pd
from sklearn.cluster import KMeans

from .columns import level_value, metric_text, metric_value
from .config import CLUSTER_COUNT, CONCEPT_UPPER_BOUNDS, META_COLUMNS, MIN_CLUSTER_LEVELS
from .settings import DEFAULT_SCORE_MULTIPLIERS, ScoreWeights

logger = logging.getLogger(__name__)

SCORE_COMPONENTS = ["Monetization Score", "Engagement Score", "Satisfaction Score"]
CLUSTER_FEATURES = ["Avg. Repeat Ratio", "Avg. Total Moves", "RM Total", "Avg. Level Play Time"]

LEVEL_SCORE_COLUMNS = [
    "Level", "Concept", "Level Score", *SCORE_COMPONENTS,
    "FinalCluster", "Cluster", "Calculated Score", *CLUSTER_FEATURES,
]


# ---------------------------------------------------------------------------
# Score arithmetic
# ---------------------------------------------------------------------------

def concept_for_level(level: int) -> int:
    """Concept group of a level (1 for levels 1-10, 49 above level 3000)."""
    return bisect_left(CONCEPT_UPPER_BOUNDS, level) + 1


def weights_for_cluster(
    cluster: str | None,
    multipliers: Mapping[str, ScoreWeights] | None = None,
) -> ScoreWeights:
    multipliers = multipliers or DEFAULT_SCORE_MULTIPLIERS
    key = str(cluster).strip() if cluster else ""
    return multipliers.get(key) or multipliers["default"]


def calculate_score(
    monetization: float,
    engagement: float,
    satisfaction: float,
    weights: ScoreWeights,
) -> float:
    return (
        monetization * weights.monetization
        + engagement * weights.engagement
        + satisfaction * weights.satisfaction
    )


def _zero(value: float | None) -> float:
    return 0.0 if value is None else value


# ---------------------------------------------------------------------------
# Level score table
# ---------------------------------------------------------------------------

def level_score_table(
    df: pd.DataFrame,
    multipliers: Mapping[str, ScoreWeights] | None = None,
    saved_clusters: Mapping[int, str] | None = None,
) -> pd.DataFrame:
    """One row per level with its calculated score.

    Parameters
    ----------
    df : Wide export (one row per level; later rows for a level are ignored).
    multipliers : Cluster label -> weights. Defaults to DEFAULT_SCORE_MULTIPLIERS.
    saved_clusters : Level -> cluster saved earlier; overrides FinalCluster.

    Returns
    -------
    DataFrame with LEVEL_SCORE_COLUMNS, sorted by level. Levels below 1 are
    dropped. Missing score components and clustering inputs count as 0.
    """
    saved_clusters = saved_clusters or {}
    rows: dict[int, dict] = {}
    for record in df.to_dict("records"):
        level = level_value(record)
        if level is None or level < 1 or level in rows:
            continue
        final_cluster = metric_text(record, "Final Cluster", *META_COLUMNS["FinalCluster"])
        row = {
            "Level": level,
            "Concept": concept_for_level(level),
            "Level Score": _zero(metric_value(record, "Level Score")),
            "FinalCluster": final_cluster,
            "Cluster": saved_clusters.get(level) or final_cluster,
        }
        for col in [*SCORE_COMPONENTS, *CLUSTER_FEATURES]:
            row[col] = _zero(metric_value(record, col))
        rows[level] = row

    table = pd.DataFrame(list(rows.values()), columns=LEVEL_SCORE_COLUMNS)
    table = rescore(table, multipliers)
    table = table.sort_values("Level", kind="stable").reset_index(drop=True)
    logger.info("Built level score table with %d levels", len(table))
    return table


def rescore(
    table: pd.DataFrame,
    multipliers: Mapping[str, ScoreWeights] | None = None,
) -> pd.DataFrame:
    """Recompute Calculated Score from each row's current Cluster."""
    table = table.copy()
    table["Calculated Score"] = [
        calculate_score(
            row["Monetization Score"], row["Engagement Score"], row["Satisfaction Score"],
            weights_for_cluster(row["Cluster"], multipliers),
        )
        for row in table.to_dict("records")
    ]
    return table


def level_score_records(table: pd.DataFrame) -> list[dict]:
    """Level, score and cluster of every row, in the shape kept in storage."""
    return [
        {
            "level": int(row["Level"]),
            "score": float(row["Calculated Score"]),
            "cluster": row["Cluster"] or row["FinalCluster"] or None,
        }
        for row in table.to_dict("records")
    ]


# ---------------------------------------------------------------------------
# Cluster renewal
# ---------------------------------------------------------------------------

def cluster_features(group: pd.DataFrame) -> np.ndarray:
    """log1p of repeat ratio, remaining-moves share and play time, one row per level."""
    moves = group["Avg. Total Moves"].to_numpy(dtype=float)
    remaining = group["RM Total"].to_numpy(dtype=float)
    rm_share = np.divide(remaining, moves, out=np.zeros_like(moves), where=moves > 0)
    raw = np.column_stack([
        group["Avg. Repeat Ratio"].to_numpy(dtype=float),
        rm_share,
        group["Avg. Level Play Time"].to_numpy(dtype=float),
    ])
    return np.log1p(np.clip(raw, 0, None))


def rank_clusters(features: np.ndarray, labels: np.ndarray) -> dict[int, str]:
    """Map k-means labels to "1".."k" by mean log repeat ratio, lowest first."""
    means = [(features[labels == label, 0].mean(), label) for label in np.unique(labels)]
    means.sort()
    return {int(label): str(rank) for rank, (_, label) in enumerate(means, start=1)}


def renew_clusters(
    table: pd.DataFrame,
    min_level: int,
    max_level: int | None = None,
    multipliers: Mapping[str, ScoreWeights] | None = None,
    random_state: int = 42,
) -> tuple[pd.DataFrame, int]:
    """Re-cluster the levels in [min_level, max_level] per concept group.

    Concept groups with fewer than MIN_CLUSTER_LEVELS levels keep their
    clusters. Calculated Score follows the new clusters.

    Returns
    -------
    (updated table, number of levels that got a renewed cluster)

    Raises
    ------
    ValueError
        When min_level is below 1 or the range holds fewer than
        MIN_CLUSTER_LEVELS levels.
    """
    if min_level < 1:
        raise ValueError("Minimum level must be at least 1")
    in_range = table["Level"] >= min_level
    if max_level is not None:
        in_range &= table["Level"] <= max_level
    if in_range.sum() < MIN_CLUSTER_LEVELS:
        raise ValueError(
            f"Not enough levels in range to cluster (need at least {MIN_CLUSTER_LEVELS})"
        )

    table = table.copy()
    updated = 0
    for concept, group in table[in_range].groupby("Concept", sort=True):
        if len(group) < MIN_CLUSTER_LEVELS:
            logger.warning("Concept %d has %d levels; keeping its clusters", concept, len(group))
            continue
        features = cluster_features(group)
        k = min(CLUSTER_COUNT, len(group))
        labels = KMeans(n_clusters=k, n_init=10, random_state=random_state).fit_predict(features)
        ranks = rank_clusters(features, labels)
        table.loc[group.index, "Cluster"] = [ranks[int(label)] for label in labels]
        updated += len(group)

    logger.info("Renewed clusters for %d levels in %s-%s", updated, min_level, max_level or "end")
    return rescore(table, multipliers), updated
