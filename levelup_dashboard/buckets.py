"""
Level-range bucketing for the regional report.

Ranges follow config.LEVEL_STEP_SCHEDULE: narrow windows at low levels,
wider ones further in. The last range always ends exactly at the highest
level seen, so every level in [1, max_level] falls into exactly one bucket.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

import pandas as pd

from .columns import find_column, metric_value
from .config import BUCKET_PLACEHOLDER_COLUMNS, LEVEL_COLUMNS, LEVEL_STEP_SCHEDULE
from .loaders.utils import parse_level

logger = logging.getLogger(__name__)


@dataclass
class Bucket:
    """Accumulator for one [start, end] level range."""

    start: int
    end: int
    row_count: int = 0
    total_users: float = 0.0
    sums: dict[str, float] = field(default_factory=dict)
    counts: dict[str, int] = field(default_factory=dict)

    @property
    def key(self) -> str:
        return f"{self.start}-{self.end}"

    def contains(self, level: int) -> bool:
        return self.start <= level <= self.end

    def add(self, users: float | None, metrics: dict[str, float | None]) -> None:
        self.row_count += 1
        self.total_users += users if users is not None else 0.0
        for name, value in metrics.items():
            if value is None:
                continue
            self.sums[name] = self.sums.get(name, 0.0) + value
            self.counts[name] = self.counts.get(name, 0) + 1

    def average(self, metric: str) -> float:
        count = self.counts.get(metric, 0)
        if count == 0:
            return 0
        return self.sums[metric] / count


def make_ranges(max_level: int) -> list[tuple[int, int]]:
    """Build contiguous level ranges covering [1, max_level].

    >>> make_ranges(95)
    [(1, 10), (11, 30), (31, 50), (51, 70), (71, 90), (91, 95)]
    """
    ranges: list[list[int]] = []
    if max_level < 1:
        return []

    for seg_start, seg_end, step in LEVEL_STEP_SCHEDULE:
        if seg_start > max_level:
            break
        upper = max_level if seg_end is None else min(seg_end, max_level)
        for start in range(seg_start, upper + 1, step):
            ranges.append([start, min(start + step - 1, upper)])

    if ranges and ranges[-1][1] < max_level:
        ranges[-1][1] = max_level

    return [(start, end) for start, end in ranges]


def find_bucket(buckets: list[Bucket], level: int) -> Bucket | None:
    """Linear scan; ranges never overlap so the first hit is the only one."""
    for bucket in buckets:
        if bucket.contains(level):
            return bucket
    return None


def bucketize(
    rows: pd.DataFrame | Iterable[dict],
    level_key: str,
    user_key: str,
    metric_keys: list[str],
) -> pd.DataFrame:
    """Aggregate rows into level-range buckets.

    Parameters
    ----------
    rows : Wide-format table (DataFrame or iterable of row mappings).
    level_key : Level column name ("Level"; "LevelID" etc. also accepted).
    user_key : Logical metric holding the user count ("TotalUser").
    metric_keys : Logical metrics to average per bucket.

    Returns
    -------
    DataFrame with columns:
        Range Start, Range End, Row Count, Total Users, <metric>...,
        followed by empty placeholder columns for manual annotation.
        Rows without a numeric level are excluded from every bucket.
        Metric averages skip rows where that metric is missing.
    """
    records = rows.to_dict("records") if isinstance(rows, pd.DataFrame) else list(rows)

    parsed = []
    for record in records:
        level = _row_level(record, level_key)
        if level is None:
            continue
        users = metric_value(record, user_key)
        metrics = {m: metric_value(record, m) for m in metric_keys}
        parsed.append((level, users, metrics))

    columns = (
        ["Range Start", "Range End", "Row Count", "Total Users"]
        + list(metric_keys)
        + BUCKET_PLACEHOLDER_COLUMNS
    )
    if not parsed:
        logger.warning("No rows with a numeric level; bucket table is empty")
        return pd.DataFrame(columns=columns)

    max_level = max(level for level, _, _ in parsed)
    buckets = [Bucket(start, end) for start, end in make_ranges(max_level)]

    for level, users, metrics in parsed:
        bucket = find_bucket(buckets, level)
        if bucket is None:
            continue
        bucket.add(users, metrics)

    output = []
    for bucket in buckets:
        row = {
            "Range Start": bucket.start,
            "Range End": bucket.end,
            "Row Count": bucket.row_count,
            "Total Users": bucket.total_users,
        }
        for metric in metric_keys:
            row[metric] = bucket.average(metric)
        for col in BUCKET_PLACEHOLDER_COLUMNS:
            row[col] = ""
        output.append(row)

    result = pd.DataFrame(output, columns=columns)
    logger.info("Built level-range buckets with %d rows", len(result))
    return result


def _row_level(record: dict, level_key: str) -> int | None:
    key = find_column(record.keys(), level_key, *LEVEL_COLUMNS)
    if key is None:
        return None
    return parse_level(record[key])
