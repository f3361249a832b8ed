"""
Column resolution for exports with inconsistent header spellings.

The same metric arrives as "3 Days Churn", "3 Day Churn (%)" or
"3daychurn" depending on the game and the view it was exported from.
resolve() finds a value under any of those spellings; metric_value()
does the same through the alias table in config.METRIC_ALIASES.
"""

import re
from collections.abc import Iterable, Mapping
from typing import Any

from .config import LEVEL_COLUMNS, METRIC_ALIASES, METRIC_SYNONYMS
from .loaders.utils import is_blank, parse_level, safe_float

_NON_ALNUM = re.compile(r"[^0-9a-z]+")


def normalize_key(name: Any) -> str:
    """Lowercase and drop everything that is not a letter or a digit."""
    return _NON_ALNUM.sub("", str(name).lower())


def resolve(row: Mapping, *candidates: str, bidirectional: bool = True) -> Any | None:
    """Return the first non-empty value stored under any candidate name.

    Matching runs in three passes and stops at the first hit:
    exact key, case-insensitive key, then normalized containment. The
    containment pass first looks for a key that contains a candidate and,
    when ``bidirectional`` is set, then for a candidate that contains a key.
    Empty values never count as a match. Never raises.
    """
    keys = list(row.keys())

    for cand in candidates:
        if cand in row and not is_blank(row[cand]):
            return row[cand]

    for cand in candidates:
        lowered = str(cand).lower()
        for key in keys:
            if str(key).lower() == lowered and not is_blank(row[key]):
                return row[key]

    normalized = [(key, normalize_key(key)) for key in keys]
    for cand in candidates:
        norm_cand = normalize_key(cand)
        if not norm_cand:
            continue
        for key, norm_key in normalized:
            if norm_key and norm_cand in norm_key and not is_blank(row[key]):
                return row[key]

    if bidirectional:
        for cand in candidates:
            norm_cand = normalize_key(cand)
            for key, norm_key in normalized:
                if norm_key and norm_key in norm_cand and not is_blank(row[key]):
                    return row[key]

    return None


def metric_aliases(metric: str) -> list[str]:
    """Ordered lookup names for a logical metric: itself, then its aliases."""
    canonical = METRIC_SYNONYMS.get(metric, metric)
    names = [metric]
    if canonical != metric:
        names.append(canonical)
    names.extend(METRIC_ALIASES.get(canonical, []))
    return names


def metric_value(row: Mapping, metric: str) -> float | None:
    """Numeric value of a logical metric in a row, or None when absent.

    Only forward containment is used so that a bare "Level" header never
    stands in for "Level Score".
    """
    raw = resolve(row, *metric_aliases(metric), bidirectional=False)
    return safe_float(raw)


def metric_text(row: Mapping, *candidates: str) -> str:
    """String value under the first matching candidate, "" when absent."""
    raw = resolve(row, *candidates, bidirectional=False)
    return "" if raw is None else str(raw).strip()


def level_value(row: Mapping) -> int | None:
    """Level number of a row, None when there is no parseable level."""
    key = find_column(row.keys(), *LEVEL_COLUMNS)
    if key is None:
        return None
    return parse_level(row[key])


def find_column(columns: Iterable[str], *candidates: str) -> str | None:
    """Pick the header that best matches one of the candidates.

    Same passes as resolve(), applied to header names only.
    """
    columns = [str(c) for c in columns]
    for cand in candidates:
        if cand in columns:
            return cand
    for cand in candidates:
        for col in columns:
            if col.lower() == cand.lower():
                return col
    for cand in candidates:
        norm_cand = normalize_key(cand)
        for col in columns:
            if normalize_key(col) == norm_cand:
                return col
    return None
