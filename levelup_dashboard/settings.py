"""
Report settings: typed, read-only configuration per report type.

Settings arrive as part of the system config JSON document (camelCase keys,
see loaders.system_config). report_settings_from_dict() merges whatever the
document provides over DEFAULT_REPORT_SETTINGS, so every field is always
present. The pipeline only reads settings; it never changes them.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Any

from .config import DEFAULT_HEADER_COLOR, DIFF_THRESHOLDS

logger = logging.getLogger(__name__)

SORT_ORDERS = ("asc", "desc")
FILTER_OPERATORS = ("gt", "lt", "gte", "lte", "eq")


@dataclass(frozen=True)
class SheetSortConfig:
    sort_column: str
    sort_order: str = "asc"
    filter_column: str | None = None
    filter_threshold: float | None = None
    filter_operator: str = "gt"

    @property
    def descending(self) -> bool:
        return self.sort_order == "desc"


@dataclass(frozen=True)
class ReportTypeSettings:
    header_color: str = DEFAULT_HEADER_COLOR
    min_total_user: int = 0
    sheets: dict[str, SheetSortConfig] = field(default_factory=dict)
    column_order: tuple[str, ...] = ()
    column_renames: dict[str, str] = field(default_factory=dict)
    hidden_columns: tuple[str, ...] = ()

    def sheet(self, name: str, default_order: str = "asc") -> SheetSortConfig:
        """Sheet config by key; falls back to a bare config in default_order."""
        config = self.sheets.get(name)
        if config is None:
            return SheetSortConfig(sort_column="", sort_order=default_order)
        return config


@dataclass(frozen=True)
class ReportSettings:
    level_score_ab: ReportTypeSettings
    regional: ReportTypeSettings
    three_day_churn: ReportTypeSettings


@dataclass(frozen=True)
class WeeklyCheckSettings:
    """Filters for the weekly check tables (unsuccessful / successful / last 30)."""

    min_total_user: int = 50
    min_level: int = 0
    min_days_since_event: int = 0
    clusters: tuple[str, ...] = ()
    success_min_total_user: int = 50
    success_min_level: int = 0
    success_min_days_since_event: int = 0
    success_clusters: tuple[str, ...] = ()
    min_total_user_last30: int = 50
    column_order: tuple[str, ...] = ()
    column_renames: dict[str, str] = field(default_factory=dict)
    hidden_columns: tuple[str, ...] = ()


@dataclass(frozen=True)
class ScoreWeights:
    """Per-cluster weights of the three score components."""

    monetization: float
    engagement: float
    satisfaction: float


# Cluster label -> weights; "default" covers labels outside 1-4
DEFAULT_SCORE_MULTIPLIERS: dict[str, ScoreWeights] = {
    "1": ScoreWeights(0.20, 0.20, 0.60),
    "2": ScoreWeights(0.25, 0.25, 0.50),
    "3": ScoreWeights(0.30, 0.35, 0.35),
    "4": ScoreWeights(0.35, 0.35, 0.30),
    "default": ScoreWeights(0.30, 0.30, 0.40),
}


DEFAULT_REPORT_SETTINGS = ReportSettings(
    level_score_ab=ReportTypeSettings(
        sheets={
            "rawData": SheetSortConfig("Level", "asc"),
            "levelScoreAB": SheetSortConfig("Level", "asc"),
            "levelScore": SheetSortConfig(
                "Level Score Diff", "desc",
                filter_column="Level Score Diff",
                filter_threshold=DIFF_THRESHOLDS["Level Score Diff"],
            ),
            "instantChurn": SheetSortConfig(
                "Instant Churn Diff", "desc",
                filter_column="Instant Churn Diff",
                filter_threshold=DIFF_THRESHOLDS["Instant Churn Diff"],
            ),
            "threeDayChurn": SheetSortConfig(
                "3 Days Churn Diff", "desc",
                filter_column="3 Days Churn Diff",
                filter_threshold=DIFF_THRESHOLDS["3 Days Churn Diff"],
            ),
            "time": SheetSortConfig("Avg. Level Play Time Diff", "desc"),
            "levelScoreB": SheetSortConfig("Level", "asc"),
            "topSuccessful": SheetSortConfig("Level Score", "desc"),
            "bottomUnsuccess": SheetSortConfig("Level Score", "asc"),
        },
    ),
    regional=ReportTypeSettings(
        sheets={
            "rawData": SheetSortConfig("Level", "asc"),
            "bolgeselRapor": SheetSortConfig("Range Start", "asc"),
        },
    ),
    three_day_churn=ReportTypeSettings(
        sheets={
            "rawData": SheetSortConfig("Level", "asc"),
            "levelScoreUnsuccess": SheetSortConfig("Score", "asc"),
            "levelScoreSuccess": SheetSortConfig("Score", "desc"),
            "churnUnsuccess": SheetSortConfig("3 Days Churn", "asc"),
            "churnSuccess": SheetSortConfig("3 Days Churn", "desc"),
        },
    ),
)

# JSON document key -> ReportSettings attribute
_REPORT_TYPE_KEYS = {
    "levelScoreAB": "level_score_ab",
    "bolgeselRevize": "regional",
    "threeDayChurn": "three_day_churn",
}


def report_settings_from_dict(data: dict[str, Any] | None) -> ReportSettings:
    """Merge a reportSettings JSON object over the defaults.

    Unknown keys are ignored. Invalid sort orders or filter operators keep
    the default value and log a warning.
    """
    if not data:
        return DEFAULT_REPORT_SETTINGS

    merged = {}
    for json_key, attr in _REPORT_TYPE_KEYS.items():
        base: ReportTypeSettings = getattr(DEFAULT_REPORT_SETTINGS, attr)
        merged[attr] = _merge_report_type(base, data.get(json_key) or {})
    return ReportSettings(**merged)


def weekly_check_settings_from_dict(data: dict[str, Any] | None) -> WeeklyCheckSettings:
    """Build WeeklyCheckSettings from the weeklyCheck JSON object."""
    data = data or {}
    defaults = WeeklyCheckSettings()
    min_users = int(data.get("minTotalUser", defaults.min_total_user))
    success_cluster = data.get("successFinalCluster")
    return WeeklyCheckSettings(
        min_total_user=min_users,
        min_level=int(data.get("minLevel", defaults.min_level)),
        min_days_since_event=int(data.get("minDaysSinceEvent", defaults.min_days_since_event)),
        clusters=tuple(data.get("finalClusters", ())),
        success_min_total_user=int(data.get("successMinTotalUser", min_users)),
        success_min_level=int(data.get("successMinLevel", defaults.success_min_level)),
        success_min_days_since_event=int(
            data.get("successMinDaysSinceEvent", defaults.success_min_days_since_event)
        ),
        success_clusters=(success_cluster,) if success_cluster else (),
        min_total_user_last30=int(data.get("minTotalUserLast30", defaults.min_total_user_last30)),
        column_order=tuple(data.get("columnOrder", ())),
        column_renames=dict(data.get("columnRenames", {})),
        hidden_columns=tuple(data.get("hiddenColumns", ())),
    )


def _merge_report_type(base: ReportTypeSettings, data: dict[str, Any]) -> ReportTypeSettings:
    sheets = dict(base.sheets)
    for name, raw_sheet in (data.get("sheets") or {}).items():
        sheets[name] = _merge_sheet(sheets.get(name), raw_sheet or {}, name)

    min_users = data.get("minTotalUser", base.min_total_user)
    return replace(
        base,
        header_color=str(data.get("headerColor", base.header_color)).lstrip("#").upper(),
        min_total_user=int(min_users or 0),
        sheets=sheets,
        column_order=tuple(data.get("columnOrder", base.column_order)),
        column_renames=dict(data.get("columnRenames", base.column_renames)),
        hidden_columns=tuple(data.get("hiddenColumns", base.hidden_columns)),
    )


def _merge_sheet(base: SheetSortConfig | None, data: dict[str, Any], name: str) -> SheetSortConfig:
    if base is None:
        base = SheetSortConfig(sort_column=data.get("sortColumn", ""))

    sort_order = data.get("sortOrder", base.sort_order)
    if sort_order not in SORT_ORDERS:
        logger.warning("Sheet '%s': ignoring sort order %r", name, sort_order)
        sort_order = base.sort_order

    operator = data.get("filterOperator", base.filter_operator)
    if operator not in FILTER_OPERATORS:
        logger.warning("Sheet '%s': ignoring filter operator %r", name, operator)
        operator = base.filter_operator

    threshold = data.get("filterThreshold", base.filter_threshold)
    return replace(
        base,
        sort_column=data.get("sortColumn", base.sort_column),
        sort_order=sort_order,
        filter_column=data.get("filterColumn", base.filter_column),
        filter_threshold=float(threshold) if threshold is not None else None,
        filter_operator=operator,
    )


def score_multipliers_from_dict(data: dict[str, Any] | None) -> dict[str, ScoreWeights]:
    """Merge a game's scoreMultipliers object ('cluster1'..'cluster4', 'default') over the defaults."""
    multipliers = dict(DEFAULT_SCORE_MULTIPLIERS)
    for json_key, raw in (data or {}).items():
        label = json_key.removeprefix("cluster")
        if label not in multipliers or not isinstance(raw, dict):
            logger.warning("Ignoring score multipliers for %r", json_key)
            continue
        base = multipliers[label]
        multipliers[label] = ScoreWeights(
            monetization=float(raw.get("monetization", base.monetization)),
            engagement=float(raw.get("engagement", base.engagement)),
            satisfaction=float(raw.get("satisfaction", base.satisfaction)),
        )
    return multipliers
