"""
Configuration: metric alias table, report column lists, collaborator settings.

METRIC_ALIASES maps each logical metric name to the header spellings it
arrives under in BI exports. Spellings differ per game and per view, so
every metric lookup goes through this table instead of a fixed header.
"""

import os
from pathlib import Path

# ---------------------------------------------------------------------------
# File paths
# ---------------------------------------------------------------------------
PROJECT_DIR = Path(__file__).resolve().parent.parent

LOCAL_CONFIG_PATH = PROJECT_DIR / "config" / "dashboard-data.json"
REMOTE_CONFIG_KEY = "system/dashboard-config.json"

# ---------------------------------------------------------------------------
# Collaborators: BI server, object storage and chat webhook
# ---------------------------------------------------------------------------
TABLEAU_SERVER_URL = os.environ.get("TABLEAU_SERVER_URL", "")
TABLEAU_SITE_ID = os.environ.get("TABLEAU_SITE_ID", "")
TABLEAU_API_VERSION = os.environ.get("TABLEAU_API_VERSION", "3.22")
TABLEAU_PAT_NAME = os.environ.get("TABLEAU_PAT_NAME", "")
TABLEAU_PAT_SECRET = os.environ.get("TABLEAU_PAT_SECRET", "")
MOCK_TABLEAU = os.environ.get("MOCK_TABLEAU", "").lower() == "true"

# View listing is paged; 10 pages of 500 covers every site we have seen
VIEW_PAGE_SIZE = 500
VIEW_MAX_PAGES = 10

# Filter field used by the BI server for date ranges
DATE_FILTER_FIELD = "vf_Time Event"

STORAGE_BUCKET = os.environ.get("STORAGE_BUCKET", "data-repository")
STORAGE_REGION = os.environ.get("AWS_DEFAULT_REGION", "eu-central-1")

DISCORD_API_BASE = os.environ.get("DISCORD_API_BASE", "https://discord.com/api/v10")

HTTP_TIMEOUT = 60

# ---------------------------------------------------------------------------
# Metric alias table
# ---------------------------------------------------------------------------
# Aliases are compared after stripping non-alphanumerics and lowercasing,
# in list order. First alias that matches a header wins.
METRIC_ALIASES: dict[str, list[str]] = {
    "Level Score": ["level score along", "level score", "levelscore"],
    "Score": ["score"],
    "TotalUser": ["totaluser", "total user", "user count", "users"],
    "Instant Churn": ["instant churn", "0 day churn", "churn instant"],
    "3 Days Churn": [
        "3 days churn", "3 day churn", "d3 churn", "churn 3 days", "churn 3 day",
    ],
    "7 Days Churn": [
        "7 days churn", "7 day churn", "d7 churn", "churn 7 days", "churn 7 day",
        "1 week churn", "week churn",
    ],
    "Avg. Repeat Ratio": [
        "avg. repeat ratio (birleşik)", "avg. repeat ratio", "avg. repeat rate",
        "repeat ratio", "repeat rate",
    ],
    "Avg. FirstTryWin": [
        "avg. firsttrywinpercent", "avg. firsttrywin", "firsttrywin", "first try win",
    ],
    "Avg. Level Play Time": [
        "level play time fixed", "avg. level play time", "level play time", "level play",
    ],
    "Playon per User": ["playon per user"],
    "PlayOnWinRatio": ["playonwinratio", "playon win ratio"],
    "RM Total": ["rm total", "rm fixed", "remaining move"],
    "Avg. Total Moves": ["avg. total moves", "total moves", "total move"],
    "Inapp Value": ["inapp value", "in app value"],
    "Playon Sink per User": ["playon sink per user"],
}

# Header spellings that mean the same logical metric
METRIC_SYNONYMS: dict[str, str] = {
    "Avg. Repeat Rate": "Avg. Repeat Ratio",
    "Avg. FirstTryWinPercent": "Avg. FirstTryWin",
    "Level Play Time": "Avg. Level Play Time",
    "Avg. Level Play": "Avg. Level Play Time",
    "RM Fixed": "RM Total",
    "Avg. RM Fixed": "RM Total",
    "Total User": "TotalUser",
}

# Level key spellings, matched on the whole header only
LEVEL_COLUMNS = ["Level", "LevelID", "Level Number", "level_number"]

# ---------------------------------------------------------------------------
# Report column sets
# ---------------------------------------------------------------------------
# Metrics carried per arm when an A/B export is pivoted to wide format
AB_PIVOT_METRICS = [
    "Level Score", "TotalUser", "Instant Churn", "3 Days Churn", "7 Days Churn",
    "Avg. FirstTryWin", "Avg. Repeat Rate", "Playon per User",
    "Avg. Level Play Time", "PlayOnWinRatio", "RM Total", "Avg. Total Moves",
    "Inapp Value", "Playon Sink per User",
]

# Metrics that get a "<metric> Diff" column in the A/B comparison
AB_DIFF_METRICS = [
    "Level Score", "TotalUser", "Instant Churn", "3 Days Churn", "Avg. Level Play Time",
]

# Metrics averaged per level range in the regional report
REGIONAL_METRICS = [
    "Instant Churn", "3 Days Churn", "7 Days Churn", "Avg. FirstTryWin",
    "Avg. Repeat Ratio", "Avg. Level Play Time", "Playon per User", "RM Total",
    "Avg. Total Moves", "Inapp Value",
]

# Columns of the per-level table used by the churn and regional workbooks
LEVEL_TABLE_COLUMNS = [
    "Level Score", "TotalUser", "Instant Churn", "3 Days Churn", "7 Days Churn",
    "Avg. FirstTryWin", "Avg. Repeat Ratio", "Avg. Level Play Time",
    "Playon per User", "PlayOnWinRatio", "RM Total", "Avg. Total Moves", "Inapp Value",
]

# Columns carried over unchanged from an export (not numeric metrics)
META_COLUMNS = {
    "FinalCluster": ["FinalCluster", "FinalClusters", "Cluster"],
    "RevisionNumber": ["RevisionNumber", "Revision"],
}

# Empty columns the team fills in by hand after export
ANNOTATION_COLUMN = "Müdahale Yapılanlar"
BUCKET_PLACEHOLDER_COLUMNS = ["DS Harden", "DS Soften", "Yapılacak", "Sıkıntısı"]
INTERVENTION_LIST_COLUMNS = ["Level", "Müdahale Açıklaması", "Öncelik", "Durum"]
ACTION_PLAN_COLUMNS = ["Level", "Yapılacak İşlem", "Sorumlu", "Tarih", "Durum"]

# ---------------------------------------------------------------------------
# Level-range step schedule (start, end, step). end=None runs to max level.
# ---------------------------------------------------------------------------
LEVEL_STEP_SCHEDULE: list[tuple[int, int | None, int]] = [
    (1, 10, 10),
    (11, 90, 20),
    (91, 150, 30),
    (151, 1000, 50),
    (1001, 2000, 100),
    (2001, None, 200),
]

# ---------------------------------------------------------------------------
# A/B significance thresholds on abs(diff)
# ---------------------------------------------------------------------------
DIFF_THRESHOLDS: dict[str, float] = {
    "Level Score Diff": 2.0,
    "Instant Churn Diff": 0.01,
    "3 Days Churn Diff": 0.01,
}

VARIANT_B_SUCCESS_SCORE = 50
VARIANT_B_TOP_N = 100

# ---------------------------------------------------------------------------
# Level score clustering
# ---------------------------------------------------------------------------
# Upper level bound of each concept group; levels above the last bound
# form the final group
CONCEPT_UPPER_BOUNDS: list[int] = [
    10, 20, *range(40, 201, 20), 230, 260, 300,
    *range(350, 1001, 50), *range(1100, 3001, 100),
]

CLUSTER_COUNT = 4
# Concept groups with fewer levels keep their clusters
MIN_CLUSTER_LEVELS = 4

# ---------------------------------------------------------------------------
# Multi-game comparison
# ---------------------------------------------------------------------------
COMPARISON_METRICS = [
    "Instant Churn", "3 Days Churn", "7 Days Churn", "Inapp Value",
    "Playon per User", "Avg. Repeat Ratio", "Avg. FirstTryWin", "Avg. Level Play Time",
]
COMPARISON_LEVEL_WINDOW = (1, 100)

# ---------------------------------------------------------------------------
# Display formatting
# ---------------------------------------------------------------------------
# Substring matches, case-insensitive
PERCENTAGE_COLUMNS = [
    "Churn",
    "FirstTryWin",
    "Repeat Rate",
    "Complete Ratio",
    "PlayOnWinRatio",
    "Inapp User",
]

DATE_COLUMNS = [
    "Time Event",
    "Min. Time Event",
    "Min Time Event",
    "Date",
    "Event Date",
    "Created",
    "Updated",
]

DEFAULT_HEADER_COLOR = "FFFF00"
WORKBOOK_CREATOR = "LevelUp Dashboard"

# Export file naming in object storage
LEVEL_REVISION_TAG = "level revize"

# Saved results in object storage
LEVEL_SCORES_PREFIX = "level-scores/"
WEEKLY_REPORTS_PREFIX = "weekly-reports/"
