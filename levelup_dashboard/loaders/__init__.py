"""Collaborator adapters: CSV helpers, BI server client, object storage, system config, saved results."""

from .utils import read_csv_text, to_csv_text, safe_float, parse_level, slugify_filename
from .storage import ObjectStore, StorageError
from .system_config import load_system_config, get_report_settings, get_weekly_check_settings
from .system_config import find_game_by_id, get_score_multipliers
from .tableau import ExportError, TableauSession, authenticate, fetch_view_csv
from .tableau import find_view_by_content_url
from .saved_results import load_level_scores, save_level_scores, saved_clusters
from .saved_results import get_weekly_report, list_weekly_reports, save_weekly_report

__all__ = [
    "read_csv_text",
    "to_csv_text",
    "safe_float",
    "parse_level",
    "slugify_filename",
    "ObjectStore",
    "StorageError",
    "load_system_config",
    "get_report_settings",
    "get_weekly_check_settings",
    "find_game_by_id",
    "get_score_multipliers",
    "ExportError",
    "TableauSession",
    "authenticate",
    "fetch_view_csv",
    "find_view_by_content_url",
    "load_level_scores",
    "save_level_scores",
    "saved_clusters",
    "get_weekly_report",
    "list_weekly_reports",
    "save_weekly_report",
]
