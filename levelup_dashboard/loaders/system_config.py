"""
System config document: games, export variables, view mappings, report
and weekly-check settings.

Lookup order: object storage, then the local default file, then an empty
document. A broken or missing source is logged and skipped.
"""

import json
import logging
from pathlib import Path
from typing import Any

from ..config import LOCAL_CONFIG_PATH, REMOTE_CONFIG_KEY
from ..settings import (
    ReportSettings,
    ScoreWeights,
    WeeklyCheckSettings,
    report_settings_from_dict,
    score_multipliers_from_dict,
    weekly_check_settings_from_dict,
)
from .storage import ObjectStore, StorageError

logger = logging.getLogger(__name__)


def empty_config() -> dict[str, Any]:
    return {"variables": [], "games": []}


def read_local_config(path: Path = LOCAL_CONFIG_PATH) -> dict[str, Any]:
    """Local default document, or an empty one when the file is absent."""
    path = Path(path)
    if not path.exists():
        logger.info("No local config at %s", path)
        return empty_config()
    with path.open(encoding="utf-8") as fh:
        return json.load(fh)


def load_system_config(
    store: ObjectStore | None = None,
    path: Path = LOCAL_CONFIG_PATH,
) -> dict[str, Any]:
    """Read the system config document.

    Parameters
    ----------
    store : Object store holding the shared document. When None, only the
        local file is consulted.
    path : Local default document.

    Returns
    -------
    Parsed JSON dict; always has 'variables' and 'games' keys.
    """
    document = None
    if store is not None:
        try:
            document = json.loads(store.download_text(REMOTE_CONFIG_KEY))
            logger.info("Loaded system config from storage")
        except StorageError as exc:
            logger.warning("System config not available in storage: %s", exc)
        except json.JSONDecodeError as exc:
            logger.error("System config in storage is not valid JSON: %s", exc)

    if document is None:
        try:
            document = read_local_config(path)
        except (OSError, json.JSONDecodeError) as exc:
            logger.error("Local config %s unreadable: %s", path, exc)
            document = empty_config()

    document.setdefault("variables", [])
    document.setdefault("games", [])
    return document


def get_report_settings(system_config: dict[str, Any]) -> ReportSettings:
    return report_settings_from_dict(system_config.get("reportSettings"))


def get_weekly_check_settings(system_config: dict[str, Any]) -> WeeklyCheckSettings:
    return weekly_check_settings_from_dict(system_config.get("weeklyCheck"))


def find_game_by_id(system_config: dict[str, Any], game_id: str) -> dict[str, Any] | None:
    return next((g for g in system_config.get("games") or [] if g.get("id") == game_id), None)


def get_score_multipliers(system_config: dict[str, Any], game_id: str) -> dict[str, ScoreWeights]:
    """Cluster weights for a game; defaults when the game or its multipliers are absent."""
    game = find_game_by_id(system_config, game_id) or {}
    return score_multipliers_from_dict(game.get("scoreMultipliers"))


def save_system_config(store: ObjectStore, system_config: dict[str, Any]) -> None:
    """Write the document back to storage, replacing the previous one."""
    text = json.dumps(system_config, ensure_ascii=False, indent=2)
    store.upload(REMOTE_CONFIG_KEY, text, content_type="application/json", overwrite=True)
