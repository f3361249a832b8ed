"""
Chat-bot level context: the "/level <n> [game]" command.

Finds the newest level revision export for a game, cuts out the levels
around the requested one and replies with a monospace table through the
chat webhook.
"""

import logging
from collections.abc import Mapping
from typing import Any

import pandas as pd
import requests

from . import config
from .columns import level_value, resolve
from .loaders.saved_results import saved_clusters
from .loaders.storage import ObjectStore, StorageError
from .loaders.system_config import load_system_config
from .loaders.utils import read_csv_text, safe_float

logger = logging.getLogger(__name__)

CONTEXT_RADIUS = 5
DISCORD_MESSAGE_LIMIT = 2000

# Column title, lookup names, width, kind
_CONTEXT_COLUMNS = [
    ("Churn", ("3daychurn", "3dayschurn", "churn"), 7, "percent"),
    ("Rep", ("repeat", "repeatratio", "avgrepeat"), 5, "2f"),
    ("Playon", ("playonperuser", "playon"), 7, "2f"),
    ("Moves", ("totalmove", "avgtotalmoves", "moves"), 6, "1f"),
    ("Time", ("levelplaytime", "playtime", "avglevelplay"), 7, "1f"),
    ("1stWin", ("firsttrywin", "avgfirsttrywin", "win"), 7, "percent"),
    ("Rem", ("remainingmove", "rmtotal", "avgrm", "rem"), 5, "1f"),
]
_CLUSTER_NAMES = ("finalcluster", "cluster", "clu")
_CLUSTER_WIDTH = 4
_LEVEL_WIDTH = 6


def find_game(system_config: Mapping, name: str | None) -> dict | None:
    """Game whose id, name or one of its aliases equals name (case-insensitive)."""
    if not name:
        return None
    term = name.strip().lower()
    for game in system_config.get("games") or []:
        candidates = [game.get("id", ""), game.get("name", ""), *(game.get("aliases") or [])]
        if any(str(c).lower() == term for c in candidates):
            return game
    return None


def level_context(df: pd.DataFrame, center_level: int, radius: int = CONTEXT_RADIUS) -> list[dict]:
    """Rows whose level lies within radius of center_level, sorted by level."""
    picked = []
    for record in df.to_dict("records"):
        level = level_value(record)
        if level is not None and abs(level - center_level) <= radius:
            picked.append((level, record))
    picked.sort(key=lambda item: item[0])
    return [record for _, record in picked]


def _cell(row: Mapping, names: tuple[str, ...], kind: str) -> str:
    num = safe_float(resolve(row, *names, bidirectional=False))
    if num is None:
        return "-"
    if kind == "percent":
        return f"{num * 100:.1f}%" if num <= 1 else f"{num:.1f}%"
    return f"{num:.{kind}}"


def format_level_context(
    rows: list[dict],
    center_level: int,
    game_name: str,
    clusters: Mapping[int, str] | None = None,
) -> str:
    """Render rows as a fenced monospace table; the requested level is marked '>>>'.

    clusters overrides the cluster shown for a level.
    """
    clusters = clusters or {}
    header = "    " + "Lvl".ljust(_LEVEL_WIDTH) + " ".join(
        title.rjust(width) for title, _, width, _ in _CONTEXT_COLUMNS
    ) + " " + "Clu".rjust(_CLUSTER_WIDTH)

    lines = []
    for row in rows:
        level = level_value(row)
        prefix = ">>> " if level == center_level else "    "
        cells = [_cell(row, names, kind).rjust(width) for _, names, width, kind in _CONTEXT_COLUMNS]
        cluster = clusters.get(level) or str(resolve(row, *_CLUSTER_NAMES, bidirectional=False) or "-")
        level_text = str(level) if level is not None else "-"
        lines.append(prefix + level_text.ljust(_LEVEL_WIDTH) + " ".join(cells) + " " + cluster.rjust(_CLUSTER_WIDTH))

    body = "\n".join([header, *lines])
    return f"**Level Context: {center_level} ({game_name})**\n```\n{body}\n```"


def _game_list(system_config: Mapping) -> str:
    lines = []
    for game in system_config.get("games") or []:
        aliases = ", ".join(game.get("aliases") or []) or game.get("id", "")
        lines.append(f"- **{game.get('name', '')}** -> `{aliases}`")
    return "\n".join(lines) or "None"


def process_level_command(
    store: ObjectStore,
    system_config: Mapping,
    level: int,
    game_name: str | None = None,
    clusters: Mapping[int, str] | None = None,
) -> str:
    """Build the reply for a level context request.

    Unknown games, missing exports and empty level ranges produce a
    user-facing message instead of raising. Storage failures propagate as
    StorageError. Without explicit clusters, clusters saved from the level
    score calculator are shown for a known game.
    """
    game = None
    if game_name:
        game = find_game(system_config, game_name)
        if game is None:
            return (
                f"Game '{game_name}' not found.\n\n"
                f"**Available games & aliases:**\n{_game_list(system_config)}"
            )

    name_to_match = game["name"] if game else game_name
    terms = [config.LEVEL_REVISION_TAG] + ([name_to_match] if name_to_match else [])
    stored = store.find_latest(*terms)
    if stored is None:
        suffix = f" for game '{name_to_match}'" if name_to_match else ""
        return f"No Level Revize data found{suffix}. Please load data from Weekly Check first."

    logger.info("Level context for %d from %s", level, stored.key)
    df = read_csv_text(store.download_text(stored.key))
    rows = level_context(df, level)
    if not rows:
        suffix = f" in game '{name_to_match}'" if name_to_match else ""
        return f"No data found for level {level} (+/- {CONTEXT_RADIUS}){suffix}."

    if clusters is None and game and game.get("id"):
        clusters = saved_clusters(store, game["id"])

    display_name = name_to_match or stored.name.split(" - ")[0] or "Unknown"
    return format_level_context(rows, level, display_name, clusters)


def send_followup(application_id: str, token: str, content: str) -> bool:
    """Post a follow-up message to an interaction. Returns True on success."""
    url = f"{config.DISCORD_API_BASE}/webhooks/{application_id}/{token}"
    if len(content) > DISCORD_MESSAGE_LIMIT:
        content = content[: DISCORD_MESSAGE_LIMIT - 4] + "\n```"
    try:
        resp = requests.post(url, json={"content": content}, timeout=config.HTTP_TIMEOUT)
    except requests.exceptions.RequestException as exc:
        logger.error("Follow-up request failed: %s", exc)
        return False
    if not resp.ok:
        logger.error("Follow-up failed: %s %s", resp.status_code, resp.text)
    return resp.ok


def handle_level_command(
    application_id: str,
    token: str,
    level: Any,
    game_name: str | None = None,
    store: ObjectStore | None = None,
    system_config: Mapping | None = None,
) -> bool:
    """Answer a level command end to end; errors are reported back to the user."""
    try:
        center = int(str(level).strip())
        store = store if store is not None else ObjectStore()
        system_config = system_config if system_config is not None else load_system_config(store)
        reply = process_level_command(store, system_config, center, game_name)
    except (StorageError, ValueError) as exc:
        logger.exception("Level command failed")
        reply = f"Error: {exc}"
    return send_followup(application_id, token, reply)
