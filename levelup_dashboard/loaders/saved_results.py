"""
Saved results in object storage: per-level scores and clusters, and
weekly check snapshots.

Level scores live in one JSON document per game and are upserted by
level. Each weekly snapshot is its own JSON document keyed by game,
report date and id.
"""

import json
import logging
import uuid
from collections.abc import Mapping
from datetime import date, datetime
from typing import Any

import pandas as pd

from ..config import LEVEL_SCORES_PREFIX, WEEKLY_REPORTS_PREFIX
from .storage import ObjectStore, StorageError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Level scores
# ---------------------------------------------------------------------------

def level_scores_key(game_id: str) -> str:
    return f"{LEVEL_SCORES_PREFIX}{game_id}.json"


def load_level_scores(store: ObjectStore, game_id: str) -> dict[int, dict[str, Any]]:
    """Saved entries keyed by level; empty when the game has none or the document is broken."""
    key = level_scores_key(game_id)
    if not store.exists(key):
        return {}
    try:
        entries = json.loads(store.download_text(key))
    except json.JSONDecodeError as exc:
        logger.error("Saved level scores %s are not valid JSON: %s", key, exc)
        return {}
    return {int(entry["level"]): entry for entry in entries if "level" in entry}


def saved_clusters(store: ObjectStore, game_id: str) -> dict[int, str]:
    """Level -> saved cluster, for levels that have one."""
    return {
        level: str(entry["cluster"])
        for level, entry in load_level_scores(store, game_id).items()
        if entry.get("cluster")
    }


def save_level_scores(
    store: ObjectStore,
    game_id: str,
    records: list[dict[str, Any]],
    now: datetime | None = None,
) -> int:
    """Upsert {level, score, cluster} records by level. Returns how many were written."""
    if not game_id:
        raise ValueError("game_id is required")
    stamp = (now or datetime.now()).isoformat(timespec="seconds")
    entries = load_level_scores(store, game_id)
    for record in records:
        level = int(record["level"])
        entries[level] = {
            "level": level,
            "score": record.get("score"),
            "cluster": record.get("cluster") or None,
            "updated_at": stamp,
        }

    document = [entries[level] for level in sorted(entries)]
    store.upload(
        level_scores_key(game_id),
        json.dumps(document, ensure_ascii=False),
        content_type="application/json",
        overwrite=True,
    )
    logger.info("Saved %d level scores for %s", len(records), game_id)
    return len(records)


# ---------------------------------------------------------------------------
# Weekly report snapshots
# ---------------------------------------------------------------------------

def weekly_report_key(game_id: str, report_date: date, report_id: str) -> str:
    return f"{WEEKLY_REPORTS_PREFIX}{game_id}/{report_date:%Y-%m-%d}_{report_id}.json"


def _parse_report_key(key: str) -> dict[str, str] | None:
    rest = key[len(WEEKLY_REPORTS_PREFIX):]
    if "/" not in rest or not rest.endswith(".json"):
        return None
    game_id, file_name = rest.rsplit("/", 1)
    report_date, _, report_id = file_name[: -len(".json")].partition("_")
    if not report_id:
        return None
    return {"id": report_id, "game_id": game_id, "report_date": report_date}


def save_weekly_report(
    store: ObjectStore,
    game_id: str,
    game_name: str,
    sections: Mapping[str, pd.DataFrame],
    report_date: date | None = None,
) -> str:
    """Store weekly check sections as a snapshot. Returns the snapshot id."""
    if not game_id or not game_name:
        raise ValueError("game_id and game_name are required")
    report_date = report_date or date.today()
    report_id = uuid.uuid4().hex
    document = {
        "id": report_id,
        "game_id": game_id,
        "game_name": game_name,
        "report_date": report_date.isoformat(),
        "created_at": datetime.now().isoformat(timespec="seconds"),
        "report_data": {
            title: json.loads(table.to_json(orient="records", force_ascii=False))
            for title, table in sections.items()
        },
    }
    store.upload(
        weekly_report_key(game_id, report_date, report_id),
        json.dumps(document, ensure_ascii=False),
        content_type="application/json",
    )
    logger.info("Saved weekly report %s for %s", report_id, game_name)
    return report_id


def list_weekly_reports(
    store: ObjectStore,
    game_id: str | None = None,
    limit: int = 50,
) -> list[dict[str, Any]]:
    """Snapshot summaries (id, game_id, report_date, key, created_at), newest report date first."""
    prefix = f"{WEEKLY_REPORTS_PREFIX}{game_id}/" if game_id else WEEKLY_REPORTS_PREFIX
    summaries = []
    for stored in store.list_files(prefix, limit=1000):
        summary = _parse_report_key(stored.key)
        if summary is None:
            logger.debug("Skipping %s: not a weekly report key", stored.key)
            continue
        summaries.append({**summary, "key": stored.key, "created_at": stored.last_modified})
    summaries.sort(key=lambda s: (s["report_date"], s["created_at"]), reverse=True)
    return summaries[:limit]


def _report_file(store: ObjectStore, report_id: str) -> str:
    suffix = f"_{report_id}.json"
    for stored in store.list_files(WEEKLY_REPORTS_PREFIX, limit=1000):
        if stored.key.endswith(suffix):
            return stored.key
    raise StorageError(f"Weekly report '{report_id}' not found")


def get_weekly_report(store: ObjectStore, report_id: str) -> dict[str, Any]:
    """Full snapshot document. Raises StorageError when the id is unknown."""
    return json.loads(store.download_text(_report_file(store, report_id)))


def weekly_report_tables(document: Mapping[str, Any]) -> dict[str, pd.DataFrame]:
    """Snapshot sections as tables, keyed by section title."""
    return {
        title: pd.DataFrame(rows)
        for title, rows in (document.get("report_data") or {}).items()
    }


def delete_weekly_report(store: ObjectStore, report_id: str) -> None:
    store.delete(_report_file(store, report_id))
