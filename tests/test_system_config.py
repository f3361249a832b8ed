"""System config document tests: storage first, then local file, then empty."""

import json

import pytest
from helpers import FakeS3Client

from levelup_dashboard.config import REMOTE_CONFIG_KEY
from levelup_dashboard.loaders.storage import ObjectStore
from levelup_dashboard.settings import DEFAULT_SCORE_MULTIPLIERS, ScoreWeights
from levelup_dashboard.loaders.system_config import (
    find_game_by_id,
    get_report_settings,
    get_score_multipliers,
    get_weekly_check_settings,
    load_system_config,
    save_system_config,
)

LOCAL_DOCUMENT = {"games": [{"id": "local", "name": "Local Game"}], "variables": ["Level Revize"]}


@pytest.fixture
def local_file(tmp_path):
    path = tmp_path / "dashboard-data.json"
    path.write_text(json.dumps(LOCAL_DOCUMENT), encoding="utf-8")
    return path


def _store(objects=None):
    return ObjectStore(bucket="test-bucket", client=FakeS3Client(objects))


# ─── Lookup order ────────────────────────────────────────────────

class TestLoadSystemConfig:

    def test_storage_wins(self, local_file):
        store = _store({REMOTE_CONFIG_KEY: json.dumps({"games": [{"id": "remote"}]})})
        document = load_system_config(store, local_file)
        assert document["games"] == [{"id": "remote"}]
        assert document["variables"] == []

    def test_falls_back_to_local(self, local_file):
        assert load_system_config(_store(), local_file) == LOCAL_DOCUMENT

    def test_broken_remote_json(self, local_file):
        store = _store({REMOTE_CONFIG_KEY: "{not json"})
        assert load_system_config(store, local_file) == LOCAL_DOCUMENT

    def test_no_store(self, local_file):
        assert load_system_config(None, local_file) == LOCAL_DOCUMENT

    def test_broken_local_json(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("[", encoding="utf-8")
        assert load_system_config(None, path) == {"variables": [], "games": []}

    def test_missing_local_file(self, tmp_path):
        assert load_system_config(None, tmp_path / "absent.json") == {"variables": [], "games": []}


# ─── Settings and saving ─────────────────────────────────────────

def test_settings_from_document():
    document = {
        "reportSettings": {"levelScoreAB": {"minTotalUser": 10}},
        "weeklyCheck": {"minTotalUser": 75},
    }
    assert get_report_settings(document).level_score_ab.min_total_user == 10
    assert get_weekly_check_settings(document).min_total_user == 75


def test_save_replaces_document():
    client = FakeS3Client({REMOTE_CONFIG_KEY: "{}"})
    store = ObjectStore(bucket="test-bucket", client=client)
    save_system_config(store, {"games": [{"id": "Pop Blast"}], "variables": []})
    assert client.put_calls[0]["ContentType"] == "application/json"
    assert load_system_config(store)["games"] == [{"id": "Pop Blast"}]


def test_game_score_multipliers():
    document = {"games": [
        {"id": "pop-blast", "scoreMultipliers": {"cluster1": {"monetization": 0.5}}},
        {"id": "gem-rush"},
    ]}
    assert find_game_by_id(document, "gem-rush") == {"id": "gem-rush"}
    assert find_game_by_id(document, "tetris") is None
    assert get_score_multipliers(document, "pop-blast")["1"] == ScoreWeights(0.5, 0.20, 0.60)
    assert get_score_multipliers(document, "gem-rush") == DEFAULT_SCORE_MULTIPLIERS
    assert get_score_multipliers(document, "tetris") == DEFAULT_SCORE_MULTIPLIERS
