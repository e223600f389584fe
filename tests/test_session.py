"""Tests for session files and their migration."""

import json
import os
import re

import pytest

from waggen.errors import ErrorCode, SessionNotFoundError, VersionIncompatibleError
from waggen.knowledge import Action, ActionType, ExplorationSession, ExplorationStep, empty_graph_data
from waggen.session import (
    CURRENT_VERSION,
    default_session_path,
    generate_session_id,
    load_session,
    migrate,
    save_session,
    session_from_payload,
)


def make_session():
    step = ExplorationStep(1700000000000, "state_001", "state_002", Action(ActionType.CLICK, "#a", "A"))
    return ExplorationSession(
        version=CURRENT_VERSION,
        id="session_1_abc",
        app_url="http://localhost:3000",
        created_at="2024-01-01T00:00:00+00:00",
        last_updated_at="2024-01-01T00:00:00+00:00",
        current_state_id="state_002",
        entry_state_id="state_001",
        skipped_actions={"state_001": ["click:#b:"]},
        exploration_history=[step],
    )


class TestSaveLoad:
    def test_roundtrip(self, tmp_path):
        path = str(tmp_path / "nested" / "session.json")
        session = make_session()
        assert save_session(session, path) == path

        loaded = load_session(path)
        assert loaded.id == session.id
        assert loaded.current_state_id == "state_002"
        assert loaded.skipped_actions == {"state_001": ["click:#b:"]}
        assert loaded.exploration_history[0].action == Action(ActionType.CLICK, "#a", "A")
        assert loaded.last_updated_at != "2024-01-01T00:00:00+00:00"
        assert loaded.created_at == "2024-01-01T00:00:00+00:00"

    def test_missing_file(self, tmp_path):
        with pytest.raises(SessionNotFoundError) as exc:
            load_session(str(tmp_path / "nope.json"))
        assert exc.value.code == ErrorCode.SESSION_NOT_FOUND

    def test_newer_version_refused(self, tmp_path):
        path = tmp_path / "future.json"
        path.write_text(json.dumps({"version": CURRENT_VERSION + 1, "id": "x"}))
        with pytest.raises(VersionIncompatibleError):
            load_session(str(path))


class TestMigrate:
    """Pre-versioned payloads always load."""

    @pytest.mark.parametrize("raw", [{}, {"version": 0}, {"appUrl": "http://x", "stateGraph": None}])
    def test_defaults(self, raw):
        session = session_from_payload(raw)
        assert session.version == CURRENT_VERSION
        assert session.id.startswith("session_")
        assert session.state_graph == empty_graph_data()
        assert session.skipped_actions == {}
        assert session.exploration_history == []

    def test_keeps_known_fields(self):
        migrated = migrate({"id": "old", "entryStateId": "state_001", "appUrl": "http://x"})
        assert migrated["id"] == "old"
        assert migrated["entryStateId"] == "state_001"
        assert migrated["version"] == CURRENT_VERSION

    def test_current_version_untouched(self):
        raw = make_session().to_json()
        assert migrate(raw) is raw


class TestNaming:
    def test_session_id(self):
        assert re.fullmatch(r"session_\d+_[0-9a-z]{9}", generate_session_id())

    def test_default_path(self):
        path = default_session_path("http://localhost:3000/app")
        assert path == os.path.join(".", "output", "sessions", "localhost_3000_session.json")
        assert default_session_path("http://a.b", base_dir="d") == os.path.join("d", "a_b_session.json")
