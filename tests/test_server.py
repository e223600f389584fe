"""Tests for the FastAPI transport."""

import asyncio

import pytest
from fastapi.testclient import TestClient

from conftest import filter_app, selector
from waggen.config import ServerConfig
from waggen.interactive import InteractiveExplorer
from waggen.server import create_app
from waggen.session import load_session


@pytest.fixture
def app_setup(config, tmp_path):
    explorer = InteractiveExplorer(config, filter_app())
    asyncio.run(explorer.init())
    session_file = str(tmp_path / "session.json")
    return explorer, create_app(explorer, ServerConfig(session_file=session_file)), session_file


class TestHttp:
    def test_state(self, app_setup):
        _, app, _ = app_setup
        with TestClient(app) as client:
            data = client.get("/api/state").json()
        assert data["currentState"]["id"] == "state_001"
        assert data["graphData"]["entryStateId"] == "state_001"
        assert data["graphData"]["metadata"]["appUrl"] == "http://localhost:3000/"

    def test_session_saved_on_shutdown(self, app_setup):
        explorer, app, session_file = app_setup
        with TestClient(app):
            pass
        assert load_session(session_file).entry_state_id == "state_001"


class TestWebsocket:
    def test_live_session(self, app_setup):
        explorer, app, _ = app_setup
        with TestClient(app) as client:
            with client.websocket_connect("/ws") as ws:
                init = ws.receive_json()
                assert init["type"] == "connection_init"

                ws.send_json({"type": "request_state", "payload": {}})
                assert ws.receive_json()["type"] == "state_update"

                action_id = f'state_001:click:{selector("filter-active")}:'
                ws.send_json({"type": "execute_action", "payload": {"actionId": action_id}})
                received = [ws.receive_json()["type"] for _ in range(3)]
                assert received == ["state_update", "graph_update", "action_result"]
        assert explorer.current_state_id == "state_002"
