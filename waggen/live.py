from __future__ import annotations

"""Live-update protocol between an ``InteractiveExplorer`` and its observers.

Messages are JSON envelopes ``{type, timestamp, payload}``. The hub keeps a
broadcast set of connected clients; each client owns an outbound queue that
its transport drains, so pushing a message never blocks the explorer.
"""

import asyncio
import json
import logging
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .config import ServerConfig
from .errors import ErrorCode, WaggenError
from .interactive import GRAPH_CHANGE, STATE_CHANGE, InteractiveExplorer, action_key_from_id
from .knowledge import now_ms
from .session import default_session_path, save_session

logger = logging.getLogger(__name__)

# server -> client
CONNECTION_INIT = "connection_init"
STATE_UPDATE = "state_update"
GRAPH_UPDATE = "graph_update"
ACTION_RESULT = "action_result"
ERROR = "error"
SESSION_SAVED = "session_saved"

# client -> server
EXECUTE_ACTION = "execute_action"
SKIP_ACTION = "skip_action"
UNSKIP_ACTION = "unskip_action"
JUMP_TO_STATE = "jump_to_state"
GO_TO_ROOT = "go_to_root"
SAVE_SESSION = "save_session"
REQUEST_STATE = "request_state"


def envelope(message_type: str, payload: Any) -> Dict[str, Any]:
    return {"type": message_type, "timestamp": now_ms(), "payload": payload}


class _Payload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class ClientMessage(_Payload):
    type: str
    timestamp: Optional[int] = None
    payload: Optional[Dict[str, Any]] = None


class ExecuteActionPayload(_Payload):
    action_id: str = Field(alias="actionId")


class SkipActionPayload(_Payload):
    action_id: str = Field(alias="actionId")
    state_id: str = Field(alias="stateId")


class JumpToStatePayload(_Payload):
    target_state_id: str = Field(alias="targetStateId")


class SaveSessionPayload(_Payload):
    file_path: Optional[str] = Field(default=None, alias="filePath")


class LiveClient:
    """One connected observer, seen from the hub."""

    def __init__(self, name: str = "") -> None:
        self.name = name
        self.queue: asyncio.Queue = asyncio.Queue()
        self.closed = False

    def push(self, message: Dict[str, Any]) -> None:
        if not self.closed:
            self.queue.put_nowait(json.dumps(message))

    def close(self) -> None:
        self.closed = True


class LiveHub:
    def __init__(self, explorer: InteractiveExplorer, server_config: Optional[ServerConfig] = None) -> None:
        self._explorer = explorer
        self._server_config = server_config or ServerConfig()
        self._clients: List[LiveClient] = []
        explorer.add_observer(self._on_explorer_event)

    @property
    def clients(self) -> List[LiveClient]:
        return list(self._clients)

    # --- registry -------------------------------------------------------
    def connect(self, client: LiveClient) -> None:
        logger.info("Client connected %s", client.name)
        self._clients.append(client)
        state = self._explorer.current_state()
        client.push(
            envelope(
                CONNECTION_INIT,
                {
                    "session": self._explorer.to_session().to_json(),
                    "currentState": state.to_json() if state else None,
                    "availableActions": [a.to_json() for a in self._explorer.available_actions()],
                },
            )
        )

    def disconnect(self, client: LiveClient) -> None:
        client.close()
        if client in self._clients:
            self._clients.remove(client)
            logger.info("Client disconnected %s", client.name)

    def broadcast(self, message_type: str, payload: Any) -> None:
        message = envelope(message_type, payload)
        for client in list(self._clients):
            if client.closed:
                self._clients.remove(client)
                continue
            client.push(message)

    def _on_explorer_event(self, event: str, payload: Dict[str, Any]) -> None:
        if event == STATE_CHANGE:
            self.broadcast(STATE_UPDATE, payload)
        elif event == GRAPH_CHANGE:
            self.broadcast(GRAPH_UPDATE, {"graphData": payload})

    # --- inbound --------------------------------------------------------
    @staticmethod
    def send_error(client: LiveClient, message: str, code: ErrorCode) -> None:
        client.push(envelope(ERROR, {"message": message, "code": code.value}))

    async def handle_message(self, client: LiveClient, raw: str) -> None:
        try:
            message = ClientMessage.model_validate(json.loads(raw))
        except (ValueError, ValidationError) as e:
            self.send_error(client, f"Malformed message: {e}", ErrorCode.MALFORMED_MESSAGE)
            return

        handler = self._handlers().get(message.type)
        if handler is None:
            self.send_error(client, f"Unknown message type: {message.type}", ErrorCode.UNKNOWN_MESSAGE_TYPE)
            return
        try:
            await handler(client, message.payload or {})
        except ValidationError as e:
            self.send_error(client, f"Malformed {message.type} payload: {e}", ErrorCode.MALFORMED_MESSAGE)
        except WaggenError as e:
            logger.warning("%s failed: %s", message.type, e)
            self.send_error(client, str(e), e.code)

    def _handlers(self):
        return {
            EXECUTE_ACTION: self._execute_action,
            SKIP_ACTION: self._skip_action,
            UNSKIP_ACTION: self._unskip_action,
            JUMP_TO_STATE: self._jump_to_state,
            GO_TO_ROOT: self._go_to_root,
            SAVE_SESSION: self._save_session,
            REQUEST_STATE: self._request_state,
        }

    async def _execute_action(self, client: LiveClient, payload: Dict[str, Any]) -> None:
        data = ExecuteActionPayload.model_validate(payload)
        result = await self._explorer.execute_action(data.action_id)
        if result.code in (ErrorCode.EXECUTION_IN_PROGRESS, ErrorCode.ACTION_NOT_FOUND):
            self.send_error(client, result.error or "", result.code)
            return
        client.push(envelope(ACTION_RESULT, result.to_json()))

    async def _skip_action(self, client: LiveClient, payload: Dict[str, Any]) -> None:
        data = SkipActionPayload.model_validate(payload)
        self._explorer.skip_action(data.state_id, action_key_from_id(data.action_id))

    async def _unskip_action(self, client: LiveClient, payload: Dict[str, Any]) -> None:
        data = SkipActionPayload.model_validate(payload)
        self._explorer.unskip_action(data.state_id, action_key_from_id(data.action_id))

    async def _jump_to_state(self, client: LiveClient, payload: Dict[str, Any]) -> None:
        data = JumpToStatePayload.model_validate(payload)
        result = await self._explorer.jump_to_state(data.target_state_id)
        if not result.ok:
            self.send_error(client, result.error or "", result.code)

    async def _go_to_root(self, client: LiveClient, payload: Dict[str, Any]) -> None:
        result = await self._explorer.go_to_root()
        if not result.ok:
            self.send_error(client, result.error or "", result.code)

    async def _save_session(self, client: LiveClient, payload: Dict[str, Any]) -> None:
        data = SaveSessionPayload.model_validate(payload)
        file_path = self.session_path(data.file_path)
        save_session(self._explorer.to_session(), file_path)
        client.push(envelope(SESSION_SAVED, {"filePath": file_path}))

    async def _request_state(self, client: LiveClient, payload: Dict[str, Any]) -> None:
        client.push(envelope(STATE_UPDATE, self._explorer.state_update()))

    def session_path(self, requested: Optional[str] = None) -> str:
        return (
            requested
            or self._server_config.session_file
            or default_session_path(self._explorer.config.url)
        )
