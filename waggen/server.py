"""FastAPI transport for the live protocol.

uvicorn is driven from ``serve`` so the app shares the explorer's event loop.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, WebSocket, WebSocketDisconnect

from .config import ServerConfig
from .interactive import InteractiveExplorer
from .live import LiveClient, LiveHub
from .session import save_session

logger = logging.getLogger(__name__)


async def _pump(websocket: WebSocket, client: LiveClient, hub: LiveHub) -> None:
    """Drain ``client``'s queue onto the socket until either side goes away."""
    while True:
        message = await client.queue.get()
        try:
            await websocket.send_text(message)
        except (WebSocketDisconnect, RuntimeError):
            hub.disconnect(client)
            return


def create_app(
    explorer: InteractiveExplorer,
    server_config: Optional[ServerConfig] = None,
    hub: Optional[LiveHub] = None,
) -> FastAPI:
    server_config = server_config or ServerConfig()
    hub = hub or LiveHub(explorer, server_config)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        if explorer.entry_state_id:
            save_session(explorer.to_session(), hub.session_path())

    app = FastAPI(title="waggen", lifespan=lifespan)
    app.state.hub = hub
    app.state.explorer = explorer

    @app.get("/api/state")
    def get_state():
        state = explorer.current_state()
        return {
            "currentState": state.to_json() if state else None,
            "graphData": explorer.graph_snapshot(),
        }

    @app.websocket("/ws")
    async def live(websocket: WebSocket):
        await websocket.accept()
        client = LiveClient(name=str(websocket.client))
        hub.connect(client)
        writer = asyncio.create_task(_pump(websocket, client, hub))
        try:
            while True:
                raw = await websocket.receive_text()
                await hub.handle_message(client, raw)
        except WebSocketDisconnect:
            pass
        finally:
            hub.disconnect(client)
            writer.cancel()

    return app


async def serve(explorer: InteractiveExplorer, server_config: ServerConfig) -> None:
    app = create_app(explorer, server_config)
    config = uvicorn.Config(app, host=server_config.host, port=server_config.port, log_level="info")
    logger.info("Interactive UI running at: http://%s:%d", server_config.host, server_config.port)
    await uvicorn.Server(config).serve()
