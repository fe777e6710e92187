"""
Full-reload signalling.

`ReloadHub` keeps the connected browser WebSockets; `watch_sources` turns
file changes reported by watchfiles into a `full-reload` broadcast when the
changed file has one of the watched extensions.
"""

import asyncio
import logging
from typing import Iterable

from starlette.websockets import WebSocket, WebSocketDisconnect
from watchfiles import awatch

logger = logging.getLogger(__name__)

FULL_RELOAD = {"type": "full-reload"}


class ReloadHub:
    def __init__(self):
        self.clients: set[WebSocket] = set()

    async def connect(self, websocket: WebSocket) -> None:
        await websocket.accept()
        self.clients.add(websocket)
        logger.debug("Reload client connected (%d total)", len(self.clients))

    def disconnect(self, websocket: WebSocket) -> None:
        self.clients.discard(websocket)

    async def broadcast(self, message: dict) -> int:
        """Send `message` to every client; clients that went away are dropped. Returns the delivery count."""
        delivered = 0
        for websocket in list(self.clients):
            try:
                await websocket.send_json(message)
            except (WebSocketDisconnect, RuntimeError):
                self.disconnect(websocket)
                continue
            delivered += 1
        return delivered


def changed_sources(changes: Iterable[tuple[object, str]], extensions: Iterable[str]) -> list[str]:
    """Paths among watchfiles `(change, path)` pairs that end with one of `extensions`."""
    extensions = tuple(extensions)
    return sorted({path for _, path in changes if path.endswith(extensions)})


async def watch_sources(paths: list[str], extensions: list[str], hub: ReloadHub,
                        stop_event: asyncio.Event) -> None:
    async for changes in awatch(*paths, stop_event=stop_event):
        files = changed_sources(changes, extensions)
        if not files:
            continue
        logger.info("Source changed: %s -> full reload", ", ".join(files))
        await hub.broadcast(FULL_RELOAD)
