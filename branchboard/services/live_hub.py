import asyncio
from typing import Any, Set

import anyio.from_thread
import structlog
from fastapi import WebSocket


log = structlog.get_logger(__name__)


class LiveUpdateHub:
    """
    Fan-out of "resource changed" events to every connected dashboard.
    Clients re-fetch the named resource; delivery is best effort.
    """

    def __init__(self) -> None:
        self._connections: Set[WebSocket] = set()
        self._lock = asyncio.Lock()
        self._pending: Set[asyncio.Task] = set()

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    async def connect(self, ws: WebSocket) -> None:
        async with self._lock:
            self._connections.add(ws)

    async def disconnect(self, ws: WebSocket) -> None:
        async with self._lock:
            self._connections.discard(ws)

    async def broadcast(self, category: str) -> None:
        data: Any = {"type": "update", "resource": category}
        async with self._lock:
            targets = list(self._connections)
        dead = []
        for ws in targets:
            try:
                await ws.send_json(data)
            except Exception:
                dead.append(ws)
        if dead:
            async with self._lock:
                for ws in dead:
                    self._connections.discard(ws)
            log.info("live_clients_dropped", count=len(dead))

    def _spawn(self, category: str) -> None:
        task = asyncio.get_running_loop().create_task(self.broadcast(category))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    def notify(self, category: str) -> None:
        """Schedule a broadcast from a worker thread or the loop itself; never blocks on delivery."""
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            pass
        else:
            self._spawn(category)
            return
        try:
            anyio.from_thread.run_sync(self._spawn, category)
        except RuntimeError:
            # no event loop to hand off to (scripts, tests without a server)
            log.debug("live_update_dropped", resource=category)
