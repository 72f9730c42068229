"""Progress manager for WebSocket-based job status pushes."""

import asyncio
import json
import logging
from typing import Any, Dict, List, Optional

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class ProgressManager:
    """Manages WebSocket connections and broadcasts job updates."""

    def __init__(self):
        self.clients: List[WebSocket] = []
        self._lock = asyncio.Lock()

    def add_client(self, websocket: WebSocket):
        """Add a WebSocket client."""
        self.clients.append(websocket)

    def remove_client(self, websocket: WebSocket):
        """Remove a WebSocket client."""
        if websocket in self.clients:
            self.clients.remove(websocket)

    async def broadcast(self, message: Dict[str, Any]):
        """Broadcast a message to all connected clients; dead sockets are dropped."""
        async with self._lock:
            disconnected = []
            for client in list(self.clients):
                try:
                    await client.send_text(json.dumps(message))
                except Exception as exc:
                    logger.warning("Dropping progress client after send failure: %s", exc)
                    disconnected.append(client)

            for client in disconnected:
                self.remove_client(client)

    async def send_job_update(self, status: Dict[str, Any]):
        """Push a job status snapshot (same shape as the polling endpoint)."""
        state = status.get("state")
        if state == "completed":
            message_type = "complete"
        elif state == "failed":
            message_type = "error"
        else:
            message_type = "progress"
        await self.broadcast({"type": message_type, **status})


_progress_manager: Optional[ProgressManager] = None


def get_progress_manager() -> ProgressManager:
    """Get the global progress manager instance."""
    global _progress_manager
    if _progress_manager is None:
        _progress_manager = ProgressManager()
    return _progress_manager
