"""
IntelliStudy WebSocket Manager
Tracks per-session sockets and pushes sampled slices to them.
"""

import logging
from typing import Dict, List, Set
from fastapi import WebSocket

from focus_model import TimeSlice

logger = logging.getLogger("intellistudy.websocket")


class ConnectionManager:
    """Manages WebSocket connections, one channel per focus session"""

    def __init__(self):
        self.active_connections: Dict[str, Set[WebSocket]] = {}

    async def connect(self, websocket: WebSocket, channel: str):
        await websocket.accept()
        self.active_connections.setdefault(channel, set()).add(websocket)
        logger.info(f"Client connected to channel: {channel} (total: {len(self.active_connections[channel])})")

    def disconnect(self, websocket: WebSocket, channel: str):
        if channel in self.active_connections:
            self.active_connections[channel].discard(websocket)
            if not self.active_connections[channel]:
                del self.active_connections[channel]
        logger.info(f"Client disconnected from channel: {channel}")

    async def broadcast_to_channel(self, channel: str, message: dict):
        """Send message to all clients on a channel"""
        if channel not in self.active_connections:
            return

        dead = set()
        for ws in list(self.active_connections[channel]):
            try:
                await ws.send_json(message)
            except Exception:
                dead.add(ws)

        for ws in dead:
            self.disconnect(ws, channel)

    async def send_slices(self, session_id: str, slices: List[TimeSlice]):
        await self.broadcast_to_channel(session_channel(session_id), {
            "type": "slices",
            "data": [s.to_dict() for s in slices],
        })

    async def send_session_ended(self, session_id: str, report: dict):
        await self.broadcast_to_channel(session_channel(session_id), {
            "type": "session_ended",
            "data": report,
        })

    @property
    def total_connections(self) -> int:
        return sum(len(conns) for conns in self.active_connections.values())


def session_channel(session_id: str) -> str:
    return f"session:{session_id}"


# Global instance
ws_manager = ConnectionManager()
