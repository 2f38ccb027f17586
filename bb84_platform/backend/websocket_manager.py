"""
websocket_manager.py — WebSocket connections, role roster and broadcasts.
"""
from __future__ import annotations

import uuid
from datetime import datetime, timezone
from threading import Lock
from typing import Any, Dict, List, Optional

from fastapi import WebSocket

from .logging_config import get_logger
from .models import ActionOutcome, Role, WSMessage

log = get_logger("bb84.network")


class ConnectionManager:
    """Manages WebSocket connections, the role roster and broadcasts."""

    def __init__(self):
        self._connections: Dict[str, WebSocket] = {}   # connection_id -> ws
        self._roles: Dict[str, Role] = {}               # connection_id -> role (join order)
        self._lock = Lock()

    async def connect(self, websocket: WebSocket) -> str:
        await websocket.accept()
        connection_id = uuid.uuid4().hex
        with self._lock:
            self._connections[connection_id] = websocket
        log.info("Client connected: %s", connection_id)
        return connection_id

    def disconnect(self, connection_id: str) -> Optional[Role]:
        """Drops the connection and its roster entry; returns the role it held."""
        with self._lock:
            self._connections.pop(connection_id, None)
            role = self._roles.pop(connection_id, None)
        log.info("Client disconnected: %s", connection_id)
        return role

    # ── Roster ───────────────────────────────────────────────────────── #

    def join(self, connection_id: str, role: Role) -> None:
        with self._lock:
            # Re-joining moves the entry to the end of the roster
            self._roles.pop(connection_id, None)
            self._roles[connection_id] = role
        log.info("%s joined the session", role.value.upper())

    def role_of(self, connection_id: str) -> Optional[Role]:
        with self._lock:
            return self._roles.get(connection_id)

    def roles_online(self) -> List[str]:
        with self._lock:
            return [role.value for role in self._roles.values()]

    def get_connections(self) -> List[str]:
        with self._lock:
            return list(self._connections)

    # ── Sending ──────────────────────────────────────────────────────── #

    async def send_personal(self, connection_id: str, message: dict):
        with self._lock:
            ws = self._connections.get(connection_id)
        if ws:
            try:
                await ws.send_json(message)
            except Exception:
                self.disconnect(connection_id)

    async def broadcast(self, message: dict):
        with self._lock:
            targets = list(self._connections.items())
        disconnected = []
        for cid, ws in targets:
            try:
                await ws.send_json(message)
            except Exception:
                disconnected.append(cid)
        for cid in disconnected:
            self.disconnect(cid)

    async def broadcast_to_role(self, role: Role, message: dict):
        with self._lock:
            members = [cid for cid, r in self._roles.items() if r == role]
        for cid in members:
            await self.send_personal(cid, message)

    async def publish_roster(self):
        await self.broadcast(self.make_event("users_updated", {"roles": self.roles_online()}))

    async def publish(self, outcome: ActionOutcome):
        """Sends the outcome's one-shot events, then the full session snapshot."""
        for event in outcome.events:
            message = self.make_event(event.type, event.data)
            if event.target is None:
                await self.broadcast(message)
            else:
                await self.broadcast_to_role(event.target, message)
        await self.broadcast(self.make_event(
            "session_updated", outcome.snapshot.model_dump(mode="json"),
        ))

    @staticmethod
    def make_event(event_type: str, data: Any = None) -> dict:
        return WSMessage(
            type=event_type,
            data=data or {},
            timestamp=datetime.now(timezone.utc).isoformat(),
        ).model_dump()
