"""
tests/test_websocket_manager.py
Pytest unit tests for the roster and fan-out logic, using stub sockets.

Run with:
    pytest tests/test_websocket_manager.py -v
"""
import asyncio
from typing import List

from bb84_platform.backend.main import apply_and_publish
from bb84_platform.backend.models import ActionOutcome, Event, Role, Session
from bb84_platform.backend.session_manager import SessionManager
from bb84_platform.backend.websocket_manager import ConnectionManager


class StubSocket:
    def __init__(self, fail: bool = False):
        self.sent: List[dict] = []
        self.accepted = False
        self.fail = fail

    async def accept(self):
        self.accepted = True

    async def send_json(self, message: dict):
        if self.fail:
            raise RuntimeError("socket closed")
        self.sent.append(message)

    def types(self) -> List[str]:
        return [m["type"] for m in self.sent]


def connect(manager: ConnectionManager, role: Role = None, fail: bool = False):
    ws = StubSocket(fail=fail)
    cid = asyncio.run(manager.connect(ws))
    if role is not None:
        manager.join(cid, role)
    return cid, ws


class TestRoster:

    def test_connect_accepts(self) -> None:
        manager = ConnectionManager()
        cid, ws = connect(manager)
        assert ws.accepted
        assert manager.get_connections() == [cid]
        assert manager.roles_online() == []

    def test_roles_in_join_order(self) -> None:
        manager = ConnectionManager()
        connect(manager, Role.BOB)
        connect(manager, Role.ALICE)
        connect(manager, Role.ALICE)
        assert manager.roles_online() == ["bob", "alice", "alice"]

    def test_rejoin_replaces_role(self) -> None:
        manager = ConnectionManager()
        cid, _ = connect(manager, Role.EVE)
        manager.join(cid, Role.BOB)
        assert manager.roles_online() == ["bob"]
        assert manager.role_of(cid) == Role.BOB

    def test_disconnect_drops_entry(self) -> None:
        manager = ConnectionManager()
        cid, _ = connect(manager, Role.ALICE)
        connect(manager, Role.BOB)
        assert manager.disconnect(cid) == Role.ALICE
        assert manager.roles_online() == ["bob"]


class TestFanOut:

    def test_publish_targets_roles_then_snapshot(self) -> None:
        manager = ConnectionManager()
        _, alice = connect(manager, Role.ALICE)
        _, bob = connect(manager, Role.BOB)
        _, spectator = connect(manager)

        outcome = ActionOutcome(
            action="transmit",
            snapshot=Session(),
            events=[
                Event(type="photons_delivered", data={"photons": []}, target=Role.BOB),
                Event(type="intercepted", data={"count": 3}),
            ],
        )
        asyncio.run(manager.publish(outcome))

        assert bob.types() == ["photons_delivered", "intercepted", "session_updated"]
        assert alice.types() == ["intercepted", "session_updated"]
        assert spectator.types() == ["intercepted", "session_updated"]
        assert alice.sent[-1]["data"]["phase"] == "setup"

    def test_event_envelope(self) -> None:
        event = ConnectionManager.make_event("pong")
        assert event["type"] == "pong"
        assert event["data"] == {}
        assert event["timestamp"]

    def test_roster_broadcast(self) -> None:
        manager = ConnectionManager()
        _, alice = connect(manager, Role.ALICE)
        asyncio.run(manager.publish_roster())
        assert alice.sent[-1]["data"] == {"roles": ["alice"]}

    def test_failed_send_drops_connection(self) -> None:
        manager = ConnectionManager()
        _, alice = connect(manager, Role.ALICE)
        connect(manager, Role.BOB, fail=True)
        asyncio.run(manager.broadcast(ConnectionManager.make_event("ping")))
        assert manager.roles_online() == ["alice"]
        assert len(manager.get_connections()) == 1
        assert alice.types() == ["ping"]


class DelayedSocket(StubSocket):
    """Takes longer to deliver snapshots in which Eve is active."""

    async def send_json(self, message: dict):
        if message["type"] == "session_updated" and message["data"]["eve"]["active"]:
            await asyncio.sleep(0.05)
        await super().send_json(message)


class TestPublishOrdering:

    def test_snapshots_arrive_in_action_order(self) -> None:
        session_mgr = SessionManager()
        manager = ConnectionManager()
        asyncio.run(manager.connect(DelayedSocket()))   # broadcast reaches it first
        _, eve = connect(manager, Role.EVE)

        async def run_both():
            lock = asyncio.Lock()
            await asyncio.gather(
                apply_and_publish(lock, session_mgr, manager, "set_eavesdropping", {"active": True}),
                apply_and_publish(lock, session_mgr, manager, "set_eavesdropping", {"active": False}),
            )

        asyncio.run(run_both())

        seen = [m["data"]["eve"]["active"] for m in eve.sent if m["type"] == "session_updated"]
        assert seen == [True, False]
        assert seen[-1] == session_mgr.snapshot().eve.active
