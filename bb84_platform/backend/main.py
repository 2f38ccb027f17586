"""
main.py — FastAPI application entry point.
Shared BB84 session server for Alice, Bob and Eve.

Provides:
  - WebSocket action endpoint driving the session state machine
  - Role roster and full-snapshot broadcasts to every participant
  - One-time-pad encryption with the final key
  - Offline BB84 rounds for quick what-if runs
"""
from __future__ import annotations

import asyncio
import json
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import Body, Depends, FastAPI, HTTPException, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from pydantic import ValidationError

from bb84_sim import DECRYPTION_FAILED, decrypt, encrypt, run_protocol

from .config import CORS_ORIGINS, HOST, PORT
from .logging_config import configure_logging, get_logger
from .models import (
    ActionOutcome,
    DecryptRequest,
    EncryptRequest,
    JoinPayload,
    OTPMessage,
    Session,
    SessionSummary,
    SimulateRequest,
    SimulationResponse,
)
from .session_manager import PhaseError, SessionError, SessionManager
from .websocket_manager import ConnectionManager

log = get_logger("bb84.network")


def get_session_manager(request: Request) -> SessionManager:
    return request.app.state.session_manager


def get_connection_manager(request: Request) -> ConnectionManager:
    return request.app.state.ws_manager


def get_publish_lock(request: Request) -> asyncio.Lock:
    return request.app.state.publish_lock


async def apply_and_publish(
    lock: asyncio.Lock,
    session_mgr: SessionManager,
    ws_manager: ConnectionManager,
    action: str,
    payload: Optional[Dict[str, Any]] = None,
) -> ActionOutcome:
    """
    Applies one action and broadcasts its outcome while holding *lock*, so
    every participant receives snapshots in the order the actions ran.
    """
    async with lock:
        outcome = session_mgr.dispatch(action, payload)
        await ws_manager.publish(outcome)
    return outcome


def create_app(
    session_manager: Optional[SessionManager] = None,
    ws_manager: Optional[ConnectionManager] = None,
) -> FastAPI:
    """Builds the app around an explicitly owned session and connection manager."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        log.info("BB84 server ready, session %s", app.state.session_manager.snapshot().id)
        yield

    app = FastAPI(
        title="BB84 Shared Session Server",
        description="Multi-participant BB84 quantum key distribution simulation",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.session_manager = session_manager or SessionManager()
    app.state.ws_manager = ws_manager or ConnectionManager()
    app.state.publish_lock = asyncio.Lock()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ================================================================= #
    #  SESSION ROUTES                                                     #
    # ================================================================= #

    @app.get("/api/session", response_model=Session)
    async def get_session(session_mgr: SessionManager = Depends(get_session_manager)):
        return session_mgr.snapshot()

    @app.get("/api/session/summary", response_model=SessionSummary)
    async def get_summary(session_mgr: SessionManager = Depends(get_session_manager)):
        return session_mgr.summary()

    @app.post("/api/session/restart", response_model=Session)
    async def restart_session(
        session_mgr: SessionManager = Depends(get_session_manager),
        ws_manager: ConnectionManager = Depends(get_connection_manager),
        lock: asyncio.Lock = Depends(get_publish_lock),
    ):
        outcome = await apply_and_publish(lock, session_mgr, ws_manager, "restart")
        return outcome.snapshot

    @app.post("/api/session/actions/{action}", response_model=ActionOutcome)
    async def apply_action(
        action: str,
        payload: Optional[Dict[str, Any]] = Body(default=None),
        session_mgr: SessionManager = Depends(get_session_manager),
        ws_manager: ConnectionManager = Depends(get_connection_manager),
        lock: asyncio.Lock = Depends(get_publish_lock),
    ):
        """Same protocol actions as the WebSocket, for scripted clients."""
        try:
            return await apply_and_publish(lock, session_mgr, ws_manager, action, payload)
        except PhaseError as exc:
            raise HTTPException(409, str(exc))
        except SessionError as exc:
            raise HTTPException(400, str(exc))

    @app.get("/api/roster")
    async def get_roster(ws_manager: ConnectionManager = Depends(get_connection_manager)):
        return {"roles": ws_manager.roles_online()}

    # ================================================================= #
    #  OFFLINE SIMULATION                                                 #
    # ================================================================= #

    @app.post("/api/simulate", response_model=SimulationResponse)
    async def simulate(body: SimulateRequest, session_mgr: SessionManager = Depends(get_session_manager)):
        """Runs a complete round without touching the shared session."""
        result = run_protocol(
            body.photon_count,
            eve_active=body.eve_active,
            intercept_rate=body.intercept_rate,
            threshold=session_mgr.threshold,
        )
        return SimulationResponse(
            photon_count=result.photon_count,
            eve_active=result.eve_active,
            sifted_bits=len(result.sifted_key_alice),
            matching_indices=result.matching_indices,
            intercepted_count=len(result.intercepted),
            qber=result.qber,
            eve_detected=result.eve_detected,
            qber_history=result.qber_history,
        )

    # ================================================================= #
    #  ONE-TIME PAD                                                       #
    # ================================================================= #

    @app.post("/api/otp/encrypt")
    async def otp_encrypt(body: EncryptRequest, session_mgr: SessionManager = Depends(get_session_manager)):
        key = session_mgr.final_key(body.role)
        if not key:
            raise HTTPException(404, f"No final key available for {body.role.value}")
        return {"ciphertext": encrypt(body.message, key), "key_bits": len(key)}

    @app.post("/api/otp/decrypt")
    async def otp_decrypt(body: DecryptRequest, session_mgr: SessionManager = Depends(get_session_manager)):
        key = session_mgr.final_key(body.role)
        if not key:
            raise HTTPException(404, f"No final key available for {body.role.value}")
        plaintext = decrypt(body.ciphertext, key)
        return {"plaintext": plaintext, "success": plaintext != DECRYPTION_FAILED}

    # ================================================================= #
    #  WEBSOCKET                                                          #
    # ================================================================= #

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket):
        session_mgr: SessionManager = websocket.app.state.session_manager
        ws_manager: ConnectionManager = websocket.app.state.ws_manager
        lock: asyncio.Lock = websocket.app.state.publish_lock
        connection_id = await ws_manager.connect(websocket)

        async def reject(action: str, reason: str):
            log.warning("Rejected %r from %s: %s", action, connection_id, reason)
            await ws_manager.send_personal(connection_id, ws_manager.make_event(
                "action_rejected", {"action": action, "reason": reason},
            ))

        try:
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    raise WebSocketDisconnect(message.get("code", 1000))
                text = message.get("text")
                if text is None:
                    await reject("", "Binary frames are not supported")
                    continue
                try:
                    data = json.loads(text)
                except ValueError:
                    await reject("", "Message is not valid JSON")
                    continue
                if not isinstance(data, dict):
                    await reject("", "Message must be a JSON object")
                    continue

                msg_type = data.get("type", "")
                payload = data.get("data") or {}

                if msg_type == "join":
                    try:
                        role = JoinPayload.model_validate(payload).role
                    except ValidationError as exc:
                        await reject(msg_type, str(exc))
                        continue
                    async with lock:
                        ws_manager.join(connection_id, role)
                        await ws_manager.publish_roster()
                        await ws_manager.publish(ActionOutcome(action="join", snapshot=session_mgr.snapshot()))

                elif msg_type == "relay_message":
                    try:
                        envelope = OTPMessage.model_validate(payload)
                    except ValidationError as exc:
                        await reject(msg_type, str(exc))
                        continue
                    log.info("OTP message from %s to %s", envelope.from_role.value, envelope.to.value)
                    await ws_manager.broadcast_to_role(envelope.to, ws_manager.make_event(
                        "otp_message", envelope.model_dump(mode="json", by_alias=True),
                    ))

                elif msg_type == "ping":
                    await ws_manager.send_personal(connection_id, ws_manager.make_event("pong"))

                else:
                    try:
                        await apply_and_publish(lock, session_mgr, ws_manager, msg_type, payload)
                    except SessionError as exc:
                        await reject(msg_type, str(exc))

        except WebSocketDisconnect:
            log.info("WebSocket closed by %s", connection_id)
        finally:
            ws_manager.disconnect(connection_id)
            async with lock:
                await ws_manager.publish_roster()

    # ================================================================= #
    #  HEALTH                                                             #
    # ================================================================= #

    @app.get("/api/health")
    async def health(
        session_mgr: SessionManager = Depends(get_session_manager),
        ws_manager: ConnectionManager = Depends(get_connection_manager),
    ):
        snapshot = session_mgr.snapshot()
        return {
            "status": "ok",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "session_id": snapshot.id,
            "phase": snapshot.phase.value,
            "connections": len(ws_manager.get_connections()),
            "roles_online": ws_manager.roles_online(),
        }

    return app


app = create_app()


# ===================================================================== #
#  RUN                                                                    #
# ===================================================================== #

if __name__ == "__main__":
    import uvicorn
    configure_logging()
    uvicorn.run("bb84_platform.backend.main:app", host=HOST, port=PORT, reload=False)
