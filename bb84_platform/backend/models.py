"""
models.py — Pydantic schemas for session state, actions and events.
"""
from __future__ import annotations

import time
import uuid
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from bb84_sim import InterceptedPhoton, PhotonPacket, QuantumBit

from .config import DEFAULT_PHOTON_COUNT, MAX_PHOTON_COUNT, QBER_THRESHOLD


# ── Roles & phases ───────────────────────────────────────────────────── #

class Role(str, Enum):
    ALICE = "alice"
    BOB = "bob"
    EVE = "eve"

class Phase(str, Enum):
    SETUP = "setup"
    TRANSMISSION = "transmission"
    SIFTING = "sifting"
    ERROR_CHECK = "error_check"
    KEY_GENERATION = "key_generation"   # declared, never entered
    COMPLETE = "complete"


# ── Session ──────────────────────────────────────────────────────────── #

class AliceState(BaseModel):
    bits: List[QuantumBit] = []
    sent_photons: List[PhotonPacket] = []
    sifted_key: List[int] = []
    final_key: List[int] = []

class BobState(BaseModel):
    bits: List[QuantumBit] = []
    received_photons: List[PhotonPacket] = []
    sifted_key: List[int] = []
    final_key: List[int] = []

class EveState(BaseModel):
    intercepted_photons: List[InterceptedPhoton] = []
    active: bool = False

class Session(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    alice: AliceState = Field(default_factory=AliceState)
    bob: BobState = Field(default_factory=BobState)
    eve: EveState = Field(default_factory=EveState)
    phase: Phase = Phase.SETUP
    qber: float = 0.0
    threshold: float = QBER_THRESHOLD

class SessionSummary(BaseModel):
    session_id: str
    phase: Phase
    photons_sent: int = 0
    photons_received: int = 0
    measurements: int = 0
    sifted_bits: int = 0
    final_key_bits: int = 0
    final_key_hex: str = ""
    qber: float = 0.0
    threshold: float = QBER_THRESHOLD
    eve_active: bool = False
    intercepted_count: int = 0


# ── Action payloads ──────────────────────────────────────────────────── #

class JoinPayload(BaseModel):
    role: Role

class TransmitPayload(BaseModel):
    photons: List[PhotonPacket]

class BitsPayload(BaseModel):
    bits: List[QuantumBit]

class EavesdropPayload(BaseModel):
    active: bool

class OTPMessage(BaseModel):
    """Encrypted chat envelope relayed between Alice and Bob; never stored."""
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    from_role: Role = Field(alias="from")
    to: Role
    plaintext: str = ""
    ciphertext: str
    timestamp: int = Field(default_factory=lambda: int(time.time() * 1000))


# ── Outcomes ─────────────────────────────────────────────────────────── #

class Event(BaseModel):
    """One-shot notification; *target* limits delivery to a single role."""
    type: str
    data: Dict[str, Any] = {}
    target: Optional[Role] = None

class ActionOutcome(BaseModel):
    action: str
    snapshot: Session
    events: List[Event] = []
    aborted: bool = False


# ── REST bodies ──────────────────────────────────────────────────────── #

class SimulateRequest(BaseModel):
    photon_count: int = Field(DEFAULT_PHOTON_COUNT, ge=1, le=MAX_PHOTON_COUNT)
    eve_active: bool = False
    intercept_rate: float = Field(1.0, ge=0.0, le=1.0)

class SimulationResponse(BaseModel):
    photon_count: int
    eve_active: bool
    sifted_bits: int
    matching_indices: List[int] = []
    intercepted_count: int = 0
    qber: float
    eve_detected: bool
    qber_history: List[float] = []

class EncryptRequest(BaseModel):
    message: str
    role: Role = Role.ALICE

class DecryptRequest(BaseModel):
    ciphertext: str
    role: Role = Role.BOB


# ── WebSocket Messages ───────────────────────────────────────────────── #

class WSMessage(BaseModel):
    type: str
    data: Dict[str, Any] = {}
    timestamp: str = ""
