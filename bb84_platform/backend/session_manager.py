"""
session_manager.py — Authoritative BB84 session state machine.

Owns exactly one Session and advances it through its phases in response to
participant actions:

    setup → transmission → sifting → error_check → complete
                      (restart from any phase → setup)

Every action runs under a lock and returns an ActionOutcome: a deep-copied
snapshot of the session plus any one-shot events for the broadcast layer.
Nothing advances on a timer.
"""
from __future__ import annotations

from threading import Lock
from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel, ValidationError

from bb84_sim import (
    InterceptResendAttack,
    PhotonPacket,
    QuantumBit,
    QuantumChannel,
    bits_to_hex,
    calculate_qber,
    sift,
)

from .config import EVE_INTERCEPT_RATE, QBER_THRESHOLD, STRICT_QBER_GATE
from .logging_config import get_logger
from .models import (
    ActionOutcome,
    BitsPayload,
    EavesdropPayload,
    Event,
    Phase,
    Role,
    Session,
    SessionSummary,
    TransmitPayload,
)

log = get_logger("bb84.session")
channel_log = get_logger("bb84.channel")


class SessionError(Exception):
    """Base class for actions the session refuses to apply."""

class PhaseError(SessionError):
    """The action is not allowed in the current phase."""

class ActionValidationError(SessionError):
    """Unknown action or malformed payload."""


class SessionManager:
    """
    Single-writer owner of one BB84 session.

    Args:
        threshold:          QBER at or above which the key is considered compromised.
        strict_qber_gate:   If True, finalize_key() aborts instead of completing
                            when QBER >= threshold.
        intercept_rate:     Fraction of photons Eve intercepts while active.
    """

    def __init__(
        self,
        threshold: float = QBER_THRESHOLD,
        strict_qber_gate: bool = STRICT_QBER_GATE,
        intercept_rate: float = EVE_INTERCEPT_RATE,
    ):
        self.threshold = threshold
        self.strict_qber_gate = strict_qber_gate
        self.intercept_rate = intercept_rate
        self._lock = Lock()
        self._session = Session(threshold=threshold)
        self._actions: Dict[str, Callable[[Dict[str, Any]], ActionOutcome]] = {
            "transmit": lambda d: self.transmit(self._parse(TransmitPayload, d).photons),
            "report_measurements": lambda d: self.report_measurements(self._parse(BitsPayload, d).bits),
            "publish_bases": lambda d: self.publish_bases(self._parse(BitsPayload, d).bits),
            "check_error_rate": lambda d: self.check_error_rate(),
            "finalize_key": lambda d: self.finalize_key(),
            "set_eavesdropping": lambda d: self.set_eavesdropping(self._parse(EavesdropPayload, d).active),
            "restart": lambda d: self.restart(),
        }

    # ── Read access ──────────────────────────────────────────────────── #

    @property
    def actions(self) -> List[str]:
        return list(self._actions)

    def snapshot(self) -> Session:
        with self._lock:
            return self._session.model_copy(deep=True)

    def summary(self) -> SessionSummary:
        with self._lock:
            s = self._session
            return SessionSummary(
                session_id=s.id,
                phase=s.phase,
                photons_sent=len(s.alice.sent_photons),
                photons_received=len(s.bob.received_photons),
                measurements=len(s.bob.bits),
                sifted_bits=len(s.alice.sifted_key),
                final_key_bits=len(s.alice.final_key),
                final_key_hex=bits_to_hex(s.alice.final_key) if s.alice.final_key else "",
                qber=s.qber,
                threshold=s.threshold,
                eve_active=s.eve.active,
                intercepted_count=len(s.eve.intercepted_photons),
            )

    def final_key(self, role: Role) -> List[int]:
        """The final key held by *role*; empty until the session completes."""
        with self._lock:
            if role == Role.ALICE:
                return list(self._session.alice.final_key)
            if role == Role.BOB:
                return list(self._session.bob.final_key)
            return []

    # ── Dispatch ─────────────────────────────────────────────────────── #

    def dispatch(self, action: str, data: Optional[Dict[str, Any]] = None) -> ActionOutcome:
        """Applies a named protocol action with its raw JSON payload."""
        handler = self._actions.get(action)
        if handler is None:
            raise ActionValidationError(f"Unknown action: {action!r}")
        return handler(data or {})

    @staticmethod
    def _parse(model: type, data: Dict[str, Any]) -> BaseModel:
        try:
            return model.model_validate(data)
        except ValidationError as exc:
            raise ActionValidationError(str(exc)) from exc

    def _require(self, *phases: Phase) -> None:
        if self._session.phase not in phases:
            allowed = ", ".join(p.value for p in phases)
            raise PhaseError(
                f"Not allowed in phase '{self._session.phase.value}' (expected {allowed})"
            )

    def _outcome(self, action: str, events: Optional[List[Event]] = None, aborted: bool = False) -> ActionOutcome:
        return ActionOutcome(
            action=action,
            snapshot=self._session.model_copy(deep=True),
            events=events or [],
            aborted=aborted,
        )

    # ── Protocol actions ─────────────────────────────────────────────── #

    def transmit(self, photons: List[PhotonPacket]) -> ActionOutcome:
        """Alice sends her photons; Eve (if active) rewrites them in flight."""
        with self._lock:
            self._require(Phase.SETUP)
            s = self._session

            attack = InterceptResendAttack(self.intercept_rate) if s.eve.active else None
            delivered, intercepted = QuantumChannel(attack).deliver(photons)

            s.alice.sent_photons = list(photons)
            s.bob.received_photons = delivered
            s.eve.intercepted_photons = intercepted
            s.phase = Phase.TRANSMISSION

            events = [Event(
                type="photons_delivered",
                data=TransmitPayload(photons=delivered).model_dump(mode="json"),
                target=Role.BOB,
            )]
            if intercepted:
                events.append(Event(type="intercepted", data={"count": len(intercepted)}))
                channel_log.info("Eve intercepted %d/%d photons", len(intercepted), len(photons))
            channel_log.info("Delivered %d photons to Bob", len(delivered))
            channel_log.debug("Alice sent    %s", "".join(p.symbol for p in photons))
            channel_log.debug("Bob received  %s", "".join(p.symbol for p in delivered))
            log.info("Phase → %s", s.phase.value)
            return self._outcome("transmit", events)

    def report_measurements(self, bits: List[QuantumBit]) -> ActionOutcome:
        with self._lock:
            self._require(Phase.TRANSMISSION)
            self._session.bob.bits = list(bits)
            log.info("Bob reported %d measurements", len(bits))
            channel_log.debug("Bob measured  %s", "".join(q.symbol for q in bits))
            return self._outcome("report_measurements")

    def publish_bases(self, bits: List[QuantumBit]) -> ActionOutcome:
        """Alice reveals her bases; both sides keep the basis-matched positions."""
        with self._lock:
            self._require(Phase.TRANSMISSION)
            s = self._session
            if not s.bob.bits:
                raise PhaseError("Bob has not reported his measurements yet")

            s.alice.bits = list(bits)
            result = sift(s.alice.bits, s.bob.bits)
            s.alice.sifted_key = result.alice_key
            s.bob.sifted_key = result.bob_key
            s.phase = Phase.SIFTING

            log.info(
                "Sifted %d of %d positions; phase → %s",
                len(result.alice_key), min(len(s.alice.bits), len(s.bob.bits)), s.phase.value,
            )
            event = Event(
                type="sifted",
                data={"alice_key": result.alice_key, "bob_key": result.bob_key},
            )
            return self._outcome("publish_bases", [event])

    def check_error_rate(self) -> ActionOutcome:
        with self._lock:
            self._require(Phase.SIFTING)
            s = self._session
            s.qber = calculate_qber(s.alice.sifted_key, s.bob.sifted_key)
            s.phase = Phase.ERROR_CHECK
            log.info("QBER calculated: %.2f%% (threshold %.2f%%)", s.qber * 100, s.threshold * 100)
            return self._outcome("check_error_rate")

    def finalize_key(self) -> ActionOutcome:
        """
        Promotes the sifted keys to final keys.  Under the strict gate a QBER
        at or above the threshold aborts instead: phase stays error_check and
        a key_aborted event is emitted.
        """
        with self._lock:
            self._require(Phase.ERROR_CHECK)
            s = self._session

            if self.strict_qber_gate and s.qber >= s.threshold:
                log.warning(
                    "Final key refused: QBER %.2f%% >= threshold %.2f%%",
                    s.qber * 100, s.threshold * 100,
                )
                event = Event(type="key_aborted", data={"qber": s.qber, "threshold": s.threshold})
                return self._outcome("finalize_key", [event], aborted=True)

            s.alice.final_key = list(s.alice.sifted_key)
            s.bob.final_key = list(s.bob.sifted_key)
            s.phase = Phase.COMPLETE
            log.info("Final key generated with %d bits", len(s.alice.final_key))
            return self._outcome("finalize_key")

    def set_eavesdropping(self, active: bool) -> ActionOutcome:
        with self._lock:
            self._session.eve.active = active
            log.info("Eve eavesdropping: %s", "ACTIVE" if active else "INACTIVE")
            return self._outcome("set_eavesdropping")

    def restart(self) -> ActionOutcome:
        with self._lock:
            previous = self._session.id
            self._session = Session(threshold=self.threshold)
            log.info("Session restarted (%s → %s)", previous, self._session.id)
            return self._outcome("restart")
