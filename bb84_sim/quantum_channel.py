"""
Photon packets and the simulated quantum channel between Alice and Bob.

A packet carries a bit/basis pair in flight.  Measuring it in the basis it
was prepared in reproduces the bit; measuring it in the other basis gives an
unbiased random outcome and never reveals the original value.
"""
from __future__ import annotations

import dataclasses
import time
import uuid
from dataclasses import dataclass, field
from typing import List, NamedTuple, Optional, Sequence, Tuple

from .qubit import POLARIZATION_SYMBOLS, Basis, QuantumBit, generate_basis, generate_bit, polarization


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class PhotonPacket:
    """A transmissible photon: opaque id, bit, basis and send time (epoch ms)."""
    id: str
    bit: int
    basis: Basis
    timestamp: int = field(default_factory=_now_ms)

    def __post_init__(self):
        if self.bit not in (0, 1):
            raise ValueError(f"Bit must be 0 or 1, got {self.bit!r}")
        self.basis = Basis(self.basis)

    @property
    def polarization(self) -> float:
        return polarization(self.bit, self.basis)

    @property
    def symbol(self) -> str:
        return POLARIZATION_SYMBOLS.get(self.polarization, "?")


class MeasurementResult(NamedTuple):
    bit: int
    correct: bool


def encode(bit: int, basis: Basis) -> PhotonPacket:
    """Wraps *bit* and *basis* in a packet with a fresh id and send timestamp."""
    return PhotonPacket(id=uuid.uuid4().hex, bit=bit, basis=basis)


def measure(packet: PhotonPacket, measurement_basis: Basis) -> MeasurementResult:
    """
    Returns the bit obtained when measuring *packet* in *measurement_basis*.

    If the bases match, the packet's bit comes back deterministically.
    If they differ, the outcome is a fresh 50 / 50 coin flip.
    """
    if packet.basis == Basis(measurement_basis):
        return MeasurementResult(packet.bit, True)
    return MeasurementResult(generate_bit(), False)


def measure_all(
    packets: Sequence[PhotonPacket],
    bases: Optional[Sequence[Basis]] = None,
) -> List[QuantumBit]:
    """
    Bob's side of a round: measures every packet and records the outcome
    together with the basis he used.  Random bases are drawn when *bases*
    is not given.
    """
    if bases is None:
        bases = [generate_basis() for _ in packets]
    if len(bases) != len(packets):
        raise ValueError(
            f"Need one basis per packet ({len(packets)}), got {len(bases)}"
        )
    return [
        QuantumBit(bit=measure(p, b).bit, basis=b)
        for p, b in zip(packets, bases)
    ]


class QuantumChannel:
    """
    Carries packets from Alice to Bob.  An attached attack (Eve) rewrites
    the packets before they reach the receiver.
    """

    def __init__(self, attack=None):
        self.attack = attack

    def deliver(self, packets: Sequence[PhotonPacket]) -> Tuple[List[PhotonPacket], list]:
        """
        Returns (packets as received by Bob, interception log).
        The sender's packets are never modified.
        """
        if self.attack is None:
            return [dataclasses.replace(p) for p in packets], []
        return self.attack.intercept(packets)
