"""Helpers that play Alice's and Bob's parts of a round."""
from typing import List

from bb84_sim import Basis, PhotonPacket, QuantumBit, encode


def encode_all(bits: List[QuantumBit]) -> List[PhotonPacket]:
    return [encode(q.bit, q.basis) for q in bits]


def flip_bits(bits: List[QuantumBit]) -> List[QuantumBit]:
    """Same bases, every value inverted: sifts to a QBER of exactly 1.0."""
    return [QuantumBit(bit=q.bit ^ 1, basis=q.basis) for q in bits]


def other_basis(basis: Basis) -> Basis:
    return Basis.DIAGONAL if basis == Basis.RECTILINEAR else Basis.RECTILINEAR


def as_json(bits: List[QuantumBit]) -> List[dict]:
    return [{"bit": q.bit, "basis": q.basis.value} for q in bits]


def photons_json(photons: List[PhotonPacket]) -> List[dict]:
    return [
        {"id": p.id, "bit": p.bit, "basis": p.basis.value, "timestamp": p.timestamp}
        for p in photons
    ]
