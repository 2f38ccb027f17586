"""
QuantumBit: a classical bit paired with the basis it was prepared in.

Polarization map:
  Rectilinear basis:  0° = bit 0,  90° = bit 1
  Diagonal    basis: 45° = bit 0, 135° = bit 1
"""
from __future__ import annotations

import random
from dataclasses import dataclass
from enum import Enum
from typing import List


class Basis(str, Enum):
    RECTILINEAR = "rectilinear"
    DIAGONAL = "diagonal"


POLARIZATION_SYMBOLS = {
    0.0:   "→",
    90.0:  "↑",
    45.0:  "↗",
    135.0: "↖",
}


def generate_bit() -> int:
    """Uniform random 0 or 1."""
    return random.randint(0, 1)


def generate_basis() -> Basis:
    """Uniform random choice between the two bases."""
    return random.choice([Basis.RECTILINEAR, Basis.DIAGONAL])


def polarization(bit: int, basis: Basis) -> float:
    if basis == Basis.RECTILINEAR:
        return 0.0 if bit == 0 else 90.0
    return 45.0 if bit == 0 else 135.0


@dataclass(frozen=True)
class QuantumBit:
    """A bit value and the basis used to prepare (or measure) it."""
    bit: int
    basis: Basis

    def __post_init__(self):
        if self.bit not in (0, 1):
            raise ValueError(f"Bit must be 0 or 1, got {self.bit!r}")
        # Accept raw strings coming off the wire
        object.__setattr__(self, "basis", Basis(self.basis))

    # ------------------------------------------------------------------ #
    #  Factory                                                             #
    # ------------------------------------------------------------------ #
    @classmethod
    def random(cls) -> "QuantumBit":
        """Creates a quantum bit with a random value and a random basis."""
        return cls(bit=generate_bit(), basis=generate_basis())

    # ------------------------------------------------------------------ #
    #  Properties                                                          #
    # ------------------------------------------------------------------ #
    @property
    def polarization(self) -> float:
        return polarization(self.bit, self.basis)

    @property
    def symbol(self) -> str:
        return POLARIZATION_SYMBOLS.get(self.polarization, "?")


def generate_bit_sequence(n: int) -> List[QuantumBit]:
    """Produces *n* independent (bit, basis) pairs for the sender's round."""
    return [QuantumBit.random() for _ in range(max(0, n))]
