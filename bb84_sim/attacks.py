"""
attacks.py
==========
Intercept-resend eavesdropping on the simulated quantum channel.

Eve does not know Alice's basis.  For every photon she intercepts she picks
a basis at random, measures, and re-emits a fresh photon carrying her result
in her own basis.  Whenever she guessed wrong, Bob's outcome on a
basis-matched position becomes a coin flip, which is what surfaces as QBER.
"""
from __future__ import annotations

import dataclasses
import random
from dataclasses import dataclass
from typing import List, Sequence, Tuple

from .qubit import Basis, generate_basis
from .quantum_channel import PhotonPacket, measure


# ──────────────────────────────────────────────────────────────────────── #
#  Per-photon interception record                                           #
# ──────────────────────────────────────────────────────────────────────── #

@dataclass
class InterceptedPhoton:
    """Eve's log entry: the packet as Alice sent it and what Eve measured."""
    id: str
    bit: int
    basis: Basis
    timestamp: int
    eve_basis: Basis
    eve_bit: int

    @property
    def basis_match(self) -> bool:
        return self.eve_basis == self.basis


# ──────────────────────────────────────────────────────────────────────── #
#  Intercept-Resend Attack                                                  #
# ──────────────────────────────────────────────────────────────────────── #

class InterceptResendAttack:
    """
    Classic intercept-resend attack.

    QBER contribution:
      Each intercepted photon has a 25% chance of introducing an error
      (Eve guesses Alice's basis wrong 50% of the time; Bob then gets
       a random outcome, causing another 50% error — combined: 25%).
    """

    def __init__(self, intercept_rate: float = 1.0):
        """
        Args:
            intercept_rate: Fraction of photons Eve intercepts [0, 1].
        """
        self.intercept_rate = max(0.0, min(1.0, intercept_rate))

    def intercept(
        self, packets: Sequence[PhotonPacket],
    ) -> Tuple[List[PhotonPacket], List[InterceptedPhoton]]:
        """
        Returns (packets forwarded to Bob, interception log).

        Forwarded packets keep the original id and timestamp; only bit and
        basis are replaced.  The input packets are left untouched.
        """
        forwarded: List[PhotonPacket] = []
        log: List[InterceptedPhoton] = []

        for packet in packets:
            if self.intercept_rate < 1.0 and random.random() >= self.intercept_rate:
                forwarded.append(dataclasses.replace(packet))
                continue

            eve_basis = generate_basis()
            eve_bit = measure(packet, eve_basis).bit
            log.append(InterceptedPhoton(
                id=packet.id,
                bit=packet.bit,
                basis=packet.basis,
                timestamp=packet.timestamp,
                eve_basis=eve_basis,
                eve_bit=eve_bit,
            ))
            # Re-emit in Eve's basis with Eve's measured value
            forwarded.append(dataclasses.replace(packet, bit=eve_bit, basis=eve_basis))

        return forwarded, log

    @property
    def expected_qber_contribution(self) -> float:
        """Theoretical QBER increase = intercept_rate × 0.25"""
        return self.intercept_rate * 0.25
