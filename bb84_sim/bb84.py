"""
BB84Protocol: runs one complete BB84 round offline, without participants.

Alice generates and encodes her bits, Eve optionally intercepts, Bob measures
in random bases, then both sides sift and estimate the QBER.  Used for quick
what-if runs and to check the statistics of interception.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List

from .attacks import InterceptResendAttack, InterceptedPhoton
from .qubit import QuantumBit, generate_bit_sequence
from .quantum_channel import PhotonPacket, QuantumChannel, encode, measure_all
from .sifting import calculate_qber, sift


QBER_ABORT_THRESHOLD = 0.11   # 11 % — standard BB84 security threshold


@dataclass
class RoundResult:
    """Aggregated results for one offline BB84 round."""
    photon_count: int
    eve_active: bool = False

    alice_bits: List[QuantumBit] = field(default_factory=list)
    bob_bits: List[QuantumBit] = field(default_factory=list)
    sent_photons: List[PhotonPacket] = field(default_factory=list)
    received_photons: List[PhotonPacket] = field(default_factory=list)
    intercepted: List[InterceptedPhoton] = field(default_factory=list)

    sifted_key_alice: List[int] = field(default_factory=list)
    sifted_key_bob: List[int] = field(default_factory=list)
    matching_indices: List[int] = field(default_factory=list)
    qber: float = 1.0
    eve_detected: bool = False
    qber_history: List[float] = field(default_factory=list)  # rolling QBER per sifted bit


class BB84Protocol:

    def __init__(
        self,
        photon_count: int = 20,
        eve_active: bool = False,
        eve_intercept_rate: float = 1.0,
        threshold: float = QBER_ABORT_THRESHOLD,
    ):
        self.photon_count = photon_count
        self.eve_active = eve_active
        self.eve_intercept_rate = eve_intercept_rate
        self.threshold = threshold

    def full_run(self) -> RoundResult:
        attack = InterceptResendAttack(self.eve_intercept_rate) if self.eve_active else None
        channel = QuantumChannel(attack)

        alice_bits = generate_bit_sequence(self.photon_count)
        sent = [encode(q.bit, q.basis) for q in alice_bits]
        received, log = channel.deliver(sent)
        bob_bits = measure_all(received)

        sifted = sift(alice_bits, bob_bits)
        result = RoundResult(
            photon_count=self.photon_count,
            eve_active=self.eve_active,
            alice_bits=alice_bits,
            bob_bits=bob_bits,
            sent_photons=sent,
            received_photons=received,
            intercepted=log,
            sifted_key_alice=sifted.alice_key,
            sifted_key_bob=sifted.bob_key,
            matching_indices=sifted.matching_indices,
            qber=calculate_qber(sifted.alice_key, sifted.bob_key),
        )
        result.eve_detected = result.qber >= self.threshold

        errors = 0
        for compared, (a, b) in enumerate(zip(sifted.alice_key, sifted.bob_key), start=1):
            if a != b:
                errors += 1
            result.qber_history.append(errors / compared)

        return result


def run_protocol(
    photon_count: int,
    eve_active: bool = False,
    intercept_rate: float = 1.0,
    threshold: float = QBER_ABORT_THRESHOLD,
) -> RoundResult:
    """Convenience wrapper around :meth:`BB84Protocol.full_run`."""
    return BB84Protocol(photon_count, eve_active, intercept_rate, threshold).full_run()
