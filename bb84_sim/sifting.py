"""
Basis reconciliation (sifting) and quantum bit error rate.

Pure functions over plain sequences; nothing here raises on degenerate
input.  Ambiguous input to the error-rate estimate is treated as a worst-case
security failure.
"""
from __future__ import annotations

from typing import Iterable, List, NamedTuple, Sequence

from .qubit import QuantumBit


class SiftResult(NamedTuple):
    alice_key: List[int]
    bob_key: List[int]
    matching_indices: List[int]


def sift(alice_bits: Sequence[QuantumBit], bob_bits: Sequence[QuantumBit]) -> SiftResult:
    """
    Keeps the positions where Alice and Bob used the same basis.

    Only the common prefix ``min(len(alice_bits), len(bob_bits))`` is
    compared.  Relative order is preserved and both keys come out the same
    length.
    """
    alice_key: List[int] = []
    bob_key: List[int] = []
    matching: List[int] = []

    for i, (a, b) in enumerate(zip(alice_bits, bob_bits)):
        if a.basis == b.basis:
            alice_key.append(a.bit)
            bob_key.append(b.bit)
            matching.append(i)

    return SiftResult(alice_key, bob_key, matching)


def calculate_qber(alice_key: Sequence[int], bob_key: Sequence[int]) -> float:
    """
    Fraction of sifted positions where the two keys disagree.

    Returns 1.0 when the keys differ in length or are empty.
    """
    if len(alice_key) != len(bob_key) or not alice_key:
        return 1.0
    errors = sum(1 for a, b in zip(alice_key, bob_key) if a != b)
    return errors / len(alice_key)


def finalize_key(sifted_key: Sequence[int], error_indices: Iterable[int]) -> List[int]:
    """Drops the positions named in *error_indices*; inputs are not modified."""
    drop = set(error_indices)
    return [bit for i, bit in enumerate(sifted_key) if i not in drop]
