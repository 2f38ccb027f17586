"""
One-time pad over a BB84 key.

Each key element is a 0/1 mask applied to the message byte at the same
position (cycling through the key), so encryption flips the low bit of every
byte that lines up with a 1.  Ciphertext travels as standard base64.
"""
from __future__ import annotations

import base64
import binascii
from typing import List, Sequence

DECRYPTION_FAILED = "Decryption failed"


def _xor(data: bytes, key: Sequence[int]) -> bytes:
    return bytes(b ^ key[i % len(key)] for i, b in enumerate(data))


def encrypt(message: str, key: Sequence[int]) -> str:
    if not key:
        return ""
    return base64.b64encode(_xor(message.encode("utf-8"), key)).decode("ascii")


def decrypt(ciphertext: str, key: Sequence[int]) -> str:
    """
    Inverse of :func:`encrypt`.  Returns an empty string without a key or
    ciphertext and :data:`DECRYPTION_FAILED` when the text cannot be decoded.
    """
    if not key or not ciphertext:
        return ""
    try:
        # Line breaks and spaces from copy/paste are ignored
        raw = base64.b64decode("".join(ciphertext.split()), validate=True)
        return _xor(raw, key).decode("utf-8")
    except (binascii.Error, ValueError):
        return DECRYPTION_FAILED


def bits_to_hex(bits: Sequence[int]) -> str:
    """Packs bits MSB-first into bytes (zero-padded) and renders them as hex."""
    padded: List[int] = list(bits) + [0] * ((-len(bits)) % 8)
    ba = bytearray()
    for i in range(0, len(padded), 8):
        byte = 0
        for b in padded[i:i + 8]:
            byte = (byte << 1) | b
        ba.append(byte)
    return bytes(ba).hex()
