"""Salsa20/8 core and the scrypt BlockMix for r = 1 (RFC 7914, sections 3 and 4)."""

from __future__ import annotations

import struct

MASK32 = 0xFFFFFFFF

SALSA_BLOCK = 64
MIX_BLOCK = 2 * SALSA_BLOCK

# (target, a, b, rotation): x[target] ^= rotl(x[a] + x[b], rotation)
_DOUBLE_ROUND = (
    # columns
    (4, 0, 12, 7), (8, 4, 0, 9), (12, 8, 4, 13), (0, 12, 8, 18),
    (9, 5, 1, 7), (13, 9, 5, 9), (1, 13, 9, 13), (5, 1, 13, 18),
    (14, 10, 6, 7), (2, 14, 10, 9), (6, 2, 14, 13), (10, 6, 2, 18),
    (3, 15, 11, 7), (7, 3, 15, 9), (11, 7, 3, 13), (15, 11, 7, 18),
    # rows
    (1, 0, 3, 7), (2, 1, 0, 9), (3, 2, 1, 13), (0, 3, 2, 18),
    (6, 5, 4, 7), (7, 6, 5, 9), (4, 7, 6, 13), (5, 4, 7, 18),
    (11, 10, 9, 7), (8, 11, 10, 9), (9, 8, 11, 13), (10, 9, 8, 18),
    (12, 15, 14, 7), (13, 12, 15, 9), (14, 13, 12, 13), (15, 14, 13, 18),
)


def xor_bytes(a: bytes, b: bytes) -> bytes:
    if len(a) != len(b):
        raise ValueError(f"length mismatch: {len(a)} != {len(b)}")
    return (int.from_bytes(a, "little") ^ int.from_bytes(b, "little")).to_bytes(len(a), "little")


def salsa20_8(block: bytes) -> bytes:
    """Salsa20 core reduced to 8 rounds over one 64-byte block."""
    if len(block) != SALSA_BLOCK:
        raise ValueError(f"salsa20/8 takes {SALSA_BLOCK} bytes, got {len(block)}")

    b = struct.unpack("<16I", block)
    x = list(b)
    for _ in range(4):
        for t, i, j, r in _DOUBLE_ROUND:
            s = (x[i] + x[j]) & MASK32
            x[t] ^= ((s << r) | (s >> (32 - r))) & MASK32
    return struct.pack("<16I", *[(x[k] + b[k]) & MASK32 for k in range(16)])


def block_mix(block: bytes) -> bytes:
    """BlockMix_{Salsa20/8, r=1}: two chained Salsa20/8 calls over 128 bytes."""
    if len(block) != MIX_BLOCK:
        raise ValueError(f"block_mix takes {MIX_BLOCK} bytes, got {len(block)}")

    lo, hi = block[:SALSA_BLOCK], block[SALSA_BLOCK:]
    y0 = salsa20_8(xor_bytes(hi, lo))
    y1 = salsa20_8(xor_bytes(y0, hi))
    return y0 + y1


def integerify(block: bytes) -> int:
    """First little-endian 32-bit word of the last 64-byte sub-block."""
    return int.from_bytes(block[SALSA_BLOCK:SALSA_BLOCK + 4], "little")
