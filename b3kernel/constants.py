"""Shared BLAKE3 constants, flags and little-endian word helpers."""

from __future__ import annotations

import enum
import struct
from collections.abc import Sequence

BLOCK_LEN = 64
KEY_LEN = 32
OUT_LEN = 32

MASK32 = 0xFFFFFFFF
MASK64 = 0xFFFFFFFFFFFFFFFF

IV: tuple[int, ...] = (
    0x6A09E667,
    0xBB67AE85,
    0x3C6EF372,
    0xA54FF53A,
    0x510E527F,
    0x9B05688C,
    0x1F83D9AB,
    0x5BE0CD19,
)

MSG_SCHEDULE: tuple[tuple[int, ...], ...] = (
    (0, 1, 2, 3, 4, 5, 6, 7, 8, 9, 10, 11, 12, 13, 14, 15),
    (2, 6, 3, 10, 7, 0, 4, 13, 1, 11, 12, 5, 9, 14, 15, 8),
    (3, 4, 10, 12, 13, 2, 7, 14, 6, 5, 9, 0, 11, 15, 8, 1),
    (10, 7, 12, 9, 14, 3, 13, 15, 4, 0, 11, 2, 5, 8, 1, 6),
    (12, 13, 9, 11, 15, 10, 14, 8, 7, 2, 5, 3, 0, 1, 6, 4),
    (9, 14, 11, 5, 8, 12, 15, 1, 13, 3, 0, 10, 2, 6, 4, 7),
    (11, 15, 5, 0, 1, 9, 8, 6, 14, 10, 2, 12, 3, 4, 7, 13),
)

_KEY_WORDS = struct.Struct("<8I")
_BLOCK_WORDS = struct.Struct("<16I")
_WORD = struct.Struct("<I")


class Flag(enum.IntFlag):
    """Domain-separation flags mixed into every compression."""

    CHUNK_START = 1 << 0
    CHUNK_END = 1 << 1
    PARENT = 1 << 2
    ROOT = 1 << 3
    KEYED_HASH = 1 << 4
    DERIVE_KEY_CONTEXT = 1 << 5
    DERIVE_KEY_MATERIAL = 1 << 6


def _check_u64(x: int) -> None:
    if not 0 <= x <= MASK64:
        raise ValueError(f"value {x!r} does not fit in 64 unsigned bits")


def highest_one(x: int) -> int:
    """Return the index of the highest set bit of a nonzero 64-bit value."""
    _check_u64(x)
    if x == 0:
        raise ValueError("highest_one is undefined for zero")
    return x.bit_length() - 1


def popcnt(x: int) -> int:
    """Return the number of set bits of a 64-bit value."""
    _check_u64(x)
    return bin(x).count("1")


def round_down_to_power_of_2(x: int) -> int:
    """Return the largest power of two not above x; 1 when x is 0."""
    return 1 << highest_one(x | 1)


def counter_low(counter: int) -> int:
    """Return the low 32 bits of a 64-bit counter."""
    return counter & MASK32


def counter_high(counter: int) -> int:
    """Return bits 32..63 of a 64-bit counter."""
    return (counter >> 32) & MASK32


def load32(data: bytes | bytearray | memoryview) -> int:
    """Read a little-endian 32-bit word from the first four bytes of data."""
    if len(data) < 4:
        raise ValueError("load32 needs at least 4 bytes")
    return _WORD.unpack_from(data)[0]


def store32(word: int) -> bytes:
    """Encode a 32-bit word as four little-endian bytes."""
    if not 0 <= word <= MASK32:
        raise ValueError(f"word {word!r} does not fit in 32 unsigned bits")
    return _WORD.pack(word)


def load_key_words(key: bytes | bytearray | memoryview) -> tuple[int, ...]:
    """Split a 32-byte key into eight little-endian words."""
    if len(key) != KEY_LEN:
        raise ValueError(f"key must be {KEY_LEN} bytes, got {len(key)}")
    return _KEY_WORDS.unpack(key)


def load_block_words(block: bytes | bytearray | memoryview) -> tuple[int, ...]:
    """Split a 64-byte block into sixteen little-endian words."""
    if len(block) != BLOCK_LEN:
        raise ValueError(f"block must be {BLOCK_LEN} bytes, got {len(block)}")
    return _BLOCK_WORDS.unpack(block)


def store_cv_words(cv_words: Sequence[int]) -> bytes:
    """Encode eight chaining-value words as 32 little-endian bytes."""
    if len(cv_words) != 8:
        raise ValueError(f"chaining value must have 8 words, got {len(cv_words)}")
    try:
        return _KEY_WORDS.pack(*cv_words)
    except struct.error as exc:
        raise ValueError(str(exc)) from exc