"""Straightforward BLAKE3 compression and multi-input chunk hashing."""

from __future__ import annotations

import struct
from collections.abc import Iterable, Sequence

from b3kernel.constants import (
    BLOCK_LEN,
    IV,
    MASK32,
    MASK64,
    MSG_SCHEDULE,
    counter_high,
    counter_low,
    load_block_words,
    store_cv_words,
)

_OUT_WORDS = struct.Struct("<16I")

# Four column mixes followed by four diagonal mixes.
_QUARTERS = (
    (0, 4, 8, 12),
    (1, 5, 9, 13),
    (2, 6, 10, 14),
    (3, 7, 11, 15),
    (0, 5, 10, 15),
    (1, 6, 11, 12),
    (2, 7, 8, 13),
    (3, 4, 9, 14),
)


def _rotr32(w: int, c: int) -> int:
    return ((w >> c) | (w << (32 - c))) & MASK32


def _g(state: list[int], a: int, b: int, c: int, d: int, x: int, y: int) -> None:
    state[a] = (state[a] + state[b] + x) & MASK32
    state[d] = _rotr32(state[d] ^ state[a], 16)
    state[c] = (state[c] + state[d]) & MASK32
    state[b] = _rotr32(state[b] ^ state[c], 12)
    state[a] = (state[a] + state[b] + y) & MASK32
    state[d] = _rotr32(state[d] ^ state[a], 8)
    state[c] = (state[c] + state[d]) & MASK32
    state[b] = _rotr32(state[b] ^ state[c], 7)


def _round(state: list[int], words: Sequence[int]) -> None:
    for (a, b, c, d), x, y in zip(_QUARTERS, words[::2], words[1::2]):
        _g(state, a, b, c, d, x, y)


def _check_cv(cv: Sequence[int]) -> tuple[int, ...]:
    words = tuple(cv)
    if len(words) != 8:
        raise ValueError(f"chaining value must have 8 words, got {len(words)}")
    if any(not 0 <= w <= MASK32 for w in words):
        raise ValueError("chaining value words must fit in 32 unsigned bits")
    return words


def _compress(
    cv: Sequence[int], block: bytes, block_len: int, counter: int, flags: int
) -> tuple[tuple[int, ...], list[int]]:
    words = _check_cv(cv)
    if not 0 <= block_len <= BLOCK_LEN:
        raise ValueError(f"block_len must be between 0 and {BLOCK_LEN}")
    if not 0 <= counter <= MASK64:
        raise ValueError("counter must fit in 64 unsigned bits")
    if not 0 <= flags <= 0xFF:
        raise ValueError("flags must fit in 8 unsigned bits")
    msg = load_block_words(block)
    state = [
        *words,
        *IV[:4],
        counter_low(counter),
        counter_high(counter),
        block_len,
        int(flags),
    ]
    for schedule in MSG_SCHEDULE:
        _round(state, [msg[i] for i in schedule])
    return words, state


def compress_in_place(
    cv: Sequence[int], block: bytes, block_len: int, counter: int, flags: int
) -> tuple[int, ...]:
    """Compress one block and return the new eight-word chaining value."""
    _, state = _compress(cv, block, block_len, counter, flags)
    return tuple(a ^ b for a, b in zip(state[:8], state[8:]))


def compress_xof(
    cv: Sequence[int], block: bytes, block_len: int, counter: int, flags: int
) -> bytes:
    """Compress one block and return the full 64-byte extended output."""
    words, state = _compress(cv, block, block_len, counter, flags)
    low = [a ^ b for a, b in zip(state[:8], state[8:])]
    high = [s ^ c for s, c in zip(state[8:], words)]
    return _OUT_WORDS.pack(*low, *high)


def _hash_one(
    data: bytes,
    blocks: int,
    key: Sequence[int],
    counter: int,
    flags: int,
    flags_start: int,
    flags_end: int,
) -> bytes:
    if len(data) < blocks * BLOCK_LEN:
        raise ValueError(
            f"input of {len(data)} bytes is shorter than {blocks} blocks"
        )
    view = memoryview(data)
    cv = _check_cv(key)
    block_flags = flags | flags_start
    for remaining in range(blocks, 0, -1):
        if remaining == 1:
            block_flags |= flags_end
        start = (blocks - remaining) * BLOCK_LEN
        cv = compress_in_place(
            cv, view[start : start + BLOCK_LEN], BLOCK_LEN, counter, block_flags
        )
        block_flags = flags
    return store_cv_words(cv)


def hash_many(
    inputs: Iterable[bytes],
    blocks: int,
    key: Sequence[int],
    counter: int,
    increment_counter: bool,
    flags: int,
    flags_start: int,
    flags_end: int,
) -> bytes:
    """Hash whole blocks of each input and return the concatenated 32-byte outputs."""
    if blocks < 0:
        raise ValueError("blocks must not be negative")
    outputs = []
    for data in inputs:
        outputs.append(
            _hash_one(data, blocks, key, counter, flags, flags_start, flags_end)
        )
        if increment_counter:
            counter = (counter + 1) & MASK64
    return b"".join(outputs)