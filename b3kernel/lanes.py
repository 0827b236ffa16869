"""Four-way BLAKE3 chunk hashing with one input per 32-bit lane.

Four inputs are hashed side by side: every state word is a vector of four
lanes, and lane ``i`` belongs to input ``i``. The message words of the four
inputs are transposed so that each vector holds the same word of every input.
Inputs left over after the last full batch of four are hashed one at a time
with the row-vector compression.
"""

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
    store_cv_words,
)
from b3kernel.rows import compress_in_place as _compress_in_place

DEGREE = 4

Vec = tuple[int, int, int, int]

_VEC = struct.Struct("<4I")

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


def _splat(x: int) -> Vec:
    return (x, x, x, x)


def _add(a: Vec, b: Vec) -> Vec:
    return tuple((x + y) & MASK32 for x, y in zip(a, b))  # type: ignore[return-value]


def _xor(a: Vec, b: Vec) -> Vec:
    return tuple(x ^ y for x, y in zip(a, b))  # type: ignore[return-value]


def _rotr(a: Vec, c: int) -> Vec:
    return tuple(((x >> c) | (x << (32 - c))) & MASK32 for x in a)  # type: ignore[return-value]


def _g(v: list[Vec], a: int, b: int, c: int, d: int, x: Vec, y: Vec) -> None:
    v[a] = _add(_add(v[a], x), v[b])
    v[d] = _rotr(_xor(v[d], v[a]), 16)
    v[c] = _add(v[c], v[d])
    v[b] = _rotr(_xor(v[b], v[c]), 12)
    v[a] = _add(_add(v[a], y), v[b])
    v[d] = _rotr(_xor(v[d], v[a]), 8)
    v[c] = _add(v[c], v[d])
    v[b] = _rotr(_xor(v[b], v[c]), 7)


def _round(v: list[Vec], m: Sequence[Vec], schedule: Sequence[int]) -> None:
    words = [m[i] for i in schedule]
    for (a, b, c, d), x, y in zip(_QUARTERS, words[::2], words[1::2]):
        _g(v, a, b, c, d, x, y)


def _check_key(key: Sequence[int]) -> tuple[int, ...]:
    words = tuple(key)
    if len(words) != 8:
        raise ValueError(f"key must have 8 words, got {len(words)}")
    if any(not 0 <= w <= MASK32 for w in words):
        raise ValueError("key words must fit in 32 unsigned bits")
    return words


def _check_counter(counter: int) -> None:
    if not 0 <= counter <= MASK64:
        raise ValueError("counter must fit in 64 unsigned bits")


def _check_inputs(items: Sequence[bytes], blocks: int) -> None:
    if blocks < 0:
        raise ValueError("blocks must not be negative")
    for data in items:
        if len(data) < blocks * BLOCK_LEN:
            raise ValueError(
                f"input of {len(data)} bytes is shorter than {blocks} blocks"
            )


def load_counters(counter: int, increment_counter: bool) -> tuple[Vec, Vec]:
    """Return the low and high counter words for four lanes.

    With ``increment_counter`` lane ``i`` carries ``counter + i``; otherwise
    every lane carries ``counter``. Wrapping follows 64-bit arithmetic.
    """
    _check_counter(counter)
    add = (0, 1, 2, 3) if increment_counter else (0, 0, 0, 0)
    low = tuple((counter_low(counter) + a) & MASK32 for a in add)
    # A lane whose low word wrapped around carries one into its high word.
    high = tuple(
        (counter_high(counter) + (1 if a > lo else 0)) & MASK32
        for a, lo in zip(add, low)
    )
    return low, high  # type: ignore[return-value]


def transpose_vecs(vecs: Sequence[Sequence[int]]) -> list[Vec]:
    """Transpose a 4x4 matrix of 32-bit words given as four row vectors."""
    rows = [tuple(v) for v in vecs]
    if len(rows) != DEGREE or any(len(r) != DEGREE for r in rows):
        raise ValueError("transpose needs four vectors of four lanes")
    return [tuple(col) for col in zip(*rows)]  # type: ignore[misc]


def transpose_msg_vecs(inputs: Sequence[bytes], block_offset: int) -> list[Vec]:
    """Load one block from each of four inputs as sixteen word vectors.

    Vector ``w`` holds message word ``w`` of every input, lane ``i`` being
    input ``i``.
    """
    if len(inputs) != DEGREE:
        raise ValueError(f"exactly {DEGREE} inputs are needed, got {len(inputs)}")
    if block_offset < 0:
        raise ValueError("block_offset must not be negative")
    for data in inputs:
        if len(data) < block_offset + BLOCK_LEN:
            raise ValueError(
                f"input of {len(data)} bytes has no full block at {block_offset}"
            )
    out: list[Vec] = []
    for part in range(4):
        loaded = [
            _VEC.unpack_from(data, block_offset + 16 * part) for data in inputs
        ]
        out.extend(transpose_vecs(loaded))
    return out


def _hash4(
    items: Sequence[bytes],
    blocks: int,
    key: tuple[int, ...],
    counter: int,
    increment_counter: bool,
    flags: int,
    flags_start: int,
    flags_end: int,
) -> bytes:
    h = [_splat(k) for k in key]
    counter_lo, counter_hi = load_counters(counter, increment_counter)
    block_flags = flags | flags_start
    for block in range(blocks):
        if block + 1 == blocks:
            block_flags |= flags_end
        msg = transpose_msg_vecs(items, block * BLOCK_LEN)
        v = [
            *h,
            *(_splat(w) for w in IV[:4]),
            counter_lo,
            counter_hi,
            _splat(BLOCK_LEN),
            _splat(block_flags),
        ]
        for schedule in MSG_SCHEDULE:
            _round(v, msg, schedule)
        h = [_xor(a, b) for a, b in zip(v[:8], v[8:])]
        block_flags = flags
    first = transpose_vecs(h[0:4])
    second = transpose_vecs(h[4:8])
    return b"".join(
        _VEC.pack(*lo) + _VEC.pack(*hi) for lo, hi in zip(first, second)
    )


def hash4(
    inputs: Sequence[bytes],
    blocks: int,
    key: Sequence[int],
    counter: int,
    increment_counter: bool,
    flags: int,
    flags_start: int,
    flags_end: int,
) -> bytes:
    """Hash whole blocks of exactly four inputs and return 128 output bytes."""
    items = [bytes(data) for data in inputs]
    if len(items) != DEGREE:
        raise ValueError(f"exactly {DEGREE} inputs are needed, got {len(items)}")
    _check_inputs(items, blocks)
    _check_counter(counter)
    return _hash4(
        items,
        blocks,
        _check_key(key),
        counter,
        increment_counter,
        flags,
        flags_start,
        flags_end,
    )


def _hash_one(
    data: bytes,
    blocks: int,
    key: tuple[int, ...],
    counter: int,
    flags: int,
    flags_start: int,
    flags_end: int,
) -> bytes:
    view = memoryview(data)
    cv = key
    block_flags = flags | flags_start
    for index in range(blocks):
        if index == blocks - 1:
            block_flags |= flags_end
        start = index * BLOCK_LEN
        cv = _compress_in_place(
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
    _check_counter(counter)
    key_words = _check_key(key)
    items = [bytes(data) for data in inputs]
    _check_inputs(items, blocks)
    step = 1 if increment_counter else 0
    outputs = []
    full = len(items) - len(items) % DEGREE
    for start in range(0, full, DEGREE):
        outputs.append(
            _hash4(
                items[start : start + DEGREE],
                blocks,
                key_words,
                counter,
                increment_counter,
                flags,
                flags_start,
                flags_end,
            )
        )
        counter = (counter + DEGREE * step) & MASK64
    for data in items[full:]:
        outputs.append(
            _hash_one(data, blocks, key_words, counter, flags, flags_start, flags_end)
        )
        counter = (counter + step) & MASK64
    return b"".join(outputs)