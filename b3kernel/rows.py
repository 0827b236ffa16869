"""BLAKE3 compression on four-lane row vectors, with a four-way chunk hasher.

The single-block compression keeps the 4x4 state as four rows of four 32-bit
lanes and mixes columns and diagonals by rotating rows in and out of diagonal
position. The message words are fed in through a fixed lane permutation
applied once per round. The multi-input hasher processes four inputs side by
side, one input per lane.
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
    load_block_words,
    store_cv_words,
)

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


# --- lane primitives -------------------------------------------------------


def _splat(x: int) -> Vec:
    return (x, x, x, x)


def _add(a: Vec, b: Vec) -> Vec:
    return tuple((x + y) & MASK32 for x, y in zip(a, b))  # type: ignore[return-value]


def _xor(a: Vec, b: Vec) -> Vec:
    return tuple(x ^ y for x, y in zip(a, b))  # type: ignore[return-value]


def _rotr(a: Vec, c: int) -> Vec:
    return tuple(((x >> c) | (x << (32 - c))) & MASK32 for x in a)  # type: ignore[return-value]


def _shuffle(a: Vec, z: int, y: int, x: int, w: int) -> Vec:
    """Pick lanes of one vector; selectors are given highest lane first."""
    return (a[w], a[x], a[y], a[z])


def _shuffle2(a: Vec, b: Vec, z: int, y: int, x: int, w: int) -> Vec:
    """Two low lanes from a, two high lanes from b; selectors highest first."""
    return (a[w], a[x], b[y], b[z])


def _unpacklo32(a: Vec, b: Vec) -> Vec:
    return (a[0], b[0], a[1], b[1])


def _unpackhi32(a: Vec, b: Vec) -> Vec:
    return (a[2], b[2], a[3], b[3])


def _unpacklo64(a: Vec, b: Vec) -> Vec:
    return (a[0], a[1], b[0], b[1])


def _unpackhi64(a: Vec, b: Vec) -> Vec:
    return (a[2], a[3], b[2], b[3])


def _blend16(a: Vec, b: Vec, imm8: int) -> Vec:
    """Select each 16-bit half from b where its bit in imm8 is set, else from a."""
    lanes = []
    for lane, (x, y) in enumerate(zip(a, b)):
        low = y if (imm8 >> (2 * lane)) & 1 else x
        high = y if (imm8 >> (2 * lane + 1)) & 1 else x
        lanes.append((low & 0xFFFF) | (high & 0xFFFF0000))
    return tuple(lanes)  # type: ignore[return-value]


# --- single-block compression ---------------------------------------------


def _g(rows: list[Vec], m: Vec, rot_d: int, rot_b: int) -> None:
    r0, r1, r2, r3 = rows
    r0 = _add(_add(r0, m), r1)
    r3 = _rotr(_xor(r3, r0), rot_d)
    r2 = _add(r2, r3)
    r1 = _rotr(_xor(r1, r2), rot_b)
    rows[:] = [r0, r1, r2, r3]


def _diagonalize(rows: list[Vec]) -> None:
    rows[0] = _shuffle(rows[0], 2, 1, 0, 3)
    rows[3] = _shuffle(rows[3], 1, 0, 3, 2)
    rows[2] = _shuffle(rows[2], 0, 3, 2, 1)


def _undiagonalize(rows: list[Vec]) -> None:
    rows[0] = _shuffle(rows[0], 0, 3, 2, 1)
    rows[3] = _shuffle(rows[3], 1, 0, 3, 2)
    rows[2] = _shuffle(rows[2], 2, 1, 0, 3)


def _round(rows: list[Vec], t: tuple[Vec, Vec, Vec, Vec]) -> None:
    t0, t1, t2, t3 = t
    _g(rows, t0, 16, 12)
    _g(rows, t1, 8, 7)
    _diagonalize(rows)
    _g(rows, t2, 16, 12)
    _g(rows, t3, 8, 7)
    _undiagonalize(rows)


def _first_schedule(m0: Vec, m1: Vec, m2: Vec, m3: Vec) -> tuple[Vec, Vec, Vec, Vec]:
    t0 = _shuffle2(m0, m1, 2, 0, 2, 0)
    t1 = _shuffle2(m0, m1, 3, 1, 3, 1)
    t2 = _shuffle(_shuffle2(m2, m3, 2, 0, 2, 0), 2, 1, 0, 3)
    t3 = _shuffle(_shuffle2(m2, m3, 3, 1, 3, 1), 2, 1, 0, 3)
    return t0, t1, t2, t3


def _permute(m0: Vec, m1: Vec, m2: Vec, m3: Vec) -> tuple[Vec, Vec, Vec, Vec]:
    t0 = _shuffle(_shuffle2(m0, m1, 3, 1, 1, 2), 0, 3, 2, 1)
    t1 = _blend16(_shuffle(m0, 0, 0, 3, 3), _shuffle2(m2, m3, 3, 3, 2, 2), 0xCC)
    t2 = _shuffle(_blend16(_unpacklo64(m3, m1), m2, 0xC0), 1, 3, 2, 0)
    t3 = _shuffle(_unpacklo32(m2, _unpackhi32(m1, m3)), 0, 1, 3, 2)
    return t0, t1, t2, t3


def _check_cv(cv: Sequence[int]) -> tuple[int, ...]:
    words = tuple(cv)
    if len(words) != 8:
        raise ValueError(f"chaining value must have 8 words, got {len(words)}")
    if any(not 0 <= w <= MASK32 for w in words):
        raise ValueError("chaining value words must fit in 32 unsigned bits")
    return words


def _compress_pre(
    cv: Sequence[int], block: bytes, block_len: int, counter: int, flags: int
) -> tuple[tuple[int, ...], list[Vec]]:
    words = _check_cv(cv)
    if not 0 <= block_len <= BLOCK_LEN:
        raise ValueError(f"block_len must be between 0 and {BLOCK_LEN}")
    if not 0 <= counter <= MASK64:
        raise ValueError("counter must fit in 64 unsigned bits")
    if not 0 <= flags <= 0xFF:
        raise ValueError("flags must fit in 8 unsigned bits")
    msg = load_block_words(block)
    rows: list[Vec] = [
        words[0:4],  # type: ignore[list-item]
        words[4:8],  # type: ignore[list-item]
        IV[0:4],  # type: ignore[list-item]
        (counter_low(counter), counter_high(counter), block_len, int(flags)),
    ]
    schedule = _first_schedule(msg[0:4], msg[4:8], msg[8:12], msg[12:16])  # type: ignore[arg-type]
    _round(rows, schedule)
    for _ in range(6):
        schedule = _permute(*schedule)
        _round(rows, schedule)
    return words, rows


def compress_in_place(
    cv: Sequence[int], block: bytes, block_len: int, counter: int, flags: int
) -> tuple[int, ...]:
    """Compress one block and return the new eight-word chaining value."""
    _, rows = _compress_pre(cv, block, block_len, counter, flags)
    return _xor(rows[0], rows[2]) + _xor(rows[1], rows[3])


def compress_xof(
    cv: Sequence[int], block: bytes, block_len: int, counter: int, flags: int
) -> bytes:
    """Compress one block and return the full 64-byte extended output."""
    words, rows = _compress_pre(cv, block, block_len, counter, flags)
    parts = (
        _xor(rows[0], rows[2]),
        _xor(rows[1], rows[3]),
        _xor(rows[2], words[0:4]),  # type: ignore[arg-type]
        _xor(rows[3], words[4:8]),  # type: ignore[arg-type]
    )
    return b"".join(_VEC.pack(*p) for p in parts)


# --- four inputs in parallel ----------------------------------------------


def _g4(v: list[Vec], a: int, b: int, c: int, d: int, x: Vec, y: Vec) -> None:
    v[a] = _add(_add(v[a], x), v[b])
    v[d] = _rotr(_xor(v[d], v[a]), 16)
    v[c] = _add(v[c], v[d])
    v[b] = _rotr(_xor(v[b], v[c]), 12)
    v[a] = _add(_add(v[a], y), v[b])
    v[d] = _rotr(_xor(v[d], v[a]), 8)
    v[c] = _add(v[c], v[d])
    v[b] = _rotr(_xor(v[b], v[c]), 7)


def _round4(v: list[Vec], m: Sequence[Vec], schedule: Sequence[int]) -> None:
    words = [m[i] for i in schedule]
    for (a, b, c, d), x, y in zip(_QUARTERS, words[::2], words[1::2]):
        _g4(v, a, b, c, d, x, y)


def _transpose(vecs: Sequence[Vec]) -> list[Vec]:
    ab_01 = _unpacklo32(vecs[0], vecs[1])
    ab_23 = _unpackhi32(vecs[0], vecs[1])
    cd_01 = _unpacklo32(vecs[2], vecs[3])
    cd_23 = _unpackhi32(vecs[2], vecs[3])
    return [
        _unpacklo64(ab_01, cd_01),
        _unpackhi64(ab_01, cd_01),
        _unpacklo64(ab_23, cd_23),
        _unpackhi64(ab_23, cd_23),
    ]


def _transpose_msg(inputs: Sequence[bytes], block_offset: int) -> list[Vec]:
    out: list[Vec] = []
    for part in range(4):
        loaded = [
            _VEC.unpack_from(data, block_offset + 16 * part) for data in inputs
        ]
        out.extend(_transpose(loaded))
    return out


def _load_counters(counter: int, increment_counter: bool) -> tuple[Vec, Vec]:
    add = (0, 1, 2, 3) if increment_counter else (0, 0, 0, 0)
    low = tuple((counter_low(counter) + a) & MASK32 for a in add)
    # A lane carries into the high word when its low word wrapped around.
    high = tuple(
        (counter_high(counter) + (1 if a > lo else 0)) & MASK32
        for a, lo in zip(add, low)
    )
    return low, high  # type: ignore[return-value]


def _hash4(
    inputs: Sequence[bytes],
    blocks: int,
    key: tuple[int, ...],
    counter: int,
    increment_counter: bool,
    flags: int,
    flags_start: int,
    flags_end: int,
) -> bytes:
    h = [_splat(k) for k in key]
    counter_lo, counter_hi = _load_counters(counter, increment_counter)
    block_flags = flags | flags_start
    for block in range(blocks):
        if block + 1 == blocks:
            block_flags |= flags_end
        msg = _transpose_msg(inputs, block * BLOCK_LEN)
        v = [
            *h,
            *(_splat(w) for w in IV[:4]),
            counter_lo,
            counter_hi,
            _splat(BLOCK_LEN),
            _splat(block_flags),
        ]
        for schedule in MSG_SCHEDULE:
            _round4(v, msg, schedule)
        h = [_xor(v[i], v[i + 8]) for i in range(8)]
        block_flags = flags
    first = _transpose(h[0:4])
    second = _transpose(h[4:8])
    return b"".join(
        _VEC.pack(*lo) + _VEC.pack(*hi) for lo, hi in zip(first, second)
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
    if not 0 <= counter <= MASK64:
        raise ValueError("counter must fit in 64 unsigned bits")
    key_words = _check_cv(key)
    items = [bytes(data) for data in inputs]
    for data in items:
        if len(data) < blocks * BLOCK_LEN:
            raise ValueError(
                f"input of {len(data)} bytes is shorter than {blocks} blocks"
            )
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