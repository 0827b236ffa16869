"""Pick a BLAKE3 compression backend that suits the running machine.

Three backends are available: the straightforward one, the four-lane row
vector one and the four-way lane one. The choice follows the processor
features reported by the operating system, in the same order of preference
as vector instruction sets would be chosen. The detected features are
computed once and cached.
"""

from __future__ import annotations

import enum
import platform
import sys
import threading
from collections.abc import Iterable, Sequence

from b3kernel import lanes, portable, rows
from b3kernel.constants import MASK64

_X86_64 = frozenset({"x86_64", "amd64", "x64"})
_X86_32 = frozenset({"i386", "i486", "i586", "i686", "x86"})
_AARCH64 = frozenset({"aarch64", "arm64", "armv8l"})

_CPUINFO = "/proc/cpuinfo"


class CpuFeature(enum.IntFlag):
    """Processor features that decide which backend is used."""

    SSE2 = 1 << 0
    SSSE3 = 1 << 1
    SSE41 = 1 << 2
    AVX = 1 << 3
    AVX2 = 1 << 4
    AVX512F = 1 << 5
    AVX512VL = 1 << 6
    UNDEFINED = 1 << 30


_FLAG_NAMES = {
    "sse2": CpuFeature.SSE2,
    "ssse3": CpuFeature.SSSE3,
    "sse4_1": CpuFeature.SSE41,
    "avx": CpuFeature.AVX,
    "avx2": CpuFeature.AVX2,
    "avx512f": CpuFeature.AVX512F,
    "avx512vl": CpuFeature.AVX512VL,
}

_lock = threading.Lock()
_features = CpuFeature.UNDEFINED


def _machine() -> str:
    return platform.machine().lower()


def _is_x86() -> bool:
    machine = _machine()
    return machine in _X86_64 or machine in _X86_32


def _uses_neon() -> bool:
    return _machine() in _AARCH64 and sys.byteorder == "little"


def _reported_flags() -> set[str]:
    try:
        with open(_CPUINFO, encoding="utf-8", errors="replace") as handle:
            for line in handle:
                name, sep, value = line.partition(":")
                if sep and name.strip() == "flags":
                    return set(value.split())
    except OSError:
        pass
    return set()


def _detect() -> CpuFeature:
    machine = _machine()
    if machine not in _X86_64 and machine not in _X86_32:
        return CpuFeature(0)
    features = CpuFeature(0)
    if machine in _X86_64:
        # Every 64-bit x86 processor has SSE2.
        features |= CpuFeature.SSE2
    for name in _reported_flags():
        feature = _FLAG_NAMES.get(name)
        if feature is not None:
            features |= feature
    return features


def cpu_features() -> CpuFeature:
    """Return the processor features of this machine, detecting them once."""
    global _features
    features = _features
    if features is not CpuFeature.UNDEFINED:
        return features
    with _lock:
        if _features is CpuFeature.UNDEFINED:
            _features = _detect()
        return _features


def compress_in_place(
    cv: Sequence[int], block: bytes, block_len: int, counter: int, flags: int
) -> tuple[int, ...]:
    """Compress one block and return the new eight-word chaining value."""
    wanted = CpuFeature.AVX512VL | CpuFeature.SSE41 | CpuFeature.SSE2
    if _is_x86() and cpu_features() & wanted:
        return rows.compress_in_place(cv, block, block_len, counter, flags)
    return portable.compress_in_place(cv, block, block_len, counter, flags)


def compress_xof(
    cv: Sequence[int], block: bytes, block_len: int, counter: int, flags: int
) -> bytes:
    """Compress one block and return the full 64-byte extended output."""
    wanted = CpuFeature.AVX512VL | CpuFeature.SSE41 | CpuFeature.SSE2
    if _is_x86() and cpu_features() & wanted:
        return rows.compress_xof(cv, block, block_len, counter, flags)
    return portable.compress_xof(cv, block, block_len, counter, flags)


def xof_many(
    cv: Sequence[int],
    block: bytes,
    block_len: int,
    counter: int,
    flags: int,
    outblocks: int,
) -> bytes:
    """Return ``outblocks`` extended outputs for successive counter values."""
    if outblocks < 0:
        raise ValueError("outblocks must not be negative")
    return b"".join(
        compress_xof(cv, block, block_len, (counter + i) & MASK64, flags)
        for i in range(outblocks)
    )


def _hash_many_neon(
    items: Sequence[bytes],
    blocks: int,
    key: Sequence[int],
    counter: int,
    increment_counter: bool,
    flags: int,
    flags_start: int,
    flags_end: int,
) -> bytes:
    step = 1 if increment_counter else 0
    outputs = []
    full = len(items) - len(items) % lanes.DEGREE
    for start in range(0, full, lanes.DEGREE):
        outputs.append(
            lanes.hash4(
                items[start : start + lanes.DEGREE],
                blocks,
                key,
                counter,
                increment_counter,
                flags,
                flags_start,
                flags_end,
            )
        )
        counter = (counter + lanes.DEGREE * step) & MASK64
    for data in items[full:]:
        outputs.append(
            portable.hash_many(
                [data], blocks, key, counter, False, flags, flags_start, flags_end
            )
        )
        counter = (counter + step) & MASK64
    return b"".join(outputs)


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
    items = [bytes(data) for data in inputs]
    args = (
        blocks,
        key,
        counter,
        increment_counter,
        flags,
        flags_start,
        flags_end,
    )
    if _is_x86():
        features = cpu_features()
        wide = CpuFeature.AVX512F | CpuFeature.AVX512VL
        if (features & wide) == wide or features & (
            CpuFeature.AVX2 | CpuFeature.SSE41
        ):
            return lanes.hash_many(items, *args)
        if features & CpuFeature.SSE2:
            return rows.hash_many(items, *args)
    elif _uses_neon():
        if blocks < 0:
            raise ValueError("blocks must not be negative")
        if not 0 <= counter <= MASK64:
            raise ValueError("counter must fit in 64 unsigned bits")
        return _hash_many_neon(items, *args)
    return portable.hash_many(items, *args)


def simd_degree() -> int:
    """Return how many inputs the selected backend hashes side by side."""
    if _is_x86():
        features = cpu_features()
        wide = CpuFeature.AVX512F | CpuFeature.AVX512VL
        if (features & wide) == wide:
            return 16
        if features & CpuFeature.AVX2:
            return 8
        if features & (CpuFeature.SSE41 | CpuFeature.SSE2):
            return 4
    if _uses_neon():
        return 4
    return 1