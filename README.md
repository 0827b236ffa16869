# b3kernel

Pure-Python building blocks of the BLAKE3 hash function: the compression
function, its 64-byte extended output, and hashing of many equal-length
inputs at once. The package needs nothing beyond the standard library.

## Installing

```
pip install b3kernel
```

To run the tests:

```
pip install "b3kernel[test]"
pytest
```

## Modules

- `b3kernel.constants`: the block, key and output lengths (`BLOCK_LEN`,
  `KEY_LEN`, `OUT_LEN`), the `Flag` domain flags (`CHUNK_START`, `CHUNK_END`,
  `PARENT`, `ROOT`, `KEYED_HASH`, `DERIVE_KEY_CONTEXT`,
  `DERIVE_KEY_MATERIAL`), the initialisation vector `IV`, the
  `MSG_SCHEDULE`, and helpers for words and bits: `load32`, `store32`,
  `load_key_words`, `load_block_words`, `store_cv_words`, `counter_low`,
  `counter_high`, `highest_one`, `popcnt`, `round_down_to_power_of_2`.
- `b3kernel.portable`: the reference kernel, mixing one word at a time:
  `compress_in_place`, `compress_xof`, `hash_many`.
- `b3kernel.rows`: a kernel that keeps the state as four rows of four words
  and hashes four inputs side by side in `hash_many`. It offers the same
  functions as `portable` with the same results.
- `b3kernel.lanes`: a kernel that hashes four inputs side by side, one input
  per lane: `load_counters`, `transpose_vecs`, `transpose_msg_vecs`, `hash4`
  (exactly four inputs) and `hash_many` (any number; inputs left over after
  the last group of four are hashed one at a time).
- `b3kernel.dispatch`: chooses a kernel for the running machine and offers
  `compress_in_place`, `compress_xof`, `xof_many` and `hash_many`.
  `cpu_features()` returns the detected `CpuFeature` set, worked out once
  and cached; on x86 it reads the `flags` line of `/proc/cpuinfo` (64-bit x86
  always counts as having `SSE2`), and elsewhere it is empty.
  `simd_degree()` reports how many inputs the chosen kernel would hash side by
  side: 16, 8, 4 or 1.

## Example

Hash one full chunk, 16 blocks of 64 bytes, as the root of the tree:

```python
from b3kernel.constants import IV, Flag
from b3kernel.dispatch import hash_many

chunk = bytes(1024)
digest = hash_many(
    [chunk], 16, IV, 0, True,
    0, Flag.CHUNK_START, Flag.CHUNK_END | Flag.ROOT,
)
print(digest.hex())
```

`hash_many` returns the 32-byte outputs of all inputs joined into one
`bytes` value, in input order. With `increment_counter` true, input `i` is
hashed with counter `counter + i`; otherwise every input uses `counter`.
`flags_start` is added to the first block of each input and `flags_end` to
the last.

A chaining value is a sequence of eight 32-bit words. The compression
functions return new values and never change their arguments:
`compress_in_place` returns the next eight words as a tuple, `compress_xof`
returns 64 bytes of output, and `xof_many` returns `outblocks` output blocks
joined together, the counter going up by one for each block (no blocks gives
empty bytes). Out-of-range arguments, such as a block that is not 64 bytes,
a counter beyond 64 bits or an input shorter than the requested number of
blocks, raise `ValueError`.

## What this package does not do

It provides the kernels only. There is no incremental hasher object, no
splitting of arbitrary-length messages into chunks, no merging of chaining
values into parent nodes, and no command-line tool for checksumming files.
Callers who need a complete hash of arbitrary input assemble the tree
themselves from these functions and `Flag` values.