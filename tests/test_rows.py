import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from b3kernel import portable, rows
from b3kernel.constants import BLOCK_LEN, IV, OUT_LEN, Flag, store_cv_words

EMPTY_HASH = "af1349b9f5f9a1a6a0404dea36dcc9499bcb25c9adc112b7cc9a93cae41f3262"

words8 = st.lists(st.integers(0, 0xFFFFFFFF), min_size=8, max_size=8)
blocks64 = st.binary(min_size=BLOCK_LEN, max_size=BLOCK_LEN)
counters = st.integers(0, 0xFFFFFFFFFFFFFFFF)
flag_bytes = st.integers(0, 0xFF)
block_lens = st.integers(0, BLOCK_LEN)

ROOT_FLAGS = Flag.CHUNK_START | Flag.CHUNK_END | Flag.ROOT


def test_empty_input_hash_matches_published_value():
    out = rows.compress_xof(IV, bytes(BLOCK_LEN), 0, 0, ROOT_FLAGS)
    assert out[:OUT_LEN].hex() == EMPTY_HASH


def test_compress_in_place_of_empty_input():
    cv = rows.compress_in_place(IV, bytes(BLOCK_LEN), 0, 0, ROOT_FLAGS)
    assert store_cv_words(cv).hex() == EMPTY_HASH


@settings(max_examples=30, deadline=None)
@given(words8, blocks64, block_lens, counters, flag_bytes)
def test_compress_in_place_agrees_with_portable(cv, block, block_len, counter, flags):
    assert rows.compress_in_place(
        cv, block, block_len, counter, flags
    ) == portable.compress_in_place(cv, block, block_len, counter, flags)


@settings(max_examples=30, deadline=None)
@given(words8, blocks64, block_lens, counters, flag_bytes)
def test_compress_xof_agrees_with_portable(cv, block, block_len, counter, flags):
    assert rows.compress_xof(cv, block, block_len, counter, flags) == (
        portable.compress_xof(cv, block, block_len, counter, flags)
    )


@settings(max_examples=20, deadline=None)
@given(words8, blocks64, counters, flag_bytes)
def test_xof_prefix_is_chaining_value(cv, block, counter, flags):
    out = rows.compress_xof(cv, block, BLOCK_LEN, counter, flags)
    cv_out = rows.compress_in_place(cv, block, BLOCK_LEN, counter, flags)
    assert out[:OUT_LEN] == store_cv_words(cv_out)
    assert len(out) == 2 * OUT_LEN


def _inputs(count, blocks):
    return [bytes((i * 7 + j) & 0xFF for j in range(blocks * BLOCK_LEN)) for i in range(count)]


@pytest.mark.parametrize("count", [0, 1, 3, 4, 5, 8, 9])
@pytest.mark.parametrize("increment", [False, True])
def test_hash_many_agrees_with_portable(count, increment):
    inputs = _inputs(count, 2)
    args = (2, IV, 5, increment, 0, Flag.CHUNK_START, Flag.CHUNK_END)
    got = rows.hash_many(inputs, *args)
    assert got == portable.hash_many(inputs, *args)
    assert len(got) == count * OUT_LEN


@pytest.mark.parametrize("counter", [0xFFFFFFFE, 0xFFFFFFFFFFFFFFFE])
def test_hash_many_counter_carry_agrees_with_portable(counter):
    inputs = _inputs(6, 1)
    args = (1, IV, counter, True, Flag.KEYED_HASH, Flag.CHUNK_START, Flag.CHUNK_END)
    assert rows.hash_many(inputs, *args) == portable.hash_many(inputs, *args)


def test_hash_many_four_wide_matches_single_inputs():
    inputs = _inputs(4, 3)
    together = rows.hash_many(inputs, 3, IV, 10, True, 0, 1, 2)
    separate = b"".join(
        rows.hash_many([data], 3, IV, 10 + i, True, 0, 1, 2)
        for i, data in enumerate(inputs)
    )
    assert together == separate


def test_hash_many_without_increment_gives_equal_outputs_for_equal_inputs():
    inputs = [bytes(range(BLOCK_LEN))] * 5
    out = rows.hash_many(inputs, 1, IV, 3, False, 0, 1, 2)
    chunks = [out[i : i + OUT_LEN] for i in range(0, len(out), OUT_LEN)]
    assert len(set(chunks)) == 1


def test_hash_many_zero_blocks_returns_key_bytes():
    out = rows.hash_many(_inputs(5, 0), 0, IV, 0, True, 0, 1, 2)
    assert out == store_cv_words(IV) * 5


@settings(max_examples=10, deadline=None)
@given(
    st.lists(st.binary(min_size=BLOCK_LEN, max_size=BLOCK_LEN), min_size=0, max_size=6),
    words8,
    counters,
    st.booleans(),
)
def test_hash_many_property_agrees_with_portable(inputs, key, counter, increment):
    args = (1, key, counter, increment, 0, Flag.CHUNK_START, Flag.CHUNK_END)
    assert rows.hash_many(inputs, *args) == portable.hash_many(inputs, *args)


def test_short_input_rejected():
    with pytest.raises(ValueError):
        rows.hash_many([bytes(BLOCK_LEN)], 2, IV, 0, False, 0, 0, 0)


def test_negative_blocks_rejected():
    with pytest.raises(ValueError):
        rows.hash_many([], -1, IV, 0, False, 0, 0, 0)


def test_bad_key_rejected():
    with pytest.raises(ValueError):
        rows.hash_many([bytes(BLOCK_LEN)], 1, IV[:7], 0, False, 0, 0, 0)


def test_bad_cv_rejected():
    with pytest.raises(ValueError):
        rows.compress_in_place(IV[:4], bytes(BLOCK_LEN), BLOCK_LEN, 0, 0)


def test_bad_block_length_rejected():
    with pytest.raises(ValueError):
        rows.compress_xof(IV, bytes(BLOCK_LEN - 1), BLOCK_LEN, 0, 0)


@pytest.mark.parametrize(
    "block_len, counter, flags",
    [(BLOCK_LEN + 1, 0, 0), (-1, 0, 0), (0, -1, 0), (0, 1 << 64, 0), (0, 0, 0x100)],
)
def test_out_of_range_parameters_rejected(block_len, counter, flags):
    with pytest.raises(ValueError):
        rows.compress_in_place(IV, bytes(BLOCK_LEN), block_len, counter, flags)