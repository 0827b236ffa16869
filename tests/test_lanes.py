import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from b3kernel import lanes, portable
from b3kernel.constants import BLOCK_LEN, IV, MASK64, Flag, load_block_words

START = int(Flag.CHUNK_START)
END = int(Flag.CHUNK_END)


def _inputs(count, blocks, seed=0):
    return [
        bytes((seed + 7 * i + 13 * j) % 251 for j in range(blocks * BLOCK_LEN))
        for i in range(count)
    ]


def _expected(inputs, blocks, key, counter, inc, flags, fs, fe):
    return portable.hash_many(inputs, blocks, key, counter, inc, flags, fs, fe)


@pytest.mark.parametrize("counter", [0, 5, 0xFFFFFFFE, 0xFFFFFFFF, MASK64 - 1])
@pytest.mark.parametrize("inc", [True, False])
def test_load_counters_lanes_match_counter_plus_index(counter, inc):
    low, high = lanes.load_counters(counter, inc)
    for i, (lo, hi) in enumerate(zip(low, high)):
        expected = (counter + (i if inc else 0)) & MASK64
        assert (hi << 32) | lo == expected


def test_load_counters_carry_into_high_word():
    low, high = lanes.load_counters(0xFFFFFFFF, True)
    assert low[0] == 0xFFFFFFFF and high[0] == 0
    assert low[1] == 0 and high[1] == 1


def test_load_counters_rejects_out_of_range():
    with pytest.raises(ValueError):
        lanes.load_counters(MASK64 + 1, True)
    with pytest.raises(ValueError):
        lanes.load_counters(-1, False)


def test_transpose_vecs_swaps_rows_and_columns():
    vecs = [tuple(range(4 * r, 4 * r + 4)) for r in range(4)]
    out = lanes.transpose_vecs(vecs)
    for r in range(4):
        for c in range(4):
            assert out[c][r] == vecs[r][c]


def test_transpose_vecs_is_involution():
    vecs = [(11, 22, 33, 44), (55, 66, 77, 88), (1, 2, 3, 4), (9, 8, 7, 6)]
    assert lanes.transpose_vecs(lanes.transpose_vecs(vecs)) == vecs


@pytest.mark.parametrize(
    "vecs", [[(1, 2, 3, 4)] * 3, [(1, 2, 3)] * 4, [(1, 2, 3, 4, 5)] * 4]
)
def test_transpose_vecs_rejects_bad_shape(vecs):
    with pytest.raises(ValueError):
        lanes.transpose_vecs(vecs)


@pytest.mark.parametrize("offset", [0, BLOCK_LEN])
def test_transpose_msg_vecs_collects_word_per_lane(offset):
    inputs = _inputs(4, 2, seed=3)
    out = lanes.transpose_msg_vecs(inputs, offset)
    assert len(out) == 16
    words = [load_block_words(d[offset : offset + BLOCK_LEN]) for d in inputs]
    for w in range(16):
        for lane in range(4):
            assert out[w][lane] == words[lane][w]


def test_transpose_msg_vecs_rejects_wrong_count_and_short_input():
    with pytest.raises(ValueError):
        lanes.transpose_msg_vecs(_inputs(3, 1), 0)
    with pytest.raises(ValueError):
        lanes.transpose_msg_vecs(_inputs(4, 1), BLOCK_LEN)


@pytest.mark.parametrize("blocks", [0, 1, 2, 3])
@pytest.mark.parametrize("inc", [True, False])
def test_hash4_matches_portable(blocks, inc):
    inputs = _inputs(4, blocks, seed=blocks)
    got = lanes.hash4(inputs, blocks, IV, 9, inc, 0, START, END)
    assert len(got) == 128
    assert got == _expected(inputs, blocks, IV, 9, inc, 0, START, END)


def test_hash4_with_zero_blocks_returns_key_per_lane():
    got = lanes.hash4(_inputs(4, 0), 0, IV, 0, True, 0, START, END)
    key_bytes = b"".join(w.to_bytes(4, "little") for w in IV)
    assert got == key_bytes * 4


def test_hash4_rejects_wrong_input_count():
    with pytest.raises(ValueError):
        lanes.hash4(_inputs(3, 1), 1, IV, 0, True, 0, START, END)


def test_hash4_rejects_short_input():
    inputs = _inputs(4, 1)
    inputs[2] = inputs[2][:10]
    with pytest.raises(ValueError):
        lanes.hash4(inputs, 1, IV, 0, True, 0, START, END)


@pytest.mark.parametrize("count", [0, 1, 3, 4, 5, 8, 9])
@pytest.mark.parametrize("inc", [True, False])
def test_hash_many_matches_portable(count, inc):
    inputs = _inputs(count, 2, seed=count)
    flags = int(Flag.KEYED_HASH)
    got = lanes.hash_many(inputs, 2, IV, 100, inc, flags, START, END)
    assert len(got) == 32 * count
    assert got == _expected(inputs, 2, IV, 100, inc, flags, START, END)


@pytest.mark.parametrize("counter", [0xFFFFFFFD, MASK64 - 2])
def test_hash_many_counter_wrap_matches_portable(counter):
    inputs = _inputs(6, 1, seed=1)
    got = lanes.hash_many(inputs, 1, IV, counter, True, 0, START, END)
    assert got == _expected(inputs, 1, IV, counter, True, 0, START, END)


def test_hash_many_parent_style_without_increment():
    inputs = _inputs(5, 1, seed=42)
    parent = int(Flag.PARENT)
    got = lanes.hash_many(inputs, 1, IV, 0, False, parent, 0, 0)
    assert got == _expected(inputs, 1, IV, 0, False, parent, 0, 0)


def test_hash_many_errors():
    with pytest.raises(ValueError):
        lanes.hash_many(_inputs(2, 1), -1, IV, 0, True, 0, START, END)
    with pytest.raises(ValueError):
        lanes.hash_many(_inputs(2, 1), 2, IV, 0, True, 0, START, END)
    with pytest.raises(ValueError):
        lanes.hash_many(_inputs(2, 1), 1, IV[:7], 0, True, 0, START, END)
    with pytest.raises(ValueError):
        lanes.hash_many(_inputs(2, 1), 1, IV, MASK64 + 1, True, 0, START, END)


@settings(max_examples=15, deadline=None)
@given(
    count=st.integers(min_value=0, max_value=6),
    blocks=st.integers(min_value=0, max_value=2),
    counter=st.integers(min_value=0, max_value=MASK64),
    inc=st.booleans(),
    key=st.lists(
        st.integers(min_value=0, max_value=0xFFFFFFFF), min_size=8, max_size=8
    ),
    seed=st.integers(min_value=0, max_value=250),
)
def test_hash_many_agrees_with_portable_property(count, blocks, counter, inc, key, seed):
    inputs = _inputs(count, blocks, seed=seed)
    got = lanes.hash_many(inputs, blocks, key, counter, inc, 0, START, END)
    assert got == _expected(inputs, blocks, key, counter, inc, 0, START, END)