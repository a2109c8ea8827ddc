import os

import pytest

from arbiter.state import STATE_SIZE, State, decode, encode


def _state() -> State:
    return State(
        vars=[bytes([i]) * 32 for i in range(1, 5)],
        memory_hash=b"\xaa" * 32,
        input_hash=b"\xbb" * 32,
    )


def test_layout_is_vars_then_hashes():
    raw = encode(_state())
    assert len(raw) == STATE_SIZE == 192
    assert raw[:32] == b"\x01" * 32
    assert raw[96:128] == b"\x04" * 32
    assert raw[128:160] == b"\xaa" * 32
    assert raw[160:] == b"\xbb" * 32


def test_decode_encode_roundtrip_random_bytes():
    for _ in range(8):
        raw = os.urandom(STATE_SIZE)
        result = decode(raw)
        assert result.ok
        assert encode(result.state) == raw


def test_decode_accepts_bytearray():
    raw = encode(_state())
    assert decode(bytearray(raw)).state == _state()


@pytest.mark.parametrize("size", [0, 1, STATE_SIZE - 1, STATE_SIZE + 1, 1024])
def test_decode_wrong_length_fails_cleanly(size):
    result = decode(b"\x00" * size)
    assert not result.ok
    assert result.state is None
    assert result.reason


@pytest.mark.parametrize("value", [None, 42, "00" * STATE_SIZE, [0] * STATE_SIZE])
def test_decode_non_bytes_fails_cleanly(value):
    assert not decode(value).ok


def test_encode_rejects_bad_widths():
    bad = _state()
    bad.memory_hash = b"\x00" * 31
    with pytest.raises(ValueError):
        encode(bad)

    bad = _state()
    bad.vars = bad.vars[:3]
    with pytest.raises(ValueError):
        encode(bad)


def test_block_property_splits_words():
    state = State()
    state.block = bytes(range(128))
    assert state.vars[1] == bytes(range(32, 64))
    assert state.block == bytes(range(128))
    with pytest.raises(ValueError):
        state.block = b"\x00" * 127
