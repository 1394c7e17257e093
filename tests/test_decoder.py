import pytest

from ftx.proto.decoder import FrameDecoder
from ftx.proto.frame import FrameError, HeaderErrorKind, encode_frame
from ftx.proto.types import HEADER_SIZE, FrameType


def filled(n: int, value: int) -> bytes:
    return bytes([value]) * n


def test_single_frame_single_feed():
    payload = filled(8, 0xAB)
    encoded = encode_frame(FrameType.CHUNK, payload)
    dec = FrameDecoder()
    dec.feed(encoded)
    assert dec.has_frame()
    frame = dec.take_frame()
    assert frame.header.frame_type == FrameType.CHUNK
    assert frame.header.payload_len == len(payload)
    assert frame.payload == payload
    assert not dec.has_frame()
    assert not dec.poisoned


def test_zero_length_frame():
    dec = FrameDecoder()
    dec.feed(encode_frame(FrameType.ACK, b""))
    assert dec.has_frame()
    frame = dec.take_frame()
    assert frame.header.frame_type == FrameType.ACK
    assert frame.header.payload_len == 0
    assert frame.payload == b""


def test_multiple_frames_in_one_feed():
    p1 = filled(4, 0x11)
    p2 = filled(7, 0x22)
    combined = encode_frame(FrameType.HELLO, p1) + encode_frame(FrameType.MANIFEST, p2)
    dec = FrameDecoder()
    dec.feed(combined)
    assert dec.has_frame()
    f1 = dec.take_frame()
    assert f1.header.frame_type == FrameType.HELLO
    assert f1.payload == p1
    assert dec.has_frame()
    f2 = dec.take_frame()
    assert f2.header.frame_type == FrameType.MANIFEST
    assert f2.payload == p2
    assert not dec.has_frame()


def test_bytewise_feed():
    payload = filled(13, 0xCD)
    encoded = encode_frame(FrameType.CHUNK, payload)
    dec = FrameDecoder()
    for i in range(len(encoded) - 1):
        dec.feed(encoded[i : i + 1])
        assert not dec.has_frame(), f"frame appeared early at i={i}"
    dec.feed(encoded[-1:])
    assert dec.has_frame()
    assert dec.take_frame().payload == payload


def test_poisoned_on_bad_crc():
    encoded = bytearray(encode_frame(FrameType.CHUNK, filled(4, 0x33)))
    encoded[5] ^= 0xAA
    dec = FrameDecoder()
    with pytest.raises(FrameError) as info:
        dec.feed(bytes(encoded))
    assert info.value.kind is HeaderErrorKind.BAD_CRC
    assert dec.poisoned
    assert dec.last_error is HeaderErrorKind.BAD_CRC
    assert dec.last_error_message() == "header CRC mismatch"
    with pytest.raises(FrameError):
        dec.feed(b"")


def test_poisoned_on_oversized_payload():
    encoded = encode_frame(FrameType.CHUNK, filled(2000, 0x44))
    dec = FrameDecoder(max_payload=1000)
    with pytest.raises(FrameError):
        dec.feed(encoded)
    assert dec.poisoned
    assert dec.last_error is HeaderErrorKind.PAYLOAD_TOO_LARGE


def test_split_on_header_boundary():
    payload = filled(20, 0x77)
    encoded = encode_frame(FrameType.CHUNK, payload)
    dec = FrameDecoder()
    dec.feed(encoded[:HEADER_SIZE])
    assert not dec.has_frame()
    dec.feed(encoded[HEADER_SIZE:])
    assert dec.has_frame()
    assert dec.take_frame().payload == payload


def test_residual_bytes_preserved_across_frames():
    combined = (
        encode_frame(FrameType.HELLO, filled(3, 0xA1))
        + encode_frame(FrameType.CHUNK, filled(5, 0xB2))
        + filled(4, 0x99)
    )
    dec = FrameDecoder()
    dec.feed(combined)
    assert dec.has_frame()
    assert dec.take_frame().header.frame_type == FrameType.HELLO
    assert dec.has_frame()
    assert dec.take_frame().header.frame_type == FrameType.CHUNK
    assert not dec.has_frame()
    assert not dec.poisoned


def test_take_frame_without_frame_raises():
    dec = FrameDecoder()
    with pytest.raises(LookupError):
        dec.take_frame()


def test_frames_generator_yields_all_ready_frames():
    combined = b"".join(
        encode_frame(t, filled(i + 1, i)) for i, t in enumerate([FrameType.HELLO, FrameType.ACK, FrameType.ERROR])
    )
    dec = FrameDecoder()
    dec.feed(combined)
    types = [f.header.frame_type for f in dec.frames()]
    assert types == [FrameType.HELLO, FrameType.ACK, FrameType.ERROR]
    assert not dec.has_frame()


def test_bad_header_after_good_frame_poisons_on_next_feed():
    good = encode_frame(FrameType.HELLO, filled(2, 0x01))
    bad = bytearray(encode_frame(FrameType.ACK, b""))
    bad[6] ^= 0x01
    dec = FrameDecoder()
    dec.feed(good + bytes(bad))
    frame = dec.take_frame()
    assert frame.payload == filled(2, 0x01)
    assert dec.poisoned
    with pytest.raises(FrameError) as info:
        dec.feed(b"")
    assert info.value.kind is HeaderErrorKind.BAD_CRC


def test_last_error_message_empty_when_healthy():
    dec = FrameDecoder()
    dec.feed(filled(3, 0))
    assert dec.last_error_message() == ""
    assert dec.last_error is None