import struct

import pytest

from ftx.proto.frame import (
    Frame,
    FrameError,
    FrameHeader,
    HeaderErrorKind,
    encode_frame,
)
from ftx.proto.types import DEFAULT_MAX_PAYLOAD, HEADER_SIZE, FrameType
from ftx.util.crc32c import crc32c


def test_encode_decode_roundtrip():
    buf = FrameHeader(payload_len=12345, frame_type=FrameType.MANIFEST).encode()
    decoded = FrameHeader.decode(buf)
    assert decoded.payload_len == 12345
    assert decoded.frame_type == FrameType.MANIFEST


def test_zero_length_payload_roundtrip():
    buf = FrameHeader(payload_len=0, frame_type=FrameType.ACK).encode()
    decoded = FrameHeader.decode(buf)
    assert decoded.payload_len == 0
    assert decoded.frame_type == FrameType.ACK


@pytest.mark.parametrize("frame_type", list(FrameType))
def test_all_known_types_roundtrip(frame_type):
    buf = FrameHeader(payload_len=42, frame_type=frame_type).encode()
    assert FrameHeader.decode(buf).frame_type == frame_type


def test_rejects_bad_crc():
    buf = bytearray(FrameHeader(payload_len=100, frame_type=FrameType.CHUNK).encode())
    buf[5] ^= 0xFF
    with pytest.raises(FrameError) as info:
        FrameHeader.decode(buf, DEFAULT_MAX_PAYLOAD)
    assert info.value.kind is HeaderErrorKind.BAD_CRC


def test_rejects_unknown_type_with_valid_crc():
    prefix = bytes([0, 0, 0, 0, 0x55])
    buf = prefix + struct.pack(">I", crc32c(prefix))
    with pytest.raises(FrameError) as info:
        FrameHeader.decode(buf, DEFAULT_MAX_PAYLOAD)
    assert info.value.kind is HeaderErrorKind.UNKNOWN_TYPE


def test_rejects_oversized_payload():
    buf = FrameHeader(payload_len=1000, frame_type=FrameType.CHUNK).encode()
    with pytest.raises(FrameError) as info:
        FrameHeader.decode(buf, 500)
    assert info.value.kind is HeaderErrorKind.PAYLOAD_TOO_LARGE


def test_boundary_payload_allowed():
    buf = FrameHeader(payload_len=500, frame_type=FrameType.CHUNK).encode()
    assert FrameHeader.decode(buf, 500).payload_len == 500


def test_decode_rejects_wrong_length():
    buf = FrameHeader(payload_len=1, frame_type=FrameType.ACK).encode()
    with pytest.raises(ValueError):
        FrameHeader.decode(buf[:-1])


def test_encode_frame_produces_header_plus_payload():
    payload = bytes([0xDE, 0xAD, 0xBE, 0xEF])
    encoded = encode_frame(FrameType.HELLO, payload)
    assert len(encoded) == HEADER_SIZE + len(payload)
    hdr = FrameHeader.decode(encoded[:HEADER_SIZE])
    assert hdr.frame_type == FrameType.HELLO
    assert hdr.payload_len == len(payload)
    assert encoded[HEADER_SIZE:] == payload


def test_encode_frame_empty_payload():
    encoded = encode_frame(FrameType.ACK, b"")
    assert len(encoded) == HEADER_SIZE
    hdr = FrameHeader.decode(encoded)
    assert hdr.payload_len == 0
    assert hdr.frame_type == FrameType.ACK


def test_header_wire_layout():
    encoded = encode_frame(FrameType.ACK, b"")
    assert encoded[:5] == bytes([0, 0, 0, 0, 0x05])
    assert encoded[5:] == struct.pack(">I", crc32c(encoded[:5]))


def test_encode_frame_throws_on_oversized_payload():
    too_big = bytes(DEFAULT_MAX_PAYLOAD + 1)
    with pytest.raises(ValueError):
        encode_frame(FrameType.CHUNK, too_big)


def test_frame_exposes_type():
    frame = Frame(FrameHeader(payload_len=3, frame_type=FrameType.CHUNK), b"abc")
    assert frame.frame_type == FrameType.CHUNK
    assert frame.payload == b"abc"