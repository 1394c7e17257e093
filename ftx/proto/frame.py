"""Frame header encoding/decoding and one-shot frame encoding.

Header layout (big-endian, 9 bytes):
  [0..4)  payload length (u32)
  [4]     frame type (u8)
  [5..9)  CRC-32C over bytes [0..5)
"""

from __future__ import annotations

import enum
import struct
from dataclasses import dataclass

from ftx.proto.types import DEFAULT_MAX_PAYLOAD, HEADER_SIZE, FrameType, is_known_frame_type
from ftx.util.crc32c import crc32c

_PREFIX = struct.Struct(">IB")
_CRC = struct.Struct(">I")
_CRC_OFFSET = 5
_U32_MAX = 0xFFFFFFFF


class HeaderErrorKind(enum.Enum):
    """Why a frame header was rejected."""

    BAD_CRC = "header CRC mismatch"
    UNKNOWN_TYPE = "unknown frame type"
    PAYLOAD_TOO_LARGE = "payload exceeds maximum"


class FrameError(ValueError):
    """A frame header failed validation."""

    def __init__(self, kind: HeaderErrorKind, message: str | None = None) -> None:
        super().__init__(message or kind.value)
        self.kind = kind


@dataclass(frozen=True)
class FrameHeader:
    """Fixed 9-byte frame header."""

    payload_len: int = 0
    frame_type: FrameType = FrameType.HELLO

    def encode(self) -> bytes:
        """Encode to exactly HEADER_SIZE bytes, including the trailing CRC."""
        if not 0 <= self.payload_len <= _U32_MAX:
            raise ValueError(f"payload length out of range: {self.payload_len}")
        prefix = _PREFIX.pack(self.payload_len, int(self.frame_type))
        return prefix + _CRC.pack(crc32c(prefix))

    @classmethod
    def decode(cls, data, max_payload: int = DEFAULT_MAX_PAYLOAD) -> FrameHeader:
        """Decode a header; raises FrameError on CRC, type or size violations."""
        raw = bytes(data)
        if len(raw) != HEADER_SIZE:
            raise ValueError(f"frame header must be {HEADER_SIZE} bytes, got {len(raw)}")
        (expected_crc,) = _CRC.unpack_from(raw, _CRC_OFFSET)
        if crc32c(raw[:_CRC_OFFSET]) != expected_crc:
            raise FrameError(HeaderErrorKind.BAD_CRC)
        length, type_byte = _PREFIX.unpack_from(raw)
        if not is_known_frame_type(type_byte):
            raise FrameError(HeaderErrorKind.UNKNOWN_TYPE)
        if length > max_payload:
            raise FrameError(HeaderErrorKind.PAYLOAD_TOO_LARGE)
        return cls(payload_len=length, frame_type=FrameType(type_byte))


@dataclass(frozen=True)
class Frame:
    """A fully parsed frame with its payload."""

    header: FrameHeader
    payload: bytes = b""

    @property
    def frame_type(self) -> FrameType:
        return self.header.frame_type


def encode_frame(frame_type: FrameType, payload=b"") -> bytes:
    """Encode header plus payload; raises ValueError if the payload is too large."""
    body = bytes(payload)
    if len(body) > DEFAULT_MAX_PAYLOAD:
        raise ValueError("encode_frame: payload exceeds maximum")
    header = FrameHeader(payload_len=len(body), frame_type=FrameType(frame_type))
    return header.encode() + body