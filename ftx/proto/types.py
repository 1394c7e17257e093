"""Wire-protocol primitives: frame types, error codes and size limits."""

from __future__ import annotations

import enum

PROTOCOL_VERSION = 1
HEADER_SIZE = 9
DEFAULT_MAX_PAYLOAD = 64 * 1024 * 1024


class FrameType(enum.IntEnum):
    """Type byte carried in every frame header."""

    HELLO = 0x01
    MANIFEST = 0x02
    REQ_CHUNKS = 0x03
    CHUNK = 0x04
    ACK = 0x05
    COMPLETE = 0x06
    ERROR = 0xFF


class ErrorCode(enum.IntEnum):
    """Application-layer error codes carried inside ERROR frames."""

    UNSPECIFIED = 0x0000
    PROTOCOL_VIOLATION = 0x0001
    UNSUPPORTED_VERSION = 0x0002
    PAYLOAD_TOO_LARGE = 0x0003
    HASH_MISMATCH = 0x0004
    INVALID_PATH = 0x0005
    NOT_FOUND = 0x0006
    PERMISSION_DENIED = 0x0007
    INTERNAL_ERROR = 0x00FF


def is_known_frame_type(value: int) -> bool:
    """True if ``value`` is a defined frame type byte."""
    try:
        FrameType(value)
    except ValueError:
        return False
    return True


def frame_type_name(frame_type: int) -> str:
    """Wire name of a frame type, or ``"UNKNOWN"``."""
    try:
        return FrameType(frame_type).name
    except ValueError:
        return "UNKNOWN"