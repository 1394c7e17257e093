"""Payload encoding and decoding for each message type.

All integers are big-endian. Each ``encode`` returns payload bytes only;
pair it with ``encode_frame`` to put a message on the wire.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass, field

from ftx.proto.types import PROTOCOL_VERSION, ErrorCode

HASH_SIZE = 32
ZERO_HASH = bytes(HASH_SIZE)

_U8 = struct.Struct(">B")
_U16 = struct.Struct(">H")
_U32 = struct.Struct(">I")
_U64 = struct.Struct(">Q")
_TEXT_ENCODING = "utf-8"
_TEXT_ERRORS = "surrogateescape"


class MessageError(ValueError):
    """A message payload is malformed (truncated, bad length prefix, trailing bytes)."""


def _pack(packer: struct.Struct, value: int) -> bytes:
    try:
        return packer.pack(value)
    except struct.error as exc:
        raise ValueError(f"value out of range: {value}") from exc


def _hash_bytes(value, what: str) -> bytes:
    raw = bytes(value)
    if len(raw) != HASH_SIZE:
        raise ValueError(f"{what} must be {HASH_SIZE} bytes, got {len(raw)}")
    return raw


def _text_bytes(text: str, what: str) -> bytes:
    raw = text.encode(_TEXT_ENCODING, _TEXT_ERRORS)
    if len(raw) > 0xFFFF:
        raise ValueError(f"{what} too long: {len(raw)} bytes")
    return raw


class _Reader:
    """Sequential reader over a payload; raises MessageError when short."""

    def __init__(self, payload) -> None:
        self._buf = bytes(payload)
        self._pos = 0

    @property
    def remaining(self) -> int:
        return len(self._buf) - self._pos

    def take(self, n: int) -> bytes:
        if n > self.remaining:
            raise MessageError("payload truncated")
        out = self._buf[self._pos : self._pos + n]
        self._pos += n
        return out

    def _unpack(self, packer: struct.Struct) -> int:
        return packer.unpack(self.take(packer.size))[0]

    def u8(self) -> int:
        return self._unpack(_U8)

    def u16(self) -> int:
        return self._unpack(_U16)

    def u32(self) -> int:
        return self._unpack(_U32)

    def u64(self) -> int:
        return self._unpack(_U64)

    def hash(self) -> bytes:
        return self.take(HASH_SIZE)

    def text(self, n: int) -> str:
        return self.take(n).decode(_TEXT_ENCODING, _TEXT_ERRORS)

    def rest(self) -> bytes:
        return self.take(self.remaining)

    def finish(self) -> None:
        if self.remaining:
            raise MessageError("trailing bytes after message")


@dataclass
class HelloMsg:
    """Version negotiation: ``{version u8, max_chunk_size u32, capabilities u32}``."""

    protocol_version: int = PROTOCOL_VERSION
    max_chunk_size: int = 1024 * 1024
    capabilities: int = 0

    def encode(self) -> bytes:
        return (
            _pack(_U8, self.protocol_version)
            + _pack(_U32, self.max_chunk_size)
            + _pack(_U32, self.capabilities)
        )

    @classmethod
    def decode(cls, payload) -> HelloMsg:
        r = _Reader(payload)
        msg = cls(protocol_version=r.u8(), max_chunk_size=r.u32(), capabilities=r.u32())
        r.finish()
        return msg


@dataclass
class ManifestMsg:
    """File description sent by the sender.

    Layout: ``{file_size u64, chunk_size u32, chunk_count u32, root_hash[32],
    path_len u16, path, chunk_hashes[chunk_count * 32]}``.
    """

    file_size: int = 0
    chunk_size: int = 0
    chunk_count: int = 0
    root_hash: bytes = ZERO_HASH
    path: str = ""
    chunk_hashes: list[bytes] = field(default_factory=list)

    def encode(self) -> bytes:
        path = _text_bytes(self.path, "path")
        parts = [
            _pack(_U64, self.file_size),
            _pack(_U32, self.chunk_size),
            _pack(_U32, self.chunk_count),
            _hash_bytes(self.root_hash, "root_hash"),
            _pack(_U16, len(path)),
            path,
        ]
        parts.extend(_hash_bytes(h, "chunk hash") for h in self.chunk_hashes)
        return b"".join(parts)

    @classmethod
    def decode(cls, payload) -> ManifestMsg:
        r = _Reader(payload)
        file_size = r.u64()
        chunk_size = r.u32()
        chunk_count = r.u32()
        root_hash = r.hash()
        path = r.text(r.u16())
        if chunk_count > r.remaining // HASH_SIZE:
            raise MessageError("payload truncated")
        chunk_hashes = [r.hash() for _ in range(chunk_count)]
        r.finish()
        return cls(
            file_size=file_size,
            chunk_size=chunk_size,
            chunk_count=chunk_count,
            root_hash=root_hash,
            path=path,
            chunk_hashes=chunk_hashes,
        )


@dataclass
class ReqChunksMsg:
    """Chunk indices the receiver still needs: ``{count u32, indices[count] u32}``."""

    indices: list[int] = field(default_factory=list)

    def encode(self) -> bytes:
        return _pack(_U32, len(self.indices)) + b"".join(_pack(_U32, i) for i in self.indices)

    @classmethod
    def decode(cls, payload) -> ReqChunksMsg:
        r = _Reader(payload)
        count = r.u32()
        if count > r.remaining // _U32.size:
            raise MessageError("index count exceeds payload")
        indices = [r.u32() for _ in range(count)]
        r.finish()
        return cls(indices=indices)


@dataclass
class ChunkMsg:
    """One chunk of file data: ``{index u32, hash[32], data[remainder]}``."""

    index: int = 0
    hash: bytes = ZERO_HASH
    data: bytes = b""

    def encode(self) -> bytes:
        return _pack(_U32, self.index) + _hash_bytes(self.hash, "hash") + bytes(self.data)

    @classmethod
    def decode(cls, payload) -> ChunkMsg:
        r = _Reader(payload)
        index = r.u32()
        digest = r.hash()
        return cls(index=index, hash=digest, data=r.rest())


@dataclass
class CompleteMsg:
    """End of transfer: ``{final_root_hash[32], status u8}``; status 0 means OK."""

    final_root_hash: bytes = ZERO_HASH
    status: int = 0

    def encode(self) -> bytes:
        return _hash_bytes(self.final_root_hash, "final_root_hash") + _pack(_U8, self.status)

    @classmethod
    def decode(cls, payload) -> CompleteMsg:
        r = _Reader(payload)
        msg = cls(final_root_hash=r.hash(), status=r.u8())
        r.finish()
        return msg


@dataclass
class AckMsg:
    """Receiver acknowledgement: ``{last_index u32}``."""

    last_index: int = 0

    def encode(self) -> bytes:
        return _pack(_U32, self.last_index)

    @classmethod
    def decode(cls, payload) -> AckMsg:
        r = _Reader(payload)
        msg = cls(last_index=r.u32())
        r.finish()
        return msg


@dataclass
class ErrorMsg:
    """Structured error: ``{code u16, msg_len u16, msg[msg_len]}``.

    Codes outside ErrorCode are kept as plain integers.
    """

    code: ErrorCode | int = ErrorCode.UNSPECIFIED
    message: str = ""

    def encode(self) -> bytes:
        text = _text_bytes(self.message, "message")
        return _pack(_U16, int(self.code)) + _pack(_U16, len(text)) + text

    @classmethod
    def decode(cls, payload) -> ErrorMsg:
        r = _Reader(payload)
        raw_code = r.u16()
        try:
            code: ErrorCode | int = ErrorCode(raw_code)
        except ValueError:
            code = raw_code
        message = r.text(r.u16())
        r.finish()
        return cls(code=code, message=message)