"""File-sending client: one blocking transfer per call."""

from __future__ import annotations

import logging
import os
import socket
from dataclasses import dataclass

from ftx.proto.frame import Frame
from ftx.proto.messages import (
    ChunkMsg,
    CompleteMsg,
    ErrorMsg,
    HelloMsg,
    ManifestMsg,
    MessageError,
    ReqChunksMsg,
)
from ftx.proto.types import PROTOCOL_VERSION, FrameType
from ftx.storage.file_source import FileSource, FileSourceError
from ftx.transport.connection import Connection, TransportError
from ftx.transport.tls import TlsConfig, make_client_tls_context
from ftx.util.blake3 import Blake3Hasher, blake3

DEFAULT_CHUNK_SIZE = 1024 * 1024
_U32_MAX = 0xFFFFFFFF

log = logging.getLogger(__name__)


class SendError(Exception):
    """A transfer did not complete and was not acknowledged."""


@dataclass
class ClientOptions:
    """Chunk size for the transfer and optional TLS (None means plain TCP)."""

    chunk_size: int = DEFAULT_CHUNK_SIZE
    tls: TlsConfig | None = None

    def __post_init__(self) -> None:
        if not 1 <= self.chunk_size <= _U32_MAX:
            raise ValueError(f"chunk size out of range: {self.chunk_size}")


def _send(conn: Connection, label: str, frame_type: FrameType, payload: bytes) -> None:
    try:
        conn.send_frame(frame_type, payload)
    except TransportError as exc:
        raise SendError(f"{label}: {exc}") from exc


def _recv(conn: Connection, label: str) -> Frame:
    try:
        return conn.recv_frame()
    except TransportError as exc:
        raise SendError(f"{label}: {exc}") from exc


def _expect(conn: Connection, label: str, frame_type: FrameType) -> Frame:
    frame = _recv(conn, label)
    if frame.frame_type is not frame_type:
        raise SendError(f"{label}: unexpected frame type")
    return frame


class Client:
    """Sends one file per send() call; returns only on an acknowledged transfer."""

    def __init__(self, options: ClientOptions | None = None) -> None:
        self.options = options if options is not None else ClientOptions()

    def send(
        self,
        host: str,
        port: int,
        source_path: str | os.PathLike,
        remote_dest: str,
    ) -> None:
        """Transfer ``source_path`` to ``remote_dest`` on the receiver; raises SendError."""
        source = FileSource(source_path)
        try:
            source.open()
        except FileSourceError as exc:
            raise SendError(f"open source: {exc}") from exc
        with source:
            self._transfer(source, host, port, remote_dest)

    def _read_chunk(self, source: FileSource, index: int, label: str) -> bytes:
        chunk_size = self.options.chunk_size
        try:
            return source.read_at(index * chunk_size, chunk_size)
        except FileSourceError as exc:
            raise SendError(f"{label}: {exc}") from exc

    def _transfer(self, source: FileSource, host: str, port: int, remote_dest: str) -> None:
        file_size = source.size
        chunk_size = self.options.chunk_size
        chunk_count = -(-file_size // chunk_size)
        if chunk_count > _U32_MAX:
            raise SendError("file has too many chunks for this chunk size")

        tls = self.options.tls
        context = make_client_tls_context(tls) if tls is not None else None

        try:
            sock = socket.create_connection((host, port))
        except OSError as exc:
            raise SendError(f"connect: {exc}") from exc

        with Connection(sock) as conn:
            if context is not None:
                try:
                    conn.tls_client_handshake(context, tls.sni_host or host)
                except TransportError as exc:
                    raise SendError(f"TLS handshake: {exc}") from exc
            self._exchange(conn, source, file_size, chunk_count, remote_dest)

        log.info("send complete: %d bytes in %d chunks", file_size, chunk_count)

    def _exchange(
        self,
        conn: Connection,
        source: FileSource,
        file_size: int,
        chunk_count: int,
        remote_dest: str,
    ) -> None:
        # HELLO exchange.
        _send(conn, "send HELLO", FrameType.HELLO, HelloMsg().encode())
        hello_frame = _expect(conn, "recv HELLO", FrameType.HELLO)
        try:
            server_hello = HelloMsg.decode(hello_frame.payload)
        except MessageError as exc:
            raise SendError("decode HELLO: malformed") from exc
        if server_hello.protocol_version != PROTOCOL_VERSION:
            raise SendError("protocol version mismatch")

        # Hash pass: per-chunk digests and the whole-file root digest.
        chunk_hashes = []
        root_hasher = Blake3Hasher()
        for index in range(chunk_count):
            data = self._read_chunk(source, index, "hash pass")
            chunk_hashes.append(blake3(data))
            root_hasher.update(data)
        root_hash = root_hasher.finalize()

        manifest = ManifestMsg(
            file_size=file_size,
            chunk_size=self.options.chunk_size,
            chunk_count=chunk_count,
            root_hash=root_hash,
            path=remote_dest,
            chunk_hashes=chunk_hashes,
        )
        try:
            manifest_payload = manifest.encode()
        except ValueError as exc:
            raise SendError(f"encode MANIFEST: {exc}") from exc
        _send(conn, "send MANIFEST", FrameType.MANIFEST, manifest_payload)

        req_frame = _expect(conn, "recv REQ_CHUNKS", FrameType.REQ_CHUNKS)
        try:
            request = ReqChunksMsg.decode(req_frame.payload)
        except MessageError as exc:
            raise SendError("decode REQ_CHUNKS: malformed") from exc

        # Send only the chunks the receiver asked for.
        for index in request.indices:
            if index >= chunk_count:
                raise SendError(f"REQ_CHUNKS: index {index} out of range")
            data = self._read_chunk(source, index, "read source")
            chunk = ChunkMsg(index=index, hash=chunk_hashes[index], data=data)
            _send(conn, f"send CHUNK[{index}]", FrameType.CHUNK, chunk.encode())

        complete = CompleteMsg(final_root_hash=root_hash, status=0)
        _send(conn, "send COMPLETE", FrameType.COMPLETE, complete.encode())

        ack_frame = _recv(conn, "recv ACK")
        if ack_frame.frame_type is FrameType.ERROR:
            try:
                err = ErrorMsg.decode(ack_frame.payload)
            except MessageError as exc:
                raise SendError("server ERROR (malformed)") from exc
            raise SendError(f"server ERROR: {err.message}")
        if ack_frame.frame_type is not FrameType.ACK:
            raise SendError("expected ACK, got something else")