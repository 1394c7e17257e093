"""File-receiving server: verifies every chunk, supports resume, finalizes atomically."""

from __future__ import annotations

import logging
import os
import select
import socket
import threading
from pathlib import Path, PurePath

from ftx.proto.frame import Frame
from ftx.proto.messages import (
    AckMsg,
    ChunkMsg,
    CompleteMsg,
    ErrorMsg,
    HelloMsg,
    ManifestMsg,
    MessageError,
    ReqChunksMsg,
)
from ftx.proto.types import PROTOCOL_VERSION, ErrorCode, FrameType
from ftx.storage.file_sink import FileSink, FileSinkError
from ftx.storage.resume_state import ResumeState, ResumeStateError
from ftx.transport.connection import Connection, TransportError
from ftx.transport.tls import TlsConfig, make_server_tls_context
from ftx.util.blake3 import Blake3Hasher, blake3

STATE_SUFFIX = ".ftxstate"

_READBACK_BLOCK = 64 * 1024
_POLL_INTERVAL = 0.2

log = logging.getLogger(__name__)


def is_path_safe(rel_path: str) -> bool:
    """Reject empty or absolute paths and paths with ``..`` segments."""
    if not rel_path:
        return False
    path = PurePath(rel_path)
    if path.is_absolute():
        return False
    return ".." not in path.parts


class _SessionAbort(Exception):
    """Ends a session; with a code, an ERROR frame is sent to the peer first."""

    def __init__(self, message: str, code: ErrorCode | None = None) -> None:
        super().__init__(message)
        self.code = code


def _send_error(conn: Connection, code: ErrorCode, message: str) -> None:
    try:
        conn.send_frame(FrameType.ERROR, ErrorMsg(code=code, message=message).encode())
    except (TransportError, ValueError):
        pass


def _expect(conn: Connection, frame_type: FrameType) -> Frame:
    name = frame_type.name
    try:
        frame = conn.recv_frame()
    except TransportError as exc:
        raise _SessionAbort(f"expected {name}: {exc}") from exc
    if frame.frame_type is not frame_type:
        raise _SessionAbort(f"expected {name}")
    return frame


class Server:
    """Receives files into ``root``; optional TLS (mutual when ``verify_peer``)."""

    def __init__(
        self,
        host: str,
        port: int,
        root: str | os.PathLike,
        tls: TlsConfig | None = None,
    ) -> None:
        self._root = Path(root)
        try:
            self._root.mkdir(parents=True, exist_ok=True)
        except OSError:
            pass
        self._tls_context = make_server_tls_context(tls) if tls is not None else None
        family = socket.AF_INET6 if ":" in host else socket.AF_INET
        self._listener = socket.create_server((host, port), family=family)
        self._stop = threading.Event()

    @property
    def root(self) -> Path:
        return self._root

    def local_port(self) -> int:
        """The port the server is listening on."""
        return self._listener.getsockname()[1]

    def run_one(self) -> bool:
        """Accept and handle one session; True if a file was received and acknowledged."""
        try:
            sock, _ = self._listener.accept()
        except OSError as exc:
            log.error("accept failed: %s", exc)
            return False
        return self._handle_session(sock)

    def run(self) -> None:
        """Accept sessions until stop(), handling each on its own thread."""
        while not self._stop.is_set():
            try:
                ready, _, _ = select.select([self._listener], [], [], _POLL_INTERVAL)
            except (OSError, ValueError) as exc:
                if not self._stop.is_set():
                    log.error("listener failed: %s", exc)
                break
            if not ready:
                continue
            try:
                sock, _ = self._listener.accept()
            except OSError as exc:
                if self._stop.is_set():
                    break
                log.error("accept failed: %s", exc)
                continue
            threading.Thread(target=self._session_thread, args=(sock,), daemon=True).start()

    def stop(self) -> None:
        """Stop accepting and close the listening socket."""
        self._stop.set()
        try:
            self._listener.close()
        except OSError:
            pass

    def resolve_dest(self, rel_path: str) -> Path:
        """Map a peer-supplied relative path under the root; raises ValueError if unsafe."""
        if not is_path_safe(rel_path):
            raise ValueError(f"rejected path: {rel_path}")
        candidate = Path(os.path.normpath(self._root / rel_path))
        root_norm = Path(os.path.normpath(self._root))
        root_parts = root_norm.parts if root_norm != Path(".") else ()
        if (
            len(candidate.parts) <= len(root_parts)
            or candidate.parts[: len(root_parts)] != root_parts
        ):
            raise ValueError(f"rejected path: {rel_path}")
        return candidate

    def _session_thread(self, sock: socket.socket) -> None:
        try:
            self._handle_session(sock)
        except Exception:
            log.exception("session crashed")

    def _handle_session(self, sock: socket.socket) -> bool:
        with Connection(sock) as conn:
            try:
                if self._tls_context is not None:
                    try:
                        conn.tls_server_handshake(self._tls_context)
                    except TransportError as exc:
                        raise _SessionAbort(f"TLS handshake failed: {exc}") from exc
                self._serve(conn)
            except _SessionAbort as exc:
                log.warning("session: %s", exc)
                if exc.code is not None:
                    _send_error(conn, exc.code, str(exc))
                return False
            except TransportError as exc:
                log.warning("session: %s", exc)
                return False
        return True

    def _serve(self, conn: Connection) -> None:
        hello_frame = _expect(conn, FrameType.HELLO)
        try:
            client_hello = HelloMsg.decode(hello_frame.payload)
        except MessageError:
            raise _SessionAbort("malformed HELLO", ErrorCode.PROTOCOL_VIOLATION) from None
        if client_hello.protocol_version != PROTOCOL_VERSION:
            raise _SessionAbort(
                f"server requires protocol version {PROTOCOL_VERSION}",
                ErrorCode.UNSUPPORTED_VERSION,
            )
        conn.send_frame(FrameType.HELLO, HelloMsg().encode())

        manifest_frame = _expect(conn, FrameType.MANIFEST)
        try:
            manifest = ManifestMsg.decode(manifest_frame.payload)
        except MessageError:
            raise _SessionAbort("malformed MANIFEST", ErrorCode.PROTOCOL_VIOLATION) from None
        try:
            dest = self.resolve_dest(manifest.path)
        except ValueError:
            raise _SessionAbort(
                f"rejected path: {manifest.path}", ErrorCode.INVALID_PATH
            ) from None

        log.info(
            'session: receiving "%s" -> %s (%d bytes, %d chunks)',
            manifest.path,
            dest,
            manifest.file_size,
            manifest.chunk_count,
        )

        state_path = dest.with_name(dest.name + STATE_SUFFIX)
        # Manifest identity is stable across sessions for the same transfer.
        manifest_id = blake3(manifest.encode())
        state, resume_active = self._load_state(state_path, manifest_id, manifest.chunk_count)

        sink = FileSink(dest)
        try:
            sink.open(manifest.file_size, resume_existing=resume_active)
        except FileSinkError as exc:
            raise _SessionAbort(str(exc), ErrorCode.INTERNAL_ERROR) from exc
        try:
            self._receive(conn, manifest, sink, state, state_path, resume_active)
        finally:
            sink.close()

    @staticmethod
    def _load_state(
        state_path: Path, manifest_id: bytes, chunk_count: int
    ) -> tuple[ResumeState, bool]:
        try:
            loaded = ResumeState.load(state_path)
        except ResumeStateError:
            loaded = None
        if (
            loaded is not None
            and loaded.manifest_id == manifest_id
            and loaded.chunk_count == chunk_count
        ):
            log.info(
                "session: resuming with %d of %d chunks already received",
                chunk_count - len(loaded.missing()),
                chunk_count,
            )
            return loaded, True
        # No state, a different manifest, or a different chunk count: start over.
        ResumeState.remove(state_path)
        return ResumeState(manifest_id, chunk_count), False

    def _receive(
        self,
        conn: Connection,
        manifest: ManifestMsg,
        sink: FileSink,
        state: ResumeState,
        state_path: Path,
        resume_active: bool,
    ) -> None:
        conn.send_frame(FrameType.REQ_CHUNKS, ReqChunksMsg(indices=state.missing()).encode())

        bytes_received = 0
        chunks_received = 0
        inorder_hasher = Blake3Hasher()
        all_in_order = not resume_active
        next_expected = 0

        while True:
            try:
                frame = conn.recv_frame()
            except TransportError as exc:
                raise _SessionAbort(f"recv failed mid-transfer: {exc}") from exc
            if frame.frame_type is FrameType.COMPLETE:
                try:
                    complete = CompleteMsg.decode(frame.payload)
                except MessageError:
                    raise _SessionAbort(
                        "malformed COMPLETE", ErrorCode.PROTOCOL_VIOLATION
                    ) from None
                client_root_hash = complete.final_root_hash
                break
            if frame.frame_type is not FrameType.CHUNK:
                raise _SessionAbort("expected CHUNK or COMPLETE", ErrorCode.PROTOCOL_VIOLATION)
            try:
                chunk = ChunkMsg.decode(frame.payload)
            except MessageError:
                raise _SessionAbort("malformed CHUNK", ErrorCode.PROTOCOL_VIOLATION) from None
            if chunk.index >= manifest.chunk_count:
                raise _SessionAbort("chunk index out of range", ErrorCode.PROTOCOL_VIOLATION)

            if blake3(chunk.data) != chunk.hash:
                raise _SessionAbort(
                    f"chunk hash mismatch at index {chunk.index}", ErrorCode.HASH_MISMATCH
                )
            if manifest.chunk_hashes[chunk.index] != chunk.hash:
                raise _SessionAbort(
                    f"chunk hash diverges from manifest at index {chunk.index}",
                    ErrorCode.HASH_MISMATCH,
                )

            if all_in_order and chunk.index == next_expected:
                inorder_hasher.update(chunk.data)
                next_expected += 1
            else:
                all_in_order = False

            try:
                sink.write_at(chunk.index * manifest.chunk_size, chunk.data)
            except FileSinkError as exc:
                raise _SessionAbort(str(exc), ErrorCode.INTERNAL_ERROR) from exc
            state.mark_received(chunk.index)
            try:
                state.save(state_path)
            except ResumeStateError as exc:
                log.warning("session: could not persist resume state: %s", exc)

            bytes_received += len(chunk.data)
            chunks_received += 1

        if resume_active:
            if not state.complete():
                raise _SessionAbort(
                    "transfer ended with chunks still missing", ErrorCode.PROTOCOL_VIOLATION
                )
        else:
            if bytes_received != manifest.file_size:
                raise _SessionAbort(
                    f"byte count mismatch (expected {manifest.file_size}, "
                    f"got {bytes_received})",
                    ErrorCode.PROTOCOL_VIOLATION,
                )
            if chunks_received != manifest.chunk_count:
                raise _SessionAbort("chunk count mismatch", ErrorCode.PROTOCOL_VIOLATION)

        if all_in_order:
            actual_root_hash = inorder_hasher.finalize()
        else:
            actual_root_hash = self._hash_from_disk(sink)

        if actual_root_hash != manifest.root_hash:
            raise _SessionAbort("root hash mismatch (manifest)", ErrorCode.HASH_MISMATCH)
        if actual_root_hash != client_root_hash:
            raise _SessionAbort("root hash mismatch (COMPLETE)", ErrorCode.HASH_MISMATCH)

        try:
            sink.flush()
            sink.finalize()
        except FileSinkError as exc:
            raise _SessionAbort(str(exc), ErrorCode.INTERNAL_ERROR) from exc
        ResumeState.remove(state_path)

        last_index = manifest.chunk_count - 1 if manifest.chunk_count else 0
        conn.send_frame(FrameType.ACK, AckMsg(last_index=last_index).encode())
        log.info("session: complete - %d bytes received", bytes_received)

    @staticmethod
    def _hash_from_disk(sink: FileSink) -> bytes:
        try:
            sink.flush()
        except FileSinkError as exc:
            raise _SessionAbort(str(exc), ErrorCode.INTERNAL_ERROR) from exc
        hasher = Blake3Hasher()
        try:
            with open(sink.partial_path, "rb") as f:
                while block := f.read(_READBACK_BLOCK):
                    hasher.update(block)
        except OSError:
            raise _SessionAbort(
                "cannot reopen .partial for verification", ErrorCode.INTERNAL_ERROR
            ) from None
        return hasher.finalize()