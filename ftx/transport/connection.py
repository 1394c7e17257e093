"""Frame-oriented blocking connection over a plain or TLS-wrapped socket."""

from __future__ import annotations

import socket
import ssl

from ftx.proto.frame import Frame, FrameError, FrameHeader, HeaderErrorKind
from ftx.proto.types import DEFAULT_MAX_PAYLOAD, HEADER_SIZE, FrameType

_HEADER_MESSAGES = {
    HeaderErrorKind.BAD_CRC: "header CRC mismatch",
    HeaderErrorKind.UNKNOWN_TYPE: "unknown frame type",
    HeaderErrorKind.PAYLOAD_TOO_LARGE: "payload too large",
}


class TransportError(Exception):
    """A handshake, send or receive on the connection failed."""


class Connection:
    """One session's stream of frames. Not thread-safe."""

    def __init__(self, sock: socket.socket) -> None:
        self._sock = sock
        self._tls = False

    def tls_client_handshake(self, context: ssl.SSLContext, sni_host: str = "") -> None:
        """Wrap the socket in TLS as the client, sending ``sni_host`` if given."""
        self._wrap(context, False, sni_host or None, "tls client handshake")

    def tls_server_handshake(self, context: ssl.SSLContext) -> None:
        """Wrap the socket in TLS as the server."""
        self._wrap(context, True, None, "tls server handshake")

    def _wrap(self, context, server_side: bool, server_hostname, label: str) -> None:
        if self._tls:
            raise TransportError(f"{label}: connection is already TLS")
        try:
            self._sock = context.wrap_socket(
                self._sock, server_side=server_side, server_hostname=server_hostname
            )
        except (OSError, ValueError) as exc:
            raise TransportError(f"{label}: {exc}") from exc
        self._tls = True

    def send_frame(self, frame_type: FrameType, payload=b"") -> None:
        """Send one frame; raises TransportError on oversize payload or I/O failure."""
        body = bytes(payload)
        if len(body) > DEFAULT_MAX_PAYLOAD:
            raise TransportError("send_frame: payload exceeds maximum")
        header = FrameHeader(payload_len=len(body), frame_type=FrameType(frame_type)).encode()
        try:
            self._sock.sendall(header + body)
        except OSError as exc:
            raise TransportError(f"send_frame: {exc}") from exc

    def recv_frame(self, max_payload: int = DEFAULT_MAX_PAYLOAD) -> Frame:
        """Receive one complete frame; raises TransportError on any failure."""
        raw = self._recv_exact(HEADER_SIZE, "recv_frame header")
        try:
            header = FrameHeader.decode(raw, max_payload)
        except FrameError as exc:
            raise TransportError(f"recv_frame: {_HEADER_MESSAGES[exc.kind]}") from exc
        payload = b""
        if header.payload_len:
            payload = self._recv_exact(header.payload_len, "recv_frame payload")
        return Frame(header=header, payload=payload)

    def _recv_exact(self, size: int, label: str) -> bytes:
        buf = bytearray(size)
        view = memoryview(buf)
        got = 0
        while got < size:
            try:
                n = self._sock.recv_into(view[got:])
            except OSError as exc:
                raise TransportError(f"{label}: {exc}") from exc
            if n == 0:
                raise TransportError(f"{label}: connection closed by peer")
            got += n
        return bytes(buf)

    def close(self) -> None:
        """Shut down both directions and close; errors are ignored."""
        sock = self._sock
        if sock.fileno() == -1:
            return
        try:
            sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
        sock.close()

    def is_open(self) -> bool:
        return self._sock.fileno() != -1

    def is_tls(self) -> bool:
        return self._tls

    def __enter__(self) -> Connection:
        return self

    def __exit__(self, *args) -> None:
        self.close()