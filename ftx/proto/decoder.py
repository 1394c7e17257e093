"""Streaming frame decoder: feed bytes in any chunking, pull complete frames."""

from __future__ import annotations

import enum
from collections.abc import Iterator

from ftx.proto.frame import Frame, FrameError, FrameHeader, HeaderErrorKind
from ftx.proto.types import DEFAULT_MAX_PAYLOAD, HEADER_SIZE


class _State(enum.Enum):
    READING_HEADER = enum.auto()
    READING_PAYLOAD = enum.auto()
    FRAME_READY = enum.auto()
    POISONED = enum.auto()


class FrameDecoder:
    """Incremental decoder for the frame stream.

    After a protocol violation the decoder is poisoned: the violation is
    raised as FrameError and every later feed raises it again. At most
    HEADER_SIZE + max_payload bytes of a pending frame are buffered.
    """

    def __init__(self, max_payload: int = DEFAULT_MAX_PAYLOAD) -> None:
        self._max_payload = max_payload
        self._state = _State.READING_HEADER
        self._last_error: HeaderErrorKind | None = None
        self._buffer = bytearray()
        self._pending: FrameHeader | None = None

    @property
    def last_error(self) -> HeaderErrorKind | None:
        """The violation that poisoned the decoder, if any."""
        return self._last_error

    @property
    def poisoned(self) -> bool:
        return self._last_error is not None

    def last_error_message(self) -> str:
        """Human-readable description of the last error, or an empty string."""
        return "" if self._last_error is None else self._last_error.value

    def feed(self, data=b"") -> None:
        """Append received bytes; raises FrameError on a protocol violation."""
        if self._state is _State.POISONED:
            raise FrameError(self._last_error)
        self._buffer += data
        self._drive()

    def has_frame(self) -> bool:
        """True if a complete frame is ready to be taken."""
        return self._state is _State.FRAME_READY

    def take_frame(self) -> Frame:
        """Remove and return the ready frame; raises LookupError if none is ready."""
        if self._state is not _State.FRAME_READY or self._pending is None:
            raise LookupError("no frame available")
        header = self._pending
        size = header.payload_len
        payload = bytes(self._buffer[:size])
        del self._buffer[:size]
        self._pending = None
        self._state = _State.READING_HEADER
        try:
            self._drive()
        except FrameError:
            # The decoder is now poisoned; the next feed reports it.
            pass
        return Frame(header=header, payload=payload)

    def frames(self) -> Iterator[Frame]:
        """Yield every frame that is ready with the bytes buffered so far."""
        while self.has_frame():
            yield self.take_frame()

    def _drive(self) -> None:
        while True:
            if self._state is _State.POISONED:
                raise FrameError(self._last_error)
            if self._state is _State.FRAME_READY:
                return
            if self._state is _State.READING_HEADER:
                if len(self._buffer) < HEADER_SIZE:
                    return
                self._consume_header()
                continue
            # READING_PAYLOAD
            if self._pending is not None and len(self._buffer) >= self._pending.payload_len:
                self._state = _State.FRAME_READY
            return

    def _consume_header(self) -> None:
        try:
            header = FrameHeader.decode(self._buffer[:HEADER_SIZE], self._max_payload)
        except FrameError as exc:
            self._last_error = exc.kind
            self._state = _State.POISONED
            raise
        del self._buffer[:HEADER_SIZE]
        self._pending = header
        self._state = _State.FRAME_READY if header.payload_len == 0 else _State.READING_PAYLOAD