"""Persistent receiver-side resume state (``<dest>.ftxstate``).

File layout:
  0..3    magic "FTXS"
  4       version (u8)
  5..36   manifest id (32 bytes)
  37..40  chunk count (u32, little-endian)
  41..    bitmap, ceil(chunk_count / 8) bytes; bit n set means chunk n is on disk
"""

from __future__ import annotations

import os
import struct
from pathlib import Path

MAGIC = b"FTXS"
FORMAT_VERSION = 1
MANIFEST_ID_SIZE = 32

_COUNT = struct.Struct("<I")
_TMP_SUFFIX = ".tmp"


class ResumeStateError(Exception):
    """A state file could not be written, or is missing or malformed."""


class ResumeState:
    """Bitmap of received chunks tied to one manifest identity."""

    def __init__(self, manifest_id: bytes = bytes(MANIFEST_ID_SIZE), chunk_count: int = 0) -> None:
        manifest_id = bytes(manifest_id)
        if len(manifest_id) != MANIFEST_ID_SIZE:
            raise ValueError(
                f"manifest id must be {MANIFEST_ID_SIZE} bytes, got {len(manifest_id)}"
            )
        if not 0 <= chunk_count <= 0xFFFFFFFF:
            raise ValueError(f"chunk count out of range: {chunk_count}")
        self._manifest_id = manifest_id
        self._chunk_count = chunk_count
        self._bitmap = bytearray((chunk_count + 7) // 8)

    @property
    def manifest_id(self) -> bytes:
        return self._manifest_id

    @property
    def chunk_count(self) -> int:
        return self._chunk_count

    def is_set(self, index: int) -> bool:
        """True if chunk ``index`` is marked received; False when out of range."""
        if not 0 <= index < self._chunk_count:
            return False
        return bool(self._bitmap[index // 8] & (1 << (index % 8)))

    def mark_received(self, index: int) -> None:
        """Mark chunk ``index`` received; out-of-range indices are ignored."""
        if not 0 <= index < self._chunk_count:
            return
        self._bitmap[index // 8] |= 1 << (index % 8)

    def missing(self) -> list[int]:
        """Indices of chunks not yet received, in ascending order."""
        return [i for i in range(self._chunk_count) if not self.is_set(i)]

    def complete(self) -> bool:
        """True iff every chunk is marked received."""
        return all(self.is_set(i) for i in range(self._chunk_count))

    def save(self, path: str | os.PathLike) -> None:
        """Write the state to ``path`` via a temporary file and rename."""
        path = Path(path)
        tmp = path.with_name(path.name + _TMP_SUFFIX)
        blob = (
            MAGIC
            + bytes([FORMAT_VERSION])
            + self._manifest_id
            + _COUNT.pack(self._chunk_count)
            + bytes(self._bitmap)
        )
        try:
            tmp.write_bytes(blob)
        except OSError as exc:
            raise ResumeStateError(f"failed to write {tmp}: {exc}") from exc
        try:
            os.replace(tmp, path)
        except OSError:
            try:
                path.unlink(missing_ok=True)
                os.replace(tmp, path)
            except OSError as exc:
                raise ResumeStateError(f"failed to rename state file: {exc}") from exc

    @classmethod
    def load(cls, path: str | os.PathLike) -> ResumeState:
        """Read a state file; raises ResumeStateError if missing or malformed."""
        try:
            raw = Path(path).read_bytes()
        except OSError as exc:
            raise ResumeStateError(f"cannot read state file: {exc}") from exc
        if raw[:4] != MAGIC:
            raise ResumeStateError("bad magic")
        if len(raw) < 5 or raw[4] != FORMAT_VERSION:
            raise ResumeStateError("unsupported version")
        id_end = 5 + MANIFEST_ID_SIZE
        count_end = id_end + _COUNT.size
        if len(raw) < count_end:
            raise ResumeStateError("truncated header")
        manifest_id = raw[5:id_end]
        (count,) = _COUNT.unpack_from(raw, id_end)
        bitmap_len = (count + 7) // 8
        bitmap = raw[count_end : count_end + bitmap_len]
        if len(bitmap) != bitmap_len:
            raise ResumeStateError("truncated bitmap")
        state = cls(manifest_id, count)
        state._bitmap = bytearray(bitmap)
        return state

    @staticmethod
    def remove(path: str | os.PathLike) -> None:
        """Delete a state file, ignoring any failure."""
        try:
            Path(path).unlink()
        except OSError:
            pass