"""Read-only random-access view over a file."""

from __future__ import annotations

import os
from pathlib import Path
from typing import BinaryIO


class FileSourceError(OSError):
    """Opening or reading the source file failed."""


class FileSource:
    """Random-access reader over one file. Not thread-safe."""

    def __init__(self, path: str | os.PathLike) -> None:
        self._path = Path(path)
        self._file: BinaryIO | None = None
        self._size = 0

    @property
    def path(self) -> Path:
        return self._path

    @property
    def size(self) -> int:
        """Size of the file in bytes, as seen when it was opened."""
        return self._size

    @property
    def is_open(self) -> bool:
        return self._file is not None

    def open(self) -> None:
        """Open the file; raises FileSourceError if it is missing or unreadable."""
        self.close()
        path = self._path
        if not path.exists():
            raise FileSourceError(f"file does not exist: {path}")
        if not path.is_file():
            raise FileSourceError(f"not a regular file: {path}")
        try:
            size = path.stat().st_size
        except OSError as exc:
            raise FileSourceError(f"failed to stat: {exc}") from exc
        try:
            self._file = open(path, "rb")
        except OSError as exc:
            raise FileSourceError(f"open() failed for {path}") from exc
        self._size = size

    def read_at(self, offset: int, size: int) -> bytes:
        """Read up to ``size`` bytes starting at ``offset``.

        Returns fewer bytes near the end of the file and an empty result at
        exactly end of file. Raises FileSourceError when closed or when
        ``offset`` lies beyond the end of the file.
        """
        if self._file is None:
            raise FileSourceError("read_at on closed source")
        if size < 0:
            raise ValueError(f"negative read size: {size}")
        if offset < 0 or offset > self._size:
            raise FileSourceError("read_at: offset beyond EOF")
        to_read = min(size, self._size - offset)
        try:
            self._file.seek(offset)
            return self._file.read(to_read)
        except OSError as exc:
            raise FileSourceError(f"read failed: {exc}") from exc

    def close(self) -> None:
        """Close the file if it is open."""
        if self._file is not None:
            self._file.close()
            self._file = None

    def __enter__(self) -> FileSource:
        if not self.is_open:
            self.open()
        return self

    def __exit__(self, *args) -> None:
        self.close()