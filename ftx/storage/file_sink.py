"""Write-side random-access file finalized by an atomic rename."""

from __future__ import annotations

import os
from pathlib import Path
from typing import BinaryIO

PARTIAL_SUFFIX = ".partial"


class FileSinkError(OSError):
    """Opening, writing or finalizing the sink failed."""


class FileSink:
    """Writes into ``<final>.partial``; finalize() renames it into place."""

    def __init__(self, final_path: str | os.PathLike) -> None:
        self._final_path = Path(final_path)
        self._partial_path = self._final_path.with_name(self._final_path.name + PARTIAL_SUFFIX)
        self._file: BinaryIO | None = None
        self._total_size = 0

    @property
    def final_path(self) -> Path:
        return self._final_path

    @property
    def partial_path(self) -> Path:
        return self._partial_path

    @property
    def is_open(self) -> bool:
        return self._file is not None

    def open(self, total_size: int, resume_existing: bool = False) -> None:
        """Open the .partial file, pre-sized to ``total_size``.

        With ``resume_existing``, an existing .partial at least ``total_size``
        bytes long is kept as is; otherwise a fresh file is created.
        """
        if total_size < 0:
            raise ValueError(f"negative total size: {total_size}")
        self.close()
        self._total_size = total_size
        try:
            self._final_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError:
            pass

        if resume_existing:
            try:
                current = self._partial_path.stat().st_size
            except OSError:
                current = None
            if current is not None and current >= total_size:
                try:
                    self._file = open(self._partial_path, "r+b")
                    return
                except OSError:
                    pass

        try:
            self._file = open(self._partial_path, "wb")
        except OSError as exc:
            raise FileSinkError(f"failed to open {self._partial_path}") from exc
        if total_size > 0:
            try:
                self._file.truncate(total_size)
            except OSError as exc:
                raise FileSinkError(f"failed to pre-size sink to {total_size}") from exc

    def write_at(self, offset: int, data) -> None:
        """Write ``data`` at ``offset``; the range must fit the declared size."""
        if self._file is None:
            raise FileSinkError("write_at on closed sink")
        view = memoryview(data)
        if offset < 0 or offset + view.nbytes > self._total_size:
            raise FileSinkError("write_at: range exceeds declared total size")
        try:
            self._file.seek(offset)
        except OSError as exc:
            raise FileSinkError("seek failed") from exc
        try:
            self._file.write(view)
        except OSError as exc:
            raise FileSinkError("write failed") from exc

    def flush(self) -> None:
        """Flush buffered writes to the .partial file."""
        if self._file is None:
            return
        try:
            self._file.flush()
        except OSError as exc:
            raise FileSinkError("flush failed") from exc

    def finalize(self) -> None:
        """Close and rename the .partial file over the final path."""
        if self._file is not None:
            self._file.flush()
            self.close()
        try:
            os.replace(self._partial_path, self._final_path)
        except OSError:
            try:
                self._final_path.unlink(missing_ok=True)
                os.replace(self._partial_path, self._final_path)
            except OSError as exc:
                raise FileSinkError(f"rename failed: {exc}") from exc

    def close(self) -> None:
        """Close without renaming; the .partial file stays for resume."""
        if self._file is not None:
            self._file.close()
            self._file = None