"""One-shot localhost throughput probe for a single transfer."""

from __future__ import annotations

import os
import random
import re
import sys
import tempfile
import threading
import time
from pathlib import Path

from ftx.transport.client import Client, ClientOptions, SendError
from ftx.transport.server import Server

DEFAULT_SIZE_MIB = 256
CHUNK_SIZES = (64 * 1024, 256 * 1024, 1024 * 1024, 4 * 1024 * 1024)

_SEED = 0xBEEF
_BLOCK = 1024 * 1024
_MIB = 1024.0 * 1024.0
_LEADING_DIGITS = re.compile(r"\s*\+?(\d+)")


def write_random(path: str | os.PathLike, size: int) -> None:
    """Write ``size`` pseudo-random bytes (fixed seed) to ``path``."""
    rng = random.Random(_SEED)
    remaining = size
    with open(path, "wb") as f:
        while remaining > 0:
            n = min(_BLOCK, remaining)
            f.write(rng.randbytes(n))
            remaining -= n


def run_one(size_bytes: int, chunk_size: int) -> float:
    """Transfer a random file of ``size_bytes`` over loopback; returns MiB/s.

    Raises SendError if the transfer fails.
    """
    with tempfile.TemporaryDirectory(prefix="ftx-bench-") as work:
        work_dir = Path(work)
        root = work_dir / "recv"
        src = work_dir / "src.bin"
        root.mkdir(parents=True)
        write_random(src, size_bytes)

        server = Server("127.0.0.1", 0, root)
        port = server.local_port()
        thread = threading.Thread(target=server.run_one, daemon=True)
        thread.start()

        client = Client(ClientOptions(chunk_size=chunk_size))
        try:
            t0 = time.perf_counter()
            client.send("127.0.0.1", port, src, "x.bin")
            t1 = time.perf_counter()
        finally:
            thread.join(timeout=5)
            server.stop()

    secs = max(t1 - t0, 1e-9)
    return (size_bytes / _MIB) / secs


def _parse_size(text: str) -> int:
    match = _LEADING_DIGITS.match(text)
    return int(match.group(1)) if match else 0


def main(argv: list[str] | None = None) -> int:
    """Run the probe for each chunk size; argv[0] is the file size in MiB."""
    args = sys.argv[1:] if argv is None else argv
    size_mib = _parse_size(args[0]) if args else DEFAULT_SIZE_MIB
    size_bytes = size_mib * 1024 * 1024

    print(f"# ftx throughput probe — {size_mib} MiB localhost transfer")
    print(f"{'chunk_size':<14} throughput")
    for chunk_size in CHUNK_SIZES:
        try:
            mibps = run_one(size_bytes, chunk_size)
        except SendError as exc:
            print(f"send failed: {exc}", file=sys.stderr)
            return 1
        print(f"{chunk_size:<12}  {mibps:.1f} MiB/s")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())