"""BLAKE3 hashing (default hash mode, 32-byte output)."""

from __future__ import annotations

import struct
from typing import NamedTuple

DIGEST_SIZE = 32
ZERO_DIGEST = bytes(DIGEST_SIZE)

_MASK = 0xFFFFFFFF
_BLOCK_LEN = 64
_CHUNK_LEN = 1024

_CHUNK_START = 1 << 0
_CHUNK_END = 1 << 1
_PARENT = 1 << 2
_ROOT = 1 << 3

_IV = (
    0x6A09E667,
    0xBB67AE85,
    0x3C6EF372,
    0xA54FF53A,
    0x510E527F,
    0x9B05688C,
    0x1F83D9AB,
    0x5BE0CD19,
)

_MSG_PERMUTATION = (2, 6, 3, 10, 7, 0, 4, 13, 1, 11, 12, 5, 9, 14, 15, 8)

_G_POSITIONS = (
    (0, 4, 8, 12),
    (1, 5, 9, 13),
    (2, 6, 10, 14),
    (3, 7, 11, 15),
    (0, 5, 10, 15),
    (1, 6, 11, 12),
    (2, 7, 8, 13),
    (3, 4, 9, 14),
)

_BLOCK_WORDS = struct.Struct("<16I")
_CV_BYTES = struct.Struct("<8I")


def _build_plan() -> tuple[tuple[int, int, int, int, int, int], ...]:
    plan = []
    schedule = list(range(16))
    for _ in range(7):
        for i, (a, b, c, d) in enumerate(_G_POSITIONS):
            plan.append((a, b, c, d, schedule[2 * i], schedule[2 * i + 1]))
        schedule = [schedule[p] for p in _MSG_PERMUTATION]
    return tuple(plan)


_PLAN = _build_plan()


def _compress(cv, m, counter: int, block_len: int, flags: int) -> list[int]:
    v = [
        *cv,
        _IV[0],
        _IV[1],
        _IV[2],
        _IV[3],
        counter & _MASK,
        (counter >> 32) & _MASK,
        block_len,
        flags,
    ]
    mask = _MASK
    for a, b, c, d, xi, yi in _PLAN:
        va = (v[a] + v[b] + m[xi]) & mask
        vd = v[d] ^ va
        vd = ((vd >> 16) | (vd << 16)) & mask
        vc = (v[c] + vd) & mask
        vb = v[b] ^ vc
        vb = ((vb >> 12) | (vb << 20)) & mask
        va = (va + vb + m[yi]) & mask
        vd ^= va
        vd = ((vd >> 8) | (vd << 24)) & mask
        vc = (vc + vd) & mask
        vb ^= vc
        vb = ((vb >> 7) | (vb << 25)) & mask
        v[a] = va
        v[b] = vb
        v[c] = vc
        v[d] = vd
    for i in range(8):
        v[i] ^= v[i + 8]
        v[i + 8] ^= cv[i]
    return v


class _Output(NamedTuple):
    input_cv: tuple[int, ...]
    block_words: tuple[int, ...]
    counter: int
    block_len: int
    flags: int

    def chaining_value(self) -> tuple[int, ...]:
        words = _compress(
            self.input_cv, self.block_words, self.counter, self.block_len, self.flags
        )
        return tuple(words[:8])

    def root_digest(self) -> bytes:
        words = _compress(
            self.input_cv, self.block_words, 0, self.block_len, self.flags | _ROOT
        )
        return _CV_BYTES.pack(*words[:8])


def _parent_output(left: tuple[int, ...], right: tuple[int, ...]) -> _Output:
    return _Output(_IV, left + right, 0, _BLOCK_LEN, _PARENT)


class _ChunkState:
    __slots__ = ("cv", "counter", "block", "blocks_compressed")

    def __init__(self, counter: int) -> None:
        self.cv: tuple[int, ...] = _IV
        self.counter = counter
        self.block = bytearray()
        self.blocks_compressed = 0

    def __len__(self) -> int:
        return _BLOCK_LEN * self.blocks_compressed + len(self.block)

    def _start_flag(self) -> int:
        return _CHUNK_START if self.blocks_compressed == 0 else 0

    def update(self, data: memoryview) -> None:
        pos = 0
        end = len(data)
        while pos < end:
            if len(self.block) == _BLOCK_LEN:
                words = _BLOCK_WORDS.unpack(self.block)
                self.cv = tuple(
                    _compress(self.cv, words, self.counter, _BLOCK_LEN, self._start_flag())[:8]
                )
                self.blocks_compressed += 1
                self.block = bytearray()
            take = min(_BLOCK_LEN - len(self.block), end - pos)
            self.block += data[pos : pos + take]
            pos += take

    def output(self) -> _Output:
        padded = bytes(self.block).ljust(_BLOCK_LEN, b"\x00")
        return _Output(
            self.cv,
            _BLOCK_WORDS.unpack(padded),
            self.counter,
            len(self.block),
            self._start_flag() | _CHUNK_END,
        )


class Blake3Hasher:
    """Incremental BLAKE3 hasher; finalize() does not consume the state."""

    def __init__(self) -> None:
        self._chunk = _ChunkState(0)
        self._cv_stack: list[tuple[int, ...]] = []

    def update(self, data) -> None:
        """Absorb ``data`` (any bytes-like object)."""
        view = memoryview(data).cast("B")
        pos = 0
        end = len(view)
        while pos < end:
            if len(self._chunk) == _CHUNK_LEN:
                cv = self._chunk.output().chaining_value()
                total_chunks = self._chunk.counter + 1
                self._push_chunk_cv(cv, total_chunks)
                self._chunk = _ChunkState(total_chunks)
            take = min(_CHUNK_LEN - len(self._chunk), end - pos)
            self._chunk.update(view[pos : pos + take])
            pos += take

    def _push_chunk_cv(self, cv: tuple[int, ...], total_chunks: int) -> None:
        while total_chunks & 1 == 0:
            cv = _parent_output(self._cv_stack.pop(), cv).chaining_value()
            total_chunks >>= 1
        self._cv_stack.append(cv)

    def finalize(self) -> bytes:
        """Return the 32-byte digest of everything absorbed so far."""
        output = self._chunk.output()
        for left in reversed(self._cv_stack):
            output = _parent_output(left, output.chaining_value())
        return output.root_digest()

    def reset(self) -> None:
        """Return to the freshly constructed state."""
        self._chunk = _ChunkState(0)
        self._cv_stack = []


def blake3(data) -> bytes:
    """One-shot BLAKE3 over ``data``; returns a 32-byte digest."""
    hasher = Blake3Hasher()
    hasher.update(data)
    return hasher.finalize()