"""CRC-32C (Castagnoli), table-driven, byte at a time."""

_POLY_REFLECTED = 0x82F63B78


def _build_table() -> tuple[int, ...]:
    table = []
    for i in range(256):
        c = i
        for _ in range(8):
            c = (c >> 1) ^ _POLY_REFLECTED if c & 1 else c >> 1
        table.append(c)
    return tuple(table)


_TABLE = _build_table()


def crc32c(data: bytes, seed: int = 0) -> int:
    """Compute CRC-32C of ``data``.

    ``seed`` allows chaining: ``crc32c(b, crc32c(a)) == crc32c(a + b)``.
    """
    table = _TABLE
    c = ~seed & 0xFFFFFFFF
    for byte in memoryview(data).cast("B"):
        c = (c >> 8) ^ table[(c ^ byte) & 0xFF]
    return ~c & 0xFFFFFFFF