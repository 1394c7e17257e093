import pytest

from ftx.proto.messages import (
    ZERO_HASH,
    AckMsg,
    ChunkMsg,
    CompleteMsg,
    ErrorMsg,
    HelloMsg,
    ManifestMsg,
    MessageError,
    ReqChunksMsg,
)
from ftx.proto.types import ErrorCode


def test_hello_roundtrip():
    msg = HelloMsg(protocol_version=1, max_chunk_size=4096, capabilities=0xCAFE)
    enc = msg.encode()
    assert len(enc) == 1 + 4 + 4
    out = HelloMsg.decode(enc)
    assert out.protocol_version == 1
    assert out.max_chunk_size == 4096
    assert out.capabilities == 0xCAFE


def test_hello_wire_layout_is_big_endian():
    enc = HelloMsg(protocol_version=1, max_chunk_size=4096, capabilities=0xCAFE).encode()
    assert enc == bytes([0x01, 0x00, 0x00, 0x10, 0x00, 0x00, 0x00, 0xCA, 0xFE])


def test_hello_rejects_truncated():
    with pytest.raises(MessageError):
        HelloMsg.decode(b"")
    enc = HelloMsg().encode()
    with pytest.raises(MessageError):
        HelloMsg.decode(enc[:-1])


def test_hello_rejects_trailing_garbage():
    with pytest.raises(MessageError):
        HelloMsg.decode(HelloMsg().encode() + b"\x00")


def test_manifest_roundtrip_empty_hashes():
    msg = ManifestMsg(
        file_size=1024 * 1024,
        chunk_size=1024 * 1024,
        chunk_count=1,
        path="subdir/file.bin",
        chunk_hashes=[ZERO_HASH],
    )
    out = ManifestMsg.decode(msg.encode())
    assert out.file_size == msg.file_size
    assert out.chunk_size == msg.chunk_size
    assert out.chunk_count == msg.chunk_count
    assert out.path == msg.path
    assert len(out.chunk_hashes) == 1
    assert out.root_hash == ZERO_HASH


def test_manifest_roundtrip_with_multiple_chunk_hashes():
    hashes = [bytes((i * 32 + j) & 0xFF for j in range(32)) for i in range(5)]
    msg = ManifestMsg(
        file_size=5 * 1024 * 1024,
        chunk_size=1024 * 1024,
        chunk_count=5,
        root_hash=b"\xaa" * 32,
        path="x.bin",
        chunk_hashes=hashes,
    )
    out = ManifestMsg.decode(msg.encode())
    assert out.root_hash == msg.root_hash
    assert out.chunk_hashes == hashes
    assert out == msg


def test_manifest_rejects_missing_chunk_hashes():
    msg = ManifestMsg(chunk_count=2, path="a", chunk_hashes=[ZERO_HASH])
    with pytest.raises(MessageError):
        ManifestMsg.decode(msg.encode())


def test_manifest_rejects_bad_hash_length():
    with pytest.raises(ValueError):
        ManifestMsg(root_hash=b"short").encode()


def test_req_chunks_roundtrip():
    msg = ReqChunksMsg(indices=[0, 3, 7, 0xFFFFFFFF])
    enc = msg.encode()
    assert len(enc) == 4 + 4 * 4
    assert ReqChunksMsg.decode(enc).indices == [0, 3, 7, 0xFFFFFFFF]


def test_req_chunks_rejects_count_beyond_payload():
    with pytest.raises(MessageError):
        ReqChunksMsg.decode(b"\x00\x00\x00\x02\x00\x00\x00\x01")


def test_chunk_roundtrip():
    msg = ChunkMsg(index=42, hash=b"\x10" * 32, data=b"\x5a" * 128)
    enc = msg.encode()
    assert len(enc) == 4 + 32 + 128
    out = ChunkMsg.decode(enc)
    assert out.index == 42
    assert out.hash == msg.hash
    assert out.data == msg.data


def test_chunk_zero_length_data():
    out = ChunkMsg.decode(ChunkMsg(index=7).encode())
    assert out.index == 7
    assert out.data == b""


def test_chunk_rejects_truncated_hash():
    with pytest.raises(MessageError):
        ChunkMsg.decode(b"\x00\x00\x00\x01" + b"\x00" * 10)


def test_complete_roundtrip():
    msg = CompleteMsg(final_root_hash=b"\xcc" * 32, status=0)
    enc = msg.encode()
    assert len(enc) == 32 + 1
    out = CompleteMsg.decode(enc)
    assert out.status == 0
    assert out.final_root_hash == msg.final_root_hash


def test_ack_roundtrip():
    enc = AckMsg(last_index=0xDEADBEEF).encode()
    assert len(enc) == 4
    assert AckMsg.decode(enc).last_index == 0xDEADBEEF


def test_error_roundtrip_with_message():
    msg = ErrorMsg(code=ErrorCode.INVALID_PATH, message="rejected: ../etc/passwd")
    out = ErrorMsg.decode(msg.encode())
    assert out.code == ErrorCode.INVALID_PATH
    assert out.message == msg.message


def test_error_roundtrip_empty_message():
    out = ErrorMsg.decode(ErrorMsg(code=ErrorCode.UNSPECIFIED, message="").encode())
    assert out.code == ErrorCode.UNSPECIFIED
    assert out.message == ""


def test_error_keeps_unknown_code():
    out = ErrorMsg.decode(b"\x12\x34\x00\x02hi")
    assert out.code == 0x1234
    assert out.message == "hi"


def test_error_rejects_truncated_message():
    with pytest.raises(MessageError):
        ErrorMsg.decode(b"\x00\x01\x00\x05ab")