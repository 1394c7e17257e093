# ftx

`ftx` sends a single file from one machine to another over TCP. The file is
split into chunks; every chunk is hashed with BLAKE3 and checked on arrival,
and the whole file is checked against a root hash before it is renamed into
place. Interrupted transfers resume: the receiver remembers which chunks are
already on disk and asks only for the rest. By default the link is TLS 1.3,
and the server requires a client certificate unless told otherwise.

Only the Python standard library is needed at run time.

## Installing

```
pip install .
```

## Receiving files

Run a server that writes incoming files below a root directory:

```
ftx serve --root ./incoming --tls-cert server.crt --tls-key server.key --tls-ca ca.crt
```

Options:

- `--listen HOST:PORT` — address to listen on (default `0.0.0.0:9000`).
  The host must be an IP address.
- `--root DIR` — directory for incoming files (required; created if absent).
  Paths sent by a client are relative to it; empty or absolute paths and
  paths with `..` segments are refused.
- `--tls-cert`, `--tls-key` — PEM certificate (chain) and private key.
- `--tls-ca` — PEM bundle of CAs trusted for client certificates.
- `--no-verify-peer` — do not require a client certificate.
- `--insecure` — plain TCP without TLS, for local testing only.

The server runs until interrupted. Each session is handled on its own
thread, so different files may arrive at the same time.

## Sending a file

```
ftx send receiver.example.com:9000 report.pdf --out docs/report.pdf \
    --tls-cert client.crt --tls-key client.key --tls-ca ca.crt --sni receiver.example.com
```

Options:

- `remote` — `host:port` of the receiving `ftx serve`.
- `source` — local file to send.
- `--out PATH` — destination path under the server's root (default: the
  source file's name).
- `--chunk-size BYTES` — chunk size (default 1 MiB).
- `--tls-cert`, `--tls-key`, `--tls-ca`, `--no-verify-peer`, `--insecure` —
  as for `serve`; with `--no-verify-peer` the server's certificate is not
  checked.
- `--sni NAME` — server name sent in the TLS handshake and checked against
  the server's certificate. Without it the host from `remote` is sent, and
  the certificate's name is not checked (its chain still is, unless
  `--no-verify-peer` is given).

On either side TLS is required unless `--insecure` is given; without
`--tls-cert` and `--tls-key` the command stops with an error.

`ftx --version` prints the version.

### Exit status

| code | meaning                                      |
|------|----------------------------------------------|
| 0    | success                                      |
| 1    | the transfer failed                          |
| 2    | bad arguments or TLS settings                |
| 3    | unexpected fatal error                       |

## Resuming

The receiver writes into `<dest>.partial` and keeps a `<dest>.ftxstate` file
next to it, updated after every chunk. When the same file is sent again to
the same destination with the same chunk size, only the chunks still
missing are transferred; a state file for a different manifest is discarded
and the transfer starts over. On success the partial file is renamed into
place and the state file is removed.

## Measuring throughput

```
ftx-bench 256
```

transfers a file of pseudo-random data of the given size in MiB (default
256) over the loopback interface with chunk sizes of 64 KiB, 256 KiB,
1 MiB and 4 MiB, and prints the throughput of each.

## Using it as a library

```python
from ftx.transport.client import Client, ClientOptions, SendError

client = Client(ClientOptions(chunk_size=256 * 1024))
try:
    client.send("127.0.0.1", 9000, "data.bin", "data.bin")
except SendError as exc:
    print("transfer failed:", exc)
```

```python
from ftx.transport.server import Server

server = Server("127.0.0.1", 0, "incoming")
print(server.local_port())
server.run_one()   # True once one file is received and acknowledged
```

Pass a `ftx.transport.tls.TlsConfig` as `ClientOptions(tls=...)` or as the
server's fourth argument to use TLS; `make_server_tls_context` and
`make_client_tls_context` build the `ssl.SSLContext` objects from it.

Other pieces:

- `ftx.proto.frame` — `FrameHeader`, `Frame`, `encode_frame`, and
  `FrameError` for rejected headers.
- `ftx.proto.decoder` — `FrameDecoder`, a streaming decoder fed bytes in any
  chunking; `frames()` yields every complete frame.
- `ftx.proto.messages` — `HelloMsg`, `ManifestMsg`, `ReqChunksMsg`,
  `ChunkMsg`, `CompleteMsg`, `AckMsg` and `ErrorMsg`, each with `encode()`
  and `decode()`; malformed payloads raise `MessageError`.
- `ftx.proto.types` — `FrameType`, `ErrorCode` and protocol constants.
- `ftx.transport.connection` — `Connection`, blocking frame send/receive
  over a socket, optionally wrapped in TLS.
- `ftx.storage` — `FileSource`, `FileSink` and `ResumeState`.
- `ftx.util.crc32c.crc32c` and `ftx.util.blake3.blake3` /
  `Blake3Hasher`.

## Limits

- One file per `send`; there is no directory or multi-file transfer.
- A single file is sent over one connection; it is not split across
  parallel streams.
- BLAKE3 and CRC-32C are implemented in pure Python, so hashing is far
  slower than a native implementation and dominates the cost of large
  transfers.

## Running the tests

```
pip install ".[test]"
pytest
```