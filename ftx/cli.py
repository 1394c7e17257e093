"""Command-line entry point: ``serve`` to receive files, ``send`` to send one."""

from __future__ import annotations

import argparse
import ipaddress
import logging
import re
from pathlib import PurePath

from ftx.storage.file_source import FileSourceError
from ftx.transport.client import DEFAULT_CHUNK_SIZE, Client, ClientOptions, SendError
from ftx.transport.server import Server
from ftx.transport.tls import TlsConfig
from ftx.version import version

DEFAULT_LISTEN = "0.0.0.0:9000"

EXIT_OK = 0
EXIT_SEND_FAILED = 1
EXIT_USAGE = 2
EXIT_FATAL = 3

_LEADING_INT = re.compile(r"\s*[+-]?\d+")

log = logging.getLogger("ftx")


def parse_host_port(value: str) -> tuple[str, int]:
    """Split ``host:port`` at the last colon; raises ValueError if invalid."""
    host, sep, port_text = value.rpartition(":")
    if not sep or not port_text:
        raise ValueError(f"expected host:port, got {value!r}")
    match = _LEADING_INT.match(port_text)
    if match is None:
        raise ValueError(f"invalid port in {value!r}")
    port = int(match.group())
    if not 1 <= port <= 65535:
        raise ValueError(f"port out of range in {value!r}")
    return host, port


def build_tls_config(
    cert: str = "",
    key: str = "",
    ca: str = "",
    no_verify_peer: bool = False,
    sni: str = "",
    is_server: bool = False,
) -> TlsConfig:
    """Build the TLS settings for one side; raises ValueError without cert and key."""
    if not cert or not key:
        raise ValueError(
            "TLS is required by default; pass --insecure or provide --tls-cert + --tls-key"
        )
    return TlsConfig(
        cert_path=cert,
        key_path=key,
        ca_path=ca,
        verify_peer=not no_verify_peer,
        sni_host="" if is_server else sni,
    )


def _tls_from_args(args: argparse.Namespace, is_server: bool) -> TlsConfig:
    return build_tls_config(
        cert=args.tls_cert,
        key=args.tls_key,
        ca=args.tls_ca,
        no_verify_peer=args.no_verify_peer,
        sni=args.sni,
        is_server=is_server,
    )


def _add_tls_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--tls-cert", default="", help="PEM certificate (chain) for this side")
    parser.add_argument("--tls-key", default="", help="PEM private key for --tls-cert")
    parser.add_argument(
        "--tls-ca", default="", help="PEM bundle of trusted CAs (peer verification)"
    )
    parser.add_argument(
        "--no-verify-peer",
        action="store_true",
        help="do not require / verify a peer certificate",
    )
    parser.add_argument(
        "--sni", default="", help="client only - server name to send + verify against"
    )
    parser.add_argument(
        "--insecure",
        action="store_true",
        help="disable TLS entirely (plain TCP - local testing only)",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ftx", description="ftx - secure cross-platform TCP file transfer"
    )
    parser.add_argument("--version", action="version", version=version())
    commands = parser.add_subparsers(dest="command", required=True)

    serve = commands.add_parser("serve", help="Run as receiver (server)")
    serve.add_argument(
        "--listen",
        default=DEFAULT_LISTEN,
        help=f"host:port to listen on (default {DEFAULT_LISTEN})",
    )
    serve.add_argument("--root", required=True, help="root directory for incoming files")
    _add_tls_options(serve)

    send = commands.add_parser("send", help="Send a file to a remote ftx serve")
    send.add_argument("remote", help="host:port of remote ftx serve")
    send.add_argument("source", help="local file to send")
    send.add_argument(
        "--out", default="", help="remote destination path (default: source filename)"
    )
    send.add_argument(
        "--chunk-size",
        type=int,
        default=DEFAULT_CHUNK_SIZE,
        help="chunk size in bytes (default 1 MiB)",
    )
    _add_tls_options(send)
    return parser


def _run_serve(args: argparse.Namespace) -> int:
    try:
        host, port = parse_host_port(args.listen)
    except ValueError:
        log.error("invalid --listen value: %s", args.listen)
        return EXIT_USAGE

    if host != "0.0.0.0":
        try:
            ipaddress.ip_address(host)
        except ValueError as exc:
            log.error("invalid host: %s (%s)", host, exc)
            return EXIT_USAGE

    tls = None
    if not args.insecure:
        try:
            tls = _tls_from_args(args, is_server=True)
        except ValueError as exc:
            log.error("%s", exc)
            return EXIT_USAGE

    server = Server(host, port, args.root, tls)
    if tls is None:
        log.info("ftx serve: PLAIN TCP on %s:%d root=%s", host, server.local_port(), args.root)
    else:
        log.info(
            "ftx serve: TLS%s on %s:%d root=%s",
            "+mTLS" if tls.verify_peer else "",
            host,
            server.local_port(),
            args.root,
        )
    try:
        server.run()
    except KeyboardInterrupt:
        server.stop()
    return EXIT_OK


def _run_send(args: argparse.Namespace) -> int:
    try:
        host, port = parse_host_port(args.remote)
    except ValueError:
        log.error("invalid remote: %s (expected host:port)", args.remote)
        return EXIT_USAGE

    remote_dest = args.out or PurePath(args.source).name

    tls = None
    if not args.insecure:
        try:
            tls = _tls_from_args(args, is_server=False)
        except ValueError as exc:
            log.error("%s", exc)
            return EXIT_USAGE

    client = Client(ClientOptions(chunk_size=args.chunk_size, tls=tls))
    try:
        client.send(host, port, args.source, remote_dest)
    except (SendError, FileSourceError) as exc:
        log.error("send failed: %s", exc)
        return EXIT_SEND_FAILED
    return EXIT_OK


def main(argv: list[str] | None = None) -> int:
    """Parse ``argv`` and run the chosen subcommand; returns the exit status."""
    logging.basicConfig(
        level=logging.INFO,
        format="[%(asctime)s.%(msecs)03d] [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
    )
    args = _build_parser().parse_args(argv)
    try:
        if args.command == "serve":
            return _run_serve(args)
        if args.command == "send":
            return _run_send(args)
    except Exception as exc:
        log.error("fatal: %s", exc)
        return EXIT_FATAL
    return EXIT_OK


if __name__ == "__main__":
    raise SystemExit(main())