import socket
import threading

import pytest

from ftx.cli import build_tls_config, main, parse_host_port
from ftx.transport.server import Server
from ftx.version import version


def test_parse_host_port_default_listen():
    assert parse_host_port("0.0.0.0:9000") == ("0.0.0.0", 9000)


def test_parse_host_port_uses_last_colon():
    host, port = parse_host_port("::1:8080")
    assert host == "::1"
    assert port == 8080


@pytest.mark.parametrize("value", ["no-port", "host:", "host:0", "host:65536", "host:abc"])
def test_parse_host_port_rejects_invalid(value):
    with pytest.raises(ValueError):
        parse_host_port(value)


def test_parse_host_port_accepts_upper_bound():
    assert parse_host_port("h:65535")[1] == 65535


def test_build_tls_config_requires_cert_and_key():
    with pytest.raises(ValueError):
        build_tls_config(cert="a.crt", key="")
    with pytest.raises(ValueError):
        build_tls_config(cert="", key="a.key")


def test_build_tls_config_client_keeps_sni():
    cfg = build_tls_config(
        cert="c.crt", key="c.key", ca="ca.crt", no_verify_peer=False, sni="localhost"
    )
    assert cfg.cert_path == "c.crt"
    assert cfg.key_path == "c.key"
    assert cfg.ca_path == "ca.crt"
    assert cfg.verify_peer is True
    assert cfg.sni_host == "localhost"


def test_build_tls_config_server_drops_sni():
    cfg = build_tls_config(
        cert="s.crt", key="s.key", no_verify_peer=True, sni="localhost", is_server=True
    )
    assert cfg.sni_host == ""
    assert cfg.verify_peer is False


def test_version_flag(capsys):
    with pytest.raises(SystemExit) as info:
        main(["--version"])
    assert info.value.code == 0
    assert capsys.readouterr().out.strip() == version()


def test_subcommand_required():
    with pytest.raises(SystemExit) as info:
        main([])
    assert info.value.code == 2


def test_send_invalid_remote_returns_usage(tmp_path):
    src = tmp_path / "a.bin"
    src.write_bytes(b"x")
    assert main(["send", "nohost", str(src), "--insecure"]) == 2


def test_send_without_tls_material_returns_usage(tmp_path):
    src = tmp_path / "a.bin"
    src.write_bytes(b"x")
    assert main(["send", "127.0.0.1:9000", str(src)]) == 2


def test_send_missing_source_returns_failure(tmp_path):
    missing = tmp_path / "missing.bin"
    assert main(["send", "127.0.0.1:9000", str(missing), "--insecure"]) == 1


def test_send_with_missing_cert_file_is_fatal(tmp_path):
    src = tmp_path / "a.bin"
    src.write_bytes(b"x")
    argv = [
        "send",
        "127.0.0.1:9000",
        str(src),
        "--tls-cert",
        str(tmp_path / "none.crt"),
        "--tls-key",
        str(tmp_path / "none.key"),
    ]
    assert main(argv) == 3


def test_send_to_closed_port_returns_failure(tmp_path):
    src = tmp_path / "a.bin"
    src.write_bytes(b"data")
    probe = socket.socket()
    probe.bind(("127.0.0.1", 0))
    port = probe.getsockname()[1]
    probe.close()
    assert main(["send", f"127.0.0.1:{port}", str(src), "--insecure"]) == 1


def test_send_transfers_file(tmp_path):
    root = tmp_path / "recv"
    src = tmp_path / "src.bin"
    content = bytes(range(256)) * 12
    src.write_bytes(content)

    server = Server("127.0.0.1", 0, root)
    port = server.local_port()
    result = {}
    thread = threading.Thread(target=lambda: result.setdefault("ok", server.run_one()))
    thread.start()
    try:
        code = main(
            [
                "send",
                f"127.0.0.1:{port}",
                str(src),
                "--insecure",
                "--out",
                "got.bin",
                "--chunk-size",
                "1024",
            ]
        )
    finally:
        thread.join(timeout=30)
        server.stop()
    assert code == 0
    assert result["ok"] is True
    assert (root / "got.bin").read_bytes() == content


def test_send_default_destination_is_source_name(tmp_path):
    root = tmp_path / "recv"
    src = tmp_path / "named.bin"
    src.write_bytes(b"hello world")

    server = Server("127.0.0.1", 0, root)
    port = server.local_port()
    thread = threading.Thread(target=server.run_one)
    thread.start()
    try:
        code = main(["send", f"127.0.0.1:{port}", str(src), "--insecure"])
    finally:
        thread.join(timeout=30)
        server.stop()
    assert code == 0
    assert (root / "named.bin").read_bytes() == b"hello world"


def test_serve_invalid_listen_returns_usage(tmp_path):
    assert main(["serve", "--root", str(tmp_path), "--listen", "nonsense", "--insecure"]) == 2


def test_serve_invalid_host_returns_usage(tmp_path):
    argv = ["serve", "--root", str(tmp_path), "--listen", "not-an-ip:9000", "--insecure"]
    assert main(argv) == 2


def test_serve_without_tls_material_returns_usage(tmp_path):
    assert main(["serve", "--root", str(tmp_path), "--listen", "127.0.0.1:9000"]) == 2