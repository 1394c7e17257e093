"""TLS context construction for both ends of a transfer."""

from __future__ import annotations

import ssl
from dataclasses import dataclass


@dataclass
class TlsConfig:
    """Paths to PEM materials plus verification settings.

    Empty paths skip the corresponding step. ``sni_host`` is used by the
    client only, both for SNI and for checking the server's name.
    """

    cert_path: str = ""
    key_path: str = ""
    ca_path: str = ""
    verify_peer: bool = True
    sni_host: str = ""


def _apply_common(context: ssl.SSLContext, config: TlsConfig) -> None:
    # TLS 1.3 only; no negotiation down to weaker versions.
    context.minimum_version = ssl.TLSVersion.TLSv1_3
    context.maximum_version = ssl.TLSVersion.TLSv1_3
    if config.cert_path:
        context.load_cert_chain(config.cert_path, config.key_path or None)
    elif config.key_path:
        raise ValueError("a private key was given without a certificate")
    if config.ca_path:
        context.load_verify_locations(cafile=config.ca_path)


def make_server_tls_context(config: TlsConfig) -> ssl.SSLContext:
    """Server context; with ``verify_peer`` every client must present a trusted cert."""
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
    _apply_common(context, config)
    context.verify_mode = ssl.CERT_REQUIRED if config.verify_peer else ssl.CERT_NONE
    return context


def make_client_tls_context(config: TlsConfig) -> ssl.SSLContext:
    """Client context; the server's name is checked only when ``sni_host`` is set."""
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
    _apply_common(context, config)
    if config.verify_peer:
        context.check_hostname = bool(config.sni_host)
        context.verify_mode = ssl.CERT_REQUIRED
    else:
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
    return context