"""Secure TCP file transfer with per-chunk hashing, resume and TLS."""

__version__ = "0.1.0"