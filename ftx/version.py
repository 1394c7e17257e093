"""Library version information."""

VERSION = "0.1.0"


def version() -> str:
    """Return the library version string."""
    return VERSION