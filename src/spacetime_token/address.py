"""Server address normalization.

Profiles store whatever address the user typed: the reserved alias "local",
a bare host, or a full URL (optionally ending in the "/spacetime" path the
hosted servers are mounted under). The spacetime CLI, however, wants a
protocol and a bare host in its [[server_configs]] rows, and the identity
endpoint wants a base URL without the "/spacetime" suffix.

All functions here are pure and total: malformed input degrades to an empty
host instead of raising, and normalizing an already-normalized value is a
no-op.

Examples:
    >>> normalize_server_target("local")
    ServerTarget(protocol='http', host='127.0.0.1:3000')
    >>> normalize_server_target("https://host.example/spacetime/")
    ServerTarget(protocol='https', host='host.example')
    >>> normalize_identity_base("https://host.example/spacetime/")
    'https://host.example'
"""

from typing import NamedTuple

LOCAL_ALIAS = "local"
SPACETIME_PATH_SUFFIX = "/spacetime"
IDENTITY_PATH = "/v1/identity"


class ServerTarget(NamedTuple):
    """Canonical (protocol, host) pair written to a registry row."""

    protocol: str
    host: str

    def to_url(self) -> str:
        return f"{self.protocol}://{self.host}"


LOCAL_TARGET = ServerTarget("http", "127.0.0.1:3000")

_SCHEMES = ("https", "http")


def _strip_base(address: str) -> str:
    """Drop trailing slashes and a single trailing /spacetime segment."""
    trimmed = address.rstrip("/")
    if trimmed.endswith(SPACETIME_PATH_SUFFIX):
        trimmed = trimmed[: -len(SPACETIME_PATH_SUFFIX)]
    return trimmed.rstrip("/")


def normalize_identity_base(address: str) -> str:
    """Return the base URL used to build the identity endpoint.

    The scheme, if any, is kept as-is.

    Args:
        address: Raw address string

    Returns:
        Address without trailing slashes or /spacetime suffix
    """
    return _strip_base(address)


def normalize_server_target(address: str) -> ServerTarget:
    """Split a raw address into the protocol and host the spacetime CLI expects.

    Args:
        address: Raw address ("local", bare host, or URL)

    Returns:
        ServerTarget; protocol defaults to http when no scheme is given
    """
    if address == LOCAL_ALIAS:
        return LOCAL_TARGET

    remainder = _strip_base(address)
    protocol = "http"
    for scheme in _SCHEMES:
        prefix = f"{scheme}://"
        if remainder.startswith(prefix):
            protocol = scheme
            remainder = remainder[len(prefix) :]
            break
        # "https://" loses its slashes above and has no host left
        if remainder == f"{scheme}:":
            protocol = scheme
            remainder = ""
            break

    host = remainder.split("/", 1)[0]
    return ServerTarget(protocol, host)


def identity_endpoint(address: str) -> str:
    """Return the URL that issues a fresh identity token for an address."""
    return f"{normalize_identity_base(address)}{IDENTITY_PATH}"


__all__ = [
    "IDENTITY_PATH",
    "LOCAL_ALIAS",
    "LOCAL_TARGET",
    "ServerTarget",
    "identity_endpoint",
    "normalize_identity_base",
    "normalize_server_target",
]
