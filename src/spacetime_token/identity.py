"""Server-issued identity tokens.

Remote servers hand out a fresh identity when POSTed to
{base}/v1/identity with an empty body. The response is a JSON object
carrying the new token:

    {"identity": "c200...", "token": "eyJhbGciOi..."}

The request is bounded by a timeout; a slow server fails the command
rather than hanging it. There are no retries.
"""

import logging

import requests

from spacetime_token.address import identity_endpoint
from spacetime_token.errors import NetworkError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0


def fetch_server_issued_token(address: str, timeout: float = DEFAULT_TIMEOUT) -> str:
    """Request a new identity token from a server.

    Args:
        address: Raw profile address (normalized internally)
        timeout: Request timeout in seconds

    Returns:
        The issued token

    Raises:
        NetworkError: On timeout, connection failure, non-2xx status,
            or a response without a usable token
    """
    url = identity_endpoint(address)
    logger.debug(f"Requesting server-issued identity from {url}")

    try:
        response = requests.post(url, headers={"Content-Length": "0"}, timeout=timeout)
    except requests.Timeout as e:
        raise NetworkError(f"Request to {url} timed out after {timeout:g} seconds") from e
    except requests.RequestException as e:
        raise NetworkError(f"Failed to call {url}: {e}") from e

    if not 200 <= response.status_code < 300:
        raise NetworkError(
            f"Server-issued login failed with status {response.status_code} for {url}"
        )

    try:
        payload = response.json()
    except ValueError as e:
        raise NetworkError(f"Failed to parse identity response from {url}: {e}") from e

    token = payload.get("token") if isinstance(payload, dict) else None
    if not isinstance(token, str) or not token.strip():
        raise NetworkError("Identity response did not include a token.")

    return token


__all__ = ["DEFAULT_TIMEOUT", "fetch_server_issued_token"]
