"""Display-safe rendering of endpoints for logs."""

from .config import PRIVACY_FULL, PRIVACY_PARTIAL
from .validator import InvalidEndpointError, parse_endpoint

REDACTED_ENDPOINT = "https://***"

# Hosts at or below this length are fully redacted in partial mode.
MIN_MASKABLE_HOST_LENGTH = 7


def mask_endpoint(endpoint: str, mode: str, index: int) -> str:
    """Render an endpoint for display under a privacy mode.

    Args:
        endpoint: Endpoint URL as configured.
        mode: "none" (as-is), "partial" (host masked) or "full" (numbered placeholder).
        index: Zero-based position of the endpoint in the configured list.

    Returns:
        The display string.
    """
    if mode == PRIVACY_FULL:
        return f"Endpoint {index + 1}"
    if mode == PRIVACY_PARTIAL:
        return _mask_host(endpoint)
    return endpoint


def _mask_host(endpoint: str) -> str:
    """Keep the first and last three characters of the host and the path."""
    try:
        parsed = parse_endpoint(endpoint)
    except InvalidEndpointError:
        return REDACTED_ENDPOINT

    host = parsed.hostname or ""
    if len(host) < MIN_MASKABLE_HOST_LENGTH:
        return REDACTED_ENDPOINT

    return f"https://{host[:3]}***{host[-3:]}{parsed.path or '/'}"
