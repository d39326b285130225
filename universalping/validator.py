"""Endpoint URL parsing and startup validation."""

import logging
from collections.abc import Iterable
from urllib.parse import SplitResult, urlsplit

from .config import PRIVACY_NONE, ConfigError

logger = logging.getLogger(__name__)

ALLOWED_SCHEMES = ("http", "https")


class InvalidEndpointError(ValueError):
    """Raised when an endpoint is not a well-formed http(s) URL."""

    pass


class NoValidEndpointsError(ConfigError):
    """Raised when validation leaves no endpoint to monitor."""

    pass


def parse_endpoint(endpoint: str) -> SplitResult:
    """Split an endpoint URL into its components.

    Args:
        endpoint: URL string as configured.

    Returns:
        The parsed URL.

    Raises:
        InvalidEndpointError: If the URL has no http(s) scheme, no host, a bad
            port, or contains whitespace.
    """
    if not isinstance(endpoint, str) or not endpoint:
        raise InvalidEndpointError("empty URL")
    if any(ch.isspace() for ch in endpoint):
        raise InvalidEndpointError("URL contains whitespace")

    try:
        parsed = urlsplit(endpoint)
    except ValueError as e:
        raise InvalidEndpointError(str(e))

    if not parsed.scheme:
        raise InvalidEndpointError("missing scheme")
    if parsed.scheme not in ALLOWED_SCHEMES:
        raise InvalidEndpointError(f"unsupported scheme '{parsed.scheme}'")
    if not parsed.hostname:
        raise InvalidEndpointError("missing host")

    try:
        parsed.port
    except ValueError as e:
        raise InvalidEndpointError(f"invalid port ({e})")

    return parsed


def validate_endpoints(raw_endpoints: Iterable[str], privacy_mode: str = PRIVACY_NONE) -> list[tuple[int, str]]:
    """Filter the configured endpoints down to well-formed URLs.

    Order is preserved. Every dropped entry is logged so a typo in the
    configuration never disappears silently. Each valid endpoint is paired
    with its position in the configured list.

    Args:
        raw_endpoints: Endpoints in configuration order.
        privacy_mode: Privacy mode used when naming dropped entries in logs.

    Returns:
        (position, endpoint) pairs for the valid endpoints, positions 0-based.

    Raises:
        NoValidEndpointsError: If no endpoint is valid.
    """
    # Import here to avoid a circular import (privacy parses URLs with this module)
    from .privacy import mask_endpoint

    valid: list[tuple[int, str]] = []
    invalid_count = 0

    for index, endpoint in enumerate(raw_endpoints):
        try:
            parse_endpoint(endpoint)
        except InvalidEndpointError as e:
            invalid_count += 1
            logger.error("Invalid URL %s: %s", mask_endpoint(endpoint, privacy_mode, index), e)
            continue
        valid.append((index, endpoint))

    if invalid_count:
        logger.warning("Found %d invalid URL(s). Please check your configuration.", invalid_count)

    if not valid:
        raise NoValidEndpointsError("No valid endpoints to monitor")

    return valid
