"""Network reachability probe."""

import logging
import socket
from typing import Iterable

from nixupgrade.config.loader import DEFAULT_NETWORK_PROBES, DEFAULT_NETWORK_TIMEOUT

logger = logging.getLogger(__name__)


def _split_probe(probe: str) -> tuple[str, int]:
    host, _, port = probe.rpartition(":")
    host = host.strip("[]")
    if not host:
        raise ValueError(f"missing host in {probe!r}")
    return host, int(port)


def is_network_available(
    timeout: float = DEFAULT_NETWORK_TIMEOUT,
    probes: Iterable[str] = DEFAULT_NETWORK_PROBES,
) -> bool:
    """
    Check whether the network is reachable by opening a TCP connection.

    Each ``host:port`` probe is tried in order and the first successful
    connection wins. Any error (DNS failure, refused, timed out) counts as
    "not available"; this function never raises.

    Args:
        timeout: Per-probe connect timeout in seconds
        probes: Endpoints to try, e.g. ``"1.1.1.1:53"``

    Returns:
        True if at least one probe connected, False otherwise
    """
    for probe in probes:
        try:
            host, port = _split_probe(probe)
        except ValueError as exc:
            logger.debug("Skipping malformed network probe %r: %s", probe, exc)
            continue
        try:
            with socket.create_connection((host, port), timeout=timeout):
                logger.info("Network connectivity confirmed via %s", probe)
                return True
        except (OSError, ValueError, OverflowError) as exc:
            # IDNA rejections surface as UnicodeError, out-of-range ports as OverflowError.
            logger.debug("Failed to connect to %s: %s", probe, exc)
    logger.warning("No network connectivity detected")
    return False
