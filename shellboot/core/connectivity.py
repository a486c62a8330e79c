# ==== NETWORK CONNECTIVITY CHECK ==== #
"""
Single synchronous reachability probe run before any remote fetch.

The result decides whether helper scripts, the theme and fonts may be pulled
from the network or whether startup must stay local-only.
"""

import logging
import socket

logger = logging.getLogger(__name__)

DEFAULT_PROBE_PORT = 443


def probe(host: str, timeout: float, port: int = DEFAULT_PROBE_PORT) -> bool:
    """
    Check whether `host` accepts a TCP connection within `timeout` seconds.

    Args:
        host: Hostname or IP address to contact.
        timeout: Connect timeout in seconds. Zero or less means "do not probe".
        port: TCP port, 443 by default.

    Returns:
        bool: True if the connection succeeded; False otherwise.
    """
    if not host or timeout <= 0:
        logger.debug("Connectivity probe skipped (host=%r, timeout=%s)", host, timeout)
        return False
    try:
        with socket.create_connection((host, port), timeout=timeout):
            pass
    except OSError as e:
        logger.warning("No connection to %s:%d (%s)", host, port, e)
        return False
    logger.debug("Connectivity probe to %s:%d succeeded", host, port)
    return True
