"""
Host network lookups shown on the display.
"""
import logging
import socket
from typing import Optional

import psutil

logger = logging.getLogger(__name__)

WIFI_INTERFACE_PREFIX = 'w'


def wifi_ip_address(prefix: str = WIFI_INTERFACE_PREFIX) -> Optional[str]:
    """Return the first IPv4 address of a wireless interface, or None.

    Wireless interfaces are recognised by name (``wlan0``, ``wlp2s0``, ...).
    """
    try:
        interfaces = psutil.net_if_addrs()
    except OSError as e:
        logger.debug(f"Could not list network interfaces: {e}")
        return None

    for name, addresses in interfaces.items():
        if not name.startswith(prefix):
            continue
        for addr in addresses:
            if addr.family == socket.AF_INET:
                return addr.address
    return None
