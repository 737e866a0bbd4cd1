#!/usr/bin/env python3
"""
ESP Relay - Network helpers
"""

import logging
import socket

logger = logging.getLogger(__name__)


def get_local_ip_address(probe_host: str = "8.8.8.8") -> str:
    """Best-guess LAN IPv4 address of this machine, or "localhost"."""
    try:
        s = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        try:
            # UDP connect sends nothing, it only picks the outbound interface
            s.connect((probe_host, 80))
            ip = s.getsockname()[0]
        finally:
            s.close()
        if ip and not ip.startswith("127."):
            return ip
    except OSError as e:
        logger.debug(f"Local IP socket probe failed: {e}")

    try:
        for info in socket.getaddrinfo(socket.gethostname(), None, socket.AF_INET):
            ip = info[4][0]
            if not ip.startswith("127."):
                return ip
    except OSError as e:
        logger.debug(f"Hostname lookup failed: {e}")

    return "localhost"
