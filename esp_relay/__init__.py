"""
ESP Relay

WebSocket relay that forwards controller commands to a single ESP32 device.
"""

__version__ = "0.1.0"

from .router import MessageRouter, RouteResult, is_identity_announcement
from .session import Session, SessionId
from .relay_server import RelayServer

__all__ = [
    'MessageRouter',
    'RouteResult',
    'is_identity_announcement',
    'Session',
    'SessionId',
    'RelayServer',
]
