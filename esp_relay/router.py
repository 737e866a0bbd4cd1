#!/usr/bin/env python3
"""
ESP Relay - Message Router

Tracks open sessions and the single device slot, and routes frames from
controllers to the device.

Routing rule:
    "ESP32" / "ESP32 connected"  -> sender becomes the device (last one wins)
    anything else                -> forwarded verbatim to the device, unless
                                    there is no device or the device sent it
"""

import asyncio
import logging
from enum import Enum
from typing import Any, Dict, Optional

from .session import DEFAULT_OUTBOX_SIZE, Session, SessionId

logger = logging.getLogger(__name__)

IDENTITY_ANNOUNCEMENTS = frozenset({"ESP32", "ESP32 connected"})


class RouteResult(str, Enum):
    """What happened to an inbound frame"""
    ANNOUNCED = "announced"
    FORWARDED = "forwarded"
    DROPPED_NO_DEVICE = "dropped_no_device"
    DROPPED_SELF = "dropped_self"
    DROPPED_FULL = "dropped_full"
    DROPPED_UNKNOWN_SESSION = "dropped_unknown_session"


def is_identity_announcement(payload: str) -> bool:
    """Exact, case-sensitive match against the reserved device literals"""
    return payload in IDENTITY_ANNOUNCEMENTS


class MessageRouter:
    """Routes frames from controllers to the device"""

    def __init__(self, outbox_size: int = DEFAULT_OUTBOX_SIZE):
        self.outbox_size = outbox_size

        # session_id -> Session
        self.sessions: Dict[SessionId, Session] = {}

        # The one session currently holding the device role
        self._device_id: Optional[SessionId] = None

        self._lock = asyncio.Lock()

    # =========================================================================
    # Session Lifecycle
    # =========================================================================

    async def register(self, ws: Any, remote_address: Any = None) -> Session:
        """Register a newly accepted connection. It starts as a controller."""
        session = Session(ws=ws, remote_address=remote_address,
                          outbox_size=self.outbox_size)
        async with self._lock:
            self.sessions[session.session_id] = session

        logger.info(f"Session opened: {session.session_id.short} "
                    f"from {remote_address}")
        return session

    async def unregister(self, session_id: SessionId):
        """Forget a closed session, clearing the device slot if it held it"""
        async with self._lock:
            session = self.sessions.pop(session_id, None)
            if session is None:
                return
            session.closed = True
            was_device = self._device_id == session_id
            if was_device:
                self._device_id = None

        logger.info(f"Session closed: {session_id.short}")
        if was_device:
            logger.info("Device disconnected, device slot is empty")

    # =========================================================================
    # Message Routing
    # =========================================================================

    async def route(self, session_id: SessionId, payload: str) -> RouteResult:
        """Classify one inbound frame and apply the routing rule"""
        async with self._lock:
            sender = self.sessions.get(session_id)
            if sender is None:
                return RouteResult.DROPPED_UNKNOWN_SESSION
            sender.frames_received += 1

            if is_identity_announcement(payload):
                previous = self._device_id
                self._device_id = session_id
                result = RouteResult.ANNOUNCED
            elif self._device_id is None:
                result = RouteResult.DROPPED_NO_DEVICE
            elif self._device_id == session_id:
                result = RouteResult.DROPPED_SELF
            elif self.sessions[self._device_id].enqueue(payload):
                result = RouteResult.FORWARDED
            else:
                result = RouteResult.DROPPED_FULL

        if result is RouteResult.ANNOUNCED:
            if previous is not None and previous != session_id:
                logger.info(f"Device replaced: {previous.short} -> {session_id.short}")
            else:
                logger.info(f"Device recognized: {session_id.short}")
        else:
            logger.debug(f"Frame from {session_id.short}: {result.value}")
        return result

    # =========================================================================
    # Queries
    # =========================================================================

    @property
    def device_session_id(self) -> Optional[SessionId]:
        return self._device_id

    def is_device_connected(self) -> bool:
        return self._device_id is not None

    def get_session(self, session_id: SessionId) -> Optional[Session]:
        return self.sessions.get(session_id)

    @property
    def session_count(self) -> int:
        return len(self.sessions)

    def get_status(self) -> Dict[str, Any]:
        """Get router status for monitoring"""
        device = self.sessions.get(self._device_id) if self._device_id else None
        return {
            "sessions_connected": len(self.sessions),
            "device_connected": device is not None,
            "device": device.to_dict() if device else None,
            "controllers": [
                s.to_dict() for sid, s in self.sessions.items()
                if sid != self._device_id
            ],
        }
