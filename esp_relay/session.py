#!/usr/bin/env python3
"""
ESP Relay - Sessions

One Session per accepted WebSocket connection. Outbound frames go through a
bounded queue drained by a writer task, so routing never waits on a peer.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from websockets.exceptions import ConnectionClosed

logger = logging.getLogger(__name__)

DEFAULT_OUTBOX_SIZE = 256


class SessionId(str):
    """Opaque per-connection identifier, compared by value"""

    @classmethod
    def new(cls) -> "SessionId":
        return cls(uuid.uuid4().hex)

    @property
    def short(self) -> str:
        return self[:8]


@dataclass(eq=False)
class Session:
    """Represents one open connection"""
    ws: Any  # anything with an async send(str)
    session_id: SessionId = field(default_factory=SessionId.new)
    remote_address: Optional[Any] = None
    connected_at: datetime = field(default_factory=datetime.now)
    outbox_size: int = DEFAULT_OUTBOX_SIZE
    closed: bool = False
    # Stats
    frames_received: int = 0
    frames_delivered: int = 0
    frames_dropped: int = 0

    def __post_init__(self):
        self.outbox: asyncio.Queue = asyncio.Queue(maxsize=self.outbox_size)

    def enqueue(self, text: str) -> bool:
        """Queue a frame for delivery without waiting. False if it was dropped."""
        if self.closed:
            self.frames_dropped += 1
            return False
        try:
            self.outbox.put_nowait(text)
        except asyncio.QueueFull:
            self.frames_dropped += 1
            logger.warning(f"Outbox full for session {self.session_id.short}, "
                           f"dropping frame")
            return False
        return True

    async def drain_outbox(self):
        """Send queued frames in order until the session closes"""
        while True:
            text = await self.outbox.get()
            try:
                await self.ws.send(text)
                self.frames_delivered += 1
            except ConnectionClosed:
                logger.debug(f"Session {self.session_id.short} closed while sending")
                return
            finally:
                self.outbox.task_done()

    def to_dict(self) -> dict:
        return {
            "session_id": str(self.session_id),
            "remote_address": _format_address(self.remote_address),
            "connected_at": self.connected_at.isoformat(),
            "frames_received": self.frames_received,
            "frames_delivered": self.frames_delivered,
            "frames_dropped": self.frames_dropped,
            "queued": self.outbox.qsize(),
        }


def _format_address(address) -> Optional[str]:
    if address is None:
        return None
    if isinstance(address, (tuple, list)) and len(address) >= 2:
        return f"{address[0]}:{address[1]}"
    return str(address)
