"""
Announcer - periodic UDP broadcast of the local envelope.

There is no retry or backoff: the next announcement is the retry for
a lost one. A failing send means the network layer is unusable, so the
announce loop stops and reports a TransportError to the session.
"""

import asyncio
import logging
import socket
from typing import Tuple

from .codec import encode
from .errors import TransportError
from .models import Envelope

logger = logging.getLogger(__name__)

DEFAULT_ANNOUNCE_INTERVAL = 2.0  # seconds


class Announcer:
    """Broadcasts one envelope every `interval` seconds until cancelled."""

    NAME = "announcer"

    def __init__(self, sock: socket.socket, broadcast_address: Tuple[str, int],
                 envelope: Envelope, interval: float = DEFAULT_ANNOUNCE_INTERVAL):
        """
        Initialize the announcer.

        Args:
            sock: Non-blocking UDP socket with SO_BROADCAST set
            broadcast_address: (address, port) the announcements go to
            envelope: Description of the local host
            interval: Seconds between announcements
        """
        self.sock = sock
        self.broadcast_address = broadcast_address
        self.envelope = envelope
        self.interval = interval

        self.sent = 0

    async def run(self):
        """
        Announce until cancelled.

        Raises:
            TransportError: If a send fails
        """
        loop = asyncio.get_running_loop()
        host, port = self.broadcast_address
        logger.info(f"Announcing on {host}:{port} every {self.interval}s")

        while True:
            payload = encode(self.envelope)
            try:
                await loop.sock_sendto(self.sock, payload, self.broadcast_address)
            except OSError as e:
                raise TransportError(self.NAME, f"send to {host}:{port} failed: {e}") from e

            self.sent += 1
            logger.debug(f"Sent announcement #{self.sent} ({len(payload)} bytes)")
            await asyncio.sleep(self.interval)
