"""
Listener - receives announcements from the shared discovery socket.

The read timeout is a liveness ceiling only: when it expires the loop
logs and keeps listening. Malformed or oversized datagrams are dropped
one at a time.
Any other receive failure (socket closed, permission revoked) ends the
listener with a TransportError.
"""

import asyncio
import errno
import logging
import socket
from typing import Awaitable, Callable

from .codec import decode
from .errors import DecodeError, TransportError
from .models import Envelope

logger = logging.getLogger(__name__)

DEFAULT_READ_TIMEOUT = 50.0  # seconds
DEFAULT_BUFFER_SIZE = 4096

# Windows reports a datagram longer than the buffer as an error instead of truncating it
MESSAGE_TOO_LONG = {errno.EMSGSIZE, getattr(errno, 'WSAEMSGSIZE', 10040)}

EnvelopeHandler = Callable[[Envelope], Awaitable[None]]


class Listener:
    """Decodes inbound datagrams and forwards envelopes in arrival order."""

    NAME = "listener"

    def __init__(self, sock: socket.socket, on_envelope: EnvelopeHandler,
                 read_timeout: float = DEFAULT_READ_TIMEOUT,
                 buffer_size: int = DEFAULT_BUFFER_SIZE):
        """
        Initialize the listener.

        Args:
            sock: Non-blocking UDP socket bound to the discovery port
            on_envelope: Awaited once for every decoded envelope
            read_timeout: Longest wait for a datagram before logging idleness
            buffer_size: Largest datagram accepted; longer ones are truncated
        """
        self.sock = sock
        self.on_envelope = on_envelope
        self.read_timeout = read_timeout
        self.buffer_size = buffer_size

        self.received = 0
        self.forwarded = 0
        self.malformed = 0

    async def run(self):
        """
        Listen until cancelled.

        Raises:
            TransportError: If receiving fails for any reason but a timeout
                or an oversized datagram
        """
        loop = asyncio.get_running_loop()
        logger.info("Awaiting announcements")

        while True:
            try:
                data, addr = await asyncio.wait_for(
                    loop.sock_recvfrom(self.sock, self.buffer_size),
                    timeout=self.read_timeout,
                )
            except asyncio.TimeoutError:
                logger.debug(f"No announcements in the last {self.read_timeout}s")
                continue
            except OSError as e:
                if e.errno in MESSAGE_TOO_LONG:
                    self.received += 1
                    self.malformed += 1
                    logger.debug(f"Dropping datagram longer than {self.buffer_size} bytes")
                    continue
                raise TransportError(self.NAME, f"receive failed: {e}") from e

            self.received += 1
            try:
                envelope = decode(data)
            except DecodeError as e:
                self.malformed += 1
                logger.debug(f"Dropping datagram from {addr[0]}:{addr[1]}: {e}")
                continue

            await self.on_envelope(envelope)
            self.forwarded += 1
