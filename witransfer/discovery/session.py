"""
Discovery Session

Design Decision: Concurrency Model
==================================

Options Considered:
1. One thread per role sharing a socket and a locked list
2. asyncio tasks sharing a non-blocking socket and a bounded queue

Decision: asyncio tasks
- The receive suspends on the event loop's selector, so sending and
  table updates keep running while the listener waits up to read_timeout
- Cancellation reaches every component through Task.cancel()
- asyncio.Queue(maxsize) gives backpressure when the registry falls behind

Data flow:
    Announcer --(socket)--> network --(socket)--> Listener
    Listener --(bounded queue)--> Registry consumer --> display sinks

Lifecycle: INITIALIZING -> RUNNING -> STOPPED
- A bind failure goes straight to STOPPED and raises InitializationError
- A transport failure stops only the component that hit it; the session
  stops once neither the announcer nor the listener is alive
- stop() cancels everything; the registry keeps its last table
"""

import asyncio
import functools
import logging
import socket
from enum import Enum
from typing import Dict, Iterable, List, Optional

from ..config import Config
from .announcer import Announcer
from .codec import encode
from .errors import EncodeError, InitializationError
from .listener import Listener
from .models import DescriptorProvider, DeviceDescriptor, Envelope, PeerEntry, canonical_address
from .registry import ChangeCallback, PeerRegistry

logger = logging.getLogger(__name__)

REGISTRY_TASK = "registry"
SWEEPER_TASK = "sweeper"

WILDCARD_HOSTS = ('', '0.0.0.0')


class SessionState(Enum):
    """Lifecycle of a discovery session."""
    INITIALIZING = "initializing"
    RUNNING = "running"
    STOPPED = "stopped"


def open_discovery_socket(host: str, port: int, reuse_address: bool = False) -> socket.socket:
    """
    Open the non-blocking UDP socket shared by the announcer and listener.

    Raises:
        InitializationError: If the socket cannot be configured or bound
    """
    sock = None
    try:
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_BROADCAST, 1)
        if reuse_address:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.bind((host, port))
        sock.setblocking(False)
    except (OSError, OverflowError, TypeError, ValueError) as e:
        # OverflowError and TypeError mean a port out of range or not an int
        if sock is not None:
            sock.close()
        raise InitializationError(f"Cannot open discovery socket on {host or '*'}:{port}: {e}") from e
    return sock


def get_local_ip() -> str:
    """Get the local IP address (best guess)."""
    try:
        # Connecting a UDP socket sends nothing, it only picks the route
        s = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        try:
            s.connect(("8.8.8.8", 80))
            return s.getsockname()[0]
        finally:
            s.close()
    except OSError:
        return "127.0.0.1"


class DiscoverySession:
    """
    Owns the discovery socket, queue and registry for one run.

    Usage:
        async with DiscoverySession(LocalDescriptorProvider(), config) as session:
            await session.wait()
    """

    def __init__(self, provider: DescriptorProvider, config: Optional[Config] = None,
                 sinks: Iterable[ChangeCallback] = ()):
        """
        Initialize a session. Nothing is opened until start().

        Args:
            provider: Source of the local descriptor
            config: Discovery configuration (uses defaults if not provided)
            sinks: Callbacks receiving a table snapshot after every change
        """
        self.provider = provider
        self.config = config or Config()
        self._sinks: List[ChangeCallback] = list(sinks)

        self.state = SessionState.INITIALIZING
        self.descriptor: Optional[DeviceDescriptor] = None
        self.local_address: Optional[str] = None
        self.registry: Optional[PeerRegistry] = None
        self.errors: Dict[str, BaseException] = {}

        self._socket: Optional[socket.socket] = None
        self._queue: Optional[asyncio.Queue] = None
        self._announcer: Optional[Announcer] = None
        self._listener: Optional[Listener] = None
        self._tasks: Dict[str, asyncio.Task] = {}
        self._stopping = False
        self._stopped = asyncio.Event()
        self._stop_task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self.state is SessionState.RUNNING

    async def start(self):
        """
        Open the socket and start all components.

        Raises:
            InitializationError: If the descriptor or socket cannot be set up
        """
        if self.state is SessionState.RUNNING:
            return
        if self.state is SessionState.STOPPED:
            raise RuntimeError("A stopped session cannot be restarted")

        config = self.config
        try:
            self.descriptor = self._load_descriptor()
            self.local_address = self._resolve_local_address()
            envelope = self._build_envelope()
            self._socket = open_discovery_socket(config.host, config.port, config.reuse_address)
        except InitializationError as e:
            logger.error(f"Discovery failed to start: {e}")
            self._mark_stopped()
            raise

        self.registry = PeerRegistry(self.local_address, peer_ttl=config.peer_ttl)
        for sink in self._sinks:
            self.registry.on_change(sink)
        self._queue = asyncio.Queue(maxsize=config.queue_size)

        self._announcer = Announcer(
            self._socket,
            (config.broadcast_address, config.port),
            envelope,
            interval=config.announce_interval,
        )
        self._listener = Listener(
            self._socket,
            self._deliver,
            read_timeout=config.read_timeout,
            buffer_size=config.buffer_size,
        )

        self._spawn(REGISTRY_TASK, self.registry.consume(self._queue))
        self._spawn(Listener.NAME, self._listener.run())
        self._spawn(Announcer.NAME, self._announcer.run())
        if config.peer_ttl is not None:
            self._spawn(SWEEPER_TASK, self._sweep_loop(config.peer_ttl))

        self.state = SessionState.RUNNING
        logger.info(
            f"Discovery running on {config.host or '*'}:{config.port} "
            f"as {self.descriptor.display_name} ({self.local_address})"
        )

    async def stop(self):
        """Cancel all components and close the socket. The peer table is kept."""
        if self._stopping or self.state is SessionState.STOPPED:
            await self._stopped.wait()
            return
        self._stopping = True

        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

        if self._socket is not None:
            self._socket.close()
            self._socket = None

        self._mark_stopped()
        logger.info("Discovery stopped")

    async def wait(self):
        """Block until the session is stopped."""
        await self._stopped.wait()

    def component_alive(self, name: str) -> bool:
        """Whether the named component task is still running."""
        task = self._tasks.get(name)
        return task is not None and not task.done()

    def get_peers(self) -> List[PeerEntry]:
        """Get a snapshot of the discovered peers."""
        if self.registry is None:
            return []
        return self.registry.list_peers()

    def get_stats(self) -> dict:
        """Get session statistics."""
        return {
            'state': self.state.value,
            'local_address': self.local_address,
            'total_peers': len(self.registry) if self.registry else 0,
            'announcements_sent': self._announcer.sent if self._announcer else 0,
            'datagrams_received': self._listener.received if self._listener else 0,
            'datagrams_malformed': self._listener.malformed if self._listener else 0,
            'queued_announcements': self._queue.qsize() if self._queue else 0,
            'components': {name: self.component_alive(name) for name in self._tasks},
            'errors': {name: str(exc) for name, exc in self.errors.items()},
        }

    async def __aenter__(self) -> 'DiscoverySession':
        await self.start()
        return self

    async def __aexit__(self, *exc_info):
        await self.stop()

    # === Internals ===

    def _load_descriptor(self) -> DeviceDescriptor:
        try:
            return self.provider.current()
        except Exception as e:
            raise InitializationError(f"Cannot describe the local host: {e}") from e

    def _build_envelope(self) -> Envelope:
        envelope = Envelope.for_descriptor(self.descriptor, self.local_address)
        try:
            encode(envelope)
        except EncodeError as e:
            raise InitializationError(f"Cannot announce as {self.local_address}: {e}") from e
        return envelope

    def _resolve_local_address(self) -> str:
        if self.config.local_address:
            address = self.config.local_address
        elif self.config.host not in WILDCARD_HOSTS:
            address = self.config.host
        else:
            address = get_local_ip()
        # Must match the ip_addr our own announcements decode to
        return canonical_address(address)

    def _spawn(self, name: str, coro):
        task = asyncio.create_task(coro, name=f"witransfer-{name}")
        task.add_done_callback(functools.partial(self._on_task_done, name))
        self._tasks[name] = task

    def _on_task_done(self, name: str, task: asyncio.Task):
        if task.cancelled():
            return

        exc = task.exception()
        if exc is not None:
            self.errors[name] = exc
            logger.error(f"Discovery {name} stopped: {exc}")
        else:
            logger.info(f"Discovery {name} finished")

        if self._stopping or self.state is not SessionState.RUNNING:
            return
        if not self.component_alive(Announcer.NAME) and not self.component_alive(Listener.NAME):
            logger.warning("Announcer and listener are both down, stopping discovery")
            self._stop_task = asyncio.ensure_future(self.stop())

    async def _deliver(self, envelope: Envelope):
        """Hand an envelope from the listener to the registry consumer."""
        if not self.component_alive(REGISTRY_TASK):
            logger.warning(f"Registry is not running, dropping announcement from {envelope.source_address}")
            return
        await self._queue.put(envelope)

    async def _sweep_loop(self, peer_ttl: float):
        """Periodically expire silent peers."""
        while True:
            await asyncio.sleep(max(peer_ttl / 2, 0.05))
            self.registry.sweep()

    def _mark_stopped(self):
        self.state = SessionState.STOPPED
        self._stopped.set()
