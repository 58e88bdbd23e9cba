"""Shared test helpers."""

import asyncio
import socket

from witransfer.discovery import PROTOCOL_TAG, DeviceDescriptor, Envelope


def make_descriptor(name: str = "Alice", host: str = None, threads: int = 4) -> DeviceDescriptor:
    return DeviceDescriptor(
        display_name=name,
        user_name=name.lower(),
        host_name=host or f"{name.lower()}-laptop",
        platform="Linux",
        distro="Ubuntu 24.04 LTS",
        concurrency_hint=threads,
    )


def make_envelope(address: str = "192.168.1.20", name: str = "Alice",
                  tag: str = PROTOCOL_TAG) -> Envelope:
    descriptor = make_descriptor(name)
    return Envelope(
        protocol_tag=tag,
        descriptor=descriptor,
        source_address=address,
        concurrency_hint=descriptor.concurrency_hint,
    )


class StaticProvider:
    """Descriptor provider returning a fixed descriptor."""

    def __init__(self, descriptor: DeviceDescriptor):
        self.descriptor = descriptor

    def current(self) -> DeviceDescriptor:
        return self.descriptor


def free_port(host: str = "127.0.0.1") -> int:
    s = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    try:
        s.bind((host, 0))
        return s.getsockname()[1]
    finally:
        s.close()


def udp_socket(host: str = "127.0.0.1", port: int = 0) -> socket.socket:
    """Bound, non-blocking UDP socket."""
    s = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    s.bind((host, port))
    s.setblocking(False)
    return s


async def wait_until(predicate, timeout: float = 4.0, interval: float = 0.02) -> bool:
    """Poll predicate until it is true or timeout expires."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while loop.time() < deadline:
        if predicate():
            return True
        await asyncio.sleep(interval)
    return predicate()
