"""
Discovery data model.

DeviceDescriptor and Envelope are immutable values that travel over the
wire. PeerEntry only lives inside the registry.
"""

import ipaddress
import time
from dataclasses import dataclass, field
from typing import Protocol

# Identifies WiTransfer traffic among other broadcast noise
PROTOCOL_TAG = "WiTransfer"


@dataclass(frozen=True)
class DeviceDescriptor:
    """Identity and platform metadata describing one host."""
    display_name: str
    user_name: str
    host_name: str
    platform: str
    distro: str
    concurrency_hint: int = 1

    def __post_init__(self):
        if self.concurrency_hint < 1:
            raise ValueError(f"concurrency_hint must be >= 1, got {self.concurrency_hint}")


@dataclass(frozen=True)
class Envelope:
    """
    One discovery announcement.

    source_address is the address the sender advertises for itself and is
    the key peers are registered under.
    """
    protocol_tag: str
    descriptor: DeviceDescriptor
    source_address: str
    concurrency_hint: int

    @classmethod
    def for_descriptor(cls, descriptor: DeviceDescriptor, address: str) -> 'Envelope':
        """Build the announcement for the local host."""
        return cls(
            protocol_tag=PROTOCOL_TAG,
            descriptor=descriptor,
            source_address=address,
            concurrency_hint=descriptor.concurrency_hint,
        )


def label_for(descriptor: DeviceDescriptor) -> str:
    """Human readable label shown for a peer, e.g. "Alice - alice-laptop"."""
    name = descriptor.display_name.strip() or descriptor.user_name
    return f"{name} - {descriptor.host_name}"


def canonical_address(address: str) -> str:
    """
    Normalize an IP address to the text the codec puts on the wire.

    Anything that is not an IP address is returned unchanged.
    """
    try:
        return str(ipaddress.ip_address(address))
    except ValueError:
        return address


@dataclass
class PeerEntry:
    """A discovered peer."""
    address: str
    label: str
    first_seen: float = field(default_factory=time.monotonic)
    last_seen: float = field(default_factory=time.monotonic)


class DescriptorProvider(Protocol):
    """Supplies the descriptor announced for the local host. Must not block."""

    def current(self) -> DeviceDescriptor:
        ...
