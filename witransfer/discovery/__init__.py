"""
Discovery Module - Peer Discovery on LAN

Finds other WiTransfer instances with UDP broadcast:
- Announcer sends our envelope every few seconds
- Listener decodes envelopes from other hosts
- PeerRegistry keeps the deduplicated peer table
- DiscoverySession wires them together
"""

from .models import (
    PROTOCOL_TAG,
    DescriptorProvider,
    DeviceDescriptor,
    Envelope,
    PeerEntry,
    label_for,
)
from .errors import (
    DiscoveryError,
    CodecError,
    EncodeError,
    DecodeError,
    InitializationError,
    TransportError,
)
from .codec import encode, decode
from .announcer import Announcer
from .listener import Listener
from .registry import Admission, PeerRegistry
from .session import DiscoverySession, SessionState, get_local_ip, open_discovery_socket

__all__ = [
    'PROTOCOL_TAG',
    'DescriptorProvider',
    'DeviceDescriptor',
    'Envelope',
    'PeerEntry',
    'label_for',
    'DiscoveryError',
    'CodecError',
    'EncodeError',
    'DecodeError',
    'InitializationError',
    'TransportError',
    'encode',
    'decode',
    'Announcer',
    'Listener',
    'Admission',
    'PeerRegistry',
    'DiscoverySession',
    'SessionState',
    'get_local_ip',
    'open_discovery_socket',
]
