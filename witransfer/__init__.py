"""
WiTransfer - LAN peer discovery

Finds other WiTransfer instances on the local network by broadcasting
and listening for UDP announcements.
"""

__version__ = "0.1.0"
