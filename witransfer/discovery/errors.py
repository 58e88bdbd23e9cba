"""
Discovery Errors

Error taxonomy for the discovery engine:
- InitializationError: socket setup failed, the session never runs
- TransportError: send/receive failed while running, fatal to one component
- DecodeError: a datagram could not be parsed, the datagram is dropped

Admission rejections (foreign tag, own address, duplicate) are not errors.
"""


class DiscoveryError(Exception):
    """Base class for all discovery errors."""


class CodecError(DiscoveryError):
    """Base class for wire format errors."""


class EncodeError(CodecError):
    """An envelope could not be serialized."""


class DecodeError(CodecError):
    """A payload is not a well-formed announcement."""


class InitializationError(DiscoveryError):
    """The discovery socket could not be opened or configured."""


class TransportError(DiscoveryError):
    """A send or receive on the discovery socket failed."""

    def __init__(self, component: str, message: str):
        super().__init__(f"{component}: {message}")
        self.component = component
