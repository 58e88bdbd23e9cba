"""
Announcement Codec

Design Decision: Wire Format
============================

Options Considered:
1. Raw tag string - What the first prototype sent, carries no identity
2. JSON object - Human readable, matches the existing peers on the network
3. MessagePack - Compact, but every peer would need a new decoder

Decision: JSON validated with pydantic
- Keeps the field names other WiTransfer builds already send
- Strict types, so "4" is not accepted where 4 is expected
- Unknown keys are ignored so newer peers can add fields

Payload:
{
  "identifier": "WiTransfer",
  "device_info": {
    "real_name": "...", "user_name": "...", "device_name": "...",
    "platform": "...", "distro": "..."
  },
  "ip_addr": "192.168.1.20",
  "max_threads": 8
}
"""

import ipaddress

from pydantic import BaseModel, Field, StrictInt, StrictStr, ValidationError, field_validator

from .errors import DecodeError, EncodeError
from .models import DeviceDescriptor, Envelope


# === Wire Models ===

class DeviceInfoMessage(BaseModel):
    """The device_info block of an announcement."""
    real_name: StrictStr
    user_name: StrictStr
    device_name: StrictStr
    platform: StrictStr
    distro: StrictStr


class AnnounceMessage(BaseModel):
    """A complete announcement as it appears on the wire."""
    identifier: StrictStr
    device_info: DeviceInfoMessage
    ip_addr: StrictStr
    max_threads: StrictInt = Field(ge=1)

    @field_validator('ip_addr')
    @classmethod
    def _check_ip(cls, value: str) -> str:
        return str(ipaddress.ip_address(value))


# === Codec ===

def encode(envelope: Envelope) -> bytes:
    """
    Serialize an envelope into a datagram payload.

    Raises:
        EncodeError: If the envelope violates the wire schema
    """
    d = envelope.descriptor
    try:
        message = AnnounceMessage(
            identifier=envelope.protocol_tag,
            device_info=DeviceInfoMessage(
                real_name=d.display_name,
                user_name=d.user_name,
                device_name=d.host_name,
                platform=d.platform,
                distro=d.distro,
            ),
            ip_addr=envelope.source_address,
            max_threads=envelope.concurrency_hint,
        )
    except ValidationError as e:
        raise EncodeError(f"Invalid envelope: {e.error_count()} error(s): {e}") from e

    return message.model_dump_json().encode('utf-8')


def decode(data: bytes) -> Envelope:
    """
    Parse a datagram payload into an envelope.

    Any input that is not a well-formed announcement (truncated, invalid
    UTF-8, wrong schema, wrong types) raises DecodeError.

    Raises:
        DecodeError: If the payload is malformed
    """
    try:
        message = AnnounceMessage.model_validate_json(data)
    except ValueError as e:
        # pydantic's ValidationError is a ValueError
        raise DecodeError(f"Malformed announcement ({len(data)} bytes): {e}") from e

    info = message.device_info
    descriptor = DeviceDescriptor(
        display_name=info.real_name,
        user_name=info.user_name,
        host_name=info.device_name,
        platform=info.platform,
        distro=info.distro,
        concurrency_hint=message.max_threads,
    )
    return Envelope(
        protocol_tag=message.identifier,
        descriptor=descriptor,
        source_address=message.ip_addr,
        concurrency_hint=message.max_threads,
    )
