"""Configuration for connecting directly to a device.

A :class:`DeviceConfig` carries everything the transports need: the host,
credentials, timeout and the encryption policy.  When ``encryption_type`` is
left as ``None`` the protocol is negotiated with the device on login.

>>> from tapo import Credentials, DeviceConfig
>>> config = DeviceConfig("192.168.1.20", credentials=Credentials("a@b.com", "p"))
>>> config.to_dict()
{'host': '192.168.1.20', 'timeout': 30, 'credentials': {'username': 'a@b.com', \
'password': 'p'}}
"""

from __future__ import annotations

import ipaddress
import logging
import re
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

from aiohttp import ClientSession
from mashumaro import field_options
from mashumaro.config import BaseConfig
from mashumaro.types import SerializationStrategy

from .credentials import Credentials
from .exceptions import InvalidHostError
from .json import DataClassJSONMixin

_LOGGER = logging.getLogger(__name__)

_HOSTNAME_LABEL = re.compile(r"^(?!-)[A-Za-z0-9-]{1,63}(?<!-)$")


class EncryptionType(Enum):
    """Encryption type enum."""

    Klap = "KLAP"
    Passthrough = "PASSTHROUGH"


def validate_host(host: str) -> str:
    """Return host if it is an ip address or a valid hostname, else raise."""
    if not isinstance(host, str) or not host or host != host.strip():
        raise InvalidHostError(f"Invalid host: {host!r}")
    try:
        ipaddress.ip_address(host)
    except ValueError:
        pass
    else:
        return host

    candidate = host[:-1] if host.endswith(".") else host
    labels = candidate.split(".")
    if (
        len(candidate) > 253
        or not all(_HOSTNAME_LABEL.match(label) for label in labels)
        # Dotted all-numeric strings are malformed ip addresses, not names
        or all(label.isdigit() for label in labels)
    ):
        raise InvalidHostError(f"Invalid host: {host!r}")
    return host


class _DeviceConfigBaseMixin(DataClassJSONMixin):
    """Base class for serialization mixin."""

    class Config(BaseConfig):
        """Serialization config."""

        omit_none = True


class _DoNotSerialize(SerializationStrategy):
    def serialize(self, value: Any) -> None:
        return None

    def deserialize(self, value: Any) -> None:
        return None


@dataclass
class DeviceConfig(_DeviceConfigBaseMixin):
    """Class to represent paramaters that determine how to connect to devices."""

    DEFAULT_TIMEOUT = 30
    #: IP address or hostname
    host: str
    #: Timeout in seconds for a single request to the device
    timeout: int | None = DEFAULT_TIMEOUT
    #: Override the default port 80 to support port forwarding
    port_override: int | None = None
    #: Credentials of the Tapo cloud account the device is bound to
    credentials: Credentials | None = None
    #: Force a protocol, or None to negotiate it with the device
    encryption_type: EncryptionType | None = None

    # compare=False will be excluded from object comparison.
    #: Set a custom http_client for the device to use.
    http_client: ClientSession | None = field(
        default=None,
        compare=False,
        metadata=field_options(serialization_strategy=_DoNotSerialize()),
    )

    def __post_init__(self) -> None:
        validate_host(self.host)

    def __pre_serialize__(self) -> DeviceConfig:
        return replace(self, http_client=None)
