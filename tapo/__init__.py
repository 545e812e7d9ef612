"""Python interface for TP-Link's Tapo smart plugs.

The client negotiates KLAP or secure passthrough encryption with each
device and returns a logged in plug::

>>> from tapo import ApiClient
>>> async with ApiClient("user@example.com", "great_password") as client:
>>>     plug = await client.p100("192.168.1.20")
>>>     print(await plug.get_device_info())

Errors are raised as subclasses of `TapoException` and are expected
to be handled by the user of the library.
"""

from tapo.client import ApiClient
from tapo.credentials import Credentials
from tapo.deviceconfig import DeviceConfig, EncryptionType
from tapo.exceptions import (
    AuthenticationError,
    DecryptionError,
    DeviceError,
    HandshakeVerificationError,
    InvalidHostError,
    MalformedResponseError,
    SessionNotEstablishedError,
    SessionTimeoutError,
    SmartErrorCode,
    TapoException,
    TimeoutError,
    UnreachableError,
)
from tapo.protocols import BaseProtocol, DeviceInfo, TapoProtocol
from tapo.tapoplug import TapoPlug
from tapo.version import __version__

__all__ = [
    "ApiClient",
    "AuthenticationError",
    "BaseProtocol",
    "Credentials",
    "DecryptionError",
    "DeviceConfig",
    "DeviceError",
    "DeviceInfo",
    "EncryptionType",
    "HandshakeVerificationError",
    "InvalidHostError",
    "MalformedResponseError",
    "SessionNotEstablishedError",
    "SessionTimeoutError",
    "SmartErrorCode",
    "TapoException",
    "TapoPlug",
    "TapoProtocol",
    "TimeoutError",
    "UnreachableError",
    "__version__",
]
