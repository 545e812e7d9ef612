"""Package containing all supported protocols."""

from .protocol import BaseProtocol
from .tapoprotocol import DeviceInfo, TapoProtocol

__all__ = [
    "BaseProtocol",
    "DeviceInfo",
    "TapoProtocol",
]
