"""Package containing all supported transports."""

from .basetransport import BaseTransport
from .klaptransport import KlapEncryptionSession, KlapTransport
from .passthroughtransport import AesEncryptionSession, KeyPair, PassthroughTransport

__all__ = [
    "AesEncryptionSession",
    "BaseTransport",
    "KeyPair",
    "KlapEncryptionSession",
    "KlapTransport",
    "PassthroughTransport",
]
