"""Base class for all transport implementations.

All transport classes must derive from this to implement the common interface.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

from ..exceptions import MalformedResponseError

if TYPE_CHECKING:
    from ..deviceconfig import DeviceConfig, EncryptionType


class BaseTransport(ABC):
    """Base class for all Tapo protocol transports.

    A transport owns the handshake, the session key material and the
    encryption of a single device session.  It does not retry and does not
    re-authenticate on its own: after any failure that invalidates the
    session :meth:`login` has to be called again.
    """

    DEFAULT_PORT = 80
    SESSION_COOKIE_NAME = "TP_SESSIONID"

    def __init__(
        self,
        *,
        config: DeviceConfig,
    ) -> None:
        """Create a transport object."""
        self._config = config
        self._host = config.host
        self._port = config.port_override or self.DEFAULT_PORT
        self._credentials = config.credentials
        if not config.timeout:
            config.timeout = config.DEFAULT_TIMEOUT
        self._timeout = config.timeout

    @property
    @abstractmethod
    def encryption_type(self) -> EncryptionType:
        """The encryption scheme implemented by the transport."""

    @property
    @abstractmethod
    def is_established(self) -> bool:
        """Return True if the transport holds a usable session."""

    def build_request(self, method: str, params: dict | None = None) -> dict:
        """Build the request envelope for method."""
        return {"method": method, "params": params if params is not None else {}}

    @abstractmethod
    async def login(self) -> None:
        """Run the full handshake, discarding any previous session."""

    @abstractmethod
    async def send(self, request: str) -> dict[str, Any]:
        """Send a message to the device and return the decrypted response."""

    @abstractmethod
    async def close(self) -> None:
        """Close the transport.  Abstract method to be overriden."""

    @abstractmethod
    async def reset(self) -> None:
        """Drop the session and all key material."""


def get_error_code(resp_dict: Any) -> int:
    """Return the integer error_code of a device response, 0 when absent."""
    if not isinstance(resp_dict, dict):
        raise MalformedResponseError(
            f"Unexpected response from device: {resp_dict!r}"
        )
    error_code = resp_dict.get("error_code", 0)
    if isinstance(error_code, bool) or not isinstance(error_code, int):
        raise MalformedResponseError(
            f"Unexpected error_code in response: {error_code!r}"
        )
    return error_code
