"""Implementation of the Tapo JSON-RPC protocol.

The protocol turns method calls into request documents, hands them to the
transport negotiated for the device and unwraps the ``result`` of the
response.  Each instance drives exactly one device session: requests are
serialized with a lock so the device sees them in program order.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from pprint import pformat as pf
from typing import TYPE_CHECKING, Any

from ..deviceconfig import EncryptionType
from ..exceptions import TapoException
from ..json import dumps as json_dumps
from .protocol import BaseProtocol, mask_mac, redact_data

if TYPE_CHECKING:
    from ..transports import BaseTransport


_LOGGER = logging.getLogger(__name__)

#: The device info document, its fields vary between models and firmware.
DeviceInfo = dict[str, Any]


REDACTORS: dict[str, Callable[[Any], Any] | None] = {
    "latitude": lambda x: 0,
    "longitude": lambda x: 0,
    "device_id": lambda x: "REDACTED_" + x[9::],
    "nickname": lambda x: "I01BU0tFRF9OQU1FIw==" if x else "",
    "mac": mask_mac,
    "ssid": lambda x: "I01BU0tFRF9TU0lEIw==" if x else "",
    "oem_id": lambda x: "REDACTED_" + x[9::],
    "hw_id": lambda x: "REDACTED_" + x[9::],
    "fw_id": lambda x: "REDACTED_" + x[9::],
    "ip": None,
    "token": None,
    "username": None,
    "password": None,
}


class TapoProtocol(BaseProtocol):
    """Class for the Tapo protocol over a KLAP or passthrough transport."""

    def __init__(
        self,
        *,
        transport: BaseTransport,
    ) -> None:
        """Create a protocol object."""
        super().__init__(transport=transport)
        self._query_lock = asyncio.Lock()

    @property
    def encryption_type(self) -> EncryptionType:
        """Return the encryption type of the underlying transport."""
        return self._transport.encryption_type

    @property
    def is_logged_in(self) -> bool:
        """Return True if the session is usable."""
        return self._transport.is_established

    async def login(self) -> None:
        """Run the full handshake, discarding all previous key material."""
        async with self._query_lock:
            await self._transport.login()

    async def query(self, method: str, params: dict | None = None) -> Any:
        """Send method to the device and return the result of the response."""
        async with self._query_lock:
            return await self._execute_query(method, params)

    async def _execute_query(self, method: str, params: dict | None) -> Any:
        request = self._transport.build_request(method, params)
        debug_enabled = _LOGGER.isEnabledFor(logging.DEBUG)
        if debug_enabled:
            _LOGGER.debug("%s >> %s", self._host, method)

        response_data = await self._transport.send(json_dumps(request))

        if debug_enabled:
            data = redact_data(response_data, REDACTORS)
            _LOGGER.debug("%s << %s", self._host, pf(data))

        return response_data.get("result")

    async def get_device_info(self) -> DeviceInfo:
        """Return the device info document."""
        result = await self.query("get_device_info")
        if not isinstance(result, dict):
            raise TapoException(f"{self._host} returned no device info")
        return result

    async def set_device_info(self, params: dict[str, Any]) -> None:
        """Update device info fields, e.g. ``{"device_on": True}``."""
        await self.query("set_device_info", params)

    async def close(self) -> None:
        """Close the underlying transport."""
        await self._transport.close()
