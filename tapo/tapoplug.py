"""Module for Tapo smart plugs (P100 and compatible).

>>> from tapo import ApiClient
>>> async with ApiClient("user@example.com", "great_password") as client:
>>>     plug = await client.p100("192.168.1.20")
>>>     await plug.turn_on()
>>>     info = await plug.get_device_info()
>>>     print(info["device_on"])
True
"""

from __future__ import annotations

import base64
import logging
from typing import Any

from .deviceconfig import DeviceConfig
from .exceptions import TapoException
from .protocolfactory import get_protocol
from .protocols import DeviceInfo, TapoProtocol

_LOGGER = logging.getLogger(__name__)


def _decode_nickname(value: str | None) -> str | None:
    if not value:
        return value
    try:
        return base64.b64decode(value).decode()
    except ValueError:
        return value


class TapoPlug:
    """Representation of a Tapo smart plug.

    All operations need a successful :meth:`login` first.  After a
    :class:`~tapo.exceptions.SessionTimeoutError`, or any other error which
    invalidates the session, call :meth:`refresh_session` before retrying.
    """

    def __init__(self, config: DeviceConfig) -> None:
        self._config = config
        self._protocol: TapoProtocol | None = None
        self._last_update: DeviceInfo = {}

    @property
    def host(self) -> str:
        """The host name or IP address of the plug."""
        return self._config.host

    @property
    def config(self) -> DeviceConfig:
        """Return the connection parameters the plug is using."""
        return self._config

    @property
    def protocol(self) -> TapoProtocol:
        """Return the negotiated protocol."""
        if self._protocol is None:
            raise TapoException(f"Not logged in to {self.host}, call login() first")
        return self._protocol

    async def login(self) -> None:
        """Negotiate the protocol and authenticate with the plug."""
        if self._protocol is None:
            self._protocol = await get_protocol(self._config)
        await self._protocol.login()
        _LOGGER.debug(
            "Logged in to %s using %s",
            self.host,
            self._protocol.encryption_type.value,
        )

    async def refresh_session(self) -> None:
        """Re-run the full login, discarding all previous key material."""
        await self.protocol.login()

    async def get_device_info(self) -> DeviceInfo:
        """Return the device info document."""
        return await self.protocol.get_device_info()

    async def update(self) -> None:
        """Fetch the device info document and cache it."""
        self._last_update = await self.get_device_info()

    async def set_state(self, on: bool) -> None:
        """Set the power state of the plug."""
        await self.protocol.set_device_info({"device_on": on})
        if self._last_update:
            self._last_update["device_on"] = on

    async def turn_on(self) -> None:
        """Turn the plug on."""
        await self.set_state(True)

    async def turn_off(self) -> None:
        """Turn the plug off."""
        await self.set_state(False)

    @property
    def internal_state(self) -> DeviceInfo:
        """Return the last fetched device info document."""
        return self._last_update

    def _get(self, key: str) -> Any:
        return self._last_update.get(key)

    @property
    def is_on(self) -> bool | None:
        """Return the power state from the last update."""
        return self._get("device_on")

    @property
    def model(self) -> str | None:
        """Return the device model."""
        return self._get("model")

    @property
    def alias(self) -> str | None:
        """Return the device alias."""
        return _decode_nickname(self._get("nickname"))

    @property
    def device_id(self) -> str | None:
        """Return the device id."""
        return self._get("device_id")

    @property
    def fw_ver(self) -> str | None:
        """Return the firmware version."""
        return self._get("fw_ver")

    @property
    def rssi(self) -> int | None:
        """Return the WiFi signal strength."""
        return self._get("rssi")

    async def close(self) -> None:
        """Close the connection to the plug."""
        if self._protocol is not None:
            await self._protocol.close()

    async def __aenter__(self) -> TapoPlug:
        return self

    async def __aexit__(self, exc_t: Any, exc_v: Any, exc_tb: Any) -> None:
        await self.close()

    def __repr__(self) -> str:
        if not self._last_update:
            return f"<{self.__class__.__name__} at {self.host} - update() needed>"
        return (
            f"<{self.__class__.__name__} at {self.host} - "
            f"{self.alias} ({self.model}) - {'on' if self.is_on else 'off'}>"
        )
