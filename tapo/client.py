"""Client entry point holding the credentials shared by all devices."""

from __future__ import annotations

import logging
from typing import Any

import aiohttp

from .credentials import Credentials
from .deviceconfig import DeviceConfig, EncryptionType
from .httpclient import create_client_session
from .tapoplug import TapoPlug

_LOGGER = logging.getLogger(__name__)


class ApiClient:
    """Tapo API client.

    The client owns one http session, with cookie handling disabled, that is
    shared by all devices it opens.  Every device gets its own protocol
    session so different devices can be used concurrently.
    """

    def __init__(
        self,
        username: str,
        password: str,
        *,
        timeout: int = DeviceConfig.DEFAULT_TIMEOUT,
        encryption_type: EncryptionType | None = None,
        http_client: aiohttp.ClientSession | None = None,
    ) -> None:
        if username is None or password is None:
            raise ValueError("username and password are required")
        self._credentials = Credentials(username, password)
        self._timeout = timeout
        self._encryption_type = encryption_type
        self._http_client = http_client
        self._owns_http_client = http_client is None

    @property
    def http_client(self) -> aiohttp.ClientSession:
        """Return the shared http session, creating it on first use."""
        if self._http_client is None:
            self._http_client = create_client_session()
        return self._http_client

    def device_config(self, host: str) -> DeviceConfig:
        """Return the configuration used to connect to host."""
        return DeviceConfig(
            host,
            timeout=self._timeout,
            credentials=self._credentials,
            encryption_type=self._encryption_type,
            http_client=self.http_client,
        )

    async def plug(self, host: str) -> TapoPlug:
        """Return a logged in plug for the host."""
        plug = TapoPlug(self.device_config(host))
        try:
            await plug.login()
        except Exception:
            await plug.close()
            raise
        return plug

    async def p100(self, host: str) -> TapoPlug:
        """Return a logged in P100 plug for the host."""
        return await self.plug(host)

    async def close(self) -> None:
        """Close the http session if it was created by the client."""
        client = self._http_client
        if client and self._owns_http_client:
            self._http_client = None
            await client.close()

    async def __aenter__(self) -> ApiClient:
        return self

    async def __aexit__(self, exc_t: Any, exc_v: Any, exc_tb: Any) -> None:
        await self.close()
