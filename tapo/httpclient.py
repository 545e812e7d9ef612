"""Module for HttpClient class."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from http.cookies import SimpleCookie
from typing import Any

import aiohttp
from yarl import URL

from .deviceconfig import DeviceConfig
from .exceptions import (
    TapoException,
    TimeoutError,
    _ConnectionError,
)
from .json import loads as json_loads

_LOGGER = logging.getLogger(__name__)


def create_client_session() -> aiohttp.ClientSession:
    """Return a new client session that never stores or replays cookies.

    Devices track the session with a single TP_SESSIONID cookie which the
    transports capture and send back explicitly.
    """
    return aiohttp.ClientSession(cookie_jar=aiohttp.DummyCookieJar())


class HttpClient:
    """HttpClient Class."""

    def __init__(self, config: DeviceConfig) -> None:
        self._config = config
        self._client_session: aiohttp.ClientSession | None = None
        self._last_cookies: SimpleCookie = SimpleCookie()

    @property
    def client(self) -> aiohttp.ClientSession:
        """Return the underlying http client."""
        if self._config.http_client and issubclass(
            self._config.http_client.__class__, aiohttp.ClientSession
        ):
            return self._config.http_client

        if not self._client_session:
            self._client_session = create_client_session()
        return self._client_session

    async def post(
        self,
        url: URL,
        *,
        params: dict[str, Any] | None = None,
        data: bytes | None = None,
        json: dict | None = None,
        headers: dict[str, str] | None = None,
        cookies_dict: dict[str, str] | None = None,
        skip_auto_headers: Iterable[str] | None = None,
    ) -> tuple[int, dict | bytes | None]:
        """Send an http post request to the device.

        If the request is provided via the json parameter json will be returned.
        """
        # The query may carry the session token
        _LOGGER.debug("Posting to %s", URL(url).with_query(None))
        response_data = None
        self._last_cookies = SimpleCookie()
        return_json = json is not None
        if self._config.timeout is None:
            _LOGGER.warning("Request timeout is set to None.")
        client_timeout = aiohttp.ClientTimeout(total=self._config.timeout)

        request_headers = dict(headers or {})
        if cookies_dict:
            request_headers["Cookie"] = "; ".join(
                f"{name}={value}" for name, value in cookies_dict.items()
            )

        try:
            resp = await self.client.post(
                url,
                params=params,
                data=data,
                json=json,
                timeout=client_timeout,
                headers=request_headers,
                skip_auto_headers=skip_auto_headers,
            )
            async with resp:
                response_data = await resp.read()
                self._last_cookies = resp.cookies

            if resp.status == 200:
                if return_json:
                    response_data = json_loads(response_data)
            else:
                _LOGGER.debug(
                    "Device %s received status code %s",
                    self._config.host,
                    resp.status,
                )

        # ServerTimeoutError is also a ClientConnectionError so it goes first
        except (aiohttp.ServerTimeoutError, asyncio.TimeoutError) as ex:
            raise TimeoutError(
                "Unable to query the device, "
                + f"timed out: {self._config.host}: {ex}",
                ex,
            ) from ex
        except (
            aiohttp.ServerDisconnectedError,
            aiohttp.ClientOSError,
            aiohttp.ClientConnectionError,
        ) as ex:
            raise _ConnectionError(
                f"Device connection error: {self._config.host}: {ex}", ex
            ) from ex
        except Exception as ex:
            raise TapoException(
                f"Unable to query the device: {self._config.host}: {ex}", ex
            ) from ex

        return resp.status, response_data

    def get_cookie(self, cookie_name: str) -> str | None:
        """Return the cookie with cookie_name from the last response."""
        if cookie := self._last_cookies.get(cookie_name):
            return cookie.value
        return None

    async def close(self) -> None:
        """Close the ClientSession."""
        client = self._client_session
        self._client_session = None
        if client:
            await client.close()
