from __future__ import annotations

import asyncio

import pytest

from tapo import DeviceConfig, EncryptionType, TapoProtocol
from tapo.json import loads as json_loads
from tapo.transports import BaseTransport


class DummyTransport(BaseTransport):
    """Transport answering requests from a list of canned responses."""

    def __init__(self, *, config: DeviceConfig) -> None:
        super().__init__(config=config)
        self.responses: list[dict] = []
        self.requests: list[dict] = []
        self.logged_in = False
        self.in_flight = 0
        self.max_in_flight = 0

    @property
    def encryption_type(self) -> EncryptionType:
        return EncryptionType.Klap

    @property
    def is_established(self) -> bool:
        return self.logged_in

    async def login(self) -> None:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        await asyncio.sleep(0)
        self.in_flight -= 1
        self.logged_in = True

    async def send(self, request: str) -> dict:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        self.requests.append(json_loads(request))
        await asyncio.sleep(0)
        self.in_flight -= 1
        if self.responses:
            return self.responses.pop(0)
        return {"error_code": 0}

    async def close(self) -> None:
        self.logged_in = False

    async def reset(self) -> None:
        self.logged_in = False


@pytest.fixture
def dummy_protocol():
    """Return a tapo protocol instance with a mocking-ready dummy transport."""
    transport = DummyTransport(config=DeviceConfig(host="127.0.0.123"))
    return TapoProtocol(transport=transport)
