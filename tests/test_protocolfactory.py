import aiohttp
import pytest

from tapo.credentials import Credentials
from tapo.deviceconfig import DeviceConfig, EncryptionType
from tapo.exceptions import TimeoutError, UnreachableError, _ConnectionError
from tapo.protocolfactory import (
    NEGOTIATION_REQUEST,
    get_protocol,
    get_transport,
    negotiate_encryption_type,
)
from tapo.protocols import TapoProtocol
from tapo.transports import KlapTransport, PassthroughTransport

from .fakedevices import _mock_response, mock_json_response, mock_post

HOST = "127.0.0.1"
CREDENTIALS = Credentials("a@b.com", "p")


def _config(**kwargs):
    return DeviceConfig(HOST, credentials=CREDENTIALS, **kwargs)


@pytest.mark.parametrize(
    "response, encryption_type",
    [
        pytest.param(
            mock_json_response(200, {"error_code": 1003}),
            EncryptionType.Klap,
            id="unknown-credentials",
        ),
        pytest.param(
            mock_json_response(200, {"error_code": 0, "result": {}}),
            EncryptionType.Passthrough,
            id="success",
        ),
        pytest.param(
            mock_json_response(200, {"error_code": -1010}),
            EncryptionType.Passthrough,
            id="other-error-code",
        ),
        pytest.param(
            _mock_response(200, b"<html>not json</html>"),
            EncryptionType.Klap,
            id="not-json",
        ),
        pytest.param(
            mock_json_response(200, ["error_code", 0]),
            EncryptionType.Klap,
            id="not-a-document",
        ),
        pytest.param(
            _mock_response(404, b""),
            EncryptionType.Klap,
            id="status",
        ),
    ],
)
async def test_negotiate_encryption_type(mocker, response, encryption_type):
    conn = mocker.patch.object(
        aiohttp.ClientSession, "post", side_effect=mock_post(response)
    )

    assert await negotiate_encryption_type(_config()) is encryption_type

    assert conn.call_count == 1
    args, kwargs = conn.call_args
    assert args[0].host == HOST
    assert args[0].port == 80
    assert args[0].path == "/app"
    assert kwargs["json"] == NEGOTIATION_REQUEST


async def test_negotiate_port_override(mocker):
    conn = mocker.patch.object(
        aiohttp.ClientSession,
        "post",
        side_effect=mock_post(mock_json_response(200, {"error_code": 1003})),
    )

    await negotiate_encryption_type(_config(port_override=8080))

    assert conn.call_args.args[0].port == 8080


async def test_negotiate_ipv6_host(mocker):
    host = "fe80::1ff:fe23:4567:890a"
    conn = mocker.patch.object(
        aiohttp.ClientSession,
        "post",
        side_effect=mock_post(mock_json_response(200, {"error_code": 0})),
    )

    config = DeviceConfig(host, credentials=CREDENTIALS)
    assert await negotiate_encryption_type(config) is EncryptionType.Passthrough

    url = conn.call_args.args[0]
    assert url.host == host
    assert url.port == 80
    assert url.path == "/app"


@pytest.mark.parametrize(
    "error, error_class",
    [
        (aiohttp.ClientOSError("connection refused"), _ConnectionError),
        (aiohttp.ServerTimeoutError("timed out"), TimeoutError),
    ],
)
async def test_negotiate_unreachable(mocker, error, error_class):
    mocker.patch.object(aiohttp.ClientSession, "post", side_effect=error)

    with pytest.raises(error_class) as exc_info:
        await negotiate_encryption_type(_config())
    assert isinstance(exc_info.value, UnreachableError)


@pytest.mark.parametrize(
    "encryption_type", [EncryptionType.Klap, EncryptionType.Passthrough]
)
async def test_configured_encryption_type_skips_negotiation(mocker, encryption_type):
    conn = mocker.patch.object(aiohttp.ClientSession, "post")

    config = _config(encryption_type=encryption_type)
    assert await negotiate_encryption_type(config) is encryption_type
    assert conn.call_count == 0


@pytest.mark.parametrize(
    "encryption_type, transport_class",
    [
        (EncryptionType.Klap, KlapTransport),
        (EncryptionType.Passthrough, PassthroughTransport),
    ],
)
async def test_get_protocol(mocker, encryption_type, transport_class):
    mocker.patch.object(aiohttp.ClientSession, "post")

    protocol = await get_protocol(_config(encryption_type=encryption_type))

    assert isinstance(protocol, TapoProtocol)
    assert isinstance(protocol._transport, transport_class)
    assert protocol.encryption_type is encryption_type
    assert protocol.is_logged_in is False
    assert get_transport(_config(), encryption_type).encryption_type is (
        encryption_type
    )
    await protocol.close()
