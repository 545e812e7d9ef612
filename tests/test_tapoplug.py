import aiohttp
import pytest

from tapo import ApiClient, Credentials, DeviceConfig, EncryptionType, TapoPlug
from tapo.exceptions import (
    AuthenticationError,
    SessionNotEstablishedError,
    SessionTimeoutError,
    TapoException,
)

from .fakedevices import MockKlapDevice, MockPassthroughDevice

HOST = "127.0.0.1"
CREDENTIALS = Credentials("a@b.com", "p")

LOCAL_SEED = bytes(range(16))
REMOTE_SEED = bytes(range(16, 32))


@pytest.fixture
def klap_device(mocker):
    device = MockKlapDevice(HOST, CREDENTIALS, remote_seed=REMOTE_SEED)
    mocker.patch.object(aiohttp.ClientSession, "post", side_effect=device.post)
    return device


@pytest.fixture
def passthrough_device(mocker):
    device = MockPassthroughDevice(HOST, CREDENTIALS)
    mocker.patch.object(aiohttp.ClientSession, "post", side_effect=device.post)
    return device


async def test_klap_end_to_end(mocker, klap_device):
    mocker.patch("secrets.token_bytes", return_value=LOCAL_SEED)

    async with ApiClient("a@b.com", "p") as client:
        plug = await client.p100(HOST)

        assert plug.protocol.encryption_type is EncryptionType.Klap
        info = await plug.get_device_info()
        assert info["device_on"] is True
        assert info["model"] == "P100"

        await plug.turn_off()
        info = await plug.get_device_info()
        assert info["device_on"] is False

        await plug.close()

    assert klap_device.local_seed == LOCAL_SEED
    # initial sequence derived from the seeds and credentials, plus one
    assert klap_device.sequences == [1917053142, 1917053143, 1917053144]
    assert [r["method"] for r in klap_device.plug.requests] == [
        "get_device_info",
        "set_device_info",
        "get_device_info",
    ]
    assert klap_device.plug.requests[1]["params"] == {"device_on": False}


async def test_passthrough_end_to_end(passthrough_device):
    async with ApiClient("a@b.com", "p") as client:
        plug = await client.p100(HOST)

        assert plug.protocol.encryption_type is EncryptionType.Passthrough
        await plug.turn_off()
        info = await plug.get_device_info()
        assert info["device_on"] is False
        await plug.turn_on()
        info = await plug.get_device_info()
        assert info["device_on"] is True

        await plug.close()

    methods = [r["method"] for r in passthrough_device.inner_requests]
    assert methods == [
        "login_device",
        "set_device_info",
        "get_device_info",
        "set_device_info",
        "get_device_info",
    ]
    assert "terminalUUID" in passthrough_device.inner_requests[1]
    assert "terminalUUID" not in passthrough_device.inner_requests[2]


async def test_not_logged_in():
    plug = TapoPlug(DeviceConfig(HOST, credentials=CREDENTIALS))

    with pytest.raises(TapoException, match="call login"):
        await plug.get_device_info()
    with pytest.raises(TapoException):
        await plug.turn_on()
    await plug.close()


async def test_update(klap_device):
    config = DeviceConfig(
        HOST, credentials=CREDENTIALS, encryption_type=EncryptionType.Klap
    )
    async with TapoPlug(config) as plug:
        assert "update() needed" in repr(plug)
        assert plug.is_on is None
        await plug.login()
        await plug.update()

        assert plug.is_on is True
        assert plug.model == "P100"
        assert plug.alias == "Living Room"
        assert plug.rssi == -45
        assert plug.fw_ver == "1.4.10 Build 20211104 Rel. 33891"
        assert plug.device_id == "80223A4B8E2C1D0F5A6B7C8D9E0F1A2B3C4D5E6F"
        assert plug.internal_state["mac"] == "AA-BB-CC-DD-EE-FF"
        assert repr(plug) == "<TapoPlug at 127.0.0.1 - Living Room (P100) - on>"

        await plug.turn_off()
        assert plug.is_on is False


async def test_session_timeout_and_refresh(klap_device):
    config = DeviceConfig(
        HOST, credentials=CREDENTIALS, encryption_type=EncryptionType.Klap
    )
    async with TapoPlug(config) as plug:
        await plug.login()

        handler = klap_device.handler
        klap_device.handler = lambda request: {"error_code": 9999}
        with pytest.raises(SessionTimeoutError):
            await plug.get_device_info()
        assert plug.protocol.is_logged_in is False

        klap_device.handler = handler
        with pytest.raises(SessionNotEstablishedError):
            await plug.get_device_info()

        await plug.refresh_session()
        assert (await plug.get_device_info())["device_on"] is True


async def test_login_failure(mocker):
    device = MockKlapDevice(HOST, Credentials("a@b.com", "other"))
    mocker.patch.object(aiohttp.ClientSession, "post", side_effect=device.post)
    config = DeviceConfig(HOST, credentials=CREDENTIALS)

    async with TapoPlug(config) as plug:
        with pytest.raises(AuthenticationError):
            await plug.login()
        assert plug.protocol.is_logged_in is False
