import asyncio

import pytest

from tapo.exceptions import (
    KLAP_ERROR_MESSAGES,
    PASSTHROUGH_ERROR_MESSAGES,
    AuthenticationError,
    DeviceError,
    HandshakeVerificationError,
    SessionTimeoutError,
    SmartErrorCode,
    TapoException,
    TimeoutError,
    UnreachableError,
    error_message,
    raise_for_error_code,
)


@pytest.mark.parametrize(
    "error_code, klap_message, passthrough_message",
    [
        (0, "Success", "Success"),
        (-1002, "Invalid Request", "Unknown error code: -1002"),
        (-1003, "Malformed Request", "JSON formatting error"),
        (-1008, "Invalid Parameters", "Unknown error code: -1008"),
        (-1010, "Unknown error code: -1010", "Invalid Public Key Length"),
        (-1012, "Unknown error code: -1012", "Invalid terminalUUID"),
        (-1501, "Invalid Credentials", "Invalid Request or Credentials"),
        (1002, "Unknown error code: 1002", "Incorrect Request"),
        (9999, "Session Timeout", "Unknown error code: 9999"),
        (42, "Unknown error code: 42", "Unknown error code: 42"),
    ],
)
def test_error_message(error_code, klap_message, passthrough_message):
    assert error_message(KLAP_ERROR_MESSAGES, error_code) == klap_message
    assert error_message(PASSTHROUGH_ERROR_MESSAGES, error_code) == (
        passthrough_message
    )


def test_success_does_not_raise():
    raise_for_error_code(KLAP_ERROR_MESSAGES, 0)
    raise_for_error_code(PASSTHROUGH_ERROR_MESSAGES, SmartErrorCode.SUCCESS)


@pytest.mark.parametrize(
    "error_code, error_class",
    [
        (-1501, AuthenticationError),
        (9999, SessionTimeoutError),
        (-1008, DeviceError),
        (-123456, DeviceError),
    ],
)
def test_raise_for_error_code(error_code, error_class):
    with pytest.raises(error_class) as exc_info:
        raise_for_error_code(KLAP_ERROR_MESSAGES, error_code, host="127.0.0.1")

    assert type(exc_info.value) is error_class
    assert exc_info.value.error_code == error_code
    assert exc_info.value.message == error_message(KLAP_ERROR_MESSAGES, error_code)
    assert str(exc_info.value).startswith("127.0.0.1: ")


def test_device_error_str():
    err = DeviceError("Invalid Credentials", error_code=-1501)

    assert err.message == "Invalid Credentials"
    assert str(err) == "Invalid Credentials (error_code=-1501)"
    assert repr(err) == "DeviceError(-1501)"


def test_handshake_verification_error():
    err = HandshakeVerificationError("Server response doesn't match our challenge")

    assert isinstance(err, AuthenticationError)
    assert err.error_code is None
    assert str(err) == "Server response doesn't match our challenge"


def test_timeout_error():
    err = TimeoutError("timed out", status_code=None)

    assert isinstance(err, UnreachableError)
    assert isinstance(err, TapoException)
    assert isinstance(err, asyncio.TimeoutError)
    assert str(err) == "timed out"


def test_unreachable_status_code():
    assert UnreachableError("forbidden", status_code=403).status_code == 403
    assert UnreachableError("refused").status_code is None


def test_smart_error_code_str():
    assert str(SmartErrorCode.LOGIN_ERROR) == "LOGIN_ERROR(-1501)"
    assert SmartErrorCode(9999) is SmartErrorCode.SESSION_TIMEOUT_ERROR
