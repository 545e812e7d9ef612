"""python-tapo exceptions."""

from __future__ import annotations

from asyncio import TimeoutError as _asyncioTimeoutError
from enum import IntEnum
from typing import Any


class TapoException(Exception):
    """Base exception for library errors."""


class InvalidHostError(TapoException):
    """Exception for a host that is neither an ip address nor a hostname."""


class UnreachableError(TapoException):
    """Base exception for transport level failures."""

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        self.status_code: int | None = kwargs.get("status_code")
        super().__init__(*args)


class TimeoutError(UnreachableError, _asyncioTimeoutError):
    """Timeout exception for device errors."""

    def __repr__(self) -> str:
        return UnreachableError.__repr__(self)

    def __str__(self) -> str:
        return UnreachableError.__str__(self)


class _ConnectionError(UnreachableError):
    """Connection exception for device errors."""


class MalformedResponseError(TapoException):
    """Exception for responses that do not have the expected framing."""


class DecryptionError(TapoException):
    """Exception for payloads that could not be decrypted."""


class SessionNotEstablishedError(TapoException):
    """Exception for requests sent before a successful login."""


class DeviceError(TapoException):
    """Base exception for errors reported by the device."""

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        self.error_code: int | None = kwargs.get("error_code")
        self.message: str = kwargs.get("message") or (args[0] if args else "")
        super().__init__(*args)

    def __repr__(self) -> str:
        err_code = repr(self.error_code) if self.error_code is not None else ""
        return f"{self.__class__.__name__}({err_code})"

    def __str__(self) -> str:
        err_code = (
            f" (error_code={self.error_code})" if self.error_code is not None else ""
        )
        return super().__str__() + err_code


class AuthenticationError(DeviceError):
    """Base exception for device authentication errors."""


class HandshakeVerificationError(AuthenticationError):
    """The device proved knowledge of different credentials during handshake."""


class SessionTimeoutError(DeviceError):
    """The device session expired and a new login is required."""


class SmartErrorCode(IntEnum):
    """Enum for error codes known to be returned by tapo devices."""

    def __str__(self) -> str:
        return f"{self.name}({self.value})"

    SUCCESS = 0

    SESSION_TIMEOUT_ERROR = 9999
    TRANSPORT_UNKNOWN_CREDENTIALS_ERROR = 1003
    TRANSPORT_NOT_AVAILABLE_ERROR = 1002

    UNKNOWN_METHOD_ERROR = -1002
    JSON_DECODE_FAIL_ERROR = -1003
    PARAMS_ERROR = -1008
    INVALID_PUBLIC_KEY_ERROR = -1010
    INVALID_TERMINAL_UUID_ERROR = -1012
    LOGIN_ERROR = -1501


def _unknown_message(code: int) -> str:
    return f"Unknown error code: {code}"


KLAP_ERROR_MESSAGES: dict[int, str] = {
    SmartErrorCode.SUCCESS: "Success",
    SmartErrorCode.UNKNOWN_METHOD_ERROR: "Invalid Request",
    SmartErrorCode.JSON_DECODE_FAIL_ERROR: "Malformed Request",
    SmartErrorCode.PARAMS_ERROR: "Invalid Parameters",
    SmartErrorCode.LOGIN_ERROR: "Invalid Credentials",
    SmartErrorCode.SESSION_TIMEOUT_ERROR: "Session Timeout",
}

PASSTHROUGH_ERROR_MESSAGES: dict[int, str] = {
    SmartErrorCode.SUCCESS: "Success",
    SmartErrorCode.INVALID_PUBLIC_KEY_ERROR: "Invalid Public Key Length",
    SmartErrorCode.INVALID_TERMINAL_UUID_ERROR: "Invalid terminalUUID",
    SmartErrorCode.LOGIN_ERROR: "Invalid Request or Credentials",
    SmartErrorCode.TRANSPORT_NOT_AVAILABLE_ERROR: "Incorrect Request",
    SmartErrorCode.JSON_DECODE_FAIL_ERROR: "JSON formatting error",
}

AUTHENTICATION_ERRORS = {SmartErrorCode.LOGIN_ERROR}

SESSION_TIMEOUT_ERRORS = {SmartErrorCode.SESSION_TIMEOUT_ERROR}


def error_message(table: dict[int, str], error_code: int) -> str:
    """Return the human readable message for error_code from table."""
    return table.get(error_code) or _unknown_message(error_code)


def raise_for_error_code(
    table: dict[int, str], error_code: int, *, host: str | None = None
) -> None:
    """Raise the DeviceError subclass matching a non-zero error_code."""
    if error_code == SmartErrorCode.SUCCESS:
        return
    message = error_message(table, error_code)
    msg = f"{host}: {message}" if host else message
    if error_code in SESSION_TIMEOUT_ERRORS:
        raise SessionTimeoutError(msg, error_code=error_code, message=message)
    if error_code in AUTHENTICATION_ERRORS:
        raise AuthenticationError(msg, error_code=error_code, message=message)
    raise DeviceError(msg, error_code=error_code, message=message)
