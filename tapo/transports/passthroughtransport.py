"""Implementation of the TP-Link secure passthrough transport.

Older firmware bootstraps an AES session with an RSA key exchange:

handshake: client sends a freshly generated 1024 bit RSA public key and
receives the AES key and iv encrypted with it, plus a TP_SESSIONID cookie.

login: the hashed credentials are sent AES encrypted inside a
``securePassthrough`` envelope and the device answers with a token which
is added to the url of every later request.

Based on the work of https://github.com/petretiandrea/plugp100
under compatible GNU GPL3 license.
"""

from __future__ import annotations

import base64
import hashlib
import logging
import uuid
from enum import Enum, auto
from typing import Any, cast

from cryptography.hazmat.primitives import padding, serialization
from cryptography.hazmat.primitives.asymmetric import padding as asymmetric_padding
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from yarl import URL

from ..credentials import Credentials
from ..deviceconfig import DeviceConfig, EncryptionType
from ..exceptions import (
    PASSTHROUGH_ERROR_MESSAGES,
    AuthenticationError,
    DecryptionError,
    MalformedResponseError,
    SessionNotEstablishedError,
    SessionTimeoutError,
    UnreachableError,
    raise_for_error_code,
)
from ..httpclient import HttpClient
from ..json import dumps as json_dumps
from ..json import loads as json_loads
from .basetransport import BaseTransport, get_error_code

_LOGGER = logging.getLogger(__name__)


def _sha1(payload: bytes) -> str:
    sha1_algo = hashlib.sha1()  # noqa: S324
    sha1_algo.update(payload)
    return sha1_algo.hexdigest()


def _get_result_field(resp_dict: dict[str, Any], field_name: str) -> Any:
    result = resp_dict.get("result")
    return result.get(field_name) if isinstance(result, dict) else None


class PassthroughState(Enum):
    """Enum for the passthrough session state."""

    UNAUTHENTICATED = auto()  # Handshake needed
    HANDSHAKEN = auto()  # Login needed
    LOGGED_IN = auto()  # Ready to send requests
    INVALID = auto()  # Failed, a new login is needed


class PassthroughTransport(BaseTransport):
    """Implementation of the secure passthrough encryption protocol."""

    ERROR_MESSAGES = PASSTHROUGH_ERROR_MESSAGES
    ALTERNATIVE_SESSION_COOKIE_NAME = "SESSIONID"
    COMMON_HEADERS = {
        "Content-Type": "application/json",
        "requestByApp": "true",
        "Accept": "application/json",
    }
    # Methods which the device expects to carry a terminal identifier
    TERMINAL_UUID_METHODS = frozenset({"set_device_info"})

    def __init__(
        self,
        *,
        config: DeviceConfig,
    ) -> None:
        super().__init__(config=config)

        self._http_client: HttpClient = HttpClient(config)
        if not self._credentials:
            self._credentials = Credentials()

        self._state = PassthroughState.UNAUTHENTICATED
        self._encryption_session: AesEncryptionSession | None = None
        self._session_cookie: dict[str, str] | None = None
        self._key_pair: KeyPair | None = None

        self._app_url = URL.build(
            scheme="http", host=self._host, port=self._port, path="/app"
        )
        self._token_url: URL | None = None

        _LOGGER.debug("Created passthrough transport for %s", self._host)

    @property
    def encryption_type(self) -> EncryptionType:
        """The encryption scheme implemented by the transport."""
        return EncryptionType.Passthrough

    @property
    def state(self) -> PassthroughState:
        """Return the session state."""
        return self._state

    @property
    def is_established(self) -> bool:
        """Return True if logged in."""
        return self._state is PassthroughState.LOGGED_IN

    @staticmethod
    def hash_credentials(credentials: Credentials) -> tuple[str, str]:
        """Return the username and password as sent in login_device."""
        un = base64.b64encode(_sha1(credentials.username.encode()).encode()).decode()
        pw = base64.b64encode(credentials.password.encode()).decode()
        return un, pw

    def build_request(self, method: str, params: dict | None = None) -> dict:
        """Build the request envelope for method."""
        request: dict[str, Any] = {"method": method}
        if params is not None:
            request["params"] = params
        request["requestTimeMils"] = 0
        if method in self.TERMINAL_UUID_METHODS:
            request["terminalUUID"] = str(uuid.uuid4())
        return request

    def _handle_response_error_code(self, resp_dict: Any, msg: str) -> None:
        try:
            error_code = get_error_code(resp_dict)
            if error_code:
                _LOGGER.debug("%s: %s: error_code %s", self._host, msg, error_code)
            raise_for_error_code(self.ERROR_MESSAGES, error_code, host=self._host)
        except (AuthenticationError, MalformedResponseError, SessionTimeoutError):
            self._invalidate()
            raise

    async def perform_handshake(self) -> None:
        """Perform the RSA handshake."""
        _LOGGER.debug("Will perform handshaking with %s", self._host)

        self._key_pair = KeyPair.create_key_pair()
        request_body = {
            "method": "handshake",
            "params": {
                "key": self._key_pair.public_key_stripped,
                "requestTimeMils": 0,
            },
        }

        status_code, resp_dict = await self._http_client.post(
            self._app_url,
            json=request_body,
            headers=self.COMMON_HEADERS,
        )

        if status_code != 200:
            raise UnreachableError(
                f"{self._host} responded with an unexpected "
                + f"status code {status_code} to handshake",
                status_code=status_code,
            )

        self._handle_response_error_code(resp_dict, "Unable to complete handshake")

        handshake_key = _get_result_field(cast(dict, resp_dict), "key")
        if not isinstance(handshake_key, str):
            raise MalformedResponseError(
                f"{self._host} sent no encrypted key in the handshake response"
            )

        http_client = self._http_client
        if (cookie := http_client.get_cookie(self.SESSION_COOKIE_NAME)) or (
            cookie := http_client.get_cookie(self.ALTERNATIVE_SESSION_COOKIE_NAME)
        ):
            self._session_cookie = {self.SESSION_COOKIE_NAME: cookie}
        else:
            raise MalformedResponseError(
                f"{self._host} sent no session cookie in the handshake response"
            )

        self._encryption_session = AesEncryptionSession.create_from_keypair(
            handshake_key, self._key_pair
        )
        self._state = PassthroughState.HANDSHAKEN
        _LOGGER.debug("Handshake with %s complete", self._host)

    async def perform_login(self) -> None:
        """Login to the device with the credentials."""
        un, pw = self.hash_credentials(cast(Credentials, self._credentials))
        login_request = self.build_request(
            "login_device", {"password": pw, "username": un}
        )

        resp_dict = await self._send_secure_passthrough(
            self._app_url, json_dumps(login_request)
        )
        self._handle_response_error_code(resp_dict, "Error logging in")

        login_token = _get_result_field(resp_dict, "token")
        if not isinstance(login_token, str):
            raise MalformedResponseError(
                f"{self._host} sent no token in the login response"
            )
        self._token_url = self._app_url.with_query(f"token={login_token}")
        self._state = PassthroughState.LOGGED_IN
        _LOGGER.debug("%s: logged in with provided credentials", self._host)

    async def login(self) -> None:
        """Perform the handshake and login, discarding any previous session."""
        await self.reset()
        try:
            await self.perform_handshake()
            await self.perform_login()
        except Exception:
            self._invalidate()
            raise

    async def _send_secure_passthrough(self, url: URL, request: str) -> dict[str, Any]:
        """Send encrypted message as passthrough."""
        if self._encryption_session is None:
            raise SessionNotEstablishedError(
                f"No passthrough session with {self._host}, login is required"
            )

        encrypted_payload = self._encryption_session.encrypt(request.encode())
        passthrough_request = {
            "method": "securePassthrough",
            "params": {"request": encrypted_payload.decode()},
        }
        status_code, resp_dict = await self._http_client.post(
            url,
            json=passthrough_request,
            headers=self.COMMON_HEADERS,
            cookies_dict=self._session_cookie,
        )

        if status_code != 200:
            raise UnreachableError(
                f"{self._host} responded with an unexpected "
                + f"status code {status_code} to passthrough",
                status_code=status_code,
            )

        self._handle_response_error_code(
            resp_dict, "Error sending secure_passthrough message"
        )

        try:
            raw_response = _get_result_field(cast(dict, resp_dict), "response")
            if not isinstance(raw_response, str):
                raise MalformedResponseError(
                    f"{self._host} sent no response in the passthrough envelope"
                )
            response = self._encryption_session.decrypt(raw_response)
            try:
                ret_val = json_loads(response)
            except ValueError as ex:
                raise DecryptionError(
                    f"Decrypted response from {self._host} is not valid json"
                ) from ex
        except (MalformedResponseError, DecryptionError):
            self._invalidate()
            raise
        return ret_val

    async def send(self, request: str) -> dict[str, Any]:
        """Send the request."""
        if not self.is_established or self._token_url is None:
            raise SessionNotEstablishedError(
                f"No passthrough session with {self._host}, login is required"
            )

        resp_dict = await self._send_secure_passthrough(self._token_url, request)
        self._handle_response_error_code(resp_dict, "Error sending request")
        return resp_dict

    def _invalidate(self) -> None:
        self._encryption_session = None
        self._session_cookie = None
        self._key_pair = None
        self._token_url = None
        self._state = PassthroughState.INVALID

    async def close(self) -> None:
        """Close the http client and reset internal state."""
        await self.reset()
        await self._http_client.close()

    async def reset(self) -> None:
        """Reset internal handshake and login state."""
        self._encryption_session = None
        self._session_cookie = None
        self._key_pair = None
        self._token_url = None
        self._state = PassthroughState.UNAUTHENTICATED


class AesEncryptionSession:
    """Class for an AES encryption session."""

    @staticmethod
    def create_from_keypair(
        handshake_key: str, keypair: KeyPair
    ) -> AesEncryptionSession:
        """Create the encryption session."""
        try:
            handshake_key_bytes: bytes = base64.b64decode(handshake_key.encode())
            key_and_iv = keypair.decrypt_handshake_key(handshake_key_bytes)
        except ValueError as ex:
            raise DecryptionError(f"Unable to decrypt handshake key: {ex}") from ex
        if len(key_and_iv) < 32:
            raise DecryptionError("Decrypted handshake key is too short")

        return AesEncryptionSession(key_and_iv[:16], key_and_iv[16:32])

    def __init__(self, key: bytes, iv: bytes) -> None:
        self.cipher = Cipher(algorithms.AES(key), modes.CBC(iv))
        self.padding_strategy = padding.PKCS7(algorithms.AES.block_size)

    def encrypt(self, data: bytes) -> bytes:
        """Encrypt the message."""
        encryptor = self.cipher.encryptor()
        padder = self.padding_strategy.padder()
        padded_data = padder.update(data) + padder.finalize()
        encrypted = encryptor.update(padded_data) + encryptor.finalize()
        return base64.b64encode(encrypted)

    def decrypt(self, data: str | bytes) -> str:
        """Decrypt the message."""
        try:
            decryptor = self.cipher.decryptor()
            unpadder = self.padding_strategy.unpadder()
            decrypted = decryptor.update(base64.b64decode(data)) + decryptor.finalize()
            unpadded_data = unpadder.update(decrypted) + unpadder.finalize()
            return unpadded_data.decode()
        except ValueError as ex:
            raise DecryptionError(f"Unable to decrypt response: {ex}") from ex


class KeyPair:
    """Class for generating key pairs."""

    PEM_MARKERS = ("-----BEGIN RSA PUBLIC KEY-----", "-----END RSA PUBLIC KEY-----")

    @staticmethod
    def create_key_pair(key_size: int = 1024) -> KeyPair:
        """Create a key pair."""
        private_key = rsa.generate_private_key(public_exponent=65537, key_size=key_size)
        public_key = private_key.public_key()
        return KeyPair(private_key, public_key)

    def __init__(
        self, private_key: rsa.RSAPrivateKey, public_key: rsa.RSAPublicKey
    ) -> None:
        self.private_key = private_key
        self.public_key = public_key

    def get_public_pem(self) -> bytes:
        """Get public key in PKCS1 PEM encoding."""
        return self.public_key.public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.PKCS1,
        )

    @property
    def public_key_stripped(self) -> str:
        """Return the PEM body of the public key without markers or line breaks."""
        pem = self.get_public_pem().decode()
        for marker in self.PEM_MARKERS:
            pem = pem.replace(marker, "")
        return pem.replace("\r", "").replace("\n", "")

    def decrypt_handshake_key(self, encrypted_key: bytes) -> bytes:
        """Decrypt an aes handshake key."""
        return self.private_key.decrypt(encrypted_key, asymmetric_padding.PKCS1v15())
