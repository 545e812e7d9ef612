"""Implementation of the TP-Link KLAP protocol.

The protocol works by doing a two stage handshake to obtain
an encryption key and session id cookie.

Authentication uses an auth_hash which is
sha256(sha1(username) + sha1(password))

handshake1: client sends a random 16 byte local_seed to the
device and receives a random 16 bytes remote_seed, followed
by sha256(local_seed + remote_seed + auth_hash).  It also returns a
TP_SESSIONID in the cookie header.  The client verifies the hash
before moving on, a mismatch means the credentials are wrong.

handshake2: client sends sha256(remote_seed + local_seed + auth_hash)
to the device along with the TP_SESSIONID.  Device responds with
200 if successful.

encryption: local_seed, remote_seed and auth_hash are now used
for encryption.  The last 4 bytes of the initialization vector
are used as a sequence number that increments every time the
client calls encrypt and this sequence number is sent as a
url parameter to the device along with the encrypted payload.
The response to a request is encrypted with the same sequence number.

https://gist.github.com/chriswheeldon/3b17d974db3817613c69191c0480fe55
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import secrets
import struct
from enum import Enum, auto
from typing import Any, cast

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from yarl import URL

from ..credentials import Credentials
from ..deviceconfig import DeviceConfig, EncryptionType
from ..exceptions import (
    KLAP_ERROR_MESSAGES,
    AuthenticationError,
    DecryptionError,
    HandshakeVerificationError,
    MalformedResponseError,
    SessionNotEstablishedError,
    SessionTimeoutError,
    UnreachableError,
    raise_for_error_code,
)
from ..httpclient import HttpClient
from ..json import loads as json_loads
from .basetransport import BaseTransport, get_error_code

_LOGGER = logging.getLogger(__name__)


PACK_SIGNED_LONG = struct.Struct(">l").pack

SEQ_MAX = 2**31 - 1
SEQ_MIN = -(2**31)

SEED_LENGTH = 16
SIGNATURE_LENGTH = 32
HANDSHAKE1_RESPONSE_LENGTH = SEED_LENGTH + SIGNATURE_LENGTH


def _sha256(payload: bytes) -> bytes:
    return hashlib.sha256(payload).digest()


def _sha1(payload: bytes) -> bytes:
    return hashlib.sha1(payload).digest()  # noqa: S324


def generate_auth_hash(creds: Credentials) -> bytes:
    """Generate the auth hash for the protocol on the supplied credentials."""
    return _sha256(_sha1(creds.username.encode()) + _sha1(creds.password.encode()))


def handshake1_seed_auth_hash(
    local_seed: bytes, remote_seed: bytes, auth_hash: bytes
) -> bytes:
    """Return the hash the device is expected to send in handshake1."""
    return _sha256(local_seed + remote_seed + auth_hash)


def handshake2_seed_auth_hash(
    local_seed: bytes, remote_seed: bytes, auth_hash: bytes
) -> bytes:
    """Return the hash the client sends to the device in handshake2."""
    return _sha256(remote_seed + local_seed + auth_hash)


def derive_key(local_hash: bytes) -> bytes:
    """Return the 16 byte AES key for local_hash."""
    return _sha256(b"lsk" + local_hash)[:16]


def derive_iv(local_hash: bytes) -> tuple[bytes, int]:
    """Return the 12 byte iv base and the initial sequence number.

    The iv is the first 16 bytes of a sha256 where the last 4 bytes
    form the sequence number, which is incremented on each request.
    """
    fulliv = _sha256(b"iv" + local_hash)
    seq = int.from_bytes(fulliv[-4:], "big", signed=True)
    return fulliv[:12], seq


def derive_signature_key(local_hash: bytes) -> bytes:
    """Return the 28 byte key used to sign each request."""
    return _sha256(b"ldk" + local_hash)[:28]


class KlapEncryptionSession:
    """Class to represent an encryption session and it's internal state.

    i.e. sequence number which the device expects to increment.
    """

    def __init__(self, local_seed: bytes, remote_seed: bytes, user_hash: bytes):
        local_hash = local_seed + remote_seed + user_hash
        self._key = derive_key(local_hash)
        self._iv, self._seq = derive_iv(local_hash)
        self._sig = derive_signature_key(local_hash)
        self._aes = algorithms.AES(self._key)

    @property
    def sequence(self) -> int:
        """Return the sequence number of the last encrypted request."""
        return self._seq

    def _cipher(self, seq: int) -> Cipher:
        return Cipher(self._aes, modes.CBC(self._iv + PACK_SIGNED_LONG(seq)))

    def encrypt(self, msg: str | bytes) -> tuple[bytes, int]:
        """Encrypt the data and increment the sequence number.

        Returns the signature prefixed ciphertext and the sequence number
        it was encrypted with.
        """
        self._seq = self._seq + 1 if self._seq < SEQ_MAX else SEQ_MIN

        if isinstance(msg, str):
            msg = msg.encode("utf-8")

        encryptor = self._cipher(self._seq).encryptor()
        padder = padding.PKCS7(128).padder()
        padded_data = padder.update(msg) + padder.finalize()
        ciphertext = encryptor.update(padded_data) + encryptor.finalize()
        signature = _sha256(self._sig + PACK_SIGNED_LONG(self._seq) + ciphertext)
        return signature + ciphertext, self._seq

    def decrypt(self, seq: int, ciphertext: bytes) -> str:
        """Decrypt a response body with its signature already removed."""
        try:
            decryptor = self._cipher(seq).decryptor()
            dp = decryptor.update(ciphertext) + decryptor.finalize()
            unpadder = padding.PKCS7(128).unpadder()
            plaintextbytes = unpadder.update(dp) + unpadder.finalize()
            return plaintextbytes.decode()
        except ValueError as ex:
            raise DecryptionError(f"Unable to decrypt response: {ex}") from ex


class KlapState(Enum):
    """Enum for the KLAP handshake state."""

    UNAUTHENTICATED = auto()
    HANDSHAKE1_SENT = auto()
    HANDSHAKE2_SENT = auto()
    AUTHENTICATED = auto()
    INVALID = auto()


class KlapTransport(BaseTransport):
    """Implementation of the KLAP encryption protocol.

    KLAP is the name used in device discovery for TP-Link's new encryption
    protocol, used by newer firmware versions.
    """

    ERROR_MESSAGES = KLAP_ERROR_MESSAGES
    # The device rejects handshakes carrying a content type
    HANDSHAKE_HEADERS = {"Accept": "*/*"}
    HANDSHAKE_SKIP_HEADERS = ("Content-Type",)

    def __init__(
        self,
        *,
        config: DeviceConfig,
    ) -> None:
        super().__init__(config=config)

        self._http_client = HttpClient(config)
        if not self._credentials:
            self._credentials = Credentials()

        self._state = KlapState.UNAUTHENTICATED
        self._encryption_session: KlapEncryptionSession | None = None
        self._session_cookie: dict[str, str] | None = None

        self._app_url = URL.build(
            scheme="http", host=self._host, port=self._port, path="/app"
        )
        self._request_url = self._app_url / "request"
        _LOGGER.debug("Created KLAP transport for %s", self._host)

    @property
    def encryption_type(self) -> EncryptionType:
        """The encryption scheme implemented by the transport."""
        return EncryptionType.Klap

    @property
    def state(self) -> KlapState:
        """Return the handshake state."""
        return self._state

    @property
    def is_established(self) -> bool:
        """Return True if the handshake completed."""
        return self._state is KlapState.AUTHENTICATED

    async def perform_handshake1(self, auth_hash: bytes) -> tuple[bytes, bytes]:
        """Perform handshake1 and return the local and remote seeds."""
        local_seed: bytes = secrets.token_bytes(SEED_LENGTH)

        url = self._app_url / "handshake1"

        response_status, response_data = await self._http_client.post(
            url,
            data=local_seed,
            headers=self.HANDSHAKE_HEADERS,
            skip_auto_headers=self.HANDSHAKE_SKIP_HEADERS,
        )
        self._state = KlapState.HANDSHAKE1_SENT

        _LOGGER.debug(
            "Handshake1 posted. Host is %s, Response status is %s",
            self._host,
            response_status,
        )

        if response_status != 200:
            raise UnreachableError(
                f"Device {self._host} responded with {response_status} to handshake1",
                status_code=response_status,
            )

        if cookie := self._http_client.get_cookie(self.SESSION_COOKIE_NAME):
            self._session_cookie = {self.SESSION_COOKIE_NAME: cookie}

        response_data = cast(bytes, response_data) or b""
        if len(response_data) != HANDSHAKE1_RESPONSE_LENGTH:
            raise MalformedResponseError(
                f"Device {self._host} responded with {len(response_data)} bytes "
                + f"to handshake1, expected {HANDSHAKE1_RESPONSE_LENGTH}"
            )

        remote_seed = response_data[:SEED_LENGTH]
        server_hash = response_data[SEED_LENGTH:]

        expected_hash = handshake1_seed_auth_hash(local_seed, remote_seed, auth_hash)
        if not hmac.compare_digest(expected_hash, server_hash):
            msg = f"Server response doesn't match our challenge on ip {self._host}"
            _LOGGER.debug(msg)
            raise HandshakeVerificationError(msg)

        _LOGGER.debug("handshake1 hashes match with expected credentials")
        return local_seed, remote_seed

    async def perform_handshake2(
        self, local_seed: bytes, remote_seed: bytes, auth_hash: bytes
    ) -> KlapEncryptionSession:
        """Perform handshake2 and return the encryption session."""
        url = self._app_url / "handshake2"

        payload = handshake2_seed_auth_hash(local_seed, remote_seed, auth_hash)

        response_status, _ = await self._http_client.post(
            url,
            data=payload,
            headers=self.HANDSHAKE_HEADERS,
            skip_auto_headers=self.HANDSHAKE_SKIP_HEADERS,
            cookies_dict=self._session_cookie,
        )
        self._state = KlapState.HANDSHAKE2_SENT

        _LOGGER.debug(
            "Handshake2 posted. Host is %s, Response status is %s",
            self._host,
            response_status,
        )

        if response_status != 200:
            raise UnreachableError(
                f"Device {self._host} responded with {response_status} to handshake2",
                status_code=response_status,
            )

        return KlapEncryptionSession(local_seed, remote_seed, auth_hash)

    async def login(self) -> None:
        """Perform handshake1 and handshake2.

        Sets the encryption_session if successful.
        """
        _LOGGER.debug("Starting handshake with %s", self._host)
        await self.reset()

        auth_hash = generate_auth_hash(cast(Credentials, self._credentials))
        try:
            local_seed, remote_seed = await self.perform_handshake1(auth_hash)
            encryption_session = await self.perform_handshake2(
                local_seed, remote_seed, auth_hash
            )
        except Exception:
            self._invalidate()
            raise

        self._encryption_session = encryption_session
        self._state = KlapState.AUTHENTICATED
        _LOGGER.debug("Handshake with %s complete", self._host)

    def _invalidate(self) -> None:
        self._encryption_session = None
        self._session_cookie = None
        self._state = KlapState.INVALID

    def _handle_response_error_code(self, resp_dict: Any) -> None:
        try:
            error_code = get_error_code(resp_dict)
            raise_for_error_code(self.ERROR_MESSAGES, error_code, host=self._host)
        except (AuthenticationError, MalformedResponseError, SessionTimeoutError):
            self._invalidate()
            raise

    async def send(self, request: str) -> dict[str, Any]:
        """Send the request."""
        if not self.is_established or self._encryption_session is None:
            raise SessionNotEstablishedError(
                f"No KLAP session with {self._host}, login is required"
            )

        payload, seq = self._encryption_session.encrypt(request)

        response_status, response_data = await self._http_client.post(
            self._request_url,
            params={"seq": seq},
            data=payload,
            cookies_dict=self._session_cookie,
        )

        _LOGGER.debug(
            "Query posted. Host is %s, Sequence is %s, Response status is %s",
            self._host,
            seq,
            response_status,
        )

        if response_status != 200:
            # A security error means the device dropped our session
            if response_status == 403:
                self._invalidate()
            raise UnreachableError(
                f"Device {self._host} responded with {response_status} to "
                + f"request with seq {seq}",
                status_code=response_status,
            )

        response_data = cast(bytes, response_data) or b""
        try:
            if len(response_data) < SIGNATURE_LENGTH:
                raise MalformedResponseError(
                    f"Device {self._host} responded with a truncated body "
                    + f"to request with seq {seq}"
                )
            decrypted_response = self._encryption_session.decrypt(
                seq, response_data[SIGNATURE_LENGTH:]
            )
            try:
                json_payload = json_loads(decrypted_response)
            except ValueError as ex:
                raise DecryptionError(
                    f"Decrypted response from {self._host} is not valid json"
                ) from ex
        except (MalformedResponseError, DecryptionError):
            self._invalidate()
            raise

        self._handle_response_error_code(json_payload)
        return json_payload

    async def close(self) -> None:
        """Close the http client and reset internal state."""
        await self.reset()
        await self._http_client.close()

    async def reset(self) -> None:
        """Reset internal handshake state."""
        self._encryption_session = None
        self._session_cookie = None
        self._state = KlapState.UNAUTHENTICATED
