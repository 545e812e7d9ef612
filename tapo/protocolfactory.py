"""Module for selecting the protocol used to talk to a device.

Devices run either the KLAP or the older secure passthrough scheme and give
no indication which one in their address.  Unless the configuration forces
one, a ``component_nego`` request is posted in the clear: a device answering
with ``TRANSPORT_UNKNOWN_CREDENTIALS_ERROR`` (1003), or with anything that is
not a json document, only understands KLAP.  Every other answer selects the
passthrough transport.
"""

from __future__ import annotations

import logging

from yarl import URL

from .deviceconfig import DeviceConfig, EncryptionType
from .exceptions import (
    MalformedResponseError,
    SmartErrorCode,
    TapoException,
    UnreachableError,
)
from .httpclient import HttpClient
from .protocols import TapoProtocol
from .transports import BaseTransport, KlapTransport, PassthroughTransport
from .transports.basetransport import get_error_code

_LOGGER = logging.getLogger(__name__)

NEGOTIATION_REQUEST = {"method": "component_nego", "params": {}}

KLAP_ONLY_ERROR_CODES = {SmartErrorCode.TRANSPORT_UNKNOWN_CREDENTIALS_ERROR}

SUPPORTED_TRANSPORTS: dict[EncryptionType, type[BaseTransport]] = {
    EncryptionType.Klap: KlapTransport,
    EncryptionType.Passthrough: PassthroughTransport,
}


async def negotiate_encryption_type(config: DeviceConfig) -> EncryptionType:
    """Return the encryption type to use for the device.

    Connection failures are raised, the caller cannot talk to the device
    with either protocol.
    """
    if config.encryption_type is not None:
        _LOGGER.debug(
            "Using configured %s encryption for %s",
            config.encryption_type.value,
            config.host,
        )
        return config.encryption_type

    port = config.port_override or BaseTransport.DEFAULT_PORT
    url = URL.build(scheme="http", host=config.host, port=port, path="/app")
    http_client = HttpClient(config)
    try:
        status_code, resp_dict = await http_client.post(
            url,
            json=NEGOTIATION_REQUEST,
            headers={"Content-Type": "application/json"},
        )
    except UnreachableError:
        raise
    except TapoException as ex:
        _LOGGER.debug("Negotiation with %s failed, using KLAP: %s", config.host, ex)
        return EncryptionType.Klap
    finally:
        await http_client.close()

    if status_code != 200:
        _LOGGER.debug(
            "Device %s responded with %s to negotiation, using KLAP",
            config.host,
            status_code,
        )
        return EncryptionType.Klap

    try:
        error_code = get_error_code(resp_dict)
    except MalformedResponseError:
        return EncryptionType.Klap

    encryption_type = (
        EncryptionType.Klap
        if error_code in KLAP_ONLY_ERROR_CODES
        else EncryptionType.Passthrough
    )
    _LOGGER.debug(
        "Device %s answered negotiation with error_code %s, using %s",
        config.host,
        error_code,
        encryption_type.value,
    )
    return encryption_type


def get_transport(
    config: DeviceConfig, encryption_type: EncryptionType
) -> BaseTransport:
    """Return a transport for the encryption type."""
    transport_class = SUPPORTED_TRANSPORTS[encryption_type]
    return transport_class(config=config)


async def get_protocol(config: DeviceConfig) -> TapoProtocol:
    """Return a protocol for the device, negotiating the transport if needed."""
    encryption_type = await negotiate_encryption_type(config)
    return TapoProtocol(transport=get_transport(config, encryption_type))
