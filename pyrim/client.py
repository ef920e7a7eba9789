# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

import ssl
from dataclasses import asdict, dataclass, fields
from http import HTTPStatus
from typing import Any, Dict, Optional, Union
from urllib.parse import quote

import httpx
from loguru import logger as LOG

from .errors import ServiceError, TransportError

RIM_SERVICE_URL_DEFAULT = "https://rim.attestation.nvidia.com"
RIM_PATH_TEMPLATE = "/v1/rim/{rimid}"


@dataclass(frozen=True)
class RimServiceResponse:
    """
    The JSON document returned by the RIM service for a single RIM.
    """

    id: str = ""
    rim: str = ""
    sha256: str = ""
    last_updated: str = ""
    rim_format: str = ""
    request_id: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RimServiceResponse":
        """
        Decode a service response. Unknown keys are ignored, and keys that are
        missing or not strings are left empty.
        """
        values = {}
        for field in fields(cls):
            value = data.get(field.name)
            if isinstance(value, str):
                values[field.name] = value
        return cls(**values)

    def as_dict(self) -> Dict[str, str]:
        return asdict(self)


class RimServiceClient:
    """
    Wrapper around an HTTP client, used to download RIMs from a RIM service.

    The underlying connection pool is released by `close`, or when the client
    is used as a context manager.
    """

    url: str
    development: bool
    cacert: Optional[str]

    session: httpx.Client

    def __init__(
        self,
        url: str = RIM_SERVICE_URL_DEFAULT,
        *,
        development: bool = False,
        cacert: Optional[str] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        """
        Create a new RimServiceClient instance.

        development:
            If true, the TLS certificate of the server will not be verified.

        cacert:
            If set and development is False, path to a CA bundle used in TLS
            verification instead of the default bundle.

        transport:
            Custom httpx transport, mostly useful for tests.
        """
        self.url = url
        self.development = development
        self.cacert = cacert

        tls_verification: Union[ssl.SSLContext, bool]
        if cacert is not None and not development:
            tls_verification = ssl.create_default_context(cafile=cacert)
        else:
            tls_verification = not development

        self.session = httpx.Client(
            base_url=url, verify=tls_verification, transport=transport
        )

    def __enter__(self) -> "RimServiceClient":
        return self

    def __exit__(self, *exc_info):
        self.close()

    def close(self):
        self.session.close()

    def get_rim(self, rimid: str) -> bytes:
        """
        Download the service response for the given RIM identifier.

        Returns the raw response body. Raises a ServiceError if the service
        does not answer with 200 OK, and a TransportError if the request fails.
        """
        if not rimid:
            raise ValueError("RIM identifier must not be empty")

        request = self.session.build_request(
            "GET", RIM_PATH_TEMPLATE.format(rimid=quote(rimid, safe=""))
        )
        LOG.info(f"Requesting RIM file from: {request.url}")

        try:
            response = self.session.send(request)
        except httpx.RequestError as e:
            raise TransportError(f"HTTP GET error: {e}") from e

        LOG.debug(f"GET {request.url} {response.status_code}")
        if response.status_code != HTTPStatus.OK:
            raise ServiceError(
                response.status_code, response.reason_phrase, response.text
            )

        body = response.content
        LOG.info(f"Received successful response from RIM service ({len(body)} bytes)")
        return body
