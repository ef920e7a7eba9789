# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

from typing import Callable, List

import httpx
import pytest

from pyrim import crypto
from pyrim.client import RimServiceClient

RIM_SERVICE_TEST_URL = "https://rim.example.com"


@pytest.fixture(scope="session")
def keypair():
    return crypto.generate_ec_keypair("P-256")


@pytest.fixture(scope="session")
def private_key(keypair) -> crypto.Pem:
    return keypair[0]


@pytest.fixture(scope="session")
def public_key(keypair) -> crypto.Pem:
    return keypair[1]


@pytest.fixture
def requests() -> List[httpx.Request]:
    """Requests seen by the mock RIM service."""
    return []


@pytest.fixture
def rim_service(requests) -> Callable[..., RimServiceClient]:
    """
    Returns a function which creates a client for a mock RIM service.

    The service answers every request with the given status and body. Every
    request it receives is recorded in the `requests` fixture.
    """

    def f(body: bytes = b"", status_code: int = 200) -> RimServiceClient:
        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(status_code, content=body)

        return RimServiceClient(
            RIM_SERVICE_TEST_URL, transport=httpx.MockTransport(handler)
        )

    return f
