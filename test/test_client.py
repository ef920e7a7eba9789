# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

import httpx
import pytest

from pyrim.client import RimServiceClient, RimServiceResponse
from pyrim.errors import ServiceError, TransportError

from .conftest import RIM_SERVICE_TEST_URL


def test_get_rim_returns_body(rim_service, requests):
    client = rim_service(b'{"id": "rim"}')
    assert client.get_rim("NV_GPU_DRIVER_GH100_535.86.10") == b'{"id": "rim"}'

    assert len(requests) == 1
    assert requests[0].method == "GET"
    assert (
        str(requests[0].url)
        == f"{RIM_SERVICE_TEST_URL}/v1/rim/NV_GPU_DRIVER_GH100_535.86.10"
    )


def test_get_rim_quotes_identifier(rim_service, requests):
    rim_service(b"{}").get_rim("a/b")
    assert requests[0].url.raw_path == b"/v1/rim/a%2Fb"


@pytest.mark.parametrize("status_code", [400, 404, 500, 503])
def test_get_rim_error_status(rim_service, status_code):
    client = rim_service(b"no such RIM", status_code=status_code)
    with pytest.raises(ServiceError) as excinfo:
        client.get_rim("unknown")

    assert excinfo.value.status_code == status_code
    assert excinfo.value.body == "no such RIM"
    assert "no such RIM" in str(excinfo.value)


def test_get_rim_non_200_success_is_an_error(rim_service):
    with pytest.raises(ServiceError, match="204"):
        rim_service(b"", status_code=204).get_rim("rim")


def test_get_rim_transport_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    client = RimServiceClient(
        RIM_SERVICE_TEST_URL, transport=httpx.MockTransport(handler)
    )
    with pytest.raises(TransportError, match="connection refused"):
        client.get_rim("rim")


def test_get_rim_rejects_empty_identifier(rim_service, requests):
    with pytest.raises(ValueError):
        rim_service(b"{}").get_rim("")
    assert requests == []


def test_client_context_manager_closes_session(rim_service):
    with rim_service(b"{}") as client:
        client.get_rim("rim")
    assert client.session.is_closed


def test_development_client_skips_tls_verification():
    client = RimServiceClient(development=True, cacert="/does/not/exist")
    assert client.development
    client.close()


class TestRimServiceResponse:
    def test_from_dict(self):
        response = RimServiceResponse.from_dict(
            {
                "id": "rim",
                "rim": "AAAA",
                "sha256": "00",
                "last_updated": "2024-01-30T21:40:12.504Z",
                "rim_format": "CORIM",
                "request_id": "42",
            }
        )
        assert response.id == "rim"
        assert response.rim == "AAAA"
        assert response.rim_format == "CORIM"
        assert response.request_id == "42"

    def test_from_dict_ignores_unknown_and_invalid_fields(self):
        response = RimServiceResponse.from_dict(
            {"rim_format": 42, "rim": None, "extra": "ignored"}
        )
        assert response == RimServiceResponse()
        assert response.rim_format == ""

    def test_as_dict(self):
        response = RimServiceResponse(id="rim", rim_format="CORIM")
        assert RimServiceResponse.from_dict(response.as_dict()) == response
