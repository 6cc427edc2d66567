"""Tests for the ATTOM client — request shape, no-result quirk, error mapping."""
import pytest
import requests

from vantera.core.exceptions import AttomError, ConfigurationError, ProviderError
from vantera.services.attom_client import looks_like_success_without_result
from tests.conftest import FakeResponse, attom_payload, make_attom_client, make_attom_detail, make_attom_stub


@pytest.mark.parametrize(
    "body",
    [
        '{"status": {"msg": "SuccessWithNoResult"}}',
        '{"status": {"msg": "SuccessfulWithoutResult"}}',
        "Success With No Results",
        "successful without result",
    ],
)
def test_no_result_variants(body):
    assert looks_like_success_without_result(body) is True


@pytest.mark.parametrize("body", ["", "Unauthorized", '{"status": {"msg": "SuccessWithResult"}}'])
def test_no_result_negative(body):
    assert looks_like_success_without_result(body) is False


def test_missing_key_raises_before_request():
    client = make_attom_client({}, api_key="")
    with pytest.raises(ConfigurationError):
        client.get_json("/property/address")
    assert client._session.calls == []


def test_headers_and_none_params_dropped():
    client = make_attom_client({"/property/detail": FakeResponse(200, json_body=attom_payload())})
    client.get_json("/property/detail", {"attomid": "1", "address1": None})

    call = client._session.calls[0]
    assert call["url"].endswith("/property/detail")
    assert call["params"] == {"attomid": "1"}
    assert call["headers"]["apikey"] == "attom-test-key"
    assert call["headers"]["accept"] == "application/json"


def test_no_result_quirk_returns_empty_payload():
    body = '{"status": {"code": 1, "msg": "SuccessfulWithoutResult"}}'
    client = make_attom_client({"/property/address": FakeResponse(404, text=body, reason="Not Found")})

    payload = client.get_json("/property/address")

    assert payload["property"] == []
    assert payload["status"]["msg"] == "SuccessfulWithoutResult"


def test_no_result_quirk_non_json_body():
    client = make_attom_client({"/property/address": FakeResponse(460, text="SuccessWithNoResult")})
    assert client.address_search(25.0, -80.0, 0.5, 10) == []


def test_http_error_raises_attom_error():
    client = make_attom_client(
        {"/property/address": FakeResponse(500, text="upstream exploded " + "x" * 1000, reason="Server Error")}
    )
    with pytest.raises(AttomError) as exc_info:
        client.get_json("/property/address")

    err = exc_info.value
    assert err.status == 500
    assert err.status_code == 502
    assert "ATTOM 500 Server Error" in err.message
    assert "upstream exploded" in err.message
    assert len(err.message) < 600


def test_transport_error_raises_provider_error():
    client = make_attom_client({"/property/address": requests.exceptions.ConnectTimeout("timed out")})
    with pytest.raises(ProviderError):
        client.get_json("/property/address")


def test_address_search_params():
    stubs = [make_attom_stub(1), make_attom_stub(2)]
    client = make_attom_client({"/property/address": FakeResponse(200, json_body=attom_payload(*stubs))})

    assert client.address_search(25.76, -80.19, 0.5, 25) == stubs
    assert client._session.calls[0]["params"] == {
        "latitude": 25.76,
        "longitude": -80.19,
        "radius": 0.5,
        "pagesize": 25,
    }


def test_property_detail_by_address_when_no_id():
    detail = make_attom_detail(9)
    client = make_attom_client({"/property/detail": FakeResponse(200, json_body=attom_payload(detail))})

    assert client.property_detail(None, "1 Main St", "Miami, FL") == detail
    assert client._session.calls[0]["params"] == {"address1": "1 Main St", "address2": "Miami, FL"}


def test_property_detail_empty():
    client = make_attom_client({"/property/detail": FakeResponse(200, json_body=attom_payload())})
    assert client.property_detail("1") is None


def test_avm_detail_params_and_record():
    record = {"avm": {"amount": {"value": 3_100_000}}}
    client = make_attom_client({"/avm/detail": FakeResponse(200, json_body=attom_payload(record))})

    assert client.avm_detail("1 Main St", "Miami, FL") == record
    assert client._session.calls[0]["params"] == {"address1": "1 Main St", "address2": "Miami, FL"}


def test_avm_detail_top_level_value():
    payload = {"status": {"code": 0}, "avm": {"amount": {"value": 5}}}
    client = make_attom_client({"/avm/detail": FakeResponse(200, json_body=payload)})
    assert client.avm_detail("1 Main St", "Miami, FL") == payload
