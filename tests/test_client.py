from unittest.mock import MagicMock

import pytest
import requests

from x402_paylinks.core.client import PaymentLinksClient, ServiceResponseError
from x402_paylinks.core.config import ServiceConfig

from .conftest import RECEIVER, TX_A


def _response(status_code, payload, headers=None):
    response = MagicMock(spec=requests.Response)
    response.status_code = status_code
    response.json.return_value = payload
    response.text = str(payload)
    response.headers = headers or {}
    return response


@pytest.fixture
def session():
    return MagicMock(spec=requests.Session)


def test_base_url_comes_from_configuration(session):
    client = PaymentLinksClient(ServiceConfig(service_url="https://pay.example/api"), session=session)
    assert client.base_url == "https://pay.example/api"


def test_create_posts_only_supplied_fields(session):
    session.request.return_value = _response(201, {"success": True, "id": "REQ-ABCDEFGHI", "link": "/r/REQ-ABCDEFGHI"})
    client = PaymentLinksClient(base_url="http://svc/api/", session=session)

    created = client.create(token="USDC", amount=10, receiver=RECEIVER, expires_in_days=2)

    assert created["id"] == "REQ-ABCDEFGHI"
    session.request.assert_called_once_with(
        "POST",
        "http://svc/api/create",
        timeout=30,
        json={"token": "USDC", "amount": "10", "receiver": RECEIVER, "expiresInDays": 2},
    )


def test_status_keeps_payment_headers(session):
    session.request.return_value = _response(
        402,
        {"error": "Payment Required", "code": 402, "payment": {"amount": "10"}},
        headers={"X-Payment-Amount": "10", "Content-Type": "application/json"},
    )
    client = PaymentLinksClient(base_url="http://svc/api", session=session)

    status = client.status("REQ-ABCDEFGHI")

    assert not status.paid and not status.expired
    assert status.payment == {"amount": "10"}
    assert status.headers == {"X-Payment-Amount": "10"}


def test_verify_rejection_is_an_outcome(session):
    session.request.return_value = _response(
        400,
        {"success": False, "reason": "TransactionReverted", "error": "Transaction failed"},
    )
    client = PaymentLinksClient(base_url="http://svc/api", session=session)

    outcome = client.verify("REQ-ABCDEFGHI", TX_A)

    assert not outcome.success
    assert outcome.reason == "TransactionReverted"
    assert not outcome.retryable
    _, kwargs = session.request.call_args
    assert kwargs["json"] == {"requestId": "REQ-ABCDEFGHI", "txHash": TX_A}


def test_verify_inconclusive_is_retryable(session):
    session.request.return_value = _response(503, {"success": False, "retryable": True})
    client = PaymentLinksClient(base_url="http://svc/api", session=session)

    assert client.verify("REQ-ABCDEFGHI", TX_A).retryable


def test_unexpected_status_raises(session):
    session.request.return_value = _response(404, {"success": False, "error": "not found"})
    client = PaymentLinksClient(base_url="http://svc/api", session=session)

    with pytest.raises(ServiceResponseError) as excinfo:
        client.delete("REQ-ABCDEFGHI")
    assert excinfo.value.status_code == 404


def test_list_passes_wallet_filter(session):
    session.request.return_value = _response(200, {"success": True, "requests": [{"id": "REQ-1"}], "count": 1})
    client = PaymentLinksClient(base_url="http://svc/api", session=session)

    assert client.list("0xOwner") == [{"id": "REQ-1"}]
    _, kwargs = session.request.call_args
    assert kwargs["params"] == {"wallet": "0xOwner"}
