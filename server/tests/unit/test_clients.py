"""Unit tests for the payment and email HTTP clients and email templates."""

import json

import httpx
import pytest

from natours.core.exceptions import PaymentGatewayError
from natours.services.email_service import (
    EmailDeliveryError,
    EmailMessage,
    EmailService,
    first_name,
    password_reset_email,
    welcome_email,
)
from natours.services.payment_gateway import RazorpayGateway, payment_signature, to_minor_units


@pytest.fixture
def mock_http(monkeypatch):
    """Route every httpx.AsyncClient through a handler; returns the captured requests."""
    requests = []
    responses = []
    real_client = httpx.AsyncClient

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return responses.pop(0)

    def client_factory(**kwargs):
        return real_client(transport=httpx.MockTransport(handler), **kwargs)

    monkeypatch.setattr(httpx, "AsyncClient", client_factory)
    return requests, responses


def test_to_minor_units():
    assert to_minor_units(497) == 49700
    assert to_minor_units(19.99) == 1999


def test_gateway_verify():
    gateway = RazorpayGateway(key_id="key", key_secret="secret")
    signature = payment_signature("order_1", "pay_1", "secret")

    assert gateway.verify("order_1", "pay_1", signature)
    assert not gateway.verify("order_1", "pay_2", signature)
    assert not gateway.verify("order_1", "pay_1", None)


@pytest.mark.asyncio
async def test_create_order(mock_http):
    requests, responses = mock_http
    responses.append(httpx.Response(200, json={"id": "order_9", "amount": 49700, "currency": "INR"}))
    gateway = RazorpayGateway(key_id="key", key_secret="secret", api_url="https://payments.test/v1/")

    order = await gateway.create_order(49700, "INR", "tour-1", {"tour_id": "1"})

    assert order["id"] == "order_9"
    sent = requests[0]
    assert str(sent.url) == "https://payments.test/v1/orders"
    assert sent.headers["authorization"].startswith("Basic ")
    assert json.loads(sent.content) == {
        "amount": 49700,
        "currency": "INR",
        "receipt": "tour-1",
        "notes": {"tour_id": "1"},
    }


@pytest.mark.asyncio
async def test_create_order_rejected(mock_http):
    _, responses = mock_http
    responses.append(httpx.Response(400, json={"error": {"code": "BAD_REQUEST_ERROR"}}))
    gateway = RazorpayGateway(key_id="key", key_secret="secret")

    with pytest.raises(PaymentGatewayError) as exc_info:
        await gateway.create_order(100, "INR", "r")

    assert exc_info.value.status_code == 502


@pytest.mark.asyncio
async def test_fetch_order(mock_http):
    requests, responses = mock_http
    responses.append(httpx.Response(200, json={"id": "order_9", "amount": 49700, "notes": {"tour_id": "1"}}))
    gateway = RazorpayGateway(key_id="key", key_secret="secret", api_url="https://payments.test/v1")

    order = await gateway.fetch_order("order_9")

    assert order["notes"] == {"tour_id": "1"}
    assert requests[0].method == "GET"
    assert str(requests[0].url) == "https://payments.test/v1/orders/order_9"


@pytest.mark.asyncio
async def test_fetch_unknown_order(mock_http):
    _, responses = mock_http
    responses.append(httpx.Response(400, json={"error": {"description": "The id provided does not exist"}}))
    gateway = RazorpayGateway(key_id="key", key_secret="secret")

    with pytest.raises(PaymentGatewayError):
        await gateway.fetch_order("order_missing")


@pytest.mark.asyncio
async def test_create_order_without_credentials():
    gateway = RazorpayGateway(key_id="", key_secret="")

    with pytest.raises(PaymentGatewayError):
        await gateway.create_order(100, "INR", "r")


def test_first_name():
    assert first_name("Jonas Schmedtmann") == "Jonas"
    assert first_name("") == "there"


def test_templates_escape_and_link():
    welcome = welcome_email("a@example.com", "<b>Eve</b> Doe", "http://test/me")
    reset = password_reset_email("a@example.com", "Eve", "http://test/reset/abc", 10)

    assert "<b>Eve</b>" not in welcome.html
    assert "&lt;b&gt;Eve&lt;/b&gt;" in welcome.html
    assert "http://test/me" in welcome.html
    assert reset.subject == "Your password reset token (valid for 10 min)"
    assert "http://test/reset/abc" in reset.html


@pytest.mark.asyncio
async def test_email_send(mock_http):
    requests, responses = mock_http
    responses.append(httpx.Response(202))
    service = EmailService(api_key="sg-key", api_url="https://mail.test/v3/mail/send", sender="hello@natours.test")

    await service.send(EmailMessage(to="a@example.com", subject="Hi", html="<p>Hi</p>"))

    sent = requests[0]
    assert sent.headers["authorization"] == "Bearer sg-key"
    body = json.loads(sent.content)
    assert body["personalizations"] == [{"to": [{"email": "a@example.com"}]}]
    assert body["from"] == {"email": "hello@natours.test"}


@pytest.mark.asyncio
async def test_email_send_failure(mock_http):
    _, responses = mock_http
    responses.append(httpx.Response(401))
    service = EmailService(api_key="sg-key", api_url="https://mail.test/v3/mail/send")

    with pytest.raises(EmailDeliveryError):
        await service.send(EmailMessage(to="a@example.com", subject="Hi", html="<p>Hi</p>"))


@pytest.mark.asyncio
async def test_email_disabled_without_key(mock_http):
    requests, _ = mock_http
    service = EmailService(api_key="")

    await service.send(EmailMessage(to="a@example.com", subject="Hi", html="<p>Hi</p>"))

    assert not service.enabled
    assert requests == []
