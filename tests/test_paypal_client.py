import json

import httpx
import pytest

from app.adapters.paypal_client import PayPalClient, approval_url
from app.common.errors import CaptureFailed, ConfigurationError, OrderCreationFailed, PaymentProviderUnavailable
from app.core.config import Settings

pytestmark = pytest.mark.anyio("asyncio")


def _settings(**overrides):
    settings = Settings()
    settings.paypal_client_id = "client-id"
    settings.paypal_secret_key = "secret"
    settings.paypal_api_base = "https://api.paypal.test"
    for key, value in overrides.items():
        setattr(settings, key, value)
    return settings


class Recorder:
    def __init__(self, routes):
        self.routes = routes
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        handler = self.routes[(request.method, request.url.path)]
        return handler(request)


def _token(request):
    return httpx.Response(200, json={"access_token": "tok-1", "expires_in": 32400})


def _client(recorder, **overrides):
    client = PayPalClient(settings=_settings(**overrides), transport=httpx.MockTransport(recorder))
    client.retry_backoff_s = 0
    return client


async def test_create_order_sends_request_id_and_bearer_token():
    recorder = Recorder({
        ("POST", "/v1/oauth2/token"): _token,
        ("POST", "/v2/checkout/orders"): lambda r: httpx.Response(201, json={"id": "5O190127TN364715T"}),
    })
    client = _client(recorder)

    order = await client.create_order({"intent": "CAPTURE"}, request_id="order-abc")

    assert order["id"] == "5O190127TN364715T"
    token_req, order_req = recorder.requests
    assert token_req.headers["Authorization"].startswith("Basic ")
    assert b"grant_type=client_credentials" in token_req.content
    assert order_req.headers["Authorization"] == "Bearer tok-1"
    assert order_req.headers["PayPal-Request-Id"] == "order-abc"
    assert json.loads(order_req.content) == {"intent": "CAPTURE"}


async def test_token_is_cached_between_calls():
    recorder = Recorder({
        ("POST", "/v1/oauth2/token"): _token,
        ("POST", "/v2/checkout/orders"): lambda r: httpx.Response(201, json={"id": "A"}),
    })
    client = _client(recorder)
    await client.create_order({})
    await client.create_order({})
    assert [r.url.path for r in recorder.requests].count("/v1/oauth2/token") == 1


async def test_unauthorized_refreshes_token_once():
    answers = iter([httpx.Response(401, json={}), httpx.Response(201, json={"id": "B"})])
    recorder = Recorder({
        ("POST", "/v1/oauth2/token"): _token,
        ("POST", "/v2/checkout/orders"): lambda r: next(answers),
    })
    client = _client(recorder)
    order = await client.create_order({})
    assert order["id"] == "B"
    assert [r.url.path for r in recorder.requests].count("/v1/oauth2/token") == 2


async def test_provider_rejection_is_not_retried():
    recorder = Recorder({
        ("POST", "/v1/oauth2/token"): _token,
        ("POST", "/v2/checkout/orders"): lambda r: httpx.Response(422, json={"name": "UNPROCESSABLE_ENTITY"}),
    })
    client = _client(recorder)
    with pytest.raises(OrderCreationFailed) as exc:
        await client.create_order({})
    assert exc.value.provider_status == 422
    assert exc.value.message == "Failed to create PayPal order"
    assert len(recorder.requests) == 2


async def test_capture_error_maps_to_capture_failed():
    recorder = Recorder({
        ("POST", "/v1/oauth2/token"): _token,
        ("POST", "/v2/checkout/orders/ORDER-1/capture"): lambda r: httpx.Response(422, json={}),
    })
    client = _client(recorder)
    with pytest.raises(CaptureFailed):
        await client.capture_order("ORDER-1", request_id="capture-ORDER-1")
    assert recorder.requests[-1].headers["PayPal-Request-Id"] == "capture-ORDER-1"


async def test_transport_errors_are_retried_then_surface():
    calls = {"n": 0}

    def _flaky(request):
        calls["n"] += 1
        raise httpx.ConnectError("connection refused", request=request)

    client = _client(Recorder({("POST", "/v1/oauth2/token"): _flaky}), paypal_max_retries=3)
    with pytest.raises(PaymentProviderUnavailable):
        await client.access_token()
    assert calls["n"] == 3


async def test_missing_credentials_is_a_configuration_error():
    client = _client(Recorder({}), paypal_client_id="")
    with pytest.raises(ConfigurationError) as exc:
        await client.access_token()
    assert exc.value.message == "PayPal credentials not configured"


def test_approval_url_prefers_payer_action():
    order = {"links": [
        {"rel": "approve", "href": "https://paypal.test/approve"},
        {"rel": "payer-action", "href": "https://paypal.test/payer-action"},
    ]}
    assert approval_url(order) == "https://paypal.test/payer-action"
    assert approval_url({"links": [{"rel": "approve", "href": "https://paypal.test/approve"}]}) == \
        "https://paypal.test/approve"
    assert approval_url({}) is None
