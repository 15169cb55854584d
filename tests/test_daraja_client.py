import base64

import httpx
import pytest

from mpesa_relay.integrations.clients.real_http.daraja import DarajaClient
from mpesa_relay.integrations.errors import AuthError, GatewayError
from mpesa_relay.integrations.policy.push_request_builder import PushRequestBuilder


@pytest.fixture
def client(relay_config, http_client):
    return DarajaClient(
        relay_config.gateway,
        timeouts=relay_config.timeouts,
        credentials=relay_config.credentials,
        http_client=http_client,
    )


@pytest.fixture
def builder(relay_config):
    return PushRequestBuilder(relay_config.gateway, relay_config.validation)


@pytest.mark.asyncio
async def test_authenticate_uses_basic_auth_with_consumer_pair(client, fake_daraja):
    token, lifetime = await client.authenticate()

    assert token == "token-1"
    assert lifetime == 3599
    auth_request = fake_daraja.requests[0]
    expected = base64.b64encode(b"test_consumer_key:test_consumer_secret").decode()
    assert auth_request.headers["Authorization"] == f"Basic {expected}"
    assert auth_request.url.params["grant_type"] == "client_credentials"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "outcome",
    [
        httpx.Response(400, json={"errorMessage": "Invalid credentials"}),
        httpx.Response(200, json={"expires_in": "3599"}),
        httpx.Response(200, text="<html>maintenance</html>"),
        httpx.ConnectError("connection refused"),
        httpx.ReadTimeout("timed out"),
    ],
)
async def test_authenticate_failures_raise_auth_error(client, fake_daraja, outcome):
    fake_daraja.auth_response = outcome
    with pytest.raises(AuthError):
        await client.authenticate()


@pytest.mark.asyncio
async def test_initiate_push_sends_bearer_and_returns_ack(client, fake_daraja, builder):
    ack = await client.initiate_push(builder.build("0712345678", 100, "Order 1"))

    assert ack.checkout_request_id == "ws_CO_1912201910203639251"
    assert ack.merchant_request_id == "29115-34620561-1"
    assert ack.response_code == "0"
    push = next(r for r in fake_daraja.requests if r.url.path.endswith("processrequest"))
    assert push.headers["Authorization"] == "Bearer token-1"
    assert fake_daraja.last_json("/mpesa/stkpush/v1/processrequest")["PhoneNumber"] == "254712345678"


@pytest.mark.asyncio
async def test_token_is_reused_across_pushes(client, fake_daraja, builder):
    await client.initiate_push(builder.build("254712345678", 10))
    await client.initiate_push(builder.build("254712345678", 20))

    assert fake_daraja.auth_calls == 1
    assert fake_daraja.push_calls == 2


@pytest.mark.asyncio
async def test_nonzero_response_code_is_a_rejection(client, fake_daraja, builder):
    fake_daraja.push_response = httpx.Response(200, json={
        "MerchantRequestID": "1", "CheckoutRequestID": "ws_CO_x",
        "ResponseCode": "1", "ResponseDescription": "Rejected",
    })

    with pytest.raises(GatewayError) as exc:
        await client.initiate_push(builder.build("254712345678", 10))

    assert exc.value.message == "Rejected"
    assert exc.value.http_status == 502


@pytest.mark.asyncio
async def test_gateway_http_error_carries_status_and_body(client, fake_daraja, builder):
    fake_daraja.push_response = httpx.Response(400, json={
        "requestId": "abc", "errorCode": "400.002.02", "errorMessage": "Bad Request - Invalid Amount",
    })

    with pytest.raises(GatewayError) as exc:
        await client.initiate_push(builder.build("254712345678", 10))

    assert exc.value.status_code == 400
    assert exc.value.message == "Bad Request - Invalid Amount"
    assert exc.value.details["errorCode"] == "400.002.02"


@pytest.mark.asyncio
async def test_push_timeout_is_a_transport_failure(client, fake_daraja, builder):
    fake_daraja.push_response = httpx.ReadTimeout("timed out")

    with pytest.raises(GatewayError) as exc:
        await client.initiate_push(builder.build("254712345678", 10))

    assert exc.value.status_code is None
    assert exc.value.http_status == 500
    assert "timed out" in exc.value.message


@pytest.mark.asyncio
async def test_401_forces_one_refresh_and_one_retry(client, fake_daraja, builder):
    fake_daraja.push_responses = [httpx.Response(401, json={"errorMessage": "Invalid Access Token"})]

    ack = await client.initiate_push(builder.build("254712345678", 10))

    assert ack.response_code == "0"
    assert fake_daraja.auth_calls == 2
    assert fake_daraja.push_calls == 2
    retried = [r for r in fake_daraja.requests if r.url.path.endswith("processrequest")][-1]
    assert retried.headers["Authorization"] == "Bearer token-2"


@pytest.mark.asyncio
async def test_second_401_is_not_retried_again(client, fake_daraja, builder):
    fake_daraja.push_response = httpx.Response(401, json={"errorMessage": "Invalid Access Token"})

    with pytest.raises(GatewayError) as exc:
        await client.initiate_push(builder.build("254712345678", 10))

    assert exc.value.status_code == 401
    assert fake_daraja.push_calls == 2


@pytest.mark.asyncio
async def test_push_without_token_surfaces_auth_error(client, fake_daraja, builder):
    fake_daraja.auth_response = httpx.Response(500, json={})

    with pytest.raises(AuthError):
        await client.initiate_push(builder.build("254712345678", 10))
    assert fake_daraja.push_calls == 0


@pytest.mark.asyncio
async def test_query_status_returns_raw_body(client, fake_daraja, builder):
    body = await client.query_status(builder.build_status_query("ws_CO_42"))

    assert body["CheckoutRequestID"] == "ws_CO_42"
    assert body["ResultCode"] == "1032"
    sent = fake_daraja.last_json("/mpesa/stkpushquery/v1/query")
    assert set(sent) == {"BusinessShortCode", "Password", "Timestamp", "CheckoutRequestID"}


@pytest.mark.asyncio
async def test_query_status_pending_error_is_reported(client, fake_daraja, builder):
    fake_daraja.query_response = httpx.Response(500, json={
        "requestId": "r1", "errorCode": "500.001.1001", "errorMessage": "The transaction is being processed",
    })

    with pytest.raises(GatewayError) as exc:
        await client.query_status(builder.build_status_query("ws_CO_42"))

    assert exc.value.message == "The transaction is being processed"
    assert exc.value.details["errorCode"] == "500.001.1001"
