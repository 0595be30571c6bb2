"""
Test suite for the HTTP clients: direct JSON-RPC and email capture.
"""
import json

import httpx
import pytest

from test_mocks import MOCK_BUYER_ADDRESS, make_rpc_transport

from presale_client.clients.rpc_client import JsonRpcClient
from presale_client.clients.webhook import EmailCaptureClient, is_valid_email
from presale_client.engine.exceptions import ProviderRpcError, RpcError

WEBHOOK = "https://hooks.example.com/capture"


# ========================================================================
# JsonRpcClient
# ========================================================================

@pytest.mark.asyncio
async def test_rpc_call_returns_result():
    seen = []
    async with JsonRpcClient(transport=make_rpc_transport(lambda method, params: "0x2105", seen)) as rpc:
        assert await rpc.call("https://rpc.example", "eth_chainId") == "0x2105"
        await rpc.call("https://rpc.example", "eth_chainId")

    assert seen[0]["jsonrpc"] == "2.0"
    assert seen[0]["params"] == []
    assert seen[0]["id"] != seen[1]["id"]


@pytest.mark.asyncio
async def test_rpc_error_object_raises():
    def handler(method, params):
        raise ProviderRpcError(-32601, "method not found")

    async with JsonRpcClient(transport=make_rpc_transport(handler)) as rpc:
        with pytest.raises(RpcError) as exc_info:
            await rpc.call("https://rpc.example", "eth_foo")
    assert exc_info.value.code == -32601
    assert exc_info.value.rpc_method == "eth_foo"


@pytest.mark.asyncio
@pytest.mark.parametrize("response", [
    httpx.Response(502, text="bad gateway"),
    httpx.Response(200, text="not json"),
    httpx.Response(200, json=["unexpected"]),
    httpx.Response(200, json={"jsonrpc": "2.0", "id": 1}),
])
async def test_rpc_malformed_replies_raise(response):
    async with JsonRpcClient(transport=make_rpc_transport(lambda method, params: response)) as rpc:
        with pytest.raises(RpcError):
            await rpc.call("https://rpc.example", "eth_blockNumber")


@pytest.mark.asyncio
async def test_rpc_transport_failure_raises():
    def fail(request):
        raise httpx.ConnectError("connection refused", request=request)

    async with JsonRpcClient(transport=httpx.MockTransport(fail)) as rpc:
        with pytest.raises(RpcError):
            await rpc.call("https://rpc.example", "eth_blockNumber")


# ========================================================================
# EmailCaptureClient
# ========================================================================

@pytest.mark.parametrize("email, valid", [
    ("buyer@example.com", True),
    ("  buyer@example.com ", True),
    ("buyer@example", False),
    ("not an email", False),
    ("", False),
])
def test_email_validation(email, valid):
    assert is_valid_email(email) is valid


@pytest.mark.asyncio
async def test_capture_posts_payload():
    captured = []

    def respond(request):
        captured.append(json.loads(request.content))
        return httpx.Response(200)

    async with EmailCaptureClient(WEBHOOK, transport=httpx.MockTransport(respond)) as capture:
        assert await capture.submit("buyer@example.com", MOCK_BUYER_ADDRESS, "USDT") is True

    assert captured[0]["email"] == "buyer@example.com"
    assert captured[0]["wallet"] == MOCK_BUYER_ADDRESS
    assert captured[0]["purchase_type"] == "USDT"
    assert "timestamp" in captured[0]


@pytest.mark.asyncio
async def test_capture_failures_return_false():
    async with EmailCaptureClient(WEBHOOK, transport=httpx.MockTransport(lambda r: httpx.Response(500))) as capture:
        assert await capture.submit("buyer@example.com", MOCK_BUYER_ADDRESS, "ETH") is False
        assert await capture.submit("nope", MOCK_BUYER_ADDRESS, "ETH") is False


@pytest.mark.asyncio
async def test_capture_disabled_without_webhook(monkeypatch):
    monkeypatch.delenv("PRESALE_WEBHOOK_URL", raising=False)
    calls = []

    def respond(request):
        calls.append(request)
        return httpx.Response(200)

    async with EmailCaptureClient(transport=httpx.MockTransport(respond)) as capture:
        assert not capture.enabled
        assert await capture.submit("buyer@example.com", MOCK_BUYER_ADDRESS, "ETH") is False
    assert calls == []
