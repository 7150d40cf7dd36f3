"""
Test suite for the Paystack client and its shared retry logic.

Requests are served by httpx.MockTransport, so no network is involved.
"""

import json
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from courier.core.errors import RemoteCallFailedError
from courier.services.payments.paystack_client import PaystackClient


def make_client(handler, **kwargs) -> PaystackClient:
    return PaystackClient(
        secret_key="sk_test_123",
        base_url="https://paystack.test",
        currency="NGN",
        transport=httpx.MockTransport(handler),
        max_retries=kwargs.pop("max_retries", 2),
        initial_backoff=0.0,
        max_backoff=0.0,
        **kwargs,
    )


class TestInitializeTransaction:
    """Test suite for initialize_transaction."""

    async def test_sends_amount_in_kobo(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["method"] = request.method
            seen["path"] = request.url.path
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(
                200,
                json={
                    "status": True,
                    "message": "Authorization URL created",
                    "data": {
                        "authorization_url": "https://checkout.paystack.com/abc",
                        "access_code": "abc",
                        "reference": "PAY-1",
                    },
                },
            )

        async with make_client(handler) as client:
            response = await client.initialize_transaction("ada@example.com", 1100, "PAY-1")

        assert seen["method"] == "POST"
        assert seen["path"] == "/transaction/initialize"
        assert seen["auth"] == "Bearer sk_test_123"
        assert seen["body"] == {
            "email": "ada@example.com",
            "amount": 110000,
            "reference": "PAY-1",
            "currency": "NGN",
        }
        assert response["data"]["authorization_url"] == "https://checkout.paystack.com/abc"

    async def test_status_false_raises(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"status": False, "message": "Invalid email"})

        async with make_client(handler) as client:
            with pytest.raises(RemoteCallFailedError) as exc_info:
                await client.initialize_transaction("bad", 100, "PAY-2")

        assert exc_info.value.service == "paystack"
        assert exc_info.value.message == "Invalid email"
        assert exc_info.value.status_code == 502


class TestVerifyTransaction:
    """Test suite for verify_transaction."""

    async def test_verify_quotes_reference(self):
        paths = []

        def handler(request: httpx.Request) -> httpx.Response:
            paths.append(request.url.raw_path.decode())
            return httpx.Response(
                200,
                json={"status": True, "data": {"status": "success", "amount": 110000}},
            )

        async with make_client(handler) as client:
            response = await client.verify_transaction("PAY/1")

        assert paths == ["/transaction/verify/PAY%2F1"]
        assert response["data"]["status"] == "success"


class TestRetries:
    """Test suite for retry and failure classification."""

    async def test_retries_server_errors_then_succeeds(self):
        responses = iter(
            [
                httpx.Response(503),
                httpx.Response(429),
                httpx.Response(200, json={"status": True, "data": {"status": "success"}}),
            ]
        )

        def handler(request: httpx.Request) -> httpx.Response:
            return next(responses)

        async with make_client(handler) as client:
            response = await client.verify_transaction("PAY-3")

        assert response["data"]["status"] == "success"

    async def test_retries_transport_errors(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            raise httpx.ConnectError("connection refused", request=request)

        async with make_client(handler, max_retries=2) as client:
            with pytest.raises(RemoteCallFailedError) as exc_info:
                await client.verify_transaction("PAY-4")

        assert len(calls) == 3
        assert "ConnectError" in exc_info.value.context["last_error"]

    async def test_client_errors_are_not_retried(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(401, json={"status": False, "message": "Invalid key"})

        async with make_client(handler) as client:
            with pytest.raises(RemoteCallFailedError) as exc_info:
                await client.verify_transaction("PAY-5")

        assert len(calls) == 1
        assert exc_info.value.context["status_code"] == 401

    async def test_non_json_body_fails(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>maintenance</html>")

        async with make_client(handler) as client:
            with pytest.raises(RemoteCallFailedError):
                await client.verify_transaction("PAY-6")

    async def test_backoff_is_exponential_and_capped(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(502)

        client = PaystackClient(
            secret_key="sk",
            base_url="https://paystack.test",
            transport=httpx.MockTransport(handler),
            max_retries=3,
            initial_backoff=1.0,
            max_backoff=3.0,
        )

        with patch("courier.core.http_client.asyncio.sleep", new=AsyncMock()) as sleep:
            with pytest.raises(RemoteCallFailedError):
                await client.verify_transaction("PAY-7")
        await client.aclose()

        assert [c.args[0] for c in sleep.await_args_list] == [1.0, 2.0, 3.0]
