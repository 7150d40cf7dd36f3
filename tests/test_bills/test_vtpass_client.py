"""Tests for the VTpass client envelope handling."""

import json

import httpx
import pytest

from courier.core.errors import RemoteCallFailedError
from courier.services.bills.vtpass_client import VTPassClient


def make_client(handler) -> VTPassClient:
    return VTPassClient(
        api_key="api",
        public_key="pub",
        secret_key="sec",
        base_url="https://vtpass.test/api",
        transport=httpx.MockTransport(handler),
        max_retries=0,
    )


async def test_airtime_purchase_sends_credentials_and_body():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["headers"] = request.headers
        seen["body"] = json.loads(request.content)
        return httpx.Response(
            200,
            json={
                "code": "000",
                "content": {"transactions": {"status": "delivered", "transactionId": "171"}},
            },
        )

    async with make_client(handler) as client:
        response = await client.purchase_airtime("mtn", "08031234567", 500, "202403100030abcd1234")

    assert seen["path"] == "/api/pay"
    assert seen["headers"]["api-key"] == "api"
    assert seen["headers"]["public-key"] == "pub"
    assert seen["headers"]["secret-key"] == "sec"
    assert seen["body"] == {
        "request_id": "202403100030abcd1234",
        "serviceID": "mtn",
        "amount": 500,
        "phone": "08031234567",
    }
    assert response["content"]["transactions"]["transactionId"] == "171"


async def test_data_purchase_uses_data_service_id():
    bodies = []

    def handler(request: httpx.Request) -> httpx.Response:
        bodies.append(json.loads(request.content))
        return httpx.Response(200, json={"code": "000"})

    async with make_client(handler) as client:
        response = await client.purchase_data("glo", "08051234567", "glo-1000", "req-1")

    assert bodies[0]["serviceID"] == "glo-data"
    assert bodies[0]["billersCode"] == "08051234567"
    assert bodies[0]["variation_code"] == "glo-1000"
    assert response["content"] == {}


async def test_non_success_code_raises_with_code():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json={"code": "016", "response_description": "TRANSACTION FAILED"},
        )

    async with make_client(handler) as client:
        with pytest.raises(RemoteCallFailedError) as exc_info:
            await client.pay_electricity("45012345678", "ikeja-electric", 3000, "0803", "req-2")

    assert exc_info.value.service == "vtpass"
    assert exc_info.value.context["code"] == "016"
    assert exc_info.value.context["request_id"] == "req-2"
    assert exc_info.value.message == "TRANSACTION FAILED"


async def test_smart_card_lookup_returns_content():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"code": "000", "content": {"Customer_Name": "ADA OBI"}})

    async with make_client(handler) as client:
        response = await client.verify_smart_card("7023456789", "dstv")

    assert response["code"] == "000"
    assert response["content"]["Customer_Name"] == "ADA OBI"
