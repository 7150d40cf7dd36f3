"""
VTpass bills aggregator client.

Every call returns the aggregator's ``{code, content}`` envelope. Code
``"000"`` means the request was processed; any other code raises
RemoteCallFailedError carrying the code so callers can compensate.
"""

from typing import Any, Optional

import httpx

from courier.core.config import get_settings
from courier.core.http_client import JSONServiceClient
from courier.core.logging import get_logger

logger = get_logger(__name__)

SUCCESS_CODE = "000"


class VTPassClient(JSONServiceClient):
    """Client for airtime, data, TV and electricity purchases."""

    service_name = "vtpass"

    def __init__(
        self,
        api_key: Optional[str] = None,
        public_key: Optional[str] = None,
        secret_key: Optional[str] = None,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        **kwargs: Any,
    ):
        settings = get_settings()
        super().__init__(
            base_url=base_url or settings.vtpass_base_url,
            headers={
                "api-key": api_key or settings.vtpass_api_key,
                "public-key": public_key or settings.vtpass_public_key,
                "secret-key": secret_key or settings.vtpass_secret_key,
                "Content-Type": "application/json",
            },
            transport=transport,
            **kwargs,
        )

    async def _post(self, operation: str, path: str, body: dict[str, Any]) -> dict[str, Any]:
        payload = await self._request(operation, "POST", path, json=body)
        code = str(payload.get("code", ""))
        if code != SUCCESS_CODE:
            logger.warning(
                "VTpass reported failure",
                operation=operation,
                code=code,
                request_id=body.get("request_id"),
                response_description=payload.get("response_description"),
            )
            raise self._fail(
                payload.get("response_description") or f"VTpass {operation} failed",
                operation,
                code=code,
                request_id=body.get("request_id"),
            )
        payload["code"] = code
        payload["content"] = payload.get("content") or {}
        return payload

    async def purchase_airtime(
        self,
        network_code: str,
        phone: str,
        amount: int,
        request_id: str,
    ) -> dict[str, Any]:
        return await self._post(
            "purchase_airtime",
            "/pay",
            {
                "request_id": request_id,
                "serviceID": network_code,
                "amount": amount,
                "phone": phone,
            },
        )

    async def purchase_data(
        self,
        network_code: str,
        phone: str,
        variation_code: str,
        request_id: str,
    ) -> dict[str, Any]:
        """Buy a data bundle; network_code is the bare network service id."""
        return await self._post(
            "purchase_data",
            "/pay",
            {
                "request_id": request_id,
                "serviceID": f"{network_code}-data",
                "billersCode": phone,
                "variation_code": variation_code,
                "phone": phone,
            },
        )

    async def verify_smart_card(self, card_number: str, service_id: str) -> dict[str, Any]:
        """Look up the customer behind a TV smart card number."""
        return await self._post(
            "verify_smart_card",
            "/merchant-verify",
            {"billersCode": card_number, "serviceID": service_id},
        )

    async def pay_tv_subscription(
        self,
        card_number: str,
        service_id: str,
        variation_code: str,
        amount: int,
        phone: str,
        request_id: str,
    ) -> dict[str, Any]:
        return await self._post(
            "pay_tv_subscription",
            "/pay",
            {
                "request_id": request_id,
                "serviceID": service_id,
                "billersCode": card_number,
                "variation_code": variation_code,
                "amount": amount,
                "phone": phone,
                "subscription_type": "change",
            },
        )

    async def pay_electricity(
        self,
        meter_number: str,
        service_id: str,
        amount: int,
        phone: str,
        request_id: str,
    ) -> dict[str, Any]:
        return await self._post(
            "pay_electricity",
            "/pay",
            {
                "request_id": request_id,
                "serviceID": service_id,
                "billersCode": meter_number,
                "amount": amount,
                "phone": phone,
            },
        )
