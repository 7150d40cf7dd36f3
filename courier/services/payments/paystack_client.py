"""
Paystack API client.

Amounts are passed in whole naira and converted to kobo (minor units) on
the wire. A response whose ``status`` flag is false is a gateway-level
failure and raises RemoteCallFailedError like a transport failure does.
"""

from typing import Any, Optional
from urllib.parse import quote

import httpx

from courier.core.config import get_settings
from courier.core.http_client import JSONServiceClient
from courier.core.logging import get_logger

logger = get_logger(__name__)

MINOR_UNITS_PER_MAJOR = 100


class PaystackClient(JSONServiceClient):
    """Client for transaction initialization and verification."""

    service_name = "paystack"

    def __init__(
        self,
        secret_key: Optional[str] = None,
        base_url: Optional[str] = None,
        currency: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        **kwargs: Any,
    ):
        settings = get_settings()
        self.currency = currency or settings.currency
        super().__init__(
            base_url=base_url or settings.paystack_base_url,
            headers={
                "Authorization": f"Bearer {secret_key or settings.paystack_secret_key}",
                "Content-Type": "application/json",
            },
            transport=transport,
            **kwargs,
        )

    def _check_status(self, operation: str, payload: dict[str, Any], reference: str) -> dict[str, Any]:
        if not payload.get("status"):
            logger.warning(
                "Paystack reported failure",
                operation=operation,
                reference=reference,
                gateway_message=payload.get("message"),
            )
            raise self._fail(
                payload.get("message") or f"Paystack {operation} failed",
                operation,
                reference=reference,
            )
        return payload

    async def initialize_transaction(self, email: str, amount: int, reference: str) -> dict[str, Any]:
        """
        Start a transaction and obtain the hosted checkout URL.

        Args:
            email: Payer email
            amount: Amount in whole currency units
            reference: Unique transaction reference

        Returns:
            Gateway response ``{status, message, data}``; ``data`` holds
            ``authorization_url``, ``access_code`` and ``reference``
        """
        logger.info("Initializing Paystack transaction", reference=reference, amount=amount)
        payload = await self._request(
            "initialize_transaction",
            "POST",
            "/transaction/initialize",
            json={
                "email": email,
                "amount": amount * MINOR_UNITS_PER_MAJOR,
                "reference": reference,
                "currency": self.currency,
            },
        )
        return self._check_status("initialize_transaction", payload, reference)

    async def verify_transaction(self, reference: str) -> dict[str, Any]:
        """
        Fetch the outcome of a transaction.

        Returns:
            Gateway response; ``data.status`` is ``success`` for a paid
            transaction
        """
        payload = await self._request(
            "verify_transaction",
            "GET",
            f"/transaction/verify/{quote(reference, safe='')}",
        )
        return self._check_status("verify_transaction", payload, reference)
