"""
Outbound JSON-over-HTTP client with exponential backoff retry logic.

Shared by the payment gateway and bills aggregator clients. Transport
errors, HTTP 429 and 5xx responses are retried; any other failure, or
exhausting the retries, raises RemoteCallFailedError naming the service.
"""

import asyncio
from typing import Any, Optional

import httpx

from courier.core.config import get_settings
from courier.core.errors import RemoteCallFailedError
from courier.core.logging import get_logger

logger = get_logger(__name__)

RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})


class JSONServiceClient:
    """
    Base async client for a remote JSON API.

    Subclasses set ``service_name`` and provide base URL and headers.
    """

    service_name = "remote"

    def __init__(
        self,
        base_url: str,
        headers: Optional[dict[str, str]] = None,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        initial_backoff: Optional[float] = None,
        max_backoff: Optional[float] = None,
        backoff_multiplier: float = 2.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize client with configuration.

        Args:
            base_url: Root URL every request path is joined to
            headers: Headers sent with every request
            timeout: Request timeout in seconds (defaults to settings)
            max_retries: Maximum number of retry attempts (defaults to settings)
            initial_backoff: Initial backoff delay in seconds (defaults to settings)
            max_backoff: Maximum backoff delay in seconds (defaults to settings)
            backoff_multiplier: Backoff multiplier for exponential backoff
            transport: Custom httpx transport, used by tests
        """
        settings = get_settings()
        self.max_retries = settings.http_max_retries if max_retries is None else max_retries
        self.initial_backoff = (
            settings.http_initial_backoff if initial_backoff is None else initial_backoff
        )
        self.max_backoff = settings.http_max_backoff if max_backoff is None else max_backoff
        self.backoff_multiplier = backoff_multiplier

        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers=headers or {},
            timeout=timeout if timeout is not None else settings.http_timeout_seconds,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    def _calculate_backoff(self, attempt: int) -> float:
        return min(
            self.initial_backoff * (self.backoff_multiplier**attempt),
            self.max_backoff,
        )

    def _fail(self, message: str, operation: str, **context: Any) -> RemoteCallFailedError:
        return RemoteCallFailedError(
            message,
            service=self.service_name,
            operation=operation,
            **context,
        )

    async def _request(
        self,
        operation: str,
        method: str,
        path: str,
        **kwargs: Any,
    ) -> dict[str, Any]:
        """
        Send a request and decode its JSON body, retrying transient failures.

        Raises:
            RemoteCallFailedError: If the call fails after all retries, the
                remote rejects it, or the body is not a JSON object
        """
        last_error: Optional[str] = None

        for attempt in range(self.max_retries + 1):
            try:
                response = await self._client.request(method, path, **kwargs)
            except httpx.TransportError as e:
                last_error = f"{type(e).__name__}: {e}"
                logger.warning(
                    "Remote call transport error",
                    service=self.service_name,
                    operation=operation,
                    attempt=attempt,
                    error=last_error,
                )
            else:
                if response.status_code in RETRYABLE_STATUS_CODES:
                    last_error = f"HTTP {response.status_code}"
                    logger.warning(
                        "Remote call returned retryable status",
                        service=self.service_name,
                        operation=operation,
                        attempt=attempt,
                        status_code=response.status_code,
                    )
                elif response.is_error:
                    logger.error(
                        "Remote call rejected",
                        service=self.service_name,
                        operation=operation,
                        status_code=response.status_code,
                    )
                    raise self._fail(
                        f"{self.service_name} rejected {operation}",
                        operation,
                        status_code=response.status_code,
                        body=self._safe_json(response),
                    )
                else:
                    payload = self._safe_json(response)
                    if not isinstance(payload, dict):
                        raise self._fail(
                            f"{self.service_name} returned an invalid response",
                            operation,
                            status_code=response.status_code,
                        )
                    if attempt > 0:
                        logger.info(
                            "Remote call succeeded after retry",
                            service=self.service_name,
                            operation=operation,
                            attempt=attempt,
                        )
                    return payload

            if attempt < self.max_retries:
                backoff = self._calculate_backoff(attempt)
                logger.debug(
                    "Retrying remote call",
                    service=self.service_name,
                    operation=operation,
                    backoff_seconds=backoff,
                )
                await asyncio.sleep(backoff)

        logger.error(
            "Remote call failed after all retries",
            service=self.service_name,
            operation=operation,
            max_retries=self.max_retries,
            last_error=last_error,
        )
        raise self._fail(
            f"{self.service_name} {operation} failed after {self.max_retries} retries",
            operation,
            last_error=last_error,
        )

    @staticmethod
    def _safe_json(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError:
            return None
