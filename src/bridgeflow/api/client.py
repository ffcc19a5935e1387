"""HTTP client for the cross-chain quoting and status service.

Quote failures are fatal and surface as ApiError. Status failures caused by
the network or the server surface as TransientQueryError so the poller can
retry them within its attempt budget.
"""

import logging
from typing import Optional

import httpx
from pydantic import ValidationError as PydanticValidationError

from bridgeflow.config import Settings, get_settings
from bridgeflow.contracts import QuoteParams, QuoteResponse, StatusParams, StatusResponse
from bridgeflow.errors import ApiError, TransientQueryError

logger = logging.getLogger(__name__)

# Status codes worth another status poll rather than aborting
RETRYABLE_STATUS_CODES = frozenset({404, 408, 429})


def _response_body(response: httpx.Response):
    try:
        return response.json()
    except ValueError:
        return response.text


class CrossChainAPIClient:
    """Async client for the quote and status endpoints."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize client.

        Args:
            settings: Settings to read base URL, API key and timeout from
            transport: Optional httpx transport (used by tests)
        """
        self.settings = settings or get_settings()
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def _get_headers(self) -> dict:
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if self.settings.api_key:
            headers["x-api-key"] = self.settings.api_key
        return headers

    @property
    def client(self) -> httpx.AsyncClient:
        """Lazy load the underlying httpx client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.settings.api_base_url,
                headers=self._get_headers(),
                timeout=self.settings.http_timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "CrossChainAPIClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
        return False

    async def get_quote(self, params: QuoteParams) -> QuoteResponse:
        """Fetch a cross-chain quote.

        Raises:
            ApiError: On any transport, HTTP or payload error
        """
        logger.info("Fetching quote...")
        try:
            response = await self.client.get(self.settings.quote_endpoint, params=params.to_query())
        except httpx.HTTPError as e:
            raise ApiError(f"Quote request failed: {e}") from e

        if response.status_code != 200:
            body = _response_body(response)
            logger.error(f"Failed to fetch quote: {response.status_code} {body}")
            raise ApiError(
                f"Quote request failed with HTTP {response.status_code}",
                payload=body,
                status_code=response.status_code,
            )

        try:
            quote = QuoteResponse.model_validate(response.json())
        except (ValueError, PydanticValidationError) as e:
            raise ApiError(f"Malformed quote response: {e}", payload=_response_body(response)) from e

        data = quote.data
        logger.info(f"Quote fetched. Request ID: {data.request_id}")
        logger.info(f"Amount In: {data.amounts.amount_in_formatted} {data.tokens.source_symbol}")
        logger.info(f"Amount Out: {data.amounts.amount_out_formatted} {data.tokens.target_symbol}")
        if data.fees is not None and data.fees.total_usd is not None:
            logger.info(f"Total Fees: ${data.fees.total_usd}")
        return quote

    async def get_status(self, params: StatusParams) -> StatusResponse:
        """Query transfer status once.

        Raises:
            TransientQueryError: On network errors, 5xx and retryable 4xx
            ApiError: On other client errors or an unparseable payload
        """
        try:
            response = await self.client.get(self.settings.status_endpoint, params=params.to_query())
        except httpx.HTTPError as e:
            raise TransientQueryError(f"Status request failed: {type(e).__name__}: {e}") from e

        if response.status_code >= 500 or response.status_code in RETRYABLE_STATUS_CODES:
            raise TransientQueryError(
                f"Status endpoint returned HTTP {response.status_code}",
                payload=_response_body(response),
            )
        if response.status_code != 200:
            body = _response_body(response)
            logger.error(f"Failed to fetch status: {response.status_code} {body}")
            raise ApiError(
                f"Status request failed with HTTP {response.status_code}",
                payload=body,
                status_code=response.status_code,
            )

        try:
            return StatusResponse.model_validate(response.json())
        except (ValueError, PydanticValidationError) as e:
            raise TransientQueryError(f"Malformed status response: {e}", payload=_response_body(response)) from e
