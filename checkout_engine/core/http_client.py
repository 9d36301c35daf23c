"""
HTTP transport for the cart/checkout collaborators.

- Exponential backoff with jitter for idempotent reads (GET)
- 429 / 5xx / network failures are retried, 4xx are not
- Writes (POST) are sent exactly once: cart mutations are not idempotent
- Empty bodies and malformed JSON are reported as CartTransportError

Usage:
    async with CheckoutHTTPClient() as client:
        data = await client.get_json("https://example.com/wp-json/cart/config")
"""
import asyncio
import json
import logging
import random
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from checkout_engine.core.config import settings
from checkout_engine.core.exceptions import CartTransportError

logger = logging.getLogger(__name__)


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""
    max_retries: int = 2
    base_delay: float = 0.5           # Base delay in seconds
    max_delay: float = 5.0            # Maximum delay cap
    exponential_base: float = 2.0     # Exponential backoff multiplier
    jitter_factor: float = 0.5        # Random jitter (0-1)

    # Status codes that should trigger retry
    retryable_status_codes: tuple = (429, 500, 502, 503, 504)

    @classmethod
    def from_settings(cls) -> "RetryConfig":
        return cls(
            max_retries=settings.HTTP_MAX_RETRIES,
            base_delay=settings.HTTP_RETRY_BASE_DELAY,
            max_delay=settings.HTTP_RETRY_MAX_DELAY,
        )


class CheckoutHTTPClient:
    """
    Async JSON client around httpx.AsyncClient.

    Can be used as an async context manager, or via init()/close().
    A pre-built transport may be injected (httpx.MockTransport in tests).
    """

    def __init__(
        self,
        retry_config: Optional[RetryConfig] = None,
        timeout: Optional[float] = None,
        default_headers: Optional[Dict[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.retry_config = retry_config or RetryConfig.from_settings()
        self.timeout = timeout if timeout is not None else settings.HTTP_TIMEOUT_SECONDS
        self.default_headers = default_headers or {}
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def _build_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.timeout,
            headers=self.default_headers,
            follow_redirects=True,
            transport=self._transport,
        )

    async def __aenter__(self):
        await self.init()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def init(self):
        """Initialize client without context manager. Must call close() when done."""
        if self._client is None:
            self._client = self._build_client()
        return self

    async def close(self):
        """Close the client. Use this when not using context manager."""
        if self._client:
            await self._client.aclose()
            self._client = None

    def _calculate_backoff(self, attempt: int) -> float:
        """
        Calculate delay with exponential backoff and jitter.

        Formula: min(base * (exp_base ^ attempt) + jitter, max_delay)
        """
        cfg = self.retry_config
        delay = cfg.base_delay * (cfg.exponential_base ** attempt)
        jitter = delay * cfg.jitter_factor * (2 * random.random() - 1)
        delay += jitter
        return max(0.0, min(delay, cfg.max_delay))

    async def _send(self, method: str, url: str, retry: bool, **kwargs) -> httpx.Response:
        if self._client is None:
            await self.init()

        attempts = self.retry_config.max_retries + 1 if retry else 1
        last_error: Optional[Exception] = None

        for attempt in range(attempts):
            try:
                response = await self._client.request(method, url, **kwargs)
            except httpx.HTTPError as e:
                last_error = e
                logger.warning(f"[HTTP] {method} {url} failed (attempt {attempt + 1}/{attempts}): {e}")
            else:
                if response.status_code < 400:
                    return response
                if response.status_code not in self.retry_config.retryable_status_codes:
                    raise CartTransportError(
                        f"HTTP error {response.status_code}",
                        url=url,
                        status_code=response.status_code,
                    )
                last_error = CartTransportError(
                    f"HTTP error {response.status_code}",
                    url=url,
                    status_code=response.status_code,
                )
                logger.warning(
                    f"[HTTP] {method} {url} returned {response.status_code} "
                    f"(attempt {attempt + 1}/{attempts})"
                )

            if attempt < attempts - 1:
                await asyncio.sleep(self._calculate_backoff(attempt))

        if isinstance(last_error, CartTransportError):
            raise last_error
        raise CartTransportError(f"Request failed: {last_error}", url=url) from last_error

    @staticmethod
    def _decode(response: httpx.Response) -> Any:
        text = response.text
        if not text or not text.strip():
            raise CartTransportError(
                "Empty response body",
                url=str(response.request.url) if response.request else None,
                status_code=response.status_code,
            )
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            raise CartTransportError(
                "Invalid JSON response from server",
                url=str(response.request.url) if response.request else None,
                status_code=response.status_code,
                details={"body_preview": text[:200]},
            ) from e

    async def get_json(
        self,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        response = await self._send("GET", url, retry=True, params=params, headers=headers)
        return self._decode(response)

    async def post_json(
        self,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        data: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        form = {k: str(v) for k, v in (data or {}).items() if v is not None}
        response = await self._send("POST", url, retry=False, params=params, data=form, headers=headers)
        return self._decode(response)
