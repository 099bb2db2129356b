"""
Base API Client

Rate-limited, retrying HTTP access for catalog clients.

Failures surface as CatalogServiceError. Permanent endpoint failures
(403/404, deprecated endpoints) are raised as CatalogEndpointUnavailable so
callers can switch to a fallback instead of retrying.
"""

import asyncio
import json
import random
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import aiohttp
import structlog

from ..utils.logging_config import log_api_request
from .rate_limiter import UnifiedRateLimiter

logger = structlog.get_logger(__name__)

UNAVAILABLE_STATUSES = (403, 404)
RATE_LIMITED_STATUS = 429
MAX_BACKOFF_SECONDS = 60.0


class CatalogServiceError(Exception):
    """A catalog request failed."""

    def __init__(self, message: str, status: Optional[int] = None, endpoint: Optional[str] = None):
        super().__init__(message)
        self.status = status
        self.endpoint = endpoint


class CatalogEndpointUnavailable(CatalogServiceError):
    """The endpoint is gone or forbidden for this client; retrying will not help."""


class _Retry(Exception):
    """Internal signal: the attempt failed in a retryable way."""

    def __init__(self, delay: Optional[float] = None, status: Optional[int] = None):
        super().__init__(status)
        self.delay = delay
        self.status = status


class BaseAPIClient(ABC):
    """
    Base HTTP client. Use as an async context manager; requests made
    outside of one raise RuntimeError.
    """

    def __init__(
        self,
        base_url: str,
        rate_limiter: UnifiedRateLimiter,
        timeout: float = 10,
        service_name: str = "api"
    ):
        """
        Args:
            base_url: Base URL for the API
            rate_limiter: Rate limiter shared by this client's requests
            timeout: Total timeout per request in seconds
            service_name: Service name for logging and error messages
        """
        self.base_url = base_url.rstrip('/')
        self.rate_limiter = rate_limiter
        self.timeout = timeout
        self.service_name = service_name
        self.session: Optional[aiohttp.ClientSession] = None

        self.logger = logger.bind(component="CatalogClient", service=service_name)

    async def __aenter__(self):
        self.session = aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=self.timeout))
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self.session:
            await self.session.close()
            self.session = None

    def _default_headers(self) -> Dict[str, str]:
        """Headers sent with every request; subclasses add authorization."""
        return {'User-Agent': f'BeatBandit-{self.service_name}/1.0'}

    async def _make_request(
        self,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        method: str = "GET",
        retries: int = 3
    ) -> Dict[str, Any]:
        """
        Make a rate-limited request, retrying 429s, 5xx responses, timeouts
        and connection errors up to ``retries`` times.

        Args:
            endpoint: Path relative to base_url
            params: Query parameters (JSON body for POST/PUT/PATCH)
            method: HTTP method
            retries: Retry attempts after the first

        Returns:
            Parsed JSON response

        Raises:
            CatalogEndpointUnavailable: On 403/404
            CatalogServiceError: On other 4xx, error payloads, invalid JSON
                or exhausted retries
            asyncio.TimeoutError: When the last attempt times out
        """
        if not self.session:
            raise RuntimeError(f"{self.service_name} client not initialized. Use async context manager.")

        await self.rate_limiter.wait_if_needed()

        url = f"{self.base_url}/{endpoint.lstrip('/')}" if endpoint else self.base_url
        last_status: Optional[int] = None

        for attempt in range(retries + 1):
            last_attempt = attempt == retries
            try:
                return await self._attempt(method, url, endpoint, params or {})
            except _Retry as retry:
                last_status = retry.status
                if last_attempt:
                    break
                if retry.delay is not None:
                    await asyncio.sleep(retry.delay)
                else:
                    await self._exponential_backoff(attempt)
            except asyncio.TimeoutError:
                self.logger.warning("Request timeout", endpoint=endpoint, attempt=attempt + 1, timeout=self.timeout)
                if last_attempt:
                    raise
                await self._exponential_backoff(attempt)
            except aiohttp.ClientError as e:
                self.logger.warning(
                    "HTTP client error",
                    endpoint=endpoint,
                    attempt=attempt + 1,
                    error=str(e),
                    error_type=type(e).__name__
                )
                if last_attempt:
                    raise CatalogServiceError(f"{self.service_name} client error: {e}", endpoint=endpoint) from e
                await self._exponential_backoff(attempt)

        raise CatalogServiceError(
            f"{self.service_name} request failed after {retries + 1} attempts",
            status=last_status,
            endpoint=endpoint
        )

    async def _attempt(self, method: str, url: str, endpoint: str, params: Dict[str, Any]) -> Dict[str, Any]:
        """One HTTP exchange; raises _Retry for retryable outcomes."""
        started = time.time()
        async with self.session.request(
            method=method,
            url=url,
            params=params if method == "GET" else None,
            json=params if method in ("POST", "PUT", "PATCH") else None,
            headers=self._default_headers()
        ) as response:
            status = response.status
            log_api_request(method, url, status, time.time() - started)

            if status == 200:
                data = await self._parse_response(response)
                error_info = self._extract_api_error(data)
                if error_info:
                    self.logger.error("API error in response body", error=error_info, endpoint=endpoint)
                    raise CatalogServiceError(
                        f"{self.service_name} API error: {error_info}", status=status, endpoint=endpoint
                    )
                return data

            if status == RATE_LIMITED_STATUS:
                delay = self._retry_after(response)
                self.logger.warning("Rate limited by catalog", endpoint=endpoint, retry_after=delay)
                raise _Retry(delay=delay, status=status)

            if status in UNAVAILABLE_STATUSES:
                self.logger.warning("Catalog endpoint unavailable", status=status, endpoint=endpoint)
                raise CatalogEndpointUnavailable(
                    f"{self.service_name} endpoint unavailable: {endpoint} ({status})",
                    status=status,
                    endpoint=endpoint
                )

            if status < 500:
                raise CatalogServiceError(
                    f"{self.service_name} client error: {status}", status=status, endpoint=endpoint
                )

            self.logger.warning("Catalog server error", status=status, endpoint=endpoint)
            raise _Retry(status=status)

    async def _parse_response(self, response: aiohttp.ClientResponse) -> Dict[str, Any]:
        try:
            return await response.json()
        except (json.JSONDecodeError, aiohttp.ContentTypeError) as e:
            self.logger.error("Invalid JSON response", error=str(e))
            raise CatalogServiceError(f"{self.service_name} returned invalid JSON") from e

    @abstractmethod
    def _extract_api_error(self, data: Dict[str, Any]) -> Optional[str]:
        """Error message carried in a 200 response body, if any."""

    @staticmethod
    def _retry_after(response: aiohttp.ClientResponse) -> Optional[float]:
        """Retry-After seconds, or None to fall back to exponential backoff."""
        retry_after = response.headers.get('Retry-After')
        if retry_after is None:
            return None
        try:
            return min(float(retry_after), MAX_BACKOFF_SECONDS)
        except ValueError:
            return None

    async def _exponential_backoff(self, attempt: int, base_delay: float = 1.0) -> None:
        """Sleep base_delay * 2^attempt plus 10-30% jitter, capped at a minute."""
        delay = base_delay * (2 ** attempt)
        delay = min(delay + random.uniform(0.1, 0.3) * delay, MAX_BACKOFF_SECONDS)
        self.logger.debug("Backing off before retry", attempt=attempt + 1, delay=round(delay, 2))
        await asyncio.sleep(delay)
