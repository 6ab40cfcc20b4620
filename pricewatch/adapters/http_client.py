"""
Upstream Fetch Executor for the PriceWatch comparison service.
Every outbound call (primary search, structured lookup, scrape target) goes
through here: per-call timeout, bounded retries with a fixed backoff, and
failures classified before they reach the caller.
"""
from typing import Any, Dict, Optional

import httpx
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from pricewatch.utils.logger import LayerLogger


class FetchError(Exception):
    """Outbound call failed after its last attempt."""

    TIMEOUT = "timeout"
    NETWORK = "network"
    HTTP_STATUS = "http_status"

    def __init__(self, kind: str, url: str, message: str, status_code: Optional[int] = None):
        super().__init__(f"{kind} error for {url}: {message}")
        self.kind = kind
        self.url = url
        self.message = message
        self.status_code = status_code


def classify_error(error: httpx.HTTPError) -> str:
    """Map an httpx exception onto a FetchError kind."""
    if isinstance(error, httpx.TimeoutException):
        return FetchError.TIMEOUT
    if isinstance(error, httpx.HTTPStatusError):
        return FetchError.HTTP_STATUS
    return FetchError.NETWORK


class FetchExecutor:
    """
    Async HTTP executor with bounded retry.

    `transport` is handed to httpx.AsyncClient; tests pass an
    httpx.MockTransport to keep everything offline.
    """

    def __init__(
        self,
        timeout: float = 15,
        max_retries: int = 2,
        backoff: float = 1.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if max_retries < 0:
            raise ValueError("max_retries cannot be negative")
        self.timeout = timeout
        self.max_retries = max_retries
        self.backoff = backoff
        self.transport = transport
        self.logger = LayerLogger("fetch_executor")

    async def fetch(
        self,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> httpx.Response:
        """Single attempt, no retry. Used by failure-tolerant callers."""
        return await self.fetch_with_retry(url, params=params, headers=headers, timeout=timeout, max_retries=0)

    async def fetch_with_retry(
        self,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
    ) -> httpx.Response:
        """
        GET `url`, retrying on any network error, timeout or non-2xx status.

        Makes at most max_retries + 1 attempts, waiting `backoff` seconds
        between them.

        Raises:
            FetchError: the last failure once attempts are exhausted
        """
        retries = self.max_retries if max_retries is None else max_retries
        effective_timeout = self.timeout if timeout is None else timeout

        attempts = AsyncRetrying(
            stop=stop_after_attempt(retries + 1),
            wait=wait_fixed(self.backoff),
            retry=retry_if_exception_type(httpx.HTTPError),
            reraise=True,
        )

        try:
            async for attempt in attempts:
                with attempt:
                    return await self._attempt(
                        url,
                        params=params,
                        headers=headers,
                        timeout=effective_timeout,
                        attempt_number=attempt.retry_state.attempt_number,
                    )
        except httpx.HTTPError as e:
            kind = classify_error(e)
            status_code = e.response.status_code if isinstance(e, httpx.HTTPStatusError) else None
            self.logger.log_error(
                f"Giving up after {retries + 1} attempt(s): {str(e)}",
                error_type=kind,
                url=url,
                status_code=status_code,
            )
            raise FetchError(kind, url, str(e) or type(e).__name__, status_code=status_code) from e

    async def _attempt(
        self,
        url: str,
        params: Optional[Dict[str, Any]],
        headers: Optional[Dict[str, str]],
        timeout: float,
        attempt_number: int,
    ) -> httpx.Response:
        try:
            async with httpx.AsyncClient(
                timeout=timeout,
                follow_redirects=True,
                transport=self.transport,
            ) as client:
                response = await client.get(url, params=params, headers=headers)
                response.raise_for_status()
        except httpx.HTTPError as e:
            status_code = e.response.status_code if isinstance(e, httpx.HTTPStatusError) else None
            self.logger.log_http_attempt(
                url=url,
                attempt=attempt_number,
                status_code=status_code,
                result=classify_error(e),
            )
            raise

        self.logger.log_http_attempt(
            url=url,
            attempt=attempt_number,
            status_code=response.status_code,
            result="ok",
        )
        return response
