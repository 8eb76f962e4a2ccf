"""
NEIS Open API client for NEIS School Lookup.

Asynchronous HTTP client with bounded retries and exponential backoff.
This is the only component that performs network I/O; everything else
consumes its results, usually through the response cache.
"""

import asyncio
import logging
import math
import random
from dataclasses import dataclass, field
from typing import Any, Optional

import aiohttp

from ..config import FetcherConfig, NeisConfig
from ..normalizer.transformer import extract_rows, list_total_count, result_code, row_block
from ..utils.exceptions import UpstreamError
from .signature import RequestSignature


logger = logging.getLogger(__name__)


class ServerError(UpstreamError):
    """Raised when the upstream returns a 5xx status."""
    pass


class RequestRejectedError(UpstreamError):
    """Raised when the upstream returns a 4xx status."""
    pass


class TransportError(UpstreamError):
    """Raised on connection failures and per-attempt timeouts."""
    pass


class EnvelopeError(UpstreamError):
    """Raised when a 2xx response carries an ERROR-* result code."""
    pass


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded retry with exponential backoff.

    Attempt ``i`` (0-based) that fails waits ``base_delay * 2**i`` plus up to
    ``jitter_ratio`` of that before the next attempt. With a jitter ratio
    below 1 consecutive delays are strictly increasing.

    Attributes:
        max_attempts: Total attempts, first try included
        base_delay: Initial retry delay in seconds
        jitter_ratio: Maximum random jitter as a fraction of the delay
        retry_client_errors: Retry 4xx responses like any other failure
    """

    max_attempts: int = 3
    base_delay: float = 0.5
    jitter_ratio: float = 0.1
    retry_client_errors: bool = True

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay < 0:
            raise ValueError("base_delay must not be negative")
        if not 0 <= self.jitter_ratio < 1:
            raise ValueError("jitter_ratio must be in [0, 1)")

    @classmethod
    def from_config(cls) -> "RetryPolicy":
        """Create policy from environment configuration."""
        return cls(
            max_attempts=FetcherConfig.MAX_RETRIES,
            base_delay=FetcherConfig.RETRY_BASE_DELAY,
            jitter_ratio=FetcherConfig.RETRY_JITTER_RATIO,
            retry_client_errors=FetcherConfig.RETRY_CLIENT_ERRORS,
        )

    def delay_for(self, attempt: int) -> float:
        """Backoff delay after the given failed attempt."""
        delay = self.base_delay * (2 ** attempt)
        if self.jitter_ratio:
            delay += random.uniform(0, delay * self.jitter_ratio)
        return delay

    def should_retry(self, error: UpstreamError) -> bool:
        if isinstance(error, RequestRejectedError):
            return self.retry_client_errors
        return True


@dataclass
class NeisClientConfig:
    """Configuration for the NEIS API client.

    Attributes:
        base_url: Hub URL, dataset identifiers are appended to it
        api_key: Optional API key sent as KEY
        timeout: Per-attempt request timeout in seconds
        page_size: Rows requested per page (pSize)
        max_pages: Upper bound on pages fetched for one query
        retry_policy: Default retry policy for fetches
    """

    base_url: str = "https://open.neis.go.kr/hub"
    api_key: Optional[str] = None
    timeout: int = 15
    page_size: int = 1000
    max_pages: int = 10
    retry_policy: RetryPolicy = field(default_factory=RetryPolicy)

    @classmethod
    def from_env(cls) -> "NeisClientConfig":
        """Create configuration from environment variables."""
        return cls(
            base_url=NeisConfig.BASE_URL,
            api_key=NeisConfig.API_KEY,
            timeout=FetcherConfig.REQUEST_TIMEOUT,
            page_size=NeisConfig.PAGE_SIZE,
            max_pages=NeisConfig.MAX_PAGES,
            retry_policy=RetryPolicy.from_config(),
        )

    def dataset_url(self, dataset: str) -> str:
        return f"{self.base_url.rstrip('/')}/{dataset}"


class NeisClient:
    """Asynchronous NEIS Open API client with retry logic.

    Features:
    - Async HTTP with aiohttp
    - Exponential backoff retry driven by a RetryPolicy value
    - Per-attempt timeout (15s default)
    - Error envelope detection on 2xx responses

    Example:
        ```python
        signature = RequestSignature.build(
            "schoolInfo", SCHUL_NM="서울고등학교"
        )
        async with NeisClient(NeisClientConfig.from_env()) as client:
            body = await client.fetch(signature)
        ```
    """

    def __init__(self, config: Optional[NeisClientConfig] = None):
        """Initialize NEIS client.

        Args:
            config: Client configuration (defaults to environment settings)
        """
        self.config = config or NeisClientConfig.from_env()
        self._session: Optional[aiohttp.ClientSession] = None
        self._stats = {
            "requests_made": 0,
            "successes": 0,
            "retries": 0,
            "errors": 0,
            "extra_pages": 0,
            "truncated_results": 0,
        }

        logger.info(
            "Initialized NeisClient",
            extra={
                "base_url": self.config.base_url,
                "timeout": self.config.timeout,
                "max_attempts": self.config.retry_policy.max_attempts,
            },
        )

    async def __aenter__(self) -> "NeisClient":
        """Enter async context manager."""
        await self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit async context manager."""
        await self.close()

    async def _ensure_session(self) -> None:
        """Ensure aiohttp session is initialized."""
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self.config.timeout)
            self._session = aiohttp.ClientSession(timeout=timeout)
            logger.debug("Created new aiohttp session")

    async def close(self) -> None:
        """Close aiohttp session and cleanup resources."""
        if self._session and not self._session.closed:
            await self._session.close()
            logger.debug("Closed aiohttp session")

    def _query_params(
        self, signature: RequestSignature, page_index: int = 1
    ) -> dict[str, str]:
        params = {
            "Type": "json",
            "pIndex": str(page_index),
            "pSize": str(self.config.page_size),
        }
        if self.config.api_key:
            params["KEY"] = self.config.api_key
        params.update(signature.as_dict())
        return params

    async def _make_request(
        self, signature: RequestSignature, page_index: int = 1
    ) -> dict[str, Any]:
        """Make one HTTP request for one page of a dataset query.

        Args:
            signature: Query to send
            page_index: 1-based page number (pIndex)

        Returns:
            Parsed JSON body

        Raises:
            ServerError: Server error (5xx)
            RequestRejectedError: Client error (4xx)
            TransportError: Connection failure or timeout
            EnvelopeError: ERROR-* result code in a 2xx body
            UpstreamError: Unparsable body
        """
        await self._ensure_session()

        endpoint = self.config.dataset_url(signature.dataset)
        request_params = signature.as_dict()
        self._stats["requests_made"] += 1

        logger.debug(
            "Making NEIS API request",
            extra={
                "endpoint": endpoint,
                "cache_key": signature.cache_key,
                "page_index": page_index,
            },
        )

        try:
            async with self._session.get(
                endpoint,
                params=self._query_params(signature, page_index),
            ) as response:
                if response.status >= 500:
                    error_body = await response.text()
                    raise ServerError(
                        f"Server error: {response.status}",
                        endpoint=endpoint,
                        status_code=response.status,
                        response_body=error_body,
                        request_params=request_params,
                    )

                if response.status >= 400:
                    error_body = await response.text()
                    raise RequestRejectedError(
                        f"Request failed: {response.status}",
                        endpoint=endpoint,
                        status_code=response.status,
                        response_body=error_body,
                        request_params=request_params,
                    )

                # NEIS does not always label JSON bodies as application/json
                try:
                    body = await response.json(content_type=None)
                except ValueError as e:
                    raise UpstreamError(
                        f"Invalid JSON body: {e}",
                        endpoint=endpoint,
                        status_code=response.status,
                        request_params=request_params,
                    ) from e

        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransportError(
                f"HTTP transport error: {str(e) or type(e).__name__}",
                endpoint=endpoint,
                request_params=request_params,
            ) from e

        code = result_code(body)
        if code and code.startswith("ERROR"):
            raise EnvelopeError(
                f"Upstream error result: {code}",
                endpoint=endpoint,
                request_params=request_params,
                result_code=code,
            )

        return body

    async def _fetch_with_retry(
        self,
        signature: RequestSignature,
        policy: RetryPolicy,
        page_index: int = 1,
    ) -> dict[str, Any]:
        """Fetch with exponential backoff retry logic.

        Any UpstreamError is retried until the policy's attempts are used,
        except 4xx responses when the policy disables client error retries.
        Unexpected exceptions propagate immediately.

        Raises:
            UpstreamError: Last failure once attempts are exhausted
        """
        last_exception: Optional[UpstreamError] = None

        for attempt in range(policy.max_attempts):
            try:
                return await self._make_request(signature, page_index)

            except UpstreamError as e:
                last_exception = e
                e.attempts = attempt + 1
                e.details["attempts"] = attempt + 1

                if not policy.should_retry(e):
                    logger.error(
                        "Non-retryable upstream failure",
                        extra={"cache_key": signature.cache_key, "error": str(e)},
                    )
                    raise

                if attempt < policy.max_attempts - 1:
                    self._stats["retries"] += 1
                    delay = policy.delay_for(attempt)

                    logger.warning(
                        "Retrying request",
                        extra={
                            "attempt": attempt + 1,
                            "max_attempts": policy.max_attempts,
                            "delay": round(delay, 2),
                            "error": str(e),
                            "cache_key": signature.cache_key,
                        },
                    )

                    await asyncio.sleep(delay)
                else:
                    logger.error(
                        "Max retries exceeded",
                        extra={
                            "cache_key": signature.cache_key,
                            "attempts": policy.max_attempts,
                        },
                    )

        raise last_exception

    async def _fetch_remaining_pages(
        self,
        signature: RequestSignature,
        policy: RetryPolicy,
        body: dict[str, Any],
    ) -> None:
        """Append rows of pages 2..N to the first page's row list in place.

        The page count follows the head's list_total_count, bounded by
        max_pages. A result still short of the reported total is logged
        as truncated.
        """
        dataset = signature.dataset
        total = list_total_count(body, dataset)
        block = row_block(body, dataset)
        if not total or block is None:
            return

        rows = [row for row in block.get("row") or [] if isinstance(row, dict)]
        page_count = min(math.ceil(total / self.config.page_size), self.config.max_pages)

        for page_index in range(2, page_count + 1):
            if len(rows) >= total:
                break
            page = await self._fetch_with_retry(signature, policy, page_index)
            page_rows = extract_rows(page, dataset)
            if not page_rows:
                break
            rows.extend(page_rows)
            self._stats["extra_pages"] += 1

        block["row"] = rows

        if len(rows) < total:
            self._stats["truncated_results"] += 1
            logger.warning(
                f"Result truncated: {len(rows)} of {total} rows",
                extra={
                    "cache_key": signature.cache_key,
                    "list_total_count": total,
                    "received": len(rows),
                    "max_pages": self.config.max_pages,
                },
            )

    async def fetch(
        self,
        signature: RequestSignature,
        policy: Optional[RetryPolicy] = None,
    ) -> dict[str, Any]:
        """Fetch a dataset query with retries, following pagination.

        Args:
            signature: Query to fetch
            policy: Retry policy override (defaults to the configured one)

        Returns:
            Parsed JSON body; rows of later pages are merged into the
            first page's row list

        Raises:
            UpstreamError: When every attempt for a page failed
        """
        policy = policy or self.config.retry_policy
        try:
            body = await self._fetch_with_retry(signature, policy)
            await self._fetch_remaining_pages(signature, policy, body)
        except UpstreamError:
            self._stats["errors"] += 1
            raise

        self._stats["successes"] += 1
        return body

    def get_stats(self) -> dict[str, Any]:
        """Get client statistics."""
        return dict(self._stats)
