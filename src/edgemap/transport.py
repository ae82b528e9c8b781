"""Retrying HTTP transport shared by the listing providers and the uploader."""

import asyncio
import logging
from typing import Any

import httpx

from edgemap import __version__
from edgemap.exceptions import FetchError
from edgemap.models import ProxyConfig

LOGGER = logging.getLogger(__name__)

# Status codes treated as transient by the transport
RETRY_STATUS_CODES = frozenset({429, 500, 502, 503, 504})

# Transport-level retry policy
DEFAULT_MAX_RETRIES = 10
DEFAULT_MIN_DELAY = 1.0  # seconds
DEFAULT_MAX_DELAY = 10 * 60.0  # seconds
DEFAULT_BACKOFF_FACTOR = 10.0

DEFAULT_TIMEOUT = 60.0  # seconds
DEFAULT_USER_AGENT = f"edgemap/{__version__}"

# Transient connection failures worth another attempt
RETRYABLE_EXCEPTIONS: tuple[type[Exception], ...] = (
    httpx.TimeoutException,
    httpx.NetworkError,
    httpx.RemoteProtocolError,
)


class Fetcher:
    """Async HTTP client with bounded retry and exponential backoff.

    Redirects are never followed. Connections (and resolved hosts) are kept
    in the client's pool for the lifetime of the fetcher.

    Usage:
        async with Fetcher(proxy=module.proxy) as fetcher:
            response = await fetcher.request("GET", url)
            data = response.json()
    """

    def __init__(
        self,
        proxy: ProxyConfig | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        max_retries: int = DEFAULT_MAX_RETRIES,
        min_delay: float = DEFAULT_MIN_DELAY,
        max_delay: float = DEFAULT_MAX_DELAY,
        backoff_factor: float = DEFAULT_BACKOFF_FACTOR,
        retry_status_codes: frozenset[int] = RETRY_STATUS_CODES,
        user_agent: str = DEFAULT_USER_AGENT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialise the fetcher.

        Args:
            proxy: Optional upstream proxy.
            timeout: Per-request timeout in seconds.
            max_retries: Extra attempts after the first one.
            min_delay: Delay before the first retry, in seconds.
            max_delay: Upper bound of any single delay, in seconds.
            backoff_factor: Multiplier applied to the delay after each retry.
            retry_status_codes: Response statuses that trigger a retry.
            user_agent: Default User-Agent header.
            transport: Optional httpx transport (tests use ``httpx.MockTransport``).
        """
        self._proxy = proxy
        self._timeout = timeout
        self._max_retries = max(0, max_retries)
        self._min_delay = min_delay
        self._max_delay = max_delay
        self._backoff_factor = backoff_factor
        self._retry_status_codes = retry_status_codes
        self._user_agent = user_agent
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "Fetcher":
        self._get_client()
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create the pooled HTTP client."""
        if self._client is None:
            kwargs: dict[str, Any] = {
                "timeout": self._timeout,
                "follow_redirects": False,
                "headers": {"user-agent": self._user_agent},
                "limits": httpx.Limits(max_keepalive_connections=20, keepalive_expiry=300.0),
            }
            if self._transport is not None:
                kwargs["transport"] = self._transport
            elif self._proxy is not None:
                kwargs["proxy"] = self._proxy.as_url()
            self._client = httpx.AsyncClient(**kwargs)
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _delay(self, retry_number: int) -> float:
        """Backoff delay before the given retry (1-based)."""
        delay = self._min_delay * (self._backoff_factor ** (retry_number - 1))
        return min(delay, self._max_delay)

    async def request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """
        Send a request, retrying transient failures.

        Args:
            method: HTTP method.
            url: Absolute URL.
            **kwargs: Passed through to ``httpx.AsyncClient.request``.

        Returns:
            The response. Non-retryable statuses (including 4xx and 3xx) are
            returned as-is for the caller to interpret.

        Raises:
            FetchError: If every attempt failed; ``__cause__`` is the last failure.
        """
        client = self._get_client()
        attempts = self._max_retries + 1
        last_error: Exception | None = None

        for attempt in range(1, attempts + 1):
            try:
                response = await client.request(method, url, **kwargs)
            except RETRYABLE_EXCEPTIONS as e:
                last_error = e
                reason = f"{type(e).__name__}: {e}"
            else:
                if response.status_code not in self._retry_status_codes:
                    return response
                last_error = httpx.HTTPStatusError(
                    f"Transient status {response.status_code} for {url}",
                    request=response.request,
                    response=response,
                )
                reason = f"status {response.status_code}"

            if attempt < attempts:
                delay = self._delay(attempt)
                LOGGER.warning(f"Retry #{attempt} for {method} {url} after {delay:.1f}s due to: {reason}")
                await asyncio.sleep(delay)

        raise FetchError(
            f"{method} {url} failed after {attempts} attempts: {last_error}",
            url=url,
            attempts=attempts,
        ) from last_error
