"""
Request execution over the route pool.

FetchExecutor runs one logical request as up to max_attempts attempts,
each on a route checked out from the DispatcherPool. Any failure inside an
attempt (transport errors, timeouts, unexpected status codes, a transform
that raises) puts the route into backoff and moves on to the next attempt.
A classifier callback
can turn an error response into an immediate result, which is how callers
signal "refresh credentials and try again" without burning the route.
"""

import asyncio
import logging
import math
from collections.abc import Callable, Mapping
from typing import Any, TypeVar

import httpx

from forum_relay.dispatch.pool import DispatcherPool
from forum_relay.dispatch.routes import Route
from forum_relay.observability.metrics import get_metrics

logger = logging.getLogger(__name__)

T = TypeVar("T")


class FetchError(Exception):
    """Base exception for request execution errors."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_body: str | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body


class BadStatusError(FetchError):
    """Raised for a non-2xx response that the classifier did not claim."""

    pass


class RetriesExhaustedError(FetchError):
    """Raised when every attempt of a request failed."""

    def __init__(self, message: str, last_error: Exception | None = None):
        status_code = getattr(last_error, "status_code", None)
        super().__init__(message, status_code=status_code)
        self.last_error = last_error


def parse_retry_after(response: httpx.Response) -> float:
    """
    Extract a rate-limit wait from a 429 response.

    Returns:
        Seconds to wait, or 0.0 when absent or not a finite number
    """
    if response.status_code != 429:
        return 0.0

    value = response.headers.get("Retry-After")
    if value is None:
        return 0.0

    try:
        wait = float(value)
    except ValueError:
        return 0.0

    return wait if math.isfinite(wait) and wait > 0 else 0.0


class FetchExecutor:
    """
    Executes requests across the DispatcherPool with retries.

    Keeps one httpx.AsyncClient per route so proxied routes reuse their
    connections.

    Example:
        async with FetchExecutor(pool) as executor:
            data = await executor.request(
                "https://api.example.com/items",
                params={"before": cursor},
                transform=lambda r: r.json(),
            )
    """

    def __init__(
        self,
        pool: DispatcherPool,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Initialize the executor.

        Args:
            pool: Route pool to draw from
            transport: Optional transport override for every route client
        """
        self._pool = pool
        self._config = pool.config
        self._transport = transport
        self._clients: dict[str, httpx.AsyncClient] = {}
        self._metrics = get_metrics()

    async def __aenter__(self) -> "FetchExecutor":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close every per-route client."""
        clients = list(self._clients.values())
        self._clients.clear()
        for client in clients:
            await client.aclose()

    @property
    def pool(self) -> DispatcherPool:
        return self._pool

    def _client_for(self, route: Route) -> httpx.AsyncClient:
        client = self._clients.get(route.name)
        if client is None:
            client = httpx.AsyncClient(
                proxy=route.proxy_url,
                timeout=self._config.request_timeout,
                transport=self._transport,
            )
            self._clients[route.name] = client
        return client

    async def request(
        self,
        url: str,
        *,
        method: str = "GET",
        params: Mapping[str, str | None] | None = None,
        headers: Mapping[str, str] | None = None,
        auth: httpx.Auth | tuple[str, str] | None = None,
        classify: Callable[[httpx.Response], T | None] | None = None,
        transform: Callable[[httpx.Response], T] | None = None,
    ) -> T:
        """
        Perform one logical request.

        Args:
            url: Request URL
            method: HTTP method
            params: Query parameters; None values are dropped
            headers: Request headers
            auth: Optional httpx auth for the request
            classify: Called with a non-2xx response; a non-None result is
                returned immediately and the attempt counts as a success
            transform: Converts a 2xx response into the result (defaults to
                returning the response itself)

        Returns:
            Result of transform or classify

        Raises:
            RetriesExhaustedError: When all attempts failed
        """
        query = {k: v for k, v in (params or {}).items() if v is not None}
        attempts = self._config.max_attempts
        last_error: Exception | None = None

        for attempt in range(attempts):
            route = await self._pool.checkout()
            failed = False
            retry_after = 0.0
            outcome = "success"
            logger.debug(f"Fetching {url} via {route.name}")

            try:
                response = await asyncio.wait_for(
                    self._client_for(route).request(
                        method,
                        url,
                        params=query or None,
                        headers=dict(headers) if headers else None,
                        auth=auth,
                    ),
                    timeout=self._config.request_timeout,
                )

                if not response.is_success:
                    if classify is not None:
                        result = classify(response)
                        if result is not None:
                            outcome = "short_circuit"
                            return result

                    retry_after = parse_retry_after(response)
                    raise BadStatusError(
                        f"{response.status_code} {response.reason_phrase}",
                        status_code=response.status_code,
                        response_body=response.text,
                    )

                if transform is None:
                    return response  # type: ignore[return-value]
                return transform(response)

            except Exception as e:
                failed = True
                outcome = "error"
                last_error = e
                logger.warning(
                    f"Attempt {attempt + 1}/{attempts} for {url} "
                    f"via {route.name} failed: {type(e).__name__}: {e}"
                )

            finally:
                self._pool.release(route, had_error=failed, retry_after=retry_after)
                self._metrics.record_fetch_attempt(route.name, outcome)

        raise RetriesExhaustedError(
            f"ran out of retries during fetch of {url}:\n{last_error}",
            last_error=last_error,
        ) from last_error
