"""
JSON fetching for source adapters.

SourceClient adds the common headers, optional bearer authentication and
the one-shot re-authentication on 401 on top of FetchExecutor. It keeps
HTTP concerns out of the adapters, which only deal with payload shapes.
"""

import logging
from collections.abc import Mapping
from typing import Any

import httpx

from forum_relay.dispatch.executor import FetchError, FetchExecutor
from forum_relay.ingestion.auth import AuthCache

logger = logging.getLogger(__name__)

# Short-circuit result returned by the classifier on a 401
REAUTH = object()


class UnauthorizedError(FetchError):
    """Raised when a request stays unauthorized after a forced token refresh."""

    pass


def _unauthorized(response: httpx.Response) -> object | None:
    return REAUTH if response.status_code == 401 else None


class SourceClient:
    """
    Fetches JSON documents through the route pool.

    Example:
        client = SourceClient(executor, user_agent="bot", auth=auth_cache)
        listing = await client.get_json(url, params={"before": "t3_abc"}, authenticated=True)
    """

    def __init__(
        self,
        executor: FetchExecutor,
        user_agent: str,
        auth: AuthCache | None = None,
    ):
        self._executor = executor
        self._user_agent = user_agent
        self._auth = auth

    async def get_json(
        self,
        url: str,
        params: Mapping[str, str | None] | None = None,
        authenticated: bool = False,
    ) -> Any:
        """
        GET a URL and decode its JSON body.

        Args:
            url: Request URL
            params: Query parameters; None values are dropped
            authenticated: Send the cached bearer token; a 401 triggers exactly
                one forced refresh and one retried request

        Raises:
            UnauthorizedError: If still unauthorized after the refresh
            RetriesExhaustedError: If the request kept failing
        """
        if authenticated and self._auth is None:
            raise ValueError("authenticated request without an AuthCache")

        token = await self._auth.get_token() if authenticated else None

        logger.debug(f"fetching {url}")

        for refreshed in range(2):
            headers = {
                "User-Agent": self._user_agent,
                "Accept": "application/json",
            }
            if token is not None:
                headers["Authorization"] = f"bearer {token}"

            result = await self._executor.request(
                url,
                params=params,
                headers=headers,
                classify=_unauthorized if authenticated else None,
                transform=lambda r: r.json(),
            )

            if result is REAUTH:
                if refreshed:
                    break
                logger.info(f"Unauthorized fetching {url}, refreshing token")
                token = await self._auth.get_token(force_refresh=True, stale=token)
                continue

            return result

        raise UnauthorizedError(f"unauthorized fetching {url}", status_code=401)
