"""
Bearer credential cache for the Reddit OAuth2 password grant.

The credential is replaced wholesale on every refresh, never mutated, so a
reader always sees a complete token/expiry pair.
"""

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import httpx

from forum_relay.dispatch.executor import FetchError, FetchExecutor

logger = logging.getLogger(__name__)


class AuthenticationError(FetchError):
    """Raised when the token endpoint does not hand out an access token."""

    pass


@dataclass(frozen=True)
class Credential:
    """Bearer token and the absolute time (epoch seconds) it expires at."""

    token: str
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


class AuthCache:
    """
    Caches one source's bearer token, refreshing on expiry or on demand.

    The token exchange goes through the FetchExecutor like any other
    request, with its own retry budget.
    """

    def __init__(
        self,
        executor: FetchExecutor,
        token_url: str,
        username: str,
        password: str,
        client_id: str,
        client_secret: str,
        user_agent: str,
        clock: Callable[[], float] = time.time,
    ):
        self._executor = executor
        self._token_url = token_url
        self._username = username
        self._password = password
        self._client_id = client_id
        self._client_secret = client_secret
        self._user_agent = user_agent
        self._clock = clock

        self._credential: Credential | None = None
        self._lock = asyncio.Lock()

    @property
    def credential(self) -> Credential | None:
        return self._credential

    async def get_token(
        self,
        force_refresh: bool = False,
        stale: str | None = None,
    ) -> str:
        """
        Get a bearer token, exchanging credentials if needed.

        Args:
            force_refresh: Ignore the cached token (e.g. after a 401)
            stale: The token that was rejected. If another caller already
                replaced it, the replacement is returned without a new exchange

        Returns:
            Access token string

        Raises:
            AuthenticationError: If the response carries no access token
            RetriesExhaustedError: If the token endpoint stays unreachable
        """
        async with self._lock:
            now = self._clock()
            credential = self._credential
            if credential is not None and not credential.is_expired(now):
                if not force_refresh:
                    return credential.token
                if stale is not None and credential.token != stale:
                    return credential.token

            data: dict[str, Any] = await self._executor.request(
                self._token_url,
                method="POST",
                params={
                    "grant_type": "password",
                    "username": self._username,
                    "password": self._password,
                },
                headers={
                    "User-Agent": self._user_agent,
                    "Accept": "application/json",
                },
                auth=httpx.BasicAuth(self._client_id, self._client_secret),
                transform=lambda r: r.json(),
            )

            if not isinstance(data, dict) or "access_token" not in data:
                raise AuthenticationError("access token not provided")

            self._credential = Credential(
                token=data["access_token"],
                expires_at=now + float(data.get("expires_in", 0)),
            )
            logger.info("Authenticated to Reddit")
            return self._credential.token
