"""
Egress routes and proxy list loading.

A route is one network path for outbound requests: the direct connection
or an HTTP proxy, optionally with basic auth. Proxy files hold either a
JSON array of "host:port" / "host:port:user:pass" strings, or an object
{"proxyFetchUrl": "..."} pointing at a newline-separated list.
"""

import json
import logging
import random
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from urllib.parse import quote

import httpx

logger = logging.getLogger(__name__)

DIRECT_ROUTE_NAME = "main"


class RouteKind(str, Enum):
    """How a route reaches the network."""

    DIRECT = "direct"
    PROXY = "proxy"


class ProxyConfigError(ValueError):
    """Raised when the proxy file or one of its entries is malformed."""


@dataclass(eq=False)
class Route:
    """
    One egress route and its health state.

    backoff is None while the route is healthy, otherwise the cooldown in
    seconds applied after its last failed attempt. Only DispatcherPool
    mutates it.
    """

    name: str
    kind: RouteKind = RouteKind.DIRECT
    host: str | None = None
    port: int | None = None
    username: str | None = None
    password: str | None = None
    backoff: float | None = None

    @property
    def is_healthy(self) -> bool:
        return self.backoff is None

    @property
    def proxy_url(self) -> str | None:
        """Proxy URL for httpx, with credentials embedded when present."""
        if self.kind is RouteKind.DIRECT:
            return None
        if self.username is not None:
            auth = f"{quote(self.username, safe='')}:{quote(self.password or '', safe='')}@"
        else:
            auth = ""
        return f"http://{auth}{self.host}:{self.port}"


def direct_route() -> Route:
    return Route(name=DIRECT_ROUTE_NAME)


def parse_proxy_entry(entry: str, index: int) -> Route:
    """
    Parse one proxy entry into a Route.

    Args:
        entry: "host:port" or "host:port:user:pass"
        index: 1-based position, used in the route name

    Raises:
        ProxyConfigError: If the entry does not have 2 or 4 parts
    """
    parts = entry.split(":")
    if len(parts) not in (2, 4):
        raise ProxyConfigError(
            f"expected 2 (host,port) or 4 parts (host,port,user,pass) for proxy {entry}"
        )

    host, port = parts[0], parts[1]
    try:
        port_number = int(port)
    except ValueError as e:
        raise ProxyConfigError(f"invalid port for proxy {entry}") from e

    return Route(
        name=f"Proxy #{index} ({host}:{port})",
        kind=RouteKind.PROXY,
        host=host,
        port=port_number,
        username=parts[2] if len(parts) == 4 else None,
        password=parts[3] if len(parts) == 4 else None,
    )


async def read_proxy_entries(path: Path) -> list[str]:
    """
    Read proxy entries from a proxy file, fetching the remote list if needed.

    Raises:
        ProxyConfigError: If the file is neither a list nor a fetch-url object
    """
    try:
        config = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ProxyConfigError(f"proxy file {path} is not valid JSON: {e}") from e

    if isinstance(config, dict) and "proxyFetchUrl" in config:
        logger.info("Fetching proxies...")
        async with httpx.AsyncClient(timeout=30.0) as client:
            response = await client.get(config["proxyFetchUrl"])
            response.raise_for_status()
        return [line.strip() for line in response.text.strip().splitlines() if line.strip()]

    if isinstance(config, list) and all(isinstance(p, str) for p in config):
        return config

    raise ProxyConfigError(
        f"proxy file {path} must be a list of proxies or an object with proxyFetchUrl"
    )


async def load_routes(
    proxies_path: Path | None = None,
    include_direct: bool = True,
    shuffle: bool = True,
) -> list[Route]:
    """
    Build the route list for a DispatcherPool.

    Args:
        proxies_path: Proxy file, or None for the direct route only
        include_direct: Keep the direct route alongside the proxies
        shuffle: Randomize route order once after loading

    Returns:
        Routes, never empty

    Raises:
        ProxyConfigError: On any malformed entry, or if no route remains
    """
    routes: list[Route] = []
    if include_direct or proxies_path is None:
        routes.append(direct_route())

    if proxies_path is not None:
        entries = await read_proxy_entries(proxies_path)
        logger.info(f"Adding {len(entries)} proxies")
        routes.extend(
            parse_proxy_entry(entry, i) for i, entry in enumerate(entries, start=1)
        )

    if not routes:
        raise ProxyConfigError("no egress routes configured")

    if shuffle:
        random.shuffle(routes)

    return routes
