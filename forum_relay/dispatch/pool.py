"""
Pool of egress routes with per-route backoff.

A route is held by at most one request at a time. Released routes sit out
a cooldown (short when healthy, growing geometrically after failures)
before they can be checked out again. Callers that find the pool empty
wait in FIFO order.
"""

import asyncio
import logging
from collections import deque
from collections.abc import Iterable

from forum_relay.dispatch.config import DispatcherConfig
from forum_relay.dispatch.routes import Route
from forum_relay.observability.metrics import get_metrics

logger = logging.getLogger(__name__)


class DispatcherPool:
    """
    Owns the set of egress routes.

    Every route is in exactly one of three places: available, checked out,
    or cooling down after a release.

    Usage:
        pool = DispatcherPool(routes)
        route = await pool.checkout()
        try:
            ...
        finally:
            pool.release(route, had_error=failed, retry_after=hint)
    """

    def __init__(
        self,
        routes: Iterable[Route],
        config: DispatcherConfig | None = None,
    ):
        self.config = config or DispatcherConfig()
        self._routes = list(routes)
        if not self._routes:
            raise ValueError("DispatcherPool needs at least one route")

        # Front of the deque = most recently released
        self._available: deque[Route] = deque(self._routes)
        self._checked_out: set[str] = set()
        self._cooling: dict[str, asyncio.TimerHandle] = {}
        self._waiters: deque[asyncio.Future[Route]] = deque()
        self._metrics = get_metrics()

    @property
    def routes(self) -> list[Route]:
        return list(self._routes)

    @property
    def size(self) -> int:
        return len(self._routes)

    @property
    def available_count(self) -> int:
        return len(self._available)

    @property
    def checked_out_count(self) -> int:
        return len(self._checked_out)

    @property
    def cooling_count(self) -> int:
        return len(self._cooling)

    @property
    def waiting_callers(self) -> int:
        return sum(1 for w in self._waiters if not w.done())

    async def checkout(self) -> Route:
        """
        Take a route out of the pool, waiting if none is available.

        Returns the most recently released available route. Waiting callers
        are served in the order they arrived.
        """
        if self._available and not self._waiters:
            route = self._available.popleft()
            self._checked_out.add(route.name)
            return route

        waiter: asyncio.Future[Route] = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        try:
            return await waiter
        except asyncio.CancelledError:
            if waiter.done() and not waiter.cancelled():
                # A route was handed over just as we were cancelled
                route = waiter.result()
                self._checked_out.discard(route.name)
                self._make_available(route)
            else:
                try:
                    self._waiters.remove(waiter)
                except ValueError:
                    pass
            raise

    def release(
        self,
        route: Route,
        had_error: bool,
        retry_after: float = 0.0,
    ) -> None:
        """
        Return a checked-out route, updating its backoff.

        Args:
            route: Route previously returned by checkout()
            had_error: Whether the attempt on this route failed
            retry_after: Minimum backoff requested by the server

        Raises:
            ValueError: If the route is not currently checked out
        """
        if route.name not in self._checked_out:
            raise ValueError(f"route {route.name} is not checked out")
        self._checked_out.remove(route.name)

        if had_error:
            route.backoff = self.config.next_backoff(route.backoff, retry_after)
            logger.warning(
                f"Error with route {route.name}, "
                f"waiting {route.backoff / 60:.2f} min"
            )
        else:
            if route.backoff is not None:
                logger.info(f"Route {route.name} recovered")
            route.backoff = None

        self._metrics.set_route_backoff(route.name, route.backoff)

        delay = route.backoff if route.backoff is not None else self.config.idle_delay
        loop = asyncio.get_running_loop()
        self._cooling[route.name] = loop.call_later(delay, self._cooldown_done, route)

    def _cooldown_done(self, route: Route) -> None:
        self._cooling.pop(route.name, None)
        self._make_available(route)

    def _make_available(self, route: Route) -> None:
        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.done():
                self._checked_out.add(route.name)
                waiter.set_result(route)
                return
        self._available.appendleft(route)

    def close(self) -> None:
        """Cancel pending cooldowns and return every cooling route to the pool."""
        for name, handle in list(self._cooling.items()):
            handle.cancel()
            route = next(r for r in self._routes if r.name == name)
            del self._cooling[name]
            self._make_available(route)
