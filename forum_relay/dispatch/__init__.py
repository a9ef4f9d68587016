"""Outbound request dispatch over a pool of egress routes."""

from forum_relay.dispatch.config import DispatcherConfig
from forum_relay.dispatch.executor import (
    BadStatusError,
    FetchError,
    FetchExecutor,
    RetriesExhaustedError,
)
from forum_relay.dispatch.pool import DispatcherPool
from forum_relay.dispatch.routes import ProxyConfigError, Route, RouteKind, load_routes

__all__ = [
    "BadStatusError",
    "DispatcherConfig",
    "DispatcherPool",
    "FetchError",
    "FetchExecutor",
    "ProxyConfigError",
    "RetriesExhaustedError",
    "Route",
    "RouteKind",
    "load_routes",
]
