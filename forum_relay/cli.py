"""
Command-line interface for forum-relay.

Usage:
    forum-relay run      # Poll sources and relay updates until stopped
    forum-relay once     # Run a single poll pass
    forum-relay routes   # List configured egress routes
"""

import asyncio
import signal
from contextlib import asynccontextmanager

import click

from forum_relay.config.settings import get_settings
from forum_relay.observability.logging import setup_logging
from forum_relay.observability.metrics import get_metrics


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
def main(debug: bool) -> None:
    """Forum Relay - Reddit and Discourse updates into Discord forum threads."""
    setup_logging(log_level="DEBUG" if debug else None)


@asynccontextmanager
async def _open_store(memory: bool):
    from forum_relay.storage.kv import InMemoryStore, RedisStore

    store = InMemoryStore() if memory else RedisStore()
    async with store:
        yield store


@main.command()
@click.option("--memory", is_flag=True, help="Keep state in memory instead of Redis")
@click.option("--metrics/--no-metrics", default=True, help="Enable metrics server")
def run(memory: bool, metrics: bool) -> None:
    """Run the poll loop."""
    from forum_relay.services.app import build_poll_service

    async def _run():
        settings = get_settings()

        if metrics:
            get_metrics().start_server(port=settings.metrics_port)

        async with _open_store(memory) as store:
            async with build_poll_service(settings, store) as service:
                loop = asyncio.get_running_loop()
                for sig in (signal.SIGTERM, signal.SIGINT):
                    loop.add_signal_handler(sig, lambda: asyncio.create_task(service.stop()))

                await service.start()

    asyncio.run(_run())


@main.command()
@click.option("--memory", is_flag=True, help="Keep state in memory instead of Redis")
def once(memory: bool) -> None:
    """Run a single poll pass and print the counts."""
    from forum_relay.services.app import build_poll_service

    async def _run():
        async with _open_store(memory) as store:
            async with build_poll_service(get_settings(), store) as service:
                return await service.run_pass()

    result = asyncio.run(_run())

    click.echo(f"Fetched:    {result.fetched}")
    for feed, count in result.per_feed.items():
        click.echo(f"  {feed}: {count}")
    click.echo(f"Created:    {result.stats.created}")
    click.echo(f"Appended:   {result.stats.appended}")
    click.echo(f"Duplicates: {result.stats.duplicates}")
    click.echo(f"Failed:     {result.stats.failed}")


@main.command()
def routes() -> None:
    """Load and list egress routes (validates the proxy file)."""
    from forum_relay.dispatch.routes import load_routes

    settings = get_settings()
    loaded = asyncio.run(load_routes(
        settings.proxies_path,
        settings.include_direct_route,
        shuffle=False,
    ))

    click.echo(f"{len(loaded)} route(s):")
    for route in loaded:
        click.echo(f"  {route.name} [{route.kind.value}]")


if __name__ == "__main__":
    main()
