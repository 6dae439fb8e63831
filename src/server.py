"""Protean Engine runner for the marketplace domain.

Starts the Engine worker that processes events asynchronously in production:
projectors keep the order listings current from the event store.

Usage:
    PROTEAN_ENV=production python src/server.py
"""

import asyncio

from protean.server.engine import Engine


def _get_domain():
    """Import and initialize the marketplace domain."""
    from marketplace.domain import marketplace
    from marketplace.utils.logging import configure_logging

    configure_logging()
    marketplace.init()
    return marketplace


async def run():
    engine = Engine(_get_domain())
    await engine.run()


def main():
    asyncio.run(run())


if __name__ == "__main__":
    main()
