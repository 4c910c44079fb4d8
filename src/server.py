"""Protean Engine runner for the ordering domain.

Starts the Engine that processes events asynchronously, which runs the
sold-counter updater off the request path.

Usage:
    python src/server.py
    python src/server.py --test-mode   # drain pending messages and exit
"""

import argparse
import asyncio

from protean.server.engine import Engine

from ordering.domain import ordering
from ordering.utils.logging import configure_logging


async def run(test_mode=False):
    ordering.init()
    engine = Engine(ordering, test_mode=test_mode)
    await engine.run()


def main():
    parser = argparse.ArgumentParser(description="Ordering Engine runner")
    parser.add_argument(
        "--test-mode",
        action="store_true",
        help="Process pending messages once and exit",
    )
    args = parser.parse_args()

    configure_logging()
    asyncio.run(run(test_mode=args.test_mode))


if __name__ == "__main__":
    main()
