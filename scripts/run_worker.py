#!/usr/bin/env python3
"""
Generation worker.

Runs the job poller, partition maintenance and cleanup without the HTTP
API. Start as many workers as needed against the same database; claims
never overlap.

Usage:
    python scripts/run_worker.py
    python scripts/run_worker.py --create-tables
"""

import argparse
import asyncio
import signal
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.api.services.generation_runtime import build_runtime
from src.database.connection import check_connection, close_connections, create_tables
from shared.utils.logger import setup_logger

logger = setup_logger(__name__)


async def run(create: bool = False) -> int:
    if not await check_connection():
        logger.error("Database is not reachable, exiting")
        return 1
    if create:
        await create_tables()

    runtime = build_runtime()
    stop_event = asyncio.Event()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop_event.set)

    logger.info("=" * 80)
    logger.info(f"GENERATION WORKER {runtime.poller.instance_id}")
    logger.info("=" * 80)

    await runtime.start()
    try:
        await stop_event.wait()
    finally:
        logger.info("Shutting down worker...")
        await runtime.stop()
        await close_connections()
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(description="Run the document generation worker")
    parser.add_argument(
        "--create-tables",
        action="store_true",
        help="Create tables from the ORM models before starting (local setups without alembic)",
    )
    args = parser.parse_args()
    sys.exit(asyncio.run(run(create=args.create_tables)))


if __name__ == "__main__":
    main()
