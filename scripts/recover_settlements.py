#!/usr/bin/env python3
"""
Settle payments left pending after the buyer already received access.

A verification that crashed between granting the entitlement and marking the
payment successful leaves the record pending while the user already lists it.
This sweep finishes those records. Run it periodically, e.g. from cron:

    python scripts/recover_settlements.py --older-than-minutes 10
"""

from __future__ import annotations

import argparse
import asyncio
from datetime import timedelta

from courses_api import AppSettings, ServiceContainer
from db_core import get_db
from dotenv import find_dotenv, load_dotenv
from loguru import logger


async def run(older_than: timedelta) -> list[str]:
    settings = AppSettings()
    container = ServiceContainer.build(settings, get_db(settings.mongo))
    try:
        return await container.verifier.recover_orphaned_settlements(older_than)
    finally:
        await container.aclose()


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument(
        "--older-than-minutes",
        type=int,
        default=10,
        help="only touch records untouched for at least this long",
    )
    args = parser.parse_args()

    load_dotenv(find_dotenv(usecwd=True))
    recovered = asyncio.run(run(timedelta(minutes=args.older_than_minutes)))
    logger.info("Recovered {count} settlement(s): {orders}", count=len(recovered), orders=recovered)


if __name__ == "__main__":
    main()
