"""Background runner for the checkout domain.

Starts the protean Engine, which processes events asynchronously when
EVENT_PROCESSING=async (notification delivery via the NotificationDispatcher),
alongside the maintenance loops:
- notifications: retries failed notifications whose backoff has passed
- reservations: releases expired stock holds and stale label claims

Usage:
    python src/server.py                          # Engine and both loops
    python src/server.py --task notifications     # Engine and one loop
    python src/server.py --no-engine              # Maintenance loops only
"""

import argparse
import asyncio

import structlog
from protean.server.engine import Engine

from fulfillment.carrier import configure_carrier
from notifications.channel import configure_channels
from shared.config import Settings
from shared.domain import init_domain
from shared.utils.logging import configure_logging
from shared.utils.maintenance import TASKS, maintenance_loop, task_intervals

logger = structlog.get_logger(__name__)


async def run(settings: Settings, tasks, with_engine: bool = True):
    domain = init_domain(settings)
    intervals = task_intervals(settings)

    runners = [maintenance_loop(domain, task, intervals[task]) for task in tasks]
    if with_engine:
        runners.append(Engine(domain).run())

    logger.info("Background runner started", tasks=list(tasks), engine=with_engine)
    await asyncio.gather(*runners)


def main():
    parser = argparse.ArgumentParser(description="Checkout background runner")
    parser.add_argument("--task", choices=sorted(TASKS), help="Run a single maintenance loop (default: run all)")
    parser.add_argument("--no-engine", action="store_true", help="Do not start the protean Engine")
    args = parser.parse_args()

    settings = Settings.from_env()
    configure_logging(settings.environment, settings.log_level, settings.log_dir)
    configure_channels(settings.notifications)
    configure_carrier(settings.carrier)

    tasks = [args.task] if args.task else list(TASKS)
    asyncio.run(run(settings, tasks, with_engine=not args.no_engine))


if __name__ == "__main__":
    main()
