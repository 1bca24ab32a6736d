"""Periodic maintenance commands and the loop that runs them.

Each pass processes one domain command in its own unit of work:
- DispatchDueNotifications: retries failed notifications whose backoff has passed
- ReleaseExpiredHolds: gives back stock held by checkouts that never completed
- ReleaseStaleLabelClaims: hands back label claims left by a crashed issuer

The same commands are exposed on the maintenance API for an external
scheduler; ``maintenance_loop`` runs them inside a process instead.
"""

import asyncio
from datetime import datetime

import structlog
from protean.domain import Domain

from fulfillment.fulfillment.shipping import ReleaseStaleLabelClaims
from inventory.stock.expiry import ReleaseExpiredHolds
from notifications.notification.retry import DispatchDueNotifications
from shared.config import Settings
from shared.utils.logging import add_context, clear_context

logger = structlog.get_logger(__name__)

TASKS = {
    "notifications": (DispatchDueNotifications,),
    "reservations": (ReleaseExpiredHolds, ReleaseStaleLabelClaims),
}


def run_commands(domain: Domain, command_classes, as_of: datetime | None = None) -> dict[str, int]:
    """Process each command once. A failing command is logged and the rest still run."""
    results = {}
    with domain.domain_context():
        for command_class in command_classes:
            name = command_class.__name__
            try:
                results[name] = domain.process(command_class(as_of=as_of), asynchronous=False)
            except Exception as exc:
                logger.exception("Maintenance command failed", command=name, error=str(exc))
    return results


def task_intervals(settings: Settings) -> dict[str, float]:
    return {
        "notifications": settings.notifications.poll_interval_seconds,
        "reservations": settings.sweep_interval_seconds,
    }


async def maintenance_loop(domain: Domain, task: str, interval: float) -> None:
    """Run a task's commands every ``interval`` seconds until cancelled."""
    logger.info("Maintenance loop started", task=task, interval=interval)
    try:
        while True:
            clear_context()
            add_context(worker=task)
            await asyncio.to_thread(run_commands, domain, TASKS[task])
            await asyncio.sleep(interval)
    finally:
        logger.info("Maintenance loop stopped", task=task)


def start_maintenance(domain: Domain, settings: Settings, tasks=None) -> list[asyncio.Task]:
    """Schedule the maintenance loops on the running event loop."""
    intervals = task_intervals(settings)
    return [
        asyncio.create_task(maintenance_loop(domain, task, intervals[task]), name=f"maintenance-{task}")
        for task in (tasks or TASKS)
    ]
