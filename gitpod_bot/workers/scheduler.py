import asyncio
import random
import time
from typing import Awaitable, Callable, Optional

from gitpod_bot.cache.store import (
    get_due_repos,
    get_installation_id,
    is_repo_scheduled,
    reschedule_repo,
    schedule_repo,
    unschedule_repo,
)
from gitpod_bot.github.api import list_installation_repos
from gitpod_bot.github.auth import list_installations
from gitpod_bot.logger import get_logger
from gitpod_bot import settings

logger = get_logger("gitpod_bot.workers.scheduler")

TickHandler = Callable[[str, int], Awaitable[None]]


class RepositoryScheduler:
    """
    Keeps the set of repositories that receive a periodic tick.

    A newly started repository gets a random first delay within one
    interval, so repositories added together do not all tick at once.
    """

    def __init__(self, interval: Optional[float] = None):
        self.interval = interval if interval is not None else settings.SCHEDULE_INTERVAL_SECONDS

    def start(self, repo: str, installation_id: int) -> None:
        if is_repo_scheduled(repo):
            return

        due_at = time.time() + random.uniform(0, self.interval)
        schedule_repo(repo, installation_id, due_at)
        logger.info("Scheduled %s", repo)

    def stop(self, repo: str) -> None:
        if not is_repo_scheduled(repo):
            return

        unschedule_repo(repo)
        logger.info("Stopped scheduling %s", repo)


# =========================================================
# Startup reconciliation
# =========================================================

async def reconcile_on_startup(scheduler: RepositoryScheduler):
    """
    Start every repository of every installation, so repos installed
    while the bot was down still get their periodic tick.
    """
    try:
        installations = await list_installations()
    except Exception:
        logger.exception("Startup reconciliation failed")
        return

    for installation in installations:
        installation_id = installation.get("id")
        if installation_id is None:
            continue

        try:
            repos = await list_installation_repos(installation_id)
        except Exception:
            logger.exception("Failed to list repositories for installation %s", installation_id)
            continue

        for repo_obj in repos:
            full = repo_obj.get("full_name")
            if full:
                scheduler.start(full, installation_id)


# =========================================================
# Main worker loop
# =========================================================

async def process_due(on_tick: TickHandler, interval: float, now: Optional[float] = None):
    now = now if now is not None else time.time()

    for repo in get_due_repos(now):
        installation_id = get_installation_id(repo)
        if installation_id is None:
            unschedule_repo(repo)
            continue

        # Next tick is booked before running this one
        reschedule_repo(repo, now + interval)

        try:
            await on_tick(repo, installation_id)
        except Exception:
            logger.exception("Scheduled run failed for %s", repo)


async def scheduler_loop(on_tick: TickHandler, interval: Optional[float] = None):
    interval = interval if interval is not None else settings.SCHEDULE_INTERVAL_SECONDS

    while True:
        try:
            await process_due(on_tick, interval)
        except asyncio.CancelledError:
            logger.info("Repository scheduler cancelled")
            raise
        except Exception:
            logger.exception("Repository scheduler error")

        await asyncio.sleep(settings.SCHEDULE_SCAN_INTERVAL_SECONDS)
