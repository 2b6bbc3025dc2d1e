from typing import Any, Dict

from gitpod_bot.cache.store import migrate_repo, purge_installation
from gitpod_bot.github.api import list_issue_labels
from gitpod_bot.github.auth import forget_installation
from gitpod_bot.logger import get_logger
from gitpod_bot.marking.gitpod import Gitpod, RepoContext
from gitpod_bot.marking.stats import StatsRegistry
from gitpod_bot.workers.scheduler import RepositoryScheduler


logger = get_logger("gitpod_bot.github.events")

scheduler = RepositoryScheduler()
stats = StatsRegistry()


# ---------------------------------------------------------
# Marking handlers
# ---------------------------------------------------------

async def on_pull_request_opened(ctx: RepoContext, payload: Dict[str, Any]):
    gitpod = await Gitpod.create(ctx, scheduler, stats)
    pull_request = payload.get("pull_request") or {}
    await gitpod.mark("pulls", pull_request)


async def on_issue_opened(ctx: RepoContext, payload: Dict[str, Any]):
    gitpod = await Gitpod.create(ctx, scheduler, stats)
    issue = dict(payload.get("issue") or {})

    # Labels added while the issue is being opened may be missing from the payload
    issue["labels"] = await list_issue_labels(
        ctx.installation_id,
        ctx.full_name,
        issue["number"],
    )
    await gitpod.mark("issues", issue)


async def handle_schedule(repo: str, installation_id: int):
    """
    Periodic tick for one repository: backfill pulls, then issues.
    """
    ctx = RepoContext.from_full_name(repo, installation_id)
    gitpod = await Gitpod.create(ctx, scheduler, stats)

    await gitpod.mark_all("pulls")
    await gitpod.mark_all("issues")

    stat = gitpod.stat
    logger.info(
        "%s: %s issues, %s pulls marked",
        stat.full_name,
        stat.issues,
        stat.pulls,
    )


# ---------------------------------------------------------
# Installation lifecycle
# ---------------------------------------------------------

def _start_repos(installation_id, repositories):
    if installation_id is None:
        return
    for repo in repositories or []:
        full = repo.get("full_name")
        if full:
            scheduler.start(full, installation_id)


def _stop_repos(repositories):
    for repo in repositories or []:
        full = repo.get("full_name")
        if full:
            scheduler.stop(full)


async def handle_event(event_type: str, payload: Dict[str, Any]):
    """
    Central GitHub webhook dispatcher.

    A fresh Gitpod helper is built for every marking event, so config
    changes in the repository take effect on the next event.
    """

    try:
        action = payload.get("action")
        installation_id = (payload.get("installation") or {}).get("id")

        # ---------------------------------------------------------
        # 1. Installation lifecycle → keep the schedule in sync
        # ---------------------------------------------------------
        if event_type == "installation":
            if action == "created":
                _start_repos(installation_id, payload.get("repositories"))
            elif action == "deleted" and installation_id is not None:
                logger.info("App uninstalled from %s, dropping schedule", installation_id)
                purge_installation(installation_id)
                forget_installation(installation_id)
            return

        if event_type == "installation_repositories":
            if action == "added":
                _start_repos(installation_id, payload.get("repositories_added"))
            elif action == "removed":
                _stop_repos(payload.get("repositories_removed"))
            return

        # ---------------------------------------------------------
        # 2. Repository renamed → migrate the schedule entry
        # ---------------------------------------------------------
        if event_type == "repository" and action == "renamed":
            repo = payload.get("repository") or {}
            changes = (payload.get("changes") or {}).get("repository") or {}
            old_name = (changes.get("name") or {}).get("from")
            owner = (repo.get("owner") or {}).get("login")

            if old_name and owner and repo.get("full_name"):
                old_full = f"{owner}/{old_name}"
                logger.info("Repository renamed: %s → %s", old_full, repo["full_name"])
                migrate_repo(old_full, repo["full_name"])
            return

        # ---------------------------------------------------------
        # 3. Marking events need a repository and an installation
        # ---------------------------------------------------------
        ctx = RepoContext.from_payload(payload)
        if ctx is None:
            return

        if event_type == "pull_request" and action == "opened":
            await on_pull_request_opened(ctx, payload)
            return

        if event_type == "issues" and action == "opened":
            await on_issue_opened(ctx, payload)
            return

    except Exception:
        # Never crash webhook processing
        logger.exception("Unhandled error while processing event: %s", event_type)
