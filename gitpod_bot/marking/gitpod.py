import json
from dataclasses import dataclass
from typing import Any, Dict, List, Literal, Optional, Protocol

from gitpod_bot.github import api
from gitpod_bot.github.repo_config import load_repo_config
from gitpod_bot.logger import get_logger
from gitpod_bot.marking.config import GitpodConfig, resolve_config
from gitpod_bot.marking.stats import GitpodStat, StatsRegistry
from gitpod_bot import settings


logger = get_logger("gitpod_bot.marking")

IssueKind = Literal["pulls", "issues"]

SEARCH_MARKER = "gitpod"


class Scheduler(Protocol):
    def start(self, repo: str, installation_id: int) -> None: ...

    def stop(self, repo: str) -> None: ...


@dataclass(frozen=True)
class RepoContext:
    """The repository an event or tick is about."""

    owner: str
    repo: str
    installation_id: int

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"

    @classmethod
    def from_full_name(cls, full_name: str, installation_id: int) -> "RepoContext":
        owner, _, repo = full_name.partition("/")
        return cls(owner=owner, repo=repo, installation_id=int(installation_id))

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> Optional["RepoContext"]:
        repository = payload.get("repository") or {}
        installation = payload.get("installation") or {}

        owner = (repository.get("owner") or {}).get("login")
        name = repository.get("name")
        installation_id = installation.get("id")

        if not owner or not name or installation_id is None:
            return None

        return cls(owner=owner, repo=name, installation_id=int(installation_id))


class Gitpod:
    """
    Decides which issues and pull requests of one repository get the
    "Open in Gitpod" comment, and posts it.
    """

    def __init__(self, ctx: RepoContext, config: GitpodConfig, stat: GitpodStat):
        self.ctx = ctx
        self.config = config
        self.stat = stat
        logger.debug(
            "config for %s: %s",
            ctx.full_name,
            json.dumps(config.to_dict(), indent=2),
        )

    @classmethod
    async def create(
        cls,
        ctx: RepoContext,
        scheduler: Scheduler,
        stats: StatsRegistry,
    ) -> "Gitpod":
        stat = stats.get(ctx.owner, ctx.repo)

        raw = await load_repo_config(ctx.installation_id, ctx.full_name)
        if raw is None:
            scheduler.stop(ctx.full_name)
        else:
            scheduler.start(ctx.full_name, ctx.installation_id)

        return cls(ctx, resolve_config(raw), stat)

    def _feature(self, kind: IssueKind):
        return self.config.pulls if kind == "pulls" else self.config.issues

    def match(self, kind: IssueKind, issue: Dict[str, Any]) -> bool:
        if not self._feature(kind).perform or issue.get("locked"):
            return False

        if kind == "pulls":
            return True

        wanted = self.config.issues.labels
        labels = issue.get("labels") or []
        if not labels or not wanted:
            return False

        return any(label.get("name") in wanted for label in labels)

    def comment_body(self, kind: IssueKind, issue: Dict[str, Any]) -> str:
        link = f"[Open in Gitpod]({settings.GITPOD_URL}#{issue['html_url']})"
        return f"{link}{self._feature(kind).comment}"

    async def mark(self, kind: IssueKind, issue: Dict[str, Any]) -> bool:
        """
        Comment on ``issue`` if it matches. Returns True when a comment
        was posted.
        """
        if not self.match(kind, issue):
            return False

        number = issue["number"]
        target = f"{self.ctx.full_name}#{number}"

        logger.debug("Marking %s", target)
        await api.create_comment(
            self.ctx.installation_id,
            self.ctx.full_name,
            number,
            self.comment_body(kind, issue),
        )
        logger.debug("%s has been marked", target)

        self.stat.increment(kind)
        return True

    async def mark_all(self, kind: IssueKind) -> int:
        """
        Backfill: comment on every open item of ``kind`` that does not
        already mention Gitpod in its comments. Returns how many were marked.
        """
        if not self._feature(kind).perform:
            return 0

        query = self.create_query(kind)

        if kind == "pulls":
            return await self._mark_all(kind, query)

        marked = 0
        for label in sorted(self.config.issues.labels):
            marked += await self._mark_all(kind, f'{query} label:"{label}"')
        return marked

    async def _mark_all(self, kind: IssueKind, query: str) -> int:
        pages = await self.find_issues(query)

        marked = 0
        for issues in pages:
            for issue in issues:
                if await self.mark(kind, issue):
                    marked += 1
        return marked

    async def find_issues(self, query: str) -> List[List[Dict[str, Any]]]:
        return await api.search_issues(self.ctx.installation_id, query, sort="updated")

    def create_query(self, kind: IssueKind) -> str:
        item_type = "pr" if kind == "pulls" else "issue"
        return (
            f"NOT {SEARCH_MARKER} repo:{self.ctx.full_name} "
            f"type:{item_type} is:open in:comments"
        )
