from dataclasses import asdict, dataclass
from typing import Dict, List


@dataclass
class GitpodStat:
    """Comments posted in one repository since the process started."""

    owner: str
    repo: str
    issues: int = 0
    pulls: int = 0

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"

    def increment(self, kind: str) -> None:
        setattr(self, kind, getattr(self, kind) + 1)


class StatsRegistry:
    """
    Process-local counters keyed by ``owner/repo``. Reset on restart.
    """

    def __init__(self):
        self._stats: Dict[str, GitpodStat] = {}

    def get(self, owner: str, repo: str) -> GitpodStat:
        key = f"{owner}/{repo}"
        stat = self._stats.get(key)
        if stat is None:
            stat = GitpodStat(owner=owner, repo=repo)
            self._stats[key] = stat
        return stat

    def snapshot(self) -> List[dict]:
        return [asdict(stat) for stat in self._stats.values()]

    def __len__(self) -> int:
        return len(self._stats)
