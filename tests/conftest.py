"""Pytest configuration and fixtures for gitpod-bot tests."""

import fnmatch
from typing import Any, Dict, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

import gitpod_bot.cache.store as store_module
from gitpod_bot.marking.gitpod import RepoContext
from gitpod_bot.marking.stats import StatsRegistry


class InMemoryRedis:
    """The subset of redis.Redis used by the schedule store."""

    def __init__(self):
        self.hashes: Dict[str, Dict[str, str]] = {}
        self.zsets: Dict[str, Dict[str, float]] = {}

    def hset(self, key, field=None, value=None, mapping=None):
        data = self.hashes.setdefault(key, {})
        if mapping:
            data.update({k: str(v) for k, v in mapping.items()})
        if field is not None:
            data[field] = str(value)

    def hgetall(self, key):
        return dict(self.hashes.get(key, {}))

    def exists(self, key):
        return int(key in self.hashes or key in self.zsets)

    def delete(self, *keys):
        for key in keys:
            self.hashes.pop(key, None)
            self.zsets.pop(key, None)

    def zadd(self, key, mapping):
        self.zsets.setdefault(key, {}).update(mapping)

    def zrem(self, key, *members):
        for member in members:
            self.zsets.get(key, {}).pop(member, None)

    def zscore(self, key, member) -> Optional[float]:
        return self.zsets.get(key, {}).get(member)

    def zrangebyscore(self, key, low, high):
        items = sorted(self.zsets.get(key, {}).items(), key=lambda kv: kv[1])
        return [member for member, score in items if low <= score <= high]

    def scan_iter(self, pattern):
        keys = list(self.hashes) + list(self.zsets)
        return [key for key in keys if fnmatch.fnmatch(key, pattern)]

    def ping(self):
        return True


@pytest.fixture
def fake_redis(monkeypatch) -> InMemoryRedis:
    """Route the schedule store to an in-memory Redis double."""
    redis = InMemoryRedis()
    monkeypatch.setattr(store_module, "get_redis", lambda: redis)
    return redis


@pytest.fixture
def repo_ctx() -> RepoContext:
    return RepoContext(owner="octo", repo="hello", installation_id=42)


@pytest.fixture
def stats() -> StatsRegistry:
    return StatsRegistry()


@pytest.fixture
def scheduler() -> MagicMock:
    return MagicMock(spec=["start", "stop"])


@pytest.fixture
def mock_api(monkeypatch) -> MagicMock:
    """Replace the GitHub calls used by the marking logic."""
    import gitpod_bot.marking.gitpod as gitpod_module

    api = MagicMock()
    api.create_comment = AsyncMock(return_value={"id": 1})
    api.search_issues = AsyncMock(return_value=[[]])
    monkeypatch.setattr(gitpod_module, "api", api)
    return api


def make_issue(
    number: int,
    labels: Optional[list] = None,
    locked: bool = False,
    **extra: Any,
) -> Dict[str, Any]:
    issue = {
        "number": number,
        "html_url": f"https://github.com/octo/hello/issues/{number}",
        "locked": locked,
        "labels": [{"name": name} for name in (labels or [])],
    }
    issue.update(extra)
    return issue
