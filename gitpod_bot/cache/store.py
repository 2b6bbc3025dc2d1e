from typing import Dict, List, Optional

from gitpod_bot.cache.keys import (
    SCHEDULE_INDEX,
    SCHEDULE_REPO_PREFIX,
)
from gitpod_bot.cache.redis_client import get_redis
from gitpod_bot.logger import get_logger


logger = get_logger("gitpod_bot.cache.store")


# =========================================================
# Utility
# =========================================================

def _as_str(x):
    return x.decode() if isinstance(x, bytes) else x


def _repo_key(repo: str) -> str:
    return f"{SCHEDULE_REPO_PREFIX}{repo}"


# =========================================================
# Repository schedule
# =========================================================

def schedule_repo(repo: str, installation_id: int, due_at: float):
    r = get_redis()
    try:
        r.hset(_repo_key(repo), mapping={
            "repo": repo,
            "installation_id": int(installation_id),
        })
        r.zadd(SCHEDULE_INDEX, {repo: due_at})
    except Exception:
        logger.exception("Failed to schedule repo: %s", repo)


def reschedule_repo(repo: str, due_at: float):
    r = get_redis()
    try:
        if not r.exists(_repo_key(repo)):
            r.zrem(SCHEDULE_INDEX, repo)
            return
        r.zadd(SCHEDULE_INDEX, {repo: due_at})
    except Exception:
        logger.exception("Failed to reschedule repo: %s", repo)


def unschedule_repo(repo: str):
    r = get_redis()
    try:
        r.delete(_repo_key(repo))
        r.zrem(SCHEDULE_INDEX, repo)
    except Exception:
        logger.exception("Failed to unschedule repo: %s", repo)


def is_repo_scheduled(repo: str) -> bool:
    r = get_redis()
    try:
        return r.zscore(SCHEDULE_INDEX, repo) is not None
    except Exception:
        logger.exception("Failed to check schedule state: %s", repo)
        return False


def get_due_repos(now: float) -> List[str]:
    r = get_redis()
    try:
        return [_as_str(repo) for repo in r.zrangebyscore(SCHEDULE_INDEX, 0, now)]
    except Exception:
        logger.exception("Failed to get due repos")
        return []


def get_schedule_data(repo: str) -> Dict[str, str]:
    r = get_redis()
    try:
        return r.hgetall(_repo_key(repo)) or {}
    except Exception:
        logger.exception("Failed to get schedule data: %s", repo)
        return {}


def get_installation_id(repo: str) -> Optional[int]:
    installation_id = get_schedule_data(repo).get("installation_id")
    return int(installation_id) if installation_id is not None else None


# =========================================================
# Repo-wide cleanup / migration
# =========================================================

def migrate_repo(old_repo: str, new_repo: str):
    r = get_redis()

    try:
        score = r.zscore(SCHEDULE_INDEX, old_repo)
        data = r.hgetall(_repo_key(old_repo))
        if score is None or not data:
            return

        r.hset(_repo_key(new_repo), mapping={
            "repo": new_repo,
            "installation_id": data.get("installation_id"),
        })
        r.zadd(SCHEDULE_INDEX, {new_repo: score})

        r.delete(_repo_key(old_repo))
        r.zrem(SCHEDULE_INDEX, old_repo)
    except Exception:
        logger.exception("Failed to migrate repo: %s → %s", old_repo, new_repo)


def purge_installation(installation_id: int):
    r = get_redis()
    installation_id = str(int(installation_id))

    try:
        for key in r.scan_iter(f"{SCHEDULE_REPO_PREFIX}*"):
            key = _as_str(key)
            data = r.hgetall(key)
            if data.get("installation_id") != installation_id:
                continue
            r.delete(key)
            r.zrem(SCHEDULE_INDEX, key.replace(SCHEDULE_REPO_PREFIX, "", 1))
    except Exception:
        logger.exception("Failed to purge installation: %s", installation_id)

