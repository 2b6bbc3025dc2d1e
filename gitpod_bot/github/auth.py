import time
from typing import Any, Dict, List, Optional, Tuple

import httpx
import jwt

from gitpod_bot.logger import get_logger
from gitpod_bot import settings


logger = get_logger("gitpod_bot.github.auth")

_PRIVATE_KEY: Optional[str] = None

# installation id -> (token, expiry timestamp)
_TOKEN_CACHE: Dict[int, Tuple[str, float]] = {}

# GitHub tokens expire in 1 hour; refresh with a buffer
TOKEN_TTL_SECONDS = 50 * 60


def _load_private_key() -> str:
    global _PRIVATE_KEY

    if _PRIVATE_KEY is not None:
        return _PRIVATE_KEY

    path = settings.GITHUB_PRIVATE_KEY_PATH
    if not path:
        raise RuntimeError("GITHUB_PRIVATE_KEY_PATH is not set")

    try:
        with open(path, "r") as f:
            _PRIVATE_KEY = f.read()
            return _PRIVATE_KEY
    except OSError as exc:
        raise RuntimeError(
            f"Failed to read GitHub private key at {path}"
        ) from exc


def create_jwt() -> str:
    if not settings.GITHUB_APP_ID:
        raise RuntimeError("GITHUB_APP_ID is not set")

    now = int(time.time())
    payload = {
        "iat": now - 30,
        "exp": now + 9 * 60,
        "iss": int(settings.GITHUB_APP_ID),
    }

    private_key = _load_private_key()
    return jwt.encode(payload, private_key, algorithm="RS256")


def _app_headers() -> Dict[str, str]:
    return {
        "Authorization": f"Bearer {create_jwt()}",
        "Accept": "application/vnd.github+json",
    }


async def list_installations() -> List[Dict[str, Any]]:
    """
    Return every installation of this GitHub App, following pagination.
    """
    headers = _app_headers()
    installations: List[Dict[str, Any]] = []
    url: Optional[str] = f"{settings.GITHUB_API_URL}/app/installations?per_page=100"

    async with httpx.AsyncClient() as client:
        while url:
            resp = await client.get(url, headers=headers)
            resp.raise_for_status()
            installations.extend(resp.json())
            url = resp.links.get("next", {}).get("url")

    return installations


async def get_installation_token(installation_id: int) -> str:
    """
    Return an access token for one installation of the App.
    Cached per installation until shortly before expiry.
    """
    installation_id = int(installation_id)

    cached = _TOKEN_CACHE.get(installation_id)
    if cached and time.time() < cached[1]:
        return cached[0]

    async with httpx.AsyncClient() as client:
        token_resp = await client.post(
            f"{settings.GITHUB_API_URL}/app/installations/{installation_id}/access_tokens",
            headers=_app_headers(),
        )
        token_resp.raise_for_status()

    token = token_resp.json()["token"]
    _TOKEN_CACHE[installation_id] = (token, time.time() + TOKEN_TTL_SECONDS)

    logger.info("GitHub installation token obtained for %s", installation_id)

    return token


def forget_installation(installation_id: int) -> None:
    _TOKEN_CACHE.pop(int(installation_id), None)
