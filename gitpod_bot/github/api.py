import base64
from typing import Any, Dict, List, Optional, Tuple

import httpx

from gitpod_bot.github.auth import get_installation_token
from gitpod_bot.logger import get_logger
from gitpod_bot import settings


logger = get_logger("gitpod_bot.github.api")


class RepoUnavailable(Exception):
    """
    Raised when a repository is deleted, renamed, or the app lost access.
    """
    pass


class ResourceNotFound(RepoUnavailable):
    """
    Raised on 404/410: the repository, issue or file does not exist.
    """
    pass


async def _headers(installation_id: int) -> Dict[str, str]:
    token = await get_installation_token(installation_id)
    return {
        "Authorization": f"Bearer {token}",
        "Accept": "application/vnd.github+json",
    }


def _url(endpoint: str) -> str:
    if endpoint.startswith("http"):
        return endpoint
    return f"{settings.GITHUB_API_URL}{endpoint}"


async def _send(
    installation_id: int,
    method: str,
    endpoint: str,
    json: Optional[dict] = None,
    params: Optional[dict] = None,
) -> httpx.Response:
    headers = await _headers(installation_id)

    async with httpx.AsyncClient(follow_redirects=True) as client:
        response = await client.request(
            method,
            _url(endpoint),
            headers=headers,
            json=json,
            params=params,
        )

    status = response.status_code

    if status in (404, 410):
        logger.warning("Resource unavailable (%s): %s", status, endpoint)
        raise ResourceNotFound(f"Repository or resource not found: {endpoint}")

    if status in (401, 403):
        logger.warning("Access denied (%s): %s", status, endpoint)
        raise RepoUnavailable(f"Access denied or app uninstalled: {endpoint}")

    try:
        response.raise_for_status()
    except httpx.HTTPStatusError:
        logger.exception("GitHub API error %s for %s", status, endpoint)
        raise

    return response


def _decode(response: httpx.Response, endpoint: str) -> Any:
    if response.status_code == 204:
        return None

    try:
        return response.json()
    except ValueError:
        logger.exception("Failed to decode JSON response from %s", endpoint)
        raise


async def _request(
    installation_id: int,
    method: str,
    endpoint: str,
    json: Optional[dict] = None,
    params: Optional[dict] = None,
) -> Any:
    response = await _send(installation_id, method, endpoint, json, params)
    return _decode(response, endpoint)


async def _get_page(
    installation_id: int,
    endpoint: str,
    params: Optional[dict] = None,
) -> Tuple[Any, Optional[str]]:
    """
    Fetch one page and return it with the URL of the next page, if any.
    """
    response = await _send(installation_id, "GET", endpoint, params=params)
    next_url = response.links.get("next", {}).get("url")
    return _decode(response, endpoint), next_url


# =========================================================
# Public helpers
# =========================================================

async def github_post(installation_id: int, endpoint: str, json: dict):
    return await _request(installation_id, "POST", endpoint, json)


async def github_get(installation_id: int, endpoint: str, params: Optional[dict] = None):
    return await _request(installation_id, "GET", endpoint, params=params)


async def create_comment(installation_id: int, repo: str, number: int, body: str):
    return await github_post(
        installation_id,
        f"/repos/{repo}/issues/{number}/comments",
        {"body": body},
    )


async def list_issue_labels(installation_id: int, repo: str, number: int) -> List[dict]:
    return await github_get(
        installation_id,
        f"/repos/{repo}/issues/{number}/labels",
        params={"per_page": 100},
    )


async def search_issues(
    installation_id: int,
    query: str,
    sort: str = "updated",
) -> List[List[dict]]:
    """
    Run an issue search and collect every page of results.

    Pages are returned as a list of item lists, in the order GitHub
    served them. Nothing is yielded until the last page is read.
    """
    pages: List[List[dict]] = []

    data, next_url = await _get_page(
        installation_id,
        "/search/issues",
        params={"q": query, "sort": sort, "per_page": settings.SEARCH_PAGE_SIZE},
    )
    pages.append(data.get("items", []))

    while next_url:
        data, next_url = await _get_page(installation_id, next_url)
        pages.append(data.get("items", []))

    return pages


async def get_file_content(installation_id: int, repo: str, path: str) -> Optional[str]:
    """
    Return the decoded text of a file in the default branch, or None if
    the file does not exist.
    """
    try:
        data = await github_get(installation_id, f"/repos/{repo}/contents/{path}")
    except ResourceNotFound:
        return None

    # A directory listing comes back as a list
    if not isinstance(data, dict) or data.get("type") != "file":
        return None

    content = data.get("content") or ""
    if data.get("encoding") == "base64":
        return base64.b64decode(content).decode("utf-8")
    return content


async def list_installation_repos(installation_id: int) -> List[dict]:
    repos: List[dict] = []

    data, next_url = await _get_page(
        installation_id,
        "/installation/repositories",
        params={"per_page": 100},
    )
    repos.extend(data.get("repositories", []))

    while next_url:
        data, next_url = await _get_page(installation_id, next_url)
        repos.extend(data.get("repositories", []))

    return repos
