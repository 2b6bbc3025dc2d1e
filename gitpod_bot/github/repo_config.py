"""Reading the per-repository bot configuration file.

The file lives at ``.github/<CONFIG_FILE_NAME>`` in the default branch.
A config may declare ``_extends: repo`` or ``_extends: owner/repo`` to
inherit keys from the same file in another repository; local keys win.
"""

import binascii
from typing import Any, Dict, Optional

import yaml

from gitpod_bot.github.api import RepoUnavailable, get_file_content
from gitpod_bot.logger import get_logger
from gitpod_bot import settings


logger = get_logger("gitpod_bot.github.repo_config")

EXTENDS_KEY = "_extends"


class InvalidConfig(ValueError):
    """Raised when a config file parses to something other than a mapping."""


# Bad YAML, a non-mapping document, or bytes that are not UTF-8 text
_UNREADABLE = (yaml.YAMLError, InvalidConfig, UnicodeDecodeError, binascii.Error)


def parse_config(text: str, source: str = "<config>") -> Dict[str, Any]:
    data = yaml.safe_load(text)

    if data is None:
        return {}

    if not isinstance(data, dict):
        raise InvalidConfig(
            f"{source} must contain a mapping, got {type(data).__name__}"
        )

    return data


def config_path(file_name: Optional[str] = None) -> str:
    return f".github/{file_name or settings.CONFIG_FILE_NAME}"


def _resolve_extends(repo: str, extends: str) -> str:
    owner = repo.split("/", 1)[0]
    if "/" in extends:
        return extends
    return f"{owner}/{extends}"


async def _read(installation_id: int, repo: str, path: str) -> Optional[Dict[str, Any]]:
    text = await get_file_content(installation_id, repo, path)
    if text is None:
        return None
    return parse_config(text, f"{repo}:{path}")


async def load_repo_config(
    installation_id: int,
    repo: str,
    file_name: Optional[str] = None,
) -> Optional[Dict[str, Any]]:
    """
    Load and parse the config file of ``repo``.

    Returns None when the file does not exist, or cannot be parsed.
    """
    path = config_path(file_name)

    try:
        config = await _read(installation_id, repo, path)
    except _UNREADABLE:
        logger.exception("Ignoring unreadable config %s:%s", repo, path)
        return None

    if config is None:
        return None

    extends = config.pop(EXTENDS_KEY, None)
    if not extends:
        return config

    base_repo = _resolve_extends(repo, str(extends))

    try:
        base = await _read(installation_id, base_repo, path)
    except _UNREADABLE:
        logger.exception("Ignoring unreadable base config %s:%s", base_repo, path)
        base = None
    except RepoUnavailable:
        logger.warning("No access to base config repository %s", base_repo)
        base = None

    if base is None:
        logger.warning("%s extends %s, which has no %s", repo, base_repo, path)
        return config

    # Only one level of inheritance
    base.pop(EXTENDS_KEY, None)
    return {**base, **config}
