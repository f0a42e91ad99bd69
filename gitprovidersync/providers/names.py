"""Repository name rules of the supported providers."""

import re
from typing import Callable, Dict

from ..config import ARCHIVE, DIRECTORY, GITEA, GITHUB, GITLAB


MAX_NAME_LENGTH = 100

_GITHUB_NAME = re.compile(r'^[A-Za-z0-9_-]+$')
_GITEA_NAME = re.compile(r'^[A-Za-z0-9.-]+$')
_GITLAB_NAME = re.compile(r'^[a-zA-Z0-9_][a-zA-Z0-9_.+\- ]*$')

_DOT_NAMES = frozenset({".", ".."})

# Route names GitLab reserves below a project path
GITLAB_RESERVED_NAMES = frozenset({
    "-", "badges", "blame", "blob", "builds", "commits", "create", "create_dir",
    "edit", "environments/folders", "files", "find_file", "gitlab-lfs/objects",
    "info/lfs/objects", "new", "preview", "raw", "refs", "tree", "update", "wikis",
})


def is_valid_github_name(name: str) -> bool:
    return (
        name not in _DOT_NAMES
        and len(name) <= MAX_NAME_LENGTH
        and bool(_GITHUB_NAME.fullmatch(name))
    )


def is_valid_gitea_name(name: str) -> bool:
    return (
        name not in _DOT_NAMES
        and len(name) <= MAX_NAME_LENGTH
        and bool(_GITEA_NAME.fullmatch(name))
    )


def is_valid_gitlab_name(name: str) -> bool:
    return bool(_GITLAB_NAME.fullmatch(name)) and name.lower() not in GITLAB_RESERVED_NAMES


def accept_any_name(name: str) -> bool:
    return True


_VALIDATORS: Dict[str, Callable[[str], bool]] = {
    GITHUB: is_valid_github_name,
    GITEA: is_valid_gitea_name,
    GITLAB: is_valid_gitlab_name,
    ARCHIVE: accept_any_name,
    DIRECTORY: accept_any_name,
}


def name_validator(provider_type: str) -> Callable[[str], bool]:
    """
    Return the name check for a provider type.

    Raises:
        KeyError: If the provider type is unknown
    """
    return _VALIDATORS[provider_type.lower()]
