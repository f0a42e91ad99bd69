"""Remote and default-branch bookkeeping across a mirror hop."""

import logging
from pathlib import Path
from typing import Optional, Union

from git import Repo, GitCommandError, InvalidGitRepositoryError, NoSuchPathError

from ..config import GPSUPSTREAM, ORIGIN
from ..errors import (
    BranchCheckoutError, HeadSetError, OpenRepositoryError, RemoteMismatchError, RemoteNotFoundError
)
from ..model import Repository


def open_repository(path: Union[str, Path]) -> Repo:
    """Open a repository on disk, raising OpenRepositoryError on failure."""
    try:
        return Repo(str(path))
    except (InvalidGitRepositoryError, NoSuchPathError) as e:
        raise OpenRepositoryError(f"failed to open repository: {path}") from e


def source_default_branch(repository: Repository) -> Optional[str]:
    """Default branch from the project info, else the branch HEAD points at."""
    if repository.project_info and repository.project_info.default_branch:
        return repository.project_info.default_branch

    try:
        return repository.git_repo.head.reference.name
    except (TypeError, ValueError):
        return None


class RemoteManager:
    """Keeps origin and the gpsupstream alias consistent."""

    def __init__(self):
        self.logger = logging.getLogger('gitprovidersync.mirror.remotes')

    def set_remote_and_branch(self, path: Union[str, Path], source: Repository) -> None:
        """
        Point a freshly written copy back at the true upstream.

        Copies origin's URLs from the source repository into the target's
        origin, then points HEAD at the source's default branch: a symbolic
        ref for bare targets, a forced checkout followed by the symbolic ref
        for working copies.

        Args:
            path: Target repository written by the from-scratch sequence
            source: Repository the target was pushed from

        Raises:
            OpenRepositoryError: If the target cannot be opened
            HeadSetError: If HEAD cannot be set or the branch is missing
            BranchCheckoutError: If the working copy checkout fails
        """
        target = Repository(open_repository(path), source.project_info)

        try:
            urls = source.remote_urls(ORIGIN)
        except RemoteNotFoundError:
            urls = []

        if urls:
            target.set_remote_urls(ORIGIN, urls)
        else:
            self.logger.warning(f"Remote origin not found in repository, target: {path}")

        branch = source_default_branch(source)
        if not branch:
            self.logger.warning(f"No default branch known, leaving HEAD untouched: {path}")
            target.close()
            return

        try:
            if target.bare:
                self.set_default_branch_bare(target.git_repo, branch)
            else:
                self.set_default_branch(target.git_repo, branch)
        finally:
            target.close()

    def set_default_branch_bare(self, repo: Repo, branch: str) -> None:
        self.logger.debug(f"Setting default branch of bare repository to {branch}")

        if branch not in [head.name for head in repo.heads]:
            raise HeadSetError(f"branch does not exist: {branch}")

        self._set_head(repo, branch)

    def set_default_branch(self, repo: Repo, branch: str) -> None:
        self.logger.debug(f"Checking out default branch {branch}")

        try:
            repo.git.checkout("--force", branch)
        except GitCommandError as e:
            raise BranchCheckoutError(f"failed to checkout branch: {branch}") from e

        self._set_head(repo, branch)

    def _set_head(self, repo: Repo, branch: str) -> None:
        try:
            repo.git.symbolic_ref("HEAD", f"refs/heads/{branch}")
        except GitCommandError as e:
            raise HeadSetError(f"failed to set HEAD reference to {branch}") from e

    def set_gpsupstream_remote_from_origin(self, repository: Repository) -> None:
        """
        Recreate the gpsupstream remote as a mirror of origin.

        Raises:
            RemoteNotFoundError: If origin is missing or has no URL
            RemoteMismatchError: If gpsupstream does not carry origin's URL afterwards
        """
        try:
            origin = repository.remote(ORIGIN)
        except RemoteNotFoundError as e:
            raise RemoteNotFoundError("failed to get origin remote") from e

        repository.delete_remote(GPSUPSTREAM)
        repository.create_remote(GPSUPSTREAM, origin.url, mirror=True)

        try:
            upstream = repository.remote(GPSUPSTREAM)
        except RemoteNotFoundError as e:
            raise RemoteMismatchError() from e

        if upstream.url != origin.url:
            raise RemoteMismatchError(f"mismatch in {GPSUPSTREAM} vs {ORIGIN} remote")

        self.logger.debug(f"Remote {GPSUPSTREAM} set from {ORIGIN}")
