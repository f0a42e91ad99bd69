"""Library git engine built on GitPython."""

import logging
from pathlib import Path
from typing import Dict, Optional

from git import Repo, GitCommandError

from ..config import ORIGIN
from ..errors import (
    CloneError, CommandCancelledError, FetchError, PullError, PushError,
    SSHPermissionDeniedError, UncleanWorkspaceError, WorktreeError
)
from ..model import CloneOption, PullOption, PushOption, Repository, RunContext, UPTODATE
from ..stringconvert import mask_basic_auth, remove_basic_auth_from_url
from .auth import AuthResolver
from .remotes import open_repository


PERMISSION_DENIED_MARKER = "Permission denied (publickey)"
UP_TO_DATE_MARKERS = ("Everything up-to-date", "Already up to date", "Already up-to-date")

FETCH_REF_SPECS = ("refs/*:refs/*", "^refs/pull/*")


def is_up_to_date(output: str) -> bool:
    """
    Check git output for a nothing-to-do result.

    Porcelain push output counts as up to date when every ref line carries
    the ``=`` flag.
    """
    if any(marker in output for marker in UP_TO_DATE_MARKERS):
        return True

    ref_lines = [line for line in output.splitlines() if "\t" in line]
    return bool(ref_lines) and all(line.startswith("=") for line in ref_lines)


def is_permission_denied(error: Exception) -> bool:
    return PERMISSION_DENIED_MARKER in str(error)


class GitLibEngine:
    """
    Clone, pull, push and fetch through GitPython.

    Credentials come from AuthResolver and are handed to each git call as a
    per-call environment; nothing is written to repository configuration.
    """

    def __init__(self, auth_resolver: Optional[AuthResolver] = None):
        self.auth_resolver = auth_resolver or AuthResolver()
        self.logger = logging.getLogger('gitprovidersync.mirror.gitlib')

    def _auth_env(self, auth_config) -> Dict[str, str]:
        return self.auth_resolver.get_auth_method(auth_config).env()

    def _check_cancelled(self, ctx: RunContext, operation: str) -> None:
        if ctx.cancelled:
            raise CommandCancelledError(f"{operation} cancelled")

    def clone(self, ctx: RunContext, opt: CloneOption) -> Repository:
        """
        Clone a source project into the staging workspace.

        Mirror clones are bare; ``non_bare`` produces a working copy.

        Raises:
            SSHPermissionDeniedError: If the SSH agent key is rejected
            CloneError: For any other clone failure
        """
        self._check_cancelled(ctx, "clone")
        env = self._auth_env(opt.auth)
        destination = ctx.staging_path(opt.name)

        self.logger.info(f"Cloning {mask_basic_auth(opt.url)} into {destination}")

        kwargs = {}
        if not opt.non_bare:
            if opt.mirror:
                kwargs['mirror'] = True
            else:
                kwargs['bare'] = True

        try:
            repo = Repo.clone_from(opt.url, str(destination), env=env, **kwargs)
        except GitCommandError as e:
            if is_permission_denied(e):
                raise SSHPermissionDeniedError() from e
            raise CloneError(f"failed to clone repository {mask_basic_auth(opt.url)}") from e

        repository = Repository(repo)
        clean_url = remove_basic_auth_from_url(opt.url)
        if clean_url != opt.url:
            repository.set_remote_urls(ORIGIN, [clean_url])

        return repository

    def pull(self, ctx: RunContext, opt: PullOption) -> None:
        """
        Fast-forward an existing working copy from its remote.

        An already up-to-date working copy is recorded in the metadata sink.

        Raises:
            UncleanWorkspaceError: If the working copy has local changes
            PullError: If the pull fails
        """
        self._check_cancelled(ctx, "pull")
        repo = open_repository(opt.path)

        if repo.bare:
            raise WorktreeError(f"failed to access repository worktree: {opt.path}")

        if repo.is_dirty(untracked_files=True):
            raise UncleanWorkspaceError(f"workspace is unclean, aborting: {opt.path}")

        env = self._auth_env(opt.auth)

        args = ["--ff-only", opt.remote]
        if not repo.head.is_detached:
            args.append(repo.active_branch.name)

        try:
            _, stdout, stderr = repo.git.pull(
                *args,
                env=env,
                with_extended_output=True,
                kill_after_timeout=ctx.git_timeout
            )
        except GitCommandError as e:
            raise PullError(f"failed to pull repository: {opt.path}") from e

        if is_up_to_date(f"{stdout}\n{stderr}"):
            self.logger.debug(f"Repository already up-to-date: {opt.path}")
            ctx.metadata.add_failure(UPTODATE, opt.name or Path(opt.path).name)

        self.fetch(ctx, Repository(repo), auth_env=env)

    def push(self, ctx: RunContext, repository: Repository, opt: PushOption) -> None:
        """
        Push branches and tags to ``opt.target``.

        An already up-to-date target is recorded in the metadata sink and is
        not an error.

        Raises:
            SSHPermissionDeniedError: If the SSH agent key is rejected
            PushError: For any other push failure
        """
        self._check_cancelled(ctx, "push")
        env = self._auth_env(opt.auth)
        target = mask_basic_auth(opt.target)

        flags = ["--porcelain", "--verbose"]
        if opt.prune:
            flags.append("--prune")

        self.logger.debug(f"Pushing {repository.path} to {target} with ref specs {list(opt.ref_specs)}")

        try:
            _, stdout, stderr = repository.git_repo.git.push(
                *flags, opt.target, *opt.ref_specs,
                env=env,
                with_extended_output=True,
                kill_after_timeout=ctx.git_timeout
            )
        except GitCommandError as e:
            if is_permission_denied(e):
                raise SSHPermissionDeniedError() from e
            raise PushError(f"failed to push to target repository: {target}") from e

        if is_up_to_date(f"{stdout}\n{stderr}"):
            self.logger.debug(f"Repository already up-to-date: {target}")
            ctx.metadata.add_failure(UPTODATE, opt.name or repository.name)

    def fetch(self, ctx: RunContext, repository: Repository, auth_env: Optional[Dict[str, str]] = None) -> None:
        """Refresh every ref from origin except pull-request refs."""
        self._check_cancelled(ctx, "fetch")

        try:
            repository.git_repo.git.fetch(
                "--update-head-ok", ORIGIN, *FETCH_REF_SPECS,
                env=auth_env or {},
                kill_after_timeout=ctx.git_timeout
            )
        except GitCommandError as e:
            raise FetchError(f"failed to fetch branches: {repository.path}") from e

    def init_repository(self, path: Path, bare: bool) -> Repo:
        """Create an empty repository for the from-scratch sequence."""
        self.logger.debug(f"Initializing {'bare' if bare else 'working'} repository at {path}")
        return Repo.init(str(path), bare=bare, mkdir=True)
