"""Binary git engine driving the installed git executable."""

import logging
from pathlib import Path
from typing import Optional

from ..config import ORIGIN, SSH
from ..errors import (
    CloneError, FetchError, GitCommandFailedError, PullError, PushError,
    SSHPermissionDeniedError, UncleanWorkspaceError
)
from ..model import CloneOption, PullOption, PushOption, Repository, RunContext, UPTODATE
from ..platform import locate_git_binary
from ..stringconvert import add_basic_auth_to_url, mask_basic_auth, remove_basic_auth_from_url
from .auth import ssh_command_env
from .branch_tracker import BranchTracker
from .executor import GitExecutor
from .gitlib import FETCH_REF_SPECS, is_permission_denied, is_up_to_date
from .remotes import open_repository


CLONE_USERNAME = "anyuser"


class GitBinaryEngine:
    """
    Clone, pull, push and fetch through external git processes.

    A plain ``git clone`` only creates the default branch locally, so every
    clone and pull is followed by a BranchTracker pass.
    """

    def __init__(self, executor: Optional[GitExecutor] = None, branch_tracker: Optional[BranchTracker] = None):
        self.executor = executor or GitExecutor(locate_git_binary())
        self.branch_tracker = branch_tracker or BranchTracker(self.executor)
        self.logger = logging.getLogger('gitprovidersync.mirror.gitbinary')

    def prepare_clone_url(self, opt: CloneOption) -> str:
        """Embed the source token in the clone URL unless cloning over SSH."""
        if (opt.auth.protocol or "").lower() == SSH or not opt.auth.token:
            return opt.url
        return add_basic_auth_to_url(opt.url, CLONE_USERNAME, opt.auth.token)

    def clone(self, ctx: RunContext, opt: CloneOption) -> Repository:
        """
        Clone a source project into the staging workspace as a working copy.

        Raises:
            SSHPermissionDeniedError: If the SSH agent key is rejected
            CloneError: For any other clone failure
        """
        env = ssh_command_env(opt.auth.ssh_command, opt.auth.ssh_url_rewrite_from, opt.auth.ssh_url_rewrite_to)
        destination = ctx.staging_path(opt.name)
        destination.parent.mkdir(parents=True, exist_ok=True)

        clone_url = self.prepare_clone_url(opt)
        self.logger.info(f"Cloning {mask_basic_auth(clone_url)} into {destination}")

        try:
            self.executor.run(ctx, env, destination.parent, "clone", clone_url, str(destination))
        except GitCommandFailedError as e:
            if is_permission_denied(e):
                raise SSHPermissionDeniedError() from e
            raise CloneError(f"failed to clone repository {mask_basic_auth(opt.url)}") from e

        try:
            result = self.branch_tracker.fetch(ctx, destination)
            for warning in result.warnings:
                self.logger.warning(f"Tracking branch warning for {opt.name}: {warning}")
        except (FetchError, PullError) as e:
            self.logger.warning(f"Fetch after clone failed for {opt.name}: {e}")

        return self.finalize_clone(destination, clone_url, opt)

    def finalize_clone(self, destination, clone_url: str, opt: CloneOption) -> Repository:
        """Open the fresh clone and strip credentials from the stored origin URL."""
        repository = Repository(open_repository(destination))

        if (opt.auth.protocol or "").lower() != SSH:
            clean_url = remove_basic_auth_from_url(clone_url)
            if clean_url != clone_url:
                repository.set_remote_urls(ORIGIN, [clean_url])
                self.logger.debug(f"Removed credentials from origin of {destination}")

        return repository

    def pull(self, ctx: RunContext, opt: PullOption) -> None:
        """
        Pull into an existing working copy and refresh tracking branches.

        Raises:
            UncleanWorkspaceError: If the working copy has local changes
            PullError: If the pull fails
        """
        env = ssh_command_env(opt.auth.ssh_command, opt.auth.ssh_url_rewrite_from, opt.auth.ssh_url_rewrite_to)

        try:
            status = self.executor.run(ctx, None, opt.path, "status", "--porcelain")
        except GitCommandFailedError as e:
            raise PullError(f"failed to read status of {opt.path}") from e

        if status.strip():
            raise UncleanWorkspaceError(f"workspace is unclean, aborting: {opt.path}")

        args = ["pull", opt.remote]
        try:
            branch = self.executor.run(ctx, None, opt.path, "rev-parse", "--abbrev-ref", "HEAD").strip()
            if branch and branch != "HEAD":
                args.append(branch)
            output = self.executor.run(ctx, env, opt.path, *args)
        except GitCommandFailedError as e:
            raise PullError(f"failed to pull repository: {opt.path}") from e

        if is_up_to_date(output):
            self.logger.debug(f"Repository already up-to-date: {opt.path}")
            ctx.metadata.add_failure(UPTODATE, opt.name or Path(opt.path).name)

        result = self.branch_tracker.fetch(ctx, opt.path)
        for warning in result.warnings:
            self.logger.warning(f"Tracking branch warning for {opt.path}: {warning}")

    def push(self, ctx: RunContext, repository: Repository, opt: PushOption) -> None:
        """
        Push branches and tags from the staged clone to ``opt.target``.

        Raises:
            SSHPermissionDeniedError: If the SSH agent key is rejected
            PushError: For any other push failure
        """
        env = ssh_command_env(opt.auth.ssh_command, opt.auth.ssh_url_rewrite_from, opt.auth.ssh_url_rewrite_to)
        target = mask_basic_auth(opt.target)

        args = ["push", "--porcelain", "--verbose"]
        if opt.prune:
            args.append("--prune")
        args.append(opt.target)
        args.extend(opt.ref_specs)

        try:
            output = self.executor.run(ctx, env, repository.path, *args)
        except GitCommandFailedError as e:
            if is_permission_denied(e):
                raise SSHPermissionDeniedError() from e
            raise PushError(f"failed to push to target repository: {target}") from e

        if is_up_to_date(output):
            self.logger.debug(f"Repository already up-to-date: {target}")
            ctx.metadata.add_failure(UPTODATE, opt.name or repository.name)

    def fetch(self, ctx: RunContext, repository: Repository) -> None:
        """Refresh every ref from origin except pull-request refs."""
        try:
            self.executor.run(ctx, None, repository.path, "fetch", "--update-head-ok", ORIGIN, *FETCH_REF_SPECS)
        except GitCommandFailedError as e:
            raise FetchError(f"failed to fetch branches: {repository.path}") from e
