"""Writer for plain directory targets holding one working copy per repository."""

import logging
from pathlib import Path
from typing import Optional, Union

from git import GitCommandError

from ..config import SyncConfig
from ..errors import DirectoryCreationError, RepoInitializationError
from ..mirror.gitlib import GitLibEngine
from ..mirror.remotes import RemoteManager
from ..model import PullOption, PushOption, Repository, RunContext


def target_name(ctx: RunContext, repository: Repository, name: Optional[str] = None) -> str:
    """Name of the repository inside a local target."""
    if name:
        return name
    return repository.project_info.name(ctx.options.ascii_name)


def resolve_target_dir(root: Union[str, Path], name: str) -> Path:
    """Return ``<root>/<name>``, creating the root when missing."""
    root = Path(root).expanduser()
    try:
        root.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise DirectoryCreationError(f"failed to create target directory: {root}") from e
    return root / name


class DirectoryWriter:
    """
    Keeps a working copy of every mirrored repository under a root directory.

    A missing copy, or any copy when force pushing, is rebuilt from scratch;
    an existing copy is pulled from its upstream instead.
    """

    def __init__(self, sync_cfg: SyncConfig, engine: Optional[GitLibEngine] = None,
                 remote_manager: Optional[RemoteManager] = None):
        self.sync_cfg = sync_cfg
        self.engine = engine or GitLibEngine()
        self.remote_manager = remote_manager or RemoteManager()
        self.logger = logging.getLogger('gitprovidersync.targets.directory')

    def push(self, ctx: RunContext, repository: Repository, opt: PushOption, name: Optional[str] = None) -> None:
        """
        Write a repository below the root directory ``opt.target``.

        Args:
            ctx: Run context
            repository: Staged source repository
            opt: Push option whose target is the root directory
            name: Directory name, defaults to the project name
        """
        name = target_name(ctx, repository, name)
        target_dir = resolve_target_dir(opt.target, name)

        if ctx.options.force_push or opt.force or not target_dir.exists():
            self.logger.info(f"Writing {name} from scratch to {target_dir}")
            self.initialize_repository(ctx, target_dir, repository, name)
            return

        self.logger.info(f"Updating existing copy of {name} in {target_dir}")
        self.pull(ctx, self.sync_cfg, opt.target, repository, name)

    def pull(self, ctx: RunContext, sync_cfg: SyncConfig, path: Union[str, Path],
             repository: Repository, name: Optional[str] = None) -> None:
        """Pull the existing copy at ``<path>/<name>`` from its upstream."""
        name = target_name(ctx, repository, name)
        target_dir = resolve_target_dir(path, name)
        self.engine.pull(ctx, PullOption(path=target_dir, auth=sync_cfg.auth, name=name))

    def initialize_repository(self, ctx: RunContext, target_dir: Path, repository: Repository,
                              name: str = "") -> None:
        """Init a working copy, push the source into it and repoint origin and HEAD."""
        try:
            repo = self.engine.init_repository(target_dir, bare=False)
            # The push updates the checked out branch; set_remote_and_branch syncs the tree
            with repo.config_writer() as writer:
                writer.set_value("receive", "denyCurrentBranch", "ignore")
            repo.close()
        except (GitCommandError, OSError) as e:
            raise RepoInitializationError(f"failed to initialize target repository: {target_dir}") from e

        self.engine.push(ctx, repository, PushOption.new(str(target_dir), force=True, name=name))
        self.remote_manager.set_remote_and_branch(target_dir, repository)
