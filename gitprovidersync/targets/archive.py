"""Writer producing timestamped tar.gz snapshots of bare repositories."""

import logging
import os
import shutil
import tarfile
import threading
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Tuple, Union

from git import GitCommandError

from ..errors import (
    ArchiveCreationError, DirectoryCreationError, NoFilesToArchiveError,
    RepoInitializationError, StagingDirectoryError
)
from ..mirror.gitlib import GitLibEngine
from ..mirror.remotes import RemoteManager
from ..model import PushOption, Repository, RunContext
from .directory import target_name


ARCHIVE_SUFFIX = ".tar.gz"
ARCHIVE_MODE = 0o644

_timestamp_lock = threading.Lock()
_last_archive_millis = 0


def archive_timestamp(now: Optional[datetime] = None) -> str:
    """
    Return ``_YYYYMMDD_HHMMSS_<unix millis>``.

    The millisecond part is strictly increasing within the process, so two
    archives of one repository never share a name.
    """
    global _last_archive_millis

    now = now or datetime.now()
    millis = int(now.timestamp() * 1000)

    with _timestamp_lock:
        if millis <= _last_archive_millis:
            millis = _last_archive_millis + 1
        _last_archive_millis = millis

    return f"_{now:%Y%m%d_%H%M%S}_{millis}"


def archive_target_path(name: str, target_dir: Union[str, Path]) -> str:
    """Full path of the next archive for ``name`` below ``target_dir``."""
    return str(Path(target_dir) / f"{name}{archive_timestamp()}{ARCHIVE_SUFFIX}")


def get_storage_path(target: str) -> Path:
    """Staging directory next to the archive: its path without ``.tar.gz``."""
    staging = Path(target[:-len(ARCHIVE_SUFFIX)] if target.endswith(ARCHIVE_SUFFIX) else target)
    try:
        staging.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise DirectoryCreationError(f"failed to create directory: {staging.parent}") from e
    return staging


def map_files_to_archive(source_dir: Path, name: str) -> List[Tuple[Path, str]]:
    """
    List every entry below ``source_dir`` with its archive name.

    The root itself maps to ``name``; all other entries are placed below it.

    Raises:
        NoFilesToArchiveError: If nothing but the root was found
    """
    entries = [(source_dir, name)]

    for dirpath, dirnames, filenames in os.walk(source_dir):
        dirnames.sort()
        current = Path(dirpath)
        for entry in dirnames + sorted(filenames):
            path = current / entry
            entries.append((path, f"{name}/{path.relative_to(source_dir).as_posix()}"))

    if len(entries) <= 1:
        raise NoFilesToArchiveError(f"no files found to archive: {source_dir}")

    return entries


def create_archive(source_dir: Union[str, Path], target_path: Union[str, Path], name: str) -> Path:
    """
    Compress ``source_dir`` into a gzip tar at ``target_path``.

    No file is created when there is nothing to archive.
    """
    logger = logging.getLogger('gitprovidersync.targets.archive')
    source_dir = Path(source_dir)
    target_path = Path(target_path)

    entries = map_files_to_archive(source_dir, name)

    try:
        with tarfile.open(target_path, "w:gz") as tar:
            for path, arcname in entries:
                tar.add(str(path), arcname=arcname, recursive=False)
        os.chmod(target_path, ARCHIVE_MODE)
    except (OSError, tarfile.TarError) as e:
        if target_path.exists():
            target_path.unlink()
        raise ArchiveCreationError(f"failed to create archive file: {target_path}") from e

    logger.info(f"Created archive {target_path} with {len(entries)} entries")
    return target_path


class ArchiveWriter:
    """Writes a bare copy of the repository into a timestamped tar.gz archive."""

    def __init__(self, engine: Optional[GitLibEngine] = None, remote_manager: Optional[RemoteManager] = None):
        self.engine = engine or GitLibEngine()
        self.remote_manager = remote_manager or RemoteManager()
        self.logger = logging.getLogger('gitprovidersync.targets.archive')

    def push(self, ctx: RunContext, repository: Repository, opt: PushOption, name: Optional[str] = None) -> None:
        """
        Stage a bare copy next to ``opt.target``, archive it and remove the staging copy.

        Args:
            ctx: Run context
            repository: Staged source repository
            opt: Push option whose target is the archive file path
            name: Top-level directory inside the archive, defaults to the project name
        """
        name = target_name(ctx, repository, name)
        staging = get_storage_path(opt.target)

        try:
            self.initialize_repository(ctx, staging, repository, name)
            create_archive(staging, opt.target, name)
        finally:
            self._remove_staging(staging)

    def initialize_repository(self, ctx: RunContext, path: Path, repository: Repository, name: str = "") -> None:
        """Init a bare repository, push the source into it and repoint origin and HEAD."""
        try:
            self.engine.init_repository(path, bare=True).close()
        except (GitCommandError, OSError) as e:
            raise RepoInitializationError(f"failed to initialize target repository: {path}") from e

        self.engine.push(ctx, repository, PushOption.new(str(path), force=True, name=name))
        self.remote_manager.set_remote_and_branch(path, repository)

    def _remove_staging(self, staging: Path) -> None:
        if not staging.exists():
            return
        try:
            shutil.rmtree(staging)
        except OSError as e:
            raise StagingDirectoryError(f"failed to remove dir {staging}") from e
        self.logger.debug(f"Removed staging directory {staging}")
