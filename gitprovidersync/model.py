"""Data model shared by the git engines, target writers and the orchestrator."""

import logging
import threading
from dataclasses import dataclass, field, replace
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from git import Repo, GitCommandError

from .config import AuthConfig, RunOptions, DEFAULT_GIT_TIMEOUT, ORIGIN
from .errors import InvalidRepositoryNameError, RemoteCreationError, RemoteNotFoundError
from .stringconvert import remove_linebreaks


# Failure buckets of a sync run
INVALID = "invalid"
UPTODATE = "uptodate"

HEADS_REF_SPEC = "refs/heads/*:refs/heads/*"
TAGS_REF_SPEC = "refs/tags/*:refs/tags/*"


@dataclass
class ProjectInfo:
    """Provider-reported facts about one source project."""
    original_name: str
    https_url: str = ""
    ssh_url: str = ""
    description: str = ""
    default_branch: str = ""
    visibility: str = ""
    last_activity_at: Optional[datetime] = None
    project_id: str = ""
    clean_name: Optional[str] = None

    def set_clean_name(self, name: str) -> None:
        """Record the sanitised name; it can only be set once."""
        if self.clean_name is not None and self.clean_name != name:
            raise ValueError(f"clean name already set for {self.original_name!r}")
        self.clean_name = name

    def name(self, ascii_name: bool = False) -> str:
        """
        Name to use for target URLs and paths.

        Raises:
            InvalidRepositoryNameError: If the ASCII name is requested and sanitising left nothing
        """
        if ascii_name and self.clean_name is not None:
            if not self.clean_name:
                raise InvalidRepositoryNameError(f"no ASCII name left for {self.original_name!r}")
            return self.clean_name
        return self.original_name

    def debug_fields(self) -> Dict[str, str]:
        return {
            'name': self.original_name,
            'default_branch': self.default_branch,
            'description': remove_linebreaks(self.description),
            'url': self.https_url,
            'visibility': self.visibility,
            'last_activity': self.last_activity_at.isoformat() if self.last_activity_at else "",
        }


@dataclass(frozen=True)
class Remote:
    """A named remote of a repository."""
    name: str
    url: str
    mirror: bool = False


class Repository:
    """
    A working copy or bare clone on disk together with its ProjectInfo.

    Wraps a GitPython ``Repo``; remote bookkeeping goes through the helpers
    below so both engines share one implementation.
    """

    def __init__(self, git_repo: Repo, project_info: Optional[ProjectInfo] = None):
        if git_repo is None:
            raise ValueError("git_repo must not be None")
        self.git_repo = git_repo
        self.project_info = project_info

    @property
    def path(self) -> Path:
        """Directory that holds the repository (the git dir for bare clones)."""
        if self.git_repo.bare:
            return Path(self.git_repo.git_dir)
        return Path(self.git_repo.working_tree_dir)

    @property
    def name(self) -> str:
        """Project name, or the directory name when no ProjectInfo is attached."""
        if self.project_info is not None:
            return self.project_info.original_name
        return self.path.name[:-4] if self.path.name.endswith(".git") else self.path.name

    @property
    def bare(self) -> bool:
        return self.git_repo.bare

    def has_remote(self, name: str) -> bool:
        return any(remote.name == name for remote in self.git_repo.remotes)

    def remote_urls(self, name: str) -> List[str]:
        """All configured URLs of a remote, in configuration order."""
        if not self.has_remote(name):
            raise RemoteNotFoundError(f"failed to get remote '{name}'")

        with self.git_repo.config_reader("repository") as reader:
            section = f'remote "{name}"'
            if not reader.has_option(section, "url"):
                return []
            return [url for url in reader.get_values(section, "url") if url]

    def remote(self, name: str) -> Remote:
        """
        Look up a remote by name.

        Raises:
            RemoteNotFoundError: If the remote is missing or has no URL
        """
        urls = self.remote_urls(name)
        if not urls:
            raise RemoteNotFoundError(f"remote '{name}' has no URL")

        with self.git_repo.config_reader("repository") as reader:
            mirror = reader.get_value(f'remote "{name}"', "mirror", default=False)

        return Remote(name=name, url=urls[0], mirror=bool(mirror))

    def delete_remote(self, name: str) -> None:
        """Remove a remote; a missing remote is not an error."""
        if not self.has_remote(name):
            return

        try:
            self.git_repo.delete_remote(self.git_repo.remote(name))
        except GitCommandError as e:
            raise RemoteCreationError(f"failed to delete remote '{name}'") from e

    def create_remote(self, name: str, url: str, mirror: bool = False) -> None:
        """Add a remote, optionally flagged as a mirror."""
        try:
            remote = self.git_repo.create_remote(name, url)
            if mirror:
                with remote.config_writer as writer:
                    writer.set_value("mirror", "true")
        except GitCommandError as e:
            raise RemoteCreationError(f"failed to create remote '{name}'") from e

    def set_remote_urls(self, name: str, urls: List[str]) -> None:
        """Replace the URL list of a remote, creating it when missing."""
        if not urls:
            raise RemoteCreationError(f"no URLs given for remote '{name}'")

        if not self.has_remote(name):
            self.create_remote(name, urls[0])
            urls = urls[1:]
        else:
            # set-url refuses multi-valued keys, so the URL list is rewritten directly
            with self.git_repo.config_writer("repository") as writer:
                writer.remove_option(f'remote "{name}"', "url")

        section = f'remote "{name}"'
        with self.git_repo.config_writer("repository") as writer:
            for url in urls:
                writer.add_value(section, "url", url)

    def close(self) -> None:
        self.git_repo.close()


@dataclass(frozen=True)
class CloneOption:
    """Options for cloning a source project into the staging workspace."""
    name: str
    url: str
    mirror: bool = True
    non_bare: bool = False
    auth: AuthConfig = field(default_factory=AuthConfig)
    provider_type: str = ""


@dataclass(frozen=True)
class PullOption:
    """Options for integrating upstream changes into an existing working copy."""
    path: Path
    auth: AuthConfig = field(default_factory=AuthConfig)
    remote: str = ORIGIN
    name: str = ""


@dataclass(frozen=True)
class PushOption:
    """Options for pushing branches and tags to a target."""
    target: str
    ref_specs: Tuple[str, ...] = (HEADS_REF_SPEC, TAGS_REF_SPEC)
    prune: bool = False
    force: bool = False
    auth: AuthConfig = field(default_factory=AuthConfig)
    name: str = ""

    @classmethod
    def new(cls, target: str, prune: bool = False, force: bool = False,
            auth: Optional[AuthConfig] = None, name: str = "") -> "PushOption":
        """Build a push option with the standard ref specs, '+'-prefixed when forcing."""
        ref_specs = [HEADS_REF_SPEC, TAGS_REF_SPEC]
        if force:
            ref_specs = [spec if spec.startswith(("^", "+")) else "+" + spec for spec in ref_specs]
        return cls(target=target, ref_specs=tuple(ref_specs), prune=prune, force=force,
                   auth=auth or AuthConfig(), name=name)


@dataclass(frozen=True)
class CreateOption:
    """Request for a new project at a target provider."""
    name: str
    visibility: str
    description: str
    default_branch: str
    disabled: bool = False


@dataclass
class SyncRunMetainfo:
    """
    Outcome of one mirror-target iteration.

    Written by the engines and the orchestrator, read only by the run summary.
    Execution is strictly sequential, so no locking is done here; running mirror
    targets in parallel would require serialising every update.
    """
    source: str = ""
    target: str = ""
    total: int = 0
    fail: Dict[str, List[str]] = field(default_factory=dict)

    def add_failure(self, key: str, value: str) -> None:
        self.fail.setdefault(key, []).append(value)

    def increment(self) -> None:
        self.total += 1

    def failures(self, key: str) -> List[str]:
        return list(self.fail.get(key, []))

    def __str__(self) -> str:
        if self.fail:
            failures = "; ".join(f"{key}: {', '.join(values)}" for key, values in self.fail.items())
            fail_info = f"Failures: {{{failures}}}"
        else:
            fail_info = "No failures"
        return f"SyncRunMetainfo{{Source: {self.source}, Target: {self.target}, Total: {self.total}, {fail_info}}}"


@dataclass
class RunContext:
    """
    Explicit execution scope of a sync run.

    Carries the run options, the metadata sink of the current mirror target,
    the staging workspace and the cancellation flag honoured by git subprocesses.
    """
    options: RunOptions = field(default_factory=RunOptions)
    metadata: SyncRunMetainfo = field(default_factory=SyncRunMetainfo)
    tmp_dir: Optional[Path] = None
    git_timeout: float = DEFAULT_GIT_TIMEOUT
    cancel_event: threading.Event = field(default_factory=threading.Event)

    def cancel(self) -> None:
        logging.getLogger('gitprovidersync.model').info("Cancellation requested")
        self.cancel_event.set()

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def with_metadata(self, metadata: SyncRunMetainfo) -> "RunContext":
        """Same scope (and cancellation flag) with a fresh metadata sink."""
        return replace(self, metadata=metadata)

    def staging_path(self, name: str) -> Path:
        """Location of a repository inside the staging workspace."""
        if self.tmp_dir is None:
            raise ValueError("staging workspace is not set on the run context")
        return self.tmp_dir / name
