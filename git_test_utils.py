"""Helpers creating throw-away git repositories for the test suite."""

import os
import subprocess
from pathlib import Path
from typing import Iterable

from git import Repo

from gitprovidersync.model import ProjectInfo, Repository
from gitprovidersync.platform import get_git_executable


GIT_ENV = {
    "GIT_AUTHOR_NAME": "Test User",
    "GIT_AUTHOR_EMAIL": "test@example.com",
    "GIT_COMMITTER_NAME": "Test User",
    "GIT_COMMITTER_EMAIL": "test@example.com",
    "GIT_CONFIG_NOSYSTEM": "1",
    "GIT_TERMINAL_PROMPT": "0",
}


def git(cwd: Path, *args: str) -> str:
    """Run git in ``cwd`` and return stdout."""
    env = os.environ.copy()
    env.update(GIT_ENV)
    result = subprocess.run(
        [get_git_executable()] + list(args),
        cwd=str(cwd),
        env=env,
        check=True,
        capture_output=True,
        text=True
    )
    return result.stdout


def commit_file(work_dir: Path, filename: str, content: str, message: str = None) -> None:
    (work_dir / filename).write_text(content)
    git(work_dir, "add", filename)
    git(work_dir, "commit", "-q", "-m", message or f"Add {filename}")


def create_upstream_repository(base_dir: Path, name: str = "upstream",
                               branches: Iterable[str] = ("dev",), tag: str = "v1.0") -> Path:
    """
    Create a working repository with a ``main`` branch, extra branches and a tag.

    Returns:
        Path of the repository, usable as a clone URL
    """
    work_dir = base_dir / name
    work_dir.mkdir(parents=True)

    git(work_dir, "init", "-q")
    git(work_dir, "symbolic-ref", "HEAD", "refs/heads/main")
    commit_file(work_dir, "README.md", "# Test Repository\n", "Initial commit")

    for branch in branches:
        git(work_dir, "checkout", "-q", "-b", branch)
        commit_file(work_dir, f"{branch}.txt", f"{branch} branch\n")
        git(work_dir, "checkout", "-q", "main")

    if tag:
        git(work_dir, "tag", tag)

    return work_dir


def mirror_clone(upstream: Path, destination: Path, project_info: ProjectInfo = None) -> Repository:
    """Bare mirror clone of ``upstream`` wrapped as a Repository."""
    git(destination.parent, "clone", "-q", "--mirror", str(upstream), str(destination))
    return Repository(Repo(str(destination)), project_info)


def local_branches(path: Path) -> set:
    output = git(path, "for-each-ref", "--format=%(refname:short)", "refs/heads")
    return set(output.split())
