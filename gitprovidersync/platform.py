"""Git executable discovery for the binary engine."""

import logging
import platform
import shutil
import subprocess
from typing import Optional, List

from .errors import GitBinaryNotFoundError


# Checked in order; the bare name is resolved through PATH
_CANDIDATE_PATHS = ["git", "/usr/bin/git", "/usr/local/bin/git", "/opt/homebrew/bin/git"]


def is_windows() -> bool:
    """Check if running on Windows."""
    return platform.system().lower() == "windows"


def get_git_executable() -> str:
    """
    Get the Git executable name for the current platform.

    Returns:
        Git executable name
    """
    if is_windows():
        return "git.exe"
    return "git"


def _candidate_paths() -> List[str]:
    candidates = [get_git_executable()] + _CANDIDATE_PATHS[1:]
    resolved = shutil.which(candidates[0])
    if resolved:
        candidates.insert(0, resolved)
    return candidates


def validate_git_availability(git_cmd: Optional[str] = None) -> tuple[bool, Optional[str]]:
    """
    Validate that Git is available.

    Args:
        git_cmd: Executable to probe, defaults to the platform name

    Returns:
        Tuple of (is_available, error_message)
    """
    git_cmd = git_cmd or get_git_executable()

    try:
        result = subprocess.run(
            [git_cmd, "--version"],
            capture_output=True,
            text=True,
            timeout=10
        )

        if result.returncode == 0 and result.stdout.startswith("git version"):
            return True, None
        else:
            return False, f"Git command failed: {result.stderr}"

    except FileNotFoundError:
        return False, f"Git executable '{git_cmd}' not found"
    except PermissionError:
        return False, f"Git executable '{git_cmd}' is not executable"
    except subprocess.TimeoutExpired:
        return False, "Git command timed out"


def locate_git_binary() -> str:
    """
    Find a working git executable.

    Returns:
        Path or name of the first candidate answering ``git --version``

    Raises:
        GitBinaryNotFoundError: If no candidate works
    """
    logger = logging.getLogger('gitprovidersync.platform')
    failures = []

    for candidate in _candidate_paths():
        available, error = validate_git_availability(candidate)
        if available:
            logger.debug(f"Using git executable: {candidate}")
            return candidate
        failures.append(error)

    raise GitBinaryNotFoundError(f"failed to find a Git executable: {'; '.join(failures)}")
