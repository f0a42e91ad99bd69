"""Local tracking-branch reconstruction after an external clone or fetch."""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Union

from ..config import ORIGIN
from ..errors import FetchError, GitCommandFailedError, PullError
from ..model import RunContext
from .executor import GitExecutor


REMOTE_PREFIX = f"{ORIGIN}/"


@dataclass
class TrackingResult:
    """Outcome of a tracking-branch pass; warnings never abort the mirror."""
    created: List[str] = field(default_factory=list)
    existing: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


class BranchTracker:
    """Creates a local branch for every branch on origin."""

    def __init__(self, executor: GitExecutor):
        self.executor = executor
        self.logger = logging.getLogger('gitprovidersync.mirror.branch_tracker')

    def fetch(self, ctx: RunContext, path: Union[str, Path]) -> TrackingResult:
        """Fetch and pull every remote, then create the missing tracking branches."""
        self.logger.debug(f"Fetching all remotes in {path}")

        try:
            self.executor.run(ctx, None, path, "fetch", "--all", "--prune")
        except GitCommandFailedError as e:
            raise FetchError(f"failed to fetch branches in {path}") from e

        try:
            self.executor.run(ctx, None, path, "pull", "--all")
        except GitCommandFailedError as e:
            raise PullError(f"failed to pull repository in {path}") from e

        return self.create_tracking_branches(ctx, path)

    def create_tracking_branches(self, ctx: RunContext, path: Union[str, Path]) -> TrackingResult:
        try:
            output = self.executor.run_with_output(ctx, path, "branch", "-r")
        except GitCommandFailedError as e:
            raise FetchError(f"failed to get remote branches in {path}") from e

        return self.process_tracking_branches(ctx, path, output)

    def process_tracking_branches(self, ctx: RunContext, path: Union[str, Path], raw_output: str) -> TrackingResult:
        """
        Create ``local -> origin/local`` for each line of a ``git branch -r`` listing.

        The symbolic HEAD line is skipped. An existing branch is only
        debug-logged; any other per-branch failure is logged and returned as a
        warning so one bad branch never blocks the rest.

        Args:
            ctx: Run context
            path: Working copy to create the branches in
            raw_output: Output of ``git branch -r``

        Returns:
            TrackingResult with created, already existing and failed branches
        """
        result = TrackingResult()

        for line in raw_output.splitlines():
            branch = line.strip()
            if not branch or "->" in branch:
                continue

            if not branch.startswith(REMOTE_PREFIX):
                self.logger.debug(f"Skipping branch of another remote: {branch}")
                continue

            local_branch = branch[len(REMOTE_PREFIX):]

            try:
                self.executor.run(ctx, None, path, "branch", "--track", local_branch, branch)
            except GitCommandFailedError as e:
                if "already exists" in str(e):
                    self.logger.debug(f"Tracking branch already exists: {local_branch}")
                    result.existing.append(local_branch)
                else:
                    warning = f"Could not create tracking branch for {branch}: {e}"
                    self.logger.warning(warning)
                    result.warnings.append(warning)
                continue

            self.logger.debug(f"Created tracking branch for {branch}")
            result.created.append(local_branch)

        return result
