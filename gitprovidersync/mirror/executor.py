"""Bounded, cancellable execution of the git executable."""

import logging
import os
import subprocess
import time
from pathlib import Path
from typing import Dict, Optional, Union

from ..errors import (
    CommandCancelledError, CommandTimeoutError, GitBinaryNotFoundError, GitCommandFailedError
)
from ..model import RunContext
from ..stringconvert import mask_basic_auth


# Seconds between cancellation checks while a child process runs
POLL_INTERVAL = 0.2


class GitExecutor:
    """
    Runs git subprocesses inside a RunContext.

    Every invocation is bounded by the context's git timeout and is killed as
    soon as the context is cancelled.
    """

    def __init__(self, binary_path: str):
        if not binary_path:
            raise GitBinaryNotFoundError("failed to find Git binary path")
        self.binary_path = binary_path
        self.logger = logging.getLogger('gitprovidersync.mirror.executor')

    def _describe(self, args) -> str:
        return " ".join([self.binary_path] + [mask_basic_auth(str(arg)) for arg in args])

    def _kill(self, process: subprocess.Popen) -> None:
        process.kill()
        try:
            process.communicate(timeout=5)
        except subprocess.TimeoutExpired:
            self.logger.warning(f"Git process {process.pid} did not exit after kill")

    def run(self, ctx: RunContext, env: Optional[Dict[str, str]],
            working_dir: Union[str, Path], *args: str) -> str:
        """
        Run a git command and return its combined stdout/stderr.

        Args:
            ctx: Run context providing the timeout and cancellation flag
            env: Extra environment variables layered over the process environment
            working_dir: Directory to run in, must not be empty
            *args: git arguments

        Returns:
            Captured output

        Raises:
            CommandTimeoutError: If the command outlives ``ctx.git_timeout``
            CommandCancelledError: If the context is cancelled while running
            GitCommandFailedError: If git exits non-zero
        """
        if not working_dir:
            raise ValueError("failed to run Git cmd, working directory was empty")

        command = [self.binary_path] + [str(arg) for arg in args]
        description = self._describe(args)

        process_env = os.environ.copy()
        process_env.setdefault("GIT_TERMINAL_PROMPT", "0")
        if env:
            process_env.update(env)

        if ctx.cancelled:
            raise CommandCancelledError(f"git command cancelled before start: '{description}'")

        self.logger.debug(f"Running '{description}' in {working_dir}")

        try:
            process = subprocess.Popen(
                command,
                cwd=str(working_dir),
                env=process_env,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True
            )
        except FileNotFoundError as e:
            raise GitBinaryNotFoundError(f"failed to start '{self.binary_path}'") from e

        deadline = time.monotonic() + ctx.git_timeout
        while True:
            if ctx.cancelled:
                self._kill(process)
                raise CommandCancelledError(f"git command cancelled: '{description}'")

            remaining = deadline - time.monotonic()
            if remaining <= 0:
                self._kill(process)
                raise CommandTimeoutError(
                    f"git command timed out after {ctx.git_timeout:.0f}s: '{description}'"
                )

            try:
                output, _ = process.communicate(timeout=min(POLL_INTERVAL, remaining))
                break
            except subprocess.TimeoutExpired:
                continue

        if process.returncode != 0:
            raise GitCommandFailedError(
                f"error executing '{description}': exit status {process.returncode}. err: {output.strip()}",
                returncode=process.returncode,
                output=output
            )

        self.logger.debug(f"Git command output: {output.strip()}")
        return output

    def run_with_output(self, ctx: RunContext, working_dir: Union[str, Path], *args: str) -> str:
        """Run a git command without extra environment and return its output."""
        return self.run(ctx, None, working_dir, *args)
