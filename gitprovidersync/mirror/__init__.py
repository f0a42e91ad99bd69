"""Git engines and the remote/branch bookkeeping they share."""

from .auth import AuthResolver, BasicAuth, SSHAgentAuth
from .branch_tracker import BranchTracker, TrackingResult
from .executor import GitExecutor
from .gitbinary import GitBinaryEngine
from .gitlib import GitLibEngine
from .remotes import RemoteManager


def new_git_engine(use_git_binary: bool = False):
    """Select the library or the binary engine; both expose clone/pull/push/fetch."""
    if use_git_binary:
        return GitBinaryEngine()
    return GitLibEngine()


__all__ = [
    'AuthResolver', 'BasicAuth', 'SSHAgentAuth', 'BranchTracker', 'TrackingResult',
    'GitExecutor', 'GitBinaryEngine', 'GitLibEngine', 'RemoteManager', 'new_git_engine'
]
