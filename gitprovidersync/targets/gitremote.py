"""Writer for remote git hosts."""

import logging
from typing import Optional

from ..model import PushOption, Repository, RunContext


class GitRemoteWriter:
    """Pushes straight to the destination URL resolved by the orchestrator."""

    def __init__(self, engine):
        self.engine = engine
        self.logger = logging.getLogger('gitprovidersync.targets.gitremote')

    def push(self, ctx: RunContext, repository: Repository, opt: PushOption, name: Optional[str] = None) -> None:
        self.logger.debug(f"Pushing {name or repository.path} with force={opt.force}")
        self.engine.push(ctx, repository, opt)
