"""Run loop: environments, sources, mirror targets and the staging workspace."""

import logging
import shutil
import signal
import sys
import tempfile
import threading
from pathlib import Path
from typing import Callable, List, Optional

from .config import (
    AppConfiguration, Config, RunOptions, SyncConfig,
    load_configuration, load_run_options, validate_configuration
)
from .errors import CommandCancelledError, StagingDirectoryError, error_handler
from .mirror import new_git_engine
from .model import Repository, RunContext, SyncRunMetainfo, INVALID, UPTODATE
from .orchestrator import MirrorOrchestrator, MirrorOutcome, clone_repositories, fetch_project_infos
from .platform import validate_git_availability
from .providers import new_provider_client
from .targets import new_target_writer


WORKSPACE_PREFIX = "gitprovidersync."


def setup_logging(config: Config) -> None:
    """Setup logging with the structured formatter used across the package."""
    class StructuredFormatter(logging.Formatter):
        def format(self, record):
            # Add structured data if available
            if hasattr(record, 'operation'):
                record.msg = f"[{record.operation}] {record.msg}"
            return super().format(record)

    logging.basicConfig(
        level=getattr(logging, config.log_level),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    formatter = StructuredFormatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    logger = logging.getLogger('gitprovidersync')
    logger.setLevel(getattr(logging, config.log_level))

    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(formatter)
        logger.addHandler(handler)
        logger.propagate = False


def create_workspace(config: Config) -> Path:
    """Create the staging workspace of a run below ``config.tmp_dir``."""
    config.tmp_dir.mkdir(parents=True, exist_ok=True)
    return Path(tempfile.mkdtemp(prefix=WORKSPACE_PREFIX, dir=str(config.tmp_dir)))


def remove_workspace(workspace: Path, parent: Path) -> None:
    """
    Delete a staging workspace.

    Raises:
        StagingDirectoryError: If the workspace is not inside ``parent`` or cannot be removed
    """
    logger = logging.getLogger('gitprovidersync.runner')

    workspace = Path(workspace).resolve()
    parent = Path(parent).resolve()
    if parent not in workspace.parents:
        raise StagingDirectoryError(f"refusing to remove {workspace}: not inside {parent}")

    try:
        shutil.rmtree(workspace)
        logger.debug(f"Removed staging workspace {workspace}")
    except FileNotFoundError:
        pass
    except OSError as e:
        raise StagingDirectoryError(f"failed to remove staging workspace {workspace}") from e


def log_summary(metadata: SyncRunMetainfo, outcomes: Optional[List[MirrorOutcome]] = None) -> None:
    logger = logging.getLogger('gitprovidersync.runner')

    logger.info(f"Mirrored {metadata.total} repositories from {metadata.source} to {metadata.target}")
    created = [outcome.name for outcome in outcomes or [] if outcome.created]
    if created:
        logger.info(f"Created {len(created)} projects at {metadata.target}: {', '.join(created)}")
    invalid = metadata.failures(INVALID)
    if invalid:
        logger.warning(f"Skipped {len(invalid)} repositories with invalid names: {', '.join(invalid)}")
    uptodate = metadata.failures(UPTODATE)
    if uptodate:
        logger.info(f"{len(uptodate)} repositories were already up to date: {', '.join(uptodate)}")
    logger.debug(str(metadata))


def sync_source(ctx: RunContext, source_name: str, sync_cfg: SyncConfig,
                client_factory: Callable = new_provider_client) -> List[SyncRunMetainfo]:
    """
    Mirror every project of one source to all of its mirror targets.

    Args:
        ctx: Run context holding options, workspace and cancellation flag
        source_name: Name of the source in the configuration
        sync_cfg: Source configuration with its mirrors
        client_factory: Builds provider clients from configuration records

    Returns:
        One SyncRunMetainfo per mirror target (empty on a dry run)
    """
    logger = logging.getLogger('gitprovidersync.runner')

    source_client = client_factory(sync_cfg)
    project_infos = fetch_project_infos(sync_cfg, source_client, ctx.options)

    if ctx.options.dry_run:
        for info in project_infos:
            logger.info(f"Dry run: would mirror {info.original_name}", extra={'operation': 'dry_run'})
            logger.debug(f"Project details: {info.debug_fields()}")
        return []

    repositories: List[Repository] = []
    results = []
    try:
        reader = new_git_engine(sync_cfg.use_git_binary)
        repositories = clone_repositories(ctx, reader, sync_cfg, project_infos)

        for mirror_name, mirror_cfg in sync_cfg.mirrors.items():
            metadata = SyncRunMetainfo(source=source_name, target=mirror_name)
            mirror_ctx = ctx.with_metadata(metadata)

            orchestrator = MirrorOrchestrator(
                sync_cfg, mirror_cfg,
                client_factory(mirror_cfg),
                new_target_writer(mirror_cfg, sync_cfg),
            )

            logger.info(f"Mirroring {len(repositories)} repositories to {mirror_name} ({mirror_cfg.provider_type})")
            outcomes = []
            for repository in repositories:
                if mirror_ctx.cancelled:
                    raise CommandCancelledError("sync run cancelled")
                outcomes.append(orchestrator.process(mirror_ctx, repository))

            log_summary(metadata, outcomes)
            results.append(metadata)
    finally:
        for repository in repositories:
            repository.close()

    return results


def sync(app_config: AppConfiguration, config: Optional[Config] = None,
         options: Optional[RunOptions] = None, cancel_event: Optional[threading.Event] = None,
         client_factory: Callable = new_provider_client) -> List[SyncRunMetainfo]:
    """
    Run a full sync over every environment and source.

    Args:
        app_config: Validated provider configuration
        config: Run-level settings, loaded from the environment when omitted
        options: Run options, loaded from the environment when omitted
        cancel_event: Event that cancels running git commands when set
        client_factory: Builds provider clients from configuration records

    Returns:
        The metadata of every mirror target processed

    Raises:
        GitProviderSyncError: The first error that aborted the run
    """
    logger = logging.getLogger('gitprovidersync.runner')

    config = config or load_configuration()
    options = options or load_run_options()

    workspace = create_workspace(config)
    logger.info(f"Using staging workspace {workspace}")

    ctx = RunContext(
        options=options,
        tmp_dir=workspace,
        git_timeout=config.git_timeout,
        cancel_event=cancel_event or threading.Event(),
    )

    results = []
    env_name = source_name = None
    completed = False
    try:
        for env_name, environment in app_config.environments.items():
            for source_name, sync_cfg in environment.items():
                logger.info(f"Syncing {env_name}.{source_name}", extra={'operation': 'sync'})
                results.extend(sync_source(ctx, source_name, sync_cfg, client_factory))
        completed = True
    except Exception as e:
        error_handler.handle_sync_error(e, {'environment': env_name, 'source': source_name})
        raise
    finally:
        if config.keep_workspace:
            logger.info(f"Keeping staging workspace {workspace}")
        else:
            try:
                remove_workspace(workspace, config.tmp_dir)
            except StagingDirectoryError as e:
                if completed:
                    raise
                logger.error(f"Failed to remove staging workspace after an aborted run: {e}")

    return results


def main(app_config: AppConfiguration) -> int:
    """
    Entry point for embedding the sync engine.

    Loads run-level settings and options from the environment, validates the
    provider configuration and runs the sync. SIGTERM cancels the running git
    command.

    Returns:
        Process exit code
    """
    try:
        config = load_configuration()
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    setup_logging(config)
    logger = logging.getLogger('gitprovidersync.runner')

    app_config.fill_defaults()
    problems = validate_configuration(app_config)
    for problem in problems:
        if problem.startswith("ERROR"):
            logger.error(problem)
        else:
            logger.warning(problem)
    if any(problem.startswith("ERROR") for problem in problems):
        return 1

    git_available, git_error = validate_git_availability()
    if not git_available:
        logger.warning(f"Git executable not available: {git_error}")

    cancel_event = threading.Event()

    def handle_term(signum, frame):
        logger.info("Termination requested, cancelling")
        cancel_event.set()

    signal.signal(signal.SIGTERM, handle_term)

    try:
        results = sync(app_config, config, load_run_options(), cancel_event)
    except KeyboardInterrupt:
        cancel_event.set()
        logger.info("Sync stopped by user (Ctrl+C)")
        return 130
    except Exception:
        return 1

    total = sum(metadata.total for metadata in results)
    logger.info(f"Sync completed: {total} repositories mirrored to {len(results)} targets")
    return 0
