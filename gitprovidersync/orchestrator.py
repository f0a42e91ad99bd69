"""
Mirror pipeline for one source repository and one mirror target.

Also holds the source side of a run: listing and filtering the source
projects and cloning them into the staging workspace.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

from .config import AuthConfig, MirrorConfig, RunOptions, SyncConfig, GPSUPSTREAM, SSH, HTTPS
from .errors import (
    GitProviderSyncError, CreateProjectError, DefaultBranchError, InvalidProjectInfoError,
    InvalidRepositoryNameError, ProtectionError, ProviderClientError, PushChangesError,
    RemoteNotFoundError, UpstreamRemoteError
)
from .mirror.remotes import RemoteManager
from .model import CloneOption, CreateOption, ProjectInfo, PushOption, Repository, RunContext, INVALID
from .providers.client import ProviderClient
from .providers.filters import filter_by_activity, filter_included_excluded
from .providers.visibility import map_visibility
from .stringconvert import (
    add_basic_auth_to_url, mask_basic_auth, remove_basic_auth_from_url,
    remove_linebreaks, remove_non_alphanumeric_chars
)
from .targets.archive import archive_target_path


DESCRIPTION_TEMPLATE = "Git Provider Sync cloned this from: {url}: "

# Username placed in target URLs; token based auth ignores it
URL_USERNAME = "any"

SKIPPED = "skipped"
MIRRORED = "mirrored"


@dataclass
class MirrorOutcome:
    """Result of mirroring one repository to one target."""
    name: str
    status: str
    target: str = ""
    created: bool = False
    forced: bool = False
    project_id: str = ""

    @property
    def skipped(self) -> bool:
        return self.status == SKIPPED


def fetch_project_infos(sync_cfg: SyncConfig, client: ProviderClient,
                        options: Optional[RunOptions] = None) -> List[ProjectInfo]:
    """
    List the source projects to mirror.

    Args:
        sync_cfg: Source configuration
        client: Provider client of the source
        options: Run options; their active-from limit overrides the source's

    Returns:
        Project infos that passed the include/exclude lists and the activity filter

    Raises:
        ProviderClientError: If the provider could not be queried
        InvalidProjectInfoError: If the provider returned a project without a name
    """
    logger = logging.getLogger('gitprovidersync.orchestrator')
    options = options or RunOptions()

    logger.info(f"Fetching project informations of {sync_cfg.owner} from {sync_cfg.get_domain()}")
    try:
        project_infos = client.list_projects(sync_cfg.owner, sync_cfg.owner_type, sync_cfg.include_forks)
    except GitProviderSyncError:
        raise
    except Exception as e:
        raise ProviderClientError(f"failed to fetch project informations of {sync_cfg.owner}") from e

    for info in project_infos:
        if info is None or not info.original_name:
            raise InvalidProjectInfoError("provider returned a project without a name")

    project_infos = filter_included_excluded(
        project_infos,
        sync_cfg.repositories.included_repositories(),
        sync_cfg.repositories.excluded_repositories(),
    )

    active_from_limit = options.active_from_limit or sync_cfg.active_from_limit
    project_infos = filter_by_activity(project_infos, active_from_limit)

    logger.info(f"Found {len(project_infos)} projects to mirror")
    return project_infos


def clone_repositories(ctx: RunContext, reader, sync_cfg: SyncConfig,
                       project_infos: List[ProjectInfo]) -> List[Repository]:
    """
    Clone every source project into the staging workspace.

    Args:
        ctx: Run context holding the staging workspace
        reader: Git engine used for cloning
        sync_cfg: Source configuration
        project_infos: Projects to clone

    Returns:
        The cloned repositories, each carrying its ProjectInfo
    """
    logger = logging.getLogger('gitprovidersync.orchestrator')

    use_ssh = sync_cfg.auth.protocol.lower() == SSH
    repositories = []

    for info in project_infos:
        info.set_clean_name(remove_non_alphanumeric_chars(info.original_name))
        # Names without ASCII characters are rejected later by the name gate
        name = info.clean_name if ctx.options.ascii_name and info.clean_name else info.original_name
        url = info.ssh_url if use_ssh else info.https_url

        logger.info(f"Cloning {info.original_name} from {mask_basic_auth(url)}")
        try:
            repository = reader.clone(ctx, CloneOption(
                name=name,
                url=url,
                mirror=True,
                auth=sync_cfg.auth,
                provider_type=sync_cfg.provider_type,
            ))
        except GitProviderSyncError as e:
            logger.error(f"Failed to clone {info.original_name}: {e}")
            raise

        repository.project_info = info
        repositories.append(repository)

    return repositories


def build_description(prefix: str, upstream_url: str, description: str) -> str:
    """Description of a newly created mirror project."""
    if not prefix:
        prefix = DESCRIPTION_TEMPLATE.format(url=remove_basic_auth_from_url(upstream_url))
    return remove_linebreaks(prefix + description)


class MirrorOrchestrator:
    """
    Pushes source repositories to one mirror target.

    For each repository: validate the name, make sure the target project
    exists, lift branch protection when configured, write through the
    target writer, then sync the default branch and protect again.
    """

    def __init__(self, sync_cfg: SyncConfig, mirror_cfg: MirrorConfig, client: ProviderClient,
                 writer, remote_manager: Optional[RemoteManager] = None):
        self.sync_cfg = sync_cfg
        self.mirror_cfg = mirror_cfg
        self.client = client
        self.writer = writer
        self.remote_manager = remote_manager or RemoteManager()
        self.logger = logging.getLogger('gitprovidersync.orchestrator')

    def project_name(self, ctx: RunContext, repository: Repository) -> str:
        ascii_name = ctx.options.ascii_name or self.mirror_cfg.settings.ascii_name
        return repository.project_info.name(ascii_name)

    def ignore_invalid_name(self, ctx: RunContext) -> bool:
        return ctx.options.ignore_invalid_name or self.mirror_cfg.settings.ignore_invalid_name

    def force_push(self, ctx: RunContext) -> bool:
        return ctx.options.force_push or self.mirror_cfg.settings.force_push

    def check_name(self, ctx: RunContext, name: str) -> bool:
        """
        Check the name against the target's naming rules.

        Returns:
            False if the repository should be skipped

        Raises:
            InvalidRepositoryNameError: If the name is invalid and not ignored
        """
        if self.client.is_valid_project_name(name):
            return True

        self.reject_name(ctx, name)
        return False

    def reject_name(self, ctx: RunContext, name: str) -> None:
        """Record an invalid name; raise unless invalid names are ignored."""
        ctx.metadata.add_failure(INVALID, name)
        if self.ignore_invalid_name(ctx):
            self.logger.warning(f"Skipping {name}: invalid project name for {self.mirror_cfg.provider_type}")
            return

        raise InvalidRepositoryNameError(f"invalid project name for {self.mirror_cfg.provider_type}: {name}")

    def process(self, ctx: RunContext, repository: Repository) -> MirrorOutcome:
        """
        Mirror one repository to the target.

        Args:
            ctx: Run context carrying the metadata of this target
            repository: Staged source repository with its ProjectInfo

        Returns:
            MirrorOutcome describing what was done

        Raises:
            GitProviderSyncError: The first failing stage, wrapped with context
        """
        if repository.project_info is None:
            raise InvalidProjectInfoError("repository has no project information")

        info = repository.project_info
        try:
            name = self.project_name(ctx, repository)
        except InvalidRepositoryNameError:
            self.reject_name(ctx, info.original_name)
            return MirrorOutcome(name=info.original_name, status=SKIPPED)

        if not self.check_name(ctx, name):
            return MirrorOutcome(name=name, status=SKIPPED)

        if not self.mirror_cfg.is_archive():
            self.remote_manager.set_gpsupstream_remote_from_origin(repository)

        project_id, created = self.ensure_project(ctx, repository, name)
        force = self.force_push(ctx) or created

        disabled = self.mirror_cfg.settings.disabled
        if disabled:
            self.unprotect(info.default_branch, project_id)

        destination = self.destination(name)
        opt = self.push_option(destination, force, name)

        try:
            self.write(ctx, repository, opt, name)
            self.sync_default_branch(name, info.default_branch)
        except GitProviderSyncError:
            if disabled:
                try:
                    self.protect(info.default_branch, project_id)
                except ProtectionError as e:
                    self.logger.error(f"Could not protect {name} again after a failed write: {e.__cause__}")
            raise

        if disabled:
            self.protect(info.default_branch, project_id)

        ctx.metadata.increment()
        self.logger.info(f"Mirrored {name} to {mask_basic_auth(destination)}")

        return MirrorOutcome(
            name=name,
            status=MIRRORED,
            target=mask_basic_auth(destination),
            created=created,
            forced=force,
            project_id=project_id,
        )

    def ensure_project(self, ctx: RunContext, repository: Repository, name: str) -> Tuple[str, bool]:
        """
        Find or create the target project.

        Returns:
            Tuple of the provider project id and whether it was created
        """
        if self.mirror_cfg.is_local():
            return "", False

        owner = self.mirror_cfg.owner
        try:
            exists, project_id = self.client.project_exists(owner, name)
        except GitProviderSyncError:
            raise
        except Exception as e:
            raise ProviderClientError(f"failed to look up project {owner}/{name}") from e

        if exists:
            self.logger.debug(f"Project {owner}/{name} exists (id: {project_id})")
            return project_id, False

        return self.create_project(repository, name), True

    def create_project(self, repository: Repository, name: str) -> str:
        """Create the target project and return its id."""
        info = repository.project_info
        settings = self.mirror_cfg.settings

        try:
            upstream = repository.remote(GPSUPSTREAM)
        except RemoteNotFoundError as e:
            raise UpstreamRemoteError(f"failed to read {GPSUPSTREAM} remote of {name}") from e
        if not upstream.url:
            raise UpstreamRemoteError(f"{GPSUPSTREAM} remote of {name} has no URL")

        visibility = settings.visibility or map_visibility(
            self.sync_cfg.provider_type, self.mirror_cfg.provider_type, info.visibility
        )

        option = CreateOption(
            name=name,
            visibility=visibility,
            description=build_description(settings.description_prefix, upstream.url, info.description),
            default_branch=info.default_branch,
            disabled=settings.disabled,
        )

        self.logger.info(f"Creating project {self.mirror_cfg.owner}/{name} ({visibility})")
        try:
            return self.client.create_project(option)
        except Exception as e:
            raise CreateProjectError(f"failed to create project {self.mirror_cfg.owner}/{name}") from e

    def unprotect(self, branch: str, project_id: str) -> None:
        try:
            self.client.unprotect_project(branch, project_id)
        except Exception as e:
            raise ProtectionError(f"failed to unprotect project {project_id}") from e

    def protect(self, branch: str, project_id: str) -> None:
        try:
            self.client.protect_project(self.mirror_cfg.owner, branch, project_id)
        except Exception as e:
            raise ProtectionError(f"failed to protect project {project_id}") from e

    def destination(self, name: str) -> str:
        """Archive file, directory root or git URL the writer pushes to."""
        if self.mirror_cfg.is_archive():
            return archive_target_path(name, self.mirror_cfg.path)
        if self.mirror_cfg.is_directory():
            return self.mirror_cfg.path

        url = self.git_url(name)
        auth = self.mirror_cfg.auth
        if auth.protocol.lower() == SSH or not auth.token:
            return url
        return add_basic_auth_to_url(url, URL_USERNAME, auth.token)

    def git_url(self, name: str) -> str:
        domain = self.mirror_cfg.get_domain().rstrip("/")
        path = f"{self.mirror_cfg.owner}/{name}"

        if self.mirror_cfg.auth.protocol.lower() == SSH:
            return f"git@{domain}:{path}"

        scheme = self.mirror_cfg.auth.http_scheme or HTTPS
        return f"{scheme}://{domain}/{path}"

    def push_option(self, destination: str, force: bool, name: str = "") -> PushOption:
        if self.mirror_cfg.is_local():
            return PushOption.new(destination, force=force, auth=AuthConfig(), name=name)
        return PushOption.new(destination, force=force, auth=self.mirror_cfg.auth, name=name)

    def write(self, ctx: RunContext, repository: Repository, opt: PushOption, name: str) -> None:
        try:
            self.writer.push(ctx, repository, opt, name)
        except Exception as e:
            raise PushChangesError(f"failed to push {name} to {mask_basic_auth(opt.target)}") from e

    def sync_default_branch(self, name: str, branch: str) -> None:
        if not branch:
            self.logger.debug(f"No default branch known for {name}")
            return

        try:
            self.client.set_default_branch(self.mirror_cfg.owner, name, branch)
        except Exception as e:
            raise DefaultBranchError(f"failed to set default branch of {name} to {branch}") from e
