"""Configuration management for git-provider-sync."""

import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Dict

from dotenv import load_dotenv

load_dotenv()  # Load .env file if it exists


# Provider types
GITHUB = "github"
GITLAB = "gitlab"
GITEA = "gitea"
ARCHIVE = "archive"
DIRECTORY = "directory"

REMOTE_PROVIDERS = (GITHUB, GITLAB, GITEA)
LOCAL_PROVIDERS = (ARCHIVE, DIRECTORY)

# Remote names
ORIGIN = "origin"
GPSUPSTREAM = "gpsupstream"

# Auth protocols
TLS = "tls"
SSH = "ssh"

# URL schemes
HTTP = "http"
HTTPS = "https"

# Owner types
USER = "user"
GROUP = "group"

DEFAULT_GIT_TIMEOUT = 180.0

_DEFAULT_DOMAINS = {
    GITEA: "gitea.com",
    GITHUB: "github.com",
    GITLAB: "gitlab.com",
}


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


@dataclass
class Config:
    """Run-level settings for the sync engine with validation and defaults."""

    log_level: str = "INFO"

    # Parent directory of the per-run staging workspace
    tmp_dir: Path = field(default_factory=lambda: Path(tempfile.gettempdir()))

    # Upper bound for every external git invocation, in seconds
    git_timeout: float = DEFAULT_GIT_TIMEOUT

    keep_workspace: bool = False

    def __post_init__(self):
        """Validate configuration after initialization."""
        if isinstance(self.tmp_dir, str):
            self.tmp_dir = Path(self.tmp_dir)
        self.tmp_dir = self.tmp_dir.expanduser()

        valid_log_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if self.log_level.upper() not in valid_log_levels:
            raise ValueError(f"Invalid log level: {self.log_level}. Must be one of {valid_log_levels}")
        self.log_level = self.log_level.upper()

        if self.git_timeout <= 0:
            raise ValueError("git_timeout must be positive")


@dataclass(frozen=True)
class RunOptions:
    """Run-wide switches normally supplied by the command line."""
    force_push: bool = False
    ignore_invalid_name: bool = False
    ascii_name: bool = False
    dry_run: bool = False
    active_from_limit: str = ""


@dataclass
class AuthConfig:
    """Credentials and transport settings for one provider."""
    cert_dir_path: str = ""
    http_scheme: str = ""
    token: str = ""
    protocol: str = ""
    proxy_url: str = ""
    ssh_command: str = ""
    ssh_url_rewrite_from: str = ""
    ssh_url_rewrite_to: str = ""

    def __repr__(self) -> str:
        # token is never rendered
        return (f"AuthConfig(protocol={self.protocol!r}, http_scheme={self.http_scheme!r}, "
                f"proxy_url={self.proxy_url!r}, cert_dir_path={self.cert_dir_path!r}, "
                f"ssh_command={self.ssh_command!r})")

    def fill_defaults(self) -> None:
        if not self.http_scheme:
            self.http_scheme = HTTPS
        if not self.protocol:
            self.protocol = TLS


@dataclass
class RepositoriesOption:
    """Comma separated include/exclude lists of original repository names."""
    include: str = ""
    exclude: str = ""

    def included_repositories(self) -> List[str]:
        return _split_and_trim(self.include)

    def excluded_repositories(self) -> List[str]:
        return _split_and_trim(self.exclude)


def _split_and_trim(value: str) -> List[str]:
    return [part for part in value.replace(" ", "").split(",") if part]


@dataclass
class BaseConfig:
    """Fields shared by source and mirror configurations."""
    provider_type: str = ""
    domain: str = ""
    owner: str = ""
    owner_type: str = ""
    auth: AuthConfig = field(default_factory=AuthConfig)

    def get_domain(self) -> str:
        if self.domain:
            return self.domain
        return _DEFAULT_DOMAINS.get(self.provider_type.lower(), "")

    def fill_defaults(self) -> None:
        if not self.domain:
            self.domain = self.get_domain()
        if not self.owner_type:
            self.owner_type = GROUP
        self.auth.fill_defaults()


@dataclass
class MirrorSettings:
    """Per-target policies."""
    ascii_name: bool = False
    description_prefix: str = ""
    disabled: bool = False
    force_push: bool = False
    github_upload_url: str = ""
    ignore_invalid_name: bool = False
    visibility: str = ""


@dataclass
class MirrorConfig(BaseConfig):
    """One mirror target: a remote provider, a directory or an archive location."""
    path: str = ""
    settings: MirrorSettings = field(default_factory=MirrorSettings)
    use_git_binary: bool = False

    def is_archive(self) -> bool:
        return self.provider_type.lower() == ARCHIVE

    def is_directory(self) -> bool:
        return self.provider_type.lower() == DIRECTORY

    def is_local(self) -> bool:
        return self.provider_type.lower() in LOCAL_PROVIDERS

    def fill_defaults(self) -> None:
        super().fill_defaults()
        self.settings.disabled = True


@dataclass
class SyncConfig(BaseConfig):
    """A source provider together with its mirror targets."""
    active_from_limit: str = ""
    include_forks: bool = False
    repositories: RepositoriesOption = field(default_factory=RepositoriesOption)
    use_git_binary: bool = False
    mirrors: Dict[str, MirrorConfig] = field(default_factory=dict)

    def fill_defaults(self) -> None:
        super().fill_defaults()
        for mirror in self.mirrors.values():
            mirror.fill_defaults()


@dataclass
class AppConfiguration:
    """All sync environments, each mapping source names to SyncConfig records."""
    environments: Dict[str, Dict[str, SyncConfig]] = field(default_factory=dict)

    def fill_defaults(self) -> None:
        for environment in self.environments.values():
            for sync_cfg in environment.values():
                sync_cfg.fill_defaults()


def load_configuration() -> Config:
    """Load run-level configuration from environment variables."""
    try:
        return Config(
            log_level=os.getenv("GPS_LOG_LEVEL", "INFO").upper(),
            tmp_dir=Path(os.getenv("GPS_TMP_DIR", tempfile.gettempdir())),
            git_timeout=float(os.getenv("GPS_GIT_TIMEOUT", str(DEFAULT_GIT_TIMEOUT))),
            keep_workspace=_env_flag("GPS_KEEP_WORKSPACE"),
        )
    except (ValueError, TypeError) as e:
        raise ValueError(f"Configuration error: {e}")


def load_run_options() -> RunOptions:
    """Load run-wide switches from environment variables."""
    return RunOptions(
        force_push=_env_flag("GPS_FORCE_PUSH"),
        ignore_invalid_name=_env_flag("GPS_IGNORE_INVALID_NAME"),
        ascii_name=_env_flag("GPS_ASCII_NAME"),
        dry_run=_env_flag("GPS_DRY_RUN"),
        active_from_limit=os.getenv("GPS_ACTIVE_FROM_LIMIT", ""),
    )


def validate_configuration(app_config: AppConfiguration) -> List[str]:
    """Validate provider configuration and return any errors or warnings."""
    errors = []

    if not app_config.environments:
        errors.append("ERROR: No sync environments configured")

    for env_name, environment in app_config.environments.items():
        for source_name, sync_cfg in environment.items():
            where = f"{env_name}.{source_name}"

            if sync_cfg.provider_type.lower() not in REMOTE_PROVIDERS:
                errors.append(f"ERROR: {where}: unsupported source provider type: {sync_cfg.provider_type!r}")
            if not sync_cfg.owner:
                errors.append(f"ERROR: {where}: source owner is not set")
            if sync_cfg.auth.protocol and sync_cfg.auth.protocol.lower() not in (TLS, SSH):
                errors.append(f"ERROR: {where}: unsupported auth protocol: {sync_cfg.auth.protocol!r}")
            if not sync_cfg.mirrors:
                errors.append(f"WARNING: {where}: no mirror targets configured")

            for mirror_name, mirror in sync_cfg.mirrors.items():
                mirror_where = f"{where}.mirrors.{mirror_name}"
                provider_type = mirror.provider_type.lower()

                if provider_type in LOCAL_PROVIDERS:
                    if not mirror.path:
                        errors.append(f"ERROR: {mirror_where}: path is required for {provider_type} targets")
                elif provider_type in REMOTE_PROVIDERS:
                    if not mirror.owner:
                        errors.append(f"ERROR: {mirror_where}: owner is required for {provider_type} targets")
                    if mirror.auth.protocol.lower() == TLS and not mirror.auth.token:
                        errors.append(f"WARNING: {mirror_where}: no token configured for tls protocol")
                else:
                    errors.append(f"ERROR: {mirror_where}: unsupported mirror provider type: {mirror.provider_type!r}")

    return errors

