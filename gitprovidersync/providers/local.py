"""Provider clients for local directory and archive targets."""

from typing import List, Tuple

from ..config import ARCHIVE, DIRECTORY, BaseConfig
from ..model import CreateOption, ProjectInfo
from .client import ProviderClient


class LocalClient(ProviderClient):
    """
    Client for targets without a hosting API.

    Accepts every name, lists nothing and treats project operations as
    no-ops so the mirror pipeline is the same for every target kind.
    """

    provider_type = ""

    def __init__(self, config: BaseConfig = None):
        self.config = config

    def list_projects(self, owner: str, owner_type: str, include_forks: bool = False) -> List[ProjectInfo]:
        return []

    def project_exists(self, owner: str, name: str) -> Tuple[bool, str]:
        return False, ""

    def create_project(self, option: CreateOption) -> str:
        return ""

    def set_default_branch(self, owner: str, name: str, branch: str) -> None:
        return None

    def protect_project(self, owner: str, branch: str, project_id: str) -> None:
        return None

    def unprotect_project(self, branch: str, project_id: str) -> None:
        return None

    def is_valid_project_name(self, name: str) -> bool:
        return True


class DirectoryClient(LocalClient):
    provider_type = DIRECTORY


class ArchiveClient(LocalClient):
    provider_type = ARCHIVE
