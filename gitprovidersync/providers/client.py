"""Provider client contract and the client registry."""

import logging
from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Tuple

from ..config import BaseConfig
from ..errors import ProviderClientError
from ..model import CreateOption, ProjectInfo
from .names import name_validator


class ProviderClient(ABC):
    """
    Operations the mirror pipeline needs from a hosting provider.

    Remote REST clients subclass this and register a factory with
    ``register_provider_client``.
    """

    provider_type = ""

    def name(self) -> str:
        return self.provider_type

    @abstractmethod
    def list_projects(self, owner: str, owner_type: str, include_forks: bool = False) -> List[ProjectInfo]:
        raise NotImplementedError

    @abstractmethod
    def project_exists(self, owner: str, name: str) -> Tuple[bool, str]:
        """Return whether the project exists and its provider id."""
        raise NotImplementedError

    @abstractmethod
    def create_project(self, option: CreateOption) -> str:
        """Create a project and return its provider id."""
        raise NotImplementedError

    @abstractmethod
    def set_default_branch(self, owner: str, name: str, branch: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def protect_project(self, owner: str, branch: str, project_id: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def unprotect_project(self, branch: str, project_id: str) -> None:
        raise NotImplementedError

    def is_valid_project_name(self, name: str) -> bool:
        return name_validator(self.provider_type)(name)


ClientFactory = Callable[[BaseConfig], ProviderClient]

_CLIENT_FACTORIES: Dict[str, ClientFactory] = {}


def register_provider_client(provider_type: str, factory: ClientFactory) -> None:
    """Register the factory building clients for ``provider_type``."""
    logger = logging.getLogger('gitprovidersync.providers')
    _CLIENT_FACTORIES[provider_type.lower()] = factory
    logger.debug(f"Registered provider client for {provider_type}")


def new_provider_client(config: BaseConfig) -> ProviderClient:
    """
    Build the client for a source or mirror configuration.

    Raises:
        ProviderClientError: If no client is registered for the provider type
    """
    factory = _CLIENT_FACTORIES.get(config.provider_type.lower())
    if factory is None:
        raise ProviderClientError(f"no provider client registered for {config.provider_type!r}")

    try:
        return factory(config)
    except ProviderClientError:
        raise
    except Exception as e:
        raise ProviderClientError(f"failed to initialize provider client for {config.provider_type!r}") from e
