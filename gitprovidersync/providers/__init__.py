"""Provider clients, name rules, visibility mapping and project filtering."""

from ..config import ARCHIVE, DIRECTORY
from .client import (
    ProviderClient, new_provider_client, register_provider_client
)
from .filters import filter_by_activity, filter_included_excluded, parse_duration
from .local import ArchiveClient, DirectoryClient, LocalClient
from .names import name_validator
from .visibility import map_visibility

register_provider_client(ARCHIVE, ArchiveClient)
register_provider_client(DIRECTORY, DirectoryClient)

__all__ = [
    'ProviderClient', 'LocalClient', 'ArchiveClient', 'DirectoryClient',
    'new_provider_client', 'register_provider_client',
    'filter_by_activity', 'filter_included_excluded', 'parse_duration',
    'name_validator', 'map_visibility'
]
