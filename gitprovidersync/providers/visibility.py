"""Visibility translation between providers."""

import logging

from ..config import GITEA, GITHUB, GITLAB
from ..errors import VisibilityMappingError


# source provider -> target provider -> source visibility -> target visibility
VISIBILITY_MAPPINGS = {
    GITLAB: {
        GITHUB: {"public": "public", "internal": "private", "private": "private"},
        GITEA: {"public": "public", "internal": "private", "private": "private"},
    },
    GITHUB: {
        GITLAB: {"public": "public", "private": "private"},
        GITEA: {"public": "public", "private": "private"},
    },
    GITEA: {
        GITLAB: {"public": "public", "private": "private", "limited": "private"},
        GITHUB: {"public": "public", "private": "private", "limited": "private"},
    },
}


def map_visibility(from_provider: str, to_provider: str, visibility: str) -> str:
    """
    Translate a source visibility into the target provider's vocabulary.

    Args:
        from_provider: Source provider type
        to_provider: Target provider type
        visibility: Visibility reported by the source

    Returns:
        ``visibility`` unchanged when both providers are the same, else the mapped value

    Raises:
        VisibilityMappingError: For an unknown provider pair or visibility value
    """
    logger = logging.getLogger('gitprovidersync.providers.visibility')

    source = from_provider.lower()
    target = to_provider.lower()

    if source == target:
        return visibility

    if source not in VISIBILITY_MAPPINGS:
        raise VisibilityMappingError(f"invalid source provider: {from_provider}")

    targets = VISIBILITY_MAPPINGS[source]
    if target not in targets:
        raise VisibilityMappingError(f"invalid target provider: {to_provider}")

    mapped = targets[target].get(visibility.lower())
    if mapped is None:
        raise VisibilityMappingError(f"invalid visibility for {from_provider}: {visibility}")

    logger.debug(f"Mapped visibility {visibility} ({source}) to {mapped} ({target})")
    return mapped
