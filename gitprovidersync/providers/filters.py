"""Project list filtering by name lists and recent activity."""

import logging
import re
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from ..model import ProjectInfo


_DURATION_PART = re.compile(r'(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)')

_UNIT_SECONDS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}


def parse_duration(value: str) -> timedelta:
    """
    Parse a signed duration such as ``-48h`` or ``1h30m``.

    Raises:
        ValueError: If the value is not a valid duration
    """
    text = value.strip()
    sign = 1
    if text[:1] in ("-", "+"):
        sign = -1 if text[0] == "-" else 1
        text = text[1:]

    if text == "0":
        return timedelta(0)

    seconds = 0.0
    position = 0
    while position < len(text):
        match = _DURATION_PART.match(text, position)
        if not match:
            raise ValueError(f"failed to parse time duration: {value!r}")
        seconds += float(match.group(1)) * _UNIT_SECONDS[match.group(2)]
        position = match.end()

    if position == 0:
        raise ValueError(f"failed to parse time duration: {value!r}")

    return timedelta(seconds=sign * seconds)


def should_include_repository(name: str, included: List[str], excluded: List[str]) -> bool:
    """An include list wins; otherwise everything not excluded is kept."""
    if included:
        return name in included
    return name not in excluded


def filter_included_excluded(project_infos: List[ProjectInfo], included: List[str],
                             excluded: List[str]) -> List[ProjectInfo]:
    return [
        info for info in project_infos
        if should_include_repository(info.original_name, included, excluded)
    ]


def is_in_interval(updated_at: Optional[datetime], active_from_limit: str,
                   now: Optional[datetime] = None) -> bool:
    """
    Check whether a project was active within ``active_from_limit``.

    Projects without an activity timestamp and an empty limit always pass.
    """
    if updated_at is None or not active_from_limit:
        return True

    if updated_at.tzinfo is None:
        updated_at = updated_at.replace(tzinfo=timezone.utc)

    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    threshold = now + parse_duration(active_from_limit)
    return updated_at >= threshold


def filter_by_activity(project_infos: List[ProjectInfo], active_from_limit: str,
                       now: Optional[datetime] = None) -> List[ProjectInfo]:
    logger = logging.getLogger('gitprovidersync.providers.filters')

    kept = [
        info for info in project_infos
        if is_in_interval(info.last_activity_at, active_from_limit, now)
    ]

    if len(kept) != len(project_infos):
        logger.info(f"Skipped {len(project_infos) - len(kept)} inactive projects (limit: {active_from_limit})")
    return kept
