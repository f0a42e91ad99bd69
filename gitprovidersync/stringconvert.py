"""String and URL helpers for repository names, descriptions and credentials."""

import logging
import re
from urllib.parse import urlsplit, urlunsplit, quote


_NON_ALPHANUMERIC = re.compile(r'[^a-zA-Z0-9-]')
_MULTIPLE_HYPHENS = re.compile(r'-{2,}')
_LINEBREAKS = re.compile('\r\n|[\r\n\v\f\u0085\u2028\u2029]')

MASKED_PASSWORD = "SECRET"


def remove_non_alphanumeric_chars(name: str) -> str:
    """
    Reduce a repository name to letters, digits and single inner hyphens.

    ``"Repo One!"`` becomes ``"Repo-One"``.
    """
    logger = logging.getLogger('gitprovidersync.stringconvert')

    result = _NON_ALPHANUMERIC.sub("", name.replace(" ", "-"))
    result = _MULTIPLE_HYPHENS.sub("-", result).strip("-")

    logger.debug(f"Removed non-alphanumeric characters: {name!r} -> {result!r}")
    return result


def remove_linebreaks(text: str) -> str:
    """Replace every kind of line break with a single space."""
    return _LINEBREAKS.sub(" ", text)


def _netloc(host: str, port, userinfo: str = "") -> str:
    netloc = host or ""
    if port:
        netloc = f"{netloc}:{port}"
    if userinfo:
        netloc = f"{userinfo}@{netloc}"
    return netloc


def add_basic_auth_to_url(url: str, username: str, password: str) -> str:
    """Embed basic-auth credentials in an http(s) URL."""
    parts = urlsplit(url)
    if not parts.scheme or not parts.hostname:
        return url

    userinfo = f"{quote(username, safe='')}:{quote(password, safe='')}"
    netloc = _netloc(parts.hostname, parts.port, userinfo)
    return urlunsplit((parts.scheme, netloc, parts.path, parts.query, parts.fragment))


def remove_basic_auth_from_url(url: str) -> str:
    """Strip any userinfo from an http(s) URL."""
    parts = urlsplit(url)
    if not parts.scheme or not parts.hostname or "@" not in parts.netloc:
        return url

    netloc = _netloc(parts.hostname, parts.port)
    return urlunsplit((parts.scheme, netloc, parts.path, parts.query, parts.fragment))


def mask_basic_auth(url: str) -> str:
    """Replace the password of an http(s) URL with a placeholder for logging."""
    parts = urlsplit(url)
    if not parts.scheme or not parts.hostname or parts.password is None:
        return url

    userinfo = f"{parts.username}:{MASKED_PASSWORD}"
    netloc = _netloc(parts.hostname, parts.port, userinfo)
    return urlunsplit((parts.scheme, netloc, parts.path, parts.query, parts.fragment))
