"""Credential resolution for the git engines."""

import base64
import logging
from dataclasses import dataclass
from typing import Dict

from ..config import AuthConfig, SSH, TLS
from ..errors import InvalidAuthError


# Fixed system user for SSH transports
SSH_USER = "git"

# Token based HTTP auth ignores the username, any non-empty value works
PLACEHOLDER_USERNAME = "anyUser"


@dataclass(frozen=True)
class SSHAgentAuth:
    """SSH credential backed by the running ssh-agent."""
    user: str = SSH_USER
    ssh_command: str = ""

    def env(self) -> Dict[str, str]:
        """Per-call environment for git; keys come from SSH_AUTH_SOCK."""
        if self.ssh_command:
            return {"GIT_SSH_COMMAND": self.ssh_command}
        return {}


@dataclass(frozen=True)
class BasicAuth:
    """HTTP basic-auth credential carrying an access token as password."""
    username: str
    password: str

    def __repr__(self) -> str:
        return f"BasicAuth(username={self.username!r}, password='***')"

    def header(self) -> str:
        token = base64.b64encode(f"{self.username}:{self.password}".encode()).decode()
        return f"Authorization: Basic {token}"

    def env(self) -> Dict[str, str]:
        """
        Per-call environment injecting the credential as an HTTP header.

        Only http(s) transports read ``http.extraHeader``; local and SSH
        URLs are unaffected.
        """
        if not self.password:
            return {}

        return {
            "GIT_CONFIG_COUNT": "1",
            "GIT_CONFIG_KEY_0": "http.extraHeader",
            "GIT_CONFIG_VALUE_0": self.header(),
        }


class AuthResolver:
    """Turns a configured auth protocol into a concrete credential object."""

    def __init__(self):
        self.logger = logging.getLogger('gitprovidersync.mirror.auth')

    def get_auth_method(self, auth: AuthConfig):
        """
        Resolve the credential for an auth configuration.

        Args:
            auth: Auth settings of the source or mirror

        Returns:
            SSHAgentAuth for ``ssh``, BasicAuth for ``tls`` or an unset protocol

        Raises:
            InvalidAuthError: For any other protocol value
        """
        protocol = (auth.protocol or "").lower()
        self.logger.debug(f"Resolving auth method for protocol: {protocol or '<unset>'}")

        if protocol == SSH:
            return SSHAgentAuth(ssh_command=auth.ssh_command)
        if protocol in (TLS, ""):
            return BasicAuth(username=PLACEHOLDER_USERNAME, password=auth.token)

        raise InvalidAuthError(f"invalid authentication configuration: unsupported protocol {auth.protocol!r}")


def ssh_command_env(ssh_command: str, rewrite_from: str = "", rewrite_to: str = "") -> Dict[str, str]:
    """
    Environment for git subprocesses that use a custom SSH command.

    When both rewrite values are set, one ``url.<to>.insteadOf=<from>`` rule
    is injected through git's GIT_CONFIG_COUNT mechanism.

    Returns:
        Empty dict when no SSH command is configured
    """
    if not ssh_command:
        return {}

    env = {"GIT_SSH_COMMAND": ssh_command}
    if rewrite_from and rewrite_to:
        env.update({
            "GIT_CONFIG_COUNT": "1",
            "GIT_CONFIG_KEY_0": f"url.{rewrite_to}.insteadOf",
            "GIT_CONFIG_VALUE_0": rewrite_from,
        })
    return env
