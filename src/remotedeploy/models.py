"""Shared domain models for remotedeploy."""

import posixpath
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional
from urllib.parse import urlsplit, urlunsplit

from .constants import (
    DEFAULT_APPLICATION_NAME,
    DEFAULT_BRANCH,
    DEFAULT_EXPOSED_PORT,
    MASK,
    PROXY_SITES_AVAILABLE,
    PROXY_SITES_ENABLED,
)


def mask_url(url: str) -> str:
    """Replace any userinfo in ``url`` with a placeholder."""
    try:
        parts = urlsplit(url)
    except ValueError:
        return MASK
    if "@" not in parts.netloc:
        return url
    host = parts.netloc.rsplit("@", 1)[1]
    return urlunsplit((parts.scheme, f"{MASK}@{host}", parts.path, parts.query, parts.fragment))


@dataclass(frozen=True)
class ParameterSet:
    """Validated inputs for a single deploy run."""

    repository_url: str
    credential: str = field(repr=False)
    remote_user: str
    remote_host: str
    private_key_path: str
    container_port: int
    branch: str = DEFAULT_BRANCH
    application_name: str = DEFAULT_APPLICATION_NAME

    @property
    def masked_url(self) -> str:
        return mask_url(self.repository_url or "")

    def describe(self) -> dict:
        """Loggable view of the parameters. Never contains the credential."""
        return {
            "repository_url": self.masked_url,
            "credential": MASK if self.credential else None,
            "branch": self.branch,
            "remote_user": self.remote_user,
            "remote_host": self.remote_host,
            "private_key_path": self.private_key_path,
            "container_port": self.container_port,
            "application_name": self.application_name,
        }


@dataclass(frozen=True)
class CleanupParameterSet:
    """Minimal inputs for tearing a deployment down."""

    remote_user: str
    remote_host: str
    private_key_path: str
    application_name: str = DEFAULT_APPLICATION_NAME

    def describe(self) -> dict:
        return {
            "remote_user": self.remote_user,
            "remote_host": self.remote_host,
            "private_key_path": self.private_key_path,
            "application_name": self.application_name,
        }


@dataclass(frozen=True)
class BuildContext:
    root_path: Path
    exposed_port: int = DEFAULT_EXPOSED_PORT


@dataclass(frozen=True)
class DeploymentTarget:
    """Remote-side resource names derived from the application name.

    Deploy and cleanup both build their names through this class so the two
    flows always agree on the clone directory, remote directory, image,
    container and proxy site file.
    """

    application_name: str
    remote_home: Optional[str] = None

    @property
    def remote_app_directory(self) -> str:
        if not self.remote_home:
            raise ValueError("The remote home directory has not been resolved yet.")
        return posixpath.join(self.remote_home, self.application_name)

    @property
    def proxy_config_path(self) -> str:
        return posixpath.join(PROXY_SITES_AVAILABLE, f"{self.application_name}.conf")

    @property
    def proxy_enabled_path(self) -> str:
        return posixpath.join(PROXY_SITES_ENABLED, f"{self.application_name}.conf")

    @property
    def image_tag(self) -> str:
        return f"{self.application_name}:latest"

    @property
    def container_name(self) -> str:
        return self.application_name

    def local_clone_directory(self, workspace: Path) -> Path:
        return Path(workspace) / self.application_name


@dataclass(frozen=True)
class RemoteResult:
    stdout: str
    exit_code: int
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


@dataclass(frozen=True)
class PipelineOutcome:
    """Terminal record of one pipeline run."""

    success: bool
    exit_code: int
    exit_classification: str
    log_reference: Optional[str]
    failed_stage: Optional[str] = None
    error: Optional[str] = None
    removals: Optional[int] = None
    revision: Optional[str] = None
