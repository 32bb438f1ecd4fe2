"""Input validation helpers for remotedeploy."""

import re
from pathlib import Path
from typing import Any
from urllib.parse import urlsplit

from remotedeploy.errors import InvalidInputError
from remotedeploy.errors_catalog import actionable_error
from remotedeploy.models import CleanupParameterSet, ParameterSet, mask_url


class ValidationService:
    """Defensive re-validation of parameters before any network call."""

    APPLICATION_NAME_PATTERN = re.compile(r"^[a-z0-9][a-z0-9_.-]{0,62}$")
    BRANCH_PATTERN = re.compile(r"^[A-Za-z0-9._/-]+$")
    HOST_PATTERN = re.compile(r"^[A-Za-z0-9.:\-\[\]]+$")
    USER_PATTERN = re.compile(r"^[a-z_][a-z0-9_.-]*$", re.IGNORECASE)

    def is_https_url(self, location: str) -> bool:
        if not location or any(char.isspace() for char in location):
            return False

        try:
            parts = urlsplit(location)
            hostname = parts.hostname or ""
        except ValueError:
            return False

        if parts.scheme.lower() != "https":
            return False
        if "." not in hostname:
            return False

        segments = [segment for segment in parts.path.split("/") if segment]
        return bool(segments)

    def validate_repository_url(self, url: str):
        if not self.is_https_url(url):
            raise InvalidInputError(actionable_error("invalid_repository_url", url=mask_url(url or "")))

    def validate_port(self, value: Any, label: str = "container port") -> int:
        if isinstance(value, bool):
            raise InvalidInputError(f"Invalid {label}: {value!r}. Use a number between 1 and 65535.")
        try:
            port = int(str(value).strip())
        except (TypeError, ValueError) as exc:
            raise InvalidInputError(
                f"Invalid {label}: {value!r}. Use a number between 1 and 65535."
            ) from exc

        if not 1 <= port <= 65535:
            raise InvalidInputError(f"Invalid {label}: {port}. Use a number between 1 and 65535.")
        return port

    def validate_private_key(self, path: str):
        if not path or not Path(path).expanduser().is_file():
            raise InvalidInputError(actionable_error("private_key_not_found", path=path or "<empty>"))

    def validate_application_name(self, name: str):
        if not name or not self.APPLICATION_NAME_PATTERN.match(name):
            raise InvalidInputError(
                f"Invalid application name: {name!r}. Use lowercase letters, digits, '.', '_' or '-'."
            )

    def validate_remote(self, user: str, host: str):
        if not user or not self.USER_PATTERN.match(user):
            raise InvalidInputError(f"Invalid remote user: {user!r}")
        if not host or not self.HOST_PATTERN.match(host):
            raise InvalidInputError(f"Invalid remote host: {host!r}")

    def validate_parameters(self, params: ParameterSet):
        self.validate_repository_url(params.repository_url)
        if not params.credential:
            raise InvalidInputError("A repository credential is required.")
        if not params.branch or not self.BRANCH_PATTERN.match(params.branch) or ".." in params.branch:
            raise InvalidInputError(f"Invalid branch name: {params.branch!r}")
        self.validate_remote(params.remote_user, params.remote_host)
        self.validate_private_key(params.private_key_path)
        self.validate_port(params.container_port)
        self.validate_application_name(params.application_name)

    def validate_cleanup_parameters(self, params: CleanupParameterSet):
        self.validate_remote(params.remote_user, params.remote_host)
        self.validate_private_key(params.private_key_path)
        self.validate_application_name(params.application_name)
