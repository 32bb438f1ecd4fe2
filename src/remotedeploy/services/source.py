"""Git working tree acquisition for remotedeploy."""

from pathlib import Path
from typing import List, Optional
from urllib.parse import quote, urlsplit, urlunsplit

from remotedeploy.errors import AcquisitionError, DeployerError
from remotedeploy.errors_catalog import actionable_error
from remotedeploy.models import mask_url


def encode_credential(credential: str) -> str:
    return quote(credential, safe=":")


def authenticated_url(url: str, credential: Optional[str]) -> str:
    """Return ``url`` with ``credential`` in its authority component.

    Only HTTPS URLs are rewritten. The result must never be logged or persisted.
    """
    parts = urlsplit(url)
    if parts.scheme.lower() != "https" or not credential:
        return url

    host = parts.netloc.rsplit("@", 1)[-1]
    netloc = f"{encode_credential(credential)}@{host}"
    return urlunsplit((parts.scheme, netloc, parts.path, parts.query, parts.fragment))


class SourceAcquirer:
    """Clones or re-synchronizes a local working tree at a branch tip."""

    GIT_ENV = {"GIT_TERMINAL_PROMPT": "0"}
    BRANCH_NOT_FOUND_PATTERNS = (
        "remote branch",
        "couldn't find remote ref",
        "could not find remote branch",
    )
    AUTHENTICATION_PATTERNS = (
        "authentication failed",
        "could not read username",
        "could not read password",
        "terminal prompts disabled",
        "invalid username or password",
        "the requested url returned error: 401",
        "the requested url returned error: 403",
    )

    def __init__(self, logger, console, command_runner):
        self.logger = logger
        self.console = console
        self.command_runner = command_runner

    def acquire(
        self,
        repository_url: str,
        credential: Optional[str],
        branch: str,
        destination: Path,
    ) -> str:
        destination = Path(destination)
        masked = mask_url(repository_url)
        remote = authenticated_url(repository_url, credential)

        if self.is_working_tree(destination):
            self.console.print(f"[blue]Updating existing checkout in {destination}...[/blue]")
            self.logger.info("Synchronizing %s (%s) into %s", masked, branch, destination)
            self._update(remote, masked, branch, destination)
        else:
            if destination.exists() and (not destination.is_dir() or any(destination.iterdir())):
                raise AcquisitionError(
                    actionable_error("invalid_working_tree", path=str(destination)),
                    reason="invalid_working_tree",
                )
            self.console.print(f"[blue]Cloning {masked} ({branch})...[/blue]")
            self.logger.info("Cloning %s (%s) into %s", masked, branch, destination)
            self._clone(repository_url, remote, masked, branch, destination)

        revision = self.current_revision(destination)
        self.logger.info("Working tree at %s is on %s", destination, revision)
        return revision

    def is_working_tree(self, path: Path) -> bool:
        if not (path / ".git").exists():
            return False

        result = self._git(["rev-parse", "--show-toplevel"], cwd=path, check=False)
        if result.returncode != 0:
            raise AcquisitionError(
                actionable_error("invalid_working_tree", path=str(path)),
                reason="invalid_working_tree",
            )
        return Path(result.stdout.strip()).resolve() == path.resolve()

    def current_revision(self, path: Path) -> str:
        try:
            result = self._git(["rev-parse", "HEAD"], cwd=path)
        except DeployerError as exc:
            raise AcquisitionError(str(exc), reason="update_failed") from exc
        return result.stdout.strip()

    def _clone(self, plain_url: str, remote: str, masked: str, branch: str, destination: Path):
        destination.parent.mkdir(parents=True, exist_ok=True)
        result = self._git(
            ["clone", "--branch", branch, "--single-branch", remote, str(destination)],
            check=False,
        )
        if result.returncode != 0:
            self._raise_for_failure(result, masked, branch, default_reason="clone_failed")

        # The clone stored the credential-bearing URL; keep only the plain one on disk.
        self._git(["remote", "set-url", "origin", plain_url], cwd=destination)

    def _update(self, remote: str, masked: str, branch: str, destination: Path):
        result = self._git(["fetch", "--prune", remote, branch], cwd=destination, check=False)
        if result.returncode != 0:
            self._raise_for_failure(result, masked, branch, default_reason="update_failed")

        for args in (
            ["checkout", "-f", "-B", branch, "FETCH_HEAD"],
            ["reset", "--hard", "FETCH_HEAD"],
            ["clean", "-fdx"],
        ):
            try:
                self._git(args, cwd=destination)
            except DeployerError as exc:
                raise AcquisitionError(
                    f"Could not reset {destination} to {branch}: {exc}",
                    reason="update_failed",
                ) from exc

    def _raise_for_failure(self, result, masked: str, branch: str, default_reason: str):
        stderr = self.command_runner.redact((result.stderr or "").strip())
        lowered = stderr.lower()

        if any(pattern in lowered for pattern in self.BRANCH_NOT_FOUND_PATTERNS):
            raise AcquisitionError(
                actionable_error("branch_not_found", branch=branch, url=masked),
                reason="branch_not_found",
            )
        if any(pattern in lowered for pattern in self.AUTHENTICATION_PATTERNS):
            raise AcquisitionError(
                actionable_error("authentication_failed", url=masked),
                reason="authentication_failed",
            )

        action = "clone" if default_reason == "clone_failed" else "update"
        raise AcquisitionError(
            f"Could not {action} {masked} ({branch}): {stderr or 'git exited with ' + str(result.returncode)}",
            reason=default_reason,
        )

    def _git(self, args: List[str], cwd: Optional[Path] = None, check: bool = True):
        return self.command_runner.run(
            ["git"] + args,
            check=check,
            capture_output=True,
            env=self.GIT_ENV,
            cwd=str(cwd) if cwd else None,
        )
