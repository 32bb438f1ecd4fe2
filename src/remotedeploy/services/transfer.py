"""Mirrors the local build context to the remote application directory."""

import shlex
import shutil
from pathlib import Path

from remotedeploy.errors import DeployerError, TransferError


class FileSynchronizer:
    """One-way mirror of a local tree to the host, rsync first, scp as fallback."""

    def __init__(self, logger, console, command_runner, which=shutil.which):
        self.logger = logger
        self.console = console
        self.command_runner = command_runner
        self.which = which

    def ensure_remote_directory(self, session, target):
        directory = shlex.quote(target.remote_app_directory)
        result = session.run(f"mkdir -p {directory}")
        if result.exit_code != 0:
            raise TransferError(
                f"Could not create {target.remote_app_directory} on {session.destination}: "
                f"{result.stderr.strip() or 'exit ' + str(result.exit_code)}"
            )
        self.logger.info("Remote directory ready: %s", target.remote_app_directory)

    def rsync_available(self, session) -> bool:
        if self.which("rsync") is None:
            return False
        return session.run("command -v rsync >/dev/null 2>&1").exit_code == 0

    def synchronize(self, session, build_context, target) -> str:
        """Mirror the build context and return the strategy used."""
        root = Path(build_context.root_path)
        if self.rsync_available(session):
            self.console.print("[blue]Synchronizing files with rsync...[/blue]")
            self._rsync(session, root, target.remote_app_directory)
            strategy = "rsync"
        else:
            self.console.print("[yellow]rsync unavailable, falling back to scp.[/yellow]")
            self._scp(session, root, target.remote_app_directory)
            strategy = "scp"

        self.logger.info(
            "Transferred %s to %s:%s via %s",
            root,
            session.destination,
            target.remote_app_directory,
            strategy,
        )
        return strategy

    def _rsync(self, session, root: Path, remote_dir: str):
        remote_shell = " ".join(shlex.quote(part) for part in ["ssh"] + session.ssh_options())
        cmd = [
            "rsync",
            "-az",
            "--delete",
            "-e",
            remote_shell,
            f"{root}/",
            f"{session.destination}:{remote_dir}/",
        ]
        try:
            self.command_runner.run(cmd, check=True, capture_output=True)
        except DeployerError as exc:
            raise TransferError(f"rsync to {session.destination} failed: {exc}") from exc

    def _scp(self, session, root: Path, remote_dir: str):
        cleared = session.run(f"find {shlex.quote(remote_dir)} -mindepth 1 -delete")
        if cleared.exit_code != 0:
            raise TransferError(
                f"Could not clear {remote_dir} before copying: "
                f"{cleared.stderr.strip() or 'exit ' + str(cleared.exit_code)}"
            )

        entries = sorted(str(entry) for entry in root.iterdir())
        if not entries:
            return

        cmd = (
            ["scp", "-r", "-q"]
            + session.ssh_options(port_flag="-P")
            + entries
            + [f"{session.destination}:{remote_dir}/"]
        )
        try:
            self.command_runner.run(cmd, check=True, capture_output=True)
        except DeployerError as exc:
            raise TransferError(f"scp to {session.destination} failed: {exc}") from exc
