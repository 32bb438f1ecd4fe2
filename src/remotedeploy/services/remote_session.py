"""Authenticated SSH channel to the target host."""

import os
import shutil
import socket
import tempfile
from pathlib import Path
from typing import List, Optional

from remotedeploy.constants import SSH_PORT
from remotedeploy.errors import ConnectivityError, DeployerError
from remotedeploy.errors_catalog import actionable_error
from remotedeploy.models import RemoteResult

SUDO_PREAMBLE = """
if [ "$(id -u)" -eq 0 ]; then SUDO=""; else SUDO="sudo -n"; fi
""".strip()


class RemoteSession:
    """Runs commands and scripts on one remote host over the OpenSSH client.

    The first handshake pins the host key (trust-on-first-use) and starts an
    OpenSSH control master. Every command after that, including rsync and scp,
    multiplexes over the master non-interactively in strict host key mode, so
    an interactive login is only needed once.
    """

    PROBE_TIMEOUT = 5
    BATCH_CONNECT_TIMEOUT = 10
    INTERACTIVE_CONNECT_TIMEOUT = 30
    SSH_TRANSPORT_FAILURE = 255
    CONTROL_PERSIST = "10m"
    STATUS_MARKER = "__remotedeploy_exit_status="

    def __init__(
        self,
        host: str,
        user: str,
        key_path: str,
        logger,
        console,
        command_runner,
        known_hosts_file: Optional[str] = None,
        port: int = SSH_PORT,
        socket_module=socket,
        control_path: Optional[str] = None,
    ):
        self.host = host
        self.user = user
        self.key_path = str(Path(key_path).expanduser())
        self.logger = logger
        self.console = console
        self.command_runner = command_runner
        self.known_hosts_file = str(
            Path(known_hosts_file).expanduser()
            if known_hosts_file
            else Path.home() / ".ssh" / "known_hosts"
        )
        self.port = port
        self.socket = socket_module
        self.control_path = control_path
        self._control_dir: Optional[str] = None
        self.connected = False

    @classmethod
    def connect(cls, host: str, user: str, key_path: str, logger, console, command_runner, **kwargs):
        session = cls(host, user, key_path, logger, console, command_runner, **kwargs)
        session.open()
        return session

    @property
    def destination(self) -> str:
        return f"{self.user}@{self.host}"

    @property
    def is_root(self) -> bool:
        return self.user == "root"

    def probe(self) -> bool:
        try:
            with self.socket.create_connection((self.host, self.port), timeout=self.PROBE_TIMEOUT):
                return True
        except OSError as exc:
            self.logger.warning(
                "Reachability probe to %s:%s failed (%s); attempting SSH anyway.",
                self.host,
                self.port,
                exc,
            )
            return False

    def open(self):
        self.console.print(f"[blue]Connecting to {self.destination}...[/blue]")
        self.probe()
        Path(self.known_hosts_file).parent.mkdir(mode=0o700, parents=True, exist_ok=True)
        if self.control_path is None:
            # Unix socket paths are length-limited, so keep the directory short.
            self._control_dir = tempfile.mkdtemp(prefix="rd-ssh-")
            self.control_path = os.path.join(self._control_dir, "master")

        if self._handshake(batch=True):
            self.connected = True
        else:
            self.logger.warning(
                "Non-interactive SSH authentication to %s failed; retrying interactively.",
                self.destination,
            )
            if not self._handshake(batch=False):
                self._remove_control_dir()
                raise ConnectivityError(actionable_error("ssh_unreachable", target=self.destination))
            self.connected = True

        self.logger.info("SSH session established with %s", self.destination)
        self.console.print(f"[green]Connected to {self.destination}.[/green]")

    def close(self):
        """Stops the control master so no connection outlives the run."""
        if self.connected:
            self.command_runner.run(
                ["ssh", "-o", f"ControlPath={self.control_path}", "-O", "exit", self.destination],
                check=False,
                capture_output=True,
                timeout=self.PROBE_TIMEOUT,
            )
            self.connected = False
            self.logger.debug("SSH control master for %s stopped", self.destination)
        self._remove_control_dir()

    def _remove_control_dir(self):
        if self._control_dir is not None:
            shutil.rmtree(self._control_dir, ignore_errors=True)
            self._control_dir = None

    def _handshake(self, batch: bool) -> bool:
        timeout = self.BATCH_CONNECT_TIMEOUT if batch else self.INTERACTIVE_CONNECT_TIMEOUT
        cmd = (
            ["ssh"]
            + self.ssh_options(strict="accept-new", batch=batch, connect_timeout=timeout)
            + ["-o", "ControlMaster=auto", "-o", f"ControlPersist={self.CONTROL_PERSIST}"]
            + [self.destination, "true"]
        )
        # Output is never captured here: the persisted master keeps the
        # handshake's stdio open, which would block a pipe reader.
        try:
            result = self.command_runner.run(
                cmd,
                check=False,
                timeout=timeout + self.PROBE_TIMEOUT if batch else None,
            )
        except DeployerError as exc:
            self.logger.warning("SSH handshake with %s failed: %s", self.destination, exc)
            return False
        return result.returncode == 0

    def ssh_options(
        self,
        strict: str = "yes",
        batch: bool = True,
        connect_timeout: Optional[int] = None,
        port_flag: str = "-p",
    ) -> List[str]:
        options = [
            "-i",
            self.key_path,
            port_flag,
            str(self.port),
            "-o",
            "IdentitiesOnly=yes",
            "-o",
            f"UserKnownHostsFile={self.known_hosts_file}",
            "-o",
            f"StrictHostKeyChecking={strict}",
        ]
        if self.control_path:
            options += ["-o", f"ControlPath={self.control_path}"]
        if batch:
            options += ["-o", "BatchMode=yes"]
        if connect_timeout:
            options += ["-o", f"ConnectTimeout={connect_timeout}"]
        return options

    def ssh_command(self, **kwargs) -> List[str]:
        return ["ssh"] + self.ssh_options(**kwargs) + [self.destination]

    def run(self, command: str) -> RemoteResult:
        return self._execute([command])

    def run_privileged(self, command: str) -> RemoteResult:
        if self.is_root:
            return self._execute([command])
        return self._execute([f"sudo -n {command}"])

    def run_script(self, script_body: str) -> RemoteResult:
        """Executes ``script_body`` as one unit through the remote shell.

        The body runs in a subshell and its own exit status is reported on a
        trailing marker line, so a script exiting 255 is not mistaken for a
        transport failure.
        """
        wrapped = (
            "(\n"
            f"{script_body.rstrip()}\n"
            ")\n"
            "__rd_status=$?\n"
            f"printf '\\n{self.STATUS_MARKER}%s\\n' \"$__rd_status\"\n"
        )
        return self._execute(["sh", "-s"], input_text=wrapped, status_marker=True)

    def home_directory(self) -> str:
        result = self.run('printf "%s" "$HOME"')
        home = result.stdout.strip()
        if result.exit_code != 0 or not home:
            raise ConnectivityError(f"Could not resolve the home directory of {self.destination}.")
        return home

    def _execute(
        self,
        remote_args: List[str],
        input_text: Optional[str] = None,
        status_marker: bool = False,
    ) -> RemoteResult:
        if not self.connected:
            raise ConnectivityError(f"No SSH session is open for {self.destination}.")

        result = self.command_runner.run(
            self.ssh_command() + remote_args,
            check=False,
            capture_output=True,
            input_text=input_text,
        )
        stdout = self.command_runner.redact(result.stdout or "")
        stderr = self.command_runner.redact(result.stderr or "")
        exit_code = result.returncode

        if status_marker:
            head, marker, tail = stdout.rpartition("\n" + self.STATUS_MARKER)
            if marker and tail.strip().isdigit():
                return RemoteResult(stdout=head, exit_code=int(tail.strip()), stderr=stderr)

        if exit_code == self.SSH_TRANSPORT_FAILURE:
            raise ConnectivityError(
                f"SSH transport to {self.destination} failed: {stderr.strip() or 'exit status 255'}"
            )
        return RemoteResult(stdout=stdout, exit_code=exit_code, stderr=stderr)
