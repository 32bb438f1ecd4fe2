"""Subprocess execution service for remotedeploy."""

import os
import subprocess
from typing import Dict, Iterable, List, Optional

from remotedeploy.constants import MASK
from remotedeploy.errors import DeployerError


class CommandRunner:
    """Runs external commands with consistent error handling and secret masking."""

    def __init__(
        self,
        logger,
        default_timeout: Optional[float] = None,
        secrets: Optional[Iterable[str]] = None,
    ):
        self.logger = logger
        self.default_timeout = default_timeout
        self.secrets = [secret for secret in (secrets or []) if secret]

    def redact(self, text: str) -> str:
        # Longest first so an encoded secret containing a shorter one is fully masked.
        for secret in sorted(self.secrets, key=len, reverse=True):
            text = text.replace(secret, MASK)
        return text

    def run(
        self,
        cmd: List[str],
        check: bool = True,
        capture_output: bool = False,
        timeout: Optional[float] = None,
        input_text: Optional[str] = None,
        env: Optional[Dict[str, str]] = None,
        cwd: Optional[str] = None,
    ) -> subprocess.CompletedProcess:
        cmd_str = self.redact(" ".join(cmd))
        self.logger.debug("Executing: %s", cmd_str)

        effective_timeout = timeout if timeout is not None else self.default_timeout
        process_env = None
        if env:
            process_env = os.environ.copy()
            process_env.update(env)

        try:
            result = subprocess.run(
                cmd,
                text=True,
                capture_output=capture_output,
                timeout=effective_timeout,
                input=input_text,
                env=process_env,
                cwd=cwd,
            )
        except FileNotFoundError as exc:
            raise DeployerError(
                f"Required command not found: {cmd[0]}. Please install it and try again."
            ) from exc
        except subprocess.TimeoutExpired as exc:
            raise DeployerError(f"Command timed out after {effective_timeout}s: {cmd_str}") from exc
        except OSError as exc:
            raise DeployerError(
                f"Failed to execute command: {cmd_str}. {self.redact(str(exc))}"
            ) from exc

        if capture_output and result.stdout:
            self.logger.debug("Command output: %s", self.redact(result.stdout.strip()))

        if result.returncode == 0:
            return result

        stderr = self.redact((result.stderr or "").strip()) if capture_output else ""
        message = f"Command failed ({result.returncode}): {cmd_str}"
        if stderr:
            message = f"{message}\n{stderr}"

        if check:
            raise DeployerError(message)

        self.logger.debug(message)
        return result
