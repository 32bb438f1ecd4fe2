"""Domain errors for remotedeploy."""

from typing import Optional

from remotedeploy.constants import ExitCode


class DeployerError(RuntimeError):
    """Raised when the deployment cannot continue safely."""

    stage = "run"
    exit_code = ExitCode.UNEXPECTED


class InvalidInputError(DeployerError):
    """Parameters failed validation before any network call."""

    stage = "invalid_input"
    exit_code = ExitCode.INVALID_INPUT


class AcquisitionError(DeployerError):
    """The working tree could not be cloned or synchronized."""

    stage = "acquisition_failure"
    exit_code = ExitCode.ACQUISITION

    def __init__(self, message: str, reason: Optional[str] = None):
        super().__init__(message)
        self.reason = reason


class NoBuildContextError(DeployerError):
    stage = "build_context_missing"
    exit_code = ExitCode.BUILD_CONTEXT


class ConnectivityError(DeployerError):
    stage = "connectivity_failure"
    exit_code = ExitCode.CONNECTIVITY


class ProvisioningError(DeployerError):
    stage = "provisioning_failure"
    exit_code = ExitCode.PROVISIONING


class TransferError(DeployerError):
    stage = "transfer_failure"
    exit_code = ExitCode.TRANSFER


class DeployError(DeployerError):
    """Building or starting the container failed on the remote host."""

    stage = "deploy_failure"
    exit_code = ExitCode.DEPLOY


class ProxyConfigError(DeployerError):
    stage = "proxy_config_failure"
    exit_code = ExitCode.PROXY_CONFIG


class CleanupError(DeployerError):
    stage = "cleanup_failure"
    exit_code = ExitCode.CLEANUP
