import logging
import os
import uuid
from dataclasses import replace
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union
from urllib.parse import quote

from rich.console import Console

from .constants import ExitCode
from .errors import (
    AcquisitionError,
    CleanupError,
    ConnectivityError,
    DeployError,
    DeployerError,
    InvalidInputError,
    NoBuildContextError,
    ProvisioningError,
    ProxyConfigError,
    TransferError,
)
from .models import BuildContext, CleanupParameterSet, DeploymentTarget, ParameterSet, PipelineOutcome
from .services.action_log import ActionLog
from .services.build_context import BuildContextLocator
from .services.cleanup import CleanupService
from .services.command_runner import CommandRunner
from .services.container import ContainerDeployer
from .services.provisioner import RemoteProvisioner
from .services.proxy import ReverseProxyConfigurer
from .services.remote_session import RemoteSession
from .services.source import SourceAcquirer, encode_credential
from .services.transfer import FileSynchronizer
from .services.validation import ValidationService

console = Console()
logger = logging.getLogger("remotedeploy")


class DeploymentPipeline:
    """Runs the deploy or cleanup flow for one application on one host.

    Stages run strictly in order and the first failure stops the run. Every
    run produces exactly one :class:`PipelineOutcome` and one action log.
    """

    DEPLOY_STAGES = (
        "validate_parameters",
        "acquire_source",
        "locate_build_context",
        "connect",
        "provision",
        "create_remote_directory",
        "transfer_files",
        "deploy_container",
        "configure_proxy",
    )
    CLEANUP_STAGES = ("validate_parameters", "connect", "cleanup_remote")

    STAGE_ERRORS = {
        "validate_parameters": InvalidInputError,
        "acquire_source": AcquisitionError,
        "locate_build_context": NoBuildContextError,
        "connect": ConnectivityError,
        "provision": ProvisioningError,
        "create_remote_directory": TransferError,
        "transfer_files": TransferError,
        "deploy_container": DeployError,
        "configure_proxy": ProxyConfigError,
        "cleanup_remote": CleanupError,
    }

    def __init__(
        self,
        parameters: Union[ParameterSet, CleanupParameterSet],
        workspace: Optional[str] = None,
        log_dir: Optional[str] = None,
        known_hosts_file: Optional[str] = None,
        verbose: bool = False,
        session_factory: Optional[Callable[..., RemoteSession]] = None,
    ):
        self.parameters = parameters
        self.mode = "cleanup" if isinstance(parameters, CleanupParameterSet) else "deploy"
        self.workspace = Path(workspace).expanduser() if workspace else Path(os.getcwd())
        self.known_hosts_file = known_hosts_file
        self.verbose = verbose
        self.run_id = uuid.uuid4().hex[:10]

        secrets = self._collect_secrets()
        self.command_runner = CommandRunner(logger=logger, secrets=secrets)
        self.action_log = ActionLog(
            logger,
            mode=self.mode,
            log_dir=log_dir,
            secrets=secrets,
            verbose=verbose,
        )

        self.validation_service = ValidationService()
        self.source_acquirer = SourceAcquirer(logger=logger, console=console, command_runner=self.command_runner)
        self.build_context_locator = BuildContextLocator(logger=logger)
        self.provisioner = RemoteProvisioner(logger=logger, console=console)
        self.file_synchronizer = FileSynchronizer(
            logger=logger,
            console=console,
            command_runner=self.command_runner,
        )
        self.container_deployer = ContainerDeployer(logger=logger, console=console)
        self.proxy_configurer = ReverseProxyConfigurer(logger=logger, console=console)
        self.cleanup_service = CleanupService(logger=logger, console=console)
        self.session_factory = session_factory or RemoteSession.connect

        self.target = DeploymentTarget(application_name=parameters.application_name)
        self.session: Optional[RemoteSession] = None
        self.build_context: Optional[BuildContext] = None
        self.revision: Optional[str] = None
        self.removals: Optional[List[str]] = None
        self.current_stage: Optional[str] = None

    def _collect_secrets(self) -> List[str]:
        credential = getattr(self.parameters, "credential", None)
        if not credential:
            return []
        return sorted({credential, encode_credential(credential), quote(credential, safe="")})

    @property
    def clone_directory(self) -> Path:
        return self.target.local_clone_directory(self.workspace)

    # Deploy stages

    def validate_parameters(self):
        if self.mode == "cleanup":
            self.validation_service.validate_cleanup_parameters(self.parameters)
        else:
            self.validation_service.validate_parameters(self.parameters)

    def acquire_source(self) -> Dict[str, Any]:
        self.revision = self.source_acquirer.acquire(
            repository_url=self.parameters.repository_url,
            credential=self.parameters.credential,
            branch=self.parameters.branch,
            destination=self.clone_directory,
        )
        return {"revision": self.revision, "path": str(self.clone_directory)}

    def locate_build_context(self) -> Dict[str, Any]:
        self.build_context = self.build_context_locator.locate(self.clone_directory)
        return {
            "root_path": str(self.build_context.root_path),
            "exposed_port": self.build_context.exposed_port,
        }

    def connect(self) -> Dict[str, Any]:
        self.session = self.session_factory(
            self.parameters.remote_host,
            self.parameters.remote_user,
            self.parameters.private_key_path,
            logger,
            console,
            self.command_runner,
            known_hosts_file=self.known_hosts_file,
        )
        self.target = replace(self.target, remote_home=self.session.home_directory())
        return {"remote_app_directory": self.target.remote_app_directory}

    def provision(self):
        self.provisioner.provision(self.session)

    def create_remote_directory(self):
        self.file_synchronizer.ensure_remote_directory(self.session, self.target)

    def transfer_files(self) -> Dict[str, Any]:
        strategy = self.file_synchronizer.synchronize(self.session, self.build_context, self.target)
        return {"strategy": strategy}

    def deploy_container(self) -> Dict[str, Any]:
        container_id = self.container_deployer.deploy(
            self.session,
            self.target,
            self.build_context,
            self.parameters.container_port,
        )
        return {
            "container": self.target.container_name,
            "image": self.target.image_tag,
            "container_id": container_id,
            "publish": f"{self.parameters.container_port}:{self.build_context.exposed_port}",
        }

    def configure_proxy(self) -> Dict[str, Any]:
        self.proxy_configurer.configure(self.session, self.target, self.parameters.container_port)
        return {"config": self.target.proxy_config_path}

    # Cleanup stages

    def cleanup_remote(self) -> Dict[str, Any]:
        self.removals = self.cleanup_service.cleanup(self.session, self.target)
        return {"removed": self.removals}

    def _run_stage(self, name: str, callback):
        self.action_log.stage_started(name)
        self.current_stage = name

        try:
            details = callback()
        except DeployerError as exc:
            stage_error = self.STAGE_ERRORS[name]
            if not isinstance(exc, stage_error):
                # Tool and transport failures take the classification of the stage they happened in.
                typed = stage_error(str(exc))
                self.action_log.stage_finished(name, "failed", error=str(typed))
                raise typed from exc
            self.action_log.stage_finished(name, "failed", error=str(exc))
            raise
        except BaseException as exc:
            self.action_log.stage_finished(name, "failed", error=str(exc) or type(exc).__name__)
            raise

        self.action_log.stage_finished(name, "success", details=details)
        self.current_stage = None
        return details

    def _execute(self, stage_names) -> PipelineOutcome:
        stages = [(name, getattr(self, name)) for name in stage_names]
        completed: List[str] = []
        exit_code = ExitCode.UNEXPECTED
        classification = "unexpected_error"
        error: Optional[str] = None
        outcome: Optional[PipelineOutcome] = None

        try:
            self.action_log.open()
        except InvalidInputError as exc:
            console.print(f"[bold red]Error:[/bold red] {exc}")
            return PipelineOutcome(
                success=False,
                exit_code=int(exc.exit_code),
                exit_classification=exc.stage,
                log_reference=None,
                failed_stage="run",
                error=str(exc),
            )

        with self.action_log:
            try:
                logger.info("Starting %s of '%s'", self.mode, self.parameters.application_name)
                self.action_log.start(self.run_id, self.parameters.describe())

                for name, callback in stages:
                    self._run_stage(name, callback)
                    completed.append(name)

                exit_code = ExitCode.SUCCESS
                classification = "success"

            except DeployerError as exc:
                error = self.action_log.filter.redact(str(exc))
                console.print(f"[bold red]Error:[/bold red] {error}")
                logger.error(error)
                exit_code = exc.exit_code
                classification = exc.stage
            except KeyboardInterrupt:
                console.print("[bold red]Operation cancelled.[/bold red]")
                logger.info("Operation cancelled")
                exit_code = ExitCode.INTERRUPTED
                classification = "interrupted"
                error = "Operation cancelled."
            except Exception as exc:
                error = self.action_log.filter.redact(str(exc))
                console.print(f"[bold red]Unexpected error:[/bold red] {error}")
                logger.exception("Unexpected error")
            finally:
                self._close_session()
                failed_stage = None if exit_code == ExitCode.SUCCESS else (self.current_stage or "run")
                for name, _ in stages:
                    if name not in completed and name != failed_stage:
                        self.action_log.stage_skipped(name)

                outcome = PipelineOutcome(
                    success=exit_code == ExitCode.SUCCESS,
                    exit_code=int(exit_code),
                    exit_classification=classification,
                    log_reference=self.action_log.reference,
                    failed_stage=failed_stage,
                    error=error,
                    removals=len(self.removals) if self.removals is not None else None,
                    revision=self.revision,
                )
                self.action_log.finalize(outcome)

        if outcome.success:
            self._report_success()
        else:
            console.print(f"[dim]Details: {outcome.log_reference}[/dim]")
        return outcome

    def _close_session(self):
        if self.session is None:
            return
        try:
            self.session.close()
        except DeployerError as exc:
            logger.warning("Could not close the SSH session: %s", exc)
        self.session = None

    def _report_success(self):
        if self.mode == "cleanup":
            console.print(f"[bold green]Cleanup of '{self.target.application_name}' complete.[/bold green]")
            return
        console.print(
            f"[bold green]Deployed '{self.target.application_name}' "
            f"({(self.revision or '')[:12]}) to http://{self.parameters.remote_host}/[/bold green]"
        )

    def deploy(self) -> PipelineOutcome:
        if self.mode != "deploy":
            raise InvalidInputError("Deploy requires repository, credential and port parameters.")
        return self._execute(self.DEPLOY_STAGES)

    def cleanup(self) -> PipelineOutcome:
        if self.mode != "cleanup":
            raise InvalidInputError("Cleanup requires a CleanupParameterSet.")
        return self._execute(self.CLEANUP_STAGES)

    def run(self) -> int:
        outcome = self.cleanup() if self.mode == "cleanup" else self.deploy()
        return outcome.exit_code
