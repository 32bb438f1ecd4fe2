import logging
import os
import signal
import sys

import click
from rich.logging import RichHandler

from .constants import DEFAULT_APPLICATION_NAME, DEFAULT_BRANCH, ExitCode
from .errors import DeployerError
from .models import CleanupParameterSet, ParameterSet
from .pipeline import DeploymentPipeline
from .services.config_loader import ConfigLoader

DEFAULT_CONFIG_FILE = ".remotedeploy.yml"


class InputError(click.ClickException):
    exit_code = int(ExitCode.INVALID_INPUT)


def _resolve_option(cli_value, config, key, default=None):
    if cli_value is not None:
        return cli_value
    if key in config:
        return config[key]
    return default


def _coerce_port(value):
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return value


def _prompt_missing(value, label, hide_input=False):
    if value not in (None, "") or not sys.stdin.isatty():
        return value
    return click.prompt(label, hide_input=hide_input, default="", show_default=False).strip()


def _raise_interrupt(signum, frame):
    raise KeyboardInterrupt()


logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[RichHandler(rich_tracebacks=True, show_level=False, show_path=False)],
)


@click.command()
@click.option(
    "--cleanup",
    is_flag=True,
    default=False,
    help="Remove a previous deployment from the host instead of deploying.",
)
@click.option("--repo-url", envvar="REMOTEDEPLOY_REPO_URL", help="HTTPS URL of the git repository.")
@click.option("--branch", envvar="REMOTEDEPLOY_BRANCH", help="Branch to deploy (default: main).")
@click.option(
    "--credential",
    envvar="REMOTEDEPLOY_CREDENTIAL",
    help="Access token for the repository. Never written to logs.",
)
@click.option("--remote-user", envvar="REMOTEDEPLOY_REMOTE_USER", help="SSH user on the target host.")
@click.option("--remote-host", envvar="REMOTEDEPLOY_REMOTE_HOST", help="Target host name or IP.")
@click.option(
    "--key",
    "key_path",
    envvar="REMOTEDEPLOY_KEY",
    type=click.Path(),
    help="Path to the SSH private key.",
)
@click.option(
    "--port",
    envvar="REMOTEDEPLOY_PORT",
    type=int,
    help="Host port the container is published on.",
)
@click.option(
    "--app-name",
    envvar="REMOTEDEPLOY_APP_NAME",
    help="Application name used for the clone, remote directory, image, container and site.",
)
@click.option(
    "--workspace",
    envvar="REMOTEDEPLOY_WORKSPACE",
    type=click.Path(),
    help="Directory holding local clones (default: current directory).",
)
@click.option(
    "--log-dir",
    envvar="REMOTEDEPLOY_LOG_DIR",
    type=click.Path(),
    help="Directory for the action log (default: current directory).",
)
@click.option(
    "--known-hosts",
    envvar="REMOTEDEPLOY_KNOWN_HOSTS",
    type=click.Path(),
    help="known_hosts file used to pin host keys (default: ~/.ssh/known_hosts).",
)
@click.option(
    "--config",
    required=False,
    type=click.Path(),
    help=f"Path to a YAML configuration file. Defaults to {DEFAULT_CONFIG_FILE} if present.",
)
@click.option("--verbose", is_flag=True, default=None, help="Enable verbose logging")
def main(
    cleanup,
    repo_url,
    branch,
    credential,
    remote_user,
    remote_host,
    key_path,
    port,
    app_name,
    workspace,
    log_dir,
    known_hosts,
    config,
    verbose,
):
    """Deploy a git repository as a container behind nginx on a remote host."""
    logger = logging.getLogger("remotedeploy")

    try:
        config_loader = ConfigLoader()
        resolved_config = config
        if resolved_config is None:
            default_config_path = os.path.join(os.getcwd(), DEFAULT_CONFIG_FILE)
            if os.path.exists(default_config_path):
                resolved_config = default_config_path

        config_values = config_loader.load(resolved_config)
    except DeployerError as exc:
        raise InputError(str(exc)) from exc

    remote_user = _resolve_option(remote_user, config_values, "remote_user")
    remote_host = _resolve_option(remote_host, config_values, "remote_host")
    key_path = _resolve_option(key_path, config_values, "key")
    app_name = _resolve_option(app_name, config_values, "app_name", default=DEFAULT_APPLICATION_NAME)
    workspace = _resolve_option(workspace, config_values, "workspace")
    log_dir = _resolve_option(log_dir, config_values, "log_dir")
    known_hosts = _resolve_option(known_hosts, config_values, "known_hosts")
    verbose = bool(_resolve_option(verbose, config_values, "verbose", default=False))

    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        logger.setLevel(logging.DEBUG)
    else:
        logger.setLevel(logging.INFO)

    if cleanup:
        parameters = CleanupParameterSet(
            remote_user=_prompt_missing(remote_user, "Remote SSH user"),
            remote_host=_prompt_missing(remote_host, "Remote host"),
            private_key_path=_prompt_missing(key_path, "Path to SSH private key"),
            application_name=str(app_name),
        )
    else:
        repo_url = _resolve_option(repo_url, config_values, "repo_url")
        branch = _resolve_option(branch, config_values, "branch", default=DEFAULT_BRANCH)
        port = _resolve_option(port, config_values, "port")
        parameters = ParameterSet(
            repository_url=_prompt_missing(repo_url, "Git repository HTTPS URL"),
            credential=_prompt_missing(credential, "Repository access token", hide_input=True),
            branch=str(branch),
            remote_user=_prompt_missing(remote_user, "Remote SSH user"),
            remote_host=_prompt_missing(remote_host, "Remote host"),
            private_key_path=_prompt_missing(key_path, "Path to SSH private key"),
            container_port=_coerce_port(_prompt_missing(port, "Container port")),
            application_name=str(app_name),
        )

    signal.signal(signal.SIGTERM, _raise_interrupt)

    pipeline = DeploymentPipeline(
        parameters,
        workspace=workspace,
        log_dir=log_dir,
        known_hosts_file=known_hosts,
        verbose=verbose,
    )
    raise SystemExit(pipeline.run())


if __name__ == "__main__":
    main()
