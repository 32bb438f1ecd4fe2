"""Remote runtime provisioning (Docker and nginx)."""

import shlex

from remotedeploy.errors import ProvisioningError
from remotedeploy.errors_catalog import actionable_error
from remotedeploy.services.remote_session import SUDO_PREAMBLE


class RemoteProvisioner:
    """Installs and starts the container engine and reverse proxy when missing."""

    UNSUPPORTED_PACKAGE_MANAGER = 3
    INSTALL_FAILED = 4
    OUTPUT_TAIL_LINES = 20

    def __init__(self, logger, console):
        self.logger = logger
        self.console = console

    def build_script(self, remote_user: str) -> str:
        user = shlex.quote(remote_user)
        return f"""
set -u
{SUDO_PREAMBLE}

if command -v apt-get >/dev/null 2>&1; then
  PM=apt
elif command -v dnf >/dev/null 2>&1; then
  PM=dnf
elif command -v yum >/dev/null 2>&1; then
  PM=yum
else
  PM=""
fi

install_pkg() {{
  case "$PM" in
    apt) $SUDO env DEBIAN_FRONTEND=noninteractive apt-get install -y "$1" ;;
    dnf) $SUDO dnf install -y "$1" ;;
    yum) $SUDO yum install -y "$1" ;;
  esac
}}

NEED_DOCKER=0
NEED_NGINX=0
command -v docker >/dev/null 2>&1 || NEED_DOCKER=1
command -v nginx >/dev/null 2>&1 || NEED_NGINX=1

if [ "$NEED_DOCKER" -eq 1 ] || [ "$NEED_NGINX" -eq 1 ]; then
  if [ -z "$PM" ]; then
    echo "unsupported package manager"
    exit {self.UNSUPPORTED_PACKAGE_MANAGER}
  fi
  if [ "$PM" = apt ]; then
    $SUDO env DEBIAN_FRONTEND=noninteractive apt-get update -y || exit {self.INSTALL_FAILED}
  fi
fi

if [ "$NEED_DOCKER" -eq 1 ]; then
  echo "installing docker"
  if [ "$PM" = apt ]; then install_pkg docker.io; else install_pkg docker; fi || exit {self.INSTALL_FAILED}
else
  echo "docker already installed"
fi

if [ "$NEED_NGINX" -eq 1 ]; then
  echo "installing nginx"
  install_pkg nginx || exit {self.INSTALL_FAILED}
else
  echo "nginx already installed"
fi

$SUDO systemctl enable --now docker >/dev/null 2>&1 || echo "warning: could not enable docker"
$SUDO systemctl enable --now nginx >/dev/null 2>&1 || echo "warning: could not enable nginx"

$SUDO usermod -aG docker {user} >/dev/null 2>&1 || echo "warning: could not add {user} to the docker group"
exit 0
""".lstrip()

    def provision(self, session) -> str:
        self.console.print("[blue]Ensuring Docker and nginx are installed on the host...[/blue]")
        self.logger.info("Provisioning %s", session.destination)

        result = session.run_script(self.build_script(session.user))
        for line in result.stdout.splitlines():
            if line.startswith("warning:"):
                self.logger.warning(line)
            elif line.strip():
                self.logger.info("provision: %s", line)

        if result.exit_code == self.UNSUPPORTED_PACKAGE_MANAGER:
            raise ProvisioningError(actionable_error("unsupported_package_manager", host=session.host))
        if result.exit_code != 0:
            raise ProvisioningError(
                f"Provisioning failed on {session.destination} (exit {result.exit_code}):\n"
                f"{self._tail(result)}"
            )

        self.console.print("[green]Docker and nginx are ready.[/green]")
        return result.stdout

    def _tail(self, result) -> str:
        lines = (result.stdout + result.stderr).strip().splitlines()
        return "\n".join(lines[-self.OUTPUT_TAIL_LINES:])
