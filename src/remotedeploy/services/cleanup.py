"""Best-effort removal of a deployment from the remote host."""

import shlex
from typing import List

from remotedeploy.errors import CleanupError
from remotedeploy.services.remote_session import SUDO_PREAMBLE


class CleanupService:
    """Removes the container, image, directory and nginx site of one application.

    Each step tolerates absence. Every resource actually removed is reported on
    its own ``removed <kind> <name>`` line.
    """

    REMOVED_PREFIX = "removed "

    def __init__(self, logger, console):
        self.logger = logger
        self.console = console

    def build_script(self, target) -> str:
        name = shlex.quote(target.container_name)
        image = shlex.quote(target.image_tag)
        directory = shlex.quote(target.remote_app_directory)
        conf = shlex.quote(target.proxy_config_path)
        link = shlex.quote(target.proxy_enabled_path)
        return f"""
set -u
{SUDO_PREAMBLE}

if command -v docker >/dev/null 2>&1; then
  if $SUDO docker container inspect {name} >/dev/null 2>&1; then
    $SUDO docker stop {name} >/dev/null 2>&1 || echo "warning: could not stop container {target.container_name}"
    if $SUDO docker rm -f {name} >/dev/null 2>&1; then
      echo "removed container {target.container_name}"
    else
      echo "warning: could not remove container {target.container_name}"
    fi
  fi
  if $SUDO docker image inspect {image} >/dev/null 2>&1; then
    if $SUDO docker rmi -f {image} >/dev/null 2>&1; then
      echo "removed image {target.image_tag}"
    else
      echo "warning: could not remove image {target.image_tag}"
    fi
  fi
fi

if [ -e {directory} ]; then
  if rm -rf {directory} 2>/dev/null || $SUDO rm -rf {directory}; then
    echo "removed directory {target.remote_app_directory}"
  else
    echo "warning: could not remove {target.remote_app_directory}"
  fi
fi

if [ -e {link} ] || [ -L {link} ]; then
  $SUDO rm -f {link} && echo "removed site-link {target.proxy_enabled_path}"
fi
if [ -e {conf} ]; then
  $SUDO rm -f {conf} && echo "removed site-config {target.proxy_config_path}"
fi

if command -v nginx >/dev/null 2>&1; then
  if $SUDO nginx -t >/dev/null 2>&1; then
    $SUDO systemctl reload nginx >/dev/null 2>&1 || echo "warning: could not reload nginx"
  else
    echo "warning: nginx configuration does not validate, skipping reload"
  fi
fi
exit 0
""".lstrip()

    def parse_removals(self, stdout: str) -> List[str]:
        return [
            line[len(self.REMOVED_PREFIX):].strip()
            for line in stdout.splitlines()
            if line.startswith(self.REMOVED_PREFIX)
        ]

    def cleanup(self, session, target) -> List[str]:
        self.console.print(f"[blue]Removing {target.application_name} from {session.destination}...[/blue]")
        result = session.run_script(self.build_script(target))

        for line in result.stdout.splitlines():
            if line.startswith("warning:"):
                self.logger.warning(line)

        # The remote script's own status, not the status of the local ssh wrapper.
        if result.exit_code != 0:
            raise CleanupError(
                f"Cleanup script failed on {session.destination} (exit {result.exit_code}): "
                f"{(result.stderr or result.stdout).strip()}"
            )

        removals = self.parse_removals(result.stdout)
        for removal in removals:
            self.logger.info("Removed %s", removal)
        if removals:
            self.console.print(f"[green]Removed {len(removals)} resource(s).[/green]")
        else:
            self.console.print("[green]Nothing to remove; host is already clean.[/green]")
        return removals
