"""Remote container build and replacement."""

import shlex

from remotedeploy.errors import DeployError
from remotedeploy.services.remote_session import SUDO_PREAMBLE


class ContainerDeployer:
    """Builds the image on the host and swaps the running container.

    All steps run as one remote script so they share the working directory.
    The image is built before the previous container is removed, so a failed
    build leaves the old container serving traffic.
    """

    OUTPUT_TAIL_LINES = 30

    def __init__(self, logger, console):
        self.logger = logger
        self.console = console

    def build_script(self, target, build_context, container_port: int) -> str:
        directory = shlex.quote(target.remote_app_directory)
        image = shlex.quote(target.image_tag)
        name = shlex.quote(target.container_name)
        publish = f"{int(container_port)}:{int(build_context.exposed_port)}"
        return f"""
set -eu
{SUDO_PREAMBLE}
cd {directory}
echo "building image {target.image_tag}"
$SUDO docker build -t {image} .
if $SUDO docker container inspect {name} >/dev/null 2>&1; then
  echo "removing previous container {target.container_name}"
  $SUDO docker rm -f {name} >/dev/null
fi
echo "starting container {target.container_name} on {publish}"
$SUDO docker run -d --name {name} --restart unless-stopped -p {publish} {image}
""".lstrip()

    def deploy(self, session, target, build_context, container_port: int) -> str:
        self.console.print(f"[blue]Building and starting {target.container_name}...[/blue]")
        self.logger.info(
            "Deploying %s as %s (port %s -> %s)",
            target.image_tag,
            target.container_name,
            container_port,
            build_context.exposed_port,
        )

        result = session.run_script(self.build_script(target, build_context, container_port))
        if result.exit_code != 0:
            lines = (result.stdout + result.stderr).strip().splitlines()
            raise DeployError(
                f"Container deployment of {target.container_name} failed (exit {result.exit_code}):\n"
                + "\n".join(lines[-self.OUTPUT_TAIL_LINES:])
            )

        container_id = result.stdout.strip().splitlines()[-1] if result.stdout.strip() else ""
        self.logger.info("Container %s running (%s)", target.container_name, container_id[:12])
        self.console.print(f"[green]Container {target.container_name} is running.[/green]")
        return container_id
