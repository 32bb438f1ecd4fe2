"""nginx site generation and installation."""

import shlex

from remotedeploy.constants import PROXY_SITES_ENABLED
from remotedeploy.errors import ProxyConfigError
from remotedeploy.errors_catalog import actionable_error
from remotedeploy.services.remote_session import SUDO_PREAMBLE

SITE_TEMPLATE = """
server {{
    listen 80;
    listen [::]:80;
    server_name _;

    location / {{
        proxy_pass http://127.0.0.1:{port};
        proxy_set_header Host $host;
        proxy_set_header X-Real-IP $remote_addr;
        proxy_set_header X-Forwarded-For $proxy_add_x_forwarded_for;
        proxy_set_header X-Forwarded-Proto $scheme;
    }}
}}
""".lstrip()


class ReverseProxyConfigurer:
    """Routes public port 80 to the container's published port.

    A configuration rejected by ``nginx -t`` is kept next to the site file as
    ``<name>.conf.rejected`` and the previous file (if any) is put back, so the
    running proxy never loads a broken site.
    """

    VALIDATION_FAILED = 5
    RELOAD_FAILED = 6
    HEREDOC_MARKER = "REMOTEDEPLOY_SITE"

    def __init__(self, logger, console):
        self.logger = logger
        self.console = console

    def render_site_config(self, container_port: int) -> str:
        return SITE_TEMPLATE.format(port=int(container_port))

    def build_script(self, target, container_port: int) -> str:
        conf = shlex.quote(target.proxy_config_path)
        link = shlex.quote(target.proxy_enabled_path)
        default_site = shlex.quote(f"{PROXY_SITES_ENABLED}/default")
        site = self.render_site_config(container_port)
        return f"""
set -u
{SUDO_PREAMBLE}
CONF={conf}
LINK={link}

$SUDO mkdir -p "$(dirname "$CONF")" "$(dirname "$LINK")"
$SUDO tee "$CONF.new" >/dev/null <<'{self.HEREDOC_MARKER}'
{site}{self.HEREDOC_MARKER}

HAD_PREVIOUS=0
if [ -f "$CONF" ]; then
  $SUDO cp -p "$CONF" "$CONF.bak"
  HAD_PREVIOUS=1
fi
$SUDO mv -f "$CONF.new" "$CONF"

CREATED_LINK=0
if [ ! -e "$LINK" ] && [ ! -L "$LINK" ]; then
  $SUDO ln -s "$CONF" "$LINK"
  CREATED_LINK=1
fi

if ! $SUDO nginx -t 2>&1; then
  $SUDO cp -p "$CONF" "$CONF.rejected"
  if [ "$HAD_PREVIOUS" -eq 1 ]; then
    $SUDO mv -f "$CONF.bak" "$CONF"
  else
    $SUDO rm -f "$CONF"
  fi
  if [ "$CREATED_LINK" -eq 1 ]; then
    $SUDO rm -f "$LINK"
  fi
  exit {self.VALIDATION_FAILED}
fi
$SUDO rm -f "$CONF.bak" "$CONF.rejected"

if [ -L {default_site} ]; then
  $SUDO rm -f {default_site}
  echo "disabled default nginx site"
fi

$SUDO systemctl enable nginx >/dev/null 2>&1 || echo "warning: could not enable nginx"
if $SUDO systemctl is-active --quiet nginx; then
  $SUDO systemctl reload nginx || exit {self.RELOAD_FAILED}
else
  $SUDO systemctl start nginx || exit {self.RELOAD_FAILED}
fi
exit 0
""".lstrip()

    def configure(self, session, target, container_port: int):
        self.console.print("[blue]Configuring nginx...[/blue]")
        self.logger.info(
            "Installing %s forwarding port 80 to 127.0.0.1:%s",
            target.proxy_config_path,
            container_port,
        )

        result = session.run_script(self.build_script(target, container_port))
        output = (result.stdout + result.stderr).strip()

        if result.exit_code == self.VALIDATION_FAILED:
            self.logger.error("nginx -t output:\n%s", output)
            raise ProxyConfigError(
                actionable_error(
                    "proxy_config_invalid",
                    app=target.application_name,
                    path=target.proxy_config_path,
                )
            )
        if result.exit_code != 0:
            raise ProxyConfigError(
                f"nginx could not be reloaded on {session.destination} (exit {result.exit_code}):\n{output}"
            )

        for line in result.stdout.splitlines():
            if line.startswith("warning:"):
                self.logger.warning(line)
        self.console.print("[green]nginx is routing port 80 to the application.[/green]")
