"""Configuration loader for remotedeploy."""

from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from remotedeploy.errors import InvalidInputError


class ConfigLoader:
    """Loads YAML configuration files for CLI defaults."""

    SUPPORTED_KEYS = {
        "repo_url",
        "branch",
        "remote_user",
        "remote_host",
        "key",
        "port",
        "app_name",
        "workspace",
        "log_dir",
        "known_hosts",
        "verbose",
    }
    FORBIDDEN_KEYS = {"credential", "token", "password"}

    def load(self, config_path: Optional[str]) -> Dict[str, Any]:
        if not config_path:
            return {}

        path = Path(config_path)
        if not path.exists():
            raise InvalidInputError(f"Config file not found: {config_path}")

        try:
            parsed = yaml.safe_load(path.read_text(encoding="utf-8"))
        except (yaml.YAMLError, OSError) as exc:
            raise InvalidInputError(f"Invalid config file '{config_path}': {exc}") from exc

        if parsed is None:
            return {}
        if not isinstance(parsed, dict):
            raise InvalidInputError("Config file must contain a YAML mapping at the root.")

        forbidden = sorted(set(parsed.keys()) & self.FORBIDDEN_KEYS)
        if forbidden:
            raise InvalidInputError(
                f"Secrets must not be stored in config files ({', '.join(forbidden)}). "
                "Use --credential or REMOTEDEPLOY_CREDENTIAL instead."
            )

        unknown = sorted(set(parsed.keys()) - self.SUPPORTED_KEYS)
        if unknown:
            unknown_list = ", ".join(unknown)
            raise InvalidInputError(f"Unknown configuration keys: {unknown_list}")

        return parsed
