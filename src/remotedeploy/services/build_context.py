"""Build context discovery for remotedeploy."""

import re
from pathlib import Path
from typing import Optional

from remotedeploy.constants import DEFAULT_EXPOSED_PORT
from remotedeploy.errors import NoBuildContextError
from remotedeploy.errors_catalog import actionable_error
from remotedeploy.models import BuildContext


class BuildContextLocator:
    """Finds the directory holding the Dockerfile and the port it exposes."""

    BUILD_FILE_NAME = "dockerfile"
    EXPOSE_PATTERN = re.compile(r"^\s*EXPOSE\s+(\d+)", re.IGNORECASE | re.MULTILINE)

    def __init__(self, logger):
        self.logger = logger

    def locate(self, root: Path) -> BuildContext:
        root = Path(root)

        build_file = self.find_build_file(root)
        if build_file is None:
            for candidate in sorted(self._visible_subdirectories(root), key=lambda p: p.name):
                build_file = self.find_build_file(candidate)
                if build_file is not None:
                    break

        if build_file is None:
            entries = ", ".join(sorted(entry.name for entry in root.iterdir())) if root.is_dir() else ""
            raise NoBuildContextError(
                actionable_error("no_build_context", path=str(root), entries=entries or "<empty>")
            )

        exposed_port = self.discover_exposed_port(build_file)
        self.logger.info(
            "Build context: %s (%s, exposed port %s)", build_file.parent, build_file.name, exposed_port
        )
        return BuildContext(root_path=build_file.parent, exposed_port=exposed_port)

    def find_build_file(self, directory: Path) -> Optional[Path]:
        if not directory.is_dir():
            return None
        matches = sorted(
            entry
            for entry in directory.iterdir()
            if entry.is_file() and entry.name.lower() == self.BUILD_FILE_NAME
        )
        return matches[0] if matches else None

    def discover_exposed_port(self, build_file: Optional[Path]) -> int:
        if build_file is None or not build_file.is_file():
            return DEFAULT_EXPOSED_PORT

        try:
            content = build_file.read_text(encoding="utf-8", errors="replace")
        except OSError as exc:
            self.logger.warning("Could not read %s: %s", build_file, exc)
            return DEFAULT_EXPOSED_PORT

        match = self.EXPOSE_PATTERN.search(content)
        if match is None:
            return DEFAULT_EXPOSED_PORT

        port = int(match.group(1))
        if not 1 <= port <= 65535:
            self.logger.warning(
                "Ignoring out-of-range EXPOSE %s in %s; using port %s.", port, build_file, DEFAULT_EXPOSED_PORT
            )
            return DEFAULT_EXPOSED_PORT
        return port

    @staticmethod
    def _visible_subdirectories(root: Path):
        if not root.is_dir():
            return []
        return [entry for entry in root.iterdir() if entry.is_dir() and not entry.name.startswith(".")]
