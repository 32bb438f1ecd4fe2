"""Run manifest generation service."""

import json
import os
import tempfile
from datetime import datetime, timezone
from typing import Any, Dict, Optional


class ManifestService:
    """Collects per-stage execution metadata and writes the run manifest JSON."""

    def __init__(self, manifest_file: str, logger):
        self.manifest_file = manifest_file
        self.logger = logger
        self.manifest: Dict[str, Any] = {
            "run_id": None,
            "mode": None,
            "status": "running",
            "started_at": None,
            "finished_at": None,
            "duration_seconds": None,
            "parameters": {},
            "stages": [],
            "outcome": None,
        }

    def start_run(self, run_id: str, mode: str, parameters: Dict[str, Any]):
        self.manifest["run_id"] = run_id
        self.manifest["mode"] = mode
        self.manifest["status"] = "running"
        self.manifest["started_at"] = self._now()
        self.manifest["parameters"] = parameters
        self.write()

    def stage_started(self, stage_name: str):
        self.manifest["stages"].append(
            {
                "name": stage_name,
                "status": "running",
                "started_at": self._now(),
                "finished_at": None,
                "duration_seconds": None,
                "details": {},
                "error": None,
            }
        )
        self.write()

    def stage_finished(
        self,
        stage_name: str,
        status: str,
        details: Optional[Dict[str, Any]] = None,
        error: Optional[str] = None,
    ):
        for stage in reversed(self.manifest["stages"]):
            if stage["name"] == stage_name and stage["status"] == "running":
                stage["status"] = status
                stage["finished_at"] = self._now()
                stage["error"] = error
                if details:
                    stage["details"].update(details)
                started_at = datetime.fromisoformat(stage["started_at"])
                finished_at = datetime.fromisoformat(stage["finished_at"])
                stage["duration_seconds"] = (finished_at - started_at).total_seconds()
                break
        self.write()

    def stage_skipped(self, stage_name: str):
        self.manifest["stages"].append({"name": stage_name, "status": "not_run"})
        self.write()

    def finalize(self, status: str, outcome: Dict[str, Any]):
        self.manifest["status"] = status
        self.manifest["finished_at"] = self._now()
        if self.manifest.get("started_at"):
            started_at = datetime.fromisoformat(self.manifest["started_at"])
            finished_at = datetime.fromisoformat(self.manifest["finished_at"])
            self.manifest["duration_seconds"] = (finished_at - started_at).total_seconds()
        self.manifest["outcome"] = outcome
        self.write()

    def write(self):
        directory = os.path.dirname(self.manifest_file) or "."
        os.makedirs(directory, exist_ok=True)

        fd, temp_path = tempfile.mkstemp(prefix=".run-manifest-", suffix=".json", dir=directory)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as file_obj:
                json.dump(self.manifest, file_obj, indent=2, sort_keys=True)
                file_obj.write("\n")
            os.replace(temp_path, self.manifest_file)
        except OSError as exc:
            self.logger.warning("Could not write manifest file '%s': %s", self.manifest_file, exc)
            try:
                os.remove(temp_path)
            except OSError:
                pass

    @staticmethod
    def _now() -> str:
        return datetime.now(timezone.utc).isoformat()
