"""Append-only action log and run context for one pipeline invocation."""

import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from remotedeploy.constants import LOG_TIMESTAMP_FORMAT, MASK
from remotedeploy.errors import InvalidInputError
from remotedeploy.services.manifest import ManifestService

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class RedactingFilter(logging.Filter):
    """Masks secrets in every record passing through the logger."""

    def __init__(self, secrets: Optional[Iterable[str]] = None):
        super().__init__()
        self.secrets: List[str] = [secret for secret in (secrets or []) if secret]

    def redact(self, text: str) -> str:
        for secret in sorted(self.secrets, key=len, reverse=True):
            text = text.replace(secret, MASK)
        return text

    def filter(self, record: logging.LogRecord) -> bool:
        if not self.secrets:
            return True

        message = record.getMessage()
        redacted = self.redact(message)
        if redacted != message:
            record.msg = redacted
            record.args = ()

        if record.exc_info and not record.exc_text:
            record.exc_text = logging.Formatter().formatException(record.exc_info)
        if record.exc_text:
            record.exc_text = self.redact(record.exc_text)
        return True


class ActionLog:
    """Run context passed through the pipeline.

    Owns the timestamped log file, the secret filter and the run manifest, and
    accumulates stage results until the run is finalized. Use it as a context
    manager so the log is always closed, including on interrupts.
    """

    def __init__(
        self,
        logger: logging.Logger,
        mode: str = "deploy",
        log_dir: Optional[str] = None,
        secrets: Optional[Iterable[str]] = None,
        verbose: bool = False,
        timestamp: Optional[str] = None,
    ):
        self.logger = logger
        self.mode = mode
        self.verbose = verbose
        stamp = timestamp or datetime.now().strftime(LOG_TIMESTAMP_FORMAT)
        directory = Path(log_dir).expanduser() if log_dir else Path(os.getcwd())
        self.path = directory / f"{mode}_{stamp}.log"
        self.manifest = ManifestService(str(self.path.with_suffix(".json")), logger=logger)
        self.filter = RedactingFilter(secrets)
        self.handler: Optional[logging.FileHandler] = None
        self.stages: List[Dict[str, Any]] = []
        self.outcome = None

    @property
    def reference(self) -> str:
        return str(self.path)

    def open(self) -> "ActionLog":
        if self.handler is not None:
            return self

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            handler = logging.FileHandler(self.path, mode="a", encoding="utf-8")
        except OSError as exc:
            raise InvalidInputError(f"Cannot write the action log {self.path}: {exc}") from exc

        self.logger.addFilter(self.filter)
        self.handler = handler
        self.handler.setLevel(logging.DEBUG if self.verbose else logging.INFO)
        self.handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
        self.logger.addHandler(self.handler)
        if self.logger.level == logging.NOTSET:
            self.logger.setLevel(self.handler.level)

        self.logger.info("=== %s run started, log: %s ===", self.mode, self.path)
        return self

    def __enter__(self) -> "ActionLog":
        return self.open()

    def start(self, run_id: str, parameters: Dict[str, Any]):
        self.manifest.start_run(run_id=run_id, mode=self.mode, parameters=parameters)

    def stage_started(self, name: str):
        self.logger.info("Stage %s started", name)
        self.manifest.stage_started(name)

    def stage_finished(
        self,
        name: str,
        status: str,
        details: Optional[Dict[str, Any]] = None,
        error: Optional[str] = None,
    ):
        error = self.filter.redact(error) if error else None
        self.stages.append({"name": name, "status": status, "details": details or {}, "error": error})
        if error:
            self.logger.error("Stage %s %s: %s", name, status, error)
        else:
            self.logger.info("Stage %s %s", name, status)
        self.manifest.stage_finished(name, status, details=details, error=error)

    def stage_skipped(self, name: str):
        self.stages.append({"name": name, "status": "not_run", "details": {}, "error": None})
        self.manifest.stage_skipped(name)

    def finalize(self, outcome):
        self.outcome = outcome
        status = "success" if outcome.success else "failed"
        self.manifest.finalize(
            status,
            outcome={
                "success": outcome.success,
                "exit_code": outcome.exit_code,
                "exit_classification": outcome.exit_classification,
                "failed_stage": outcome.failed_stage,
                "error": self.filter.redact(outcome.error) if outcome.error else None,
                "removals": outcome.removals,
                "revision": outcome.revision,
                "log_reference": outcome.log_reference,
            },
        )
        self.logger.info(
            "=== %s run finished: %s (exit %s%s) ===",
            self.mode,
            status,
            outcome.exit_code,
            f", failed stage {outcome.failed_stage}" if outcome.failed_stage else "",
        )

    def __exit__(self, exc_type, exc, tb):
        if self.handler is not None:
            self.logger.removeHandler(self.handler)
            self.handler.close()
            self.handler = None
        self.logger.removeFilter(self.filter)
        return False
