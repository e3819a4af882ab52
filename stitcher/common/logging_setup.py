from __future__ import annotations

import logging
import sys
import time
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import List

from stitcher.common.env import Env
from stitcher.common.paths import logs_path, storage_root
from stitcher.common.utils import safe_slug


LINE_FORMAT = "%(asctime)s | %(levelname)s | %(service)s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# marks handlers installed here so a second setup_logging() replaces them
_OWNER_ATTR = "_stitcher_service"


class _ServiceTag(logging.Filter):
    """Stamps every record with the process role (editor_api, worker-stitch, ...)."""

    def __init__(self, service: str):
        super().__init__()
        self.service = service

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: A003
        record.service = getattr(record, "service", self.service)
        return True


def service_log_path(env: Env, service: str) -> Path:
    return storage_root(env) / "logs" / f"{safe_slug(service, max_len=80)}.log"


def _handlers(env: Env, service: str) -> List[logging.Handler]:
    path = service_log_path(env, service)
    path.parent.mkdir(parents=True, exist_ok=True)
    handlers: List[logging.Handler] = [
        # stdout goes to journald under systemd
        logging.StreamHandler(sys.stdout),
        RotatingFileHandler(
            filename=str(path),
            maxBytes=env.log_file_max_bytes,
            backupCount=env.log_file_backups,
            encoding="utf-8",
        ),
    ]
    fmt = logging.Formatter(fmt=LINE_FORMAT, datefmt=DATE_FORMAT)
    for h in handlers:
        h.setFormatter(fmt)
        h.addFilter(_ServiceTag(service))
        setattr(h, _OWNER_ATTR, service)
    return handlers


def setup_logging(env: Env, *, service: str) -> None:
    """Route the process' logging to stdout and storage/logs/<service>.log.

    Calling it again with the same service is a no-op; a different service
    swaps the handlers so one process never writes two service logs.
    """
    root = logging.getLogger()
    ours = [h for h in root.handlers if hasattr(h, _OWNER_ATTR)]
    if ours and all(getattr(h, _OWNER_ATTR) == service for h in ours):
        root.setLevel(env.log_level)
        return

    for h in ours:
        root.removeHandler(h)
        h.close()
    for h in _handlers(env, service):
        root.addHandler(h)
    root.setLevel(env.log_level)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def append_job_log(env: Env, job_id: str, line: str) -> None:
    """Append one timestamped line to storage/logs/job_<slug>.log.

    The per-job file holds state changes, ffmpeg commands and their stderr
    tails, so an operator can follow one job without grepping worker logs.
    """
    p = logs_path(env, safe_slug(str(job_id), max_len=80))
    p.parent.mkdir(parents=True, exist_ok=True)
    stamp = time.strftime(DATE_FORMAT)
    with p.open("a", encoding="utf-8") as f:
        for part in line.rstrip().splitlines() or [""]:
            f.write(f"{stamp} {part}\n")
