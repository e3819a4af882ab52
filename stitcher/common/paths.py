from __future__ import annotations

from pathlib import Path
from stitcher.common.env import Env


def storage_root(env: Env) -> Path:
    return Path(env.storage_root).resolve()


def scratch_root(env: Env) -> Path:
    if env.scratch_root:
        return Path(env.scratch_root).resolve()
    return storage_root(env) / "scratch"


def logs_path(env: Env, job_id: str) -> Path:
    return storage_root(env) / "logs" / f"job_{job_id}.log"
