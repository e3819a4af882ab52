from __future__ import annotations

import os
import shutil
import socket

from stitcher.common import db as dbm
from stitcher.common.env import Env
from stitcher.common.logging_setup import get_logger
from stitcher.common.paths import scratch_root


log = get_logger("cleanup")


def cleanup_cycle(*, env: Env, worker_id: str) -> None:
    """Remove scratch dirs left behind by crashed workers.

    A live job never holds its scratch dir longer than the lock TTL, so
    anything older is orphaned.
    """
    conn = dbm.connect(env)
    try:
        dbm.migrate(conn)
        dbm.touch_worker(
            conn,
            worker_id=worker_id,
            role="cleanup",
            pid=os.getpid(),
            hostname=socket.gethostname(),
            details={"state": "running"},
        )
    finally:
        conn.close()

    root = scratch_root(env)
    if not root.exists():
        return

    cutoff = dbm.now_ts() - float(env.job_lock_ttl_sec)
    removed = 0
    for ws in root.iterdir():
        if not ws.is_dir():
            continue
        try:
            if ws.stat().st_mtime >= cutoff:
                continue
        except FileNotFoundError:
            continue
        shutil.rmtree(ws, ignore_errors=True)
        removed += 1
    log.info("cleanup_cycle done removed=%d", removed)
