from __future__ import annotations

import json
import sqlite3
import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from stitcher.common.env import Env


def _dict_factory(cursor: sqlite3.Cursor, row: Tuple[Any, ...]) -> Dict[str, Any]:
    return {col[0]: row[idx] for idx, col in enumerate(cursor.description)}


def connect(env: Env) -> sqlite3.Connection:
    Path(env.db_path).parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(env.db_path, timeout=30, isolation_level=None)
    conn.row_factory = _dict_factory
    conn.execute("PRAGMA journal_mode=WAL;")
    conn.execute("PRAGMA synchronous=NORMAL;")
    conn.execute("PRAGMA foreign_keys=ON;")
    return conn


def migrate(conn: sqlite3.Connection) -> None:
    conn.executescript(
        """
        CREATE TABLE IF NOT EXISTS stitch_requests (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            job_id TEXT,
            video_id TEXT,
            payload_json TEXT NOT NULL,
            state TEXT NOT NULL,
            dequeue_count INTEGER NOT NULL DEFAULT 0,
            locked_by TEXT,
            locked_at REAL,
            retry_at REAL,
            last_error TEXT,
            created_at REAL NOT NULL,
            updated_at REAL NOT NULL
        );

        CREATE INDEX IF NOT EXISTS idx_stitch_requests_state ON stitch_requests(state, created_at);

        CREATE TABLE IF NOT EXISTS stitch_responses (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            request_id INTEGER,
            job_id TEXT NOT NULL,
            video_id TEXT NOT NULL,
            success INTEGER NOT NULL,
            payload_json TEXT NOT NULL,
            created_at REAL NOT NULL,
            FOREIGN KEY(request_id) REFERENCES stitch_requests(id)
        );

        CREATE INDEX IF NOT EXISTS idx_stitch_responses_job ON stitch_responses(job_id);

        CREATE TABLE IF NOT EXISTS worker_heartbeats (
            worker_id TEXT PRIMARY KEY,
            role TEXT NOT NULL,
            pid INTEGER NOT NULL,
            hostname TEXT NOT NULL,
            details_json TEXT NOT NULL,
            last_seen REAL NOT NULL
        );

        CREATE INDEX IF NOT EXISTS idx_worker_heartbeats_last_seen ON worker_heartbeats(last_seen);
        """
    )


def now_ts() -> float:
    return time.time()


def json_dumps(v: Any) -> str:
    return json.dumps(v, ensure_ascii=False)


def json_loads(s: str) -> Any:
    try:
        return json.loads(s)
    except Exception:
        return None


def enqueue_request(conn: sqlite3.Connection, payload: Dict[str, Any]) -> int:
    ts = now_ts()
    cur = conn.execute(
        """
        INSERT INTO stitch_requests(job_id, video_id, payload_json, state, dequeue_count, created_at, updated_at)
        VALUES(?, ?, ?, 'QUEUED', 0, ?, ?)
        """,
        (
            str(payload.get("jobId") or ""),
            str(payload.get("videoId") or ""),
            json_dumps(payload),
            ts,
            ts,
        ),
    )
    return int(cur.lastrowid)


def get_request(conn: sqlite3.Connection, request_id: int) -> Optional[Dict[str, Any]]:
    return conn.execute("SELECT * FROM stitch_requests WHERE id = ?", (request_id,)).fetchone()


def list_requests(conn: sqlite3.Connection, state: Optional[str] = None, limit: int = 200) -> List[Dict[str, Any]]:
    if state:
        cur = conn.execute(
            "SELECT * FROM stitch_requests WHERE state = ? ORDER BY id DESC LIMIT ?",
            (state, limit),
        )
    else:
        cur = conn.execute("SELECT * FROM stitch_requests ORDER BY id DESC LIMIT ?", (limit,))
    return cur.fetchall()


def claim_request(
    conn: sqlite3.Connection,
    *,
    worker_id: str,
) -> Optional[Dict[str, Any]]:
    """Claim one queued request atomically and count the delivery.

    Rules:
      - only QUEUED requests
      - skip requests scheduled for redelivery in the future (retry_at)
      - dequeue_count is incremented on every claim; it is the attempt number
    """

    ts = now_ts()

    conn.execute("BEGIN IMMEDIATE;")

    row = conn.execute(
        """
        SELECT id FROM stitch_requests
        WHERE state = 'QUEUED'
          AND locked_by IS NULL
          AND (retry_at IS NULL OR retry_at <= ?)
        ORDER BY created_at ASC, id ASC
        LIMIT 1
        """,
        (ts,),
    ).fetchone()
    if not row:
        conn.execute("COMMIT;")
        return None

    request_id = int(row["id"])
    cur = conn.execute(
        """
        UPDATE stitch_requests
        SET state = 'PROCESSING', locked_by = ?, locked_at = ?, updated_at = ?,
            dequeue_count = dequeue_count + 1
        WHERE id = ? AND locked_by IS NULL
        """,
        (worker_id, ts, ts, request_id),
    )
    conn.execute("COMMIT;")
    if cur.rowcount != 1:
        return None
    return get_request(conn, request_id)


def schedule_redelivery(
    conn: sqlite3.Connection,
    request_id: int,
    *,
    error_reason: str,
    backoff_sec: int,
) -> None:
    ts = now_ts()
    retry_at = ts + float(backoff_sec)
    conn.execute(
        """
        UPDATE stitch_requests
        SET state = 'QUEUED', last_error = ?, retry_at = ?, updated_at = ?, locked_by = NULL, locked_at = NULL
        WHERE id = ?
        """,
        (error_reason, retry_at, ts, request_id),
    )


def mark_dead(conn: sqlite3.Connection, request_id: int, *, error_reason: str) -> None:
    ts = now_ts()
    conn.execute(
        """
        UPDATE stitch_requests
        SET state = 'DEAD', last_error = ?, retry_at = NULL, updated_at = ?, locked_by = NULL, locked_at = NULL
        WHERE id = ?
        """,
        (error_reason, ts, request_id),
    )


def mark_done(conn: sqlite3.Connection, request_id: int) -> None:
    ts = now_ts()
    conn.execute(
        """
        UPDATE stitch_requests
        SET state = 'DONE', last_error = NULL, retry_at = NULL, updated_at = ?, locked_by = NULL, locked_at = NULL
        WHERE id = ?
        """,
        (ts, request_id),
    )


def reclaim_stale_requests(
    conn: sqlite3.Connection,
    *,
    lock_ttl_sec: int,
    max_attempts: int,
) -> List[Dict[str, Any]]:
    """Recover requests stuck in PROCESSING because a worker crashed.

    The crashed delivery already counted towards dequeue_count, so a request
    that used up its budget goes straight to DEAD.
    Returns the reclaimed rows; each carries `dead` (bool) and `payload_json`.
    """

    ts = now_ts()
    expiry = ts - float(lock_ttl_sec)
    rows = conn.execute(
        """
        SELECT id, job_id, payload_json, dequeue_count, locked_by FROM stitch_requests
        WHERE state = 'PROCESSING'
          AND locked_by IS NOT NULL
          AND locked_at IS NOT NULL
          AND locked_at < ?
        """,
        (expiry,),
    ).fetchall()

    reclaimed: List[Dict[str, Any]] = []
    for r in rows:
        request_id = int(r["id"])
        attempt = int(r["dequeue_count"] or 0)
        reason = f"reclaimed stale lock from {r.get('locked_by')}"
        if attempt < max_attempts:
            schedule_redelivery(conn, request_id, error_reason=f"attempt={attempt} retry: {reason}", backoff_sec=0)
        else:
            mark_dead(conn, request_id, error_reason=f"attempt={attempt} terminal: {reason}")
        reclaimed.append({**r, "dead": attempt >= max_attempts})

    return reclaimed


def insert_response(conn: sqlite3.Connection, *, request_id: Optional[int], payload: Dict[str, Any]) -> int:
    cur = conn.execute(
        """
        INSERT INTO stitch_responses(request_id, job_id, video_id, success, payload_json, created_at)
        VALUES(?, ?, ?, ?, ?, ?)
        """,
        (
            request_id,
            str(payload.get("jobId") or ""),
            str(payload.get("videoId") or ""),
            1 if payload.get("success") else 0,
            json_dumps(payload),
            now_ts(),
        ),
    )
    return int(cur.lastrowid)


def list_responses(conn: sqlite3.Connection, *, job_id: Optional[str] = None, limit: int = 200) -> List[Dict[str, Any]]:
    if job_id:
        cur = conn.execute(
            "SELECT * FROM stitch_responses WHERE job_id = ? ORDER BY id DESC LIMIT ?",
            (job_id, limit),
        )
    else:
        cur = conn.execute("SELECT * FROM stitch_responses ORDER BY id DESC LIMIT ?", (limit,))
    return cur.fetchall()


def touch_worker(
    conn: sqlite3.Connection,
    *,
    worker_id: str,
    role: str,
    pid: int,
    hostname: str,
    details: Dict[str, Any],
) -> None:
    ts = now_ts()
    conn.execute(
        """
        INSERT INTO worker_heartbeats(worker_id, role, pid, hostname, details_json, last_seen)
        VALUES(?, ?, ?, ?, ?, ?)
        ON CONFLICT(worker_id) DO UPDATE SET
            role=excluded.role,
            pid=excluded.pid,
            hostname=excluded.hostname,
            details_json=excluded.details_json,
            last_seen=excluded.last_seen
        """,
        (worker_id, role, pid, hostname, json_dumps(details), ts),
    )


def list_workers(conn: sqlite3.Connection, limit: int = 200) -> List[Dict[str, Any]]:
    cur = conn.execute(
        """
        SELECT worker_id, role, pid, hostname, details_json, last_seen
        FROM worker_heartbeats
        ORDER BY last_seen DESC
        LIMIT ?
        """,
        (limit,),
    )
    return cur.fetchall()
