from __future__ import annotations

import os
import socket
from typing import Any, Dict, Optional

from stitcher.common import db as dbm
from stitcher.common.config import load_editor_policy
from stitcher.common.env import Env
from stitcher.common.logging_setup import append_job_log, get_logger
from stitcher.common.paths import scratch_root
from stitcher.core.errors import MalformedRequest, StitchError
from stitcher.core.models import StitchRequest, StitchResponse
from stitcher.core.orchestrator import AssetStager, JobOrchestrator, OrchestratorConfig
from stitcher.core.transcoder import FfmpegTranscoder, Transcoder
from stitcher.integrations.stagers import build_stager


log = get_logger("stitch")


def _publisher(env: Env, request_id: int):
    def _publish(response: StitchResponse) -> None:
        conn = dbm.connect(env)
        try:
            dbm.insert_response(conn, request_id=request_id, payload=response.to_payload())
        finally:
            conn.close()
        log.info(
            "response published request_id=%s job=%s success=%s",
            request_id,
            response.job_id,
            response.success,
        )

    return _publish


def build_orchestrator(
    env: Env,
    *,
    request_id: int,
    stager: Optional[AssetStager] = None,
    transcoder: Optional[Transcoder] = None,
) -> JobOrchestrator:
    return JobOrchestrator(
        cfg=OrchestratorConfig(
            scratch_root=scratch_root(env),
            max_attempts=env.max_delivery_attempts,
            link_ttl_sec=env.link_ttl_days * 24 * 3600,
        ),
        stager=stager if stager is not None else build_stager(env),
        transcoder=transcoder if transcoder is not None else FfmpegTranscoder(env.ffmpeg_path, timeout_sec=env.transform_timeout_sec),
        publish_response=_publisher(env, request_id),
        policy=load_editor_policy(env.editor_config_path),
        job_log=lambda job_id, line: append_job_log(env, job_id, line),
    )


def stitch_cycle(
    *,
    env: Env,
    worker_id: str,
    stager: Optional[AssetStager] = None,
    transcoder: Optional[Transcoder] = None,
) -> None:
    conn = dbm.connect(env)
    try:
        dbm.migrate(conn)

        dbm.touch_worker(
            conn,
            worker_id=worker_id,
            role="stitch",
            pid=os.getpid(),
            hostname=socket.gethostname(),
            details={"stager_backend": env.stager_backend},
        )

        # Recovery for crashed workers: stale PROCESSING rows go back to the queue (or DEAD).
        reclaimed = dbm.reclaim_stale_requests(
            conn, lock_ttl_sec=env.job_lock_ttl_sec, max_attempts=env.max_delivery_attempts
        )
        for r in reclaimed:
            if not r["dead"]:
                continue
            lost = StitchResponse.failed(
                dbm.json_loads(r["payload_json"]) or {},
                error=f"Staging: worker lost the job (stale lock) after {int(r['dequeue_count'] or 0)} attempts",
            )
            dbm.insert_response(conn, request_id=int(r["id"]), payload=lost.to_payload())
            log.warning("request_id=%s dead-lettered after stale lock from %s", r["id"], r.get("locked_by"))

        row = dbm.claim_request(conn, worker_id=worker_id)
    finally:
        conn.close()

    if not row:
        return

    request_id = int(row["id"])
    attempt = int(row["dequeue_count"] or 0)
    payload: Dict[str, Any] = dbm.json_loads(row["payload_json"]) or {}
    publish = _publisher(env, request_id)

    log.info("claimed request_id=%s job=%s attempt=%s", request_id, row.get("job_id"), attempt)

    try:
        request = StitchRequest.from_payload(payload)
    except MalformedRequest as e:
        e.stage = "Staging"
        publish(StitchResponse.failed(payload, error=e.describe()))
        _finish_failed(env, request_id, e, attempt=attempt)
        return

    orchestrator = build_orchestrator(env, request_id=request_id, stager=stager, transcoder=transcoder)
    try:
        orchestrator.run(request, attempt=attempt)
    except StitchError as e:
        _finish_failed(env, request_id, e, attempt=attempt)
        return

    conn = dbm.connect(env)
    try:
        dbm.mark_done(conn, request_id)
    finally:
        conn.close()


def _finish_failed(env: Env, request_id: int, err: StitchError, *, attempt: int) -> None:
    conn = dbm.connect(env)
    try:
        reason = f"attempt={attempt} {err.reason}: {err.describe()}"
        if err.retryable and attempt < env.max_delivery_attempts:
            dbm.schedule_redelivery(conn, request_id, error_reason=reason, backoff_sec=env.retry_backoff_sec)
        else:
            dbm.mark_dead(conn, request_id, error_reason=reason)
    finally:
        conn.close()
