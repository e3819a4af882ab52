from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional

from fastapi import Body, Depends, FastAPI, HTTPException
from fastapi.responses import FileResponse

from stitcher.common import db as dbm
from stitcher.common.config import load_editor_policy
from stitcher.common.env import Env
from stitcher.core.errors import AssetUnavailable, MalformedRequest
from stitcher.core.filtergraph import build_stitch_plan
from stitcher.core.models import StitchRequest
from stitcher.editor_api.security import require_basic_auth
from stitcher.integrations.local_fs import resolve_asset_path
from stitcher.integrations.signing import LinkSignatureError, verify_link


env = Env.load()
policy = load_editor_policy(env.editor_config_path)
app = FastAPI(title="Stitcher Editor API", version="0.1.0")


def _db():
    conn = dbm.connect(env)
    dbm.migrate(conn)
    return conn


@app.get("/health")
def health():
    conn = dbm.connect(env)
    try:
        conn.execute("SELECT 1;")
    finally:
        conn.close()
    return {"ok": True, "db": "ok"}


@app.get("/api/editor/fonts")
def api_fonts(_user: str = Depends(require_basic_auth(env))):
    return list(policy.fonts)


@app.get("/api/editor/resolutions")
def api_resolutions(_user: str = Depends(require_basic_auth(env))):
    return list(policy.resolutions)


@app.get("/v1/workers")
def api_workers(limit: int = 200, _user: str = Depends(require_basic_auth(env))):
    conn = _db()
    try:
        rows = dbm.list_workers(conn, limit=limit)
    finally:
        conn.close()
    for r in rows:
        r["details"] = dbm.json_loads(r.get("details_json") or "{}") or {}
    return {"workers": rows}


@app.post("/v1/stitch")
def api_enqueue_stitch(payload: Dict[str, Any] = Body(...), _user: str = Depends(require_basic_auth(env))):
    try:
        req = StitchRequest.from_payload(payload)
        # surfaces bad colours, zero durations and unsupported sizes before queueing
        build_stitch_plan(req, policy)
    except MalformedRequest as e:
        raise HTTPException(422, str(e))

    conn = _db()
    try:
        request_id = dbm.enqueue_request(conn, req.to_payload())
    finally:
        conn.close()
    return {"id": request_id, "jobId": req.job_id, "videoId": req.video_id, "state": "QUEUED"}


@app.get("/v1/stitch/{request_id}")
def api_get_stitch(request_id: int, _user: str = Depends(require_basic_auth(env))):
    conn = _db()
    try:
        row = dbm.get_request(conn, request_id)
        if not row:
            raise HTTPException(404, "request not found")
        responses = dbm.list_responses(conn, job_id=str(row.get("job_id") or ""))
    finally:
        conn.close()
    return {
        "id": int(row["id"]),
        "state": row["state"],
        "attempts": int(row["dequeue_count"] or 0),
        "lastError": row.get("last_error"),
        "responses": [dbm.json_loads(r["payload_json"]) for r in responses if r.get("request_id") == request_id],
    }


@app.get("/v1/responses")
def api_responses(job_id: Optional[str] = None, limit: int = 200, _user: str = Depends(require_basic_auth(env))):
    conn = _db()
    try:
        rows = dbm.list_responses(conn, job_id=job_id, limit=limit)
    finally:
        conn.close()
    return {"responses": [dbm.json_loads(r["payload_json"]) for r in rows]}


@app.get("/files/{reference:path}")
def api_published_file(reference: str, se: int, sig: str, sp: str = "r"):
    """Serves local-backend artifacts to holders of a signed retrieval link."""
    if sp != "r":
        raise HTTPException(403, "read-only links only")
    try:
        verify_link(secret=env.link_signing_secret, reference=reference, expires_at=se, sig=sig)
        path = resolve_asset_path(Path(env.local_publish_root), reference)
    except (LinkSignatureError, AssetUnavailable) as e:
        raise HTTPException(403, str(e))
    if not path.is_file():
        raise HTTPException(404, "file not found")
    return FileResponse(str(path), media_type="video/mp4", filename=path.name)
