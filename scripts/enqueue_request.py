from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from stitcher.common import db as dbm
from stitcher.common.config import dump_json, load_editor_policy
from stitcher.common.env import Env
from stitcher.common.profile import load_profile_env
from stitcher.core.errors import MalformedRequest
from stitcher.core.filtergraph import build_stitch_plan
from stitcher.core.models import StitchRequest


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Validate a stitch request JSON file and put it on the work queue.")
    parser.add_argument("request_json", help="path to the request JSON (camelCase fields)")
    parser.add_argument("--dry-run", action="store_true", help="validate and print the ffmpeg commands only")
    args = parser.parse_args(argv)

    load_profile_env()
    env = Env.load()

    payload = json.loads(Path(args.request_json).read_text(encoding="utf-8"))
    try:
        req = StitchRequest.from_payload(payload)
        plan = build_stitch_plan(req, load_editor_policy(env.editor_config_path))
    except MalformedRequest as e:
        print(f"invalid request: {e}", file=sys.stderr)
        return 2

    if args.dry_run:
        print(
            dump_json(
                {
                    "effective_ms": plan.effective_ms,
                    "cues": len(plan.entries),
                    "mix": [env.ffmpeg_path, *plan.mix.args],
                    "overlay": [env.ffmpeg_path, *plan.overlay.args],
                }
            )
        )
        return 0

    conn = dbm.connect(env)
    try:
        dbm.migrate(conn)
        request_id = dbm.enqueue_request(conn, req.to_payload())
    finally:
        conn.close()
    print(f"queued request id={request_id} job={req.job_id}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
