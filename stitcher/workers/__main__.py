from __future__ import annotations

import argparse
import time
import uuid

from stitcher.common.env import Env
from stitcher.common.logging_setup import get_logger, setup_logging
from stitcher.common.profile import load_profile_env
from stitcher.workers.cleanup import cleanup_cycle
from stitcher.workers.stitch import stitch_cycle


ROLE_FUNCS = {
    "stitch": stitch_cycle,
    "cleanup": cleanup_cycle,
}


def main() -> None:
    load_profile_env()
    env = Env.load()

    parser = argparse.ArgumentParser()
    parser.add_argument("--role", required=True, choices=list(ROLE_FUNCS.keys()) + ["all"])
    parser.add_argument("--once", action="store_true")
    args = parser.parse_args()

    setup_logging(env, service=f"worker-{args.role}")
    log = get_logger("workers")

    worker_id = f"{args.role}:{uuid.uuid4().hex[:8]}"

    def run_one(role: str) -> None:
        func = ROLE_FUNCS[role]
        try:
            func(env=env, worker_id=worker_id)
        except Exception as e:
            log.exception("worker cycle crashed role=%s err=%s", role, e)

    while True:
        if args.role == "all":
            for r in ROLE_FUNCS.keys():
                run_one(r)
        else:
            run_one(args.role)

        if args.once:
            return

        time.sleep(env.worker_sleep_sec)


if __name__ == "__main__":
    main()
