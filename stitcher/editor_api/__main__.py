from __future__ import annotations

import uvicorn

from stitcher.common.env import Env
from stitcher.common.logging_setup import get_logger, setup_logging
from stitcher.common.profile import load_profile_env


def main() -> None:
    # load deploy/env if present
    load_profile_env()
    env = Env.load()
    setup_logging(env, service="editor_api")
    log = get_logger("editor_api")
    if env.basic_pass == "change_me":
        raise RuntimeError("EDITOR_BASIC_AUTH_PASS is not set (default 'change_me' is insecure).")
    log.info("starting api bind=%s port=%s", env.bind, env.port)
    uvicorn.run("stitcher.editor_api.app:app", host=env.bind, port=env.port, reload=False)


if __name__ == "__main__":
    main()
