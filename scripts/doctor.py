from __future__ import annotations

import argparse
import shutil
from pathlib import Path

from stitcher.common.config import load_editor_policy
from stitcher.common.env import Env
from stitcher.common.paths import scratch_root, storage_root
from stitcher.common.profile import load_profile_env


def _ok(msg: str) -> None:
    print(f"[OK] {msg}")


def _warn(msg: str) -> None:
    print(f"[WARN] {msg}")


def _fail(msg: str) -> None:
    print(f"[FAIL] {msg}")
    raise SystemExit(2)


def main() -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument("--profile", default="local", choices=["local", "prod"])
    args = parser.parse_args()

    loaded = load_profile_env(args.profile)
    if loaded:
        _ok(f"Loaded env file: {loaded}")
    else:
        _warn("No env file loaded. Create deploy/env.local or deploy/env.prod (or deploy/env).")

    env = Env.load()

    if shutil.which(env.ffmpeg_path):
        _ok(f"ffmpeg found: {env.ffmpeg_path}")
    else:
        _fail(f"ffmpeg not found at FFMPEG_PATH={env.ffmpeg_path}. Install ffmpeg.")

    storage = storage_root(env)
    (storage / "logs").mkdir(parents=True, exist_ok=True)
    scratch_root(env).mkdir(parents=True, exist_ok=True)
    _ok(f"Storage OK: {storage}")

    cfg = Path(env.editor_config_path)
    if cfg.exists():
        policy = load_editor_policy(str(cfg))
        _ok(f"Editor config: {cfg} fonts={len(policy.fonts)} resolutions={len(policy.resolutions)}")
    else:
        _warn(f"Editor config not found, using built-in defaults: {cfg}")

    if env.stager_backend == "local":
        origin = Path(env.local_origin_root)
        if not origin.exists():
            _warn(f"Local origin does not exist yet: {origin.resolve()}")
        else:
            _ok(f"Local origin: {origin.resolve()}")
        if not env.link_signing_secret:
            _fail("LINK_SIGNING_SECRET is empty; retrieval links cannot be signed.")
    elif env.stager_backend == "gdrive":
        if args.profile == "local":
            _warn("Local profile but STAGER_BACKEND is 'gdrive'.")
        if env.gdrive_sa_json and not Path(env.gdrive_sa_json).exists():
            _warn(f"GDRIVE_SERVICE_ACCOUNT_JSON not found: {env.gdrive_sa_json}")
        if not env.gdrive_sa_json and env.gdrive_oauth_token_json and not Path(env.gdrive_oauth_token_json).exists():
            _warn(f"GDRIVE_OAUTH_TOKEN_JSON not found: {env.gdrive_oauth_token_json} (run scripts/gdrive_oauth_token.py)")
        if not env.gdrive_publish_folder_id:
            _warn("GDRIVE_PUBLISH_FOLDER_ID is empty; results land in the Drive root.")
    else:
        _fail(f"Unsupported STAGER_BACKEND: {env.stager_backend}")

    if env.basic_pass == "change_me":
        _warn("EDITOR_BASIC_AUTH_PASS is still the default.")

    _ok("Doctor finished.")


if __name__ == "__main__":
    main()
