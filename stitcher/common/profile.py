from __future__ import annotations

import os
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv


DEPLOY_DIR = Path("deploy")
DEFAULT_PROFILE = "prod"


def profile_name(explicit: Optional[str] = None) -> str:
    name = (explicit or os.environ.get("STITCH_PROFILE", "")).strip()
    return name or DEFAULT_PROFILE


def env_file_candidates(profile: str, deploy_dir: Path = DEPLOY_DIR) -> List[Path]:
    return [deploy_dir / f"env.{profile}", deploy_dir / "env"]


def load_profile_env(profile: Optional[str] = None, *, deploy_dir: Path = DEPLOY_DIR) -> str:
    """Load the stitcher settings file into os.environ.

    Only the first existing candidate is read (deploy/env.<profile>, then
    deploy/env). Variables already set in the process win over the file.
    Returns the path loaded, or "" when the process runs on plain env vars.
    """
    for cand in env_file_candidates(profile_name(profile), deploy_dir):
        if cand.is_file():
            load_dotenv(cand, override=False)
            return str(cand)
    return ""
