from __future__ import annotations

from pathlib import Path

from stitcher.common.env import Env
from stitcher.core.orchestrator import AssetStager
from stitcher.integrations.local_fs import LocalStager


def build_stager(env: Env) -> AssetStager:
    backend = (env.stager_backend or "local").strip().lower()

    if backend == "local":
        return LocalStager(
            origin_root=Path(env.local_origin_root),
            publish_root=Path(env.local_publish_root),
            base_url=env.public_base_url,
            signing_secret=env.link_signing_secret,
        )

    if backend == "gdrive":
        from stitcher.integrations.gdrive import DriveClient, DriveStager

        client = DriveClient(
            service_account_json=env.gdrive_sa_json,
            oauth_client_json=env.gdrive_oauth_client_json,
            oauth_token_json=env.gdrive_oauth_token_json,
            http_timeout_sec=env.gdrive_http_timeout_sec,
        )
        return DriveStager(client=client, publish_folder_id=env.gdrive_publish_folder_id)

    raise RuntimeError(f"Unsupported STAGER_BACKEND: {env.stager_backend}")
