from __future__ import annotations

import json
import shutil
from pathlib import Path
from typing import Dict

from stitcher.common.logging_setup import get_logger
from stitcher.core.errors import AssetUnavailable, PublishFailed
from stitcher.core.models import PublishedArtifact
from stitcher.integrations.signing import LinkSignatureError, sign_link


log = get_logger("stager.local")


def resolve_asset_path(root: Path, reference: str) -> Path:
    # reference like "container/path/to/file.mp3"
    rel_path = str(reference).lstrip("/").replace("\\", "/")
    root = root.resolve()
    p = (root / rel_path).resolve()
    if p != root and root not in p.parents:
        raise AssetUnavailable(f"asset reference escapes origin root: {reference}")
    return p


class LocalStager:
    """Origin and publish areas on the local filesystem.

    Published files get a `<name>.meta.json` sidecar and an HMAC-signed,
    read-only retrieval URL.
    """

    def __init__(self, *, origin_root: Path, publish_root: Path, base_url: str, signing_secret: str):
        self.origin_root = Path(origin_root)
        self.publish_root = Path(publish_root)
        self.base_url = base_url
        self.signing_secret = signing_secret

    def fetch(self, reference: str, dest: Path) -> Path:
        if not reference:
            raise AssetUnavailable("empty asset reference")
        src = resolve_asset_path(self.origin_root, reference)
        if not src.is_file():
            raise AssetUnavailable(f"local asset missing: {reference}")
        dest.parent.mkdir(parents=True, exist_ok=True)
        try:
            shutil.copyfile(src, dest)
        except OSError as e:
            raise AssetUnavailable(f"could not copy {reference}: {e}") from e
        return dest

    def publish(self, src: Path, *, name: str, metadata: Dict[str, str], expires_in_sec: int) -> PublishedArtifact:
        try:
            dst = resolve_asset_path(self.publish_root, name)
        except AssetUnavailable as e:
            raise PublishFailed(str(e)) from e
        try:
            dst.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(src, dst)
            meta_path = dst.with_name(dst.name + ".meta.json")
            meta_path.write_text(json.dumps(metadata, ensure_ascii=False, indent=2), encoding="utf-8")
        except OSError as e:
            raise PublishFailed(f"could not store {name}: {e}") from e

        try:
            url = sign_link(
                secret=self.signing_secret,
                base_url=self.base_url,
                reference=name,
                ttl_sec=expires_in_sec,
            )
        except LinkSignatureError as e:
            raise PublishFailed(f"could not sign retrieval link: {e}") from e

        log.info("published %s (%d bytes)", name, dst.stat().st_size)
        return PublishedArtifact(reference=name, retrieval_url=url, metadata=dict(metadata))
