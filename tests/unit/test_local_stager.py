from __future__ import annotations

import json
import tempfile
import unittest
from pathlib import Path

from stitcher.core.errors import AssetUnavailable, PublishFailed
from stitcher.integrations.local_fs import LocalStager, resolve_asset_path


class TestLocalStager(unittest.TestCase):
    def setUp(self) -> None:
        self.td = tempfile.TemporaryDirectory()
        base = Path(self.td.name)
        self.origin = base / "origin"
        self.publish = base / "published"
        (self.origin / "voices").mkdir(parents=True)
        (self.origin / "voices" / "a.mp3").write_bytes(b"voice")
        self.stager = LocalStager(
            origin_root=self.origin,
            publish_root=self.publish,
            base_url="http://testserver/files",
            signing_secret="k",
        )

    def tearDown(self) -> None:
        self.td.cleanup()

    def test_fetch_copies_into_scratch(self) -> None:
        dest = Path(self.td.name) / "ws" / "speech.mp3"
        got = self.stager.fetch("voices/a.mp3", dest)
        self.assertEqual(got, dest)
        self.assertEqual(dest.read_bytes(), b"voice")

    def test_fetch_missing_or_empty(self) -> None:
        with self.assertRaises(AssetUnavailable):
            self.stager.fetch("voices/missing.mp3", Path(self.td.name) / "x")
        with self.assertRaises(AssetUnavailable):
            self.stager.fetch("", Path(self.td.name) / "x")

    def test_fetch_rejects_traversal(self) -> None:
        with self.assertRaises(AssetUnavailable):
            self.stager.fetch("../../etc/passwd", Path(self.td.name) / "x")

    def test_resolve_strips_leading_slash(self) -> None:
        p = resolve_asset_path(self.origin, "/voices/a.mp3")
        self.assertEqual(p, (self.origin / "voices" / "a.mp3").resolve())

    def test_publish_writes_file_metadata_and_link(self) -> None:
        src = Path(self.td.name) / "final.mp4"
        src.write_bytes(b"video")
        meta = {"VideoId": "v", "JobId": "j", "UserId": "u", "UserEmail": "e@x"}
        art = self.stager.publish(src, name="editor/v.mp4", metadata=meta, expires_in_sec=3600)

        self.assertEqual(art.reference, "editor/v.mp4")
        self.assertEqual((self.publish / "editor" / "v.mp4").read_bytes(), b"video")
        sidecar = json.loads((self.publish / "editor" / "v.mp4.meta.json").read_text(encoding="utf-8"))
        self.assertEqual(sidecar, meta)
        self.assertTrue(art.retrieval_url.startswith("http://testserver/files/editor/v.mp4?"))
        self.assertIn("sp=r", art.retrieval_url)
        self.assertEqual(art.metadata, meta)

    def test_publish_missing_source(self) -> None:
        with self.assertRaises(PublishFailed):
            self.stager.publish(Path(self.td.name) / "nope.mp4", name="editor/v.mp4", metadata={}, expires_in_sec=1)

    def test_publish_without_secret(self) -> None:
        src = Path(self.td.name) / "final.mp4"
        src.write_bytes(b"video")
        stager = LocalStager(origin_root=self.origin, publish_root=self.publish, base_url="http://h", signing_secret="")
        with self.assertRaises(PublishFailed):
            stager.publish(src, name="editor/v.mp4", metadata={}, expires_in_sec=1)

    def test_publish_rejects_traversal(self) -> None:
        src = Path(self.td.name) / "final.mp4"
        src.write_bytes(b"video")
        with self.assertRaises(PublishFailed):
            self.stager.publish(src, name="../escape.mp4", metadata={}, expires_in_sec=1)


if __name__ == "__main__":
    unittest.main()
