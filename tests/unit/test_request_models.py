from __future__ import annotations

import unittest

from stitcher.core.errors import MalformedRequest
from stitcher.core.models import StitchRequest, StitchResponse, parse_resolution

from tests._helpers import sample_payload


class TestStitchRequest(unittest.TestCase):
    def test_from_payload_minimal(self) -> None:
        req = StitchRequest.from_payload(sample_payload())
        self.assertEqual(req.video_id, "vid-1")
        self.assertEqual(req.durations, (3000, 4000, 5000))
        self.assertEqual(len(req.sentences), 3)
        self.assertIsNone(req.final_duration_cap_ms)
        self.assertIsNone(req.trim_gracefully)
        self.assertIsNone(req.resolution)

    def test_from_payload_optional_fields(self) -> None:
        req = StitchRequest.from_payload(
            sample_payload(
                finalFileDurationInMillis="6000",
                trimGracefullyToMaxDuration=True,
                audioBackgroundVolumeInPercent=20,
                resolution="1280x720",
                textFontFamily="Arial",
                textFontSize=18,
                textBoxOpacity=0,
                somethingElse="ignored",
            )
        )
        self.assertEqual(req.final_duration_cap_ms, 6000)
        self.assertTrue(req.trim_gracefully)
        self.assertEqual(req.audio_background_volume_pct, 20)
        self.assertEqual(req.resolution, "1280x720")
        self.assertEqual(req.box_opacity, 0)

    def test_missing_identity_raises(self) -> None:
        for key in ("videoId", "jobId", "userId", "userEmail", "voiceFileLink"):
            with self.subTest(key=key):
                with self.assertRaises(MalformedRequest):
                    StitchRequest.from_payload(sample_payload(**{key: ""}))

    def test_length_mismatch_raises(self) -> None:
        with self.assertRaises(MalformedRequest):
            StitchRequest.from_payload(sample_payload(durations=[1000, 2000]))

    def test_bad_numbers_raise(self) -> None:
        bad = [
            {"durations": [1000, "x", 1000]},
            {"durations": [1000, -5, 1000]},
            {"durations": [True, 1000, 1000]},
            {"audioBackgroundVolumeInPercent": 101},
            {"textBoxOpacity": -1},
            {"textFontSize": 0},
            {"finalFileDurationInMillis": -1},
            {"resolution": "big"},
        ]
        for override in bad:
            with self.subTest(override=override):
                with self.assertRaises(MalformedRequest):
                    StitchRequest.from_payload(sample_payload(**override))

    def test_trim_flag_must_be_boolean(self) -> None:
        for value in ("false", "true", 0, 1, "no"):
            with self.subTest(value=value):
                with self.assertRaises(MalformedRequest) as ctx:
                    StitchRequest.from_payload(sample_payload(trimGracefullyToMaxDuration=value))
                self.assertIn("trimGracefullyToMaxDuration", str(ctx.exception))

        req = StitchRequest.from_payload(sample_payload(trimGracefullyToMaxDuration=False))
        self.assertIs(req.trim_gracefully, False)
        req = StitchRequest.from_payload(sample_payload(trimGracefullyToMaxDuration=None))
        self.assertIsNone(req.trim_gracefully)

    def test_non_dict_payload(self) -> None:
        with self.assertRaises(MalformedRequest):
            StitchRequest.from_payload(["not", "a", "dict"])  # type: ignore[arg-type]

    def test_to_payload_round_trips(self) -> None:
        src = sample_payload(resolution="1920x1080", textColor="#abcdef")
        req = StitchRequest.from_payload(src)
        self.assertEqual(StitchRequest.from_payload(req.to_payload()), req)
        self.assertNotIn("textBoxOpacity", req.to_payload())

    def test_job_metadata(self) -> None:
        req = StitchRequest.from_payload(sample_payload())
        self.assertEqual(
            req.job_metadata(),
            {"VideoId": "vid-1", "JobId": "job-1", "UserId": "user-1", "UserEmail": "user@example.com"},
        )

    def test_parse_resolution(self) -> None:
        self.assertEqual(parse_resolution("1920x1080"), (1920, 1080))
        with self.assertRaises(MalformedRequest):
            parse_resolution("1920*1080")


class TestStitchResponse(unittest.TestCase):
    def test_ok_payload(self) -> None:
        req = StitchRequest.from_payload(sample_payload())
        out = StitchResponse.ok(req, final_video_link="editor/vid-1.mp4", retrieval_url="http://x/y").to_payload()
        self.assertTrue(out["success"])
        self.assertEqual(out["finalVideoLink"], "editor/vid-1.mp4")
        self.assertEqual(out["retrievalUrl"], "http://x/y")
        self.assertNotIn("error", out)
        self.assertEqual(out["jobId"], "job-1")

    def test_failed_from_raw_payload(self) -> None:
        out = StitchResponse.failed({"videoId": "v", "jobId": "j"}, error="Staging: boom").to_payload()
        self.assertFalse(out["success"])
        self.assertEqual(out["error"], "Staging: boom")
        self.assertEqual(out["userId"], "")
        self.assertNotIn("finalVideoLink", out)


if __name__ == "__main__":
    unittest.main()
