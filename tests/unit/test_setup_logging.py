from __future__ import annotations

import logging
import os
import re
import unittest
from pathlib import Path

from stitcher.common.env import Env
from stitcher.common.logging_setup import append_job_log, get_logger, service_log_path, setup_logging

from tests._helpers import temp_env


def _ours(root: logging.Logger):
    return [h for h in root.handlers if hasattr(h, "_stitcher_service")]


class TestSetupLogging(unittest.TestCase):
    def setUp(self) -> None:
        self._root = logging.getLogger()
        self._old_level = self._root.level

    def tearDown(self) -> None:
        for h in _ours(self._root):
            self._root.removeHandler(h)
            h.close()
        self._root.setLevel(self._old_level)

    def test_service_log_carries_service_and_logger_name(self) -> None:
        with temp_env() as (_, env):
            setup_logging(env, service="worker-stitch")
            get_logger("orchestrator").info("job=job-1 state=Mixing")
            for h in _ours(self._root):
                h.flush()

            txt = service_log_path(env, "worker-stitch").read_text(encoding="utf-8")
            self.assertIn("| INFO | worker-stitch | orchestrator | job=job-1 state=Mixing", txt)
            self.assertTrue(service_log_path(env, "worker-stitch").name.endswith("worker_stitch.log"))

    def test_repeat_setup_is_idempotent(self) -> None:
        with temp_env() as (_, env):
            setup_logging(env, service="editor_api")
            setup_logging(env, service="editor_api")
            self.assertEqual(len(_ours(self._root)), 2)

    def test_switching_service_replaces_handlers(self) -> None:
        with temp_env() as (_, env):
            setup_logging(env, service="worker-stitch")
            setup_logging(env, service="worker-cleanup")
            owners = {getattr(h, "_stitcher_service") for h in _ours(self._root)}
            self.assertEqual(owners, {"worker-cleanup"})
            self.assertEqual(len(_ours(self._root)), 2)

    def test_level_comes_from_env(self) -> None:
        with temp_env() as (_, _env0):
            os.environ["LOG_LEVEL"] = "warning"
            env = Env.load()
            self.assertEqual(env.log_level, "WARNING")
            setup_logging(env, service="worker-stitch")
            self.assertEqual(self._root.level, logging.WARNING)

    def test_job_log_lines_are_timestamped(self) -> None:
        with temp_env() as (_, env):
            append_job_log(env, "Job 42", "STATE: Staging")
            append_job_log(env, "Job 42", "ffmpeg said:\nline one\nline two\n")

            p = Path(env.storage_root) / "logs" / "job_job_42.log"
            lines = p.read_text(encoding="utf-8").splitlines()
            self.assertEqual(len(lines), 4)
            stamp = re.compile(r"^\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2} ")
            self.assertTrue(all(stamp.match(ln) for ln in lines))
            self.assertTrue(lines[0].endswith("STATE: Staging"))
            self.assertTrue(lines[3].endswith("line two"))


if __name__ == "__main__":
    unittest.main()
