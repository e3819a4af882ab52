from __future__ import annotations

import subprocess
import time
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Protocol, Tuple

from stitcher.common.logging_setup import get_logger
from stitcher.common.utils import stderr_tail
from stitcher.core.errors import TransformFailed
from stitcher.core.filtergraph import TransformSpec


log = get_logger("transcoder")

TIMEOUT_EXIT_CODE = 124
STAGE_TIMEOUT_SEC = 5 * 60


def run_cmd(cmd: List[str], *, cwd: Optional[Path] = None, timeout: Optional[int] = None) -> Tuple[int, str, str]:
    p = subprocess.Popen(
        cmd,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
        cwd=str(cwd) if cwd is not None else None,
    )
    try:
        out, err = p.communicate(timeout=timeout)
    except subprocess.TimeoutExpired:
        p.kill()
        out, err = p.communicate()
        return TIMEOUT_EXIT_CODE, out, err
    return p.returncode, out, err


@dataclass(frozen=True)
class TransformResult:
    name: str
    returncode: int
    elapsed_sec: float
    output: Path
    diagnostics: str = ""


class Transcoder(Protocol):
    def run(self, spec: TransformSpec, *, cwd: Path) -> TransformResult: ...


class FfmpegTranscoder:
    """Runs one transform spec through the ffmpeg binary.

    Success means exit status 0 inside the timeout; anything else raises
    TransformFailed with the tail of stderr attached.
    """

    def __init__(self, ffmpeg_path: str = "ffmpeg", *, timeout_sec: int = STAGE_TIMEOUT_SEC):
        self.ffmpeg_path = ffmpeg_path
        self.timeout_sec = timeout_sec

    def command(self, spec: TransformSpec) -> List[str]:
        return [self.ffmpeg_path, *spec.args]

    def run(self, spec: TransformSpec, *, cwd: Path) -> TransformResult:
        cmd = self.command(spec)
        t0 = time.monotonic()
        try:
            code, _out, err = run_cmd(cmd, cwd=cwd, timeout=self.timeout_sec)
        except OSError as e:
            raise TransformFailed(f"{spec.name}: could not start {self.ffmpeg_path}: {e}") from e
        elapsed = time.monotonic() - t0
        tail = stderr_tail(err)

        if code == TIMEOUT_EXIT_CODE:
            raise TransformFailed(
                f"{spec.name}: timed out after {self.timeout_sec}s",
                returncode=code,
                diagnostics=tail,
            )
        if code != 0:
            msg = f"{spec.name}: ffmpeg exited {code}"
            if tail:
                msg += f": {tail.splitlines()[-1]}"
            raise TransformFailed(msg, returncode=code, diagnostics=tail)

        log.info("transform %s ok in %.1fs", spec.name, elapsed)
        return TransformResult(name=spec.name, returncode=code, elapsed_sec=elapsed, output=cwd / spec.output, diagnostics=tail)
