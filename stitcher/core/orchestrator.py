from __future__ import annotations

import enum
import shutil
import uuid
from concurrent.futures import FIRST_EXCEPTION, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Optional, Protocol

from stitcher.common.config import EditorPolicy
from stitcher.common.logging_setup import get_logger
from stitcher.core.errors import AssetUnavailable, PublishFailed, StitchError
from stitcher.core.filtergraph import (
    AUDIO_BG_FILE,
    FINAL_FILE,
    SUBS_FILE,
    VIDEO_BG_FILE,
    VOICE_FILE,
    StitchPlan,
    TransformSpec,
    build_stitch_plan,
)
from stitcher.core.models import PublishedArtifact, StitchRequest, StitchResponse
from stitcher.core.timing import write_srt
from stitcher.core.transcoder import Transcoder


log = get_logger("orchestrator")

TEN_YEARS_SEC = 3650 * 24 * 3600


class JobState(str, enum.Enum):
    STAGING = "Staging"
    MIXING = "Mixing"
    OVERLAYING = "Overlaying"
    PUBLISHING = "Publishing"
    DONE = "Done"
    FAILED = "Failed"


class AssetStager(Protocol):
    def fetch(self, reference: str, dest: Path) -> Path: ...

    def publish(self, src: Path, *, name: str, metadata: Dict[str, str], expires_in_sec: int) -> PublishedArtifact: ...


class ResponsePublisher(Protocol):
    def __call__(self, response: StitchResponse) -> None: ...


@dataclass(frozen=True)
class OrchestratorConfig:
    scratch_root: Path
    max_attempts: int = 5
    link_ttl_sec: int = TEN_YEARS_SEC
    publish_prefix: str = "editor"


class _Unexpected(StitchError):
    """Wraps faults that are not part of the pipeline's own taxonomy."""


class JobOrchestrator:
    """Runs one stitch request through Staging -> Mixing -> Overlaying -> Publishing.

    A failure response is only emitted for non-retryable errors or once
    `attempt` reaches `max_attempts`; in every failure case the error is
    re-raised so the delivery layer can redeliver or dead-letter the message.
    The job's scratch dir is removed on every exit path.
    """

    def __init__(
        self,
        *,
        cfg: OrchestratorConfig,
        stager: AssetStager,
        transcoder: Transcoder,
        publish_response: ResponsePublisher,
        policy: Optional[EditorPolicy] = None,
        job_log: Optional[Callable[[str, str], None]] = None,
    ):
        self.cfg = cfg
        self.stager = stager
        self.transcoder = transcoder
        self.publish_response = publish_response
        self.policy = policy or EditorPolicy()
        self._job_log = job_log
        self.history: List[JobState] = []

    def _enter(self, request: StitchRequest, state: JobState) -> None:
        self.history.append(state)
        log.info("job=%s video=%s state=%s", request.job_id, request.video_id, state.value)
        self._note(request, f"STATE: {state.value}")

    def _note(self, request: StitchRequest, line: str) -> None:
        if self._job_log is None:
            return
        # job log lines are best effort
        try:
            self._job_log(request.job_id, line)
        except OSError as e:
            log.warning("job=%s could not write job log: %s", request.job_id, e)

    def new_scratch_dir(self) -> Path:
        root = Path(self.cfg.scratch_root)
        root.mkdir(parents=True, exist_ok=True)
        ws = root / uuid.uuid4().hex
        ws.mkdir(parents=False, exist_ok=False)
        return ws

    def run(self, request: StitchRequest, *, attempt: int) -> Optional[StitchResponse]:
        self.history = []
        state = JobState.STAGING
        ws: Optional[Path] = None
        try:
            self._enter(request, state)
            ws = self.new_scratch_dir()
            plan = build_stitch_plan(request, self.policy)
            self._stage_inputs(request, plan, ws)

            state = JobState.MIXING
            self._enter(request, state)
            self._transform(request, plan.mix, ws)

            state = JobState.OVERLAYING
            self._enter(request, state)
            self._transform(request, plan.overlay, ws)

            state = JobState.PUBLISHING
            self._enter(request, state)
            artifact = self._publish(request, ws)

            response = StitchResponse.ok(
                request,
                final_video_link=artifact.reference,
                retrieval_url=artifact.retrieval_url,
            )
            self._enter(request, JobState.DONE)
            self.publish_response(response)
            return response

        except StitchError as e:
            self._fail(request, e, state=state, attempt=attempt)
            raise
        except Exception as e:
            wrapped = _Unexpected(f"{type(e).__name__}: {e}")
            self._fail(request, wrapped, state=state, attempt=attempt)
            raise wrapped from e
        finally:
            if ws is not None:
                self._cleanup(ws)

    def _stage_inputs(self, request: StitchRequest, plan: StitchPlan, ws: Path) -> None:
        fetches = [
            (request.voice_link, ws / VOICE_FILE),
            (request.audio_background_link, ws / AUDIO_BG_FILE),
            (request.video_background_link, ws / VIDEO_BG_FILE),
        ]
        pool = ThreadPoolExecutor(max_workers=4, thread_name_prefix=f"stage-{request.job_id}")
        futures: List[Future] = []
        try:
            for ref, dest in fetches:
                futures.append(pool.submit(self._fetch_one, ref, dest))
            futures.append(
                pool.submit(write_srt, plan.entries, ws / SUBS_FILE, max_line_length=self.policy.max_line_length)
            )

            done, not_done = wait(futures, return_when=FIRST_EXCEPTION)
            failed = [f for f in futures if f in done and f.exception() is not None]
            if failed:
                for p in not_done:
                    p.cancel()
                raise failed[0].exception()  # type: ignore[misc]
        finally:
            # queued work is dropped; running fetches are bounded by their own timeouts
            pool.shutdown(wait=True, cancel_futures=True)
        self._note(request, f"STAGED: {len(fetches)} assets, {len(plan.entries)} cues, effective_ms={plan.effective_ms}")

    def _fetch_one(self, reference: str, dest: Path) -> Path:
        try:
            return self.stager.fetch(reference, dest)
        except StitchError:
            raise
        except Exception as e:
            raise AssetUnavailable(f"fetch {reference} failed: {e}") from e

    def _transform(self, request: StitchRequest, spec: TransformSpec, ws: Path) -> None:
        self._note(request, "CMD: " + " ".join(spec.args))
        result = self.transcoder.run(spec, cwd=ws)
        if result.diagnostics:
            self._note(request, result.diagnostics)

    def _publish(self, request: StitchRequest, ws: Path) -> PublishedArtifact:
        name = f"{self.cfg.publish_prefix}/{request.video_id}.mp4"
        try:
            return self.stager.publish(
                ws / FINAL_FILE,
                name=name,
                metadata=request.job_metadata(),
                expires_in_sec=self.cfg.link_ttl_sec,
            )
        except StitchError:
            raise
        except Exception as e:
            raise PublishFailed(f"publish {name} failed: {e}") from e

    def _fail(self, request: StitchRequest, err: StitchError, *, state: JobState, attempt: int) -> None:
        if err.stage is None:
            err.stage = state.value
        self.history.append(JobState.FAILED)
        message = err.describe()
        log.error(
            "job=%s video=%s failed state=%s attempt=%s/%s reason=%s err=%s",
            request.job_id,
            request.video_id,
            state.value,
            attempt,
            self.cfg.max_attempts,
            err.reason,
            message,
        )
        self._note(request, f"FAILED({err.reason}) attempt={attempt}: {message}")
        diagnostics = getattr(err, "diagnostics", "")
        if diagnostics:
            self._note(request, diagnostics)

        if err.retryable and attempt < self.cfg.max_attempts:
            return
        self.publish_response(StitchResponse.failed(request, error=message))

    def _cleanup(self, ws: Path) -> None:
        try:
            if ws.exists():
                shutil.rmtree(ws)
        except OSError as e:
            log.warning("could not remove scratch dir %s: %s", ws, e)
