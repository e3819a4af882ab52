from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from stitcher.core.errors import MalformedRequest


_RESOLUTION_RE = re.compile(r"^(\d{2,5})x(\d{2,5})$")


def _req_str(payload: Dict[str, Any], key: str) -> str:
    v = payload.get(key)
    if v is None or not str(v).strip():
        raise MalformedRequest(f"missing required field: {key}")
    return str(v)


def _opt_str(payload: Dict[str, Any], key: str) -> Optional[str]:
    v = payload.get(key)
    if v is None:
        return None
    s = str(v).strip()
    return s or None


def _opt_int(payload: Dict[str, Any], key: str, *, lo: Optional[int] = None, hi: Optional[int] = None) -> Optional[int]:
    v = payload.get(key)
    if v is None:
        return None
    if isinstance(v, bool):
        raise MalformedRequest(f"{key} must be an integer")
    try:
        n = int(v)
    except (TypeError, ValueError):
        raise MalformedRequest(f"{key} must be an integer, got {v!r}")
    if lo is not None and n < lo:
        raise MalformedRequest(f"{key} must be >= {lo}, got {n}")
    if hi is not None and n > hi:
        raise MalformedRequest(f"{key} must be <= {hi}, got {n}")
    return n


def parse_resolution(value: str) -> Tuple[int, int]:
    m = _RESOLUTION_RE.match(value.strip())
    if not m:
        raise MalformedRequest(f"resolution must look like WIDTHxHEIGHT, got {value!r}")
    return int(m.group(1)), int(m.group(2))


@dataclass(frozen=True)
class StitchRequest:
    video_id: str
    job_id: str
    user_id: str
    user_email: str
    sentences: Tuple[str, ...]
    durations: Tuple[int, ...]
    voice_link: str
    audio_background_link: str
    video_background_link: str
    final_duration_cap_ms: Optional[int] = None
    trim_gracefully: Optional[bool] = None
    audio_background_volume_pct: Optional[int] = None
    resolution: Optional[str] = None
    font_family: Optional[str] = None
    font_size: Optional[int] = None
    text_color: Optional[str] = None
    box_color: Optional[str] = None
    box_opacity: Optional[int] = None
    box_border_color: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "StitchRequest":
        """Build a request from the camelCase queue message. Unknown keys are ignored."""
        if not isinstance(payload, dict):
            raise MalformedRequest("request payload must be a JSON object")

        sentences = payload.get("sentences") or []
        durations = payload.get("durations") or []
        if not isinstance(sentences, list) or not isinstance(durations, list):
            raise MalformedRequest("sentences and durations must be lists")
        if len(sentences) != len(durations):
            raise MalformedRequest(
                f"sentences/durations length mismatch: {len(sentences)} != {len(durations)}"
            )
        parsed_durations: List[int] = []
        for i, d in enumerate(durations):
            if isinstance(d, bool):
                raise MalformedRequest(f"durations[{i}] must be an integer")
            try:
                n = int(d)
            except (TypeError, ValueError):
                raise MalformedRequest(f"durations[{i}] must be an integer, got {d!r}")
            if n < 0:
                raise MalformedRequest(f"durations[{i}] must be >= 0, got {n}")
            parsed_durations.append(n)

        trim = payload.get("trimGracefullyToMaxDuration")
        if trim is not None and not isinstance(trim, bool):
            raise MalformedRequest(f"trimGracefullyToMaxDuration must be a boolean, got {trim!r}")
        resolution = _opt_str(payload, "resolution")
        if resolution is not None:
            parse_resolution(resolution)

        return cls(
            video_id=_req_str(payload, "videoId"),
            job_id=_req_str(payload, "jobId"),
            user_id=_req_str(payload, "userId"),
            user_email=_req_str(payload, "userEmail"),
            sentences=tuple("" if s is None else str(s) for s in sentences),
            durations=tuple(parsed_durations),
            voice_link=_req_str(payload, "voiceFileLink"),
            audio_background_link=_req_str(payload, "audioBackgroundFileLink"),
            video_background_link=_req_str(payload, "videoBackgroundFileLink"),
            final_duration_cap_ms=_opt_int(payload, "finalFileDurationInMillis", lo=0),
            trim_gracefully=trim,
            audio_background_volume_pct=_opt_int(payload, "audioBackgroundVolumeInPercent", lo=0, hi=100),
            resolution=resolution,
            font_family=_opt_str(payload, "textFontFamily"),
            font_size=_opt_int(payload, "textFontSize", lo=1),
            text_color=_opt_str(payload, "textColor"),
            box_color=_opt_str(payload, "textBoxColor"),
            box_opacity=_opt_int(payload, "textBoxOpacity", lo=0, hi=100),
            box_border_color=_opt_str(payload, "textBoxBorderColor"),
        )

    def to_payload(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "videoId": self.video_id,
            "jobId": self.job_id,
            "userId": self.user_id,
            "userEmail": self.user_email,
            "sentences": list(self.sentences),
            "durations": list(self.durations),
            "voiceFileLink": self.voice_link,
            "audioBackgroundFileLink": self.audio_background_link,
            "videoBackgroundFileLink": self.video_background_link,
            "finalFileDurationInMillis": self.final_duration_cap_ms,
            "trimGracefullyToMaxDuration": self.trim_gracefully,
            "audioBackgroundVolumeInPercent": self.audio_background_volume_pct,
            "resolution": self.resolution,
            "textFontFamily": self.font_family,
            "textFontSize": self.font_size,
            "textColor": self.text_color,
            "textBoxColor": self.box_color,
            "textBoxOpacity": self.box_opacity,
            "textBoxBorderColor": self.box_border_color,
        }
        return {k: v for k, v in out.items() if v is not None}

    def job_metadata(self) -> Dict[str, str]:
        return {
            "VideoId": self.video_id,
            "JobId": self.job_id,
            "UserId": self.user_id,
            "UserEmail": self.user_email,
        }


@dataclass(frozen=True)
class TimingTrackEntry:
    index: int
    start_ms: int
    end_ms: int
    text: str


@dataclass(frozen=True)
class StitchResponse:
    video_id: str
    job_id: str
    user_id: str
    user_email: str
    success: bool
    final_video_link: Optional[str] = None
    retrieval_url: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, request: StitchRequest, *, final_video_link: str, retrieval_url: str) -> "StitchResponse":
        return cls(
            video_id=request.video_id,
            job_id=request.job_id,
            user_id=request.user_id,
            user_email=request.user_email,
            success=True,
            final_video_link=final_video_link,
            retrieval_url=retrieval_url,
        )

    @classmethod
    def failed(cls, ids: Any, *, error: str) -> "StitchResponse":
        """`ids` is either a StitchRequest or a raw payload dict (best effort)."""
        if isinstance(ids, StitchRequest):
            ids = ids.to_payload()
        return cls(
            video_id=str(ids.get("videoId") or ""),
            job_id=str(ids.get("jobId") or ""),
            user_id=str(ids.get("userId") or ""),
            user_email=str(ids.get("userEmail") or ""),
            success=False,
            error=error,
        )

    def to_payload(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "videoId": self.video_id,
            "jobId": self.job_id,
            "userId": self.user_id,
            "userEmail": self.user_email,
            "success": self.success,
        }
        if self.success:
            out["finalVideoLink"] = self.final_video_link
            out["retrievalUrl"] = self.retrieval_url
        else:
            out["error"] = self.error
        return out


@dataclass
class PublishedArtifact:
    reference: str
    retrieval_url: str
    metadata: Dict[str, str] = field(default_factory=dict)
