from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Optional, Sequence

from stitcher.common.config import EditorPolicy
from stitcher.core.errors import MalformedRequest
from stitcher.core.models import StitchRequest, TimingTrackEntry, parse_resolution
from stitcher.core.styles import encode_back_color, encode_border_color, encode_text_color
from stitcher.core.timing import build_timing_track, ffmpeg_duration


# file names inside the job's scratch dir
VOICE_FILE = "speech.mp3"
AUDIO_BG_FILE = "audiobg.mp3"
VIDEO_BG_FILE = "videobg.mp4"
SUBS_FILE = "subs.srt"
MIXED_AUDIO_FILE = "audio_merged.mp3"
FINAL_FILE = "final.mp4"

# libass numpad alignment: 2 = bottom centre
ALIGN_BOTTOM_CENTER = 2
# libass extension: opaque box behind each line filled with BackColour
BORDER_STYLE_BOX = 4


@dataclass(frozen=True)
class TransformSpec:
    name: str
    args: List[str]
    output: str


@dataclass(frozen=True)
class StitchPlan:
    entries: List[TimingTrackEntry]
    natural_ms: int
    effective_ms: int
    background_gain: float
    mix: TransformSpec
    overlay: TransformSpec


def effective_duration_ms(
    durations: Sequence[int],
    cap_ms: Optional[int],
    trim_gracefully: Optional[bool],
) -> int:
    natural = sum(int(d) for d in durations)
    if natural <= 0:
        raise MalformedRequest("total duration is zero")

    if cap_ms is None or cap_ms >= natural:
        return natural

    if trim_gracefully:
        total = 0
        for d in durations:
            if total + int(d) > cap_ms:
                break
            total += int(d)
        return total

    return int(cap_ms)


def background_gain(volume_pct: Optional[int], *, default_pct: int = 10) -> float:
    pct = default_pct if volume_pct is None else int(volume_pct)
    return round(pct / 100.0, 2)


def ffmpeg_filter_escape_path(p: str) -> str:
    s = str(p).replace("\\", "/")
    m = re.match(r"^([A-Za-z]):/(.*)$", s)
    if m:
        drive = m.group(1)
        rest = m.group(2)
        s = f"{drive}\\:/{rest}"
    s = s.replace("'", "\\'")
    return s


def _style_value(value: str) -> str:
    # force_style is a comma separated k=v list inside a quoted filter option
    return re.sub(r"[',:;=\[\]\\]", "", value).strip()


def build_force_style(request: StitchRequest, policy: EditorPolicy) -> str:
    sd = policy.style
    opacity = request.box_opacity if request.box_opacity is not None else sd.box_opacity
    font_family = _style_value(request.font_family or "") or sd.font_family
    font_size = request.font_size if request.font_size is not None else sd.font_size
    parts = [
        f"Fontname={font_family}",
        f"Fontsize={int(font_size)}",
        f"PrimaryColour={encode_text_color(request.text_color or sd.text_color)}",
        f"BackColour={encode_back_color(request.box_color or sd.box_color, opacity)}",
        f"OutlineColour={encode_border_color(request.box_border_color or sd.box_border_color, opacity)}",
        f"BorderStyle={BORDER_STYLE_BOX}",
        f"Alignment={ALIGN_BOTTOM_CENTER}",
    ]
    return ",".join(parts)


def build_mix_command(*, gain: float, effective_ms: int) -> TransformSpec:
    """Voice at unity gain (padded with silence) over the looped background."""
    graph = (
        "[0:a]volume=1.0,apad[voice];"
        f"[1:a]volume={gain:.2f}[bg];"
        "[voice][bg]amix=inputs=2:duration=shortest:dropout_transition=0:normalize=0[out]"
    )
    args = [
        "-hide_banner",
        "-loglevel",
        "error",
        "-i",
        VOICE_FILE,
        "-stream_loop",
        "-1",
        "-i",
        AUDIO_BG_FILE,
        "-filter_complex",
        graph,
        "-map",
        "[out]",
        "-t",
        ffmpeg_duration(effective_ms),
        "-y",
        MIXED_AUDIO_FILE,
    ]
    return TransformSpec(name="mix", args=args, output=MIXED_AUDIO_FILE)


def build_video_filter(request: StitchRequest, policy: EditorPolicy) -> str:
    filters: List[str] = []
    if request.resolution:
        w, h = parse_resolution(request.resolution)
        filters.append(
            f"scale={w}:{h}:force_original_aspect_ratio=decrease,pad={w}:{h}:(ow-iw)/2:(oh-ih)/2,setsar=1"
        )
    style = build_force_style(request, policy)
    filters.append(f"subtitles=filename={ffmpeg_filter_escape_path(SUBS_FILE)}:force_style='{style}'")
    return ",".join(filters)


def build_overlay_command(request: StitchRequest, policy: EditorPolicy, *, effective_ms: int) -> TransformSpec:
    args = [
        "-hide_banner",
        "-loglevel",
        "error",
        "-stream_loop",
        "-1",
        "-i",
        VIDEO_BG_FILE,
        "-i",
        MIXED_AUDIO_FILE,
        "-ss",
        "00:00:00",
        "-to",
        ffmpeg_duration(effective_ms),
        "-map",
        "0:v",
        "-map",
        "1:a",
        "-vf",
        build_video_filter(request, policy),
        "-c:v",
        policy.video_codec,
        "-preset",
        policy.video_preset,
        "-c:a",
        policy.audio_codec,
        "-movflags",
        "+faststart",
        "-y",
        FINAL_FILE,
    ]
    return TransformSpec(name="overlay", args=args, output=FINAL_FILE)


def build_stitch_plan(request: StitchRequest, policy: EditorPolicy) -> StitchPlan:
    if request.resolution and request.resolution not in policy.resolutions:
        raise MalformedRequest(
            f"unsupported resolution {request.resolution!r}; allowed: {', '.join(policy.resolutions)}"
        )
    natural = sum(request.durations)
    effective = effective_duration_ms(request.durations, request.final_duration_cap_ms, request.trim_gracefully)
    if effective <= 0:
        raise MalformedRequest(
            f"nothing to render within the duration cap of {request.final_duration_cap_ms}ms"
        )
    limit = effective if effective < natural else None
    entries = build_timing_track(request.sentences, request.durations, limit_ms=limit)
    gain = background_gain(request.audio_background_volume_pct, default_pct=policy.style.audio_background_volume)
    return StitchPlan(
        entries=entries,
        natural_ms=natural,
        effective_ms=effective,
        background_gain=gain,
        mix=build_mix_command(gain=gain, effective_ms=effective),
        overlay=build_overlay_command(request, policy, effective_ms=effective),
    )
