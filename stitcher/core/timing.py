from __future__ import annotations

import math
import textwrap
from datetime import timedelta
from pathlib import Path
from typing import List, Optional, Sequence

import srt

from stitcher.core.errors import MalformedRequest
from stitcher.core.models import TimingTrackEntry


MAX_LINE_LENGTH = 100


def build_timing_track(
    sentences: Sequence[str],
    durations: Sequence[int],
    *,
    limit_ms: Optional[int] = None,
) -> List[TimingTrackEntry]:
    """Lay sentences end to end starting at 0.

    Entry i+1 starts exactly where entry i ends. With `limit_ms`, entries that
    start at or past the limit are dropped and the one crossing it is clipped,
    so the track never runs longer than the trimmed output.
    """
    if len(sentences) != len(durations):
        raise MalformedRequest(
            f"sentences/durations length mismatch: {len(sentences)} != {len(durations)}"
        )

    entries: List[TimingTrackEntry] = []
    start = 0
    for i, (text, dur) in enumerate(zip(sentences, durations)):
        dur = int(dur)
        if dur < 0:
            raise MalformedRequest(f"durations[{i}] must be >= 0, got {dur}")
        end = start + dur
        if limit_ms is not None:
            if start >= limit_ms:
                break
            end = min(end, limit_ms)
        entries.append(TimingTrackEntry(index=i + 1, start_ms=start, end_ms=end, text=str(text)))
        start = end
    return entries


def track_length_ms(entries: Sequence[TimingTrackEntry]) -> int:
    return entries[-1].end_ms if entries else 0


def format_timestamp(ms: int, *, second_granular: bool = False) -> str:
    """HH:MM:SS,mmm. Second-granular targets get ceil-rounded whole seconds."""
    if ms < 0:
        ms = 0
    if second_granular:
        ms = int(math.ceil(ms / 1000.0)) * 1000
    h, rem = divmod(int(ms), 3600 * 1000)
    m, rem = divmod(rem, 60 * 1000)
    s, millis = divmod(rem, 1000)
    return f"{h:02d}:{m:02d}:{s:02d},{millis:03d}"


def ffmpeg_duration(ms: int) -> str:
    """Duration in the HH:MM:SS.mmm form ffmpeg's -t/-to accept."""
    return format_timestamp(ms).replace(",", ".")


def wrap_caption_text(text: str, width: int = MAX_LINE_LENGTH) -> str:
    out: List[str] = []
    for line in str(text).splitlines() or [""]:
        wrapped = textwrap.wrap(line, width=width, break_long_words=True, break_on_hyphens=False)
        out.extend(wrapped or [""])
    return "\n".join(out).strip()


# libass reads {...} as override tags and \N, \h as line controls, even in srt input
_ZWSP = "\u200b"


def escape_caption_text(text: str) -> str:
    """Make caption text render literally through the subtitles filter."""
    text = text.replace("\\", "\\" + _ZWSP)
    return text.replace("{", "\\{" + _ZWSP).replace("}", "\\}")


def render_srt(entries: Sequence[TimingTrackEntry], *, max_line_length: int = MAX_LINE_LENGTH) -> str:
    # zero-length or blank cues render nothing; srt reindexes the rest densely
    subs = [
        srt.Subtitle(
            index=e.index,
            start=timedelta(milliseconds=e.start_ms),
            end=timedelta(milliseconds=e.end_ms),
            content=escape_caption_text(wrap_caption_text(e.text, max_line_length)),
        )
        for e in entries
        if e.end_ms > e.start_ms and e.text.strip()
    ]
    return srt.compose(subs, reindex=True, start_index=1)


def write_srt(entries: Sequence[TimingTrackEntry], path: Path, *, max_line_length: int = MAX_LINE_LENGTH) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(render_srt(entries, max_line_length=max_line_length), encoding="utf-8")
    return path
