from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List

import yaml


@dataclass(frozen=True)
class StyleDefaults:
    font_family: str = "Times New Roman"
    font_size: int = 13
    text_color: str = "ffffff"
    box_color: str = "000000"
    box_border_color: str = "000000"
    box_opacity: int = 50
    audio_background_volume: int = 10


@dataclass(frozen=True)
class EditorPolicy:
    fonts: List[str] = field(default_factory=lambda: ["Arial", "Times New Roman"])
    resolutions: List[str] = field(default_factory=lambda: ["1280x720", "1920x1080"])
    style: StyleDefaults = field(default_factory=StyleDefaults)
    max_line_length: int = 100
    video_codec: str = "libx264"
    video_preset: str = "veryfast"
    audio_codec: str = "aac"


def _read_yaml(path: Path) -> Dict[str, Any]:
    return yaml.safe_load(path.read_text(encoding="utf-8")) or {}


def load_editor_policy(cfg_path: str) -> EditorPolicy:
    """Read configs/editor.yaml. A missing file yields the built-in defaults."""
    path = Path(cfg_path)
    if not path.exists():
        return EditorPolicy()

    data = _read_yaml(path)
    base = EditorPolicy()
    sd = data.get("style_defaults", {}) or {}
    dflt = StyleDefaults()
    style = StyleDefaults(
        font_family=str(sd.get("font_family", dflt.font_family)),
        font_size=int(sd.get("font_size", dflt.font_size)),
        text_color=str(sd.get("text_color", dflt.text_color)),
        box_color=str(sd.get("box_color", dflt.box_color)),
        box_border_color=str(sd.get("box_border_color", dflt.box_border_color)),
        box_opacity=int(sd.get("box_opacity", dflt.box_opacity)),
        audio_background_volume=int(sd.get("audio_background_volume", dflt.audio_background_volume)),
    )
    captions = data.get("captions", {}) or {}
    video = data.get("video", {}) or {}
    return EditorPolicy(
        fonts=[str(f) for f in data.get("fonts", base.fonts)],
        resolutions=[str(r) for r in data.get("resolutions", base.resolutions)],
        style=style,
        max_line_length=int(captions.get("max_line_length", base.max_line_length)),
        video_codec=str(video.get("codec", base.video_codec)),
        video_preset=str(video.get("preset", base.video_preset)),
        audio_codec=str(video.get("audio_codec", base.audio_codec)),
    )


def dump_json(data: Any) -> str:
    return json.dumps(data, ensure_ascii=False, indent=2)
