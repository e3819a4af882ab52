"""Colour encoding for the subtitles filter's force_style.

libass wants colours as &HAABBGGRR& with the channels reversed and an alpha
byte where 00 is opaque and FF is fully transparent. Text colour is written
without the alpha byte. Alpha is quantised to one byte, so the opacity
percentage does not round-trip exactly; the RGB digits do.
"""
from __future__ import annotations

import re
from typing import Optional, Tuple

from stitcher.core.errors import MalformedRequest


DEFAULT_BACK_COLOR = "000000"
DEFAULT_TEXT_COLOR = "ffffff"
DEFAULT_OPACITY = 50

_HEX6 = re.compile(r"^[0-9A-Fa-f]{6}$")
_ENCODED = re.compile(r"^&H([0-9A-Fa-f]{2})?([0-9A-Fa-f]{6})&$")


def normalize_hex_color(value: Optional[str], default: str) -> str:
    if value is None or not str(value).strip():
        return default
    s = str(value).strip().replace("#", "")
    if not _HEX6.match(s):
        raise MalformedRequest(f"color must be 6 hex digits (optional '#'), got {value!r}")
    return s


def _to_bgr(rgb: str) -> str:
    return rgb[4:6] + rgb[2:4] + rgb[0:2]


def alpha_byte(opacity_pct: Optional[int]) -> int:
    """Inverted alpha: 100% opaque -> 0x00, 0% -> 0xFF."""
    if opacity_pct is None:
        opacity_pct = DEFAULT_OPACITY
    pct = int(opacity_pct)
    if pct < 0 or pct > 100:
        raise MalformedRequest(f"opacity must be within 0..100, got {pct}")
    # round half up; int(round()) would use banker's rounding
    return int((100 - pct) * 255 / 100 + 0.5)


def encode_back_color(color: Optional[str], opacity_pct: Optional[int]) -> str:
    rgb = normalize_hex_color(color, DEFAULT_BACK_COLOR)
    return f"&H{alpha_byte(opacity_pct):02X}{_to_bgr(rgb)}&"


def encode_border_color(color: Optional[str], opacity_pct: Optional[int]) -> str:
    return encode_back_color(color, opacity_pct)


def encode_text_color(color: Optional[str]) -> str:
    rgb = normalize_hex_color(color, DEFAULT_TEXT_COLOR)
    return f"&H{_to_bgr(rgb)}&"


def decode_color(encoded: str) -> Tuple[str, Optional[int]]:
    """Inverse of the encoders: returns (rrggbb, alpha byte or None)."""
    m = _ENCODED.match(encoded or "")
    if not m:
        raise MalformedRequest(f"not an encoded colour: {encoded!r}")
    alpha = int(m.group(1), 16) if m.group(1) else None
    return _to_bgr(m.group(2)), alpha
