from __future__ import annotations

import re


def safe_slug(s: str, max_len: int = 60) -> str:
    s = s.strip().lower()
    s = re.sub(r"[^a-z0-9]+", "_", s)
    s = re.sub(r"_+", "_", s).strip("_")
    if not s:
        s = "item"
    return s[:max_len]


def stderr_tail(stderr_text: str, max_lines: int = 8) -> str:
    lines = [ln for ln in (stderr_text or "").strip().splitlines() if ln.strip()]
    if not lines:
        return ""
    return "\n".join(lines[-max_lines:])
