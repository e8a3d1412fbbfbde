"""Clean-up applied to model replies before they reach the user."""
import re
from typing import List, Optional, Pattern

from carevibe.core.config import settings


BANNED_PHRASES: List[Pattern] = [
    re.compile(r"i\s*can(?:not|'t)\s*diagnose", re.IGNORECASE),
    re.compile(r"i'?m\s*not\s*here\s*to\s*identify", re.IGNORECASE),
    re.compile(r"as\s*an\s*ai", re.IGNORECASE),
    re.compile(r"i\s*am\s*an\s*ai", re.IGNORECASE),
    re.compile(r"i\s*am\s*not\s*a\s*doctor", re.IGNORECASE),
    re.compile(r"language\s*model", re.IGNORECASE),
]


def enforce_brief_style(text: str, max_lines: Optional[int] = None, max_chars: Optional[int] = None) -> str:
    """Keep the first non-empty lines and cap the length at a word boundary."""
    if not text:
        return ""
    max_lines = max_lines or settings.chat.brief_max_lines
    max_chars = max_chars or settings.chat.brief_max_chars

    out = str(text).strip()
    lines = [line.strip() for line in out.splitlines() if line.strip()]
    if lines:
        out = "\n".join(lines[:max_lines])
    if len(out) > max_chars:
        out = re.sub(r"[^\w)\]}]*$", "", out[:max_chars]).strip()
    return out


def sanitize_phrases(text: str) -> str:
    """Drop boilerplate disclaimers ("as an AI", "I can't diagnose", ...)."""
    if not text:
        return ""
    out = text
    for pattern in BANNED_PHRASES:
        out = pattern.sub("", out).strip()
    # Leftover double spaces and dot runs
    out = re.sub(r"[ \t]{2,}", " ", out)
    out = re.sub(r"\s*\.(\s*\.)+", ".", out)
    return out.strip()
