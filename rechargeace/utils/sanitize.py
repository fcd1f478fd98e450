# rechargeace/utils/sanitize.py
from __future__ import annotations
import re
from typing import Iterable

_INJECTION_CUES = [
    "ignore previous instruction",
    "ignore the previous instruction",
    "disregard previous instruction",
    "system prompt",
    "developer message",
    "as an ai",
    "you are chatgpt",
    "jailbreak",
]

_WHITESPACE_RE = re.compile(r"\s+")
_SENT_SPLIT_RE = re.compile(r'(?<=[.!?])\s+')


def collapse_ws(text: str) -> str:
    if not text:
        return ""
    return _WHITESPACE_RE.sub(" ", text).strip()


def _strip_cue_sentences(text: str, cues: Iterable[str] = _INJECTION_CUES) -> str:
    parts = _SENT_SPLIT_RE.split(text)
    cues_l = [c.lower() for c in cues]
    kept = [p.strip() for p in parts if p.strip() and not any(c in p.lower() for c in cues_l)]
    return " ".join(kept)


def sanitize_advisory_text(text: str, max_chars: int = 400) -> str:
    """
    Clean model-written reasoning before it is shown next to computed figures:
    collapse whitespace, drop sentences carrying prompt-injection cues, truncate.
    Returns "" when nothing usable is left.
    """
    if not text:
        return ""
    t = _strip_cue_sentences(collapse_ws(str(text)))
    if max_chars and len(t) > max_chars:
        t = t[:max_chars].rstrip() + "…"
    return t
