"""Answer coverage: the share of answer sentences supported by evidence snippets.

A sentence is covered when its token overlap with some snippet
(intersection over the larger token set) reaches the threshold.
"""

from __future__ import annotations

import re

from docqa_engine.config.settings import Settings

_NON_ALNUM_RE = re.compile(r"[^a-z0-9\s]")
_SENTENCE_RE = re.compile(r"(?<=[.!?])\s+")


def coverage_tokens(text: str) -> set[str]:
    cleaned = _NON_ALNUM_RE.sub(" ", (text or "").lower())
    return {w for w in cleaned.split() if len(w) > 2}


def split_sentences(answer: str) -> list[str]:
    parts = [s.strip() for s in _SENTENCE_RE.split(answer or "") if s.strip()]
    if parts:
        return parts
    stripped = (answer or "").strip()
    return [stripped] if stripped else []


def overlap_score(a: set[str], b: set[str]) -> float:
    if not a or not b:
        return 0.0
    return len(a & b) / max(len(a), len(b))


class CoverageChecker:
    def __init__(self, settings: Settings) -> None:
        self.threshold = settings.coverage_sentence_threshold

    def coverage(self, answer: str, snippets: list[str]) -> float:
        sentences = split_sentences(answer)
        if not sentences or not snippets:
            return 0.0
        snippet_tokens = [coverage_tokens(s) for s in snippets]
        covered = 0
        for sentence in sentences:
            tokens = coverage_tokens(sentence)
            best = max((overlap_score(tokens, st) for st in snippet_tokens), default=0.0)
            if best >= self.threshold:
                covered += 1
        return covered / len(sentences)
