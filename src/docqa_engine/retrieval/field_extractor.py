"""Regex heuristics for counts and labeled fields in chunk text."""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from docqa_engine.config.constants import COUNT_NOUNS, NUMBER_WORDS
from docqa_engine.models.domain import Chunk

_NOUN = r"(?:accused|individuals?|persons?|people)"
_COUNT_PATTERNS = (
    re.compile(rf"(\d+)\s+{_NOUN}", re.IGNORECASE),
    re.compile(rf"{_NOUN}\s+(?:were|was|are|is)?\s*(\d+)", re.IGNORECASE),
    re.compile(rf"\b({'|'.join(NUMBER_WORDS)})\b\s+{_NOUN}", re.IGNORECASE),
)
_IDENTIFIER_RE = re.compile(r"\bFIR\b\s*(?:No\.?|Number)?\s*[:#-]?\s*([A-Za-z0-9/\-]*\d[A-Za-z0-9/\-]*)", re.IGNORECASE)
_DATE_RE = re.compile(
    r"(\b\d{1,2}[/-]\d{1,2}[/-]\d{2,4}\b|\b\d{4}-\d{2}-\d{2}\b|\b[A-Za-z]{3,9}\s+\d{1,2},\s*\d{4}\b)"
)
_ROLE_NAME_RE = re.compile(
    r"(?i:complainant|informant)[:\s-]+([A-Z][A-Za-z.'\-]+(?:[ \t]+[A-Z][A-Za-z.'\-]+)*)"
)

COUNT_SWEEP_KEYWORDS = COUNT_NOUNS

FIELD_LABELS = {
    "identifier": "FIR Number",
    "date": "FIR Date",
    "name": "Complainant",
}


@dataclass
class FieldMatch:
    values: dict[str, str] = field(default_factory=dict)
    chunk: Chunk | None = None


def extract_count(text: str) -> int | None:
    """First digit or spelled-out number adjacent to a countable noun."""
    for pattern in _COUNT_PATTERNS:
        match = pattern.search(text or "")
        if match:
            token = match.group(1).lower()
            if token.isdigit():
                return int(token)
            return NUMBER_WORDS.get(token)
    return None


def find_count(chunks: list[Chunk]) -> tuple[int, Chunk] | None:
    for chunk in chunks:
        n = extract_count(chunk.content)
        if n is not None:
            return n, chunk
    return None


def wanted_fields(question: str) -> set[str]:
    q = question.lower()
    wanted = set()
    if re.search(r"\bfir\b", q):
        if re.search(r"\b(?:number|no)\b", q):
            wanted.add("identifier")
        if "date" in q:
            wanted.add("date")
    if re.search(r"\b(?:complainant|informant)\b", q):
        wanted.add("name")
    return wanted


def extract_labeled_fields(chunks: list[Chunk], wanted: set[str]) -> FieldMatch:
    """Scan chunks in order; the first match for each wanted field wins."""
    result = FieldMatch()
    for chunk in chunks:
        text = chunk.content
        if "identifier" in wanted and "identifier" not in result.values:
            match = _IDENTIFIER_RE.search(text)
            if match:
                result.values["identifier"] = match.group(1)
                result.chunk = result.chunk or chunk
        if "date" in wanted and "date" not in result.values:
            match = _DATE_RE.search(text)
            if match:
                result.values["date"] = match.group(1)
                result.chunk = result.chunk or chunk
        if "name" in wanted and "name" not in result.values:
            match = _ROLE_NAME_RE.search(text)
            if match:
                result.values["name"] = match.group(1).strip()
                result.chunk = result.chunk or chunk
        if wanted <= result.values.keys():
            break
    return result


def format_fields(values: dict[str, str]) -> str:
    lines = [f"- {FIELD_LABELS[key]}: **{values[key]}**" for key in FIELD_LABELS if key in values]
    return "### Answer\n\n" + "\n".join(lines)


def format_count(n: int) -> str:
    return f"### Answer\n\n- Individuals accused: **{n}**"


def sweep_keywords(wanted: set[str]) -> list[str]:
    """Keywords for the broader lexical sweep over a scope's chunks."""
    terms: list[str] = []
    if wanted & {"identifier", "date"}:
        terms.append("fir")
    if "date" in wanted:
        terms.append("date")
    if "name" in wanted:
        terms += ["complainant", "informant"]
    return terms
