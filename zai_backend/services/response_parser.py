"""
Candidate normalization for Vertex AI generateContent responses.

The upstream API has returned several incompatible candidate shapes across
model versions. parse_candidate() classifies a raw candidate into one of a
closed set of variants (first structural match wins, in the order below) and
extract_text() reads the text off the variant. Neither ever raises.

  1. "raw string"                          -> TextCandidate
  2. {"content": {"parts": [{"text": ..}]}} -> ContentPartsCandidate
  3. {"content": "text"}                    -> ContentTextCandidate
  4. {"text": ..}                           -> DirectTextCandidate
  5. {"parts": [{"text": ..}]}              -> PartsCandidate
  6. [candidate, ...]                       -> NestedListCandidate (first element)
  7. anything else                          -> UnrecognizedCandidate
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Union

FINISH_MAX_TOKENS = "MAX_TOKENS"
FINISH_SAFETY = "SAFETY"
MAX_NESTING = 16


@dataclass(frozen=True)
class TextCandidate:
    text: str


@dataclass(frozen=True)
class ContentPartsCandidate:
    text: str


@dataclass(frozen=True)
class ContentTextCandidate:
    text: str


@dataclass(frozen=True)
class DirectTextCandidate:
    text: str


@dataclass(frozen=True)
class PartsCandidate:
    text: str


@dataclass(frozen=True)
class NestedListCandidate:
    inner: "CandidateShape"

    @property
    def text(self) -> str:
        return self.inner.text


@dataclass(frozen=True)
class UnrecognizedCandidate:
    raw: Any = None

    @property
    def text(self) -> str:
        return ""


CandidateShape = Union[
    TextCandidate,
    ContentPartsCandidate,
    ContentTextCandidate,
    DirectTextCandidate,
    PartsCandidate,
    NestedListCandidate,
    UnrecognizedCandidate,
]


def _first_part_text(parts: Any) -> Optional[str]:
    if not isinstance(parts, list) or not parts:
        return None
    first = parts[0]
    if isinstance(first, dict) and isinstance(first.get("text"), str):
        return first["text"]
    return None


def parse_candidate(raw: Any, _depth: int = 0) -> CandidateShape:
    if isinstance(raw, str):
        return TextCandidate(raw)

    if isinstance(raw, dict):
        content = raw.get("content")
        if isinstance(content, dict):
            txt = _first_part_text(content.get("parts"))
            if txt is not None:
                return ContentPartsCandidate(txt)
        if isinstance(content, str):
            return ContentTextCandidate(content)
        if isinstance(raw.get("text"), str):
            return DirectTextCandidate(raw["text"])
        txt = _first_part_text(raw.get("parts"))
        if txt is not None:
            return PartsCandidate(txt)
        return UnrecognizedCandidate(raw)

    if isinstance(raw, list) and raw and _depth < MAX_NESTING:
        return NestedListCandidate(parse_candidate(raw[0], _depth + 1))

    return UnrecognizedCandidate(raw)


def extract_text(raw: Any) -> str:
    """Return candidate text, or "" when the shape is not recognized."""
    return parse_candidate(raw).text


def finish_reason(raw: Any) -> Optional[str]:
    if isinstance(raw, dict):
        fr = raw.get("finishReason")
        return fr if isinstance(fr, str) else None
    if isinstance(raw, list) and raw:
        return finish_reason(raw[0]) if isinstance(raw[0], dict) else None
    return None


__all__ = [
    "FINISH_MAX_TOKENS",
    "FINISH_SAFETY",
    "CandidateShape",
    "TextCandidate",
    "ContentPartsCandidate",
    "ContentTextCandidate",
    "DirectTextCandidate",
    "PartsCandidate",
    "NestedListCandidate",
    "UnrecognizedCandidate",
    "parse_candidate",
    "extract_text",
    "finish_reason",
]
