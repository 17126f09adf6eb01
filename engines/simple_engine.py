"""Regex text engine: whitespace tokens, punctuation-delimited sentences."""

import re
from typing import Iterable, List, Optional

from .base import TextEngine

_SENTENCE_END = re.compile(r"[.!?]+")
_WHITESPACE = re.compile(r"\s+")


class SimpleEngine(TextEngine):
    """Tokenize on whitespace and split sentences on runs of `.`, `!` and `?`."""

    def __init__(self, lowercase: bool = False, stopwords: Optional[Iterable[str]] = None):
        self._lowercase = lowercase
        self._stopwords = frozenset(w.lower() for w in (stopwords or ()))

    def tokenize(self, text: str) -> List[str]:
        tokens = [t for t in _WHITESPACE.split(text) if t]
        if self._lowercase:
            tokens = [t.lower() for t in tokens]
        if self._stopwords:
            tokens = [t for t in tokens if t.lower() not in self._stopwords]
        return tokens

    def sentencize(self, text: str) -> List[str]:
        return [s.strip() for s in _SENTENCE_END.split(text) if s.strip()]

    def name(self) -> str:
        return "simple"
