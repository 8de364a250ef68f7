"""Transcript text normalization.

Steps run in a fixed order: output filter, trim, optional paragraph
formatting, then user word replacement. Every step is total.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Mapping, Optional

from interfaces import UserDictionary

logger = logging.getLogger(__name__)

_ARTIFACT_PATTERNS = (
    re.compile(r"\[[^\]\n]*\]"),
    re.compile(r"<\|?[A-Za-z0-9_.-]+\|?>"),
    re.compile(
        r"\((?:music|applause|laughter|laughs|inaudible|silence|noise|blank[ _]audio)\)",
        re.IGNORECASE,
    ),
)
_INLINE_SPACE_RUN = re.compile(r"[ \t]{2,}")
_SPACE_BEFORE_PUNCT = re.compile(r"[ \t]+([,.!?;:])")
_LINE_EDGE_SPACE = re.compile(r"(?m)^[ \t]+|[ \t]+$")
_SENTENCE_END = re.compile(r"(?<=[.!?])\s+")

MAX_SENTENCES_PER_PARAGRAPH = 4
MAX_WORDS_PER_PARAGRAPH = 50


def filter_output(text: str) -> str:
    for pattern in _ARTIFACT_PATTERNS:
        text = pattern.sub(" ", text)
    return _INLINE_SPACE_RUN.sub(" ", text)


def format_paragraphs(text: str) -> str:
    sentences = [s for s in _SENTENCE_END.split(text) if s]
    if len(sentences) <= 1:
        return text

    paragraphs: list[list[str]] = [[]]
    words = 0
    for sentence in sentences:
        current = paragraphs[-1]
        sentence_words = len(sentence.split())
        if current and (
            len(current) >= MAX_SENTENCES_PER_PARAGRAPH
            or words + sentence_words > MAX_WORDS_PER_PARAGRAPH
        ):
            current = []
            paragraphs.append(current)
            words = 0
        current.append(sentence)
        words += sentence_words
    return "\n\n".join(" ".join(p) for p in paragraphs)


class WordReplacer:
    """Applies a user dictionary of ``original -> replacement`` rules.

    Keys match whole words, case-insensitively. A key like ``"gonna, gunna"``
    lists several originals for one replacement, and a key wrapped in
    slashes (``"/colou?r/"``) is used as a regular expression.
    """

    def __init__(self, replacements: Mapping[str, str]) -> None:
        self._rules: list[tuple[re.Pattern[str], str]] = []
        literal: list[tuple[str, str]] = []
        for key, replacement in replacements.items():
            key = key.strip()
            if len(key) > 2 and key.startswith("/") and key.endswith("/"):
                try:
                    self._rules.append((re.compile(key[1:-1], re.IGNORECASE), replacement))
                except re.error as exc:
                    logger.warning("Skipping invalid replacement pattern %r: %s", key, exc)
                continue
            for original in key.split(","):
                original = original.strip()
                if original:
                    literal.append((original, replacement))
        # longer originals first so multi-word rules win over their parts
        literal.sort(key=lambda item: len(item[0]), reverse=True)
        for original, replacement in literal:
            # a removed word takes its trailing comma with it
            trailing = ",?" if not replacement else ""
            pattern = re.compile(
                rf"(?<!\w){re.escape(original)}(?!\w){trailing}", re.IGNORECASE
            )
            self._rules.append((pattern, replacement))

    def apply_replacements(self, text: str) -> str:
        if not self._rules:
            return text
        for pattern, replacement in self._rules:
            text = pattern.sub(lambda _m, r=replacement: r, text)
        text = _INLINE_SPACE_RUN.sub(" ", text)
        text = _SPACE_BEFORE_PUNCT.sub(r"\1", text)
        return _LINE_EDGE_SPACE.sub("", text).strip()


@dataclass(frozen=True)
class NormalizeOptions:
    filter_output: bool = True
    format_text: bool = True
    dictionary: Optional[UserDictionary] = None


def normalize(raw_text: str, options: NormalizeOptions) -> str:
    text = raw_text
    if options.filter_output:
        text = filter_output(text)
    text = text.strip()
    if options.format_text:
        text = format_paragraphs(text)
    if options.dictionary is not None:
        text = options.dictionary.apply_replacements(text)
    return text
