from __future__ import annotations

import re
from typing import Any, List, Mapping, Set

# Sentence terminators, ASCII and full-width
SENTENCE_SPLIT_RE = re.compile(r"[.!?。！？]")

_TURN_TEXT_KEYS = ("content", "message", "user_message", "userMessage", "text")


def turn_text(turn: Any) -> str:
    """Return the text of a history entry (plain string or message mapping)."""
    if turn is None:
        return ""
    if isinstance(turn, str):
        return turn
    if isinstance(turn, Mapping):
        for key in _TURN_TEXT_KEYS:
            value = turn.get(key)
            if isinstance(value, str) and value:
                return value
        return ""
    return str(turn)


def significant_words(text: str, min_length: int = 3) -> Set[str]:
    """Lower-cased whitespace tokens longer than two characters."""
    return {w for w in (text or "").lower().split() if len(w) >= min_length}


def topic_similarity(previous: Any, current: Any) -> float:
    """Jaccard similarity of the significant word sets of two turns."""
    words_a = significant_words(turn_text(previous))
    words_b = significant_words(turn_text(current))
    if not words_a or not words_b:
        return 0.0
    return len(words_a & words_b) / float(len(words_a | words_b))


def split_sentences(text: str) -> List[str]:
    return [s.strip() for s in SENTENCE_SPLIT_RE.split(text or "") if s.strip()]


def clamp_unit(value: Any) -> float:
    """Clamp to [0, 1]; None, NaN and non-numeric values become 0.0."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if number != number:  # NaN
        return 0.0
    return max(0.0, min(1.0, number))
