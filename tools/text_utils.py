"""Text utilities: word counting and reading-time estimation."""

import math
import re
from typing import Iterable, Optional

WORDS_PER_MINUTE = 225
ZERO_READING_TIME = "0 min read"


def count_words(text: Optional[str]) -> int:
    """Count whitespace-separated words."""
    if not text or not text.strip():
        return 0
    return len(re.split(r"\s+", text.strip()))


def join_chapter_contents(contents: Iterable[Optional[str]]) -> str:
    """Concatenate chapter bodies in order, separated by a single space."""
    return " ".join(c for c in contents if c)


def calculate_reading_time(text: Optional[str], words_per_minute: int = WORDS_PER_MINUTE) -> str:
    """Format the estimated reading time of ``text``.

    Examples: ``"1 min read"``, ``"12 min read"``, ``"2 hours 5 min read"``.
    Empty input yields :data:`ZERO_READING_TIME`.
    """
    words = count_words(text)
    if words == 0:
        return ZERO_READING_TIME

    minutes = math.ceil(words / words_per_minute)
    if minutes == 1:
        return "1 min read"
    if minutes < 60:
        return f"{minutes} min read"

    hours, remaining = divmod(minutes, 60)
    hour_label = f"{hours} hour{'s' if hours > 1 else ''}"
    if remaining == 0:
        return f"{hour_label} read"
    return f"{hour_label} {remaining} min read"
