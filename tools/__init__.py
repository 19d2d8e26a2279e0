"""Tools package: text utilities."""

from tools.text_utils import (
    WORDS_PER_MINUTE,
    ZERO_READING_TIME,
    count_words,
    join_chapter_contents,
    calculate_reading_time,
)

__all__ = [
    "WORDS_PER_MINUTE",
    "ZERO_READING_TIME",
    "count_words",
    "join_chapter_contents",
    "calculate_reading_time",
]
