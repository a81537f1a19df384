"""Group timed words into short on-screen phrases.

WHY: Vertical video has room for a handful of words at a readable size.
Showing the whole recognized sentence at once shrinks the text and loses the
rhythm of speech; showing one word at a time is hard to follow. Short
phrases of up to three words, broken at punctuation, read naturally.

HOW: One greedy pass. Each word is appended to the current phrase, then the
break conditions are checked against the phrase as it now stands:
  - word count reached max_words
  - running character count (len(text) + 1 per word) reached max_chars
  - the word just appended ends in . , ? or !
When any fires the phrase is closed. A non-empty remainder is emitted last.

RULES:
- Every input word lands in exactly one phrase, in input order
- No phrase is empty
- A single long word is its own phrase (it trips max_chars on its own)
"""

from __future__ import annotations

from typing import Iterable, List

from heatmap_clipper.core.models import Phrase, TimedWord

MAX_WORDS_PER_PHRASE = 3
MAX_CHARS_PER_PHRASE = 20

_BREAK_PUNCTUATION = (".", ",", "?", "!")


def group_phrases(
    words: Iterable[TimedWord],
    max_words: int = MAX_WORDS_PER_PHRASE,
    max_chars: int = MAX_CHARS_PER_PHRASE,
) -> List[Phrase]:
    """Split a word sequence into display phrases."""
    phrases: List[Phrase] = []
    current: List[TimedWord] = []
    chars = 0

    for word in words:
        current.append(word)
        chars += len(word.text) + 1

        if (
            len(current) >= max_words
            or chars >= max_chars
            or word.text.endswith(_BREAK_PUNCTUATION)
        ):
            phrases.append(Phrase(words=current))
            current = []
            chars = 0

    if current:
        phrases.append(Phrase(words=current))
    return phrases
