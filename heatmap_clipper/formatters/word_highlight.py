"""Word Highlight formatter — animated word-by-word captions for vertical video.

WHY: Short-form video (TikTok, Reels, Shorts) uses captions where the word
being spoken lights up and pops while the rest of its phrase stays on
screen. Viewers follow along with the sound off, and the pop draws the eye.

HOW: Words are grouped into phrases (core/phrases.py). For every word of a
phrase one event is emitted covering that word's active time, with the
whole phrase drawn in three states:

  settled  (before the active word)  {\\c&HCCCCCC&\\fscx95\\fscy95}
  active   (the word being spoken)   {\\c&H00FFFF&\\fscx110\\fscy110\\t(0,50,\\fscx100\\fscy100)} ... {\\r}
  upcoming (after the active word)   {\\c&H666666&\\fscx90\\fscy90}

ASS colours are &HBBGGRR&, so &H00FFFF& is yellow. The active word starts
at 110% and shrinks to 100% over its first 50 ms, which reads as a pop.
After the last word a single uniform white event holds the phrase for
PHRASE_HOLD_S so the screen never blanks between phrases.

RULES:
- One event per word, plus one trailing hold event per phrase
- A word's event ends at max(end, start + MIN_WORD_DISPLAY_S); a zero or
  negative duration word is still visible
- Words within a phrase are separated by a single space
- Events are emitted in phrase order, then word order
"""

from __future__ import annotations

from typing import List, Sequence

from heatmap_clipper.core.models import CaptionEvent, Phrase, TimedWord
from heatmap_clipper.core.phrases import (
    MAX_CHARS_PER_PHRASE,
    MAX_WORDS_PER_PHRASE,
    group_phrases,
)
from heatmap_clipper.formatters.base import BaseCaptionFormatter, build_script_header

PHRASE_HOLD_S = 0.5
MIN_WORD_DISPLAY_S = 0.1

ACTIVE_TAG = "{\\c&H00FFFF&\\fscx110\\fscy110\\t(0,50,\\fscx100\\fscy100)}"
RESET_TAG = "{\\r}"
SETTLED_TAG = "{\\c&HCCCCCC&\\fscx95\\fscy95}"
UPCOMING_TAG = "{\\c&H666666&\\fscx90\\fscy90}"
HOLD_TAG = "{\\c&HFFFFFF&\\fscx100\\fscy100}"

_STYLES = [
    "Style: Default,Arial Black,52,&H00FFFFFF,&H000000FF,&H00000000,&H80000000,"
    "1,0,0,0,100,100,0,0,1,4,0,2,20,20,80,1",
    "Style: Active,Arial Black,58,&H0000FFFF,&H00FFFFFF,&H00000000,&H80000000,"
    "1,0,0,0,100,100,0,0,1,4,0,2,20,20,80,1",
    "Style: Inactive,Arial Black,48,&H80FFFFFF,&H000000FF,&H00000000,&H40000000,"
    "1,0,0,0,100,100,0,0,1,3,0,2,20,20,80,1",
]

_HEADER = build_script_header(
    title="Word Highlight Subtitles",
    styles=_STYLES,
    extra_info=["ScaledBorderAndShadow: yes"],
)


def _highlighted_text(words: Sequence[TimedWord], active: int) -> str:
    parts: List[str] = []
    for i, word in enumerate(words):
        if i == active:
            parts.append("{}{}{}".format(ACTIVE_TAG, word.text, RESET_TAG))
        elif i < active:
            parts.append(SETTLED_TAG + word.text)
        else:
            parts.append(UPCOMING_TAG + word.text)
    return " ".join(parts)


def _hold_text(words: Sequence[TimedWord]) -> str:
    return " ".join(HOLD_TAG + word.text for word in words)


def phrase_events(phrase: Phrase) -> List[CaptionEvent]:
    """Build the per-word highlight events and the trailing hold for one phrase."""
    events: List[CaptionEvent] = []
    for index, word in enumerate(phrase.words):
        events.append(CaptionEvent(
            start_s=word.start_s,
            end_s=max(word.end_s, word.start_s + MIN_WORD_DISPLAY_S),
            text=_highlighted_text(phrase.words, index),
        ))

    last_end = phrase.end_s
    hold_end = last_end + PHRASE_HOLD_S
    if hold_end > last_end:
        events.append(CaptionEvent(
            start_s=last_end,
            end_s=hold_end,
            text=_hold_text(phrase.words),
        ))
    return events


class WordHighlightFormatter(BaseCaptionFormatter):
    """Formatter producing an animated word-highlight ASS script.

    RULES:
    - Input is a list of TimedWord (word-level recognition only)
    - Configurable via constructor: max_words, max_chars (phrase limits)
    """

    def __init__(
        self,
        max_words: int = MAX_WORDS_PER_PHRASE,
        max_chars: int = MAX_CHARS_PER_PHRASE,
    ) -> None:
        self.max_words = max_words
        self.max_chars = max_chars

    @property
    def name(self) -> str:
        return "Word Highlight"

    @property
    def script_header(self) -> str:
        return _HEADER

    def build_events(self, source: Sequence[TimedWord]) -> List[CaptionEvent]:
        events: List[CaptionEvent] = []
        for phrase in group_phrases(source, self.max_words, self.max_chars):
            events.extend(phrase_events(phrase))
        return events
