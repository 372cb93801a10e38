"""
Segmenter v1.0.0
================
Splits text into classified CharacterUnits carrying line, word and
sentence ordinals, and into line/sentence/word segments for the diff
engine. Also owns the fractional position scheme used when a unit is
inserted between two existing ones.
"""

import re
import uuid
from typing import List, Optional, Tuple

from .classifier import Category, classify, is_sentence_terminator
from .models import CharacterUnit

# Sentence body followed by its terminator run and trailing whitespace.
# A leading terminator run (e.g. "...") forms a segment of its own.
_SENTENCE_PATTERN = re.compile(r'[^.!?؟]+(?:[.!?؟]+\s*)?|[.!?؟]+\s*')
_WORD_PATTERN = re.compile(r'\s+|\S+')


def segment(text: str, start_position: int = 1, start_handle: int = 0) -> List[CharacterUnit]:
    """
    Walk text once and produce one CharacterUnit per character.

    Positions are sequential and 1-based. A newline starts a new line and
    resets the word and sentence counters; whitespace that closes a
    non-empty word advances the word counter; '.', '!', '?' and the Arabic
    question mark advance the sentence counter.

    Args:
        text: Text to segment
        start_position: Position of the first unit
        start_handle: Arena handle of the first unit

    Returns:
        List of CharacterUnit, exactly len(text) long
    """
    units = []
    line_number = 1
    word_number = 1
    sentence_number = 1
    in_word = False

    for offset, char in enumerate(text or ''):
        category = classify(char)

        if category is Category.WHITESPACE:
            if in_word:
                word_number += 1
                in_word = False
        elif category is Category.PUNCTUATION:
            if is_sentence_terminator(char):
                sentence_number += 1
        elif category is Category.BASE_LETTER:
            in_word = True

        if char == '\n':
            line_number += 1
            word_number = 1
            sentence_number = 1

        units.append(CharacterUnit(
            id=str(uuid.uuid4()),
            handle=start_handle + offset,
            position_key=(start_position + offset,),
            value=char,
            original_value=char,
            category=category,
            line_number=line_number,
            word_number=word_number,
            sentence_number=sentence_number
        ))

    return units


def split_lines(text: str) -> List[str]:
    """Split on newlines only; joining with '\\n' restores the text."""
    return (text or '').split('\n')


def split_sentences(text: str) -> List[str]:
    """
    Split text into sentence segments.

    Each segment keeps its terminator run and trailing whitespace, so
    ''.join(split_sentences(t)) == t.
    """
    return _SENTENCE_PATTERN.findall(text or '')


def split_words(text: str) -> List[str]:
    """Split text into alternating word and whitespace tokens."""
    return _WORD_PATTERN.findall(text or '')


def position_between(before: Tuple[int, ...], after: Optional[Tuple[int, ...]]) -> Tuple[int, ...]:
    """
    Return a position key strictly between `before` and `after`.

    Appending a `.1` component is tried first. When an earlier insertion
    already sits there, the key descends with `.0` components until it
    sorts below `after`. With no successor the integer part is
    incremented instead.

    Args:
        before: Key of the predecessor unit
        after: Key of the current successor, or None at the end

    Returns:
        New position key
    """
    if after is None:
        return (before[0] + 1,)

    candidate = before + (1,)
    if candidate < after:
        return candidate

    # `after` extends `before`: skip its leading zero components
    rest = after[len(before):]
    zeros = 0
    while zeros < len(rest) and rest[zeros] == 0:
        zeros += 1
    return before + (0,) * (zeros + 1) + (1,)
