"""
Character Classifier v1.0.0
===========================
Maps single characters to one of four categories using fixed Unicode
range membership, and classifies a value change as a tashkeel
(diacritic) edit, a base-letter edit, an insertion or a deletion.

Every function here is total and side-effect free.
"""

import re
from enum import Enum


class Category(Enum):
    """Category of a single character."""
    BASE_LETTER = "base_letter"
    DIACRITIC = "diacritic"
    WHITESPACE = "whitespace"
    PUNCTUATION = "punctuation"


class ChangeKind(Enum):
    """Closed set of change kinds carried by suggestions and diff records."""
    DIACRITIC = "diacritic"
    BASE_LETTER = "base_letter"
    INSERT = "insert"
    DELETE = "delete"


# Canonical tashkeel marks: tanween, harakat, shadda, sukun,
# maddah/hamza above and below, superscript alef.
TASHKEEL = frozenset([
    '\u064B', '\u064C', '\u064D', '\u064E', '\u064F', '\u0650',
    '\u0651', '\u0652', '\u0653', '\u0654', '\u0655', '\u0670',
])

# Arabic, Arabic Supplement, Arabic Extended-A, Presentation Forms A and B
ARABIC_RANGE = re.compile('[\u0600-\u06FF\u0750-\u077F\u08A0-\u08FF\uFB50-\uFDFF\uFE70-\uFEFF]')

PUNCTUATION = frozenset('\u060C\u061B\u061F!.?,;:-\u2013\u2014')

SENTENCE_TERMINATORS = frozenset('.!?\u061F')


def is_tashkeel(char: str) -> bool:
    """True when the character is one of the tashkeel marks."""
    return char in TASHKEEL


def is_arabic_letter(char: str) -> bool:
    """True for characters in the Arabic blocks that are not tashkeel."""
    return bool(char) and ARABIC_RANGE.match(char) is not None and char not in TASHKEEL


def is_sentence_terminator(char: str) -> bool:
    """True for the sentence-ending marks, Latin and Arabic."""
    return char in SENTENCE_TERMINATORS


def classify(char: str) -> Category:
    """
    Classify a single character.

    Unrecognized code points (Latin letters, digits, symbols, unassigned
    code points, lone surrogates) fall back to BASE_LETTER.

    Args:
        char: A single character. Longer strings are classified by
              their first character; the empty string is a base letter.

    Returns:
        The character's Category
    """
    if not char:
        return Category.BASE_LETTER
    char = char[0]
    if char in TASHKEEL:
        return Category.DIACRITIC
    if char.isspace():
        return Category.WHITESPACE
    if char in PUNCTUATION:
        return Category.PUNCTUATION
    return Category.BASE_LETTER


def strip_tashkeel(text: str) -> str:
    """Remove every tashkeel mark from text."""
    return ''.join(ch for ch in text if ch not in TASHKEEL)


def classify_change(old_value: str, new_value: str) -> ChangeKind:
    """
    Classify the change from old_value to new_value.

    An edit is a DIACRITIC change whenever the two values agree once their
    tashkeel is stripped, so adding a shadda or swapping a fatha for a
    damma never counts as a letter change.

    Args:
        old_value: Value before the change ('' for insertions)
        new_value: Value after the change ('' for deletions)

    Returns:
        ChangeKind
    """
    if old_value and new_value and strip_tashkeel(old_value) == strip_tashkeel(new_value):
        return ChangeKind.DIACRITIC
    if not new_value:
        if old_value and not strip_tashkeel(old_value):
            return ChangeKind.DIACRITIC
        return ChangeKind.DELETE
    if not old_value:
        if not strip_tashkeel(new_value):
            return ChangeKind.DIACRITIC
        return ChangeKind.INSERT
    return ChangeKind.BASE_LETTER
