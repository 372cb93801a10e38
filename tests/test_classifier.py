"""
Tests for the Character Classifier
==================================
"""

import pytest

from tashkeel_review.classifier import (
    Category,
    ChangeKind,
    TASHKEEL,
    classify,
    classify_change,
    is_arabic_letter,
    strip_tashkeel,
)

FATHA = '\N{ARABIC FATHA}'
DAMMA = '\N{ARABIC DAMMA}'
KASRA = '\N{ARABIC KASRA}'
SHADDA = '\N{ARABIC SHADDA}'
SUKUN = '\N{ARABIC SUKUN}'


class TestClassify:
    """Tests for classify()."""

    @pytest.mark.parametrize('char', sorted(TASHKEEL))
    def test_every_tashkeel_mark_is_diacritic(self, char):
        assert classify(char) is Category.DIACRITIC

    def test_tashkeel_set_members(self):
        """Harakat, tanween, shadda, sukun and superscript alef are all marks."""
        for mark in (FATHA, DAMMA, KASRA, SHADDA, SUKUN,
                     '\N{ARABIC FATHATAN}', '\N{ARABIC LETTER SUPERSCRIPT ALEF}'):
            assert mark in TASHKEEL
        assert len(TASHKEEL) == 12

    def test_arabic_letters(self):
        for char in 'ابتثجحخدذرزسشصضطظعغفقكلمنهوي':
            assert classify(char) is Category.BASE_LETTER

    def test_whitespace(self):
        for char in (' ', '\t', '\n', ' '):
            assert classify(char) is Category.WHITESPACE

    def test_punctuation(self):
        for char in ('\N{ARABIC COMMA}', '\N{ARABIC SEMICOLON}', '\N{ARABIC QUESTION MARK}',
                     '.', '!', '?', ',', ';', ':', '-'):
            assert classify(char) is Category.PUNCTUATION

    def test_unrecognized_code_points_fall_back_to_base_letter(self):
        for char in ('a', 'Z', '5', '#', '\U0001F600'):
            assert classify(char) is Category.BASE_LETTER

    def test_empty_string_is_base_letter(self):
        assert classify('') is Category.BASE_LETTER

    def test_deterministic(self):
        text = 'بِسْمِ اللَّهِ، الرحمن؟ abc 123'
        assert [classify(c) for c in text] == [classify(c) for c in text]


class TestArabicHelpers:
    """Tests for strip_tashkeel() and is_arabic_letter()."""

    def test_strip_tashkeel(self):
        text = 'ب' + KASRA + 'س' + SUKUN + 'م' + KASRA
        assert strip_tashkeel(text) == 'بسم'

    def test_strip_tashkeel_leaves_plain_text(self):
        assert strip_tashkeel('الحمد لله') == 'الحمد لله'

    def test_is_arabic_letter(self):
        assert is_arabic_letter('ب')
        assert is_arabic_letter('\N{ARABIC LETTER TEH MARBUTA}')
        assert not is_arabic_letter(FATHA)
        assert not is_arabic_letter('a')
        assert not is_arabic_letter('')


class TestClassifyChange:
    """Tests for classify_change()."""

    def test_adding_a_mark_is_diacritic(self):
        assert classify_change('ب', 'ب' + FATHA) is ChangeKind.DIACRITIC

    def test_swapping_marks_is_diacritic(self):
        assert classify_change('ب' + FATHA, 'ب' + DAMMA) is ChangeKind.DIACRITIC
        assert classify_change(FATHA, DAMMA) is ChangeKind.DIACRITIC

    def test_lone_mark_insert_or_delete_is_diacritic(self):
        assert classify_change('', SHADDA) is ChangeKind.DIACRITIC
        assert classify_change(KASRA, '') is ChangeKind.DIACRITIC

    def test_letter_replacement(self):
        assert classify_change('ب', 'ت') is ChangeKind.BASE_LETTER
        assert classify_change('الولد', 'الطالب') is ChangeKind.BASE_LETTER

    def test_insert_and_delete(self):
        assert classify_change('', 'ب') is ChangeKind.INSERT
        assert classify_change('ب', '') is ChangeKind.DELETE
