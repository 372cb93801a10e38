"""
Tests for the Segmenter
=======================
"""

from tashkeel_review.classifier import Category
from tashkeel_review.segmenter import (
    position_between,
    segment,
    split_lines,
    split_sentences,
    split_words,
)

FATHA = '\N{ARABIC FATHA}'


class TestSegment:
    """Tests for segment()."""

    def test_one_unit_per_character(self, page_text):
        units = segment(page_text)
        assert len(units) == len(page_text)
        assert ''.join(u.value for u in units) == page_text

    def test_positions_are_sequential(self):
        units = segment('abc')
        assert [u.position for u in units] == ['1', '2', '3']
        assert [u.handle for u in units] == [0, 1, 2]

    def test_ids_are_unique(self, page_text):
        units = segment(page_text)
        assert len({u.id for u in units}) == len(units)

    def test_original_value_matches_value(self):
        for unit in segment('ب' + FATHA):
            assert unit.original_value == unit.value

    def test_categories(self):
        units = segment('ب' + FATHA + ' .')
        assert [u.category for u in units] == [
            Category.BASE_LETTER, Category.DIACRITIC, Category.WHITESPACE, Category.PUNCTUATION
        ]

    def test_word_numbers(self):
        units = segment('ab cd')
        assert [u.word_number for u in units] == [1, 1, 2, 2, 2]

    def test_repeated_whitespace_advances_word_once(self):
        units = segment('a  b')
        assert units[-1].word_number == 2

    def test_sentence_numbers(self):
        units = segment('a. b')
        assert units[0].sentence_number == 1
        assert units[1].sentence_number == 2
        assert units[3].sentence_number == 2

    def test_newline_resets_word_and_sentence(self):
        units = segment('a b.\nc')
        last = units[-1]
        assert last.line_number == 2
        assert last.word_number == 1
        assert last.sentence_number == 1
        assert units[0].line_number == 1

    def test_arabic_question_mark_ends_sentence(self):
        units = segment('هل؟ نعم')
        assert units[-1].sentence_number == 2

    def test_empty_text(self):
        assert segment('') == []


class TestSplitting:
    """Tests for the line/sentence/word splitters."""

    def test_split_lines(self):
        assert split_lines('a\nb\n') == ['a', 'b', '']
        assert split_lines('') == ['']

    def test_split_sentences_keeps_terminators(self):
        assert split_sentences('A. B? C') == ['A. ', 'B? ', 'C']

    def test_split_sentences_rejoins(self, page_text):
        assert ''.join(split_sentences(page_text)) == page_text

    def test_split_sentences_arabic_question_mark(self):
        assert split_sentences('هل؟ نعم.') == ['هل؟ ', 'نعم.']

    def test_split_words(self):
        assert split_words('ab  cd') == ['ab', '  ', 'cd']


class TestPositionBetween:
    """Tests for position_between()."""

    def test_between_integers(self):
        assert position_between((5,), (6,)) == (5, 1)

    def test_at_the_end(self):
        assert position_between((5,), None) == (6,)

    def test_before_an_earlier_insertion(self):
        key = position_between((5,), (5, 1))
        assert (5,) < key < (5, 1)
        assert key == (5, 0, 1)

    def test_repeated_insertion_stays_ordered(self):
        keys = [(5,), (6,)]
        for _ in range(5):
            new = position_between(keys[0], keys[1])
            assert keys[0] < new < keys[1]
            keys.insert(1, new)
        assert len(set(keys)) == len(keys)

    def test_after_an_inserted_key(self):
        assert position_between((5, 1), (6,)) == (5, 1, 1)
