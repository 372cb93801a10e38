"""
Tests for the Escalating Text Differ
====================================
"""

import pytest

from tashkeel_review.classifier import ChangeKind
from tashkeel_review.differ import TextDiffer, apply_character_changes, compute_diff
from tashkeel_review.models import DiffLevel, DiffOp

SHADDA = '\N{ARABIC SHADDA}'
FATHA = '\N{ARABIC FATHA}'
KASRA = '\N{ARABIC KASRA}'


@pytest.fixture
def differ() -> TextDiffer:
    return TextDiffer()


class TestIdenticalTexts:
    """diff(T, T) never reports anything."""

    @pytest.mark.parametrize('text', [
        '',
        'الحمد لله',
        'بسم الله الرحمن الرحيم.\nالحمد لله رب العالمين.',
        'mixed نص 123!',
    ])
    def test_no_changes(self, differ, text):
        result = differ.diff(text, text)
        assert result.is_empty
        assert result.stats['total_changes'] == 0
        assert differ.diff_characters(text, text) == []


class TestEscalation:
    """Level selection."""

    def test_single_shadda_resolves_at_character_level(self, differ):
        original = 'الحمد لله'
        modified = 'الحمد لل' + SHADDA + 'ه'

        result = differ.diff(original, modified)

        assert result.level is DiffLevel.CHARACTER
        assert len(result.changes) == 1
        change = result.changes[0]
        assert change.op is DiffOp.INSERT
        assert change.kind is ChangeKind.DIACRITIC
        assert change.new_value == SHADDA
        assert change.start_index == 8
        assert change.line_number == 1
        assert change.word_number == 2

    def test_rewritten_sentence_resolves_at_sentence_level(self, differ):
        original = 'بسم الله الرحمن الرحيم. الحمد لله رب العالمين.'
        modified = 'بسم الله الرحمن الرحيم. قل هو الله أحد.'

        result = differ.diff(original, modified)

        assert result.level is DiffLevel.SENTENCE
        assert len(result.changes) == 1
        assert result.changes[0].op is DiffOp.MODIFY
        assert result.changes[0].new_value == 'قل هو الله أحد.'
        assert result.significance > differ.significance_threshold

    def test_replaced_word_resolves_at_word_level(self, differ):
        original = 'ذهب الولد إلى المدرسة'
        modified = 'ذهب الطالب إلى المدرسة'

        result = differ.diff(original, modified)

        assert result.level is DiffLevel.WORD
        assert len(result.changes) == 1
        change = result.changes[0]
        assert change.op is DiffOp.MODIFY
        assert change.original_value == 'الولد'
        assert change.new_value == 'الطالب'
        assert change.kind is ChangeKind.BASE_LETTER

    def test_threshold_of_one_always_reaches_characters(self):
        differ = TextDiffer(significance_threshold=1.0)
        result = differ.diff('ذهب الولد', 'ذهب الطالب')
        assert result.level is DiffLevel.CHARACTER

    def test_threshold_of_zero_stops_at_sentences(self):
        differ = TextDiffer(significance_threshold=0.0)
        result = differ.diff('الحمد لله', 'الحمد لل' + SHADDA + 'ه')
        assert result.level is DiffLevel.SENTENCE

    def test_change_ids_are_unique(self, differ):
        result = differ.diff('كتب الولد الدرس', 'كَتَبَ الوَلَدُ الدرسَ')
        ids = [c.id for c in result.changes]
        assert len(ids) == len(set(ids))


class TestSignificance:
    """Tests for significance()."""

    def test_no_changes(self, differ):
        assert differ.significance([]) == 0.0

    def test_pure_insertion_is_fully_significant(self, differ):
        changes = differ.diff_words('ذهب', 'ذهب الولد')
        assert differ.significance(changes) == 1.0


class TestWordWalk:
    """Tests for diff_words()."""

    def test_appended_word(self, differ):
        changes = differ.diff_words('ذهب', 'ذهب الولد')
        assert len(changes) == 1
        assert changes[0].op is DiffOp.INSERT
        assert changes[0].new_value == 'الولد'
        assert changes[0].kind is ChangeKind.INSERT

    def test_dropped_word(self, differ):
        changes = differ.diff_words('ذهب الولد', 'ذهب')
        assert len(changes) == 1
        assert changes[0].op is DiffOp.DELETE
        assert changes[0].original_value == 'الولد'

    def test_whitespace_width_is_not_a_change(self, differ):
        assert differ.diff_words('ذهب الولد', 'ذهب  الولد') == []


class TestCharacterDiff:
    """Tests for diff_characters()."""

    def test_mark_swap_is_a_diacritic_modify(self, differ):
        changes = differ.diff_characters('ب' + FATHA, 'ب' + KASRA)
        assert len(changes) == 1
        assert changes[0].op is DiffOp.MODIFY
        assert changes[0].kind is ChangeKind.DIACRITIC
        assert changes[0].original_value == FATHA
        assert changes[0].new_value == KASRA

    def test_context(self, differ):
        changes = differ.diff_characters('الحمد لله', 'الحمد لل' + SHADDA + 'ه')
        assert changes[0].context_before == 'الحمد لل'[-10:]
        assert changes[0].context_after == 'ه'

    def test_replay_reproduces_modified_text(self, differ):
        for original, modified in [
            ('الحمد لله', 'الحمد لل' + SHADDA + 'ه'),
            ('ذهب الولد إلى المدرسة', 'ذهب الطالب إلى المدرسة'),
            ('كتب\nالدرس', 'كَتَبَ\nدرس'),
        ]:
            changes = differ.diff_characters(original, modified)
            assert apply_character_changes(original, changes) == modified

    def test_ids_restart_on_each_call(self, differ):
        differ.diff('ذهب الولد إلى المدرسة', 'ذهب الطالب إلى المدرسة')
        changes = differ.diff_characters('ذهب', 'ذ' + FATHA + 'ه' + FATHA + 'ب')
        assert [c.id for c in changes] == ['change-0', 'change-1']

        words = differ.diff_words('ذهب', 'ذهب الولد')
        assert [c.id for c in words] == ['change-0']

    def test_replay_of_nothing_is_identity(self):
        assert apply_character_changes('الحمد لله', []) == 'الحمد لله'


class TestSerialization:
    """DiffResult serialization."""

    def test_to_dict(self):
        result = compute_diff('الحمد لله', 'الحمد لل' + SHADDA + 'ه')
        data = result.to_dict()
        assert data['level'] == 'character'
        assert data['changes'][0]['kind'] == 'diacritic'
        assert data['stats']['diacritic'] == 1
