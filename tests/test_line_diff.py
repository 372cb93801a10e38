"""
Tests for the Line Differ
=========================
"""

import pytest

from config_logging import InvalidInputError, reset_config
from tashkeel_review.line_diff import (
    LineDiffer,
    analyze_line_changes,
    apply_line_changes,
    compute_line_diff,
    lcs_table,
)
from tashkeel_review.models import LineChange, LineChangeType

SHADDA = '\N{ARABIC SHADDA}'
FATHA = '\N{ARABIC FATHA}'

ROUND_TRIP_CASES = [
    ('a\nb\nc', 'a\nb\nc\nd'),          # appended line
    ('a\nb\nc', 'a\nc'),                # dropped middle line
    ('a\nb', 'a'),                      # dropped last line
    ('x\ny\nz', 'x\nY\nz\nw'),          # modify plus append
    ('one\ntwo\nthree', 'zero\none\nthree\nfour'),
    ('', 'new line'),
    ('الحمد لله\nرب العالمين', 'الحمد لل' + SHADDA + 'ه\nرب العالمين'),
]


class TestPositionalDiff:
    """Index-paired alignment."""

    def test_appended_line_is_a_single_insert(self):
        result = LineDiffer('positional').diff('a\nb\nc', 'a\nb\nc\nd')
        assert len(result.changes) == 1
        change = result.changes[0]
        assert change.change_type is LineChangeType.INSERT
        assert change.line_number == 4
        assert change.content == 'd'

    def test_dropped_middle_line_is_modify_then_delete(self):
        result = LineDiffer('positional').diff('a\nb\nc', 'a\nc')
        assert [(c.change_type, c.line_number) for c in result.changes] == [
            (LineChangeType.MODIFY, 2),
            (LineChangeType.DELETE, 3),
        ]
        assert result.changes[0].content == 'c'
        assert result.changes[0].original_content == 'b'

    def test_identical_text(self):
        result = LineDiffer('positional').diff('a\nb', 'a\nb')
        assert result.changes == []
        assert result.summary.total_line_changes == 0


class TestAlignedDiff:
    """LCS-guided alignment."""

    def test_appended_line_is_a_single_insert(self):
        result = LineDiffer('lcs').diff('a\nb\nc', 'a\nb\nc\nd')
        assert [(c.change_type, c.line_number, c.content) for c in result.changes] == [
            (LineChangeType.INSERT, 4, 'd')
        ]

    def test_dropped_middle_line_is_a_single_delete(self):
        result = LineDiffer('lcs').diff('a\nb\nc', 'a\nc')
        assert len(result.changes) == 1
        change = result.changes[0]
        assert change.change_type is LineChangeType.DELETE
        assert change.line_number == 2
        assert change.content == 'b'

    def test_changed_line_is_a_modify(self):
        result = LineDiffer('lcs').diff('x\ny\nz', 'x\nY\nz')
        assert [(c.change_type, c.line_number) for c in result.changes] == [
            (LineChangeType.MODIFY, 2)
        ]

    def test_table_covers_only_the_changed_region(self, monkeypatch):
        seen = []

        def recording_table(source, target):
            seen.append((list(source), list(target)))
            return lcs_table(source, target)

        monkeypatch.setattr('tashkeel_review.line_diff.lcs_table', recording_table)
        result = LineDiffer('lcs').diff('a\nb\nc\nd\ne', 'a\nb\nX\nd\ne')

        assert seen == [(['c'], ['X'])]
        assert [(c.change_type, c.line_number) for c in result.changes] == [
            (LineChangeType.MODIFY, 3)
        ]

    def test_long_texts_with_one_change(self):
        source = [f'line {i}' for i in range(3000)]
        target = list(source)
        target[1500] = 'line 1500' + FATHA
        original, modified = '\n'.join(source), '\n'.join(target)

        result = LineDiffer('lcs').diff(original, modified)

        assert [(c.change_type, c.line_number) for c in result.changes] == [
            (LineChangeType.MODIFY, 1501)
        ]
        assert result.summary.character_changes.tashkeel_changes == 1
        assert apply_line_changes(original, result.changes) == modified

    def test_oversized_region_is_paired_positionally(self, monkeypatch):
        def no_table(source, target):
            raise AssertionError('table should not be built')

        monkeypatch.setattr('tashkeel_review.line_diff.lcs_table', no_table)
        original, modified = 'a\nb\nc\nd\ne', 'a\nc\nd\ne\nf'

        result = LineDiffer('lcs', max_lcs_cells=10).diff(original, modified)

        assert result.mode == 'lcs'
        assert [(c.change_type, c.line_number) for c in result.changes] == [
            (LineChangeType.MODIFY, 2),
            (LineChangeType.MODIFY, 3),
            (LineChangeType.MODIFY, 4),
            (LineChangeType.MODIFY, 5),
        ]
        assert apply_line_changes(original, result.changes) == modified

    def test_cell_limit_comes_from_config(self, monkeypatch):
        monkeypatch.setenv('TR_MAX_LCS_CELLS', '12')
        reset_config()
        assert LineDiffer('lcs').max_lcs_cells == 12

    def test_lcs_table(self):
        table = lcs_table(['a', 'b', 'c'], ['a', 'c'])
        assert table[0][0] == 2
        assert table[1][1] == 1
        assert table[3][2] == 0


class TestRoundTrip:
    """apply_line_changes(original, diff(original, modified)) == modified."""

    @pytest.mark.parametrize('mode', ['positional', 'lcs'])
    @pytest.mark.parametrize('original,modified', ROUND_TRIP_CASES)
    def test_round_trip(self, mode, original, modified):
        result = LineDiffer(mode).diff(original, modified)
        assert apply_line_changes(original, result.changes) == modified

    def test_duplicate_line_numbers_rejected(self):
        changes = [
            LineChange(LineChangeType.INSERT, 2, 'x'),
            LineChange(LineChangeType.INSERT, 2, 'y'),
        ]
        with pytest.raises(InvalidInputError):
            apply_line_changes('a\nb', changes)

    def test_script_past_source_rejected(self):
        changes = [LineChange(LineChangeType.DELETE, 5, 'z', 'z')]
        with pytest.raises(InvalidInputError):
            apply_line_changes('a\nb', changes)


class TestSummary:
    """ChangeSummary and character counts."""

    def test_counts_by_type(self):
        result = LineDiffer('positional').diff('x\ny\nz', 'x\nY\nz\nw')
        summary = result.summary
        assert summary.total_line_changes == 2
        assert summary.modified_lines == 1
        assert summary.inserted_lines == 1
        assert summary.deleted_lines == 0

    def test_parity_scan_counts_tashkeel(self):
        counts = analyze_line_changes('الحمد لله', 'الحمد لل' + SHADDA + 'ه')
        # the shifted trailing letter is counted as a base-letter change
        assert counts.tashkeel_changes == 1
        assert counts.base_letter_changes == 1
        assert counts.total_changes == 2

    def test_inserted_line_characters_counted(self):
        result = LineDiffer('positional').diff('a', 'a\nب' + FATHA)
        counts = result.summary.character_changes
        assert counts.total_changes == 2
        assert counts.tashkeel_changes == 1
        assert counts.base_letter_changes == 1

    def test_to_dict_uses_type_key(self):
        result = compute_line_diff('a', 'a\nb', mode='positional')
        data = result.to_dict()
        assert data['mode'] == 'positional'
        assert data['changes'][0]['type'] == 'insert'
        assert data['summary']['inserted_lines'] == 1


class TestModeSelection:
    """Mode validation and config default."""

    def test_unknown_mode_rejected(self):
        with pytest.raises(InvalidInputError):
            LineDiffer('myers')

    def test_default_mode_comes_from_config(self, monkeypatch):
        monkeypatch.setenv('TR_LINE_DIFF_MODE', 'lcs')
        reset_config()
        assert LineDiffer().mode == 'lcs'
