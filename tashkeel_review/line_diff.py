"""
Line Differ v1.0.0
==================
Line-oriented diff for the editable-page view.

Two alignments are offered:

- positional: lines are paired by index; differing pairs are modifies
  and trailing excess lines are inserts or deletes. Dropping a middle
  line therefore shows up as a modify followed by a trailing delete.
- lcs: a longest-common-subsequence table drives a forward walk, so a
  dropped middle line is reported as a single delete. Only the region
  between the common leading and trailing lines gets a table, and a
  region larger than AppConfig.max_lcs_cells is paired positionally.

Line numbers are walk steps: every step (unchanged, modify, insert or
delete) advances the counter by one. For the positional alignment this
coincides with the target line number of inserts/modifies and the source
line number of deletes. apply_line_changes() replays either script.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from config_logging import InvalidInputError, get_config, get_logger
from .classifier import is_arabic_letter, is_tashkeel
from .models import (
    ChangeSummary,
    CharacterChangeCounts,
    LineChange,
    LineChangeType,
)
from .segmenter import split_lines

logger = get_logger('tashkeel_review.line_diff')


@dataclass
class LineDiffResult:
    """Line changes plus their summary."""
    mode: str
    changes: List[LineChange] = field(default_factory=list)
    summary: ChangeSummary = field(default_factory=ChangeSummary)

    def to_dict(self):
        return {
            'mode': self.mode,
            'changes': [c.to_dict() for c in self.changes],
            'summary': self.summary.to_dict()
        }


def analyze_line_changes(original_line: str, modified_line: str) -> CharacterChangeCounts:
    """
    Character parity sub-scan of a modified line.

    Characters are zipped by index, the shorter line padded with ''.
    A differing pair counts as a tashkeel change when either side is a
    tashkeel mark, otherwise as a base-letter change when either side is
    an Arabic letter. Every differing pair counts toward the total.
    """
    counts = CharacterChangeCounts()
    for i in range(max(len(original_line), len(modified_line))):
        original_char = original_line[i] if i < len(original_line) else ''
        modified_char = modified_line[i] if i < len(modified_line) else ''
        if original_char == modified_char:
            continue
        counts.total_changes += 1
        if is_tashkeel(original_char) or is_tashkeel(modified_char):
            counts.tashkeel_changes += 1
        elif is_arabic_letter(original_char) or is_arabic_letter(modified_char):
            counts.base_letter_changes += 1
    return counts


def count_line_characters(line: str) -> CharacterChangeCounts:
    """Counts for a wholly inserted or deleted line."""
    counts = CharacterChangeCounts()
    for char in line:
        counts.total_changes += 1
        if is_tashkeel(char):
            counts.tashkeel_changes += 1
        elif is_arabic_letter(char):
            counts.base_letter_changes += 1
    return counts


def lcs_table(source: Sequence[str], target: Sequence[str]) -> List[List[int]]:
    """
    Suffix LCS length table.

    table[i][j] is the length of the longest common subsequence of
    source[i:] and target[j:], so table[0][0] is the LCS length of the
    two sequences and the walk can proceed front to back.
    """
    m, n = len(source), len(target)
    table = [[0] * (n + 1) for _ in range(m + 1)]
    for i in range(m - 1, -1, -1):
        for j in range(n - 1, -1, -1):
            if source[i] == target[j]:
                table[i][j] = table[i + 1][j + 1] + 1
            else:
                table[i][j] = max(table[i + 1][j], table[i][j + 1])
    return table


def _positional_walk(source: Sequence[str], target: Sequence[str], first_step: int,
                     counts: CharacterChangeCounts) -> List[LineChange]:
    """Index-paired walk; step numbers start at first_step."""
    changes = []
    for i in range(min(len(source), len(target))):
        if source[i] == target[i]:
            continue
        counts.add(analyze_line_changes(source[i], target[i]))
        changes.append(LineChange(LineChangeType.MODIFY, first_step + i, target[i], source[i]))

    for i in range(len(source), len(target)):
        counts.add(count_line_characters(target[i]))
        changes.append(LineChange(LineChangeType.INSERT, first_step + i, target[i]))

    for i in range(len(target), len(source)):
        counts.add(count_line_characters(source[i]))
        changes.append(LineChange(LineChangeType.DELETE, first_step + i, source[i], source[i]))

    return changes


class LineDiffer:
    """
    Line diff engine with tashkeel-aware change summaries.
    """

    def __init__(self, mode: Optional[str] = None, max_lcs_cells: Optional[int] = None):
        """
        Args:
            mode: 'positional' or 'lcs' (defaults to config line_diff_mode)
            max_lcs_cells: Largest LCS table the lcs mode builds; a larger
                           changed region is walked positionally instead
        """
        config = get_config()
        mode = mode or config.line_diff_mode
        if mode not in ('positional', 'lcs'):
            raise InvalidInputError(f"Unknown line diff mode: {mode}", field='mode')
        self.mode = mode
        self.max_lcs_cells = max_lcs_cells or config.max_lcs_cells

    def diff(self, original: str, modified: str) -> LineDiffResult:
        """Diff with the configured alignment."""
        if self.mode == 'lcs':
            return self.aligned_diff(original, modified)
        return self.positional_diff(original, modified)

    def positional_diff(self, original: str, modified: str) -> LineDiffResult:
        """
        Pair lines by index.

        Args:
            original: Source text
            modified: Target text

        Returns:
            LineDiffResult with mode 'positional'
        """
        counts = CharacterChangeCounts()
        changes = _positional_walk(split_lines(original), split_lines(modified), 1, counts)
        return self._result('positional', changes, counts)

    def aligned_diff(self, original: str, modified: str) -> LineDiffResult:
        """
        Walk both line sequences guided by the LCS table.

        Common leading and trailing lines are skipped before the table is
        built. At each step: equal lines advance both cursors; an unequal
        pair that can be skipped on both sides without shortening the LCS
        is a modify; otherwise the side whose skip keeps the LCS intact is
        a delete (preferred) or an insert.

        When the remaining region would need more than max_lcs_cells table
        cells it is paired positionally.

        Args:
            original: Source text
            modified: Target text

        Returns:
            LineDiffResult with mode 'lcs'
        """
        source = split_lines(original)
        target = split_lines(modified)

        prefix = 0
        while prefix < len(source) and prefix < len(target) and source[prefix] == target[prefix]:
            prefix += 1
        suffix = 0
        while (suffix < len(source) - prefix and suffix < len(target) - prefix
               and source[-1 - suffix] == target[-1 - suffix]):
            suffix += 1
        source = source[prefix:len(source) - suffix]
        target = target[prefix:len(target) - suffix]

        counts = CharacterChangeCounts()
        cells = (len(source) + 1) * (len(target) + 1)
        if cells > self.max_lcs_cells:
            logger.warning(f"LCS table of {cells} cells exceeds {self.max_lcs_cells}; "
                           f"pairing {len(source)}x{len(target)} changed lines positionally")
            changes = _positional_walk(source, target, prefix + 1, counts)
            return self._result('lcs', changes, counts)

        table = lcs_table(source, target)
        changes = []

        i = j = 0
        line_number = prefix + 1
        while i < len(source) or j < len(target):
            if i < len(source) and j < len(target):
                if source[i] == target[j]:
                    i += 1
                    j += 1
                elif table[i + 1][j + 1] == table[i][j]:
                    counts.add(analyze_line_changes(source[i], target[j]))
                    changes.append(LineChange(LineChangeType.MODIFY, line_number, target[j], source[i]))
                    i += 1
                    j += 1
                elif table[i + 1][j] == table[i][j]:
                    counts.add(count_line_characters(source[i]))
                    changes.append(LineChange(LineChangeType.DELETE, line_number, source[i], source[i]))
                    i += 1
                else:
                    counts.add(count_line_characters(target[j]))
                    changes.append(LineChange(LineChangeType.INSERT, line_number, target[j]))
                    j += 1
            elif i < len(source):
                counts.add(count_line_characters(source[i]))
                changes.append(LineChange(LineChangeType.DELETE, line_number, source[i], source[i]))
                i += 1
            else:
                counts.add(count_line_characters(target[j]))
                changes.append(LineChange(LineChangeType.INSERT, line_number, target[j]))
                j += 1
            line_number += 1

        return self._result('lcs', changes, counts)

    def _result(self, mode: str, changes: List[LineChange],
                counts: CharacterChangeCounts) -> LineDiffResult:
        summary = summarize_line_changes(changes, counts)
        logger.debug(f"Line diff ({mode}): {summary.total_line_changes} changes "
                     f"(+{summary.inserted_lines}, -{summary.deleted_lines}, ~{summary.modified_lines})")
        return LineDiffResult(mode=mode, changes=changes, summary=summary)


def summarize_line_changes(changes: Sequence[LineChange],
                           counts: Optional[CharacterChangeCounts] = None) -> ChangeSummary:
    """Build a ChangeSummary from line records and their character counts."""
    return ChangeSummary(
        total_line_changes=len(changes),
        inserted_lines=sum(1 for c in changes if c.change_type is LineChangeType.INSERT),
        deleted_lines=sum(1 for c in changes if c.change_type is LineChangeType.DELETE),
        modified_lines=sum(1 for c in changes if c.change_type is LineChangeType.MODIFY),
        character_changes=counts or CharacterChangeCounts()
    )


def apply_line_changes(original: str, changes: Sequence[LineChange]) -> str:
    """
    Replay a line change script on the source text.

    Steps without a record copy the next source line; insert emits its
    content; delete consumes a source line; modify consumes a source line
    and emits its content.

    Args:
        original: Source text the script was computed against
        changes: LineChange records from either alignment

    Returns:
        Target text

    Raises:
        InvalidInputError: If the script does not fit the source text
    """
    by_step = {}
    for change in changes:
        if change.line_number in by_step:
            raise InvalidInputError(f"Duplicate change at line {change.line_number}",
                                    field='line_number')
        by_step[change.line_number] = change

    source = split_lines(original)
    last_step = max(by_step, default=0)
    result = []
    i = 0
    step = 1

    while i < len(source) or step <= last_step:
        change = by_step.get(step)
        if change is None or change.change_type is not LineChangeType.INSERT:
            if i >= len(source):
                raise InvalidInputError(f"Change at line {step} runs past the source text",
                                        field='line_number')
        if change is None:
            result.append(source[i])
            i += 1
        elif change.change_type is LineChangeType.INSERT:
            result.append(change.content)
        elif change.change_type is LineChangeType.DELETE:
            i += 1
        else:
            result.append(change.content)
            i += 1
        step += 1

    return '\n'.join(result)


# Convenience function
def compute_line_diff(original: str, modified: str, mode: Optional[str] = None) -> LineDiffResult:
    """Line diff with the given (or configured) alignment."""
    return LineDiffer(mode).diff(original, modified)
