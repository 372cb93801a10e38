"""
Text Differ v1.0.0
==================
Escalating structural diff: sentence → word → character.

Sentence and word levels walk both segment sequences with two cursors.
The character level realigns with diff-match-patch so that an inserted
shadda is reported as one diacritic insertion rather than a cascade of
shifted-letter replacements.

A level is accepted when its significance exceeds the configured
threshold: significance is the share of the changed segments' characters
that actually differ, so a rewritten sentence is reported as one sentence
change while a one-mark edit falls through to character granularity.
"""

import uuid
from collections import defaultdict
from typing import Dict, List, Optional, Sequence

import diff_match_patch as dmp_module

from config_logging import get_config, get_logger
from .classifier import ChangeKind, classify_change, is_tashkeel
from .models import CharacterUnit, DiffChange, DiffLevel, DiffOp, DiffResult
from .segmenter import segment, split_sentences, split_words

logger = get_logger('tashkeel_review.differ')

CONTEXT_CHARS = 10


class TextDiffer:
    """
    Escalating diff engine with tashkeel-aware classification.
    """

    def __init__(self, significance_threshold: Optional[float] = None,
                 diff_timeout: Optional[float] = None):
        """
        Initialize the differ.

        Args:
            significance_threshold: Ratio a coarse level must exceed to be
                                    accepted (defaults to config, 0.3)
            diff_timeout: Seconds diff-match-patch may spend per call
        """
        config = get_config()
        if significance_threshold is None:
            significance_threshold = config.significance_threshold
        if diff_timeout is None:
            diff_timeout = config.diff_timeout

        self.significance_threshold = significance_threshold
        self._change_counter = 0

        self.dmp = dmp_module.diff_match_patch()
        self.dmp.Diff_Timeout = diff_timeout

    def diff(self, original: str, modified: str) -> DiffResult:
        """
        Diff two texts at the coarsest significant granularity.

        Args:
            original: Original text
            modified: Modified text

        Returns:
            DiffResult at sentence, word or character level
        """
        original = original or ''
        modified = modified or ''

        if original == modified:
            return DiffResult(level=DiffLevel.CHARACTER)

        sentence_changes = self.diff_sentences(original, modified)
        significance = self.significance(sentence_changes)
        if sentence_changes and significance > self.significance_threshold:
            logger.debug(f"Diff resolved at sentence level: {len(sentence_changes)} changes, "
                         f"significance={significance:.3f}")
            return DiffResult(level=DiffLevel.SENTENCE, changes=sentence_changes,
                              significance=significance)

        word_changes = self.diff_words(original, modified)
        significance = self.significance(word_changes)
        if word_changes and significance > self.significance_threshold:
            logger.debug(f"Diff resolved at word level: {len(word_changes)} changes, "
                         f"significance={significance:.3f}")
            return DiffResult(level=DiffLevel.WORD, changes=word_changes,
                              significance=significance)

        char_changes = self.diff_characters(original, modified)
        significance = self.significance(char_changes)
        logger.debug(f"Diff resolved at character level: {len(char_changes)} changes")
        return DiffResult(level=DiffLevel.CHARACTER, changes=char_changes,
                          significance=significance)

    def significance(self, changes: Sequence[DiffChange]) -> float:
        """
        Share of the changed segments' characters that really differ.

        Each record's edit volume is the number of characters deleted or
        inserted when its two sides are aligned character by character;
        the ratio divides the summed volume by the summed segment sizes.

        Args:
            changes: Records of one level

        Returns:
            Ratio in [0, 1]; 0.0 for no changes
        """
        touched = sum(c.size for c in changes)
        if not touched:
            return 0.0
        edited = sum(self._edit_volume(c.original_value, c.new_value) for c in changes)
        return edited / touched

    def _edit_volume(self, old: str, new: str) -> int:
        if not old or not new:
            return len(old) + len(new)
        return sum(len(text) for op, text in self.dmp.diff_main(old, new, False)
                   if op != self.dmp.DIFF_EQUAL)

    # ------------------------------------------------------------------
    # Sentence and word levels
    # ------------------------------------------------------------------

    def diff_sentences(self, original: str, modified: str) -> List[DiffChange]:
        """Two-cursor sentence walk; trailing whitespace is ignored when comparing."""
        return self._walk_segments(
            original, modified,
            split_sentences(original), split_sentences(modified),
            DiffLevel.SENTENCE
        )

    def diff_words(self, original: str, modified: str) -> List[DiffChange]:
        """Two-cursor word walk; whitespace tokens pass through unreported."""
        return self._walk_segments(
            original, modified,
            split_words(original), split_words(modified),
            DiffLevel.WORD
        )

    def _walk_segments(
        self,
        original: str,
        modified: str,
        original_segments: List[str],
        modified_segments: List[str],
        level: DiffLevel
    ) -> List[DiffChange]:
        """
        Pair segments by index.

        A segment present on both sides but textually different is a
        modify, whatever the lengths; surplus segments on either side are
        inserts or deletes.
        """
        self._change_counter = 0
        original_units = segment(original)
        modified_units = segment(modified)
        changes = []
        orig_offset = 0
        mod_offset = 0

        for index in range(max(len(original_segments), len(modified_segments))):
            orig_seg = original_segments[index] if index < len(original_segments) else None
            mod_seg = modified_segments[index] if index < len(modified_segments) else None

            if orig_seg is not None and mod_seg is not None:
                if not self._segments_equal(orig_seg, mod_seg, level):
                    changes.append(self._create_change(
                        DiffOp.MODIFY, level, orig_seg, mod_seg,
                        original, modified, orig_offset, mod_offset,
                        original_units, modified_units
                    ))
                orig_offset += len(orig_seg)
                mod_offset += len(mod_seg)
            elif orig_seg is not None:
                if not (level is DiffLevel.WORD and orig_seg.isspace()):
                    changes.append(self._create_change(
                        DiffOp.DELETE, level, orig_seg, '',
                        original, modified, orig_offset, mod_offset,
                        original_units, modified_units
                    ))
                orig_offset += len(orig_seg)
            else:
                if not (level is DiffLevel.WORD and mod_seg.isspace()):
                    changes.append(self._create_change(
                        DiffOp.INSERT, level, '', mod_seg,
                        original, modified, orig_offset, mod_offset,
                        original_units, modified_units
                    ))
                mod_offset += len(mod_seg)

        return changes

    @staticmethod
    def _segments_equal(orig_seg: str, mod_seg: str, level: DiffLevel) -> bool:
        if level is DiffLevel.SENTENCE:
            return orig_seg.strip() == mod_seg.strip()
        if orig_seg.isspace() and mod_seg.isspace():
            return True
        return orig_seg == mod_seg

    # ------------------------------------------------------------------
    # Character level
    # ------------------------------------------------------------------

    def diff_characters(self, original: str, modified: str) -> List[DiffChange]:
        """
        Character diff realigned by diff-match-patch.

        Equal-length delete/insert runs become per-character modify
        records; any other run becomes per-character deletes and inserts.

        Args:
            original: Original text
            modified: Modified text

        Returns:
            One DiffChange per changed character
        """
        original = original or ''
        modified = modified or ''
        if original == modified:
            return []

        self._change_counter = 0

        original_units = segment(original)
        modified_units = segment(modified)
        diffs = self.dmp.diff_main(original, modified, False)

        changes = []
        orig_pos = 0
        mod_pos = 0
        deleted = ''
        inserted = ''

        def flush():
            nonlocal orig_pos, mod_pos, deleted, inserted
            if deleted and inserted and len(deleted) == len(inserted):
                for old_char, new_char in zip(deleted, inserted):
                    changes.append(self._create_change(
                        DiffOp.MODIFY, DiffLevel.CHARACTER, old_char, new_char,
                        original, modified, orig_pos, mod_pos,
                        original_units, modified_units
                    ))
                    orig_pos += 1
                    mod_pos += 1
            else:
                for old_char in deleted:
                    changes.append(self._create_change(
                        DiffOp.DELETE, DiffLevel.CHARACTER, old_char, '',
                        original, modified, orig_pos, mod_pos,
                        original_units, modified_units
                    ))
                    orig_pos += 1
                for new_char in inserted:
                    changes.append(self._create_change(
                        DiffOp.INSERT, DiffLevel.CHARACTER, '', new_char,
                        original, modified, orig_pos, mod_pos,
                        original_units, modified_units
                    ))
                    mod_pos += 1
            deleted = ''
            inserted = ''

        for op, text in diffs:
            if op == self.dmp.DIFF_EQUAL:
                flush()
                orig_pos += len(text)
                mod_pos += len(text)
            elif op == self.dmp.DIFF_DELETE:
                deleted += text
            else:
                inserted += text
        flush()

        return changes

    # ------------------------------------------------------------------
    # Record construction
    # ------------------------------------------------------------------

    def _create_change(
        self,
        op: DiffOp,
        level: DiffLevel,
        old_value: str,
        new_value: str,
        original: str,
        modified: str,
        orig_offset: int,
        mod_offset: int,
        original_units: List[CharacterUnit],
        modified_units: List[CharacterUnit]
    ) -> DiffChange:
        """
        Create a DiffChange with a unique id, ordinals and context.

        Deletes and modifies are anchored on the original text, inserts
        on the modified text.
        """
        change_id = f"change-{self._change_counter}"
        self._change_counter += 1

        if op is DiffOp.INSERT:
            anchor = _unit_at(modified_units, mod_offset)
            source, offset, width = modified, mod_offset, len(new_value)
        else:
            anchor = _unit_at(original_units, orig_offset)
            source, offset, width = original, orig_offset, len(old_value)

        if level is DiffLevel.CHARACTER and (is_tashkeel(old_value) or is_tashkeel(new_value)):
            kind = ChangeKind.DIACRITIC
        else:
            kind = classify_change(old_value, new_value)

        return DiffChange(
            id=change_id,
            op=op,
            level=level,
            kind=kind,
            start_index=orig_offset,
            end_index=orig_offset + len(old_value),
            original_value=old_value,
            new_value=new_value,
            line_number=anchor.line_number if anchor else 1,
            word_number=anchor.word_number if anchor else 1,
            sentence_number=anchor.sentence_number if anchor else 1,
            modified_index=mod_offset,
            context_before=source[max(0, offset - CONTEXT_CHARS):offset],
            context_after=source[offset + width:offset + width + CONTEXT_CHARS]
        )


def _unit_at(units: List[CharacterUnit], offset: int) -> Optional[CharacterUnit]:
    """Unit at offset, falling back to the last unit past the end."""
    if not units:
        return None
    return units[min(offset, len(units) - 1)]


def apply_character_changes(original: str, changes: Sequence[DiffChange]) -> str:
    """
    Replay character-level records on the original text.

    Applying every record produced by diff_characters(original, modified)
    yields `modified`; applying a subset yields the partially-accepted text.

    Args:
        original: Original text
        changes: Character-level DiffChange records

    Returns:
        Resulting text
    """
    insertions: Dict[int, List[str]] = defaultdict(list)
    replacements: Dict[int, str] = {}

    for change in sorted(changes, key=lambda c: (c.start_index, c.modified_index)):
        if change.op is DiffOp.INSERT:
            insertions[change.start_index].append(change.new_value)
        elif change.op is DiffOp.DELETE:
            replacements[change.start_index] = ''
        else:
            replacements[change.start_index] = change.new_value

    parts = []
    for index, char in enumerate(original or ''):
        parts.extend(insertions.get(index, ()))
        parts.append(replacements.get(index, char))
    parts.extend(insertions.get(len(original or ''), ()))
    return ''.join(parts)


# Convenience function
def compute_diff(original: str, modified: str, **kwargs) -> DiffResult:
    """
    Compute the escalating diff between two texts.

    Args:
        original: Original text
        modified: Modified text
        **kwargs: Passed to TextDiffer

    Returns:
        DiffResult
    """
    return TextDiffer(**kwargs).diff(original, modified)


if __name__ == '__main__':
    # Demo
    print("Text Differ")
    print("=" * 50)

    samples = [
        ("الحمد لله", "الحمد للّه"),
        ("بسم الله الرحمن الرحيم. الحمد لله رب العالمين.",
         "بسم الله الرحمن الرحيم. قل هو الله أحد."),
        ("ذهب الولد إلى المدرسة", "ذهب الطالب إلى المدرسة"),
    ]

    differ = TextDiffer()
    for original_text, modified_text in samples:
        result = differ.diff(original_text, modified_text)
        print(f"\n{original_text} -> {modified_text}")
        print(f"  level={result.level.value} significance={result.significance:.2f}")
        for change in result.changes:
            print(f"  [{change.op.value}/{change.kind.value}] "
                  f"'{change.original_value}' -> '{change.new_value}'")
