"""
Change Request Aggregator v1.0.0
================================
Packages diff output into ChangeRequest records for the review surface,
and applies reviewer decisions to them.

Two shapes are produced:
- line: LineChange records from the line differ plus a ChangeSummary
- word: character-level records grouped by their enclosing word, each
        group reviewable on its own
"""

import uuid
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple, Union

from config_logging import AlreadyResolvedError, InvalidInputError, NotFoundError, get_logger
from .classifier import Category, ChangeKind, classify_change, is_arabic_letter
from .differ import TextDiffer, apply_character_changes
from .line_diff import LineDiffer, apply_line_changes
from .models import (
    ChangeRequest,
    ChangeSummary,
    CharacterChangeCounts,
    CharacterUnit,
    DiffChange,
    DiffLevel,
    DiffOp,
    Granularity,
    ReviewStatus,
    WordChange,
)
from .segmenter import segment

logger = get_logger('tashkeel_review.aggregator')

WordKey = Tuple[int, int]
GroupKey = Tuple[str, int, int]


class ChangeRequestBuilder:
    """
    Builds ChangeRequests from an original and a modified text.

    Inputs are never mutated; every request gets a fresh id and starts
    pending.
    """

    def __init__(self, differ: Optional[TextDiffer] = None,
                 line_differ: Optional[LineDiffer] = None):
        self.differ = differ or TextDiffer()
        self.line_differ = line_differ or LineDiffer()

    def build(
        self,
        original: str,
        modified: str,
        author_id: str,
        subject_id: str,
        book_id: str = "",
        granularity: Union[Granularity, str] = Granularity.LINE
    ) -> ChangeRequest:
        """
        Build a ChangeRequest.

        Args:
            original: Text the author started from
            modified: Text the author submits
            author_id: Submitting user
            subject_id: Page identifier (required)
            book_id: Book identifier
            granularity: 'line' or 'word'

        Returns:
            Pending ChangeRequest

        Raises:
            InvalidInputError: Empty subject id or unknown granularity
        """
        if not subject_id or not subject_id.strip():
            raise InvalidInputError("Subject id is required", field='subject_id')
        try:
            granularity = Granularity(granularity)
        except ValueError:
            raise InvalidInputError(f"Unknown granularity: {granularity}", field='granularity')

        original = original or ''
        modified = modified or ''

        with logger.log_operation('build_change_request', subject_id=subject_id,
                                  granularity=granularity.value):
            escalated = self.differ.diff(original, modified)
            level_counts = {level.value: 0 for level in DiffLevel}
            level_counts[escalated.level.value] = len(escalated.changes)

            request = ChangeRequest(
                id=str(uuid.uuid4()),
                subject_id=subject_id,
                book_id=book_id or "",
                author_id=author_id,
                timestamp=datetime.now(timezone.utc).isoformat(),
                granularity=granularity,
                original_text=original,
                modified_text=modified
            )

            if granularity is Granularity.LINE:
                line_result = self.line_differ.diff(original, modified)
                request.line_changes = line_result.changes
                request.summary = line_result.summary
            else:
                char_changes = self.differ.diff_characters(original, modified)
                request.word_changes = group_by_word(char_changes, original, modified)
                request.summary = ChangeSummary(
                    character_changes=count_character_changes(char_changes),
                    total_word_changes=len(request.word_changes)
                )

            request.summary.granularity = level_counts

        return request


def count_character_changes(changes: List[DiffChange]) -> CharacterChangeCounts:
    """Tashkeel / base-letter / total counts for character-level records."""
    counts = CharacterChangeCounts()
    for change in changes:
        counts.total_changes += 1
        if change.kind is ChangeKind.DIACRITIC:
            counts.tashkeel_changes += 1
        elif is_arabic_letter(change.original_value) or is_arabic_letter(change.new_value):
            counts.base_letter_changes += 1
    return counts


class _WordIndex:
    """Word ordinals of one text: offset -> word key, word key -> text and span."""

    def __init__(self, text: str):
        self.units = segment(text)
        self.text = text
        self.key_at: Dict[int, WordKey] = {}
        chars: Dict[WordKey, List[str]] = {}
        self.spans: Dict[WordKey, Tuple[int, int]] = {}
        for offset, unit in enumerate(self.units):
            if unit.category is Category.WHITESPACE:
                continue
            key = (unit.line_number, unit.word_number)
            self.key_at[offset] = key
            chars.setdefault(key, []).append(unit.value)
            start = self.spans.get(key, (offset, offset))[0]
            self.spans[key] = (start, offset + 1)
        self.words = {key: ''.join(values) for key, values in chars.items()}


def _aligned_offsets(changes: List[DiffChange], original_len: int,
                     modified_len: int) -> Dict[int, int]:
    """Modified offset -> original offset for unchanged and modified characters."""
    aligned = {}
    orig = mod = 0
    for change in changes:
        while orig < change.start_index and mod < change.modified_index:
            aligned[mod] = orig
            orig += 1
            mod += 1
        if change.op is DiffOp.DELETE:
            orig += 1
        elif change.op is DiffOp.INSERT:
            mod += 1
        else:
            aligned[mod] = orig
            orig += 1
            mod += 1
    while orig < original_len and mod < modified_len:
        aligned[mod] = orig
        orig += 1
        mod += 1
    return aligned


def _edit_runs(changes: List[DiffChange]) -> List[List[DiffChange]]:
    """Split records into runs that touch each other with no unchanged text between."""
    runs: List[List[DiffChange]] = []
    for change in changes:
        if runs:
            last = runs[-1][-1]
            if (change.start_index == last.end_index
                    and change.modified_index == last.modified_index + len(last.new_value)):
                runs[-1].append(change)
                continue
        runs.append([change])
    return runs


def _word_key(units: List[CharacterUnit], index: int) -> WordKey:
    """Word an offset borders: the word at it, else the word just before it."""
    if not units:
        return (1, 1)
    index = min(index, len(units))
    if index < len(units) and units[index].category is not Category.WHITESPACE:
        unit = units[index]
    elif index > 0:
        unit = units[index - 1]
    else:
        unit = units[0]
    return (unit.line_number, unit.word_number)


def _word_kind(original_word: str, modified_word: str,
               char_changes: List[DiffChange]) -> ChangeKind:
    if all(c.kind is ChangeKind.DIACRITIC for c in char_changes):
        return ChangeKind.DIACRITIC
    if not original_word:
        return ChangeKind.INSERT
    if not modified_word:
        return ChangeKind.DELETE
    if original_word != modified_word:
        return classify_change(original_word, modified_word)
    # Only spacing around the word changed
    ops = {c.op for c in char_changes}
    if ops == {DiffOp.INSERT}:
        return ChangeKind.INSERT
    if ops == {DiffOp.DELETE}:
        return ChangeKind.DELETE
    return ChangeKind.BASE_LETTER


def group_by_word(changes: List[DiffChange], original: str, modified: str) -> List[WordChange]:
    """
    Group character-level records by the word they edit.

    A record that deletes or replaces a letter belongs to that letter's
    word in the original text. An inserted letter belongs to the original
    word its modified word still shares characters with; a modified word
    sharing none is a new word, numbered by its place in the modified
    text. Inserted or deleted whitespace joins the nearest word edited in
    the same run, preferring the following one, and otherwise the word it
    borders in the original text.

    Args:
        changes: Records from TextDiffer.diff_characters
        original: Original text
        modified: Modified text

    Returns:
        WordChange records in document order
    """
    for change in changes:
        if change.level is not DiffLevel.CHARACTER:
            raise InvalidInputError("Only character-level changes can be grouped by word",
                                    field='changes')
    changes = sorted(changes, key=lambda c: (c.start_index, c.modified_index))

    source = _WordIndex(original)
    target = _WordIndex(modified)
    aligned = _aligned_offsets(changes, len(original), len(modified))

    # Modified words that keep characters of an original word
    kept_in: Dict[WordKey, WordKey] = {}
    kept_as: Dict[WordKey, List[WordKey]] = {}
    for mod_offset, orig_offset in sorted(aligned.items()):
        mod_key = target.key_at.get(mod_offset)
        orig_key = source.key_at.get(orig_offset)
        if mod_key is None or orig_key is None:
            continue
        kept_in.setdefault(mod_key, orig_key)
        if mod_key not in kept_as.setdefault(orig_key, []):
            kept_as[orig_key].append(mod_key)

    def own_key(change: DiffChange) -> Optional[GroupKey]:
        if change.op is not DiffOp.INSERT and change.start_index in source.key_at:
            return ('original',) + source.key_at[change.start_index]
        if change.op is not DiffOp.DELETE and change.modified_index in target.key_at:
            mod_key = target.key_at[change.modified_index]
            if mod_key in kept_in:
                return ('original',) + kept_in[mod_key]
            return ('inserted',) + mod_key
        return None

    groups: Dict[GroupKey, List[DiffChange]] = {}
    for run in _edit_runs(changes):
        keys = [own_key(c) for c in run]
        for index, change in enumerate(run):
            key = keys[index]
            if key is None:
                key = next((k for k in keys[index + 1:] if k), None) or \
                    next((k for k in reversed(keys[:index]) if k), None) or \
                    ('original',) + _word_key(source.units, change.start_index)
            groups.setdefault(key, []).append(change)

    word_changes = []
    for index, (key, char_changes) in enumerate(groups.items()):
        origin, word_key = key[0], key[1:]
        if origin == 'inserted':
            original_word = ''
            modified_word = target.words[word_key]
        else:
            original_word = source.words.get(word_key, '')
            kept = kept_as.get(word_key)
            if kept:
                start = target.spans[kept[0]][0]
                end = target.spans[kept[-1]][1]
                modified_word = modified[start:end]
            else:
                modified_word = ''

        word_changes.append(WordChange(
            id=f"word-{index}",
            line_number=word_key[0],
            word_number=word_key[1],
            original_word=original_word,
            modified_word=modified_word,
            kind=_word_kind(original_word, modified_word, char_changes),
            character_changes=char_changes
        ))

    return word_changes


# =============================================================================
# REVIEW ACTIONS
# =============================================================================

def _require_pending_request(request: ChangeRequest) -> None:
    if request.status is not ReviewStatus.PENDING:
        raise AlreadyResolvedError(f"Change request {request.id} is already {request.status.value}",
                                   kind='change_request', identifier=request.id,
                                   status=request.status.value)


def _pending_word_change(request: ChangeRequest, change_id: str) -> WordChange:
    _require_pending_request(request)
    change = request.find_word_change(change_id)
    if change is None:
        raise NotFoundError(f"Word change {change_id} not found in request {request.id}",
                            kind='word_change', identifier=change_id)
    if change.status is not ReviewStatus.PENDING:
        raise AlreadyResolvedError(f"Word change {change_id} is already {change.status.value}",
                                   kind='word_change', identifier=change_id,
                                   status=change.status.value)
    return change


def _roll_up(request: ChangeRequest) -> None:
    """Close a word request once none of its word changes is pending."""
    if any(c.status is ReviewStatus.PENDING for c in request.word_changes):
        return
    if any(c.status is ReviewStatus.APPROVED for c in request.word_changes):
        request.status = ReviewStatus.APPROVED
    else:
        request.status = ReviewStatus.DECLINED
    logger.info(f"Change request {request.id} closed as {request.status.value}")


def approve_word_change(request: ChangeRequest, change_id: str) -> WordChange:
    """Approve one pending word change of a pending request."""
    change = _pending_word_change(request, change_id)
    change.status = ReviewStatus.APPROVED
    _roll_up(request)
    return change


def decline_word_change(request: ChangeRequest, change_id: str) -> WordChange:
    """Decline one pending word change of a pending request."""
    change = _pending_word_change(request, change_id)
    change.status = ReviewStatus.DECLINED
    _roll_up(request)
    return change


def approve_request(request: ChangeRequest) -> ChangeRequest:
    """Approve a pending request and every word change still pending in it."""
    _require_pending_request(request)
    for change in request.word_changes:
        if change.status is ReviewStatus.PENDING:
            change.status = ReviewStatus.APPROVED
    request.status = ReviewStatus.APPROVED
    logger.info(f"Change request {request.id} approved")
    return request


def decline_request(request: ChangeRequest) -> ChangeRequest:
    """Decline a pending request and every word change still pending in it."""
    _require_pending_request(request)
    for change in request.word_changes:
        if change.status is ReviewStatus.PENDING:
            change.status = ReviewStatus.DECLINED
    request.status = ReviewStatus.DECLINED
    logger.info(f"Change request {request.id} declined")
    return request


def resolved_text(request: ChangeRequest) -> str:
    """
    Text after applying the approved parts of a request.

    Line requests apply all-or-nothing once approved; word requests
    apply only their approved word changes.
    """
    if request.granularity is Granularity.LINE:
        if request.status is ReviewStatus.APPROVED:
            return apply_line_changes(request.original_text, request.line_changes)
        return request.original_text

    approved = [c for word in request.word_changes
                if word.status is ReviewStatus.APPROVED
                for c in word.character_changes]
    return apply_character_changes(request.original_text, approved)


# Convenience function
def build_change_request(original: str, modified: str, author_id: str,
                         subject_id: str, **kwargs) -> ChangeRequest:
    """Build a ChangeRequest with a default builder."""
    return ChangeRequestBuilder().build(original, modified, author_id, subject_id, **kwargs)
