"""
Tashkeel Review Models v1.0.0
=============================
Data classes for character units, suggestion chains, diff records and
change requests.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Dict, Optional, Any, Tuple

from .classifier import Category, ChangeKind


class ReviewStatus(Enum):
    """Status of a suggestion, word change or change request."""
    PENDING = "pending"
    APPROVED = "approved"
    DECLINED = "declined"


class UnitState(Enum):
    """Suggestion state of a single character unit."""
    NO_SUGGESTION = "no_suggestion"
    HAS_PENDING = "has_pending"
    RESOLVED = "resolved"


class DiffOp(Enum):
    INSERT = "insert"
    DELETE = "delete"
    MODIFY = "modify"


class DiffLevel(Enum):
    SENTENCE = "sentence"
    WORD = "word"
    CHARACTER = "character"


class LineChangeType(Enum):
    INSERT = "insert"
    DELETE = "delete"
    MODIFY = "modify"


class Granularity(Enum):
    """Shape of the changes carried by a ChangeRequest."""
    LINE = "line"
    WORD = "word"


def position_label(position_key: Tuple[int, ...]) -> str:
    """Render a fractional position key as its dotted label, e.g. (5, 1) -> '5.1'."""
    return '.'.join(str(part) for part in position_key)


@dataclass
class Suggestion:
    """
    A proposed replacement value for one CharacterUnit.

    Attributes:
        id: Unique identifier
        unit_id: Id of the unit the suggestion is attached to
        proposed_value: Replacement value ('' proposes a deletion)
        user: Proposing user
        timestamp: ISO timestamp of the proposal
        status: pending until an explicit approve/decline
        change_kind: Kind of edit this suggestion represents
        based_on_value: Value the suggestion now applies on top of,
                        updated each time a sibling is approved
        reason: Optional free-text justification
        resolved_by: Reviewer who approved or declined it
        resolved_at: ISO timestamp of the resolution
    """
    id: str
    unit_id: str
    proposed_value: str
    user: str
    timestamp: str
    change_kind: ChangeKind
    status: ReviewStatus = ReviewStatus.PENDING
    based_on_value: Optional[str] = None
    reason: Optional[str] = None
    resolved_by: Optional[str] = None
    resolved_at: Optional[str] = None

    @property
    def is_pending(self) -> bool:
        return self.status is ReviewStatus.PENDING

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            'id': self.id,
            'unit_id': self.unit_id,
            'proposed_value': self.proposed_value,
            'user': self.user,
            'timestamp': self.timestamp,
            'status': self.status.value,
            'change_kind': self.change_kind.value,
            'based_on_value': self.based_on_value,
            'reason': self.reason,
            'resolved_by': self.resolved_by,
            'resolved_at': self.resolved_at
        }


@dataclass(frozen=True)
class ChangeHistoryEntry:
    """One applied transition on a CharacterUnit. Never mutated."""
    id: str
    unit_id: str
    from_value: str
    to_value: str
    user: str
    timestamp: str
    suggestion_id: str
    change_kind: ChangeKind

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            'id': self.id,
            'unit_id': self.unit_id,
            'from_value': self.from_value,
            'to_value': self.to_value,
            'user': self.user,
            'timestamp': self.timestamp,
            'suggestion_id': self.suggestion_id,
            'change_kind': self.change_kind.value
        }


@dataclass
class CharacterUnit:
    """
    One classified character of a segmented text.

    Units live in an arena owned by a DocumentSession: `handle` is the
    stable arena index and `position_key` the fractional ordering key.
    Inserted units get a key between their neighbours, so existing keys
    are never renumbered.

    Attributes:
        id: Stable unique identifier
        handle: Arena index, stable for the life of the session
        position_key: Ordering key, e.g. (5,) or (5, 1)
        value: Current value (changes only through an approved suggestion)
        original_value: Value at creation, never changes
        category: Category of the current value
        line_number: 1-based line ordinal
        word_number: 1-based word ordinal within the line
        sentence_number: 1-based sentence ordinal within the line
        suggestions: All suggestions ever proposed for this unit
        history: Append-only list of applied transitions
    """
    id: str
    handle: int
    position_key: Tuple[int, ...]
    value: str
    original_value: str
    category: Category
    line_number: int = 1
    word_number: int = 1
    sentence_number: int = 1
    suggestions: List[Suggestion] = field(default_factory=list)
    history: List[ChangeHistoryEntry] = field(default_factory=list)

    @property
    def position(self) -> str:
        return position_label(self.position_key)

    @property
    def pending_suggestions(self) -> List[Suggestion]:
        return [s for s in self.suggestions if s.is_pending]

    @property
    def state(self) -> UnitState:
        if not self.suggestions:
            return UnitState.NO_SUGGESTION
        if any(s.is_pending for s in self.suggestions):
            return UnitState.HAS_PENDING
        return UnitState.RESOLVED

    def find_suggestion(self, suggestion_id: str) -> Optional[Suggestion]:
        for suggestion in self.suggestions:
            if suggestion.id == suggestion_id:
                return suggestion
        return None

    def to_dict(self, include_suggestions: bool = True) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        data = {
            'id': self.id,
            'position': self.position,
            'value': self.value,
            'original_value': self.original_value,
            'category': self.category.value,
            'line_number': self.line_number,
            'word_number': self.word_number,
            'sentence_number': self.sentence_number,
            'state': self.state.value
        }
        if include_suggestions:
            data['suggestions'] = [s.to_dict() for s in self.suggestions]
            data['history'] = [h.to_dict() for h in self.history]
        return data


@dataclass
class DiffChange:
    """
    One record of the escalating structural diff.

    Attributes:
        id: Unique identifier for navigation (e.g., "change-0")
        op: insert, delete or modify
        level: sentence, word or character
        kind: Tashkeel/base-letter classification of the change
        start_index: Offset in the original text (insertion point for inserts)
        end_index: End offset in the original text (== start_index for inserts)
        original_value: Original segment ('' for insertions)
        new_value: New segment ('' for deletions)
        line_number: Line ordinal of the anchoring character
        word_number: Word ordinal of the anchoring character
        sentence_number: Sentence ordinal of the anchoring character
        modified_index: Offset of the change in the modified text
        context_before: Up to 10 characters before the change
        context_after: Up to 10 characters after the change
    """
    id: str
    op: DiffOp
    level: DiffLevel
    kind: ChangeKind
    start_index: int
    end_index: int
    original_value: str = ""
    new_value: str = ""
    line_number: int = 1
    word_number: int = 1
    sentence_number: int = 1
    modified_index: int = 0
    context_before: str = ""
    context_after: str = ""

    @property
    def size(self) -> int:
        """Characters touched on both sides."""
        return len(self.original_value) + len(self.new_value)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            'id': self.id,
            'op': self.op.value,
            'level': self.level.value,
            'kind': self.kind.value,
            'start_index': self.start_index,
            'end_index': self.end_index,
            'original_value': self.original_value,
            'new_value': self.new_value,
            'line_number': self.line_number,
            'word_number': self.word_number,
            'sentence_number': self.sentence_number,
            'modified_index': self.modified_index,
            'context_before': self.context_before,
            'context_after': self.context_after
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'DiffChange':
        return cls(
            id=data['id'],
            op=DiffOp(data['op']),
            level=DiffLevel(data['level']),
            kind=ChangeKind(data['kind']),
            start_index=data['start_index'],
            end_index=data['end_index'],
            original_value=data.get('original_value', ''),
            new_value=data.get('new_value', ''),
            line_number=data.get('line_number', 1),
            word_number=data.get('word_number', 1),
            sentence_number=data.get('sentence_number', 1),
            modified_index=data.get('modified_index', 0),
            context_before=data.get('context_before', ''),
            context_after=data.get('context_after', '')
        )


@dataclass
class DiffResult:
    """
    Outcome of the escalating diff.

    Attributes:
        level: Granularity the diff resolved at
        changes: Ordered change records at that granularity
        significance: Significance of the chosen level's records
        stats: Counts by op
    """
    level: DiffLevel
    changes: List[DiffChange] = field(default_factory=list)
    significance: float = 0.0
    stats: Dict[str, int] = field(default_factory=dict)

    def __post_init__(self):
        """Compute stats if not provided."""
        if not self.stats:
            self.stats = {
                'total_changes': len(self.changes),
                'inserted': sum(1 for c in self.changes if c.op is DiffOp.INSERT),
                'deleted': sum(1 for c in self.changes if c.op is DiffOp.DELETE),
                'modified': sum(1 for c in self.changes if c.op is DiffOp.MODIFY),
                'diacritic': sum(1 for c in self.changes if c.kind is ChangeKind.DIACRITIC),
            }

    @property
    def is_empty(self) -> bool:
        return not self.changes

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            'level': self.level.value,
            'significance': round(self.significance, 4),
            'changes': [c.to_dict() for c in self.changes],
            'stats': self.stats
        }


@dataclass
class LineChange:
    """
    One line-level diff record.

    Attributes:
        change_type: insert, delete or modify
        line_number: 1-based walk step of the diff (see LineDiffer)
        content: Resulting line (the removed line for deletions)
        original_content: Source line for modify and delete records
    """
    change_type: LineChangeType
    line_number: int
    content: str
    original_content: str = ""

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            'type': self.change_type.value,
            'line_number': self.line_number,
            'content': self.content,
            'original_content': self.original_content
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'LineChange':
        return cls(
            change_type=LineChangeType(data['type']),
            line_number=data['line_number'],
            content=data.get('content', ''),
            original_content=data.get('original_content', '')
        )


@dataclass
class CharacterChangeCounts:
    """Character-level change counts nested in a ChangeSummary."""
    tashkeel_changes: int = 0
    base_letter_changes: int = 0
    total_changes: int = 0

    def add(self, other: 'CharacterChangeCounts') -> None:
        self.tashkeel_changes += other.tashkeel_changes
        self.base_letter_changes += other.base_letter_changes
        self.total_changes += other.total_changes

    def to_dict(self) -> Dict[str, Any]:
        return {
            'tashkeel_changes': self.tashkeel_changes,
            'base_letter_changes': self.base_letter_changes,
            'total_changes': self.total_changes
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CharacterChangeCounts':
        return cls(
            tashkeel_changes=data.get('tashkeel_changes', 0),
            base_letter_changes=data.get('base_letter_changes', 0),
            total_changes=data.get('total_changes', 0)
        )


@dataclass
class ChangeSummary:
    """
    Aggregated counts for a change request.

    Attributes:
        total_line_changes: Number of LineChange records
        inserted_lines: Number of inserted lines
        deleted_lines: Number of deleted lines
        modified_lines: Number of modified lines
        character_changes: Nested tashkeel/base-letter/total counts
        total_word_changes: Number of word-level change records
        granularity: Escalating-diff record counts per level
    """
    total_line_changes: int = 0
    inserted_lines: int = 0
    deleted_lines: int = 0
    modified_lines: int = 0
    character_changes: CharacterChangeCounts = field(default_factory=CharacterChangeCounts)
    total_word_changes: int = 0
    granularity: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            'total_line_changes': self.total_line_changes,
            'inserted_lines': self.inserted_lines,
            'deleted_lines': self.deleted_lines,
            'modified_lines': self.modified_lines,
            'character_changes': self.character_changes.to_dict(),
            'total_word_changes': self.total_word_changes,
            'granularity': dict(self.granularity)
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ChangeSummary':
        return cls(
            total_line_changes=data.get('total_line_changes', 0),
            inserted_lines=data.get('inserted_lines', 0),
            deleted_lines=data.get('deleted_lines', 0),
            modified_lines=data.get('modified_lines', 0),
            character_changes=CharacterChangeCounts.from_dict(data.get('character_changes', {})),
            total_word_changes=data.get('total_word_changes', 0),
            granularity=dict(data.get('granularity', {}))
        )


@dataclass
class WordChange:
    """
    Character-level changes grouped by their enclosing word.

    Attributes:
        id: Unique identifier within the request
        line_number: Line ordinal of the word in the original text
                     (in the modified text for an inserted word)
        word_number: Word ordinal within that line
        original_word: Word as it appears in the original text
        modified_word: Word as it appears in the modified text
        kind: Overall kind of the word edit
        status: Review status of this word change
        character_changes: The character records inside the word
    """
    id: str
    line_number: int
    word_number: int
    original_word: str
    modified_word: str
    kind: ChangeKind
    status: ReviewStatus = ReviewStatus.PENDING
    character_changes: List[DiffChange] = field(default_factory=list)

    @property
    def diacritic_only(self) -> bool:
        return all(c.kind is ChangeKind.DIACRITIC for c in self.character_changes)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            'id': self.id,
            'line_number': self.line_number,
            'word_number': self.word_number,
            'original_word': self.original_word,
            'modified_word': self.modified_word,
            'kind': self.kind.value,
            'status': self.status.value,
            'diacritic_only': self.diacritic_only,
            'character_changes': [c.to_dict() for c in self.character_changes]
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'WordChange':
        return cls(
            id=data['id'],
            line_number=data['line_number'],
            word_number=data['word_number'],
            original_word=data.get('original_word', ''),
            modified_word=data.get('modified_word', ''),
            kind=ChangeKind(data['kind']),
            status=ReviewStatus(data.get('status', 'pending')),
            character_changes=[DiffChange.from_dict(c) for c in data.get('character_changes', [])]
        )


@dataclass
class ChangeRequest:
    """
    Detached, serializable unit submitted for review.

    Attributes:
        id: Unique identifier
        subject_id: Page the request applies to
        book_id: Book containing the page
        author_id: Submitting user
        timestamp: ISO creation timestamp
        status: Review status of the whole request
        granularity: Whether `changes` holds line or word records
        line_changes: LineChange records (line granularity)
        word_changes: WordChange records (word granularity)
        summary: Aggregated counts
        original_text: Text the changes were computed against
        modified_text: Text the author submitted
    """
    id: str
    subject_id: str
    author_id: str
    timestamp: str
    granularity: Granularity = Granularity.LINE
    book_id: str = ""
    status: ReviewStatus = ReviewStatus.PENDING
    line_changes: List[LineChange] = field(default_factory=list)
    word_changes: List[WordChange] = field(default_factory=list)
    summary: ChangeSummary = field(default_factory=ChangeSummary)
    original_text: str = ""
    modified_text: str = ""

    @property
    def changes(self) -> List[Any]:
        if self.granularity is Granularity.WORD:
            return list(self.word_changes)
        return list(self.line_changes)

    def find_word_change(self, change_id: str) -> Optional[WordChange]:
        for change in self.word_changes:
            if change.id == change_id:
                return change
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            'id': self.id,
            'subject_id': self.subject_id,
            'book_id': self.book_id,
            'author_id': self.author_id,
            'timestamp': self.timestamp,
            'status': self.status.value,
            'granularity': self.granularity.value,
            'changes': [c.to_dict() for c in self.changes],
            'summary': self.summary.to_dict(),
            'original_text': self.original_text,
            'modified_text': self.modified_text
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ChangeRequest':
        granularity = Granularity(data.get('granularity', 'line'))
        changes = data.get('changes', [])
        return cls(
            id=data['id'],
            subject_id=data['subject_id'],
            book_id=data.get('book_id', ''),
            author_id=data['author_id'],
            timestamp=data['timestamp'],
            status=ReviewStatus(data.get('status', 'pending')),
            granularity=granularity,
            line_changes=[LineChange.from_dict(c) for c in changes] if granularity is Granularity.LINE else [],
            word_changes=[WordChange.from_dict(c) for c in changes] if granularity is Granularity.WORD else [],
            summary=ChangeSummary.from_dict(data.get('summary', {})),
            original_text=data.get('original_text', ''),
            modified_text=data.get('modified_text', '')
        )
