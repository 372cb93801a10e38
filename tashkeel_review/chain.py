"""
Suggestion Chain Engine v1.0.0
==============================
Per-character suggestion chains for one document session.

A DocumentSession owns every CharacterUnit of a segmented page in an
arena addressed by stable integer handles, plus an ordered index of
handles. Users propose competing replacement values for a unit;
reviewers approve or decline them one at a time. Approving a suggestion
rebases the unit's other pending suggestions onto the newly approved
value without changing what they propose, so sequential approvals
compose into a chain recorded in the unit's history.

All mutating calls hold the session lock for their whole duration.
"""

import threading
import uuid
from datetime import datetime, timezone
from typing import Dict, List, Optional, Union

from config_logging import (
    AlreadyResolvedError,
    InvalidInputError,
    NotFoundError,
    get_logger,
)
from .classifier import ChangeKind, classify, classify_change
from .models import (
    ChangeHistoryEntry,
    ChangeRequest,
    CharacterUnit,
    Granularity,
    ReviewStatus,
    Suggestion,
)
from .segmenter import position_between, segment

logger = get_logger('tashkeel_review.chain')


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class DocumentSession:
    """
    In-memory review session for one page of text.

    Usage:
        session = DocumentSession(text, subject_id='page-1', sink=store)
        unit = session.units()[5]
        suggestion = session.propose(unit.id, 'ب', 'UserA')
        session.approve(unit.id, suggestion.id, 'Admin')
        session.current_text()
    """

    def __init__(self, text: str, subject_id: str = "", book_id: str = "",
                 sink=None, builder=None):
        """
        Segment text and take ownership of its units.

        Args:
            text: Page text
            subject_id: Page identifier stamped onto change requests
            book_id: Book identifier stamped onto change requests
            sink: Optional SubmissionSink used by submit()
            builder: Optional ChangeRequestBuilder used by build_change_request()
        """
        self.id = str(uuid.uuid4())[:8]
        self.subject_id = subject_id
        self.book_id = book_id
        self.created_at = _now()
        self._original_text = text or ''
        self._sink = sink
        self._builder = builder
        self._lock = threading.RLock()

        self._arena: List[CharacterUnit] = segment(self._original_text)
        self._order: List[int] = [unit.handle for unit in self._arena]
        self._by_id: Dict[str, int] = {unit.id: unit.handle for unit in self._arena}
        self._applied: List[ChangeHistoryEntry] = []

        logger.info(f"Session {self.id} opened: subject={subject_id or '-'}, "
                    f"units={len(self._arena)}")

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    @property
    def original_text(self) -> str:
        return self._original_text

    def units(self) -> List[CharacterUnit]:
        """Units in document order."""
        with self._lock:
            return [self._arena[handle] for handle in self._order]

    def get_unit(self, unit_id: str) -> CharacterUnit:
        """
        Get a unit by id.

        Raises:
            NotFoundError: If no unit has this id
        """
        with self._lock:
            handle = self._by_id.get(unit_id)
            if handle is None:
                raise NotFoundError(f"Unit {unit_id} not found", kind='unit', identifier=unit_id)
            return self._arena[handle]

    def unit_at(self, handle: int) -> CharacterUnit:
        """Get a unit by its arena handle."""
        with self._lock:
            if not 0 <= handle < len(self._arena):
                raise NotFoundError(f"Unit handle {handle} not found", kind='unit',
                                    identifier=str(handle))
            return self._arena[handle]

    def current_text(self) -> str:
        """Text made of every unit's current value, in document order."""
        with self._lock:
            return ''.join(self._arena[handle].value for handle in self._order)

    # ------------------------------------------------------------------
    # Suggestion chain
    # ------------------------------------------------------------------

    def propose(self, unit_id: str, value: str, user: str,
                reason: Optional[str] = None,
                change_kind: Optional[ChangeKind] = None) -> Suggestion:
        """
        Append a pending suggestion to a unit.

        There is no bound on the number of pending suggestions per unit.

        Args:
            unit_id: Target unit
            value: Proposed value ('' proposes a deletion)
            user: Proposing user
            reason: Optional justification
            change_kind: Explicit kind; inferred from the values otherwise

        Returns:
            The new Suggestion
        """
        with self._lock:
            unit = self.get_unit(unit_id)
            if change_kind is None:
                change_kind = classify_change(unit.value, value)
            suggestion = Suggestion(
                id=str(uuid.uuid4()),
                unit_id=unit.id,
                proposed_value=value,
                user=user,
                timestamp=_now(),
                change_kind=change_kind,
                reason=reason
            )
            unit.suggestions.append(suggestion)
            logger.info(f"Suggestion {suggestion.id[:8]} proposed on unit {unit.position} "
                        f"by {user} ({change_kind.value})")
            return suggestion

    def approve(self, unit_id: str, suggestion_id: str, approver: str) -> ChangeHistoryEntry:
        """
        Apply a pending suggestion to its unit.

        Records the transition in the unit's history, sets the unit's
        current value, marks the suggestion approved and rebases every
        other pending suggestion on the unit onto the new value. Sibling
        suggestions keep their proposed values and stay pending.

        Args:
            unit_id: Unit holding the suggestion
            suggestion_id: Suggestion to approve
            approver: Approving user

        Returns:
            The appended ChangeHistoryEntry

        Raises:
            NotFoundError: Unit or suggestion does not exist
            AlreadyResolvedError: Suggestion is no longer pending
        """
        with self._lock:
            unit = self.get_unit(unit_id)
            suggestion = self._pending_suggestion(unit, suggestion_id)

            entry = ChangeHistoryEntry(
                id=str(uuid.uuid4()),
                unit_id=unit.id,
                from_value=unit.value,
                to_value=suggestion.proposed_value,
                user=approver,
                timestamp=_now(),
                suggestion_id=suggestion.id,
                change_kind=suggestion.change_kind
            )
            unit.history.append(entry)
            self._applied.append(entry)

            unit.value = suggestion.proposed_value
            if unit.value:
                unit.category = classify(unit.value)

            suggestion.status = ReviewStatus.APPROVED
            suggestion.resolved_by = approver
            suggestion.resolved_at = entry.timestamp

            for sibling in unit.suggestions:
                if sibling.is_pending:
                    sibling.based_on_value = unit.value

            logger.info(f"Suggestion {suggestion.id[:8]} approved on unit {unit.position} "
                        f"by {approver}: '{entry.from_value}' -> '{entry.to_value}'")
            return entry

    def decline(self, unit_id: str, suggestion_id: str,
                reviewer: Optional[str] = None) -> Suggestion:
        """
        Decline a pending suggestion.

        Only that suggestion changes; the unit's value and all other
        suggestions are untouched.

        Raises:
            NotFoundError: Unit or suggestion does not exist
            AlreadyResolvedError: Suggestion is no longer pending
        """
        with self._lock:
            unit = self.get_unit(unit_id)
            suggestion = self._pending_suggestion(unit, suggestion_id)
            suggestion.status = ReviewStatus.DECLINED
            suggestion.resolved_by = reviewer
            suggestion.resolved_at = _now()
            logger.info(f"Suggestion {suggestion.id[:8]} declined on unit {unit.position}")
            return suggestion

    def _pending_suggestion(self, unit: CharacterUnit, suggestion_id: str) -> Suggestion:
        suggestion = unit.find_suggestion(suggestion_id)
        if suggestion is None:
            raise NotFoundError(f"Suggestion {suggestion_id} not found on unit {unit.id}",
                                kind='suggestion', identifier=suggestion_id)
        if not suggestion.is_pending:
            raise AlreadyResolvedError(
                f"Suggestion {suggestion_id} is already {suggestion.status.value}",
                kind='suggestion', identifier=suggestion_id, status=suggestion.status.value
            )
        return suggestion

    # ------------------------------------------------------------------
    # Insertion
    # ------------------------------------------------------------------

    def insert_after(self, unit_id: str, value: str) -> CharacterUnit:
        """
        Create a unit right after `unit_id` without renumbering anything.

        The new unit takes a fractional position between its neighbours
        ('5' -> '5.1'), or the next integer position at the end of the
        text. It inherits the line/word/sentence ordinals of its
        predecessor.

        Returns:
            The new CharacterUnit
        """
        with self._lock:
            unit = self.get_unit(unit_id)
            index = self._order.index(unit.handle)
            successor = (self._arena[self._order[index + 1]]
                         if index + 1 < len(self._order) else None)

            new_unit = CharacterUnit(
                id=str(uuid.uuid4()),
                handle=len(self._arena),
                position_key=position_between(
                    unit.position_key,
                    successor.position_key if successor else None
                ),
                value=value,
                original_value=value,
                category=classify(value),
                line_number=unit.line_number,
                word_number=unit.word_number,
                sentence_number=unit.sentence_number
            )
            self._arena.append(new_unit)
            self._order.insert(index + 1, new_unit.handle)
            self._by_id[new_unit.id] = new_unit.handle

            logger.debug(f"Unit {new_unit.position} inserted after {unit.position}")
            return new_unit

    def propose_insertion(self, after_unit_id: str, value: str, user: str,
                          reason: Optional[str] = None) -> Suggestion:
        """
        Propose inserting `value` after a unit.

        An empty placeholder unit is created in place and carries a
        pending insert suggestion; the text only changes once that
        suggestion is approved.
        """
        if not value:
            raise InvalidInputError("Inserted value cannot be empty", field='value')
        with self._lock:
            placeholder = self.insert_after(after_unit_id, '')
            return self.propose(placeholder.id, value, user, reason=reason,
                                change_kind=ChangeKind.INSERT)

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def history(self) -> List[ChangeHistoryEntry]:
        """Every applied transition across the document, in application order."""
        with self._lock:
            return list(self._applied)

    def chain(self, unit_id: str) -> List[ChangeHistoryEntry]:
        """The approved chain of one unit, oldest first."""
        with self._lock:
            return list(self.get_unit(unit_id).history)

    def pending_suggestions(self) -> List[Suggestion]:
        with self._lock:
            return [s for unit in self.units() for s in unit.pending_suggestions]

    def stats(self) -> Dict[str, int]:
        """Suggestion counts by status."""
        with self._lock:
            suggestions = [s for unit in self._arena for s in unit.suggestions]
            return {
                'units': len(self._order),
                'pending': sum(1 for s in suggestions if s.status is ReviewStatus.PENDING),
                'approved': sum(1 for s in suggestions if s.status is ReviewStatus.APPROVED),
                'declined': sum(1 for s in suggestions if s.status is ReviewStatus.DECLINED),
                'applied_changes': sum(len(unit.history) for unit in self._arena)
            }

    def to_dict(self, include_units: bool = True) -> Dict[str, object]:
        """Convert to dictionary for JSON serialization."""
        with self._lock:
            data = {
                'id': self.id,
                'subject_id': self.subject_id,
                'book_id': self.book_id,
                'created_at': self.created_at,
                'original_text': self._original_text,
                'current_text': self.current_text(),
                'stats': self.stats()
            }
            if include_units:
                data['units'] = [unit.to_dict() for unit in self.units()]
            return data

    # ------------------------------------------------------------------
    # Change requests
    # ------------------------------------------------------------------

    def build_change_request(self, author_id: str,
                             granularity: Union[Granularity, str] = Granularity.LINE) -> ChangeRequest:
        """Package the session's approved edits as a ChangeRequest."""
        if self._builder is None:
            from .aggregator import ChangeRequestBuilder
            self._builder = ChangeRequestBuilder()
        return self._builder.build(
            self._original_text, self.current_text(), author_id,
            self.subject_id, book_id=self.book_id, granularity=granularity
        )

    def submit(self, request: ChangeRequest) -> str:
        """
        Hand a ChangeRequest to the injected submission sink.

        Sink errors propagate to the caller; nothing is retried here.

        Returns:
            The sink's acknowledgement id
        """
        if self._sink is None:
            raise InvalidInputError("Session has no submission sink", field='sink')
        if not request.subject_id:
            raise InvalidInputError("Change request has no subject id", field='subject_id')
        ack = self._sink.submit(request)
        logger.info(f"Change request {request.id} submitted from session {self.id}: ack={ack}")
        return ack
