"""
Tashkeel Review Flask Routes
============================
API endpoints for diffing, suggestion sessions and change-request review.

v1.0.0: Initial implementation
"""

import threading
import time
from functools import wraps
from typing import Dict, List

from flask import Blueprint, current_app, g, jsonify, request

from config_logging import (
    InvalidInputError,
    NotFoundError,
    TashkeelReviewError,
    get_config,
    get_logger,
)
from .aggregator import (
    ChangeRequestBuilder,
    approve_request,
    approve_word_change,
    decline_request,
    decline_word_change,
    resolved_text,
)
from .chain import DocumentSession
from .differ import TextDiffer
from .line_diff import LineDiffer

logger = get_logger('tashkeel_review.routes')

# Create blueprint
review_blueprint = Blueprint('tashkeel_review', __name__)


# =============================================================================
# STANDARDIZED ERROR HANDLING DECORATOR
# =============================================================================

def _error_response(code: str, message: str, status_code: int, details=None):
    return jsonify({
        'success': False,
        'error': {
            'code': code,
            'message': message,
            'details': details or {},
            'correlation_id': getattr(g, 'correlation_id', 'unknown')
        }
    }), status_code


def handle_review_errors(f):
    """
    Decorator for standardized API error handling in review routes.
    """
    @wraps(f)
    def decorated(*args, **kwargs):
        start_time = time.time()
        try:
            result = f(*args, **kwargs)

            # Log slow operations
            elapsed = time.time() - start_time
            if elapsed > 5.0:
                logger.warning(f"Slow review API call: {f.__name__} took {elapsed:.1f}s")

            return result

        except TashkeelReviewError as e:
            if e.status_code >= 500:
                logger.error(f"{e.code} in {f.__name__}: {e.message}")
            else:
                logger.warning(f"{e.code} in {f.__name__}: {e.message}")
            return _error_response(e.code, e.message, e.status_code, e.details)
        except Exception as e:
            logger.exception(f"Unexpected error in {f.__name__}: {e}")
            return _error_response('INTERNAL_ERROR', 'An unexpected error occurred', 500)

    return decorated


# =============================================================================
# SESSION REGISTRY
# =============================================================================

class SessionRegistry:
    """Open DocumentSessions keyed by session id."""

    def __init__(self):
        self._sessions: Dict[str, DocumentSession] = {}
        self._lock = threading.RLock()

    def add(self, session: DocumentSession) -> DocumentSession:
        with self._lock:
            self._sessions[session.id] = session
        return session

    def get(self, session_id: str) -> DocumentSession:
        with self._lock:
            session = self._sessions.get(session_id)
        if session is None:
            raise NotFoundError(f"Session {session_id} not found", kind='session',
                                identifier=session_id)
        return session

    def close(self, session_id: str) -> None:
        with self._lock:
            if self._sessions.pop(session_id, None) is None:
                raise NotFoundError(f"Session {session_id} not found", kind='session',
                                    identifier=session_id)
        logger.info(f"Session {session_id} closed")

    def list(self) -> List[DocumentSession]:
        with self._lock:
            return list(self._sessions.values())


# =============================================================================
# HELPERS
# =============================================================================

def _store():
    return current_app.config['REVIEW_STORE']


def _registry() -> SessionRegistry:
    return current_app.config['SESSION_REGISTRY']


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise InvalidInputError("Request body must be a JSON object")
    return data


def _required(data: dict, name: str) -> str:
    value = data.get(name)
    if value is None or (isinstance(value, str) and not value.strip()):
        raise InvalidInputError(f"{name} is required", field=name)
    if not isinstance(value, str):
        raise InvalidInputError(f"{name} must be a string", field=name)
    return value


def _text(data: dict, name: str, default=None) -> str:
    """Text field, allowed to be empty but bounded by max_text_length."""
    value = data.get(name, default)
    if value is None:
        raise InvalidInputError(f"{name} is required", field=name)
    if not isinstance(value, str):
        raise InvalidInputError(f"{name} must be a string", field=name)
    limit = get_config().max_text_length
    if len(value) > limit:
        raise InvalidInputError(f"{name} exceeds {limit} characters", field=name,
                                length=len(value))
    return value


def _request_payload(change_request) -> dict:
    data = change_request.to_dict()
    data['resolved_text'] = resolved_text(change_request)
    return data


# =============================================================================
# DIFF ENDPOINTS
# =============================================================================

@review_blueprint.route('/diff', methods=['POST'])
@handle_review_errors
def compute_diff():
    """
    Escalating sentence/word/character diff of two texts.

    Request body:
        { original: str, modified: str }

    Returns:
        { success: true, diff: { level, significance, changes: [...], stats } }
    """
    data = _json_body()
    original = _text(data, 'original')
    modified = _text(data, 'modified')

    result = TextDiffer().diff(original, modified)
    return jsonify({'success': True, 'diff': result.to_dict()})


@review_blueprint.route('/line-diff', methods=['POST'])
@handle_review_errors
def compute_line_diff():
    """
    Line diff of two texts.

    Request body:
        { original: str, modified: str, mode?: 'positional' | 'lcs' }

    Returns:
        { success: true, diff: { mode, changes: [...], summary } }
    """
    data = _json_body()
    original = _text(data, 'original')
    modified = _text(data, 'modified')

    result = LineDiffer(data.get('mode')).diff(original, modified)
    return jsonify({'success': True, 'diff': result.to_dict()})


# =============================================================================
# PAGES
# =============================================================================

@review_blueprint.route('/pages', methods=['POST'])
@handle_review_errors
def save_page():
    """
    Store the text of a page.

    Request body:
        { subject_id: str, text: str, book_id?: str }
    """
    data = _json_body()
    subject_id = _required(data, 'subject_id')
    text = _text(data, 'text')
    metadata = {'book_id': data.get('book_id') or ''}

    subject = _store().save_subject(subject_id, text, metadata)
    return jsonify({'success': True, 'subject_id': subject_id, 'page': subject.to_dict()}), 201


@review_blueprint.route('/pages/<subject_id>', methods=['GET'])
@handle_review_errors
def get_page(subject_id: str):
    subject = _store().load(subject_id)
    return jsonify({'success': True, 'subject_id': subject_id, 'page': subject.to_dict()})


# =============================================================================
# CHANGE REQUESTS
# =============================================================================

@review_blueprint.route('/requests', methods=['POST'])
@handle_review_errors
def create_change_request():
    """
    Build a change request from an edited page and submit it for review.

    Request body:
        {
            subject_id: str, author_id: str, modified: str,
            original?: str (defaults to the stored page text),
            book_id?: str, granularity?: 'line' | 'word'
        }

    Returns:
        { success: true, ack_id, request: {...} }
    """
    data = _json_body()
    subject_id = _required(data, 'subject_id')
    author_id = _required(data, 'author_id')
    modified = _text(data, 'modified')

    store = _store()
    if data.get('original') is None:
        subject = store.load(subject_id)
        original = subject.text
        book_id = data.get('book_id') or subject.metadata.get('book_id', '')
    else:
        original = _text(data, 'original')
        book_id = data.get('book_id') or ''

    change_request = ChangeRequestBuilder().build(
        original, modified, author_id, subject_id,
        book_id=book_id, granularity=data.get('granularity', 'line')
    )
    ack_id = store.submit(change_request)

    return jsonify({
        'success': True,
        'ack_id': ack_id,
        'request': _request_payload(change_request)
    }), 201


@review_blueprint.route('/requests', methods=['GET'])
@handle_review_errors
def list_change_requests():
    """
    List submitted change requests.

    Query params:
        subject_id: Only requests for this page
        status: pending | approved | declined
    """
    status = request.args.get('status')
    if status and status not in ('pending', 'approved', 'declined'):
        raise InvalidInputError(f"Unknown status: {status}", field='status')

    requests = _store().list_requests(subject_id=request.args.get('subject_id'), status=status)
    return jsonify({
        'success': True,
        'requests': [r.to_dict() for r in requests],
        'count': len(requests)
    })


@review_blueprint.route('/requests/<request_id>', methods=['GET'])
@handle_review_errors
def get_change_request(request_id: str):
    change_request = _store().get_request(request_id)
    return jsonify({'success': True, 'request': _request_payload(change_request)})


@review_blueprint.route('/requests/<request_id>/<action>', methods=['POST'])
@handle_review_errors
def review_change_request(request_id: str, action: str):
    """Approve or decline a whole change request."""
    if action not in ('approve', 'decline'):
        raise NotFoundError(f"Unknown action: {action}", kind='action', identifier=action)

    review = approve_request if action == 'approve' else decline_request
    change_request, _ = _store().review_request(request_id, review)

    return jsonify({'success': True, 'request': _request_payload(change_request)})


@review_blueprint.route('/requests/<request_id>/words/<change_id>/<action>', methods=['POST'])
@handle_review_errors
def review_word_change(request_id: str, change_id: str, action: str):
    """Approve or decline one word change of a word-granularity request."""
    if action not in ('approve', 'decline'):
        raise NotFoundError(f"Unknown action: {action}", kind='action', identifier=action)

    review = approve_word_change if action == 'approve' else decline_word_change
    change_request, word_change = _store().review_request(
        request_id, lambda change_request: review(change_request, change_id))

    return jsonify({
        'success': True,
        'word_change': word_change.to_dict(),
        'request': _request_payload(change_request)
    })


# =============================================================================
# SUGGESTION SESSIONS
# =============================================================================

@review_blueprint.route('/sessions', methods=['POST'])
@handle_review_errors
def open_session():
    """
    Open a suggestion session on a page.

    Request body:
        { subject_id?: str, text?: str, book_id?: str }
        Without text, the stored page text for subject_id is used.
    """
    data = _json_body()
    subject_id = data.get('subject_id') or ''
    book_id = data.get('book_id') or ''

    if data.get('text') is None:
        if not subject_id:
            raise InvalidInputError("Either text or subject_id is required", field='text')
        subject = _store().load(subject_id)
        text = subject.text
        book_id = book_id or subject.metadata.get('book_id', '')
    else:
        text = _text(data, 'text')

    session = DocumentSession(text, subject_id=subject_id, book_id=book_id, sink=_store())
    _registry().add(session)
    return jsonify({'success': True, 'session': session.to_dict()}), 201


@review_blueprint.route('/sessions/<session_id>', methods=['GET'])
@handle_review_errors
def get_session(session_id: str):
    include_units = request.args.get('units', 'true').lower() != 'false'
    session = _registry().get(session_id)
    return jsonify({'success': True, 'session': session.to_dict(include_units=include_units)})


@review_blueprint.route('/sessions/<session_id>', methods=['DELETE'])
@handle_review_errors
def close_session(session_id: str):
    _registry().close(session_id)
    return jsonify({'success': True})


@review_blueprint.route('/sessions/<session_id>/units/<unit_id>/suggestions', methods=['POST'])
@handle_review_errors
def propose_suggestion(session_id: str, unit_id: str):
    """
    Propose a new value for a unit.

    Request body:
        { value: str ('' proposes a deletion), user: str, reason?: str }
    """
    data = _json_body()
    user = _required(data, 'user')
    value = _text(data, 'value')

    session = _registry().get(session_id)
    suggestion = session.propose(unit_id, value, user, reason=data.get('reason'))
    return jsonify({'success': True, 'suggestion': suggestion.to_dict()}), 201


@review_blueprint.route('/sessions/<session_id>/units/<unit_id>/suggestions/<suggestion_id>/approve',
                        methods=['POST'])
@handle_review_errors
def approve_suggestion(session_id: str, unit_id: str, suggestion_id: str):
    data = _json_body()
    approver = _required(data, 'user')

    session = _registry().get(session_id)
    entry = session.approve(unit_id, suggestion_id, approver)
    return jsonify({
        'success': True,
        'history_entry': entry.to_dict(),
        'unit': session.get_unit(unit_id).to_dict()
    })


@review_blueprint.route('/sessions/<session_id>/units/<unit_id>/suggestions/<suggestion_id>/decline',
                        methods=['POST'])
@handle_review_errors
def decline_suggestion(session_id: str, unit_id: str, suggestion_id: str):
    data = _json_body()

    session = _registry().get(session_id)
    suggestion = session.decline(unit_id, suggestion_id, reviewer=data.get('user'))
    return jsonify({'success': True, 'suggestion': suggestion.to_dict()})


@review_blueprint.route('/sessions/<session_id>/units/<unit_id>/insert', methods=['POST'])
@handle_review_errors
def propose_insertion(session_id: str, unit_id: str):
    """
    Propose inserting characters after a unit.

    Request body:
        { value: str, user: str, reason?: str }
    """
    data = _json_body()
    user = _required(data, 'user')
    value = _required(data, 'value')

    session = _registry().get(session_id)
    suggestion = session.propose_insertion(unit_id, value, user, reason=data.get('reason'))
    return jsonify({
        'success': True,
        'suggestion': suggestion.to_dict(),
        'unit': session.get_unit(suggestion.unit_id).to_dict()
    }), 201


@review_blueprint.route('/sessions/<session_id>/history', methods=['GET'])
@handle_review_errors
def get_session_history(session_id: str):
    session = _registry().get(session_id)
    history = session.history()
    return jsonify({
        'success': True,
        'history': [entry.to_dict() for entry in history],
        'count': len(history)
    })


@review_blueprint.route('/sessions/<session_id>/submit', methods=['POST'])
@handle_review_errors
def submit_session(session_id: str):
    """
    Package the session's approved edits as a change request and submit it.

    Request body:
        { author_id: str, granularity?: 'line' | 'word' }
    """
    data = _json_body()
    author_id = _required(data, 'author_id')

    session = _registry().get(session_id)
    change_request = session.build_change_request(author_id, data.get('granularity', 'line'))
    ack_id = session.submit(change_request)

    return jsonify({
        'success': True,
        'ack_id': ack_id,
        'request': _request_payload(change_request)
    }), 201
