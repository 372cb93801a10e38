"""
Review Store v1.0.0
===================
Storage boundary for pages and submitted change requests.

The core depends only on the two protocols below; ReviewStore is the
SQLite-backed implementation used by the web app, InMemorySubmissionSink
the one used when nothing needs to survive the process.
"""

import json
import sqlite3
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Protocol, Tuple, TypeVar

from config_logging import NotFoundError, ProcessingError, get_config, get_logger
from .models import ChangeRequest, ReviewStatus

logger = get_logger('tashkeel_review.store')

SQLITE_TIMEOUT = 30.0  # Seconds a writer waits for the database lock

T = TypeVar('T')


@dataclass
class Subject:
    """Text of one page plus free-form metadata (book id, page number, ...)."""
    text: str
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {'text': self.text, 'metadata': dict(self.metadata)}


class SubjectLoader(Protocol):
    def load(self, subject_id: str) -> Subject:
        ...


class SubmissionSink(Protocol):
    def submit(self, request: ChangeRequest) -> str:
        ...


class InMemorySubmissionSink:
    """Keeps submitted requests in a dict; acknowledgement id is the request id."""

    def __init__(self):
        self.requests: Dict[str, ChangeRequest] = {}
        self._lock = threading.RLock()

    def submit(self, request: ChangeRequest) -> str:
        with self._lock:
            self.requests[request.id] = request
        logger.info(f"Change request {request.id} accepted in memory")
        return request.id


class ReviewStore:
    """SQLite store for pages and change requests."""

    def __init__(self, db_path: Optional[str] = None):
        """Initialize the database."""
        if db_path is None:
            db_path = get_config().db_path
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)

        self.db_path = str(db_path)
        self._init_database()

    def _connect(self) -> sqlite3.Connection:
        try:
            return sqlite3.connect(self.db_path, timeout=SQLITE_TIMEOUT)
        except sqlite3.Error as e:
            raise ProcessingError(f"Cannot open review database: {e}", stage='store')

    def _init_database(self):
        """Initialize database tables."""
        conn = self._connect()
        cursor = conn.cursor()

        # Pages - the text a session or request is computed against
        cursor.execute('''
            CREATE TABLE IF NOT EXISTS pages (
                subject_id TEXT PRIMARY KEY,
                book_id TEXT,
                text TEXT NOT NULL,
                metadata_json TEXT,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        ''')

        # Submitted change requests, stored whole as JSON
        cursor.execute('''
            CREATE TABLE IF NOT EXISTS change_requests (
                id TEXT PRIMARY KEY,
                subject_id TEXT NOT NULL,
                book_id TEXT,
                author_id TEXT,
                status TEXT NOT NULL,
                granularity TEXT NOT NULL,
                created_at TEXT,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                request_json TEXT NOT NULL
            )
        ''')

        cursor.execute('''
            CREATE INDEX IF NOT EXISTS idx_requests_subject
            ON change_requests(subject_id, status)
        ''')

        conn.commit()
        conn.close()
        logger.debug(f"Review database ready at {self.db_path}")

    # ------------------------------------------------------------------
    # Pages
    # ------------------------------------------------------------------

    def save_subject(self, subject_id: str, text: str,
                     metadata: Optional[Dict[str, Any]] = None) -> Subject:
        """Insert or replace the stored text of a page."""
        metadata = dict(metadata or {})
        conn = self._connect()
        cursor = conn.cursor()
        cursor.execute('''
            INSERT OR REPLACE INTO pages (subject_id, book_id, text, metadata_json, updated_at)
            VALUES (?, ?, ?, ?, ?)
        ''', (subject_id, metadata.get('book_id', ''), text,
              json.dumps(metadata, ensure_ascii=False),
              datetime.now(timezone.utc).isoformat()))
        conn.commit()
        conn.close()
        logger.info(f"Saved page {subject_id} ({len(text)} chars)")
        return Subject(text=text, metadata=metadata)

    def load(self, subject_id: str) -> Subject:
        """
        Load a page.

        Raises:
            NotFoundError: No page stored under subject_id
        """
        conn = self._connect()
        cursor = conn.cursor()
        cursor.execute('SELECT text, metadata_json FROM pages WHERE subject_id = ?', (subject_id,))
        row = cursor.fetchone()
        conn.close()

        if row is None:
            raise NotFoundError(f"Page {subject_id} not found", kind='subject', identifier=subject_id)
        return Subject(text=row[0], metadata=json.loads(row[1]) if row[1] else {})

    # ------------------------------------------------------------------
    # Change requests
    # ------------------------------------------------------------------

    def submit(self, request: ChangeRequest) -> str:
        """Persist a new change request; returns an acknowledgement id."""
        conn = self._connect()
        cursor = conn.cursor()
        try:
            cursor.execute('''
                INSERT INTO change_requests
                    (id, subject_id, book_id, author_id, status, granularity, created_at, request_json)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            ''', (request.id, request.subject_id, request.book_id, request.author_id,
                  request.status.value, request.granularity.value, request.timestamp,
                  json.dumps(request.to_dict(), ensure_ascii=False)))
            conn.commit()
        except sqlite3.IntegrityError as e:
            raise ProcessingError(f"Change request {request.id} already submitted: {e}", stage='submit')
        finally:
            conn.close()

        ack_id = f"ack-{uuid.uuid4().hex[:12]}"
        logger.info(f"Change request {request.id} stored for page {request.subject_id} ({ack_id})")
        return ack_id

    def get_request(self, request_id: str) -> ChangeRequest:
        """
        Load a stored change request.

        Raises:
            NotFoundError: Unknown request id
        """
        conn = self._connect()
        cursor = conn.cursor()
        cursor.execute('SELECT request_json FROM change_requests WHERE id = ?', (request_id,))
        row = cursor.fetchone()
        conn.close()

        if row is None:
            raise NotFoundError(f"Change request {request_id} not found",
                                kind='change_request', identifier=request_id)
        return ChangeRequest.from_dict(json.loads(row[0]))

    def list_requests(self, subject_id: Optional[str] = None,
                      status: Optional[str] = None) -> List[ChangeRequest]:
        """Stored requests, newest first, optionally filtered by page and status."""
        query = 'SELECT request_json FROM change_requests'
        clauses = []
        params: List[Any] = []
        if subject_id:
            clauses.append('subject_id = ?')
            params.append(subject_id)
        if status:
            clauses.append('status = ?')
            params.append(ReviewStatus(status).value)
        if clauses:
            query += ' WHERE ' + ' AND '.join(clauses)
        query += ' ORDER BY created_at DESC'

        conn = self._connect()
        cursor = conn.cursor()
        cursor.execute(query, params)
        rows = cursor.fetchall()
        conn.close()

        return [ChangeRequest.from_dict(json.loads(row[0])) for row in rows]

    def update_request(self, request: ChangeRequest) -> None:
        """
        Write back a reviewed request.

        Raises:
            NotFoundError: Request was never submitted
        """
        conn = self._connect()
        cursor = conn.cursor()
        cursor.execute('''
            UPDATE change_requests
            SET status = ?, request_json = ?, updated_at = ?
            WHERE id = ?
        ''', (request.status.value, json.dumps(request.to_dict(), ensure_ascii=False),
              datetime.now(timezone.utc).isoformat(), request.id))
        updated = cursor.rowcount
        conn.commit()
        conn.close()

        if not updated:
            raise NotFoundError(f"Change request {request.id} not found",
                                kind='change_request', identifier=request.id)
        logger.info(f"Change request {request.id} updated ({request.status.value})")

    def review_request(self, request_id: str,
                       action: Callable[[ChangeRequest], T]) -> Tuple[ChangeRequest, T]:
        """
        Apply a review action to a stored request inside one write transaction.

        The row is read, handed to action and written back while SQLite's
        write lock is held, so concurrent reviews of the same request are
        applied one after another and none overwrites another.

        Args:
            request_id: Stored request id
            action: Mutates the request; its return value is passed back

        Returns:
            (updated request, action result)

        Raises:
            NotFoundError: Unknown request id
            Anything action raises; the stored request is left untouched
        """
        conn = self._connect()
        conn.isolation_level = None
        try:
            conn.execute('BEGIN IMMEDIATE')
            row = conn.execute('SELECT request_json FROM change_requests WHERE id = ?',
                               (request_id,)).fetchone()
            if row is None:
                raise NotFoundError(f"Change request {request_id} not found",
                                    kind='change_request', identifier=request_id)

            request = ChangeRequest.from_dict(json.loads(row[0]))
            result = action(request)

            conn.execute('''
                UPDATE change_requests
                SET status = ?, request_json = ?, updated_at = ?
                WHERE id = ?
            ''', (request.status.value, json.dumps(request.to_dict(), ensure_ascii=False),
                  datetime.now(timezone.utc).isoformat(), request.id))
            conn.execute('COMMIT')
        except Exception:
            if conn.in_transaction:
                conn.execute('ROLLBACK')
            raise
        finally:
            conn.close()

        logger.info(f"Change request {request.id} reviewed ({request.status.value})")
        return request, result
