"""
Tests for the Review Store
==========================
"""

import threading

import pytest

from config_logging import AlreadyResolvedError, NotFoundError, ProcessingError
from tashkeel_review.aggregator import ChangeRequestBuilder, approve_request, approve_word_change
from tashkeel_review.classifier import ChangeKind
from tashkeel_review.models import ReviewStatus
from tashkeel_review.store import InMemorySubmissionSink, ReviewStore, Subject

FATHA = '\N{ARABIC FATHA}'


@pytest.fixture
def store(tmp_path) -> ReviewStore:
    return ReviewStore(str(tmp_path / 'review.db'))


@pytest.fixture
def builder() -> ChangeRequestBuilder:
    return ChangeRequestBuilder()


class TestPages:
    """Subject loading."""

    def test_save_and_load(self, store):
        store.save_subject('page-1', 'بسم الله', {'book_id': 'book-1', 'page': 1})
        subject = store.load('page-1')
        assert isinstance(subject, Subject)
        assert subject.text == 'بسم الله'
        assert subject.metadata == {'book_id': 'book-1', 'page': 1}

    def test_save_replaces(self, store):
        store.save_subject('page-1', 'old')
        store.save_subject('page-1', 'new')
        assert store.load('page-1').text == 'new'

    def test_unknown_page(self, store):
        with pytest.raises(NotFoundError):
            store.load('missing')

    def test_creates_parent_directory(self, tmp_path):
        store = ReviewStore(str(tmp_path / 'nested' / 'dir' / 'review.db'))
        store.save_subject('page-1', 'text')
        assert (tmp_path / 'nested' / 'dir' / 'review.db').exists()


class TestChangeRequests:
    """Submission sink and review persistence."""

    def test_submit_and_get(self, store, builder):
        request = builder.build('a\nb', 'a\nB', 'UserA', 'page-1', book_id='book-1')

        ack = store.submit(request)

        assert ack.startswith('ack-')
        loaded = store.get_request(request.id)
        assert loaded.id == request.id
        assert loaded.book_id == 'book-1'
        assert loaded.status is ReviewStatus.PENDING
        assert loaded.line_changes == request.line_changes
        assert loaded.original_text == 'a\nb'

    def test_double_submit_rejected(self, store, builder):
        request = builder.build('a', 'b', 'UserA', 'page-1')
        store.submit(request)
        with pytest.raises(ProcessingError):
            store.submit(request)

    def test_unknown_request(self, store):
        with pytest.raises(NotFoundError):
            store.get_request('missing')

    def test_list_filters(self, store, builder):
        store.submit(builder.build('a', 'b', 'UserA', 'page-1'))
        store.submit(builder.build('a', 'c', 'UserA', 'page-1'))
        other = builder.build('a', 'd', 'UserB', 'page-2')
        store.submit(other)

        assert len(store.list_requests()) == 3
        assert len(store.list_requests(subject_id='page-1')) == 2
        assert [r.id for r in store.list_requests(subject_id='page-2')] == [other.id]
        assert store.list_requests(status='approved') == []

    def test_update_request(self, store, builder):
        request = builder.build('ذهب', 'ذ' + FATHA + 'هب', 'UserA', 'page-1', granularity='word')
        store.submit(request)

        approve_word_change(request, 'word-0')
        store.update_request(request)

        loaded = store.get_request(request.id)
        assert loaded.status is ReviewStatus.APPROVED
        assert loaded.word_changes[0].status is ReviewStatus.APPROVED
        assert loaded.word_changes[0].character_changes[0].kind is ChangeKind.DIACRITIC
        assert [r.id for r in store.list_requests(status='approved')] == [request.id]

    def test_update_unknown_request(self, store, builder):
        request = builder.build('a', 'b', 'UserA', 'page-1')
        with pytest.raises(NotFoundError):
            store.update_request(request)


class TestReviewRequest:
    """Transactional review of stored requests."""

    @pytest.fixture
    def stored(self, store, builder):
        # Eight words, one fatha edit in each
        words = ['كتب', 'ذهب', 'درس', 'لعب', 'رسم', 'شرب', 'فتح', 'جلس']
        request = builder.build(' '.join(words), ' '.join(w[0] + FATHA + w[1:] for w in words),
                                'UserA', 'page-1', granularity='word')
        store.submit(request)
        return request

    def test_reviews_build_on_each_other(self, store, stored):
        store.review_request(stored.id, lambda r: approve_word_change(r, 'word-0'))
        request, change = store.review_request(stored.id, lambda r: approve_word_change(r, 'word-1'))

        assert change.id == 'word-1'
        assert [w.status for w in request.word_changes[:2]] == [ReviewStatus.APPROVED] * 2
        loaded = store.get_request(stored.id)
        assert [w.status for w in loaded.word_changes[:2]] == [ReviewStatus.APPROVED] * 2

    def test_concurrent_word_approvals_all_persist(self, store, stored):
        word_ids = [w.id for w in stored.word_changes]
        start = threading.Barrier(len(word_ids))
        errors = []

        def review(word_id):
            start.wait()
            try:
                store.review_request(stored.id, lambda r: approve_word_change(r, word_id))
            except Exception as e:  # surfaced through the assertion below
                errors.append(e)

        threads = [threading.Thread(target=review, args=(word_id,)) for word_id in word_ids]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        loaded = store.get_request(stored.id)
        assert all(w.status is ReviewStatus.APPROVED for w in loaded.word_changes)
        assert loaded.status is ReviewStatus.APPROVED

    def test_failed_action_leaves_request_untouched(self, store, stored):
        def approve_then_fail(request):
            approve_word_change(request, 'word-0')
            approve_word_change(request, 'word-0')

        with pytest.raises(AlreadyResolvedError):
            store.review_request(stored.id, approve_then_fail)

        loaded = store.get_request(stored.id)
        assert loaded.word_changes[0].status is ReviewStatus.PENDING

    def test_unknown_request(self, store):
        with pytest.raises(NotFoundError):
            store.review_request('missing', approve_request)


class TestInMemorySink:
    """InMemorySubmissionSink."""

    def test_submit(self, builder):
        sink = InMemorySubmissionSink()
        request = builder.build('a', 'b', 'UserA', 'page-1')
        assert sink.submit(request) == request.id
        assert sink.requests == {request.id: request}
