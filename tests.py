#!/usr/bin/env python3
"""
Tashkeel Review Test Suite v1.0.0
=================================
Validates the HTTP API: diff endpoints, change-request review and
suggestion sessions.

Run with: python -m pytest tests.py -v
Or standalone: python tests.py
"""

import json
import shutil
import sys
import tempfile
import unittest
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent))

# Import application
from app import create_app
from config_logging import VERSION, reset_config
from tashkeel_review.store import ReviewStore

SHADDA = '\N{ARABIC SHADDA}'
FATHA = '\N{ARABIC FATHA}'


class ApiTestCase(unittest.TestCase):
    """Base class: fresh app and database per test."""

    def setUp(self):
        """Set up test client."""
        reset_config()
        self.tmp_dir = tempfile.mkdtemp()
        self.store = ReviewStore(str(Path(self.tmp_dir) / 'review.db'))
        self.app = create_app(store=self.store)
        self.app.config['TESTING'] = True
        self.client = self.app.test_client()

    def tearDown(self):
        """Clean up."""
        shutil.rmtree(self.tmp_dir, ignore_errors=True)

    def post(self, path, payload=None):
        response = self.client.post(f'/api/review{path}', json=payload or {})
        return response, json.loads(response.data)

    def get(self, path):
        response = self.client.get(f'/api/review{path}')
        return response, json.loads(response.data)


class TestAppBasics(ApiTestCase):
    """Application wiring."""

    def test_version_endpoint(self):
        response = self.client.get('/api/version')
        self.assertEqual(response.status_code, 200)
        data = json.loads(response.data)
        self.assertEqual(data['version'], VERSION)

    def test_correlation_id_echoed(self):
        response = self.client.get('/api/version', headers={'X-Correlation-ID': 'abc123'})
        self.assertEqual(response.headers.get('X-Correlation-ID'), 'abc123')

    def test_max_content_length_configured(self):
        self.assertGreater(self.app.config['MAX_CONTENT_LENGTH'], 0)


class TestDiffEndpoints(ApiTestCase):
    """POST /diff and /line-diff."""

    def test_diacritic_diff(self):
        response, data = self.post('/diff', {
            'original': 'الحمد لله',
            'modified': 'الحمد لل' + SHADDA + 'ه'
        })
        self.assertEqual(response.status_code, 200)
        self.assertTrue(data['success'])
        self.assertEqual(data['diff']['level'], 'character')
        self.assertEqual(len(data['diff']['changes']), 1)
        self.assertEqual(data['diff']['changes'][0]['kind'], 'diacritic')

    def test_identical_texts(self):
        _, data = self.post('/diff', {'original': 'بسم الله', 'modified': 'بسم الله'})
        self.assertEqual(data['diff']['changes'], [])

    def test_missing_field(self):
        response, data = self.post('/diff', {'original': 'بسم الله'})
        self.assertEqual(response.status_code, 400)
        self.assertFalse(data['success'])
        self.assertEqual(data['error']['code'], 'INVALID_INPUT')
        self.assertEqual(data['error']['details']['field'], 'modified')
        self.assertIn('correlation_id', data['error'])

    def test_non_object_body(self):
        response = self.client.post('/api/review/diff', json=['a', 'b'])
        self.assertEqual(response.status_code, 400)

    def test_line_diff_modes(self):
        payload = {'original': 'a\nb\nc', 'modified': 'a\nc'}

        _, data = self.post('/line-diff', dict(payload, mode='lcs'))
        self.assertEqual([(c['type'], c['line_number']) for c in data['diff']['changes']],
                         [('delete', 2)])

        _, data = self.post('/line-diff', dict(payload, mode='positional'))
        self.assertEqual([(c['type'], c['line_number']) for c in data['diff']['changes']],
                         [('modify', 2), ('delete', 3)])

    def test_line_diff_unknown_mode(self):
        response, data = self.post('/line-diff', {'original': 'a', 'modified': 'b', 'mode': 'x'})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(data['error']['details']['field'], 'mode')


class TestChangeRequestApi(ApiTestCase):
    """Change request submission and review."""

    def setUp(self):
        super().setUp()
        self.post('/pages', {'subject_id': 'page-1', 'text': 'a\nb\nc', 'book_id': 'book-1'})

    def test_page_round_trip(self):
        response, data = self.get('/pages/page-1')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(data['page']['text'], 'a\nb\nc')
        self.assertEqual(data['page']['metadata']['book_id'], 'book-1')

    def test_unknown_page(self):
        response, data = self.get('/pages/missing')
        self.assertEqual(response.status_code, 404)
        self.assertEqual(data['error']['code'], 'NOT_FOUND')

    def test_create_from_stored_page(self):
        response, data = self.post('/requests', {
            'subject_id': 'page-1', 'author_id': 'UserA', 'modified': 'a\nb\nc\nd'
        })
        self.assertEqual(response.status_code, 201)
        request = data['request']
        self.assertEqual(request['status'], 'pending')
        self.assertEqual(request['book_id'], 'book-1')
        self.assertEqual(request['changes'], [
            {'type': 'insert', 'line_number': 4, 'content': 'd', 'original_content': ''}
        ])
        self.assertEqual(request['summary']['inserted_lines'], 1)
        self.assertEqual(request['resolved_text'], 'a\nb\nc')

    def test_author_required(self):
        response, data = self.post('/requests', {'subject_id': 'page-1', 'modified': 'x'})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(data['error']['details']['field'], 'author_id')

    def test_approve_then_approve_again(self):
        _, created = self.post('/requests', {
            'subject_id': 'page-1', 'author_id': 'UserA', 'modified': 'a\nB\nc'
        })
        request_id = created['request']['id']

        response, data = self.post(f'/requests/{request_id}/approve')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(data['request']['status'], 'approved')
        self.assertEqual(data['request']['resolved_text'], 'a\nB\nc')

        response, data = self.post(f'/requests/{request_id}/approve')
        self.assertEqual(response.status_code, 409)
        self.assertEqual(data['error']['code'], 'ALREADY_RESOLVED')

    def test_unknown_request(self):
        response, data = self.get('/requests/missing')
        self.assertEqual(response.status_code, 404)

    def test_unknown_action(self):
        _, created = self.post('/requests', {
            'subject_id': 'page-1', 'author_id': 'UserA', 'modified': 'a'
        })
        response, _ = self.post(f"/requests/{created['request']['id']}/merge")
        self.assertEqual(response.status_code, 404)

    def test_list_by_status(self):
        _, first = self.post('/requests', {
            'subject_id': 'page-1', 'author_id': 'UserA', 'modified': 'a'
        })
        self.post('/requests', {'subject_id': 'page-1', 'author_id': 'UserB', 'modified': 'b'})
        self.post(f"/requests/{first['request']['id']}/decline")

        _, data = self.get('/requests?subject_id=page-1')
        self.assertEqual(data['count'], 2)
        _, data = self.get('/requests?status=declined')
        self.assertEqual([r['id'] for r in data['requests']], [first['request']['id']])

        response, _ = self.get('/requests?status=unknown')
        self.assertEqual(response.status_code, 400)

    def test_word_review(self):
        _, created = self.post('/requests', {
            'subject_id': 'page-9', 'author_id': 'UserA', 'granularity': 'word',
            'original': 'ذهب الولد', 'modified': 'ذ' + FATHA + 'هب الولد'
        })
        request = created['request']
        self.assertEqual(request['granularity'], 'word')
        self.assertEqual(len(request['changes']), 1)
        word_id = request['changes'][0]['id']

        response, data = self.post(f"/requests/{request['id']}/words/{word_id}/approve")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(data['word_change']['status'], 'approved')
        self.assertEqual(data['request']['status'], 'approved')
        self.assertEqual(data['request']['resolved_text'], 'ذ' + FATHA + 'هب الولد')

        response, _ = self.post(f"/requests/{request['id']}/words/word-7/decline")
        self.assertEqual(response.status_code, 409)

    def test_word_reviews_accumulate(self):
        _, created = self.post('/requests', {
            'subject_id': 'page-9', 'author_id': 'UserA', 'granularity': 'word',
            'original': 'ذهب', 'modified': 'ذ' + FATHA + 'هب الولد'
        })
        request_id = created['request']['id']
        kinds = [c['kind'] for c in created['request']['changes']]
        self.assertEqual(kinds, ['diacritic', 'insert'])

        self.post(f"/requests/{request_id}/words/word-0/approve")
        _, data = self.post(f"/requests/{request_id}/words/word-1/decline")

        statuses = [c['status'] for c in data['request']['changes']]
        self.assertEqual(statuses, ['approved', 'declined'])
        self.assertEqual(data['request']['status'], 'approved')
        self.assertEqual(data['request']['resolved_text'], 'ذ' + FATHA + 'هب')


class TestSessionApi(ApiTestCase):
    """Suggestion sessions."""

    def open_session(self, text='بسم الله'):
        response, data = self.post('/sessions', {'subject_id': 'page-1', 'text': text})
        self.assertEqual(response.status_code, 201)
        return data['session']

    def test_open_from_stored_page(self):
        self.post('/pages', {'subject_id': 'page-2', 'text': 'لله'})
        _, data = self.post('/sessions', {'subject_id': 'page-2'})
        self.assertEqual(data['session']['original_text'], 'لله')

    def test_open_needs_text_or_subject(self):
        response, _ = self.post('/sessions', {})
        self.assertEqual(response.status_code, 400)

    def test_propose_approve_history(self):
        session = self.open_session()
        unit_id = session['units'][0]['id']
        base = f"/sessions/{session['id']}/units/{unit_id}/suggestions"

        response, data = self.post(base, {'value': 'ب' + FATHA, 'user': 'UserA'})
        self.assertEqual(response.status_code, 201)
        suggestion = data['suggestion']
        self.assertEqual(suggestion['change_kind'], 'diacritic')

        response, data = self.post(f"{base}/{suggestion['id']}/approve", {'user': 'Admin'})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(data['unit']['value'], 'ب' + FATHA)
        self.assertEqual(data['history_entry']['from_value'], 'ب')

        _, data = self.get(f"/sessions/{session['id']}/history")
        self.assertEqual(data['count'], 1)

        _, data = self.get(f"/sessions/{session['id']}?units=false")
        self.assertEqual(data['session']['current_text'], 'ب' + FATHA + 'سم الله')
        self.assertNotIn('units', data['session'])

    def test_decline_unknown_and_resolved(self):
        session = self.open_session()
        unit_id = session['units'][0]['id']
        base = f"/sessions/{session['id']}/units/{unit_id}/suggestions"

        response, _ = self.post(f"{base}/missing/decline", {'user': 'Admin'})
        self.assertEqual(response.status_code, 404)

        _, data = self.post(base, {'value': 'ت', 'user': 'UserA'})
        suggestion_id = data['suggestion']['id']
        response, _ = self.post(f"{base}/{suggestion_id}/decline", {'user': 'Admin'})
        self.assertEqual(response.status_code, 200)
        response, data = self.post(f"{base}/{suggestion_id}/approve", {'user': 'Admin'})
        self.assertEqual(response.status_code, 409)

    def test_insertion_and_submit(self):
        session = self.open_session('لله')
        unit_id = session['units'][1]['id']

        response, data = self.post(f"/sessions/{session['id']}/units/{unit_id}/insert",
                                   {'value': SHADDA, 'user': 'UserA'})
        self.assertEqual(response.status_code, 201)
        self.assertEqual(data['unit']['position'], '2.1')
        suggestion = data['suggestion']

        self.post(f"/sessions/{session['id']}/units/{suggestion['unit_id']}"
                  f"/suggestions/{suggestion['id']}/approve", {'user': 'Admin'})

        response, data = self.post(f"/sessions/{session['id']}/submit",
                                   {'author_id': 'UserA', 'granularity': 'word'})
        self.assertEqual(response.status_code, 201)
        self.assertTrue(data['ack_id'].startswith('ack-'))
        self.assertEqual(data['request']['modified_text'], 'لل' + SHADDA + 'ه')
        self.assertEqual(data['request']['changes'][0]['kind'], 'diacritic')

        _, listed = self.get('/requests?subject_id=page-1')
        self.assertEqual(listed['count'], 1)

    def test_close_session(self):
        session = self.open_session()
        response = self.client.delete(f"/api/review/sessions/{session['id']}")
        self.assertEqual(response.status_code, 200)
        response, _ = self.get(f"/sessions/{session['id']}")
        self.assertEqual(response.status_code, 404)


if __name__ == '__main__':
    unittest.main(verbosity=2)
