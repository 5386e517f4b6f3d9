#!/usr/bin/env python3
"""
Tests for the Flask routes in playlog_web.py.

Run with:
    python -m pytest tests/test_web.py
"""
import json
import os
import shutil
import subprocess
import sys
import tempfile
import textwrap
import unittest
from unittest.mock import MagicMock, patch

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import database
import playlog
from catalog_client import CatalogAPIError
from identity_client import IdentityError
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool


ALICE = {'email': 'alice@example.com', 'name': 'Alice', 'image': None}
BOB = {'email': 'bob@example.com', 'name': None, 'image': None}


class WebTestCase(unittest.TestCase):
    """Routes run against a shared in-memory database and a fresh tracker."""

    def setUp(self):
        import playlog_web
        self.web = playlog_web
        engine = create_engine('sqlite://', poolclass=StaticPool,
                               connect_args={"check_same_thread": False})
        database.Base.metadata.create_all(engine)
        self._patches = [
            patch('database.SessionLocal', sessionmaker(bind=engine)),
            patch.object(playlog_web, 'tracker', playlog.PlayLog(config={})),
        ]
        for p in self._patches:
            p.start()
        playlog_web.app.config['TESTING'] = True
        self.client = playlog_web.app.test_client()

    def tearDown(self):
        for p in reversed(self._patches):
            p.stop()

    def login(self, principal=ALICE):
        with self.client.session_transaction() as sess:
            sess['user'] = principal

    def add(self, **payload):
        body = {'game_id': 42, 'title': 'Chrono Trigger'}
        body.update(payload)
        return self.client.post('/api/games/add', json=body)


# ===========================================================================
# Authentication
# ===========================================================================

class TestAuthRequired(WebTestCase):

    def test_add_requires_login(self):
        resp = self.add()
        self.assertEqual(resp.status_code, 401)
        self.assertEqual(json.loads(resp.data)['error'], 'Unauthorized')

    def test_collection_requires_login(self):
        self.assertEqual(self.client.get('/api/games/collection').status_code, 401)

    def test_display_name_requires_login(self):
        self.assertEqual(self.client.get('/api/user/display-name').status_code, 401)
        resp = self.client.put('/api/user/display-name', json={'display_name': 'Chau'})
        self.assertEqual(resp.status_code, 401)

    def test_current_without_session(self):
        self.assertEqual(self.client.get('/api/auth/current').status_code, 401)

    def test_current_with_session(self):
        self.login()
        data = json.loads(self.client.get('/api/auth/current').data)
        self.assertEqual(data['user']['email'], ALICE['email'])
        self.assertIsNone(data['user']['display_name'])

    def test_logout_clears_session(self):
        self.login()
        self.assertEqual(self.client.post('/api/auth/logout').status_code, 200)
        self.assertEqual(self.client.get('/api/games/collection').status_code, 401)

    def test_status(self):
        data = json.loads(self.client.get('/api/status').data)
        self.assertEqual(data['status'], 'ok')
        self.assertFalse(data['logged_in'])
        self.assertFalse(data['catalog_enabled'])

    def test_placeholder_secret_replaced(self):
        secret = self.web._session_secret({'secret_key': 'change-me'})
        self.assertNotEqual(secret, 'change-me')
        self.assertEqual(len(secret), 24)

    def test_real_secret_kept(self):
        self.assertEqual(self.web._session_secret({'secret_key': 's3cr3t'}), 's3cr3t')


class TestOAuthRoutes(WebTestCase):

    def setUp(self):
        super().setUp()
        self.identity = MagicMock()
        self.identity.build_auth_url.return_value = 'https://accounts.example/auth'
        self.web.tracker.identity_client = self.identity

    def test_login_redirects_with_state(self):
        resp = self.client.get('/api/auth/login')
        self.assertEqual(resp.status_code, 302)
        self.assertEqual(resp.headers['Location'], 'https://accounts.example/auth')
        with self.client.session_transaction() as sess:
            state = sess['oauth_state']
        self.assertEqual(self.identity.build_auth_url.call_args[0][1], state)

    def test_callback_stores_principal(self):
        self.identity.exchange_code.return_value = dict(ALICE)
        with self.client.session_transaction() as sess:
            sess['oauth_state'] = 'abc'
        resp = self.client.get('/api/auth/callback?state=abc&code=xyz')
        self.assertEqual(resp.status_code, 302)
        with self.client.session_transaction() as sess:
            self.assertEqual(sess['user']['email'], ALICE['email'])

    def test_callback_rejects_bad_state(self):
        with self.client.session_transaction() as sess:
            sess['oauth_state'] = 'abc'
        resp = self.client.get('/api/auth/callback?state=nope&code=xyz')
        self.assertEqual(resp.status_code, 401)
        self.identity.exchange_code.assert_not_called()

    def test_callback_provider_failure(self):
        self.identity.exchange_code.side_effect = IdentityError('denied')
        with self.client.session_transaction() as sess:
            sess['oauth_state'] = 'abc'
        resp = self.client.get('/api/auth/callback?state=abc&code=xyz')
        self.assertEqual(resp.status_code, 401)

    def test_login_unconfigured(self):
        self.web.tracker.identity_client = None
        self.assertEqual(self.client.get('/api/auth/login').status_code, 503)


# ===========================================================================
# Add game / collection
# ===========================================================================

class TestAddGameRoute(WebTestCase):

    def setUp(self):
        super().setUp()
        self.login()

    def test_add_success(self):
        resp = self.add(rating=5, played_at='2024-02-01')
        self.assertEqual(resp.status_code, 200)
        game = json.loads(resp.data)['game']
        self.assertEqual(game['platform'], 'Unknown Platform')
        self.assertEqual(game['rating'], 5)
        self.assertEqual(game['played_at'], '2024-02-01T00:00:00')

    def test_duplicate_is_conflict(self):
        self.add()
        resp = self.add()
        self.assertEqual(resp.status_code, 409)
        self.assertEqual(json.loads(resp.data)['error'], 'Game already in collection')

    def test_missing_title_is_bad_request(self):
        resp = self.add(title='')
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(json.loads(resp.data)['field'], 'title')

    def test_no_body_is_bad_request(self):
        resp = self.client.post('/api/games/add', data='not json')
        self.assertEqual(resp.status_code, 400)

    def test_second_user_can_add_same_game(self):
        self.add()
        self.login(BOB)
        self.assertEqual(self.add().status_code, 200)


class TestCollectionRoute(WebTestCase):

    def setUp(self):
        super().setUp()
        self.login()

    def test_unknown_user_is_not_found(self):
        resp = self.client.get('/api/games/collection')
        self.assertEqual(resp.status_code, 404)

    def test_sorted_by_title(self):
        self.add(game_id=1, title='Zelda')
        self.add(game_id=2, title='metroid')
        data = json.loads(self.client.get('/api/games/collection?sort=title').data)
        self.assertEqual([g['title'] for g in data['games']], ['metroid', 'Zelda'])
        self.assertEqual(data['total'], 2)

    def test_default_newest_first(self):
        self.add(game_id=1, title='Zelda')
        self.add(game_id=2, title='metroid')
        data = json.loads(self.client.get('/api/games/collection').data)
        self.assertEqual([g['title'] for g in data['games']], ['metroid', 'Zelda'])

    def test_bad_sort(self):
        self.add()
        resp = self.client.get('/api/games/collection?sort=shuffle')
        self.assertEqual(resp.status_code, 400)


# ===========================================================================
# Feed
# ===========================================================================

class TestFeedRoutes(WebTestCase):

    def test_empty_feed(self):
        data = json.loads(self.client.get('/api/games/all-users').data)
        self.assertEqual(data['games'], [])
        self.assertEqual(data['stats']['average_games_per_user'], 0)

    def test_feed_stats(self):
        self.login(ALICE)
        self.add(game_id=1, title='A')
        self.add(game_id=2, title='B')
        self.login(BOB)
        self.add(game_id=1, title='A')
        self.add(game_id=3, title='C')
        data = json.loads(self.client.get('/api/games/all-users').data)
        self.assertEqual(data['total'], 4)
        self.assertEqual(data['unique_users'], 2)
        self.assertEqual(data['stats']['average_games_per_user'], 2)
        self.assertEqual(data['games'][0]['user']['display_name'], 'Anonymous')

    def test_recent_digest(self):
        self.login()
        for i in range(12):
            self.add(game_id=i + 1, title=f'Game {i}')
        data = json.loads(self.client.get('/api/games/recent').data)
        self.assertEqual(data['total'], 10)
        self.assertEqual(data['games'][0]['title'], 'Game 11')


# ===========================================================================
# Display name
# ===========================================================================

class TestDisplayNameRoutes(WebTestCase):

    def setUp(self):
        super().setUp()
        self.login()

    def test_initially_needs_setup(self):
        data = json.loads(self.client.get('/api/user/display-name').data)
        self.assertIsNone(data['display_name'])
        self.assertTrue(data['needs_setup'])

    def test_set_and_get(self):
        resp = self.client.put('/api/user/display-name', json={'display_name': ' Chau '})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(json.loads(resp.data)['display_name'], 'Chau')
        data = json.loads(self.client.get('/api/user/display-name').data)
        self.assertEqual(data['display_name'], 'Chau')
        self.assertFalse(data['needs_setup'])

    def test_whitespace_rejected(self):
        resp = self.client.put('/api/user/display-name', json={'display_name': '  '})
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(json.loads(resp.data)['field'], 'display_name')

    def test_too_long_rejected(self):
        resp = self.client.put('/api/user/display-name', json={'display_name': 'x' * 51})
        self.assertEqual(resp.status_code, 400)


# ===========================================================================
# Search
# ===========================================================================

class TestSearchRoute(WebTestCase):

    def test_missing_query(self):
        self.assertEqual(self.client.get('/api/games/search').status_code, 400)

    def test_unconfigured_catalog(self):
        resp = self.client.get('/api/games/search?q=zelda')
        self.assertEqual(resp.status_code, 503)

    def test_search_results(self):
        catalog = MagicMock()
        catalog.search_games.return_value = [{'game_id': 1, 'title': 'Zelda'}]
        self.web.tracker.catalog_service._client = catalog
        data = json.loads(self.client.get('/api/games/search?q=zelda&limit=3').data)
        self.assertEqual(data['total'], 1)
        catalog.search_games.assert_called_once_with('zelda', limit=3)

    def test_upstream_failure(self):
        catalog = MagicMock()
        catalog.search_games.side_effect = CatalogAPIError('boom')
        self.web.tracker.catalog_service._client = catalog
        resp = self.client.get('/api/games/search?q=zelda')
        self.assertEqual(resp.status_code, 503)
        self.assertIn('error', json.loads(resp.data))


# ===========================================================================
# Schema creation on import
# ===========================================================================

PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))

_FRESH_IMPORT_SCRIPT = textwrap.dedent("""
    import sys
    import playlog_web
    resp = playlog_web.app.test_client().get('/api/games/all-users')
    sys.stdout.write(str(resp.status_code))
""")


class TestSchemaCreatedOnImport(unittest.TestCase):
    """A WSGI host imports the module without calling main()."""

    def setUp(self):
        self.tmp = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.tmp, ignore_errors=True)

    def test_fresh_database_serves_feed(self):
        db_path = os.path.join(self.tmp, 'fresh.db')
        env = dict(os.environ)
        env['DATABASE_URL'] = 'sqlite:///' + db_path
        env['PYTHONPATH'] = PROJECT_ROOT + os.pathsep + env.get('PYTHONPATH', '')
        result = subprocess.run([sys.executable, '-c', _FRESH_IMPORT_SCRIPT],
                                cwd=self.tmp, env=env, capture_output=True,
                                text=True, timeout=60)
        self.assertEqual(result.returncode, 0, result.stderr)
        self.assertEqual(result.stdout.strip(), '200')
        self.assertTrue(os.path.exists(db_path))


if __name__ == '__main__':
    unittest.main()
