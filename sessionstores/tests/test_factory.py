"""Tests for :mod:`sessionstores.factory`."""

from unittest import TestCase, mock
import os
import shutil
import tempfile

from flask import Flask
from werkzeug.wrappers import Request, Response

from .. import factory
from ..domain import KeyPair
from ..exceptions import ConfigError
from ..storage.embedded import EmbeddedStorage
from ..store import SessionStore

AUTH = 'a' * 32
ENC = 'k' * 16


class TestKeyPairsFromConfig(TestCase):
    """Key pairs are built from comma-separated config values."""

    def test_single_pair(self):
        """One auth key and one encryption key."""
        pairs = factory.key_pairs_from_config({
            'SESSION_AUTH_KEYS': AUTH,
            'SESSION_ENCRYPTION_KEYS': ENC
        })
        self.assertEqual(pairs, [KeyPair(AUTH.encode(), ENC.encode())])

    def test_rotation(self):
        """Encryption keys may be omitted for trailing pairs."""
        pairs = factory.key_pairs_from_config({
            'SESSION_AUTH_KEYS': f'{AUTH}, {"b" * 32}',
            'SESSION_ENCRYPTION_KEYS': ENC
        })
        self.assertEqual(pairs, [KeyPair(AUTH.encode(), ENC.encode()),
                                 KeyPair(b'b' * 32, None)])

    def test_no_auth_keys(self):
        """Authentication keys are required."""
        with self.assertRaises(ConfigError):
            factory.key_pairs_from_config({'SESSION_AUTH_KEYS': ''})

    def test_too_many_encryption_keys(self):
        """Every encryption key needs an authentication key."""
        with self.assertRaises(ConfigError):
            factory.key_pairs_from_config({
                'SESSION_AUTH_KEYS': AUTH,
                'SESSION_ENCRYPTION_KEYS': f'{ENC},{ENC}'
            })


class TestOptionsFromConfig(TestCase):
    """Cookie options are built from config."""

    def test_options(self):
        """Flags and numbers are parsed from strings."""
        options = factory.options_from_config({
            'SESSIONSTORE_COOKIE_PATH': '/app',
            'SESSIONSTORE_COOKIE_DOMAIN': 'example.com',
            'SESSION_MAX_AGE': '3600',
            'SESSIONSTORE_COOKIE_SECURE': '1',
            'SESSIONSTORE_COOKIE_HTTPONLY': '0',
            'SESSIONSTORE_COOKIE_SAMESITE': 'Strict'
        })
        self.assertEqual(options.path, '/app')
        self.assertEqual(options.domain, 'example.com')
        self.assertEqual(options.max_age, 3600)
        self.assertTrue(options.secure)
        self.assertFalse(options.http_only)
        self.assertEqual(options.same_site, 'Strict')


class TestGetStore(TestCase):
    """Stores are built from application config."""

    def setUp(self):
        """Create an app with session config."""
        self.app = Flask('test')
        self.app.config['SESSION_AUTH_KEYS'] = AUTH
        factory.init_app(self.app)

    def test_init_app(self):
        """Defaults are set without clobbering existing config."""
        self.assertEqual(self.app.config['SESSION_AUTH_KEYS'], AUTH)
        self.assertEqual(self.app.config['SESSION_BACKEND'], 'kv')
        self.assertEqual(self.app.config['SESSIONSTORE_COOKIE_PATH'], '/')

    @mock.patch(f'{factory.__name__}.app_logging')
    def test_init_app_json_logging(self, mock_logging):
        """JSON logging is configured on request."""
        app = Flask('test')
        app.config['SESSION_JSON_LOGGING'] = '1'
        app.config['LOGLEVEL'] = '10'
        factory.init_app(app)
        mock_logging.setup_logger.assert_called_once_with(10)

    @mock.patch(f'{factory.__name__}.KeyValueStorage')
    def test_kv_store(self, mock_storage):
        """The key-value backend is configured from Redis settings."""
        self.app.config.update({'REDIS_HOST': 'redis', 'REDIS_PORT': '1234',
                                'REDIS_DATABASE': '4', 'REDIS_CLUSTER': '1',
                                'SESSION_MAX_AGE': '60'})
        store = factory.get_store(self.app)
        self.assertIsInstance(store, SessionStore)
        self.assertIs(store.storage, mock_storage.return_value)
        _, kwargs = mock_storage.call_args
        self.assertEqual(kwargs['host'], 'redis')
        self.assertEqual(kwargs['port'], 1234)
        self.assertEqual(kwargs['db'], 4)
        self.assertTrue(kwargs['cluster'])
        self.assertEqual(kwargs['timeout'], 5.0)
        self.assertEqual(store.options.max_age, 60)
        self.assertEqual(store.codecs[0].max_age, 60)

    @mock.patch(f'{factory.__name__}.DocumentStorage')
    def test_document_store(self, mock_storage):
        """The document backend is configured from MongoDB settings."""
        self.app.config.update({'SESSION_BACKEND': 'document',
                                'MONGO_URI': 'mongodb://mongo:27017'})
        store = factory.get_store(self.app)
        self.assertIs(store.storage, mock_storage.return_value)
        _, kwargs = mock_storage.call_args
        self.assertEqual(kwargs['uri'], 'mongodb://mongo:27017')
        self.assertEqual(kwargs['database'], 'sessions')
        self.assertEqual(kwargs['collection'], 'store')

    @mock.patch(f'{factory.__name__}.GraphStorage')
    def test_graph_store(self, mock_storage):
        """The graph backend is configured from Dgraph settings."""
        self.app.config.update({'SESSION_BACKEND': 'graph',
                                'DGRAPH_ADDRESS': 'dgraph:9080',
                                'DGRAPH_DECLARE_SCHEMA': '1'})
        store = factory.get_store(self.app)
        self.assertIs(store.storage, mock_storage.return_value)
        _, kwargs = mock_storage.call_args
        self.assertEqual(kwargs['address'], 'dgraph:9080')
        self.assertTrue(kwargs['declare_schema'])

    def test_unknown_backend(self):
        """An unknown backend is a configuration error."""
        self.app.config['SESSION_BACKEND'] = 'floppy'
        with self.assertRaises(ConfigError):
            factory.get_store(self.app)

    @mock.patch(f'{factory.__name__}.KeyValueStorage')
    def test_create_kv_store(self, mock_storage):
        """Stores can be created without an application."""
        store = factory.create_kv_store([(AUTH.encode(),)], host='redis')
        self.assertIs(store.storage, mock_storage.return_value)
        self.assertEqual(mock_storage.call_args[1]['host'], 'redis')


class TestEmbeddedStore(TestCase):
    """The embedded backend is opened at the configured directory."""

    def setUp(self):
        """Create an app that uses a temporary database directory."""
        self.path = tempfile.mkdtemp()
        self.addCleanup(shutil.rmtree, self.path, True)
        self.app = Flask('test')
        self.app.config.update({
            'SESSION_AUTH_KEYS': AUTH,
            'SESSION_BACKEND': 'embedded',
            'EMBEDDED_PATH': os.path.join(self.path, 'sessions'),
            'EMBEDDED_MAP_SIZE': str(2 ** 20)
        })
        factory.init_app(self.app)

    def test_embedded_store(self):
        """Sessions are saved to and loaded from the directory."""
        store = factory.get_store(self.app)
        self.addCleanup(store.close)
        self.assertIsInstance(store.storage, EmbeddedStorage)
        self.assertTrue(os.path.isdir(os.path.join(self.path, 'sessions')))

        session, _ = store.new(Request.from_values(), 'app')
        session.values['user'] = 'u1'
        store.save(Request.from_values(), Response(), session)
        loaded = store.load_by_id('app', session.session_id)
        self.assertEqual(loaded.values, {'user': 'u1'})

    def test_create_embedded_store(self):
        """Stores can be created without an application."""
        store = factory.create_embedded_store(
            [(AUTH.encode(),)], os.path.join(self.path, 'other'),
            map_size=2 ** 20
        )
        self.addCleanup(store.close)
        self.assertEqual(store.storage.path, os.path.join(self.path, 'other'))

    def test_default_path(self):
        """Without a configured path, the database is in the temp dir."""
        self.assertEqual(factory.defaults.EMBEDDED_PATH,
                         os.environ.get('EMBEDDED_PATH', os.path.join(
                             tempfile.gettempdir(), 'sessionstores')))


class TestCookieConfig(TestCase):
    """Cookie settings from config reach the cookie that is written."""

    def _set_cookie(self, app: Flask) -> str:
        with mock.patch(f'{factory.__name__}.KeyValueStorage'):
            store = factory.get_store(app)
        session, _ = store.new(Request.from_values(), 'app')
        response = Response()
        store.save(Request.from_values(), response, session)
        return response.headers['Set-Cookie']

    def test_flask_does_not_shadow_defaults(self):
        """Defaults apply even though Flask has its own cookie settings."""
        app = Flask('test')
        app.config['SESSION_AUTH_KEYS'] = AUTH
        with mock.patch.object(factory.defaults,
                               'SESSIONSTORE_COOKIE_SAMESITE', 'Strict'), \
                mock.patch.object(factory.defaults,
                                  'SESSIONSTORE_COOKIE_SECURE', '1'):
            factory.init_app(app)
        header = self._set_cookie(app)
        self.assertIn('SameSite=Strict', header)
        self.assertIn('Secure', header)
        self.assertIn('Path=/', header)
        self.assertIn('HttpOnly', header)

    def test_app_config(self):
        """Values set on the application are not overwritten."""
        app = Flask('test')
        app.config.update({'SESSION_AUTH_KEYS': AUTH,
                           'SESSIONSTORE_COOKIE_SAMESITE': 'None',
                           'SESSIONSTORE_COOKIE_PATH': '/app'})
        factory.init_app(app)
        header = self._set_cookie(app)
        self.assertIn('SameSite=None', header)
        self.assertIn('Path=/app', header)


class TestCurrentStore(TestCase):
    """One store is built per application and closed explicitly."""

    def setUp(self):
        """Create an app with session config."""
        self.app = Flask('test')
        self.app.config['SESSION_AUTH_KEYS'] = AUTH
        factory.init_app(self.app)

    @mock.patch(f'{factory.__name__}.KeyValueStorage')
    def test_one_store_per_app(self, mock_storage):
        """The store outlives application contexts."""
        stores = []
        for _ in range(3):
            with self.app.app_context():
                stores.append(factory.current_store())
                self.assertIs(factory.current_store(), stores[-1])
        self.assertEqual(mock_storage.call_count, 1)
        self.assertTrue(all(store is stores[0] for store in stores))
        self.assertEqual(mock_storage.return_value.close.call_count, 0)

        factory.close_store(self.app)
        mock_storage.return_value.close.assert_called_once_with()
        factory.close_store(self.app)
        self.assertEqual(mock_storage.return_value.close.call_count, 1)

        with self.app.app_context():
            self.assertIsNot(factory.current_store(), stores[0])
        self.assertEqual(mock_storage.call_count, 2)
        factory.close_store(self.app)

    @mock.patch(f'{factory.__name__}.KeyValueStorage')
    def test_separate_apps(self, mock_storage):
        """Each application gets its own store."""
        other = Flask('other')
        other.config['SESSION_AUTH_KEYS'] = AUTH
        factory.init_app(other)
        with self.app.app_context():
            first = factory.current_store()
        with other.app_context():
            second = factory.current_store()
        self.assertIsNot(first, second)
        self.assertEqual(mock_storage.call_count, 2)
        factory.close_store(self.app)
        factory.close_store(other)

    @mock.patch(f'{factory.__name__}.get_store')
    def test_without_app_context(self, mock_get_store):
        """Outside of an application, one store is built and reused."""
        self.addCleanup(factory.close_store)
        store = factory.current_store()
        self.assertIs(factory.current_store(), store)
        self.assertEqual(mock_get_store.call_count, 1)
        factory.close_store()
        mock_get_store.return_value.close.assert_called_once_with()
