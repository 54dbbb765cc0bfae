"""Default configuration, read from the environment."""

import os
import tempfile

SESSION_BACKEND = os.environ.get('SESSION_BACKEND', 'kv')
"""
One of ``kv`` (Redis), ``embedded`` (LMDB), ``document`` (MongoDB) or
``graph`` (Dgraph).
"""

REDIS_HOST = os.environ.get('REDIS_HOST', 'localhost')
REDIS_PORT = os.environ.get('REDIS_PORT', '6379')
REDIS_DATABASE = os.environ.get('REDIS_DATABASE', '0')
REDIS_PASSWORD = os.environ.get('REDIS_PASSWORD')
REDIS_CLUSTER = os.environ.get('REDIS_CLUSTER', '0')

EMBEDDED_PATH = os.environ.get(
    'EMBEDDED_PATH', os.path.join(tempfile.gettempdir(), 'sessionstores'))
"""Directory of the embedded (LMDB) key-value database."""
EMBEDDED_MAP_SIZE = os.environ.get('EMBEDDED_MAP_SIZE', str(2 ** 30))

MONGO_URI = os.environ.get('MONGO_URI', 'mongodb://localhost:27017')
MONGO_DATABASE = os.environ.get('MONGO_DATABASE', 'sessions')
MONGO_COLLECTION = os.environ.get('MONGO_COLLECTION', 'store')

DGRAPH_ADDRESS = os.environ.get('DGRAPH_ADDRESS', 'localhost:9080')
DGRAPH_DECLARE_SCHEMA = os.environ.get('DGRAPH_DECLARE_SCHEMA', '0')

SESSION_AUTH_KEYS = os.environ.get('SESSION_AUTH_KEYS', '')
"""Comma-separated authentication keys, newest first."""

SESSION_ENCRYPTION_KEYS = os.environ.get('SESSION_ENCRYPTION_KEYS', '')
"""
Comma-separated encryption keys, matched by position to the auth keys.

Leave a position empty (or omit trailing positions) to disable encryption
for that pair.
"""

SESSION_MAX_AGE = os.environ.get('SESSION_MAX_AGE', str(86400 * 30))
SESSION_MAX_LENGTH = os.environ.get('SESSION_MAX_LENGTH', '4096')
SESSION_STORAGE_TIMEOUT = os.environ.get('SESSION_STORAGE_TIMEOUT', '5')

SESSIONSTORE_COOKIE_PATH = os.environ.get('SESSIONSTORE_COOKIE_PATH', '/')
SESSIONSTORE_COOKIE_DOMAIN = os.environ.get('SESSIONSTORE_COOKIE_DOMAIN')
SESSIONSTORE_COOKIE_SECURE = \
    os.environ.get('SESSIONSTORE_COOKIE_SECURE', '0')
SESSIONSTORE_COOKIE_HTTPONLY = \
    os.environ.get('SESSIONSTORE_COOKIE_HTTPONLY', '1')
SESSIONSTORE_COOKIE_SAMESITE = \
    os.environ.get('SESSIONSTORE_COOKIE_SAMESITE', 'Lax')
"""
Cookie attributes. Flask owns ``SESSION_COOKIE_*`` for its own session
cookie, so these use a separate prefix.
"""

SESSION_JSON_LOGGING = os.environ.get('SESSION_JSON_LOGGING', '0')
LOGLEVEL = os.environ.get('LOGLEVEL', 20)
