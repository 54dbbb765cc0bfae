"""Construct session stores from application configuration."""

from typing import Any, Iterable, List, Mapping, Optional, Tuple, Union

from flask import Flask, current_app, has_app_context

from . import app_logging, config as defaults
from .domain import CookieOptions, KeyPair
from .exceptions import ConfigError
from .storage import Storage, DEFAULT_TIMEOUT
from .storage.documents import DocumentStorage
from .storage.embedded import EmbeddedStorage, DEFAULT_MAP_SIZE
from .storage.graph import GraphStorage
from .storage.kv import KeyValueStorage
from .store import SessionStore

import logging
import threading

logger = logging.getLogger(__name__)

KeyPairs = Iterable[Union[KeyPair, Tuple]]

EXTENSION_KEY = 'sessionstores'

_default_store: Optional[SessionStore] = None
_lock = threading.Lock()

_CONFIG_KEYS = [
    'SESSION_BACKEND', 'REDIS_HOST', 'REDIS_PORT', 'REDIS_DATABASE',
    'REDIS_PASSWORD', 'REDIS_CLUSTER', 'EMBEDDED_PATH',
    'EMBEDDED_MAP_SIZE', 'MONGO_URI', 'MONGO_DATABASE',
    'MONGO_COLLECTION', 'DGRAPH_ADDRESS', 'DGRAPH_DECLARE_SCHEMA',
    'SESSION_AUTH_KEYS', 'SESSION_ENCRYPTION_KEYS', 'SESSION_MAX_AGE',
    'SESSION_MAX_LENGTH', 'SESSION_STORAGE_TIMEOUT',
    'SESSIONSTORE_COOKIE_PATH', 'SESSIONSTORE_COOKIE_DOMAIN',
    'SESSIONSTORE_COOKIE_SECURE', 'SESSIONSTORE_COOKIE_HTTPONLY',
    'SESSIONSTORE_COOKIE_SAMESITE',
    'SESSION_JSON_LOGGING', 'LOGLEVEL',
]


def _flag(value: Any) -> bool:
    return str(value).lower() in ('1', 'true', 'yes', 'on')


def get_application_config(app: Optional[Flask] = None) -> Mapping[str, Any]:
    """
    Get configuration from ``app``, the current app, or the defaults.

    Falls back to :mod:`.config` (i.e. the environment) when there is no
    application context.
    """
    if app is not None:
        return app.config
    if has_app_context():
        return current_app.config
    return {key: getattr(defaults, key) for key in _CONFIG_KEYS}


def init_app(app: Flask) -> None:
    """Set default configuration parameters for an application instance."""
    for key in _CONFIG_KEYS:
        app.config.setdefault(key, getattr(defaults, key))
    if _flag(app.config['SESSION_JSON_LOGGING']):
        level = app.config['LOGLEVEL']
        app_logging.setup_logger(int(level) if str(level).isdigit() else level)


def key_pairs_from_config(config: Mapping[str, Any]) -> List[KeyPair]:
    """
    Build key pairs from ``SESSION_AUTH_KEYS`` and ``SESSION_ENCRYPTION_KEYS``.

    Raises
    ------
    :class:`ConfigError`
        Raised if no authentication keys are configured, or if there are more
        encryption keys than authentication keys.

    """
    auth_keys = [k.strip() for k in
                 (config.get('SESSION_AUTH_KEYS') or '').split(',')
                 if k.strip()]
    encryption_keys = [
        k.strip() for k in
        (config.get('SESSION_ENCRYPTION_KEYS') or '').split(',')
    ]
    if not auth_keys:
        raise ConfigError('SESSION_AUTH_KEYS must be set')
    if len([k for k in encryption_keys if k]) > len(auth_keys):
        raise ConfigError('More encryption keys than authentication keys')
    pairs = []
    for i, auth_key in enumerate(auth_keys):
        encryption_key = encryption_keys[i] if i < len(encryption_keys) else ''
        pairs.append(KeyPair(auth_key.encode('utf-8'),
                             encryption_key.encode('utf-8') or None))
    return pairs


def options_from_config(config: Mapping[str, Any]) -> CookieOptions:
    """Build default cookie options from configuration."""
    return CookieOptions(
        path=config.get('SESSIONSTORE_COOKIE_PATH') or '/',
        domain=config.get('SESSIONSTORE_COOKIE_DOMAIN') or None,
        max_age=int(config.get('SESSION_MAX_AGE', 86400 * 30)),
        secure=_flag(config.get('SESSIONSTORE_COOKIE_SECURE', '0')),
        http_only=_flag(config.get('SESSIONSTORE_COOKIE_HTTPONLY', '1')),
        same_site=config.get('SESSIONSTORE_COOKIE_SAMESITE') or None
    )


def create_kv_store(key_pairs: KeyPairs, host: str = 'localhost',
                    port: int = 6379, db: int = 0,
                    password: Optional[str] = None, cluster: bool = False,
                    timeout: float = DEFAULT_TIMEOUT,
                    options: Optional[CookieOptions] = None,
                    **kwargs: Any) -> SessionStore:
    """Create a store backed by Redis."""
    storage = KeyValueStorage(host=host, port=port, db=db, password=password,
                              cluster=cluster, timeout=timeout)
    return SessionStore(storage, key_pairs, options=options, **kwargs)


def create_embedded_store(key_pairs: KeyPairs, path: str,
                          map_size: int = DEFAULT_MAP_SIZE,
                          options: Optional[CookieOptions] = None,
                          **kwargs: Any) -> SessionStore:
    """Create a store backed by an LMDB database in the directory ``path``."""
    storage = EmbeddedStorage(path, map_size=map_size)
    return SessionStore(storage, key_pairs, options=options, **kwargs)


def create_document_store(key_pairs: KeyPairs,
                          uri: str = 'mongodb://localhost:27017',
                          database: str = 'sessions',
                          collection: str = 'store',
                          timeout: float = DEFAULT_TIMEOUT,
                          options: Optional[CookieOptions] = None,
                          client_options: Optional[dict] = None,
                          **kwargs: Any) -> SessionStore:
    """Create a store backed by MongoDB."""
    storage = DocumentStorage(uri=uri, database=database,
                              collection=collection, timeout=timeout,
                              client_options=client_options)
    return SessionStore(storage, key_pairs, options=options, **kwargs)


def create_graph_store(key_pairs: KeyPairs, address: str = 'localhost:9080',
                       declare_schema: bool = False,
                       timeout: float = DEFAULT_TIMEOUT,
                       options: Optional[CookieOptions] = None,
                       **kwargs: Any) -> SessionStore:
    """Create a store backed by Dgraph."""
    storage = GraphStorage(address=address, timeout=timeout,
                           declare_schema=declare_schema)
    return SessionStore(storage, key_pairs, options=options, **kwargs)


def _storage_from_config(config: Mapping[str, Any]) -> Storage:
    backend = config.get('SESSION_BACKEND', 'kv')
    timeout = float(config.get('SESSION_STORAGE_TIMEOUT', DEFAULT_TIMEOUT))
    if backend == 'kv':
        return KeyValueStorage(
            host=config.get('REDIS_HOST', 'localhost'),
            port=int(config.get('REDIS_PORT', '6379')),
            db=int(config.get('REDIS_DATABASE', '0')),
            password=config.get('REDIS_PASSWORD'),
            cluster=_flag(config.get('REDIS_CLUSTER', '0')),
            timeout=timeout
        )
    if backend == 'embedded':
        return EmbeddedStorage(
            config.get('EMBEDDED_PATH') or defaults.EMBEDDED_PATH,
            map_size=int(config.get('EMBEDDED_MAP_SIZE', DEFAULT_MAP_SIZE))
        )
    if backend == 'document':
        return DocumentStorage(
            uri=config.get('MONGO_URI', 'mongodb://localhost:27017'),
            database=config.get('MONGO_DATABASE', 'sessions'),
            collection=config.get('MONGO_COLLECTION', 'store'),
            timeout=timeout
        )
    if backend == 'graph':
        return GraphStorage(
            address=config.get('DGRAPH_ADDRESS', 'localhost:9080'),
            declare_schema=_flag(config.get('DGRAPH_DECLARE_SCHEMA', '0')),
            timeout=timeout
        )
    raise ConfigError(f'Unknown session backend: {backend}')


def get_store(app: Optional[Flask] = None) -> SessionStore:
    """Create a new :class:`.SessionStore` from application configuration."""
    config = get_application_config(app)
    logger.debug('Creating %s session store',
                 config.get('SESSION_BACKEND', 'kv'))
    key_pairs = key_pairs_from_config(config)
    options = options_from_config(config)
    return SessionStore(
        _storage_from_config(config),
        key_pairs,
        options=options,
        max_length=int(config.get('SESSION_MAX_LENGTH', '4096'))
    )


def current_store() -> SessionStore:
    """
    Get/create the :class:`.SessionStore` for the current application.

    The store (and its backend client) is created once per application and
    kept in ``app.extensions``. Outside of an application context, a single
    store is built from the environment. Use :func:`close_store` to release
    the backend when the application shuts down.
    """
    global _default_store
    with _lock:
        if not has_app_context():
            if _default_store is None:
                _default_store = get_store()
            return _default_store
        extensions = current_app.extensions
        if EXTENSION_KEY not in extensions:
            extensions[EXTENSION_KEY] = get_store()
        return extensions[EXTENSION_KEY]     # type: ignore


def close_store(app: Optional[Flask] = None) -> None:
    """Close and forget the store for ``app`` (or the environment)."""
    global _default_store
    with _lock:
        if app is not None:
            store = app.extensions.pop(EXTENSION_KEY, None)
        else:
            store, _default_store = _default_store, None
    if store is not None:
        store.close()
