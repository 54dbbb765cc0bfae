"""
Document session storage, backed by MongoDB.

Each session is one document of the form ``{session_id: str, value: str}``.
A unique index on ``session_id`` is declared when the storage is created, so
that concurrent first saves for the same identifier cannot produce duplicate
documents.
"""

from typing import Any, Dict, Optional

from pymongo import MongoClient, ASCENDING
from pymongo.errors import ConnectionFailure, ExecutionTimeout, \
    NetworkTimeout, PyMongoError, ServerSelectionTimeoutError, WTimeoutError

from .base import Storage, DEFAULT_TIMEOUT
from ..exceptions import ConfigError, NotFound, StorageError, \
    StorageTimeout, StorageUnavailable

import logging

logger = logging.getLogger(__name__)

DEFAULT_DATABASE = 'sessions'
DEFAULT_COLLECTION = 'store'

_TIMEOUTS = (ExecutionTimeout, NetworkTimeout, ServerSelectionTimeoutError,
             WTimeoutError)
"""Checked before :class:`ConnectionFailure`, which some of these extend."""


class DocumentStorage(Storage):
    """Stores one MongoDB document per session."""

    def __init__(self, uri: str = 'mongodb://localhost:27017',
                 database: str = DEFAULT_DATABASE,
                 collection: str = DEFAULT_COLLECTION,
                 timeout: float = DEFAULT_TIMEOUT,
                 ensure_index: bool = True,
                 client_options: Optional[Dict[str, Any]] = None) -> None:
        """
        Connect to MongoDB and declare the session index.

        Parameters
        ----------
        uri : str
            MongoDB connection URI.
        database : str
        collection : str
        timeout : float
            Seconds to wait for server selection and socket operations.
        ensure_index : bool
            If True, declare a unique index on ``session_id``.
        client_options : dict
            Additional keyword arguments for :class:`pymongo.MongoClient`.

        Raises
        ------
        :class:`ConfigError`
            Raised if the index cannot be declared, e.g. because the server
            is unreachable.

        """
        timeout_ms = int(timeout * 1000)
        options = {'serverSelectionTimeoutMS': timeout_ms,
                   'connectTimeoutMS': timeout_ms,
                   'socketTimeoutMS': timeout_ms}
        options.update(client_options or {})
        logger.debug('New MongoDB client for %s.%s', database, collection)
        try:
            self.client: MongoClient = MongoClient(uri, **options)
        except PyMongoError as e:
            raise ConfigError(f'Invalid MongoDB configuration: {e}') from e
        self.collection = self.client[database][collection]
        if ensure_index:
            try:
                self.collection.create_index([('session_id', ASCENDING)],
                                             unique=True)
            except PyMongoError as e:
                logger.error('Could not declare session index: %s', e)
                raise ConfigError(f'Could not declare index: {e}') from e

    def put(self, session_id: str, payload: str) -> None:
        """Upsert the document matching ``session_id``."""
        try:
            self.collection.update_one(
                {'session_id': session_id},
                {'$set': {'session_id': session_id, 'value': payload}},
                upsert=True
            )
        except _TIMEOUTS as e:
            raise StorageTimeout(f'Timed out: {e}') from e
        except ConnectionFailure as e:
            raise StorageUnavailable(f'Connection failed: {e}') from e
        except PyMongoError as e:
            raise StorageError(f'Failed to save: {e}') from e

    def get(self, session_id: str) -> str:
        """Find the document matching ``session_id``."""
        try:
            doc = self.collection.find_one({'session_id': session_id},
                                           projection={'_id': False,
                                                       'value': True})
        except _TIMEOUTS as e:
            raise StorageTimeout(f'Timed out: {e}') from e
        except ConnectionFailure as e:
            raise StorageUnavailable(f'Connection failed: {e}') from e
        except PyMongoError as e:
            raise StorageError(f'Failed to load: {e}') from e
        if doc is None:
            raise NotFound(f'Failed to find session {session_id}')
        value = doc.get('value')
        if not isinstance(value, str):
            raise StorageError(f'Malformed record for session {session_id}')
        return value

    def delete(self, session_id: str) -> None:
        """Delete the document matching ``session_id``, if any."""
        try:
            self.collection.delete_one({'session_id': session_id})
        except _TIMEOUTS as e:
            raise StorageTimeout(f'Timed out: {e}') from e
        except ConnectionFailure as e:
            raise StorageUnavailable(f'Connection failed: {e}') from e
        except PyMongoError as e:
            raise StorageError(f'Failed to delete: {e}') from e

    def close(self) -> None:
        """Close the MongoDB client."""
        self.client.close()
