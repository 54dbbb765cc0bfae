"""
Embedded key-value session storage, backed by LMDB.

The database lives in a local directory and needs no server. Records use the
same ``session_<id>`` keys as :mod:`.kv`. The environment may be shared by
threads in one process, but should be opened again after a fork.
"""

import os
from typing import Optional

import lmdb

from .base import Storage
from .kv import KEY_PREFIX
from ..exceptions import ConfigError, NotFound, StorageError

import logging

logger = logging.getLogger(__name__)

DEFAULT_MAP_SIZE = 2 ** 30
"""Upper bound on the size of the database, in bytes."""


class EmbeddedStorage(Storage):
    """Stores sessions in an LMDB environment at a directory path."""

    def __init__(self, path: str, map_size: int = DEFAULT_MAP_SIZE,
                 prefix: str = KEY_PREFIX) -> None:
        """
        Open (and create, if necessary) the database at ``path``.

        Raises
        ------
        :class:`ConfigError`
            Raised if the directory cannot be created or opened.

        """
        logger.debug('Opening embedded session database at %s', path)
        try:
            self.env: lmdb.Environment = lmdb.open(
                os.fspath(path), map_size=map_size, subdir=True, create=True
            )
        except (lmdb.Error, OSError) as e:
            raise ConfigError(f'Could not open {path}: {e}') from e
        self.path = path
        self.prefix = prefix

    def _key(self, session_id: str) -> bytes:
        return (self.prefix + session_id).encode('ascii')

    def put(self, session_id: str, payload: str) -> None:
        """Write the payload, replacing any existing record."""
        try:
            with self.env.begin(write=True) as txn:
                txn.put(self._key(session_id), payload.encode('utf-8'),
                        overwrite=True)
        except lmdb.Error as e:
            raise StorageError(f'Failed to save: {e}') from e

    def get(self, session_id: str) -> str:
        """Read the payload in a read-only transaction."""
        try:
            with self.env.begin() as txn:
                raw: Optional[bytes] = txn.get(self._key(session_id))
        except lmdb.Error as e:
            raise StorageError(f'Failed to load: {e}') from e
        if not raw:
            raise NotFound(f'Failed to find session {session_id}')
        return bytes(raw).decode('utf-8')

    def delete(self, session_id: str) -> None:
        """Remove the record; a missing key is not an error."""
        try:
            with self.env.begin(write=True) as txn:
                txn.delete(self._key(session_id))
        except lmdb.Error as e:
            raise StorageError(f'Failed to delete: {e}') from e

    def close(self) -> None:
        """Close the environment."""
        self.env.close()
