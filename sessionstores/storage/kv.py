"""
Key-value session storage, backed by Redis.

Records are stored under ``session_<id>`` so that sessions can share a
keyspace with other key families. Records do not expire on the server;
sessions are removed when they are saved with a non-positive max age.
"""

from typing import Any, Optional

import redis
import redis.cluster
from redis.exceptions import ConnectionError as RedisConnectionError, \
    TimeoutError as RedisTimeoutError

from .base import Storage, DEFAULT_TIMEOUT
from ..exceptions import NotFound, StorageError, StorageTimeout, \
    StorageUnavailable

import logging

logger = logging.getLogger(__name__)

KEY_PREFIX = 'session_'


class KeyValueStorage(Storage):
    """
    Manages a connection to Redis.

    The client instances are thread safe, and connections are attached at
    the time a command is executed. This class provides a container for
    configuration and translates Redis errors.
    """

    def __init__(self, host: str = 'localhost', port: int = 6379,
                 db: int = 0, password: Optional[str] = None,
                 cluster: bool = False,
                 timeout: float = DEFAULT_TIMEOUT,
                 prefix: str = KEY_PREFIX) -> None:
        """Configure the Redis client."""
        logger.debug('New Redis connection at %s, port %s', host, port)
        if cluster:
            self.r: Any = redis.cluster.RedisCluster(
                host=host, port=port, password=password,
                socket_timeout=timeout, socket_connect_timeout=timeout
            )
        else:
            self.r = redis.StrictRedis(
                host=host, port=port, db=db, password=password,
                socket_timeout=timeout, socket_connect_timeout=timeout
            )
        self.prefix = prefix

    def _key(self, session_id: str) -> bytes:
        return (self.prefix + session_id).encode('ascii')

    def put(self, session_id: str, payload: str) -> None:
        """Write the payload with ``SET``, replacing any existing record."""
        try:
            self.r.set(self._key(session_id), payload.encode('utf-8'))
        except RedisTimeoutError as e:
            raise StorageTimeout(f'Timed out: {e}') from e
        except RedisConnectionError as e:
            raise StorageUnavailable(f'Connection failed: {e}') from e
        except Exception as e:
            raise StorageError(f'Failed to save: {e}') from e

    def get(self, session_id: str) -> str:
        """Read the payload with ``GET``."""
        try:
            raw: Optional[bytes] = self.r.get(self._key(session_id))
        except RedisTimeoutError as e:
            raise StorageTimeout(f'Timed out: {e}') from e
        except RedisConnectionError as e:
            raise StorageUnavailable(f'Connection failed: {e}') from e
        except Exception as e:
            raise StorageError(f'Failed to load: {e}') from e
        if not raw:
            raise NotFound(f'Failed to find session {session_id}')
        if isinstance(raw, bytes):
            return raw.decode('utf-8')
        return str(raw)

    def delete(self, session_id: str) -> None:
        """Remove the record with ``DEL``; a missing key is not an error."""
        try:
            self.r.delete(self._key(session_id))
        except RedisTimeoutError as e:
            raise StorageTimeout(f'Timed out: {e}') from e
        except RedisConnectionError as e:
            raise StorageUnavailable(f'Connection failed: {e}') from e
        except Exception as e:
            raise StorageError(f'Failed to delete: {e}') from e

    def close(self) -> None:
        """Close the connection pool."""
        self.r.close()
