"""
Graph session storage, backed by Dgraph.

Each session is a node of type ``Session`` with two scalar predicates,
``sessionid`` (hash-indexed) and ``sessionvalue``. Writes and deletes are
performed as upsert blocks: the node is resolved by ``sessionid`` and mutated
within the same request, committed immediately, so that resolution and
mutation form one transaction.
"""

import json
from typing import Any, Dict

import grpc
import pydgraph

from .base import Storage, DEFAULT_TIMEOUT
from ..exceptions import ConfigError, NotFound, StorageError, \
    StorageTimeout, StorageUnavailable

import logging

logger = logging.getLogger(__name__)

SCHEMA = """
sessionid: string @index(hash) .
sessionvalue: string .
type Session {
    sessionid
    sessionvalue
}
"""

RESOLVE_QUERY = """
query resolve($id: string) {
    q(func: eq(sessionid, $id)) {
        v as uid
    }
}
"""

LOAD_QUERY = """
query load($id: string) {
    q(func: eq(sessionid, $id), first: 1) {
        sessionvalue
    }
}
"""


def _literal(value: str) -> str:
    """Quote a string for use as an N-Quad literal."""
    return json.dumps(value)


class GraphStorage(Storage):
    """Stores one Dgraph node per session."""

    def __init__(self, address: str = 'localhost:9080',
                 timeout: float = DEFAULT_TIMEOUT,
                 declare_schema: bool = False,
                 client: Any = None) -> None:
        """
        Create a Dgraph client, and optionally declare the session schema.

        Parameters
        ----------
        address : str
            ``host:port`` of a Dgraph alpha gRPC endpoint.
        timeout : float
            Seconds to wait for each request.
        declare_schema : bool
            If True, alter the schema to declare the session predicates and
            type. This is required once per cluster, since lookups depend on
            the ``sessionid`` index.
        client : :class:`pydgraph.DgraphClient`
            An existing client to use instead of connecting to ``address``.

        Raises
        ------
        :class:`ConfigError`
            Raised if the schema could not be declared.

        """
        if client is None:
            self._stub = pydgraph.DgraphClientStub(address)
            client = pydgraph.DgraphClient(self._stub)
        else:
            self._stub = None
        self.client = client
        self.timeout = timeout
        if declare_schema:
            self.declare_schema()

    def declare_schema(self) -> None:
        """Declare the ``sessionid`` index and the ``Session`` type."""
        logger.debug('Declaring session schema')
        try:
            self.client.alter(pydgraph.Operation(schema=SCHEMA),
                              timeout=self.timeout)
        except Exception as e:
            logger.error('Could not declare session schema: %s', e)
            raise ConfigError(f'Could not declare schema: {e}') from e

    def put(self, session_id: str, payload: str) -> None:
        """Create or update the node for ``session_id`` in one transaction."""
        nquads = '\n'.join([
            f'uid(v) <sessionid> {_literal(session_id)} .',
            f'uid(v) <sessionvalue> {_literal(payload)} .',
            'uid(v) <dgraph.type> "Session" .',
        ])
        self._upsert(session_id, 'save', set_nquads=nquads)

    def get(self, session_id: str) -> str:
        """Query the ``sessionvalue`` of the node for ``session_id``."""
        txn = self.client.txn(read_only=True)
        try:
            response = txn.query(LOAD_QUERY, variables={'$id': session_id},
                                 timeout=self.timeout)
        except Exception as e:
            raise self._translate(e, 'load') from e
        finally:
            txn.discard()

        try:
            data: Dict[str, Any] = json.loads(response.json)
        except (TypeError, ValueError) as e:
            raise StorageError(f'Malformed response: {e}') from e
        nodes = data.get('q') or []
        if not nodes or not nodes[0].get('sessionvalue'):
            raise NotFound(f'Failed to find session {session_id}')
        value: str = nodes[0]['sessionvalue']
        return value

    def delete(self, session_id: str) -> None:
        """Delete all predicates of the node for ``session_id``, if any."""
        self._upsert(session_id, 'delete', del_nquads='uid(v) * * .')

    def close(self) -> None:
        """Close the gRPC channel, if this storage opened it."""
        if self._stub is not None:
            self._stub.close()

    def _upsert(self, session_id: str, action: str, **nquads: str) -> None:
        txn = self.client.txn()
        try:
            mutation = txn.create_mutation(**nquads)
            request = txn.create_request(query=RESOLVE_QUERY,
                                         variables={'$id': session_id},
                                         mutations=[mutation],
                                         commit_now=True)
            txn.do_request(request, timeout=self.timeout)
        except Exception as e:
            raise self._translate(e, action) from e
        finally:
            txn.discard()

    def _translate(self, exc: Exception, action: str) -> StorageError:
        """Map a Dgraph or gRPC error onto a :class:`StorageError`."""
        logger.error('Failed to %s session: %s', action, exc)
        if isinstance(exc, grpc.RpcError) and hasattr(exc, 'code'):
            code = exc.code()
            if code == grpc.StatusCode.DEADLINE_EXCEEDED:
                return StorageTimeout(f'Timed out: {exc}')
            if code == grpc.StatusCode.UNAVAILABLE:
                return StorageUnavailable(f'Connection failed: {exc}')
        return StorageError(f'Failed to {action}: {exc}')
