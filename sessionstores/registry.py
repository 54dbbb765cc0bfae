"""
Per-request session registry.

The registry lives in the WSGI environ of a single request, so that a
session is decoded at most once per request no matter how many times it is
requested. It must not be shared between requests.
"""

from typing import Any, Dict, List, Optional, Tuple, TYPE_CHECKING

from .domain import Session
from .exceptions import SessionStoreError

if TYPE_CHECKING:
    from .store import SessionStore    # pragma: no cover

import logging

logger = logging.getLogger(__name__)

ENVIRON_KEY = 'sessionstores.registry'

LoadResult = Tuple[Session, Optional[SessionStoreError]]


class Registry(object):
    """Caches the sessions loaded during one request."""

    def __init__(self, request: Any) -> None:
        self.request = request
        self._sessions: Dict[str, LoadResult] = {}

    def get(self, store: 'SessionStore', name: str) -> LoadResult:
        """Load the session ``name`` from ``store``, at most once."""
        if name not in self._sessions:
            self._sessions[name] = store.new(self.request, name)
        return self._sessions[name]

    def save_all(self, response: Any) -> None:
        """
        Save every session loaded during the request.

        All sessions are attempted; if any fail, the first error is raised.
        """
        errors: List[SessionStoreError] = []
        for name, (session, _) in self._sessions.items():
            try:
                session.save(self.request, response)
            except SessionStoreError as e:
                logger.error('Failed to save session %s: %s', name, e)
                errors.append(e)
        if errors:
            raise errors[0]


def get_registry(request: Any) -> Registry:
    """Get the :class:`Registry` for ``request``, creating it if needed."""
    registry: Optional[Registry] = request.environ.get(ENVIRON_KEY)
    if registry is None:
        registry = Registry(request)
        request.environ[ENVIRON_KEY] = registry
    return registry
