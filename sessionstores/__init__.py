"""
Server-side session stores for werkzeug and Flask applications.

Session values are kept in a backing store (Redis, MongoDB or Dgraph), and
the client receives a signed, optionally encrypted cookie that carries only
the session identifier. See :class:`.store.SessionStore`.
"""

from .domain import CookieOptions, KeyPair, Session
from .store import SessionStore

__all__ = ('CookieOptions', 'KeyPair', 'Session', 'SessionStore')
