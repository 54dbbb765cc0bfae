"""Core data structures for session persistence."""

from typing import Any, Dict, NamedTuple, Optional, TYPE_CHECKING
from datetime import datetime, timedelta

from pytz import UTC

if TYPE_CHECKING:
    from .store import SessionStore    # pragma: no cover

DEFAULT_MAX_AGE = 86400 * 30
"""Thirty days, in seconds."""


class KeyPair(NamedTuple):
    """
    Keys used to authenticate and, optionally, encrypt envelopes.

    The authentication key is required. It is recommended to use 32 or 64
    bytes. The encryption key, if set, must be 16, 24 or 32 bytes long to
    select AES-128, AES-192 or AES-256.
    """

    auth_key: bytes
    """HMAC key."""

    encryption_key: Optional[bytes] = None
    """AES key; ``None`` disables encryption."""


class CookieOptions(NamedTuple):
    """Cookie attributes propagated to the client with each session."""

    path: str = '/'
    domain: Optional[str] = None

    max_age: int = DEFAULT_MAX_AGE
    """
    Lifetime of the cookie in seconds.

    A value ``<= 0`` means that the session should be deleted when saved.
    """

    secure: bool = False
    http_only: bool = False

    same_site: Optional[str] = None
    """One of ``'Strict'``, ``'Lax'``, ``'None'``, or ``None`` to omit."""

    def expires(self) -> Optional[datetime]:
        """Absolute expiry for clients that do not support Max-Age."""
        if self.max_age <= 0:
            return None
        return datetime.now(tz=UTC) + timedelta(seconds=self.max_age)


class Session(object):
    """
    Per-client state referenced by a cookie.

    Sessions are created in memory by :meth:`.SessionStore.new`, and only
    written to the backing store by :meth:`.SessionStore.save`.
    """

    def __init__(self, store: 'SessionStore', name: str,
                 options: Optional[CookieOptions] = None) -> None:
        self.store = store
        self.name = name
        self.session_id = ''
        self.values: Dict[str, Any] = {}
        self.options = options if options is not None else CookieOptions()
        self.is_new = True

    def __repr__(self) -> str:
        return (f'<Session {self.name!r} id={self.session_id!r}'
                f' new={self.is_new}>')

    def save(self, request: Any, response: Any) -> None:
        """Save this session using the store that created it."""
        self.store.save(request, response, self)
