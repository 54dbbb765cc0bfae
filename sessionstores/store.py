"""
Session lifecycle management.

A :class:`SessionStore` combines a storage backend with a set of key pairs.
The session cookie carries only the (encoded) session identifier; session
values are encoded separately and kept in the backend, keyed by that
identifier.
"""

from typing import Any, Iterable, Optional, Tuple, Union

from werkzeug.wrappers import Request, Response

from . import cookies
from .domain import CookieOptions, KeyPair, Session
from .envelope import DEFAULT_MAX_LENGTH, as_key_pair, codecs_from_pairs, \
    decode_multi, encode_multi
from .exceptions import InvalidEncoding, SessionStoreError
from .identifiers import generate_id
from .registry import get_registry
from .storage import Storage

import logging

logger = logging.getLogger(__name__)


class SessionStore(object):
    """
    Loads and saves sessions using a :class:`.Storage` backend.

    Keys are defined in pairs to allow key rotation, but the common case is
    to set a single authentication key and optionally an encryption key.
    Values are always encoded with the first pair; values encoded with any
    of the pairs can be decoded.

    .. code-block:: python

       store = SessionStore(KeyValueStorage('localhost'),
                            [KeyPair(auth_key, encryption_key)])

       session, error = store.get(request, 'app')
       session.values['user'] = 'u1'
       store.save(request, response, session)

    """

    def __init__(self, storage: Storage,
                 key_pairs: Iterable[Union[KeyPair, Tuple]],
                 options: Optional[CookieOptions] = None,
                 max_length: int = DEFAULT_MAX_LENGTH) -> None:
        """
        Configure the store.

        Parameters
        ----------
        storage : :class:`.Storage`
        key_pairs : iterable
            Ordered key pairs; the first is used for encoding.
        options : :class:`.CookieOptions`
            Defaults copied to each new session.
        max_length : int
            Maximum length of encoded values. If 0, length is not checked.

        Raises
        ------
        :class:`.ConfigError`
            Raised if the key pairs are missing or invalid.

        """
        self.storage = storage
        self.key_pairs = tuple(as_key_pair(pair) for pair in key_pairs)
        self.codecs = codecs_from_pairs(self.key_pairs, max_length=max_length)
        self.options = options if options is not None else CookieOptions()
        self.max_age(self.options.max_age)

    def get(self, request: Request, name: str) \
            -> Tuple[Session, Optional[SessionStoreError]]:
        """
        Get the session ``name`` for the current request.

        Repeated calls within the same request return the same session (and
        error) without decoding it again. See :meth:`new`.
        """
        return get_registry(request).get(self, name)

    def new(self, request: Request, name: str) \
            -> Tuple[Session, Optional[SessionStoreError]]:
        """
        Load the session ``name`` from the request cookie, without caching.

        A usable session is always returned. If the request carries a cookie
        that cannot be decoded, or that refers to a record that cannot be
        loaded or decoded, the session is returned empty with
        :attr:`.Session.is_new` set, along with the error that prevented
        loading it. If there is no (or an empty) cookie, the error is
        ``None``.

        Returns
        -------
        :class:`.Session`
        :class:`.SessionStoreError` or None

        """
        session = Session(self, name, options=self.options)
        cookie = cookies.read_cookie(request, name)
        if not cookie:
            return session, None
        try:
            session_id = decode_multi(name, cookie, self.codecs)
            if not isinstance(session_id, str) or not session_id:
                raise InvalidEncoding('Cookie does not carry a session id')
            session.values = self._load(name, session_id)
        except SessionStoreError as e:
            logger.debug('Could not load session %s: %s', name, e)
            return session, e
        session.session_id = session_id
        session.is_new = False
        return session, None

    def save(self, request: Request, response: Response,
             session: Session) -> None:
        """
        Persist ``session`` and set its cookie on ``response``.

        If the session's max age is ``<= 0``, the stored record is deleted
        instead and the cookie is cleared on the client. Otherwise, an
        identifier is generated for new sessions, the values are written to
        storage, and the encoded identifier is set as the cookie value. No
        cookie is written if encoding or storage fails.

        Raises
        ------
        :class:`.CryptoError`
        :class:`.StorageError`

        """
        if session.options.max_age <= 0:
            self.delete(session)
            cookies.expire_cookie(response, session.name, session.options)
            return

        session_id = session.session_id or generate_id()
        encoded = encode_multi(session.name, session_id, self.codecs)
        self._put(session, session_id)
        cookies.write_cookie(response, session.name, encoded, session.options)

    def max_age(self, age: int) -> None:
        """
        Set the default max age for new sessions and for envelopes.

        Envelopes older than ``age`` seconds are rejected by every codec. To
        delete an individual session, set its own max age to ``-1`` and save.
        """
        self.options = self.options._replace(max_age=age)
        for codec in self.codecs:
            codec.max_age = age

    def edit(self, session: Session) -> None:
        """
        Write the values of ``session`` to storage, without a request.

        An identifier is generated if the session does not have one yet. It is
        assigned to the session only once the values have been stored.
        """
        self._put(session, session.session_id or generate_id())

    def _put(self, session: Session, session_id: str) -> None:
        payload = encode_multi(session.name, session.values, self.codecs)
        logger.debug('Saving session %s', session_id)
        self.storage.put(session_id, payload)
        session.session_id = session_id

    def delete(self, session: Session) -> None:
        """Remove ``session`` from storage, without a request."""
        if not session.session_id:
            return
        logger.debug('Deleting session %s', session.session_id)
        self.storage.delete(session.session_id)

    def close(self) -> None:
        """Release the storage backend."""
        self.storage.close()

    def load_by_id(self, name: str, session_id: str) -> Session:
        """
        Load a stored session by identifier, without a request.

        Raises
        ------
        :class:`.NotFound`
        :class:`.CryptoError`
        :class:`.StorageError`

        """
        session = Session(self, name, options=self.options)
        session.values = self._load(name, session_id)
        session.session_id = session_id
        session.is_new = False
        return session

    def _load(self, name: str, session_id: str) -> Any:
        payload = self.storage.get(session_id)
        values = decode_multi(name, payload, self.codecs)
        if not isinstance(values, dict):
            raise InvalidEncoding('Stored session values are malformed')
        return values
