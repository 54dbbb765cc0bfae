"""Contract shared by all session storage backends."""

from abc import ABC, abstractmethod

DEFAULT_TIMEOUT = 5.0
"""Seconds to wait for the backend before giving up on a call."""


class Storage(ABC):
    """
    Persists encoded session payloads by session identifier.

    Payloads are opaque strings produced by the envelope codec. Backends
    translate the three operations below into their native calls, and
    translate native failures into :class:`.StorageError` and its subclasses.
    """

    @abstractmethod
    def put(self, session_id: str, payload: str) -> None:
        """
        Insert or replace the payload for ``session_id``.

        Raises
        ------
        :class:`.StorageError`

        """

    @abstractmethod
    def get(self, session_id: str) -> str:
        """
        Retrieve the payload for ``session_id``.

        Raises
        ------
        :class:`.NotFound`
            No record exists for ``session_id``.
        :class:`.StorageError`

        """

    @abstractmethod
    def delete(self, session_id: str) -> None:
        """
        Remove the record for ``session_id``, if there is one.

        Deleting an identifier that was never stored is not an error.

        Raises
        ------
        :class:`.StorageError`

        """

    def close(self) -> None:
        """Release any connections held by the backend."""
