"""Exceptions raised by the session store and its collaborators."""


class SessionStoreError(RuntimeError):
    """Base class for all session store errors."""


class CryptoError(SessionStoreError):
    """A value could not be encoded into, or decoded from, an envelope."""


class EncodeError(CryptoError):
    """Failed to serialize, encrypt or sign a value."""


class DecodeError(CryptoError):
    """An encoded value was rejected."""

    reason = 'invalid'


class ExpiredValue(DecodeError):
    """The envelope timestamp is older than the configured max age."""

    reason = 'expired_value'


class InvalidMAC(DecodeError):
    """The envelope signature did not verify; likely a forgery."""

    reason = 'invalid_mac'


class InvalidEncoding(DecodeError):
    """The envelope or its payload is malformed."""

    reason = 'invalid_encoding'


class InvalidTimestamp(DecodeError):
    """The envelope timestamp is missing or lies in the future."""

    reason = 'invalid_timestamp'


class StorageError(SessionStoreError):
    """The backing store failed to complete an operation."""


class NotFound(StorageError):
    """No record exists for the requested session identifier."""


class StorageTimeout(StorageError):
    """The backing store did not respond in time."""


class StorageUnavailable(StorageError):
    """Could not connect to the backing store."""


class ConfigError(SessionStoreError):
    """The store could not be constructed with the provided configuration."""
