"""Random identifiers and keys."""

import secrets
from base64 import b32encode

ID_BYTES = 32
"""256 bits of entropy per session identifier."""


def generate_key(length: int = 32) -> bytes:
    """Generate ``length`` random bytes, e.g. for use in a key pair."""
    return secrets.token_bytes(length)


def generate_id() -> str:
    """
    Generate a new session identifier.

    The identifier is the unpadded base32 encoding of :data:`ID_BYTES` random
    bytes, so it is safe to use in cookie values and storage keys. Collisions
    are not checked for.
    """
    return b32encode(generate_key(ID_BYTES)).decode('ascii').rstrip('=')
