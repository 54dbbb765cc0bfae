"""
Authenticated, optionally encrypted envelopes for session values.

An envelope is a compact JSON web token signed with HMAC-SHA256. Its claims
carry the name that the value was encoded for (``aud``), the time at which it
was issued (``iat``), and the serialized value itself (``val``). When an
encryption key is configured, the serialized value is first encrypted with
AES in CTR mode, so that the signature covers the ciphertext.

Several codecs can be used together to support key rotation: values are
always encoded with the first codec, and decoding tries each codec in order.
See :func:`encode_multi` and :func:`decode_multi`.
"""

import json
import os
import time
from base64 import urlsafe_b64encode, urlsafe_b64decode
from typing import Any, Iterable, List, Optional, Sequence, Tuple, Union

import jwt
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from .domain import DEFAULT_MAX_AGE, KeyPair
from .exceptions import ConfigError, DecodeError, EncodeError, ExpiredValue, \
    InvalidEncoding, InvalidMAC, InvalidTimestamp

import logging

logger = logging.getLogger(__name__)

ALGORITHM = 'HS256'
DEFAULT_MAX_LENGTH = 4096
"""Browsers are not required to store cookies longer than this."""

CLOCK_SKEW = 60
"""Number of seconds that a timestamp may lie in the future."""

AES_KEY_SIZES = (16, 24, 32)
IV_SIZE = 16


class Codec(object):
    """Encodes and decodes values using a single key pair."""

    def __init__(self, auth_key: bytes,
                 encryption_key: Optional[bytes] = None,
                 max_age: int = DEFAULT_MAX_AGE,
                 max_length: int = DEFAULT_MAX_LENGTH) -> None:
        """
        Validate the key pair.

        Parameters
        ----------
        auth_key : bytes
            Key used to sign envelopes. Required.
        encryption_key : bytes or None
            If set, must be 16, 24 or 32 bytes long.
        max_age : int
            Envelopes older than this number of seconds are rejected. If 0,
            the age of an envelope is not checked.
        max_length : int
            Maximum length of an encoded value. If 0, length is not checked.

        Raises
        ------
        :class:`ConfigError`
            Raised if the keys are missing or have an unsupported length.

        """
        if not auth_key:
            raise ConfigError('An authentication key is required')
        if encryption_key and len(encryption_key) not in AES_KEY_SIZES:
            raise ConfigError(f'Invalid encryption key size:'
                              f' {len(encryption_key)} bytes')
        self._auth_key = auth_key
        self._encryption_key = encryption_key or None
        self.max_age = max_age
        self.max_length = max_length

    @property
    def encrypts(self) -> bool:
        """Indicates whether this codec encrypts values."""
        return self._encryption_key is not None

    def encode(self, name: str, value: Any) -> str:
        """
        Serialize, sign and (optionally) encrypt a value.

        Parameters
        ----------
        name : str
            The name to which the envelope is bound, usually the cookie name.
        value : object
            Any JSON-serializable value.

        Returns
        -------
        str
            A value safe for use in cookies and storage keys.

        Raises
        ------
        :class:`EncodeError`

        """
        try:
            serialized = json.dumps(value)
        except (TypeError, ValueError) as e:
            raise EncodeError(f'Could not serialize value: {e}') from e

        claims = {'aud': name, 'iat': int(time.time())}
        if self.encrypts:
            ciphertext = self._encrypt(serialized.encode('utf-8'))
            claims['val'] = _b64encode(ciphertext)
            claims['enc'] = True
        else:
            claims['val'] = serialized

        encoded: str = jwt.encode(claims, self._auth_key, algorithm=ALGORITHM)
        if self.max_length and len(encoded) > self.max_length:
            raise EncodeError(f'Encoded value is too long ({len(encoded)}'
                              f' > {self.max_length})')
        return encoded

    def decode(self, name: str, encoded: str) -> Any:
        """
        Verify, decrypt and deserialize a value produced by :meth:`encode`.

        Raises
        ------
        :class:`InvalidEncoding`
            The value is not a well-formed envelope.
        :class:`InvalidMAC`
            The signature does not verify for this key and ``name``.
        :class:`InvalidTimestamp`
            The envelope timestamp is missing or too far in the future.
        :class:`ExpiredValue`
            The envelope is older than :attr:`max_age`.

        """
        if self.max_length and len(encoded) > self.max_length:
            raise InvalidEncoding('Value is too long')
        self._check_signature_encoding(encoded)
        try:
            claims = jwt.decode(encoded, self._auth_key,
                                algorithms=[ALGORITHM], audience=name,
                                options={'verify_iat': False,
                                         'require': ['aud']})
        except jwt.exceptions.InvalidSignatureError as e:
            raise InvalidMAC('Signature does not verify') from e
        except (jwt.exceptions.InvalidAudienceError,
                jwt.exceptions.MissingRequiredClaimError) as e:
            raise InvalidMAC(f'Value was not encoded for {name}') from e
        except jwt.exceptions.InvalidTokenError as e:
            raise InvalidEncoding(f'Malformed value: {e}') from e

        self._check_timestamp(claims.get('iat'))

        try:
            payload = claims['val']
            if claims.get('enc'):
                if not self.encrypts:
                    raise InvalidEncoding('Value is encrypted; no key')
                payload = self._decrypt(_b64decode(payload)).decode('utf-8')
            return json.loads(payload)
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidEncoding(f'Malformed payload: {e}') from e

    def _check_signature_encoding(self, encoded: str) -> None:
        """Reject signatures that are not canonically base64-encoded."""
        parts = encoded.split('.')
        if len(parts) != 3:
            raise InvalidEncoding('Malformed value')
        try:
            canonical = _b64encode(_b64decode(parts[2]))
        except ValueError as e:
            raise InvalidEncoding(f'Malformed signature: {e}') from e
        if canonical != parts[2]:
            raise InvalidMAC('Signature does not verify')

    def _check_timestamp(self, issued_at: Any) -> None:
        if not isinstance(issued_at, int) or isinstance(issued_at, bool):
            raise InvalidTimestamp('Missing or malformed timestamp')
        now = int(time.time())
        if issued_at > now + CLOCK_SKEW:
            raise InvalidTimestamp('Timestamp is too new')
        if self.max_age != 0 and issued_at < now - self.max_age:
            raise ExpiredValue('Timestamp is expired')

    def _encrypt(self, data: bytes) -> bytes:
        iv = os.urandom(IV_SIZE)
        encryptor = self._cipher(iv).encryptor()
        return iv + encryptor.update(data) + encryptor.finalize()

    def _decrypt(self, data: bytes) -> bytes:
        if len(data) <= IV_SIZE:
            raise InvalidEncoding('Encrypted payload is too short')
        iv, ciphertext = data[:IV_SIZE], data[IV_SIZE:]
        decryptor = self._cipher(iv).decryptor()
        return decryptor.update(ciphertext) + decryptor.finalize()

    def _cipher(self, iv: bytes) -> Cipher:
        return Cipher(algorithms.AES(self._encryption_key), modes.CTR(iv))


def _b64encode(data: bytes) -> str:
    return urlsafe_b64encode(data).decode('ascii').rstrip('=')


def _b64decode(data: str) -> bytes:
    return urlsafe_b64decode(data + '=' * (-len(data) % 4))


def as_key_pair(pair: Union[KeyPair, Tuple]) -> KeyPair:
    """
    Coerce ``(auth_key,)`` or ``(auth_key, encryption_key)`` to a
    :class:`.KeyPair`.

    Raises
    ------
    :class:`ConfigError`
        Raised if ``pair`` is not a one- or two-item tuple of byte strings,
        e.g. a bare key given in place of a pair.

    """
    if not isinstance(pair, (tuple, list)) or not 1 <= len(pair) <= 2:
        raise ConfigError(f'Expected (auth_key[, encryption_key]),'
                          f' got {type(pair).__name__}')
    key_pair = KeyPair(*pair)
    if not isinstance(key_pair.auth_key, bytes) \
            or not isinstance(key_pair.encryption_key, (bytes, type(None))):
        raise ConfigError('Keys must be bytes')
    return key_pair


def codecs_from_pairs(key_pairs: Iterable[Union[KeyPair, Tuple]],
                      max_age: int = DEFAULT_MAX_AGE,
                      max_length: int = DEFAULT_MAX_LENGTH) -> List[Codec]:
    """
    Create one :class:`Codec` per key pair, preserving rotation order.

    Each pair may be a :class:`.KeyPair` or a ``(auth_key,)`` /
    ``(auth_key, encryption_key)`` tuple.

    Raises
    ------
    :class:`ConfigError`
        Raised if no key pairs are given, or if any pair is invalid.

    """
    codecs = []
    for pair in key_pairs:
        pair = as_key_pair(pair)
        codecs.append(Codec(pair.auth_key, pair.encryption_key,
                            max_age=max_age, max_length=max_length))
    if not codecs:
        raise ConfigError('At least one key pair is required')
    return codecs


def encode_multi(name: str, value: Any, codecs: Sequence[Codec]) -> str:
    """Encode ``value`` with the first (active) codec."""
    if not codecs:
        raise EncodeError('No codecs were provided')
    return codecs[0].encode(name, value)


def decode_multi(name: str, encoded: str, codecs: Sequence[Codec]) -> Any:
    """
    Decode ``encoded`` with the first codec that accepts it.

    Raises
    ------
    :class:`DecodeError`
        If no codec accepts the value. When a codec verified the signature
        but rejected the value for another reason (e.g. it is expired), that
        error is raised; otherwise the error from the first codec is raised.

    """
    if not codecs:
        raise InvalidMAC('No codecs were provided')
    errors: List[DecodeError] = []
    for codec in codecs:
        try:
            return codec.decode(name, encoded)
        except DecodeError as e:
            errors.append(e)
    logger.debug('No codec accepted value for %s: %s', name, errors)
    for error in errors:
        if not isinstance(error, InvalidMAC):
            raise error
    raise errors[0]
