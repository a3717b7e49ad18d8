# hubrecords/encryption/field_encryption.py
"""Reversible encryption for sensitive contact fields stored at rest.

Hub records keep the entity's phone number and email address encrypted in
the database. Values are encrypted with AES-256-GCM under a key stretched
from the configured master key with PBKDF2, and serialised as:

    enc:v1:<urlsafe-base64(nonce || ciphertext || tag)>

A fresh nonce is drawn for every value, so encryption is randomized: two
encodings of the same phone number differ, and equality lookups against the
stored column are not possible. Searching happens on decoded values.

Reading is deliberately forgiving. Records written before encryption was
switched on, or by a deployment running with encryption disabled, hold plain
text. ``decode`` returns such values untouched, and when a value looks
encrypted but cannot be decrypted (wrong key, tampering) it logs a warning
and hands back the stored value instead of raising.

Exception hierarchy (raised only by ``decrypt``, never by ``decode``):
- DecryptionError: Base class for all decryption failures
  - InvalidPackageError: Value is not a well-formed encrypted field
  - IntegrityError: Tag verification failed (wrong key or tampering)

Usage:
    codec = FieldEncryptionCodec(master_key='a long secret')
    stored = codec.encode('555-0101')
    codec.decode(stored)      # '555-0101'
    codec.decode('555-0101')  # '555-0101', plain text passes through
"""

import os
import base64
import binascii
import logging
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

logger = logging.getLogger(__name__)

# Fields of a hub record that are encrypted at rest
ENCRYPTED_FIELDS = ('entity_phone', 'entity_email')

DEFAULT_SALT = b'hubrecords-field-codec-v1'
NONCE_SIZE = 12  # GCM standard nonce length
TAG_SIZE = 16


class FieldEncryptionCodec:
    PREFIX = 'enc:v1:'

    def __init__(self, master_key=None, salt=None, enabled=True):
        if master_key is None:
            # Use environment variable or default (change in production)
            master_key = os.environ.get('FIELD_ENCRYPTION_KEY', 'default-field-key-change-me-0123456789')
        if isinstance(salt, str):
            salt = salt.encode()
        self.enabled = enabled
        self._key, _ = self.derive_key(master_key, salt or DEFAULT_SALT)

    def derive_key(self, password: str, salt: bytes = None) -> tuple:
        """Derive a 32-byte AES key from a password"""
        if salt is None:
            salt = os.urandom(16)
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=32,
            salt=salt,
            iterations=100000,
        )
        return kdf.derive(password.encode()), salt

    def is_encrypted(self, value) -> bool:
        return isinstance(value, str) and value.startswith(self.PREFIX)

    def encode(self, plaintext):
        """Encrypt a field value. Empty and already encrypted values pass through."""
        if not self.enabled or not plaintext or self.is_encrypted(plaintext):
            return plaintext

        iv = os.urandom(NONCE_SIZE)
        cipher = Cipher(algorithms.AES(self._key), modes.GCM(iv))
        encryptor = cipher.encryptor()
        ciphertext = encryptor.update(plaintext.encode()) + encryptor.finalize()

        token = base64.urlsafe_b64encode(iv + ciphertext + encryptor.tag).decode()
        return self.PREFIX + token

    def decrypt(self, value: str) -> str:
        """Strictly decrypt an encoded value, raising DecryptionError subclasses."""
        if not self.is_encrypted(value):
            raise InvalidPackageError("Value is not an encrypted field")

        try:
            raw = base64.urlsafe_b64decode(value[len(self.PREFIX):].encode())
        except (binascii.Error, ValueError) as e:
            raise InvalidPackageError(f"Invalid encrypted field encoding: {e}")
        if len(raw) < NONCE_SIZE + TAG_SIZE:
            raise InvalidPackageError("Encrypted field is truncated")

        iv, ciphertext, tag = raw[:NONCE_SIZE], raw[NONCE_SIZE:-TAG_SIZE], raw[-TAG_SIZE:]
        try:
            cipher = Cipher(algorithms.AES(self._key), modes.GCM(iv, tag))
            decryptor = cipher.decryptor()
            decrypted = decryptor.update(ciphertext) + decryptor.finalize()
            return decrypted.decode()
        except InvalidTag as e:
            raise IntegrityError(f"GCM authentication failed: {e}")
        except UnicodeDecodeError as e:
            raise IntegrityError(f"Decrypted field is not valid text: {e}")

    def decode(self, value):
        """Decrypt a stored value, falling back to the raw value on any failure."""
        if not self.is_encrypted(value):
            return value
        try:
            return self.decrypt(value)
        except DecryptionError as e:
            # Never include the value itself in the log line
            logger.warning("Field decryption failed, returning stored value: %s", type(e).__name__)
            return value

    def encode_fields(self, data: dict, fields=ENCRYPTED_FIELDS) -> dict:
        """Encrypt the sensitive fields present in ``data`` (a copy is returned)."""
        encoded = dict(data)
        for field in fields:
            if field in encoded:
                encoded[field] = self.encode(encoded[field])
        return encoded

    def decode_fields(self, data: dict, fields=ENCRYPTED_FIELDS) -> dict:
        decoded = dict(data)
        for field in fields:
            if field in decoded:
                decoded[field] = self.decode(decoded[field])
        return decoded


class DecryptionError(Exception):
    """Base exception for decryption-related failures."""
    pass


class InvalidPackageError(DecryptionError):
    """Raised when the stored value is not a well-formed encrypted field."""
    pass


class IntegrityError(DecryptionError):
    """Raised when ciphertext/tag authentication fails (GCM tag mismatch)."""
    pass
