# hubrecords/encryption/password_hashing.py

import re
import secrets
import string
from argon2 import PasswordHasher
from argon2.exceptions import VerifyMismatchError, VerificationError, InvalidHashError, HashingError

from hubrecords.errors import ValidationError, InternalError

# Account password hashing with Argon2id. Only the encoded hash is persisted.

HASHER_PARAMS = {
    'time_cost': 3,
    'memory_cost': 65536,
    'parallelism': 4,
    'hash_len': 32,
    'salt_len': 16,
}

MIN_STRONG_LENGTH = 12
CHARACTER_CLASSES = (
    re.compile(r'[A-Z]'),
    re.compile(r'[a-z]'),
    re.compile(r'\d'),
    re.compile(r'[!@#$%^&*(),.?":{}|<>]'),
)
GENERATED_ALPHABET = string.ascii_letters + string.digits + '!@#$%^&*(),.?":{}|<>'


class PasswordHashingService:
    def __init__(self, enforce_policy=False, hasher=None):
        self.enforce_policy = enforce_policy
        self.hasher = hasher or PasswordHasher(**HASHER_PARAMS)
        self._placeholder_hash = None

    def hash_password(self, password: str) -> str:
        if not isinstance(password, str) or not password:
            raise ValidationError("Password is required", errors={'password': 'required'})
        if self.enforce_policy and not self.is_strong_password(password):
            raise ValidationError("Password does not meet security requirements",
                                  errors={'password': 'too weak'})
        try:
            return self.hasher.hash(password)
        except HashingError as e:
            raise InternalError(f"Password hashing failed: {e}")

    def verify_password(self, password: str, hash_value: str) -> bool:
        if not isinstance(password, str) or not hash_value:
            return False
        try:
            return self.hasher.verify(hash_value, password)
        except (VerifyMismatchError, VerificationError, InvalidHashError):
            return False

    def verify_unknown(self, password) -> bool:
        """Spend one verification on a placeholder hash. Always False.

        Used when the account does not exist, so that an unknown email costs
        the same as a wrong password.
        """
        if self._placeholder_hash is None:
            self._placeholder_hash = self.hasher.hash(secrets.token_urlsafe(16))
        self.verify_password(password if isinstance(password, str) else '', self._placeholder_hash)
        return False

    def needs_rehash(self, hash_value: str) -> bool:
        return self.hasher.check_needs_rehash(hash_value)

    def is_strong_password(self, password: str) -> bool:
        # at least three of: upper, lower, digit, special
        if not isinstance(password, str) or len(password) < MIN_STRONG_LENGTH:
            return False
        return sum(1 for pattern in CHARACTER_CLASSES if pattern.search(password)) >= 3

    def generate_secure_password(self, length=16) -> str:
        length = max(length, MIN_STRONG_LENGTH)
        while True:
            password = ''.join(secrets.choice(GENERATED_ALPHABET) for _ in range(length))
            if self.is_strong_password(password):
                return password
