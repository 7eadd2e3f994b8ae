# civic_portal/encryption/password_hashing.py

import re
import secrets
import string

from argon2 import PasswordHasher
from argon2.exceptions import HashingError, InvalidHashError, VerificationError

from civic_portal.errors import WeakPassword

# Password hashing and verification using Argon2id

TEMP_CREDENTIAL_ALPHABET = string.ascii_letters + string.digits


class PasswordHashingService:
    def __init__(self, time_cost=3, memory_cost=65536, parallelism=4):
        self.ph = PasswordHasher(
            time_cost=time_cost,
            memory_cost=memory_cost,
            parallelism=parallelism,
            hash_len=32,
            salt_len=16,
        )

    @classmethod
    def from_config(cls, config):
        return cls(
            time_cost=config.get('ARGON2_TIME_COST', 3),
            memory_cost=config.get('ARGON2_MEMORY_COST', 65536),
            parallelism=config.get('ARGON2_PARALLELISM', 4),
        )

    def hash_password(self, password: str) -> str:
        if not self.is_strong_password(password):
            raise WeakPassword()
        try:
            return self.ph.hash(password)
        except HashingError as e:
            raise ValueError(f"Password hashing failed: {str(e)}")

    def verify_password(self, password: str, hash_value: str) -> bool:
        if not isinstance(password, str) or not password or not hash_value:
            return False
        try:
            return self.ph.verify(hash_value, password)
        except (VerificationError, InvalidHashError):
            return False

    def needs_rehash(self, hash_value: str) -> bool:
        return self.ph.check_needs_rehash(hash_value)

    def is_strong_password(self, password: str) -> bool:
        if not isinstance(password, str) or len(password) < 12:
            return False
        has_upper = bool(re.search(r'[A-Z]', password))
        has_lower = bool(re.search(r'[a-z]', password))
        has_digit = bool(re.search(r'\d', password))
        has_special = bool(re.search(r'[!@#$%^&*(),.?":{}|<>]', password))
        return sum([has_upper, has_lower, has_digit, has_special]) >= 3

    def generate_temporary_password(self, length=12) -> str:
        """Random mixed-case alphanumeric credential issued on password reset."""
        length = max(length, 12)
        while True:
            password = ''.join(secrets.choice(TEMP_CREDENTIAL_ALPHABET) for _ in range(length))
            if (any(c.isupper() for c in password)
                    and any(c.islower() for c in password)
                    and any(c.isdigit() for c in password)):
                return password
