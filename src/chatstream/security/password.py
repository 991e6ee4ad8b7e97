import hashlib
import hmac
import secrets
from typing import Optional


class PasswordHandler:
    """Password hashing with PBKDF2-HMAC-SHA256 (hashlib).

    Stored format: pbkdf2_sha256$<iterations>$<salt_hex>$<hash_hex>
    """

    DEFAULT_ITERATIONS = 300_000
    PREFIX = "pbkdf2_sha256"
    SALT_BYTES = 16

    def __init__(self, iterations: Optional[int] = None):
        self.iterations = iterations or self.DEFAULT_ITERATIONS

    def _pbkdf2_hash(self, password: str, salt: bytes, iterations: int) -> bytes:
        return hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, iterations)

    def verify_password(self, plain_password: str, hashed_password: str) -> bool:
        if not plain_password or not hashed_password:
            return False

        parts = hashed_password.split("$")
        if len(parts) != 4 or parts[0] != self.PREFIX:
            return False
        _, iter_s, salt_hex, hash_hex = parts
        try:
            iterations = int(iter_s)
            salt = bytes.fromhex(salt_hex)
            expected = bytes.fromhex(hash_hex)
        except ValueError:
            return False
        derived = self._pbkdf2_hash(plain_password, salt, iterations)
        return hmac.compare_digest(derived, expected)

    def hash_password(self, password: str) -> str:
        if password is None:
            raise ValueError("password must be a string")
        salt = secrets.token_bytes(self.SALT_BYTES)
        dk = self._pbkdf2_hash(password, salt, self.iterations)
        return f"{self.PREFIX}${self.iterations}${salt.hex()}${dk.hex()}"
