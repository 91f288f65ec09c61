"""Password hashing service using PBKDF2-HMAC-SHA256."""

import hashlib
import hmac
import secrets

from credwarden.exceptions import InvalidParameter

# Default cost for new hashes; stored hashes carry their own count.
DEFAULT_ITERATIONS = 100000
SALT_BYTES = 32
MIN_SALT_BYTES = 16
HASH_BYTES = 64
HASH_ALGORITHM = "sha256"


class PasswordHasher:
    """Derive and verify PBKDF2 password hashes.

    The iteration count is passed on every call instead of being held by the
    hasher, so hashes created under an older default stay verifiable after
    the configured cost is raised.
    """

    def __init__(self, algorithm: str = HASH_ALGORITHM, hash_bytes: int = HASH_BYTES):
        self.algorithm = algorithm
        self.hash_bytes = hash_bytes

    def derive(self, plaintext: str, salt: bytes, iterations: int) -> bytes:
        """Derive a fixed-length hash from a password.

        Args:
            plaintext: The plaintext password.
            salt: Per-account random salt.
            iterations: Number of PBKDF2 iterations.

        Returns:
            The derived key, ``hash_bytes`` long.

        Raises:
            InvalidParameter: If the salt is empty or iterations < 1.
        """
        _check_parameters(salt, iterations)
        return hashlib.pbkdf2_hmac(
            self.algorithm,
            plaintext.encode("utf-8"),
            bytes(salt),
            iterations,
            dklen=self.hash_bytes,
        )

    def verify(
        self,
        plaintext: str,
        salt: bytes,
        expected_hash: bytes,
        iterations: int,
    ) -> bool:
        """Verify a password against a stored hash.

        Args:
            plaintext: The plaintext password to verify.
            salt: The salt stored with the hash.
            expected_hash: The stored hash.
            iterations: The iteration count stored with the hash.

        Returns:
            True if the password matches, False on any length or content
            mismatch.

        Raises:
            InvalidParameter: If the salt is empty or iterations < 1.
        """
        computed = self.derive(plaintext, salt, iterations)
        return hmac.compare_digest(computed, bytes(expected_hash or b""))

    @staticmethod
    def new_salt(length: int = SALT_BYTES) -> bytes:
        """Generate a salt from the OS CSPRNG.

        Raises:
            InvalidParameter: If length is below MIN_SALT_BYTES.
        """
        if length < MIN_SALT_BYTES:
            raise InvalidParameter(
                f"Salt length must be at least {MIN_SALT_BYTES} bytes, got {length}"
            )
        return secrets.token_bytes(length)


def _check_parameters(salt: bytes, iterations: int) -> None:
    if not salt:
        raise InvalidParameter("Salt must not be empty")
    if isinstance(iterations, bool) or not isinstance(iterations, int) or iterations < 1:
        raise InvalidParameter(f"Iterations must be a positive integer, got {iterations!r}")
