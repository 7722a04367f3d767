"""
Password hashing (bcrypt, fixed work factor).
"""

import logging

import bcrypt

logger = logging.getLogger("gatehouse.auth")


class PasswordHasher:
    """
    One-way adaptive password hashing.

    The cost factor is fixed per process; hashing is CPU-bound and runs
    inline within the request.
    """

    def __init__(self, rounds: int = 10):
        if not 4 <= rounds <= 31:
            raise ValueError(f"bcrypt rounds must be between 4 and 31, got {rounds}")
        self._rounds = rounds

    @property
    def rounds(self) -> int:
        return self._rounds

    def hash(self, password: str) -> str:
        hashed = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=self._rounds))
        return hashed.decode("utf-8")

    def verify(self, password: str, hashed: str) -> bool:
        """Compare a plaintext password against a stored hash."""
        try:
            return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))
        except ValueError as e:
            # Unparseable stored hash or over-long password
            logger.warning(f"[AUTH] Password check failed: {e}")
            return False
