"""Slow, salted one-way password hashing with bcrypt."""

import bcrypt


class PasswordHasher:
    def __init__(self, rounds: int = 12):
        self.rounds = rounds

    def hash(self, plaintext: str) -> str:
        return bcrypt.hashpw(plaintext.encode("utf-8"), bcrypt.gensalt(rounds=self.rounds)).decode(
            "utf-8"
        )

    def verify(self, plaintext: str, digest: str) -> bool:
        """Return False for a wrong password or an unusable digest."""
        if not digest:
            return False
        try:
            return bcrypt.checkpw(plaintext.encode("utf-8"), digest.encode("utf-8"))
        except ValueError:
            return False
