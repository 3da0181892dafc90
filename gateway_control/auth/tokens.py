"""Signed session tokens (HS256 JWT)."""

from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional

import jwt

from ..db.db_base import utc_now
from ..exceptions import SessionInvalidError

ALGORITHM = "HS256"


class TokenCodec:
    """Sign and verify session claims with a shared HMAC secret."""

    def __init__(
        self,
        secret: str,
        default_ttl_seconds: int,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.secret = secret
        self.default_ttl_seconds = default_ttl_seconds
        self.clock = clock

    def sign(self, claims: Dict[str, Any], ttl_seconds: Optional[int] = None) -> str:
        """Encode claims with `iat` and `exp` stamped from the codec clock."""
        issued_at = self.clock()
        ttl = self.default_ttl_seconds if ttl_seconds is None else ttl_seconds
        payload = {
            **claims,
            "iat": issued_at,
            "exp": issued_at + timedelta(seconds=ttl),
        }
        return jwt.encode(payload, self.secret, algorithm=ALGORITHM)

    def verify(self, token: str) -> Dict[str, Any]:
        """
        Decode a token, checking signature and embedded expiry only.

        Raises:
            SessionInvalidError: for every failure, without saying which
        """
        try:
            return jwt.decode(
                token,
                self.secret,
                algorithms=[ALGORITHM],
                options={"require": ["exp", "sub"]},
            )
        except jwt.PyJWTError as e:
            raise SessionInvalidError(cause=e) from e
