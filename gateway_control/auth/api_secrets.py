"""
Generation and recognition of API secrets and one-time tokens.

Tenant API secrets carry a fixed prefix so the resolver can skip the
account lookup for values that cannot be tenant secrets.
"""

import secrets

from ..constants import Limits


def generate_api_secret(prefix: str) -> str:
    """Return a fresh tenant API secret: prefix followed by 48 hex characters."""
    return f"{prefix}{secrets.token_hex(Limits.API_SECRET_RANDOM_BYTES)}"


def has_secret_format(value: str, prefix: str) -> bool:
    return bool(value) and value.startswith(prefix) and len(value) > len(prefix)


def generate_opaque_token(nbytes: int = Limits.OPAQUE_TOKEN_RANDOM_BYTES) -> str:
    """Random hex token for email verification, password reset and instance access."""
    return secrets.token_hex(nbytes)


def constant_time_equals(left: str, right: str) -> bool:
    return secrets.compare_digest(left.encode("utf-8"), right.encode("utf-8"))
