"""Credential handling: resolution chain, session tokens, hashing and role checks."""

from .api_secrets import generate_api_secret, generate_opaque_token, has_secret_format
from .authorization import (
    can_access_instance,
    forbid_self_action,
    require_admin,
    require_super_admin,
    require_tenant,
)
from .passwords import PasswordHasher
from .resolver import (
    AuthenticationResolver,
    CredentialMaterial,
    HardError,
    Matched,
    NoMatch,
)
from .tokens import TokenCodec

__all__ = [
    "AuthenticationResolver",
    "CredentialMaterial",
    "HardError",
    "Matched",
    "NoMatch",
    "PasswordHasher",
    "TokenCodec",
    "can_access_instance",
    "forbid_self_action",
    "generate_api_secret",
    "generate_opaque_token",
    "has_secret_format",
    "require_admin",
    "require_super_admin",
    "require_tenant",
]
