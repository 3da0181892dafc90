"""
Tenant account model.

A tenant account is an operator login. It owns at most one subscription
and any number of gateway instances.
"""

from sqlalchemy import Boolean, Column, DateTime, String
from sqlalchemy.orm import relationship

from ..enums import UserRole
from .db_base import TimestampMixin, UUIDMixin
from .db_config import Base


class TenantAccount(Base, UUIDMixin, TimestampMixin):
    """Operator account with credentials, role and API secret."""

    __tablename__ = "tenant_accounts"

    email = Column(String(255), nullable=False, unique=True, index=True)
    # Identity-provider accounts have no handle or password
    handle = Column(String(20), nullable=True, unique=True, index=True)
    password_hash = Column(String(255), nullable=True)

    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    profile_image_url = Column(String(500), nullable=True)

    role = Column(String(20), nullable=False, default=UserRole.USER.value)
    api_secret = Column(String(100), nullable=True, unique=True, index=True)

    email_verified = Column(Boolean, nullable=False, default=False)
    verification_token = Column(String(64), nullable=True, index=True)
    verification_token_expires_at = Column(DateTime(timezone=True), nullable=True)

    reset_token = Column(String(64), nullable=True, index=True)
    reset_token_expires_at = Column(DateTime(timezone=True), nullable=True)

    last_login_at = Column(DateTime(timezone=True), nullable=True)

    subscription = relationship(
        "Subscription",
        back_populates="account",
        uselist=False,
        cascade="all, delete-orphan",
    )
    instances = relationship("GatewayInstance", back_populates="owner")

    def __repr__(self) -> str:
        return f"<TenantAccount(id={self.id}, email={self.email}, role={self.role})>"
