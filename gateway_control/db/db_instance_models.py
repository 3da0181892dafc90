"""Gateway instance model."""

from sqlalchemy import Column, ForeignKey, String
from sqlalchemy.orm import relationship

from ..enums import InstanceConnectionStatus
from .db_base import TimestampMixin, UUIDMixin
from .db_config import Base


class GatewayInstance(Base, UUIDMixin, TimestampMixin):
    """A messaging gateway connection, addressed by its unique name."""

    __tablename__ = "gateway_instances"

    name = Column(String(100), nullable=False, unique=True, index=True)
    token = Column(String(100), nullable=False, unique=True, index=True)
    tenant_id = Column(
        String(36),
        ForeignKey("tenant_accounts.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    connection_status = Column(
        String(20), nullable=False, default=InstanceConnectionStatus.CLOSE.value
    )

    owner = relationship("TenantAccount", back_populates="instances")

    def __repr__(self) -> str:
        return f"<GatewayInstance(name={self.name}, tenant_id={self.tenant_id})>"
