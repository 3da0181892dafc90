"""
Gateway instance registry.

Instance-scoped routes are checked against the caller's principal here;
the authentication resolver has already decided who the caller is.
"""

from typing import List, Optional

from sqlalchemy.exc import IntegrityError

from ..auth.api_secrets import generate_opaque_token
from ..auth.authorization import can_access_instance
from ..context.operation_context import operation
from ..db.db_account_models import TenantAccount
from ..db.db_instance_models import GatewayInstance
from ..enums import PrincipalKind
from ..exceptions import AuthorizationDeniedError, duplicate, not_found
from ..schemas.instance_schemas import InstanceCreate, InstanceCreated, InstanceRead
from ..schemas.principal import Principal
from ..utils.crud_helpers import get_record, record_exists
from .audit_service import AuditService
from .base_service import SessionManagedService
from .subscription_service import SubscriptionService


class InstanceService(SessionManagedService):
    """Create, list and remove gateway instances on behalf of a principal."""

    def __init__(
        self,
        subscriptions: SubscriptionService,
        audit: Optional[AuditService] = None,
        session=None,
        logger=None,
        clock=None,
    ):
        super().__init__(session=session, logger=logger, clock=clock)
        self.subscriptions = subscriptions
        self.audit = audit

    def _get_by_name(self, name: str) -> GatewayInstance:
        instance = get_record(self.session, GatewayInstance, {"name": name})
        if instance is None:
            raise not_found("GatewayInstance", name=name)
        return instance

    def _authorize(self, principal: Principal, instance: GatewayInstance) -> None:
        if not can_access_instance(principal, instance.id, instance.tenant_id):
            raise AuthorizationDeniedError(
                "Access denied to this instance", instance_name=instance.name
            )

    @operation()
    def list_instances(self, principal: Principal) -> List[InstanceRead]:
        """
        Instances visible to a principal.

        Global admins see every instance, tenants their own and an
        instance token only its own instance.
        """
        query = self.session.query(GatewayInstance)
        if principal.is_global_admin:
            pass
        elif principal.kind == PrincipalKind.INSTANCE_TOKEN:
            query = query.filter(GatewayInstance.id == principal.instance_id)
        elif principal.kind == PrincipalKind.TENANT_USER:
            query = query.filter(GatewayInstance.tenant_id == principal.tenant_id)
        else:
            return []
        rows = query.order_by(GatewayInstance.created_at.asc()).all()
        return [InstanceRead.model_validate(row) for row in rows]

    @operation()
    def list_owned_instances(self, tenant_id: str) -> List[InstanceRead]:
        """Instances owned by one tenant, whatever its role."""
        rows = (
            self.session.query(GatewayInstance)
            .filter(GatewayInstance.tenant_id == tenant_id)
            .order_by(GatewayInstance.created_at.asc())
            .all()
        )
        return [InstanceRead.model_validate(row) for row in rows]

    @operation()
    def create_instance(self, principal: Principal, request: InstanceCreate) -> InstanceCreated:
        """
        Register a new instance.

        Tenants create instances for themselves and are held to their
        subscription quota. Global admins may create unowned instances or
        assign one to a tenant through `request.tenant_id`.

        Raises:
            ConflictError: the name or token is taken
            ExpiredResourceError: the tenant's subscription is not live
            QuotaExceededError: the tenant is at its quota
        """
        if principal.is_global_admin:
            owner_id = request.tenant_id or principal.tenant_id
            if owner_id is not None and self.session.get(TenantAccount, owner_id) is None:
                raise not_found("TenantAccount", tenant_id=owner_id)
        elif principal.kind == PrincipalKind.TENANT_USER:
            owner_id = principal.tenant_id
            self.subscriptions.assert_can_create_instance(owner_id)
        else:
            raise AuthorizationDeniedError(
                "Only operators may create instances", principal_kind=principal.kind.value
            )

        if record_exists(self.session, GatewayInstance, {"name": request.name}):
            raise duplicate("GatewayInstance", name=request.name)

        instance = GatewayInstance(
            name=request.name,
            token=request.token or generate_opaque_token(),
            tenant_id=owner_id,
        )
        try:
            with self.transaction():
                self.session.add(instance)
        except IntegrityError as e:
            raise duplicate("GatewayInstance", cause=e, name=request.name) from e

        self.logger.info(
            "Instance created",
            extra={"instance_id": instance.id, "instance_name": instance.name, "tenant_id": owner_id},
        )
        if self.audit is not None:
            self.audit.log_instance_create(principal.tenant_id, instance.id, instance.name)
        return InstanceCreated.model_validate(instance)

    @operation()
    def get_instance(self, principal: Principal, name: str) -> InstanceRead:
        instance = self._get_by_name(name)
        self._authorize(principal, instance)
        return InstanceRead.model_validate(instance)

    @operation()
    def delete_instance(self, principal: Principal, name: str) -> None:
        """Remove an instance the principal may access."""
        instance = self._get_by_name(name)
        self._authorize(principal, instance)
        instance_id = instance.id
        with self.transaction():
            self.session.delete(instance)

        self.logger.info(
            "Instance deleted", extra={"instance_id": instance_id, "instance_name": name}
        )
        if self.audit is not None:
            self.audit.log_instance_delete(principal.tenant_id, instance_id, name)
