'''
Service for managing colleges (tenants). Platform operators only.
'''
from typing import Annotated
from uuid import UUID
from fastapi import Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..database.engine import get_db_session
from ..database import models as db_models
from ..database.db_enums import UserRole
from ..common.logger import log
from ..common.exceptions import ResourceNotFound, ConflictError
from ..models import user as user_models
from ..models.user import AuthenticatedUser
from .security import authorize_roles


class TenantService:
    def __init__(self, db: Annotated[AsyncSession, Depends(get_db_session)]):
        self.db = db

    async def get_tenant_by_id(self, tenant_id: UUID) -> db_models.Tenants | None:
        return await self.db.get(db_models.Tenants, tenant_id)

    async def create_tenant(
        self,
        tenant_data: user_models.TenantCreate,
        current_user: AuthenticatedUser
    ) -> db_models.Tenants:
        authorize_roles(current_user, [UserRole.SUPER_ADMIN])
        log.info(f"User {current_user.id} creating tenant '{tenant_data.name}'.")

        if tenant_data.domain:
            stmt = select(db_models.Tenants.id).filter(db_models.Tenants.domain == tenant_data.domain)
            if (await self.db.execute(stmt)).scalars().first():
                raise ConflictError(f"domain {tenant_data.domain} taken")

        try:
            tenant = db_models.Tenants(
                name=tenant_data.name,
                domain=tenant_data.domain,
                contact_email=tenant_data.contact_email,
                subscription_plan=tenant_data.subscription_plan.value,
                max_users=tenant_data.max_users
            )
            self.db.add(tenant)
            await self.db.flush()
            log.info(f"Created tenant {tenant.id}.")
            return tenant
        except Exception as e:
            log.error(f"Database error creating tenant '{tenant_data.name}': {e}", exc_info=True)
            raise

    async def list_tenants(self, current_user: AuthenticatedUser) -> list[db_models.Tenants]:
        authorize_roles(current_user, [UserRole.SUPER_ADMIN])
        result = await self.db.execute(select(db_models.Tenants).order_by(db_models.Tenants.name))
        return list(result.scalars().all())

    async def update_subscription(
        self,
        tenant_id: UUID,
        update_data: user_models.TenantSubscriptionUpdate,
        current_user: AuthenticatedUser
    ) -> db_models.Tenants:
        """
        Toggles a college's subscription. Deactivation blocks new logins for
        everyone in the college; tokens already issued keep working until
        they expire or are revoked.
        """
        authorize_roles(current_user, [UserRole.SUPER_ADMIN])
        tenant = await self.get_tenant_by_id(tenant_id)
        if tenant is None:
            raise ResourceNotFound(f"tenant {tenant_id}")

        changes = update_data.model_dump(exclude_unset=True, exclude_none=True)
        for key, value in changes.items():
            setattr(tenant, key, getattr(value, 'value', value))

        await self.db.flush()
        log.info(f"Tenant {tenant.id} subscription updated by {current_user.id}: {changes}")
        return tenant
