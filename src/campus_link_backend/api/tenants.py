'''
API endpoints for colleges (tenants). Platform operators only.
'''
from typing import Annotated, Any
from uuid import UUID
from fastapi import APIRouter, Depends, status

from ..models import user as user_models
from ..models.user import AuthenticatedUser
from ..services.security import verify_token_and_get_user
from ..services.tenant_service import TenantService

class TenantsAPI:
    def __init__(self):
        self.router = APIRouter(
            prefix="/tenants",
            tags=["Tenants"]
        )
        self._register_routes()

    def _register_routes(self):
        """Registers all the API routes for this class."""
        self.router.add_api_route(
                "",
                self.create_tenant,
                methods=["POST"],
                status_code=status.HTTP_201_CREATED,
                response_model=user_models.TenantRead)
        self.router.add_api_route(
                "",
                self.list_tenants,
                methods=["GET"],
                response_model=list[user_models.TenantRead])
        self.router.add_api_route(
                "/{tenant_id}/subscription",
                self.update_subscription,
                methods=["PATCH"],
                response_model=user_models.TenantRead)

    async def create_tenant(
        self,
        tenant_data: user_models.TenantCreate,
        current_user: Annotated[AuthenticatedUser, Depends(verify_token_and_get_user)],
        tenant_service: Annotated[TenantService, Depends(TenantService)]
    ) -> Any:
        return await tenant_service.create_tenant(tenant_data, current_user)

    async def list_tenants(
        self,
        current_user: Annotated[AuthenticatedUser, Depends(verify_token_and_get_user)],
        tenant_service: Annotated[TenantService, Depends(TenantService)]
    ) -> Any:
        return await tenant_service.list_tenants(current_user)

    async def update_subscription(
        self,
        tenant_id: UUID,
        update_data: user_models.TenantSubscriptionUpdate,
        current_user: Annotated[AuthenticatedUser, Depends(verify_token_and_get_user)],
        tenant_service: Annotated[TenantService, Depends(TenantService)]
    ) -> Any:
        """
        Activates or deactivates a college, or changes its plan and seat limit.
        """
        return await tenant_service.update_subscription(tenant_id, update_data, current_user)

router = TenantsAPI().router
