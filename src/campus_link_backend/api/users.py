'''
API endpoints for user accounts and guardian links.
'''
from typing import Annotated, Any, Optional
from uuid import UUID
from fastapi import APIRouter, Depends, status, Query

from ..database.db_enums import UserRole
from ..models import user as user_models
from ..models.user import AuthenticatedUser
from ..services.security import verify_token_and_get_user
from ..services.user_service import UserService


class UserAPI:
    """Endpoints for the caller's own account."""
    def __init__(self):
        self.router = APIRouter(tags=["Users"])
        self._register_routes()

    def _register_routes(self):
        self.router.add_api_route("/users/me", self.read_users_me, methods=["GET"], response_model=user_models.UserRead)
        self.router.add_api_route(
                "/users/me/password",
                self.change_password,
                methods=["PUT"],
                status_code=status.HTTP_204_NO_CONTENT)

    async def read_users_me(
        self,
        current_user: Annotated[AuthenticatedUser, Depends(verify_token_and_get_user)],
        user_service: Annotated[UserService, Depends(UserService)]
    ) -> Any:
        """
        Returns the profile information for the currently authenticated user.
        """
        return await user_service.get_user_by_id(current_user.id)

    async def change_password(
        self,
        password_data: user_models.PasswordChange,
        current_user: Annotated[AuthenticatedUser, Depends(verify_token_and_get_user)],
        user_service: Annotated[UserService, Depends(UserService)]
    ) -> None:
        await user_service.change_password(password_data, current_user)


class UsersAdminAPI:
    """User management endpoints for college admins and platform operators."""
    def __init__(self):
        self.router = APIRouter(
                prefix="/users",
                tags=["Users"])
        self._register_routes()

    def _register_routes(self):
        self.router.add_api_route(
                "",
                self.create_user,
                methods=["POST"],
                status_code=status.HTTP_201_CREATED,
                response_model=user_models.UserRead)
        self.router.add_api_route(
                "",
                self.list_users,
                methods=["GET"],
                response_model=list[user_models.UserRead])
        self.router.add_api_route(
                "/{user_id}",
                self.update_user,
                methods=["PATCH"],
                response_model=user_models.UserRead)
        self.router.add_api_route(
                "/{user_id}",
                self.delete_user,
                methods=["DELETE"],
                status_code=status.HTTP_204_NO_CONTENT)
        self.router.add_api_route(
                "/{user_id}/password",
                self.reset_password,
                methods=["PUT"],
                status_code=status.HTTP_204_NO_CONTENT)
        self.router.add_api_route(
                "/{guardian_id}/students/{student_id}",
                self.link_guardian,
                methods=["POST"],
                status_code=status.HTTP_201_CREATED,
                response_model=user_models.GuardianLinkRead)

    async def create_user(
        self,
        user_data: user_models.UserCreate,
        current_user: Annotated[AuthenticatedUser, Depends(verify_token_and_get_user)],
        user_service: Annotated[UserService, Depends(UserService)]
    ) -> Any:
        return await user_service.create_user(user_data, current_user)

    async def list_users(
        self,
        current_user: Annotated[AuthenticatedUser, Depends(verify_token_and_get_user)],
        user_service: Annotated[UserService, Depends(UserService)],
        tenant_id: Annotated[Optional[UUID], Query(description="Required for platform operators")] = None,
        role: Annotated[Optional[UserRole], Query()] = None
    ) -> Any:
        return await user_service.list_users(current_user, tenant_id=tenant_id, role=role)

    async def update_user(
        self,
        user_id: UUID,
        update_data: user_models.UserUpdate,
        current_user: Annotated[AuthenticatedUser, Depends(verify_token_and_get_user)],
        user_service: Annotated[UserService, Depends(UserService)]
    ) -> Any:
        return await user_service.update_user(user_id, update_data, current_user)

    async def delete_user(
        self,
        user_id: UUID,
        current_user: Annotated[AuthenticatedUser, Depends(verify_token_and_get_user)],
        user_service: Annotated[UserService, Depends(UserService)]
    ) -> None:
        """Soft delete. The account stays in the database with status 'deleted'."""
        await user_service.delete_user(user_id, current_user)

    async def reset_password(
        self,
        user_id: UUID,
        reset_data: user_models.PasswordReset,
        current_user: Annotated[AuthenticatedUser, Depends(verify_token_and_get_user)],
        user_service: Annotated[UserService, Depends(UserService)]
    ) -> None:
        """Sets a new password for another user in scope. Admins only."""
        await user_service.reset_password(user_id, reset_data, current_user)

    async def link_guardian(
        self,
        guardian_id: UUID,
        student_id: UUID,
        current_user: Annotated[AuthenticatedUser, Depends(verify_token_and_get_user)],
        user_service: Annotated[UserService, Depends(UserService)],
        link_data: Optional[user_models.GuardianLinkCreate] = None
    ) -> Any:
        return await user_service.link_guardian(
            guardian_id, student_id, link_data or user_models.GuardianLinkCreate(), current_user
        )


# --- Create router instances ---
user_api_router = UserAPI().router
users_admin_router = UsersAdminAPI().router
