'''
API endpoints for sessions: login, token check and logout.
'''
from typing import Annotated, Any
from uuid import UUID
from fastapi import APIRouter, Depends, Request, status

from ..common.config import settings
from ..common.rate_limit import limiter
from ..models import token as token_models
from ..models import user as user_models
from ..models.user import AuthenticatedUser
from ..services.auth_service import LoginService
from ..services.security import verify_token_and_get_user

class SessionsAPI:
    """
    A class to encapsulate the session endpoints.
    """
    def __init__(self):
        self.router = APIRouter(
            tags=["Sessions"]
        )
        self._register_routes()

    def _register_routes(self):
        """Registers all the API routes for this class."""
        # Throttle the bound method; slowapi finds "request" by position in its signature.
        self.router.add_api_route(
            "/sessions",
            limiter.limit(settings.LOGIN_RATE_LIMIT)(self.login_for_access_token),
            methods=["POST"],
            response_model=token_models.Token,
            summary="Login for Access Token"
        )
        self.router.add_api_route(
            "/sessions/current",
            self.get_current_session,
            methods=["GET"],
            response_model=user_models.AuthenticatedUser
        )
        self.router.add_api_route(
            "/sessions/revoke",
            self.revoke_current_session,
            methods=["POST"],
            status_code=status.HTTP_204_NO_CONTENT
        )
        self.router.add_api_route(
            "/users/{user_id}/revoke-token",
            self.revoke_user_token,
            methods=["POST"],
            status_code=status.HTTP_204_NO_CONTENT,
            tags=["Users"]
        )

    async def login_for_access_token(
        self,
        request: Request,
        login_data: token_models.LoginRequest,
        login_service: Annotated[LoginService, Depends(LoginService)]
    ) -> Any:
        """
        Authenticates a user and returns an access token valid for 24 hours.
        Pass tenant_id when the same email is registered at several colleges.
        Throttled per client address.
        """
        return await login_service.login_user(login_data)

    async def get_current_session(
        self,
        current_user: Annotated[AuthenticatedUser, Depends(verify_token_and_get_user)]
    ) -> Any:
        return current_user

    async def revoke_current_session(
        self,
        current_user: Annotated[AuthenticatedUser, Depends(verify_token_and_get_user)],
        login_service: Annotated[LoginService, Depends(LoginService)]
    ) -> None:
        """Logs out by deny-listing the presented token."""
        await login_service.revoke_current_token(current_user)

    async def revoke_user_token(
        self,
        user_id: UUID,
        revoke_data: token_models.TokenRevokeRequest,
        current_user: Annotated[AuthenticatedUser, Depends(verify_token_and_get_user)],
        login_service: Annotated[LoginService, Depends(LoginService)]
    ) -> None:
        await login_service.revoke_user_token(user_id, revoke_data, current_user)

# Create an instance of the class and export its router
router = SessionsAPI().router
