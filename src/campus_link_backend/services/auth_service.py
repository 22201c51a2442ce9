'''

'''
from datetime import datetime, timezone
from typing import Annotated, Optional
from uuid import UUID
from fastapi import Depends

from ..common.security_utils import HashedPassword
from ..common.exceptions import InvalidCredentials, TenantInactive
from ..common.logger import log
from ..database import models as db_models
from ..database.db_enums import UserRole, SubscriptionStatus
from ..models import token as token_models
from ..models.user import AuthenticatedUser, UserRead
from .security import JWTHandler, AuthenticationService, authorize_roles
from .user_service import UserService, ADMIN_ROLES


class LoginService:
    """
    Service for handling user login and session revocation.
    Depends on the UserService to fetch user data.
    """
    def __init__(
        self,
        user_service: Annotated[UserService, Depends(UserService)],
        auth_service: Annotated[AuthenticationService, Depends(AuthenticationService)]
    ):
        self.user_service = user_service
        self.auth_service = auth_service

    async def login_user(
        self,
        login_data: token_models.LoginRequest,
        now: Optional[datetime] = None
    ) -> token_models.Token:
        log.info(f"Attempting login for user: {login_data.email}")

        candidates = await self.user_service.get_login_candidates(login_data.email, login_data.tenant_id)
        # The first account whose password matches wins; platform operators are tried first.
        user = next(
            (candidate for candidate in candidates
             if HashedPassword.verify(login_data.password, candidate.password)),
            None
        )
        if user is None:
            log.warning(f"Login failed for user: {login_data.email} - Incorrect email or password")
            raise InvalidCredentials()

        if user.role != UserRole.SUPER_ADMIN.value:
            tenant = await self.user_service.db.get(db_models.Tenants, user.tenant_id)
            if tenant is None or tenant.subscription_status != SubscriptionStatus.ACTIVE.value:
                log.warning(f"Login failed for user: {login_data.email} - Tenant {user.tenant_id} is not active.")
                raise TenantInactive()

        access_token, claims = JWTHandler.create_access_token(user, issued_at=now)
        log.info(f"Login successful for user: {login_data.email}")

        return token_models.Token(
            access_token=access_token,
            token_type="bearer",
            expires_at=datetime.fromtimestamp(claims.exp, tz=timezone.utc),
            user=UserRead.model_validate(user)
        )

    async def revoke_current_token(self, current_user: AuthenticatedUser) -> None:
        """Logout: deny-lists the token the caller authenticated with."""
        await self.auth_service.revoke_token(
            user_id=current_user.id,
            issued_at=current_user.token_issued_at,
            expires_at=current_user.token_expires_at,
            revoked_by=current_user.id
        )

    async def revoke_user_token(
        self,
        user_id: UUID,
        revoke_data: token_models.TokenRevokeRequest,
        current_user: AuthenticatedUser
    ) -> None:
        """Emergency revocation of one specific token of a user in scope."""
        authorize_roles(current_user, ADMIN_ROLES)
        # Reuses the user service's scoping so foreign users read as missing.
        target = await self.user_service._get_scoped_user(user_id, current_user)
        log.warning(f"SECURITY: User {current_user.id} revoking token iat={revoke_data.issued_at} of user {user_id}.")
        await self.auth_service.revoke_token(
            user_id=target.id,
            issued_at=revoke_data.issued_at,
            expires_at=revoke_data.expires_at,
            revoked_by=current_user.id
        )
