'''
Bearer tokens, caller authentication and the authorization predicates.

Every route that needs a caller depends on verify_token_and_get_user, and
every service method that touches tenant data calls authorize_tenant_scope
with the tenant stored on the resource it loaded.
'''
from datetime import datetime, timedelta, timezone
from typing import Optional, Annotated
from uuid import UUID

import pydantic
from jose import JWTError, jwt
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy import select, delete, exists
from sqlalchemy.ext.asyncio import AsyncSession

from ..common.config import settings
from ..common.logger import log
from ..common.exceptions import (
    MissingToken, InvalidToken, ExpiredToken, UserNotFound, UserInactive,
    TokenRevoked, InsufficientRole, CrossTenantAccess, ValidationError
)
from ..database.engine import get_db_session
from ..database import models as db_models
from ..database.db_enums import UserRole, UserStatus
from ..models.token import TokenPayload
from ..models.user import AuthenticatedUser


def _epoch(moment: Optional[datetime]) -> int:
    if moment is None:
        moment = datetime.now(timezone.utc)
    return int(moment.timestamp())


# --- JWT Handling ---
class JWTHandler:
    @staticmethod
    def create_access_token(
        user: db_models.Users,
        issued_at: Optional[datetime] = None
    ) -> tuple[str, TokenPayload]:
        """
        Signs a token for the given user. Returns the encoded token together
        with the claims it carries.
        """
        iat = _epoch(issued_at)
        exp = iat + int(timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES).total_seconds())
        claims = TokenPayload(
            sub=user.id,
            role=UserRole(user.role),
            tenant_id=user.tenant_id,
            iat=iat,
            exp=exp
        )
        to_encode = claims.model_dump(mode='json')
        encoded_jwt = jwt.encode(
            to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM
        )
        return encoded_jwt, claims

    @staticmethod
    def decode_token(token: str, now: Optional[datetime] = None) -> TokenPayload:
        """
        Verifies the signature and expiry of a token.
        Expiry is compared against 'now' rather than the library clock, so a
        token is still valid at exactly its 'exp' second and expired after it.
        """
        try:
            payload = jwt.decode(
                token,
                settings.SECRET_KEY,
                algorithms=[settings.ALGORITHM],
                options={"verify_exp": False}
            )
            token_data = TokenPayload(**payload)
        except (JWTError, pydantic.ValidationError) as e:
            log.warning(f"JWT decode/validation error: {e}")
            raise InvalidToken(str(e))

        if _epoch(now) > token_data.exp:
            log.warning(f"Expired token presented for user {token_data.sub} (exp={token_data.exp}).")
            raise ExpiredToken()
        return token_data


# --- Authorization Predicates ---

def authorize_roles(current_user: AuthenticatedUser, allowed_roles: list[UserRole]) -> None:
    """Raises InsufficientRole unless the caller holds one of the allowed roles."""
    if current_user.role not in allowed_roles:
        allowed_role_values = [role.value for role in allowed_roles]
        log.warning(
            f"SECURITY: Role denied for user {current_user.id} (Role: {current_user.role.value}, "
            f"Tenant: {current_user.tenant_id}). Required one of: {allowed_role_values}"
        )
        raise InsufficientRole(f"role {current_user.role.value} not in {allowed_role_values}")

def authorize_tenant_scope(current_user: AuthenticatedUser, resource_tenant_id: Optional[UUID]) -> None:
    """
    The one place tenants are compared. Platform operators pass everything;
    anyone else must belong to the tenant that owns the resource.
    """
    if current_user.is_super_admin:
        return
    if current_user.tenant_id is None or current_user.tenant_id != resource_tenant_id:
        log.warning(
            f"SECURITY: Cross-tenant access attempt by user {current_user.id} "
            f"(Role: {current_user.role.value}, Tenant: {current_user.tenant_id}) "
            f"on resource of tenant {resource_tenant_id}"
        )
        raise CrossTenantAccess(f"user tenant {current_user.tenant_id} != resource tenant {resource_tenant_id}")

def resolve_tenant_scope(current_user: AuthenticatedUser, requested_tenant_id: Optional[UUID] = None) -> UUID:
    """
    Picks the tenant that list and report queries filter by.
    Tenant users default to their own tenant; platform operators must name one.
    """
    if requested_tenant_id is None:
        if current_user.tenant_id is None:
            raise ValidationError("tenant_id", "A tenant must be specified for platform-level users.")
        return current_user.tenant_id
    authorize_tenant_scope(current_user, requested_tenant_id)
    return requested_tenant_id


# --- Authentication ---

class AuthenticationService:
    """
    Turns a bearer token into an AuthenticatedUser and maintains the
    revoked-token deny list.
    """
    def __init__(self, db: Annotated[AsyncSession, Depends(get_db_session)]):
        self.db = db

    async def authenticate(self, token: str, now: Optional[datetime] = None) -> AuthenticatedUser:
        token_data = JWTHandler.decode_token(token, now=now)

        is_revoked = exists().where(
            db_models.RevokedTokens.user_id == db_models.Users.id,
            db_models.RevokedTokens.issued_at == token_data.iat
        ).label('is_revoked')

        # Super admins have no tenant row, so the outer join yields None for them.
        stmt = select(
            db_models.Users,
            db_models.Tenants.id,
            is_revoked
        ).outerjoin(
            db_models.Tenants, db_models.Users.tenant_id == db_models.Tenants.id
        ).filter(
            db_models.Users.id == token_data.sub
        )
        try:
            result = await self.db.execute(stmt)
            row = result.first()
        except Exception as e:
            log.error(f"Database error authenticating user {token_data.sub}: {e}", exc_info=True)
            raise

        if row is None:
            log.warning(f"User '{token_data.sub}' not found during token verification.")
            raise UserNotFound()

        user, tenant_id, revoked = row
        if user.role != UserRole.SUPER_ADMIN.value and tenant_id is None:
            log.warning(f"User '{user.id}' has no tenant row during token verification.")
            raise UserNotFound("tenant missing")

        if user.status != UserStatus.ACTIVE.value:
            log.warning(f"User '{user.id}' is not active (status: {user.status}).")
            raise UserInactive()

        if revoked:
            log.warning(f"Revoked token presented for user '{user.id}' (iat={token_data.iat}).")
            raise TokenRevoked()

        log.info(f"JWT verified successfully for user: {user.email} (Role: {user.role})")
        return AuthenticatedUser(
            id=user.id,
            email=user.email,
            role=UserRole(user.role),
            tenant_id=user.tenant_id,
            first_name=user.first_name,
            last_name=user.last_name,
            token_issued_at=token_data.iat,
            token_expires_at=token_data.exp
        )

    async def revoke_token(
        self,
        user_id: UUID,
        issued_at: int,
        expires_at: Optional[int],
        revoked_by: UUID,
        now: Optional[datetime] = None
    ) -> None:
        """
        Adds (user, iat) to the deny list and purges entries whose tokens
        would have expired anyway.
        """
        now_epoch = _epoch(now)
        if expires_at is None:
            expires_at = issued_at + int(timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES).total_seconds())

        try:
            await self.db.execute(
                delete(db_models.RevokedTokens).where(db_models.RevokedTokens.expires_at < now_epoch)
            )
            existing = await self.db.get(db_models.RevokedTokens, (user_id, issued_at))
            if existing is None:
                self.db.add(db_models.RevokedTokens(
                    user_id=user_id,
                    issued_at=issued_at,
                    expires_at=expires_at,
                    revoked_by=revoked_by
                ))
            await self.db.flush()
            log.info(f"Token of user {user_id} issued at {issued_at} revoked by {revoked_by}.")
        except Exception as e:
            log.error(f"Database error revoking token of user {user_id}: {e}", exc_info=True)
            raise


# --- JWT Verification Dependency Function ---
bearer_scheme = HTTPBearer(auto_error=False)

async def verify_token_and_get_user(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(bearer_scheme)],
    auth_service: Annotated[AuthenticationService, Depends(AuthenticationService)]
) -> AuthenticatedUser:
    """
    Dependency to verify the bearer token and resolve the live caller.
    """
    if credentials is None or not credentials.credentials:
        log.warning("Request without a bearer token.")
        raise MissingToken()
    return await auth_service.authenticate(credentials.credentials)
