'''
Shortcuts for acting as a given user in tests.
'''
from datetime import datetime
from typing import Optional

from campus_link_backend.database import models as db_models
from campus_link_backend.database.db_enums import UserRole
from campus_link_backend.models.user import AuthenticatedUser
from campus_link_backend.services.security import JWTHandler


def as_caller(user: db_models.Users) -> AuthenticatedUser:
    """Builds the AuthenticatedUser the security layer would produce for 'user'."""
    return AuthenticatedUser(
        id=user.id,
        email=user.email,
        role=UserRole(user.role),
        tenant_id=user.tenant_id,
        first_name=user.first_name,
        last_name=user.last_name
    )

def auth_headers(user: db_models.Users, issued_at: Optional[datetime] = None) -> dict[str, str]:
    token, _ = JWTHandler.create_access_token(user, issued_at=issued_at)
    return {"Authorization": f"Bearer {token}"}
