'''
Request and response models for sessions and bearer tokens.
'''
from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field

from ..database.db_enums import UserRole
from .user import UserRead

class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)
    # Needed only when the same email is registered at several colleges
    tenant_id: Optional[UUID] = None

class Token(BaseModel):
    access_token: str
    token_type: str
    expires_at: datetime
    user: UserRead

class TokenPayload(BaseModel):
    sub: UUID # 'sub' is standard JWT claim for subject (the user's id)
    role: UserRole
    tenant_id: Optional[UUID] = None
    iat: int
    exp: int

class TokenRevokeRequest(BaseModel):
    issued_at: int = Field(..., description="The 'iat' claim of the token to revoke, in epoch seconds.")
    expires_at: Optional[int] = None
