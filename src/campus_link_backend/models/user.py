'''
Pydantic models for tenants, users and the authenticated caller.
'''
from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, model_validator

from ..database.db_enums import UserRole, UserStatus, SubscriptionStatus, SubscriptionPlan


# --- The Authenticated Caller ---

class AuthenticatedUser(BaseModel):
    """
    The verified identity of the caller, built from the live user row after
    the token checks out. Every service method takes it explicitly.
    """
    id: UUID
    email: str
    role: UserRole
    tenant_id: Optional[UUID] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    token_issued_at: Optional[int] = None
    token_expires_at: Optional[int] = None

    model_config = ConfigDict(frozen=True)

    @property
    def is_super_admin(self) -> bool:
        return self.role == UserRole.SUPER_ADMIN


# --- User API Read Models ---

class UserRead(BaseModel):
    """
    Base Pydantic model for reading user data.
    Corresponds to the db_models.Users ORM model.
    """
    id: UUID
    email: str
    role: UserRole
    status: UserStatus
    tenant_id: Optional[UUID] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)

class GuardianLinkRead(BaseModel):
    id: UUID
    guardian_id: UUID
    student_id: UUID
    relationship_type: str

    model_config = ConfigDict(from_attributes=True)


# --- User API Write Models ---

class UserCreate(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=8)
    first_name: str = Field(..., min_length=1, max_length=50)
    last_name: str = Field(..., min_length=1, max_length=50)
    role: UserRole
    # Only platform operators may name a college; everyone else creates
    # users in their own.
    tenant_id: Optional[UUID] = None

class UserUpdate(BaseModel):
    first_name: Optional[str] = Field(None, min_length=1, max_length=50)
    last_name: Optional[str] = Field(None, min_length=1, max_length=50)
    role: Optional[UserRole] = None
    status: Optional[UserStatus] = None

class PasswordChange(BaseModel):
    current_password: str
    new_password: str = Field(..., min_length=8)

    @model_validator(mode='after')
    def check_passwords_differ(self) -> 'PasswordChange':
        if self.current_password == self.new_password:
            raise ValueError("The new password must be different from the current one.")
        return self

class PasswordReset(BaseModel):
    """An administrator setting a new password for someone else."""
    new_password: str = Field(..., min_length=8)

class GuardianLinkCreate(BaseModel):
    relationship_type: str = Field('parent', max_length=30)


# --- Tenant Models ---

class TenantCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    domain: Optional[str] = Field(None, min_length=3, max_length=50)
    contact_email: Optional[EmailStr] = None
    subscription_plan: SubscriptionPlan = SubscriptionPlan.BASIC
    max_users: int = Field(100, gt=0)

class TenantSubscriptionUpdate(BaseModel):
    subscription_status: Optional[SubscriptionStatus] = None
    subscription_plan: Optional[SubscriptionPlan] = None
    max_users: Optional[int] = Field(None, gt=0)

class TenantRead(BaseModel):
    id: UUID
    name: str
    domain: Optional[str] = None
    contact_email: Optional[str] = None
    subscription_plan: SubscriptionPlan
    subscription_status: SubscriptionStatus
    max_users: int
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
