'''

'''
from typing import Optional, Annotated
from uuid import UUID
from fastapi import Depends
from sqlalchemy import select, func, case
from sqlalchemy.ext.asyncio import AsyncSession

from ..database.engine import get_db_session
from ..database import models as db_models
from ..database.db_enums import UserRole, UserStatus
from ..common.logger import log
from ..common.exceptions import (
    ResourceNotFound, InsufficientRole, ValidationError, DuplicateUser,
    SeatLimitReached, ConflictError, InvalidCredentials
)
from ..common.security_utils import HashedPassword, normalize_email
from ..models import user as user_models
from ..models.user import AuthenticatedUser
from .security import authorize_roles, authorize_tenant_scope, resolve_tenant_scope


ADMIN_ROLES = [UserRole.SUPER_ADMIN, UserRole.COLLEGE_ADMIN]


class UserService:
    """
    Base service for user-related database operations.
    """
    def __init__(self, db: Annotated[AsyncSession, Depends(get_db_session)]):
        self.db = db

    # --- Internal lookups (no authorization) ---

    async def get_user_by_id(self, user_id: UUID) -> db_models.Users | None:
        log.info(f"Fetching user by ID: {user_id}")
        try:
            return await self.db.get(db_models.Users, user_id)
        except Exception as e:
            log.error(f"Database error fetching user by ID {user_id}: {e}", exc_info=True)
            raise

    async def get_login_candidates(self, email: str, tenant_id: Optional[UUID] = None) -> list[db_models.Users]:
        """
        Active users registered under this email, platform operators first.
        The same email may exist once per college.
        """
        email = normalize_email(email)
        stmt = select(db_models.Users).filter(
            db_models.Users.email == email,
            db_models.Users.status == UserStatus.ACTIVE.value
        )
        if tenant_id is not None:
            stmt = stmt.filter(db_models.Users.tenant_id == tenant_id)
        stmt = stmt.order_by(
            case((db_models.Users.role == UserRole.SUPER_ADMIN.value, 0), else_=1),
            db_models.Users.created_at
        )
        try:
            result = await self.db.execute(stmt)
            return list(result.scalars().all())
        except Exception as e:
            log.error(f"Database error fetching login candidates for {email}: {e}", exc_info=True)
            raise

    async def get_linked_student_ids(self, guardian_id: UUID) -> list[UUID]:
        stmt = select(db_models.GuardianStudentLinks.student_id).filter(
            db_models.GuardianStudentLinks.guardian_id == guardian_id
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def _get_scoped_user(self, user_id: UUID, current_user: AuthenticatedUser) -> db_models.Users:
        user = await self.get_user_by_id(user_id)
        if user is None or user.status == UserStatus.DELETED.value:
            raise ResourceNotFound(f"user {user_id}")
        if user.tenant_id is None and not current_user.is_super_admin:
            # Platform operators are invisible to tenant users.
            raise ResourceNotFound(f"user {user_id}")
        if user.tenant_id is not None:
            authorize_tenant_scope(current_user, user.tenant_id)
        return user

    # --- API-facing methods ---

    async def create_user(self, user_data: user_models.UserCreate, current_user: AuthenticatedUser) -> db_models.Users:
        """
        Creates a user. College admins create users in their own college;
        platform operators name the college, or leave it empty to create
        another platform operator.
        """
        authorize_roles(current_user, ADMIN_ROLES)
        email = normalize_email(user_data.email)
        log.info(f"User {current_user.id} creating {user_data.role.value} account for {email}.")

        if user_data.role == UserRole.SUPER_ADMIN:
            if not current_user.is_super_admin:
                raise InsufficientRole("only platform operators create platform operators")
            if user_data.tenant_id is not None:
                raise ValidationError("tenant_id", "Platform operators cannot belong to a college.")
            tenant_id = None
        else:
            tenant_id = resolve_tenant_scope(current_user, user_data.tenant_id)

        try:
            if tenant_id is not None:
                tenant = await self.db.get(db_models.Tenants, tenant_id)
                if tenant is None:
                    raise ResourceNotFound(f"tenant {tenant_id}")

                seats_stmt = select(func.count(db_models.Users.id)).filter(
                    db_models.Users.tenant_id == tenant_id,
                    db_models.Users.status != UserStatus.DELETED.value
                )
                seats_used = (await self.db.execute(seats_stmt)).scalar_one()
                if seats_used >= tenant.max_users:
                    log.warning(f"Tenant {tenant_id} is at its seat limit ({tenant.max_users}).")
                    raise SeatLimitReached(f"{seats_used}/{tenant.max_users}")

            duplicate_stmt = select(db_models.Users.id).filter(db_models.Users.email == email)
            if tenant_id is None:
                duplicate_stmt = duplicate_stmt.filter(db_models.Users.tenant_id.is_(None))
            else:
                duplicate_stmt = duplicate_stmt.filter(db_models.Users.tenant_id == tenant_id)
            if (await self.db.execute(duplicate_stmt.limit(1))).scalars().first():
                raise DuplicateUser(f"{email} in tenant {tenant_id}")

            new_user = db_models.Users(
                tenant_id=tenant_id,
                email=email,
                password=HashedPassword.get_hash(user_data.password),
                role=user_data.role.value,
                status=UserStatus.ACTIVE.value,
                first_name=user_data.first_name,
                last_name=user_data.last_name
            )
            self.db.add(new_user)
            await self.db.flush()
            log.info(f"Created user {new_user.id} ({new_user.role}) in tenant {tenant_id}.")
            return new_user
        except Exception as e:
            log.error(f"Error creating user {email}: {e}", exc_info=True)
            raise

    async def list_users(
        self,
        current_user: AuthenticatedUser,
        tenant_id: Optional[UUID] = None,
        role: Optional[UserRole] = None
    ) -> list[db_models.Users]:
        authorize_roles(current_user, ADMIN_ROLES)
        scoped_tenant_id = resolve_tenant_scope(current_user, tenant_id)

        stmt = select(db_models.Users).filter(
            db_models.Users.tenant_id == scoped_tenant_id,
            db_models.Users.status != UserStatus.DELETED.value
        )
        if role is not None:
            stmt = stmt.filter(db_models.Users.role == role.value)
        stmt = stmt.order_by(db_models.Users.last_name, db_models.Users.first_name)

        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def update_user(
        self,
        user_id: UUID,
        update_data: user_models.UserUpdate,
        current_user: AuthenticatedUser
    ) -> db_models.Users:
        authorize_roles(current_user, ADMIN_ROLES)
        user = await self._get_scoped_user(user_id, current_user)

        changes = update_data.model_dump(exclude_unset=True)
        # role and status are NOT NULL; an explicit null means "leave as is".
        changes = {key: value for key, value in changes.items() if value is not None or key not in ('role', 'status')}
        if changes.get('role') == UserRole.SUPER_ADMIN or (
            user.role == UserRole.SUPER_ADMIN.value and 'role' in changes
        ):
            raise ValidationError("role", "The platform operator role cannot be granted or removed here.")
        if user.id == current_user.id and ('role' in changes or 'status' in changes):
            raise ValidationError("status", "You cannot change your own role or status.")

        for key, value in changes.items():
            if key in ('role', 'status'):
                value = value.value
            setattr(user, key, value)

        await self.db.flush()
        log.info(f"User {current_user.id} updated user {user.id}: {list(changes)}")
        return user

    async def delete_user(self, user_id: UUID, current_user: AuthenticatedUser) -> None:
        """Soft delete: the row stays, its tokens stop working."""
        authorize_roles(current_user, ADMIN_ROLES)
        user = await self._get_scoped_user(user_id, current_user)
        if user.id == current_user.id:
            raise ValidationError("user_id", "You cannot delete your own account.")

        user.status = UserStatus.DELETED.value
        await self.db.flush()
        log.info(f"User {current_user.id} soft-deleted user {user.id}.")

    async def link_guardian(
        self,
        guardian_id: UUID,
        student_id: UUID,
        link_data: user_models.GuardianLinkCreate,
        current_user: AuthenticatedUser
    ) -> db_models.GuardianStudentLinks:
        authorize_roles(current_user, ADMIN_ROLES)
        guardian = await self._get_scoped_user(guardian_id, current_user)
        student = await self._get_scoped_user(student_id, current_user)

        if guardian.role != UserRole.PARENT.value:
            raise ValidationError("guardian_id", "The guardian must have the parent role.")
        if student.role != UserRole.STUDENT.value:
            raise ValidationError("student_id", "The linked user must have the student role.")
        if guardian.tenant_id != student.tenant_id:
            raise ValidationError("student_id", "Guardian and student must belong to the same college.")

        existing_stmt = select(db_models.GuardianStudentLinks.id).filter(
            db_models.GuardianStudentLinks.guardian_id == guardian_id,
            db_models.GuardianStudentLinks.student_id == student_id
        )
        if (await self.db.execute(existing_stmt)).scalars().first():
            raise ConflictError(f"link {guardian_id} -> {student_id} exists")

        link = db_models.GuardianStudentLinks(
            tenant_id=guardian.tenant_id,
            guardian_id=guardian_id,
            student_id=student_id,
            relationship_type=link_data.relationship_type
        )
        self.db.add(link)
        await self.db.flush()
        log.info(f"Linked guardian {guardian_id} to student {student_id}.")
        return link

    async def change_password(
        self,
        password_data: user_models.PasswordChange,
        current_user: AuthenticatedUser
    ) -> None:
        user = await self.get_user_by_id(current_user.id)
        if user is None:
            raise ResourceNotFound(f"user {current_user.id}")
        if not HashedPassword.verify(password_data.current_password, user.password):
            log.warning(f"Password change for user {user.id} failed: wrong current password.")
            raise InvalidCredentials("wrong current password")

        user.password = HashedPassword.get_hash(password_data.new_password)
        await self.db.flush()
        log.info(f"Password changed for user {user.id}.")

    async def reset_password(
        self,
        user_id: UUID,
        reset_data: user_models.PasswordReset,
        current_user: AuthenticatedUser
    ) -> None:
        """
        Sets a new password for a user in the caller's scope without knowing
        the old one. Own passwords go through change_password instead.
        """
        authorize_roles(current_user, ADMIN_ROLES)
        user = await self._get_scoped_user(user_id, current_user)
        if user.id == current_user.id:
            raise ValidationError("user_id", "Use the password change endpoint for your own account.")

        user.password = HashedPassword.get_hash(reset_data.new_password)
        await self.db.flush()
        log.warning(f"SECURITY: User {current_user.id} reset the password of user {user.id}.")
