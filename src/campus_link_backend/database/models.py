from typing import Optional

from sqlalchemy import BigInteger, Boolean, CheckConstraint, DateTime, Date, Enum, ForeignKeyConstraint, Index, Integer, Numeric, PrimaryKeyConstraint, String, Text, UniqueConstraint, Uuid, text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
import datetime
import decimal
import uuid

from .db_enums import (
    UserRole, UserStatus, SubscriptionStatus, SubscriptionPlan,
    AdmissionStatus, ObligationStatus, PaymentMethod
)


def utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


class Base(DeclarativeBase):
    pass



class Tenants(Base):
    __tablename__ = 'tenants'
    __table_args__ = (
        PrimaryKeyConstraint('id', name='tenants_pkey'),
        UniqueConstraint('domain', name='tenants_domain_key'),
        CheckConstraint('max_users > 0', name='tenants_max_users_check')
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(Text)
    domain: Mapped[Optional[str]] = mapped_column(String(255))
    contact_email: Mapped[Optional[str]] = mapped_column(String(255))
    subscription_plan: Mapped[str] = mapped_column(Enum(*SubscriptionPlan.get_all_names(), name='subscription_plan_enum'), default=SubscriptionPlan.BASIC.value)
    subscription_status: Mapped[str] = mapped_column(Enum(*SubscriptionStatus.get_all_names(), name='subscription_status_enum'), default=SubscriptionStatus.ACTIVE.value)
    max_users: Mapped[int] = mapped_column(Integer, default=100)
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime(True), default=utcnow)
    updated_at: Mapped[datetime.datetime] = mapped_column(DateTime(True), default=utcnow, onupdate=utcnow)

    users: Mapped[list['Users']] = relationship('Users', back_populates='tenant')


class Users(Base):
    __tablename__ = 'users'
    __table_args__ = (
        ForeignKeyConstraint(['tenant_id'], ['tenants.id'], name='users_tenant_id_fkey'),
        PrimaryKeyConstraint('id', name='users_pkey'),
        UniqueConstraint('tenant_id', 'email', name='users_tenant_id_email_key'),
        # NULL tenant ids never collide in the constraint above, so platform
        # operators get their own partial index.
        Index(
            'users_platform_email_key', 'email', unique=True,
            postgresql_where=text('tenant_id IS NULL'),
            sqlite_where=text('tenant_id IS NULL')
        ),
        CheckConstraint(
            "(role = 'super_admin' AND tenant_id IS NULL) OR (role != 'super_admin' AND tenant_id IS NOT NULL)",
            name='users_tenant_required_check'
        ),
        Index('idx_users_tenant_role', 'tenant_id', 'role')
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid)
    email: Mapped[str] = mapped_column(String(255))
    password: Mapped[str] = mapped_column(String(255))
    role: Mapped[str] = mapped_column(Enum(*UserRole.get_all_names(), name='user_role'))
    status: Mapped[str] = mapped_column(Enum(*UserStatus.get_all_names(), name='user_status_enum'), default=UserStatus.ACTIVE.value)
    first_name: Mapped[Optional[str]] = mapped_column(Text)
    last_name: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime(True), default=utcnow)
    updated_at: Mapped[datetime.datetime] = mapped_column(DateTime(True), default=utcnow, onupdate=utcnow)

    tenant: Mapped[Optional['Tenants']] = relationship('Tenants', back_populates='users')

    @property
    def full_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip()


class GuardianStudentLinks(Base):
    __tablename__ = 'guardian_student_links'
    __table_args__ = (
        ForeignKeyConstraint(['guardian_id'], ['users.id'], name='guardian_student_links_guardian_id_fkey'),
        ForeignKeyConstraint(['student_id'], ['users.id'], name='guardian_student_links_student_id_fkey'),
        ForeignKeyConstraint(['tenant_id'], ['tenants.id'], name='guardian_student_links_tenant_id_fkey'),
        PrimaryKeyConstraint('id', name='guardian_student_links_pkey'),
        UniqueConstraint('guardian_id', 'student_id', name='guardian_student_links_guardian_id_student_id_key')
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[uuid.UUID] = mapped_column(Uuid)
    guardian_id: Mapped[uuid.UUID] = mapped_column(Uuid)
    student_id: Mapped[uuid.UUID] = mapped_column(Uuid)
    relationship_type: Mapped[str] = mapped_column(Text, default='parent')
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime(True), default=utcnow)


class Courses(Base):
    __tablename__ = 'courses'
    __table_args__ = (
        ForeignKeyConstraint(['tenant_id'], ['tenants.id'], name='courses_tenant_id_fkey'),
        PrimaryKeyConstraint('id', name='courses_pkey')
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[uuid.UUID] = mapped_column(Uuid)
    name: Mapped[str] = mapped_column(Text)
    code: Mapped[str] = mapped_column(String(20))


class AcademicPeriods(Base):
    __tablename__ = 'academic_periods'
    __table_args__ = (
        ForeignKeyConstraint(['tenant_id'], ['tenants.id'], name='academic_periods_tenant_id_fkey'),
        PrimaryKeyConstraint('id', name='academic_periods_pkey')
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[uuid.UUID] = mapped_column(Uuid)
    name: Mapped[str] = mapped_column(Text)
    start_date: Mapped[datetime.date] = mapped_column(Date)
    end_date: Mapped[datetime.date] = mapped_column(Date)


class Admissions(Base):
    __tablename__ = 'admissions'
    __table_args__ = (
        ForeignKeyConstraint(['tenant_id'], ['tenants.id'], name='admissions_tenant_id_fkey'),
        ForeignKeyConstraint(['course_id'], ['courses.id'], name='admissions_course_id_fkey'),
        ForeignKeyConstraint(['academic_period_id'], ['academic_periods.id'], name='admissions_academic_period_id_fkey'),
        ForeignKeyConstraint(['student_id'], ['users.id'], name='admissions_student_id_fkey'),
        PrimaryKeyConstraint('id', name='admissions_pkey'),
        UniqueConstraint('student_id', 'course_id', 'academic_period_id', name='admissions_student_course_period_key')
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[uuid.UUID] = mapped_column(Uuid)
    course_id: Mapped[uuid.UUID] = mapped_column(Uuid)
    academic_period_id: Mapped[uuid.UUID] = mapped_column(Uuid)
    student_id: Mapped[uuid.UUID] = mapped_column(Uuid)
    status: Mapped[str] = mapped_column(Enum(*AdmissionStatus.get_all_names(), name='admission_status_enum'), default=AdmissionStatus.PENDING.value)


class FeeDefinitions(Base):
    __tablename__ = 'fee_definitions'
    __table_args__ = (
        ForeignKeyConstraint(['tenant_id'], ['tenants.id'], name='fee_definitions_tenant_id_fkey'),
        ForeignKeyConstraint(['course_id'], ['courses.id'], name='fee_definitions_course_id_fkey'),
        ForeignKeyConstraint(['academic_period_id'], ['academic_periods.id'], name='fee_definitions_academic_period_id_fkey'),
        ForeignKeyConstraint(['created_by'], ['users.id'], name='fee_definitions_created_by_fkey'),
        PrimaryKeyConstraint('id', name='fee_definitions_pkey'),
        CheckConstraint('amount > 0', name='fee_definitions_amount_check'),
        Index('idx_fee_definitions_tenant', 'tenant_id')
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[uuid.UUID] = mapped_column(Uuid)
    course_id: Mapped[uuid.UUID] = mapped_column(Uuid)
    academic_period_id: Mapped[uuid.UUID] = mapped_column(Uuid)
    fee_type: Mapped[str] = mapped_column(Text)
    amount: Mapped[decimal.Decimal] = mapped_column(Numeric(10, 2))
    due_date: Mapped[Optional[datetime.date]] = mapped_column(Date)
    is_optional: Mapped[bool] = mapped_column(Boolean, default=False)
    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid)
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime(True), default=utcnow)
    updated_at: Mapped[datetime.datetime] = mapped_column(DateTime(True), default=utcnow, onupdate=utcnow)

    course: Mapped['Courses'] = relationship('Courses')
    academic_period: Mapped['AcademicPeriods'] = relationship('AcademicPeriods')
    obligations: Mapped[list['StudentFeeObligations']] = relationship('StudentFeeObligations', back_populates='fee_definition')


class StudentFeeObligations(Base):
    __tablename__ = 'student_fee_obligations'
    __table_args__ = (
        ForeignKeyConstraint(['tenant_id'], ['tenants.id'], name='student_fee_obligations_tenant_id_fkey'),
        ForeignKeyConstraint(['student_id'], ['users.id'], name='student_fee_obligations_student_id_fkey'),
        ForeignKeyConstraint(['fee_definition_id'], ['fee_definitions.id'], name='student_fee_obligations_fee_definition_id_fkey'),
        PrimaryKeyConstraint('id', name='student_fee_obligations_pkey'),
        UniqueConstraint('student_id', 'fee_definition_id', name='student_fee_obligations_student_id_fee_definition_id_key'),
        CheckConstraint('billed_amount > 0', name='student_fee_obligations_billed_amount_check'),
        CheckConstraint('amount_paid >= 0 AND amount_paid <= billed_amount', name='student_fee_obligations_amount_paid_check'),
        Index('idx_student_fee_obligations_tenant_student', 'tenant_id', 'student_id')
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[uuid.UUID] = mapped_column(Uuid)
    student_id: Mapped[uuid.UUID] = mapped_column(Uuid)
    fee_definition_id: Mapped[uuid.UUID] = mapped_column(Uuid)
    status: Mapped[str] = mapped_column(Enum(*ObligationStatus.get_all_names(), name='obligation_status_enum'), default=ObligationStatus.DUE.value)
    due_date: Mapped[Optional[datetime.date]] = mapped_column(Date)
    billed_amount: Mapped[decimal.Decimal] = mapped_column(Numeric(10, 2))
    amount_paid: Mapped[decimal.Decimal] = mapped_column(Numeric(10, 2), default=decimal.Decimal(0))
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime(True), default=utcnow)
    updated_at: Mapped[datetime.datetime] = mapped_column(DateTime(True), default=utcnow, onupdate=utcnow)

    student: Mapped['Users'] = relationship('Users')
    fee_definition: Mapped['FeeDefinitions'] = relationship('FeeDefinitions', back_populates='obligations')
    payment_events: Mapped[list['PaymentEvents']] = relationship('PaymentEvents', back_populates='obligation')


class PaymentEvents(Base):
    __tablename__ = 'payment_events'
    __table_args__ = (
        ForeignKeyConstraint(['tenant_id'], ['tenants.id'], name='payment_events_tenant_id_fkey'),
        ForeignKeyConstraint(['obligation_id'], ['student_fee_obligations.id'], name='payment_events_obligation_id_fkey'),
        ForeignKeyConstraint(['recorded_by'], ['users.id'], name='payment_events_recorded_by_fkey'),
        ForeignKeyConstraint(['reversal_of_event_id'], ['payment_events.id'], name='payment_events_reversal_of_event_id_fkey'),
        PrimaryKeyConstraint('id', name='payment_events_pkey'),
        UniqueConstraint('receipt_number', name='payment_events_receipt_number_key'),
        UniqueConstraint('reversal_of_event_id', name='payment_events_reversal_of_event_id_key'),
        CheckConstraint('amount != 0', name='payment_events_amount_check'),
        Index('idx_payment_events_obligation', 'obligation_id'),
        Index('idx_payment_events_tenant_date', 'tenant_id', 'payment_date')
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[uuid.UUID] = mapped_column(Uuid)
    obligation_id: Mapped[uuid.UUID] = mapped_column(Uuid)
    # Negative amounts are reversals of an earlier event
    amount: Mapped[decimal.Decimal] = mapped_column(Numeric(10, 2))
    payment_date: Mapped[datetime.date] = mapped_column(Date)
    payment_method: Mapped[Optional[str]] = mapped_column(Enum(*PaymentMethod.get_all_names(), name='payment_method_enum'))
    transaction_reference: Mapped[Optional[str]] = mapped_column(String(100))
    receipt_number: Mapped[str] = mapped_column(String(64))
    remarks: Mapped[Optional[str]] = mapped_column(Text)
    recorded_by: Mapped[uuid.UUID] = mapped_column(Uuid)
    reversal_of_event_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid)
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime(True), default=utcnow)

    obligation: Mapped['StudentFeeObligations'] = relationship('StudentFeeObligations', back_populates='payment_events')


class RevokedTokens(Base):
    __tablename__ = 'revoked_tokens'
    __table_args__ = (
        ForeignKeyConstraint(['user_id'], ['users.id'], name='revoked_tokens_user_id_fkey'),
        PrimaryKeyConstraint('user_id', 'issued_at', name='revoked_tokens_pkey'),
        Index('idx_revoked_tokens_expires_at', 'expires_at')
    )

    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True)
    # Token 'iat' claim, epoch seconds
    issued_at: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)
    expires_at: Mapped[int] = mapped_column(BigInteger)
    revoked_by: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid)
    revoked_at: Mapped[datetime.datetime] = mapped_column(DateTime(True), default=utcnow)
