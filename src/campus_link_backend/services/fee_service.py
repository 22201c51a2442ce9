'''
The fee ledger: fee definitions, per-student obligations and the append-only
payment event log, plus the read-only reports built on top of them.
'''
import secrets
import uuid
from typing import Optional, Annotated, Any
from uuid import UUID
from decimal import Decimal
from datetime import date, datetime, timezone
import pydantic
from fastapi import BackgroundTasks, Depends
from sqlalchemy import select, update, func, exists
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..database.engine import get_db_session
from ..database import models as db_models
from ..database.db_enums import (
    UserRole, UserStatus, AdmissionStatus, ObligationStatus, CollectionGrouping
)
from ..models import finance as finance_models
from ..models.user import AuthenticatedUser
from ..common.logger import log
from ..common.exceptions import (
    ResourceNotFound, ValidationError, InsufficientRole, LedgerInvariantError,
    OverpaymentRejected, FeeDefinitionLocked, PaymentAlreadyReversed, StoreConfigurationError
)
from .security import authorize_roles, authorize_tenant_scope, resolve_tenant_scope
from .user_service import UserService
from .notification_service import NotificationService, get_notification_service


ADMIN_ROLES = [UserRole.SUPER_ADMIN, UserRole.COLLEGE_ADMIN]
COLLECTOR_ROLES = [UserRole.COLLEGE_ADMIN, UserRole.TEACHER]


def derive_obligation_status(amount_paid: Decimal, billed_amount: Decimal) -> ObligationStatus:
    """
    Status follows from the amounts alone:
    paid once the bill is covered, partial while something is paid, due otherwise.
    """
    if amount_paid >= billed_amount:
        return ObligationStatus.PAID
    if amount_paid > 0:
        return ObligationStatus.PARTIAL
    return ObligationStatus.DUE


def generate_receipt_number(moment: Optional[datetime] = None) -> str:
    moment = moment or datetime.now(timezone.utc)
    return f"RCP-{moment:%Y%m%d%H%M%S}-{secrets.token_hex(4).upper()}"


def obligation_query(obligation_id: UUID, for_update: bool = False):
    stmt = select(db_models.StudentFeeObligations).filter(db_models.StudentFeeObligations.id == obligation_id)
    if for_update:
        # The locked read must overwrite whatever copy the session already holds.
        stmt = stmt.with_for_update().execution_options(populate_existing=True)
    return stmt


def _after_commit(background_tasks: Optional[BackgroundTasks], func, *args) -> None:
    """
    Runs 'func' once the request has committed and responded.
    Outside a request (scripts, tests) there is nothing to wait for, so it runs now.
    """
    if background_tasks is None:
        func(*args)
    else:
        background_tasks.add_task(func, *args)


def _validation_error_from_pydantic(e: pydantic.ValidationError) -> ValidationError:
    first = e.errors()[0]
    field = ".".join(str(part) for part in first.get('loc', ())) or "body"
    return ValidationError(field, first.get('msg', "Invalid value."))


# --- Service 1: Fee Definitions and Assignment ---

class FeeDefinitionService:
    """
    Creates and edits fee definitions and assigns them to cohorts of students.
    """
    def __init__(
        self,
        db: Annotated[AsyncSession, Depends(get_db_session)],
        notification_service: Annotated[NotificationService, Depends(get_notification_service)],
        background_tasks: BackgroundTasks = None
    ):
        self.db = db
        self.notification_service = notification_service
        self.background_tasks = background_tasks

    async def _get_definition(self, definition_id: UUID, current_user: AuthenticatedUser) -> db_models.FeeDefinitions:
        definition = await self.db.get(db_models.FeeDefinitions, definition_id)
        if definition is None:
            log.warning(f"Fee definition {definition_id} not found.")
            raise ResourceNotFound(f"fee definition {definition_id}")
        authorize_tenant_scope(current_user, definition.tenant_id)
        return definition

    async def _has_payments(self, definition_id: UUID) -> bool:
        stmt = select(
            exists().where(
                db_models.PaymentEvents.obligation_id == db_models.StudentFeeObligations.id,
                db_models.StudentFeeObligations.fee_definition_id == definition_id
            )
        )
        return bool((await self.db.execute(stmt)).scalar())

    async def create_fee_definition(
        self,
        definition_data: finance_models.FeeDefinitionCreate,
        current_user: AuthenticatedUser
    ) -> db_models.FeeDefinitions:
        """
        The definition's tenant is the course's tenant, so platform operators
        never need to name one.
        """
        authorize_roles(current_user, ADMIN_ROLES)
        log.info(f"User {current_user.id} creating fee definition '{definition_data.fee_type}'.")

        course = await self.db.get(db_models.Courses, definition_data.course_id)
        if course is None:
            raise ResourceNotFound(f"course {definition_data.course_id}")
        authorize_tenant_scope(current_user, course.tenant_id)

        period = await self.db.get(db_models.AcademicPeriods, definition_data.academic_period_id)
        if period is None or period.tenant_id != course.tenant_id:
            raise ValidationError("academic_period_id", "Academic period not found in this college.")

        try:
            definition = db_models.FeeDefinitions(
                tenant_id=course.tenant_id,
                course_id=course.id,
                academic_period_id=period.id,
                fee_type=definition_data.fee_type,
                amount=definition_data.amount,
                due_date=definition_data.due_date,
                is_optional=definition_data.is_optional,
                created_by=current_user.id
            )
            self.db.add(definition)
            await self.db.flush()
            log.info(f"Created fee definition {definition.id} for tenant {definition.tenant_id}.")
            return definition
        except Exception as e:
            log.error(f"Database error creating fee definition: {e}", exc_info=True)
            raise

    async def list_fee_definitions(
        self,
        current_user: AuthenticatedUser,
        tenant_id: Optional[UUID] = None,
        course_id: Optional[UUID] = None,
        academic_period_id: Optional[UUID] = None
    ) -> list[db_models.FeeDefinitions]:
        scoped_tenant_id = resolve_tenant_scope(current_user, tenant_id)

        stmt = select(db_models.FeeDefinitions).filter(db_models.FeeDefinitions.tenant_id == scoped_tenant_id)
        if course_id:
            stmt = stmt.filter(db_models.FeeDefinitions.course_id == course_id)
        if academic_period_id:
            stmt = stmt.filter(db_models.FeeDefinitions.academic_period_id == academic_period_id)
        stmt = stmt.order_by(db_models.FeeDefinitions.created_at.desc())

        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def get_fee_definition(self, definition_id: UUID, current_user: AuthenticatedUser) -> db_models.FeeDefinitions:
        return await self._get_definition(definition_id, current_user)

    async def update_fee_definition(
        self,
        definition_id: UUID,
        update_data: finance_models.FeeDefinitionUpdate,
        current_user: AuthenticatedUser
    ) -> db_models.FeeDefinitions:
        """
        Edits a definition until the first payment lands on any of its
        obligations. Obligations already assigned keep their billed amount.
        """
        authorize_roles(current_user, ADMIN_ROLES)
        definition = await self._get_definition(definition_id, current_user)

        if await self._has_payments(definition.id):
            log.warning(f"Attempt to edit fee definition {definition.id} after payments were recorded.")
            raise FeeDefinitionLocked(f"fee definition {definition.id}")

        changes = update_data.model_dump(exclude_unset=True)
        for key, value in changes.items():
            if value is None and key in ('fee_type', 'amount', 'is_optional'):
                continue
            setattr(definition, key, value)
        definition.updated_at = db_models.utcnow()

        await self.db.flush()
        log.info(f"Fee definition {definition.id} updated by {current_user.id}: {list(changes)}")
        return definition

    def _dialect_insert(self):
        dialect_name = self.db.get_bind().dialect.name
        if dialect_name == 'postgresql':
            return postgresql.insert
        if dialect_name == 'sqlite':
            return sqlite.insert
        log.critical(f"Fee assignment cannot run on the '{dialect_name}' dialect.")
        raise StoreConfigurationError(f"unsupported dialect {dialect_name}")

    async def _resolve_cohort(
        self,
        definition: db_models.FeeDefinitions,
        selector: finance_models.CohortSelector
    ) -> list[UUID]:
        stmt = select(db_models.Users.id).filter(
            db_models.Users.tenant_id == definition.tenant_id,
            db_models.Users.role == UserRole.STUDENT.value,
            db_models.Users.status == UserStatus.ACTIVE.value
        )
        if selector.student_ids is None:
            stmt = stmt.join(
                db_models.Admissions, db_models.Admissions.student_id == db_models.Users.id
            ).filter(
                db_models.Admissions.course_id == definition.course_id,
                db_models.Admissions.academic_period_id == definition.academic_period_id,
                db_models.Admissions.status == AdmissionStatus.APPROVED.value
            )
        else:
            stmt = stmt.filter(db_models.Users.id.in_(selector.student_ids))

        result = await self.db.execute(stmt.distinct())
        return list(result.scalars().all())

    async def assign_fee(
        self,
        definition_id: UUID,
        selector: finance_models.CohortSelector,
        current_user: AuthenticatedUser
    ) -> finance_models.AssignmentResult:
        """
        Creates one obligation per student in the cohort. Students that
        already owe this fee are skipped, so re-running is harmless.
        """
        authorize_roles(current_user, ADMIN_ROLES)
        definition = await self._get_definition(definition_id, current_user)
        log.info(f"User {current_user.id} assigning fee definition {definition.id}.")

        cohort = await self._resolve_cohort(definition, selector)
        requested = len(set(selector.student_ids)) if selector.student_ids is not None else len(cohort)
        if not cohort:
            return finance_models.AssignmentResult(fee_definition_id=definition.id, created=0, skipped=requested)

        now = db_models.utcnow()
        rows = [
            {
                'id': uuid.uuid4(),
                'tenant_id': definition.tenant_id,
                'student_id': student_id,
                'fee_definition_id': definition.id,
                'status': ObligationStatus.DUE.value,
                'due_date': definition.due_date,
                'billed_amount': definition.amount,
                'amount_paid': Decimal(0),
                'created_at': now,
                'updated_at': now,
            }
            for student_id in cohort
        ]
        insert = self._dialect_insert()
        stmt = insert(db_models.StudentFeeObligations).values(rows).on_conflict_do_nothing(
            index_elements=['student_id', 'fee_definition_id']
        ).returning(db_models.StudentFeeObligations.id)

        try:
            result = await self.db.execute(stmt)
            created_ids = list(result.scalars().all())
        except Exception as e:
            log.error(f"Database error assigning fee definition {definition_id}: {e}", exc_info=True)
            raise

        log.info(f"Fee definition {definition.id}: {len(created_ids)} obligations created, {requested - len(created_ids)} skipped.")

        if created_ids:
            created = await self.db.execute(
                select(db_models.StudentFeeObligations).filter(db_models.StudentFeeObligations.id.in_(created_ids))
            )
            for obligation in created.scalars().all():
                _after_commit(
                    self.background_tasks,
                    self.notification_service.notify_obligation_created, obligation, definition.fee_type
                )

        return finance_models.AssignmentResult(
            fee_definition_id=definition.id,
            created=len(created_ids),
            skipped=requested - len(created_ids),
            obligation_ids=created_ids
        )


# --- Service 2: Obligations and Payments ---

class FeeLedgerService:
    """
    Reads obligations and moves money on them. Every mutation locks the
    obligation row and writes the obligation and its payment event in a
    single flush.
    """
    def __init__(
        self,
        db: Annotated[AsyncSession, Depends(get_db_session)],
        user_service: Annotated[UserService, Depends(UserService)],
        notification_service: Annotated[NotificationService, Depends(get_notification_service)],
        background_tasks: BackgroundTasks = None
    ):
        self.db = db
        self.user_service = user_service
        self.notification_service = notification_service
        self.background_tasks = background_tasks

    # --- 1. Authorization Helpers ---

    async def _visible_student_ids(self, current_user: AuthenticatedUser) -> Optional[list[UUID]]:
        """
        Students see themselves, parents see their linked children.
        None means no restriction beyond the tenant.
        """
        if current_user.role == UserRole.STUDENT:
            return [current_user.id]
        if current_user.role == UserRole.PARENT:
            return await self.user_service.get_linked_student_ids(current_user.id)
        return None

    async def _get_obligation(
        self,
        obligation_id: UUID,
        current_user: AuthenticatedUser,
        for_update: bool = False
    ) -> db_models.StudentFeeObligations:
        obligation = (await self.db.execute(obligation_query(obligation_id, for_update))).scalars().first()
        if obligation is None:
            log.warning(f"Obligation {obligation_id} not found.")
            raise ResourceNotFound(f"obligation {obligation_id}")

        authorize_tenant_scope(current_user, obligation.tenant_id)

        visible = await self._visible_student_ids(current_user)
        if visible is not None and obligation.student_id not in visible:
            log.warning(f"SECURITY: User {current_user.id} ({current_user.role.value}) tried to read obligation {obligation_id} of another student.")
            raise ResourceNotFound(f"obligation {obligation_id}")
        return obligation

    # --- 2. Reads ---

    async def get_obligation(self, obligation_id: UUID, current_user: AuthenticatedUser) -> db_models.StudentFeeObligations:
        return await self._get_obligation(obligation_id, current_user)

    async def list_obligations(
        self,
        current_user: AuthenticatedUser,
        tenant_id: Optional[UUID] = None,
        student_id: Optional[UUID] = None,
        status: Optional[ObligationStatus] = None,
        fee_definition_id: Optional[UUID] = None
    ) -> list[db_models.StudentFeeObligations]:
        scoped_tenant_id = resolve_tenant_scope(current_user, tenant_id)
        visible = await self._visible_student_ids(current_user)
        if visible is not None and student_id is not None and student_id not in visible:
            log.warning(f"SECURITY: User {current_user.id} ({current_user.role.value}) filtered by foreign student {student_id}.")
            raise InsufficientRole("student filter outside visible students")

        stmt = select(db_models.StudentFeeObligations).filter(
            db_models.StudentFeeObligations.tenant_id == scoped_tenant_id
        )
        if visible is not None:
            stmt = stmt.filter(db_models.StudentFeeObligations.student_id.in_(visible))
        if student_id:
            stmt = stmt.filter(db_models.StudentFeeObligations.student_id == student_id)
        if status:
            stmt = stmt.filter(db_models.StudentFeeObligations.status == status.value)
        if fee_definition_id:
            stmt = stmt.filter(db_models.StudentFeeObligations.fee_definition_id == fee_definition_id)
        stmt = stmt.order_by(
            db_models.StudentFeeObligations.due_date.asc().nulls_last(),
            db_models.StudentFeeObligations.created_at
        )

        try:
            result = await self.db.execute(stmt)
            return list(result.scalars().all())
        except Exception as e:
            log.error(f"Database error listing obligations for tenant {scoped_tenant_id}: {e}", exc_info=True)
            raise

    async def list_payment_events(self, obligation_id: UUID, current_user: AuthenticatedUser) -> list[db_models.PaymentEvents]:
        obligation = await self._get_obligation(obligation_id, current_user)
        stmt = select(db_models.PaymentEvents).filter(
            db_models.PaymentEvents.obligation_id == obligation.id
        ).order_by(db_models.PaymentEvents.created_at, db_models.PaymentEvents.payment_date)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    # --- 3. Mutations ---

    def _build_payment_event(
        self,
        obligation: db_models.StudentFeeObligations,
        amount: Decimal,
        payment_date: date,
        current_user: AuthenticatedUser,
        payment_method: Optional[str] = None,
        transaction_reference: Optional[str] = None,
        remarks: Optional[str] = None,
        reversal_of_event_id: Optional[UUID] = None
    ) -> db_models.PaymentEvents:
        return db_models.PaymentEvents(
            id=uuid.uuid4(),
            tenant_id=obligation.tenant_id,
            obligation_id=obligation.id,
            amount=amount,
            payment_date=payment_date,
            payment_method=payment_method,
            transaction_reference=transaction_reference,
            receipt_number=generate_receipt_number(),
            remarks=remarks,
            recorded_by=current_user.id,
            reversal_of_event_id=reversal_of_event_id,
            created_at=db_models.utcnow()
        )

    def _recorded(
        self,
        obligation: db_models.StudentFeeObligations,
        event: db_models.PaymentEvents
    ) -> finance_models.PaymentRecorded:
        return finance_models.PaymentRecorded(
            obligation=finance_models.ObligationRead.model_validate(obligation),
            payment=finance_models.PaymentEventRead.model_validate(event)
        )

    async def record_payment(
        self,
        obligation_id: UUID,
        payment_data: dict[str, Any],
        current_user: AuthenticatedUser
    ) -> finance_models.PaymentRecorded:
        """
        Credits a payment against an obligation.
        Rejects anything that would take amount_paid past the billed amount.
        Never retried here: a retry could credit the same money twice.
        """
        log.info(f"Attempting to record payment on obligation {obligation_id} by user {current_user.id}")
        authorize_roles(current_user, COLLECTOR_ROLES)

        try:
            payment = finance_models.PaymentCreate.model_validate(payment_data)
        except pydantic.ValidationError as e:
            log.warning(f"Payment validation failed for obligation {obligation_id}: {e}")
            raise _validation_error_from_pydantic(e)

        obligation = await self._get_obligation(obligation_id, current_user, for_update=True)

        if obligation.amount_paid + payment.amount > obligation.billed_amount:
            log.warning(
                f"Overpayment rejected on obligation {obligation.id}: paid {obligation.amount_paid} + "
                f"{payment.amount} > billed {obligation.billed_amount}"
            )
            raise OverpaymentRejected(f"obligation {obligation.id}")

        new_paid = obligation.amount_paid + payment.amount
        obligation.amount_paid = new_paid
        obligation.status = derive_obligation_status(new_paid, obligation.billed_amount).value
        obligation.updated_at = db_models.utcnow()

        event = self._build_payment_event(
            obligation,
            amount=payment.amount,
            payment_date=payment.payment_date,
            current_user=current_user,
            payment_method=payment.payment_method.value if payment.payment_method else None,
            transaction_reference=payment.transaction_reference,
            remarks=payment.remarks
        )
        self.db.add(event)

        try:
            await self.db.flush()
        except Exception as e:
            # The session now needs a rollback; loaded attributes can no longer be read.
            log.error(f"Database error recording payment on obligation {obligation_id}: {e}", exc_info=True)
            raise

        log.info(f"Payment {event.receipt_number} of {payment.amount} recorded on obligation {obligation.id} (status: {obligation.status}).")
        _after_commit(self.background_tasks, self.notification_service.notify_payment_recorded, obligation, event)
        return self._recorded(obligation, event)

    async def reverse_payment(
        self,
        event_id: UUID,
        reversal_data: finance_models.PaymentReversalCreate,
        current_user: AuthenticatedUser
    ) -> finance_models.PaymentRecorded:
        """
        Undoes a payment by appending an offsetting negative event.
        The original event is never touched.
        """
        log.info(f"Attempting to reverse payment event {event_id} by user {current_user.id}")
        authorize_roles(current_user, [UserRole.COLLEGE_ADMIN])

        original = await self.db.get(db_models.PaymentEvents, event_id)
        if original is None:
            raise ResourceNotFound(f"payment event {event_id}")
        authorize_tenant_scope(current_user, original.tenant_id)

        if original.reversal_of_event_id is not None or original.amount < 0:
            raise PaymentAlreadyReversed(f"event {event_id} is itself a reversal")
        already_reversed = await self.db.execute(
            select(db_models.PaymentEvents.id).filter(db_models.PaymentEvents.reversal_of_event_id == original.id)
        )
        if already_reversed.scalars().first():
            raise PaymentAlreadyReversed(f"event {event_id}")

        obligation = await self._get_obligation(original.obligation_id, current_user, for_update=True)
        new_paid = obligation.amount_paid - original.amount
        if new_paid < 0:
            log.error(f"Reversal of {event_id} would drive obligation {obligation.id} negative.")
            raise LedgerInvariantError(f"obligation {obligation.id} amount_paid {obligation.amount_paid} < {original.amount}")

        obligation.amount_paid = new_paid
        obligation.status = derive_obligation_status(new_paid, obligation.billed_amount).value
        obligation.updated_at = db_models.utcnow()

        event = self._build_payment_event(
            obligation,
            amount=-original.amount,
            payment_date=reversal_data.reversal_date or date.today(),
            current_user=current_user,
            payment_method=original.payment_method,
            transaction_reference=original.transaction_reference,
            remarks=reversal_data.reason,
            reversal_of_event_id=original.id
        )
        self.db.add(event)

        try:
            await self.db.flush()
        except Exception as e:
            log.error(f"Database error reversing payment event {event_id}: {e}", exc_info=True)
            raise

        log.info(f"Payment event {original.id} reversed by {event.receipt_number}; obligation {obligation.id} now {obligation.status}.")
        return self._recorded(obligation, event)

    async def mark_overdue(
        self,
        current_user: AuthenticatedUser,
        as_of: Optional[date] = None,
        tenant_id: Optional[UUID] = None
    ) -> finance_models.OverdueSweepResult:
        """Flags unpaid obligations whose due date lies before 'as_of'."""
        authorize_roles(current_user, ADMIN_ROLES)
        scoped_tenant_id = resolve_tenant_scope(current_user, tenant_id)
        as_of = as_of or date.today()

        stmt = update(db_models.StudentFeeObligations).where(
            db_models.StudentFeeObligations.tenant_id == scoped_tenant_id,
            db_models.StudentFeeObligations.status.in_([ObligationStatus.DUE.value, ObligationStatus.PARTIAL.value]),
            db_models.StudentFeeObligations.due_date.is_not(None),
            db_models.StudentFeeObligations.due_date < as_of
        ).values(
            status=ObligationStatus.OVERDUE.value,
            updated_at=db_models.utcnow()
        ).execution_options(synchronize_session=False)

        try:
            result = await self.db.execute(stmt)
        except Exception as e:
            log.error(f"Database error in overdue sweep for tenant {scoped_tenant_id}: {e}", exc_info=True)
            raise

        log.info(f"Overdue sweep for tenant {scoped_tenant_id} as of {as_of}: {result.rowcount} obligations updated.")
        return finance_models.OverdueSweepResult(as_of=as_of, updated=result.rowcount)


# --- Service 3: Reports ---

class FeeReportService:
    """
    Read-only projections of the ledger for college admins.
    """
    def __init__(self, db: Annotated[AsyncSession, Depends(get_db_session)]):
        self.db = db

    async def get_outstanding_balances(
        self,
        current_user: AuthenticatedUser,
        tenant_id: Optional[UUID] = None,
        course_id: Optional[UUID] = None,
        academic_period_id: Optional[UUID] = None
    ) -> list[finance_models.OutstandingBalanceRead]:
        authorize_roles(current_user, ADMIN_ROLES)
        scoped_tenant_id = resolve_tenant_scope(current_user, tenant_id)

        obligation = db_models.StudentFeeObligations
        stmt = select(obligation).join(
            db_models.FeeDefinitions, obligation.fee_definition_id == db_models.FeeDefinitions.id
        ).options(
            selectinload(obligation.student),
            selectinload(obligation.fee_definition)
        ).filter(
            obligation.tenant_id == scoped_tenant_id,
            obligation.amount_paid < obligation.billed_amount
        )
        if course_id:
            stmt = stmt.filter(db_models.FeeDefinitions.course_id == course_id)
        if academic_period_id:
            stmt = stmt.filter(db_models.FeeDefinitions.academic_period_id == academic_period_id)
        stmt = stmt.order_by(obligation.due_date.asc().nulls_last(), obligation.created_at)

        result = await self.db.execute(stmt)
        return [
            finance_models.OutstandingBalanceRead(
                obligation_id=row.id,
                student_id=row.student_id,
                student_name=row.student.full_name,
                fee_definition_id=row.fee_definition_id,
                fee_type=row.fee_definition.fee_type,
                course_id=row.fee_definition.course_id,
                due_date=row.due_date,
                billed_amount=row.billed_amount,
                amount_paid=row.amount_paid,
                outstanding_amount=row.billed_amount - row.amount_paid,
                status=row.status
            )
            for row in result.scalars().all()
        ]

    async def get_collection_report(
        self,
        current_user: AuthenticatedUser,
        group_by: CollectionGrouping = CollectionGrouping.DATE,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        tenant_id: Optional[UUID] = None
    ) -> finance_models.CollectionReport:
        """
        Money collected per day, course or payment method. Reversals are
        included as negative amounts, so totals are net.
        """
        authorize_roles(current_user, ADMIN_ROLES)
        scoped_tenant_id = resolve_tenant_scope(current_user, tenant_id)
        if start_date and end_date and start_date > end_date:
            raise ValidationError("start_date", "start_date must not be after end_date.")

        event = db_models.PaymentEvents
        if group_by == CollectionGrouping.COURSE:
            group_column = db_models.Courses.name
        elif group_by == CollectionGrouping.PAYMENT_METHOD:
            group_column = func.coalesce(event.payment_method, 'unspecified')
        else:
            group_column = event.payment_date

        stmt = select(
            group_column.label('group'),
            func.count(event.id).label('total_payments'),
            func.coalesce(func.sum(event.amount), 0).label('total_amount'),
            func.count(db_models.StudentFeeObligations.student_id.distinct()).label('unique_students')
        ).join(
            db_models.StudentFeeObligations, event.obligation_id == db_models.StudentFeeObligations.id
        ).join(
            db_models.FeeDefinitions, db_models.StudentFeeObligations.fee_definition_id == db_models.FeeDefinitions.id
        ).join(
            db_models.Courses, db_models.FeeDefinitions.course_id == db_models.Courses.id
        ).filter(
            event.tenant_id == scoped_tenant_id
        )
        if start_date:
            stmt = stmt.filter(event.payment_date >= start_date)
        if end_date:
            stmt = stmt.filter(event.payment_date <= end_date)
        stmt = stmt.group_by(group_column).order_by(group_column)

        result = await self.db.execute(stmt)
        rows = [
            finance_models.CollectionReportRow(
                group=row.group.isoformat() if isinstance(row.group, date) else str(row.group),
                total_payments=row.total_payments,
                total_amount=Decimal(str(row.total_amount)),
                unique_students=row.unique_students
            )
            for row in result.all()
        ]
        return finance_models.CollectionReport(
            group_by=group_by,
            start_date=start_date,
            end_date=end_date,
            rows=rows
        )

    async def get_status_summary(
        self,
        current_user: AuthenticatedUser,
        tenant_id: Optional[UUID] = None
    ) -> finance_models.FeeStatusSummary:
        authorize_roles(current_user, ADMIN_ROLES)
        scoped_tenant_id = resolve_tenant_scope(current_user, tenant_id)

        obligation = db_models.StudentFeeObligations
        stmt = select(
            obligation.status,
            func.count(obligation.id).label('count'),
            func.coalesce(func.sum(obligation.billed_amount), 0).label('billed_amount'),
            func.coalesce(func.sum(obligation.amount_paid), 0).label('amount_paid')
        ).filter(
            obligation.tenant_id == scoped_tenant_id
        ).group_by(obligation.status)

        result = await self.db.execute(stmt)
        by_status = {status: finance_models.StatusBucket() for status in ObligationStatus}
        for row in result.all():
            by_status[ObligationStatus(row.status)] = finance_models.StatusBucket(
                count=row.count,
                billed_amount=Decimal(str(row.billed_amount)),
                amount_paid=Decimal(str(row.amount_paid))
            )

        return finance_models.FeeStatusSummary(
            tenant_id=scoped_tenant_id,
            total_assigned=finance_models.StatusBucket(
                count=sum(bucket.count for bucket in by_status.values()),
                billed_amount=sum((bucket.billed_amount for bucket in by_status.values()), Decimal(0)),
                amount_paid=sum((bucket.amount_paid for bucket in by_status.values()), Decimal(0))
            ),
            by_status=by_status
        )
