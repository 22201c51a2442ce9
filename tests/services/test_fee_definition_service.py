'''
Tests for FeeDefinitionService: definitions and cohort assignment.
'''
import uuid
from datetime import date
from decimal import Decimal

from unittest.mock import MagicMock

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from campus_link_backend.common.exceptions import (
    CrossTenantAccess, InsufficientRole, ValidationError, ResourceNotFound, FeeDefinitionLocked,
    StoreConfigurationError
)
from campus_link_backend.database import models as db_models
from campus_link_backend.database.db_enums import AdmissionStatus, ObligationStatus, UserStatus
from campus_link_backend.models import finance as finance_models
from campus_link_backend.services.fee_service import FeeDefinitionService, FeeLedgerService
from campus_link_backend.services.notification_service import NotificationService
from tests.database import factories
from tests.helpers import as_caller


async def obligations_for(db_session: AsyncSession, definition_id) -> list[db_models.StudentFeeObligations]:
    result = await db_session.execute(
        select(db_models.StudentFeeObligations).filter(
            db_models.StudentFeeObligations.fee_definition_id == definition_id
        )
    )
    return list(result.scalars().all())


@pytest.mark.anyio
class TestCreateFeeDefinition:

    async def test_create_in_own_college(
        self, fee_definition_service: FeeDefinitionService, course_a, period_a, admin_a, tenant_a
    ):
        definition = await fee_definition_service.create_fee_definition(
            finance_models.FeeDefinitionCreate(
                course_id=course_a.id,
                academic_period_id=period_a.id,
                fee_type="library",
                amount=Decimal("75.00"),
                due_date=date(2025, 11, 1)
            ),
            as_caller(admin_a)
        )
        assert definition.tenant_id == tenant_a.id
        assert definition.created_by == admin_a.id
        assert definition.amount == Decimal("75.00")

    async def test_super_admin_creates_for_the_course_college(
        self, fee_definition_service: FeeDefinitionService, course_a, period_a, super_admin, tenant_a
    ):
        definition = await fee_definition_service.create_fee_definition(
            finance_models.FeeDefinitionCreate(
                course_id=course_a.id, academic_period_id=period_a.id, fee_type="exam", amount=Decimal("20")
            ),
            as_caller(super_admin)
        )
        assert definition.tenant_id == tenant_a.id

    async def test_foreign_course(self, fee_definition_service: FeeDefinitionService, course_a, period_a, admin_b):
        with pytest.raises(CrossTenantAccess):
            await fee_definition_service.create_fee_definition(
                finance_models.FeeDefinitionCreate(
                    course_id=course_a.id, academic_period_id=period_a.id, fee_type="tuition", amount=Decimal("10")
                ),
                as_caller(admin_b)
            )

    async def test_period_of_another_college(
        self, fee_definition_service: FeeDefinitionService, course_a, admin_a, tenant_b, db_session: AsyncSession
    ):
        foreign_period = factories.AcademicPeriodFactory(tenant=tenant_b)
        await db_session.flush()
        with pytest.raises(ValidationError):
            await fee_definition_service.create_fee_definition(
                finance_models.FeeDefinitionCreate(
                    course_id=course_a.id, academic_period_id=foreign_period.id, fee_type="tuition", amount=Decimal("10")
                ),
                as_caller(admin_a)
            )

    async def test_teacher_cannot_create(self, fee_definition_service: FeeDefinitionService, course_a, period_a, teacher_a):
        with pytest.raises(InsufficientRole):
            await fee_definition_service.create_fee_definition(
                finance_models.FeeDefinitionCreate(
                    course_id=course_a.id, academic_period_id=period_a.id, fee_type="tuition", amount=Decimal("10")
                ),
                as_caller(teacher_a)
            )

    async def test_get_foreign_definition(self, fee_definition_service: FeeDefinitionService, fee_definition_a, admin_b):
        with pytest.raises(CrossTenantAccess):
            await fee_definition_service.get_fee_definition(fee_definition_a.id, as_caller(admin_b))

    async def test_list_is_tenant_scoped(
        self, fee_definition_service: FeeDefinitionService, fee_definition_a, obligation_b, student_a1, admin_b
    ):
        """Anyone in the college may browse its fees; nobody sees another college's."""
        own = await fee_definition_service.list_fee_definitions(as_caller(student_a1))
        assert [d.id for d in own] == [fee_definition_a.id]

        foreign = await fee_definition_service.list_fee_definitions(as_caller(admin_b))
        assert [d.id for d in foreign] == [obligation_b.fee_definition_id]


@pytest.mark.anyio
class TestUpdateFeeDefinition:

    async def test_update_keeps_existing_obligations(
        self, fee_definition_service: FeeDefinitionService, db_session: AsyncSession,
        fee_definition_a, obligation_a1, admin_a
    ):
        updated = await fee_definition_service.update_fee_definition(
            fee_definition_a.id,
            finance_models.FeeDefinitionUpdate(amount=Decimal("1200.00")),
            as_caller(admin_a)
        )
        assert updated.amount == Decimal("1200.00")

        await db_session.refresh(obligation_a1)
        assert obligation_a1.billed_amount == Decimal("1000.00")

    async def test_locked_after_first_payment(
        self, fee_definition_service: FeeDefinitionService, fee_ledger_service: FeeLedgerService,
        fee_definition_a, obligation_a1, admin_a
    ):
        caller = as_caller(admin_a)
        await fee_ledger_service.record_payment(
            obligation_a1.id, {"amount": "100", "date": "2025-09-10"}, caller
        )
        with pytest.raises(FeeDefinitionLocked):
            await fee_definition_service.update_fee_definition(
                fee_definition_a.id, finance_models.FeeDefinitionUpdate(fee_type="renamed"), caller
            )


@pytest.mark.anyio
class TestAssignFee:

    async def test_assigns_admitted_students(
        self, fee_definition_service: FeeDefinitionService, db_session: AsyncSession,
        fee_definition_a, admitted_students_a, admin_a, mock_notification_service
    ):
        result = await fee_definition_service.assign_fee(
            fee_definition_a.id, finance_models.CohortSelector(), as_caller(admin_a)
        )
        print(f"Assignment result: {result.model_dump()}")
        assert result.created == 2
        assert result.skipped == 0

        obligations = await obligations_for(db_session, fee_definition_a.id)
        assert {o.student_id for o in obligations} == {s.id for s in admitted_students_a}
        for obligation in obligations:
            assert obligation.amount_paid == Decimal("0")
            assert obligation.billed_amount == fee_definition_a.amount
            assert obligation.due_date == fee_definition_a.due_date
            assert obligation.status == ObligationStatus.DUE.value
            assert obligation.tenant_id == fee_definition_a.tenant_id
        assert mock_notification_service.notify_obligation_created.call_count == 2

    async def test_rerun_creates_nothing(
        self, fee_definition_service: FeeDefinitionService, db_session: AsyncSession,
        fee_definition_a, admitted_students_a, admin_a, mock_notification_service
    ):
        caller = as_caller(admin_a)
        await fee_definition_service.assign_fee(fee_definition_a.id, finance_models.CohortSelector(), caller)
        second = await fee_definition_service.assign_fee(fee_definition_a.id, finance_models.CohortSelector(), caller)

        assert second.created == 0
        assert second.skipped == 2
        assert len(await obligations_for(db_session, fee_definition_a.id)) == 2
        assert mock_notification_service.notify_obligation_created.call_count == 2

    async def test_overlapping_cohorts(
        self, fee_definition_service: FeeDefinitionService, db_session: AsyncSession,
        fee_definition_a, admitted_students_a, admin_a
    ):
        student_a1, student_a2 = admitted_students_a
        caller = as_caller(admin_a)

        first = await fee_definition_service.assign_fee(
            fee_definition_a.id, finance_models.CohortSelector(student_ids=[student_a1.id]), caller
        )
        second = await fee_definition_service.assign_fee(
            fee_definition_a.id, finance_models.CohortSelector(student_ids=[student_a1.id, student_a2.id]), caller
        )
        assert (first.created, second.created, second.skipped) == (1, 1, 1)
        assert len(await obligations_for(db_session, fee_definition_a.id)) == 2

    async def test_cohort_excludes_unapproved_and_inactive(
        self, fee_definition_service: FeeDefinitionService, db_session: AsyncSession,
        fee_definition_a, course_a, period_a, tenant_a, admin_a
    ):
        approved = factories.StudentFactory(tenant=tenant_a)
        pending = factories.StudentFactory(tenant=tenant_a)
        inactive = factories.StudentFactory(tenant=tenant_a, status=UserStatus.INACTIVE.value)
        factories.AdmissionFactory(student=approved, course=course_a, academic_period=period_a)
        factories.AdmissionFactory(student=pending, course=course_a, academic_period=period_a, status=AdmissionStatus.PENDING.value)
        factories.AdmissionFactory(student=inactive, course=course_a, academic_period=period_a)
        await db_session.flush()

        result = await fee_definition_service.assign_fee(
            fee_definition_a.id, finance_models.CohortSelector(), as_caller(admin_a)
        )
        assert result.created == 1
        assert [o.student_id for o in await obligations_for(db_session, fee_definition_a.id)] == [approved.id]

    async def test_explicit_ids_outside_the_college_are_skipped(
        self, fee_definition_service: FeeDefinitionService, db_session: AsyncSession,
        fee_definition_a, student_a1, tenant_b, teacher_a, admin_a
    ):
        foreign_student = factories.StudentFactory(tenant=tenant_b)
        await db_session.flush()

        result = await fee_definition_service.assign_fee(
            fee_definition_a.id,
            finance_models.CohortSelector(student_ids=[student_a1.id, foreign_student.id, teacher_a.id, uuid.uuid4()]),
            as_caller(admin_a)
        )
        assert result.created == 1
        assert result.skipped == 3

    async def test_notification_failure_does_not_fail_assignment(
        self, db_session: AsyncSession, fee_definition_a, admitted_students_a, admin_a
    ):
        def failing_sink(event):
            raise ConnectionError("push gateway down")

        service = FeeDefinitionService(db=db_session, notification_service=NotificationService(sink=failing_sink))
        result = await service.assign_fee(fee_definition_a.id, finance_models.CohortSelector(), as_caller(admin_a))
        assert result.created == 2

    async def test_cross_tenant_assignment(self, fee_definition_service: FeeDefinitionService, fee_definition_a, admin_b):
        with pytest.raises(CrossTenantAccess):
            await fee_definition_service.assign_fee(
                fee_definition_a.id, finance_models.CohortSelector(), as_caller(admin_b)
            )

    async def test_unknown_definition(self, fee_definition_service: FeeDefinitionService, admin_a):
        with pytest.raises(ResourceNotFound):
            await fee_definition_service.assign_fee(uuid.uuid4(), finance_models.CohortSelector(), as_caller(admin_a))


class TestDialectInsert:

    def test_unsupported_database_is_a_configuration_error(self, mock_notification_service):
        db = MagicMock()
        db.get_bind.return_value.dialect.name = "mysql"
        service = FeeDefinitionService(db=db, notification_service=mock_notification_service)

        with pytest.raises(StoreConfigurationError) as exc_info:
            service._dialect_insert()
        assert "mysql" in exc_info.value.reason
        assert exc_info.value.status_code == 500
