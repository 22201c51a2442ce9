'''
Tests for the /fee-definitions endpoints.
'''
import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from tests.database import factories
from tests.helpers import auth_headers


@pytest.mark.anyio
class TestFeeDefinitionsAPI:

    async def test_create_and_assign(
        self, client: httpx.AsyncClient, db_session: AsyncSession, admin_a, course_a, period_a,
        admitted_students_a, mock_notification_service
    ):
        await db_session.commit()
        headers = auth_headers(admin_a)

        response = await client.post("/fee-definitions", json={
            "course_id": str(course_a.id),
            "academic_period_id": str(period_a.id),
            "fee_type": "lab",
            "amount": "150.00",
            "due_date": "2025-11-01"
        }, headers=headers)
        assert response.status_code == 201, response.json()
        definition = response.json()
        assert definition["tenant_id"] == str(course_a.tenant_id)

        response = await client.post(f"/fee-definitions/{definition['id']}/assign", headers=headers)
        assert response.status_code == 200, response.json()
        assert response.json()["created"] == 2
        assert mock_notification_service.notify_obligation_created.call_count == 2

        response = await client.post(f"/fee-definitions/{definition['id']}/assign", headers=headers)
        assert response.json()["created"] == 0
        assert response.json()["skipped"] == 2

        response = await client.get("/obligations", params={"fee_definition_id": definition["id"]}, headers=headers)
        assert len(response.json()) == 2

    async def test_teacher_cannot_define_fees(
        self, client: httpx.AsyncClient, db_session: AsyncSession, teacher_a, course_a, period_a
    ):
        await db_session.commit()
        response = await client.post("/fee-definitions", json={
            "course_id": str(course_a.id),
            "academic_period_id": str(period_a.id),
            "fee_type": "lab",
            "amount": "150.00"
        }, headers=auth_headers(teacher_a))
        assert response.status_code == 403
        assert response.json() == {"detail": "Access denied."}

    async def test_locked_after_payment(
        self, client: httpx.AsyncClient, db_session: AsyncSession, admin_a, fee_definition_a, obligation_a1
    ):
        factories.PaymentEventFactory(obligation=obligation_a1, recorder=admin_a)
        await db_session.commit()

        response = await client.patch(
            f"/fee-definitions/{fee_definition_a.id}", json={"amount": "1200.00"}, headers=auth_headers(admin_a)
        )
        assert response.status_code == 409
        assert "can no longer be edited" in response.json()["detail"]

    async def test_edit_before_payment(
        self, client: httpx.AsyncClient, db_session: AsyncSession, admin_a, fee_definition_a
    ):
        await db_session.commit()
        response = await client.patch(
            f"/fee-definitions/{fee_definition_a.id}", json={"due_date": "2025-12-01"}, headers=auth_headers(admin_a)
        )
        assert response.status_code == 200, response.json()
        assert response.json()["due_date"] == "2025-12-01"
