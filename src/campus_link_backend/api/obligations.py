'''
API endpoints for student fee obligations and the payments recorded on them.
'''
from typing import Annotated, Any, Optional
from uuid import UUID
from fastapi import APIRouter, Depends, status, Query, Body

from ..database.db_enums import ObligationStatus
from ..models import finance as finance_models
from ..models.user import AuthenticatedUser
from ..services.security import verify_token_and_get_user
from ..services.fee_service import FeeLedgerService

class ObligationsAPI:
    """
    A class to encapsulate endpoints for Obligations and Payments.
    """
    def __init__(self):
        self.router = APIRouter(
            prefix="/obligations",
            tags=["Obligations"]
        )
        self._register_routes()

    def _register_routes(self):
        """Registers all the API routes for this class."""
        self.router.add_api_route(
                "",
                self.list_obligations,
                methods=["GET"],
                response_model=list[finance_models.ObligationRead])
        self.router.add_api_route(
                "/overdue-sweep",
                self.mark_overdue,
                methods=["POST"],
                response_model=finance_models.OverdueSweepResult)
        self.router.add_api_route(
                "/{obligation_id}",
                self.get_obligation,
                methods=["GET"],
                response_model=finance_models.ObligationRead)
        self.router.add_api_route(
                "/{obligation_id}/payments",
                self.record_payment,
                methods=["POST"],
                status_code=status.HTTP_201_CREATED,
                response_model=finance_models.PaymentRecorded)
        self.router.add_api_route(
                "/{obligation_id}/payments",
                self.list_payments,
                methods=["GET"],
                response_model=list[finance_models.PaymentEventRead])

    async def list_obligations(
        self,
        current_user: Annotated[AuthenticatedUser, Depends(verify_token_and_get_user)],
        ledger_service: Annotated[FeeLedgerService, Depends(FeeLedgerService)],
        tenant_id: Annotated[Optional[UUID], Query(description="Required for platform operators")] = None,
        student_id: Annotated[Optional[UUID], Query()] = None,
        student: Annotated[Optional[UUID], Query(description="Same as student_id")] = None,
        obligation_status: Annotated[Optional[ObligationStatus], Query(alias="status")] = None,
        fee_definition_id: Annotated[Optional[UUID], Query()] = None
    ) -> Any:
        """
        Lists obligations visible to the caller: students see their own,
        parents their children's, staff the whole college.
        """
        return await ledger_service.list_obligations(
            current_user,
            tenant_id=tenant_id,
            student_id=student_id or student,
            status=obligation_status,
            fee_definition_id=fee_definition_id
        )

    async def get_obligation(
        self,
        obligation_id: UUID,
        current_user: Annotated[AuthenticatedUser, Depends(verify_token_and_get_user)],
        ledger_service: Annotated[FeeLedgerService, Depends(FeeLedgerService)]
    ) -> Any:
        return await ledger_service.get_obligation(obligation_id, current_user)

    async def record_payment(
        self,
        obligation_id: UUID,
        payment_data: finance_models.PaymentCreate,
        current_user: Annotated[AuthenticatedUser, Depends(verify_token_and_get_user)],
        ledger_service: Annotated[FeeLedgerService, Depends(FeeLedgerService)]
    ) -> Any:
        """
        Records a payment. Restricted to college admins and teachers.
        Payments that would exceed the balance due are rejected with 409.
        """
        return await ledger_service.record_payment(
            obligation_id, payment_data.model_dump(by_alias=True), current_user
        )

    async def list_payments(
        self,
        obligation_id: UUID,
        current_user: Annotated[AuthenticatedUser, Depends(verify_token_and_get_user)],
        ledger_service: Annotated[FeeLedgerService, Depends(FeeLedgerService)]
    ) -> Any:
        return await ledger_service.list_payment_events(obligation_id, current_user)

    async def mark_overdue(
        self,
        current_user: Annotated[AuthenticatedUser, Depends(verify_token_and_get_user)],
        ledger_service: Annotated[FeeLedgerService, Depends(FeeLedgerService)],
        sweep_data: Annotated[Optional[finance_models.OverdueSweepRequest], Body()] = None,
        tenant_id: Annotated[Optional[UUID], Query(description="Required for platform operators")] = None
    ) -> Any:
        return await ledger_service.mark_overdue(
            current_user,
            as_of=sweep_data.as_of if sweep_data else None,
            tenant_id=tenant_id
        )


class PaymentsAPI:
    """Endpoints addressing individual payment events."""
    def __init__(self):
        self.router = APIRouter(
            prefix="/payments",
            tags=["Obligations"]
        )
        self._register_routes()

    def _register_routes(self):
        self.router.add_api_route(
                "/{event_id}/reversal",
                self.reverse_payment,
                methods=["POST"],
                status_code=status.HTTP_201_CREATED,
                response_model=finance_models.PaymentRecorded)

    async def reverse_payment(
        self,
        event_id: UUID,
        reversal_data: finance_models.PaymentReversalCreate,
        current_user: Annotated[AuthenticatedUser, Depends(verify_token_and_get_user)],
        ledger_service: Annotated[FeeLedgerService, Depends(FeeLedgerService)]
    ) -> Any:
        """
        Reverses a payment with an offsetting entry. College admins only.
        """
        return await ledger_service.reverse_payment(event_id, reversal_data, current_user)


# --- Create router instances ---
obligations_router = ObligationsAPI().router
payments_router = PaymentsAPI().router
