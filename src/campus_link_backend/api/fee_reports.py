'''
API endpoints for fee reports.
'''
from datetime import date
from typing import Annotated, Any, Optional
from uuid import UUID
from fastapi import APIRouter, Depends, Query

from ..database.db_enums import CollectionGrouping
from ..models import finance as finance_models
from ..models.user import AuthenticatedUser
from ..services.security import verify_token_and_get_user
from ..services.fee_service import FeeReportService

class FeeReportsAPI:
    """
    Read-only ledger reports for college admins and platform operators.
    """
    def __init__(self):
        self.router = APIRouter(
            prefix="/fee-reports",
            tags=["Fee Reports"]
        )
        self._register_routes()

    def _register_routes(self):
        """Registers all the API routes for this class."""
        self.router.add_api_route(
                "/outstanding",
                self.get_outstanding_balances,
                methods=["GET"],
                response_model=list[finance_models.OutstandingBalanceRead])
        self.router.add_api_route(
                "/collections",
                self.get_collection_report,
                methods=["GET"],
                response_model=finance_models.CollectionReport)
        self.router.add_api_route(
                "/summary",
                self.get_status_summary,
                methods=["GET"],
                response_model=finance_models.FeeStatusSummary)

    async def get_outstanding_balances(
        self,
        current_user: Annotated[AuthenticatedUser, Depends(verify_token_and_get_user)],
        report_service: Annotated[FeeReportService, Depends(FeeReportService)],
        tenant_id: Annotated[Optional[UUID], Query(description="Required for platform operators")] = None,
        course_id: Annotated[Optional[UUID], Query()] = None,
        academic_period_id: Annotated[Optional[UUID], Query()] = None
    ) -> Any:
        return await report_service.get_outstanding_balances(
            current_user,
            tenant_id=tenant_id,
            course_id=course_id,
            academic_period_id=academic_period_id
        )

    async def get_collection_report(
        self,
        current_user: Annotated[AuthenticatedUser, Depends(verify_token_and_get_user)],
        report_service: Annotated[FeeReportService, Depends(FeeReportService)],
        group_by: Annotated[CollectionGrouping, Query()] = CollectionGrouping.DATE,
        start_date: Annotated[Optional[date], Query()] = None,
        end_date: Annotated[Optional[date], Query()] = None,
        tenant_id: Annotated[Optional[UUID], Query(description="Required for platform operators")] = None
    ) -> Any:
        return await report_service.get_collection_report(
            current_user,
            group_by=group_by,
            start_date=start_date,
            end_date=end_date,
            tenant_id=tenant_id
        )

    async def get_status_summary(
        self,
        current_user: Annotated[AuthenticatedUser, Depends(verify_token_and_get_user)],
        report_service: Annotated[FeeReportService, Depends(FeeReportService)],
        tenant_id: Annotated[Optional[UUID], Query(description="Required for platform operators")] = None
    ) -> Any:
        return await report_service.get_status_summary(current_user, tenant_id=tenant_id)

router = FeeReportsAPI().router
