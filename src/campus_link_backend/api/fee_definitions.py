'''
API endpoints for fee definitions and their assignment to students.
'''
from typing import Annotated, Any, Optional
from uuid import UUID
from fastapi import APIRouter, Depends, status, Query, Body

from ..models import finance as finance_models
from ..models.user import AuthenticatedUser
from ..services.security import verify_token_and_get_user
from ..services.fee_service import FeeDefinitionService

class FeeDefinitionsAPI:
    """
    A class to encapsulate endpoints for Fee Definitions.
    """
    def __init__(self):
        self.router = APIRouter(
            prefix="/fee-definitions",
            tags=["Fee Definitions"]
        )
        self._register_routes()

    def _register_routes(self):
        """Registers all the API routes for this class."""
        self.router.add_api_route(
                "",
                self.create_fee_definition,
                methods=["POST"],
                status_code=status.HTTP_201_CREATED,
                response_model=finance_models.FeeDefinitionRead)
        self.router.add_api_route(
                "",
                self.list_fee_definitions,
                methods=["GET"],
                response_model=list[finance_models.FeeDefinitionRead])
        self.router.add_api_route(
                "/{definition_id}",
                self.get_fee_definition,
                methods=["GET"],
                response_model=finance_models.FeeDefinitionRead)
        self.router.add_api_route(
                "/{definition_id}",
                self.update_fee_definition,
                methods=["PATCH"],
                response_model=finance_models.FeeDefinitionRead)
        self.router.add_api_route(
                "/{definition_id}/assign",
                self.assign_fee,
                methods=["POST"],
                response_model=finance_models.AssignmentResult)

    async def create_fee_definition(
        self,
        definition_data: finance_models.FeeDefinitionCreate,
        current_user: Annotated[AuthenticatedUser, Depends(verify_token_and_get_user)],
        fee_definition_service: Annotated[FeeDefinitionService, Depends(FeeDefinitionService)]
    ) -> Any:
        return await fee_definition_service.create_fee_definition(definition_data, current_user)

    async def list_fee_definitions(
        self,
        current_user: Annotated[AuthenticatedUser, Depends(verify_token_and_get_user)],
        fee_definition_service: Annotated[FeeDefinitionService, Depends(FeeDefinitionService)],
        tenant_id: Annotated[Optional[UUID], Query(description="Required for platform operators")] = None,
        course_id: Annotated[Optional[UUID], Query()] = None,
        academic_period_id: Annotated[Optional[UUID], Query()] = None
    ) -> Any:
        return await fee_definition_service.list_fee_definitions(
            current_user,
            tenant_id=tenant_id,
            course_id=course_id,
            academic_period_id=academic_period_id
        )

    async def get_fee_definition(
        self,
        definition_id: UUID,
        current_user: Annotated[AuthenticatedUser, Depends(verify_token_and_get_user)],
        fee_definition_service: Annotated[FeeDefinitionService, Depends(FeeDefinitionService)]
    ) -> Any:
        return await fee_definition_service.get_fee_definition(definition_id, current_user)

    async def update_fee_definition(
        self,
        definition_id: UUID,
        update_data: finance_models.FeeDefinitionUpdate,
        current_user: Annotated[AuthenticatedUser, Depends(verify_token_and_get_user)],
        fee_definition_service: Annotated[FeeDefinitionService, Depends(FeeDefinitionService)]
    ) -> Any:
        """
        Edits a fee definition. Rejected with 409 once any payment exists.
        """
        return await fee_definition_service.update_fee_definition(definition_id, update_data, current_user)

    async def assign_fee(
        self,
        definition_id: UUID,
        current_user: Annotated[AuthenticatedUser, Depends(verify_token_and_get_user)],
        fee_definition_service: Annotated[FeeDefinitionService, Depends(FeeDefinitionService)],
        selector: Annotated[Optional[finance_models.CohortSelector], Body()] = None
    ) -> Any:
        """
        Assigns the fee to every approved, active student of its course and
        period, or only to the listed student_ids. Safe to call repeatedly.
        """
        return await fee_definition_service.assign_fee(
            definition_id, selector or finance_models.CohortSelector(), current_user
        )

router = FeeDefinitionsAPI().router
