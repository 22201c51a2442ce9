'''
Pydantic models for the fee ledger: definitions, obligations, payments and reports.
'''
from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, computed_field

from ..database.db_enums import ObligationStatus, PaymentMethod, CollectionGrouping


# --- 1. API Input Models (for POST/PATCH) ---

class FeeDefinitionCreate(BaseModel):
    """
    Validates the request body for creating a fee definition.
    """
    course_id: UUID
    academic_period_id: UUID
    fee_type: str = Field(..., min_length=1, max_length=50)
    amount: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2)
    due_date: Optional[date] = None
    is_optional: bool = False

class FeeDefinitionUpdate(BaseModel):
    fee_type: Optional[str] = Field(None, min_length=1, max_length=50)
    amount: Optional[Decimal] = Field(None, gt=0, max_digits=10, decimal_places=2)
    due_date: Optional[date] = None
    is_optional: Optional[bool] = None

class CohortSelector(BaseModel):
    """
    Which students a fee gets assigned to. Without student_ids, the cohort is
    every active student with an approved admission to the fee's course and
    academic period.
    """
    student_ids: Optional[list[UUID]] = None

class PaymentCreate(BaseModel):
    """
    Validates the request body for recording a payment against an obligation.
    """
    amount: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2)
    payment_date: date = Field(..., alias='date')
    payment_method: Optional[PaymentMethod] = Field(None, alias='method')
    transaction_reference: Optional[str] = Field(None, alias='reference', max_length=100)
    remarks: Optional[str] = Field(None, max_length=500)

    model_config = ConfigDict(populate_by_name=True)

class PaymentReversalCreate(BaseModel):
    reason: str = Field(..., min_length=3, max_length=500)
    reversal_date: Optional[date] = None

class OverdueSweepRequest(BaseModel):
    as_of: Optional[date] = None


# --- 2. API Output Models (for GET) ---

class FeeDefinitionRead(BaseModel):
    id: UUID
    tenant_id: UUID
    course_id: UUID
    academic_period_id: UUID
    fee_type: str
    amount: Decimal
    due_date: Optional[date] = None
    is_optional: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

class AssignmentResult(BaseModel):
    fee_definition_id: UUID
    created: int
    skipped: int
    obligation_ids: list[UUID] = Field(default_factory=list)

class ObligationRead(BaseModel):
    """
    A student's individual bill. balance_due is derived, never stored.
    """
    id: UUID
    tenant_id: UUID
    student_id: UUID
    fee_definition_id: UUID
    status: ObligationStatus
    due_date: Optional[date] = None
    billed_amount: Decimal
    amount_paid: Decimal
    updated_at: datetime

    @computed_field
    @property
    def balance_due(self) -> Decimal:
        return self.billed_amount - self.amount_paid

    model_config = ConfigDict(from_attributes=True)

class PaymentEventRead(BaseModel):
    id: UUID
    obligation_id: UUID
    amount: Decimal
    payment_date: date
    payment_method: Optional[PaymentMethod] = None
    transaction_reference: Optional[str] = None
    receipt_number: str
    remarks: Optional[str] = None
    recorded_by: UUID
    reversal_of_event_id: Optional[UUID] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

class PaymentRecorded(BaseModel):
    """Returned by payment recording and reversal: the new ledger state plus the event that caused it."""
    obligation: ObligationRead
    payment: PaymentEventRead

class OverdueSweepResult(BaseModel):
    as_of: date
    updated: int


# --- 3. Report Models ---

class OutstandingBalanceRead(BaseModel):
    obligation_id: UUID
    student_id: UUID
    student_name: str
    fee_definition_id: UUID
    fee_type: str
    course_id: UUID
    due_date: Optional[date] = None
    billed_amount: Decimal
    amount_paid: Decimal
    outstanding_amount: Decimal
    status: ObligationStatus

class CollectionReportRow(BaseModel):
    group: str
    total_payments: int
    total_amount: Decimal
    unique_students: int

class CollectionReport(BaseModel):
    group_by: CollectionGrouping
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    rows: list[CollectionReportRow]

    @computed_field
    @property
    def total_collected(self) -> Decimal:
        return sum((row.total_amount for row in self.rows), Decimal(0))

class StatusBucket(BaseModel):
    count: int = 0
    billed_amount: Decimal = Decimal(0)
    amount_paid: Decimal = Decimal(0)

    @computed_field
    @property
    def outstanding_amount(self) -> Decimal:
        return self.billed_amount - self.amount_paid

class FeeStatusSummary(BaseModel):
    tenant_id: UUID
    total_assigned: StatusBucket
    by_status: dict[ObligationStatus, StatusBucket]
