'''
Best-effort publisher for ledger events.

Transport is handled elsewhere; the default sink only logs. A failing sink
never fails the ledger operation that triggered it.
'''
from datetime import datetime, timezone
from typing import Any, Callable, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from ..common.logger import log
from ..database import models as db_models


class NotificationEvent(BaseModel):
    event_type: str
    tenant_id: UUID
    recipient_id: UUID
    payload: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(frozen=True)


def log_sink(event: NotificationEvent) -> None:
    log.info(f"Notification '{event.event_type}' for user {event.recipient_id} (tenant {event.tenant_id}): {event.payload}")


class NotificationService:
    """
    Publishes NotificationEvents to a sink callable. Swap the sink to plug a
    real transport in.
    """
    def __init__(self, sink: Optional[Callable[[NotificationEvent], None]] = None):
        self.sink = sink or log_sink

    def publish(self, event: NotificationEvent) -> bool:
        try:
            self.sink(event)
            return True
        except Exception as e:
            log.error(f"Failed to publish notification '{event.event_type}' to {event.recipient_id}: {e}", exc_info=True)
            return False

    def notify_obligation_created(self, obligation: db_models.StudentFeeObligations, fee_type: str) -> bool:
        return self.publish(NotificationEvent(
            event_type='obligation_created',
            tenant_id=obligation.tenant_id,
            recipient_id=obligation.student_id,
            payload={
                'obligation_id': str(obligation.id),
                'fee_type': fee_type,
                'billed_amount': str(obligation.billed_amount),
                'due_date': obligation.due_date.isoformat() if obligation.due_date else None,
            }
        ))

    def notify_payment_recorded(
        self,
        obligation: db_models.StudentFeeObligations,
        payment: db_models.PaymentEvents
    ) -> bool:
        return self.publish(NotificationEvent(
            event_type='payment_recorded',
            tenant_id=obligation.tenant_id,
            recipient_id=obligation.student_id,
            payload={
                'obligation_id': str(obligation.id),
                'receipt_number': payment.receipt_number,
                'amount': str(payment.amount),
                'balance_due': str(obligation.billed_amount - obligation.amount_paid),
                'status': obligation.status,
            }
        ))


# Process-wide instance; FastAPI resolves it through get_notification_service.
notification_service = NotificationService()

def get_notification_service() -> NotificationService:
    return notification_service
