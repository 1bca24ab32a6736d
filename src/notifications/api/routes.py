"""FastAPI routes for the Notifications domain: maintenance only."""

from fastapi import APIRouter, Depends
from protean.utils.globals import current_domain

from identity.account.account import Account
from notifications.notification.retry import DispatchDueNotifications
from shared.api import MaintenanceRequest, MaintenanceResponse, admin_account

notification_router = APIRouter(prefix="/notifications", tags=["notifications"])


@notification_router.post("/maintenance/dispatch-due", response_model=MaintenanceResponse)
def dispatch_due_notifications(
    body: MaintenanceRequest | None = None,
    _admin: Account = Depends(admin_account),
) -> MaintenanceResponse:
    """Retry failed notifications whose backoff has passed.

    Meant for an external scheduler when the in-process maintenance loop is off.
    """
    sent = current_domain.process(DispatchDueNotifications(as_of=body.as_of if body else None), asynchronous=False)
    return MaintenanceResponse(processed=sent or 0)
