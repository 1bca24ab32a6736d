"""FastAPI routes for the Inventory domain: maintenance only."""

from fastapi import APIRouter, Depends
from protean.utils.globals import current_domain

from identity.account.account import Account
from inventory.stock.expiry import ReleaseExpiredHolds
from shared.api import MaintenanceRequest, MaintenanceResponse, admin_account

inventory_router = APIRouter(prefix="/inventory", tags=["inventory"])


@inventory_router.post("/maintenance/release-expired", response_model=MaintenanceResponse)
def release_expired_holds(
    body: MaintenanceRequest | None = None,
    _admin: Account = Depends(admin_account),
) -> MaintenanceResponse:
    """Give back stock held by checkouts that never completed."""
    released = current_domain.process(ReleaseExpiredHolds(as_of=body.as_of if body else None), asynchronous=False)
    return MaintenanceResponse(processed=released or 0)
