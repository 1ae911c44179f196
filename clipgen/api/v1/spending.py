"""Spending status endpoint."""

from fastapi import APIRouter, Depends

from clipgen.api.v1.deps import require_services
from clipgen.services import Services

router = APIRouter()


@router.get("/spending")
def get_spending(
    history: bool = False,
    services: Services = Depends(require_services),
):
    """Today's generation count against the daily limit."""
    body = {"success": True, **services.spending.status()}
    if history:
        body["history"] = services.spending.history()
    return body
