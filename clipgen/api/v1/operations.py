"""List backed-up provider operation handles."""

from fastapi import APIRouter, Depends

from clipgen.api.v1.deps import require_services
from clipgen.services import Services

router = APIRouter()


@router.get("/operations")
def list_operations(services: Services = Depends(require_services)):
    operations = services.backup.list_backups()
    return {"count": len(operations), "operations": operations}
