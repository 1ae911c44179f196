"""Health check endpoint."""

from fastapi import APIRouter
import platform
import sys

from clipgen.services import get_services

router = APIRouter()


@router.get("/health")
async def health_check():
    """Service health and provider configuration."""
    services = get_services()
    providers = {}
    if services is not None:
        providers = {name: a.is_configured() for name, a in services.adapters.items()}

    return {
        "status": "healthy",
        "services_ready": services is not None,
        "providers_configured": providers,
        "python_version": sys.version,
        "platform": platform.platform(),
    }
