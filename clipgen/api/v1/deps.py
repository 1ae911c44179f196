"""Shared dependencies for v1 endpoints."""

from fastapi import HTTPException

from clipgen.services import Services, get_services


def require_services() -> Services:
    services = get_services()
    if services is None:
        raise HTTPException(status_code=503, detail="Services not initialized")
    return services
