"""Health and lifecycle endpoints."""

from typing import Any

from fastapi import APIRouter

from ghast_ctl.dependencies import ServiceDep

router = APIRouter(tags=["status"])


@router.get("/health")
async def health(service: ServiceDep) -> dict[str, Any]:
    return {
        "status": "shutting_down" if service.shutting_down else "ok",
        "browserConnected": service.session.is_connected,
        "historyEntries": len(service.history),
    }


@router.post("/shutdown")
async def shutdown(service: ServiceDep) -> dict[str, str]:
    """Acknowledge, then tear the browser down and stop the daemon."""
    service.request_shutdown()
    return {"message": "Shutting down"}
