"""Command timeline endpoints."""

from typing import Any

from fastapi import APIRouter

from ghast_ctl.dependencies import ServiceDep

router = APIRouter(tags=["history"])


@router.get("/history")
async def get_history(service: ServiceDep) -> list[dict[str, Any]]:
    """Return every executed command, oldest first."""
    return service.history.to_json()


@router.delete("/history")
async def clear_history(service: ServiceDep) -> dict[str, int]:
    """Empty the timeline."""
    return {"cleared": service.history.clear()}
