"""FastAPI dependency injection providers for the command service."""

from typing import TYPE_CHECKING, Annotated

from fastapi import Depends, Request

if TYPE_CHECKING:
    from ghast_ctl.service import CommandService


def get_service(request: Request) -> "CommandService":
    """Get the command service from app state."""
    return request.app.state.service


ServiceDep = Annotated["CommandService", Depends(get_service)]
