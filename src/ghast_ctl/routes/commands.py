"""Command execution endpoint."""

import logging
from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse, JSONResponse, Response

from ghast_ctl.commands import CommandResult, ContentKind
from ghast_ctl.dependencies import ServiceDep

logger = logging.getLogger(__name__)

router = APIRouter(tags=["commands"])


def _render(result: CommandResult) -> Response:
    """Turn a command result into an HTTP response by content kind."""
    if not result.success:
        return JSONResponse({"error": result.error}, status_code=400)
    if result.content_kind is ContentKind.IMAGE and result.binary is not None:
        return Response(content=result.binary, media_type="image/png")
    if result.content_kind is ContentKind.MARKUP:
        return HTMLResponse(result.data or "")
    data: Any = result.data if result.data is not None else {"success": True}
    return JSONResponse(data)


@router.post("/cmd")
async def run_command(request: Request, service: ServiceDep) -> Response:
    """Execute one command against the active tab."""
    try:
        body = await request.json()
    except ValueError:
        body = None
    command = body.get("command") if isinstance(body, dict) else None
    if not command or not isinstance(command, str):
        return JSONResponse({"error": "Missing or invalid command"}, status_code=400)

    if service.shutting_down:
        return JSONResponse({"error": "Daemon is shutting down"}, status_code=503)

    try:
        result = await service.run(command)
        return _render(result)
    except Exception as e:
        logger.exception(f"Command {command!r} raised an exception")
        return JSONResponse({"error": str(e)}, status_code=500)
