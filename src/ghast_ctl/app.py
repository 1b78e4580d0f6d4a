"""ghast-ctl FastAPI application factory."""

from fastapi import FastAPI

from ghast_ctl.config import DaemonConfig, get_version
from ghast_ctl.routes import commands_router, history_router, status_router
from ghast_ctl.service import CommandService
from ghast_ctl.session import Session


def create_app(
    session: Session,
    config: DaemonConfig,
    service: CommandService | None = None,
) -> FastAPI:
    """Create the HTTP app around an already-open browser *session*."""
    app = FastAPI(
        title="ghast-ctl",
        description="Remote control daemon for a single browser session",
        version=get_version(),
    )

    # Store the service in app.state for dependency injection
    app.state.service = service or CommandService(session, config)

    app.include_router(commands_router)
    app.include_router(history_router)
    app.include_router(status_router)

    return app
