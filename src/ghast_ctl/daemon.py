"""Daemon entry point: open the browser, serve HTTP, tear down on exit.

The chosen HTTP port is the only thing written to stdout, so callers can
start the daemon in the background with stdout redirected to a file and
read the port from its first line::

    ghast-ctl start --headless > ghast.port &
    until [ -s ghast.port ]; do sleep 0.1; done
    PORT=$(head -n 1 ghast.port)
"""

from __future__ import annotations

import asyncio
import logging
import sys

import uvicorn

from ghast_ctl.app import create_app
from ghast_ctl.browser import open_session
from ghast_ctl.config import DaemonConfig
from ghast_ctl.service import CommandService
from ghast_ctl.utils import find_available_port

logger = logging.getLogger("ghast_ctl.daemon")


async def run_daemon(config: DaemonConfig) -> None:
    """Open the browser session and serve commands until shutdown."""
    session = await open_session(config)
    service = CommandService(session, config)
    app = create_app(session, config, service=service)

    port = config.server.port or find_available_port()
    server = uvicorn.Server(
        uvicorn.Config(
            app,
            host=config.server.host,
            port=port,
            log_config=None,
            access_log=False,
        )
    )

    def _stop_server() -> None:
        server.should_exit = True

    service.set_exit_callback(_stop_server)

    serve_task = asyncio.ensure_future(server.serve())
    while not server.started and not serve_task.done():
        await asyncio.sleep(0.05)
    if server.started:
        # The port line is the daemon's contract with whoever launched it.
        print(port, flush=True)
        logger.info(f"Serving commands on http://{config.server.host}:{port}")

    try:
        await serve_task
    finally:
        # SIGINT/SIGTERM end serve() without going through /shutdown.
        await session.close()
        logger.info("Daemon stopped")


def _setup_logging(config: DaemonConfig) -> None:
    """Configure logging for the daemon process.

    Writes to ``config.log_file`` when set, otherwise to stderr; stdout is
    reserved for the port line.
    """
    if config.log_file:
        handler: logging.Handler = logging.FileHandler(
            config.log_file, mode="a", encoding="utf-8"
        )
    else:
        handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        logging.Formatter(
            "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    root = logging.getLogger()
    root.setLevel(config.log_level)
    root.addHandler(handler)


def start_daemon(config: DaemonConfig) -> None:
    """Run the daemon in the foreground until it is shut down."""
    _setup_logging(config)
    logger.info("Daemon starting")
    try:
        asyncio.run(run_daemon(config))
    except KeyboardInterrupt:
        pass
    except Exception:
        logger.exception("Daemon crashed")
        raise
