"""Port discovery and Electron process helpers."""

from __future__ import annotations

import asyncio
import logging
import random
import socket
import subprocess
import sys
import time
from pathlib import Path

import httpx

logger = logging.getLogger("ghast_ctl.utils")

# Candidate port ranges.  8xxx is skipped: too many dev servers live there.
PORT_RANGES: list[tuple[int, int]] = [
    (3000, 3999),
    (4000, 4999),
    (5000, 5999),
    (6000, 6999),
    (7000, 7999),
    (9000, 9999),
]

_RANDOM_ATTEMPTS = 100


def is_port_available(port: int, host: str = "127.0.0.1") -> bool:
    """Return ``True`` if *port* can be bound on *host* right now."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        try:
            sock.bind((host, port))
        except OSError:
            return False
    return True


def find_available_port() -> int:
    """Pick a free loopback port.

    Tries random ports in one randomly chosen range first, then scans every
    range sequentially.  Raises ``RuntimeError`` if nothing is free.
    """
    low, high = random.choice(PORT_RANGES)
    for _ in range(_RANDOM_ATTEMPTS):
        port = random.randint(low, high)
        if is_port_available(port):
            return port

    for low, high in PORT_RANGES:
        for port in range(low, high + 1):
            if is_port_available(port):
                return port

    raise RuntimeError("No available port found")


def get_app_name(app_path: str) -> str:
    """``/Applications/Slack.app`` -> ``Slack``."""
    name = Path(app_path.rstrip("/")).name
    if name.lower().endswith(".app"):
        return name[: -len(".app")]
    return name


async def _run_quietly(*cmd: str) -> None:
    try:
        proc = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
        )
        await proc.wait()
    except OSError as e:
        logger.debug(f"Could not run {cmd[0]}: {e}")


async def kill_app(app_path: str) -> None:
    """Kill any running instance of the app at *app_path*.

    Tries several methods because none of them is reliable on its own; a
    missing tool or no matching process is not an error.
    """
    app_name = get_app_name(app_path)
    logger.info(f"Killing running instances of {app_name}")
    # Match the bundle's binary dir, not the bare path, so this daemon's own
    # command line (which contains the path) is never matched.
    await _run_quietly("pkill", "-9", "-f", f"{app_path}/Contents/MacOS")
    await _run_quietly("killall", "-9", app_name)
    if sys.platform == "darwin":
        await _run_quietly("osascript", "-e", f'quit app "{app_name}"')
    await asyncio.sleep(0.5)


async def launch_electron_app(app_path: str, debug_port: int) -> None:
    """Start the Electron app with remote debugging on *debug_port*.

    On macOS ``.app`` bundles are started through ``open -a``; elsewhere the
    path is executed directly.
    """
    flag = f"--remote-debugging-port={debug_port}"
    if sys.platform == "darwin":
        proc = await asyncio.create_subprocess_exec(
            "open",
            "-a",
            app_path,
            "--args",
            flag,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
        )
        code = await proc.wait()
        if code != 0:
            raise RuntimeError(f"Failed to launch app, exit code: {code}")
    else:
        await asyncio.create_subprocess_exec(
            app_path,
            flag,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            start_new_session=True,
        )
    logger.info(f"Launched {app_path} with CDP on port {debug_port}")


async def wait_for_cdp(port: int, timeout: float = 30.0) -> None:
    """Poll ``/json/version`` until the CDP endpoint on *port* answers 200."""
    url = f"http://127.0.0.1:{port}/json/version"
    deadline = time.monotonic() + timeout
    async with httpx.AsyncClient(timeout=1.0) as client:
        while time.monotonic() < deadline:
            try:
                response = await client.get(url)
                if response.status_code == 200:
                    return
            except httpx.HTTPError:
                pass
            await asyncio.sleep(0.5)
    raise TimeoutError(
        f"CDP endpoint not available on port {port} after {int(timeout * 1000)}ms"
    )
