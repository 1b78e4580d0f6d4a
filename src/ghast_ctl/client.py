"""Synchronous HTTP client for a running ghast-ctl daemon.

Every helper returns a dict that always contains an ``ok`` key (bool).
On failure the dict also contains an ``error`` key with a human-readable
message; transport errors never raise.
"""

from __future__ import annotations

from typing import Any

import httpx

DEFAULT_TIMEOUT = 120.0


def _base_url(port: int) -> str:
    return f"http://127.0.0.1:{port}"


def _request(
    port: int,
    method: str,
    path: str,
    timeout: float = DEFAULT_TIMEOUT,
    **kwargs: Any,
) -> httpx.Response | dict[str, Any]:
    try:
        with httpx.Client(base_url=_base_url(port), timeout=timeout) as client:
            return client.request(method, path, **kwargs)
    except httpx.ConnectError:
        return {
            "ok": False,
            "error": f"No daemon is listening on port {port}. Use 'start' first.",
        }
    except httpx.TimeoutException:
        return {"ok": False, "error": f"Request timed out after {timeout}s"}
    except httpx.HTTPError as e:
        return {"ok": False, "error": f"Connection error: {e}"}


def _error_from(response: httpx.Response) -> str:
    try:
        return response.json().get("error", response.text)
    except ValueError:
        return response.text


def send_command(
    port: int, command: str, timeout: float = DEFAULT_TIMEOUT
) -> dict[str, Any]:
    """POST *command* to ``/cmd`` and return the raw reply.

    On success the dict carries ``content_type`` and the undecoded ``body``
    bytes, since the reply may be JSON, HTML or a PNG.
    """
    response = _request(
        port, "POST", "/cmd", timeout=timeout, json={"command": command}
    )
    if isinstance(response, dict):
        return response
    result: dict[str, Any] = {
        "ok": response.is_success,
        "status": response.status_code,
        "content_type": response.headers.get("content-type", ""),
        "body": response.content,
    }
    if not response.is_success:
        result["error"] = _error_from(response)
    return result


def _json_call(port: int, method: str, path: str) -> dict[str, Any]:
    response = _request(port, method, path, timeout=10.0)
    if isinstance(response, dict):
        return response
    if not response.is_success:
        return {"ok": False, "error": _error_from(response)}
    return {"ok": True, "data": response.json()}


def get_history(port: int) -> dict[str, Any]:
    return _json_call(port, "GET", "/history")


def clear_history(port: int) -> dict[str, Any]:
    return _json_call(port, "DELETE", "/history")


def get_health(port: int) -> dict[str, Any]:
    return _json_call(port, "GET", "/health")


def shutdown(port: int) -> dict[str, Any]:
    """Ask the daemon to tear down its browser and exit."""
    return _json_call(port, "POST", "/shutdown")
