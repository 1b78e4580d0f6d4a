from __future__ import annotations

import json
import os
import shutil
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_LOOPBACK_HOSTS = ("127.0.0.1", "localhost", "::1")


def _default_executable_path() -> str | None:
    # Prefer system chromium (has proprietary codec support, e.g. h264)
    # over the bundled chromium (compiled without proprietary codecs).
    return shutil.which("chromium") or shutil.which("chromium-browser")


class BrowserConfig(BaseModel):
    headless: bool = False
    stealth: bool = False
    cdp_port: int | None = None
    electron_app: str | None = None
    executable_path: str | None = Field(default_factory=_default_executable_path)
    args: list[str] = Field(default_factory=list)


class ServerConfig(BaseModel):
    host: str = "127.0.0.1"
    port: int | None = None
    shutdown_grace: float = 0.1

    @field_validator("host")
    @classmethod
    def require_loopback(cls, v: str) -> str:
        if v not in _LOOPBACK_HOSTS:
            raise ValueError(
                f"server.host must be a loopback address {_LOOPBACK_HOSTS}, got '{v}'"
            )
        return v


class TimeoutsConfig(BaseModel):
    navigation: int = 30000
    force_navigation: int = 8000
    force_grace: int = 500
    action: int = 5000
    wait_for: int = 10000
    wait: int = 1000
    settle: int = 2000
    cdp: int = 30000


class LimitsConfig(BaseModel):
    text: int = 8000
    html: int = 10000
    links: int = 50
    interactive: int = 75
    scroll: int = 500


class DaemonConfig(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="GHAST_CTL_",
        env_nested_delimiter="__",
    )

    browser: BrowserConfig = Field(default_factory=BrowserConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    timeouts: TimeoutsConfig = Field(default_factory=TimeoutsConfig)
    limits: LimitsConfig = Field(default_factory=LimitsConfig)
    allow_eval: bool = True
    log_file: str | None = None
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"


def _is_truthy(value: str) -> bool:
    return value.lower() in ("1", "true", "yes")


def apply_env_overrides(config: DaemonConfig) -> DaemonConfig:
    """Read the flat GHAST_CTL_* env vars and apply them as overrides.

    These mirror the ``start`` flags and don't map onto the nested
    delimiter convention, so they are handled manually here.
    """

    # GHAST_CTL_HEADLESS -> browser.headless
    headless = os.environ.get("GHAST_CTL_HEADLESS")
    if headless is not None:
        config.browser.headless = _is_truthy(headless)

    # GHAST_CTL_STEALTH -> browser.stealth
    stealth = os.environ.get("GHAST_CTL_STEALTH")
    if stealth is not None:
        config.browser.stealth = _is_truthy(stealth)

    # GHAST_CTL_CDP_PORT -> browser.cdp_port
    cdp_port = os.environ.get("GHAST_CTL_CDP_PORT")
    if cdp_port is not None:
        config.browser.cdp_port = int(cdp_port)

    # GHAST_CTL_ELECTRON_APP -> browser.electron_app
    electron_app = os.environ.get("GHAST_CTL_ELECTRON_APP")
    if electron_app is not None:
        config.browser.electron_app = electron_app

    # GHAST_CTL_PORT -> server.port
    port = os.environ.get("GHAST_CTL_PORT")
    if port is not None:
        config.server.port = int(port)

    return config


def get_version() -> str:
    """Return the package version string."""
    try:
        from importlib.metadata import version

        return version("ghast-ctl")
    except Exception:
        return "0.1.0"


def load_config(config_path: str | None = None) -> DaemonConfig:
    """Load daemon configuration from a JSON file and/or environment variables.

    Priority (highest to lowest):
        1. Flat GHAST_CTL_* overrides (see ``apply_env_overrides``)
        2. Explicitly provided config_path JSON file
        3. Default config file at .ghast-ctl/config.json in cwd
        4. Nested GHAST_CTL_* env vars and built-in defaults

    Args:
        config_path: Optional path to a JSON configuration file. If not
            provided, the function looks for ``.ghast-ctl/config.json``
            in the current working directory.

    Returns:
        A fully resolved ``DaemonConfig`` instance.
    """
    file_values: dict = {}

    if config_path is not None:
        config_file = Path(config_path)
        if config_file.is_file():
            file_values = json.loads(config_file.read_text(encoding="utf-8"))
    else:
        default_config = Path.cwd() / ".ghast-ctl" / "config.json"
        if default_config.is_file():
            file_values = json.loads(default_config.read_text(encoding="utf-8"))

    config = DaemonConfig(**file_values)
    return apply_env_overrides(config)
