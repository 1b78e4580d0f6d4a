"""ghast-ctl: drive a Chromium or Electron window over a local HTTP API."""

from ghast_ctl.cli import main

__all__ = ["main"]
