"""Sidecar CLI bootstrap."""

from __future__ import annotations

from opencode_sidecar.cli import app

if __name__ == "__main__":
    app()
