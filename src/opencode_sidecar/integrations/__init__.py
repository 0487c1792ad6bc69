"""Clients for external services."""

from opencode_sidecar.integrations.opencode_client import OpencodeClient

__all__ = ["OpencodeClient"]
