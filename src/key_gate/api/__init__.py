"""HTTP shell for the Key Gate server."""

from key_gate.api.app import create_app, get_app


__all__ = ["create_app", "get_app"]
