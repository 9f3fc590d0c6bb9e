"""HTTP surface for meetsync."""

from .server import create_app, router, run_local_server

__all__ = ["create_app", "router", "run_local_server"]
