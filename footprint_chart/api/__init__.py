"""HTTP API (FastAPI + SSE)."""

from .server import create_app

__all__ = ["create_app"]
