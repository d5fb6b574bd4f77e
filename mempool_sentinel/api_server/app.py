"""
FastAPI/ASGI application entrypoint.

Run with: uvicorn mempool_sentinel.api_server.app:app --host 0.0.0.0 --port 8000
"""

from mempool_sentinel.api_server.server import app

__all__ = ["app"]
