"""
dockboard HTTP API (FastAPI).

Run with ``dockboard serve`` or ``uvicorn dockboard.api.app:create_app --factory``.
"""

from dockboard.api.app import create_app

__all__ = ["create_app"]
