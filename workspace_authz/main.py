"""
Name: ASGI Entrypoint (workspace_authz.main)

Responsibilities:
  - Re-export the FastAPI app for ASGI servers and tooling
  - Keep this module side-effect free beyond importing api.main

Notes:
  - uvicorn workspace_authz.main:app
"""

from .api.main import app

__all__ = ["app"]
