"""
Procurement HTTP API.

``create_app()`` returns the FastAPI application; ``python -m procurement_api``
serves it with uvicorn.
"""

from procurement_api.app import create_app

__all__ = ["create_app"]
