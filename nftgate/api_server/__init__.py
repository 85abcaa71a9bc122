"""
API Server package for the verification engine.

Serves verification results and service status over HTTP through FastAPI.
"""

from .server import create_api_server

__all__ = ["create_api_server"]
