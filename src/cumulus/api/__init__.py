"""HTTP surface: FastAPI app factory, routers, and the JSON envelope."""

from cumulus.api.app import API_PREFIX, create_app
from cumulus.api.context import AppContext, build_context

__all__ = ["API_PREFIX", "AppContext", "build_context", "create_app"]
