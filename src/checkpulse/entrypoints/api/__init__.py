"""HTTP API."""

from .app import create_app
from .errors import register_exception_handlers

__all__ = ["create_app", "register_exception_handlers"]
